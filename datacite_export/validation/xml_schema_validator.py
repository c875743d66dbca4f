"""
XSD validation of DataCite kernel-4 XML documents.

libxml2 (via lxml) reports errors by line. The document is re-parsed from
its serialized bytes so every error can be mapped back to the element it
concerns and rendered as a path such as ``/resource/titles/title[2]``.
"""

import bisect
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from lxml import etree

from datacite_export.__version__ import SCHEMA_VERSION
from datacite_export.export.xml_exporter import DataCiteXmlExporter
from datacite_export.validation.report import (
    SchemaValidationError,
    SchemaViolation,
    ValidationReport,
)

logger = logging.getLogger(__name__)


SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schemas" / "kernel-4.6"

_NAMESPACE = re.compile(r"\{[^}]*\}")
_ATTRIBUTE = re.compile(r"attribute '([^']+)'")
_EXPECTED = re.compile(r"Expected is (?:one of )?\( ?([^)]+?) ?\)")

# libxml2 error types -> validation rule names
KEYWORDS = {
    "SCHEMAV_CVC_ENUMERATION_VALID": "enum",
    "SCHEMAV_CVC_PATTERN_VALID": "pattern",
    "SCHEMAV_CVC_MINLENGTH_VALID": "minLength",
    "SCHEMAV_CVC_MAXLENGTH_VALID": "maxLength",
    "SCHEMAV_CVC_MININCLUSIVE_VALID": "minimum",
    "SCHEMAV_CVC_MAXINCLUSIVE_VALID": "maximum",
    "SCHEMAV_CVC_DATATYPE_VALID_1_2_1": "type",
    "SCHEMAV_CVC_COMPLEX_TYPE_4": "required",
    "SCHEMAV_CVC_COMPLEX_TYPE_3_2_1": "additionalProperties",
    "SCHEMAV_CVC_COMPLEX_TYPE_3_2_2": "additionalProperties",
    "SCHEMAV_CVC_ELT_1": "required",
    "SCHEMAV_CVC_AU": "const",
    "SCHEMAV_CVC_ATTRIBUTE_3": "type",
}

# Facet errors are followed by a generic "not a valid value" entry for the same node
FACET_TYPES = {
    "SCHEMAV_CVC_ENUMERATION_VALID",
    "SCHEMAV_CVC_PATTERN_VALID",
    "SCHEMAV_CVC_MINLENGTH_VALID",
    "SCHEMAV_CVC_MAXLENGTH_VALID",
    "SCHEMAV_CVC_MININCLUSIVE_VALID",
    "SCHEMAV_CVC_MAXINCLUSIVE_VALID",
}
FACET_FOLLOW_UP_TYPES = {"SCHEMAV_CVC_DATATYPE_VALID_1_2_1", "SCHEMAV_CVC_ATTRIBUTE_3"}


def local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def element_path(element: etree._Element) -> str:
    """XPath-like location of an element; indices only where siblings share a name."""
    steps = []
    node = element
    while node is not None:
        name = local_name(node)
        parent = node.getparent()
        if parent is not None:
            siblings = [child for child in parent if child.tag == node.tag]
            if len(siblings) > 1:
                name = f"{name}[{siblings.index(node) + 1}]"
        steps.append(name)
        node = parent
    return "/" + "/".join(reversed(steps))


class XmlSchemaValidator:
    """Validates DataCite XML against the bundled kernel-4.6 XSD."""

    SCHEMA_VERSION = SCHEMA_VERSION
    SCHEMA_FILE = "metadata.xsd"
    MAX_LOGGED_ERRORS = 10
    FAILURE_MESSAGE = "XML export validation failed against DataCite Schema."

    # Parsed XSD documents are shared; compiled schemas are per call since
    # lxml keeps the error log on the XMLSchema object.
    _schema_doc_cache: Dict[Path, etree._ElementTree] = {}

    def __init__(self, schema_path: Optional[Path] = None):
        self.schema_path = schema_path or SCHEMA_DIR / self.SCHEMA_FILE
        if not self.schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {self.schema_path}")

    def _load_schema(self) -> etree.XMLSchema:
        schema_doc = self._schema_doc_cache.get(self.schema_path)
        if schema_doc is None:
            parser = etree.XMLParser(resolve_entities=False, no_network=True)
            schema_doc = etree.parse(str(self.schema_path), parser)
            self._schema_doc_cache[self.schema_path] = schema_doc
        return etree.XMLSchema(schema_doc)

    def validate(self, document: Union[bytes, etree._Element], strict: bool = False) -> ValidationReport:
        """
        Validate a DataCite XML document.

        Args:
            document: Serialized XML or the root element from DataCiteXmlExporter
            strict: If False, a missing DOI (draft resource) is reported as a
                warning instead of an error

        Returns:
            ValidationReport with errors in document order and non-blocking warnings
        """
        if isinstance(document, etree._Element):
            document = DataCiteXmlExporter.serialize(document)

        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        try:
            root = etree.fromstring(document, parser)
        except etree.XMLSyntaxError as e:
            logger.error(f"DataCite XML is not well-formed: {e}")
            violation = SchemaViolation(
                path="/",
                message=f"Document is not well-formed XML: {e} (Path: /)",
                keyword="wellFormed",
                context={"raw_message": str(e)},
            )
            return ValidationReport(errors=[violation], schema_version=self.SCHEMA_VERSION)

        schema = self._load_schema()
        schema.validate(root.getroottree())

        elements = [el for el in root.iter() if isinstance(el.tag, str)]
        order = {el: index for index, el in enumerate(elements)}
        lines: Dict[int, etree._Element] = {}
        for el in elements:
            lines.setdefault(el.sourceline, el)
        sorted_lines = sorted(lines)

        errors: List[Tuple[int, int, SchemaViolation]] = []
        warnings: List[SchemaViolation] = []
        last_facet: Optional[Tuple[int, Optional[str]]] = None

        for sequence, entry in enumerate(schema.error_log):
            element = self._element_at(entry.line, lines, sorted_lines) or root
            attribute = self._attribute(entry.message)

            if entry.type_name in FACET_FOLLOW_UP_TYPES and last_facet == (entry.line, attribute):
                continue
            if entry.type_name in FACET_TYPES:
                last_facet = (entry.line, attribute)

            violation = self._normalize(entry, element, attribute)

            if entry.level_name == "WARNING" or (not strict and self._is_draft_identifier(element)):
                warnings.append(violation)
                continue
            errors.append((order.get(element, 0), sequence, violation))

        offset = len(schema.error_log)
        for sequence, (element, violation) in enumerate(self._main_title_rule(root)):
            errors.append((order.get(element, 0), offset + sequence, violation))

        errors.sort(key=lambda item: (item[0], item[1]))
        report = ValidationReport(
            errors=[violation for _, _, violation in errors],
            warnings=warnings,
            schema_version=self.SCHEMA_VERSION,
        )

        if report.errors:
            self._log_errors(report.errors)
        for warning in warnings:
            logger.warning(f"DataCite XML warning: {warning.message}")

        return report

    def require_valid(self, document: Union[bytes, etree._Element], strict: bool = False) -> ValidationReport:
        """
        Validate and raise if the document is invalid.

        Raises:
            SchemaValidationError: If the document violates the XSD
        """
        report = self.validate(document, strict=strict)
        if not report.valid:
            raise SchemaValidationError(self.FAILURE_MESSAGE, report)
        return report

    @staticmethod
    def _element_at(line: int, lines: Dict[int, etree._Element],
                    sorted_lines: List[int]) -> Optional[etree._Element]:
        if line in lines:
            return lines[line]
        index = bisect.bisect_right(sorted_lines, line) - 1
        if index < 0:
            return None
        return lines[sorted_lines[index]]

    @staticmethod
    def _attribute(message: str) -> Optional[str]:
        match = _ATTRIBUTE.search(message)
        return match.group(1) if match else None

    @staticmethod
    def _is_draft_identifier(element: etree._Element) -> bool:
        return local_name(element) == "identifier" and not (element.text or "").strip()

    def _normalize(self, entry: Any, element: etree._Element, attribute: Optional[str]) -> SchemaViolation:
        raw_message = _NAMESPACE.sub("", entry.message)
        path = element_path(element)
        if attribute:
            path = f"{path}/@{attribute}"

        context: Dict[str, Any] = {"raw_message": raw_message, "line": entry.line}
        if attribute:
            context["attribute"] = attribute

        keyword = KEYWORDS.get(entry.type_name, "schema")
        if entry.type_name == "SCHEMAV_ELEMENT_CONTENT":
            expected = _EXPECTED.search(raw_message)
            if expected:
                context["expected_elements"] = [name.strip() for name in expected.group(1).split(",")]
            keyword = "required" if "Missing child element" in raw_message else "sequence"

        name = attribute or local_name(element)
        if keyword == "required" and attribute:
            message = f"Required attribute '{attribute}' is missing"
        elif keyword == "required":
            message = f"Element '{name}' is missing required content"
        elif keyword == "sequence":
            message = f"Element '{name}' is not expected here"
        elif keyword == "enum":
            message = f"Field '{name}' has a value that is not allowed"
        elif keyword in ("pattern", "type"):
            message = f"Field '{name}' has an invalid value"
        elif keyword == "minLength":
            message = f"Field '{name}' must not be empty"
        else:
            message = raw_message.rstrip(".")

        return SchemaViolation(
            path=path,
            message=f"{message} (Path: {path})",
            keyword=keyword,
            context=context,
        )

    def _main_title_rule(self, root: etree._Element) -> List[Tuple[etree._Element, SchemaViolation]]:
        """Exactly one title without titleType; XSD 1.0 cannot express this."""
        namespace = root.nsmap.get(None)
        if namespace is None:
            return []
        titles = root.find(f"{{{namespace}}}titles")
        if titles is None:
            return []
        title_elements = titles.findall(f"{{{namespace}}}title")
        if not title_elements:
            return []  # reported by the XSD

        main_titles = [title for title in title_elements if title.get("titleType") is None]
        if len(main_titles) == 1:
            return []

        path = element_path(titles)
        keyword = "contains" if not main_titles else "maxContains"
        return [(titles, SchemaViolation(
            path=path,
            message=f"Field 'titles' must contain exactly one main title without titleType (Path: {path})",
            keyword=keyword,
            context={"main_titles": len(main_titles), "max_contains": 1},
        ))]

    def _log_errors(self, errors: List[SchemaViolation]) -> None:
        logger.error(
            f"DataCite XML schema validation failed with {len(errors)} error(s) "
            f"(schema version {self.SCHEMA_VERSION})"
        )
        for error in errors[:self.MAX_LOGGED_ERRORS]:
            logger.error(f"  {error.keyword}: {error.message}")
        if len(errors) > self.MAX_LOGGED_ERRORS:
            logger.error(f"  ... and {len(errors) - self.MAX_LOGGED_ERRORS} more")
