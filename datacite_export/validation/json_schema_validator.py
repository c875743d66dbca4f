"""
JSON Schema validation of DataCite JSON-API documents.

Validates exported documents against the bundled DataCite Metadata
Schema 4.6 JSON Schema and turns jsonschema errors into addressable
violations: a JSON pointer path, a human-readable message, the failed
rule and rule-specific context. Errors are returned in document order.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from jsonschema.validators import validator_for
from referencing import Registry, Resource

from datacite_export.__version__ import SCHEMA_VERSION
from datacite_export.validation.report import (
    SchemaValidationError,
    SchemaViolation,
    ValidationReport,
)

logger = logging.getLogger(__name__)


SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schemas"

_REQUIRED_PROPERTY = re.compile(r"^'(?P<name>[^']+)' is a required property")

PathPart = Union[str, int]


def json_pointer(parts: Sequence[PathPart]) -> str:
    """Render path segments as an RFC 6901 JSON pointer."""
    if not parts:
        return "/"
    escaped = [str(part).replace("~", "~0").replace("/", "~1") for part in parts]
    return "/" + "/".join(escaped)


def field_name(parts: Sequence[PathPart]) -> str:
    """Name of the field a path points at, skipping trailing array indices."""
    for part in reversed(parts):
        if not isinstance(part, int):
            return str(part)
    return "document"


def document_position(document: Any, parts: Sequence[PathPart]) -> Tuple[int, ...]:
    """
    Pre-order position of a path inside a document.

    Object members are ranked by key order; a member that does not exist
    (a missing required property) ranks after all existing siblings.
    """
    position = []
    node = document
    for part in parts:
        if isinstance(node, dict):
            keys = list(node.keys())
            if part in node:
                position.append(keys.index(part))
                node = node[part]
            else:
                position.append(len(keys))
                node = None
        elif isinstance(node, list) and isinstance(part, int) and part < len(node):
            position.append(part)
            node = node[part]
        else:
            position.append(0)
            node = None
    return tuple(position)


class JsonSchemaValidator:
    """
    Validates DataCite JSON-API documents against the DataCite 4.6 JSON Schema.

    The metadata schema describes ``data.attributes``. The document schema
    wraps it in the JSON-API envelope and adds the main title rule; it
    refers to the metadata schema by its ``$id`` through a local registry,
    so nothing is fetched over the network.
    """

    SCHEMA_VERSION = SCHEMA_VERSION
    SCHEMA_FILE = "datacite_4.6_schema.json"
    DOCUMENT_SCHEMA_FILE = "datacite_jsonapi_document.json"
    MAX_LOGGED_ERRORS = 10
    FAILURE_MESSAGE = "JSON export validation failed against DataCite Schema."

    # Loaded schemas are shared read-only between instances
    _schema_cache: Dict[Path, Tuple[Dict[str, Any], Registry]] = {}

    def __init__(self, schema_path: Optional[Path] = None):
        self.schema_path = schema_path or SCHEMA_DIR / self.SCHEMA_FILE
        self.document_schema_path = SCHEMA_DIR / self.DOCUMENT_SCHEMA_FILE
        for path in (self.schema_path, self.document_schema_path):
            if not path.exists():
                raise FileNotFoundError(f"Schema file not found: {path}")

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _load_schema(self) -> Tuple[Dict[str, Any], Registry]:
        if self.schema_path in self._schema_cache:
            return self._schema_cache[self.schema_path]

        metadata_schema = self._read(self.schema_path)
        validator_for(metadata_schema).check_schema(metadata_schema)
        document_schema = self._read(self.document_schema_path)
        Draft202012Validator.check_schema(document_schema)

        registry = Registry().with_resource(
            uri=metadata_schema["$id"],
            resource=Resource.from_contents(metadata_schema),
        )
        logger.debug(f"Loaded DataCite JSON Schema {metadata_schema['$id']} from {self.schema_path}")

        self._schema_cache[self.schema_path] = (document_schema, registry)
        return document_schema, registry

    def validate(self, document: Dict[str, Any]) -> ValidationReport:
        """
        Validate a JSON-API document.

        Args:
            document: Document as produced by DataCiteJsonExporter.export()

        Returns:
            ValidationReport whose errors are ordered by document position
        """
        document_schema, registry = self._load_schema()
        validator = Draft202012Validator(document_schema, registry=registry)

        ranked = []
        for sequence, error in enumerate(validator.iter_errors(document)):
            violation, parts = self._normalize(error)
            ranked.append((document_position(document, parts), sequence, violation))

        ranked.sort(key=lambda item: (item[0], item[1]))
        errors = [violation for _, _, violation in ranked]

        if errors:
            self._log_errors(errors)

        return ValidationReport(errors=errors, schema_version=self.SCHEMA_VERSION)

    def require_valid(self, document: Dict[str, Any]) -> ValidationReport:
        """
        Validate and raise if the document is invalid.

        Raises:
            SchemaValidationError: If the document violates the schema
        """
        report = self.validate(document)
        if not report.valid:
            raise SchemaValidationError(self.FAILURE_MESSAGE, report)
        return report

    def _normalize(self, error: ValidationError) -> Tuple[SchemaViolation, List[PathPart]]:
        parts: List[PathPart] = list(error.absolute_path)
        keyword = str(error.validator)
        context: Dict[str, Any] = {"raw_message": error.message}

        if keyword == "required":
            match = _REQUIRED_PROPERTY.match(error.message)
            if match:
                parts.append(match.group("name"))
                context["missing_property"] = match.group("name")

        path = json_pointer(parts)
        name = field_name(parts)
        human = self._humanize(keyword, name, error, context)

        violation = SchemaViolation(
            path=path,
            message=f"{human} (Path: {path})",
            keyword=keyword,
            context=context,
        )
        return violation, parts

    @staticmethod
    def _humanize(keyword: str, name: str, error: ValidationError, context: Dict[str, Any]) -> str:
        value = error.validator_value

        if keyword == "required":
            return f"Required field '{name}' is missing"
        if keyword == "minItems":
            context["min_items"] = value
            context["actual_items"] = len(error.instance) if isinstance(error.instance, list) else None
            return f"Field '{name}' must contain at least {value} item(s)"
        if keyword == "maxItems":
            context["max_items"] = value
            return f"Field '{name}' must contain at most {value} item(s)"
        if keyword in ("contains", "minContains", "maxContains"):
            context["max_contains"] = 1
            return f"Field '{name}' must contain exactly one main title without titleType"
        if keyword == "enum":
            context["allowed_values"] = list(value)
            return f"Field '{name}' has a value that is not allowed"
        if keyword == "const":
            context["expected_value"] = value
            return f"Field '{name}' must be '{value}'"
        if keyword == "type":
            context["expected_type"] = value
            return f"Field '{name}' has an invalid type, expected {value}"
        if keyword == "minLength":
            context["min_length"] = value
            return f"Field '{name}' must not be empty"
        if keyword == "pattern":
            context["pattern"] = value
            return f"Field '{name}' does not match the required format"
        if keyword in ("minimum", "maximum"):
            context["limit"] = value
            return f"Field '{name}' is out of range"
        return f"Field '{name}' is invalid: {error.message}"

    def _log_errors(self, errors: List[SchemaViolation]) -> None:
        logger.error(
            f"DataCite JSON schema validation failed with {len(errors)} error(s) "
            f"(schema version {self.SCHEMA_VERSION})"
        )
        for error in errors[:self.MAX_LOGGED_ERRORS]:
            logger.error(f"  {error.keyword}: {error.message}")
        if len(errors) > self.MAX_LOGGED_ERRORS:
            logger.error(f"  ... and {len(errors) - self.MAX_LOGGED_ERRORS} more")
