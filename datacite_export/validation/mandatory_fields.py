"""
Pre-registration contract checked directly on the Resource aggregate.

Mirrors the mandatory DataCite properties so a curator gets the same
error shape as from the schema validators, before anything is sent to
the registry. Strict mode adds the repository's own requirement of at
least one license.
"""

import logging
from typing import List

from datacite_export.export.helpers import resource_type_general
from datacite_export.models.resource import Resource
from datacite_export.validation.json_schema_validator import JsonSchemaValidator
from datacite_export.validation.report import SchemaViolation

logger = logging.getLogger(__name__)


ATTRIBUTES_PATH = "/data/attributes"


def _violation(field: str, message: str, keyword: str, **context) -> SchemaViolation:
    path = f"{ATTRIBUTES_PATH}/{field}"
    return SchemaViolation(
        path=path,
        message=f"{message} (Path: {path})",
        keyword=keyword,
        context=context,
    )


def check_mandatory_fields(resource: Resource, strict: bool = False) -> List[SchemaViolation]:
    """
    Check the mandatory properties of a resource.

    Args:
        resource: Resource aggregate
        strict: Also require at least one license (used before registration)

    Returns:
        Violations in DataCite document order; empty if the contract holds
    """
    violations = []

    if not any(agent.is_author for agent in resource.agents):
        violations.append(_violation(
            "creators", "At least one author is required", "minItems", min_items=1,
        ))

    main_titles = resource.main_titles
    if not main_titles:
        violations.append(_violation(
            "titles", "A main title is required", "contains", main_titles=0,
        ))
    elif len(main_titles) > 1:
        violations.append(_violation(
            "titles", "Only one main title is allowed", "maxContains",
            main_titles=len(main_titles),
        ))

    if resource.publication_year is None:
        violations.append(_violation(
            "publicationYear", "Required field 'publicationYear' is missing", "required",
            missing_property="publicationYear",
        ))

    if not resource_type_general(resource.resource_type):
        violations.append(_violation(
            "types/resourceTypeGeneral", "Required field 'resourceTypeGeneral' is missing",
            "required", missing_property="resourceTypeGeneral",
        ))

    if strict and not resource.licenses:
        violations.append(_violation(
            "rightsList", "At least one license is required for registration", "minItems",
            min_items=1,
        ))

    if violations:
        logger.info(
            f"Resource {resource.id} fails {len(violations)} mandatory field check(s) "
            f"(schema version {JsonSchemaValidator.SCHEMA_VERSION})"
        )
    return violations
