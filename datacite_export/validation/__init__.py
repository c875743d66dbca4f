"""Schema validation of exported DataCite documents."""

from datacite_export.validation.json_schema_validator import JsonSchemaValidator
from datacite_export.validation.mandatory_fields import check_mandatory_fields
from datacite_export.validation.report import (
    SchemaValidationError,
    SchemaViolation,
    ValidationReport,
)
from datacite_export.validation.xml_schema_validator import XmlSchemaValidator

__all__ = [
    'JsonSchemaValidator',
    'XmlSchemaValidator',
    'SchemaValidationError',
    'SchemaViolation',
    'ValidationReport',
    'check_mandatory_fields',
]
