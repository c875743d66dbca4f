"""Validation result types shared by the JSON and XML schema validators."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from datacite_export.__version__ import SCHEMA_VERSION


@dataclass(frozen=True)
class SchemaViolation:
    """A single schema error or warning, addressed by document path."""

    path: str
    message: str
    keyword: str
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "message": self.message,
            "keyword": self.keyword,
            "context": dict(self.context),
        }


@dataclass
class ValidationReport:
    """Result of validating one exported document."""

    errors: List[SchemaViolation]
    warnings: List[SchemaViolation] = field(default_factory=list)
    schema_version: str = SCHEMA_VERSION

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self, message: str) -> Dict[str, Any]:
        return {
            "message": message,
            "errors": [error.to_dict() for error in self.errors],
            "schema_version": self.schema_version,
        }


class SchemaValidationError(Exception):
    """Raised when a document fails validation against the DataCite schema."""

    def __init__(self, message: str, report: ValidationReport):
        super().__init__(message)
        self.report = report

    @property
    def errors(self) -> List[SchemaViolation]:
        return self.report.errors

    @property
    def schema_version(self) -> str:
        return self.report.schema_version
