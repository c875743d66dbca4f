"""Typed outcomes of the export and registration services."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from datacite_export.__version__ import SCHEMA_VERSION
from datacite_export.validation.report import SchemaViolation


class FailureKind(Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    SCHEMA_VALIDATION_FAILED = "schema_validation_failed"
    POLICY_DENIED = "policy_denied"
    INVALID_PREFIX = "invalid_prefix"
    REGISTRY_REJECTED = "registry_rejected"
    REGISTRY_AUTHENTICATION_FAILED = "registry_authentication_failed"
    REGISTRY_UNREACHABLE = "registry_unreachable"


STATUS_CODES = {
    FailureKind.NOT_FOUND: 404,
    FailureKind.UNAUTHORIZED: 403,
    FailureKind.SCHEMA_VALIDATION_FAILED: 422,
    FailureKind.POLICY_DENIED: 422,
    FailureKind.INVALID_PREFIX: 422,
    FailureKind.REGISTRY_REJECTED: 422,
    FailureKind.REGISTRY_AUTHENTICATION_FAILED: 502,
    FailureKind.REGISTRY_UNREACHABLE: 503,
}


@dataclass
class ServiceFailure:
    """
    A failed export or registration.

    Schema validation failures carry the ordered error list and the
    schema version; every other kind carries only a message.
    """

    kind: FailureKind
    message: str
    errors: List[SchemaViolation] = field(default_factory=list)
    schema_version: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        if self.kind is FailureKind.SCHEMA_VALIDATION_FAILED:
            return {
                "message": self.message,
                "errors": [error.to_dict() for error in self.errors],
                "schema_version": self.schema_version or SCHEMA_VERSION,
            }
        data: Dict[str, Any] = {"message": self.message}
        if self.details:
            data["details"] = dict(self.details)
        return data


@dataclass
class ExportResult:
    """A validated export ready to be offered as a download."""

    payload: bytes
    filename: str
    content_type: str
    warnings: List[SchemaViolation] = field(default_factory=list)


@dataclass
class RegistrationOutcome:
    """A successful registration or metadata update."""

    doi: str
    mode: str
    updated: bool
    forced_test_mode: bool = False
    raw_response: Dict[str, Any] = field(default_factory=dict)
