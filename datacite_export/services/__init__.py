"""Export and registration services."""

from datacite_export.services.export_service import ExportFormat, ExportService
from datacite_export.services.registration_service import RegistrationService
from datacite_export.services.results import (
    ExportResult,
    FailureKind,
    RegistrationOutcome,
    ServiceFailure,
)

__all__ = [
    'ExportFormat',
    'ExportResult',
    'ExportService',
    'FailureKind',
    'RegistrationOutcome',
    'RegistrationService',
    'ServiceFailure',
]
