"""DataCite registry client and registration policy."""

from datacite_export.api.datacite_client import (
    AuthenticationError,
    DataCiteAPIError,
    DataCiteClient,
    InvalidPrefixError,
    RegistrationResult,
    RegistryEndpoint,
    RegistryMode,
    RegistryRejected,
    RegistryUnreachable,
)
from datacite_export.api.registration_policy import (
    LANDING_PAGE_REQUIRED,
    RegistrationDecision,
    RegistrationDenied,
    authorize_registration,
)

__all__ = [
    'AuthenticationError',
    'DataCiteAPIError',
    'DataCiteClient',
    'InvalidPrefixError',
    'RegistrationResult',
    'RegistryEndpoint',
    'RegistryMode',
    'RegistryRejected',
    'RegistryUnreachable',
    'LANDING_PAGE_REQUIRED',
    'RegistrationDecision',
    'RegistrationDenied',
    'authorize_registration',
]
