"""
Registration service.

Orchestrates a DOI registration: reload the resource, apply the
registration policy, call DataCite and write the minted DOI back.
Resources that already have a DOI get a metadata update instead of a
second registration. Every failure is returned as a ServiceFailure.
"""

import logging
from typing import Optional, Union

from datacite_export.api.datacite_client import (
    AuthenticationError,
    DataCiteAPIError,
    DataCiteClient,
    InvalidPrefixError,
    RegistryMode,
    RegistryRejected,
    RegistryUnreachable,
)
from datacite_export.api.registration_policy import RegistrationDenied, authorize_registration
from datacite_export.db.resource_repository import DatabaseError, ResourceRepository
from datacite_export.models.resource import Actor
from datacite_export.services.results import FailureKind, RegistrationOutcome, ServiceFailure
from datacite_export.validation.json_schema_validator import JsonSchemaValidator
from datacite_export.validation.mandatory_fields import check_mandatory_fields
from datacite_export.validation.report import SchemaValidationError

logger = logging.getLogger(__name__)


class RegistrationService:
    """Registers resources at DataCite or updates their metadata."""

    VALIDATION_MESSAGE = JsonSchemaValidator.FAILURE_MESSAGE

    def __init__(
        self,
        repository: ResourceRepository,
        client: DataCiteClient,
        default_mode: RegistryMode = RegistryMode.TEST,
    ):
        self.repository = repository
        self.client = client
        self.default_mode = default_mode

    def register(
        self,
        resource_id: int,
        actor: Actor,
        requested_mode: Optional[RegistryMode] = None,
        prefix: Optional[str] = None,
    ) -> Union[RegistrationOutcome, ServiceFailure]:
        """
        Register a resource's DOI, or update its metadata if it has one.

        Args:
            resource_id: ID of the resource
            actor: User requesting the registration
            requested_mode: Test or production; the policy may override it
            prefix: DOI prefix for new registrations

        Returns:
            RegistrationOutcome or ServiceFailure
        """
        if not actor.is_active:
            logger.warning(f"Inactive user {actor.user_id} requested registration of resource {resource_id}")
            return ServiceFailure(FailureKind.UNAUTHORIZED, "User is not allowed to register DOIs.")

        resource = self.repository.load(resource_id)
        if resource is None:
            logger.warning(f"Registration requested for unknown resource {resource_id}")
            return ServiceFailure(FailureKind.NOT_FOUND, f"Resource {resource_id} not found.")

        decision = authorize_registration(actor, resource, requested_mode, self.default_mode)
        if isinstance(decision, RegistrationDenied):
            logger.info(f"Registration of resource {resource_id} denied: {decision.reason}")
            return ServiceFailure(FailureKind.POLICY_DENIED, decision.reason)

        if decision.forced_test_mode:
            logger.info(
                f"User {actor.user_id} ({actor.role.value}) is restricted to the test instance, "
                f"registering resource {resource_id} in TEST mode"
            )

        violations = check_mandatory_fields(resource, strict=True)
        if violations:
            return ServiceFailure(
                FailureKind.SCHEMA_VALIDATION_FAILED,
                self.VALIDATION_MESSAGE,
                errors=violations,
                schema_version=JsonSchemaValidator.SCHEMA_VERSION,
            )

        try:
            if resource.doi:
                result = self.client.update_metadata(resource.doi, resource, decision.mode)
            else:
                result = self.client.register(resource, decision.mode, prefix)
                self.repository.assign_doi(resource.id, result.doi)

        except SchemaValidationError as e:
            return ServiceFailure(
                FailureKind.SCHEMA_VALIDATION_FAILED,
                self.VALIDATION_MESSAGE,
                errors=e.errors,
                schema_version=e.schema_version,
            )
        except InvalidPrefixError as e:
            return ServiceFailure(FailureKind.INVALID_PREFIX, str(e))
        except AuthenticationError as e:
            return ServiceFailure(FailureKind.REGISTRY_AUTHENTICATION_FAILED, str(e))
        except RegistryRejected as e:
            return ServiceFailure(
                FailureKind.REGISTRY_REJECTED,
                str(e),
                details={"status_code": e.status_code, "errors": e.errors},
            )
        except RegistryUnreachable as e:
            return ServiceFailure(
                FailureKind.REGISTRY_UNREACHABLE,
                str(e),
                details={"attempts": e.attempts},
            )
        except DataCiteAPIError as e:
            return ServiceFailure(FailureKind.REGISTRY_UNREACHABLE, str(e))
        except DatabaseError as e:
            # The DOI exists at DataCite but could not be stored locally
            logger.error(f"Registered DOI could not be written back to resource {resource_id}: {e}")
            raise

        return RegistrationOutcome(
            doi=result.doi,
            mode=result.mode.value,
            updated=result.updated,
            forced_test_mode=decision.forced_test_mode,
            raw_response=result.raw_response,
        )
