"""
Registration policy.

Decides, immediately before every registry call, whether a resource may
be registered and against which DataCite instance. Pure function of the
actor and the freshly loaded resource.
"""

from dataclasses import dataclass
from typing import Optional, Union

from datacite_export.api.datacite_client import RegistryMode
from datacite_export.models.resource import Actor, Resource


LANDING_PAGE_REQUIRED = "landing page required"


@dataclass(frozen=True)
class RegistrationDecision:
    """Registration is allowed in ``mode``; ``forced_test_mode`` marks a role override."""

    mode: RegistryMode
    forced_test_mode: bool = False


@dataclass(frozen=True)
class RegistrationDenied:
    reason: str


def authorize_registration(
    actor: Actor,
    resource: Resource,
    requested_mode: Optional[RegistryMode] = None,
    default_mode: RegistryMode = RegistryMode.TEST,
) -> Union[RegistrationDecision, RegistrationDenied]:
    """
    Authorize a registration or metadata update.

    Rules, in order:
    1. A resource without a DOI needs a published landing page. Resources
       that already carry a DOI are only updated and skip this check.
    2. The lowest-privilege role always registers against the test
       instance, whatever was requested. This is an override, not a denial.
    3. Otherwise the requested mode applies, falling back to the configured
       default.

    Args:
        actor: User requesting the registration
        resource: Freshly loaded resource
        requested_mode: Mode asked for by the caller, if any
        default_mode: Mode used when nothing was requested

    Returns:
        RegistrationDecision or RegistrationDenied
    """
    if not resource.doi and not resource.has_published_landing_page:
        return RegistrationDenied(LANDING_PAGE_REQUIRED)

    if actor.role.is_lowest_privilege:
        forced = (requested_mode or default_mode) is not RegistryMode.TEST
        return RegistrationDecision(RegistryMode.TEST, forced_test_mode=forced)

    return RegistrationDecision(requested_mode or default_mode)
