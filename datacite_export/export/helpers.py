"""
Shared helpers for the DataCite JSON and XML exporters.

The creator/contributor partition lives here so both wire formats derive
their party lists from one function.
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Tuple

from datacite_export.models.resource import (
    PARTY_PERSON,
    Institution,
    License,
    Person,
    ResourceAgent,
    ResourceDate,
)

logger = logging.getLogger(__name__)


PUBLISHER_NAME = "GFZ Data Services"
PUBLISHER_IDENTIFIER = "https://ror.org/04z8jg394"
PUBLISHER_IDENTIFIER_SCHEME = "ROR"
PUBLISHER_SCHEME_URI = "https://ror.org/"

DEFAULT_RESOURCE_TYPE = "Dataset"

# DataCite 4.6 contributorType vocabulary
CONTRIBUTOR_TYPES = frozenset([
    "ContactPerson", "DataCollector", "DataCurator", "DataManager",
    "Distributor", "Editor", "HostingInstitution", "Producer",
    "ProjectLeader", "ProjectManager", "ProjectMember",
    "RegistrationAgency", "RegistrationAuthority", "RelatedPerson",
    "Researcher", "ResearchGroup", "RightsHolder", "Sponsor",
    "Supervisor", "Translator", "WorkPackageLeader", "Other",
])

SCHEME_URIS = {
    "ORCID": "https://orcid.org",
    "ROR": "https://ror.org",
    "ISNI": "https://isni.org",
    "GRID": "https://www.grid.ac",
}

# SPDX identifier -> (canonical name, canonical URL)
LICENSES: Dict[str, Tuple[str, str]] = {
    "CC-BY-4.0": (
        "Creative Commons Attribution 4.0 International",
        "https://creativecommons.org/licenses/by/4.0/legalcode",
    ),
    "CC-BY-SA-4.0": (
        "Creative Commons Attribution Share Alike 4.0 International",
        "https://creativecommons.org/licenses/by-sa/4.0/legalcode",
    ),
    "CC-BY-NC-4.0": (
        "Creative Commons Attribution Non Commercial 4.0 International",
        "https://creativecommons.org/licenses/by-nc/4.0/legalcode",
    ),
    "CC-BY-NC-SA-4.0": (
        "Creative Commons Attribution Non Commercial Share Alike 4.0 International",
        "https://creativecommons.org/licenses/by-nc-sa/4.0/legalcode",
    ),
    "CC-BY-ND-4.0": (
        "Creative Commons Attribution No Derivatives 4.0 International",
        "https://creativecommons.org/licenses/by-nd/4.0/legalcode",
    ),
    "CC0-1.0": (
        "Creative Commons Zero v1.0 Universal",
        "https://creativecommons.org/publicdomain/zero/1.0/legalcode",
    ),
    "MIT": ("MIT License", "https://opensource.org/licenses/MIT"),
    "Apache-2.0": ("Apache License 2.0", "https://www.apache.org/licenses/LICENSE-2.0"),
    "BSD-3-Clause": (
        "BSD 3-Clause \"New\" or \"Revised\" License",
        "https://opensource.org/licenses/BSD-3-Clause",
    ),
    "GPL-3.0-or-later": (
        "GNU General Public License v3.0 or later",
        "https://www.gnu.org/licenses/gpl-3.0-standalone.html",
    ),
    "EUPL-1.2": (
        "European Union Public License 1.2",
        "https://joinup.ec.europa.eu/software/page/eupl",
    ),
}
SPDX_SCHEME_URI = "https://spdx.org/licenses/"


class ContributorEntry(NamedTuple):
    agent: ResourceAgent
    contributor_type: str


class PartitionedAgents(NamedTuple):
    creators: List[ResourceAgent]
    contributors: List[ContributorEntry]


def pascal_case(label: str) -> str:
    """
    Join a human-readable label into a PascalCase controlled term.

    Examples:
        >>> pascal_case("Data Collector")
        'DataCollector'
        >>> pascal_case("Book Chapter")
        'BookChapter'
    """
    return "".join(word[:1].upper() + word[1:] for word in label.split())


def contributor_type_for_role(role: str) -> str:
    """Map a curation role name onto the DataCite contributorType vocabulary."""
    contributor_type = pascal_case(role)
    if contributor_type not in CONTRIBUTOR_TYPES:
        logger.warning(f"Role '{role}' has no DataCite contributorType, exporting as 'Other'")
        return "Other"
    return contributor_type


def resource_type_general(resource_type: Optional[str]) -> Optional[str]:
    """Normalize a resource type display name such as "Book Chapter" to "BookChapter"."""
    if not resource_type:
        return None
    return pascal_case(resource_type)


def partition_agents(agents: List[ResourceAgent]) -> PartitionedAgents:
    """
    Split role assignments into creators and contributors.

    An agent holding the Author role is a creator exactly once and never
    appears among the contributors, whatever other roles it holds. Every
    other agent yields one contributor entry per distinct role, in role
    order. Agents are ordered by position; ties keep their input order.

    Args:
        agents: Role assignments of a resource

    Returns:
        PartitionedAgents with creators and (agent, contributorType) entries
    """
    creators: List[ResourceAgent] = []
    contributors: List[ContributorEntry] = []

    for agent in sorted(agents, key=lambda a: a.position):
        if agent.is_author:
            creators.append(agent)
            continue

        seen = set()
        for role in agent.roles:
            contributor_type = contributor_type_for_role(role)
            if contributor_type in seen:
                continue
            seen.add(contributor_type)
            contributors.append(ContributorEntry(agent, contributor_type))

    return PartitionedAgents(creators, contributors)


def scheme_uri(scheme: Optional[str]) -> Optional[str]:
    if not scheme:
        return None
    return SCHEME_URIS.get(scheme.upper())


def name_identifier(agent: ResourceAgent) -> Optional[Dict[str, str]]:
    """
    Build the nameIdentifier of a party.

    Persons default to ORCID, institutions to ROR.
    """
    party = agent.party
    if not party.name_identifier:
        return None

    default_scheme = "ORCID" if party.kind == PARTY_PERSON else "ROR"
    scheme = party.name_identifier_scheme or default_scheme
    data = {
        "nameIdentifier": party.name_identifier,
        "nameIdentifierScheme": scheme,
    }
    uri = scheme_uri(scheme)
    if uri:
        data["schemeUri"] = uri
    return data


def affiliations(agent: ResourceAgent) -> List[Dict[str, str]]:
    result = []
    for affiliation in agent.affiliations:
        data = {"name": affiliation.name}
        if affiliation.identifier:
            data["affiliationIdentifier"] = affiliation.identifier
            data["affiliationIdentifierScheme"] = affiliation.identifier_scheme or "ROR"
            if affiliation.scheme_uri:
                data["schemeUri"] = affiliation.scheme_uri
        result.append(data)
    return result


def name_type(agent: ResourceAgent) -> str:
    return "Personal" if agent.party.kind == PARTY_PERSON else "Organizational"


def person_names(party: Person) -> Dict[str, str]:
    names = {}
    if party.given_name:
        names["givenName"] = party.given_name
    if party.family_name:
        names["familyName"] = party.family_name
    return names


def party_name(agent: ResourceAgent) -> str:
    party = agent.party
    if isinstance(party, (Person, Institution)):
        return party.display_name
    raise TypeError(f"Unsupported party type: {type(party).__name__}")


def resolve_license(license: License) -> Dict[str, str]:
    """Resolve a license to rights, rightsUri and SPDX identifier."""
    canonical_name, canonical_url = LICENSES.get(license.identifier, (None, None))
    data = {"rights": license.name or canonical_name or license.identifier}
    url = license.url or canonical_url
    if url:
        data["rightsUri"] = url
    if license.identifier in LICENSES:
        data["rightsIdentifier"] = license.identifier
        data["rightsIdentifierScheme"] = "SPDX"
        data["schemeUri"] = SPDX_SCHEME_URI
    return data


def format_date(date: ResourceDate) -> Optional[str]:
    """
    Format a date for DataCite.

    Closed ranges become "start/end"; an open-ended range is exported as
    its start date since DataCite rejects a trailing slash.
    """
    if date.is_range:
        return f"{date.start_date}/{date.end_date}"
    if date.is_open_ended_range:
        return date.start_date
    return date.date_value or date.start_date or None
