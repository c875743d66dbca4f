"""
Resource aggregate for DataCite export.

The surrounding curation application owns and persists these entities.
The exporters only read them; the single write is the DOI that is
assigned once after a successful registration.

Named parties are a tagged variant: every party carries a ``kind`` of
either ``"person"`` or ``"institution"`` and the projectors match on it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


AUTHOR_ROLE = "Author"
CONTACT_PERSON_ROLE = "Contact Person"
MAIN_TITLE = "MainTitle"

PARTY_PERSON = "person"
PARTY_INSTITUTION = "institution"


class UserRole(Enum):
    """Curation roles, from highest to lowest privilege."""

    ADMIN = "admin"
    GROUP_LEADER = "group_leader"
    CURATOR = "curator"
    BEGINNER = "beginner"

    @property
    def is_lowest_privilege(self) -> bool:
        return self is UserRole.BEGINNER


@dataclass(frozen=True)
class Actor:
    """The user on whose behalf an export or registration runs."""

    user_id: int
    role: UserRole
    is_active: bool = True


@dataclass
class Title:
    value: str
    title_type: str = MAIN_TITLE
    language: Optional[str] = None

    @property
    def is_main_title(self) -> bool:
        return self.title_type == MAIN_TITLE


@dataclass
class Person:
    family_name: Optional[str] = None
    given_name: Optional[str] = None
    name_identifier: Optional[str] = None  # e.g. ORCID without URL prefix
    name_identifier_scheme: Optional[str] = None
    kind: str = field(default=PARTY_PERSON, init=False)

    @property
    def display_name(self) -> str:
        """Name in DataCite's preferred "Family, Given" form."""
        if self.family_name and self.given_name:
            return f"{self.family_name}, {self.given_name}"
        return self.family_name or self.given_name or "Unknown"


@dataclass
class Institution:
    name: Optional[str] = None
    name_identifier: Optional[str] = None  # e.g. ROR URL
    name_identifier_scheme: Optional[str] = None
    kind: str = field(default=PARTY_INSTITUTION, init=False)

    @property
    def display_name(self) -> str:
        return self.name or "Unknown Institution"


Party = Union[Person, Institution]


@dataclass
class Affiliation:
    name: str
    identifier: Optional[str] = None
    identifier_scheme: Optional[str] = None
    scheme_uri: Optional[str] = None


@dataclass
class ResourceAgent:
    """
    Role assignment of a named party to a resource.

    A party listed with the "Author" role becomes a creator; every other
    role makes it a contributor. ``roles`` keeps the curator's order so the
    contributor list is deterministic.
    """

    party: Party
    roles: List[str] = field(default_factory=list)
    affiliations: List[Affiliation] = field(default_factory=list)
    position: int = 0

    @property
    def is_author(self) -> bool:
        return AUTHOR_ROLE in self.roles


@dataclass
class License:
    """License by SPDX identifier; name and url override the built-in table."""

    identifier: str
    name: Optional[str] = None
    url: Optional[str] = None
    language: Optional[str] = None


@dataclass
class Description:
    value: str
    description_type: str = "Abstract"
    language: Optional[str] = None


@dataclass
class ResourceDate:
    date_type: str
    date_value: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    information: Optional[str] = None

    @property
    def is_range(self) -> bool:
        return bool(self.start_date and self.end_date)

    @property
    def is_open_ended_range(self) -> bool:
        return bool(self.start_date and not self.end_date and not self.date_value)


@dataclass
class FundingReference:
    funder_name: str
    funder_identifier: Optional[str] = None
    funder_identifier_type: Optional[str] = None
    scheme_uri: Optional[str] = None
    award_number: Optional[str] = None
    award_uri: Optional[str] = None
    award_title: Optional[str] = None


@dataclass
class RelatedIdentifier:
    identifier: str
    identifier_type: str
    relation_type: str
    resource_type_general: Optional[str] = None


@dataclass
class GeoPoint:
    longitude: float
    latitude: float


@dataclass
class GeoBox:
    west: float
    east: float
    south: float
    north: float


@dataclass
class GeoLocation:
    place: Optional[str] = None
    point: Optional[GeoPoint] = None
    box: Optional[GeoBox] = None
    polygon: List[GeoPoint] = field(default_factory=list)
    in_polygon_point: Optional[GeoPoint] = None


@dataclass
class ControlledKeyword:
    """Keyword from a controlled vocabulary such as GCMD Science Keywords."""

    value: str
    scheme: str
    scheme_uri: Optional[str] = None
    value_uri: Optional[str] = None
    classification_code: Optional[str] = None
    language: Optional[str] = None


@dataclass
class LandingPage:
    url: str
    status: str = "draft"  # "draft" or "published"

    @property
    def is_published(self) -> bool:
        return self.status == "published" and bool(self.url)


@dataclass
class Resource:
    """
    Aggregate root of a curated research resource.

    ``doi`` is None until the resource has been registered and changes at
    most once, from None to the minted DOI.
    """

    id: int
    publication_year: Optional[int] = None
    doi: Optional[str] = None
    resource_type: Optional[str] = "Dataset"
    resource_type_description: Optional[str] = None
    language: Optional[str] = None
    version: Optional[str] = None
    titles: List[Title] = field(default_factory=list)
    agents: List[ResourceAgent] = field(default_factory=list)
    licenses: List[License] = field(default_factory=list)
    descriptions: List[Description] = field(default_factory=list)
    dates: List[ResourceDate] = field(default_factory=list)
    funding_references: List[FundingReference] = field(default_factory=list)
    related_identifiers: List[RelatedIdentifier] = field(default_factory=list)
    geo_locations: List[GeoLocation] = field(default_factory=list)
    keywords: List[ControlledKeyword] = field(default_factory=list)
    free_keywords: List[str] = field(default_factory=list)
    sizes: List[str] = field(default_factory=list)
    formats: List[str] = field(default_factory=list)
    landing_page: Optional[LandingPage] = None

    @property
    def main_titles(self) -> List[Title]:
        return [title for title in self.titles if title.is_main_title]

    @property
    def has_published_landing_page(self) -> bool:
        return self.landing_page is not None and self.landing_page.is_published
