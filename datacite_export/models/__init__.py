"""Resource aggregate and actor types."""

from datacite_export.models.resource import (
    AUTHOR_ROLE,
    CONTACT_PERSON_ROLE,
    MAIN_TITLE,
    Actor,
    Affiliation,
    ControlledKeyword,
    Description,
    FundingReference,
    GeoBox,
    GeoLocation,
    GeoPoint,
    Institution,
    LandingPage,
    License,
    Party,
    Person,
    RelatedIdentifier,
    Resource,
    ResourceAgent,
    ResourceDate,
    Title,
    UserRole,
)

__all__ = [
    "AUTHOR_ROLE",
    "CONTACT_PERSON_ROLE",
    "MAIN_TITLE",
    "Actor",
    "Affiliation",
    "ControlledKeyword",
    "Description",
    "FundingReference",
    "GeoBox",
    "GeoLocation",
    "GeoPoint",
    "Institution",
    "LandingPage",
    "License",
    "Party",
    "Person",
    "RelatedIdentifier",
    "Resource",
    "ResourceAgent",
    "ResourceDate",
    "Title",
    "UserRole",
]
