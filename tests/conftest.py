"""Shared resource fixtures for the DataCite export tests."""

import pytest

from datacite_export.models.resource import (
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
    Person,
    RelatedIdentifier,
    Resource,
    ResourceAgent,
    ResourceDate,
    Title,
    UserRole,
)


@pytest.fixture
def author():
    """John Doe as the only author."""
    return ResourceAgent(
        party=Person(family_name="Doe", given_name="John"),
        roles=["Author"],
        position=0,
    )


@pytest.fixture
def minimal_resource(author):
    """Draft resource with only the mandatory fields and no DOI."""
    return Resource(
        id=1,
        publication_year=2026,
        titles=[Title("Test Dataset")],
        agents=[author],
    )


@pytest.fixture
def registrable_resource(minimal_resource):
    """Draft resource with a published landing page and a license."""
    minimal_resource.landing_page = LandingPage(
        url="https://dataservices.gfz.de/panmetaworks/showshort.php?id=1",
        status="published",
    )
    minimal_resource.licenses = [License("CC-BY-4.0")]
    return minimal_resource


@pytest.fixture
def full_resource():
    """Registered resource using every supported property."""
    return Resource(
        id=42,
        doi="10.5880/GFZ.2026.001",
        publication_year=2026,
        resource_type="Dataset",
        resource_type_description="Seismic waveform data",
        language="en",
        version="1.0",
        titles=[
            Title("Seismic Records of the 2025 Campaign"),
            Title("Raw waveforms", title_type="Subtitle"),
        ],
        agents=[
            ResourceAgent(
                party=Person(
                    family_name="Müller",
                    given_name="Anna",
                    name_identifier="0000-0001-2345-6789",
                    name_identifier_scheme="ORCID",
                ),
                roles=["Author", "Contact Person"],
                affiliations=[Affiliation(
                    name="GFZ Helmholtz Centre for Geosciences",
                    identifier="https://ror.org/04z8jg394",
                    identifier_scheme="ROR",
                    scheme_uri="https://ror.org/",
                )],
                position=0,
            ),
            ResourceAgent(
                party=Person(family_name="Smith", given_name="Jane"),
                roles=["Data Collector"],
                position=1,
            ),
            ResourceAgent(
                party=Institution(
                    name="GFZ Data Services",
                    name_identifier="https://ror.org/04z8jg394",
                ),
                roles=["Hosting Institution"],
                position=2,
            ),
        ],
        licenses=[License("CC-BY-4.0")],
        descriptions=[Description("Waveforms recorded at 12 stations.")],
        dates=[
            ResourceDate("Collected", start_date="2025-01-01", end_date="2025-12-31"),
            ResourceDate("Available", date_value="2026-02-01"),
        ],
        funding_references=[FundingReference(
            funder_name="Deutsche Forschungsgemeinschaft",
            funder_identifier="https://doi.org/10.13039/501100001659",
            funder_identifier_type="Crossref Funder ID",
            award_number="12345",
            award_uri="https://gepris.dfg.de/gepris/projekt/12345",
            award_title="Seismic monitoring",
        )],
        related_identifiers=[RelatedIdentifier(
            identifier="10.5880/GFZ.2025.010",
            identifier_type="DOI",
            relation_type="IsNewVersionOf",
            resource_type_general="Dataset",
        )],
        geo_locations=[
            GeoLocation(place="Potsdam", point=GeoPoint(13.06, 52.38)),
            GeoLocation(box=GeoBox(west=12.9, east=13.2, south=52.3, north=52.5)),
            GeoLocation(
                polygon=[
                    GeoPoint(13.0, 52.3),
                    GeoPoint(13.2, 52.3),
                    GeoPoint(13.2, 52.5),
                    GeoPoint(13.0, 52.3),
                ],
                in_polygon_point=GeoPoint(13.1, 52.35),
            ),
        ],
        keywords=[ControlledKeyword(
            value="EARTH SCIENCE > SOLID EARTH > SEISMOLOGY",
            scheme="NASA/GCMD Earth Science Keywords",
            scheme_uri="https://gcmd.earthdata.nasa.gov/kms/concepts/concept_scheme/sciencekeywords",
        )],
        free_keywords=["seismology"],
        sizes=["12 GB"],
        formats=["application/x-miniseed"],
        landing_page=LandingPage(url="https://dataservices.gfz.de/resource/42", status="published"),
    )


@pytest.fixture
def curator():
    return Actor(user_id=7, role=UserRole.CURATOR)


@pytest.fixture
def beginner():
    return Actor(user_id=8, role=UserRole.BEGINNER)
