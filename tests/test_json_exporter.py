"""Unit tests for the DataCite JSON exporter."""

import json

import pytest

from datacite_export.export.json_exporter import DataCiteJsonExporter
from datacite_export.models.resource import Title


@pytest.fixture
def exporter():
    return DataCiteJsonExporter()


class TestMinimalExport:
    """Test the projection of a draft resource with only mandatory fields."""

    def test_document_envelope(self, exporter, minimal_resource):
        document = exporter.export(minimal_resource)

        assert document["data"]["type"] == "dois"
        assert "attributes" in document["data"]

    def test_creator_from_author(self, exporter, minimal_resource):
        """Doe, John with the Author role is exported as the only creator."""
        attributes = exporter.export(minimal_resource)["data"]["attributes"]

        assert attributes["creators"] == [{
            "name": "Doe, John",
            "nameType": "Personal",
            "givenName": "John",
            "familyName": "Doe",
        }]

    def test_main_title_has_no_title_type(self, exporter, minimal_resource):
        attributes = exporter.export(minimal_resource)["data"]["attributes"]

        assert attributes["titles"] == [{"title": "Test Dataset"}]

    def test_draft_has_no_doi(self, exporter, minimal_resource):
        attributes = exporter.export(minimal_resource)["data"]["attributes"]

        assert "doi" not in attributes
        assert "identifiers" not in attributes

    def test_publisher_and_types(self, exporter, minimal_resource):
        attributes = exporter.export(minimal_resource)["data"]["attributes"]

        assert attributes["publisher"] == {
            "name": "GFZ Data Services",
            "publisherIdentifier": "https://ror.org/04z8jg394",
            "publisherIdentifierScheme": "ROR",
            "schemeUri": "https://ror.org/",
        }
        assert attributes["publicationYear"] == 2026
        assert attributes["types"] == {"resourceTypeGeneral": "Dataset", "resourceType": "Dataset"}
        assert attributes["schemaVersion"] == "http://datacite.org/schema/kernel-4"

    def test_empty_optional_sections_are_omitted(self, exporter, minimal_resource):
        attributes = exporter.export(minimal_resource)["data"]["attributes"]

        for key in ("subjects", "contributors", "dates", "language", "relatedIdentifiers",
                    "sizes", "formats", "version", "rightsList", "descriptions",
                    "geoLocations", "fundingReferences"):
            assert key not in attributes

    def test_missing_mandatory_data_is_left_for_validation(self, exporter, minimal_resource):
        """Incomplete resources are projected without raising."""
        minimal_resource.agents = []
        minimal_resource.titles = []
        minimal_resource.publication_year = None
        minimal_resource.resource_type = None

        attributes = exporter.export(minimal_resource)["data"]["attributes"]

        assert attributes["creators"] == []
        assert attributes["titles"] == []
        assert "publicationYear" not in attributes
        assert attributes["types"] == {}


class TestFullExport:
    """Test the projection of a registered resource with all properties."""

    def test_doi_and_identifiers(self, exporter, full_resource):
        attributes = exporter.export(full_resource)["data"]["attributes"]

        assert attributes["doi"] == "10.5880/GFZ.2026.001"
        assert attributes["identifiers"] == [
            {"identifier": "10.5880/GFZ.2026.001", "identifierType": "DOI"}
        ]

    def test_creator_identifier_and_affiliation(self, exporter, full_resource):
        creator = exporter.export(full_resource)["data"]["attributes"]["creators"][0]

        assert creator["name"] == "Müller, Anna"
        assert creator["nameIdentifiers"] == [{
            "nameIdentifier": "0000-0001-2345-6789",
            "nameIdentifierScheme": "ORCID",
            "schemeUri": "https://orcid.org",
        }]
        assert creator["affiliation"][0]["affiliationIdentifier"] == "https://ror.org/04z8jg394"

    def test_contributors(self, exporter, full_resource):
        attributes = exporter.export(full_resource)["data"]["attributes"]

        assert len(attributes["creators"]) == 1
        contributors = attributes["contributors"]
        assert [c["contributorType"] for c in contributors] == ["DataCollector", "HostingInstitution"]
        assert contributors[1]["nameType"] == "Organizational"
        assert "givenName" not in contributors[1]
        assert contributors[1]["nameIdentifiers"][0]["nameIdentifierScheme"] == "ROR"

    def test_titles_carry_language_and_type(self, exporter, full_resource):
        titles = exporter.export(full_resource)["data"]["attributes"]["titles"]

        assert titles == [
            {"title": "Seismic Records of the 2025 Campaign", "lang": "en"},
            {"title": "Raw waveforms", "lang": "en", "titleType": "Subtitle"},
        ]

    def test_dates(self, exporter, full_resource):
        dates = exporter.export(full_resource)["data"]["attributes"]["dates"]

        assert dates == [
            {"date": "2025-01-01/2025-12-31", "dateType": "Collected"},
            {"date": "2026-02-01", "dateType": "Available"},
        ]

    def test_subjects(self, exporter, full_resource):
        subjects = exporter.export(full_resource)["data"]["attributes"]["subjects"]

        assert subjects[0]["subjectScheme"] == "NASA/GCMD Earth Science Keywords"
        assert subjects[1] == {"subject": "seismology"}

    def test_geo_locations(self, exporter, full_resource):
        locations = exporter.export(full_resource)["data"]["attributes"]["geoLocations"]

        assert locations[0] == {
            "geoLocationPlace": "Potsdam",
            "geoLocationPoint": {"pointLongitude": 13.06, "pointLatitude": 52.38},
        }
        assert locations[1]["geoLocationBox"]["westBoundLongitude"] == 12.9
        polygon = locations[2]["geoLocationPolygon"]
        assert len(polygon["polygonPoints"]) == 4
        assert polygon["inPolygonPoint"] == {"pointLongitude": 13.1, "pointLatitude": 52.35}

    def test_funding_reference(self, exporter, full_resource):
        funding = exporter.export(full_resource)["data"]["attributes"]["fundingReferences"][0]

        assert funding["funderIdentifierType"] == "Crossref Funder ID"
        assert funding["awardNumber"] == "12345"
        assert funding["awardTitle"] == "Seismic monitoring"

    def test_attribute_order(self, exporter, full_resource):
        keys = list(exporter.export(full_resource)["data"]["attributes"])

        assert keys == [
            "doi", "identifiers", "creators", "titles", "publisher", "publicationYear",
            "types", "subjects", "contributors", "dates", "language", "relatedIdentifiers",
            "sizes", "formats", "version", "rightsList", "descriptions", "geoLocations",
            "fundingReferences", "schemaVersion",
        ]

    def test_title_language_overrides_resource_language(self, exporter, full_resource):
        full_resource.titles.append(Title("Seismische Daten", "TranslatedTitle", language="de"))

        titles = exporter.export(full_resource)["data"]["attributes"]["titles"]

        assert titles[-1]["lang"] == "de"


class TestSerialization:
    """Test the byte representation of JSON exports."""

    def test_repeated_exports_are_identical(self, exporter, full_resource):
        assert exporter.export_bytes(full_resource) == exporter.export_bytes(full_resource)

    def test_utf8_without_escaping(self, exporter, full_resource):
        payload = exporter.export_bytes(full_resource)

        assert "Müller".encode("utf-8") in payload
        assert json.loads(payload.decode("utf-8"))["data"]["type"] == "dois"

    def test_two_space_indentation(self, exporter, minimal_resource):
        payload = exporter.export_bytes(minimal_resource).decode("utf-8")

        assert payload.startswith('{\n  "data": {\n    "type": "dois"')
        assert payload.endswith("}\n")

    def test_export_does_not_mutate_resource(self, exporter, full_resource):
        before = repr(full_resource)

        exporter.export(full_resource)

        assert repr(full_resource) == before
