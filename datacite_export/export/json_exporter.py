"""DataCite JSON-API exporter (DataCite Metadata Schema 4.6)."""

import json
import logging
from typing import Any, Dict, List, Optional

from datacite_export.export import helpers
from datacite_export.models.resource import (
    PARTY_PERSON,
    GeoLocation,
    GeoPoint,
    Resource,
    ResourceAgent,
)

logger = logging.getLogger(__name__)


class DataCiteJsonExporter:
    """
    Projects a Resource aggregate onto a DataCite JSON-API document.

    The projection is total: missing mandatory data is emitted as an empty
    list or left out so that schema validation can point at the field.
    It never raises for incomplete resources.
    """

    SCHEMA_VERSION_URI = "http://datacite.org/schema/kernel-4"

    def export(self, resource: Resource) -> Dict[str, Any]:
        """
        Build the JSON-API document for a resource.

        Args:
            resource: Resource aggregate to export

        Returns:
            Document of the form {"data": {"type": "dois", "attributes": {...}}}
        """
        document = {
            "data": {
                "type": "dois",
                "attributes": self._build_attributes(resource),
            }
        }
        logger.debug(f"Built DataCite JSON for resource {resource.id}")
        return document

    @staticmethod
    def serialize(document: Dict[str, Any]) -> bytes:
        """Serialize a document as UTF-8 JSON with 2-space indentation."""
        return (json.dumps(document, indent=2, ensure_ascii=False) + "\n").encode("utf-8")

    def export_bytes(self, resource: Resource) -> bytes:
        return self.serialize(self.export(resource))

    def _build_attributes(self, resource: Resource) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {}

        if resource.doi:
            attributes["doi"] = resource.doi
            attributes["identifiers"] = [
                {"identifier": resource.doi, "identifierType": "DOI"}
            ]

        partition = helpers.partition_agents(resource.agents)

        attributes["creators"] = [self._build_creator(agent) for agent in partition.creators]
        attributes["titles"] = self._build_titles(resource)
        attributes["publisher"] = {
            "name": helpers.PUBLISHER_NAME,
            "publisherIdentifier": helpers.PUBLISHER_IDENTIFIER,
            "publisherIdentifierScheme": helpers.PUBLISHER_IDENTIFIER_SCHEME,
            "schemeUri": helpers.PUBLISHER_SCHEME_URI,
        }
        if resource.language:
            attributes["publisher"]["lang"] = resource.language

        if resource.publication_year is not None:
            attributes["publicationYear"] = resource.publication_year

        attributes["types"] = self._build_types(resource)

        optional_sections = [
            ("subjects", self._build_subjects(resource)),
            ("contributors", [
                self._build_contributor(entry.agent, entry.contributor_type)
                for entry in partition.contributors
            ]),
            ("dates", self._build_dates(resource)),
            ("language", resource.language),
            ("relatedIdentifiers", self._build_related_identifiers(resource)),
            ("sizes", list(resource.sizes)),
            ("formats", list(resource.formats)),
            ("version", resource.version),
            ("rightsList", self._build_rights_list(resource)),
            ("descriptions", self._build_descriptions(resource)),
            ("geoLocations", self._build_geo_locations(resource)),
            ("fundingReferences", self._build_funding_references(resource)),
        ]
        for key, value in optional_sections:
            if value:
                attributes[key] = value

        attributes["schemaVersion"] = self.SCHEMA_VERSION_URI
        return attributes

    def _build_titles(self, resource: Resource) -> List[Dict[str, str]]:
        titles = []
        for title in resource.titles:
            data = {"title": title.value}
            language = title.language or resource.language
            if language:
                data["lang"] = language
            # MainTitle is expressed by the absence of titleType
            if not title.is_main_title:
                data["titleType"] = title.title_type
            titles.append(data)
        return titles

    def _build_types(self, resource: Resource) -> Dict[str, str]:
        types = {}
        general = helpers.resource_type_general(resource.resource_type)
        if general:
            types["resourceTypeGeneral"] = general
        description = resource.resource_type_description or resource.resource_type
        if description:
            types["resourceType"] = description
        return types

    def _build_party(self, agent: ResourceAgent) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": helpers.party_name(agent),
            "nameType": helpers.name_type(agent),
        }
        if agent.party.kind == PARTY_PERSON:
            data.update(helpers.person_names(agent.party))

        identifier = helpers.name_identifier(agent)
        if identifier:
            data["nameIdentifiers"] = [identifier]

        affiliations = helpers.affiliations(agent)
        if affiliations:
            data["affiliation"] = affiliations
        return data

    def _build_creator(self, agent: ResourceAgent) -> Dict[str, Any]:
        return self._build_party(agent)

    def _build_contributor(self, agent: ResourceAgent, contributor_type: str) -> Dict[str, Any]:
        data = self._build_party(agent)
        data["contributorType"] = contributor_type
        return data

    def _build_subjects(self, resource: Resource) -> List[Dict[str, str]]:
        subjects = []
        for keyword in resource.keywords:
            data = {"subject": keyword.value, "subjectScheme": keyword.scheme}
            if keyword.scheme_uri:
                data["schemeUri"] = keyword.scheme_uri
            if keyword.value_uri:
                data["valueUri"] = keyword.value_uri
            if keyword.classification_code:
                data["classificationCode"] = keyword.classification_code
            if keyword.language:
                data["lang"] = keyword.language
            subjects.append(data)
        for keyword in resource.free_keywords:
            subjects.append({"subject": keyword})
        return subjects

    def _build_dates(self, resource: Resource) -> List[Dict[str, str]]:
        dates = []
        for date in resource.dates:
            value = helpers.format_date(date)
            if value is None:
                continue
            data = {"date": value, "dateType": date.date_type}
            if date.information:
                data["dateInformation"] = date.information
            dates.append(data)
        return dates

    def _build_related_identifiers(self, resource: Resource) -> List[Dict[str, str]]:
        related = []
        for item in resource.related_identifiers:
            data = {
                "relatedIdentifier": item.identifier,
                "relatedIdentifierType": item.identifier_type,
                "relationType": item.relation_type,
            }
            if item.resource_type_general:
                data["resourceTypeGeneral"] = item.resource_type_general
            related.append(data)
        return related

    def _build_rights_list(self, resource: Resource) -> List[Dict[str, str]]:
        rights_list = []
        for license in resource.licenses:
            data = helpers.resolve_license(license)
            language = license.language or resource.language
            if language:
                data["lang"] = language
            rights_list.append(data)
        return rights_list

    def _build_descriptions(self, resource: Resource) -> List[Dict[str, str]]:
        descriptions = []
        for description in resource.descriptions:
            data = {
                "description": description.value,
                "descriptionType": description.description_type,
            }
            language = description.language or resource.language
            if language:
                data["lang"] = language
            descriptions.append(data)
        return descriptions

    @staticmethod
    def _point(point: GeoPoint) -> Dict[str, float]:
        return {"pointLongitude": point.longitude, "pointLatitude": point.latitude}

    def _build_geo_location(self, location: GeoLocation) -> Optional[Dict[str, Any]]:
        data: Dict[str, Any] = {}
        if location.place:
            data["geoLocationPlace"] = location.place
        if location.point:
            data["geoLocationPoint"] = self._point(location.point)
        if location.box:
            data["geoLocationBox"] = {
                "westBoundLongitude": location.box.west,
                "eastBoundLongitude": location.box.east,
                "southBoundLatitude": location.box.south,
                "northBoundLatitude": location.box.north,
            }
        if location.polygon:
            polygon: Dict[str, Any] = {
                "polygonPoints": [self._point(point) for point in location.polygon]
            }
            if location.in_polygon_point:
                polygon["inPolygonPoint"] = self._point(location.in_polygon_point)
            data["geoLocationPolygon"] = polygon
        return data or None

    def _build_geo_locations(self, resource: Resource) -> List[Dict[str, Any]]:
        locations = []
        for location in resource.geo_locations:
            data = self._build_geo_location(location)
            if data:
                locations.append(data)
        return locations

    def _build_funding_references(self, resource: Resource) -> List[Dict[str, str]]:
        references = []
        for funding in resource.funding_references:
            data = {"funderName": funding.funder_name}
            if funding.funder_identifier:
                data["funderIdentifier"] = funding.funder_identifier
                data["funderIdentifierType"] = funding.funder_identifier_type or "Other"
                if funding.scheme_uri:
                    data["schemeUri"] = funding.scheme_uri
            if funding.award_number:
                data["awardNumber"] = funding.award_number
                if funding.award_uri:
                    data["awardUri"] = funding.award_uri
            if funding.award_title:
                data["awardTitle"] = funding.award_title
            references.append(data)
        return references
