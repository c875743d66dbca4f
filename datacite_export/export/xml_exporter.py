"""
DataCite XML exporter (kernel-4, Metadata Schema 4.6).

Builds the ``resource`` document with lxml. Child elements follow the
canonical kernel-4.6 order. Mandatory containers (identifier, creators,
titles, publicationYear, resourceType) are always written, empty if need
be, so the XSD validator reports the exact element that is missing data.
"""

import logging
from typing import Optional

from lxml import etree

from datacite_export.export import helpers
from datacite_export.models.resource import (
    PARTY_PERSON,
    GeoLocation,
    GeoPoint,
    Resource,
    ResourceAgent,
)

logger = logging.getLogger(__name__)


DATACITE_NAMESPACE = "http://datacite.org/schema/kernel-4"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"
SCHEMA_LOCATION = (
    "http://datacite.org/schema/kernel-4 "
    "https://schema.datacite.org/meta/kernel-4.6/metadata.xsd"
)

XML_LANG = f"{{{XML_NAMESPACE}}}lang"


def _tag(name: str) -> str:
    return f"{{{DATACITE_NAMESPACE}}}{name}"


class DataCiteXmlExporter:
    """Projects a Resource aggregate onto a DataCite kernel-4 XML document."""

    def export(self, resource: Resource) -> etree._Element:
        """
        Build the XML tree for a resource.

        Args:
            resource: Resource aggregate to export

        Returns:
            Root ``resource`` element
        """
        root = etree.Element(
            _tag("resource"),
            nsmap={None: DATACITE_NAMESPACE, "xsi": XSI_NAMESPACE},
        )
        root.set(f"{{{XSI_NAMESPACE}}}schemaLocation", SCHEMA_LOCATION)

        partition = helpers.partition_agents(resource.agents)

        self._build_identifier(root, resource)
        self._build_creators(root, partition.creators)
        self._build_titles(root, resource)
        self._build_publisher(root, resource)
        self._sub(root, "publicationYear",
                  str(resource.publication_year) if resource.publication_year is not None else None)
        self._build_resource_type(root, resource)
        self._build_subjects(root, resource)
        self._build_contributors(root, partition.contributors)
        self._build_dates(root, resource)
        if resource.language:
            self._sub(root, "language", resource.language)
        self._build_related_identifiers(root, resource)
        self._build_list(root, "sizes", "size", resource.sizes)
        self._build_list(root, "formats", "format", resource.formats)
        if resource.version:
            self._sub(root, "version", resource.version)
        self._build_rights_list(root, resource)
        self._build_descriptions(root, resource)
        self._build_geo_locations(root, resource)
        self._build_funding_references(root, resource)

        logger.debug(f"Built DataCite XML for resource {resource.id}")
        return root

    @staticmethod
    def serialize(root: etree._Element) -> bytes:
        """Serialize the tree as pretty-printed UTF-8 with an XML declaration."""
        return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)

    def export_bytes(self, resource: Resource) -> bytes:
        return self.serialize(self.export(resource))

    @staticmethod
    def _sub(parent: etree._Element, name: str, text: Optional[str] = None, **attributes) -> etree._Element:
        element = etree.SubElement(parent, _tag(name))
        if text is not None:
            element.text = text
        for key, value in attributes.items():
            if value is not None:
                element.set(key, str(value))
        return element

    def _build_identifier(self, root: etree._Element, resource: Resource) -> None:
        # Drafts have no DOI yet; the empty identifier is reported as a warning
        self._sub(root, "identifier", resource.doi or "", identifierType="DOI")

    def _build_party(self, parent: etree._Element, name_element: str, agent: ResourceAgent) -> None:
        self._sub(parent, name_element, helpers.party_name(agent), nameType=helpers.name_type(agent))
        if agent.party.kind == PARTY_PERSON:
            names = helpers.person_names(agent.party)
            if "givenName" in names:
                self._sub(parent, "givenName", names["givenName"])
            if "familyName" in names:
                self._sub(parent, "familyName", names["familyName"])

        identifier = helpers.name_identifier(agent)
        if identifier:
            self._sub(
                parent, "nameIdentifier", identifier["nameIdentifier"],
                nameIdentifierScheme=identifier["nameIdentifierScheme"],
                schemeURI=identifier.get("schemeUri"),
            )

        for affiliation in helpers.affiliations(agent):
            self._sub(
                parent, "affiliation", affiliation["name"],
                affiliationIdentifier=affiliation.get("affiliationIdentifier"),
                affiliationIdentifierScheme=affiliation.get("affiliationIdentifierScheme"),
                schemeURI=affiliation.get("schemeUri"),
            )

    def _build_creators(self, root: etree._Element, creators) -> None:
        container = self._sub(root, "creators")
        for agent in creators:
            creator = self._sub(container, "creator")
            self._build_party(creator, "creatorName", agent)

    def _build_contributors(self, root: etree._Element, contributors) -> None:
        if not contributors:
            return
        container = self._sub(root, "contributors")
        for entry in contributors:
            contributor = self._sub(container, "contributor", contributorType=entry.contributor_type)
            self._build_party(contributor, "contributorName", entry.agent)

    def _build_titles(self, root: etree._Element, resource: Resource) -> None:
        container = self._sub(root, "titles")
        for title in resource.titles:
            element = self._sub(
                container, "title", title.value,
                titleType=None if title.is_main_title else title.title_type,
            )
            language = title.language or resource.language
            if language:
                element.set(XML_LANG, language)

    def _build_publisher(self, root: etree._Element, resource: Resource) -> None:
        publisher = self._sub(
            root, "publisher", helpers.PUBLISHER_NAME,
            publisherIdentifier=helpers.PUBLISHER_IDENTIFIER,
            publisherIdentifierScheme=helpers.PUBLISHER_IDENTIFIER_SCHEME,
            schemeURI=helpers.PUBLISHER_SCHEME_URI,
        )
        if resource.language:
            publisher.set(XML_LANG, resource.language)

    def _build_resource_type(self, root: etree._Element, resource: Resource) -> None:
        self._sub(
            root, "resourceType",
            resource.resource_type_description or resource.resource_type or "",
            resourceTypeGeneral=helpers.resource_type_general(resource.resource_type),
        )

    def _build_subjects(self, root: etree._Element, resource: Resource) -> None:
        if not resource.keywords and not resource.free_keywords:
            return
        container = self._sub(root, "subjects")
        for keyword in resource.keywords:
            element = self._sub(
                container, "subject", keyword.value,
                subjectScheme=keyword.scheme,
                schemeURI=keyword.scheme_uri,
                valueURI=keyword.value_uri,
                classificationCode=keyword.classification_code,
            )
            if keyword.language:
                element.set(XML_LANG, keyword.language)
        for keyword in resource.free_keywords:
            self._sub(container, "subject", keyword)

    def _build_dates(self, root: etree._Element, resource: Resource) -> None:
        values = [(date, helpers.format_date(date)) for date in resource.dates]
        values = [(date, value) for date, value in values if value is not None]
        if not values:
            return
        container = self._sub(root, "dates")
        for date, value in values:
            self._sub(container, "date", value, dateType=date.date_type,
                      dateInformation=date.information)

    def _build_related_identifiers(self, root: etree._Element, resource: Resource) -> None:
        if not resource.related_identifiers:
            return
        container = self._sub(root, "relatedIdentifiers")
        for item in resource.related_identifiers:
            self._sub(
                container, "relatedIdentifier", item.identifier,
                relatedIdentifierType=item.identifier_type,
                relationType=item.relation_type,
                resourceTypeGeneral=item.resource_type_general,
            )

    def _build_list(self, root: etree._Element, container_name: str, item_name: str, values) -> None:
        if not values:
            return
        container = self._sub(root, container_name)
        for value in values:
            self._sub(container, item_name, value)

    def _build_rights_list(self, root: etree._Element, resource: Resource) -> None:
        if not resource.licenses:
            return
        container = self._sub(root, "rightsList")
        for license in resource.licenses:
            data = helpers.resolve_license(license)
            element = self._sub(
                container, "rights", data["rights"],
                rightsURI=data.get("rightsUri"),
                rightsIdentifier=data.get("rightsIdentifier"),
                rightsIdentifierScheme=data.get("rightsIdentifierScheme"),
                schemeURI=data.get("schemeUri"),
            )
            language = license.language or resource.language
            if language:
                element.set(XML_LANG, language)

    def _build_descriptions(self, root: etree._Element, resource: Resource) -> None:
        if not resource.descriptions:
            return
        container = self._sub(root, "descriptions")
        for description in resource.descriptions:
            element = self._sub(container, "description", description.value,
                                descriptionType=description.description_type)
            language = description.language or resource.language
            if language:
                element.set(XML_LANG, language)

    def _point(self, parent: etree._Element, name: str, point: GeoPoint) -> None:
        element = self._sub(parent, name)
        self._sub(element, "pointLongitude", str(point.longitude))
        self._sub(element, "pointLatitude", str(point.latitude))

    def _build_geo_location(self, container: etree._Element, location: GeoLocation) -> None:
        element = self._sub(container, "geoLocation")
        if location.place:
            self._sub(element, "geoLocationPlace", location.place)
        if location.point:
            self._point(element, "geoLocationPoint", location.point)
        if location.box:
            box = self._sub(element, "geoLocationBox")
            self._sub(box, "westBoundLongitude", str(location.box.west))
            self._sub(box, "eastBoundLongitude", str(location.box.east))
            self._sub(box, "southBoundLatitude", str(location.box.south))
            self._sub(box, "northBoundLatitude", str(location.box.north))
        if location.polygon:
            polygon = self._sub(element, "geoLocationPolygon")
            for point in location.polygon:
                self._point(polygon, "polygonPoint", point)
            if location.in_polygon_point:
                self._point(polygon, "inPolygonPoint", location.in_polygon_point)

    def _build_geo_locations(self, root: etree._Element, resource: Resource) -> None:
        locations = [
            location for location in resource.geo_locations
            if location.place or location.point or location.box or location.polygon
        ]
        if not locations:
            return
        container = self._sub(root, "geoLocations")
        for location in locations:
            self._build_geo_location(container, location)

    def _build_funding_references(self, root: etree._Element, resource: Resource) -> None:
        if not resource.funding_references:
            return
        container = self._sub(root, "fundingReferences")
        for funding in resource.funding_references:
            element = self._sub(container, "fundingReference")
            self._sub(element, "funderName", funding.funder_name)
            if funding.funder_identifier:
                self._sub(
                    element, "funderIdentifier", funding.funder_identifier,
                    funderIdentifierType=funding.funder_identifier_type or "Other",
                    schemeURI=funding.scheme_uri,
                )
            if funding.award_number:
                self._sub(element, "awardNumber", funding.award_number, awardURI=funding.award_uri)
            if funding.award_title:
                self._sub(element, "awardTitle", funding.award_title)
