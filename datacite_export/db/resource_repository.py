"""
Resource repositories - PyMySQL version.

Loads the Resource aggregate that the exporters read and writes back the
DOI after a successful registration. Every ``load`` returns a freshly
built aggregate so concurrent requests never share mutable state.

Table Structure (curation database):
- resources: id, doi, publication_year, version, resource_type_id, language_id
- resource_types, title_types, contributor_types, date_types,
  description_types, identifier_types, relation_types,
  funder_identifier_types: lookup tables; ``slug`` holds the DataCite term
- languages: id, code
- titles: resource_id, title_type_id (NULL for the main title), value, language
- resource_creators: resource_id, creatorable_type, creatorable_id, position, is_contact
- resource_contributors: resource_id, contributorable_type, contributorable_id,
  contributor_type_id, position
- persons: family_name, given_name, name_identifier, name_identifier_scheme
- institutions: name, name_identifier, name_identifier_scheme
- affiliations: affiliatable_type, affiliatable_id (creator or contributor row),
  name, identifier, identifier_scheme, scheme_uri
- resource_rights -> rights: identifier (SPDX), name, uri
- subjects, dates, descriptions, related_identifiers, funding_references,
  geo_locations, sizes, formats: one row per entry
- landing_pages: resource_id, slug, is_published

Polymorphic ``*_type`` columns hold the model class names of the curation
application (e.g. ``App\\Models\\Person``).
"""

import copy
import datetime
import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pymysql
from pymysql.cursors import DictCursor

from datacite_export.models.resource import (
    AUTHOR_ROLE,
    CONTACT_PERSON_ROLE,
    MAIN_TITLE,
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
)

logger = logging.getLogger(__name__)


PERSON_TYPE = "App\\Models\\Person"
INSTITUTION_TYPE = "App\\Models\\Institution"
CREATOR_TYPE = "App\\Models\\ResourceCreator"
CONTRIBUTOR_TYPE = "App\\Models\\ResourceContributor"

PARTY_COLUMNS = """
    p.family_name, p.given_name,
    p.name_identifier AS person_identifier,
    p.name_identifier_scheme AS person_identifier_scheme,
    i.name AS institution_name,
    i.name_identifier AS institution_identifier,
    i.name_identifier_scheme AS institution_identifier_scheme
"""


class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class ConnectionError(DatabaseError):
    """Exception raised when database connection fails."""
    pass


class TransactionError(DatabaseError):
    """Exception raised when database transaction fails."""
    pass


class DoiAlreadyAssignedError(DatabaseError):
    """Raised when a DOI is written to a resource that already has one."""
    pass


def date_string(value: Any) -> Optional[str]:
    """DATE columns arrive as datetime.date; the aggregate keeps ISO 8601 strings."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value)


def coordinate(value: Any) -> Optional[float]:
    """DECIMAL columns arrive as decimal.Decimal."""
    return float(value) if value is not None else None


class ResourceRepository:
    """Interface of the aggregate loaders used by the services."""

    def load(self, resource_id: int) -> Optional[Resource]:
        raise NotImplementedError

    def assign_doi(self, resource_id: int, doi: str) -> None:
        raise NotImplementedError


class InMemoryResourceRepository(ResourceRepository):
    """Repository over a dict of aggregates, handing out deep copies."""

    def __init__(self, resources: Optional[Iterable[Resource]] = None):
        self._resources: Dict[int, Resource] = {}
        for resource in resources or []:
            self.add(resource)

    def add(self, resource: Resource) -> None:
        self._resources[resource.id] = copy.deepcopy(resource)

    def load(self, resource_id: int) -> Optional[Resource]:
        resource = self._resources.get(resource_id)
        return copy.deepcopy(resource) if resource is not None else None

    def assign_doi(self, resource_id: int, doi: str) -> None:
        resource = self._resources.get(resource_id)
        if resource is None:
            raise DatabaseError(f"Resource {resource_id} not found")
        if resource.doi:
            raise DoiAlreadyAssignedError(
                f"Resource {resource_id} already has DOI {resource.doi}"
            )
        resource.doi = doi
        logger.info(f"Assigned DOI {doi} to resource {resource_id}")


class MySQLResourceRepository(ResourceRepository):
    """
    Repository backed by the curation MySQL database.

    PyMySQL creates connections on demand, one per operation.
    """

    def __init__(self, host: str, database: str, username: str, password: str, port: int = 3306,
                 landing_page_base_url: str = ""):
        """
        Initialize repository with connection parameters.

        Args:
            host: Database host
            database: Database name
            username: Database username
            password: Database password
            port: Database port
            landing_page_base_url: Public URL that landing page slugs are appended to
        """
        self.host = host
        self.database = database
        self.username = username
        self.password = password
        self.port = port
        self.landing_page_base_url = landing_page_base_url.rstrip("/")

        logger.info(f"MySQLResourceRepository initialized for {self.host}/{self.database} using PyMySQL")

    @contextmanager
    def get_connection(self):
        """
        Context manager for getting database connection.

        Yields:
            connection: PyMySQL connection

        Raises:
            ConnectionError: If connection cannot be established
        """
        connection = None
        try:
            connection = pymysql.connect(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.username,
                password=self.password,
                connect_timeout=10,
                charset='utf8mb4',
                cursorclass=DictCursor
            )
        except pymysql.Error as e:
            logger.error(f"Failed to connect to database: {e}")
            raise ConnectionError(f"Database connection failed: {e}") from e

        try:
            yield connection
        finally:
            if connection:
                connection.close()

    def test_connection(self) -> Tuple[bool, str]:
        """
        Test database connection.

        Returns:
            Tuple of (success: bool, message: str)
        """
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT VERSION()")
                    result = cursor.fetchone()
                    message = f"Connected to MySQL {result['VERSION()']}"
                    logger.info(message)
                    return True, message
        except DatabaseError as e:
            message = f"Connection failed: {str(e)}"
            logger.error(message)
            return False, message

    @staticmethod
    def _fetch_all(cursor, query: str, params: Tuple) -> List[Dict[str, Any]]:
        cursor.execute(query, params)
        return list(cursor.fetchall() or [])

    def load(self, resource_id: int) -> Optional[Resource]:
        """
        Load the complete aggregate of a resource.

        Args:
            resource_id: Resource ID from resources table

        Returns:
            Resource or None if not found

        Raises:
            DatabaseError: If a query fails
        """
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(
                        """
                        SELECT r.id, r.doi, r.publication_year, r.version,
                               rt.slug AS resource_type, rt.name AS resource_type_name,
                               l.code AS language
                        FROM resources r
                        LEFT JOIN resource_types rt ON rt.id = r.resource_type_id
                        LEFT JOIN languages l ON l.id = r.language_id
                        WHERE r.id = %s
                        LIMIT 1
                        """,
                        (resource_id,)
                    )
                    row = cursor.fetchone()
                    if not row:
                        logger.warning(f"No resource found with id {resource_id}")
                        return None

                    resource = Resource(
                        id=row['id'],
                        doi=row.get('doi') or None,
                        publication_year=row.get('publication_year'),
                        version=row.get('version'),
                        language=row.get('language'),
                        resource_type=row.get('resource_type'),
                        resource_type_description=row.get('resource_type_name'),
                    )
                    self._load_titles(cursor, resource)
                    self._load_agents(cursor, resource)
                    self._load_licenses(cursor, resource)
                    self._load_descriptions(cursor, resource)
                    self._load_dates(cursor, resource)
                    self._load_subjects(cursor, resource)
                    self._load_related_identifiers(cursor, resource)
                    self._load_funding_references(cursor, resource)
                    self._load_geo_locations(cursor, resource)
                    self._load_sizes_and_formats(cursor, resource)
                    self._load_landing_page(cursor, resource)

                    logger.debug(
                        f"Loaded resource {resource_id}: {len(resource.titles)} titles, "
                        f"{len(resource.agents)} agents"
                    )
                    return resource

        except pymysql.Error as e:
            logger.error(f"Database error loading resource {resource_id}: {e}")
            raise DatabaseError(f"Failed to load resource: {e}") from e

    def _load_titles(self, cursor, resource: Resource) -> None:
        rows = self._fetch_all(
            cursor,
            """
            SELECT t.value, tt.slug AS title_type, t.language
            FROM titles t
            LEFT JOIN title_types tt ON tt.id = t.title_type_id
            WHERE t.resource_id = %s
            ORDER BY t.id
            """,
            (resource.id,)
        )
        resource.titles = [
            Title(value=row['value'], title_type=row.get('title_type') or MAIN_TITLE,
                  language=row.get('language'))
            for row in rows
        ]

    def _load_agents(self, cursor, resource: Resource) -> None:
        """
        Merge creator and contributor rows into one ResourceAgent per party.

        Creators come first in position order and hold the Author role (plus
        Contact Person when flagged); each contributor row adds its type.
        """
        creator_rows = self._fetch_all(
            cursor,
            f"""
            SELECT rc.id, rc.creatorable_type AS party_type, rc.creatorable_id AS party_id,
                   rc.position, rc.is_contact, {PARTY_COLUMNS}
            FROM resource_creators rc
            LEFT JOIN persons p ON rc.creatorable_type = %s AND p.id = rc.creatorable_id
            LEFT JOIN institutions i ON rc.creatorable_type = %s AND i.id = rc.creatorable_id
            WHERE rc.resource_id = %s
            ORDER BY rc.position, rc.id
            """,
            (PERSON_TYPE, INSTITUTION_TYPE, resource.id)
        )
        contributor_rows = self._fetch_all(
            cursor,
            f"""
            SELECT rc.id, rc.contributorable_type AS party_type,
                   rc.contributorable_id AS party_id, rc.position,
                   ct.name AS contributor_type, {PARTY_COLUMNS}
            FROM resource_contributors rc
            JOIN contributor_types ct ON ct.id = rc.contributor_type_id
            LEFT JOIN persons p ON rc.contributorable_type = %s AND p.id = rc.contributorable_id
            LEFT JOIN institutions i ON rc.contributorable_type = %s AND i.id = rc.contributorable_id
            WHERE rc.resource_id = %s
            ORDER BY rc.position, rc.id
            """,
            (PERSON_TYPE, INSTITUTION_TYPE, resource.id)
        )
        affiliations = self._fetch_affiliations(
            cursor,
            [row['id'] for row in creator_rows],
            [row['id'] for row in contributor_rows],
        )

        agents: Dict[Tuple[str, int], ResourceAgent] = {}
        for row in creator_rows:
            agent = self._merge_agent(agents, row, affiliations.get((CREATOR_TYPE, row['id']), []))
            if agent is None:
                continue
            if AUTHOR_ROLE not in agent.roles:
                agent.roles.append(AUTHOR_ROLE)
            if row.get('is_contact') and CONTACT_PERSON_ROLE not in agent.roles:
                agent.roles.append(CONTACT_PERSON_ROLE)

        for row in contributor_rows:
            agent = self._merge_agent(agents, row, affiliations.get((CONTRIBUTOR_TYPE, row['id']), []))
            if agent is None:
                continue
            if row['contributor_type'] not in agent.roles:
                agent.roles.append(row['contributor_type'])

        resource.agents = list(agents.values())

    def _fetch_affiliations(self, cursor, creator_ids: Sequence[int],
                            contributor_ids: Sequence[int]) -> Dict[Tuple[str, int], List[Affiliation]]:
        clauses = []
        params: List[Any] = []
        for owner_type, ids in ((CREATOR_TYPE, creator_ids), (CONTRIBUTOR_TYPE, contributor_ids)):
            if ids:
                placeholders = ", ".join(["%s"] * len(ids))
                clauses.append(f"(affiliatable_type = %s AND affiliatable_id IN ({placeholders}))")
                params.append(owner_type)
                params.extend(ids)
        if not clauses:
            return {}

        rows = self._fetch_all(
            cursor,
            "SELECT affiliatable_type, affiliatable_id, name, identifier, identifier_scheme, scheme_uri "
            "FROM affiliations WHERE " + " OR ".join(clauses) + " ORDER BY id",
            tuple(params)
        )
        affiliations: Dict[Tuple[str, int], List[Affiliation]] = {}
        for row in rows:
            affiliations.setdefault((row['affiliatable_type'], row['affiliatable_id']), []).append(Affiliation(
                name=row['name'],
                identifier=row.get('identifier'),
                identifier_scheme=row.get('identifier_scheme'),
                scheme_uri=row.get('scheme_uri'),
            ))
        return affiliations

    @staticmethod
    def _party(row: Dict[str, Any]) -> Optional[Party]:
        if row['party_type'] == PERSON_TYPE:
            return Person(
                family_name=row.get('family_name'),
                given_name=row.get('given_name'),
                name_identifier=row.get('person_identifier'),
                name_identifier_scheme=row.get('person_identifier_scheme'),
            )
        if row['party_type'] == INSTITUTION_TYPE:
            return Institution(
                name=row.get('institution_name'),
                name_identifier=row.get('institution_identifier'),
                name_identifier_scheme=row.get('institution_identifier_scheme'),
            )
        return None

    def _merge_agent(self, agents: Dict[Tuple[str, int], ResourceAgent], row: Dict[str, Any],
                     affiliations: List[Affiliation]) -> Optional[ResourceAgent]:
        key = (row['party_type'], row['party_id'])
        agent = agents.get(key)
        if agent is None:
            party = self._party(row)
            if party is None:
                logger.warning(f"Skipping party of unknown type {row['party_type']} (id {row['party_id']})")
                return None
            agent = ResourceAgent(party=party, position=len(agents))
            agents[key] = agent

        for affiliation in affiliations:
            if affiliation not in agent.affiliations:
                agent.affiliations.append(affiliation)
        return agent

    def _load_licenses(self, cursor, resource: Resource) -> None:
        rows = self._fetch_all(
            cursor,
            """
            SELECT ri.identifier, ri.name, ri.uri
            FROM resource_rights rr
            JOIN rights ri ON ri.id = rr.rights_id
            WHERE rr.resource_id = %s
            ORDER BY rr.id
            """,
            (resource.id,)
        )
        resource.licenses = [
            License(identifier=row['identifier'], name=row.get('name'), url=row.get('uri'))
            for row in rows
        ]

    def _load_descriptions(self, cursor, resource: Resource) -> None:
        rows = self._fetch_all(
            cursor,
            """
            SELECT d.value, dt.slug AS description_type, d.language
            FROM descriptions d
            JOIN description_types dt ON dt.id = d.description_type_id
            WHERE d.resource_id = %s
            ORDER BY d.id
            """,
            (resource.id,)
        )
        resource.descriptions = [
            Description(value=row['value'], description_type=row['description_type'],
                        language=row.get('language'))
            for row in rows
        ]

    def _load_dates(self, cursor, resource: Resource) -> None:
        rows = self._fetch_all(
            cursor,
            """
            SELECT dt.slug AS date_type, d.date_value, d.start_date, d.end_date, d.date_information
            FROM dates d
            JOIN date_types dt ON dt.id = d.date_type_id
            WHERE d.resource_id = %s
            ORDER BY d.id
            """,
            (resource.id,)
        )
        resource.dates = [
            ResourceDate(
                date_type=row['date_type'],
                date_value=date_string(row.get('date_value')),
                start_date=date_string(row.get('start_date')),
                end_date=date_string(row.get('end_date')),
                information=row.get('date_information'),
            )
            for row in rows
        ]

    def _load_subjects(self, cursor, resource: Resource) -> None:
        rows = self._fetch_all(
            cursor,
            """
            SELECT value, subject_scheme, scheme_uri, value_uri, classification_code, language
            FROM subjects WHERE resource_id = %s ORDER BY id
            """,
            (resource.id,)
        )
        # Rows without a scheme are free keywords
        resource.keywords = [
            ControlledKeyword(
                value=row['value'],
                scheme=row['subject_scheme'],
                scheme_uri=row.get('scheme_uri'),
                value_uri=row.get('value_uri'),
                classification_code=row.get('classification_code'),
                language=row.get('language'),
            )
            for row in rows if row.get('subject_scheme')
        ]
        resource.free_keywords = [row['value'] for row in rows if not row.get('subject_scheme')]

    def _load_related_identifiers(self, cursor, resource: Resource) -> None:
        rows = self._fetch_all(
            cursor,
            """
            SELECT ri.identifier, it.slug AS identifier_type, rt.slug AS relation_type
            FROM related_identifiers ri
            JOIN identifier_types it ON it.id = ri.identifier_type_id
            JOIN relation_types rt ON rt.id = ri.relation_type_id
            WHERE ri.resource_id = %s
            ORDER BY ri.position, ri.id
            """,
            (resource.id,)
        )
        resource.related_identifiers = [
            RelatedIdentifier(
                identifier=row['identifier'],
                identifier_type=row['identifier_type'],
                relation_type=row['relation_type'],
            )
            for row in rows
        ]

    def _load_funding_references(self, cursor, resource: Resource) -> None:
        rows = self._fetch_all(
            cursor,
            """
            SELECT f.funder_name, f.funder_identifier, fit.slug AS funder_identifier_type,
                   f.scheme_uri, f.award_number, f.award_uri, f.award_title
            FROM funding_references f
            LEFT JOIN funder_identifier_types fit ON fit.id = f.funder_identifier_type_id
            WHERE f.resource_id = %s
            ORDER BY f.position, f.id
            """,
            (resource.id,)
        )
        resource.funding_references = [FundingReference(**row) for row in rows]

    def _load_geo_locations(self, cursor, resource: Resource) -> None:
        rows = self._fetch_all(
            cursor,
            """
            SELECT place, point_longitude, point_latitude,
                   west_bound_longitude, east_bound_longitude,
                   south_bound_latitude, north_bound_latitude,
                   polygon_points, in_polygon_point_longitude, in_polygon_point_latitude
            FROM geo_locations WHERE resource_id = %s ORDER BY id
            """,
            (resource.id,)
        )
        locations = []
        for row in rows:
            location = GeoLocation(place=row.get('place'))
            if row.get('point_longitude') is not None and row.get('point_latitude') is not None:
                location.point = GeoPoint(coordinate(row['point_longitude']), coordinate(row['point_latitude']))
            bounds = [row.get(key) for key in (
                'west_bound_longitude', 'east_bound_longitude',
                'south_bound_latitude', 'north_bound_latitude',
            )]
            if all(value is not None for value in bounds):
                location.box = GeoBox(*(coordinate(value) for value in bounds))
            if row.get('polygon_points'):
                # JSON column: [{"longitude": ..., "latitude": ...}, ...]
                points = row['polygon_points']
                if isinstance(points, (str, bytes)):
                    points = json.loads(points)
                location.polygon = [
                    GeoPoint(coordinate(point['longitude']), coordinate(point['latitude'])) for point in points
                ]
                if (row.get('in_polygon_point_longitude') is not None
                        and row.get('in_polygon_point_latitude') is not None):
                    location.in_polygon_point = GeoPoint(
                        coordinate(row['in_polygon_point_longitude']),
                        coordinate(row['in_polygon_point_latitude']),
                    )
            locations.append(location)
        resource.geo_locations = locations

    def _load_sizes_and_formats(self, cursor, resource: Resource) -> None:
        resource.sizes = [
            row['value'] for row in self._fetch_all(
                cursor, "SELECT value FROM sizes WHERE resource_id = %s ORDER BY id", (resource.id,)
            )
        ]
        resource.formats = [
            row['value'] for row in self._fetch_all(
                cursor, "SELECT value FROM formats WHERE resource_id = %s ORDER BY id", (resource.id,)
            )
        ]

    def _load_landing_page(self, cursor, resource: Resource) -> None:
        cursor.execute(
            "SELECT slug, is_published FROM landing_pages WHERE resource_id = %s LIMIT 1",
            (resource.id,)
        )
        row = cursor.fetchone()
        if not row:
            resource.landing_page = None
            return

        if self.landing_page_base_url:
            url = f"{self.landing_page_base_url}/{row['slug']}"
        else:
            logger.warning(f"No landing page base URL configured, landing page of resource {resource.id} has no URL")
            url = ""
        resource.landing_page = LandingPage(
            url=url,
            status="published" if row.get('is_published') else "draft",
        )

    def assign_doi(self, resource_id: int, doi: str) -> None:
        """
        Write the minted DOI to a resource that has none yet.

        Args:
            resource_id: Resource ID
            doi: DOI returned by the registry

        Raises:
            DoiAlreadyAssignedError: If the resource already carries a DOI
            TransactionError: If the update fails (rolled back)
        """
        with self.get_connection() as connection:
            try:
                connection.begin()
                with connection.cursor() as cursor:
                    affected = cursor.execute(
                        "UPDATE resources SET doi = %s WHERE id = %s AND doi IS NULL",
                        (doi, resource_id)
                    )
                    if affected == 0:
                        connection.rollback()
                        raise DoiAlreadyAssignedError(
                            f"Resource {resource_id} not found or already has a DOI"
                        )
                connection.commit()
                logger.info(f"Assigned DOI {doi} to resource {resource_id}")

            except pymysql.Error as e:
                connection.rollback()
                logger.error(f"Transaction failed assigning DOI to resource {resource_id}: {e}")
                raise TransactionError(f"Failed to assign DOI: {e}") from e
