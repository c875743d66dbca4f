"""DataCite API Client for registering DOIs and updating their metadata."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests
from requests.auth import HTTPBasicAuth

from datacite_export.export.json_exporter import DataCiteJsonExporter
from datacite_export.models.resource import Resource
from datacite_export.validation.json_schema_validator import JsonSchemaValidator


logger = logging.getLogger(__name__)


class DataCiteAPIError(Exception):
    """Base exception for DataCite API errors."""
    pass


class AuthenticationError(DataCiteAPIError):
    """Raised when authentication fails or no credentials are configured."""
    pass


class InvalidPrefixError(DataCiteAPIError):
    """Raised when a DOI prefix is not configured for the selected mode."""
    pass


class RegistryRejected(DataCiteAPIError):
    """Raised when DataCite rejects a request with a non-retryable client error."""

    def __init__(self, message: str, status_code: int, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class RegistryUnreachable(DataCiteAPIError):
    """Raised when DataCite could not be reached within the allowed attempts."""

    def __init__(self, message: str, attempts: int, last_error: Optional[str] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class RegistryMode(Enum):
    """Which DataCite instance a call goes to."""

    TEST = "test"
    PRODUCTION = "production"


@dataclass(frozen=True)
class RegistryEndpoint:
    """Connection settings of one DataCite instance."""

    mode: RegistryMode
    endpoint: str
    username: str
    password: str = field(repr=False)
    prefixes: Tuple[str, ...] = ()

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)


@dataclass
class RegistrationResult:
    doi: str
    mode: RegistryMode
    updated: bool = False
    raw_response: Dict[str, Any] = field(default_factory=dict)


class DataCiteClient:
    """
    Client for registering and updating DOIs through the DataCite REST API v2.

    Test and production settings are held side by side; every call names
    the mode it runs against. Transient failures (timeouts, connection
    errors, HTTP 429 and 5xx) are retried with exponential backoff,
    at most MAX_ATTEMPTS attempts in total.
    """

    PRODUCTION_ENDPOINT = "https://api.datacite.org"
    TEST_ENDPOINT = "https://api.test.datacite.org"
    TIMEOUT = 30  # Request timeout in seconds, per attempt
    MAX_ATTEMPTS = 3
    BACKOFF_BASE = 1.0  # Seconds before the second attempt, doubled afterwards
    HEADERS = {
        "Content-Type": "application/vnd.api+json",
        "Accept": "application/vnd.api+json"
    }

    def __init__(
        self,
        endpoints: Iterable[RegistryEndpoint],
        timeout: int = TIMEOUT,
        backoff_base: float = BACKOFF_BASE,
        sleep: Callable[[float], None] = time.sleep,
        exporter: Optional[DataCiteJsonExporter] = None,
        validator: Optional[JsonSchemaValidator] = None,
    ):
        """
        Initialize DataCite API client.

        Args:
            endpoints: Settings for the test and/or production instance
            timeout: Per-attempt request timeout in seconds
            backoff_base: Delay before the first retry in seconds
            sleep: Function used to wait between attempts
            exporter: JSON exporter used to build payloads
            validator: JSON schema validator run before any request
        """
        self.endpoints: Dict[RegistryMode, RegistryEndpoint] = {ep.mode: ep for ep in endpoints}
        self.timeout = timeout
        self.backoff_base = backoff_base
        self._sleep = sleep
        self.exporter = exporter or DataCiteJsonExporter()
        self.validator = validator or JsonSchemaValidator()

        configured = ", ".join(mode.value.upper() for mode in self.endpoints) or "none"
        logger.info(f"DataCite client initialized (configured modes: {configured})")

    def endpoint_for(self, mode: RegistryMode) -> RegistryEndpoint:
        """
        Get the settings of one DataCite instance.

        Raises:
            AuthenticationError: If the mode has no credentials configured
        """
        endpoint = self.endpoints.get(mode)
        if endpoint is None or not endpoint.has_credentials:
            raise AuthenticationError(
                f"Keine DataCite-Zugangsdaten für den Modus '{mode.value}' konfiguriert."
            )
        return endpoint

    def resolve_prefix(self, mode: RegistryMode, prefix: Optional[str] = None) -> str:
        """
        Pick the DOI prefix for a registration.

        Args:
            mode: Registry mode
            prefix: Requested prefix; defaults to the first configured one

        Raises:
            InvalidPrefixError: If the prefix is not allowed in this mode
        """
        endpoint = self.endpoint_for(mode)
        if prefix is None:
            if not endpoint.prefixes:
                raise InvalidPrefixError(f"Kein DOI-Präfix für den Modus '{mode.value}' konfiguriert.")
            return endpoint.prefixes[0]
        if prefix not in endpoint.prefixes:
            allowed = ", ".join(endpoint.prefixes)
            raise InvalidPrefixError(
                f"Ungültiges DOI-Präfix '{prefix}' für den Modus '{mode.value}'. Erlaubt: {allowed}"
            )
        return prefix

    def build_document(self, resource: Resource) -> Dict[str, Any]:
        """
        Export and validate a resource.

        Raises:
            SchemaValidationError: If the export violates the DataCite schema
        """
        document = self.exporter.export(resource)
        self.validator.require_valid(document)
        return document

    def register(self, resource: Resource, mode: RegistryMode, prefix: Optional[str] = None) -> RegistrationResult:
        """
        Register a new DOI for a resource and publish it.

        The exported document is validated before anything is sent. DataCite
        mints the DOI suffix; the payload only carries the prefix.

        Args:
            resource: Resource without a DOI
            mode: Registry mode (test or production)
            prefix: DOI prefix; defaults to the first configured prefix

        Returns:
            RegistrationResult with the minted DOI

        Raises:
            SchemaValidationError: If the export is invalid (no request is made)
            InvalidPrefixError: If the prefix is not allowed
            AuthenticationError: If credentials are missing or rejected
            RegistryRejected: If DataCite rejects the request
            RegistryUnreachable: If DataCite cannot be reached after all attempts
        """
        document = self.build_document(resource)
        endpoint = self.endpoint_for(mode)
        prefix = self.resolve_prefix(mode, prefix)

        attributes = document["data"]["attributes"]
        attributes.pop("doi", None)
        attributes.pop("identifiers", None)
        attributes["prefix"] = prefix
        self._add_publication_attributes(attributes, resource)

        logger.info(f"Registering DOI for resource {resource.id} with prefix {prefix} ({mode.value.upper()})")
        body = self._send("POST", f"{endpoint.endpoint}/dois", endpoint, document)

        doi = self._doi_from_response(body)
        logger.info(f"Successfully registered DOI {doi} for resource {resource.id}")
        return RegistrationResult(doi=doi, mode=mode, updated=False, raw_response=body)

    def update_metadata(self, doi: str, resource: Resource, mode: RegistryMode) -> RegistrationResult:
        """
        Replace the metadata of an already registered DOI.

        Args:
            doi: Registered DOI (e.g. "10.5880/GFZ.1.1.2021.001")
            resource: Resource carrying the current metadata
            mode: Registry mode (test or production)

        Returns:
            RegistrationResult for the updated DOI

        Raises:
            SchemaValidationError: If the export is invalid (no request is made)
            AuthenticationError: If credentials are missing or rejected
            RegistryRejected: If DataCite rejects the request (e.g. unknown DOI)
            RegistryUnreachable: If DataCite cannot be reached after all attempts
        """
        document = self.build_document(resource)
        endpoint = self.endpoint_for(mode)

        document["data"]["id"] = doi
        attributes = document["data"]["attributes"]
        attributes["doi"] = doi
        self._add_publication_attributes(attributes, resource)

        logger.info(f"Updating metadata of DOI {doi} ({mode.value.upper()})")
        body = self._send("PUT", f"{endpoint.endpoint}/dois/{doi}", endpoint, document)

        logger.info(f"Successfully updated metadata of DOI {doi}")
        return RegistrationResult(doi=doi, mode=mode, updated=True, raw_response=body)

    @staticmethod
    def _add_publication_attributes(attributes: Dict[str, Any], resource: Resource) -> None:
        if resource.landing_page and resource.landing_page.url:
            attributes["url"] = resource.landing_page.url
        attributes["event"] = "publish"

    def _send(self, method: str, url: str, endpoint: RegistryEndpoint, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send a request, retrying transient failures.

        Returns:
            Parsed JSON response body

        Raises:
            AuthenticationError: On HTTP 401/403 (not retried)
            RegistryRejected: On any other HTTP 4xx except 429 (not retried)
            RegistryUnreachable: When all attempts failed transiently
        """
        auth = HTTPBasicAuth(endpoint.username, endpoint.password)
        sender = getattr(requests, method.lower())
        last_error = None

        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                response = sender(
                    url,
                    auth=auth,
                    json=payload,
                    timeout=self.timeout,
                    headers=self.HEADERS
                )
            except requests.exceptions.Timeout:
                last_error = "Die Anfrage hat zu lange gedauert."
                logger.warning(f"Timeout on {method} {url} (attempt {attempt}/{self.MAX_ATTEMPTS})")
            except requests.exceptions.ConnectionError as e:
                last_error = "Verbindung zur DataCite API fehlgeschlagen."
                logger.warning(f"Connection error on {method} {url} (attempt {attempt}/{self.MAX_ATTEMPTS}): {e}")
            except requests.exceptions.RequestException as e:
                last_error = f"Netzwerkfehler bei der Kommunikation mit DataCite: {str(e)}"
                logger.warning(f"Request exception on {method} {url} (attempt {attempt}/{self.MAX_ATTEMPTS}): {e}")
            else:
                status = response.status_code

                if 200 <= status < 300:
                    if status == 204 or not response.content:
                        return {}
                    return self._parse_body(response)

                if status == 401:
                    logger.error(f"Authentication failed for {endpoint.username} at {endpoint.endpoint}")
                    raise AuthenticationError(
                        "Authentifizierung fehlgeschlagen. Bitte überprüfe Benutzername und Passwort."
                    )

                if status == 403:
                    logger.error(f"Forbidden: {endpoint.username} has no permission for {method} {url}")
                    raise AuthenticationError(
                        f"Keine Berechtigung für diese Anfrage (Client {endpoint.username})."
                    )

                if status == 429 or status >= 500:
                    last_error = f"DataCite API antwortete mit HTTP {status}."
                    logger.warning(f"HTTP {status} on {method} {url} (attempt {attempt}/{self.MAX_ATTEMPTS})")
                else:
                    errors = self._extract_errors(response)
                    summary = "; ".join(error.get("title", "") for error in errors if error.get("title"))
                    logger.error(f"DataCite rejected {method} {url} with HTTP {status}: {summary}")
                    raise RegistryRejected(
                        f"DataCite hat die Anfrage abgelehnt (HTTP {status}): {summary}",
                        status_code=status,
                        errors=errors,
                    )

            if attempt < self.MAX_ATTEMPTS:
                delay = self.backoff_base * (2 ** (attempt - 1))
                logger.info(f"Retrying {method} {url} in {delay:.1f}s")
                self._sleep(delay)

        logger.error(f"DataCite API unreachable after {self.MAX_ATTEMPTS} attempts: {last_error}")
        raise RegistryUnreachable(
            f"DataCite API nach {self.MAX_ATTEMPTS} Versuchen nicht erreichbar. {last_error or ''}".strip(),
            attempts=self.MAX_ATTEMPTS,
            last_error=last_error,
        )

    @staticmethod
    def _parse_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON response from DataCite: {e}")
            raise DataCiteAPIError("Ungültige Antwort von der DataCite API erhalten.") from e
        if not isinstance(body, dict):
            raise DataCiteAPIError("Ungültige Antwort von der DataCite API erhalten.")
        return body

    @staticmethod
    def _doi_from_response(body: Dict[str, Any]) -> str:
        data = body.get("data") or {}
        doi = data.get("id") or (data.get("attributes") or {}).get("doi")
        if not doi:
            logger.error(f"DataCite response contains no DOI: {body}")
            raise DataCiteAPIError("Die DataCite API hat keinen DOI zurückgegeben.")
        return doi

    @staticmethod
    def _extract_errors(response: requests.Response) -> List[Dict[str, Any]]:
        """Extract DataCite's JSON-API error objects, falling back to the raw body."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and isinstance(body.get("errors"), list):
            errors = []
            for error in body["errors"]:
                if isinstance(error, dict):
                    errors.append({
                        "status": str(error.get("status", response.status_code)),
                        "source": error.get("source"),
                        "title": error.get("title") or error.get("detail") or "",
                    })
            if errors:
                return errors

        return [{"status": str(response.status_code), "source": None, "title": (response.text or "")[:500]}]
