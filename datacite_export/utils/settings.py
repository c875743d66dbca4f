"""
Configuration loaded from the environment (and an optional .env file).

Environment variables:
- DATACITE_TEST_MODE: "true" registers against the test instance by default
- DATACITE_{TEST,PRODUCTION}_ENDPOINT: API base URL
- DATACITE_{TEST,PRODUCTION}_USERNAME: repository ID
- DATACITE_{TEST,PRODUCTION}_PASSWORD: password; read from the keyring if unset
- DATACITE_{TEST,PRODUCTION}_PREFIXES: comma separated DOI prefixes
- DATACITE_TIMEOUT: per-attempt timeout in seconds
- DATACITE_RETRY_BACKOFF: delay before the first retry in seconds
- DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD: curation database
- LANDING_PAGE_BASE_URL: public URL that landing page slugs are appended to
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

from datacite_export.api.datacite_client import DataCiteClient, RegistryEndpoint, RegistryMode
from datacite_export.utils.credential_manager import CredentialManager, CredentialManagerError

logger = logging.getLogger(__name__)


DEFAULT_PREFIXES = {
    RegistryMode.TEST: ("10.83279", "10.83186", "10.83114"),
    RegistryMode.PRODUCTION: ("10.5880", "10.26026", "10.14470"),
}
DEFAULT_ENDPOINTS = {
    RegistryMode.TEST: DataCiteClient.TEST_ENDPOINT,
    RegistryMode.PRODUCTION: DataCiteClient.PRODUCTION_ENDPOINT,
}

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


class SettingsError(Exception):
    """Raised when a configuration value is invalid."""
    pass


@dataclass(frozen=True)
class DatabaseSettings:
    host: str
    database: str
    username: str
    password: str = field(repr=False)
    port: int = 3306
    landing_page_base_url: str = ""


@dataclass(frozen=True)
class Settings:
    test_mode: bool
    endpoints: Dict[RegistryMode, RegistryEndpoint]
    timeout: int = DataCiteClient.TIMEOUT
    retry_backoff: float = DataCiteClient.BACKOFF_BASE
    database: Optional[DatabaseSettings] = None

    @property
    def default_mode(self) -> RegistryMode:
        return RegistryMode.TEST if self.test_mode else RegistryMode.PRODUCTION


def _parse_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise SettingsError(f"{name} must be a boolean, got '{value}'")


def _parse_number(name: str, default, cast):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        number = cast(value)
    except ValueError as e:
        raise SettingsError(f"{name} must be a number, got '{value}'") from e
    if number <= 0:
        raise SettingsError(f"{name} must be positive, got '{value}'")
    return number


def _parse_prefixes(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    prefixes = tuple(prefix.strip() for prefix in value.split(",") if prefix.strip())
    for prefix in prefixes:
        if not prefix.startswith("10."):
            raise SettingsError(f"{name} contains an invalid DOI prefix: '{prefix}'")
    return prefixes


def _registry_endpoint(mode: RegistryMode, credentials: Optional[CredentialManager]) -> RegistryEndpoint:
    key = mode.value.upper()
    username = os.getenv(f"DATACITE_{key}_USERNAME", "").strip()
    password = os.getenv(f"DATACITE_{key}_PASSWORD", "")

    if username and not password and credentials is not None:
        try:
            password = credentials.get_registry_password(username, mode.value)
        except CredentialManagerError as e:
            logger.warning(f"No DataCite password for {username} ({mode.value}): {e}")

    endpoint = os.getenv(f"DATACITE_{key}_ENDPOINT", "").strip() or DEFAULT_ENDPOINTS[mode]
    return RegistryEndpoint(
        mode=mode,
        endpoint=endpoint.rstrip("/"),
        username=username,
        password=password,
        prefixes=_parse_prefixes(f"DATACITE_{key}_PREFIXES", DEFAULT_PREFIXES[mode]),
    )


def _database_settings(credentials: Optional[CredentialManager]) -> Optional[DatabaseSettings]:
    host = os.getenv("DB_HOST", "").strip()
    if not host:
        return None

    username = os.getenv("DB_USER", "").strip()
    password = os.getenv("DB_PASSWORD", "")
    if username and not password and credentials is not None:
        try:
            password = credentials.get_db_password(username) or ""
        except CredentialManagerError as e:
            logger.warning(f"No database password for {username}: {e}")

    database = os.getenv("DB_NAME", "").strip()
    if not database:
        raise SettingsError("DB_NAME must be set when DB_HOST is configured")

    return DatabaseSettings(
        host=host,
        database=database,
        username=username,
        password=password,
        port=_parse_number("DB_PORT", 3306, int),
        landing_page_base_url=os.getenv("LANDING_PAGE_BASE_URL", "").strip(),
    )


def load_settings(env_file: Optional[str] = None,
                  credentials: Optional[CredentialManager] = None) -> Settings:
    """
    Load settings from the environment.

    Args:
        env_file: Path of a .env file; the default lookup is used if None
        credentials: Credential store consulted for passwords missing from
            the environment

    Returns:
        Settings

    Raises:
        SettingsError: If a value is invalid
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    settings = Settings(
        test_mode=_parse_bool("DATACITE_TEST_MODE", True),
        endpoints={mode: _registry_endpoint(mode, credentials) for mode in RegistryMode},
        timeout=_parse_number("DATACITE_TIMEOUT", DataCiteClient.TIMEOUT, int),
        retry_backoff=_parse_number("DATACITE_RETRY_BACKOFF", DataCiteClient.BACKOFF_BASE, float),
        database=_database_settings(credentials),
    )

    logger.info(
        f"Settings loaded (default mode: {settings.default_mode.value.upper()}, "
        f"database: {'configured' if settings.database else 'not configured'})"
    )
    return settings
