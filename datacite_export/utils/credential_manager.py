"""
Credential Manager for DataCite Export.

Stores the DataCite repository passwords (one per registry mode) and the
curation database password in the operating system's credential store via
the keyring library. Usernames and endpoints stay in the environment.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)


class CredentialManagerError(Exception):
    """Base exception for CredentialManager errors."""
    pass


class CredentialNotFoundError(CredentialManagerError):
    """Raised when no password is stored for an account."""
    pass


class CredentialStorageError(CredentialManagerError):
    """Raised when there's a problem storing credentials."""
    pass


@dataclass
class CredentialAccount:
    """Identifies one stored registry password."""

    username: str
    api_type: str  # "test" or "production"

    def __post_init__(self):
        """Validate api_type after initialization."""
        if self.api_type not in ["test", "production"]:
            raise ValueError(f"Invalid api_type: {self.api_type}. Must be 'test' or 'production'.")

    @property
    def key(self) -> str:
        return f"{self.api_type}:{self.username}"


class CredentialManager:
    """Keyring-backed password storage for registry and database accounts."""

    SERVICE_NAME = "DataCiteExport_DataCite"
    DB_SERVICE_NAME = "DataCiteExport_Database"

    def save_registry_password(self, username: str, password: str, api_type: str) -> None:
        """
        Store a DataCite repository password.

        Args:
            username: DataCite repository ID (e.g. "TIB.GFZ")
            password: DataCite password
            api_type: "test" or "production"

        Raises:
            CredentialStorageError: If storage fails
            ValueError: If an argument is empty or api_type is invalid
        """
        if not username or not username.strip():
            raise ValueError("Username cannot be empty")
        if not password:
            raise ValueError("Password cannot be empty")

        account = CredentialAccount(username=username.strip(), api_type=api_type)
        try:
            keyring.set_password(self.SERVICE_NAME, account.key, password)
        except KeyringError as e:
            logger.error(f"Failed to store password in credential store: {e}")
            raise CredentialStorageError(f"Failed to store password: {str(e)}") from e

        logger.info(f"Stored DataCite password for {account.username} ({api_type} API)")

    def get_registry_password(self, username: str, api_type: str) -> str:
        """
        Load a DataCite repository password.

        Raises:
            CredentialNotFoundError: If no password is stored
            CredentialStorageError: If the credential store cannot be read
        """
        account = CredentialAccount(username=username, api_type=api_type)
        password = self._get(self.SERVICE_NAME, account.key)
        if password is None:
            raise CredentialNotFoundError(
                f"No DataCite password stored for {username} ({api_type} API)"
            )
        logger.info(f"Retrieved DataCite password for {username} ({api_type} API)")
        return password

    def delete_registry_password(self, username: str, api_type: str) -> bool:
        """
        Delete a stored DataCite password.

        Returns:
            True if a password was deleted, False if none was stored
        """
        account = CredentialAccount(username=username, api_type=api_type)
        try:
            keyring.delete_password(self.SERVICE_NAME, account.key)
        except PasswordDeleteError:
            logger.warning(f"No stored DataCite password to delete for {username} ({api_type} API)")
            return False
        except KeyringError as e:
            logger.error(f"Failed to delete password: {e}")
            raise CredentialStorageError(f"Failed to delete password: {str(e)}") from e
        logger.info(f"Deleted DataCite password for {username} ({api_type} API)")
        return True

    def save_db_password(self, username: str, password: str) -> None:
        """Store the curation database password."""
        if not username or not password:
            raise ValueError("Database username and password cannot be empty")
        try:
            keyring.set_password(self.DB_SERVICE_NAME, username, password)
        except KeyringError as e:
            logger.error(f"Failed to store database password: {e}")
            raise CredentialStorageError(f"Failed to store database password: {str(e)}") from e
        logger.info(f"Stored database password for {username}")

    def get_db_password(self, username: str) -> Optional[str]:
        """Load the curation database password, or None if none is stored."""
        return self._get(self.DB_SERVICE_NAME, username)

    @staticmethod
    def _get(service: str, key: str) -> Optional[str]:
        try:
            return keyring.get_password(service, key)
        except KeyringError as e:
            logger.error(f"Failed to retrieve password: {e}")
            raise CredentialStorageError(f"Failed to retrieve password: {str(e)}") from e
