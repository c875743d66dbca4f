"""Resource repositories for the curation database."""

from datacite_export.db.resource_repository import (
    DatabaseError,
    DoiAlreadyAssignedError,
    InMemoryResourceRepository,
    MySQLResourceRepository,
    ResourceRepository,
)

__all__ = [
    'DatabaseError',
    'DoiAlreadyAssignedError',
    'InMemoryResourceRepository',
    'MySQLResourceRepository',
    'ResourceRepository',
]
