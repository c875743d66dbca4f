"""Version information for DataCite Export."""

__version__ = "0.1.0"
__version_info__ = (0, 1, 0)

# Release information
__author__ = "GFZ Data Services"
__organization__ = "GFZ Data Services, GFZ Helmholtz Centre for Geosciences"
__license__ = "MIT"
__description__ = "DataCite Metadata Schema 4.6 export and DOI registration"

# DataCite Metadata Schema version the exporters and validators target
SCHEMA_VERSION = "4.6"
