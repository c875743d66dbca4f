"""DataCite Export - DataCite Metadata Schema 4.6 export, validation and DOI registration."""

__version__ = "0.1.0"
__author__ = "GFZ Data Services"
__copyright__ = "Copyright (c) 2026 GFZ Helmholtz Centre for Geosciences"
__license__ = "MIT"
__description__ = "Projects curated research resources into DataCite JSON and XML and registers their DOIs"
