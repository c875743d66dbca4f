"""DataCite format projectors."""

from datacite_export.export.helpers import partition_agents
from datacite_export.export.json_exporter import DataCiteJsonExporter
from datacite_export.export.xml_exporter import DataCiteXmlExporter

__all__ = ['DataCiteJsonExporter', 'DataCiteXmlExporter', 'partition_agents']
