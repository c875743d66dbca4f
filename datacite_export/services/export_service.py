"""
Export service.

Loads a resource, projects it to DataCite JSON or XML, validates the
projection and returns either the file to download or the ordered list
of schema errors. Exports never mint DOIs or change the resource.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

from datacite_export.db.resource_repository import ResourceRepository
from datacite_export.export.json_exporter import DataCiteJsonExporter
from datacite_export.export.xml_exporter import DataCiteXmlExporter
from datacite_export.models.resource import Actor
from datacite_export.services.results import ExportResult, FailureKind, ServiceFailure
from datacite_export.validation.json_schema_validator import JsonSchemaValidator
from datacite_export.validation.xml_schema_validator import XmlSchemaValidator

logger = logging.getLogger(__name__)


class ExportFormat(Enum):
    JSON = "json"
    XML = "xml"


CONTENT_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.XML: "application/xml",
}


class ExportService:
    """Produces validated DataCite export files."""

    def __init__(
        self,
        repository: ResourceRepository,
        json_exporter: Optional[DataCiteJsonExporter] = None,
        xml_exporter: Optional[DataCiteXmlExporter] = None,
        json_validator: Optional[JsonSchemaValidator] = None,
        xml_validator: Optional[XmlSchemaValidator] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.json_exporter = json_exporter or DataCiteJsonExporter()
        self.xml_exporter = xml_exporter or DataCiteXmlExporter()
        self.json_validator = json_validator or JsonSchemaValidator()
        self.xml_validator = xml_validator or XmlSchemaValidator()
        self._clock = clock

    def export(
        self,
        resource_id: int,
        export_format: Union[ExportFormat, str],
        actor: Actor,
    ) -> Union[ExportResult, ServiceFailure]:
        """
        Export a resource as a DataCite document.

        Args:
            resource_id: ID of the resource to export
            export_format: ExportFormat.JSON or ExportFormat.XML (or "json"/"xml")
            actor: User requesting the export

        Returns:
            ExportResult with payload, filename and content type, or a
            ServiceFailure (NOT_FOUND, UNAUTHORIZED or SCHEMA_VALIDATION_FAILED)
        """
        export_format = ExportFormat(export_format)

        if not actor.is_active:
            logger.warning(f"Inactive user {actor.user_id} requested export of resource {resource_id}")
            return ServiceFailure(FailureKind.UNAUTHORIZED, "User is not allowed to export resources.")

        resource = self.repository.load(resource_id)
        if resource is None:
            logger.warning(f"Export requested for unknown resource {resource_id}")
            return ServiceFailure(FailureKind.NOT_FOUND, f"Resource {resource_id} not found.")

        if export_format is ExportFormat.JSON:
            document = self.json_exporter.export(resource)
            report = self.json_validator.validate(document)
            failure_message = self.json_validator.FAILURE_MESSAGE
            payload = self.json_exporter.serialize(document)
        else:
            payload = self.xml_exporter.export_bytes(resource)
            report = self.xml_validator.validate(payload)
            failure_message = self.xml_validator.FAILURE_MESSAGE

        if not report.valid:
            logger.error(
                f"{export_format.value.upper()} export of resource {resource_id} failed validation "
                f"with {len(report.errors)} error(s)"
            )
            return ServiceFailure(
                FailureKind.SCHEMA_VALIDATION_FAILED,
                failure_message,
                errors=report.errors,
                schema_version=report.schema_version,
            )

        filename = self.filename_for(resource_id, export_format)
        logger.info(f"Exported resource {resource_id} as {filename} ({len(payload)} bytes)")
        return ExportResult(
            payload=payload,
            filename=filename,
            content_type=CONTENT_TYPES[export_format],
            warnings=report.warnings,
        )

    def filename_for(self, resource_id: int, export_format: ExportFormat) -> str:
        timestamp = self._clock().strftime("%Y%m%d%H%M%S")
        return f"resource-{resource_id}-{timestamp}-datacite.{export_format.value}"
