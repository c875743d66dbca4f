"""Unit tests for the export service."""

import json
from datetime import datetime
from unittest.mock import Mock

import pytest

from datacite_export.db.resource_repository import InMemoryResourceRepository
from datacite_export.models.resource import Actor, Resource, UserRole
from datacite_export.services.export_service import ExportFormat, ExportService
from datacite_export.services.results import ExportResult, FailureKind, ServiceFailure


FIXED_TIME = datetime(2026, 1, 2, 3, 4, 5)


@pytest.fixture
def repository(minimal_resource, full_resource):
    return InMemoryResourceRepository([minimal_resource, full_resource, Resource(id=99)])


@pytest.fixture
def service(repository):
    return ExportService(repository, clock=lambda: FIXED_TIME)


class TestJsonExport:
    """Test JSON exports."""

    def test_successful_export(self, service, curator):
        result = service.export(1, ExportFormat.JSON, curator)

        assert isinstance(result, ExportResult)
        assert result.filename == "resource-1-20260102030405-datacite.json"
        assert result.content_type == "application/json"
        attributes = json.loads(result.payload)["data"]["attributes"]
        assert attributes["creators"][0]["name"] == "Doe, John"

    def test_format_as_string(self, service, curator):
        result = service.export(42, "json", curator)

        assert result.filename == "resource-42-20260102030405-datacite.json"

    def test_repeated_exports_have_identical_payload(self, service, curator):
        first = service.export(42, ExportFormat.JSON, curator)
        second = service.export(42, ExportFormat.JSON, curator)

        assert first.payload == second.payload

    def test_validation_failure(self, service, curator):
        result = service.export(99, ExportFormat.JSON, curator)

        assert isinstance(result, ServiceFailure)
        assert result.kind is FailureKind.SCHEMA_VALIDATION_FAILED
        assert result.status_code == 422
        body = result.to_dict()
        assert body["message"] == "JSON export validation failed against DataCite Schema."
        assert body["schema_version"] == "4.6"
        assert body["errors"][0]["path"] == "/data/attributes/creators"


class TestXmlExport:
    """Test XML exports."""

    def test_successful_export(self, service, curator):
        result = service.export(42, ExportFormat.XML, curator)

        assert isinstance(result, ExportResult)
        assert result.filename == "resource-42-20260102030405-datacite.xml"
        assert result.content_type == "application/xml"
        assert result.payload.startswith(b"<?xml")
        assert result.warnings == []

    def test_draft_exports_with_warning(self, service, curator):
        result = service.export(1, ExportFormat.XML, curator)

        assert isinstance(result, ExportResult)
        assert result.warnings
        assert result.warnings[0].path == "/resource/identifier"

    def test_validation_failure(self, service, curator):
        result = service.export(99, ExportFormat.XML, curator)

        assert result.kind is FailureKind.SCHEMA_VALIDATION_FAILED
        assert result.message == "XML export validation failed against DataCite Schema."
        assert result.errors[0].path == "/resource/creators"


class TestExportFailures:
    """Test lookups and access checks."""

    def test_unknown_resource(self, service, curator):
        result = service.export(1234, ExportFormat.JSON, curator)

        assert result.kind is FailureKind.NOT_FOUND
        assert result.status_code == 404
        assert result.to_dict() == {"message": "Resource 1234 not found."}

    def test_inactive_actor(self, service):
        actor = Actor(user_id=3, role=UserRole.ADMIN, is_active=False)

        result = service.export(1, ExportFormat.JSON, actor)

        assert result.kind is FailureKind.UNAUTHORIZED
        assert result.status_code == 403

    def test_inactive_actor_is_rejected_before_lookup(self, service, repository):
        actor = Actor(user_id=3, role=UserRole.ADMIN, is_active=False)
        repository.load = Mock(wraps=repository.load)

        known = service.export(1, ExportFormat.JSON, actor)
        unknown = service.export(404, ExportFormat.JSON, actor)

        assert known.kind is unknown.kind is FailureKind.UNAUTHORIZED
        assert known.message == unknown.message
        repository.load.assert_not_called()

    def test_unknown_format(self, service, curator):
        with pytest.raises(ValueError):
            service.export(1, "csv", curator)

    def test_export_never_assigns_doi(self, service, repository, curator):
        service.export(1, ExportFormat.JSON, curator)
        service.export(1, ExportFormat.XML, curator)

        assert repository.load(1).doi is None
