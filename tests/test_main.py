"""Tests for the command line entry point."""

import json
from unittest.mock import Mock, patch

import pytest

from datacite_export.api.datacite_client import RegistryMode
from datacite_export.db.resource_repository import InMemoryResourceRepository
from datacite_export.main import build_parser, main
from datacite_export.services.results import RegistrationOutcome
from datacite_export.utils.settings import DatabaseSettings, Settings, SettingsError


@pytest.fixture(autouse=True)
def mock_logging():
    """Keep tests from writing datacite_export.log."""
    with patch('datacite_export.main.setup_logging') as mock:
        yield mock


@pytest.fixture
def settings():
    return Settings(
        test_mode=True,
        endpoints={},
        database=DatabaseSettings("localhost", "curation", "curator", "pw"),
    )


@pytest.fixture
def mock_settings(settings):
    with patch('datacite_export.main.load_settings', return_value=settings) as mock:
        yield mock


@pytest.fixture
def mock_repository(minimal_resource):
    repository = InMemoryResourceRepository([minimal_resource])
    with patch('datacite_export.main.MySQLResourceRepository', return_value=repository) as mock:
        yield mock


class TestParser:
    """Test command line parsing."""

    def test_export_defaults(self):
        args = build_parser().parse_args(["export", "5"])

        assert args.command == "export"
        assert args.resource_id == 5
        assert args.format == "json"

    def test_register_options(self):
        args = build_parser().parse_args(
            ["register", "5", "--mode", "production", "--prefix", "10.5880", "--role", "beginner"]
        )

        assert args.mode == "production"
        assert args.prefix == "10.5880"
        assert args.role == "beginner"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestExportCommand:
    """Test the export subcommand."""

    def test_writes_file(self, tmp_path, mock_settings, mock_repository, capsys):
        exit_code = main(["export", "1", "--output-dir", str(tmp_path)])

        assert exit_code == 0
        files = list(tmp_path.glob("resource-1-*-datacite.json"))
        assert len(files) == 1
        document = json.loads(files[0].read_bytes())
        assert document["data"]["attributes"]["titles"] == [{"title": "Test Dataset"}]
        mock_repository.assert_called_once_with(
            "localhost", "curation", "curator", "pw", port=3306, landing_page_base_url=""
        )

    def test_xml_warnings_printed(self, tmp_path, mock_settings, mock_repository, capsys):
        exit_code = main(["export", "1", "--format", "xml", "--output-dir", str(tmp_path)])

        assert exit_code == 0
        assert "Warning:" in capsys.readouterr().err

    def test_unknown_resource(self, tmp_path, mock_settings, mock_repository, capsys):
        exit_code = main(["export", "404", "--output-dir", str(tmp_path)])

        assert exit_code == 1
        assert '"message": "Resource 404 not found."' in capsys.readouterr().err

    def test_missing_database(self, mock_settings, capsys):
        mock_settings.return_value = Settings(test_mode=True, endpoints={})

        exit_code = main(["export", "1"])

        assert exit_code == 2
        assert "No database configured" in capsys.readouterr().err

    def test_settings_error(self, mock_settings, capsys):
        mock_settings.side_effect = SettingsError("DATACITE_TEST_MODE must be a boolean")

        assert main(["export", "1"]) == 2


class TestRegisterCommand:
    """Test the register subcommand."""

    def test_register(self, mock_settings, mock_repository, capsys):
        outcome = RegistrationOutcome(doi="10.83279/x", mode="test", updated=False)
        with patch('datacite_export.main.RegistrationService') as mock_service:
            mock_service.return_value.register.return_value = outcome

            exit_code = main(["register", "1", "--mode", "test", "--role", "curator"])

        assert exit_code == 0
        assert "Registered DOI 10.83279/x (test)" in capsys.readouterr().out
        call = mock_service.return_value.register.call_args
        assert call.kwargs["requested_mode"] is RegistryMode.TEST

    def test_policy_denied(self, mock_settings, mock_repository, capsys):
        exit_code = main(["register", "1"])

        assert exit_code == 1
        assert '"message": "landing page required"' in capsys.readouterr().err


class TestStorePasswordCommand:
    """Test the store-password subcommand."""

    def test_store_password(self):
        with patch('datacite_export.main.getpass.getpass', return_value="secret"), \
                patch('datacite_export.main.CredentialManager') as mock_manager:
            exit_code = main(["store-password", "TIB.GFZ", "--mode", "production"])

        assert exit_code == 0
        mock_manager.return_value.save_registry_password.assert_called_once_with(
            "TIB.GFZ", "secret", "production"
        )

    def test_empty_password(self):
        manager = Mock()
        manager.save_registry_password.side_effect = ValueError("Password cannot be empty")
        with patch('datacite_export.main.getpass.getpass', return_value=""), \
                patch('datacite_export.main.CredentialManager', return_value=manager):
            assert main(["store-password", "TIB.GFZ", "--mode", "test"]) == 2
