"""Unit tests for DataCite API Client."""

import base64
import json
from unittest.mock import Mock, patch

import pytest
import requests
import responses

from datacite_export.api.datacite_client import (
    AuthenticationError,
    DataCiteClient,
    InvalidPrefixError,
    RegistryEndpoint,
    RegistryMode,
    RegistryRejected,
    RegistryUnreachable,
)
from datacite_export.validation.report import SchemaValidationError


TEST_URL = "https://api.test.datacite.org/dois"
PRODUCTION_URL = "https://api.datacite.org/dois"


def minted_response(doi="10.83279/abc-123"):
    return {"data": {"id": doi, "type": "dois", "attributes": {"doi": doi, "state": "findable"}}}


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def client(sleep):
    """Client with test and production settings and no real waiting."""
    return DataCiteClient(
        [
            RegistryEndpoint(
                mode=RegistryMode.TEST,
                endpoint="https://api.test.datacite.org",
                username="XUVM.KDVJHQ",
                password="test_password",
                prefixes=("10.83279", "10.83186"),
            ),
            RegistryEndpoint(
                mode=RegistryMode.PRODUCTION,
                endpoint="https://api.datacite.org",
                username="TIB.GFZ",
                password="production_password",
                prefixes=("10.5880",),
            ),
        ],
        sleep=sleep,
    )


def sent_json(call_index=0):
    return json.loads(responses.calls[call_index].request.body)


class TestRegister:
    """Test registering new DOIs."""

    @responses.activate
    def test_successful_registration(self, client, registrable_resource):
        responses.add(responses.POST, TEST_URL, json=minted_response(), status=201)

        result = client.register(registrable_resource, RegistryMode.TEST)

        assert result.doi == "10.83279/abc-123"
        assert result.mode is RegistryMode.TEST
        assert result.updated is False
        assert len(responses.calls) == 1

    @responses.activate
    def test_payload(self, client, registrable_resource):
        responses.add(responses.POST, TEST_URL, json=minted_response(), status=201)

        client.register(registrable_resource, RegistryMode.TEST)

        payload = sent_json()
        attributes = payload["data"]["attributes"]
        assert payload["data"]["type"] == "dois"
        assert attributes["prefix"] == "10.83279"
        assert attributes["event"] == "publish"
        assert attributes["url"] == registrable_resource.landing_page.url
        assert "doi" not in attributes
        assert attributes["creators"][0]["name"] == "Doe, John"

    @responses.activate
    def test_headers(self, client, registrable_resource):
        responses.add(responses.POST, TEST_URL, json=minted_response(), status=201)

        client.register(registrable_resource, RegistryMode.TEST)

        headers = responses.calls[0].request.headers
        assert headers["Content-Type"] == "application/vnd.api+json"
        expected = base64.b64encode(b"XUVM.KDVJHQ:test_password").decode("ascii")
        assert headers["Authorization"] == f"Basic {expected}"

    @responses.activate
    def test_production_mode_uses_production_settings(self, client, registrable_resource):
        responses.add(responses.POST, PRODUCTION_URL, json=minted_response("10.5880/xyz"), status=201)

        result = client.register(registrable_resource, RegistryMode.PRODUCTION)

        assert result.doi == "10.5880/xyz"
        expected = base64.b64encode(b"TIB.GFZ:production_password").decode("ascii")
        assert responses.calls[0].request.headers["Authorization"] == f"Basic {expected}"
        assert sent_json()["data"]["attributes"]["prefix"] == "10.5880"

    @responses.activate
    def test_explicit_prefix(self, client, registrable_resource):
        responses.add(responses.POST, TEST_URL, json=minted_response("10.83186/q"), status=201)

        client.register(registrable_resource, RegistryMode.TEST, prefix="10.83186")

        assert sent_json()["data"]["attributes"]["prefix"] == "10.83186"

    @responses.activate
    def test_invalid_prefix(self, client, registrable_resource):
        with pytest.raises(InvalidPrefixError):
            client.register(registrable_resource, RegistryMode.TEST, prefix="10.5880")

        assert len(responses.calls) == 0

    @responses.activate
    def test_invalid_resource_is_not_sent(self, client, registrable_resource):
        registrable_resource.agents = []

        with pytest.raises(SchemaValidationError) as exc_info:
            client.register(registrable_resource, RegistryMode.TEST)

        assert exc_info.value.errors[0].path == "/data/attributes/creators"
        assert len(responses.calls) == 0

    def test_missing_credentials(self, registrable_resource):
        client = DataCiteClient([
            RegistryEndpoint(RegistryMode.TEST, "https://api.test.datacite.org", "", "")
        ])

        with pytest.raises(AuthenticationError):
            client.register(registrable_resource, RegistryMode.PRODUCTION)


class TestRetries:
    """Test retry and backoff behavior."""

    @responses.activate
    def test_server_error_retried_three_times(self, client, sleep, registrable_resource):
        responses.add(responses.POST, TEST_URL, json={"errors": []}, status=503)

        with pytest.raises(RegistryUnreachable) as exc_info:
            client.register(registrable_resource, RegistryMode.TEST)

        assert len(responses.calls) == 3
        assert exc_info.value.attempts == 3
        assert [call.args[0] for call in sleep.call_args_list] == [1.0, 2.0]

    @responses.activate
    def test_rate_limit_then_success(self, client, sleep, registrable_resource):
        responses.add(responses.POST, TEST_URL, status=429)
        responses.add(responses.POST, TEST_URL, json=minted_response(), status=201)

        result = client.register(registrable_resource, RegistryMode.TEST)

        assert result.doi == "10.83279/abc-123"
        assert len(responses.calls) == 2
        sleep.assert_called_once_with(1.0)

    def test_connection_error_retried(self, client, sleep, registrable_resource):
        with patch('requests.post', side_effect=requests.exceptions.ConnectionError("refused")) as mock_post:
            with pytest.raises(RegistryUnreachable):
                client.register(registrable_resource, RegistryMode.TEST)

        assert mock_post.call_count == 3
        assert sleep.call_count == 2

    def test_timeout_retried(self, client, registrable_resource):
        with patch('requests.post', side_effect=requests.exceptions.Timeout()) as mock_post:
            with pytest.raises(RegistryUnreachable) as exc_info:
                client.register(registrable_resource, RegistryMode.TEST)

        assert mock_post.call_count == 3
        assert "zu lange" in exc_info.value.last_error

    def test_timeout_passed_per_attempt(self, client, registrable_resource):
        response = Mock(status_code=201)
        response.json.return_value = minted_response()
        with patch('requests.post', return_value=response) as mock_post:
            client.register(registrable_resource, RegistryMode.TEST)

        assert mock_post.call_args.kwargs["timeout"] == DataCiteClient.TIMEOUT

    @responses.activate
    def test_client_error_not_retried(self, client, sleep, registrable_resource):
        responses.add(
            responses.POST, TEST_URL, status=422,
            json={"errors": [{"status": "422", "source": "url", "title": "Can't be blank"}]},
        )

        with pytest.raises(RegistryRejected) as exc_info:
            client.register(registrable_resource, RegistryMode.TEST)

        assert len(responses.calls) == 1
        assert exc_info.value.status_code == 422
        assert exc_info.value.errors == [{"status": "422", "source": "url", "title": "Can't be blank"}]
        sleep.assert_not_called()

    @responses.activate
    def test_unauthorized_not_retried(self, client, registrable_resource):
        responses.add(responses.POST, TEST_URL, status=401)

        with pytest.raises(AuthenticationError):
            client.register(registrable_resource, RegistryMode.TEST)

        assert len(responses.calls) == 1

    @responses.activate
    def test_forbidden_not_retried(self, client, registrable_resource):
        responses.add(responses.POST, TEST_URL, status=403)

        with pytest.raises(AuthenticationError):
            client.register(registrable_resource, RegistryMode.TEST)

        assert len(responses.calls) == 1


class TestUpdateMetadata:
    """Test updating metadata of registered DOIs."""

    @responses.activate
    def test_update(self, client, full_resource):
        doi = full_resource.doi
        responses.add(responses.PUT, f"{PRODUCTION_URL}/{doi}", json=minted_response(doi), status=200)

        result = client.update_metadata(doi, full_resource, RegistryMode.PRODUCTION)

        assert result.updated is True
        assert result.doi == doi
        payload = sent_json()
        assert payload["data"]["id"] == doi
        assert payload["data"]["attributes"]["doi"] == doi
        assert payload["data"]["attributes"]["url"] == "https://dataservices.gfz.de/resource/42"
        assert "prefix" not in payload["data"]["attributes"]

    @pytest.mark.parametrize("status", [202, 204])
    @responses.activate
    def test_other_success_statuses(self, client, sleep, full_resource, status):
        doi = full_resource.doi
        responses.add(responses.PUT, f"{PRODUCTION_URL}/{doi}", status=status)

        result = client.update_metadata(doi, full_resource, RegistryMode.PRODUCTION)

        assert result.updated is True
        assert result.raw_response == {}
        assert len(responses.calls) == 1
        sleep.assert_not_called()

    @responses.activate
    def test_unknown_doi(self, client, full_resource):
        doi = full_resource.doi
        responses.add(responses.PUT, f"{PRODUCTION_URL}/{doi}", status=404, body="Not found")

        with pytest.raises(RegistryRejected) as exc_info:
            client.update_metadata(doi, full_resource, RegistryMode.PRODUCTION)

        assert exc_info.value.status_code == 404
        assert exc_info.value.errors[0]["title"] == "Not found"
