"""
Unit tests for the base_gateway module.

Tests for API key validation, retry with backoff and error message extraction.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from squashstats.enrichment.gateways.base_gateway import (
    BaseGateway,
    GatewayConfig,
    GatewayError,
)

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def gateway():
    gw = BaseGateway(GatewayConfig(name="test", api_key="key", max_retries=2, backoff_base=0.5))
    gw._session = MagicMock()
    return gw


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestGatewayConfig:
    """Tests for configuration validation."""

    def test_missing_api_key_raises(self):
        """Should refuse to build a keyed gateway without a key."""
        with pytest.raises(GatewayError, match="API key is not configured"):
            BaseGateway(GatewayConfig(name="test"))

    def test_keyless_gateway(self):
        """Should allow gateways that do not require a key."""

        class Keyless(BaseGateway):
            requires_api_key = False

        assert Keyless(GatewayConfig(name="open")).api_key is None


class TestSend:
    """Tests for _send retry behaviour."""

    def test_success_passes_timeout(self, gateway, make_response):
        """Should return the response and apply the configured timeout."""
        gateway._session.request.return_value = make_response(200, {})
        response = gateway._send("GET", "https://example.com")

        assert response.status_code == 200
        assert gateway._session.request.call_args.kwargs["timeout"] == 30

    def test_client_error_not_retried(self, gateway, make_response):
        """Should hand 4xx responses straight back."""
        gateway._session.request.return_value = make_response(404, {})
        with patch("squashstats.enrichment.gateways.base_gateway.time.sleep") as sleep:
            response = gateway._send("GET", "https://example.com")

        assert response.status_code == 404
        assert gateway._session.request.call_count == 1
        sleep.assert_not_called()

    def test_server_error_retried_with_backoff(self, gateway, make_response):
        """Should retry 5xx with exponential backoff."""
        gateway._session.request.side_effect = [
            make_response(503, {}),
            make_response(502, {}),
            make_response(200, {"ok": True}),
        ]
        with patch("squashstats.enrichment.gateways.base_gateway.time.sleep") as sleep:
            response = gateway._send("GET", "https://example.com")

        assert response.ok
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_retries_exhausted_raises(self, gateway):
        """Should re-raise after the last retry."""
        gateway._session.request.side_effect = requests.ConnectionError("refused")
        with patch("squashstats.enrichment.gateways.base_gateway.time.sleep"):
            with pytest.raises(requests.ConnectionError):
                gateway._send("GET", "https://example.com")

        assert gateway._session.request.call_count == 3


class TestErrorMessage:
    """Tests for _error_message."""

    def test_google_style_error(self, make_response):
        """Should read error.message."""
        response = make_response(403, {"error": {"message": "API key not valid"}})
        assert BaseGateway._error_message(response) == "API key not valid"

    def test_string_error(self, make_response):
        assert BaseGateway._error_message(make_response(400, {"error": "bad"})) == "bad"

    def test_non_json_body(self, make_response):
        """Should fall back to the response text."""
        response = make_response(500, None, text="<html>Server Error</html>")
        assert BaseGateway._error_message(response) == "<html>Server Error</html>"


class TestClose:
    def test_context_manager_closes_session(self):
        with BaseGateway(GatewayConfig(name="test", api_key="key")) as gw:
            session = gw._get_session()
        assert gw._session is None
        assert session is not None
