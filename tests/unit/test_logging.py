"""Unit tests for log formatting and HTTP client construction."""

import json
import logging
import ssl
from unittest.mock import patch

import httpx
import pytest

from polarity_swimlane.config import Settings
from polarity_swimlane.logging import (
    JSONFormatter,
    TextFormatter,
    get_context_logger,
    setup_logging,
)
from polarity_swimlane.transport import build_http_client, build_ssl_context


class TestJSONFormatter:

    def test_extra_fields_included(self):
        """Test that fields passed via extra appear in the JSON output."""
        record = logging.LogRecord(
            "polarity_swimlane.http", logging.INFO, __file__, 10, "GET /api/app - 200", (), None
        )
        record.status_code = 200
        record.event = "api_request"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "GET /api/app - 200"
        assert data["level"] == "INFO"
        assert data["status_code"] == 200
        assert data["event"] == "api_request"
        assert "args" not in data

    def test_context_logger_merges_extra(self, caplog):
        """Test that adapter context is attached to every record."""
        logger = get_context_logger("polarity_swimlane.test", instance="https://sl.test")

        with caplog.at_level(logging.INFO, logger="polarity_swimlane.test"):
            logger.info("Caching", extra={"app_count": 2})

        record = caplog.records[-1]
        assert record.instance == "https://sl.test"
        assert record.app_count == 2


class TestSetupLogging:
    """Tests for formatter selection."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    @pytest.mark.parametrize(
        "environment, log_format, expected",
        [
            ("development", None, TextFormatter),
            ("production", None, JSONFormatter),
            ("staging", None, JSONFormatter),
            ("development", "json", JSONFormatter),
            ("production", "text", TextFormatter),
        ],
    )
    def test_format_follows_environment(self, environment, log_format, expected):
        """Test that an unset log format is chosen from the environment."""
        settings = Settings(_env_file=None, environment=environment, log_format=log_format)

        with patch("polarity_swimlane.logging.get_settings", return_value=settings):
            setup_logging()

        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, expected)


class TestTransport:

    def test_reject_unauthorized_disabled(self):
        """Test that certificate checks can be turned off."""
        context = build_ssl_context(Settings(_env_file=None, request_reject_unauthorized=False))
        assert context.verify_mode == ssl.CERT_NONE
        assert context.check_hostname is False

    def test_default_context_verifies(self):
        """Test that certificates are verified by default."""
        context = build_ssl_context(Settings(_env_file=None))
        assert context.verify_mode == ssl.CERT_REQUIRED

    @pytest.mark.asyncio
    async def test_transport_override(self):
        """Test that a transport override is used for requests."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True}))
        settings = Settings(_env_file=None, request_timeout=5.0)

        async with build_http_client(settings, transport=transport) as client:
            response = await client.get("https://sl.test/api/app")

        assert response.json() == {"ok": True}
        assert response.request.headers["Accept"] == "application/json"
