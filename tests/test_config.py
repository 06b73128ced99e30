"""Tests for settings, identity headers and log formatting."""

import json
import logging
import os
from unittest.mock import patch

import pytest

from cardstack.core.config import DEFAULT_CORS_ORIGINS, clear_settings_cache, get_settings
from cardstack.core.logging_config import JSONFormatter, get_logger
from cardstack.services.auth import identity_from_headers


class TestSettings:
    """Tests for get_settings."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            clear_settings_cache()
            settings = get_settings()

        assert settings.database_url == "sqlite:///./cardstack.db"
        assert settings.auth_user_header == "X-Auth-User-Id"
        assert settings.cors_origins == DEFAULT_CORS_ORIGINS
        assert settings.log_to_file is True

    def test_environment_overrides(self):
        env = {
            "DATABASE_URL": "sqlite:///tmp/test.db",
            "CORS_ORIGINS": "https://app.example.com, https://admin.example.com,",
            "LOG_TO_FILE": "no",
            "LOG_LEVEL": "DEBUG",
        }
        with patch.dict(os.environ, env, clear=True):
            clear_settings_cache()
            settings = get_settings()

        assert settings.database_url == "sqlite:///tmp/test.db"
        assert settings.cors_origins == ("https://app.example.com", "https://admin.example.com")
        assert settings.log_to_file is False
        assert settings.log_level == "DEBUG"

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()


class TestIdentity:
    """Tests for identity_from_headers."""

    def test_subject_and_email(self):
        identity = identity_from_headers(
            {"X-Auth-User-Id": "user_1", "X-Auth-User-Email": "a@example.com"}
        )

        assert identity.external_id == "user_1"
        assert identity.email == "a@example.com"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_subject(self, value):
        headers = {} if value is None else {"X-Auth-User-Id": value}

        assert identity_from_headers(headers) is None

    def test_custom_header_name(self, monkeypatch):
        monkeypatch.setenv("AUTH_USER_HEADER", "X-Forwarded-User")
        clear_settings_cache()

        assert identity_from_headers({"X-Forwarded-User": "sso|42"}).external_id == "sso|42"
        assert identity_from_headers({"X-Auth-User-Id": "user_1"}) is None


class TestLogging:
    """Tests for structured log output."""

    def test_json_formatter_includes_extra_data(self):
        record = logging.LogRecord(
            "cardstack.test", logging.WARNING, __file__, 10, "Deck failed", None, None
        )
        record.extra_data = {"deck_id": "d1"}

        payload = json.loads(JSONFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["message"] == "Deck failed"
        assert payload["extra"] == {"deck_id": "d1"}

    def test_bound_context_is_merged(self, caplog):
        logger = get_logger("cardstack.test", user_id="u1")

        with caplog.at_level(logging.INFO, logger="cardstack.test"):
            logger.info("hello", extra={"extra_data": {"chat_id": "c1"}})

        assert caplog.records[0].extra_data == {"user_id": "u1", "chat_id": "c1"}
