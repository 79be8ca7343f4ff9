"""Unit tests for logging configuration and per-request context."""

import logging

import pytest
import structlog

from chatledger.config import Settings
from chatledger.shared.logging import new_request_context, resolve_log_level


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, app_env="development", **overrides)


class TestLogLevel:
    def test_info_by_default(self):
        assert resolve_log_level(make_settings()) == logging.INFO

    def test_debug_mode(self):
        assert resolve_log_level(make_settings(app_debug=True)) == logging.DEBUG

    def test_explicit_level_wins_over_debug(self):
        settings = make_settings(app_debug=True, log_level="warning")

        assert settings.log_level == "WARNING"
        assert resolve_log_level(settings) == logging.WARNING

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            make_settings(log_level="chatty")


class TestRequestContext:
    def test_incoming_id_kept(self):
        request_id = new_request_context("req-123")

        assert request_id == "req-123"
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-123"}

    @pytest.mark.parametrize("incoming", [None, "", "has spaces", "x" * 129, "new\nline"])
    def test_missing_or_malformed_id_replaced(self, incoming):
        request_id = new_request_context(incoming)

        assert request_id != incoming
        assert len(request_id) == 32

    def test_previous_request_context_cleared(self):
        structlog.contextvars.bind_contextvars(chat_id="old")

        new_request_context("req-1")

        assert "chat_id" not in structlog.contextvars.get_contextvars()
