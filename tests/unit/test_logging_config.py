"""
Unit Tests - Logging Configuration
==================================
Redaction rules and handler setup.
"""

import logging

import pytest

pytestmark = pytest.mark.unit


class TestSanitizeEvent:

    def test_credentials_redacted(self):
        from logging_config import sanitize_event

        event = sanitize_event(None, "info", {"event": "login", "db_password": "hunter2"})

        assert event["db_password"] == "***REDACTED***"
        assert event["event"] == "login"

    def test_account_numbers_masked(self):
        from logging_config import sanitize_event

        event = sanitize_event(None, "info", {
            "event": "parsed",
            "account_number": "0001-2345-6789",
            "context": {"account": "****1234"},
        })

        assert event["account_number"] == "****6789"
        assert event["context"]["account"] == "****1234"

    def test_url_credentials_removed_from_messages(self):
        from logging_config import sanitize_event

        event = sanitize_event(None, "error", {
            "event": "connect failed: postgresql+asyncpg://ledger:s3cret@db:5432/ledger",
        })

        assert "s3cret" not in event["event"]
        assert "postgresql+asyncpg://***@db:5432/ledger" in event["event"]

    def test_long_values_truncated(self):
        from logging_config import sanitize_event

        event = sanitize_event(None, "debug", {"event": "text", "page_text": "x" * 5000})

        assert event["page_text"].endswith("...[truncated]")
        assert len(event["page_text"]) < 200


class TestConfigureLogging:

    def test_reconfigure_replaces_own_handler(self):
        import logging_config

        root = logging.getLogger()
        before = list(root.handlers)
        previous_level = root.level

        try:
            logging_config.configure_logging(environment="test", level="debug")
            logging_config.configure_logging(environment="production", level="warning")

            added = [h for h in root.handlers if h not in before]
            assert added == [logging_config._handler]
            assert root.level == logging.WARNING
            assert logging.getLogger("pypdf").level == logging.ERROR
        finally:
            root.removeHandler(logging_config._handler)
            logging_config._handler = None
            root.setLevel(previous_level)
