"""
Tests for logging configuration.
"""

import json
import logging
import os
import sys
from unittest.mock import MagicMock, patch

import pytest

from oauth_signin.logging_config import JsonFormatter, setup_global_logging


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_formats_record_with_extra_fields(self):
        """Test extra= fields appear next to the standard fields."""
        logger = logging.getLogger("tests.json")
        record = logger.makeRecord(
            "tests.json",
            logging.WARNING,
            __file__,
            1,
            "Correlation failed",
            (),
            None,
            extra={"provider": "strava"},
        )

        data = json.loads(JsonFormatter().format(record))

        assert data["severity"] == "WARNING"
        assert data["name"] == "tests.json"
        assert data["message"] == "Correlation failed"
        assert data["provider"] == "strava"
        assert "timestamp" in data
        assert "exception" not in data
        assert "lineno" not in data

    def test_includes_exception(self):
        """Test exc_info is rendered as a traceback string."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "tests.json", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestSetupGlobalLogging:
    """Tests for setup_global_logging()."""

    def test_local_uses_json_handler(self, restore_root_logger):
        """Test local runs log JSON at LOG_LEVEL."""
        with patch.dict(os.environ, {"LOG_LEVEL": "debug"}, clear=True):
            setup_global_logging()

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_cloud_run_uses_cloud_logging(self, restore_root_logger):
        """Test Cloud Run hands logging to google-cloud-logging."""
        google = MagicMock()
        cloud_logging = google.cloud.logging

        with (
            patch.dict(os.environ, {"K_SERVICE": "oauth-signin"}, clear=True),
            patch.dict(
                sys.modules,
                {
                    "google": google,
                    "google.cloud": google.cloud,
                    "google.cloud.logging": cloud_logging,
                },
            ),
        ):
            setup_global_logging()

        cloud_logging.Client.return_value.setup_logging.assert_called_once_with(
            log_level=logging.INFO
        )
