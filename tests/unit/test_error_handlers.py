"""
Unit tests for error_handlers module.
"""

import logging
from datetime import datetime

import pytest

from hrmd_router.utils.error_handlers import (
    ConfigurationError,
    DirectoryLookupError,
    DocumentParseError,
    RoutingError,
    create_error_report,
    log_error_with_context,
)


@pytest.mark.unit
class TestRoutingErrors:
    """Test the exception hierarchy."""

    def test_to_dict_includes_original_error(self):
        original = ValueError("bad byte")
        error = DocumentParseError(
            "not well-formed", document_id="0000000000012345", original_error=original
        )

        result = error.to_dict()

        assert result["error_type"] == "DocumentParseError"
        assert result["document_id"] == "0000000000012345"
        assert result["stage"] == "parsed"
        assert result["recoverable"] is False
        assert result["original_error_type"] == "ValueError"

    def test_subclass_fields(self):
        assert ConfigurationError("x", config_key="lookup.channel_name").to_dict()[
            "config_key"
        ] == "lookup.channel_name"
        assert DirectoryLookupError("x", status_code=503).to_dict()["status_code"] == 503

    def test_all_errors_share_base(self):
        assert issubclass(ConfigurationError, RoutingError)
        assert issubclass(DirectoryLookupError, RoutingError)


@pytest.mark.unit
def test_create_error_report():
    timestamp = datetime(2024, 1, 31, 12, 0, 0)

    report = create_error_report(
        ConfigurationError("missing", config_key="management_infotypes"), timestamp
    )

    assert report["timestamp"] == "2024-01-31T12:00:00"
    assert report["error_type"] == "ConfigurationError"
    assert report["config_key"] == "management_infotypes"


@pytest.mark.unit
def test_log_error_with_context(caplog):
    logger = logging.getLogger("tests.error_handlers")

    with caplog.at_level(logging.ERROR, logger="tests.error_handlers"):
        log_error_with_context(
            DocumentParseError("empty", original_error=OSError("eof")),
            logger,
            {"document_id": "42", "stage": "parsed", "source": "queue"},
        )

    assert "Error in parsed for document 42" in caplog.text
    assert "Original error: [OSError] eof" in caplog.text
    assert "source: queue" in caplog.text
