"""Tests for logging setup and the structured formatter."""

import json
import logging
import sys

import pytest
from rich.logging import RichHandler

from bankid.log import StructuredFormatter, setup_logging


def make_record(msg="Order started", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="bankid.client",
        level=level,
        pathname="client.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_basic_fields(self):
        """Test timestamp, level, logger and message are present."""
        entry = json.loads(StructuredFormatter().format(make_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "bankid.client"
        assert entry["message"] == "Order started"
        assert entry["timestamp"].endswith("+00:00")

    def test_extra_fields(self):
        """Test record extras are copied to the top level."""
        entry = json.loads(StructuredFormatter().format(make_record(order_ref="abc")))
        assert entry["order_ref"] == "abc"
        assert "lineno" not in entry
        assert "exc_info" not in entry

    def test_exception(self):
        """Test exception info is serialized."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["exception"]["type"] == "RuntimeError"
        assert entry["exception"]["message"] == "boom"
        assert entry["exception"]["traceback"]

    def test_non_serializable_extra(self):
        """Test values JSON cannot encode are stringified."""
        entry = json.loads(StructuredFormatter().format(make_record(obj=object())))
        assert entry["obj"].startswith("<object object")


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_logger(self):
        logger = logging.getLogger("bankid")
        handlers, level = list(logger.handlers), logger.level
        yield
        logger.handlers = handlers
        logger.setLevel(level)

    def test_rich(self):
        """Test the default installs a Rich handler at INFO."""
        handler = setup_logging()
        logger = logging.getLogger("bankid")
        assert isinstance(handler, RichHandler)
        assert logger.handlers == [handler]
        assert logger.level == logging.INFO

    def test_json_verbose(self):
        """Test JSON output at DEBUG."""
        handler = setup_logging(verbose=True, log_format="json")
        assert isinstance(handler.formatter, StructuredFormatter)
        assert logging.getLogger("bankid").level == logging.DEBUG

    def test_replaces_previous_handler(self):
        """Test calling twice leaves one handler."""
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("bankid").handlers) == 1

    def test_unknown_format(self):
        """Test unknown formats are rejected."""
        with pytest.raises(ValueError):
            setup_logging(log_format="xml")
