"""Tests for logging configuration and scoped context."""

import io
import json

import pytest
import structlog

from whspine.core.logging import LogContext, clear_context, configure_logging, get_logger


@pytest.fixture(autouse=True)
def _clean_context():
    clear_context()
    yield
    clear_context()


class TestLogContext:
    def test_binds_and_unbinds(self):
        with LogContext(template="sales", schema="acme"):
            assert structlog.contextvars.get_contextvars() == {"template": "sales", "schema": "acme"}
        assert structlog.contextvars.get_contextvars() == {}

    def test_none_values_are_skipped(self):
        with LogContext(template="sales", tenant=None):
            assert "tenant" not in structlog.contextvars.get_contextvars()

    def test_nested_restores_outer_value(self):
        with LogContext(target_date="2024-01-15", schema="acme"):
            with LogContext(target_date="2024-01-14"):
                assert structlog.contextvars.get_contextvars()["target_date"] == "2024-01-14"
            ctx = structlog.contextvars.get_contextvars()
            assert ctx == {"target_date": "2024-01-15", "schema": "acme"}


class TestConfigureLogging:
    def test_json_events_carry_context(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=stream)
        logger = get_logger("whspine.test")
        with LogContext(template="sales"):
            logger.info("partition_created", object_name="sales_2024_01_15")

        event = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert event["event"] == "partition_created"
        assert event["template"] == "sales"
        assert event["log.level"] == "info"
        assert event["service.name"] == "warehouse-spine"
        assert "@timestamp" in event

    def test_level_filters(self):
        stream = io.StringIO()
        configure_logging(level="ERROR", json_format=True, stream=stream)
        get_logger("whspine.test").info("ignored")
        assert stream.getvalue() == ""
