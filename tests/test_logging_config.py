"""Tests for structlog configuration."""

import json
import logging

import pytest
import structlog

from pricewatch.core.logging_config import configure_logging, parse_level


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestParseLevel:
    """Tests for parse_level."""

    @pytest.mark.parametrize(
        "name, level",
        [("debug", logging.DEBUG), ("INFO", logging.INFO), (" Warning ", logging.WARNING)],
    )
    def test_known_levels(self, name, level):
        assert parse_level(name) == level

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            parse_level("verbose")


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output_with_level_filter(self, capsys):
        configure_logging("WARNING", json_output=True)
        log = structlog.get_logger("pricewatch.test")

        log.info("hidden_event")
        log.warning("price_changed", product_id="p1", new_price="9.99")

        lines = [line for line in capsys.readouterr().err.splitlines() if line.strip()]
        assert len(lines) == 1
        event = json.loads(lines[0])
        assert event["event"] == "price_changed"
        assert event["level"] == "warning"
        assert event["product_id"] == "p1"
        assert "timestamp" in event

    def test_caller_information(self, capsys):
        configure_logging("DEBUG", json_output=True, caller=True)

        structlog.get_logger().debug("with_caller")

        event = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert event["func_name"] == "test_caller_information"
        assert "lineno" in event
