import json

import pytest
import structlog

from purchasing.config import Settings
from purchasing.logging_config import setup_logging


@pytest.fixture
def production_logging():
    setup_logging(Settings(ENVIRONMENT="production", APP_NAME="purchasing-test", LOG_LEVEL="info"))
    yield
    structlog.reset_defaults()


def test_json_events_carry_app_name_and_level(production_logging, capsys):
    structlog.get_logger().info("po_submitted", po_number="PO-26-10-0001")

    event = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert event["event"] == "po_submitted"
    assert event["app"] == "purchasing-test"
    assert event["level"] == "info"
    assert event["po_number"] == "PO-26-10-0001"
    assert "timestamp" in event


def test_events_below_level_are_dropped(production_logging, capsys):
    structlog.get_logger().debug("lock_acquired")
    assert "lock_acquired" not in capsys.readouterr().out
