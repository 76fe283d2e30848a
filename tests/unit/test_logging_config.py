"""Unit tests for structlog configuration."""

from __future__ import annotations

import json

import pytest
import structlog

from rollup_deployer.logging_config import configure_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


def test_json_lines_on_stderr(capsys):
    configure_logging(json_logs=True)
    structlog.get_logger().info("resource.deployed", resource="ethBridge")

    line = capsys.readouterr().err.strip()
    event = json.loads(line)
    assert event["event"] == "resource.deployed"
    assert event["resource"] == "ethBridge"
    assert event["level"] == "info"
    assert "timestamp" in event


def test_level_filters_lower_events(capsys):
    configure_logging(json_logs=True, level="warning")
    log = structlog.get_logger()
    log.info("transaction.confirmed")
    log.warning("transaction.timed_out")

    lines = capsys.readouterr().err.strip().splitlines()
    assert [json.loads(line)["event"] for line in lines] == ["transaction.timed_out"]
