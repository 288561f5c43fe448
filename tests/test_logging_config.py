import json
import logging
from types import SimpleNamespace

import pytest
import structlog
from pydantic import ValidationError

from ntpcheck.config.settings import Settings
from ntpcheck.config.targets import Target
from ntpcheck.fanout import query_many
from ntpcheck.utils.logging_config import setup_logging


def test_json_lines_written_to_file(tmp_path):
    log_path = tmp_path / "nested" / "ntpcheck.log"
    logger = setup_logging(level="DEBUG", component="test", log_path=log_path)

    logger.info("query done", server="127.0.0.1", offset_ms=1.5)
    logging.shutdown()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    record = json.loads(lines[-1])
    assert record["event"] == "query done"
    assert record["component"] == "test"
    assert record["offset_ms"] == 1.5
    assert record["level"] == "info"
    assert "timestamp" in record


def test_level_filtering(tmp_path):
    log_path = tmp_path / "ntpcheck.log"
    logger = setup_logging(level="WARNING", log_path=log_path)

    logger.info("hidden")
    logger.warning("shown")
    logging.shutdown()

    events = [json.loads(line)["event"] for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert events == ["shown"]


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("NTP_SERVER", "time.example.org")
    monkeypatch.setenv("NTP_TIMEOUT", "1.5")
    monkeypatch.setenv("NTP_NO_DNS", "true")
    monkeypatch.setenv("NTP_MAX_OFFSET_MS", "250")

    config = Settings()

    assert config.NTP_SERVER == "time.example.org"
    assert config.NTP_TIMEOUT == 1.5
    assert config.NTP_NO_DNS is True
    assert config.NTP_MAX_OFFSET_MS == 250
    assert config.NTP_OFFSET_ACTION == "report"


def test_offset_action_validated(monkeypatch):
    monkeypatch.setenv("NTP_OFFSET_ACTION", "bogus")
    with pytest.raises(ValidationError):
        Settings()


def test_offset_action_accepted(monkeypatch):
    monkeypatch.setenv("NTP_OFFSET_ACTION", "fail")
    assert Settings().NTP_OFFSET_ACTION == "fail"


def test_unknown_level_rejected():
    with pytest.raises(ValueError, match="Unknown log level"):
        setup_logging(level="bogus")


def test_worker_lines_carry_target(tmp_path):
    log_path = tmp_path / "ntpcheck.log"
    setup_logging(level="INFO", log_path=log_path)
    worker_logger = structlog.get_logger("worker")

    def query(server, fallback, **kwargs):
        worker_logger.info("querying")
        return SimpleNamespace(failed=False)

    query_many([Target("a.example.org", port=1123), Target("b.example.org", port=2123)], query=query)
    logging.shutdown()

    records = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    querying = sorted((r["target"], r["target_port"]) for r in records if r["event"] == "querying")
    assert querying == [("a.example.org", 1123), ("b.example.org", 2123)]
