"""Tests for configuration and structured logging."""

from __future__ import annotations

import json
import logging

import pytest
from sqlalchemy.pool import StaticPool

from plannerfin.config import DEMO_DATABASE_URL, BaseConfig
from plannerfin.logging_config import JSONFormatter, get_logger, setup_logging


def test_missing_database_url_means_demo_credentials(demo_config):
    assert demo_config.using_demo_credentials


def test_demo_placeholder_url_means_demo_credentials(tmp_path, monkeypatch):
    monkeypatch.setenv("PLANNERFIN_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PLANNERFIN_DATABASE_URL", DEMO_DATABASE_URL)
    assert BaseConfig().using_demo_credentials


def test_configured_url_is_not_demo(config):
    assert not config.using_demo_credentials
    assert config.remote_engine_options()["pool_pre_ping"] is True


def test_session_ttl_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("PLANNERFIN_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PLANNERFIN_SESSION_TTL", "42")
    assert BaseConfig().SESSION_TTL_SECONDS == 42


@pytest.mark.parametrize("value", ["-1", "soon"])
def test_invalid_session_ttl_rejected(tmp_path, monkeypatch, value):
    monkeypatch.setenv("PLANNERFIN_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PLANNERFIN_SESSION_TTL", value)
    with pytest.raises(ValueError):
        BaseConfig()


def test_local_url_defaults_into_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("PLANNERFIN_DATA_DIR", str(tmp_path / "instance"))
    monkeypatch.delenv("PLANNERFIN_LOCAL_DB_URL", raising=False)
    config = BaseConfig()
    assert config.LOCAL_DB_URL.endswith("plannerfin-local.db")
    assert (tmp_path / "instance").is_dir()


def test_in_memory_sqlite_shares_one_connection(tmp_path, monkeypatch):
    monkeypatch.setenv("PLANNERFIN_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PLANNERFIN_LOCAL_DB_URL", "sqlite://")
    options = BaseConfig().local_engine_options()
    assert options["poolclass"] is StaticPool
    assert options["connect_args"] == {"check_same_thread": False}


def test_storage_namespace_lists_application_keys(config):
    assert config.storage_namespace == (
        "plannerfinUserData_",
        "plannerfinSettings",
        "plannerfinBackupMeta",
        "plannerfinUser",
    )


def test_get_logger_nests_under_package():
    assert get_logger("sync").name == "plannerfin.sync"
    assert get_logger("plannerfin.context").name == "plannerfin.context"


def test_json_formatter_includes_extras():
    record = logging.LogRecord(
        name="plannerfin.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=7,
        msg="Budget created",
        args=(),
        exc_info=None,
    )
    record.budget_id = "b-1"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["message"] == "Budget created"
    assert payload["extra"] == {"budget_id": "b-1"}


def test_setup_logging_writes_json_file(config):
    logger = setup_logging(config)
    logger.info("hello", extra={"user_id": "u1"})
    for handler in logger.handlers:
        handler.flush()

    log_file = config.DATA_DIR / "logs" / "plannerfin.log"
    lines = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert any(line["message"] == "hello" and line["extra"]["user_id"] == "u1" for line in lines)

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
