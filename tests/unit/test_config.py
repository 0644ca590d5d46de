"""Tests for configuration loading."""

import pytest

from batchflow.config import load_config
from batchflow.events import InMemoryEventBus, get_event_bus
from batchflow.gateway import InMemoryEntityGateway, get_gateway


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
batch:
  max_concurrency: 4
  continue_on_error: true
workflows:
  register_builtins: false
  default_wait_seconds: 0.5
events:
  max_queue_size: 10
"""
    )
    monkeypatch.setenv("BATCHFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.batch.max_concurrency == 4
    assert config.batch.continue_on_error is True
    assert config.batch.validate_first is False
    assert config.workflows.register_builtins is False
    assert config.workflows.default_wait_seconds == 0.5
    assert config.events.max_queue_size == 10


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("BATCHFLOW_CONFIG", raising=False)
    monkeypatch.delenv("BATCHFLOW_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)

    config = load_config()
    assert config.batch.max_concurrency == 1
    assert config.workflows.register_builtins is True
    assert config.log_level == "INFO"


def test_log_level_env_override(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BATCHFLOW_LOG_LEVEL", "debug")

    assert load_config().log_level == "DEBUG"


def test_factories_use_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("events:\n  max_queue_size: 3\n")
    monkeypatch.setenv("BATCHFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("BATCHFLOW_EVENT_BUS", raising=False)
    monkeypatch.delenv("BATCHFLOW_GATEWAY", raising=False)

    bus = get_event_bus()
    assert isinstance(bus, InMemoryEventBus)
    assert bus._max_queue_size == 3
    assert isinstance(get_gateway(), InMemoryEntityGateway)


def test_unknown_backend_is_rejected(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BATCHFLOW_EVENT_BUS", "kafka")

    with pytest.raises(ValueError):
        get_event_bus()
