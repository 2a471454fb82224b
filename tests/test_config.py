"""Unit tests for AdapterConfig."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mortarql.config import AdapterConfig


def test_defaults():
    config = AdapterConfig()
    assert config.migrations_table == "schemaMigrations"
    assert config.schema_name is None
    assert config.min_size == 1


def test_from_env_reads_prefixed_variables(monkeypatch):
    monkeypatch.setenv("MORTARQL_DATABASE_URL", "postgresql://db/app")
    monkeypatch.setenv("MORTARQL_MAX_SIZE", "20")
    monkeypatch.setenv("MORTARQL_SCHEMA_NAME", "ops")

    config = AdapterConfig.from_env()

    assert config.database_url == "postgresql://db/app"
    assert config.max_size == 20
    assert config.schema_name == "ops"


def test_overrides_win_over_environment(monkeypatch):
    monkeypatch.setenv("MORTARQL_TIMEOUT", "5")
    assert AdapterConfig.from_env(timeout=1.5).timeout == 1.5


def test_custom_prefix(monkeypatch):
    monkeypatch.setenv("APP_DB_APPLICATION_NAME", "worker")
    assert AdapterConfig.from_env(prefix="APP_DB_").application_name == "worker"


def test_invalid_values_are_rejected(monkeypatch):
    monkeypatch.setenv("MORTARQL_MAX_SIZE", "0")
    with pytest.raises(ValidationError):
        AdapterConfig.from_env()


def test_unknown_fields_are_rejected():
    with pytest.raises(ValidationError):
        AdapterConfig(pool="big")
