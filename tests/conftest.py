"""Shared pytest fixtures for mortarQL unit and integration tests."""
from __future__ import annotations

import pytest

from mortarql.query.query import Db
from mortarql.schema.snapshot import SchemaSnapshot
from tests.fixtures import FakeAdapter, load_schema_snapshot


@pytest.fixture(scope="session")
def snapshot() -> SchemaSnapshot:
    """Canonical schema snapshot shared across all tests."""
    return load_schema_snapshot()


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def db(adapter: FakeAdapter, snapshot: SchemaSnapshot) -> Db:
    return Db(adapter, snapshot)
