# tests/conftest.py
import pytest
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from db import SqlStore, StoreError, init_db
from utils.dates import FixedClock

# 10:00 in Chicago, the day after DST started
NOW = "2025-03-10T15:00:00Z"
TZ = "America/Chicago"


@pytest.fixture
def clock():
    return FixedClock(NOW, TZ)


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return SqlStore(engine, current_user="tester")


@pytest.fixture
def fk_store():
    """Store over an engine that enforces foreign keys, like the production database."""
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)

    @event.listens_for(eng, "connect")
    def _foreign_keys_on(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    init_db(eng)
    yield SqlStore(eng, current_user="tester")
    eng.dispose()


class FailingStore:
    """Wraps a store and raises StoreError for one (operation, table) pair."""

    def __init__(self, inner, operation, table, filters=None):
        self.inner = inner
        self.operation = operation
        self.table = table
        self.filters = filters
        self.calls = []

    def current_user(self):
        return self.inner.current_user()

    def _maybe_fail(self, operation, table, filters=None):
        self.calls.append((operation, table))
        if operation == self.operation and table == self.table:
            if self.filters is None or self.filters == filters:
                raise StoreError(table, operation, "simulated outage")

    def query(self, table, filters=None, related=(), order_by=None):
        self._maybe_fail("query", table, filters)
        return self.inner.query(table, filters, related, order_by)

    def insert(self, table, row):
        self._maybe_fail("insert", table)
        return self.inner.insert(table, row)

    def update(self, table, filters, patch):
        self._maybe_fail("update", table, filters)
        return self.inner.update(table, filters, patch)

    def delete(self, table, filters):
        self._maybe_fail("delete", table, filters)
        return self.inner.delete(table, filters)


@pytest.fixture
def failing_store(store):
    def make(operation, table, filters=None):
        return FailingStore(store, operation, table, filters)
    return make
