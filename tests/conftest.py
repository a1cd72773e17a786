# tests/conftest.py
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from sqlalchemy import Column, DateTime, Integer, MetaData, Table, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql.asyncpg import PGDialect_asyncpg

from pggateway.core.pydanticConfig.settings import Settings
from pggateway.graphql.introspection import JwtFunction, SchemaSnapshot

SCHEMA = "app_public"
JWT_SECRET = "test-secret"


# ---- Fake database surface -------------------------------------------------
class FakeRow(dict):
    """Row usable both as a mapping and through attribute access."""

    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError:
            raise AttributeError(item)


class FakeResult:
    def __init__(self, rows=None, scalar=None):
        self._rows = [FakeRow(r) for r in rows or []]
        self._scalar = scalar

    def mappings(self):
        return self

    def all(self):
        return list(self._rows)

    def first(self):
        return self._rows[0] if self._rows else None

    def scalar_one(self):
        return self._scalar


class FakeTransaction:
    def __init__(self):
        self.committed = False
        self.rolled_back = False

    async def commit(self):
        self.committed = True

    async def rollback(self):
        self.rolled_back = True


class FakeConnection:
    """Records statements; answers them from a queue of FakeResults."""

    def __init__(self, results=()):
        self.results = list(results)
        self.statements = []
        self.dialect = PGDialect_asyncpg()
        self.transaction = FakeTransaction()

    async def begin(self):
        return self.transaction

    async def execute(self, statement, params=None):
        self.statements.append((statement, params))
        return self.results.pop(0) if self.results else FakeResult()

    def compiled(self, index):
        statement, _ = self.statements[index]
        return str(statement.compile(dialect=self.dialect))


class FakeEngine:
    def __init__(self, results=()):
        self.connection = FakeConnection(results)
        self.disposed = False

    @asynccontextmanager
    async def connect(self):
        yield self.connection

    async def dispose(self):
        self.disposed = True


class FakeIntrospector:
    def __init__(self, snapshot, fingerprints=None):
        self.schema = snapshot.schema
        self.snapshot = snapshot
        self.fingerprints = list(fingerprints or [])
        self.introspect_calls = 0

    async def fingerprint(self):
        if self.fingerprints:
            return self.fingerprints.pop(0)
        return self.snapshot.fingerprint

    async def introspect(self):
        self.introspect_calls += 1
        return self.snapshot


# ---- Fixtures -----------------------------------------------------------------
def make_settings(**overrides) -> Settings:
    values = {
        "POSTGRAPHILE_SCHEMA": SCHEMA,
        "POSTGRAPHILE_DEFAULT_ROLE": "app_anonymous",
        "JWT_SECRET": JWT_SECRET,
        "ENVIRONMENT": "production",
        "WATCH_PG": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def options(settings):
    return settings.gateway_options


@pytest.fixture
def metadata():
    md = MetaData()
    Table(
        "users",
        md,
        Column("id", Integer, primary_key=True, server_default=func.nextval("users_id_seq")),
        Column("email", Text, nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
        Column("profile", JSONB),
        schema=SCHEMA,
    )
    Table(
        "active_users",
        md,
        Column("id", Integer),
        Column("email", Text),
        schema=SCHEMA,
    )
    return md


@pytest.fixture
def snapshot(metadata):
    return SchemaSnapshot(
        schema=SCHEMA,
        tables=sorted(metadata.tables.values(), key=lambda t: t.name),
        view_names=frozenset({"active_users"}),
        jwt_functions=[JwtFunction("authenticate", ("email", "password"), ("text", "text"))],
        fingerprint="fp-1",
        built_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
