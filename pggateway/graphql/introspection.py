"""
Schema Introspection
──────────────────────────────────────────────────────────────────────────
Reflects the exposed PostgreSQL schema into a SchemaSnapshot: tables and
views (via SQLAlchemy reflection), functions returning the JWT composite
type, and a fingerprint used to detect schema changes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, List, Optional, Tuple

from sqlalchemy import MetaData, Table, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from pggateway.core.exceptions import IntrospectionError

log = logging.getLogger(__name__)

FINGERPRINT_SQL = text(
    """
    SELECT md5(coalesce(string_agg(item, ';' ORDER BY item), '')) AS fingerprint
    FROM (
        SELECT 'c:' || c.table_name || '.' || c.column_name || ':' || c.data_type
               || ':' || c.is_nullable || ':' || coalesce(c.column_default, '') AS item
        FROM information_schema.columns c
        WHERE c.table_schema = :schema
        UNION ALL
        SELECT 'k:' || tc.table_name || '.' || tc.constraint_name || ':' || tc.constraint_type
        FROM information_schema.table_constraints tc
        WHERE tc.table_schema = :schema
        UNION ALL
        SELECT 'f:' || p.proname || '(' || pg_get_function_identity_arguments(p.oid) || '):'
               || format_type(p.prorettype, NULL)
        FROM pg_catalog.pg_proc p
        JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
        WHERE n.nspname = :schema
    ) items
    """
)

JWT_FUNCTIONS_SQL = text(
    """
    SELECT p.proname AS name,
           coalesce(p.proargnames, ARRAY[]::text[]) AS arg_names,
           ARRAY(
               SELECT format_type(a.type_oid, NULL)
               FROM unnest(p.proargtypes::oid[]) WITH ORDINALITY AS a(type_oid, ord)
               ORDER BY a.ord
           ) AS arg_types
    FROM pg_catalog.pg_proc p
    JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
    WHERE n.nspname = :schema
      AND p.prorettype = to_regtype(:jwt_type)
      AND NOT p.proretset
    ORDER BY p.proname
    """
)


@dataclass(frozen=True)
class JwtFunction:
    """A function whose result is signed and returned as a JWT."""

    name: str
    arg_names: Tuple[str, ...]
    arg_types: Tuple[str, ...]


@dataclass
class SchemaSnapshot:
    schema: Optional[str]
    tables: List[Table] = field(default_factory=list)
    view_names: FrozenSet[str] = frozenset()
    jwt_functions: List[JwtFunction] = field(default_factory=list)
    fingerprint: str = ""
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def empty(cls, schema: Optional[str]) -> "SchemaSnapshot":
        return cls(schema=schema)

    def is_view(self, table: Table) -> bool:
        return table.name in self.view_names


def _jwt_function(row) -> JwtFunction:
    arg_types = tuple(row.arg_types or ())
    names = list(row.arg_names or ())[: len(arg_types)]
    names += [""] * (len(arg_types) - len(names))
    arg_names = tuple(name or f"arg{i + 1}" for i, name in enumerate(names))
    return JwtFunction(name=row.name, arg_names=arg_names, arg_types=arg_types)


class SchemaIntrospector:
    """Reads the exposed schema through the gateway's engine."""

    def __init__(self, engine: AsyncEngine, schema: str, jwt_type_identifier: Optional[str] = None):
        self.engine = engine
        self.schema = schema
        self.jwt_type_identifier = jwt_type_identifier

    async def fingerprint(self) -> str:
        try:
            async with self.engine.connect() as conn:
                return await self._fingerprint(conn)
        except (SQLAlchemyError, OSError) as e:
            raise IntrospectionError(f"cannot fingerprint schema {self.schema!r}: {e}") from e

    async def introspect(self) -> SchemaSnapshot:
        metadata = MetaData()

        def _reflect(sync_conn) -> List[str]:
            metadata.reflect(sync_conn, schema=self.schema, views=True)
            return inspect(sync_conn).get_view_names(schema=self.schema)

        try:
            async with self.engine.connect() as conn:
                fingerprint = await self._fingerprint(conn)
                view_names = await conn.run_sync(_reflect)
                jwt_functions = await self._jwt_functions(conn)
        except (SQLAlchemyError, OSError) as e:
            raise IntrospectionError(f"cannot introspect schema {self.schema!r}: {e}") from e

        # foreign keys may pull in tables from other schemas
        tables = sorted(
            (t for t in metadata.tables.values() if t.schema == self.schema),
            key=lambda t: t.name,
        )
        log.info(
            f"[Introspection] schema={self.schema} tables={len(tables)} "
            f"views={len(view_names)} jwt_functions={len(jwt_functions)}"
        )
        return SchemaSnapshot(
            schema=self.schema,
            tables=tables,
            view_names=frozenset(view_names),
            jwt_functions=jwt_functions,
            fingerprint=fingerprint,
        )

    async def _fingerprint(self, conn: AsyncConnection) -> str:
        result = await conn.execute(FINGERPRINT_SQL, {"schema": self.schema})
        return result.scalar_one()

    async def _jwt_functions(self, conn: AsyncConnection) -> List[JwtFunction]:
        if not self.jwt_type_identifier:
            return []
        result = await conn.execute(
            JWT_FUNCTIONS_SQL,
            {"schema": self.schema, "jwt_type": self.jwt_type_identifier},
        )
        return [_jwt_function(row) for row in result]
