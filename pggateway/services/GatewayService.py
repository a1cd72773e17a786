import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from pggateway.core.db import create_gateway_engine
from pggateway.core.exceptions import ConfigurationError
from pggateway.core.pydanticConfig.settings import GatewayOptions, PostgresConfig
from pggateway.graphql.index import build_graphql_router
from pggateway.graphql.introspection import SchemaIntrospector, SchemaSnapshot
from pggateway.graphql.schema import build_schema
from pggateway.services.SchemaWatchService import SchemaWatchService

logger = logging.getLogger(__name__)


class GraphQLGatewayService:
    """
    Owns everything behind the GraphQL endpoint: the engine (pool), the
    introspected snapshot, the router and the schema watcher.

    The router exists from construction on, serving a schema with no
    tables until ``start()`` has introspected the database.
    """

    def __init__(
        self,
        pg: PostgresConfig,
        options: GatewayOptions,
        engine: Optional[AsyncEngine] = None,
        introspector: Optional[SchemaIntrospector] = None,
    ):
        self.options = options
        self.engine = engine if engine is not None else create_gateway_engine(pg)
        self.introspector = introspector
        self.snapshot = SchemaSnapshot.empty(options.schema)
        self.router = build_graphql_router(build_schema(self.snapshot, options), self.engine, options)
        self.watcher: Optional[SchemaWatchService] = None

    async def start(self) -> None:
        if not self.options.schema:
            raise ConfigurationError("POSTGRAPHILE_SCHEMA is not set")
        if self.introspector is None:
            self.introspector = SchemaIntrospector(
                self.engine, self.options.schema, self.options.jwt_type_identifier
            )

        self.apply(await self.introspector.introspect())

        if self.options.watch:
            self.watcher = SchemaWatchService(
                self.introspector,
                self.apply,
                self.options.watch_interval,
                fingerprint=self.snapshot.fingerprint,
            )
            self.watcher.start()

    def apply(self, snapshot: SchemaSnapshot) -> None:
        """Swap the live schema; in-flight operations keep the old one."""
        self.router.schema = build_schema(snapshot, self.options)
        self.snapshot = snapshot
        logger.info(f"[Gateway] serving schema {snapshot.schema} (fingerprint {snapshot.fingerprint[:8]})")

    async def stop(self) -> None:
        if self.watcher is not None:
            await self.watcher.stop()
            self.watcher = None
        await self.engine.dispose()
        logger.info("[Gateway] engine disposed")
