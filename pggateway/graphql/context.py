"""
GraphQL Context
──────────────────────────────────────────────────────────────────────────
Per-request context (verified claims, engine) and the extension that runs
each operation inside one role-scoped transaction.
"""

import logging
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from strawberry.extensions import SchemaExtension
from strawberry.fastapi import BaseContext

from pggateway.core.db import apply_request_settings
from pggateway.core.pydanticConfig.settings import GatewayOptions
from pggateway.core.security import bearer_scheme, decode_jwt

log = logging.getLogger(__name__)


class GatewayContext(BaseContext):
    def __init__(self, engine: AsyncEngine, options: GatewayOptions, claims: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.engine = engine
        self.options = options
        self.claims: Dict[str, Any] = claims or {}
        self.db: Optional[AsyncConnection] = None


def build_context_getter(engine: AsyncEngine, options: GatewayOptions):
    async def get_context(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    ) -> GatewayContext:
        claims: Dict[str, Any] = {}
        if credentials is not None:
            claims = decode_jwt(credentials.credentials, options)
        return GatewayContext(engine=engine, options=options, claims=claims)

    return get_context


class RequestTransaction(SchemaExtension):
    """
    Wrap execution in a transaction with the request's role and claims set
    locally. Operations that produced errors are rolled back.
    """

    async def on_execute(self) -> AsyncIterator[None]:
        context: GatewayContext = self.execution_context.context
        async with context.engine.connect() as conn:
            transaction = await conn.begin()
            await apply_request_settings(conn, context.claims, context.options.default_role)
            context.db = conn
            try:
                yield
            finally:
                context.db = None

            result = self.execution_context.result
            if result is not None and result.errors:
                log.info(f"[GraphQL] rolling back operation with {len(result.errors)} error(s)")
                await transaction.rollback()
            else:
                await transaction.commit()
