import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from pggateway.core.pydanticConfig.settings import PostgresConfig

log = logging.getLogger(__name__)


def postgres_url(pg: PostgresConfig) -> URL:
    return URL.create(
        "postgresql+asyncpg",
        username=pg.user,
        password=pg.password,
        host=pg.host,
        port=pg.port,
        database=pg.database,
    )


def create_gateway_engine(pg: PostgresConfig) -> AsyncEngine:
    """Engine (and pool) owned by the GraphQL gateway. Connects lazily."""
    url = postgres_url(pg)
    log.info(f"[Postgres] Configured: {url.render_as_string(hide_password=True)}")
    return create_async_engine(url, pool_pre_ping=True)


def _setting_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def request_settings(claims: Dict[str, Any], default_role: Optional[str]) -> Dict[str, str]:
    """
    Transaction-local settings for one GraphQL operation.

    The ``role`` claim wins over the default role; every claim is also
    published as ``jwt.claims.<name>``.
    """
    settings: Dict[str, str] = {}
    role = claims.get("role") or default_role
    if role:
        settings["role"] = str(role)
    for name, value in claims.items():
        settings[f"jwt.claims.{name}"] = _setting_value(value)
    return settings


async def apply_request_settings(
    conn: AsyncConnection, claims: Dict[str, Any], default_role: Optional[str]
) -> Dict[str, str]:
    settings = request_settings(claims, default_role)
    if not settings:
        return settings
    calls = ", ".join(f"set_config(:k{i}, :v{i}, true)" for i in range(len(settings)))
    params: Dict[str, str] = {}
    for i, (name, value) in enumerate(settings.items()):
        params[f"k{i}"] = name
        params[f"v{i}"] = value
    await conn.execute(text(f"SELECT {calls}"), params)
    return settings
