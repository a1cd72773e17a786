"""
GraphQL Gateway Application
──────────────────────────────────────────────────────────────────────────
Middleware chain: CORS headers → GraphQL gateway → 404 → error handler.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException

from pggateway import __version__
from pggateway.core.exceptions import ErrorHandlerMiddleware, GatewayError, render_error
from pggateway.core.logger import setup_logger
from pggateway.core.pydanticConfig.settings import Settings, get_settings
from pggateway.core.security import CorsHeadersMiddleware
from pggateway.services.GatewayService import GraphQLGatewayService

logger = setup_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[GraphQLGatewayService] = None,
) -> FastAPI:
    """
    FastAPI application factory. The gateway introspects the database on
    startup and is torn down (watcher stopped, pool disposed) on shutdown.
    """
    cfg = settings or get_settings()
    if gateway is None:
        gateway = GraphQLGatewayService(cfg.postgres_config, cfg.gateway_options)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting GraphQL gateway for schema {cfg.POSTGRAPHILE_SCHEMA}...")
        try:
            await gateway.start()
        except Exception as e:
            logger.error(f"Failed to start gateway: {e}")
            await gateway.stop()
            raise

        yield

        logger.info("Shutting down GraphQL gateway...")
        await gateway.stop()

    app = FastAPI(
        title="PostgreSQL GraphQL Gateway",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.gateway = gateway

    # ─── middleware (last added runs first) ----------------------------
    app.add_middleware(ErrorHandlerMiddleware, development=cfg.is_development)
    app.add_middleware(CorsHeadersMiddleware)

    # ─── fallback handlers ---------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # unmatched routes arrive here as 404 "Not Found"
        return render_error(exc, str(exc.detail), exc.status_code, cfg.is_development)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc}")
        return render_error(exc, str(exc), exc.status_code, cfg.is_development)

    # ─── GraphQL ------------------------------------------------------
    app.include_router(gateway.router, prefix=cfg.GRAPHQL_PATH, tags=["GraphQL"])

    return app
