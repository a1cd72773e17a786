"""
HTTPS listener.

The TLS context is built before anything binds, so an unreadable key or
certificate aborts startup without ever opening the port.
"""

import logging
import sys
from typing import Optional

import uvicorn

from pggateway.core.exceptions import ConfigurationError, GatewayError
from pggateway.core.logger import setup_logger, uvicorn_log_config
from pggateway.core.pydanticConfig.settings import Settings, get_settings
from pggateway.core.tls import build_ssl_context
from pggateway.main import create_app

log = logging.getLogger(__name__)


def build_server(settings: Settings) -> uvicorn.Server:
    ssl_context = build_ssl_context(settings.SSL_KEY_PATH, settings.SSL_CHAIN_PATH)
    if settings.PORT is None:
        raise ConfigurationError("PORT is not set")

    config = uvicorn.Config(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        ssl_keyfile=settings.SSL_KEY_PATH,
        ssl_certfile=settings.SSL_CHAIN_PATH,
        log_config=uvicorn_log_config(settings.LOG_LEVEL),
        lifespan="on",
    )
    config.load()
    # listen with the context built above
    config.ssl = ssl_context
    return uvicorn.Server(config)


def serve(settings: Optional[Settings] = None) -> None:
    cfg = settings or get_settings()
    server = build_server(cfg)
    log.info(f"Listening on https://{cfg.HOST}:{cfg.PORT}{cfg.GRAPHQL_PATH}")
    server.run()


def main() -> None:
    cfg = get_settings()
    setup_logger("pggateway", cfg.LOG_LEVEL)
    try:
        serve(cfg)
    except GatewayError as e:
        log.error(f"Startup aborted: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
