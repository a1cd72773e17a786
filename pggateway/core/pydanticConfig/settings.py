from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ─────────────────────────────────────────────────────────────
# Pick dotenv file based on PROFILE (dev / prod / staging …)
# ─────────────────────────────────────────────────────────────
PROFILE = os.getenv("PROFILE", "development")
DOTENV_FILE = f".env.{PROFILE}" if Path(f".env.{PROFILE}").exists() else ".env"
load_dotenv(DOTENV_FILE, override=False)


@dataclass(frozen=True)
class PostgresConfig:
    """Connection parameters handed to the gateway's engine."""

    user: Optional[str]
    password: Optional[str]
    host: Optional[str]
    port: Optional[int]
    database: Optional[str]


@dataclass(frozen=True)
class GatewayOptions:
    """Options of the auto-generated GraphQL endpoint."""

    schema: Optional[str]
    path: str = "/graphql"
    graphiql: bool = True
    watch: bool = True
    watch_interval: float = 2.0
    jwt_type_identifier: Optional[str] = None
    jwt_secret: Optional[str] = None
    jwt_audience: str = "postgraphile"
    jwt_algorithm: str = "HS256"
    default_role: Optional[str] = None


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    """
    Canonical configuration object, read once at process start.

    The deployment variables carry no defaults and are not checked for
    presence here; a missing value surfaces in the component that needs
    it (TLS loader, database connect, listener).
    Environment variables always override the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=DOTENV_FILE,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # —--- Runtime layer ---—
    PROFILE: str = PROFILE
    ENVIRONMENT: str = Field("development", description="'development' exposes error details")
    LOG_LEVEL: str = "INFO"

    # —--- TLS ---—
    SSL_KEY_PATH: Optional[str] = None
    SSL_CHAIN_PATH: Optional[str] = None

    # —--- Postgres ---—
    POSTGRES_USERNAME: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: Optional[str] = None
    POSTGRES_PORT: Optional[int] = None
    POSTGRES_DATABASE: Optional[str] = None

    # —--- GraphQL gateway ---—
    POSTGRAPHILE_SCHEMA: Optional[str] = None
    POSTGRAPHILE_DEFAULT_ROLE: Optional[str] = None
    GRAPHQL_PATH: str = "/graphql"
    GRAPHIQL: bool = True
    WATCH_PG: bool = True
    WATCH_INTERVAL_SECONDS: float = Field(2.0, gt=0)

    # —--- JWT ---—
    JWT_SECRET: Optional[str] = None
    JWT_AUDIENCE: str = "postgraphile"
    JWT_ALGORITHM: str = "HS256"

    # —--- Listener ---—
    HOST: str = "0.0.0.0"
    PORT: Optional[int] = None

    # —--- Convenience helpers ---—
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def jwt_type_identifier(self) -> Optional[str]:
        # the claims composite type lives in the exposed schema
        if not self.POSTGRAPHILE_SCHEMA:
            return None
        return f"{self.POSTGRAPHILE_SCHEMA}.jwt"

    @property
    def postgres_config(self) -> PostgresConfig:
        return PostgresConfig(
            user=self.POSTGRES_USERNAME,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=self.POSTGRES_PORT,
            database=self.POSTGRES_DATABASE,
        )

    @property
    def gateway_options(self) -> GatewayOptions:
        return GatewayOptions(
            schema=self.POSTGRAPHILE_SCHEMA,
            path=self.GRAPHQL_PATH,
            graphiql=self.GRAPHIQL,
            watch=self.WATCH_PG,
            watch_interval=self.WATCH_INTERVAL_SECONDS,
            jwt_type_identifier=self.jwt_type_identifier,
            jwt_secret=self.JWT_SECRET,
            jwt_audience=self.JWT_AUDIENCE,
            jwt_algorithm=self.JWT_ALGORITHM,
            default_role=self.POSTGRAPHILE_DEFAULT_ROLE,
        )


@lru_cache(1)
def get_settings() -> Settings:
    return Settings()
