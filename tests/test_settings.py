"""
test_settings.py
──────────────────────────────────────────────────────────────────────────
Environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from pggateway.core.pydanticConfig.settings import GatewayOptions, PostgresConfig, Settings

ENV = {
    "SSL_KEY_PATH": "/etc/tls/key.pem",
    "SSL_CHAIN_PATH": "/etc/tls/chain.pem",
    "POSTGRES_USERNAME": "gateway",
    "POSTGRES_PASSWORD": "s3cret",
    "POSTGRES_HOST": "db.internal",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DATABASE": "app",
    "POSTGRAPHILE_SCHEMA": "app_public",
    "JWT_SECRET": "jwt-secret",
    "POSTGRAPHILE_DEFAULT_ROLE": "app_anonymous",
    "PORT": "8443",
}


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_reads_every_deployment_variable(clean_env):
    for key, value in ENV.items():
        clean_env.setenv(key, value)

    cfg = Settings(_env_file=None)

    assert cfg.SSL_KEY_PATH == "/etc/tls/key.pem"
    assert cfg.SSL_CHAIN_PATH == "/etc/tls/chain.pem"
    assert cfg.POSTGRES_PORT == 5432
    assert cfg.PORT == 8443
    assert cfg.postgres_config == PostgresConfig(
        user="gateway", password="s3cret", host="db.internal", port=5432, database="app"
    )


def test_missing_variables_are_not_rejected_at_load_time(clean_env):
    cfg = Settings(_env_file=None)

    assert cfg.SSL_KEY_PATH is None
    assert cfg.POSTGRAPHILE_SCHEMA is None
    assert cfg.PORT is None
    assert cfg.jwt_type_identifier is None


def test_gateway_options_follow_the_exposed_schema(clean_env):
    for key, value in ENV.items():
        clean_env.setenv(key, value)

    options = Settings(_env_file=None).gateway_options

    assert isinstance(options, GatewayOptions)
    assert options.schema == "app_public"
    assert options.jwt_type_identifier == "app_public.jwt"
    assert options.jwt_secret == "jwt-secret"
    assert options.default_role == "app_anonymous"
    assert options.graphiql is True
    assert options.watch is True


def test_settings_are_immutable(clean_env):
    cfg = Settings(_env_file=None)

    with pytest.raises(ValidationError):
        cfg.PORT = 1234


def test_development_is_the_default_environment(clean_env):
    clean_env.delenv("ENVIRONMENT", raising=False)

    assert Settings(_env_file=None).is_development
    assert not Settings(_env_file=None, ENVIRONMENT="production").is_development
