"""
test_resolvers.py
──────────────────────────────────────────────────────────────────────────
Executes generated operations against a recording fake connection: the
SQL issued, the role/claims settings applied to the transaction and the
commit / rollback decision.
"""

from datetime import datetime, timezone

import jwt
import pytest

from pggateway.graphql.context import GatewayContext
from pggateway.graphql.schema import build_schema

from conftest import JWT_SECRET, FakeEngine, FakeResult

USER_ROW = {
    "id": 1,
    "email": "ada@example.com",
    "created_at": datetime(2024, 1, 2, tzinfo=timezone.utc),
    "profile": {"theme": "dark"},
}


@pytest.fixture
def schema(snapshot, options):
    return build_schema(snapshot, options)


async def run(schema, options, query, results, claims=None, variables=None):
    # the first statement on every connection is the set_config call
    engine = FakeEngine([FakeResult()] + list(results))
    context = GatewayContext(engine=engine, options=options, claims=claims)
    result = await schema.execute(query, variable_values=variables, context_value=context)
    return result, engine.connection


class TestQueries:
    @pytest.mark.asyncio
    async def test_all_rows_returns_connection(self, schema, options):
        result, conn = await run(
            schema,
            options,
            "{ allUsers(first: 5) { totalCount nodes { id email profile } } }",
            [FakeResult(rows=[USER_ROW]), FakeResult(scalar=1)],
        )

        assert result.errors is None
        assert result.data == {
            "allUsers": {
                "totalCount": 1,
                "nodes": [{"id": 1, "email": "ada@example.com", "profile": {"theme": "dark"}}],
            }
        }
        sql = conn.compiled(1)
        assert "FROM app_public.users" in sql
        assert "ORDER BY app_public.users.id" in sql
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_condition_filters_rows_and_count(self, schema, options):
        result, conn = await run(
            schema,
            options,
            '{ allUsers(condition: {email: "ada@example.com"}) { totalCount } }',
            [FakeResult(rows=[USER_ROW]), FakeResult(scalar=1)],
        )

        assert result.errors is None
        assert "WHERE app_public.users.email =" in conn.compiled(1)
        assert "WHERE app_public.users.email =" in conn.compiled(2)

    @pytest.mark.asyncio
    async def test_row_by_primary_key(self, schema, options):
        result, conn = await run(
            schema,
            options,
            "{ userById(id: 1) { email createdAt } }",
            [FakeResult(rows=[USER_ROW])],
        )

        assert result.errors is None
        assert result.data["userById"]["email"] == "ada@example.com"
        assert "WHERE app_public.users.id =" in conn.compiled(1)

    @pytest.mark.asyncio
    async def test_missing_row_is_null(self, schema, options):
        result, _ = await run(schema, options, "{ userById(id: 99) { email } }", [FakeResult()])

        assert result.errors is None
        assert result.data == {"userById": None}


class TestMutations:
    @pytest.mark.asyncio
    async def test_create_inserts_supplied_columns_only(self, schema, options):
        result, conn = await run(
            schema,
            options,
            'mutation { createUser(input: {email: "ada@example.com"}) { id email } }',
            [FakeResult(rows=[USER_ROW])],
        )

        assert result.errors is None
        assert result.data == {"createUser": {"id": 1, "email": "ada@example.com"}}
        sql = conn.compiled(1)
        assert "INSERT INTO app_public.users (email)" in sql
        assert "RETURNING" in sql

    @pytest.mark.asyncio
    async def test_update_by_primary_key(self, schema, options):
        result, conn = await run(
            schema,
            options,
            'mutation { updateUserById(id: 1, patch: {email: "new@example.com"}) { email } }',
            [FakeResult(rows=[dict(USER_ROW, email="new@example.com")])],
        )

        assert result.errors is None
        assert result.data == {"updateUserById": {"email": "new@example.com"}}
        assert conn.compiled(1).startswith("UPDATE app_public.users SET email=")

    @pytest.mark.asyncio
    async def test_delete_by_primary_key(self, schema, options):
        result, conn = await run(
            schema,
            options,
            "mutation { deleteUserById(id: 1) { id } }",
            [FakeResult(rows=[USER_ROW])],
        )

        assert result.errors is None
        assert result.data == {"deleteUserById": {"id": 1}}
        assert conn.compiled(1).startswith("DELETE FROM app_public.users")

    @pytest.mark.asyncio
    async def test_jwt_function_returns_signed_token(self, schema, options):
        result, conn = await run(
            schema,
            options,
            'mutation { authenticate(email: "ada@example.com", password: "hunter2") }',
            [FakeResult(rows=[{"claims": {"role": "app_user", "user_id": 1, "exp": None}}])],
        )

        assert result.errors is None
        claims = jwt.decode(result.data["authenticate"], JWT_SECRET, algorithms=["HS256"], audience="postgraphile")
        assert claims == {"role": "app_user", "user_id": 1, "aud": "postgraphile"}

        statement, params = conn.statements[1]
        assert 'FROM app_public.authenticate(:a0, :a1) AS r' in str(statement)
        assert params == {"a0": "ada@example.com", "a1": "hunter2"}

    @pytest.mark.asyncio
    async def test_jwt_function_null_result(self, schema, options):
        result, _ = await run(
            schema,
            options,
            'mutation { authenticate(email: "ada@example.com", password: "wrong") }',
            [FakeResult(rows=[{"claims": {"role": None, "user_id": None, "exp": None}}])],
        )

        assert result.errors is None
        assert result.data == {"authenticate": None}


class TestRequestTransaction:
    @pytest.mark.asyncio
    async def test_anonymous_requests_use_default_role(self, schema, options):
        _, conn = await run(schema, options, "{ schemaBuiltAt }", [])

        statement, params = conn.statements[0]
        assert "set_config" in str(statement)
        assert params == {"k0": "role", "v0": "app_anonymous"}

    @pytest.mark.asyncio
    async def test_claims_role_and_claims_are_set_locally(self, schema, options):
        _, conn = await run(
            schema, options, "{ schemaBuiltAt }", [], claims={"role": "app_user", "sub": "42"}
        )

        _, params = conn.statements[0]
        assert params == {
            "k0": "role",
            "v0": "app_user",
            "k1": "jwt.claims.role",
            "v1": "app_user",
            "k2": "jwt.claims.sub",
            "v2": "42",
        }

    @pytest.mark.asyncio
    async def test_successful_operation_commits(self, schema, options):
        result, conn = await run(schema, options, "{ schemaBuiltAt }", [])

        assert result.data == {"schemaBuiltAt": "2024-01-01T00:00:00+00:00"}
        assert conn.transaction.committed
        assert not conn.transaction.rolled_back

    @pytest.mark.asyncio
    async def test_failed_operation_rolls_back(self, schema, options):
        result, conn = await run(schema, options, "{ allUsers(first: -1) { totalCount } }", [])

        assert result.errors
        assert "non-negative" in result.errors[0].message
        assert conn.transaction.rolled_back
        assert not conn.transaction.committed
