"""
GraphQL Resolvers
──────────────────────────────────────────────────────────────────────────
Resolver factories for the generated schema. Every resolver runs on the
operation's connection (``info.context.db``) opened by RequestTransaction;
SQL is built with SQLAlchemy Core against the reflected tables.
"""

import inspect
import json
from typing import Annotated, Any, Awaitable, Callable, Dict, List, NamedTuple, Optional

import strawberry
from sqlalchemy import delete, func, insert, select, text, update
from strawberry.types import Info

from pggateway.core.security import sign_jwt
from pggateway.graphql.introspection import JwtFunction
from pggateway.graphql.types import (
    JwtToken,
    argument_identifier,
    argument_scalar,
    camel_case,
)


class ResolverArgument(NamedTuple):
    python_name: str
    annotation: Any
    default: Any = inspect.Parameter.empty


def make_resolver(
    python_name: str,
    impl: Callable[[Info, Dict[str, Any]], Awaitable[Any]],
    arguments: List[ResolverArgument],
    return_type: Any,
):
    """
    Build an async resolver whose signature lists ``arguments``.

    strawberry derives GraphQL arguments from the resolver signature, so
    generated fields get a synthetic one; the values arrive as keywords.
    """
    parameters = [inspect.Parameter("info", inspect.Parameter.KEYWORD_ONLY, annotation=Info)]
    annotations: Dict[str, Any] = {"info": Info}
    for argument in arguments:
        parameters.append(
            inspect.Parameter(
                argument.python_name,
                inspect.Parameter.KEYWORD_ONLY,
                annotation=argument.annotation,
                default=argument.default,
            )
        )
        annotations[argument.python_name] = argument.annotation
    annotations["return"] = return_type

    async def resolver(info, **kwargs):
        return await impl(info, kwargs)

    resolver.__name__ = python_name
    resolver.__qualname__ = python_name
    resolver.__signature__ = inspect.Signature(parameters, return_annotation=return_type)
    resolver.__annotations__ = annotations
    return resolver


def _field(graphql_name: str, resolver, description: Optional[str] = None):
    return strawberry.field(resolver=resolver, name=graphql_name, description=description)


def _pk_arguments(binding) -> List[ResolverArgument]:
    return [
        ResolverArgument(
            argument_identifier(cb.column_name),
            Annotated[cb.annotation, strawberry.argument(name=cb.graphql_name)],
        )
        for cb in binding.pk_columns
    ]


def _pk_clauses(binding, kwargs: Dict[str, Any]) -> list:
    return [
        binding.table.c[cb.column_name] == kwargs[argument_identifier(cb.column_name)]
        for cb in binding.pk_columns
    ]


# ─────────────────────────────────────────────────────────────
# Queries
# ─────────────────────────────────────────────────────────────
def all_rows_field(binding, graphql_name: str):
    table = binding.table

    async def impl(info: Info, kwargs: Dict[str, Any]):
        first = kwargs.get("first")
        offset = kwargs.get("offset") or 0
        if (first is not None and first < 0) or offset < 0:
            raise ValueError("first and offset must be non-negative")

        conn = info.context.db
        clauses = binding.condition_clauses(kwargs.get("condition"))

        stmt = select(table).where(*clauses).order_by(*binding.order_columns).offset(offset)
        if first is not None:
            stmt = stmt.limit(first)
        rows = (await conn.execute(stmt)).mappings().all()

        count_stmt = select(func.count()).select_from(table).where(*clauses)
        total = (await conn.execute(count_stmt)).scalar_one()

        return binding.connection_type(
            nodes=[binding.to_object(row) for row in rows],
            total_count=total,
        )

    resolver = make_resolver(
        argument_identifier(graphql_name),
        impl,
        [
            ResolverArgument("first", Optional[int], None),
            ResolverArgument("offset", int, 0),
            ResolverArgument("condition", Optional[binding.condition_type], None),
        ],
        binding.connection_type,
    )
    return _field(graphql_name, resolver, f"Reads and enables pagination through a set of `{binding.type_name}`.")


def row_by_pk_field(binding, graphql_name: str):
    async def impl(info: Info, kwargs: Dict[str, Any]):
        stmt = select(binding.table).where(*_pk_clauses(binding, kwargs))
        row = (await info.context.db.execute(stmt)).mappings().first()
        return binding.to_object(row) if row is not None else None

    resolver = make_resolver(
        argument_identifier(graphql_name),
        impl,
        _pk_arguments(binding),
        Optional[binding.object_type],
    )
    return _field(graphql_name, resolver)


# ─────────────────────────────────────────────────────────────
# Mutations
# ─────────────────────────────────────────────────────────────
def create_row_field(binding, graphql_name: str):
    table = binding.table

    async def impl(info: Info, kwargs: Dict[str, Any]):
        values = binding.values_from(kwargs["input"])
        stmt = insert(table)
        if values:
            stmt = stmt.values(values)
        row = (await info.context.db.execute(stmt.returning(*table.c))).mappings().first()
        return binding.to_object(row) if row is not None else None

    resolver = make_resolver(
        argument_identifier(graphql_name),
        impl,
        [ResolverArgument("input", binding.input_type)],
        Optional[binding.object_type],
    )
    return _field(graphql_name, resolver, f"Creates a single `{binding.type_name}`.")


def update_row_field(binding, graphql_name: str):
    table = binding.table

    async def impl(info: Info, kwargs: Dict[str, Any]):
        clauses = _pk_clauses(binding, kwargs)
        values = binding.values_from(kwargs["patch"])
        if values:
            stmt = update(table).where(*clauses).values(values).returning(*table.c)
        else:
            stmt = select(table).where(*clauses)
        row = (await info.context.db.execute(stmt)).mappings().first()
        return binding.to_object(row) if row is not None else None

    resolver = make_resolver(
        argument_identifier(graphql_name),
        impl,
        _pk_arguments(binding) + [ResolverArgument("patch", binding.patch_type)],
        Optional[binding.object_type],
    )
    return _field(graphql_name, resolver, f"Updates a single `{binding.type_name}` using its primary key.")


def delete_row_field(binding, graphql_name: str):
    table = binding.table

    async def impl(info: Info, kwargs: Dict[str, Any]):
        stmt = delete(table).where(*_pk_clauses(binding, kwargs)).returning(*table.c)
        row = (await info.context.db.execute(stmt)).mappings().first()
        return binding.to_object(row) if row is not None else None

    resolver = make_resolver(
        argument_identifier(graphql_name),
        impl,
        _pk_arguments(binding),
        Optional[binding.object_type],
    )
    return _field(graphql_name, resolver, f"Deletes a single `{binding.type_name}` using its primary key.")


def jwt_function_field(function: JwtFunction, schema_name: str, graphql_name: str):
    arguments = [
        ResolverArgument(
            argument_identifier(name),
            Annotated[Optional[argument_scalar(pg_type)], strawberry.argument(name=camel_case(name))],
            None,
        )
        for name, pg_type in zip(function.arg_names, function.arg_types)
    ]

    async def impl(info: Info, kwargs: Dict[str, Any]):
        conn = info.context.db
        preparer = conn.dialect.identifier_preparer
        target = f"{preparer.quote_schema(schema_name)}.{preparer.quote(function.name)}"
        binds = ", ".join(f":a{i}" for i in range(len(arguments)))
        params = {f"a{i}": kwargs.get(argument.python_name) for i, argument in enumerate(arguments)}

        row = (await conn.execute(text(f"SELECT to_json(r) AS claims FROM {target}({binds}) AS r"), params)).first()
        claims = row.claims if row is not None else None
        if isinstance(claims, str):
            claims = json.loads(claims)
        # a NULL composite comes back as a row of NULLs
        if not claims or all(value is None for value in claims.values()):
            return None
        return sign_jwt(claims, info.context.options)

    resolver = make_resolver(argument_identifier(graphql_name), impl, arguments, Optional[JwtToken])
    return _field(graphql_name, resolver, f"Calls `{function.name}` and returns its result as a signed JWT.")
