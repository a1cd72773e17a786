"""
GraphQL Schema for the exposed database schema
──────────────────────────────────────────────────────────────────────────
Turns a SchemaSnapshot into a strawberry Schema:

- one object type per table / view, with a ``<Type>Condition`` input and
  a ``<Types>Connection`` wrapper (``nodes``, ``totalCount``)
- ``allX`` and ``xByPk`` queries
- ``createX`` / ``updateXByPk`` / ``deleteXByPk`` mutations for tables
  with a primary key
- one mutation per function returning the JWT composite type

Example:
```graphql
query {
  allUsers(first: 10, condition: {isActive: true}) {
    totalCount
    nodes { id email }
  }
}
```
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import strawberry
from sqlalchemy import Table

from pggateway.core.pydanticConfig.settings import GatewayOptions
from pggateway.graphql.context import RequestTransaction
from pggateway.graphql.introspection import SchemaSnapshot
from pggateway.graphql.resolvers import (
    all_rows_field,
    create_row_field,
    delete_row_field,
    jwt_function_field,
    make_resolver,
    row_by_pk_field,
    update_row_field,
)
from pggateway.graphql.types import (
    ColumnBinding,
    JwtToken,
    bind_column,
    camel_case,
    pascal_case,
    pluralize,
    python_identifier,
    singularize,
)

log = logging.getLogger(__name__)

# (python attribute, annotation, strawberry field)
FieldSpec = Tuple[str, Any, Any]

RESERVED_TYPE_NAMES = {
    "Query", "Mutation", "Subscription",
    "Int", "Float", "String", "Boolean", "ID",
    "BigInt", "JwtToken", "JSON", "UUID", "Date", "DateTime", "Time", "Decimal",
}


def strawberry_class(name: str, fields: List[FieldSpec], *, is_input: bool = False, description: Optional[str] = None):
    namespace: Dict[str, Any] = {"__annotations__": {}, "__module__": __name__}
    for python_name, annotation, field_ in fields:
        namespace["__annotations__"][python_name] = annotation
        namespace[python_name] = field_
    cls = type(name, (), namespace)
    decorator = strawberry.input if is_input else strawberry.type
    return decorator(cls, name=name, description=description)


@dataclass
class TableBinding:
    """A reflected table or view and the strawberry types generated for it."""

    table: Table
    type_name: str
    read_only: bool
    columns: List[ColumnBinding]
    object_type: Any = None
    condition_type: Any = None
    connection_type: Any = None
    input_type: Any = None
    patch_type: Any = None
    _pk_names: Set[str] = field(default_factory=set)

    def __post_init__(self):
        self._pk_names = {c.name for c in self.table.primary_key.columns}

    @property
    def pk_columns(self) -> List[ColumnBinding]:
        return [cb for cb in self.columns if cb.column_name in self._pk_names]

    @property
    def mutable(self) -> bool:
        return not self.read_only and bool(self.pk_columns)

    @property
    def order_columns(self) -> list:
        return [self.table.c[cb.column_name] for cb in self.pk_columns]

    def to_object(self, row: Mapping[str, Any]):
        return self.object_type(**{cb.python_name: cb.converter(row[cb.column_name]) for cb in self.columns})

    def condition_clauses(self, condition) -> list:
        if condition is None:
            return []
        clauses = []
        for cb in self.columns:
            value = getattr(condition, cb.python_name, strawberry.UNSET)
            if value is strawberry.UNSET:
                continue
            # NULL compares as IS NULL
            clauses.append(self.table.c[cb.column_name] == value)
        return clauses

    def values_from(self, data) -> Dict[str, Any]:
        values = {}
        for cb in self.columns:
            if cb.computed:
                continue
            value = getattr(data, cb.python_name, strawberry.UNSET)
            if value is not strawberry.UNSET:
                values[cb.column_name] = value
        return values


def _type_names(type_name: str) -> List[str]:
    """Every GraphQL type name generated for one table."""
    return [
        type_name,
        f"{type_name}Condition",
        f"{pluralize(type_name)}Connection",
        f"{type_name}Input",
        f"{type_name}Patch",
    ]


def _unique(name: str, used: Set[str]) -> str:
    # the derived names must be free as well, e.g. `user` next to `user_condition`
    candidate, n = name, 2
    while any(taken in used for taken in _type_names(candidate)):
        candidate = f"{name}{n}"
        n += 1
    used.update(_type_names(candidate))
    return candidate


def bind_table(table: Table, read_only: bool, used_names: Set[str]) -> TableBinding:
    columns = [bind_column(column) for column in table.columns]
    type_name = _unique(pascal_case(singularize(table.name)), used_names)
    binding = TableBinding(table=table, type_name=type_name, read_only=read_only, columns=columns)

    binding.object_type = strawberry_class(
        type_name,
        [
            (cb.python_name, cb.output_annotation, strawberry.field(name=cb.graphql_name, default=None))
            for cb in columns
        ],
        description=table.comment,
    )
    binding.condition_type = strawberry_class(
        f"{type_name}Condition",
        [
            (cb.python_name, Optional[cb.annotation], strawberry.field(name=cb.graphql_name, default=strawberry.UNSET))
            for cb in columns
        ],
        is_input=True,
        description=f"Equality conditions on `{type_name}` columns.",
    )
    binding.connection_type = strawberry_class(
        f"{pluralize(type_name)}Connection",
        [
            ("nodes", List[binding.object_type], strawberry.field(name="nodes", default_factory=list)),
            ("total_count", int, strawberry.field(name="totalCount", default=0)),
        ],
        description=f"A list of `{type_name}` values.",
    )

    writable = [cb for cb in columns if not cb.computed]
    if binding.mutable and writable:
        binding.input_type = strawberry_class(
            f"{type_name}Input",
            [
                (cb.python_name, cb.create_annotation, strawberry.field(name=cb.graphql_name, default=strawberry.UNSET))
                for cb in writable
            ],
            is_input=True,
        )
        binding.patch_type = strawberry_class(
            f"{type_name}Patch",
            [
                (cb.python_name, Optional[cb.annotation], strawberry.field(name=cb.graphql_name, default=strawberry.UNSET))
                for cb in writable
            ],
            is_input=True,
        )
    return binding


def _pk_suffix(binding: TableBinding) -> str:
    return "And".join(pascal_case(cb.column_name) for cb in binding.pk_columns)


def _schema_built_at_field(snapshot: SchemaSnapshot) -> FieldSpec:
    async def impl(info, kwargs):
        return snapshot.built_at

    resolver = make_resolver("schema_built_at", impl, [], datetime)
    description = "When the database schema behind this API was last introspected."
    return "schema_built_at", datetime, strawberry.field(resolver=resolver, name="schemaBuiltAt", description=description)


def build_schema(snapshot: SchemaSnapshot, options: GatewayOptions) -> strawberry.Schema:
    used_names: Set[str] = set(RESERVED_TYPE_NAMES)
    query_fields: List[FieldSpec] = [_schema_built_at_field(snapshot)]
    mutation_fields: List[FieldSpec] = []

    for table in snapshot.tables:
        if not len(table.columns):
            log.warning(f"[Schema] skipping {table.fullname}: no columns")
            continue
        binding = bind_table(table, snapshot.is_view(table), used_names)
        singular = binding.type_name
        plural = pluralize(singular)

        all_name = f"all{plural}"
        query_fields.append((python_identifier(all_name), binding.connection_type, all_rows_field(binding, all_name)))

        if binding.pk_columns:
            by_pk = f"{camel_case(singular)}By{_pk_suffix(binding)}"
            query_fields.append((python_identifier(by_pk), Optional[binding.object_type], row_by_pk_field(binding, by_pk)))

        if binding.input_type is not None:
            create_name = f"create{singular}"
            update_name = f"update{singular}By{_pk_suffix(binding)}"
            delete_name = f"delete{singular}By{_pk_suffix(binding)}"
            mutation_fields += [
                (python_identifier(create_name), Optional[binding.object_type], create_row_field(binding, create_name)),
                (python_identifier(update_name), Optional[binding.object_type], update_row_field(binding, update_name)),
                (python_identifier(delete_name), Optional[binding.object_type], delete_row_field(binding, delete_name)),
            ]

    taken = {spec[0] for spec in mutation_fields}
    for function in snapshot.jwt_functions:
        graphql_name = camel_case(function.name)
        if python_identifier(graphql_name) in taken:
            log.warning(f"[Schema] skipping JWT function {function.name}: name clashes with a table mutation")
            continue
        taken.add(python_identifier(graphql_name))
        mutation_fields.append(
            (python_identifier(graphql_name), Optional[JwtToken], jwt_function_field(function, snapshot.schema, graphql_name))
        )

    query = strawberry_class("Query", query_fields, description="The root query type.")
    mutation = None
    if mutation_fields:
        mutation = strawberry_class("Mutation", mutation_fields, description="The root mutation type.")

    log.info(
        f"[Schema] built GraphQL schema for {options.schema}: "
        f"{len(query_fields)} queries, {len(mutation_fields)} mutations"
    )
    return strawberry.Schema(query=query, mutation=mutation, extensions=[RequestTransaction])
