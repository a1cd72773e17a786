"""
GraphQL Type Definitions
──────────────────────────────────────────────────────────────────────────
Scalars, naming rules and the column → GraphQL type mapping used when a
reflected schema is turned into strawberry types.
"""

import keyword
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, List, NewType, Optional, Tuple

import strawberry
from sqlalchemy import Column
from sqlalchemy.sql import sqltypes
from strawberry.scalars import JSON

BigInt = strawberry.scalar(
    NewType("BigInt", int),
    serialize=str,
    parse_value=int,
    description="A signed eight-byte integer, serialized as a string.",
)

JwtToken = strawberry.scalar(
    NewType("JwtToken", str),
    serialize=str,
    parse_value=str,
    description="A signed JSON Web Token.",
)

# order matters: subclasses before their bases
COLUMN_SCALARS: Tuple[Tuple[type, Any], ...] = (
    (sqltypes.Boolean, bool),
    (sqltypes.BigInteger, BigInt),
    (sqltypes.Integer, int),
    (sqltypes.Float, float),
    (sqltypes.Numeric, Decimal),
    (sqltypes.DateTime, datetime),
    (sqltypes.Date, date),
    (sqltypes.Time, time),
    (sqltypes.Uuid, uuid.UUID),
    (sqltypes.JSON, JSON),
    (sqltypes.String, str),
)

# format_type() names of function arguments
ARGUMENT_SCALARS = {
    "boolean": bool,
    "smallint": int,
    "integer": int,
    "bigint": BigInt,
    "real": float,
    "double precision": float,
    "numeric": Decimal,
    "text": str,
    "character varying": str,
    "character": str,
    "uuid": uuid.UUID,
    "json": JSON,
    "jsonb": JSON,
    "date": date,
    "timestamp without time zone": datetime,
    "timestamp with time zone": datetime,
    "time without time zone": time,
}

RESERVED_ARGUMENT_NAMES = {"self", "root", "info", "parent"}


def _identity(value: Any) -> Any:
    return value


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def scalar_for(sql_type: Any) -> Tuple[Any, Callable[[Any], Any]]:
    """Return ``(annotation, converter)`` for a reflected column type."""
    if isinstance(sql_type, sqltypes.ARRAY):
        inner, convert = scalar_for(sql_type.item_type)
        return List[Optional[inner]], lambda value: None if value is None else [convert(v) for v in value]
    for sa_type, annotation in COLUMN_SCALARS:
        if isinstance(sql_type, sa_type):
            return annotation, _identity
    # intervals, network types, geometry ... travel as text
    return str, _as_text


def argument_scalar(pg_type_name: str) -> Any:
    if pg_type_name.endswith("[]"):
        return List[Optional[argument_scalar(pg_type_name[:-2])]]
    return ARGUMENT_SCALARS.get(pg_type_name, str)


# ─────────────────────────────────────────────────────────────
# Naming
# ─────────────────────────────────────────────────────────────
def _words(name: str) -> List[str]:
    return [w for w in re.split(r"[^0-9A-Za-z]+", name) if w]


def pascal_case(name: str) -> str:
    result = "".join(w[:1].upper() + w[1:] for w in _words(name)) or "Unnamed"
    return f"_{result}" if result[0].isdigit() else result


def camel_case(name: str) -> str:
    result = pascal_case(name)
    if result.startswith("_"):
        return result
    return result[:1].lower() + result[1:]


def singularize(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if lowered.endswith(("sses", "xes", "ches", "shes")):
        return name[:-2]
    if lowered.endswith("s") and not lowered.endswith(("ss", "us", "is")):
        return name[:-1]
    return name


def pluralize(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith("y") and len(name) > 1 and lowered[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lowered.endswith(("s", "x", "z", "ch", "sh")):
        return name + "es"
    return name + "s"


def python_identifier(name: str) -> str:
    result = re.sub(r"\W", "_", name)
    if not result or result[0].isdigit():
        result = f"f_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result


def argument_identifier(name: str) -> str:
    result = python_identifier(name)
    return f"{result}_" if result in RESERVED_ARGUMENT_NAMES else result


# ─────────────────────────────────────────────────────────────
# Column bindings
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ColumnBinding:
    """How one reflected column appears on the generated GraphQL types."""

    column_name: str
    python_name: str
    graphql_name: str
    annotation: Any
    nullable: bool
    has_default: bool
    computed: bool
    converter: Callable[[Any], Any]

    @property
    def output_annotation(self) -> Any:
        return Optional[self.annotation] if self.nullable else self.annotation

    @property
    def create_annotation(self) -> Any:
        # omitted values fall back to the column default or NULL
        if self.nullable or self.has_default:
            return Optional[self.annotation]
        return self.annotation


def bind_column(column: Column) -> ColumnBinding:
    annotation, converter = scalar_for(column.type)
    has_default = column.server_default is not None or getattr(column, "identity", None) is not None
    return ColumnBinding(
        column_name=column.name,
        python_name=python_identifier(column.name),
        graphql_name=camel_case(column.name),
        annotation=annotation,
        nullable=bool(column.nullable),
        has_default=has_default,
        computed=getattr(column, "computed", None) is not None,
        converter=converter,
    )
