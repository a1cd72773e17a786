# pggateway/graphql/index.py
"""
GraphQL application entry point - builds the router serving the generated schema.
"""
import strawberry
from sqlalchemy.ext.asyncio import AsyncEngine
from strawberry.fastapi import GraphQLRouter

from pggateway.core.pydanticConfig.settings import GatewayOptions
from pggateway.graphql.context import build_context_getter


def build_graphql_router(schema: strawberry.Schema, engine: AsyncEngine, options: GatewayOptions) -> GraphQLRouter:
    return GraphQLRouter(
        schema,
        graphql_ide="graphiql" if options.graphiql else None,  # GraphiQL on browser GETs
        context_getter=build_context_getter(engine, options),
    )
