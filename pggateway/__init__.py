"""Auto-generated GraphQL API over an existing PostgreSQL schema."""

__version__ = "1.0.0"
