"""Database dialects: identifier quoting and pool construction per engine."""

from .base import Dialect
from .postgres import AsyncpgConnection, AsyncpgPool, PostgresDialect


def get_dialect_for_scheme(scheme: str) -> Dialect:
    """Dialect for a database URL scheme; driver suffixes such as ``+asyncpg`` are ignored."""
    if (scheme or "").partition("+")[0].lower() in PostgresDialect.SUPPORTED_SCHEMA:
        return PostgresDialect()
    raise ValueError(f"Unsupported database scheme: {scheme}")


__all__ = [
    "Dialect",
    "PostgresDialect",
    "AsyncpgPool",
    "AsyncpgConnection",
    "get_dialect_for_scheme",
]
