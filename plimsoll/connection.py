"""Storage collaborator contract and the named pool registry.

plimsoll never talks to a driver directly: it needs a pool exposing
``acquire()``, connections exposing ``execute(sql, args)`` and ``release()``,
all awaitable. Pools are owned by the caller; this module only remembers
them (or the URL to build them from) under a name.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, Field


logger = logging.getLogger("plimsoll")


class Result(BaseModel):
    """Raw outcome of one statement: returned rows and affected row count."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0


@runtime_checkable
class Connection(Protocol):
    """A single, serial connection to the storage engine."""

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> Result:
        ...

    async def release(self) -> None:
        ...


@runtime_checkable
class Pool(Protocol):
    """Process-wide source of connections, bounding in-flight statements."""

    async def acquire(self) -> Connection:
        ...


@asynccontextmanager
async def lease(pool: Pool, bound: Optional[Connection] = None) -> AsyncIterator[Connection]:
    """Yield `bound` untouched, or a connection leased from `pool` and released exactly once."""
    if bound is not None:
        yield bound
        return
    connection = await pool.acquire()
    try:
        yield connection
    finally:
        await connection.release()


_databases: dict[str, str | Callable[[], str] | Pool] = {}
_pools: dict[str, Pool] = {}
_creations: dict[str, asyncio.Future] = {}


def connect(database: str | Callable[[], str] | Pool, name: str = "default") -> None:
    """Register a database URL, a URL factory or a ready pool under `name`."""
    if not isinstance(database, (str, Pool)) and not callable(database):
        raise ValueError(
            "`database` should be a URL `str`, a method returning one, or a pool"
        )
    _databases[name] = database
    _pools.pop(name, None)
    _creations.pop(name, None)


async def _create_pool(name: str, database: str | Callable[[], str]) -> Pool:
    from .dialects import get_dialect_for_scheme
    url = database if isinstance(database, str) else database()
    dialect = get_dialect_for_scheme(urllib.parse.urlparse(url).scheme)
    logger.info("Creating pool `%s` with %s", name, type(dialect).__name__)
    return await dialect.connect(url)


async def get_pool(name: str = "default") -> Pool:
    """Return the pool registered under `name`, creating it from its URL on first use.

    Concurrent first calls for the same name share a single creation.
    """
    if name in _pools:
        return _pools[name]
    try:
        database = _databases[name]
    except KeyError as error:
        raise ValueError(f"No connection configured with name=`{name}`") from error
    if isinstance(database, Pool):
        pool = database
    else:
        creation = _creations.get(name)
        if creation is None:
            creation = _creations[name] = asyncio.ensure_future(_create_pool(name, database))
        try:
            pool = await asyncio.shield(creation)
        finally:
            if creation.done() and _creations.get(name) is creation:
                del _creations[name]
    # connect() may have replaced the entry meanwhile
    if _databases.get(name) is database:
        _pools[name] = pool
    return pool


__all__ = ["Result", "Connection", "Pool", "lease", "connect", "get_pool"]
