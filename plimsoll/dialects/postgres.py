"""PostgreSQL dialect, backed by asyncpg."""

from typing import Any, ClassVar, Sequence

from ..connection import Result
from ..errors import StorageEngineError
from .base import Dialect



def _parse_row_count(status: str | None) -> int:
    """Extract the affected row count from a command tag such as ``UPDATE 3``."""
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


class AsyncpgConnection:
    """Connection adapter over an asyncpg connection leased from an asyncpg pool."""

    def __init__(self, pool, raw):
        self._pool = pool
        self._raw = raw

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> Result:
        import asyncpg  # pylint: disable=import-outside-toplevel,import-error
        try:
            statement = await self._raw.prepare(sql)
            records = await statement.fetch(*args)
        except asyncpg.PostgresError as error:
            raise StorageEngineError(str(error), code=error.sqlstate) from error
        rows = [dict(record) for record in records]
        row_count = _parse_row_count(statement.get_statusmsg())
        return Result(rows=rows, row_count=row_count or len(rows))

    async def release(self) -> None:
        await self._pool.release(self._raw)


class AsyncpgPool:
    """Pool adapter exposing acquire() over an asyncpg pool."""

    def __init__(self, raw_pool):
        self._raw_pool = raw_pool

    async def acquire(self) -> AsyncpgConnection:
        raw = await self._raw_pool.acquire()
        return AsyncpgConnection(self._raw_pool, raw)

    async def close(self) -> None:
        await self._raw_pool.close()


class PostgresDialect(Dialect):
    """Dialect for PostgreSQL (schemes postgresql, postgres)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("postgresql", "postgres")

    async def connect(self, url: str) -> AsyncpgPool:
        import asyncpg  # pylint: disable=import-outside-toplevel,import-error
        raw_pool = await asyncpg.create_pool(dsn=url.replace("+asyncpg", "", 1))
        return AsyncpgPool(raw_pool)
