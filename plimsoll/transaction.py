"""Transactions: BEGIN/COMMIT/ROLLBACK around a unit of work on one leased connection."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from .connection import Connection, Pool, lease


logger = logging.getLogger("plimsoll")

T = TypeVar("T")


class TransactionRunner:
    """Run units of work inside a database transaction.

    The connection is leased from the pool for the duration of the
    transaction and released exactly once, whatever the outcome. Statements
    belonging to the transaction must be bound to the yielded connection
    (``builder.using_connection(connection)``).
    """

    def __init__(self, pool_factory: Callable[[], Awaitable[Pool]]):
        """
        Initialize the transaction runner.

        Args:
            pool_factory: A coroutine function returning the pool to lease from
        """
        self._pool_factory = pool_factory

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[Connection]:
        """
        Context manager for a database transaction.

        Yields:
            Connection: the connection every statement of the transaction must use
        """
        pool = await self._pool_factory()
        async with lease(pool) as connection:
            logger.debug("BEGIN")
            await connection.execute("BEGIN")
            try:
                yield connection
                logger.debug("COMMIT")
                await connection.execute("COMMIT")
            except BaseException:
                logger.debug("ROLLBACK")
                try:
                    await connection.execute("ROLLBACK")
                except Exception:  # pylint: disable=broad-exception-caught
                    # the original error is re-raised below
                    logger.exception("ROLLBACK failed")
                raise

    async def run(self, unit_of_work: Callable[[Connection], Awaitable[T]]) -> T:
        """Run `unit_of_work(connection)` in a transaction and return its result.

        On failure the transaction is rolled back once and the original error re-raised.
        """
        async with self.begin() as connection:
            return await unit_of_work(connection)


__all__ = ["TransactionRunner"]
