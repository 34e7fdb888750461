"""Shared test helpers: a scripted, in-memory stand-in for the storage pool."""

from typing import Any, Sequence

from plimsoll.connection import Result
from plimsoll.errors import StorageEngineError


TRANSACTION_CONTROL = ("BEGIN", "COMMIT", "ROLLBACK")


class FakeConnection:
    """Connection recording statements and answering from its pool's script."""

    def __init__(self, pool: "FakePool"):
        self.pool = pool
        self.statements: list[tuple[str, list[Any]]] = []
        self.released = 0

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> Result:
        self.statements.append((sql, list(args)))
        self.pool.statements.append((sql, list(args)))
        return self.pool.respond(sql)

    async def release(self) -> None:
        self.released += 1
        self.pool.releases += 1


class FakePool:
    """Pool answering statements in order from `responses`.

    Each response is a Result, a list of row dicts, or an exception to raise.
    Transaction control statements answer an empty Result without consuming
    a response, unless listed in `failures`.
    """

    def __init__(self, *responses: Any, failures: dict[str, BaseException] = None):
        self.responses = list(responses)
        self.failures = dict(failures or {})
        self.statements: list[tuple[str, list[Any]]] = []
        self.connections: list[FakeConnection] = []
        self.acquisitions = 0
        self.releases = 0

    async def acquire(self) -> FakeConnection:
        self.acquisitions += 1
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection

    def respond(self, sql: str) -> Result:
        if sql in self.failures:
            raise self.failures[sql]
        if sql in TRANSACTION_CONTROL:
            return Result()
        response = self.responses.pop(0) if self.responses else Result()
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, list):
            return Result(rows=response, row_count=len(response))
        return response

    @property
    def sqls(self) -> list[str]:
        return [sql for sql, _ in self.statements]


def unique_violation() -> StorageEngineError:
    return StorageEngineError('duplicate key value violates unique constraint "simple_name_key"', code="23505")


def cardinality_violation() -> StorageEngineError:
    return StorageEngineError("more than one row returned by a subquery used as an expression", code="21000")
