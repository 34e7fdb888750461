"""Deferred query builder and statement execution.

A QueryBuilder is returned by every model operation. It holds the compiled
SQL template and its bound arguments, and accumulates modifiers (fetch,
limit, sort, populate, using_connection, intercept) while it is in the
*building* state. ``build()`` freezes it into a Statement; ``execute()``
builds and runs that statement exactly once:

    records = await Simple.find({"name": ["alice", "bob"]}).sort("id DESC").limit(10).execute()
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .connection import Connection, Pool, Result, lease
from .dialects import Dialect, PostgresDialect
from .errors import AmbiguousMatch, InvalidArgument, QueryAlreadyExecuted
from .interceptor import (
    Handler,
    StorageErrorKind,
    check_handler,
    classify,
    codes_for,
    error_code,
    rejection_for,
)
from .materialize import Record, cast_row, foreign_keys, merge_population
from .model import PRIMARY_KEY, ModelDefinition, ModelRegistry
from .mutation import now_milliseconds, resolve_timestamps


logger = logging.getLogger("plimsoll")

MAX_SAFE_INTEGER = 2 ** 53 - 1
SORT_DIRECTIONS = ("ASC", "DESC")

PoolFactory = Callable[[], Awaitable[Pool]]


class ResultMode(str, enum.Enum):
    """How the outcome of a statement is handed back."""

    RAW = "raw"
    """The storage Result, uncast."""
    SINGLE = "single"
    """One cast record, or None."""
    ROWS = "rows"
    """A list of cast records."""


class BuilderState(str, enum.Enum):
    BUILDING = "building"
    EXECUTING = "executing"
    SETTLED = "settled"


class Population(BaseModel):
    """Plan for loading the record a relation attribute points to."""

    model_config = ConfigDict(frozen=True)

    attribute: str
    target: ModelDefinition
    table_sql: str


class Statement(BaseModel):
    """Immutable, fully compiled statement, ready to be executed.

    `arguments` may still hold PendingTimestamp markers: they are resolved
    when the statement is dispatched. A `sql` of None means there is nothing
    to send to storage.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sql: Optional[str]
    arguments: tuple[Any, ...] = ()
    definition: Optional[ModelDefinition] = None
    mode: ResultMode = ResultMode.RAW
    single_match: bool = False
    population: Optional[Population] = None
    interceptors: dict[str, Any] = Field(default_factory=dict)
    connection: Any = None


class QueryBuilder(BaseModel):
    """Fluent, deferred representation of one pending statement.

    Modifiers return the builder itself and are only accepted before
    execution starts. A builder executes at most once; run the Statement
    returned by ``build()`` through ``execute_statement`` to re-run it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    pool_factory: Any
    """Coroutine function returning the pool to lease connections from."""
    dialect: Dialect = Field(default_factory=PostgresDialect)
    registry: Optional[ModelRegistry] = None
    definition: Optional[ModelDefinition] = None
    """Model whose rows this statement reads or writes; None for native queries."""
    schema_name: Optional[str] = None

    sql: Optional[str] = None
    """Primary SQL template; None when the operation has nothing to write."""
    lookup_sql: Optional[str] = None
    """Read-only substitute for a no-op statement whose results are requested."""
    arguments: list[Any] = Field(default_factory=list)
    returning: bool = True
    """Whether fetch() appends a RETURNING clause (False for SELECT statements)."""
    mode: ResultMode = ResultMode.RAW
    fetch_mode: ResultMode = ResultMode.ROWS
    single_match: bool = False

    fetch_requested: bool = False
    limit_value: Optional[int] = None
    order_by_value: Optional[tuple[str, str]] = None
    connection: Any = None
    population: Optional[Population] = None
    interceptors: dict[str, Any] = Field(default_factory=dict)
    state: BuilderState = BuilderState.BUILDING

    def _ensure_building(self) -> None:
        if self.state is not BuilderState.BUILDING:
            raise QueryAlreadyExecuted(
                f"Query is {self.state.value}; modifiers and execution are only allowed once, before it runs"
            )

    # --- modifiers ---

    def fetch(self) -> QueryBuilder:
        """Return affected or matched records instead of the raw storage result."""
        self._ensure_building()
        self.fetch_requested = True
        return self

    def limit(self, limit: int) -> QueryBuilder:
        """Set LIMIT; `limit` must be a non-negative safe integer."""
        self._ensure_building()
        if isinstance(limit, bool) or not isinstance(limit, int) or not 0 <= limit <= MAX_SAFE_INTEGER:
            raise InvalidArgument(f"Limit must be a non-negative integer, got {limit!r}")
        self.limit_value = limit
        return self

    def sort(self, spec: str) -> QueryBuilder:
        """Set ORDER BY from ``"column"`` or ``"column ASC|DESC"``."""
        self._ensure_building()
        parts = spec.split() if isinstance(spec, str) else []
        if len(parts) not in (1, 2):
            raise InvalidArgument(f"Unexpected ORDER BY clause: {spec!r}")
        direction = parts[1].upper() if len(parts) == 2 else ""
        if direction and direction not in SORT_DIRECTIONS:
            raise InvalidArgument(f"Unexpected direction provided in ORDER BY clause: {spec!r}")
        self.order_by_value = (parts[0], direction)
        return self

    def populate(self, attribute: str) -> QueryBuilder:
        """Replace the foreign key in `attribute` by the related record, after the statement runs."""
        self._ensure_building()
        if self.definition is None or self.registry is None:
            raise InvalidArgument("populate() needs a model-bound query")
        spec = self.definition.attributes.get(attribute)
        if spec is None or not spec.is_relation:
            raise InvalidArgument(
                f"`{attribute}` is not a relation attribute of {self.definition.display_name}"
            )
        target = self.registry.get_model(spec.relation_target)
        self.population = Population(
            attribute=attribute,
            target=target,
            table_sql=self.dialect.qualify_table(target.identifier, self.schema_name),
        )
        return self

    def using_connection(self, connection: Connection) -> QueryBuilder:
        """Run on a caller-owned connection (e.g. inside a transaction); it is never released here."""
        self._ensure_building()
        self.connection = connection
        return self

    def intercept(self, kind: StorageErrorKind | str, handler: Handler) -> QueryBuilder:
        """Replace storage errors of `kind` by what `handler` produces.

        `handler` is a callable (called with the storage error, e.g. an
        exception class), a string, or an exception instance. Unknown kinds
        intercept nothing.
        """
        self._ensure_building()
        handler = check_handler(handler)
        for code in codes_for(kind):
            self.interceptors[code] = handler
        return self

    # --- SQL generation ---

    def sql_order(self) -> str:
        """`` ORDER BY ...`` fragment, or empty string."""
        if self.order_by_value is None:
            return ""
        column, direction = self.order_by_value
        sql = f" ORDER BY {self.dialect.quote_identifier(column)}"
        return f"{sql} {direction}" if direction else sql

    def sql_limit(self) -> str:
        """`` LIMIT n`` fragment, or empty string."""
        if self.limit_value is None:
            return ""
        return f" LIMIT {int(self.limit_value)}"

    def build(self) -> Statement:
        """Freeze the builder and its modifiers into a Statement."""
        mode = self.fetch_mode if self.fetch_requested else self.mode
        sql = self.sql
        if sql is None:
            if mode is not ResultMode.RAW:
                sql = self.lookup_sql
        elif self.fetch_requested and self.returning:
            sql += " RETURNING *"
        if sql is not None:
            sql += self.sql_order() + self.sql_limit()
        return Statement(
            sql=sql,
            arguments=tuple(self.arguments),
            definition=self.definition,
            mode=mode,
            single_match=self.single_match,
            population=self.population,
            interceptors=dict(self.interceptors),
            connection=self.connection,
        )

    # --- execution ---

    async def execute(self) -> Any:
        """Build and run the statement; only allowed once per builder."""
        self._ensure_building()
        statement = self.build()
        self.state = BuilderState.EXECUTING
        try:
            return await execute_statement(statement, self.pool_factory, self.dialect)
        finally:
            self.state = BuilderState.SETTLED


def _cast(definition: Optional[ModelDefinition], row: dict[str, Any]) -> Record:
    if definition is None:
        return dict(row)
    return cast_row(definition, row)


def _empty_outcome(mode: ResultMode) -> Any:
    if mode is ResultMode.ROWS:
        return []
    if mode is ResultMode.SINGLE:
        return None
    return Result()


async def _populate(
    population: Population,
    records: list[Record],
    connection: Connection,
    dialect: Dialect,
    single: bool,
) -> None:
    """Load related records with one follow-up statement and merge them into `records`."""
    keys = foreign_keys(records, population.attribute)
    related: list[Record] = []
    if keys:
        pk = dialect.quote_identifier(PRIMARY_KEY)
        if single:
            sql = f"SELECT * FROM {population.table_sql} WHERE {pk} = $1"
            args = [keys[0]]
        else:
            sql = f"SELECT * FROM {population.table_sql} WHERE {pk} = ANY($1)"
            args = [keys]
        logger.debug("%s -- populate %s", sql, population.attribute)
        result = await connection.execute(sql, args)
        related = [cast_row(population.target, row) for row in result.rows]
    merge_population(records, population.attribute, related)


async def _shape(statement: Statement, result: Result, connection: Connection, dialect: Dialect) -> Any:
    if statement.mode is ResultMode.SINGLE:
        record = _cast(statement.definition, result.rows[0]) if result.rows else None
        if record is not None and statement.population is not None:
            await _populate(statement.population, [record], connection, dialect, single=True)
        return record
    if statement.mode is ResultMode.ROWS:
        records = [_cast(statement.definition, row) for row in result.rows]
        if records and statement.population is not None:
            await _populate(statement.population, records, connection, dialect, single=False)
        return records
    return result


async def execute_statement(
    statement: Statement,
    pool_factory: PoolFactory,
    dialect: Optional[Dialect] = None,
) -> Any:
    """Run `statement` once and shape its outcome according to its mode.

    PendingTimestamps are resolved to a single value captured now. A bound
    connection is used as is; otherwise one is leased from the pool and
    released exactly once. Storage errors are handed to the statement's
    interceptors, then classified.
    """
    if statement.sql is None:
        return _empty_outcome(statement.mode)
    dialect = dialect or PostgresDialect()
    args = resolve_timestamps(statement.arguments, now_milliseconds())
    try:
        pool = None if statement.connection is not None else await pool_factory()
        async with lease(pool, statement.connection) as connection:
            logger.debug("%s -- %d argument(s)", statement.sql, len(args))
            result = await connection.execute(statement.sql, args)
            return await _shape(statement, result, connection, dialect)
    except Exception as error:
        code = error_code(error)
        handler = statement.interceptors.get(code) if code is not None else None
        if handler is not None:
            logger.info("Intercepted storage error %s", code)
            raise rejection_for(handler, error) from error
        if statement.single_match and classify(code) is StorageErrorKind.AMBIGUOUS_MATCH:
            raise AmbiguousMatch(f"More than one row matched: {error}", code=code) from error
        raise


__all__ = [
    "ResultMode",
    "BuilderState",
    "Population",
    "Statement",
    "QueryBuilder",
    "execute_statement",
]
