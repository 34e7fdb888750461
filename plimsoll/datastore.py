"""Datastore: models bound to a pool, and the operations they expose.

    datastore = Datastore(
        {"Simple": {"attributes": {"id": {"type": "number", "autoIncrement": True},
                                   "name": {"type": "string"}}}},
        pool=pool,
    )
    Simple = datastore.models["Simple"]
    await Simple.create_each([{"name": "alice"}, {"name": "bob"}]).execute()
    records = await Simple.find().execute()
"""

from __future__ import annotations

import logging
from typing import Any, AsyncContextManager, Awaitable, Callable, Iterable, Mapping, Optional, Sequence, TypeVar

from .connection import Connection, Pool, get_pool
from .criteria import compile_single_match, compile_where
from .dialects import Dialect, PostgresDialect
from .mutation import apply_defaults, build_insert, build_update_set
from .model import ModelDefinition, ModelRegistry
from .query import QueryBuilder, ResultMode
from .transaction import TransactionRunner


logger = logging.getLogger("plimsoll")

T = TypeVar("T")


def _join(*parts: str) -> str:
    return " ".join(part for part in parts if part)


class PendingUpdate:
    """First half of ``update(criteria).set(props)``."""

    def __init__(self, model: Model, criteria: Any, single: bool, schema_name: Optional[str]):
        self._model = model
        self._criteria = criteria
        self._single = single
        self._schema_name = schema_name

    def set(self, props: Mapping[str, Any]) -> QueryBuilder:
        """Compile the UPDATE of the matched rows with `props`.

        An empty `props` writes nothing; if results are requested, the matched
        rows are read instead.
        """
        return self._model._compile_update(self._criteria, props, self._single, self._schema_name)


class Model:
    """One model bound to a datastore; every operation returns a QueryBuilder to execute."""

    def __init__(self, datastore: Datastore, definition: ModelDefinition):
        self._datastore = datastore
        self.definition = definition

    def __repr__(self) -> str:
        return f"<Model {self.definition.display_name}>"

    @property
    def display_name(self) -> str:
        return self.definition.display_name

    @property
    def table_name(self) -> str:
        return self.definition.identifier

    identity = table_name

    @property
    def attributes(self):
        return self.definition.attributes

    def _table(self, schema_name: Optional[str]) -> str:
        return self._datastore.dialect.qualify_table(self.table_name, schema_name)

    def _builder(self, sql: Optional[str], args: list[Any], schema_name: Optional[str], **options) -> QueryBuilder:
        return QueryBuilder(
            pool_factory=self._datastore.get_pool,
            dialect=self._datastore.dialect,
            registry=self._datastore.registry,
            definition=self.definition,
            schema_name=schema_name,
            sql=sql,
            arguments=args,
            **options,
        )

    def _select_list(self, select: Optional[Sequence[str]]) -> str:
        if not select:
            return "*"
        return ", ".join(self._datastore.dialect.quote_identifier(column) for column in select)

    # INSERT

    def create(self, props: Mapping[str, Any], *, schema_name: Optional[str] = None) -> QueryBuilder:
        """Insert one row; ``.fetch()`` returns the created record."""
        props = apply_defaults(self.definition, props, creating=True)
        args: list[Any] = []
        columns, values = build_insert(self.definition, [props], args, self._datastore.dialect)
        table = self._table(schema_name)
        if columns:
            sql = f"INSERT INTO {table} {columns} VALUES {values}"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        return self._builder(sql, args, schema_name, mode=ResultMode.RAW, fetch_mode=ResultMode.SINGLE)

    def create_each(self, props_list: Iterable[Mapping[str, Any]], *, schema_name: Optional[str] = None) -> QueryBuilder:
        """Insert several rows with one statement, sharing one timestamp; ``.fetch()`` returns the records."""
        props_list = [apply_defaults(self.definition, props, creating=True) for props in props_list]
        args: list[Any] = []
        sql = None
        if props_list:
            columns, values = build_insert(self.definition, props_list, args, self._datastore.dialect)
            sql = f"INSERT INTO {self._table(schema_name)} {columns} VALUES {values}"
        return self._builder(sql, args, schema_name, mode=ResultMode.RAW, fetch_mode=ResultMode.ROWS)

    # SELECT

    def find(
        self,
        criteria: Any = None,
        *,
        select: Optional[Sequence[str]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
        schema_name: Optional[str] = None,
    ) -> QueryBuilder:
        """Select every row matching `criteria` (the whole table when it is empty)."""
        args: list[Any] = []
        sql = _join(
            f"SELECT {self._select_list(select)} FROM {self._table(schema_name)}",
            compile_where(criteria, args, self._datastore.dialect),
        )
        builder = self._builder(
            sql, args, schema_name, mode=ResultMode.ROWS, fetch_mode=ResultMode.ROWS, returning=False
        )
        if sort is not None:
            builder.sort(sort)
        if limit is not None:
            builder.limit(limit)
        return builder

    def find_one(
        self,
        criteria: Any = None,
        *,
        select: Optional[Sequence[str]] = None,
        schema_name: Optional[str] = None,
    ) -> QueryBuilder:
        """Select the single row matching `criteria`: None if none, AmbiguousMatch if several."""
        args: list[Any] = []
        table = self._table(schema_name)
        sql = _join(
            f"SELECT {self._select_list(select)} FROM {table}",
            compile_single_match(table, criteria, args, self._datastore.dialect),
        )
        return self._builder(
            sql, args, schema_name,
            mode=ResultMode.SINGLE, fetch_mode=ResultMode.SINGLE, returning=False, single_match=True,
        )

    # UPDATE

    def update(self, criteria: Any = None, *, schema_name: Optional[str] = None) -> PendingUpdate:
        """Start an update of every row matching `criteria`; finish it with ``.set(props)``."""
        return PendingUpdate(self, criteria, single=False, schema_name=schema_name)

    def update_one(self, criteria: Any = None, *, schema_name: Optional[str] = None) -> PendingUpdate:
        """Start an update of the single row matching `criteria`; it always returns the record."""
        return PendingUpdate(self, criteria, single=True, schema_name=schema_name)

    def _compile_update(
        self,
        criteria: Any,
        props: Mapping[str, Any],
        single: bool,
        schema_name: Optional[str],
    ) -> QueryBuilder:
        dialect = self._datastore.dialect
        props = apply_defaults(self.definition, props)
        table = self._table(schema_name)
        args: list[Any] = []
        set_sql = build_update_set(self.definition, props, args, dialect)
        if single:
            where = compile_single_match(table, criteria, args, dialect)
        else:
            where = compile_where(criteria, args, dialect)
        sql = _join(f"UPDATE {table} SET {set_sql}", where) if set_sql else None
        builder = self._builder(
            sql, args, schema_name,
            lookup_sql=_join(f"SELECT * FROM {table}", where),
            mode=ResultMode.SINGLE if single else ResultMode.RAW,
            fetch_mode=ResultMode.SINGLE if single else ResultMode.ROWS,
            single_match=single,
        )
        if single:
            builder.fetch()
        return builder

    # DELETE

    def destroy(self, criteria: Any = None, *, schema_name: Optional[str] = None) -> QueryBuilder:
        """Delete every row matching `criteria`; no criteria deletes the whole table."""
        args: list[Any] = []
        sql = _join(
            f"DELETE FROM {self._table(schema_name)}",
            compile_where(criteria, args, self._datastore.dialect),
        )
        return self._builder(sql, args, schema_name, mode=ResultMode.RAW, fetch_mode=ResultMode.ROWS)

    def destroy_one(self, criteria: Any = None, *, schema_name: Optional[str] = None) -> QueryBuilder:
        """Delete the single row matching `criteria`; no match deletes nothing."""
        args: list[Any] = []
        table = self._table(schema_name)
        sql = _join(
            f"DELETE FROM {table}",
            compile_single_match(table, criteria, args, self._datastore.dialect),
        )
        return self._builder(
            sql, args, schema_name, mode=ResultMode.RAW, fetch_mode=ResultMode.SINGLE, single_match=True
        )


class Datastore:
    """Models, native queries and transactions over one pool.

    The pool is either passed explicitly or looked up by `connection_name`
    in the registry filled by ``plimsoll.connect()``; it is never closed here.
    """

    def __init__(
        self,
        models: Mapping[str, Mapping[str, Any]],
        default_attributes: Optional[Mapping[str, Any]] = None,
        pool: Optional[Pool] = None,
        connection_name: str = "default",
        dialect: Optional[Dialect] = None,
    ):
        self._pool = pool
        self.connection_name = connection_name
        self.dialect = dialect or PostgresDialect()
        self.registry = ModelRegistry(models, default_attributes)
        self.models: dict[str, Model] = {
            name: Model(self, definition) for name, definition in self.registry.items()
        }
        self._transactions = TransactionRunner(self.get_pool)
        logger.debug("Datastore with models: %s", ", ".join(self.models))

    async def get_pool(self) -> Pool:
        """The pool statements lease their connections from."""
        if self._pool is None:
            self._pool = await get_pool(self.connection_name)
        return self._pool

    def get_model(self, name: str) -> Model:
        """Model whose display name matches `name`, case-insensitively."""
        return self.models[self.registry.get_model(name).display_name]

    def send_native_query(self, sql: str, args: Optional[Sequence[Any]] = None) -> QueryBuilder:
        """Raw SQL statement; returns the storage Result, or rows (uncast) with ``.fetch()``."""
        return QueryBuilder(
            pool_factory=self.get_pool,
            dialect=self.dialect,
            registry=self.registry,
            sql=sql,
            arguments=list(args or ()),
            mode=ResultMode.RAW,
            fetch_mode=ResultMode.ROWS,
            returning=False,
        )

    async def transaction(self, unit_of_work: Callable[[Connection], Awaitable[T]]) -> T:
        """Run `unit_of_work(connection)` between BEGIN and COMMIT (ROLLBACK on failure)."""
        return await self._transactions.run(unit_of_work)

    def begin(self) -> AsyncContextManager[Connection]:
        """``async with datastore.begin() as connection:`` form of transaction()."""
        return self._transactions.begin()


__all__ = ["Datastore", "Model", "PendingUpdate"]
