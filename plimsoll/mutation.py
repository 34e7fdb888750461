"""Mutation compilation: defaults, auto-timestamps, INSERT VALUES and UPDATE SET fragments."""

from __future__ import annotations

import copy
import time
from typing import Any, Mapping, Sequence

from .criteria import bind
from .dialects import Dialect
from .errors import InvalidArgument
from .model import ModelDefinition


class PendingTimestamp:
    """Argument placeholder for "now", resolved once per statement when it is dispatched."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PENDING_TIMESTAMP"

    def __deepcopy__(self, memo):
        return self


PENDING_TIMESTAMP = PendingTimestamp()


def now_milliseconds() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def resolve_timestamps(args: Sequence[Any], now: int) -> list[Any]:
    """Replace every PendingTimestamp in `args` by `now`."""
    return [now if isinstance(arg, PendingTimestamp) else arg for arg in args]


def apply_defaults(model: ModelDefinition, props: Mapping[str, Any], creating: bool = False) -> dict[str, Any]:
    """Return a copy of `props` with declared defaults, auto-timestamps and zero values applied."""
    props = dict(props)
    for name, attribute in model.attributes.items():
        if creating and name not in props and attribute.has_default:
            props[name] = copy.deepcopy(attribute.defaults_to)
        if not ((creating and name not in props) or (name in props and props[name] is None)):
            continue
        if attribute.auto_created_at:
            if creating:
                props[name] = PENDING_TIMESTAMP
        elif attribute.auto_updated_at:
            props[name] = PENDING_TIMESTAMP
        elif attribute.auto_increment:
            continue
        elif attribute.coerces_null:
            props[name] = attribute.zero_value
    return props


def _serialize(model: ModelDefinition, name: str, value: Any) -> Any:
    attribute = model.attributes.get(name)
    if attribute is None or isinstance(value, PendingTimestamp):
        return value
    return attribute.serialize(value)


def build_insert(
    model: ModelDefinition,
    props_list: Sequence[Mapping[str, Any]],
    args: list[Any],
    dialect: Dialect,
) -> tuple[str, str]:
    """Build ``("col", ...)`` and ``($1, ...), ($2, ...)`` fragments for one multi-row INSERT.

    Every row must carry the same columns; an empty column set yields ``("", "")``
    and is only valid for a single row (``DEFAULT VALUES``).
    """
    if not props_list:
        raise InvalidArgument("Cannot build an INSERT without rows")
    columns = list(props_list[0])
    for props in props_list[1:]:
        if set(props) != set(columns):
            raise InvalidArgument(
                f"All rows inserted together must share the same columns: "
                f"{sorted(columns)} != {sorted(props)}"
            )
    if not columns:
        if len(props_list) > 1:
            raise InvalidArgument("Cannot insert several rows without any column")
        return "", ""
    columns_sql = "(" + ", ".join(dialect.quote_identifier(c) for c in columns) + ")"
    tuples = []
    for props in props_list:
        placeholders = [bind(args, _serialize(model, c, props[c])) for c in columns]
        tuples.append("(" + ", ".join(placeholders) + ")")
    return columns_sql, ", ".join(tuples)


def build_update_set(
    model: ModelDefinition,
    props: Mapping[str, Any],
    args: list[Any],
    dialect: Dialect,
) -> str:
    """Build ``"col" = $n, ...`` for an UPDATE; empty `props` yields ``""``."""
    return ", ".join(
        f"{dialect.quote_identifier(name)} = {bind(args, _serialize(model, name, value))}"
        for name, value in props.items()
    )


__all__ = [
    "PendingTimestamp",
    "PENDING_TIMESTAMP",
    "now_milliseconds",
    "resolve_timestamps",
    "apply_defaults",
    "build_insert",
    "build_update_set",
]
