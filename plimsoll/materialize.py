"""Turning raw rows into records, and merging populated relations into them."""

from __future__ import annotations

import datetime
import decimal
from typing import Any, Iterable, Mapping, Optional

from .model import PRIMARY_KEY, ModelDefinition


Record = dict[str, Any]

# Legacy: these columns always come back as numbers, whatever their declared type.
NUMERIC_TIMESTAMP_COLUMNS = ("created_at", "updated_at")


def _to_number(value: Any) -> Any:
    """Coerce a stored timestamp to a number (epoch milliseconds for datetimes)."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return int(value.timestamp() * 1000)
    try:
        number = decimal.Decimal(str(value).strip())
    except decimal.InvalidOperation:
        return value
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def cast_row(model: ModelDefinition, row: Optional[Mapping[str, Any]]) -> Optional[Record]:
    """Return `row` as a record: forbidden nulls zero-filled, legacy timestamps numeric."""
    if row is None:
        return None
    record = dict(row)
    for name in NUMERIC_TIMESTAMP_COLUMNS:
        if record.get(name):
            record[name] = _to_number(record[name])
    for name, value in record.items():
        if value is not None:
            continue
        attribute = model.attributes.get(name)
        if attribute is not None and attribute.coerces_null:
            record[name] = attribute.zero_value
    return record


def foreign_keys(records: Iterable[Record], attribute: str) -> list[Any]:
    """Distinct non-null values of `attribute` across `records`, in first-seen order."""
    keys = []
    for record in records:
        key = record.get(attribute)
        if key is not None and key not in keys:
            keys.append(key)
    return keys


def merge_population(
    records: list[Record],
    attribute: str,
    related: Iterable[Record],
) -> list[Record]:
    """Replace each record's foreign key in `attribute` by the related record it points to.

    Keys with no related record (including null keys) become None.
    """
    by_key: dict[Any, Record] = {r[PRIMARY_KEY]: r for r in related}
    for record in records:
        record[attribute] = by_key.get(record.get(attribute))
    return records


__all__ = [
    "Record",
    "NUMERIC_TIMESTAMP_COLUMNS",
    "cast_row",
    "foreign_keys",
    "merge_population",
]
