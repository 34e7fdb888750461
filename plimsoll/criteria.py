"""Criteria compilation: criteria values to parameterized WHERE fragments.

A criteria value is parsed into a closed set of conditions (one per
attribute), then each condition renders itself with ``$n`` placeholders,
appending its bound value to the shared argument list.

    None or {}                 -> no WHERE (whole table)
    7                          -> WHERE "id" = $1
    {"name": None}             -> WHERE "name" IS NULL
    {"id": [1, 2]}             -> WHERE "id" = ANY($1)
    {"age": {">": 18}}         -> WHERE "age" > $1
    {"name": {"!=": None}}     -> WHERE "name" IS NOT NULL
    {"id": {"!=": [1, 2]}}     -> WHERE NOT ("id" = ANY($1))
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict

from .dialects import Dialect
from .errors import InvalidArgument, InvalidCriteria, UnsupportedOperator
from .model import PRIMARY_KEY


COMPARISON_OPERATORS = ("<", ">", "<=", ">=", "!=")


def bind(args: list[Any], value: Any) -> str:
    """Append `value` to the argument list and return its placeholder."""
    args.append(value)
    return f"${len(args)}"


class _Condition(BaseModel):
    """Test applied to one column."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    column: str

    def render(self, dialect: Dialect, args: list[Any]) -> str:
        raise NotImplementedError("Subclasses must implement `render`")


class Equals(_Condition):
    kind: Literal["equals"] = "equals"
    value: Any

    def render(self, dialect, args):
        return f"{dialect.quote_identifier(self.column)} = {bind(args, self.value)}"


class NotEquals(_Condition):
    kind: Literal["not_equals"] = "not_equals"
    value: Any

    def render(self, dialect, args):
        return f"{dialect.quote_identifier(self.column)} != {bind(args, self.value)}"


class In(_Condition):
    kind: Literal["in"] = "in"
    values: list[Any]

    def render(self, dialect, args):
        return f"{dialect.quote_identifier(self.column)} = ANY({bind(args, self.values)})"


class NotIn(_Condition):
    kind: Literal["not_in"] = "not_in"
    values: list[Any]

    def render(self, dialect, args):
        return f"NOT ({dialect.quote_identifier(self.column)} = ANY({bind(args, self.values)}))"


class IsNull(_Condition):
    kind: Literal["is_null"] = "is_null"

    def render(self, dialect, args):
        return f"{dialect.quote_identifier(self.column)} IS NULL"


class IsNotNull(_Condition):
    kind: Literal["is_not_null"] = "is_not_null"

    def render(self, dialect, args):
        return f"{dialect.quote_identifier(self.column)} IS NOT NULL"


class Compare(_Condition):
    """Ordering comparison; `operator` is one of <, >, <=, >=."""

    kind: Literal["compare"] = "compare"
    operator: Literal["<", ">", "<=", ">="]
    value: Any

    def render(self, dialect, args):
        return f"{dialect.quote_identifier(self.column)} {self.operator} {bind(args, self.value)}"


Condition = Union[Equals, NotEquals, In, NotIn, IsNull, IsNotNull, Compare]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def parse_condition(column: str, value: Any) -> Condition:
    """Turn one `column: value` criteria entry into a condition."""
    if value is None:
        return IsNull(column=column)
    if _is_sequence(value):
        return In(column=column, values=list(value))
    if isinstance(value, Mapping):
        if len(value) != 1:
            raise InvalidCriteria(
                f"Operator mapping for `{column}` must have exactly one key, got {dict(value)!r}"
            )
        (operator, operand), = value.items()
        if operator not in COMPARISON_OPERATORS:
            raise UnsupportedOperator(operator)
        if operator == "!=":
            if operand is None:
                return IsNotNull(column=column)
            if _is_sequence(operand):
                return NotIn(column=column, values=list(operand))
            return NotEquals(column=column, value=operand)
        return Compare(column=column, operator=operator, value=operand)
    return Equals(column=column, value=value)


def parse_criteria(criteria: Any) -> list[Condition]:
    """Parse a whole criteria value; an empty list means the whole table."""
    if criteria is None:
        return []
    if isinstance(criteria, Mapping):
        return [parse_condition(column, value) for column, value in criteria.items()]
    if _is_sequence(criteria):
        raise InvalidArgument(f"Criteria must be a mapping or a primary key, got {criteria!r}")
    return [Equals(column=PRIMARY_KEY, value=criteria)]


def compile_where(criteria: Any, args: list[Any], dialect: Dialect) -> str:
    """Compile criteria to ``WHERE ...`` (or ``""``), appending bound values to `args`."""
    conditions = parse_criteria(criteria)
    if not conditions:
        return ""
    return "WHERE " + " AND ".join(c.render(dialect, args) for c in conditions)


def compile_single_match(table_sql: str, criteria: Any, args: list[Any], dialect: Dialect) -> str:
    """Compile criteria into a primary-key subselect that the engine forbids from matching twice."""
    pk = dialect.quote_identifier(PRIMARY_KEY)
    subselect = " ".join(
        part for part in (f"SELECT {pk} FROM {table_sql}", compile_where(criteria, args, dialect)) if part
    )
    return f"WHERE {pk} = ({subselect})"


__all__ = [
    "COMPARISON_OPERATORS",
    "Condition",
    "Equals",
    "NotEquals",
    "In",
    "NotIn",
    "IsNull",
    "IsNotNull",
    "Compare",
    "bind",
    "parse_condition",
    "parse_criteria",
    "compile_where",
    "compile_single_match",
]
