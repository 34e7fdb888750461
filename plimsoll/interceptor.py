"""Mapping between symbolic storage error kinds and native engine codes.

Native codes (PostgreSQL SQLSTATE strings) are translated to kinds once, at
the boundary; everything above works with StorageErrorKind.
"""

from __future__ import annotations

import enum
from typing import Any, Callable, Optional, Union

from .errors import HandlerNotImplemented, InterceptedError


class StorageErrorKind(str, enum.Enum):
    """Storage failures callers may intercept."""

    UNIQUE = "E_UNIQUE"
    AMBIGUOUS_MATCH = "E_AMBIGUOUS_MATCH"


_NATIVE_CODES: dict[StorageErrorKind, frozenset[str]] = {
    StorageErrorKind.UNIQUE: frozenset({"23505"}),
    StorageErrorKind.AMBIGUOUS_MATCH: frozenset({"21000"}),
}

Handler = Union[Callable[[BaseException], Any], str, BaseException]


def codes_for(kind: Union[StorageErrorKind, str]) -> frozenset[str]:
    """Native codes for `kind`; unknown kinds map to an empty set (nothing intercepted)."""
    try:
        kind = StorageErrorKind(kind)
    except ValueError:
        return frozenset()
    return _NATIVE_CODES[kind]


def classify(code: Any) -> Optional[StorageErrorKind]:
    """Kind of a native error code, or None when it is not one we know."""
    if code is None:
        return None
    code = str(code)
    for kind, codes in _NATIVE_CODES.items():
        if code in codes:
            return kind
    return None


def error_code(error: BaseException) -> Optional[str]:
    """Native code carried by a storage error (``code``, ``sqlstate`` or ``pgcode``)."""
    for name in ("code", "sqlstate", "pgcode"):
        code = getattr(error, name, None)
        if code is not None:
            return str(code)
    return None


def check_handler(handler: Any) -> Handler:
    """Return `handler` if it is a supported shape, else raise HandlerNotImplemented."""
    if callable(handler) or isinstance(handler, (str, BaseException)):
        return handler
    raise HandlerNotImplemented(
        f"No handling for interceptor of this type yet: {handler!r}"
    )


def rejection_for(handler: Handler, error: BaseException) -> BaseException:
    """Exception to raise in place of `error`, as produced by `handler`."""
    value = handler(error) if callable(handler) else handler
    if isinstance(value, BaseException):
        return value
    return InterceptedError(value)


__all__ = [
    "StorageErrorKind",
    "Handler",
    "codes_for",
    "classify",
    "error_code",
    "check_handler",
    "rejection_for",
]
