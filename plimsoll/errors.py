"""Exceptions raised by plimsoll.

Compiler errors are raised synchronously, before anything reaches storage.
Storage errors surface as StorageEngineError (or the driver's own error when
a custom pool does not translate them) and may be remapped by interceptors.
"""

from typing import Any, Optional


class PlimsollError(Exception):
    """Base class for every error raised by this package."""
    pass


class InvalidArgument(PlimsollError, ValueError):
    """Malformed limit, sort, populate or insert arguments."""
    pass


class InvalidCriteria(PlimsollError, ValueError):
    """Malformed criteria, e.g. an operator mapping without exactly one key."""
    pass


class UnsupportedOperator(PlimsollError, ValueError):
    """Operator in a criteria mapping is not one of <, >, <=, >=, !=."""

    def __init__(self, operator: str):
        super().__init__(f"Unrecognised operator in criteria: {operator!r}")
        self.operator = operator


class ModelNotFound(PlimsollError, LookupError):
    """No model registered under the given name."""

    def __init__(self, name: str):
        super().__init__(f"Model not found: {name}")
        self.name = name


class HandlerNotImplemented(PlimsollError, NotImplementedError):
    """Interceptor handler is neither a callable, a string nor an exception."""
    pass


class QueryAlreadyExecuted(PlimsollError, RuntimeError):
    """A builder was modified or executed after it started executing."""
    pass


class StorageEngineError(PlimsollError):
    """Error reported by the storage engine, carrying its native code (SQLSTATE)."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class AmbiguousMatch(StorageEngineError):
    """A single-match statement matched more than one row."""
    pass


class InterceptedError(PlimsollError):
    """Rejection raised when an interceptor produces a value that is not an exception."""

    def __init__(self, value: Any):
        super().__init__(str(value))
        self.value = value


__all__ = [
    "PlimsollError",
    "InvalidArgument",
    "InvalidCriteria",
    "UnsupportedOperator",
    "ModelNotFound",
    "HandlerNotImplemented",
    "QueryAlreadyExecuted",
    "StorageEngineError",
    "AmbiguousMatch",
    "InterceptedError",
]
