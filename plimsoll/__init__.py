"""plimsoll: model-driven, parameterized SQL for PostgreSQL on asyncio."""

from .attribute import AttributeSpec, AttributeType
from .connection import Result, connect, get_pool
from .datastore import Datastore, Model
from .errors import (
    AmbiguousMatch,
    HandlerNotImplemented,
    InterceptedError,
    InvalidArgument,
    InvalidCriteria,
    ModelNotFound,
    PlimsollError,
    QueryAlreadyExecuted,
    StorageEngineError,
    UnsupportedOperator,
)
from .interceptor import StorageErrorKind
from .model import ModelDefinition, ModelRegistry
from .query import QueryBuilder, Statement, execute_statement
from .transaction import TransactionRunner
