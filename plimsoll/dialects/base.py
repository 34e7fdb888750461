"""Base Dialect type: subclasses quote identifiers and build pools for each engine."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from pydantic import BaseModel


class Dialect(BaseModel, ABC):
    """Base for database dialects; subclasses implement connect() for a given URL."""

    model_config = {"arbitrary_types_allowed": True}

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this dialect handles (e.g. ('postgresql', 'postgres'))."""

    IDENTIFIER_QUOTE: ClassVar[str] = '"'

    def quote_identifier(self, name: str) -> str:
        """Quote a table or column name, doubling any embedded quote character."""
        q = self.IDENTIFIER_QUOTE
        return q + str(name).replace(q, q + q) + q

    def qualify_table(self, table: str, schema_name: Optional[str] = None) -> str:
        """Quoted table reference, prefixed by its schema when one is given."""
        if schema_name:
            return f"{self.quote_identifier(schema_name)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    @abstractmethod
    async def connect(self, url: str) -> Any:
        """Return a new pool (see plimsoll.connection.Pool) for the given URL."""
        ...  # pylint: disable=unnecessary-ellipsis
