"""Attribute metadata for models.

Each model attribute is described by an AttributeSpec, built from the
caller's attribute document (camelCase keys such as ``allowNull`` or
``defaultsTo`` are accepted alongside snake_case names). AttributeSpec holds
the type, nullability, default and auto-value flags, and knows how to
serialize a value for binding and which zero value replaces a forbidden null.
"""

from __future__ import annotations

import enum
import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AttributeType(str, enum.Enum):
    """Declared type of an attribute."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    REF = "ref"


# Values substituted for null when an attribute does not allow null.
# json, ref and relation attributes are absent on purpose: they stay null.
ZERO_VALUES: dict[AttributeType, Any] = {
    AttributeType.STRING: "",
    AttributeType.NUMBER: 0,
    AttributeType.BOOLEAN: False,
}


class AttributeSpec(BaseModel):
    """Metadata for a single attribute: type, nullability, defaults, auto-values, relation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    type: Optional[AttributeType] = None
    allow_null: bool = Field(default=False, alias="allowNull")
    defaults_to: Any = Field(default=None, alias="defaultsTo")
    has_default: bool = False
    auto_increment: bool = Field(default=False, alias="autoIncrement")
    auto_created_at: bool = Field(default=False, alias="autoCreatedAt")
    auto_updated_at: bool = Field(default=False, alias="autoUpdatedAt")
    relation_target: Optional[str] = Field(default=None, alias="model")

    @model_validator(mode="before")
    @classmethod
    def _normalize_document(cls, data: Any) -> Any:
        """Remember whether a default was declared and type untyped attributes as ``ref``."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "defaultsTo" in data or "defaults_to" in data:
            data["has_default"] = True
        if data.get("type") is None:
            data["type"] = AttributeType.REF
        return data

    @property
    def is_relation(self) -> bool:
        """True if this attribute holds the primary key of a record of another model."""
        return self.relation_target is not None

    @property
    def zero_value(self) -> Any:
        """Value replacing null for this attribute, or None when null is kept."""
        if self.allow_null or self.is_relation:
            return None
        return ZERO_VALUES.get(self.type)

    @property
    def coerces_null(self) -> bool:
        """True if a null for this attribute is replaced by the type's zero value."""
        return self.zero_value is not None

    def serialize(self, value: Any) -> Any:
        """Convert a Python value to the form bound as a statement argument."""
        if self.type == AttributeType.JSON and value is not None:
            return json.dumps(value, ensure_ascii=False)
        return value


__all__ = ["AttributeType", "AttributeSpec", "ZERO_VALUES"]
