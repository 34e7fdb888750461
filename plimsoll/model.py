"""Model definitions and the registry holding them."""

from __future__ import annotations

import copy
from typing import Any, Iterator, Mapping

from pydantic import BaseModel, ConfigDict

from .attribute import AttributeSpec
from .errors import ModelNotFound


PRIMARY_KEY = "id"


class ModelDefinition(BaseModel):
    """Schema of one storage table: identity and ordered attributes.

    Built once by ModelRegistry, immutable afterwards.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    display_name: str
    attributes: dict[str, AttributeSpec]

    @classmethod
    def from_document(
        cls,
        display_name: str,
        document: Mapping[str, Any],
        default_attributes: Mapping[str, Any] = None,
    ) -> ModelDefinition:
        """Build a definition from a caller document, merged over the global default attributes."""
        attributes = {
            **copy.deepcopy(dict(default_attributes or {})),
            **copy.deepcopy(dict(document.get("attributes") or {})),
        }
        return cls(
            identifier=display_name.lower(),
            display_name=display_name,
            attributes={
                name: spec if isinstance(spec, AttributeSpec) else AttributeSpec.model_validate(spec)
                for name, spec in attributes.items()
            },
        )

    def get_attribute(self, name: str) -> AttributeSpec:
        """Return the attribute named `name`, raising KeyError if undeclared."""
        try:
            return self.attributes[name]
        except KeyError as error:
            raise KeyError(f"No such attribute for {self.display_name}: {name}") from error


class ModelRegistry(Mapping[str, ModelDefinition]):
    """Read-only collection of model definitions, keyed by display name."""

    def __init__(
        self,
        documents: Mapping[str, Mapping[str, Any]],
        default_attributes: Mapping[str, Any] = None,
    ):
        self._models: dict[str, ModelDefinition] = {
            name: ModelDefinition.from_document(name, document, default_attributes)
            for name, document in documents.items()
        }

    def __getitem__(self, name: str) -> ModelDefinition:
        return self._models[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def get_model(self, name: str) -> ModelDefinition:
        """Return the model whose display name matches `name` case-insensitively."""
        lowered = name.lower()
        for model in self._models.values():
            if model.display_name.lower() == lowered:
                return model
        raise ModelNotFound(name)


__all__ = ["PRIMARY_KEY", "ModelDefinition", "ModelRegistry"]
