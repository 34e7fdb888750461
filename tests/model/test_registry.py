"""Tests for plimsoll.model: ModelDefinition construction and ModelRegistry lookup."""

import pytest

from plimsoll.attribute import AttributeSpec
from plimsoll.errors import ModelNotFound
from plimsoll.model import ModelDefinition, ModelRegistry


def test_identifier_is_lower_cased_display_name():
    definition = ModelDefinition.from_document("Thing", {"attributes": {}})
    assert definition.identifier == "thing"
    assert definition.display_name == "Thing"


def test_attributes_keep_declaration_order():
    definition = ModelDefinition.from_document("Thing", {"attributes": {
        "b": {"type": "string"},
        "a": {"type": "number"},
        "c": {"type": "boolean"},
    }})
    assert list(definition.attributes) == ["b", "a", "c"]
    assert all(isinstance(a, AttributeSpec) for a in definition.attributes.values())


def test_default_attributes_merged_under_model_attributes():
    defaults = {
        "created_timestamp": {"type": "number", "autoCreatedAt": True},
        "name": {"type": "number"},
    }
    definition = ModelDefinition.from_document(
        "Thing", {"attributes": {"name": {"type": "string"}}}, defaults
    )
    assert definition.attributes["created_timestamp"].auto_created_at
    assert definition.attributes["name"].type.value == "string"


def test_default_attributes_are_not_shared_between_models():
    defaults = {"tags": {"type": "json", "defaultsTo": []}}
    registry = ModelRegistry({"A": {}, "B": {}}, defaults)
    assert registry["A"].attributes["tags"].defaults_to is not registry["B"].attributes["tags"].defaults_to
    assert defaults["tags"]["defaultsTo"] == []


def test_caller_documents_are_not_modified():
    document = {"attributes": {"name": {"type": "string"}}}
    ModelRegistry({"Thing": document}, {"id": {"type": "number"}})
    assert document == {"attributes": {"name": {"type": "string"}}}


def test_get_attribute_unknown():
    definition = ModelDefinition.from_document("Thing", {"attributes": {}})
    with pytest.raises(KeyError, match="No such attribute for Thing: nope"):
        definition.get_attribute("nope")


class TestModelRegistry:

    def test_mapping_interface(self):
        registry = ModelRegistry({"Simple": {}, "Other": {}})
        assert len(registry) == 2
        assert list(registry) == ["Simple", "Other"]
        assert registry["Simple"].identifier == "simple"

    @pytest.mark.parametrize("name", ["Simple", "simple", "SIMPLE", "sImPlE"])
    def test_get_model_is_case_insensitive(self, name):
        registry = ModelRegistry({"Simple": {}})
        assert registry.get_model(name).display_name == "Simple"

    def test_get_model_unknown(self):
        registry = ModelRegistry({"Simple": {}})
        with pytest.raises(ModelNotFound, match="Model not found: Missing"):
            registry.get_model("Missing")

    def test_definitions_are_immutable(self):
        registry = ModelRegistry({"Simple": {}})
        with pytest.raises(Exception):
            registry["Simple"].identifier = "other"
