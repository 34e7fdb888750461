import pytest

from plimsoll import Datastore
from tests.helpers import FakePool


MODELS = {
    "Simple": {
        "attributes": {
            "id": {"type": "number", "autoIncrement": True},
            "name": {"type": "string"},
        },
    },
    "Audited": {
        "attributes": {
            "id": {"type": "number", "autoIncrement": True},
            "name": {"type": "string"},
            "created_at": {"type": "number", "autoCreatedAt": True},
            "inserted_at": {"type": "number", "autoCreatedAt": True},
            "updated_at": {"type": "number", "autoUpdatedAt": True},
            "_set_at": {"type": "number", "autoUpdatedAt": True},
        },
    },
    "WithDefaults": {
        "attributes": {
            "id": {"type": "number", "autoIncrement": True},
            "str_no_def": {"type": "string"},
            "str_def": {"type": "string", "defaultsTo": "val"},
            "num_no_def": {"type": "number"},
            "num_def": {"type": "number", "defaultsTo": 77},
        },
    },
    "WithRelationship": {
        "attributes": {
            "id": {"type": "number", "autoIncrement": True},
            "name": {"type": "string"},
            "my_simple": {"model": "Simple"},
        },
    },
    "Settings": {
        "attributes": {
            "id": {"type": "number", "autoIncrement": True},
            "flags": {"type": "json", "defaultsTo": {"beta": []}},
            "enabled": {"type": "boolean"},
            "note": {"type": "string", "allowNull": True},
        },
    },
}


@pytest.fixture(scope="function")
def pool():
    """Fresh scripted pool for each test."""
    return FakePool()


@pytest.fixture(scope="function")
def datastore(pool):
    """Datastore over the scripted pool, with the shared test models."""
    return Datastore(MODELS, pool=pool)
