"""Unit tests for ingredient list persistence."""

import json

import pytest

from recipe_matcher.models.models import IngredientState, ProcessedIngredient
from recipe_matcher.storage.ingredient_storage import (
    InMemoryStore,
    IngredientStorage,
    JsonFileStore,
    create_store,
)


@pytest.fixture
def ingredients():
    return [
        ProcessedIngredient(name="Tomato", confidence=0.9, freshness=0.9),
        ProcessedIngredient(name="Garlic", state=IngredientState.MINCED),
    ]


class TestIngredientStorage:
    """Test save/load semantics on the in-memory backend."""

    @pytest.fixture
    def storage(self):
        return IngredientStorage(InMemoryStore())

    def test_save_and_load(self, storage, ingredients):
        """A saved list loads back unchanged."""
        assert storage.save("user-1", ingredients) is True
        assert storage.load("user-1") == ingredients

    def test_key_per_session(self, storage, ingredients):
        """Lists are stored under ingredients:<session_key>."""
        storage.save("user-1", ingredients)
        assert storage.load("user-2") == []
        assert IngredientStorage.key_for("user-1") == "ingredients:user-1"

    def test_envelope_is_versioned(self, storage, ingredients):
        storage.save("user-1", ingredients)
        raw = storage.store.load("ingredients:user-1")
        assert raw["schema_version"] == 1
        assert raw["session_key"] == "user-1"

    def test_legacy_bare_list(self, storage):
        """Lists stored without an envelope are still readable."""
        storage.store.save("ingredients:user-1", [{"name": "Basil", "confidence": 1.0}])
        assert [i.name for i in storage.load("user-1")] == ["Basil"]

    def test_unknown_version_is_empty(self, storage):
        storage.store.save(
            "ingredients:user-1",
            {"schema_version": 99, "session_key": "user-1", "ingredients": [{"name": "Basil"}]},
        )
        assert storage.load("user-1") == []

    def test_invalid_payload_is_empty(self, storage):
        storage.store.save("ingredients:user-1", {"schema_version": 1, "ingredients": "nope"})
        assert storage.load("user-1") == []

    def test_unexpected_type_is_empty(self, storage):
        storage.store.save("ingredients:user-1", "garbage")
        assert storage.load("user-1") == []

    def test_clear(self, storage, ingredients):
        storage.save("user-1", ingredients)
        assert storage.clear("user-1") is True
        assert storage.load("user-1") == []


class FailingStore:
    def load(self, key):
        raise OSError("disk gone")

    def save(self, key, value):
        raise OSError("disk full")

    def delete(self, key):
        raise OSError("read-only")


class TestStorageFailures:
    """Storage failures are logged and never propagate."""

    def test_save_failure_returns_false(self, ingredients):
        assert IngredientStorage(FailingStore()).save("user-1", ingredients) is False

    def test_load_failure_returns_empty(self):
        assert IngredientStorage(FailingStore()).load("user-1") == []

    def test_clear_failure_returns_false(self):
        assert IngredientStorage(FailingStore()).clear("user-1") is False


class TestJsonFileStore:
    """Test the file backend."""

    def test_roundtrip(self, tmp_path, ingredients):
        """Lists survive a new storage instance over the same directory."""
        IngredientStorage(JsonFileStore(tmp_path)).save("user-1", ingredients)
        assert IngredientStorage(JsonFileStore(tmp_path)).load("user-1") == ingredients

    def test_key_is_sanitized(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.save("ingredients:user/1", {"a": 1})
        files = [p.name for p in tmp_path.iterdir()]
        assert files == ["ingredients_user_1.json"]
        assert json.loads((tmp_path / files[0]).read_text()) == {"a": 1}

    def test_missing_key(self, tmp_path):
        assert JsonFileStore(tmp_path).load("nothing") is None

    def test_corrupt_file_is_empty(self, tmp_path):
        (tmp_path / "ingredients_user-1.json").write_text("{not json")
        assert IngredientStorage(JsonFileStore(tmp_path)).load("user-1") == []

    def test_delete_missing_is_noop(self, tmp_path):
        JsonFileStore(tmp_path).delete("nothing")


class TestCreateStore:
    """Test backend selection from configuration."""

    def test_memory_default(self, monkeypatch):
        from recipe_matcher.storage import ingredient_storage

        monkeypatch.setattr(ingredient_storage.config, "STORAGE_BACKEND", "memory")
        assert isinstance(create_store(), InMemoryStore)

    def test_file_backend(self, monkeypatch, tmp_path):
        from recipe_matcher.storage import ingredient_storage

        monkeypatch.setattr(ingredient_storage.config, "STORAGE_BACKEND", "file")
        monkeypatch.setattr(ingredient_storage.config, "STORAGE_DIR", str(tmp_path / "store"))
        store = create_store()
        assert isinstance(store, JsonFileStore)
        assert (tmp_path / "store").is_dir()
