"""Ingredient list persistence.

The engine only needs ``load(key)`` / ``save(key, value)`` semantics from a
key-value store. Two backends ship here:

- InMemoryStore: process-local dict, used by tests and stateless runs
- JsonFileStore: one JSON document per key under STORAGE_DIR

IngredientStorage wraps a store and persists each session's ingredient list
inside a versioned StoredIngredients envelope.
"""

import json
import re
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from recipe_matcher.models.models import ProcessedIngredient, StoredIngredients
from recipe_matcher.utils.config import config
from recipe_matcher.utils.logger import logger

INGREDIENTS_KEY_PREFIX = "ingredients"
CURRENT_SCHEMA_VERSION = 1


class KeyValueStore(Protocol):
    """Minimal storage contract expected by the engine."""

    def load(self, key: str) -> Optional[Any]: ...

    def save(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Dict-backed store. Values are stored as JSON-compatible data."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def load(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def save(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Store that keeps one JSON file per key inside a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe_key = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe_key}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(value, f)
        tmp_path.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def create_store() -> KeyValueStore:
    """Build the store selected by STORAGE_BACKEND."""
    if config.STORAGE_BACKEND == "file":
        logger.info(f"Using file storage: {config.STORAGE_DIR}")
        return JsonFileStore(config.STORAGE_DIR)
    logger.debug("Using in-memory storage")
    return InMemoryStore()


class IngredientStorage:
    """Save and load ingredient lists per session key.

    Storage failures never propagate: saves report success as a bool and
    loads degrade to an empty list.
    """

    def __init__(self, store: Optional[KeyValueStore] = None) -> None:
        self.store = store if store is not None else create_store()

    @staticmethod
    def key_for(session_key: str) -> str:
        return f"{INGREDIENTS_KEY_PREFIX}:{session_key}"

    def save(self, session_key: str, ingredients: list[ProcessedIngredient]) -> bool:
        """Persist the ingredient list for a session.

        Args:
            session_key: User/device identifier owning the list.
            ingredients: Current processed ingredient list.

        Returns:
            True if the store accepted the write, False otherwise (logged).
        """
        envelope = StoredIngredients(
            schema_version=CURRENT_SCHEMA_VERSION,
            session_key=session_key,
            ingredients=ingredients,
        )
        try:
            self.store.save(self.key_for(session_key), envelope.model_dump(mode="json"))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving ingredients: {e}", extra={"session_key": session_key})
            return False
        logger.debug(f"Saved ingredients: {len(ingredients)}", extra={"session_key": session_key})
        return True

    def load(self, session_key: str) -> list[ProcessedIngredient]:
        """Load the ingredient list for a session.

        Returns:
            Stored ingredients, or [] when nothing is stored, the payload is
            unreadable, or it was written by an unknown schema version.
        """
        try:
            raw = self.store.load(self.key_for(session_key))
        except (OSError, ValueError) as e:
            logger.error(f"Error getting stored ingredients: {e}", extra={"session_key": session_key})
            return []

        if raw is None:
            return []

        # Lists written before the envelope existed carry no version
        if isinstance(raw, list):
            raw = {"schema_version": CURRENT_SCHEMA_VERSION, "session_key": session_key, "ingredients": raw}

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring stored ingredients of type {type(raw).__name__}", extra={"session_key": session_key})
            return []

        version = raw.get("schema_version")
        if version != CURRENT_SCHEMA_VERSION:
            logger.warning(
                f"Ignoring stored ingredients with unsupported schema_version={version}",
                extra={"session_key": session_key},
            )
            return []

        try:
            envelope = StoredIngredients.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Stored ingredients failed validation: {e}", extra={"session_key": session_key})
            return []

        logger.debug(f"Retrieved ingredients: {len(envelope.ingredients)}", extra={"session_key": session_key})
        return envelope.ingredients

    def clear(self, session_key: str) -> bool:
        try:
            self.store.delete(self.key_for(session_key))
        except OSError as e:
            logger.error(f"Error clearing stored ingredients: {e}", extra={"session_key": session_key})
            return False
        return True
