"""Recipe catalog loading and lookup.

Turns raw catalog entries (dicts from a JSON file or a third-party fetch)
into validated RecipeRecord objects. Entries that fail validation are
logged and skipped so a partially malformed catalog still loads.
"""

import json
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from pydantic import ValidationError

from recipe_matcher.models.models import RecipeRecord
from recipe_matcher.utils.config import config
from recipe_matcher.utils.logger import logger

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "recipes.json"


class RecipeCatalog:
    """Read-only, fully loaded collection of recipes keyed by id."""

    def __init__(self, recipes: Optional[Iterable[RecipeRecord]] = None) -> None:
        self._recipes: dict[str, RecipeRecord] = {}
        for recipe in recipes or []:
            if recipe.id in self._recipes:
                logger.warning(f"Duplicate recipe id {recipe.id}, keeping first occurrence")
                continue
            self._recipes[recipe.id] = recipe

    @classmethod
    def from_records(cls, raw_records: Iterable[Any]) -> "RecipeCatalog":
        """Validate raw entries, skipping the malformed ones.

        Args:
            raw_records: Dicts (snake_case or camelCase keys) or RecipeRecord objects.
        """
        records: list[RecipeRecord] = []
        skipped = 0
        for idx, raw in enumerate(raw_records or []):
            if isinstance(raw, RecipeRecord):
                records.append(raw)
                continue
            try:
                records.append(RecipeRecord.model_validate(raw))
            except ValidationError as e:
                skipped += 1
                label = raw.get("id", idx) if isinstance(raw, dict) else idx
                logger.warning(f"Skipping malformed recipe {label}: {e.error_count()} validation error(s)")

        if skipped:
            logger.info(f"Loaded {len(records)} recipes, skipped {skipped} malformed entries")
        return cls(records)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "RecipeCatalog":
        """Load a catalog from a JSON file holding a list (or ``{"recipes": [...]}``).

        A missing or unreadable file yields an empty catalog.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read recipe catalog {path}: {e}")
            return cls()

        if isinstance(payload, dict):
            payload = payload.get("recipes", [])
        if not isinstance(payload, list):
            logger.error(f"Recipe catalog {path} is not a list of recipes")
            return cls()

        return cls.from_records(payload)

    @classmethod
    def load_default(cls) -> "RecipeCatalog":
        """Load RECIPE_CATALOG_PATH, or the bundled sample catalog when unset."""
        path = config.RECIPE_CATALOG_PATH or DEFAULT_CATALOG_PATH
        catalog = cls.from_json_file(path)
        logger.info(f"Recipe catalog ready: {len(catalog)} recipes from {path}")
        return catalog

    def __len__(self) -> int:
        return len(self._recipes)

    def __iter__(self) -> Iterator[RecipeRecord]:
        return iter(self._recipes.values())

    def __contains__(self, recipe_id: object) -> bool:
        return recipe_id in self._recipes

    def all(self) -> list[RecipeRecord]:
        return list(self._recipes.values())

    def get(self, recipe_id: str) -> Optional[RecipeRecord]:
        return self._recipes.get(str(recipe_id))

    def by_cuisine(self, cuisine_type: str) -> list[RecipeRecord]:
        wanted = cuisine_type.lower()
        return [r for r in self._recipes.values() if r.cuisine_type.lower() == wanted]

    def by_dietary_restrictions(self, restrictions: list[str]) -> list[RecipeRecord]:
        """Recipes that carry every requested restriction (case-insensitive)."""
        wanted = {r.lower() for r in restrictions}
        return [
            r for r in self._recipes.values()
            if wanted <= {info.lower() for info in r.dietary_info}
        ]
