"""Pytest configuration and fixtures for integration tests.

Integration tests run the full engine over the bundled recipe catalog.
No external API is called, so no API keys are required.
"""

from datetime import datetime

import pytest

from recipe_matcher.agents.ingredient_agent import ContextAnalyzer, IngredientAgent
from recipe_matcher.agents.intelligence import IntelligenceService
from recipe_matcher.mcp_tools.catalog import DEFAULT_CATALOG_PATH, RecipeCatalog
from recipe_matcher.storage.ingredient_storage import InMemoryStore, IngredientStorage
from recipe_matcher.utils.config import config as engine_config

EVENING = datetime(2026, 1, 15, 19, 0)


@pytest.fixture(autouse=True)
def pinned_settings(monkeypatch):
    """Pin engine settings so results do not depend on the local .env."""
    monkeypatch.setattr(engine_config, "MAX_RECIPES", 5)
    monkeypatch.setattr(engine_config, "FALLBACK_RECIPES", 0)
    monkeypatch.setattr(engine_config, "SEEN_RECIPE_FRESHNESS", 0.3)
    monkeypatch.setattr(engine_config, "DIVERSITY_THRESHOLD", 0.6)
    monkeypatch.setattr(engine_config, "DIVERSITY_SCORE_PENALTY", 0.8)
    monkeypatch.setattr(engine_config, "DEFAULT_COOK_MINUTES", 30)


@pytest.fixture(scope="session")
def catalog() -> RecipeCatalog:
    return RecipeCatalog.from_json_file(DEFAULT_CATALOG_PATH)


@pytest.fixture
def make_service(catalog):
    """Factory for services sharing the bundled catalog and a fixed evening clock."""

    def _make(session_key: str = "user-1", storage: IngredientStorage | None = None, session=None):
        agent = IngredientAgent(
            session_key,
            storage=storage or IngredientStorage(InMemoryStore()),
            analyzer=ContextAnalyzer(clock=lambda: EVENING),
        )
        return IntelligenceService(session_key, catalog=catalog, ingredient_agent=agent, session=session)

    return _make
