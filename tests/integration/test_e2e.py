"""End-to-end tests over the bundled recipe catalog.

Each test drives IntelligenceService the way a front end would: enter
ingredients, ask for recommendations, refresh, persist and restore.
"""

import random

import pytest

from query import parse_args
from recipe_matcher.agents.recipe_agent import DiversityFilter, FallbackStrategy
from recipe_matcher.agents.session import (
    BREAKFAST_HINT,
    NO_MATCH_MESSAGE,
    QUICK_HINT,
    RecommendationSession,
)
from recipe_matcher.models.models import CookingTime, TimeOfDay
from recipe_matcher.storage.ingredient_storage import InMemoryStore, IngredientStorage, JsonFileStore


class TestRecommendationFlow:
    """Full request flows against the sample catalog."""

    def test_breakfast_in_the_morning(self, make_service):
        service = make_service()
        service.add_manual_ingredients(["flour", "milk", "eggs"])

        result = service.get_recipe_recommendations({"time_of_day": TimeOfDay.MORNING})

        assert result.recipes[0].recipe.title == "Classic Pancakes"
        assert result.recipes[0].matched_ingredients == ["flour", "milk", "eggs"]
        assert result.context_message == BREAKFAST_HINT

    def test_quick_preference(self, make_service):
        service = make_service()
        service.add_manual_ingredients(["tomato"])

        result = service.get_recipe_recommendations({"cooking_time": CookingTime.QUICK})

        assert len(result.recipes) == 5
        assert all("tomato" in " ".join(m.matched_ingredients) for m in result.recipes)
        assert result.context_message == QUICK_HINT

    def test_results_are_sorted(self, make_service):
        service = make_service()
        service.add_manual_ingredients(["garlic", "ginger", "soy sauce"])

        scores = [m.match_score for m in service.get_recipe_recommendations().recipes]

        assert scores
        assert scores == sorted(scores, reverse=True)

    def test_refresh_penalizes_shown_recipes(self, make_service):
        service = make_service()
        service.add_manual_ingredients(["tomato"])
        first = service.get_recipe_recommendations()
        first_ids = {m.recipe.id for m in first.recipes}

        second = service.refresh_recipe_recommendations()

        assert service.session.seen_recipe_ids == first_ids
        for match in second.recipes:
            if match.recipe.id in first_ids:
                assert match.freshness == pytest.approx(0.3)

    def test_no_match(self, make_service):
        service = make_service()
        service.add_manual_ingredients(["unobtainium"])

        result = service.get_recipe_recommendations()

        assert result.recipes == []
        assert result.message == NO_MATCH_MESSAGE.format(ingredients="Unobtainium")
        assert result.is_fallback is False

    def test_fallback_picks_quickest(self, make_service, catalog):
        session = RecommendationSession(catalog, fallback=FallbackStrategy(limit=3), session_key="user-1")
        service = make_service(session=session)
        service.add_manual_ingredients(["unobtainium"])

        result = service.get_recipe_recommendations()

        assert result.is_fallback is True
        assert [m.recipe.id for m in result.recipes] == ["7", "2", "1"]
        assert result.context_message is None

    def test_no_cuisine_dominates(self, make_service, catalog):
        diversity = DiversityFilter(rng=random.Random(7))
        session = RecommendationSession(catalog, diversity=diversity, session_key="user-1")
        service = make_service(session=session)
        service.add_manual_ingredients(["pasta", "spaghetti", "pizza dough", "basil", "olive oil"])

        result = service.get_recipe_recommendations()

        assert result.recipes[0].recipe.cuisine_type == "Italian"
        assert max(diversity.cuisine_distribution(result.recipes).values()) <= diversity.threshold

    def test_preferences_shift_ranking(self, make_service):
        service = make_service()
        service.add_manual_ingredients(["garlic"])
        before = {m.recipe.id: m.match_score for m in service.get_recipe_recommendations().recipes}

        for _ in range(3):
            service.update_preferences(service.catalog.get("12"), "liked")
        after = {m.recipe.id: m.match_score for m in service.get_recipe_recommendations().recipes}

        assert after["12"] == pytest.approx(before["12"] + 0.06)
        assert after["2"] == pytest.approx(before["2"])


class TestPersistence:
    """Ingredient lists survive a new service over the same storage."""

    def test_restore_after_restart(self, make_service, tmp_path):
        first = make_service(storage=IngredientStorage(JsonFileStore(tmp_path)))
        first.add_manual_ingredients(["chopped tomatoes", "basil"])

        second = make_service(storage=IngredientStorage(JsonFileStore(tmp_path)))
        restored = second.restore()

        assert [i.name for i in restored] == ["Tomatoes", "Basil"]
        assert restored[0].state.value == "chopped"

    def test_sessions_are_isolated(self, make_service):
        storage = IngredientStorage(InMemoryStore())
        alice = make_service("alice", storage=storage)
        bob = make_service("bob", storage=storage)
        alice.add_manual_ingredients(["tomato"])

        assert bob.restore() == []
        assert [i.name for i in alice.restore()] == ["Tomato"]


class TestCommandLine:
    """Argument parsing for the query runner."""

    def test_parse_args(self):
        ingredients, options, flags = parse_args(
            ["--diet", "Vegan", "--diet", "Gluten-Free", "--time", "QUICK", "--refresh", "2", "--suggest", "tomato"]
        )
        assert ingredients == ["tomato"]
        assert options == {"dietary_restrictions": ["Vegan", "Gluten-Free"], "cooking_time": "quick"}
        assert flags["refresh"] == 2
        assert flags["suggest"] is True
        assert flags["user"] == "cli"

    def test_unknown_flag_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["--nope"])
