"""Per-user recommendation sessions.

A RecommendationSession tracks which recipes a user has already been shown
(freshness), accumulates cuisine preferences and remembers the last query so
``refresh()`` can produce new results. SessionStore keeps one session per
session key and serializes access to it.
"""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from recipe_matcher.agents.recipe_agent import (
    QUICK_MAX_MINUTES,
    DiversityFilter,
    FallbackStrategy,
    RecipeScorer,
    estimate_cooking_time,
)
from recipe_matcher.mcp_tools.catalog import RecipeCatalog
from recipe_matcher.models.models import (
    CookingTime,
    Interaction,
    RecipeMatch,
    RecipeRecord,
    RecommendationContext,
    RecommendationResult,
    TimeOfDay,
)
from recipe_matcher.utils.logger import logger

GREAT_MATCH_THRESHOLD = 0.7
PARTIAL_MATCH_THRESHOLD = 0.4

PREFERENCE_DELTAS: dict[Interaction, float] = {
    Interaction.LIKED: 0.2,
    Interaction.DISLIKED: -0.3,
    Interaction.VIEWED: 0.1,
}

EMPTY_INPUT_MESSAGE = "Please provide some ingredients to get recipe recommendations."
NO_MATCH_MESSAGE = (
    "I couldn't find any recipes matching your ingredients: {ingredients}. "
    "Try adding more ingredients or using more common ingredients."
)
GREAT_MATCH_MESSAGE = "Found {count} great recipes using your ingredients!"
PARTIAL_MATCH_MESSAGE = (
    "Here are some recipes that use some of your ingredients. You might need a few extra items."
)
WEAK_MATCH_MESSAGE = (
    "I found some recipes that use a few of your ingredients. "
    "You'll need additional ingredients to complete these recipes."
)
BREAKFAST_HINT = "I included some breakfast-friendly options for your morning."
QUICK_HINT = (
    f"I prioritized quick recipes that take less than {QUICK_MAX_MINUTES} minutes to prepare."
)


def summary_message(matches: list[RecipeMatch], ingredients: list[str]) -> str:
    """Pick the human-readable summary tier for a ranked result list."""
    if not matches:
        return NO_MATCH_MESSAGE.format(ingredients=", ".join(ingredients))

    top_score = matches[0].match_score
    if top_score > GREAT_MATCH_THRESHOLD:
        return GREAT_MATCH_MESSAGE.format(count=len(matches))
    if top_score > PARTIAL_MATCH_THRESHOLD:
        return PARTIAL_MATCH_MESSAGE
    return WEAK_MATCH_MESSAGE


def context_message(matches: list[RecipeMatch], context: Optional[RecommendationContext]) -> Optional[str]:
    if context is None or not matches:
        return None

    if context.time_of_day == TimeOfDay.MORNING and any(
        m.recipe.cuisine_type.lower() == "american" for m in matches
    ):
        return BREAKFAST_HINT

    if context.cooking_time == CookingTime.QUICK and any(
        estimate_cooking_time(m.recipe.cook_time) <= QUICK_MAX_MINUTES for m in matches
    ):
        return QUICK_HINT

    return None


class RecommendationSession:
    """Stateful recommendation flow for one user session.

    State:
        seen_recipe_ids: ids shown by earlier rounds; grows on refresh, cleared by reset
        user_preferences: cuisine -> accumulated preference (unclamped)
        last_query_ingredients: ingredients of the most recent query
        last_recommendation: matches returned by the most recent query
        last_context: context of the most recent query
    """

    def __init__(
        self,
        catalog: RecipeCatalog,
        scorer: Optional[RecipeScorer] = None,
        diversity: Optional[DiversityFilter] = None,
        fallback: Optional[FallbackStrategy] = None,
        session_key: str = "default",
    ) -> None:
        self.catalog = catalog
        self.scorer = scorer or RecipeScorer()
        self.diversity = diversity or DiversityFilter()
        self.fallback = fallback or FallbackStrategy()
        self.session_key = session_key

        self.seen_recipe_ids: set[str] = set()
        self.user_preferences: dict[str, float] = {}
        self.last_query_ingredients: list[str] = []
        self.last_recommendation: list[RecipeMatch] = []
        self.last_context: Optional[RecommendationContext] = None

    def get_recommendations(
        self,
        ingredients: list[str],
        context: Optional[RecommendationContext] = None,
    ) -> RecommendationResult:
        """Score the catalog against ``ingredients`` and build a result.

        Args:
            ingredients: Ingredient names to match; blanks are ignored.
            context: Optional request context (time of day, meal type,
                dietary restrictions, cooking-time preference).

        Returns:
            RecommendationResult with up to MAX_RECIPES matches and a summary message.
        """
        ingredients = [name.strip() for name in ingredients if name and name.strip()]
        self.last_query_ingredients = list(ingredients)
        self.last_context = context

        if not ingredients:
            self.last_recommendation = []
            return RecommendationResult(recipes=[], message=EMPTY_INPUT_MESSAGE)

        ranked = self.scorer.rank(
            self.catalog,
            ingredients,
            context=context,
            user_preferences=self.user_preferences,
            seen_ids=self.seen_recipe_ids,
        )
        matches = self.diversity.diversify(ranked, self.catalog, self.seen_recipe_ids)
        message = summary_message(matches, ingredients)

        is_fallback = False
        if not matches and self.fallback.enabled:
            matches = self.fallback.select(self.catalog, self.seen_recipe_ids)
            is_fallback = bool(matches)

        self.last_recommendation = matches
        logger.info(
            f"Recommended {len(matches)} recipes for {len(ingredients)} ingredients"
            + (" (fallback)" if is_fallback else ""),
            extra={"session_key": self.session_key},
        )

        return RecommendationResult(
            recipes=matches,
            message=message,
            context_message=None if is_fallback else context_message(matches, context),
            is_fallback=is_fallback,
        )

    def refresh(self) -> RecommendationResult:
        """Mark the last results as seen and re-run the last query."""
        self.seen_recipe_ids.update(m.recipe.id for m in self.last_recommendation)
        logger.debug(
            f"Refreshing with {len(self.seen_recipe_ids)} seen recipes",
            extra={"session_key": self.session_key},
        )
        return self.get_recommendations(self.last_query_ingredients, self.last_context)

    def reset(self) -> None:
        """Forget which recipes were shown. Preferences are kept."""
        self.seen_recipe_ids.clear()

    def update_preferences(self, recipe: RecipeRecord, interaction: Interaction | str) -> float:
        """Apply the interaction delta to the recipe's cuisine.

        Returns:
            The cuisine's new preference value.
        """
        delta = PREFERENCE_DELTAS[Interaction(interaction)]
        cuisine = recipe.cuisine_type
        self.user_preferences[cuisine] = self.user_preferences.get(cuisine, 0.0) + delta
        logger.debug(
            f"Preference for {cuisine} is now {self.user_preferences[cuisine]:.2f}",
            extra={"session_key": self.session_key, "recipe_id": recipe.id},
        )
        return self.user_preferences[cuisine]


class SessionStore:
    """Session objects keyed by user/device id, with per-key serialization.

    Usage:
        with store.session("user-1") as session:
            session.refresh()
    """

    def __init__(self, factory: Callable[[str], RecommendationSession]) -> None:
        self._factory = factory
        self._sessions: dict[str, RecommendationSession] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, session_key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(session_key)
            if lock is None:
                lock = self._locks[session_key] = threading.Lock()
            return lock

    @contextmanager
    def session(self, session_key: str) -> Iterator[RecommendationSession]:
        with self._lock_for(session_key):
            with self._guard:
                current = self._sessions.get(session_key)
            if current is None:
                current = self._factory(session_key)
                with self._guard:
                    self._sessions[session_key] = current
            yield current

    def discard(self, session_key: str) -> None:
        with self._lock_for(session_key):
            with self._guard:
                self._sessions.pop(session_key, None)

    def __contains__(self, session_key: object) -> bool:
        with self._guard:
            return session_key in self._sessions

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)
