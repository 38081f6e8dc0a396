"""Recipe scoring, diversity and fallback strategies.

- RecipeScorer: weighted match score per recipe and top-N ranking
- DiversityFilter: single corrective substitution when one cuisine dominates
- FallbackStrategy: unscored catalog picks, used only when nothing matched

Scoring formula (weights are fixed constants):

    final = (ingredient_match * 0.6 + context * 0.2 + preference * 0.1) * freshness
"""

import random
import re
from collections import Counter
from typing import Iterable, Optional

from pydantic import ValidationError

from recipe_matcher.models.models import (
    CookingTime,
    Difficulty,
    RecipeMatch,
    RecipeRecord,
    RecommendationContext,
)
from recipe_matcher.utils.config import config
from recipe_matcher.utils.logger import logger

INGREDIENT_WEIGHT = 0.6
CONTEXT_WEIGHT = 0.2
PREFERENCE_WEIGHT = 0.1

MEAL_TYPE_BONUS = 0.1
COOKING_TIME_BONUS = 0.15
DIETARY_BONUS = 0.2

QUICK_MAX_MINUTES = 20
MEDIUM_MAX_MINUTES = 40

MINUTES_RE = re.compile(r"(\d+)\s*(?:minutes?|mins?)\b", re.IGNORECASE)
HOURS_RE = re.compile(r"(\d+)\s*(?:hours?|hrs?)\b", re.IGNORECASE)

COMPLEX_TECHNIQUES = {"sous vide", "fermenting", "baking", "roasting"}


def estimate_cooking_time(cook_time: str, default_minutes: Optional[int] = None) -> int:
    """Parse a free-text cook time into minutes.

    Examples:
        >>> estimate_cooking_time("20 minutes")
        20
        >>> estimate_cooking_time("1 hour 15 minutes")
        75
        >>> estimate_cooking_time("overnight")
        30
    """
    total = 0
    minutes = MINUTES_RE.search(cook_time or "")
    hours = HOURS_RE.search(cook_time or "")
    if minutes:
        total += int(minutes.group(1))
    if hours:
        total += int(hours.group(1)) * 60
    if total:
        return total
    return config.DEFAULT_COOK_MINUTES if default_minutes is None else default_minutes


def cooking_time_bucket(minutes: int) -> CookingTime:
    if minutes <= QUICK_MAX_MINUTES:
        return CookingTime.QUICK
    if minutes <= MEDIUM_MAX_MINUTES:
        return CookingTime.MEDIUM
    return CookingTime.LONG


def estimate_difficulty(recipe: RecipeRecord) -> Difficulty:
    """Return the recipe's difficulty, deriving one when the record has none."""
    if recipe.difficulty is not None:
        return recipe.difficulty

    technique = 1 if recipe.cooking_technique.lower() in COMPLEX_TECHNIQUES else 0
    score = len(recipe.ingredients) * 0.2 + len(recipe.instructions) * 0.3 + technique * 0.5

    if score > 8:
        return Difficulty.HARD
    if score > 5:
        return Difficulty.MEDIUM
    return Difficulty.EASY


def _coerce_record(recipe) -> RecipeRecord:
    if isinstance(recipe, RecipeRecord):
        return recipe
    return RecipeRecord.model_validate(recipe)


class RecipeScorer:
    """Score recipes against the user's ingredients, context and history."""

    def __init__(self, max_results: Optional[int] = None, seen_freshness: Optional[float] = None) -> None:
        self.max_results = config.MAX_RECIPES if max_results is None else max_results
        self.seen_freshness = config.SEEN_RECIPE_FRESHNESS if seen_freshness is None else seen_freshness

    @staticmethod
    def match_ingredients(recipe: RecipeRecord, user_ingredients: list[str]) -> list[str]:
        """Recipe ingredient lines matched by any user ingredient, in recipe order."""
        lowered_user = [ing.lower() for ing in user_ingredients if ing]
        matched: list[str] = []
        for recipe_ingredient in recipe.ingredients:
            lowered = recipe_ingredient.lower()
            if any(user in lowered or lowered in user for user in lowered_user):
                if recipe_ingredient not in matched:
                    matched.append(recipe_ingredient)
        return matched

    @staticmethod
    def context_score(recipe: RecipeRecord, context: Optional[RecommendationContext]) -> float:
        """Additive context bonus in [0, 0.45]."""
        if context is None:
            return 0.0

        score = 0.0
        # Flat bonus: the meal type is not checked against the recipe
        if context.meal_type:
            score += MEAL_TYPE_BONUS

        if context.cooking_time:
            bucket = cooking_time_bucket(estimate_cooking_time(recipe.cook_time))
            if bucket == context.cooking_time:
                score += COOKING_TIME_BONUS

        if context.dietary_restrictions and recipe.dietary_info:
            offered = {info.lower() for info in recipe.dietary_info}
            matching = [r for r in context.dietary_restrictions if r.lower() in offered]
            if matching:
                score += DIETARY_BONUS * (len(matching) / len(context.dietary_restrictions))

        return score

    def freshness(self, recipe: RecipeRecord, seen_ids: Iterable[str]) -> float:
        return self.seen_freshness if recipe.id in seen_ids else 1.0

    def score(
        self,
        recipe: RecipeRecord,
        user_ingredients: list[str],
        context: Optional[RecommendationContext] = None,
        user_preferences: Optional[dict[str, float]] = None,
        seen_ids: Optional[set[str]] = None,
    ) -> Optional[RecipeMatch]:
        """Score one recipe.

        Returns:
            RecipeMatch, or None when no recipe ingredient matches. An empty
            ``user_ingredients`` list never excludes a recipe.
        """
        user_preferences = user_preferences or {}
        seen_ids = seen_ids or set()

        matched = self.match_ingredients(recipe, user_ingredients)
        if not matched and user_ingredients:
            return None

        ingredient_score = len(matched) / len(recipe.ingredients)
        preference_score = user_preferences.get(recipe.cuisine_type, 0.0)
        freshness = self.freshness(recipe, seen_ids)

        final_score = (
            ingredient_score * INGREDIENT_WEIGHT
            + self.context_score(recipe, context) * CONTEXT_WEIGHT
            + preference_score * PREFERENCE_WEIGHT
        ) * freshness

        return RecipeMatch(
            recipe=recipe,
            matched_ingredients=matched,
            match_score=final_score,
            freshness=freshness,
        )

    def rank(
        self,
        catalog: Iterable,
        user_ingredients: list[str],
        context: Optional[RecommendationContext] = None,
        user_preferences: Optional[dict[str, float]] = None,
        seen_ids: Optional[set[str]] = None,
    ) -> list[RecipeMatch]:
        """Score every catalog entry and return the top ``max_results``.

        Malformed entries are logged and skipped; they never abort the pass.
        """
        results: list[RecipeMatch] = []
        for entry in catalog:
            try:
                recipe = _coerce_record(entry)
                match = self.score(recipe, user_ingredients, context, user_preferences, seen_ids)
            except (ValidationError, AttributeError, TypeError, ZeroDivisionError) as e:
                logger.warning(f"Skipping malformed recipe {getattr(entry, 'id', None) or entry!r:.60}: {e}")
                continue
            if match is not None:
                results.append(match)

        results.sort(key=lambda m: m.match_score, reverse=True)
        return results[: self.max_results]


class DiversityFilter:
    """Rebalance a top-N list so no single cuisine dominates.

    One corrective pass: at most one substitution per call, and the list
    never grows.
    """

    def __init__(
        self,
        threshold: Optional[float] = None,
        score_penalty: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.threshold = config.DIVERSITY_THRESHOLD if threshold is None else threshold
        self.score_penalty = config.DIVERSITY_SCORE_PENALTY if score_penalty is None else score_penalty
        self.rng = rng or random.Random()

    @staticmethod
    def cuisine_distribution(matches: list[RecipeMatch]) -> dict[str, float]:
        if not matches:
            return {}
        counts = Counter(m.recipe.cuisine_type for m in matches)
        return {cuisine: count / len(matches) for cuisine, count in counts.items()}

    def diversify(
        self,
        matches: list[RecipeMatch],
        catalog: Iterable[RecipeRecord],
        seen_ids: Optional[set[str]] = None,
    ) -> list[RecipeMatch]:
        seen_ids = seen_ids or set()
        result = list(matches)
        distribution = self.cuisine_distribution(result)
        if not distribution:
            return result

        dominant = max(distribution, key=distribution.get)
        if distribution[dominant] <= self.threshold:
            return result

        dominant_indices = [i for i, m in enumerate(result) if m.recipe.cuisine_type == dominant]
        if len(dominant_indices) < 2:
            return result

        shown_ids = {m.recipe.id for m in result}
        candidates = [
            recipe
            for recipe in catalog
            if recipe.cuisine_type != dominant and recipe.id not in seen_ids and recipe.id not in shown_ids
        ]
        if not candidates:
            logger.debug(f"No unseen alternative to dominant cuisine {dominant}")
            return result

        slot = dominant_indices[-1]
        replacement = self.rng.choice(candidates)
        logger.debug(
            f"Diversity: replacing {result[slot].recipe.id} ({dominant}) "
            f"with {replacement.id} ({replacement.cuisine_type})"
        )
        result[slot] = RecipeMatch(
            recipe=replacement,
            matched_ingredients=[],
            match_score=result[slot].match_score * self.score_penalty,
            freshness=1.0,
        )
        return result


class FallbackStrategy:
    """Catalog picks shown when scoring produced no candidates at all.

    Unseen recipes come first, then quicker ones; every pick scores 0 and
    carries no matched ingredients.
    """

    def __init__(self, limit: Optional[int] = None) -> None:
        self.limit = config.FALLBACK_RECIPES if limit is None else limit

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    def select(self, catalog: Iterable[RecipeRecord], seen_ids: Optional[set[str]] = None) -> list[RecipeMatch]:
        if not self.enabled:
            return []
        seen_ids = seen_ids or set()
        ordered = sorted(
            catalog,
            key=lambda r: (r.id in seen_ids, estimate_cooking_time(r.cook_time)),
        )
        return [
            RecipeMatch(
                recipe=recipe,
                matched_ingredients=[],
                match_score=0.0,
                freshness=config.SEEN_RECIPE_FRESHNESS if recipe.id in seen_ids else 1.0,
            )
            for recipe in ordered[: self.limit]
        ]
