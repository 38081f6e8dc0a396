"""Per-user coordinator tying ingredients, context and recommendations together.

IntelligenceService is the single object a front end talks to for one user:
it owns that user's IngredientAgent and RecommendationSession and merges
explicit request options over the context inferred from the ingredients.
Collaborator calls (vision, query parsing) are awaited here before the
synchronous core runs.
"""

from typing import Any, Optional

from recipe_matcher.agents.ingredient_agent import IngredientAgent
from recipe_matcher.agents.session import RecommendationSession
from recipe_matcher.hooks.normalize_input import ingredient_names, to_raw_detections
from recipe_matcher.mcp_tools import ingredients as vision
from recipe_matcher.mcp_tools import query_parser
from recipe_matcher.mcp_tools.catalog import RecipeCatalog
from recipe_matcher.models.models import (
    CookingTime,
    IngredientContext,
    Interaction,
    MealType,
    ProcessedIngredient,
    QueryAnalysis,
    RecipeRecord,
    RecommendationContext,
    RecommendationResult,
    TimeOfDay,
)
from recipe_matcher.storage.ingredient_storage import IngredientStorage
from recipe_matcher.utils.logger import logger


class IntelligenceService:
    """Coordinate one user's ingredient list and recommendation session."""

    def __init__(
        self,
        session_key: str,
        catalog: Optional[RecipeCatalog] = None,
        storage: Optional[IngredientStorage] = None,
        ingredient_agent: Optional[IngredientAgent] = None,
        session: Optional[RecommendationSession] = None,
    ) -> None:
        self.session_key = session_key
        self.catalog = catalog if catalog is not None else RecipeCatalog.load_default()
        self.ingredient_agent = ingredient_agent or IngredientAgent(session_key, storage=storage)
        self.session = session or RecommendationSession(self.catalog, session_key=session_key)

    def restore(self) -> list[ProcessedIngredient]:
        """Reload the persisted ingredient list for this user."""
        return self.ingredient_agent.load_saved_ingredients()

    # ------------------------------------------------------------------
    # Ingredient input
    # ------------------------------------------------------------------

    def process_detected_ingredients(self, detections: list[Any]) -> list[ProcessedIngredient]:
        """Replace the ingredient list with vision detections (any supported shape)."""
        return self.ingredient_agent.process_detected_ingredients(to_raw_detections(detections))

    async def process_ingredients_from_image(self, image_data: str | bytes) -> list[ProcessedIngredient]:
        """Detect ingredients in a photo and replace the list with them.

        A failed detection leaves the current list untouched.
        """
        detections = await vision.detect_ingredients(image_data)
        if not detections:
            logger.warning("No ingredients detected from image", extra={"session_key": self.session_key})
            return self.ingredient_agent.get_ingredients()
        return self.ingredient_agent.process_detected_ingredients(detections)

    async def process_natural_language_query(
        self, query: str
    ) -> tuple[list[ProcessedIngredient], RecommendationContext]:
        """Add the ingredients mentioned in ``query`` and return the request context.

        Returns:
            (current ingredient list, RecommendationContext from the query).
            A failed analysis yields the unchanged list and an empty context.
        """
        analysis = await query_parser.analyze_query(query)
        if analysis.extracted_ingredients:
            self.ingredient_agent.add_manual_ingredients(analysis.extracted_ingredients)
        return self.ingredient_agent.get_ingredients(), self.context_from_query(analysis)

    def add_manual_ingredients(self, items: list[Any]) -> list[ProcessedIngredient]:
        """Append ingredients given as strings, dicts or ingredient models."""
        return self.ingredient_agent.add_manual_ingredients(ingredient_names(items))

    def remove_ingredients(self, items: list[Any]) -> list[ProcessedIngredient]:
        return self.ingredient_agent.remove_ingredients(ingredient_names(items))

    def clear_all_ingredients(self) -> None:
        """Clear the ingredient list and forget which recipes were shown."""
        self.ingredient_agent.clear_ingredients()
        self.session.reset()

    def get_ingredients(self) -> list[ProcessedIngredient]:
        return self.ingredient_agent.get_ingredients()

    def get_context(self) -> IngredientContext:
        return self.ingredient_agent.get_context()

    def get_suggested_ingredients(self) -> list[str]:
        return self.ingredient_agent.infer_missing_ingredients()

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    @staticmethod
    def context_from_query(analysis: QueryAnalysis) -> RecommendationContext:
        return RecommendationContext(
            meal_type=analysis.meal_type,
            dietary_restrictions=list(analysis.dietary_restrictions),
            cooking_time=analysis.cooking_time,
        )

    def build_context(self, options: Optional[dict[str, Any] | RecommendationContext] = None) -> RecommendationContext:
        """Merge explicit options over the context inferred from the ingredients.

        Options may set ``time_of_day``, ``meal_type``, ``dietary_restrictions``
        and ``cooking_time``; unset options fall back to the inferred context
        (dietary restrictions come from its dietary preferences).
        """
        if isinstance(options, RecommendationContext):
            options = options.model_dump(exclude_none=True)
        options = {k: v for k, v in (options or {}).items() if v not in (None, "", [])}
        inferred = self.ingredient_agent.get_context()

        return RecommendationContext(
            time_of_day=TimeOfDay(options["time_of_day"]) if "time_of_day" in options else inferred.time_of_day,
            meal_type=MealType(options["meal_type"]) if "meal_type" in options else inferred.meal_type,
            dietary_restrictions=list(options.get("dietary_restrictions") or inferred.dietary_preferences),
            cooking_time=CookingTime(options["cooking_time"]) if "cooking_time" in options else None,
        )

    def get_recipe_recommendations(
        self, options: Optional[dict[str, Any] | RecommendationContext] = None
    ) -> RecommendationResult:
        names = self.ingredient_agent.get_ingredient_names()
        context = self.build_context(options)
        logger.debug(
            f"Recommending for {len(names)} ingredients with context {context.model_dump(exclude_none=True)}",
            extra={"session_key": self.session_key},
        )
        return self.session.get_recommendations(names, context)

    def refresh_recipe_recommendations(self) -> RecommendationResult:
        return self.session.refresh()

    def update_preferences(self, recipe: RecipeRecord, interaction: Interaction | str) -> float:
        return self.session.update_preferences(recipe, interaction)
