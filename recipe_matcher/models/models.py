"""Data models for the recipe matching engine.

Defines Pydantic models for ingredient detections, inferred context, the
recipe catalog, scored matches and recommendation results.
All models use Pydantic v2 for validation and JSON (de)serialization.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class IngredientState(str, Enum):
    """Preparation state detected in a raw ingredient name."""

    CHOPPED = "chopped"
    DICED = "diced"
    SLICED = "sliced"
    MINCED = "minced"
    GRATED = "grated"
    GROUND = "ground"
    SHREDDED = "shredded"
    CRUSHED = "crushed"
    PEELED = "peeled"


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class CookingTime(str, Enum):
    """Cooking-time preference buckets (quick <= 20 min, medium 21-40, long > 40)."""

    QUICK = "quick"
    MEDIUM = "medium"
    LONG = "long"


class Interaction(str, Enum):
    """User interaction with a recommended recipe."""

    LIKED = "liked"
    DISLIKED = "disliked"
    VIEWED = "viewed"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class RawDetection(BaseModel):
    """Single detection returned by the vision collaborator."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Annotated[str, Field(description="Detected ingredient name, as reported")]
    confidence: Annotated[float, Field(ge=0.0, le=1.0, description="Detection confidence (0.0-1.0)")]


class ProcessedIngredient(BaseModel):
    """Normalized ingredient owned by one session's ingredient list.

    Names are title-cased with quantities and preparation states stripped.
    Uniqueness (case-insensitive) is maintained by the ingredient agent.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Annotated[str, Field(min_length=1, description="Normalized, title-cased ingredient name")]
    confidence: Annotated[float, Field(1.0, ge=0.0, le=1.0, description="Detection confidence (manual entries use 1.0)")]
    state: Annotated[Optional[IngredientState], Field(None, description="Preparation state from the original name")]
    freshness: Annotated[Optional[float], Field(None, ge=0.0, le=1.0, description="Static freshness estimate")]
    quantity: Annotated[Optional[str], Field(None, description="Free-text quantity, e.g. '2 cups'")]


class IngredientContext(BaseModel):
    """Cuisines, techniques and meal type inferred from an ingredient set.

    Recomputed whenever the ingredient set changes; derived, not authoritative.
    """

    possible_cuisines: List[str] = Field(default_factory=list)
    cooking_techniques: List[str] = Field(default_factory=list)
    meal_type: Optional[MealType] = None
    dietary_preferences: List[str] = Field(default_factory=list)
    time_of_day: TimeOfDay = TimeOfDay.EVENING


class RecommendationContext(BaseModel):
    """Request-side context used while scoring recipes."""

    time_of_day: Optional[TimeOfDay] = None
    meal_type: Optional[MealType] = None
    dietary_restrictions: List[str] = Field(default_factory=list)
    cooking_time: Optional[CookingTime] = None


class RecipeRecord(BaseModel):
    """Read-only catalog recipe. Identity is ``id``.

    Accepts both snake_case and the camelCase keys used by external catalogs
    (``cuisineType``, ``cookTime``, ``dietaryInfo`` ...).
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: Annotated[str, Field(min_length=1)]
    title: Annotated[str, Field(min_length=1, max_length=200)]
    ingredients: Annotated[List[str], Field(min_length=1, description="Ingredient lines as written in the recipe")]
    instructions: List[str] = Field(default_factory=list)
    cuisine_type: Annotated[str, Field(min_length=1)]
    cooking_technique: str = ""
    dietary_info: List[str] = Field(default_factory=list)
    cook_time: Annotated[str, Field("", description="Free text, e.g. '20 minutes' or '1 hour'")]
    difficulty: Optional[Difficulty] = None
    servings: Annotated[Optional[int], Field(None, ge=1, le=100)]
    image_url: Optional[str] = None
    description: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        """Catalogs sometimes use numeric ids; identity is compared as text."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("ingredients", "instructions", "dietary_info", mode="after")
    @classmethod
    def drop_blank_entries(cls, value: List[str]) -> List[str]:
        return [item.strip() for item in value if item and item.strip()]


class RecipeMatch(BaseModel):
    """Scored candidate produced by one scoring pass. Never persisted."""

    recipe: RecipeRecord
    matched_ingredients: List[str] = Field(default_factory=list)
    match_score: float = 0.0
    freshness: Annotated[float, Field(1.0, ge=0.0, le=1.0)]


class RecommendationResult(BaseModel):
    """Output handed to the presentation layer."""

    recipes: List[RecipeMatch] = Field(default_factory=list)
    message: str
    context_message: Optional[str] = None
    is_fallback: bool = False


class QueryAnalysis(BaseModel):
    """Ingredients and context extracted from a natural-language query."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True, alias_generator=to_camel)

    extracted_ingredients: List[str] = Field(default_factory=list)
    meal_type: Optional[MealType] = None
    dietary_restrictions: List[str] = Field(default_factory=list)
    cooking_time: Optional[CookingTime] = None

    @field_validator("meal_type", "cooking_time", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return value or None
        return value


class StoredIngredients(BaseModel):
    """Versioned envelope persisted for one session's ingredient list."""

    schema_version: int = 1
    session_key: str
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ingredients: List[ProcessedIngredient] = Field(default_factory=list)
