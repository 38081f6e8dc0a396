"""Ingredient understanding: normalization, context inference and suggestions.

Three stateless components plus the per-session IngredientAgent that owns an
ingredient list:

- IngredientNormalizer: strips quantities/states, filters non-food terms,
  deduplicates and enriches detections
- ContextAnalyzer: infers cuisines, cooking techniques, meal type and time of day
- IngredientSuggester: proposes likely-missing ingredients
- IngredientAgent: holds one session's ProcessedIngredient list, recomputes
  context on every change and persists the list
"""

import re
from datetime import datetime
from typing import Callable, Iterable, Optional

from recipe_matcher.models.models import (
    IngredientContext,
    IngredientState,
    MealType,
    ProcessedIngredient,
    RawDetection,
    TimeOfDay,
)
from recipe_matcher.storage.ingredient_storage import IngredientStorage
from recipe_matcher.utils.config import config
from recipe_matcher.utils.logger import logger


# ============================================================================
# Lookup Tables
# ============================================================================

UNIT_PATTERN = (
    r"cups?|lbs?|ounces?|oz|tbsp|tsp|tablespoons?|teaspoons?|pounds?"
    r"|grams?|g|kilos?|kg|ml|liters?|litres?|l"
)
QUANTITY_RE = re.compile(
    rf"^\s*\d+(?:\.\d+)?\s*(?:{UNIT_PATTERN})\b\.?\s*(?:of\b)?\s*",
    re.IGNORECASE,
)
STATE_WORDS = tuple(state.value for state in IngredientState)
STATE_RE = re.compile(rf"\b(?:{'|'.join(STATE_WORDS)})\b", re.IGNORECASE)

NON_FOOD_KEYWORDS = (
    "table", "chair", "plate", "spoon", "fork", "knife", "cup", "glass", "bowl",
    "napkin", "container", "package", "wrapper", "box", "jar", "can", "bottle",
)

PERISHABLES = ("tomato", "lettuce", "cucumber", "pepper", "carrot")
PERISHABLE_FRESHNESS = 0.9

CUISINE_SIGNATURES: dict[str, list[str]] = {
    "Italian": ["pasta", "tomato", "basil", "oregano", "parmesan", "olive oil", "garlic", "mozzarella"],
    "Mexican": ["tortilla", "avocado", "cilantro", "lime", "jalapeño", "cumin", "chili", "beans", "corn"],
    "Asian": ["soy sauce", "ginger", "sesame oil", "rice", "tofu", "green onion", "bok choy", "noodles"],
    "Indian": ["curry", "cumin", "coriander", "turmeric", "garam masala", "chickpea", "lentil", "chili"],
    "Mediterranean": ["olive oil", "feta", "cucumber", "yogurt", "eggplant", "hummus", "tahini", "mint"],
    "American": ["beef", "potato", "corn", "butter", "bread", "cheese", "mayo", "ketchup", "mustard"],
    "French": ["butter", "cream", "wine", "thyme", "rosemary", "shallot", "tarragon", "dijon"],
}

TECHNIQUE_SIGNATURES: dict[str, list[str]] = {
    "Baking": ["flour", "sugar", "egg", "butter", "vanilla", "baking powder", "baking soda"],
    "Roasting": ["potato", "beef", "chicken", "carrot", "onion", "garlic", "thyme", "rosemary"],
    "Stir-frying": ["soy sauce", "ginger", "garlic", "sesame oil", "green onion", "bok choy"],
    "Sautéing": ["olive oil", "butter", "garlic", "onion", "mushroom", "bell pepper"],
    "Boiling": ["pasta", "potato", "rice", "beans", "lentil", "egg"],
    "Grilling": ["beef", "chicken", "lamb", "fish", "pepper", "zucchini", "eggplant"],
}
MIN_TECHNIQUE_MATCHES = 2

BREAKFAST_SIGNATURES = ["egg", "bacon", "sausage", "toast", "cereal", "yogurt", "pancake", "waffle", "oat"]
DINNER_SIGNATURES = ["beef", "chicken", "pork", "fish", "lamb", "pasta", "rice", "potato"]

INGREDIENT_ASSOCIATIONS: dict[str, list[str]] = {
    "tomato": ["garlic", "onion", "basil", "olive oil"],
    "pasta": ["garlic", "tomato", "olive oil", "parmesan"],
    "chicken": ["garlic", "onion", "salt", "pepper", "olive oil"],
    "rice": ["salt", "butter", "onion"],
    "beef": ["garlic", "onion", "salt", "pepper"],
    "flour": ["sugar", "eggs", "butter", "baking powder", "salt"],
    "potato": ["butter", "salt", "pepper", "garlic"],
    "cheese": ["garlic", "butter", "pepper"],
    "milk": ["sugar", "vanilla", "eggs"],
    "fish": ["lemon", "salt", "pepper", "olive oil", "garlic"],
}
CUISINE_STAPLES: dict[str, list[str]] = {
    "Italian": ["basil", "parmesan", "olive oil", "garlic"],
    "Asian": ["soy sauce", "ginger", "sesame oil", "green onion"],
}


def _title_case(text: str) -> str:
    # Upper-cases word starts only, so "BBQ sauce" stays "BBQ Sauce"
    return re.sub(r"\b\w", lambda m: m.group().upper(), text)


def _overlaps(a: str, b: str) -> bool:
    return a in b or b in a


def count_signature_matches(names: Iterable[str], signatures: Iterable[str]) -> int:
    """Count signature entries matched by any name (bidirectional substring)."""
    lowered = [name.lower() for name in names if name]
    return sum(1 for sig in signatures if any(_overlaps(item, sig) for item in lowered))


# ============================================================================
# IngredientNormalizer
# ============================================================================


class IngredientNormalizer:
    """Clean and classify raw ingredient strings."""

    def normalize(self, raw: str) -> str:
        """Strip quantities and preparation states, then title-case.

        Quantity and state removal is repeated until nothing changes, so the
        result is a fixed point: ``normalize(normalize(s)) == normalize(s)``.

        Examples:
            >>> IngredientNormalizer().normalize("2 cups chopped Tomatoes")
            'Tomatoes'
            >>> IngredientNormalizer().normalize("1.5 lb of ground beef")
            'Beef'
        """
        text = " ".join((raw or "").split())
        while True:
            stripped = QUANTITY_RE.sub("", text, count=1)
            stripped = " ".join(STATE_RE.sub(" ", stripped).split())
            if stripped == text:
                break
            text = stripped
        return _title_case(text)

    def filter_and_dedupe(self, items: list[ProcessedIngredient]) -> list[ProcessedIngredient]:
        """Drop non-food items and later duplicates (case-insensitive), keeping the first."""
        unique_items: list[ProcessedIngredient] = []
        seen_names: set[str] = set()

        for item in items:
            lowered = item.name.lower()
            if any(keyword in lowered for keyword in NON_FOOD_KEYWORDS):
                logger.debug(f"Filtered non-food item: {item.name}")
                continue
            if lowered in seen_names:
                continue
            seen_names.add(lowered)
            unique_items.append(item)

        return unique_items

    def enrich(
        self,
        items: list[ProcessedIngredient],
        original_names: Optional[dict[str, str]] = None,
    ) -> list[ProcessedIngredient]:
        """Attach preparation state and a static freshness estimate.

        Args:
            items: Normalized ingredients.
            original_names: Lower-cased normalized name -> raw pre-strip name.
                The state is read from the raw name because normalization
                removes it.
        """
        original_names = original_names or {}
        enriched: list[ProcessedIngredient] = []

        for item in items:
            updates: dict = {}
            original = original_names.get(item.name.lower(), item.name)
            state = self.detect_state(original)
            if state is not None:
                updates["state"] = state

            lowered = item.name.lower()
            if any(perishable in lowered for perishable in PERISHABLES):
                updates["freshness"] = PERISHABLE_FRESHNESS

            enriched.append(item.model_copy(update=updates) if updates else item)

        return enriched

    @staticmethod
    def detect_state(name: str) -> Optional[IngredientState]:
        """Return the first preparation state keyword found in ``name``."""
        lowered = name.lower()
        for state in IngredientState:
            if state.value in lowered:
                return state
        return None

    @staticmethod
    def extract_quantity(raw: str) -> Optional[str]:
        match = QUANTITY_RE.match(raw or "")
        if not match:
            return None
        quantity = re.sub(r"\s+of$", "", match.group().strip(), flags=re.IGNORECASE)
        return quantity or None

    def process(self, detections: list[RawDetection]) -> list[ProcessedIngredient]:
        """Run normalize → filter/dedupe → enrich over vision detections.

        Detections whose normalized name is empty (pure quantities or
        states) are dropped.
        """
        original_names: dict[str, str] = {}
        normalized: list[ProcessedIngredient] = []

        for detection in detections:
            name = self.normalize(detection.name)
            if not name:
                logger.debug(f"Dropped detection with empty normalized name: {detection.name!r}")
                continue
            original_names.setdefault(name.lower(), detection.name)
            normalized.append(
                ProcessedIngredient(
                    name=name,
                    confidence=detection.confidence,
                    quantity=self.extract_quantity(detection.name),
                )
            )

        return self.enrich(self.filter_and_dedupe(normalized), original_names)


# ============================================================================
# ContextAnalyzer
# ============================================================================


def time_of_day_for(hour: int) -> TimeOfDay:
    if 5 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    return TimeOfDay.EVENING


class ContextAnalyzer:
    """Infer cuisines, techniques and meal type from ingredient names.

    Everything is a pure function of the names except ``time_of_day``, which
    reads the clock passed at construction (wall clock by default).
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self.clock = clock

    def analyze(self, ingredient_names: list[str]) -> IngredientContext:
        names = [name.lower() for name in ingredient_names if name]

        # Any single signature hit qualifies a cuisine
        possible_cuisines = [
            cuisine
            for cuisine, signatures in CUISINE_SIGNATURES.items()
            if count_signature_matches(names, signatures) > 0
        ]

        # Techniques need two distinct hits; single shared staples (garlic) are too weak
        cooking_techniques = [
            technique
            for technique, signatures in TECHNIQUE_SIGNATURES.items()
            if count_signature_matches(names, signatures) >= MIN_TECHNIQUE_MATCHES
        ]

        return IngredientContext(
            possible_cuisines=possible_cuisines,
            cooking_techniques=cooking_techniques,
            meal_type=self.infer_meal_type(names),
            time_of_day=self.time_of_day(),
        )

    @staticmethod
    def infer_meal_type(names: list[str]) -> Optional[MealType]:
        breakfast_matches = count_signature_matches(names, BREAKFAST_SIGNATURES)
        dinner_matches = count_signature_matches(names, DINNER_SIGNATURES)

        if breakfast_matches > dinner_matches:
            return MealType.BREAKFAST
        if dinner_matches > 0:
            return MealType.DINNER
        return None

    def time_of_day(self) -> TimeOfDay:
        return time_of_day_for(self.clock().hour)


# ============================================================================
# IngredientSuggester
# ============================================================================


class IngredientSuggester:
    """Propose likely-missing ingredients from associations and cuisine."""

    def __init__(self, max_suggestions: Optional[int] = None) -> None:
        self.max_suggestions = config.MAX_SUGGESTIONS if max_suggestions is None else max_suggestions

    def suggest_missing(self, current_ingredients: list[str], context: Optional[IngredientContext] = None) -> list[str]:
        """Suggest up to ``max_suggestions`` ingredients not already present.

        Direct associations come first in discovery order, then cuisine
        staples (Italian, otherwise Asian), so direct associations win when
        both are plentiful.
        """
        current = [name.lower() for name in current_ingredients if name]
        present = set(current)
        suggestions: list[str] = []

        def _add(candidate: str) -> None:
            if candidate not in present and candidate not in suggestions:
                suggestions.append(candidate)

        for ingredient in current:
            for associated in INGREDIENT_ASSOCIATIONS.get(ingredient, []):
                _add(associated)

        cuisines = context.possible_cuisines if context else []
        if "Italian" in cuisines:
            for staple in CUISINE_STAPLES["Italian"]:
                _add(staple)
        elif "Asian" in cuisines:
            for staple in CUISINE_STAPLES["Asian"]:
                _add(staple)

        return suggestions[: self.max_suggestions]


# ============================================================================
# IngredientAgent
# ============================================================================


class IngredientAgent:
    """Own one session's ingredient list and its inferred context.

    Every mutation keeps names unique (case-insensitive), recomputes the
    context from scratch and saves the list through IngredientStorage.
    """

    def __init__(
        self,
        session_key: str,
        storage: Optional[IngredientStorage] = None,
        normalizer: Optional[IngredientNormalizer] = None,
        analyzer: Optional[ContextAnalyzer] = None,
        suggester: Optional[IngredientSuggester] = None,
    ) -> None:
        self.session_key = session_key
        self.storage = storage or IngredientStorage()
        self.normalizer = normalizer or IngredientNormalizer()
        self.analyzer = analyzer or ContextAnalyzer()
        self.suggester = suggester or IngredientSuggester()
        self._ingredients: list[ProcessedIngredient] = []
        self._context = IngredientContext(time_of_day=self.analyzer.time_of_day())

    def load_saved_ingredients(self) -> list[ProcessedIngredient]:
        """Restore the persisted list (e.g. after an app restart)."""
        stored = self.storage.load(self.session_key)
        self._set_ingredients(self.normalizer.filter_and_dedupe(stored), save=False)
        return self.get_ingredients()

    def process_detected_ingredients(self, detections: list[RawDetection]) -> list[ProcessedIngredient]:
        """Replace the list with normalized vision detections."""
        ordered = sorted(detections, key=lambda d: d.confidence, reverse=True)
        processed = self.normalizer.process(ordered)
        logger.info(
            f"Processed {len(detections)} detections into {len(processed)} ingredients",
            extra={"session_key": self.session_key},
        )
        self._set_ingredients(processed)
        return self.get_ingredients()

    def add_manual_ingredients(self, names: list[str]) -> list[ProcessedIngredient]:
        """Append manually entered ingredients (confidence 1.0), skipping duplicates."""
        existing = {item.name.lower() for item in self._ingredients}
        additions: list[ProcessedIngredient] = []
        original_names: dict[str, str] = {}
        for raw in names:
            name = self.normalizer.normalize(raw)
            if not name or name.lower() in existing:
                continue
            existing.add(name.lower())
            original_names[name.lower()] = raw
            additions.append(
                ProcessedIngredient(name=name, confidence=1.0, quantity=self.normalizer.extract_quantity(raw))
            )

        additions = self.normalizer.enrich(self.normalizer.filter_and_dedupe(additions), original_names)
        if additions:
            self._set_ingredients(self._ingredients + additions)
        return self.get_ingredients()

    def remove_ingredients(self, names: list[str]) -> list[ProcessedIngredient]:
        targets = {self.normalizer.normalize(name).lower() for name in names}
        remaining = [item for item in self._ingredients if item.name.lower() not in targets]
        if len(remaining) != len(self._ingredients):
            self._set_ingredients(remaining)
        return self.get_ingredients()

    def clear_ingredients(self) -> None:
        self._set_ingredients([])

    def get_ingredients(self) -> list[ProcessedIngredient]:
        return list(self._ingredients)

    def get_ingredient_names(self) -> list[str]:
        return [item.name for item in self._ingredients]

    def get_context(self) -> IngredientContext:
        return self._context

    def infer_missing_ingredients(self) -> list[str]:
        return self.suggester.suggest_missing(self.get_ingredient_names(), self._context)

    def _set_ingredients(self, ingredients: list[ProcessedIngredient], save: bool = True) -> None:
        self._ingredients = list(ingredients)
        self._context = self.analyzer.analyze(self.get_ingredient_names())
        if save:
            self.storage.save(self.session_key, self._ingredients)
