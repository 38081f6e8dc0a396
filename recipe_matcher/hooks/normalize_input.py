"""Boundary normalization for ingredient input.

Ingredient data arrives in several shapes: plain strings from manual entry
or the CLI, dicts from JSON payloads (``{"name": ..., "confidence": ...}``),
RawDetection objects from the vision adapter and ProcessedIngredient objects
from storage. Everything is coerced once here so the engine only ever sees
typed models.
"""

from typing import Any, Iterable

from pydantic import ValidationError

from recipe_matcher.models.models import ProcessedIngredient, RawDetection
from recipe_matcher.utils.logger import logger


def to_raw_detections(items: Iterable[Any] | None) -> list[RawDetection]:
    """Coerce mixed ingredient input into RawDetection objects.

    Strings become detections with confidence 1.0. Malformed items are
    logged and skipped.
    """
    detections: list[RawDetection] = []
    for item in items or []:
        if isinstance(item, RawDetection):
            detections.append(item)
            continue
        if isinstance(item, ProcessedIngredient):
            detections.append(RawDetection(name=item.name, confidence=item.confidence))
            continue
        if isinstance(item, str):
            if item.strip():
                detections.append(RawDetection(name=item, confidence=1.0))
            continue
        if isinstance(item, dict):
            try:
                detections.append(RawDetection.model_validate({"confidence": 1.0, **item}))
            except ValidationError as e:
                logger.warning(f"Skipping malformed detection {item!r}: {e.error_count()} error(s)")
            continue
        logger.warning(f"Skipping ingredient input of type {type(item).__name__}")

    logger.debug(f"Normalized input: {len(detections)} detections")
    return detections


def to_processed_ingredients(items: Iterable[Any] | None) -> list[ProcessedIngredient]:
    """Coerce mixed ingredient input into ProcessedIngredient objects (no renaming)."""
    processed: list[ProcessedIngredient] = []
    for item in items or []:
        if isinstance(item, ProcessedIngredient):
            processed.append(item)
            continue
        if isinstance(item, RawDetection):
            processed.append(ProcessedIngredient(name=item.name, confidence=item.confidence))
            continue
        if isinstance(item, str):
            if item.strip():
                processed.append(ProcessedIngredient(name=item))
            continue
        if isinstance(item, dict):
            try:
                processed.append(ProcessedIngredient.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed ingredient {item!r}: {e.error_count()} error(s)")
            continue
        logger.warning(f"Skipping ingredient input of type {type(item).__name__}")
    return processed


def ingredient_names(items: Iterable[Any] | None) -> list[str]:
    return [item.name for item in to_processed_ingredients(items)]
