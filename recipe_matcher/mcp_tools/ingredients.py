"""Gemini vision adapter: photo in, ``list[RawDetection]`` out.

The engine never calls the vision service itself; IntelligenceService
awaits one of the two entry points here:

- detect_ingredients(): lenient, any failure yields []
- detect_ingredients_tool(): strict, raises ValueError with a reason that
  can be shown to the user

Pipeline: fetch_image_bytes → validate_image_format / validate_image_size →
extract_detections_with_retries → filter_detections_by_confidence → sort.
"""

import asyncio
import base64
import binascii
import json
import re
from typing import Any, Optional

import aiohttp
import filetype
from google import genai
from google.genai import types
from pydantic import ValidationError

from recipe_matcher.models.models import RawDetection
from recipe_matcher.prompts.prompts import INGREDIENT_DETECTION_PROMPT
from recipe_matcher.utils.config import config
from recipe_matcher.utils.errors import retry_transient, safe_execute_async
from recipe_matcher.utils.logger import logger

SUPPORTED_IMAGE_TYPES = {"jpg": "image/jpeg", "jpeg": "image/jpeg", "png": "image/png"}
URL_FETCH_TIMEOUT_SECONDS = 10
JSON_BLOCK_RE = re.compile(r"[\[{].*[\]}]", re.DOTALL)


# ============================================================================
# Image Handling
# ============================================================================


def _decode_base64(data: str, label: str) -> Optional[bytes]:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Could not decode {label}: {e}")
        return None


async def _download(url: str) -> bytes:
    timeout = aiohttp.ClientTimeout(total=URL_FETCH_TIMEOUT_SECONDS)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.get(url) as response:
            response.raise_for_status()
            return await response.read()


async def fetch_image_bytes(image_source: str | bytes) -> Optional[bytes]:
    """Resolve raw bytes, an http(s) URL, a ``data:`` URI or plain base64.

    Returns:
        Image bytes, or None when the source cannot be resolved (logged).
    """
    if isinstance(image_source, bytes):
        return image_source
    if not isinstance(image_source, str):
        logger.warning(f"Unsupported image source type: {type(image_source).__name__}")
        return None

    if image_source.startswith("data:"):
        _, _, encoded = image_source.partition(",")
        return _decode_base64(encoded, "data URI")

    if image_source.startswith(("http://", "https://")):
        return await safe_execute_async(_download(image_source), f"Download image {image_source}")

    return _decode_base64(image_source, "base64 image")


def validate_image_format(image_bytes: bytes) -> bool:
    """JPEG and PNG only, judged by magic bytes."""
    kind = filetype.guess(image_bytes)
    if kind is None or kind.extension not in SUPPORTED_IMAGE_TYPES:
        logger.warning(f"Rejected image of type {kind.mime if kind else 'unknown'}")
        return False
    return True


def validate_image_size(image_bytes: bytes) -> bool:
    limit_bytes = config.MAX_IMAGE_SIZE_MB * 1024 * 1024
    if len(image_bytes) > limit_bytes:
        logger.warning(
            f"Rejected image of {len(image_bytes) / (1024 * 1024):.2f}MB (limit {config.MAX_IMAGE_SIZE_MB}MB)"
        )
        return False
    return True


# ============================================================================
# Response Parsing
# ============================================================================


def extract_json(response_text: str) -> Any:
    """Parse model output as JSON, falling back to the outermost bracketed block.

    Returns:
        The decoded value, or None when nothing parses.
    """
    try:
        return json.loads(response_text)
    except (json.JSONDecodeError, TypeError):
        pass

    match = JSON_BLOCK_RE.search(response_text or "")
    if match is None:
        return None
    try:
        return json.loads(match.group())
    except json.JSONDecodeError as e:
        logger.debug(f"No JSON recovered from model output: {e}")
        return None


def _to_detections(payload: Any) -> list[RawDetection]:
    """Accept either ``[{name, confidence}]`` or ``{"ingredients": [...], "confidence_scores": {...}}``."""
    if isinstance(payload, dict):
        items = payload.get("ingredients", [])
        scores = payload.get("confidence_scores") or {}
    else:
        items, scores = payload, {}

    detections: list[RawDetection] = []
    for item in items or []:
        if isinstance(item, str):
            item = {"name": item, "confidence": scores.get(item, 1.0)}
        try:
            detections.append(RawDetection.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Skipping malformed detection {item!r}: {e.error_count()} error(s)")
    return detections


def parse_gemini_response(response_text: str) -> Optional[list[RawDetection]]:
    """Parse a Gemini vision response into detections.

    Tolerates explanatory text around the JSON.

    Returns:
        List of RawDetection, or None when no JSON could be recovered.
    """
    parsed = extract_json(response_text or "")
    if not isinstance(parsed, (dict, list)):
        logger.warning("Failed to parse JSON from Gemini response")
        return None
    return _to_detections(parsed)


# ============================================================================
# Gemini Calls
# ============================================================================


async def extract_detections_from_image(image_bytes: bytes) -> Optional[list[RawDetection]]:
    """Single Gemini vision call (no retries). Exceptions propagate to the retry loop."""
    kind = filetype.guess(image_bytes)
    if kind is None:
        raise ValueError("Unable to determine image format")

    client = genai.Client(api_key=config.require_gemini())
    response = await asyncio.to_thread(
        client.models.generate_content,
        model=config.IMAGE_DETECTION_MODEL,
        contents=[
            INGREDIENT_DETECTION_PROMPT,
            types.Part.from_bytes(data=image_bytes, mime_type=SUPPORTED_IMAGE_TYPES.get(kind.extension, kind.mime)),
        ],
    )
    return parse_gemini_response(response.text)


async def extract_detections_with_retries(
    image_bytes: bytes, max_retries: Optional[int] = None
) -> Optional[list[RawDetection]]:
    """Call the vision API, retrying transient errors and empty answers.

    Returns:
        Detections on success; None on a permanent error or once retries
        are exhausted.
    """
    try:
        return await retry_transient(
            lambda: extract_detections_from_image(image_bytes),
            "Ingredient extraction",
            max_retries=max_retries,
        )
    except Exception as e:
        logger.warning(f"Failed to extract ingredients: {e}")
        return None


def filter_detections_by_confidence(detections: list[RawDetection]) -> list[RawDetection]:
    """Drop detections below MIN_INGREDIENT_CONFIDENCE, keeping order."""
    threshold = config.MIN_INGREDIENT_CONFIDENCE
    kept = [d for d in detections if d.confidence >= threshold]
    if len(kept) < len(detections):
        logger.debug(f"Dropped {len(detections) - len(kept)} detections below confidence {threshold}")
    return kept


# ============================================================================
# Entry Points
# ============================================================================


async def detect_ingredients_tool(image_data: str | bytes) -> list[RawDetection]:
    """Detect ingredients in an image, raising on failure.

    Args:
        image_data: HTTP(S) URL, data URI, plain base64 string or raw bytes.

    Returns:
        Detections sorted by confidence (highest first).

    Raises:
        ValueError: With a user-facing reason:
        - "Could not retrieve image bytes from provided data"
        - "Invalid image format. Only JPEG and PNG are supported."
        - "Image too large. Maximum size is {MAX_IMAGE_SIZE_MB}MB"
        - "Failed to extract ingredients from image. Please try another image."
        - "No ingredients detected with sufficient confidence. Please try another image."
    """
    try:
        image_bytes = await fetch_image_bytes(image_data)
        if not image_bytes:
            raise ValueError("Could not retrieve image bytes from provided data")

        if not validate_image_format(image_bytes):
            raise ValueError("Invalid image format. Only JPEG and PNG are supported.")

        if not validate_image_size(image_bytes):
            raise ValueError(f"Image too large. Maximum size is {config.MAX_IMAGE_SIZE_MB}MB")

        detections = await extract_detections_with_retries(image_bytes)
        if detections is None:
            raise ValueError("Failed to extract ingredients from image. Please try another image.")

        detections = filter_detections_by_confidence(detections)
        if not detections:
            raise ValueError("No ingredients detected with sufficient confidence. Please try another image.")

        detections.sort(key=lambda d: d.confidence, reverse=True)
        logger.info(f"Detected {len(detections)} ingredients from image")
        return detections

    except ValueError:
        raise
    except Exception as e:
        logger.error(f"Ingredient detection tool failed: {e}")
        raise ValueError(f"Ingredient detection failed: {str(e)}") from e


async def detect_ingredients(image_data: str | bytes) -> list[RawDetection]:
    """Lenient variant of detect_ingredients_tool: failures yield []."""
    return await safe_execute_async(
        detect_ingredients_tool(image_data),
        "Ingredient detection",
        log_level="warning",
        default_return=[],
    )
