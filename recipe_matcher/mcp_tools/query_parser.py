"""Natural-language query parsing using Gemini.

Turns requests like "quick vegan dinner with chickpeas" into a QueryAnalysis
(ingredients, meal type, dietary restrictions, cooking-time preference).
Failures never propagate: callers get an empty analysis.
"""

import asyncio
from typing import Any, Optional

from google import genai
from pydantic import ValidationError

from recipe_matcher.mcp_tools.ingredients import extract_json
from recipe_matcher.models.models import QueryAnalysis
from recipe_matcher.prompts.prompts import build_query_prompt
from recipe_matcher.utils.config import config
from recipe_matcher.utils.errors import retry_transient, safe_execute_async
from recipe_matcher.utils.logger import logger


def parse_query_response(response_text: str) -> Optional[QueryAnalysis]:
    """Parse Gemini's JSON answer into a QueryAnalysis (None if unusable)."""
    parsed: Any = extract_json(response_text or "")
    if not isinstance(parsed, dict):
        logger.warning("Failed to parse JSON from query analysis response")
        return None

    try:
        return QueryAnalysis.model_validate(parsed)
    except ValidationError as e:
        logger.warning(f"Query analysis failed validation: {e.error_count()} error(s)")
        # Keep the ingredients even when the context fields are unusable
        ingredients = parsed.get("extractedIngredients") or parsed.get("extracted_ingredients") or []
        if isinstance(ingredients, list):
            return QueryAnalysis(extracted_ingredients=[str(i) for i in ingredients if i])
        return None


async def analyze_query_once(query: str) -> Optional[QueryAnalysis]:
    client = genai.Client(api_key=config.require_gemini())
    response = await asyncio.to_thread(
        client.models.generate_content,
        model=config.QUERY_MODEL,
        contents=[build_query_prompt(query)],
    )
    return parse_query_response(response.text)


async def _analyze_with_retries(query: str) -> Optional[QueryAnalysis]:
    return await retry_transient(lambda: analyze_query_once(query), "Query analysis")


async def analyze_query(query: str) -> QueryAnalysis:
    """Extract ingredients and context from free text.

    Args:
        query: User request, e.g. "something quick with eggs for breakfast".

    Returns:
        QueryAnalysis; empty when the query is blank or the model call fails.
    """
    if not query or not query.strip():
        return QueryAnalysis()

    result = await safe_execute_async(
        _analyze_with_retries(query.strip()),
        "Natural language query analysis",
        log_level="warning",
        default_return=None,
    )
    if result is None:
        return QueryAnalysis()

    logger.info(f"Query analysis: {len(result.extracted_ingredients)} ingredients extracted")
    return result
