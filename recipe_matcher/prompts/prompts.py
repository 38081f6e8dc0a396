"""Prompts sent to the Gemini collaborators.

- INGREDIENT_DETECTION_PROMPT: photo -> list of {name, confidence}
- QUERY_ANALYSIS_PROMPT: free-text request -> ingredients and request context
"""

INGREDIENT_DETECTION_PROMPT = (
    "Extract all food ingredients visible in this image. "
    "Return ONLY valid JSON with an 'ingredients' list of objects, each with a 'name' "
    "(string) and a 'confidence' (0.0-1.0). Ignore tableware, packaging and furniture. "
    'Example: {"ingredients": [{"name": "tomato", "confidence": 0.95}, '
    '{"name": "basil", "confidence": 0.88}]}'
)

QUERY_ANALYSIS_PROMPT = """You extract cooking intent from a user's request.

Return ONLY valid JSON with these keys:
- "extractedIngredients": list of ingredient names mentioned (strings, singular or plural as written)
- "mealType": one of "breakfast", "lunch", "dinner", "snack", or null
- "dietaryRestrictions": list of restrictions such as "Vegetarian", "Vegan", "Gluten-Free"
- "cookingTime": one of "quick" (20 minutes or less), "medium" (21-40 minutes), "long", or null

Do not invent ingredients the user did not mention.

Example:
Request: "something quick and vegan for dinner with chickpeas and spinach"
{"extractedIngredients": ["chickpeas", "spinach"], "mealType": "dinner", "dietaryRestrictions": ["Vegan"], "cookingTime": "quick"}

Request: "{query}"
"""


def build_query_prompt(query: str) -> str:
    """Insert the user's request into QUERY_ANALYSIS_PROMPT."""
    return QUERY_ANALYSIS_PROMPT.replace("{query}", query.replace('"', "'"))
