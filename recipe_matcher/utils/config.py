"""Configuration management for the recipe matching engine.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class Config:
    """Engine configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Gemini API key: only needed by the vision and query-parsing adapters
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        # Image Detection Model: vision model used to turn photos into detections
        self.IMAGE_DETECTION_MODEL: str = os.getenv("IMAGE_DETECTION_MODEL", "gemini-2.5-flash-lite")
        # Query Model: model used to extract ingredients and context from free text
        self.QUERY_MODEL: str = os.getenv("QUERY_MODEL", "gemini-2.5-flash-lite")
        # Maximum image size (in MB) that can be sent to the vision model. Default: 5 MB
        self.MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))
        # Minimum confidence (0.0 - 1.0) for a vision detection to be kept. Default: 0.0 (keep all)
        self.MIN_INGREDIENT_CONFIDENCE: float = float(os.getenv("MIN_INGREDIENT_CONFIDENCE", "0.0"))

        # Maximum number of recipes returned per recommendation round. Default: 5
        self.MAX_RECIPES: int = int(os.getenv("MAX_RECIPES", "5"))
        # Maximum number of missing-ingredient suggestions. Default: 5
        self.MAX_SUGGESTIONS: int = int(os.getenv("MAX_SUGGESTIONS", "5"))
        # Score multiplier for recipes already shown in this session. Flat, no decay. Default: 0.3
        self.SEEN_RECIPE_FRESHNESS: float = float(os.getenv("SEEN_RECIPE_FRESHNESS", "0.3"))
        # Share of result slots one cuisine may hold before a substitution is attempted. Default: 0.6
        self.DIVERSITY_THRESHOLD: float = float(os.getenv("DIVERSITY_THRESHOLD", "0.6"))
        # Score multiplier applied to a diversity substitute. Default: 0.8
        self.DIVERSITY_SCORE_PENALTY: float = float(os.getenv("DIVERSITY_SCORE_PENALTY", "0.8"))
        # Number of fallback recipes shown when nothing matches. Default: 0 (disabled)
        self.FALLBACK_RECIPES: int = int(os.getenv("FALLBACK_RECIPES", "0"))
        # Minutes assumed when a recipe's cook time cannot be parsed. Default: 30
        self.DEFAULT_COOK_MINUTES: int = int(os.getenv("DEFAULT_COOK_MINUTES", "30"))

        # Recipe catalog: JSON file with recipe records. Default: bundled sample catalog
        self.RECIPE_CATALOG_PATH: Optional[str] = os.getenv("RECIPE_CATALOG_PATH")
        # Storage backend for ingredient lists: "memory" or "file"
        self.STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "memory")
        # Directory used by the file storage backend
        self.STORAGE_DIR: str = os.getenv("STORAGE_DIR", "tmp/storage")

        # Adapter retry configuration - handles transient Gemini API failures
        # MAX_RETRIES: Number of attempts for vision/query calls (exponential backoff)
        self.MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
        # DELAY_BETWEEN_RETRIES: Initial delay in seconds (doubled each retry)
        self.DELAY_BETWEEN_RETRIES: int = int(os.getenv("DELAY_BETWEEN_RETRIES", "1"))
        # EXPONENTIAL_BACKOFF: Double the delay after every failed attempt
        self.EXPONENTIAL_BACKOFF: bool = _as_bool(os.getenv("EXPONENTIAL_BACKOFF", "true"))

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a value is outside its allowed range.
        """
        if self.STORAGE_BACKEND not in ("memory", "file"):
            raise ValueError(
                f"STORAGE_BACKEND must be 'memory' or 'file', got: {self.STORAGE_BACKEND}"
            )
        if not (0.0 <= self.MIN_INGREDIENT_CONFIDENCE <= 1.0):
            raise ValueError(
                f"MIN_INGREDIENT_CONFIDENCE must be between 0.0 and 1.0, got: {self.MIN_INGREDIENT_CONFIDENCE}"
            )
        if not (0.0 <= self.SEEN_RECIPE_FRESHNESS <= 1.0):
            raise ValueError(
                f"SEEN_RECIPE_FRESHNESS must be between 0.0 and 1.0, got: {self.SEEN_RECIPE_FRESHNESS}"
            )
        if not (0.0 < self.DIVERSITY_THRESHOLD < 1.0):
            raise ValueError(
                f"DIVERSITY_THRESHOLD must be between 0.0 and 1.0 (exclusive), got: {self.DIVERSITY_THRESHOLD}"
            )
        if not (0.0 <= self.DIVERSITY_SCORE_PENALTY <= 1.0):
            raise ValueError(
                f"DIVERSITY_SCORE_PENALTY must be between 0.0 and 1.0, got: {self.DIVERSITY_SCORE_PENALTY}"
            )
        if self.MAX_RECIPES < 1:
            raise ValueError(f"MAX_RECIPES must be at least 1, got: {self.MAX_RECIPES}")
        if self.MAX_SUGGESTIONS < 0:
            raise ValueError(f"MAX_SUGGESTIONS must not be negative, got: {self.MAX_SUGGESTIONS}")
        if self.FALLBACK_RECIPES < 0:
            raise ValueError(f"FALLBACK_RECIPES must not be negative, got: {self.FALLBACK_RECIPES}")
        if self.DEFAULT_COOK_MINUTES < 1:
            raise ValueError(
                f"DEFAULT_COOK_MINUTES must be at least 1, got: {self.DEFAULT_COOK_MINUTES}"
            )
        if self.MAX_RETRIES < 1:
            raise ValueError(
                f"MAX_RETRIES must be at least 1, got: {self.MAX_RETRIES}"
            )
        if self.DELAY_BETWEEN_RETRIES < 0:
            raise ValueError(
                f"DELAY_BETWEEN_RETRIES must not be negative, got: {self.DELAY_BETWEEN_RETRIES}"
            )

    def require_gemini(self) -> str:
        """Return the Gemini API key, failing if the adapters are unconfigured.

        Raises:
            ValueError: If GEMINI_API_KEY is not set.
        """
        if not self.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY environment variable is required for vision and query parsing")
        return self.GEMINI_API_KEY


# Create module-level config instance and validate immediately
config = Config()
config.validate()
