"""Input validation utilities."""

from typing import Dict

from culinai.utils.exceptions import ValidationError

# Languages the UI ships translations for
SUPPORTED_LANGUAGES: Dict[str, str] = {
    "en": "English",
    "sk": "Slovak",
    "it": "Italian",
    "de": "German",
    "es": "Spanish",
    "fr": "French",
}

MAX_QUERY_LENGTH = 500


def validate_query(query: str) -> str:
    """
    Validate a free-text recipe search.

    Args:
        query: What the user is craving

    Returns:
        Stripped query

    Raises:
        ValidationError: If the query is blank or too long
    """
    if not isinstance(query, str):
        raise ValidationError("Query must be a string")

    query = query.strip()
    if not query:
        raise ValidationError("Query cannot be empty")

    if len(query) > MAX_QUERY_LENGTH:
        raise ValidationError(f"Query cannot exceed {MAX_QUERY_LENGTH} characters")

    return query


def validate_language(language: str) -> str:
    """
    Validate a language tag.

    Raises:
        ValidationError: If the tag is not one of SUPPORTED_LANGUAGES
    """
    if not isinstance(language, str) or language.lower() not in SUPPORTED_LANGUAGES:
        raise ValidationError(
            f"Unsupported language: {language!r}. Supported: {', '.join(SUPPORTED_LANGUAGES)}"
        )
    return language.lower()


def validate_ingredients_list(ingredients: list) -> list:
    """
    Validate ingredients list.

    Args:
        ingredients: List of ingredient strings

    Returns:
        Validated list of ingredients

    Raises:
        ValidationError: If ingredients list is invalid
    """
    if not isinstance(ingredients, list):
        raise ValidationError("Ingredients must be a list")

    if not ingredients:
        raise ValidationError("Ingredients list cannot be empty")

    if len(ingredients) > 50:
        raise ValidationError("Ingredients list cannot exceed 50 items")

    validated = []
    for ingredient in ingredients:
        if not isinstance(ingredient, str):
            raise ValidationError("All ingredients must be strings")
        ingredient = ingredient.strip()
        if not ingredient:
            continue
        if len(ingredient) > 200:
            raise ValidationError("Ingredient name cannot exceed 200 characters")
        validated.append(ingredient)

    if not validated:
        raise ValidationError("At least one valid ingredient is required")

    return validated


def language_name(language: str) -> str:
    """Human-readable name for a language tag; unknown tags pass through."""
    return SUPPORTED_LANGUAGES.get((language or "").lower(), language)
