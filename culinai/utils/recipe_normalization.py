"""Lenient mapping of model-authored recipe JSON onto the Recipe model."""

import logging
import math
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence

from culinai.models.recipe import NUTRITION_FIELDS, Difficulty, Recipe, RecipeIngredient

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"\d+(?:[.,]\d+)?")

# Absent/unparseable numbers sort after every real value
MISSING_NUMBER = math.inf

SORT_FIELDS = ("prepTime",) + NUTRITION_FIELDS

_OPTIONAL_TEXT_FIELDS = ("description", "prepTime", "sourceUrl", "sourceName", "imageKeyword", "imageUrl") + NUTRITION_FIELDS
_LIST_TEXT_FIELDS = ("dietaryTags", "tips", "userImages")


def generate_recipe_id() -> str:
    """Generate a recipe ID for records the model left without one."""
    return str(uuid.uuid4())


def coerce_recipe(data: Dict[str, Any]) -> Recipe:
    """Map one decoded recipe object onto a Recipe.

    Handles:
    - Missing or blank ``id`` (generated)
    - Ingredients given as plain strings or as ``{"item": ..., "amount": ...}``
    - Instructions given as a single string or as ``{"step": ..., "text": ...}``
    - Numbers where free text is expected (``"calories": 500`` -> ``"500"``)
    - Difficulty casing (``"easy"`` -> ``Easy``), unknown values dropped
    Unknown keys are kept as extra fields.
    """
    normalized: Dict[str, Any] = dict(data)

    rid = normalized.get("id")
    if rid is None or not str(rid).strip():
        normalized["id"] = generate_recipe_id()
    else:
        normalized["id"] = str(rid).strip()

    title = normalized.get("title")
    normalized["title"] = str(title).strip() if title is not None else ""

    normalized["ingredients"] = _coerce_ingredients(normalized.get("ingredients"))
    if "missingIngredients" in normalized:
        normalized["missingIngredients"] = _coerce_ingredients(normalized["missingIngredients"])
    normalized["instructions"] = _coerce_instructions(normalized.get("instructions"))

    for key in _OPTIONAL_TEXT_FIELDS:
        if key in normalized:
            normalized[key] = _to_text(normalized[key])
    for key in _LIST_TEXT_FIELDS:
        if key in normalized:
            normalized[key] = _to_text_list(normalized[key])

    if "difficulty" in normalized:
        normalized["difficulty"] = _coerce_difficulty(normalized["difficulty"])

    if "cooked" in normalized:
        normalized["cooked"] = bool(normalized["cooked"])

    # "image" is an alias some responses use
    if not normalized.get("imageUrl") and isinstance(normalized.get("image"), str):
        normalized["imageUrl"] = normalized.pop("image").strip() or None

    return Recipe(**normalized)


def coerce_recipes(records: Iterable[Any]) -> List[Recipe]:
    """Coerce every object record; anything that is not an object is skipped."""
    recipes: List[Recipe] = []
    for record in records:
        if not isinstance(record, dict):
            logger.warning(f"Skipping non-object recipe record of type {type(record).__name__}")
            continue
        recipes.append(coerce_recipe(record))
    return recipes


def compute_missing_ingredients(
    ingredients: Sequence[RecipeIngredient], possessed: Iterable[str]
) -> List[RecipeIngredient]:
    """Ingredients whose name is not in ``possessed`` (case-insensitive)."""
    have = {name.strip().lower() for name in possessed if isinstance(name, str)}
    return [ing for ing in ingredients if ing.name.strip().lower() not in have]


def extract_number(value: Any, default: float = MISSING_NUMBER) -> float:
    """First number found in a free-text value ("30 mins" -> 30.0)."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return default
    m = _NUMBER.search(value)
    if not m:
        return default
    return float(m.group(0).replace(",", "."))


def sort_recipes(recipes: Sequence[Recipe], by: str = "prepTime", descending: bool = False) -> List[Recipe]:
    """Sort recipes by a free-text numeric field; absent values always sort last."""
    if by not in SORT_FIELDS:
        raise ValueError(f"Cannot sort by {by!r}. Supported: {', '.join(SORT_FIELDS)}")

    def key(recipe: Recipe):
        number = extract_number(getattr(recipe, by, None))
        missing = number == MISSING_NUMBER
        return (missing, -number if descending and not missing else number)

    return sorted(recipes, key=key)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value)) if float(value).is_integer() else str(value)
    return str(value)


def _to_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(x).strip() for x in value if x is not None and str(x).strip()]


def _coerce_ingredients(value: Any) -> List[RecipeIngredient]:
    if not isinstance(value, list):
        return []
    result: List[RecipeIngredient] = []
    for ing in value:
        if isinstance(ing, str):
            if ing.strip():
                result.append(RecipeIngredient(name=ing.strip()))
        elif isinstance(ing, dict):
            name = ing.get("name") or ing.get("item") or ""
            quantity = ing.get("quantity")
            if quantity is None:
                quantity = ing.get("amount")
            name = str(name).strip()
            if not name:
                continue
            result.append(RecipeIngredient(name=name, quantity=_to_text(quantity) or ""))
    return result


def _coerce_instructions(value: Any) -> List[str]:
    if isinstance(value, str):
        return [line.strip() for line in value.split("\n") if line.strip()]
    if not isinstance(value, list):
        return []
    steps: List[str] = []
    for step in value:
        if isinstance(step, dict):
            step = step.get("text") or step.get("instruction") or step.get("step")
        if step is None:
            continue
        text = str(step).strip()
        if text:
            steps.append(text)
    return steps


def _coerce_difficulty(value: Any) -> Optional[Difficulty]:
    if not isinstance(value, str):
        return None
    for level in Difficulty:
        if level.value.lower() == value.strip().lower():
            return level
    return None
