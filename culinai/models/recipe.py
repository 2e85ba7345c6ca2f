"""Recipe and application-state Pydantic models."""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Free-text nutrition fields the model may emit (e.g. "30g", "10% DV")
NUTRITION_FIELDS = (
    "calories",
    "protein",
    "carbs",
    "fat",
    "fiber",
    "sugar",
    "sodium",
    "cholesterol",
    "potassium",
    "vitaminA",
    "vitaminC",
    "calcium",
    "iron",
)

# Boolean toggles of DietaryFilters, in prompt order
DIETARY_FLAGS = (
    "vegetarian",
    "vegan",
    "keto",
    "glutenFree",
    "dairyFree",
    "lowCarb",
    "highProtein",
    "lowFat",
)


class Difficulty(str, Enum):
    """Recipe difficulty."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class RecipeIngredient(BaseModel):
    """Single ingredient line of a recipe."""

    name: str = Field(..., description="Ingredient name")
    quantity: str = Field("", description="Amount (e.g. '2 cups')")


class Recipe(BaseModel):
    """A recipe suggested by the model.

    Only id, title, ingredients and instructions are always present; everything
    else may be missing because the model is not a schema-conformant source.
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    id: str = Field(..., description="Recipe ID (generated when the model omits it)")
    title: str = Field("", description="Recipe title")
    ingredients: List[RecipeIngredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list, description="Ordered cooking steps")

    description: Optional[str] = None
    missingIngredients: List[RecipeIngredient] = Field(default_factory=list)

    prepTime: Optional[str] = Field(None, description="Free text, e.g. '30 mins'")
    calories: Optional[str] = None
    protein: Optional[str] = None
    carbs: Optional[str] = None
    fat: Optional[str] = None
    fiber: Optional[str] = None
    sugar: Optional[str] = None
    sodium: Optional[str] = None
    cholesterol: Optional[str] = None
    potassium: Optional[str] = None
    vitaminA: Optional[str] = None
    vitaminC: Optional[str] = None
    calcium: Optional[str] = None
    iron: Optional[str] = None

    difficulty: Optional[Difficulty] = None
    dietaryTags: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list, description="Chef's tips")

    sourceUrl: Optional[str] = None
    sourceName: Optional[str] = None

    imageKeyword: Optional[str] = Field(None, description="Short dish keyword for image lookup")
    imageUrl: Optional[str] = None
    userImages: List[str] = Field(default_factory=list, description="User uploaded images (max 5)")
    cooked: bool = False


class DietaryFilters(BaseModel):
    """Search constraints. Boolean toggles are independent of each other."""

    vegetarian: bool = False
    vegan: bool = False
    keto: bool = False
    glutenFree: bool = False
    dairyFree: bool = False
    lowCarb: bool = False
    highProtein: bool = False
    lowFat: bool = False
    cuisine: List[str] = Field(default_factory=list, description="Selected cuisines, in selection order")
    maxPrepTime: Optional[str] = Field("any", description="'any' or a number of minutes as a string")

    def active_flags(self) -> List[str]:
        """Names of the boolean toggles that are switched on."""
        return [flag for flag in DIETARY_FLAGS if getattr(self, flag)]


class ShoppingItem(BaseModel):
    """Shopping list entry."""

    id: str
    name: str
    checked: bool = False


class ChatMessage(BaseModel):
    """One turn of a chat transcript."""

    role: Literal["user", "model"]
    text: str
    isError: bool = False


class UserProfile(BaseModel):
    """Name + secret key used by the login gate."""

    name: str
    secretKey: str


class SavedSearch(BaseModel):
    """A past search and the filters it ran with."""

    id: str
    query: str
    filters: DietaryFilters
    timestamp: float


class InlineImage(BaseModel):
    """Base64 image payload ready to be sent inline to Gemini."""

    mime_type: str = "image/jpeg"
    data: str = Field(..., description="Base64-encoded image bytes")


class ViewState(str, Enum):
    """Screens of the application."""

    AUTH = "auth"
    HOME = "home"
    RECIPES = "recipes"
    RECIPE_DETAILS = "recipe-details"
    COOKING = "cooking"
    SHOPPING = "shopping"
    HISTORY = "history"
    FAVORITES = "favorites"
    CHAT = "chat"
