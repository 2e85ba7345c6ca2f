"""
Application state and the actions views are allowed to call.

The store owns every collection (recipes, shopping list, favorites, history,
filters). Services stay stateless; the store calls them and reconciles their
results. Each search/scan takes a request token so a late answer to a
superseded request is dropped instead of overwriting newer results.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from culinai.config import Settings, settings as default_settings
from culinai.models.recipe import (
    DIETARY_FLAGS,
    ChatMessage,
    DietaryFilters,
    InlineImage,
    Recipe,
    SavedSearch,
    ShoppingItem,
    UserProfile,
    ViewState,
)
from culinai.services.chat_session import ChatSession, create_session
from culinai.services.image_lookup import RecipeImageGenerator
from culinai.services.image_service import ImageService
from culinai.services.ingredient_extractor import IngredientExtractor
from culinai.services.model_gateway import ModelGateway
from culinai.services.recipe_synthesizer import RecipeSynthesizer
from culinai.store.cooking_mode import CookingSession, Narrator
from culinai.store.persistence import InMemoryPersistence, PersistencePort
from culinai.utils.exceptions import AuthenticationError, GeminiError, ValidationError
from culinai.utils.recipe_normalization import compute_missing_ingredients, sort_recipes
from culinai.utils.validators import validate_language, validate_query

logger = logging.getLogger(__name__)

SYSTEM_UNAVAILABLE = "The recipe service is unavailable right now. Please try again."
IMAGE_FAILED = "Failed to generate image."
MAX_SAVED_SEARCHES = 20
THEMES = ("light", "dark")

Upload = Union[Tuple[bytes, str], InlineImage, str]
Listener = Callable[["AppStore"], None]


class AppStore:
    """Single owner of application state."""

    def __init__(
        self,
        synthesizer: RecipeSynthesizer,
        extractor: IngredientExtractor,
        gateway: ModelGateway,
        image_service: Optional[ImageService] = None,
        image_generator: Optional[RecipeImageGenerator] = None,
        persistence: Optional[PersistencePort] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.synthesizer = synthesizer
        self.extractor = extractor
        self.gateway = gateway
        self.image_service = image_service or ImageService(self.settings)
        self.image_generator = image_generator or RecipeImageGenerator(gateway)
        self.persistence = persistence or InMemoryPersistence()

        # Transient state
        self.view = ViewState.AUTH
        self.recipes: List[Recipe] = []
        self.selected_recipe: Optional[Recipe] = None
        self.pantry: List[str] = []
        self.is_searching = False
        self.error: Optional[str] = None
        self.chat: Optional[ChatSession] = None
        self.cooking: Optional[CookingSession] = None
        self._request_token = 0
        self._listeners: List[Listener] = []

        # Persisted state
        self.profiles: Dict[str, str] = {}
        self.user: Optional[UserProfile] = None
        self.filters = DietaryFilters()
        self.language = "en"
        self.theme = "dark"
        self.shopping_list: List[ShoppingItem] = []
        self.favorites: List[str] = []
        self.history: List[str] = []
        self.saved_searches: List[SavedSearch] = []
        self.recipe_book: Dict[str, Recipe] = {}

        self._load()

    # ---------------------------------------------------------------------
    # Subscriptions / persistence
    # ---------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a re-render callback. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _load(self) -> None:
        data = self.persistence.load()
        loaders: Dict[str, Callable[[Any], None]] = {
            "profiles": self._load_profiles,
            "user": self._load_user,
            "filters": self._load_filters,
            "language": self._load_language,
            "theme": self._load_theme,
            "shoppingList": self._load_shopping_list,
            "favorites": self._load_favorites,
            "history": self._load_history,
            "savedSearches": self._load_saved_searches,
            "recipeBook": self._load_recipe_book,
        }
        for key, loader in loaders.items():
            if not data.get(key):
                continue
            try:
                loader(data[key])
            except (TypeError, ValueError, AttributeError, ValidationError) as e:
                logger.error(f"Ignoring unreadable saved {key}: {e}")
        logger.info(
            "Loaded saved state",
            extra={"favorites": len(self.favorites), "shopping_items": len(self.shopping_list)},
        )

    def _load_profiles(self, value: Any) -> None:
        self.profiles = {str(name): str(key) for name, key in dict(value).items()}

    def _load_user(self, value: Any) -> None:
        self.user = UserProfile(**value)
        self.view = ViewState.HOME

    def _load_filters(self, value: Any) -> None:
        self.filters = DietaryFilters(**value)

    def _load_language(self, value: Any) -> None:
        self.language = validate_language(value)

    def _load_theme(self, value: Any) -> None:
        if value not in THEMES:
            raise ValueError(f"unknown theme {value!r}")
        self.theme = value

    def _load_shopping_list(self, value: Any) -> None:
        self.shopping_list = [ShoppingItem(**item) for item in value]

    def _load_favorites(self, value: Any) -> None:
        self.favorites = [str(rid) for rid in value]

    def _load_history(self, value: Any) -> None:
        self.history = [str(rid) for rid in value]

    def _load_saved_searches(self, value: Any) -> None:
        self.saved_searches = [SavedSearch(**s) for s in value]

    def _load_recipe_book(self, value: Any) -> None:
        self.recipe_book = {rid: Recipe(**r) for rid, r in dict(value).items()}

    def _save(self, *keys: str) -> None:
        for key in keys:
            self.persistence.save(key, self._snapshot(key))

    def _snapshot(self, key: str) -> Any:
        if key == "profiles":
            return dict(self.profiles)
        if key == "user":
            return self.user.model_dump() if self.user else None
        if key == "filters":
            return self.filters.model_dump()
        if key == "language":
            return self.language
        if key == "theme":
            return self.theme
        if key == "shoppingList":
            return [item.model_dump() for item in self.shopping_list]
        if key == "favorites":
            return list(self.favorites)
        if key == "history":
            return list(self.history)
        if key == "savedSearches":
            return [s.model_dump() for s in self.saved_searches]
        if key == "recipeBook":
            return {rid: r.model_dump(mode="json") for rid, r in self.recipe_book.items()}
        raise KeyError(key)

    # ---------------------------------------------------------------------
    # Login gate (convenience only, not a security boundary)
    # ---------------------------------------------------------------------

    def login(self, name: str, secret_key: str) -> UserProfile:
        """
        Enter the app as ``name``. Unknown names are registered on first use.

        Raises:
            ValidationError: If name or key is blank
            AuthenticationError: If the name exists with a different key
        """
        name = (name or "").strip()
        secret_key = (secret_key or "").strip()
        if not name or not secret_key:
            raise ValidationError("Name and secret key are required")

        known = self.profiles.get(name)
        if known is not None and known != secret_key:
            logger.warning(f"Login rejected for {name!r}")
            raise AuthenticationError("Secret key does not match this name")

        self.profiles[name] = secret_key
        self.user = UserProfile(name=name, secretKey=secret_key)
        self.view = ViewState.HOME
        self._save("profiles", "user")
        self._notify()
        return self.user

    def logout(self) -> None:
        self.user = None
        self.view = ViewState.AUTH
        self.chat = None
        self.cooking = None
        self._save("user")
        self._notify()

    # ---------------------------------------------------------------------
    # Filters / settings
    # ---------------------------------------------------------------------

    def toggle_filter(self, key: str) -> bool:
        """Flip a boolean dietary filter. Returns its new value."""
        if key not in DIETARY_FLAGS:
            raise ValidationError(f"Unknown dietary filter: {key!r}")
        value = not getattr(self.filters, key)
        setattr(self.filters, key, value)
        self._save("filters")
        self._notify()
        return value

    def toggle_cuisine(self, cuisine: str) -> List[str]:
        """Add or remove a cuisine, keeping selection order."""
        cuisine = (cuisine or "").strip()
        if not cuisine:
            raise ValidationError("Cuisine cannot be empty")
        if cuisine in self.filters.cuisine:
            self.filters.cuisine = [c for c in self.filters.cuisine if c != cuisine]
        else:
            self.filters.cuisine = [*self.filters.cuisine, cuisine]
        self._save("filters")
        self._notify()
        return self.filters.cuisine

    def set_max_prep_time(self, value: Union[str, int, None]) -> None:
        if value is None or str(value).strip().lower() == "any":
            self.filters.maxPrepTime = "any"
        else:
            text = str(value).strip()
            if not text.isdigit() or int(text) <= 0:
                raise ValidationError("Max prep time must be 'any' or a positive number of minutes")
            self.filters.maxPrepTime = text
        self._save("filters")
        self._notify()

    def reset_filters(self) -> None:
        self.filters = DietaryFilters()
        self._save("filters")
        self._notify()

    def set_language(self, language: str) -> None:
        self.language = validate_language(language)
        self._save("language")
        self._notify()

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValidationError(f"Theme must be one of {', '.join(THEMES)}")
        self.theme = theme
        self._save("theme")
        self._notify()

    def navigate(self, view: Union[ViewState, str]) -> None:
        self.view = ViewState(view)
        self._notify()

    # ---------------------------------------------------------------------
    # Search
    # ---------------------------------------------------------------------

    async def search(self, query: str) -> List[Recipe]:
        """
        Search recipes for a craving.

        Returns the recipes of this call. They are applied to the store only if
        no newer search/scan started in the meantime.
        """
        query = validate_query(query)
        token = self._begin_request()
        self._record_search(query)

        try:
            recipes = await self.synthesizer.synthesize(query, self.filters.model_copy(deep=True), self.language)
            error = None
        except GeminiError as e:
            logger.error(f"Search failed: {e}", extra={"request_token": token})
            recipes, error = [], SYSTEM_UNAVAILABLE

        self._finish_request(token, recipes, error)
        return recipes

    async def scan(self, uploads: Sequence[Upload]) -> List[Recipe]:
        """
        Recognize ingredients in photos, then search recipes that use them.

        Raises:
            ValidationError: If more images than allowed are given (before any request)
            ImageProcessingError: If an upload is not a usable image
        """
        images = self._prepare_images(uploads)
        token = self._begin_request()

        ingredients = await self.extractor.extract(images, self.language)
        if not self._is_current(token):
            logger.info("Discarding stale ingredient scan", extra={"request_token": token})
            return []

        self.pantry = ingredients
        if not ingredients:
            logger.info("No ingredients recognized", extra={"request_token": token})
            self._finish_request(token, [], None)
            return []

        try:
            recipes = await self.synthesizer.synthesize_from_ingredients(
                ingredients, self.filters.model_copy(deep=True), self.language
            )
            error = None
        except GeminiError as e:
            logger.error(f"Scan search failed: {e}", extra={"request_token": token})
            recipes, error = [], SYSTEM_UNAVAILABLE

        for recipe in recipes:
            # the model's own list wins when it sent one
            if "missingIngredients" not in recipe.model_fields_set:
                recipe.missingIngredients = compute_missing_ingredients(recipe.ingredients, ingredients)

        self._finish_request(token, recipes, error)
        return recipes

    def _prepare_images(self, uploads: Sequence[Upload]) -> List[InlineImage]:
        limit = self.settings.max_scan_images
        if len(uploads) > limit:
            raise ValidationError(f"You can scan at most {limit} images at a time (got {len(uploads)})")
        if all(isinstance(u, tuple) for u in uploads):
            return self.image_service.normalize_batch(list(uploads), limit)

        images: List[InlineImage] = []
        for upload in uploads:
            if isinstance(upload, InlineImage):
                images.append(self.image_service.check_inline(upload))
            elif isinstance(upload, str):
                images.append(self.image_service.from_data_url(upload))
            else:
                content, filename = upload
                images.append(self.image_service.encode(content, filename))
        return images

    def _begin_request(self) -> int:
        self._request_token += 1
        self.view = ViewState.RECIPES
        self.is_searching = True
        self.error = None
        self._notify()
        return self._request_token

    def _is_current(self, token: int) -> bool:
        return token == self._request_token

    def _finish_request(self, token: int, recipes: List[Recipe], error: Optional[str]) -> None:
        if not self._is_current(token):
            logger.info("Discarding stale search result", extra={"request_token": token})
            return
        self.recipes = recipes
        self.error = error
        self.is_searching = False
        self._notify()

    def _record_search(self, query: str) -> None:
        entry = SavedSearch(
            id=str(uuid.uuid4()),
            query=query,
            filters=self.filters.model_copy(deep=True),
            timestamp=time.time(),
        )
        self.saved_searches = [entry, *self.saved_searches][:MAX_SAVED_SEARCHES]
        self._save("savedSearches")

    # ---------------------------------------------------------------------
    # Recipes
    # ---------------------------------------------------------------------

    def get_recipe(self, recipe_id: str) -> Recipe:
        for recipe in self.recipes:
            if recipe.id == recipe_id:
                return recipe
        if recipe_id in self.recipe_book:
            return self.recipe_book[recipe_id]
        raise ValidationError(f"Unknown recipe: {recipe_id}")

    def select_recipe(self, recipe_id: str) -> Recipe:
        self.selected_recipe = self.get_recipe(recipe_id)
        self.view = ViewState.RECIPE_DETAILS
        self._notify()
        return self.selected_recipe

    def sort_recipes(self, by: str = "prepTime", descending: bool = False) -> List[Recipe]:
        try:
            self.recipes = sort_recipes(self.recipes, by, descending)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        self._notify()
        return self.recipes

    def toggle_possessed(self, recipe_id: str, ingredient_name: str) -> List[str]:
        """Mark an ingredient as had / not had. Returns the missing names."""
        recipe = self.get_recipe(recipe_id)
        missing = {ing.name.lower() for ing in recipe.missingIngredients}
        have = [ing.name for ing in recipe.ingredients if ing.name.lower() not in missing]

        key = ingredient_name.strip().lower()
        if key in {name.lower() for name in have}:
            have = [name for name in have if name.lower() != key]
        else:
            have.append(ingredient_name.strip())

        recipe.missingIngredients = compute_missing_ingredients(recipe.ingredients, have)
        self._sync_book(recipe)
        self._notify()
        return [ing.name for ing in recipe.missingIngredients]

    async def load_tips(self, recipe_id: str) -> List[str]:
        """Chef tips for a recipe, fetched once when the model did not send any."""
        recipe = self.get_recipe(recipe_id)
        if recipe.tips:
            return recipe.tips
        tips = await self.synthesizer.get_chef_tips(
            recipe.title, [ing.name for ing in recipe.ingredients], self.language
        )
        if tips:
            recipe.tips = tips
            self._sync_book(recipe)
            self._notify()
        return tips

    def update_recipe_image(self, recipe_id: str, image_url: str) -> Recipe:
        recipe = self.get_recipe(recipe_id)
        recipe.imageUrl = image_url
        self._sync_book(recipe)
        self._notify()
        return recipe

    def add_user_image(self, recipe_id: str, image: str) -> List[str]:
        recipe = self.get_recipe(recipe_id)
        limit = self.settings.max_user_images
        if len(recipe.userImages) >= limit:
            raise ValidationError(f"A recipe can have at most {limit} photos")
        self.image_service.from_data_url(image)
        recipe.userImages = [*recipe.userImages, image]
        self._sync_book(recipe)
        self._notify()
        return recipe.userImages

    def remove_user_image(self, recipe_id: str, index: int) -> List[str]:
        recipe = self.get_recipe(recipe_id)
        if not 0 <= index < len(recipe.userImages):
            raise ValidationError(f"No photo at position {index}")
        recipe.userImages = [img for i, img in enumerate(recipe.userImages) if i != index]
        self._sync_book(recipe)
        self._notify()
        return recipe.userImages

    async def generate_recipe_image(self, recipe_id: str, image_size: str = "1K") -> Optional[str]:
        """Generate an AI photo for a recipe. Failures set ``error`` and return None."""
        recipe = self.get_recipe(recipe_id)
        try:
            image_url = await self.image_generator.generate(recipe.title, image_size)
        except GeminiError as e:
            logger.error(f"Image generation failed for {recipe_id}: {e}")
            self.error = IMAGE_FAILED
            self._notify()
            return None
        if image_url:
            self.update_recipe_image(recipe_id, image_url)
        return image_url

    def _sync_book(self, recipe: Recipe) -> None:
        if recipe.id in self.recipe_book:
            self.recipe_book[recipe.id] = recipe
            self._save("recipeBook")

    # ---------------------------------------------------------------------
    # Favorites / cooking / history
    # ---------------------------------------------------------------------

    def toggle_favorite(self, recipe_id: str) -> bool:
        """Returns True if the recipe is now a favorite."""
        recipe = self.get_recipe(recipe_id)
        if recipe_id in self.favorites:
            self.favorites = [fid for fid in self.favorites if fid != recipe_id]
            is_favorite = False
        else:
            self.favorites = [*self.favorites, recipe_id]
            self.recipe_book[recipe_id] = recipe
            is_favorite = True
        self._save("favorites", "recipeBook")
        self._notify()
        return is_favorite

    def favorite_recipes(self) -> List[Recipe]:
        return [self.recipe_book[rid] for rid in self.favorites if rid in self.recipe_book]

    def history_recipes(self) -> List[Recipe]:
        return [self.recipe_book[rid] for rid in self.history if rid in self.recipe_book]

    def start_cooking(self, narrator: Optional[Narrator] = None, narrate: bool = False) -> CookingSession:
        if self.selected_recipe is None:
            raise ValidationError("Select a recipe before cooking")
        self.cooking = CookingSession(self.selected_recipe, narrator=narrator, narrate=narrate)
        self.view = ViewState.COOKING
        self._notify()
        return self.cooking

    def close_cooking(self) -> None:
        self.cooking = None
        self.view = ViewState.RECIPE_DETAILS
        self._notify()

    def complete_cooking(self) -> Recipe:
        """Mark the recipe being cooked as done and return home."""
        if self.cooking is None:
            raise ValidationError("No recipe is being cooked")
        recipe = self.cooking.recipe
        recipe.cooked = True
        self.recipe_book[recipe.id] = recipe
        if recipe.id not in self.history:
            self.history = [*self.history, recipe.id]
        self.cooking = None
        self.view = ViewState.HOME
        self._save("history", "recipeBook")
        self._notify()
        return recipe

    # ---------------------------------------------------------------------
    # Shopping list
    # ---------------------------------------------------------------------

    def add_to_shopping_list(self, names: Sequence[str]) -> List[ShoppingItem]:
        added = [
            ShoppingItem(id=str(uuid.uuid4()), name=name.strip(), checked=False)
            for name in names
            if isinstance(name, str) and name.strip()
        ]
        if added:
            self.shopping_list = [*self.shopping_list, *added]
            self._save("shoppingList")
            self._notify()
        return added

    def add_missing_to_shopping_list(self, recipe_id: str) -> List[ShoppingItem]:
        recipe = self.get_recipe(recipe_id)
        lines = [f"{ing.quantity} {ing.name}".strip() for ing in recipe.missingIngredients]
        return self.add_to_shopping_list(lines)

    def toggle_shopping_item(self, item_id: str) -> None:
        self.shopping_list = [
            item.model_copy(update={"checked": not item.checked}) if item.id == item_id else item
            for item in self.shopping_list
        ]
        self._save("shoppingList")
        self._notify()

    def remove_shopping_item(self, item_id: str) -> None:
        self.shopping_list = [item for item in self.shopping_list if item.id != item_id]
        self._save("shoppingList")
        self._notify()

    def clear_checked_items(self) -> int:
        before = len(self.shopping_list)
        self.shopping_list = [item for item in self.shopping_list if not item.checked]
        self._save("shoppingList")
        self._notify()
        return before - len(self.shopping_list)

    @property
    def open_shopping_count(self) -> int:
        return sum(1 for item in self.shopping_list if not item.checked)

    # ---------------------------------------------------------------------
    # Chat
    # ---------------------------------------------------------------------

    async def open_chat(self, initial_message: Optional[str] = None) -> ChatSession:
        """Start a chat in the current language, optionally asking a first question."""
        self.chat = create_session(self.gateway, self.language)
        self.view = ViewState.CHAT
        self._notify()
        if initial_message and initial_message.strip():
            await self.chat.send(initial_message)
            self._notify()
        return self.chat

    async def send_chat_message(self, message: str) -> ChatMessage:
        if self.chat is None:
            self.chat = create_session(self.gateway, self.language)
        await self.chat.send(message)
        self._notify()
        return self.chat.transcript[-1]
