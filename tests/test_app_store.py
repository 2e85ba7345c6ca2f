"""Tests for the application store."""

import asyncio
import json

import pytest

from culinai.main import create_app
from culinai.models.recipe import InlineImage, Recipe, ViewState
from culinai.services.ingredient_extractor import IngredientExtractor
from culinai.services.model_gateway import ModelGateway
from culinai.store.app_store import IMAGE_FAILED, SYSTEM_UNAVAILABLE, AppStore
from culinai.store.persistence import InMemoryPersistence
from culinai.utils.exceptions import AuthenticationError, ImageProcessingError, ValidationError
from tests.conftest import FakeClient, b64, make_recipe_json, png_bytes, prompt_of


@pytest.fixture
def make_store(test_settings):
    """Build a store around a FakeClient and in-memory persistence."""

    def _make(client=None, persistence=None):
        return create_app(
            settings=test_settings,
            persistence=persistence or InMemoryPersistence(),
            client=client or FakeClient(default=make_recipe_json()),
            configure_logging=False,
        )

    return _make


async def _store_with_results(make_store, **kwargs):
    store = make_store(**kwargs)
    await store.search("chicken dinner")
    return store


# -------------------------------------------------------------------------
# Login gate and persistence
# -------------------------------------------------------------------------

def test_starts_on_auth_view(make_store):
    assert make_store().view == ViewState.AUTH


def test_login_registers_new_name(make_store):
    store = make_store()
    user = store.login("Ana", "basil")

    assert user.name == "Ana"
    assert store.view == ViewState.HOME
    assert store.profiles == {"Ana": "basil"}


def test_login_wrong_key_rejected(make_store):
    store = make_store()
    store.login("Ana", "basil")
    store.logout()

    with pytest.raises(AuthenticationError):
        store.login("Ana", "oregano")
    assert store.user is None
    assert store.view == ViewState.AUTH


def test_login_blank_rejected(make_store):
    with pytest.raises(ValidationError):
        make_store().login("  ", "key")


def test_state_survives_restart(make_store):
    persistence = InMemoryPersistence()
    store = make_store(persistence=persistence)
    store.login("Ana", "basil")
    store.toggle_filter("vegan")
    store.set_language("it")
    store.set_theme("light")
    store.add_to_shopping_list(["Eggs"])

    restored = make_store(persistence=persistence)

    assert restored.user.name == "Ana"
    assert restored.view == ViewState.HOME
    assert restored.filters.vegan is True
    assert restored.language == "it"
    assert restored.theme == "light"
    assert [item.name for item in restored.shopping_list] == ["Eggs"]


def test_unreadable_state_ignored(make_store):
    store = make_store(persistence=InMemoryPersistence({"shoppingList": [{"bogus": 1}], "theme": "neon"}))
    assert store.shopping_list == []
    assert store.theme == "dark"


def test_one_unreadable_slice_keeps_the_others(make_store):
    persistence = InMemoryPersistence(
        {
            "filters": {"vegan": "not-a-bool", "cuisine": 7},
            "shoppingList": [{"id": "s1", "name": "Eggs", "checked": False}],
            "favorites": ["r1"],
            "recipeBook": {"r1": {"id": "r1", "title": "Omelette"}},
        }
    )

    store = make_store(persistence=persistence)

    assert store.filters.vegan is False
    assert [item.name for item in store.shopping_list] == ["Eggs"]
    assert [r.title for r in store.favorite_recipes()] == ["Omelette"]


def test_subscribers_notified(make_store):
    store = make_store()
    seen = []
    unsubscribe = store.subscribe(lambda s: seen.append(s.view))

    store.navigate("shopping")
    unsubscribe()
    store.navigate(ViewState.HOME)

    assert seen == [ViewState.SHOPPING]


# -------------------------------------------------------------------------
# Filters / settings
# -------------------------------------------------------------------------

def test_filter_toggles_and_cuisine_order(make_store):
    store = make_store()

    assert store.toggle_filter("glutenFree") is True
    assert store.toggle_filter("glutenFree") is False
    store.toggle_cuisine("Thai")
    store.toggle_cuisine("Italian")
    store.toggle_cuisine("Mexican")
    assert store.toggle_cuisine("Italian") == ["Thai", "Mexican"]

    with pytest.raises(ValidationError):
        store.toggle_filter("carnivore")


def test_max_prep_time(make_store):
    store = make_store()
    store.set_max_prep_time(30)
    assert store.filters.maxPrepTime == "30"
    store.set_max_prep_time("any")
    assert store.filters.maxPrepTime == "any"
    with pytest.raises(ValidationError):
        store.set_max_prep_time("soon")


def test_reset_filters(make_store):
    store = make_store()
    store.toggle_filter("keto")
    store.toggle_cuisine("Greek")
    store.reset_filters()
    assert store.filters.active_flags() == []
    assert store.filters.cuisine == []


def test_unsupported_language_and_theme(make_store):
    store = make_store()
    with pytest.raises(ValidationError):
        store.set_language("xx")
    with pytest.raises(ValidationError):
        store.set_theme("sepia")


# -------------------------------------------------------------------------
# Search
# -------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_sets_results(make_store):
    client = FakeClient(default=make_recipe_json())
    store = make_store(client=client)
    store.toggle_filter("highProtein")

    recipes = await store.search("  chicken dinner ")

    assert [r.id for r in store.recipes] == ["r0", "r1", "r2", "r3"]
    assert recipes == store.recipes
    assert store.view == ViewState.RECIPES
    assert store.is_searching is False
    assert store.error is None
    assert store.saved_searches[0].query == "chicken dinner"
    assert store.saved_searches[0].filters.highProtein is True
    assert "dietary restrictions: high protein." in prompt_of(client.calls[0])


@pytest.mark.asyncio
async def test_search_no_results(make_store):
    store = make_store(client=FakeClient(default="[]"))

    assert await store.search("nothing") == []
    assert store.recipes == []
    assert store.error is None


@pytest.mark.asyncio
async def test_search_service_down(make_store):
    store = make_store(client=FakeClient(default=RuntimeError("503")))

    assert await store.search("soup") == []
    assert store.error == SYSTEM_UNAVAILABLE
    assert store.is_searching is False


@pytest.mark.asyncio
async def test_blank_search_rejected(make_store):
    client = FakeClient(default=make_recipe_json())
    store = make_store(client=client)

    with pytest.raises(ValidationError):
        await store.search("   ")
    assert client.calls == []


class GatedSynthesizer:
    """Answers immediately, except for the query "slow" which waits for the gate."""

    def __init__(self):
        self.gate = asyncio.Event()

    async def synthesize(self, query, filters, language):
        if query == "slow":
            await self.gate.wait()
        return [Recipe(id=query, title=query)]


@pytest.mark.asyncio
async def test_superseded_search_is_discarded(test_settings):
    gateway = ModelGateway(settings=test_settings, client=FakeClient())
    store = AppStore(
        synthesizer=GatedSynthesizer(),
        extractor=IngredientExtractor(gateway),
        gateway=gateway,
        persistence=InMemoryPersistence(),
        settings=test_settings,
    )

    slow = asyncio.create_task(store.search("slow"))
    await asyncio.sleep(0)
    await store.search("fast")
    store.synthesizer.gate.set()
    late = await slow

    assert [r.id for r in late] == ["slow"]
    assert [r.id for r in store.recipes] == ["fast"]
    assert store.is_searching is False


@pytest.mark.asyncio
async def test_saved_searches_capped(make_store):
    store = make_store(client=FakeClient(default="[]"))
    for i in range(25):
        await store.search(f"dish {i}")

    assert len(store.saved_searches) == 20
    assert store.saved_searches[0].query == "dish 24"


# -------------------------------------------------------------------------
# Scan
# -------------------------------------------------------------------------

def _scan_client(recipes_json):
    def answer(contents, config):
        if "Analyze these images" in contents[-1].parts[-1].text:
            return '["Chicken", "basil", "Chicken"]'
        return recipes_json

    return FakeClient(default=answer)


@pytest.mark.asyncio
async def test_scan_too_many_images(make_store):
    client = _scan_client(make_recipe_json())
    store = make_store(client=client)

    with pytest.raises(ValidationError):
        await store.scan([(png_bytes(), f"{i}.png") for i in range(6)])
    assert client.calls == []


@pytest.mark.asyncio
async def test_scan_computes_missing_ingredients(make_store):
    recipes = [
        {
            "id": "computed",
            "title": "Chicken Pesto",
            "ingredients": [{"name": "chicken", "quantity": "1"}, {"name": "Pasta", "quantity": "200 g"}],
        },
        {
            "id": "given",
            "title": "Basil Chicken",
            "ingredients": [{"name": "Chicken"}, {"name": "Rice"}],
            "missingIngredients": [{"name": "Lime", "quantity": "1"}],
        },
    ]
    client = _scan_client(json.dumps(recipes))
    store = make_store(client=client)

    result = await store.scan([(png_bytes(), "fridge.png"), f"data:image/png;base64,{b64(png_bytes())}"])

    assert store.pantry == ["Chicken", "basil"]
    assert [r.id for r in result] == ["computed", "given"]
    assert [i.name for i in result[0].missingIngredients] == ["Pasta"]
    assert [i.name for i in result[1].missingIngredients] == ["Lime"]
    assert len(client.calls[0]["contents"][-1].parts) == 3
    assert "The user is looking for: Chicken, basil." in prompt_of(client.calls[1])


@pytest.mark.asyncio
async def test_scan_rejects_undecodable_inline_image(make_store):
    client = _scan_client(make_recipe_json())
    store = make_store(client=client)

    with pytest.raises(ImageProcessingError):
        await store.scan([InlineImage(mime_type="image/png", data="abc")])
    assert client.calls == []
    assert store.is_searching is False


@pytest.mark.asyncio
async def test_scan_nothing_recognized(make_store):
    client = FakeClient(default="[]")
    store = make_store(client=client)

    assert await store.scan([(png_bytes(), "empty-fridge.png")]) == []
    assert store.recipes == []
    assert store.is_searching is False
    assert len(client.calls) == 1


# -------------------------------------------------------------------------
# Recipes
# -------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_select_and_sort(make_store):
    store = await _store_with_results(make_store)

    assert store.select_recipe("r2").title == "Recipe 2"
    assert store.view == ViewState.RECIPE_DETAILS
    assert [r.id for r in store.sort_recipes("prepTime", descending=True)] == ["r3", "r2", "r1", "r0"]
    with pytest.raises(ValidationError):
        store.sort_recipes("title")
    with pytest.raises(ValidationError):
        store.get_recipe("nope")


@pytest.mark.asyncio
async def test_toggle_possessed(make_store):
    store = await _store_with_results(make_store)

    assert store.toggle_possessed("r0", "chicken") == ["Chicken"]
    assert store.toggle_possessed("r0", "Chicken") == []


@pytest.mark.asyncio
async def test_load_tips_once(make_store):
    store = await _store_with_results(make_store)
    store.gateway._client = FakeClient(default='["Rest the meat", "Salt early"]')

    assert await store.load_tips("r0") == ["Rest the meat", "Salt early"]
    assert await store.load_tips("r0") == ["Rest the meat", "Salt early"]
    assert len(store.gateway.client.calls) == 1


@pytest.mark.asyncio
async def test_user_images_capped(make_store):
    store = await _store_with_results(make_store)
    photo = f"data:image/png;base64,{b64(png_bytes())}"

    with pytest.raises(ImageProcessingError):
        store.add_user_image("r0", f"data:text/plain;base64,{b64(b'notes')}")

    for _ in range(5):
        store.add_user_image("r0", photo)
    with pytest.raises(ValidationError):
        store.add_user_image("r0", photo)

    assert len(store.remove_user_image("r0", 0)) == 4


@pytest.mark.asyncio
async def test_generate_recipe_image(make_store, image_response):
    store = await _store_with_results(make_store)
    store.gateway._client = FakeClient(default=image_response)

    url = await store.generate_recipe_image("r1")

    assert url.startswith("data:image/png;base64,")
    assert store.get_recipe("r1").imageUrl == url


@pytest.mark.asyncio
async def test_generate_recipe_image_failure(make_store):
    store = await _store_with_results(make_store)
    store.gateway._client = FakeClient(default=RuntimeError("quota"))

    assert await store.generate_recipe_image("r1") is None
    assert store.error == IMAGE_FAILED


# -------------------------------------------------------------------------
# Favorites / cooking / history
# -------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorites_persist(make_store):
    persistence = InMemoryPersistence()
    store = await _store_with_results(make_store, persistence=persistence)

    assert store.toggle_favorite("r1") is True
    restored = make_store(persistence=persistence)

    assert [r.title for r in restored.favorite_recipes()] == ["Recipe 1"]
    assert restored.toggle_favorite("r1") is False
    assert restored.favorite_recipes() == []


@pytest.mark.asyncio
async def test_cooking_flow(make_store):
    store = await _store_with_results(make_store)

    with pytest.raises(ValidationError):
        store.start_cooking()

    store.select_recipe("r0")
    store.start_cooking()
    store.close_cooking()
    assert store.view == ViewState.RECIPE_DETAILS
    assert store.cooking is None

    session = store.start_cooking()
    assert store.view == ViewState.COOKING
    assert session.step_text == "Prep"
    session.next_step()
    session.next_step()
    assert session.is_last_step

    recipe = store.complete_cooking()

    assert recipe.cooked is True
    assert store.history == ["r0"]
    assert [r.id for r in store.history_recipes()] == ["r0"]
    assert store.view == ViewState.HOME
    assert store.cooking is None


# -------------------------------------------------------------------------
# Shopping list
# -------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_shopping_list(make_store):
    store = await _store_with_results(make_store)
    store.toggle_possessed("r0", "Chicken")

    added = store.add_missing_to_shopping_list("r0")
    assert [item.name for item in added] == ["500 g Chicken"]

    store.add_to_shopping_list(["Lemons", "  ", "Olive oil"])
    assert store.open_shopping_count == 3

    store.toggle_shopping_item(added[0].id)
    assert store.open_shopping_count == 2
    assert store.clear_checked_items() == 1

    store.remove_shopping_item(store.shopping_list[0].id)
    assert [item.name for item in store.shopping_list] == ["Olive oil"]


# -------------------------------------------------------------------------
# Chat
# -------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_open_chat_with_question(make_store):
    store = make_store(client=FakeClient(default="Sear it first."))
    store.set_language("fr")

    chat = await store.open_chat("How do I cook duck?")

    assert store.view == ViewState.CHAT
    assert [m.role for m in chat.transcript] == ["user", "model"]
    assert chat.language == "fr"

    reply = await store.send_chat_message("And the sauce?")
    assert reply.text == "Sear it first."
    assert len(chat.transcript) == 4
