"""Application entry point: wires settings, logging, services and the store."""

import logging
from typing import Any, Optional

from culinai.config import Settings, settings as default_settings
from culinai.services.image_lookup import RecipeImageGenerator, ThumbnailImageLookup
from culinai.services.image_service import ImageService
from culinai.services.ingredient_extractor import IngredientExtractor
from culinai.services.model_gateway import ModelGateway
from culinai.services.recipe_synthesizer import RecipeSynthesizer
from culinai.store.app_store import AppStore
from culinai.store.persistence import JsonFilePersistence, PersistencePort
from culinai.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    persistence: Optional[PersistencePort] = None,
    client: Optional[Any] = None,
    configure_logging: bool = True,
) -> AppStore:
    """
    Build a ready-to-use store.

    Args:
        settings: Settings to use (defaults to environment-loaded settings)
        persistence: State port (defaults to a JSON file at settings.state_file)
        client: google-genai client override, mainly for tests
        configure_logging: Install the JSON log handler
    """
    settings = settings or default_settings
    if configure_logging:
        setup_logging(settings.log_level)

    gateway = ModelGateway(settings=settings, client=client)
    lookup = ThumbnailImageLookup(settings) if settings.image_lookup_enabled else None

    store = AppStore(
        synthesizer=RecipeSynthesizer(gateway, lookup_image=lookup),
        extractor=IngredientExtractor(gateway),
        gateway=gateway,
        image_service=ImageService(settings),
        image_generator=RecipeImageGenerator(gateway),
        persistence=persistence or JsonFilePersistence(settings.state_file),
        settings=settings,
    )
    logger.info(
        "CulinAI ready",
        extra={"models": gateway.models, "image_lookup": lookup is not None},
    )
    return store
