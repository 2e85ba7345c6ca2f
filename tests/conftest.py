"""Pytest configuration and fixtures."""

import base64
import io
import json
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Union

import pytest
from PIL import Image

from culinai.config import Settings
from culinai.services.model_gateway import ModelGateway

Behavior = Union[str, Exception, Callable[[Any, Any], str], List[Any]]


class FakeResponse:
    """Minimal stand-in for a google-genai GenerateContentResponse."""

    def __init__(self, text: str = "", candidates: Any = None) -> None:
        self.text = text
        self.candidates = candidates or []


class FakeModels:
    def __init__(self, behaviors: Dict[str, Behavior], default: Behavior) -> None:
        self.behaviors = behaviors
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    def generate_content(self, *, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        behavior = self.behaviors.get(model, self.default)
        if isinstance(behavior, list):
            behavior = behavior.pop(0)
        if isinstance(behavior, Exception):
            raise behavior
        if isinstance(behavior, FakeResponse):
            return behavior
        if callable(behavior):
            return FakeResponse(behavior(contents, config))
        return FakeResponse(behavior)


class FakeClient:
    """Replaces google.genai.Client; behaviors are keyed by model name."""

    def __init__(self, default: Behavior = "", **behaviors: Behavior) -> None:
        self.models = FakeModels(dict(behaviors), default)

    @property
    def calls(self) -> List[Dict[str, Any]]:
        return self.models.calls


def prompt_of(call: Dict[str, Any]) -> str:
    """Text of the last part of the last content of a recorded call."""
    contents = call["contents"]
    if isinstance(contents, str):
        return contents
    return contents[-1].parts[-1].text


def make_recipe_json(count: int = 4, with_ids: bool = True) -> str:
    recipes = []
    for i in range(count):
        recipe = {
            "title": f"Recipe {i}",
            "description": f"Tasty dish {i}",
            "ingredients": [{"name": "Chicken", "quantity": "500 g"}, {"name": "Basil", "quantity": "1 bunch"}],
            "instructions": ["Prep", "Cook", "Serve"],
            "prepTime": f"{(i + 1) * 10} mins",
            "calories": "500 kcal",
            "protein": "30g",
            "difficulty": "Easy",
            "dietaryTags": ["High Protein"],
        }
        if with_ids:
            recipe["id"] = f"r{i}"
        recipes.append(recipe)
    return json.dumps(recipes)


def png_bytes(size=(8, 8), color=(200, 30, 30)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", size, color).save(out, format="PNG")
    return out.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the environment."""
    return Settings(
        gemini_api_key="test-gemini-key",
        gemini_models="model-a,model-b",
        gemini_timeout=2.0,
        image_lookup_enabled=False,
        state_file=str(tmp_path / "state.json"),
        _env_file=None,
    )


@pytest.fixture
def make_gateway(test_settings):
    """Build a gateway around a FakeClient."""

    def _make(client: FakeClient) -> ModelGateway:
        return ModelGateway(settings=test_settings, client=client)

    return _make


@pytest.fixture
def image_response():
    """A response carrying one inline PNG image part."""
    part = SimpleNamespace(text=None, inline_data=SimpleNamespace(data=b"\x89PNG", mime_type="image/png"))
    candidate = SimpleNamespace(content=SimpleNamespace(parts=[part]), finish_reason="STOP")
    return FakeResponse(text="", candidates=[candidate])
