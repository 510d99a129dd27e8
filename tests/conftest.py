"""Global fixtures for EntityForge tests."""

import inspect

import pytest

from entityforge.core.models import GameRules
from entityforge.core.providers import LLMProvider


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 24


class FakeProvider(LLMProvider):
    """In-memory provider that replays queued responses.

    Each queue entry is returned as-is, raised if it is an exception, or
    awaited if it is an async function (used to simulate slow calls).
    """

    name = "fake"

    def __init__(self, structured=None, text=None, images=None, edits=None, supports_images=True):
        super().__init__("test-key")
        self.supports_images = supports_images
        self.structured = list(structured or [])
        self.text = list(text or [])
        self.images = list(images or [])
        self.edits = list(edits or [])
        self.calls = []
        self.closed = False

    @property
    def default_text_model(self) -> str:
        return "fake-text"

    @property
    def default_image_model(self) -> str:
        return "fake-image"

    async def _next(self, queue):
        if not queue:
            raise AssertionError("FakeProvider queue exhausted")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        if inspect.iscoroutinefunction(item):
            return await item()
        return item

    async def _structured_once(self, prompt, response_schema, schema_name, model):
        self.calls.append(("structured", schema_name, prompt))
        return await self._next(self.structured)

    async def complete_text(self, prompt, model=None):
        self.calls.append(("text", None, prompt))
        return await self._next(self.text)

    async def generate_image(self, prompt, model=None):
        self.calls.append(("image", None, prompt))
        return await self._next(self.images)

    async def edit_image(self, image, instruction, model=None):
        self.calls.append(("edit", None, instruction))
        return await self._next(self.edits)

    async def close_async(self):
        self.closed = True

    def call_kinds(self):
        return [kind for kind, _, _ in self.calls]


def draft_response(**overrides):
    """A valid drafting-stage response for a common weapon."""
    data = {
        "id": "wea_placeholder_001",
        "name": "Rusty Sword",
        "rarity": "common",
        "description": "A pitted iron blade from a forgotten skirmish.",
        "category": "weapon",
    }
    data.update(overrides)
    return data


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def sample_rules():
    """Rules with a small item library (weapon + common) and NPC/location libraries."""
    return GameRules.model_validate(
        {
            "artStyle": "watercolor",
            "genre": "adventure",
            "historicalPeriod": "Medieval Europe",
            "itemCategories": {
                "weapon": {
                    "damage": {
                        "type": "integer",
                        "description": "Damage dealt per strike",
                        "reference": "10=dagger, 40=sword, 80=greatsword",
                    },
                    "weight": {"type": "number", "description": "Weight in kg"},
                },
                "tool": {
                    "durability": {"type": "integer", "description": "Uses before breaking"},
                },
                "common": {
                    "value": {"type": "integer", "description": "Price in silver coins"},
                },
            },
            "npcCategories": {
                "merchant": {
                    "wealth": {"type": "integer", "description": "Coins on hand"},
                },
                "guard": {},
            },
            "locationCategories": {
                "town": {
                    "population": {"type": "integer", "description": "Number of residents"},
                },
                "dungeon": {},
            },
        }
    )


@pytest.fixture
def sample_context():
    return {
        "spatial": {"currentRegion": {"id": "darkwood_001", "name": "Darkwood"}},
        "world": {"era": "late medieval", "conflict": "border war"},
    }


@pytest.fixture
def make_draft():
    return draft_response


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES
