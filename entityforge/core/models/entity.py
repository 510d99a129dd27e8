"""Entity models: drafted fields, composed entities, and placement."""

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .attributes import AttributeRecord


Rarity = Literal["common", "rare", "epic", "legendary"]
EntityKind = Literal["item", "npc", "location"]

RARITIES: tuple[str, ...] = ("common", "rare", "epic", "legendary")
ENTITY_KINDS: tuple[str, ...] = ("item", "npc", "location")


class DraftedEntity(BaseModel):
    """Base fields returned by the drafting stage, before identity is assigned."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = Field(min_length=1)
    rarity: Rarity
    description: str
    category: str | None = None
    purpose: str | None = None

    @field_validator("rarity", mode="before")
    @classmethod
    def _lowercase_rarity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class EntityInfo(BaseModel):
    """Bundle of base fields handed to the attribute and image stages."""

    kind: EntityKind
    name: str
    rarity: Rarity
    category: str
    description: str
    historical_period: str
    genre: str = ""


class Placement(BaseModel):
    """Explicit spatial placement; unset fields fall back to defaults."""

    region: str | None = None
    x: int | None = None
    y: int | None = None


class GeneratedEntity(BaseModel):
    """A fully composed entity as returned by the pipeline."""

    model_config = ConfigDict(populate_by_name=True)

    kind: ClassVar[str] = ""

    id: str
    name: str
    rarity: Rarity
    description: str
    category: str
    own_attributes: dict[str, AttributeRecord] = Field(default_factory=dict)
    image_url: str
    x: int
    y: int
    region: str

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ItemEntity(GeneratedEntity):
    kind: ClassVar[str] = "item"

    purpose: str = "generic"


class NpcEntity(GeneratedEntity):
    kind: ClassVar[str] = "npc"

    purpose: str = "generic"
    chat_history: list[dict[str, Any]] = Field(
        default_factory=list, alias="chatHistory"
    )


class LocationEntity(GeneratedEntity):
    kind: ClassVar[str] = "location"


ENTITY_TYPES: dict[str, type[GeneratedEntity]] = {
    "item": ItemEntity,
    "npc": NpcEntity,
    "location": LocationEntity,
}
