"""Game rules: art direction, setting, and per-kind attribute libraries."""

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .attributes import AttributeLibrary


class GameRules(BaseModel):
    """Rules object consumed by every generation stage.

    JSON input may use camelCase keys (``artStyle``, ``itemCategories``...).
    A single ``categories`` key is applied to every entity kind that has no
    library of its own.
    """

    model_config = ConfigDict(populate_by_name=True)

    art_style: str = Field(default="", alias="artStyle")
    genre: str = "adventure"
    historical_period: str = Field(default="Medieval Europe", alias="historicalPeriod")
    item_categories: AttributeLibrary = Field(
        default_factory=AttributeLibrary, alias="itemCategories"
    )
    npc_categories: AttributeLibrary = Field(
        default_factory=AttributeLibrary, alias="npcCategories"
    )
    location_categories: AttributeLibrary = Field(
        default_factory=AttributeLibrary, alias="locationCategories"
    )

    @model_validator(mode="before")
    @classmethod
    def _spread_shared_categories(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "categories" not in data:
            return data
        data = dict(data)
        shared = data.pop("categories")
        for field_name, alias in (
            ("item_categories", "itemCategories"),
            ("npc_categories", "npcCategories"),
            ("location_categories", "locationCategories"),
        ):
            if field_name not in data and alias not in data:
                data[field_name] = shared
        return data

    def library_for(self, kind: str) -> AttributeLibrary:
        if kind == "item":
            return self.item_categories
        if kind == "npc":
            return self.npc_categories
        if kind == "location":
            return self.location_categories
        raise ValueError(f"Unknown entity kind: {kind}")

    @classmethod
    def from_file(cls, path: Path | str) -> "GameRules":
        with open(path) as f:
            return cls.model_validate(json.load(f))
