"""JSON schemas for the drafting and attribute stages."""

from ..core.models import RARITIES


# Fallback category lists used when a kind's library defines none
DEFAULT_CATEGORIES: dict[str, list[str]] = {
    "item": ["weapon", "armor", "consumable", "tool", "food", "key"],
    "npc": ["merchant", "guard", "quest_giver", "bandit", "villager"],
    "location": ["town", "dungeon", "building", "wilderness"],
}

# Example ids shown to the model in the id field description
_ID_EXAMPLES = {
    "item": "'wea_sword_001', 'arm_shield_wooden_001', 'con_potion_health_001'",
    "npc": "'mer_hans_001', 'gua_castle_001', 'que_elder_001'",
    "location": "'wil_forest_dark_001', 'tow_village_001', 'dun_crypt_001'",
}

_DISPLAY_NAMES = {"item": "item", "npc": "NPC", "location": "location"}

# Keys the attribute stage must never treat as attributes
RESERVED_KEYS = frozenset({"id", "name", "rarity", "description", "category"})


def category_required(kind: str) -> bool:
    """Items may omit their category (it is inferred); NPCs and locations may not."""
    return kind != "item"


def build_entity_schema(kind: str, categories: list[str]) -> dict:
    """Build the base-entity schema for a kind with its category choices."""
    label = _DISPLAY_NAMES[kind]
    required = ["id", "name", "rarity", "description"]
    if category_required(kind):
        required.append("category")

    return {
        "type": "object",
        "properties": {
            "id": {
                "type": "string",
                "description": (
                    f"Auto-generated semantic ID in format: XXX_{kind}name_### "
                    f"(e.g., {_ID_EXAMPLES[kind]})"
                ),
            },
            "name": {"type": "string", "description": f"Display name of the {label}"},
            "rarity": {
                "type": "string",
                "enum": list(RARITIES),
                "description": (
                    "Significance level: 'common' = everyday/ordinary, "
                    "'rare' = quality/notable, 'epic' = famous/major, "
                    "'legendary' = iconic/world-famous"
                ),
            },
            "description": {
                "type": "string",
                "description": "Detailed historical description",
            },
            "category": {
                "type": "string",
                "enum": list(categories),
                "description": f"{label.capitalize()} category",
            },
        },
        "required": required,
    }


ATTRIBUTE_RESPONSE_SCHEMA = {
    "type": "object",
    "description": (
        "Object with 'attributes' (name -> value) and 'attributeMetadata' "
        "(name -> {type, description, values, reference}) for new attributes"
    ),
}
