"""Data models for EntityForge.

This package contains all Pydantic models used across the system:
- attributes.py: Attribute metadata, library, per-entity records, response shapes
- entity.py: Drafted fields, composed entities, placement
- rules.py: Game rules with per-kind attribute libraries
- pipeline.py: Stage outcomes, timing, creation results
"""

from .attributes import (
    # Library
    COMMON_BUCKET,
    AttributeType,
    AttributeRange,
    AttributeMeta,
    AttributeLibrary,
    # Records
    KnownAttribute,
    GeneratedAttribute,
    InferredAttribute,
    AttributeRecord,
    # Response shapes
    StructuredAttributeResponse,
    FlatAttributeResponse,
    AttributeResponse,
)
from .entity import (
    Rarity,
    EntityKind,
    RARITIES,
    ENTITY_KINDS,
    DraftedEntity,
    EntityInfo,
    Placement,
    GeneratedEntity,
    ItemEntity,
    NpcEntity,
    LocationEntity,
    ENTITY_TYPES,
)
from .rules import GameRules
from .pipeline import (
    StageStatus,
    StageOutcome,
    ReconciledAttributes,
    Timing,
    CreationResult,
)

__all__ = [
    # Library
    "COMMON_BUCKET",
    "AttributeType",
    "AttributeRange",
    "AttributeMeta",
    "AttributeLibrary",
    # Records
    "KnownAttribute",
    "GeneratedAttribute",
    "InferredAttribute",
    "AttributeRecord",
    # Response shapes
    "StructuredAttributeResponse",
    "FlatAttributeResponse",
    "AttributeResponse",
    # Entities
    "Rarity",
    "EntityKind",
    "RARITIES",
    "ENTITY_KINDS",
    "DraftedEntity",
    "EntityInfo",
    "Placement",
    "GeneratedEntity",
    "ItemEntity",
    "NpcEntity",
    "LocationEntity",
    "ENTITY_TYPES",
    # Rules
    "GameRules",
    # Pipeline
    "StageStatus",
    "StageOutcome",
    "ReconciledAttributes",
    "Timing",
    "CreationResult",
]
