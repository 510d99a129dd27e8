"""Generation layer for EntityForge.

Builds a complete entity from a free-text prompt in sequential stages.

Pipeline:
    Step 0: ContextSynthesizer - Condense world context (optional, degrades)
    Step 1: EntityDrafter - Base fields against a fixed schema (fatal)
            IdentityAllocator - prefix_slug_### id from per-category counters
    Step 2: AttributeReconciler - Attributes vs. the library (degrades)
    Step 3: ImageSynthesizer - Entity image (fatal)
    Step 4: PipelineOrchestrator - Compose entity, timing, debug trace
"""

from .attributes import AttributeReconciler, reconcile
from .context import ContextSynthesizer
from .drafter import EntityDrafter
from .identity import CounterStore, IdentityAllocator, slugify
from .image import ImageSynthesizer
from .orchestrator import PipelineOrchestrator
from .parsers import parse_attribute_response

__all__ = [
    "AttributeReconciler",
    "reconcile",
    "ContextSynthesizer",
    "EntityDrafter",
    "CounterStore",
    "IdentityAllocator",
    "slugify",
    "ImageSynthesizer",
    "PipelineOrchestrator",
    "parse_attribute_response",
]
