"""Step 2: generate entity attributes and reconcile them against the library.

The library for the entity's category (plus the common bucket) is shown to
the model as calibration. Every returned key is then classified:

- known: present in the library; metadata is taken from the library
- generated: new, with metadata supplied by the model
- inferred: new, without metadata; type is inferred from the value and the
  record is flagged for review (SchemaGapWarning)

Upstream failures degrade this stage to zero attributes rather than aborting
the pipeline.
"""

import logging
import time
import warnings
from typing import Any, Mapping

from ..core.errors import SchemaGapWarning, UpstreamError
from ..core.models import (
    AttributeMeta,
    EntityInfo,
    FlatAttributeResponse,
    GameRules,
    GeneratedAttribute,
    InferredAttribute,
    KnownAttribute,
    ReconciledAttributes,
    StageOutcome,
    StructuredAttributeResponse,
)
from ..core.providers import LLMProvider
from .parsers import (
    coerce_metadata,
    infer_attribute_type,
    parse_attribute_response,
    split_inline_record,
)
from .schemas import ATTRIBUTE_RESPONSE_SCHEMA, RESERVED_KEYS
from .stage import call_with_timeout, elapsed_ms


logger = logging.getLogger(__name__)

# Kind-specific things the model should weigh when choosing attributes
_CONSIDERATIONS = {
    "item": [
        "Period-specific craftsmanship techniques and materials",
        "Authentic wear and condition reflecting actual use",
        "Historical value and cultural significance",
        "How the item's rarity reflects historical significance",
    ],
    "npc": [
        "Period-specific skills and knowledge",
        "Appropriate social status and wealth",
        "Realistic personality traits and motivations",
        "How the NPC's rarity reflects historical significance (common villager vs. famous leader)",
    ],
    "location": [
        "Period-appropriate architecture and terrain",
        "Accessibility, danger and resources",
        "Historical events tied to the place",
        "How the location's rarity reflects historical significance",
    ],
}


def format_attribute_library(available: Mapping[str, AttributeMeta]) -> str:
    """One line per attribute with its type, description and reference scale."""
    lines = []
    for name, meta in available.items():
        line = f"- {name} ({meta.type_label()}): {meta.description}"
        if meta.reference:
            line += f"\n  -> {meta.reference}"
        lines.append(line)
    return "\n".join(lines)


def _region_name(context: Mapping[str, Any] | None) -> str:
    if not isinstance(context, Mapping):
        return ""
    spatial = context.get("spatial")
    if not isinstance(spatial, Mapping):
        return ""
    region = spatial.get("currentRegion")
    if isinstance(region, Mapping):
        return str(region.get("name") or "")
    return ""


def build_attribute_prompt(
    info: EntityInfo,
    available: Mapping[str, AttributeMeta],
    context: Mapping[str, Any] | None,
    genre: str,
) -> str:
    attribute_list = format_attribute_library(available)
    region = _region_name(context)
    considerations = "\n".join(f"- {c}" for c in _CONSIDERATIONS[info.kind])

    if attribute_list:
        library_block = f'AVAILABLE ATTRIBUTES FOR "{info.category}":\n{attribute_list}'
        instructions = (
            "1. Review the available attributes above (note the -> reference examples for calibration)\n"
            f"2. Select the ones relevant for this {info.kind} in the {info.historical_period} setting\n"
            "3. Assign values consistent with the descriptions and reference examples\n"
            "4. For ANY NEW attributes you create, you MUST provide full metadata"
        )
    else:
        library_block = ""
        instructions = (
            f"Generate appropriate game attributes for this {info.kind} based on its "
            f"category, description, and the {info.historical_period} setting"
        )

    return f"""You are a historical game designer creating attributes for a game {info.kind}.

Name: {info.name}
Rarity/Significance: {info.rarity}
Category: {info.category}
Historical Setting: {info.historical_period}
Description: {info.description}
{f"Region: {region}" if region else ""}

Consider:
{considerations}

{library_block}

INSTRUCTIONS:
{instructions}

Attributes are read by another model to decide what can or cannot be done in the game,
so every new attribute needs an implied game mechanic and a concrete reference scale
(e.g. "10=dagger, 40=sword, 80=greatsword" or "weak" to "strong").
The genre of this game is {genre}. Do not introduce attributes irrelevant to the genre.

OUTPUT FORMAT:
Return a JSON object with TWO fields:

1. "attributes": simple key-value pairs with attribute values
   Example: {{"damage": 45, "weight": 8, "material": "steel"}}

2. "attributeMetadata": metadata for NEW attributes ONLY (skip existing ones from the library above)
   For each new attribute provide:
   - type: "integer", "number", "string", "boolean", "enum", or "array"
   - description: brief explanation of what this attribute represents
   - values: ["option1", "option2"] for enums (REQUIRED if type is enum)
   - reference: concrete examples showing what different values mean

DO NOT INCLUDE in attributes: id, name, rarity, description, or category (these are already set)."""


def reconcile(
    response: StructuredAttributeResponse | FlatAttributeResponse,
    available: Mapping[str, AttributeMeta],
    category: str,
) -> ReconciledAttributes:
    """Classify every returned attribute as known, generated, or inferred."""
    if isinstance(response, StructuredAttributeResponse):
        raw_values = response.attributes
        provided_metadata = response.attribute_metadata
    else:
        raw_values = response.values
        provided_metadata = {}

    result = ReconciledAttributes()

    for name, raw in raw_values.items():
        if name in RESERVED_KEYS:
            continue

        value, inline_meta = split_inline_record(raw)

        library_meta = available.get(name)
        if library_meta is not None:
            result.attributes[name] = KnownAttribute(
                value=value,
                type=library_meta.type,
                description=library_meta.description,
                reference=library_meta.reference,
                values=library_meta.values,
                category=category,
            )
            continue

        meta = coerce_metadata(provided_metadata.get(name)) or coerce_metadata(inline_meta)
        if meta is not None:
            record = GeneratedAttribute(
                value=value,
                type=meta.type,
                description=meta.description,
                reference=meta.reference,
                values=meta.values,
                category=category,
            )
        else:
            record = InferredAttribute(
                value=value,
                type=infer_attribute_type(value),
                description=f"Auto-detected {name} (no description provided)",
                category=category,
            )
            result.metadata_missing.append(name)
            logger.warning(f"[Pipeline] new attribute '{name}' created without metadata")
            warnings.warn(
                f"New attribute '{name}' in category '{category}' has no metadata; "
                f"inferred type '{record.type}'",
                SchemaGapWarning,
                stacklevel=2,
            )

        result.attributes[name] = record
        result.new_attributes[name] = record

    return result


class AttributeReconciler:
    stage = "attributes"

    def __init__(
        self,
        provider: LLMProvider,
        timeout: float | None = None,
        model: str | None = None,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._model = model

    async def generate(
        self,
        entity_info: EntityInfo,
        context: Mapping[str, Any] | None,
        rules: GameRules,
    ) -> StageOutcome[ReconciledAttributes]:
        library = rules.library_for(entity_info.kind)
        available = library.available_for(entity_info.category)
        prompt = build_attribute_prompt(entity_info, available, context, rules.genre)

        debug: dict[str, Any] = {
            "step": f"Step 2: {entity_info.kind} attributes",
            "model": self._model or self._provider.default_text_model,
            "prompt": prompt,
            "availableAttributes": list(available),
        }

        start = time.perf_counter()
        try:
            data = await call_with_timeout(
                self._provider.complete_structured(
                    prompt,
                    ATTRIBUTE_RESPONSE_SCHEMA,
                    schema_name=f"{entity_info.kind}_attributes",
                    model=self._model,
                ),
                self._timeout,
                self.stage,
            )
            response = parse_attribute_response(data)
        except UpstreamError as e:
            logger.warning(
                f"[Pipeline] attribute generation failed for '{entity_info.name}', "
                f"continuing with no attributes: {e}"
            )
            debug.update(response=f"Error: {e}", error=str(e))
            return StageOutcome(
                stage=self.stage,
                status="degraded",
                value=ReconciledAttributes(),
                elapsed_ms=elapsed_ms(start),
                debug=debug,
                error=e,
            )

        reconciled = reconcile(response, available, entity_info.category)

        if reconciled.new_attributes:
            logger.info(
                f"[Pipeline] new attributes for category '{entity_info.category}': "
                f"{', '.join(reconciled.new_attributes)}"
            )

        debug.update(
            response=data,
            responseShape=response.shape,
            newAttributesDetected=list(reconciled.new_attributes),
            metadataMissing=list(reconciled.metadata_missing),
        )
        return StageOutcome(
            stage=self.stage,
            value=reconciled,
            elapsed_ms=elapsed_ms(start),
            debug=debug,
        )
