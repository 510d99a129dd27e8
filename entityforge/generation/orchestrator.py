"""Pipeline orchestrator: sequence the stages and compose the entity.

    Step 0: ContextSynthesizer.synthesize()   non-fatal
    Step 1: EntityDrafter.draft()             fatal
            IdentityAllocator.next_id()       always succeeds
    Step 2: AttributeReconciler.generate()    non-fatal
    Step 3: ImageSynthesizer.generate()       fatal
    Step 4: compose entity (attributes, data-URI image, placement)

Each stage returns a StageOutcome; this module is the only place that turns
a fatal outcome into a GenerationError.
"""

import logging
import random
from typing import Any, Mapping

from ..config import PipelineConfig
from ..core.errors import ConfigurationError, GenerationError
from ..core.models import (
    ENTITY_TYPES,
    CreationResult,
    EntityInfo,
    GameRules,
    GeneratedEntity,
    Placement,
    StageOutcome,
    Timing,
)
from ..core.providers import LLMProvider
from .attributes import AttributeReconciler
from .context import ContextSynthesizer
from .drafter import EntityDrafter
from .identity import CounterStore, IdentityAllocator
from .image import ImageSynthesizer, from_data_uri, to_data_uri


logger = logging.getLogger(__name__)

COORDINATE_MIN = -1000
COORDINATE_MAX = 999


def _current_region_id(context: Mapping[str, Any] | None) -> str | None:
    if not isinstance(context, Mapping):
        return None
    spatial = context.get("spatial")
    if not isinstance(spatial, Mapping):
        return None
    region = spatial.get("currentRegion")
    if isinstance(region, Mapping):
        value = region.get("id") or region.get("name")
        return str(value) if value is not None else None
    if isinstance(region, str):
        return region
    return None


class PipelineOrchestrator:
    """Runs one strictly sequential pipeline per createEntity call.

    Concurrent calls are independent apart from the shared CounterStore.

    Args:
        provider: Provider for context, drafting and attribute stages.
        image_provider: Provider for images; defaults to ``provider``.
        counters: Counter store to allocate ids from; a fresh one by default.
        config: Pipeline settings (timeouts, models, defaults).
        rng: Random source for default coordinates.

    Raises:
        ConfigurationError: If the image provider cannot produce images.
    """

    def __init__(
        self,
        provider: LLMProvider,
        image_provider: LLMProvider | None = None,
        counters: CounterStore | None = None,
        config: PipelineConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.provider = provider
        self.image_provider = image_provider or provider
        if not self.image_provider.supports_images:
            raise ConfigurationError(
                f"The {self.image_provider.name} provider cannot generate images; "
                "pair it with an image-capable provider"
            )
        self.allocator = IdentityAllocator(counters or CounterStore())
        self._rng = rng or random.Random()

        timeout = self.config.stage_timeout_seconds
        text_model = self.config.text_model
        self.context_synthesizer = ContextSynthesizer(provider, timeout, text_model)
        self.drafter = EntityDrafter(provider, timeout, text_model, self.config.max_retries)
        self.reconciler = AttributeReconciler(provider, timeout, text_model)
        self.image_synthesizer = ImageSynthesizer(
            self.image_provider, timeout, self.config.image_model
        )

    @property
    def counters(self) -> CounterStore:
        return self.allocator.counters

    def reset_counters(self) -> None:
        self.allocator.reset()

    def _abort(self, outcome: StageOutcome, trace: dict[str, Any]) -> GenerationError:
        logger.error(f"[Pipeline] aborting at {outcome.stage} stage: {outcome.error}")
        return GenerationError(outcome.stage, outcome.error, trace)

    def _resolve_placement(
        self, context: Mapping[str, Any] | None, placement: Placement | None
    ) -> tuple[str, int, int]:
        if placement is None:
            placement = Placement()
        region = placement.region or _current_region_id(context) or self.config.default_region
        x = placement.x if placement.x is not None else self._rng.randint(COORDINATE_MIN, COORDINATE_MAX)
        y = placement.y if placement.y is not None else self._rng.randint(COORDINATE_MIN, COORDINATE_MAX)
        return region, x, y

    async def create_entity(
        self,
        kind: str,
        prompt: str,
        context: Mapping[str, Any] | None = None,
        rules: GameRules | None = None,
        placement: Placement | None = None,
    ) -> CreationResult:
        """Generate one entity end to end.

        Raises:
            GenerationError: When drafting or imaging fails. The error holds
                the debug trace of every stage that ran.
        """
        if kind not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity kind: {kind}")
        if rules is None:
            rules = GameRules()
        trace: dict[str, Any] = {}
        degraded: list[str] = []
        timing = Timing()

        logger.info(f"[Pipeline] creating {kind}: {prompt!r}")

        # Step 0: context
        context_outcome = await self.context_synthesizer.synthesize(context, kind=kind)
        trace["context"] = context_outcome.debug
        timing.context = context_outcome.elapsed_ms
        if context_outcome.degraded:
            degraded.append(context_outcome.stage)

        # Step 1: base entity
        draft_outcome = await self.drafter.draft(
            prompt, context_outcome.value or "", rules, kind=kind
        )
        trace["draft"] = draft_outcome.debug
        timing.base_entity = draft_outcome.elapsed_ms
        if draft_outcome.fatal:
            raise self._abort(draft_outcome, trace)
        drafted = draft_outcome.value

        entity_id = self.allocator.next_id(kind, drafted.category, drafted.name)
        trace["identity"] = {"id": entity_id, "kind": kind, "category": drafted.category}
        logger.info(f"[Pipeline] drafted {kind} '{drafted.name}' as {entity_id}")

        info = EntityInfo(
            kind=kind,
            name=drafted.name,
            rarity=drafted.rarity,
            category=drafted.category,
            description=drafted.description,
            historical_period=rules.historical_period,
            genre=rules.genre,
        )

        # Step 2: attributes
        attr_outcome = await self.reconciler.generate(info, context, rules)
        trace["attributes"] = attr_outcome.debug
        timing.attributes = attr_outcome.elapsed_ms
        if attr_outcome.degraded:
            degraded.append(attr_outcome.stage)
        reconciled = attr_outcome.value

        # Step 3: image
        image_outcome = await self.image_synthesizer.generate(info, rules.art_style)
        trace["image"] = image_outcome.debug
        timing.image = image_outcome.elapsed_ms
        if image_outcome.fatal:
            raise self._abort(image_outcome, trace)

        # Step 4: compose
        region, x, y = self._resolve_placement(context, placement)
        fields: dict[str, Any] = {
            "id": entity_id,
            "name": drafted.name,
            "rarity": drafted.rarity,
            "description": drafted.description,
            "category": drafted.category,
            "own_attributes": reconciled.attributes,
            "image_url": to_data_uri(image_outcome.value),
            "x": x,
            "y": y,
            "region": region,
        }
        if kind in ("item", "npc"):
            fields["purpose"] = drafted.purpose or "generic"
        if kind == "npc":
            fields["chat_history"] = []
        entity = ENTITY_TYPES[kind](**fields)

        if self.config.learn_new_attributes and reconciled.new_attributes:
            added = rules.library_for(kind).absorb(reconciled.new_attributes)
            if added:
                logger.info(f"[Pipeline] added to {kind} library: {', '.join(added)}")

        logger.info(f"[Pipeline] {kind} {entity_id} created in {timing.total}ms")
        if degraded:
            logger.warning(f"[Pipeline] {entity_id} created with degraded stages: {', '.join(degraded)}")

        return CreationResult(
            entity=entity,
            new_attributes=reconciled.new_attributes,
            timing=timing,
            debug_trace=trace,
            degraded_stages=degraded,
        )

    async def create_item(
        self,
        prompt: str,
        context: Mapping[str, Any] | None = None,
        rules: GameRules | None = None,
        placement: Placement | None = None,
    ) -> CreationResult:
        return await self.create_entity("item", prompt, context, rules, placement)

    async def create_npc(
        self,
        prompt: str,
        context: Mapping[str, Any] | None = None,
        rules: GameRules | None = None,
        placement: Placement | None = None,
    ) -> CreationResult:
        return await self.create_entity("npc", prompt, context, rules, placement)

    async def create_location(
        self,
        prompt: str,
        context: Mapping[str, Any] | None = None,
        rules: GameRules | None = None,
        placement: Placement | None = None,
    ) -> CreationResult:
        return await self.create_entity("location", prompt, context, rules, placement)

    async def edit_image(
        self,
        entity: GeneratedEntity,
        instruction: str,
        art_style: str = "",
    ) -> GeneratedEntity:
        """Return a copy of entity with its image edited per instruction.

        Raises:
            GenerationError: If the edit call fails.
        """
        original = from_data_uri(entity.image_url)
        outcome = await self.image_synthesizer.edit(original, instruction, art_style)
        edited = outcome.unwrap()
        return entity.model_copy(update={"image_url": to_data_uri(edited)})

    async def aclose(self) -> None:
        await self.provider.close_async()
        if self.image_provider is not self.provider:
            await self.image_provider.close_async()
