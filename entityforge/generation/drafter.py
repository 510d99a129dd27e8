"""Step 1: draft the base entity fields against a fixed schema.

Drafting is fatal: any upstream or schema failure yields a fatal outcome and
the pipeline aborts without producing an entity.
"""

import logging
import time
from typing import Any

from ..core.errors import ParseError, UpstreamError
from ..core.models import DraftedEntity, GameRules, StageOutcome
from ..core.providers import LLMProvider
from .parsers import parse_drafted_entity, validate_draft_response
from .schemas import DEFAULT_CATEGORIES, build_entity_schema, category_required
from .stage import call_with_timeout, elapsed_ms


logger = logging.getLogger(__name__)


def available_categories(kind: str, rules: GameRules) -> list[str]:
    """Category choices from the kind's library, or the built-in defaults."""
    names = rules.library_for(kind).category_names()
    return names or list(DEFAULT_CATEGORIES[kind])


def infer_category(prompt: str, name: str, categories: list[str]) -> str:
    """Pick the first category mentioned in the prompt or name, else the first one."""
    haystack = f"{prompt} {name}".lower()
    for category in categories:
        if category.lower().replace("_", " ") in haystack:
            return category
    return categories[0]


def build_draft_prompt(kind: str, prompt: str, context_summary: str, rules: GameRules) -> str:
    context_block = f"Context:\n{context_summary}\n" if context_summary else ""

    if kind == "npc":
        return f"""You are a historically accurate game NPC creator for the {rules.historical_period} setting.

{context_block}
User Request: {prompt}

Create a {rules.genre} game NPC with authentic historical details:
- Use historically accurate names, occupations, and personalities for the {rules.historical_period} period
- Description should focus on historical context, appearance, and personality
- Rarity reflects historical importance (common villager vs. famous historical figures)
- Category must be one of the available types

Generate the complete NPC following the schema."""

    if kind == "location":
        return f"""You are a historically accurate game location designer for the {rules.historical_period} setting.

{context_block}
User Request: {prompt}

Create a {rules.genre} game location with authentic historical details:
- Use historically plausible names and architecture for the {rules.historical_period} period
- Description should focus on historical context, environment, and significance
- Rarity reflects historical importance (common hamlet vs. legendary landmark)
- Category must be one of the available types

Generate the complete location following the schema."""

    return f"""You are a historically accurate game item generator for a game in this historical period: {rules.historical_period}.

{context_block}
If you are given a prompt about a generic item that is not specific to this historical period, you should generate a generic item that is appropriate for the historical period.
However if the prompt specifies a specific name or feature of an item, you should output the exact name, and/or describe the feature as part of the description.

User Request: {prompt}

Generate the complete item following the schema."""


class EntityDrafter:
    stage = "draft"

    def __init__(
        self,
        provider: LLMProvider,
        timeout: float | None = None,
        model: str | None = None,
        max_retries: int = 0,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._model = model
        self._max_retries = max_retries

    async def draft(
        self,
        prompt: str,
        context_summary: str,
        rules: GameRules,
        kind: str = "item",
    ) -> StageOutcome[DraftedEntity]:
        categories = available_categories(kind, rules)
        schema = build_entity_schema(kind, categories)
        full_prompt = build_draft_prompt(kind, prompt, context_summary, rules)
        needs_category = category_required(kind)

        debug: dict[str, Any] = {
            "step": f"Step 1: Base {kind} JSON",
            "model": self._model or self._provider.default_text_model,
            "prompt": full_prompt,
            "schema": f"{kind.upper()}_SCHEMA",
            "categories": categories,
        }

        def _on_retry(attempt: int, max_retries: int, summary: str) -> None:
            logger.info(f"[Pipeline] draft retry {attempt}/{max_retries}: {summary}")

        start = time.perf_counter()
        try:
            data = await call_with_timeout(
                self._provider.complete_structured(
                    full_prompt,
                    schema,
                    schema_name=f"{kind}_entity",
                    model=self._model,
                    validator=lambda d: validate_draft_response(d, categories, needs_category),
                    max_retries=self._max_retries,
                    on_retry=_on_retry,
                ),
                self._timeout,
                self.stage,
            )
            debug["response"] = data
            is_valid, error_msg = validate_draft_response(data, categories, needs_category)
            if not is_valid:
                raise ParseError(f"Entity response failed schema validation:\n{error_msg}")
            drafted = parse_drafted_entity(data)
        except UpstreamError as e:
            logger.error(f"[Pipeline] {kind} drafting failed: {e}")
            debug["error"] = str(e)
            return StageOutcome(
                stage=self.stage,
                status="fatal",
                elapsed_ms=elapsed_ms(start),
                debug=debug,
                error=e,
            )

        canonical = {c.lower(): c for c in categories}
        category = canonical.get((drafted.category or "").strip().lower(), "")
        if not category:
            category = infer_category(prompt, drafted.name, categories)
            debug["category_inferred"] = category
        drafted = drafted.model_copy(update={"category": category})

        return StageOutcome(
            stage=self.stage,
            value=drafted,
            elapsed_ms=elapsed_ms(start),
            debug=debug,
        )
