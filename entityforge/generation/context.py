"""Step 0: condense world/region context into a short narrative hint.

Context is an optional enhancement. This stage never fails the pipeline:
upstream errors produce an empty summary and a degraded outcome.
"""

import json
import logging
import time
from typing import Any, Mapping

from ..core.errors import UpstreamError
from ..core.models import StageOutcome
from ..core.providers import LLMProvider
from .stage import call_with_timeout, elapsed_ms


logger = logging.getLogger(__name__)

_KIND_LABELS = {"item": "items", "npc": "NPCs", "location": "locations"}


def build_context_prompt(context: Mapping[str, Any], kind: str) -> str:
    label = _KIND_LABELS.get(kind, "entities")
    return f"""You are a game design assistant helping to create contextually relevant {label}.

Game Context Information:
{json.dumps(context, indent=2, default=str)}

Create a brief narrative summary describing the context that will help guide {label.upper()} generation.
Your job is to provide all the information that is interesting or needed for the generation to make sense within the context of the game.
Keep it to a short paragraph. Output only the summary."""


class ContextSynthesizer:
    stage = "context"

    def __init__(
        self,
        provider: LLMProvider,
        timeout: float | None = None,
        model: str | None = None,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._model = model

    async def synthesize(
        self, context: Mapping[str, Any] | None, kind: str = "item"
    ) -> StageOutcome[str]:
        if not context:
            return StageOutcome(
                stage=self.stage,
                value="",
                debug={"step": "Step 0: Context", "skipped": "empty context"},
            )

        prompt = build_context_prompt(context, kind)
        debug: dict[str, Any] = {
            "step": "Step 0: Context",
            "model": self._model or self._provider.default_text_model,
            "prompt": prompt,
        }

        start = time.perf_counter()
        try:
            summary = await call_with_timeout(
                self._provider.complete_text(prompt, model=self._model),
                self._timeout,
                self.stage,
            )
        except UpstreamError as e:
            logger.warning(f"[Pipeline] context synthesis failed, continuing without context: {e}")
            debug.update(response=f"Error: {e}", error=str(e))
            return StageOutcome(
                stage=self.stage,
                status="degraded",
                value="",
                elapsed_ms=elapsed_ms(start),
                debug=debug,
                error=e,
            )

        summary = summary.strip()
        debug["response"] = summary
        return StageOutcome(
            stage=self.stage,
            value=summary,
            elapsed_ms=elapsed_ms(start),
            debug=debug,
        )
