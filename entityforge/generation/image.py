"""Step 3: render an image for the entity.

Imaging is fatal: an entity is never returned without its image.
"""

import base64
import binascii
import logging
import time
from typing import Any

from ..core.errors import ParseError, UpstreamError
from ..core.models import EntityInfo, StageOutcome
from ..core.providers import LLMProvider
from .stage import call_with_timeout, elapsed_ms


logger = logging.getLogger(__name__)

DEFAULT_ART_STYLES = {
    "item": "historical illustration",
    "npc": "historical portrait",
    "location": "historical landscape",
}

_DATA_URI_PREFIX = "data:"


def detect_mime(image: bytes) -> str:
    """Mime type from magic bytes; PNG when unrecognised."""
    if image.startswith(b"\x89PNG"):
        return "image/png"
    if image.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if image[:4] == b"RIFF" and image[8:12] == b"WEBP":
        return "image/webp"
    if image[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/png"


def to_data_uri(image: bytes) -> str:
    encoded = base64.b64encode(image).decode("ascii")
    return f"data:{detect_mime(image)};base64,{encoded}"


def from_data_uri(uri: str) -> bytes:
    if not uri.startswith(_DATA_URI_PREFIX) or ";base64," not in uri:
        raise ParseError("image_url is not a base64 data URI")
    try:
        return base64.b64decode(uri.split(";base64,", 1)[1], validate=True)
    except (binascii.Error, ValueError) as e:
        raise ParseError(f"image_url holds invalid base64: {e}") from e


def build_image_prompt(info: EntityInfo, art_style: str) -> str:
    header = f"""Name: {info.name}
Rarity/Significance: {info.rarity}
Category: {info.category}
Historical Setting: {info.historical_period}

Description:
{info.description}
"""

    if info.kind == "npc":
        return f"""Generate a character portrait in {art_style} style.

{header}
Style Requirements:
- {art_style} art style
- SQUARE FORMAT (1:1 aspect ratio)
- Head-and-shoulders portrait, character facing the viewer
- Clothing and features authentic to the historical setting
- Rarity level should influence visual detail and presence ({info.rarity})
- No text in the image
"""

    if info.kind == "location":
        return f"""Generate a scene illustration of a place in {art_style} style.

{header}
Style Requirements:
- {art_style} art style
- Wide establishing view of the location
- Architecture and landscape authentic to the historical setting
- Rarity level should influence grandeur and detail ({info.rarity})
- No text in the image
"""

    return f"""Generate a game item sprite/icon in {art_style} style.

{header}
Style Requirements:
- {art_style} art style
- SQUARE FORMAT (1:1 aspect ratio)
- Game item icon/sprite aesthetic
- Item centered on neutral background
- Rarity level should influence visual detail and importance ({info.rarity})
- Clear, iconic representation suitable for inventory display
- No text in the image
"""


class ImageSynthesizer:
    stage = "image"

    def __init__(
        self,
        provider: LLMProvider,
        timeout: float | None = None,
        model: str | None = None,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._model = model

    async def _render(self, call, debug: dict[str, Any]) -> StageOutcome[bytes]:
        start = time.perf_counter()
        try:
            image = await call_with_timeout(call, self._timeout, self.stage)
            if not image:
                raise UpstreamError("No image data in response")
        except UpstreamError as e:
            logger.error(f"[Pipeline] image generation failed: {e}")
            debug.update(response=f"Error: {e}", error=str(e))
            return StageOutcome(
                stage=self.stage,
                status="fatal",
                elapsed_ms=elapsed_ms(start),
                debug=debug,
                error=e,
            )

        debug.update(response="Image generated successfully", imageSize=len(image))
        return StageOutcome(
            stage=self.stage,
            value=image,
            elapsed_ms=elapsed_ms(start),
            debug=debug,
        )

    async def generate(self, entity_info: EntityInfo, art_style: str = "") -> StageOutcome[bytes]:
        art_style = art_style or DEFAULT_ART_STYLES[entity_info.kind]
        prompt = build_image_prompt(entity_info, art_style)
        debug = {
            "step": f"Step 3: {entity_info.kind} image",
            "model": self._model or self._provider.default_image_model,
            "prompt": prompt,
        }
        return await self._render(
            self._provider.generate_image(prompt, model=self._model), debug
        )

    async def edit(self, image: bytes, instruction: str, art_style: str = "") -> StageOutcome[bytes]:
        full_instruction = instruction
        if art_style:
            full_instruction = f"{instruction}\n\nKeep the {art_style} art style."
        debug = {
            "step": "Image edit",
            "model": self._model or self._provider.default_image_model,
            "prompt": full_instruction,
        }
        return await self._render(
            self._provider.edit_image(image, full_instruction, model=self._model), debug
        )
