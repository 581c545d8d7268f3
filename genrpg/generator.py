"""Event generator — one instruction in, one validated GameEvent out.

Flow per call:
  1. Render the event instruction from the current location and character.
  2. Call the injected LLM exactly once (stage "event"), passing the
     GameEvent descriptor along with the prompt.
  3. Decode the raw text. A rejected response becomes a GenerationError
     carrying the raw text; no fallback event is ever invented.

Retrying is the caller's decision. Illustration is a separate call
(illustrate()) so the event can be shown before its picture exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from genrpg.images import ImageGenerator, render_event_image
from genrpg.llm import LLM, LLMError
from genrpg.models import Character, GameEvent, Location
from genrpg.prompts import EVENT_TEMPLATE, build_event_prompt
from genrpg.schema import DecodeError, decode, encode_schema

logger = logging.getLogger(__name__)

GenerationErrorKind = Literal["invalid_response", "transport_failure"]


@dataclass(frozen=True)
class GenerationError:
    """Why no event could be produced this turn."""

    kind: GenerationErrorKind
    message: str
    raw: str | None = None
    decode_error: DecodeError | None = None


class EventGenerator:
    def __init__(
        self,
        llm: LLM,
        images: ImageGenerator | None = None,
        template: str = EVENT_TEMPLATE,
    ) -> None:
        self._llm = llm
        self._images = images
        self._template = template

    async def generate(
        self, character: Character, location: Location
    ) -> GameEvent | GenerationError:
        prompt = build_event_prompt(character, location, self._template)
        try:
            raw = await self._llm("event", prompt, encode_schema("GameEvent"))
        except LLMError as e:
            logger.warning("Event generation failed: %s", e)
            return GenerationError(kind="transport_failure", message=str(e))

        result = decode(raw)
        if isinstance(result, DecodeError):
            logger.warning("Generator output rejected (%s): %r", result, raw[:500])
            return GenerationError(
                kind="invalid_response", message=str(result),
                raw=raw, decode_error=result,
            )

        logger.info(
            "Generated event %s with %d options at %s",
            result.id, len(result.options), location.name,
        )
        return result

    async def illustrate(self, event: GameEvent) -> bytes | None:
        """Picture for an event, or None when images are off or failed."""
        if self._images is None:
            return None
        return await render_event_image(self._images, event.description)
