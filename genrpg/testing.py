"""Deterministic stand-ins for the external capabilities, for tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any

from genrpg.images import ImageError


class StubLLM:
    """Deterministic LLM stand-in.

    Provide a dict mapping stage name → list of responses (in call order).
    A response that is an Exception instance is raised instead of returned.
    Raises if a stage is called more times than responses were provided.
    """

    def __init__(self, responses: dict[str, list[str | Exception]]) -> None:
        self._queues: dict[str, list[str | Exception]] = {
            k: list(v) for k, v in responses.items()
        }
        self.calls: list[tuple[str, str, dict[str, Any] | None]] = []

    async def __call__(
        self, stage: str, prompt: str, schema: dict[str, Any] | None = None
    ) -> str:
        self.calls.append((stage, prompt, schema))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} "
                f"(no responses queued). calls so far: {len(self.calls)}"
            )
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def assert_exhausted(self) -> None:
        """Assert every queued response was consumed — catches missing LLM calls."""
        leftover = {k: v for k, v in self._queues.items() if v}
        if leftover:
            raise AssertionError(f"StubLLM: unused responses remain: {leftover}")


class StubImages:
    """Image stand-in returning fixed bytes, optionally after a gate opens."""

    def __init__(self, image: bytes | None = b"\x89PNG-stub", fail: bool = False) -> None:
        self._image = image
        self._fail = fail
        self.gate = asyncio.Event()
        self.gate.set()
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> bytes | None:
        self.prompts.append(prompt)
        await self.gate.wait()
        if self._fail:
            raise ImageError("stub image backend is down")
        return self._image


def event_json(*options: dict[str, Any], description: str = "A goblin blocks the road.") -> str:
    """Wire JSON for an event built from option dicts."""
    return json.dumps({"description": description, "options": list(options)})
