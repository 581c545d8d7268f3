"""Image client — turns an event description into picture bytes.

The session injects an image callable matching the protocol:

    async def __call__(self, prompt: str) -> bytes | None: ...

An image is always optional. A missing picture must never hold back or
invalidate the event it illustrates, so render_event_image() swallows
transport failures and hands back None.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Protocol

import httpx

from genrpg.prompts import PromptError, build_image_prompt

logger = logging.getLogger(__name__)


class ImageGenerator(Protocol):
    async def __call__(self, prompt: str) -> bytes | None: ...


class ImageError(RuntimeError):
    """Raised when the image backend cannot be reached or returns an error."""


class HttpImageGenerator:
    """Async client for a Venice-style image endpoint.

    POST {provider_url}/v1/image/generate  {"model": ..., "prompt": ..., ...}
    Response: {"images": ["<base64>"]}
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        model: str = "fluently-xl",
        size: int = 1024,
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._size = size
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_body(self, prompt: str) -> dict:
        return {
            "model": self._model,
            "prompt": prompt,
            "width": self._size,
            "height": self._size,
            "steps": 6,
            "safe_mode": True,
            "hide_watermark": True,
            "cfg_scale": 7.0,
            "style_preset": "Pixel Art",
            "negative_prompt": "abstract",
            "return_binary": False,
        }

    async def __call__(self, prompt: str) -> bytes | None:
        url = f"{self._base_url}/v1/image/generate"
        logger.debug("image call url=%s prompt_len=%d", url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=self._build_body(prompt), headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise ImageError(f"Cannot connect to image backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise ImageError(f"Image backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise ImageError(f"Image backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise ImageError(f"Image request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            logger.warning("Image backend returned a non-JSON body")
            return None
        images = data.get("images") if isinstance(data, dict) else None
        if not images or not isinstance(images[0], str):
            return None
        try:
            return base64.b64decode(images[0], validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Image backend returned undecodable image data")
            return None


async def render_event_image(images: ImageGenerator, description: str) -> bytes | None:
    """Generate a picture for an event; any failure degrades to None."""
    try:
        prompt = build_image_prompt(description)
        return await images(prompt)
    except (ImageError, PromptError) as e:
        logger.warning("Image generation failed: %s", e)
        return None
