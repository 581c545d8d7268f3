"""LLM client — HTTP connection to a text-generation backend.

The event generator injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str, schema: dict | None = None) -> str: ...

`stage` names what is being generated (currently only "event"). `schema` is
the structural descriptor of the expected JSON; backends that support
structured output receive it, the others rely on the copy embedded in the
prompt text.

Two implementations are provided:

    HttpLLM   — real HTTP client for KoboldCpp, OpenAI-style completions and
                OpenAI-style chat completions. Selected by provider_format.
    EchoLLM   — returns the prompt back unchanged. Useful for smoke-testing
                the wiring without a running model.

Tests use StubLLM from genrpg.testing instead.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(
        self, stage: str, prompt: str, schema: dict[str, Any] | None = None
    ) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

def _first_entry(data: Any, key: str) -> dict | None:
    """data[key][0] when the body has that shape, else None."""
    if not isinstance(data, dict):
        return None
    entries = data.get(key)
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        return None
    return entries[0]


ProviderFormat = Literal["koboldcpp", "openai", "openai-chat"]


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Supported formats:
      "koboldcpp"    — POST /api/v1/generate        {"prompt": ...}
                       Response: {"results": [{"text": "..."}]}
      "openai"       — POST /v1/completions         {"model": ..., "prompt": ...}
                       Response: {"choices": [{"text": "..."}]}
      "openai-chat"  — POST /v1/chat/completions    {"model": ..., "messages": [...],
                                                     "response_format": {...}}
                       Response: {"choices": [{"message": {"content": "..."}}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.venice.ai/api".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai-chat".
        model:           Model identifier, used by the openai formats.
        timeout:         HTTP timeout in seconds. Defaults to 30.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai-chat",
        model: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(
        self, stage: str, prompt: str, schema: dict[str, Any] | None
    ) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai-chat":
            url = f"{self._base_url}/v1/chat/completions"
            body: dict = {"messages": [{"role": "system", "content": prompt}]}
            if self._model:
                body["model"] = self._model
            if schema is not None:
                body["response_format"] = {
                    "type": "json_schema",
                    "json_schema": {"name": stage, "schema": schema},
                }
            return url, body

        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body = {"prompt": prompt}
            if self._model:
                body["model"] = self._model
            return url, body

        # koboldcpp
        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": prompt}

    def _parse_response(self, data: Any) -> str:
        """Extract the generated text from the response body."""
        if self._format == "openai-chat":
            choice = _first_entry(data, "choices")
            message = choice.get("message") if choice is not None else None
            text = message.get("content") if isinstance(message, dict) else None
            backend = "OpenAI-compatible chat backend"
        elif self._format == "openai":
            choice = _first_entry(data, "choices")
            text = choice.get("text") if choice is not None else None
            backend = "OpenAI-compatible backend"
        else:
            result = _first_entry(data, "results")
            text = result.get("text") if result is not None else None
            backend = "KoboldCpp backend"

        if not isinstance(text, str):
            raise LLMError(f"Unexpected response format from {backend}")
        return text

    async def __call__(
        self, stage: str, prompt: str, schema: dict[str, Any] | None = None
    ) -> str:
        url, body = self._build_request(stage, prompt, schema)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# EchoLLM — returns the prompt unchanged; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the prompt text as-is. No network calls.

    The output won't decode as an event — use StubLLM in tests when you need
    controlled responses.
    """

    async def __call__(
        self, stage: str, prompt: str, schema: dict[str, Any] | None = None
    ) -> str:
        logger.debug("EchoLLM stage=%s prompt_len=%d", stage, len(prompt))
        return prompt


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
