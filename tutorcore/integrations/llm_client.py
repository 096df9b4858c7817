"""
Text-generation client for question and analysis rendering.

The tutoring engines make every decision themselves and only ask the
language model to phrase questions or classify free text. Any failure
(transport error, non-2xx status, timeout, missing text, unparseable JSON)
is logged and reported as ``None`` so the caller can fall back to its
template text. No retries are attempted.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
from loguru import logger

from tutorcore.core.errors import LLMUnavailableError

# Greedy: spans nested objects and ignores surrounding prose
JSON_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Pull the first JSON object out of a model response.

    Returns None when no object is present or it does not parse.
    """
    match = JSON_OBJECT_PATTERN.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class LLMClient:
    """
    Async HTTP client for a text-generation endpoint.

    The endpoint receives ``{"model", "prompt", "system"}`` at
    ``POST {base_url}/generate`` and answers ``{"text": "..."}``.
    """

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None = None,
        model: str = "gemini-2.0-flash",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Endpoint root; None puts the client in template-only mode
            api_key: Optional bearer token
            model: Model name forwarded with each request
            timeout_seconds: Timeout for a single call
            transport: Optional transport override (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/") if base_url else None
        self.model = model
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers=headers,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings=None) -> LLMClient:
        """Build a client from application settings."""
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    @property
    def is_available(self) -> bool:
        return self.base_url is not None

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> LLMClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, prompt: str, system: str | None) -> str:
        if not self.is_available:
            raise LLMUnavailableError("No text-generation endpoint configured")

        payload: dict[str, Any] = {"model": self.model, "prompt": prompt}
        if system:
            payload["system"] = system

        try:
            response = await self.client.post(f"{self.base_url}/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise LLMUnavailableError(f"Generation request failed: {e}") from e
        except ValueError as e:
            raise LLMUnavailableError(f"Generation response was not JSON: {e}") from e

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise LLMUnavailableError("Generation response had no text")
        return text.strip()

    async def generate(self, prompt: str, system: str | None = None) -> str | None:
        """
        Generate text for a prompt.

        Returns:
            The generated text, or None when the service is unavailable
        """
        try:
            return await self._request(prompt, system)
        except LLMUnavailableError as e:
            if self.is_available:
                logger.warning(f"LLM generation failed, using fallback: {e}")
            return None

    async def generate_json(self, prompt: str, system: str | None = None) -> dict[str, Any] | None:
        """
        Generate text and parse the JSON object it contains.

        Returns:
            The parsed object, or None on any failure
        """
        text = await self.generate(prompt, system)
        if text is None:
            return None

        data = extract_json_object(text)
        if data is None:
            logger.warning("LLM response contained no parseable JSON object, using fallback")
        return data
