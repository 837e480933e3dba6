"""Text generation against a hosted chat completions API."""
from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .config import Settings
from .prompts import Prompt

logger = logging.getLogger(__name__)


class TextGenerationError(Exception):
    """The provider call failed; ``status_code`` is set for HTTP failures."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TextGenerator(Protocol):
    async def generate_text(self, prompt: Prompt) -> str:
        ...

    def stream_text(self, prompt: Prompt) -> AsyncIterator[str]:
        ...


class OpenAIChatClient:
    """Minimal client for ``/chat/completions``, single shot or streamed.

    Every call is attempted exactly once.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIChatClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.ai_timeout_seconds,
        )

    async def generate_text(self, prompt: Prompt) -> str:
        headers = self._headers()
        async with self._client() as client:
            try:
                response = await client.post(
                    "/chat/completions", json=self._payload(prompt, stream=False), headers=headers
                )
            except httpx.HTTPError as exc:
                raise TextGenerationError(f"Request to provider failed: {exc}") from exc
            if response.status_code >= 400:
                raise TextGenerationError(
                    self._error_message(response), status_code=response.status_code
                )
            try:
                data = response.json()
                return data["choices"][0]["message"]["content"] or ""
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                raise TextGenerationError(f"Unexpected provider response: {exc}") from exc

    async def stream_text(self, prompt: Prompt) -> AsyncIterator[str]:
        headers = self._headers()
        async with self._client() as client:
            try:
                async with client.stream(
                    "POST",
                    "/chat/completions",
                    json=self._payload(prompt, stream=True),
                    headers=headers,
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise TextGenerationError(
                            self._error_message(response), status_code=response.status_code
                        )
                    async for line in response.aiter_lines():
                        chunk = self._parse_stream_line(line)
                        if chunk is None:
                            continue
                        if chunk == "":
                            break
                        yield chunk
            except httpx.HTTPError as exc:
                raise TextGenerationError(f"Request to provider failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise TextGenerationError("Missing API key for the language model provider")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, prompt: Prompt, *, stream: bool) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [{"role": "system", "content": prompt.system}]
        messages.extend(
            {"role": message.role, "content": message.content} for message in prompt.messages
        )
        return {"model": self.model, "messages": messages, "stream": stream}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            detail = response.json()["error"]["message"]
        except (KeyError, TypeError, ValueError):
            detail = response.text or response.reason_phrase
        return f"Provider returned HTTP {response.status_code}: {detail}"

    @staticmethod
    def _parse_stream_line(line: str) -> Optional[str]:
        """Return the text delta of an SSE line, ``""`` at end of stream, ``None`` to skip."""

        if not line.startswith("data:"):
            return None
        data = line[len("data:"):].strip()
        if data == "[DONE]":
            return ""
        try:
            event = json.loads(data)
            content = event["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, ValueError):
            logger.warning("Skipping malformed stream event: %r", data[:200])
            return None
        return content or None


__all__ = ["OpenAIChatClient", "TextGenerationError", "TextGenerator"]
