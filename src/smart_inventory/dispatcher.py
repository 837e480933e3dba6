"""Routing of validated AI tasks to prompts and the text generator."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

from . import prompts
from .errors import ExternalServiceError, ServerError, Unauthorized
from .llm import TextGenerationError, TextGenerator
from .schemas import (
    AITask,
    AuditTask,
    CategoryTask,
    ChatTask,
    DescriptionTask,
    ForecastTask,
)
from .tasks import parse_task_request

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Invalid or missing API key on the server."
SERVER_ERROR_MESSAGE = "An error occurred on the server."

_CREDENTIAL_MARKERS = (
    "api key",
    "api_key",
    "apikey",
    "unauthorized",
    "authentication",
    "credential",
)

# task variant -> (prompt builder, streamed)
_ROUTES: Dict[Type[Any], Tuple[Callable[[Any], prompts.Prompt], bool]] = {
    ChatTask: (prompts.chat_prompt, True),
    AuditTask: (prompts.audit_prompt, False),
    ForecastTask: (prompts.forecast_prompt, False),
    DescriptionTask: (prompts.description_prompt, False),
    CategoryTask: (prompts.category_prompt, False),
}


@dataclass
class DispatchResult:
    """Either the full text of a single-shot task or the chunks of a stream."""

    text: Optional[str] = None
    stream: Optional[AsyncIterator[str]] = None

    @property
    def streaming(self) -> bool:
        return self.stream is not None


def map_generation_error(exc: Exception) -> ExternalServiceError:
    status_code = getattr(exc, "status_code", None)
    message = str(exc).lower()
    if status_code == 401 or any(marker in message for marker in _CREDENTIAL_MARKERS):
        return Unauthorized(UNAUTHORIZED_MESSAGE)
    return ServerError(SERVER_ERROR_MESSAGE)


class TaskDispatcher:
    def __init__(self, generator: TextGenerator) -> None:
        self.generator = generator

    async def handle(self, body: Any) -> DispatchResult:
        """Validate a raw request body and dispatch it."""

        return await self.dispatch(parse_task_request(body))

    async def dispatch(self, task: AITask) -> DispatchResult:
        build_prompt, streamed = _ROUTES[type(task)]
        prompt = build_prompt(task)
        try:
            if streamed:
                return DispatchResult(stream=await self._start_stream(prompt))
            return DispatchResult(text=await self.generator.generate_text(prompt))
        except TextGenerationError as exc:
            logger.error("Error processing AI task '%s': %s", task.task, exc)
            raise map_generation_error(exc) from exc
        except Exception as exc:
            logger.exception("Unexpected failure processing AI task '%s'", task.task)
            raise map_generation_error(exc) from exc

    async def _start_stream(self, prompt: prompts.Prompt) -> AsyncIterator[str]:
        # Pull the first chunk eagerly so connection and credential failures
        # surface before any response bytes are sent.
        stream = self.generator.stream_text(prompt)
        try:
            first: Optional[str] = await stream.__anext__()
        except StopAsyncIteration:
            first = None

        async def chunks() -> AsyncIterator[str]:
            if first is not None:
                yield first
            try:
                async for chunk in stream:
                    yield chunk
            except TextGenerationError as exc:
                logger.error("Chat stream interrupted: %s", exc)
            except Exception:
                logger.exception("Unexpected failure while streaming chat")

        return chunks()


__all__ = [
    "DispatchResult",
    "SERVER_ERROR_MESSAGE",
    "TaskDispatcher",
    "UNAUTHORIZED_MESSAGE",
    "map_generation_error",
]
