"""Caller-side helpers for the ``/api/ai`` endpoint."""
from __future__ import annotations

import itertools
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx
from pydantic import TypeAdapter

from .errors import ExternalServiceError, ServerError, Unauthorized, ValidationError
from .schemas import CATEGORIES, ChatMessage, InventoryItem

logger = logging.getLogger(__name__)

_ITEMS = TypeAdapter(list[InventoryItem])
_MESSAGES = TypeAdapter(list[ChatMessage])


def clean_generated_text(text: str) -> str:
    return text.strip().replace('"', "")


@dataclass(frozen=True)
class CategorySuggestion:
    raw: str
    category: Optional[str]
    message: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.category is not None


def validate_category(raw: str, categories: Sequence[str] = CATEGORIES) -> CategorySuggestion:
    """Accept ``raw`` only when it names a known category.

    A rejected value is reported through ``message`` instead of being
    dropped silently.
    """

    candidate = clean_generated_text(raw)
    if candidate in categories:
        return CategorySuggestion(raw=raw, category=candidate)
    return CategorySuggestion(
        raw=raw,
        category=None,
        message=(
            f'Suggested category "{candidate}" is not one of: {", ".join(categories)}. '
            "Category left unchanged."
        ),
    )


@dataclass(frozen=True)
class PendingRequest:
    token: int
    item_id: Optional[str]
    field: str
    sent_value: str


class RequestTracker:
    """Tags in-flight generation requests so late results can be discarded.

    A result is applied only if it belongs to the newest request for its
    (record, field) pair and the user has not changed the target record or
    the field value since the request was sent.
    """

    def __init__(self) -> None:
        self._tokens = itertools.count(1)
        self._latest: Dict[Tuple[Optional[str], str], int] = {}

    def begin(self, item_id: Optional[str], field: str, current_value: str) -> PendingRequest:
        request = PendingRequest(
            token=next(self._tokens), item_id=item_id, field=field, sent_value=current_value
        )
        self._latest[(item_id, field)] = request.token
        return request

    def accept(
        self, request: PendingRequest, current_item_id: Optional[str], current_value: str
    ) -> bool:
        key = (request.item_id, request.field)
        if self._latest.get(key) != request.token:
            logger.info("Discarding superseded %s result for %s", request.field, request.item_id)
            return False
        del self._latest[key]
        if current_item_id != request.item_id or current_value != request.sent_value:
            logger.info("Discarding stale %s result for %s", request.field, request.item_id)
            return False
        return True

    def pending(self, item_id: Optional[str], field: str) -> bool:
        return (item_id, field) in self._latest


class AIClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    @staticmethod
    def _raise_for_status(status_code: int, text: str) -> None:
        if status_code < 400:
            return
        if status_code == 400:
            raise ValidationError(text)
        if status_code == 401:
            raise Unauthorized(text)
        raise ServerError(f"Server error: {status_code} - {text}")

    async def _post_text(self, payload: Dict[str, Any]) -> str:
        async with self._client() as client:
            try:
                response = await client.post("/api/ai", json=payload)
            except httpx.HTTPError as exc:
                raise ServerError(f"Unable to reach AI server: {exc}") from exc
        self._raise_for_status(response.status_code, response.text)
        return response.text

    async def run_audit(self, inventory: Sequence[InventoryItem]) -> str:
        return await self._post_text(
            {
                "task": "audit-inventory",
                "inventory": _ITEMS.dump_python(list(inventory), mode="json", by_alias=True),
            }
        )

    async def audit_report(self, inventory: Sequence[InventoryItem]) -> str:
        """Run the audit and return either the report or an inline error text."""

        try:
            return await self.run_audit(inventory)
        except ExternalServiceError as exc:
            logger.error("Audit error: %s", exc)
            return f"An error occurred during the audit:\n{exc}"

    async def forecast_restock(self, item: InventoryItem) -> str:
        item_info = {
            "name": item.name,
            "quantity": item.quantity,
            "salesHistory": [
                entry.model_dump(by_alias=True) for entry in item.sales_history or []
            ],
        }
        text = await self._post_text({"task": "forecast-restock", "itemInfo": item_info})
        return text.strip()

    async def generate_description(self, name: str, category: str = "") -> str:
        text = await self._post_text(
            {
                "task": "generate-description",
                "itemInfo": {"name": name, "category": category},
            }
        )
        return clean_generated_text(text)

    async def suggest_category(self, name: str) -> CategorySuggestion:
        text = await self._post_text(
            {"task": "suggest-category", "itemInfo": {"name": name, "category": ""}}
        )
        return validate_category(text)

    async def chat(
        self, messages: Sequence[ChatMessage], inventory: Sequence[InventoryItem]
    ) -> AsyncIterator[str]:
        payload = {
            "task": "chat",
            "messages": _MESSAGES.dump_python(list(messages), mode="json"),
            "inventory": _ITEMS.dump_python(list(inventory), mode="json", by_alias=True),
        }
        async with self._client() as client:
            try:
                async with client.stream("POST", "/api/ai", json=payload) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        self._raise_for_status(response.status_code, body)
                    async for chunk in response.aiter_text():
                        if chunk:
                            yield chunk
            except httpx.HTTPError as exc:
                raise ServerError(f"Unable to reach AI server: {exc}") from exc


__all__ = [
    "AIClient",
    "CategorySuggestion",
    "PendingRequest",
    "RequestTracker",
    "clean_generated_text",
    "validate_category",
]
