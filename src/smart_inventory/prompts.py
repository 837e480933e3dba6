"""Prompt templates for the AI tasks."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import List

from pydantic import TypeAdapter

from .schemas import (
    CATEGORIES,
    AuditTask,
    CategoryTask,
    ChatMessage,
    ChatTask,
    DescriptionTask,
    ForecastTask,
    InventoryItemOut,
)

_INVENTORY_JSON = TypeAdapter(List[InventoryItemOut])

CHAT_SYSTEM_PROMPT = """You are an expert inventory management assistant.
Answer questions about the user's inventory using only the data below.
Be concise, quote exact quantities and prices, and say so when the data does
not contain the answer. Items with fewer than 10 units are low on stock.

Current inventory (JSON):
{inventory}"""

AUDIT_SYSTEM_PROMPT = """You are an expert inventory analyst.
Review the inventory you are given and report, as a short bulleted list:
items that are low on stock or out of stock, records whose status does not
match their quantity, missing or weak descriptions, unusual prices, and
concrete restocking or clean-up suggestions. Finish with a one line summary."""

FORECAST_SYSTEM_PROMPT = """You are a supply chain analyst. Based on the item's current quantity and its sales history, predict when it will run out of stock.
Provide a concise, human-readable forecast (e.g., "in ~3 weeks", "in ~2 months", "by late August").
If sales history is unavailable or insufficient, state that you cannot make a prediction.
Respond with only the prediction and nothing else."""

DESCRIPTION_SYSTEM_PROMPT = """You are a professional copywriter for product catalogues.
Write a single-sentence, factual product description of at most 25 words.
Do not invent specifications, prices or brand claims. Respond with the description only."""

CATEGORY_SYSTEM_PROMPT = """You are an inventory categorization expert.
Choose the single best category for the item from this list: {categories}.
Respond with the category name exactly as written and nothing else."""


@dataclass(frozen=True)
class Prompt:
    system: str
    messages: Sequence[ChatMessage]


def _inventory_json(items: Sequence[InventoryItemOut]) -> str:
    # hidden prices are left out rather than shown as null
    payload = _INVENTORY_JSON.dump_json(list(items), by_alias=True, exclude_none=True, indent=2)
    return payload.decode("utf-8")


def _user(content: str) -> List[ChatMessage]:
    return [ChatMessage(role="user", content=content)]


def chat_prompt(task: ChatTask) -> Prompt:
    system = CHAT_SYSTEM_PROMPT.format(inventory=_inventory_json(task.inventory))
    return Prompt(system=system, messages=tuple(task.messages))


def audit_prompt(task: AuditTask) -> Prompt:
    content = f"Please audit the following inventory: {_inventory_json(task.inventory)}"
    return Prompt(system=AUDIT_SYSTEM_PROMPT, messages=_user(content))


def forecast_prompt(task: ForecastTask) -> Prompt:
    info = task.item_info.model_dump_json(by_alias=True, exclude_none=True, indent=2)
    return Prompt(
        system=FORECAST_SYSTEM_PROMPT,
        messages=_user(f"Forecast restock for item: {info}"),
    )


def description_prompt(task: DescriptionTask) -> Prompt:
    info = task.item_info
    content = (
        f'Generate a description for the item: Name: "{info.name}", '
        f'Category: "{info.category or ""}".'
    )
    return Prompt(system=DESCRIPTION_SYSTEM_PROMPT, messages=_user(content))


def category_prompt(task: CategoryTask) -> Prompt:
    system = CATEGORY_SYSTEM_PROMPT.format(categories=", ".join(CATEGORIES))
    return Prompt(
        system=system,
        messages=_user(f'Suggest a category for the item: "{task.item_info.name}".'),
    )


__all__ = [
    "Prompt",
    "audit_prompt",
    "category_prompt",
    "chat_prompt",
    "description_prompt",
    "forecast_prompt",
]
