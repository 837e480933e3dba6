"""Pydantic schemas used by the store and the API."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

InventoryStatus = Literal["in-stock", "low-stock", "ordered", "discontinued"]
Role = Literal["admin", "manager", "staff"]

CATEGORIES: tuple[str, ...] = (
    "Electronics",
    "Furniture",
    "Office Supplies",
    "Equipment",
    "Software",
    "Other",
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SalesData(CamelModel):
    date: str
    quantity_sold: int = Field(..., ge=0)


class InventoryForm(CamelModel):
    """The mutable fields of an inventory record, as submitted by a form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)
    category: str = ""
    description: str = ""
    price: float = Field(..., ge=0)
    supplier: str = ""
    status: InventoryStatus | None = Field(
        default=None, description="Derived from quantity on creation when omitted."
    )
    sales_history: list[SalesData] | None = None

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Item name is required")
        return value


class InventoryUpdate(InventoryForm):
    """Edit form; an omitted or null ``price`` keeps the stored one."""

    price: float | None = Field(default=None, ge=0)


class InventoryItem(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    quantity: int = Field(..., ge=0)
    category: str = ""
    description: str = ""
    price: float = Field(..., ge=0)
    supplier: str = ""
    status: InventoryStatus
    date_added: datetime
    last_updated: datetime
    sales_history: list[SalesData] | None = None


class InventoryItemOut(InventoryItem):
    """A record as one user sees it; ``price`` is null when they may not view it."""

    price: float | None = Field(default=None, ge=0)

    @classmethod
    def from_item(cls, item: InventoryItem, *, show_price: bool) -> "InventoryItemOut":
        data = item.model_dump()
        if not show_price:
            data["price"] = None
        return cls(**data)


class User(BaseModel):
    id: str
    name: str
    role: Role


class Permissions(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    can_create: bool
    can_edit: bool
    can_delete: bool
    can_view_price: bool
    can_run_audit: bool
    can_export: bool


class InventorySummary(CamelModel):
    total_items: int
    total_value: float
    in_stock: int
    low_stock: int


class CategoryBreakdown(CamelModel):
    category: str
    total_value: float
    total_quantity: int
    item_count: int


class HealthStatus(BaseModel):
    status: Literal["ok"] = "ok"
    environment: str
    persistent_storage: bool
    ai_configured: bool


# ---------------------------------------------------------------------------
# AI task payloads
# ---------------------------------------------------------------------------
class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Literal["system", "user", "assistant"]
    content: str


class ItemInfo(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    category: str | None = None
    quantity: int | None = Field(default=None, ge=0)
    sales_history: list[SalesData] | None = None


class ChatTask(CamelModel):
    task: Literal["chat"] = "chat"
    messages: list[ChatMessage]
    inventory: list[InventoryItemOut]


class AuditTask(CamelModel):
    task: Literal["audit-inventory"] = "audit-inventory"
    inventory: list[InventoryItemOut]


class ForecastTask(CamelModel):
    task: Literal["forecast-restock"] = "forecast-restock"
    item_info: ItemInfo


class DescriptionTask(CamelModel):
    task: Literal["generate-description"] = "generate-description"
    item_info: ItemInfo


class CategoryTask(CamelModel):
    task: Literal["suggest-category"] = "suggest-category"
    item_info: ItemInfo


AITask = Annotated[
    Union[ChatTask, AuditTask, ForecastTask, DescriptionTask, CategoryTask],
    Field(discriminator="task"),
]


__all__ = [
    "AITask",
    "AuditTask",
    "CATEGORIES",
    "CategoryBreakdown",
    "CategoryTask",
    "ChatMessage",
    "ChatTask",
    "DescriptionTask",
    "ForecastTask",
    "HealthStatus",
    "InventoryForm",
    "InventoryItem",
    "InventoryItemOut",
    "InventoryStatus",
    "InventorySummary",
    "InventoryUpdate",
    "ItemInfo",
    "Permissions",
    "Role",
    "SalesData",
    "User",
]
