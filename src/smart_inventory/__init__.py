"""Inventory tracker with role-based permissions and AI-assisted helpers."""
from __future__ import annotations

from .inventory import InventoryStore, classify_status, filter_items
from .schemas import InventoryForm, InventoryItem, InventoryUpdate

__all__ = [
    "InventoryForm",
    "InventoryItem",
    "InventoryStore",
    "InventoryUpdate",
    "classify_status",
    "filter_items",
]
