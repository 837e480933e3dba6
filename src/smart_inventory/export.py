"""CSV export of inventory records."""
from __future__ import annotations

import csv
from collections.abc import Iterable, Sequence
from datetime import date
from io import StringIO
from typing import Any, Dict, List, Optional

from .schemas import InventoryItem

EXPORT_COLUMNS: Dict[str, str] = {
    "id": "ID",
    "name": "Name",
    "quantity": "Quantity",
    "category": "Category",
    "description": "Description",
    "price": "Price",
    "supplier": "Supplier",
    "status": "Status",
    "dateAdded": "Date Added",
    "lastUpdated": "Last Updated",
}


def resolve_columns(columns: Optional[Sequence[str]]) -> List[str]:
    """Keep the requested columns in canonical order; ``None`` selects all."""

    if columns is None:
        return list(EXPORT_COLUMNS)
    unknown = [column for column in columns if column not in EXPORT_COLUMNS]
    if unknown:
        raise ValueError(f"Unknown export columns: {', '.join(unknown)}")
    requested = set(columns)
    selected = [column for column in EXPORT_COLUMNS if column in requested]
    if not selected:
        raise ValueError("Select at least one column to export")
    return selected


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"inventory_export_{today.isoformat()}.csv"


def export_csv(items: Iterable[InventoryItem], columns: Optional[Sequence[str]] = None) -> str:
    selected = resolve_columns(columns)
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow([EXPORT_COLUMNS[column] for column in selected])
    for item in items:
        record: Dict[str, Any] = item.model_dump(mode="json", by_alias=True)
        writer.writerow([record.get(column, "") for column in selected])
    return buffer.getvalue()


__all__ = ["EXPORT_COLUMNS", "export_csv", "export_filename", "resolve_columns"]
