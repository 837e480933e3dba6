"""Inventory records, the persisted store and the search helpers."""
from __future__ import annotations

import logging
import secrets
import string
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from threading import RLock
from typing import Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from .errors import NotFound, PersistenceFailure
from .schemas import (
    CategoryBreakdown,
    InventoryForm,
    InventoryItem,
    InventoryStatus,
    InventorySummary,
    InventoryUpdate,
)
from .storage import SnapshotSlot

logger = logging.getLogger(__name__)

LOW_STOCK_LIMIT = 10

_ID_ALPHABET = string.digits + string.ascii_lowercase
_SNAPSHOT = TypeAdapter(List[InventoryItem])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: List[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ID_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Return a millisecond timestamp in base 36 followed by a random suffix."""

    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(11))
    return _to_base36(int(time.time() * 1000)) + suffix


def classify_status(quantity: int) -> InventoryStatus:
    if quantity < 0:
        raise ValueError("Quantity cannot be negative")
    if quantity == 0:
        return "discontinued"
    if quantity < LOW_STOCK_LIMIT:
        return "low-stock"
    return "in-stock"


def create_item(
    form: InventoryForm,
    *,
    id_factory: Callable[[], str] = generate_id,
    clock: Callable[[], datetime] = _now,
) -> InventoryItem:
    """Build a new record from ``form``.

    The status is derived from the quantity unless the form sets one
    explicitly.
    """

    now = clock()
    return InventoryItem(
        id=id_factory(),
        name=form.name,
        quantity=form.quantity,
        category=form.category,
        description=form.description,
        price=form.price,
        supplier=form.supplier,
        status=form.status or classify_status(form.quantity),
        date_added=now,
        last_updated=now,
        sales_history=form.sales_history,
    )


def apply_update(
    existing: InventoryItem,
    form: InventoryForm | InventoryUpdate,
    *,
    clock: Callable[[], datetime] = _now,
) -> InventoryItem:
    """Overwrite the mutable fields of ``existing`` with ``form``.

    Identity and ``date_added`` are kept. The status is never re-derived from
    the quantity here: the form's status wins, else the existing one stays.
    A null price, sent by users who cannot see prices, keeps the stored one.
    """

    last_updated = max(clock(), existing.last_updated)
    return existing.model_copy(
        update={
            "name": form.name,
            "quantity": form.quantity,
            "category": form.category,
            "description": form.description,
            "price": existing.price if form.price is None else form.price,
            "supplier": form.supplier,
            "status": form.status or existing.status,
            "last_updated": last_updated,
            "sales_history": (
                form.sales_history if form.sales_history is not None else existing.sales_history
            ),
        }
    )


def _sample_items() -> List[InventoryItem]:
    return _SNAPSHOT.validate_python(
        [
            {
                "id": "1",
                "name": "Laptop Computer",
                "quantity": 25,
                "category": "Electronics",
                "description": "High-performance business laptop",
                "price": 1299.99,
                "supplier": "Tech Solutions Inc.",
                "status": "in-stock",
                "dateAdded": "2024-01-15T10:30:00.000Z",
                "lastUpdated": "2024-01-15T10:30:00.000Z",
            },
            {
                "id": "2",
                "name": "Office Chair",
                "quantity": 5,
                "category": "Furniture",
                "description": "Ergonomic office chair with lumbar support",
                "price": 299.99,
                "supplier": "Office Furniture Co.",
                "status": "low-stock",
                "dateAdded": "2024-01-10T14:20:00.000Z",
                "lastUpdated": "2024-01-10T14:20:00.000Z",
            },
            {
                "id": "3",
                "name": "Wireless Mouse",
                "quantity": 0,
                "category": "Electronics",
                "description": "Bluetooth wireless mouse",
                "price": 49.99,
                "supplier": "Tech Accessories Ltd.",
                "status": "ordered",
                "dateAdded": "2024-01-05T09:15:00.000Z",
                "lastUpdated": "2024-01-05T09:15:00.000Z",
            },
        ]
    )


SAMPLE_ITEMS: Sequence[InventoryItem] = tuple(_sample_items())


class InventoryStore:
    """In-memory inventory mirrored to a single snapshot slot.

    When the slot cannot be used the store keeps working in memory for the
    rest of the session; ``persistent`` reports which mode is active.
    """

    def __init__(
        self,
        slot: Optional[SnapshotSlot] = None,
        *,
        id_factory: Callable[[], str] = generate_id,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._slot = slot
        self._id_factory = id_factory
        self._clock = clock
        self._lock = RLock()
        self._items: Dict[str, InventoryItem] = {}
        self._issued_ids: set[str] = set()
        with self._lock:
            self._load_locked()

    @property
    def persistent(self) -> bool:
        return self._slot is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list(self) -> List[InventoryItem]:
        with self._lock:
            return list(self._items.values())

    def get(self, item_id: str) -> Optional[InventoryItem]:
        with self._lock:
            return self._items.get(item_id)

    def add(self, form: InventoryForm) -> InventoryItem:
        with self._lock:
            item = create_item(form, id_factory=self._next_id_locked, clock=self._clock)
            self._items[item.id] = item
            self._persist_locked()
            return item

    def update(self, item_id: str, form: InventoryForm | InventoryUpdate) -> InventoryItem:
        with self._lock:
            existing = self._items.get(item_id)
            if existing is None:
                raise NotFound(item_id)
            item = apply_update(existing, form, clock=self._clock)
            self._items[item_id] = item
            self._persist_locked()
            return item

    def remove(self, item_id: str) -> InventoryItem:
        with self._lock:
            if item_id not in self._items:
                raise NotFound(item_id)
            item = self._items.pop(item_id)
            self._persist_locked()
            return item

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _next_id_locked(self) -> str:
        candidate = self._id_factory()
        while candidate in self._issued_ids:
            candidate = self._id_factory()
        self._issued_ids.add(candidate)
        return candidate

    def _replace_locked(self, items: Iterable[InventoryItem]) -> None:
        self._items = {item.id: item for item in items}
        self._issued_ids.update(self._items)

    def _load_locked(self) -> None:
        if self._slot is None:
            self._replace_locked(SAMPLE_ITEMS)
            return
        try:
            raw = self._slot.read()
        except PersistenceFailure as exc:
            logger.error("Error loading inventory, continuing in memory: %s", exc)
            self._degrade_locked()
            return
        if raw is None:
            logger.info("No saved inventory in slot '%s', seeding sample data", self._slot.key)
            self._replace_locked(SAMPLE_ITEMS)
            self._persist_locked()
            return
        try:
            items = _SNAPSHOT.validate_json(raw)
        except ValidationError as exc:
            logger.error(
                "Corrupt inventory snapshot in slot '%s', continuing in memory: %s",
                self._slot.key,
                exc,
            )
            self._degrade_locked()
            return
        self._replace_locked(items)

    def _degrade_locked(self) -> None:
        self._slot = None
        self._replace_locked(SAMPLE_ITEMS)

    def _persist_locked(self) -> None:
        if self._slot is None:
            return
        payload = _SNAPSHOT.dump_json(list(self._items.values()), by_alias=True)
        try:
            self._slot.write(payload.decode("utf-8"))
        except PersistenceFailure as exc:
            logger.error("Error saving inventory, continuing in memory: %s", exc)
            self._slot = None


def filter_items(
    items: Iterable[InventoryItem],
    search_term: str = "",
    category: str = "",
    status: str = "",
) -> List[InventoryItem]:
    """Return the records matching every non-empty filter, in their original order."""

    needle = search_term.lower()
    matches: List[InventoryItem] = []
    for item in items:
        if needle and not any(
            needle in field.lower()
            for field in (item.name, item.description, item.supplier, item.category)
        ):
            continue
        if category and item.category != category:
            continue
        if status and item.status != status:
            continue
        matches.append(item)
    return matches


def list_categories(items: Iterable[InventoryItem]) -> List[str]:
    return sorted({item.category for item in items})


def _cents(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _value_of(item: InventoryItem) -> Decimal:
    return Decimal(str(item.price)) * item.quantity


def summarize(items: Iterable[InventoryItem]) -> InventorySummary:
    total_items = 0
    total_value = Decimal("0")
    in_stock = 0
    low_stock = 0
    for item in items:
        total_items += item.quantity
        total_value += _value_of(item)
        if item.status == "in-stock":
            in_stock += 1
        elif item.status == "low-stock":
            low_stock += 1
    return InventorySummary(
        total_items=total_items,
        total_value=_cents(total_value),
        in_stock=in_stock,
        low_stock=low_stock,
    )


def category_breakdown(items: Iterable[InventoryItem]) -> List[CategoryBreakdown]:
    """Aggregate value and quantity per category, most valuable first."""

    totals: Dict[str, Dict[str, Decimal | int]] = {}
    for item in items:
        entry = totals.setdefault(
            item.category, {"value": Decimal("0"), "quantity": 0, "count": 0}
        )
        entry["value"] += _value_of(item)
        entry["quantity"] += item.quantity
        entry["count"] += 1
    rows = [
        CategoryBreakdown(
            category=category,
            total_value=_cents(Decimal(entry["value"])),
            total_quantity=int(entry["quantity"]),
            item_count=int(entry["count"]),
        )
        for category, entry in totals.items()
    ]
    rows.sort(key=lambda row: (-row.total_value, row.category))
    return rows


__all__ = [
    "InventoryStore",
    "LOW_STOCK_LIMIT",
    "SAMPLE_ITEMS",
    "apply_update",
    "category_breakdown",
    "classify_status",
    "create_item",
    "filter_items",
    "generate_id",
    "list_categories",
    "summarize",
]
