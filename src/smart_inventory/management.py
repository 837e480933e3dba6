"""Utility helpers for administrative tasks."""
from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from typing import Optional

from sqlalchemy import Engine

from .config import Settings, configure_logging, get_settings
from .database import create_engine, create_session_factory, init_database
from .inventory import InventoryStore
from .storage import SnapshotSlot

logger = logging.getLogger(__name__)


def reset_inventory(settings: Settings, db_engine: Optional[Engine] = None) -> InventoryStore:
    """Drop the saved snapshot and reseed the sample records."""

    engine = db_engine or create_engine(settings)
    init_database(engine)
    slot = SnapshotSlot(create_session_factory(engine), settings.storage_key)
    slot.clear()
    store = InventoryStore(slot)
    logger.info("Inventory slot '%s' reset with %d records", slot.key, len(store.list()))
    return store


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI wrapper executed from :mod:`python -m`."""

    parser = argparse.ArgumentParser(prog="smart-inventory-admin")
    parser.add_argument("command", choices=["init-db", "reset"])
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)
    if args.command == "init-db":
        init_database(create_engine(settings))
        logger.info("Database tables created")
    else:
        reset_inventory(settings)


if __name__ == "__main__":
    main()
