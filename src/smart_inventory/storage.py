"""Named key-value slots backed by the SQL database."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .database import session_scope
from .errors import PersistenceFailure
from .models import StorageSlot

logger = logging.getLogger(__name__)


class SnapshotSlot:
    """A single named entry holding a serialized snapshot.

    Each write replaces the whole value in one transaction, so readers only
    ever observe a complete snapshot.
    """

    def __init__(self, session_factory: sessionmaker[Session], key: str) -> None:
        self._session_factory = session_factory
        self.key = key

    def read(self) -> Optional[str]:
        try:
            with session_scope(self._session_factory) as session:
                stmt = select(StorageSlot.value).where(StorageSlot.key == self.key)
                return session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Unable to read slot '{self.key}': {exc}") from exc

    def write(self, value: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                slot = session.get(StorageSlot, self.key)
                if slot is None:
                    session.add(StorageSlot(key=self.key, value=value))
                else:
                    slot.value = value
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Unable to write slot '{self.key}': {exc}") from exc
        logger.debug("Wrote %d bytes to slot '%s'", len(value), self.key)

    def clear(self) -> None:
        try:
            with session_scope(self._session_factory) as session:
                slot = session.get(StorageSlot, self.key)
                if slot is not None:
                    session.delete(slot)
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Unable to clear slot '{self.key}': {exc}") from exc


__all__ = ["SnapshotSlot"]
