from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import httpx
import pytest
from fastapi import FastAPI

from smart_inventory.api import create_app
from smart_inventory.config import Settings
from smart_inventory.database import create_engine, create_session_factory, init_database
from smart_inventory.inventory import InventoryStore
from smart_inventory.prompts import Prompt
from smart_inventory.storage import SnapshotSlot


class FakeGenerator:
    """Records every prompt and answers with canned text."""

    def __init__(
        self,
        text: str = "Generated text",
        chunks: Sequence[str] = ("Hello", ", ", "world"),
        error: Optional[Exception] = None,
    ) -> None:
        self.text = text
        self.chunks = tuple(chunks)
        self.error = error
        self.calls: List[Tuple[str, Prompt]] = []

    async def generate_text(self, prompt: Prompt) -> str:
        self.calls.append(("generate", prompt))
        if self.error is not None:
            raise self.error
        return self.text

    async def stream_text(self, prompt: Prompt) -> AsyncIterator[str]:
        self.calls.append(("stream", prompt))
        if self.error is not None:
            raise self.error
        for chunk in self.chunks:
            yield chunk


class SteppingClock:
    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        environment="test",
        access_control_allow_origin="*",
        app_name="Test Inventory Service",
        openai_api_key=None,
    )


@pytest.fixture()
def slot(test_settings: Settings) -> SnapshotSlot:
    engine = create_engine(test_settings)
    init_database(engine)
    yield SnapshotSlot(create_session_factory(engine), test_settings.storage_key)
    engine.dispose()


@pytest.fixture()
def store(slot: SnapshotSlot) -> InventoryStore:
    return InventoryStore(slot)


@pytest.fixture()
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def app(test_settings: Settings, store: InventoryStore, generator: FakeGenerator) -> FastAPI:
    return create_app(test_settings, store=store, generator=generator)


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture()
def clock() -> SteppingClock:
    return SteppingClock(datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc))
