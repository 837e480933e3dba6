from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Dict, List

import pytest

from conftest import FakeGenerator
from smart_inventory.dispatcher import (
    SERVER_ERROR_MESSAGE,
    UNAUTHORIZED_MESSAGE,
    TaskDispatcher,
    map_generation_error,
)
from smart_inventory.errors import InvalidTask, MissingField, ServerError, Unauthorized, ValidationError
from smart_inventory.inventory import SAMPLE_ITEMS
from smart_inventory.llm import OpenAIChatClient, TextGenerationError
from smart_inventory.prompts import Prompt
from smart_inventory.schemas import ChatTask, ForecastTask
from smart_inventory.tasks import parse_task_request


def _inventory() -> List[Dict[str, Any]]:
    return [item.model_dump(mode="json", by_alias=True) for item in SAMPLE_ITEMS]


async def _collect(result) -> str:
    return "".join([chunk async for chunk in result.stream])


def test_unknown_task_is_rejected() -> None:
    with pytest.raises(InvalidTask):
        parse_task_request({"task": "bogus"})
    with pytest.raises(InvalidTask):
        parse_task_request({"itemInfo": {"name": "Desk"}})
    with pytest.raises(InvalidTask):
        parse_task_request(["chat"])


@pytest.mark.parametrize(
    ("body", "field", "message"),
    [
        ({"task": "forecast-restock"}, "itemInfo", "Missing itemInfo for forecast task"),
        ({"task": "chat", "inventory": []}, "messages", "Missing messages for chat task"),
        (
            {"task": "chat", "messages": []},
            "inventory",
            "Missing inventory data for chat task",
        ),
        ({"task": "audit-inventory"}, "inventory", "Missing inventory data for audit task"),
        (
            {"task": "suggest-category", "itemInfo": None},
            "itemInfo",
            "Missing itemInfo for suggest-category task",
        ),
    ],
)
def test_missing_fields_are_named(body: Dict[str, Any], field: str, message: str) -> None:
    with pytest.raises(MissingField) as excinfo:
        parse_task_request(body)
    assert excinfo.value.field == field
    assert str(excinfo.value) == message
    assert excinfo.value.status_code == 400


def test_malformed_payload_is_a_validation_error() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_task_request({"task": "generate-description", "itemInfo": {"category": "Other"}})
    assert "generate-description" in str(excinfo.value)


def test_parse_builds_tagged_variants() -> None:
    chat = parse_task_request(
        {
            "task": "chat",
            "messages": [{"role": "user", "content": "How many laptops?"}],
            "inventory": _inventory(),
        }
    )
    assert isinstance(chat, ChatTask)
    assert chat.inventory[0].name == "Laptop Computer"

    forecast = parse_task_request(
        {
            "task": "forecast-restock",
            "itemInfo": {
                "name": "Office Chair",
                "quantity": 5,
                "salesHistory": [{"date": "2024-01-01", "quantitySold": 2}],
            },
        }
    )
    assert isinstance(forecast, ForecastTask)
    assert forecast.item_info.sales_history[0].quantity_sold == 2


async def test_invalid_requests_never_reach_the_model() -> None:
    generator = FakeGenerator()
    dispatcher = TaskDispatcher(generator)

    with pytest.raises(InvalidTask):
        await dispatcher.handle({"task": "bogus"})
    with pytest.raises(MissingField):
        await dispatcher.handle({"task": "forecast-restock"})

    assert generator.calls == []


@pytest.mark.parametrize(
    ("body", "expected_system"),
    [
        ({"task": "audit-inventory"}, "inventory analyst"),
        (
            {"task": "forecast-restock", "itemInfo": {"name": "Office Chair", "quantity": 5}},
            "supply chain analyst",
        ),
        (
            {"task": "generate-description", "itemInfo": {"name": "Desk", "category": "Furniture"}},
            "copywriter",
        ),
        ({"task": "suggest-category", "itemInfo": {"name": "Desk"}}, "categorization expert"),
    ],
)
async def test_single_shot_tasks(body: Dict[str, Any], expected_system: str) -> None:
    if body["task"] == "audit-inventory":
        body = {**body, "inventory": _inventory()}
    generator = FakeGenerator(text="done")
    result = await TaskDispatcher(generator).handle(body)

    assert not result.streaming
    assert result.text == "done"
    assert len(generator.calls) == 1
    kind, prompt = generator.calls[0]
    assert kind == "generate"
    assert expected_system in prompt.system


async def test_prompts_carry_the_payload() -> None:
    generator = FakeGenerator()
    dispatcher = TaskDispatcher(generator)

    await dispatcher.handle(
        {"task": "generate-description", "itemInfo": {"name": "Desk", "category": "Furniture"}}
    )
    await dispatcher.handle({"task": "suggest-category", "itemInfo": {"name": "Desk"}})

    description_prompt = generator.calls[0][1]
    assert description_prompt.messages[0].content == (
        'Generate a description for the item: Name: "Desk", Category: "Furniture".'
    )
    category_prompt = generator.calls[1][1]
    assert "Office Supplies" in category_prompt.system


async def test_chat_streams_chunks_with_inventory_context() -> None:
    generator = FakeGenerator(chunks=["There are ", "25 laptops."])
    result = await TaskDispatcher(generator).handle(
        {
            "task": "chat",
            "messages": [{"role": "user", "content": "How many laptops are in stock?"}],
            "inventory": _inventory(),
        }
    )

    assert result.streaming
    assert await _collect(result) == "There are 25 laptops."
    kind, prompt = generator.calls[0]
    assert kind == "stream"
    assert "Laptop Computer" in prompt.system
    assert prompt.messages[0].content == "How many laptops are in stock?"


@pytest.mark.parametrize(
    "error",
    [
        TextGenerationError("Incorrect API key provided: sk-***"),
        TextGenerationError("Provider returned HTTP 401: nope", status_code=401),
        TextGenerationError("Missing API key for the language model provider"),
    ],
)
async def test_credential_failures_map_to_unauthorized(error: Exception) -> None:
    dispatcher = TaskDispatcher(FakeGenerator(error=error))
    with pytest.raises(Unauthorized) as excinfo:
        await dispatcher.handle({"task": "suggest-category", "itemInfo": {"name": "Desk"}})
    assert str(excinfo.value) == UNAUTHORIZED_MESSAGE


async def test_other_failures_map_to_generic_server_error() -> None:
    generator = FakeGenerator(error=TextGenerationError("rate limited: internal detail"))
    dispatcher = TaskDispatcher(generator)

    with pytest.raises(ServerError) as excinfo:
        await dispatcher.handle({"task": "audit-inventory", "inventory": _inventory()})
    assert str(excinfo.value) == SERVER_ERROR_MESSAGE
    assert "internal detail" not in str(excinfo.value)
    assert len(generator.calls) == 1


async def test_stream_failure_before_first_chunk_is_mapped() -> None:
    dispatcher = TaskDispatcher(FakeGenerator(error=TextGenerationError("invalid api_key")))
    with pytest.raises(Unauthorized):
        await dispatcher.handle(
            {"task": "chat", "messages": [], "inventory": _inventory()}
        )


async def test_missing_credential_fails_every_call_as_unauthorized() -> None:
    client = OpenAIChatClient(api_key=None, model="gpt-4o-mini")
    dispatcher = TaskDispatcher(client)

    with pytest.raises(Unauthorized):
        await dispatcher.handle({"task": "suggest-category", "itemInfo": {"name": "Desk"}})
    with pytest.raises(Unauthorized):
        await dispatcher.handle({"task": "chat", "messages": [], "inventory": []})


def test_map_generation_error_defaults_to_server_error() -> None:
    assert isinstance(map_generation_error(RuntimeError("boom")), ServerError)


class BrokenStream(FakeGenerator):
    async def stream_text(self, prompt: Prompt) -> AsyncIterator[str]:
        self.calls.append(("stream", prompt))
        yield "Partial answer"
        raise RuntimeError("connection reset")


async def test_stream_failure_after_first_chunk_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="smart_inventory.dispatcher")
    result = await TaskDispatcher(BrokenStream()).handle(
        {"task": "chat", "messages": [], "inventory": _inventory()}
    )

    assert await _collect(result) == "Partial answer"
    assert any("streaming chat" in record.getMessage() for record in caplog.records)
