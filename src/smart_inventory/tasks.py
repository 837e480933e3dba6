"""Validation of inbound AI task requests."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Tuple

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import InvalidTask, MissingField, ValidationError
from .schemas import AITask

# task tag -> (payload key, human readable name of what is missing)
REQUIRED_FIELDS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "chat": (("messages", "messages"), ("inventory", "inventory data")),
    "audit-inventory": (("inventory", "inventory data"),),
    "forecast-restock": (("itemInfo", "itemInfo"),),
    "generate-description": (("itemInfo", "itemInfo"),),
    "suggest-category": (("itemInfo", "itemInfo"),),
}

TASK_LABELS = {
    "chat": "chat",
    "audit-inventory": "audit",
    "forecast-restock": "forecast",
    "generate-description": "generate-description",
    "suggest-category": "suggest-category",
}

_TASK_ADAPTER: TypeAdapter[AITask] = TypeAdapter(AITask)


def parse_task_request(body: Any) -> AITask:
    """Turn a raw JSON body into one of the task variants.

    The tag is checked first, then the presence of each required payload
    field, then the payload shapes. Nothing here talks to the model.
    """

    if not isinstance(body, Mapping):
        raise InvalidTask(None)
    task = body.get("task")
    if not isinstance(task, str) or task not in REQUIRED_FIELDS:
        raise InvalidTask(task)

    label = TASK_LABELS[task]
    for key, name in REQUIRED_FIELDS[task]:
        if body.get(key) is None:
            raise MissingField(task, key, f"Missing {name} for {label} task")

    payload = {key: body[key] for key, _ in REQUIRED_FIELDS[task]}
    payload["task"] = task
    try:
        return _TASK_ADAPTER.validate_python(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"][1:])
        raise ValidationError(
            f"Malformed payload for {label} task: {location} {first['msg']}".strip()
        ) from exc


__all__ = ["REQUIRED_FIELDS", "TASK_LABELS", "parse_task_request"]
