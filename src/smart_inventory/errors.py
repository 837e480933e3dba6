"""Exception types shared by the store, permission and AI layers."""
from __future__ import annotations


class InventoryError(Exception):
    """Base class for every error raised by this package."""

    status_code = 500


class PermissionDenied(InventoryError):
    status_code = 403

    def __init__(self, permission: str, role: str | None = None) -> None:
        self.permission = permission
        self.role = role
        who = f"Role '{role}'" if role else "Current user"
        super().__init__(f"Permission denied: {who} lacks {permission}")


class NotFound(InventoryError, KeyError):
    status_code = 404

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Item '{item_id}' not found")

    def __str__(self) -> str:
        return str(self.args[0])


class ValidationError(InventoryError, ValueError):
    status_code = 400


class InvalidTask(ValidationError):
    def __init__(self, task: object) -> None:
        self.task = task
        super().__init__("Invalid task")


class MissingField(ValidationError):
    def __init__(self, task: str, field: str, message: str) -> None:
        self.task = task
        self.field = field
        super().__init__(message)


class PersistenceFailure(InventoryError):
    """Local snapshot storage could not be read or written."""


class ExternalServiceError(InventoryError):
    """The text-generation provider failed."""


class Unauthorized(ExternalServiceError):
    status_code = 401


class ServerError(ExternalServiceError):
    status_code = 500


__all__ = [
    "ExternalServiceError",
    "InvalidTask",
    "InventoryError",
    "MissingField",
    "NotFound",
    "PermissionDenied",
    "PersistenceFailure",
    "ServerError",
    "Unauthorized",
    "ValidationError",
]
