"""Simulated users and the role to permission mapping."""
from __future__ import annotations

from typing import Dict, List, Optional

from .errors import PermissionDenied
from .schemas import Permissions, Role, User

USERS: List[User] = [
    User(id="1", name="Alice (Admin)", role="admin"),
    User(id="2", name="Bob (Manager)", role="manager"),
    User(id="3", name="Charlie (Staff)", role="staff"),
]

DEFAULT_USER_ID = "1"

_FULL_ACCESS = Permissions(
    can_create=True,
    can_edit=True,
    can_delete=True,
    can_view_price=True,
    can_run_audit=True,
    can_export=True,
)

PERMISSIONS_MAP: Dict[Role, Permissions] = {
    "admin": _FULL_ACCESS,
    "manager": _FULL_ACCESS,
    "staff": Permissions(
        can_create=False,
        can_edit=True,
        can_delete=False,
        can_view_price=False,
        can_run_audit=False,
        can_export=False,
    ),
}


def resolve_permissions(role: Role) -> Permissions:
    return PERMISSIONS_MAP[role]


def get_user(user_id: str) -> Optional[User]:
    for user in USERS:
        if user.id == user_id:
            return user
    return None


def require_permission(user: User, permission: str) -> Permissions:
    """Raise :class:`PermissionDenied` unless ``user``'s role grants ``permission``.

    ``permission`` is a :class:`Permissions` field name such as ``can_delete``.
    This is advisory gating for the action handlers, not a security boundary.
    """

    if permission not in Permissions.model_fields:
        raise ValueError(f"Unknown permission '{permission}'")
    permissions = resolve_permissions(user.role)
    if not getattr(permissions, permission):
        raise PermissionDenied(permission, role=user.role)
    return permissions


__all__ = [
    "DEFAULT_USER_ID",
    "PERMISSIONS_MAP",
    "USERS",
    "get_user",
    "require_permission",
    "resolve_permissions",
]
