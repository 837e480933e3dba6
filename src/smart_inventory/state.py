"""Application state container with reducer-style transitions.

The current user, the open modal and the active filters live in one frozen
:class:`AppState`. Every change goes through :func:`reduce`, which returns a
new state and never touches the inventory store.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Literal, Optional, Union

from .auth import DEFAULT_USER_ID, get_user, resolve_permissions
from .schemas import Permissions, User

Modal = Literal["add", "edit", "delete", "audit", "export"]

PERMISSION_DENIED_NOTICE = "Permission Denied"

_MODAL_PERMISSIONS = {
    "add": "can_create",
    "edit": "can_edit",
    "delete": "can_delete",
    "audit": "can_run_audit",
    "export": "can_export",
}


@dataclass(frozen=True)
class AppState:
    current_user: User
    open_modals: FrozenSet[str] = field(default_factory=frozenset)
    search_term: str = ""
    category: str = ""
    status: str = ""
    editing_id: Optional[str] = None
    deleting_id: Optional[str] = None
    notice: Optional[str] = None

    @property
    def permissions(self) -> Permissions:
        return resolve_permissions(self.current_user.role)

    def is_open(self, modal: Modal) -> bool:
        return modal in self.open_modals


@dataclass(frozen=True)
class SwitchUser:
    user_id: str


@dataclass(frozen=True)
class OpenModal:
    modal: Modal


@dataclass(frozen=True)
class CloseModal:
    modal: Modal


@dataclass(frozen=True)
class SetFilters:
    search_term: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class BeginEdit:
    item_id: str


@dataclass(frozen=True)
class BeginDelete:
    item_id: str


@dataclass(frozen=True)
class ClearSelection:
    pass


Action = Union[SwitchUser, OpenModal, CloseModal, SetFilters, BeginEdit, BeginDelete, ClearSelection]


def initial_state(user_id: str = DEFAULT_USER_ID) -> AppState:
    user = get_user(user_id)
    if user is None:
        raise ValueError(f"Unknown user '{user_id}'")
    return AppState(current_user=user)


def _allowed(state: AppState, modal: str) -> bool:
    return bool(getattr(state.permissions, _MODAL_PERMISSIONS[modal]))


def _denied(state: AppState) -> AppState:
    return replace(state, notice=PERMISSION_DENIED_NOTICE)


def reduce(state: AppState, action: Action) -> AppState:
    if isinstance(action, SwitchUser):
        user = get_user(action.user_id)
        if user is None:
            return state
        return replace(state, current_user=user, notice=None)

    if isinstance(action, OpenModal):
        if not _allowed(state, action.modal):
            return _denied(state)
        return replace(state, open_modals=state.open_modals | {action.modal}, notice=None)

    if isinstance(action, CloseModal):
        cleared = {
            "edit": {"editing_id": None},
            "delete": {"deleting_id": None},
        }.get(action.modal, {})
        return replace(state, open_modals=state.open_modals - {action.modal}, **cleared)

    if isinstance(action, SetFilters):
        return replace(
            state,
            search_term=state.search_term if action.search_term is None else action.search_term,
            category=state.category if action.category is None else action.category,
            status=state.status if action.status is None else action.status,
        )

    if isinstance(action, BeginEdit):
        if not _allowed(state, "edit"):
            return _denied(state)
        return replace(
            state,
            editing_id=action.item_id,
            open_modals=state.open_modals | {"edit"},
            notice=None,
        )

    if isinstance(action, BeginDelete):
        if not _allowed(state, "delete"):
            return _denied(state)
        return replace(
            state,
            deleting_id=action.item_id,
            open_modals=state.open_modals | {"delete"},
            notice=None,
        )

    if isinstance(action, ClearSelection):
        return replace(
            state,
            editing_id=None,
            deleting_id=None,
            open_modals=state.open_modals - {"edit", "delete"},
            notice=None,
        )

    raise TypeError(f"Unsupported action {action!r}")


__all__ = [
    "Action",
    "AppState",
    "BeginDelete",
    "BeginEdit",
    "ClearSelection",
    "CloseModal",
    "OpenModal",
    "PERMISSION_DENIED_NOTICE",
    "SetFilters",
    "SwitchUser",
    "initial_state",
    "reduce",
]
