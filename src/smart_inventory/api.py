"""FastAPI router configuration."""
from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock
from typing import List, Optional, Sequence

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse

from . import auth, schemas
from .config import Settings, configure_logging, get_settings
from .database import create_engine, create_session_factory, init_database
from .dispatcher import TaskDispatcher
from .errors import ExternalServiceError, NotFound, PermissionDenied, ValidationError
from .export import export_csv, export_filename, resolve_columns
from .inventory import InventoryStore, category_breakdown, filter_items, list_categories, summarize
from .llm import OpenAIChatClient, TextGenerator
from .storage import SnapshotSlot

logger = logging.getLogger(__name__)

router = APIRouter()


class Services:
    """Lazily built store and dispatcher shared by every request of an app."""

    def __init__(
        self,
        settings: Settings,
        *,
        store: Optional[InventoryStore] = None,
        generator: Optional[TextGenerator] = None,
    ) -> None:
        self.settings = settings
        self._store = store
        self._generator = generator
        self._dispatcher: Optional[TaskDispatcher] = None
        self._lock = Lock()

    @property
    def store(self) -> InventoryStore:
        with self._lock:
            if self._store is None:
                engine = create_engine(self.settings)
                init_database(engine)
                slot = SnapshotSlot(create_session_factory(engine), self.settings.storage_key)
                self._store = InventoryStore(slot)
            return self._store

    @property
    def generator(self) -> TextGenerator:
        with self._lock:
            if self._generator is None:
                self._generator = OpenAIChatClient.from_settings(self.settings)
            return self._generator

    @property
    def dispatcher(self) -> TaskDispatcher:
        generator = self.generator
        with self._lock:
            if self._dispatcher is None:
                self._dispatcher = TaskDispatcher(generator)
            return self._dispatcher


def provide_services(request: Request) -> Services:
    return request.app.state.services


def provide_settings() -> Settings:
    """Dependency returning the active :class:`Settings` instance."""

    return get_settings()


def provide_store(services: Services = Depends(provide_services)) -> InventoryStore:
    return services.store


def current_user(x_user_id: Optional[str] = Header(default=None)) -> schemas.User:
    user = auth.get_user(x_user_id or auth.DEFAULT_USER_ID)
    if user is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown user")
    return user


def requires(permission: str) -> Callable[..., schemas.User]:
    def dependency(user: schemas.User = Depends(current_user)) -> schemas.User:
        try:
            auth.require_permission(user, permission)
        except PermissionDenied as exc:
            logger.info("%s", exc)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
        return user

    return dependency


def _present(items: Sequence[schemas.InventoryItem], user: schemas.User) -> List[schemas.InventoryItemOut]:
    show_price = auth.resolve_permissions(user.role).can_view_price
    return [schemas.InventoryItemOut.from_item(item, show_price=show_price) for item in items]


@router.get("/health", response_model=schemas.HealthStatus, tags=["system"])
def health_check(
    settings: Settings = Depends(provide_settings),
    services: Services = Depends(provide_services),
) -> schemas.HealthStatus:
    return schemas.HealthStatus(
        environment=settings.environment,
        persistent_storage=services.store.persistent,
        ai_configured=bool(settings.openai_api_key),
    )


@router.get("/api/users", response_model=list[schemas.User], tags=["users"])
def list_users() -> Sequence[schemas.User]:
    return auth.USERS


@router.get("/api/users/{user_id}/permissions", response_model=schemas.Permissions, tags=["users"])
def get_permissions(user_id: str) -> schemas.Permissions:
    user = auth.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User '{user_id}' not found")
    return auth.resolve_permissions(user.role)


@router.get("/api/items", response_model=list[schemas.InventoryItemOut], tags=["inventory"])
def list_items(
    search: str = "",
    category: str = "",
    item_status: str = Query("", alias="status"),
    store: InventoryStore = Depends(provide_store),
    user: schemas.User = Depends(current_user),
) -> Sequence[schemas.InventoryItemOut]:
    return _present(filter_items(store.list(), search, category, item_status), user)


@router.post(
    "/api/items",
    response_model=schemas.InventoryItemOut,
    status_code=status.HTTP_201_CREATED,
    tags=["inventory"],
)
def create_item(
    payload: schemas.InventoryForm,
    store: InventoryStore = Depends(provide_store),
    user: schemas.User = Depends(requires("can_create")),
) -> schemas.InventoryItemOut:
    item = store.add(payload)
    return _present([item], user)[0]


@router.get("/api/items/{item_id}", response_model=schemas.InventoryItemOut, tags=["inventory"])
def get_item(
    item_id: str,
    store: InventoryStore = Depends(provide_store),
    user: schemas.User = Depends(current_user),
) -> schemas.InventoryItemOut:
    item = store.get(item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(NotFound(item_id)))
    return _present([item], user)[0]


@router.put("/api/items/{item_id}", response_model=schemas.InventoryItemOut, tags=["inventory"])
def update_item(
    item_id: str,
    payload: schemas.InventoryUpdate,
    store: InventoryStore = Depends(provide_store),
    user: schemas.User = Depends(requires("can_edit")),
) -> schemas.InventoryItemOut:
    try:
        item = store.update(item_id, payload)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _present([item], user)[0]


@router.delete(
    "/api/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(requires("can_delete"))],
    tags=["inventory"],
)
def delete_item(item_id: str, store: InventoryStore = Depends(provide_store)) -> None:
    try:
        store.remove(item_id)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/api/categories", response_model=list[str], tags=["inventory"])
def get_categories(store: InventoryStore = Depends(provide_store)) -> List[str]:
    return list_categories(store.list())


@router.get(
    "/api/stats",
    response_model=schemas.InventorySummary,
    dependencies=[Depends(requires("can_view_price"))],
    tags=["inventory"],
)
def get_stats(store: InventoryStore = Depends(provide_store)) -> schemas.InventorySummary:
    return summarize(store.list())


@router.get(
    "/api/stats/categories",
    response_model=list[schemas.CategoryBreakdown],
    dependencies=[Depends(requires("can_view_price"))],
    tags=["inventory"],
)
def get_category_stats(store: InventoryStore = Depends(provide_store)) -> List[schemas.CategoryBreakdown]:
    return category_breakdown(store.list())


@router.get("/api/export", dependencies=[Depends(requires("can_export"))], tags=["inventory"])
def export_items(
    columns: Optional[List[str]] = Query(default=None),
    store: InventoryStore = Depends(provide_store),
) -> Response:
    try:
        selected = resolve_columns(columns)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return Response(
        content=export_csv(store.list(), selected),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post(
    "/api/audit",
    response_class=PlainTextResponse,
    dependencies=[Depends(requires("can_run_audit"))],
    tags=["ai"],
)
async def run_audit(
    store: InventoryStore = Depends(provide_store),
    services: Services = Depends(provide_services),
) -> Response:
    body = {
        "task": "audit-inventory",
        "inventory": [item.model_dump(mode="json", by_alias=True) for item in store.list()],
    }
    return await _dispatch(services.dispatcher, body)


@router.post("/api/ai", response_class=PlainTextResponse, tags=["ai"])
async def ai_task(request: Request, services: Services = Depends(provide_services)) -> Response:
    try:
        body = await request.json()
    except ValueError:
        # invalid JSON or a body that is not UTF-8
        return PlainTextResponse("Malformed JSON body", status_code=status.HTTP_400_BAD_REQUEST)
    return await _dispatch(services.dispatcher, body)


async def _dispatch(dispatcher: TaskDispatcher, body: object) -> Response:
    try:
        result = await dispatcher.handle(body)
    except (ValidationError, ExternalServiceError) as exc:
        return PlainTextResponse(str(exc), status_code=exc.status_code)
    if result.stream is not None:
        return StreamingResponse(result.stream, media_type="text/plain; charset=utf-8")
    return PlainTextResponse(result.text or "")


def create_app(
    settings: Settings | None = None,
    *,
    store: InventoryStore | None = None,
    generator: TextGenerator | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title=settings.app_name)
    app.dependency_overrides[provide_settings] = lambda: settings
    app.state.services = Services(settings, store=store, generator=generator)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.access_control_allow_origin.split(",")],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


__all__ = ["app", "create_app"]
