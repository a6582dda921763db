"""FastAPI application exposing the admin users resource."""
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Dict, List, Optional, Set

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from starlette.datastructures import UploadFile

from .database import Database, RecordInvalid, RecordNotFound, resolve_database_path
from .models import BOOLEAN_FIELDS, USER_FIELDS, Avatar, User


logger = logging.getLogger("useradmin.api")

_TRUE_VALUES = {"1", "true", "yes", "on"}


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_name: str
    email: Optional[str]
    admin: bool
    guest: bool
    user_profile: Optional[str]
    user_avatar_url: Optional[str]
    created_at: datetime
    updated_at: datetime


class UserEnvelope(BaseModel):
    user: UserResponse
    message: Optional[str] = None


class UserListResponse(BaseModel):
    users: List[UserResponse]


class MessageResponse(BaseModel):
    message: str


class ValidationErrorResponse(BaseModel):
    error_messages: List[str]


def _present_user(user: User, *, avatar_ids: Set[int], url_prefix: str) -> UserResponse:
    response = UserResponse.model_validate(user)
    if user.id in avatar_ids:
        avatar_url = f"{url_prefix}/admin/users/{user.id}/avatar"
        response = response.model_copy(update={"user_avatar_url": avatar_url})
    return response


def _validation_error(exc: RecordInvalid) -> JSONResponse:
    body = ValidationErrorResponse(error_messages=exc.messages)
    return JSONResponse(status_code=422, content=body.model_dump())


def _not_found(user_id: int) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")


async def _read_user_form(request: Request) -> Dict[str, object]:
    """Collect the submitted user fields, keeping only those present."""

    form = await request.form()
    attributes: Dict[str, object] = {}
    for name in USER_FIELDS:
        if name not in form:
            continue
        value = form[name]
        if isinstance(value, UploadFile):
            content = await value.read()
            attributes[name] = Avatar(
                filename=value.filename or "avatar",
                content_type=value.content_type or "application/octet-stream",
                content=content,
            )
        elif name in BOOLEAN_FIELDS:
            attributes[name] = str(value).strip().lower() in _TRUE_VALUES
        else:
            attributes[name] = str(value)
    return attributes


def create_router(database: Database, *, url_prefix: str = "") -> APIRouter:
    """Build the users routes; ``url_prefix`` is where the router is served from."""

    router = APIRouter(prefix="/admin/users")
    url_prefix = url_prefix.rstrip("/")

    def envelope(user: User, message: Optional[str] = None) -> UserEnvelope:
        presented = _present_user(user, avatar_ids=database.avatar_user_ids(), url_prefix=url_prefix)
        return UserEnvelope(user=presented, message=message)

    @router.get("", response_model=UserListResponse)
    async def list_users() -> UserListResponse:
        users = database.list_users()
        avatar_ids = database.avatar_user_ids()
        return UserListResponse(
            users=[_present_user(user, avatar_ids=avatar_ids, url_prefix=url_prefix) for user in users]
        )

    @router.post(
        "",
        status_code=status.HTTP_201_CREATED,
        response_model=UserEnvelope,
        responses={422: {"model": ValidationErrorResponse}},
    )
    async def create_user(request: Request):
        attributes = await _read_user_form(request)
        try:
            user = database.create_user(attributes)
        except RecordInvalid as exc:
            logger.info("Rejected user creation: %s", exc)
            return _validation_error(exc)
        logger.info("Created user %s (%s)", user.id, user.user_name)
        return envelope(user, f"アカウント「{user.user_name}」を登録しました．")

    @router.get("/{user_id}", response_model=UserEnvelope)
    async def show_user(user_id: int) -> UserEnvelope:
        user = database.get_user(user_id)
        if user is None:
            raise _not_found(user_id)
        return envelope(user)

    @router.put(
        "/{user_id}",
        response_model=UserEnvelope,
        responses={422: {"model": ValidationErrorResponse}},
    )
    async def update_user(user_id: int, request: Request):
        attributes = await _read_user_form(request)
        try:
            user = database.update_user(user_id, attributes)
        except RecordNotFound:
            raise _not_found(user_id)
        except RecordInvalid as exc:
            logger.info("Rejected update of user %s: %s", user_id, exc)
            return _validation_error(exc)
        logger.info("Updated user %s fields: %s", user_id, ", ".join(sorted(attributes)))
        return envelope(user, f"アカウント「{user.user_name}」を更新しました．")

    @router.delete("/{user_id}", response_model=MessageResponse)
    async def destroy_user(user_id: int) -> MessageResponse:
        try:
            user = database.delete_user(user_id)
        except RecordNotFound:
            raise _not_found(user_id)
        logger.info("Deleted user %s (%s)", user.id, user.user_name)
        return MessageResponse(message=f"アカウント「{user.user_name}」を削除しました．")

    @router.get("/{user_id}/avatar")
    async def user_avatar(user_id: int) -> Response:
        avatar = database.get_avatar(user_id)
        if avatar is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Avatar not found")
        return Response(content=avatar.content, media_type=avatar.content_type)

    return router


def create_app(
    *,
    database: Optional[Database] = None,
    initialize_database: bool = False,
    url_prefix: str = "",
) -> FastAPI:
    """Create the admin users API application."""

    if database is None:
        database = Database(resolve_database_path(os.getenv("USERADMIN_DB_PATH")))
        database.initialize()
    elif initialize_database:
        database.initialize()

    app = FastAPI(
        title="User Administration API",
        docs_url=None,
        redoc_url=None,
    )
    app.state.database = database
    app.include_router(create_router(database, url_prefix=url_prefix))
    return app


__all__ = [
    "MessageResponse",
    "UserEnvelope",
    "UserListResponse",
    "UserResponse",
    "ValidationErrorResponse",
    "create_app",
]
