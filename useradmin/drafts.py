"""Uncommitted form edits for the create and edit user dialogs.

Each field of a draft is either :data:`UNSET` (never touched) or
:class:`Assigned` (touched, possibly to an empty string). Only assigned
fields are sent to the server, so the server's presence validation can fire
on create while partial edits never overwrite untouched columns.
"""

from __future__ import annotations

import logging
import tempfile
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Generic, Iterable, Literal, Optional, Tuple, TypeVar, Union

from .models import BOOLEAN_FIELDS, PASSWORD_FIELDS, USER_FIELDS, Avatar, Payload


logger = logging.getLogger("useradmin.drafts")

V = TypeVar("V")

DraftMode = Literal["create", "edit"]

AVATAR_FIELD = "user_avatar"

# On edit these fields are only sent when truthy: switching a flag off or
# emptying the profile is indistinguishable from leaving it untouched.
_EDIT_TRUTHY_ONLY = frozenset({"admin", "guest", "user_profile", AVATAR_FIELD})

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_FALSE_VALUES = {"0", "false", "no", "off", "n", ""}

_PREVIEW_SUFFIXES = {
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/png": ".png",
}


class _Unset:
    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


@dataclass(frozen=True)
class Assigned(Generic[V]):
    """A field value the user explicitly entered."""

    value: V


FieldValue = Union[_Unset, Assigned[object]]


class AvatarPreview:
    """Local copy of a selected avatar that can be displayed before upload.

    The preview is backed by a temporary file and exposed as a ``file://``
    URI. It is never uploaded and must be released when the draft resets.
    """

    def __init__(self, avatar: Avatar, *, directory: Optional[Path] = None) -> None:
        suffix = _PREVIEW_SUFFIXES.get(avatar.content_type, Path(avatar.filename).suffix)
        if directory is not None:
            directory.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            prefix="avatar-preview-",
            suffix=suffix,
            dir=str(directory) if directory is not None else None,
            delete=False,
        )
        with handle:
            handle.write(avatar.content)
        self._path = Path(handle.name)
        self._released = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def uri(self) -> str:
        return self._path.resolve().as_uri()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._path.unlink(missing_ok=True)

    def __enter__(self) -> "AvatarPreview":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.release()


@dataclass(frozen=True)
class DraftState:
    """Snapshot of the fields entered into the open form."""

    fields: Dict[str, Assigned[object]] = field(default_factory=dict)
    preview: Optional[AvatarPreview] = None
    errors: Tuple[str, ...] = ()

    def get(self, name: str) -> FieldValue:
        return self.fields.get(name, UNSET)

    @property
    def is_empty(self) -> bool:
        return not self.fields and self.preview is None and not self.errors


EMPTY_DRAFT = DraftState()


def _coerce_boolean(name: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean value")


# ----------------------------------------------------------------------
# Reducers
# ----------------------------------------------------------------------
def assign(state: DraftState, name: str, value: object) -> DraftState:
    """Return a draft with ``name`` set to ``value``."""

    if name not in USER_FIELDS:
        raise ValueError(f"Unknown user field '{name}'")
    if name == AVATAR_FIELD:
        if not isinstance(value, Avatar):
            raise ValueError("user_avatar must be an Avatar")
    elif name in BOOLEAN_FIELDS:
        value = _coerce_boolean(name, value)
    elif not isinstance(value, str):
        raise ValueError(f"{name} must be a string")

    updated = dict(state.fields)
    updated[name] = Assigned(value)
    return replace(state, fields=updated)


def attach_avatar(state: DraftState, avatar: Avatar, preview: Optional[AvatarPreview]) -> DraftState:
    return replace(assign(state, AVATAR_FIELD, avatar), preview=preview)


def with_errors(state: DraftState, messages: Iterable[str]) -> DraftState:
    return replace(state, errors=tuple(messages))


def _encode(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_payload(state: DraftState, mode: DraftMode) -> Payload:
    """Turn the assigned fields of ``state`` into a request payload.

    Unset fields are omitted. On edit, password fields are never included
    (see :func:`password_payload`) and the flags, profile and avatar are
    only included when truthy.
    """

    fields: Dict[str, str] = {}
    files: Dict[str, Avatar] = {}
    for name in USER_FIELDS:
        entry = state.get(name)
        if not isinstance(entry, Assigned):
            continue
        value = entry.value
        if mode == "edit":
            if name in PASSWORD_FIELDS:
                continue
            if name in _EDIT_TRUTHY_ONLY and not value:
                continue
        if name == AVATAR_FIELD:
            files[name] = value  # type: ignore[assignment]
            continue
        fields[name] = _encode(value)
    return Payload(fields=fields, files=files)


def password_payload(password: str, confirmation: str) -> Payload:
    return Payload(fields={"password": password, "password_confirmation": confirmation})


class DraftStore:
    """Holds the current draft and owns its avatar preview."""

    def __init__(self, *, preview_dir: Optional[Path] = None) -> None:
        self._state = EMPTY_DRAFT
        self._preview_dir = preview_dir
        self._lock = threading.RLock()

    @property
    def state(self) -> DraftState:
        with self._lock:
            return self._state

    def assign(self, name: str, value: object) -> DraftState:
        if name == AVATAR_FIELD:
            if not isinstance(value, Avatar):
                raise ValueError("user_avatar must be an Avatar")
            return self.attach_avatar(value)
        with self._lock:
            self._state = assign(self._state, name, value)
            return self._state

    def attach_avatar(self, avatar: Avatar) -> DraftState:
        preview = AvatarPreview(avatar, directory=self._preview_dir)
        with self._lock:
            previous = self._state.preview
            self._state = attach_avatar(self._state, avatar, preview)
            state = self._state
        if previous is not None:
            previous.release()
        return state

    def set_errors(self, messages: Iterable[str]) -> DraftState:
        with self._lock:
            self._state = with_errors(self._state, messages)
            return self._state

    def build_payload(self, mode: DraftMode) -> Payload:
        return build_payload(self.state, mode)

    def reset(self) -> None:
        with self._lock:
            previous = self._state.preview
            self._state = EMPTY_DRAFT
        if previous is not None:
            previous.release()
            logger.debug("Released avatar preview %s", previous.path)


__all__ = [
    "AVATAR_FIELD",
    "Assigned",
    "AvatarPreview",
    "DraftMode",
    "DraftState",
    "DraftStore",
    "EMPTY_DRAFT",
    "FieldValue",
    "UNSET",
    "assign",
    "attach_avatar",
    "build_payload",
    "password_payload",
    "with_errors",
]
