"""Attribute validations applied before users are written to the database."""

from __future__ import annotations

from typing import List, Mapping

from .models import Avatar


ALLOWED_AVATAR_TYPES = ("image/jpeg", "image/gif", "image/png")
MAX_AVATAR_BYTES = 5 * 1024 * 1024
MAX_PASSWORD_BYTES = 72

BLANK = "を入力してください"
TAKEN = "はすでに存在します"
CONFIRMATION_MISMATCH = "password_confirmationとpasswordの入力が一致しません"
AVATAR_TYPE = "はjpeg, gif, pngのみ添付可能です．"
AVATAR_SIZE = "の画像の容量は5MB以下として下さい．"
PASSWORD_TOO_LONG = "は72文字以内で入力してください"

_REQUIRED_ON_CREATE = ("user_name", "email", "password", "password_confirmation")


def full_message(field: str, message: str) -> str:
    return f"{field}{message}"


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_avatar(avatar: Avatar, *, field: str = "user_avatar") -> List[str]:
    errors: List[str] = []
    if avatar.content_type not in ALLOWED_AVATAR_TYPES:
        errors.append(full_message(field, AVATAR_TYPE))
    if avatar.size >= MAX_AVATAR_BYTES:
        errors.append(full_message(field, AVATAR_SIZE))
    return errors


def validate_user_attributes(attributes: Mapping[str, object], *, on_create: bool) -> List[str]:
    """Return the full error messages for ``attributes``.

    Presence is only required on create. Uniqueness needs the database and
    is checked by :class:`~useradmin.database.Database`.
    """

    errors: List[str] = []

    if on_create:
        for name in _REQUIRED_ON_CREATE:
            if _is_blank(attributes.get(name)):
                errors.append(full_message(name, BLANK))
    elif "password" in attributes and _is_blank(attributes.get("password")):
        errors.append(full_message("password", BLANK))

    password = attributes.get("password")
    if isinstance(password, str) and len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(full_message("password", PASSWORD_TOO_LONG))

    if "password_confirmation" in attributes and attributes["password_confirmation"] != password:
        errors.append(CONFIRMATION_MISMATCH)

    avatar = attributes.get("user_avatar")
    if isinstance(avatar, Avatar):
        errors.extend(validate_avatar(avatar))

    return errors


__all__ = [
    "ALLOWED_AVATAR_TYPES",
    "MAX_AVATAR_BYTES",
    "full_message",
    "validate_avatar",
    "validate_user_attributes",
]
