"""Domain models shared by the admin users API and its client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, Optional


USER_FIELDS = (
    "user_name",
    "email",
    "password",
    "password_confirmation",
    "admin",
    "guest",
    "user_profile",
    "user_avatar",
)

BOOLEAN_FIELDS = frozenset({"admin", "guest"})
PASSWORD_FIELDS = frozenset({"password", "password_confirmation"})


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class User:
    """Represents a user account as exposed by the admin users resource."""

    id: int
    user_name: str
    email: Optional[str]
    admin: bool
    guest: bool
    user_profile: Optional[str]
    user_avatar_url: Optional[str]
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "User":
        """Create a :class:`User` from a decoded JSON payload."""
        required_fields = {"id", "user_name", "created_at", "updated_at"}
        missing = required_fields - data.keys()
        if missing:
            raise ValueError(f"Missing required user fields: {', '.join(sorted(missing))}")

        email = data.get("email")
        profile = data.get("user_profile")
        avatar = data.get("user_avatar_url")
        return User(
            id=int(data["id"]),  # type: ignore[arg-type]
            user_name=str(data["user_name"]),
            email=str(email) if email is not None else None,
            admin=bool(data.get("admin", False)),
            guest=bool(data.get("guest", False)),
            user_profile=str(profile) if profile is not None else None,
            user_avatar_url=str(avatar) if avatar is not None else None,
            created_at=_parse_timestamp(data["created_at"]),
            updated_at=_parse_timestamp(data["updated_at"]),
        )


@dataclass(frozen=True)
class Avatar:
    """An image file selected for upload, or stored against a user."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Payload:
    """Form body for a create or update request.

    ``fields`` holds the plain form values, ``files`` the attachments keyed
    by form field name.
    """

    fields: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, Avatar] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.fields) or bool(self.files)

    def keys(self) -> FrozenSet[str]:
        return frozenset(self.fields) | frozenset(self.files)


__all__ = ["Avatar", "BOOLEAN_FIELDS", "PASSWORD_FIELDS", "Payload", "USER_FIELDS", "User"]
