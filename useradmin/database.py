"""SQLite-backed persistence for admin-managed user accounts."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set

from passlib.context import CryptContext

from .models import Avatar, User
from .validations import TAKEN, full_message, validate_user_attributes


_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_TEXT_COLUMNS = ("user_name", "email", "user_profile")
_FLAG_COLUMNS = ("admin", "guest")
_UNIQUE_COLUMNS = ("user_name", "email")


class RecordInvalid(ValueError):
    """Raised when attributes fail validation."""

    def __init__(self, messages: List[str]) -> None:
        super().__init__("; ".join(messages))
        self.messages = list(messages)


class RecordNotFound(LookupError):
    """Raised when a user id does not exist."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "useradmin.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


def _normalize_email(value: object) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip().lower()
    return cleaned or None


class Database:
    """Simple wrapper around SQLite for persisting users."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_name TEXT NOT NULL UNIQUE,
                    email TEXT UNIQUE,
                    password_hash TEXT NOT NULL,
                    admin INTEGER NOT NULL DEFAULT 0,
                    guest INTEGER NOT NULL DEFAULT 0,
                    user_profile TEXT,
                    avatar_content_type TEXT,
                    avatar_filename TEXT,
                    avatar_data BLOB,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def require_user(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise RecordNotFound(f"User {user_id} not found")
        return user

    def create_user(self, attributes: Mapping[str, object]) -> User:
        """Validate ``attributes`` and insert a new user."""

        errors = validate_user_attributes(attributes, on_create=True)
        errors.extend(self._uniqueness_errors(attributes, exclude_id=None))
        if errors:
            raise RecordInvalid(errors)

        now = _serialize_datetime(_current_timestamp())
        columns: Dict[str, object] = {
            "user_name": str(attributes["user_name"]).strip(),
            "email": _normalize_email(attributes.get("email")),
            "password_hash": _hash_password(str(attributes["password"])),
            "admin": int(bool(attributes.get("admin", False))),
            "guest": int(bool(attributes.get("guest", False))),
            "user_profile": attributes.get("user_profile"),
            "created_at": now,
            "updated_at": now,
        }
        columns.update(self._avatar_columns(attributes.get("user_avatar")))

        names = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    f"INSERT INTO users ({names}) VALUES ({placeholders})",
                    tuple(columns.values()),
                )
            except sqlite3.IntegrityError as exc:
                raise RecordInvalid(self._uniqueness_errors(attributes, exclude_id=None) or [str(exc)]) from exc
            user_id = cursor.lastrowid

        return self.require_user(int(user_id))

    def update_user(self, user_id: int, attributes: Mapping[str, object]) -> User:
        """Apply the supplied attributes; columns not supplied are left untouched."""

        self.require_user(user_id)

        errors = validate_user_attributes(attributes, on_create=False)
        errors.extend(self._uniqueness_errors(attributes, exclude_id=user_id))
        if errors:
            raise RecordInvalid(errors)

        updates: Dict[str, object] = {}
        for column in _TEXT_COLUMNS:
            if column not in attributes:
                continue
            value = attributes[column]
            if column == "email":
                value = _normalize_email(value)
            elif column == "user_name":
                value = str(value).strip()
            updates[column] = value
        for column in _FLAG_COLUMNS:
            if column in attributes:
                updates[column] = int(bool(attributes[column]))
        if attributes.get("password"):
            updates["password_hash"] = _hash_password(str(attributes["password"]))
        updates.update(self._avatar_columns(attributes.get("user_avatar")))

        if updates:
            updates["updated_at"] = _serialize_datetime(_current_timestamp())
            assignments = ", ".join(f"{column} = ?" for column in updates)
            with self._connect() as conn:
                try:
                    conn.execute(
                        f"UPDATE users SET {assignments} WHERE id = ?",
                        (*updates.values(), user_id),
                    )
                except sqlite3.IntegrityError as exc:
                    raise RecordInvalid(
                        self._uniqueness_errors(attributes, exclude_id=user_id) or [str(exc)]
                    ) from exc

        return self.require_user(user_id)

    def delete_user(self, user_id: int) -> User:
        """Delete a user and return the record as it was."""

        user = self.require_user(user_id)
        with self._connect() as conn:
            conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return user

    def avatar_user_ids(self) -> Set[int]:
        """Return the ids of users that have an avatar stored."""

        with self._connect() as conn:
            rows = conn.execute("SELECT id FROM users WHERE avatar_data IS NOT NULL").fetchall()
        return {int(row["id"]) for row in rows}

    def get_avatar(self, user_id: int) -> Optional[Avatar]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT avatar_filename, avatar_content_type, avatar_data FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        if row is None or row["avatar_data"] is None:
            return None
        return Avatar(
            filename=str(row["avatar_filename"] or "avatar"),
            content_type=str(row["avatar_content_type"]),
            content=bytes(row["avatar_data"]),
        )

    def verify_user_password(self, user_id: int, password: str) -> bool:
        """Return ``True`` if the supplied password matches the stored hash."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT password_hash FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()

        if row is None or not row["password_hash"]:
            return False
        return _verify_password(password, row["password_hash"])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _uniqueness_errors(self, attributes: Mapping[str, object], *, exclude_id: Optional[int]) -> List[str]:
        errors: List[str] = []
        with self._connect() as conn:
            for column in _UNIQUE_COLUMNS:
                value = attributes.get(column)
                if value is None or not str(value).strip():
                    continue
                normalized = _normalize_email(value) if column == "email" else str(value).strip()
                row = conn.execute(
                    f"SELECT id FROM users WHERE {column} = ?",
                    (normalized,),
                ).fetchone()
                if row is not None and row["id"] != exclude_id:
                    errors.append(full_message(column, TAKEN))
        return errors

    def _avatar_columns(self, avatar: object) -> Dict[str, object]:
        if not isinstance(avatar, Avatar):
            return {}
        return {
            "avatar_filename": avatar.filename,
            "avatar_content_type": avatar.content_type,
            "avatar_data": sqlite3.Binary(avatar.content),
        }

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            user_name=str(row["user_name"]),
            email=row["email"],
            admin=bool(row["admin"]),
            guest=bool(row["guest"]),
            user_profile=row["user_profile"],
            # Filled in by the API layer, which knows its mount prefix.
            user_avatar_url=None,
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = ["Database", "RecordInvalid", "RecordNotFound", "resolve_database_path"]
