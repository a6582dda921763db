from __future__ import annotations

from pathlib import Path

import pytest

from useradmin.database import Database, RecordInvalid, RecordNotFound, resolve_database_path
from useradmin.models import Avatar


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "useradmin.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def _attributes(**overrides: object) -> dict:
    attributes = {
        "user_name": "alice",
        "email": "Alice@Example.com",
        "password": "Sup3rSecurePwd!",
        "password_confirmation": "Sup3rSecurePwd!",
    }
    attributes.update(overrides)
    return attributes


def test_create_and_verify_password(database: Database) -> None:
    user = database.create_user(_attributes(admin=True))

    assert user.user_name == "alice"
    assert user.email == "alice@example.com"
    assert user.admin is True
    assert user.guest is False
    assert user.user_avatar_url is None
    assert database.verify_user_password(user.id, "Sup3rSecurePwd!")
    assert not database.verify_user_password(user.id, "wrong")


def test_create_requires_presence(database: Database) -> None:
    with pytest.raises(RecordInvalid) as excinfo:
        database.create_user({"user_name": "  ", "email": ""})

    assert excinfo.value.messages[:4] == [
        "user_nameを入力してください",
        "emailを入力してください",
        "passwordを入力してください",
        "password_confirmationを入力してください",
    ]


def test_create_rejects_duplicates_and_mismatched_confirmation(database: Database) -> None:
    database.create_user(_attributes())

    with pytest.raises(RecordInvalid) as excinfo:
        database.create_user(_attributes(email="alice@example.com", password_confirmation="other"))

    messages = excinfo.value.messages
    assert "password_confirmationとpasswordの入力が一致しません" in messages
    assert "user_nameはすでに存在します" in messages
    assert "emailはすでに存在します" in messages


def test_avatar_type_and_size_are_validated(database: Database) -> None:
    text = Avatar("notes.txt", "text/plain", b"hello")
    with pytest.raises(RecordInvalid) as excinfo:
        database.create_user(_attributes(user_avatar=text))
    assert excinfo.value.messages == ["user_avatarはjpeg, gif, pngのみ添付可能です．"]

    huge = Avatar("big.png", "image/png", b"\0" * (5 * 1024 * 1024))
    with pytest.raises(RecordInvalid) as excinfo:
        database.create_user(_attributes(user_avatar=huge))
    assert excinfo.value.messages == ["user_avatarの画像の容量は5MB以下として下さい．"]


def test_avatar_is_stored_without_a_url(database: Database) -> None:
    avatar = Avatar("me.png", "image/png", b"\x89PNG")
    user = database.create_user(_attributes(user_avatar=avatar))
    plain = database.create_user(_attributes(user_name="bob", email="bob@example.com"))

    assert user.user_avatar_url is None
    assert database.avatar_user_ids() == {user.id}
    assert database.get_avatar(plain.id) is None
    assert database.get_avatar(user.id) == avatar


def test_update_only_touches_supplied_columns(database: Database) -> None:
    user = database.create_user(_attributes(user_profile="old"))

    updated = database.update_user(user.id, {"user_profile": "new"})

    assert updated.user_profile == "new"
    assert updated.user_name == "alice"
    assert updated.email == "alice@example.com"
    assert database.verify_user_password(user.id, "Sup3rSecurePwd!")


def test_update_changes_password_when_confirmed(database: Database) -> None:
    user = database.create_user(_attributes())

    with pytest.raises(RecordInvalid):
        database.update_user(user.id, {"password": "n3w-secret", "password_confirmation": "nope"})
    with pytest.raises(RecordInvalid):
        database.update_user(user.id, {"password": "", "password_confirmation": ""})
    with pytest.raises(RecordInvalid) as excinfo:
        database.update_user(user.id, {"password": "n3w-secret", "password_confirmation": ""})
    assert excinfo.value.messages == ["password_confirmationとpasswordの入力が一致しません"]
    assert database.verify_user_password(user.id, "Sup3rSecurePwd!")

    database.update_user(user.id, {"password": "n3w-secret", "password_confirmation": "n3w-secret"})
    assert database.verify_user_password(user.id, "n3w-secret")


def test_update_allows_keeping_own_unique_values(database: Database) -> None:
    user = database.create_user(_attributes())
    database.create_user(_attributes(user_name="bob", email="bob@example.com"))

    assert database.update_user(user.id, {"user_name": "alice"}).user_name == "alice"
    with pytest.raises(RecordInvalid) as excinfo:
        database.update_user(user.id, {"email": "BOB@example.com"})
    assert excinfo.value.messages == ["emailはすでに存在します"]


def test_list_and_delete(database: Database) -> None:
    first = database.create_user(_attributes())
    second = database.create_user(_attributes(user_name="bob", email="bob@example.com"))

    assert [user.id for user in database.list_users()] == [first.id, second.id]

    deleted = database.delete_user(first.id)
    assert deleted.user_name == "alice"
    assert [user.id for user in database.list_users()] == [second.id]
    with pytest.raises(RecordNotFound):
        database.delete_user(first.id)
    with pytest.raises(RecordNotFound):
        database.update_user(first.id, {"user_profile": "x"})


def test_resolve_database_path_prefers_explicit_value(tmp_path: Path) -> None:
    target = tmp_path / "custom.sqlite3"
    assert resolve_database_path(str(target)) == target.resolve()
    assert resolve_database_path(None).name == "useradmin.sqlite3"
