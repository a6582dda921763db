from __future__ import annotations

from typing import Iterable, List

from fakes import FakeUsersClient, make_user

from useradmin.client import TransportError
from useradmin.console import AdminConsole, load_avatar
from useradmin.controller import UsersController


def _scripted(answers: Iterable[str]):
    pending = list(answers)

    def read(prompt: str) -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read


def _run(client: FakeUsersClient, answers: List[str], secrets: List[str] = (), tmp_path=None) -> List[str]:
    output: List[str] = []
    controller = UsersController(client, preview_dir=tmp_path)
    console = AdminConsole(
        controller,
        input_func=_scripted(answers),
        output=output.append,
        secret_input=_scripted(secrets),
    )
    console.run()
    assert controller.closed
    return output


def test_create_user_from_the_console(tmp_path) -> None:
    client = FakeUsersClient([make_user(1, "carol")])

    output = _run(
        client,
        ["n", "1", "alice", "2", "alice@example.com", "3", "4", "5", "y", "s", "b", "q"],
        secrets=["Sup3rSecurePwd!", "Sup3rSecurePwd!"],
        tmp_path=tmp_path,
    )

    payload = client.calls_named("create")[0][2]
    assert payload.fields == {
        "user_name": "alice",
        "email": "alice@example.com",
        "password": "Sup3rSecurePwd!",
        "password_confirmation": "Sup3rSecurePwd!",
        "admin": "true",
    }
    assert "* アカウント「alice」を登録しました．" in output
    assert "User #2: alice" in output
    assert "Goodbye!" in output


def test_edit_form_hides_passwords_and_skips_empty_updates(tmp_path) -> None:
    client = FakeUsersClient([make_user(1, "carol")])

    output = _run(client, ["1", "e", "3", "s", "c", "b", "q"], tmp_path=tmp_path)

    assert "Editing carol" in output
    assert "Invalid selection." in output
    assert "Nothing changed; no request was sent." in output
    assert client.calls_named("update") == []
    assert not any("Password:" in line for line in output)


def test_change_password_from_edit_form(tmp_path) -> None:
    client = FakeUsersClient([make_user(1, "carol")])

    _run(client, ["1", "e", "p", "b", "q"], secrets=["n3w-secret", "n3w-secret"], tmp_path=tmp_path)

    payload = client.calls_named("update")[0][2]
    assert payload.fields == {"password": "n3w-secret", "password_confirmation": "n3w-secret"}


def test_rejected_submission_prints_error_messages(tmp_path) -> None:
    client = FakeUsersClient()
    client.reject_with = ("user_nameを入力してください",)

    output = _run(client, ["n", "s", "c", "q"], tmp_path=tmp_path)

    assert output.count("! user_nameを入力してください") == 1
    assert client.calls_named("create")


def test_delete_user_after_confirmation(tmp_path) -> None:
    client = FakeUsersClient([make_user(1, "carol"), make_user(2, "dave")])

    output = _run(client, ["1", "d", "y", "q"], tmp_path=tmp_path)

    assert "* アカウント「carol」を削除しました．" in output
    assert [user.user_name for user in client.users] == ["dave"]


def test_declining_delete_returns_to_detail(tmp_path) -> None:
    client = FakeUsersClient([make_user(1, "carol")])

    _run(client, ["1", "d", "n", "b", "q"], tmp_path=tmp_path)

    assert client.calls_named("destroy") == []


def test_unreachable_api_is_reported(tmp_path) -> None:
    client = FakeUsersClient()
    client.fail_with = TransportError("connection refused")

    output = _run(client, ["r", "q"], tmp_path=tmp_path)

    assert "Failed to load users: connection refused" in output
    assert "Request failed: connection refused" in output


def test_unknown_user_id(tmp_path) -> None:
    output = _run(FakeUsersClient(), ["42", "q"], tmp_path=tmp_path)

    assert "No users are currently registered." in output
    assert "No user with id 42 in the list." in output


def test_end_of_input_exits_cleanly(tmp_path) -> None:
    output = _run(FakeUsersClient(), [], tmp_path=tmp_path)

    assert output[-1] == "\nExiting administration console."


def test_load_avatar_guesses_content_type(tmp_path) -> None:
    image = tmp_path / "me.png"
    image.write_bytes(b"\x89PNG")

    avatar = load_avatar(image)

    assert avatar.filename == "me.png"
    assert avatar.content_type == "image/png"
    assert avatar.content == b"\x89PNG"
