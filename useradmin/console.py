"""Interactive terminal front end for administering users."""

from __future__ import annotations

import getpass
import logging
import mimetypes
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .client import TransportError
from .controller import SubmissionResult, UsersController
from .dialogs import StateInvariantViolation
from .drafts import Assigned
from .models import Avatar, User


logger = logging.getLogger("useradmin.console")

InputFunc = Callable[[str], str]
OutputFunc = Callable[[str], None]

_FORM_FIELDS: List[Tuple[str, str, str]] = [
    ("1", "user_name", "User name"),
    ("2", "email", "Email"),
    ("3", "password", "Password"),
    ("4", "password_confirmation", "Password confirmation"),
    ("5", "admin", "Administrator (y/n)"),
    ("6", "guest", "Guest (y/n)"),
    ("7", "user_profile", "Profile"),
    ("8", "user_avatar", "Avatar image path"),
]

_SECRET_FIELDS = {"password", "password_confirmation"}


def load_avatar(path: Path) -> Avatar:
    """Read an image file from disk for upload."""

    content_type, _ = mimetypes.guess_type(path.name)
    return Avatar(
        filename=path.name,
        content_type=content_type or "application/octet-stream",
        content=path.read_bytes(),
    )


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


class AdminConsole:
    """Render the active dialog and route terminal input to the controller."""

    def __init__(
        self,
        controller: UsersController,
        *,
        input_func: InputFunc = input,
        output: OutputFunc = print,
        secret_input: InputFunc = getpass.getpass,
    ) -> None:
        self._controller = controller
        self._input = input_func
        self._print = output
        self._secret_input = secret_input
        self._running = False

    def run(self) -> None:
        self._print("User Administration Console")
        self._print("Press Ctrl+C at any time to exit.\n")
        self._running = True
        self._guard(self._controller.start)
        try:
            while self._running:
                self.step()
        except (KeyboardInterrupt, EOFError):
            self._print("\nExiting administration console.")
        except Exception:
            logger.exception("Administration console stopped unexpectedly")
            raise
        finally:
            self._controller.close()

    def step(self) -> None:
        handlers: Dict[str, Callable[[], None]] = {
            "list": self._list_view,
            "create": self._form_view,
            "edit": self._form_view,
            "detail": self._detail_view,
            "delete": self._delete_view,
        }
        handlers[self._controller.dialog.kind]()
        self._print("")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def _list_view(self) -> None:
        dialog = self._controller.dialog
        state = self._controller.collection.state

        if state.error:
            self._print(f"Failed to load users: {state.error}")
        if dialog.message:
            self._print(f"* {dialog.message}")

        if state.status == "loading":
            self._print("Loading users...")
        elif state.status == "loaded":
            self._print_users(state.items)

        choice = self._input("[n] new user, [id] show user, [r] reload, [q] quit: ").strip().lower()
        if choice == "q":
            self._print("Goodbye!")
            self._running = False
        elif choice == "n":
            self._guard(self._controller.open_create)
        elif choice == "r":
            self._guard(self._controller.collection.refresh)
        elif choice.isdigit():
            user = self._find_user(int(choice))
            if user is None:
                self._print(f"No user with id {choice} in the list.")
            else:
                self._guard(lambda: self._controller.select_user(user))
        else:
            self._print("Invalid selection.")

    def _detail_view(self) -> None:
        dialog = self._controller.dialog
        user = dialog.selected_user
        assert user is not None
        if dialog.message:
            self._print(f"* {dialog.message}")
        self._print_user(user)

        choice = self._input("[e] edit, [d] delete, [b] back: ").strip().lower()
        if choice == "e":
            self._guard(self._controller.open_edit)
        elif choice == "d":
            self._guard(self._controller.open_delete)
        elif choice == "b":
            self._guard(self._controller.close_detail)
        else:
            self._print("Invalid selection.")

    def _form_view(self) -> None:
        dialog = self._controller.dialog
        editing = dialog.kind == "edit"
        draft = self._controller.draft.state
        fields = [item for item in _FORM_FIELDS if not (editing and item[1] in _SECRET_FIELDS)]

        if editing and dialog.selected_user is not None:
            self._print(f"Editing {dialog.selected_user.user_name}")
        else:
            self._print("New user")
        for message in draft.errors:
            self._print(f"! {message}")
        for key, name, label in fields:
            self._print(f"  {key}) {label}: {self._describe_entry(name, draft.get(name))}")
        if draft.preview is not None:
            self._print(f"  Avatar preview: {draft.preview.uri}")

        options = "[number] edit field, [s] submit, [c] cancel"
        if editing:
            options += ", [p] change password"
        choice = self._input(f"{options}: ").strip().lower()

        if choice == "s":
            submit = self._controller.update if editing else self._controller.create
            self._report(self._guard(submit))
        elif choice == "c":
            self._guard(self._controller.cancel)
        elif editing and choice == "p":
            self._change_password()
        else:
            selected = next((item for item in fields if item[0] == choice), None)
            if selected is None:
                self._print("Invalid selection.")
                return
            self._edit_field(selected[1], selected[2])

    def _delete_view(self) -> None:
        user = self._controller.dialog.selected_user
        assert user is not None
        answer = self._input(f"Delete user '{user.user_name}'? [y/N]: ").strip().lower()
        if answer in {"y", "yes"}:
            if self._controller.is_submitting("delete"):
                self._print("A delete request is already in progress.")
                return
            self._report(self._guard(self._controller.delete))
        else:
            self._guard(self._controller.cancel)

    # ------------------------------------------------------------------
    # Input helpers
    # ------------------------------------------------------------------
    def _edit_field(self, name: str, label: str) -> None:
        if name in _SECRET_FIELDS:
            value = self._secret_input(f"{label}: ")
        else:
            value = self._input(f"{label}: ")

        if name == "user_avatar":
            path = Path(value.strip()).expanduser()
            try:
                avatar = load_avatar(path)
            except OSError as exc:
                self._print(f"Could not read {path}: {exc}")
                return
            self._guard(lambda: self._controller.attach_avatar(avatar))
            return

        try:
            self._controller.update_field(name, value)
        except ValueError as exc:
            self._print(str(exc))

    def _change_password(self) -> None:
        password = self._secret_input("New password: ")
        confirmation = self._secret_input("Confirm new password: ")
        self._report(self._guard(lambda: self._controller.change_password(password, confirmation)))

    def _guard(self, action: Callable[[], object]):
        """Run ``action`` and print transport or state failures."""

        try:
            return action()
        except TransportError as exc:
            self._print(f"Request failed: {exc}")
        except StateInvariantViolation as exc:
            self._print(f"Not allowed: {exc}")
        return None

    def _report(self, result: Optional[SubmissionResult]) -> None:
        if result is None:
            return
        if result.status == "skipped":
            self._print("Nothing changed; no request was sent.")
        elif result.status == "busy":
            self._print("A request is already in progress.")

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------
    def _find_user(self, user_id: int) -> Optional[User]:
        for user in self._controller.collection.state.items:
            if user.id == user_id:
                return user
        return None

    def _print_users(self, users) -> None:
        if not users:
            self._print("No users are currently registered.")
            return
        self._print(f"{len(users)} user(s) found:")
        self._print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  Admin  Guest")
        self._print("-" * 76)
        for user in users:
            email = user.email or "<no email>"
            self._print(
                f"{user.id:>4}  {user.user_name:<24}  {email:<32}  "
                f"{_yes_no(user.admin):<5}  {_yes_no(user.guest)}"
            )

    def _print_user(self, user: User) -> None:
        self._print(f"User #{user.id}: {user.user_name}")
        self._print(f"  Email:   {user.email or '<no email>'}")
        self._print(f"  Admin:   {_yes_no(user.admin)}")
        self._print(f"  Guest:   {_yes_no(user.guest)}")
        self._print(f"  Profile: {user.user_profile or ''}")
        if user.user_avatar_url:
            self._print(f"  Avatar:  {user.user_avatar_url}")
        self._print(f"  Created: {user.created_at.strftime('%Y-%m-%d %H:%M:%S %Z')}")

    @staticmethod
    def _describe_entry(name: str, entry: object) -> str:
        if not isinstance(entry, Assigned):
            return "<unchanged>"
        if name in _SECRET_FIELDS:
            return "********"
        if isinstance(entry.value, Avatar):
            return f"{entry.value.filename} ({entry.value.content_type})"
        return repr(entry.value)


__all__ = ["AdminConsole", "load_avatar"]
