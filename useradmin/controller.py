"""Coordinates the users dialogs, the form draft and the remote collection."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Optional, Set, Tuple, Type, TypeVar

from .client import Outcome, Rejected, ResourceClient, TransportError
from .collection import CollectionState, CollectionStore
from .dialogs import (
    INITIAL_DIALOG_STATE,
    Cancel,
    Close,
    CreateDialog,
    DeleteConfirmDialog,
    DeleteConfirmed,
    DialogState,
    EditDialog,
    Event,
    OpenCreate,
    OpenDelete,
    OpenEdit,
    SelectUser,
    StateInvariantViolation,
    SubmitFailed,
    SubmitSucceeded,
    View,
    transition,
)
from .drafts import AVATAR_FIELD, DraftStore, password_payload
from .models import PASSWORD_FIELDS, Avatar, Payload, User


logger = logging.getLogger("useradmin.controller")

SubmissionKind = Literal["create", "edit", "delete"]
SubmissionStatus = Literal["saved", "rejected", "deleted", "skipped", "busy", "discarded"]

V = TypeVar("V")


@dataclass(frozen=True)
class SubmissionResult:
    """What happened to a create, update or delete submission."""

    status: SubmissionStatus
    user: Optional[User] = None
    message: Optional[str] = None
    error_messages: Tuple[str, ...] = ()


class UsersController:
    """Bridges user input, the users API and the dialog state machine.

    The collection is refetched whenever the selected user changes, which
    covers completed creates, updates and deletes as well as closing a
    detail dialog. The draft is reset whenever a dialog opens or closes.
    """

    def __init__(
        self,
        client: ResourceClient[User],
        *,
        preview_dir: Optional[Path] = None,
        on_collection_change: Optional[Callable[[CollectionState[User]], None]] = None,
    ) -> None:
        self._client = client
        self.collection: CollectionStore[User] = CollectionStore(
            client.list, on_change=on_collection_change
        )
        self.draft = DraftStore(preview_dir=preview_dir)
        self._dialog = INITIAL_DIALOG_STATE
        self._in_flight: Set[str] = set()
        self._closed = False
        self._lock = threading.RLock()

    @property
    def dialog(self) -> DialogState:
        with self._lock:
            return self._dialog

    @property
    def closed(self) -> bool:
        return self._closed

    def is_submitting(self, kind: SubmissionKind) -> bool:
        with self._lock:
            return kind in self._in_flight

    def start(self) -> None:
        """Load the collection for the initial list view."""

        self._refresh_collection()

    def close(self) -> None:
        """Detach the controller; late responses are discarded."""

        with self._lock:
            self._closed = True
        self.collection.close()
        self.draft.reset()

    # ------------------------------------------------------------------
    # Dialog navigation
    # ------------------------------------------------------------------
    def dispatch(self, event: Event) -> DialogState:
        with self._lock:
            previous = self._dialog
            current = transition(previous, event)
            self._dialog = current

        if type(current.view) is not type(previous.view):
            self.draft.reset()
        if current.selected_user is not previous.selected_user:
            self._refresh_collection()
        return current

    def open_create(self) -> DialogState:
        return self.dispatch(OpenCreate())

    def select_user(self, user: User) -> DialogState:
        return self.dispatch(SelectUser(user))

    def open_edit(self) -> DialogState:
        return self.dispatch(OpenEdit())

    def open_delete(self) -> DialogState:
        return self.dispatch(OpenDelete())

    def cancel(self) -> DialogState:
        return self.dispatch(Cancel())

    def close_detail(self) -> DialogState:
        return self.dispatch(Close())

    # ------------------------------------------------------------------
    # Form input
    # ------------------------------------------------------------------
    def update_field(self, name: str, value: object) -> None:
        view = self._require_form()
        if isinstance(view, EditDialog) and name in PASSWORD_FIELDS:
            raise StateInvariantViolation("Passwords are changed with change_password")
        self.draft.assign(name, value)

    def attach_avatar(self, avatar: Avatar) -> None:
        self._require_form()
        self.draft.assign(AVATAR_FIELD, avatar)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------
    def create(self) -> SubmissionResult:
        view = self._require_view(CreateDialog)
        payload = self.draft.build_payload("create")
        return self._submit("create", view, lambda: self._client.create(payload))

    def update(self) -> SubmissionResult:
        """Submit the edit draft; nothing is sent when no field was touched."""

        view = self._require_view(EditDialog)
        payload = self.draft.build_payload("edit")
        if not payload:
            logger.debug("Skipping update of user %s: no fields changed", view.user.id)
            return SubmissionResult(status="skipped")
        return self._submit_update(view, payload)

    def change_password(self, password: str, confirmation: str) -> SubmissionResult:
        view = self._require_view(EditDialog)
        return self._submit_update(view, password_payload(password, confirmation))

    def delete(self) -> SubmissionResult:
        view = self._require_view(DeleteConfirmDialog)
        if not self._begin("delete"):
            return SubmissionResult(status="busy")
        try:
            message = self._client.destroy(view.user.id)
        finally:
            self._finish("delete")

        if not self._still_showing(view):
            return SubmissionResult(status="discarded", message=message)

        logger.info("Deleted user %s", view.user.id)
        self.dispatch(DeleteConfirmed(message or None))
        return SubmissionResult(status="deleted", message=message)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _submit_update(self, view: EditDialog, payload: Payload) -> SubmissionResult:
        return self._submit("edit", view, lambda: self._client.update(view.user.id, payload))

    def _submit(self, kind: SubmissionKind, view: View, send) -> SubmissionResult:
        if not self._begin(kind):
            logger.debug("Ignoring %s submission: one is already in flight", kind)
            return SubmissionResult(status="busy")
        try:
            outcome: Outcome[User] = send()
        finally:
            self._finish(kind)

        if not self._still_showing(view):
            logger.debug("Discarding %s response for a dialog that is no longer open", kind)
            return SubmissionResult(status="discarded")

        if isinstance(outcome, Rejected):
            self.draft.set_errors(outcome.error_messages)
            self.dispatch(SubmitFailed())
            return SubmissionResult(status="rejected", error_messages=outcome.error_messages)

        logger.info("Saved user %s (%s)", outcome.record.id, kind)
        self.dispatch(SubmitSucceeded(outcome.record, outcome.message))
        return SubmissionResult(status="saved", user=outcome.record, message=outcome.message)

    def _begin(self, kind: SubmissionKind) -> bool:
        with self._lock:
            if self._closed:
                raise StateInvariantViolation("The users view has been closed")
            if kind in self._in_flight:
                return False
            self._in_flight.add(kind)
            return True

    def _finish(self, kind: SubmissionKind) -> None:
        with self._lock:
            self._in_flight.discard(kind)

    def _still_showing(self, view: View) -> bool:
        with self._lock:
            return not self._closed and self._dialog.view is view

    def _require_view(self, view_type: Type[V]) -> V:
        view = self.dialog.view
        if not isinstance(view, view_type):
            raise StateInvariantViolation(
                f"This action requires the {view_type.kind} dialog, "  # type: ignore[attr-defined]
                f"but the {view.kind} dialog is active"
            )
        return view

    def _require_form(self) -> View:
        view = self.dialog.view
        if not isinstance(view, (CreateDialog, EditDialog)):
            raise StateInvariantViolation(f"No form is open while the {view.kind} dialog is active")
        return view

    def _refresh_collection(self) -> None:
        if self._closed:
            return
        try:
            self.collection.refresh()
        except TransportError as exc:
            logger.warning("Failed to refresh the users list: %s", exc)


__all__ = ["SubmissionKind", "SubmissionResult", "SubmissionStatus", "UsersController"]
