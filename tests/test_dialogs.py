"""Tests for the users dialog state machine."""

from __future__ import annotations

import unittest

from fakes import make_user

from useradmin.dialogs import (
    INITIAL_DIALOG_STATE,
    Cancel,
    Close,
    CreateDialog,
    DeleteConfirmDialog,
    DeleteConfirmed,
    DetailDialog,
    DialogState,
    EditDialog,
    ListView,
    OpenCreate,
    OpenDelete,
    OpenEdit,
    SelectUser,
    StateInvariantViolation,
    SubmitFailed,
    SubmitSucceeded,
    transition,
)


class DialogTransitionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.user = make_user(1, "alice")
        self.detail = DialogState(DetailDialog(self.user))

    def test_initial_state_is_list_without_selection(self) -> None:
        self.assertIsInstance(INITIAL_DIALOG_STATE.view, ListView)
        self.assertIsNone(INITIAL_DIALOG_STATE.selected_user)
        self.assertEqual(INITIAL_DIALOG_STATE.kind, "list")

    def test_create_flow(self) -> None:
        create = transition(INITIAL_DIALOG_STATE, OpenCreate())
        self.assertIsInstance(create.view, CreateDialog)
        self.assertIsNone(create.selected_user)

        self.assertIs(transition(create, SubmitFailed()), create)
        self.assertIsInstance(transition(create, Cancel()).view, ListView)

        created = transition(create, SubmitSucceeded(self.user, "registered"))
        self.assertEqual(created.view, DetailDialog(self.user))
        self.assertEqual(created.message, "registered")

    def test_detail_navigation(self) -> None:
        listed = transition(INITIAL_DIALOG_STATE, SelectUser(self.user))
        self.assertEqual(listed, self.detail)

        closed = transition(self.detail, Close())
        self.assertIsInstance(closed.view, ListView)
        self.assertIsNone(closed.selected_user)
        self.assertIsNone(closed.message)

    def test_edit_flow(self) -> None:
        edit = transition(self.detail, OpenEdit())
        self.assertEqual(edit.view, EditDialog(self.user))
        self.assertIs(edit.selected_user, self.user)

        self.assertIs(transition(edit, SubmitFailed()), edit)
        self.assertEqual(transition(edit, Cancel()).view, DetailDialog(self.user))

        renamed = make_user(1, "alicia")
        saved = transition(edit, SubmitSucceeded(renamed, "updated"))
        self.assertEqual(saved.view, DetailDialog(renamed))
        self.assertEqual(saved.message, "updated")

    def test_delete_flow(self) -> None:
        confirm = transition(self.detail, OpenDelete())
        self.assertEqual(confirm.view, DeleteConfirmDialog(self.user))

        self.assertEqual(transition(confirm, Cancel()).view, DetailDialog(self.user))

        deleted = transition(confirm, DeleteConfirmed("deleted"))
        self.assertIsInstance(deleted.view, ListView)
        self.assertIsNone(deleted.selected_user)
        self.assertEqual(deleted.message, "deleted")

    def test_message_is_cleared_by_the_next_transition(self) -> None:
        deleted = DialogState(ListView(), "deleted")
        self.assertIsNone(transition(deleted, SelectUser(self.user)).message)
        self.assertIsNone(transition(deleted, OpenCreate()).message)

        created = DialogState(DetailDialog(self.user), "registered")
        self.assertIsNone(transition(created, OpenEdit()).message)

    def test_delete_confirmation_only_reachable_from_detail(self) -> None:
        states = [
            INITIAL_DIALOG_STATE,
            DialogState(CreateDialog()),
            DialogState(EditDialog(self.user)),
            DialogState(DeleteConfirmDialog(self.user)),
        ]
        for state in states:
            with self.subTest(kind=state.kind):
                with self.assertRaises(StateInvariantViolation):
                    transition(state, OpenDelete())
        self.assertIsInstance(transition(self.detail, OpenDelete()).view, DeleteConfirmDialog)

    def test_invalid_events_raise(self) -> None:
        invalid = [
            (INITIAL_DIALOG_STATE, Cancel()),
            (INITIAL_DIALOG_STATE, OpenEdit()),
            (INITIAL_DIALOG_STATE, SubmitSucceeded(self.user)),
            (DialogState(CreateDialog()), SelectUser(self.user)),
            (DialogState(CreateDialog()), OpenCreate()),
            (self.detail, SubmitSucceeded(self.user)),
            (DialogState(EditDialog(self.user)), Close()),
            (DialogState(DeleteConfirmDialog(self.user)), Close()),
        ]
        for state, event in invalid:
            with self.subTest(kind=state.kind, event=type(event).__name__):
                with self.assertRaises(StateInvariantViolation):
                    transition(state, event)

    def test_exactly_one_view_is_active(self) -> None:
        state = INITIAL_DIALOG_STATE
        for event in [
            OpenCreate(),
            SubmitSucceeded(self.user),
            OpenEdit(),
            Cancel(),
            OpenDelete(),
            Cancel(),
            OpenDelete(),
            DeleteConfirmed("gone"),
        ]:
            state = transition(state, event)
            self.assertIn(state.kind, {"list", "create", "detail", "edit", "delete"})
        self.assertIsInstance(state.view, ListView)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
