"""Single-active-state machine selecting which users dialog is shown."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Type, Union

from .models import User


class StateInvariantViolation(RuntimeError):
    """Raised when an event is not valid for the active dialog."""


@dataclass(frozen=True)
class ListView:
    kind = "list"


@dataclass(frozen=True)
class CreateDialog:
    kind = "create"


@dataclass(frozen=True)
class DetailDialog:
    user: User
    kind = "detail"


@dataclass(frozen=True)
class EditDialog:
    user: User
    kind = "edit"


@dataclass(frozen=True)
class DeleteConfirmDialog:
    user: User
    kind = "delete"


View = Union[ListView, CreateDialog, DetailDialog, EditDialog, DeleteConfirmDialog]


@dataclass(frozen=True)
class DialogState:
    """The active dialog plus the banner message attached to it."""

    view: View = ListView()
    message: Optional[str] = None

    @property
    def selected_user(self) -> Optional[User]:
        return getattr(self.view, "user", None)

    @property
    def kind(self) -> str:
        return self.view.kind


INITIAL_DIALOG_STATE = DialogState()


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class OpenCreate:
    pass


@dataclass(frozen=True)
class SelectUser:
    user: User


@dataclass(frozen=True)
class OpenEdit:
    pass


@dataclass(frozen=True)
class OpenDelete:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class Close:
    pass


@dataclass(frozen=True)
class SubmitSucceeded:
    user: User
    message: Optional[str] = None


@dataclass(frozen=True)
class SubmitFailed:
    pass


@dataclass(frozen=True)
class DeleteConfirmed:
    message: Optional[str] = None


Event = Union[
    OpenCreate,
    SelectUser,
    OpenEdit,
    OpenDelete,
    Cancel,
    Close,
    SubmitSucceeded,
    SubmitFailed,
    DeleteConfirmed,
]

_Handler = Callable[[DialogState, Event], DialogState]

_TRANSITIONS: Dict[Tuple[Type[object], Type[object]], _Handler] = {
    (ListView, OpenCreate): lambda state, event: DialogState(CreateDialog()),
    (ListView, SelectUser): lambda state, event: DialogState(DetailDialog(event.user)),
    (CreateDialog, Cancel): lambda state, event: DialogState(ListView()),
    (CreateDialog, SubmitSucceeded): lambda state, event: DialogState(
        DetailDialog(event.user), event.message
    ),
    (CreateDialog, SubmitFailed): lambda state, event: state,
    (DetailDialog, Close): lambda state, event: DialogState(ListView()),
    (DetailDialog, OpenEdit): lambda state, event: DialogState(EditDialog(state.view.user)),
    (DetailDialog, OpenDelete): lambda state, event: DialogState(
        DeleteConfirmDialog(state.view.user)
    ),
    (EditDialog, Cancel): lambda state, event: DialogState(DetailDialog(state.view.user)),
    (EditDialog, SubmitSucceeded): lambda state, event: DialogState(
        DetailDialog(event.user), event.message
    ),
    (EditDialog, SubmitFailed): lambda state, event: state,
    (DeleteConfirmDialog, Cancel): lambda state, event: DialogState(
        DetailDialog(state.view.user)
    ),
    (DeleteConfirmDialog, DeleteConfirmed): lambda state, event: DialogState(
        ListView(), event.message
    ),
}


def transition(state: DialogState, event: Event) -> DialogState:
    """Return the dialog state reached by applying ``event`` to ``state``."""

    handler = _TRANSITIONS.get((type(state.view), type(event)))
    if handler is None:
        raise StateInvariantViolation(
            f"{type(event).__name__} is not valid while the {state.kind} dialog is active"
        )
    return handler(state, event)


__all__ = [
    "Cancel",
    "Close",
    "CreateDialog",
    "DeleteConfirmDialog",
    "DeleteConfirmed",
    "DetailDialog",
    "DialogState",
    "EditDialog",
    "Event",
    "INITIAL_DIALOG_STATE",
    "ListView",
    "OpenCreate",
    "OpenDelete",
    "OpenEdit",
    "SelectUser",
    "StateInvariantViolation",
    "SubmitFailed",
    "SubmitSucceeded",
    "View",
    "transition",
]
