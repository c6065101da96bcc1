"""Navigation state for the library views.

``reduce`` is the only way state changes: it takes the current state and an
action and returns the next state without touching anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class ViewMode(str, Enum):
    HOME = "home"
    SUBJECT_LIST = "subject_list"
    ADMIN = "admin"
    FILE_VIEW = "file_view"  # reserved, never entered


@dataclass(frozen=True)
class ViewState:
    mode: ViewMode = ViewMode.HOME
    selected_category: str | None = None
    selected_subject: str | None = None
    viewing_file_id: str | None = None
    admin_logged_in: bool = False

    @property
    def file_list_open(self) -> bool:
        return self.selected_category is not None and self.selected_subject is not None

    @property
    def viewer_open(self) -> bool:
        return self.viewing_file_id is not None


@dataclass(frozen=True)
class SelectCategory:
    category: str


@dataclass(frozen=True)
class GoHome:
    pass


@dataclass(frozen=True)
class GoAdmin:
    pass


@dataclass(frozen=True)
class SelectSubject:
    subject: str


@dataclass(frozen=True)
class CloseFileList:
    pass


@dataclass(frozen=True)
class OpenFile:
    file_id: str


@dataclass(frozen=True)
class CloseViewer:
    pass


@dataclass(frozen=True)
class LoginSucceeded:
    pass


@dataclass(frozen=True)
class Logout:
    pass


Action = (
    SelectCategory
    | GoHome
    | GoAdmin
    | SelectSubject
    | CloseFileList
    | OpenFile
    | CloseViewer
    | LoginSucceeded
    | Logout
)


def reduce(state: ViewState, action: Action) -> ViewState:
    if isinstance(action, SelectCategory):
        return replace(state, mode=ViewMode.SUBJECT_LIST, selected_category=action.category, selected_subject=None)
    if isinstance(action, GoHome):
        return replace(state, mode=ViewMode.HOME, selected_category=None, selected_subject=None)
    if isinstance(action, GoAdmin):
        return replace(state, mode=ViewMode.ADMIN)
    if isinstance(action, SelectSubject):
        if state.selected_category is None:
            return state
        return replace(state, selected_subject=action.subject)
    if isinstance(action, CloseFileList):
        return replace(state, selected_subject=None)
    if isinstance(action, OpenFile):
        return replace(state, viewing_file_id=action.file_id)
    if isinstance(action, CloseViewer):
        return replace(state, viewing_file_id=None)
    if isinstance(action, LoginSucceeded):
        return replace(state, admin_logged_in=True)
    if isinstance(action, Logout):
        return replace(state, admin_logged_in=False)
    raise TypeError(f"Unknown view action: {action!r}")
