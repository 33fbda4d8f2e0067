"""View selection and screen geometry shared by the composer and dispatcher."""

from dataclasses import dataclass
from enum import Enum

from .state import Pane, SessionState

MIN_WIDTH = 60
MIN_HEIGHT = 10

HEADER_ROWS = 1
FOOTER_ROWS = 2  # status bar + keybind bar
PANEL_CHROME = 3  # top border, title row, bottom border


class ViewKind(Enum):
    INITIALIZING = "initializing"
    RESIZE = "resize"
    SEARCH = "search"
    SETTINGS = "settings"
    MAIN = "main"


def select_view(state: SessionState, width: int, height: int) -> ViewKind:
    """Pick the single view variant for this frame."""
    if width <= 0 or height <= 0:
        return ViewKind.INITIALIZING
    if width < MIN_WIDTH or height < MIN_HEIGHT:
        return ViewKind.RESIZE
    if state.searching:
        return ViewKind.SEARCH
    if state.pane is Pane.SETTINGS and state.editor is not None:
        return ViewKind.SETTINGS
    return ViewKind.MAIN


@dataclass(frozen=True)
class MainLayout:
    left_width: int
    right_width: int
    body_height: int
    detail_height: int
    switcher_height: int


def main_layout(width: int, height: int) -> MainLayout:
    left = width * 42 // 100
    body = height - HEADER_ROWS - FOOTER_ROWS
    detail = body * 60 // 100
    return MainLayout(
        left_width=left,
        right_width=width - left,
        body_height=body,
        detail_height=detail,
        switcher_height=body - detail,
    )


def list_window_height(height: int) -> int:
    """Rows available for task rows inside the list panel."""
    return max(height - HEADER_ROWS - FOOTER_ROWS - PANEL_CHROME, 1)
