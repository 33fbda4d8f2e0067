"""Session state: panes, task list, model switcher.

All state here is immutable. The dispatcher replaces it wholesale on every
transition and hands the current snapshot to the render composer.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from .config import Settings
from .models import LogLine, RunSummary, StatusLine, WorkItem

if TYPE_CHECKING:
    from .settings_editor import EditorState


class Pane(Enum):
    TASKS = "tasks"
    MODELS = "models"
    LOG = "log"
    SETTINGS = "settings"


class SubPane(Enum):
    PROVIDERS = "providers"
    MODELS = "models"


def next_pane(pane: Pane, sub: SubPane) -> tuple[Pane, SubPane]:
    """One step of the Tab cycle: tasks → providers → models → log → tasks.

    Settings is not part of the cycle and maps back to tasks.
    """
    if pane is Pane.TASKS:
        return Pane.MODELS, SubPane.PROVIDERS
    if pane is Pane.MODELS and sub is SubPane.PROVIDERS:
        return Pane.MODELS, SubPane.MODELS
    if pane is Pane.MODELS:
        return Pane.LOG, sub
    return Pane.TASKS, sub


def local_filter(items: tuple[WorkItem, ...], query: str) -> tuple[WorkItem, ...]:
    """Case-insensitive substring match over name and notes."""
    q = query.lower()
    return tuple(it for it in items if q in it.name.lower() or q in it.notes.lower())


@dataclass(frozen=True)
class TaskListState:
    """Full item set, the visible (filtered) view, cursor and scroll offset."""

    items: tuple[WorkItem, ...] = ()
    visible: tuple[WorkItem, ...] = ()
    cursor: int = 0
    scroll: int = 0

    def load(self, items) -> "TaskListState":
        items = tuple(items)
        return TaskListState(items=items, visible=items)

    def show(self, results) -> "TaskListState":
        """Replace the visible view with a filter/search result."""
        return replace(self, visible=tuple(results), cursor=0, scroll=0)

    def clear_filter(self) -> "TaskListState":
        return self.show(self.items)

    @property
    def filtered(self) -> bool:
        return self.visible != self.items

    @property
    def selected(self) -> WorkItem | None:
        if not self.visible:
            return None
        return self.visible[self.cursor]

    def move_cursor(self, delta: int, window: int) -> "TaskListState":
        """Move and clamp the cursor, scrolling one step at a time.

        The scroll offset moves only when the cursor leaves the window and
        by the minimum amount that brings it back.
        """
        if not self.visible:
            return self
        window = max(window, 1)
        cursor = min(max(self.cursor + delta, 0), len(self.visible) - 1)
        scroll = self.scroll
        if cursor < scroll:
            scroll = cursor
        elif cursor >= scroll + window:
            scroll = cursor - window + 1
        return replace(self, cursor=cursor, scroll=scroll)


@dataclass(frozen=True)
class SwitcherState:
    sub: SubPane = SubPane.PROVIDERS
    provider_cursor: int = 0
    model_cursor: int = 0


@dataclass(frozen=True)
class SessionState:
    """Root of everything the console shows."""

    settings: Settings = field(default_factory=Settings)
    pane: Pane = Pane.TASKS
    switcher: SwitcherState = field(default_factory=SwitcherState)
    tasks: TaskListState = field(default_factory=TaskListState)
    searching: bool = False
    search_query: str = ""
    loading: bool = True
    executing: bool = False
    progress_log: tuple[LogLine, ...] = ()
    last_run: RunSummary | None = None
    editor: "EditorState | None" = None
    status: StatusLine = field(default_factory=lambda: StatusLine("Loading tasks…", "loading"))
    spinner_frame: int = 0
