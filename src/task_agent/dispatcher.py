"""Event loop core: turns events into new session state and effects.

``Dispatcher.dispatch`` is called from a single thread, one event at a time,
and never blocks. Anything slow is returned as an Effect; the host runs it
with ``run_effect`` on a worker thread and feeds the resulting event back.
"""

import logging
from dataclasses import dataclass, replace

from .config import Settings, SettingsStore, get_api_key
from .execution import (
    ConfigurationError,
    ExecutionBusyError,
    ExecutionController,
    ExecutionFinished,
    ExecutionJob,
    ExecutionRequest,
    ProgressReceived,
)
from .layout import list_window_height
from .models import LogLine, RunSummary, StatusLine, WorkItem
from .providers import ProviderRegistry
from .settings_editor import EditorState
from .state import Pane, SessionState, SubPane, SwitcherState, local_filter, next_pane
from .tasks import TaskSource, TaskSourceError, format_task_markdown

logger = logging.getLogger(__name__)


# Events


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class ItemsLoaded:
    items: tuple[WorkItem, ...]
    source_available: bool = True


@dataclass(frozen=True)
class LoadFailed:
    reason: str


@dataclass(frozen=True)
class SearchFinished:
    query: str
    items: tuple[WorkItem, ...]
    degraded: bool = False
    reason: str = ""


Event = KeyPressed | Resize | Tick | ItemsLoaded | LoadFailed | SearchFinished | ProgressReceived | ExecutionFinished


# Effects


@dataclass(frozen=True)
class LoadItems:
    source: TaskSource | None
    project_id: str = ""


@dataclass(frozen=True)
class SearchItems:
    query: str
    items: tuple[WorkItem, ...]
    source: TaskSource | None
    workspace_id: str = ""


@dataclass(frozen=True)
class ReceiveProgress:
    job: ExecutionJob


@dataclass(frozen=True)
class Quit:
    pass


Effect = LoadItems | SearchItems | ReceiveProgress | Quit


def run_effect(effect: Effect) -> Event | None:
    """Perform a blocking effect and return the event it produces.

    Runs off the event loop thread. Collaborator failures come back as
    events, never as exceptions.
    """
    if isinstance(effect, LoadItems):
        if effect.source is None:
            return ItemsLoaded((), source_available=False)
        try:
            return ItemsLoaded(tuple(effect.source.list_items(effect.project_id)))
        except TaskSourceError as e:
            logger.warning(f"Task listing failed: {e}")
            return LoadFailed(str(e))

    if isinstance(effect, SearchItems):
        if effect.source is None:
            reason = "no task source"
        elif not effect.workspace_id:
            reason = "no workspace configured"
        else:
            try:
                found = effect.source.search_items(effect.workspace_id, effect.query)
                return SearchFinished(effect.query, tuple(found))
            except TaskSourceError as e:
                logger.warning(f"Remote search failed, filtering locally: {e}")
                reason = str(e)
        return SearchFinished(effect.query, local_filter(effect.items, effect.query), degraded=True, reason=reason)

    if isinstance(effect, ReceiveProgress):
        return effect.job.next_event()

    return None


def _printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()


class Dispatcher:
    """Owns the session state and applies one event at a time."""

    def __init__(
        self,
        settings: Settings,
        registry: ProviderRegistry,
        task_source: TaskSource | None,
        controller: ExecutionController,
        store: SettingsStore,
    ) -> None:
        self.registry = registry
        self.task_source = task_source
        self.controller = controller
        self.store = store
        self.width = 0
        self.height = 0
        self.state = SessionState(settings=settings, switcher=self._switcher_for(settings))

    def _switcher_for(self, settings: Settings, sub: SubPane = SubPane.PROVIDERS) -> SwitcherState:
        return SwitcherState(
            sub=sub,
            provider_cursor=self.registry.index_of(settings.provider),
            model_cursor=self.registry.model_index(settings.provider, settings.model),
        )

    @property
    def window_height(self) -> int:
        return list_window_height(self.height)

    def _set(self, **changes) -> None:
        self.state = replace(self.state, **changes)

    def _status(self, text: str, kind: str = "info") -> None:
        self._set(status=StatusLine(text, kind))

    def startup(self) -> list[Effect]:
        """Effects to run once when the console opens."""
        return [LoadItems(self.task_source, self.state.settings.project_id)]

    def dispatch(self, event: Event) -> list[Effect]:
        if isinstance(event, KeyPressed):
            return self._on_key(event.key)
        if isinstance(event, Resize):
            self.width, self.height = event.width, event.height
            tasks = self.state.tasks.move_cursor(0, self.window_height)
            self._set(tasks=tasks)
            return []
        if isinstance(event, Tick):
            if self.state.loading or self.state.executing:
                self._set(spinner_frame=self.state.spinner_frame + 1)
            return []
        if isinstance(event, ItemsLoaded):
            return self._on_items_loaded(event)
        if isinstance(event, LoadFailed):
            self._set(tasks=self.state.tasks.load(()), loading=False)
            self._status(f"Failed to load tasks: {event.reason}", "err")
            return []
        if isinstance(event, SearchFinished):
            return self._on_search_finished(event)
        if isinstance(event, ProgressReceived):
            self._set(progress_log=self.state.progress_log + (LogLine(event.text),))
            return [ReceiveProgress(event.job)]
        if isinstance(event, ExecutionFinished):
            return self._on_execution_finished(event)
        return []

    # Background results

    def _on_items_loaded(self, event: ItemsLoaded) -> list[Effect]:
        self._set(tasks=self.state.tasks.load(event.items), loading=False)
        if not event.source_available:
            self._status("No task source configured (asana-cli not found)", "err")
        else:
            self._status(f"Loaded {len(event.items)} tasks", "ok")
        return []

    def _on_search_finished(self, event: SearchFinished) -> list[Effect]:
        self._set(tasks=self.state.tasks.show(event.items), loading=False)
        if event.degraded:
            self._status(f"Found {len(event.items)} tasks (local filter: {event.reason})", "info")
        else:
            self._status(f"Found {len(event.items)} tasks", "ok")
        return []

    def _on_execution_finished(self, event: ExecutionFinished) -> list[Effect]:
        outcome = event.outcome
        last_run = replace(self.state.last_run, outcome=outcome) if self.state.last_run else None
        self._set(executing=False, last_run=last_run)
        if outcome.succeeded:
            self._status(f"✅ Task complete, output saved to {outcome.output_path}", "ok")
        elif outcome.bundle is not None:
            self._status(f"Result not saved: {outcome.error}", "err")
        else:
            self._status("Execution failed, press Esc to return", "err")
        return []

    # Keys

    def _on_key(self, key: str) -> list[Effect]:
        if self.state.searching:
            return self._search_key(key)
        if self.state.pane is Pane.SETTINGS and self.state.editor is not None:
            return self._settings_key(key)
        return self._global_key(key)

    def _search_key(self, key: str) -> list[Effect]:
        query = self.state.search_query
        if key == "escape":
            self._set(searching=False, search_query="", pane=Pane.TASKS)
        elif key == "enter":
            query = query.strip()
            self._set(searching=False, search_query="", pane=Pane.TASKS)
            if not query:
                self._set(tasks=self.state.tasks.clear_filter())
                self._status(f"Showing all {len(self.state.tasks.items)} tasks")
                return []
            self._set(loading=True)
            self._status(f"Searching for {query!r}…", "loading")
            return [SearchItems(query, self.state.tasks.items, self.task_source, self.state.settings.workspace_id)]
        elif key == "backspace":
            self._set(search_query=query[:-1])
        elif key == "ctrl+u":
            self._set(search_query="")
        elif _printable(key):
            self._set(search_query=query + key)
        return []

    def _settings_key(self, key: str) -> list[Effect]:
        editor = self.state.editor
        if key == "escape":
            self._set(editor=None, pane=Pane.TASKS)
            self._status("Settings unchanged")
            return []
        if key == "ctrl+s":
            return self._save_settings(editor)
        if key in ("tab", "down"):
            editor = editor.next_field()
        elif key in ("shift+tab", "up"):
            editor = editor.prev_field()
        elif key == "enter":
            editor = editor.confirm()
        elif key == "left":
            editor = editor.cycle(-1)
        elif key == "right":
            editor = editor.cycle(1)
        elif key == "backspace":
            editor = editor.backspace()
        elif key == "ctrl+u":
            editor = editor.clear()
        elif _printable(key):
            editor = editor.insert(key)
        self._set(editor=editor)
        return []

    def _save_settings(self, editor: EditorState) -> list[Effect]:
        old = self.state.settings
        new = editor.commit()
        self._set(settings=new, editor=None, pane=Pane.TASKS, switcher=self._switcher_for(new))
        try:
            self.store.save(new)
        except OSError as e:
            logger.warning(f"Could not save settings: {e}")
            self._status(f"❌ Save failed: {e}", "err")
        else:
            self._status(f"✅ Settings saved to {self.store.path}", "ok")
        if new.project_id != old.project_id:
            self._set(loading=True)
            return [LoadItems(self.task_source, new.project_id)]
        return []

    def _global_key(self, key: str) -> list[Effect]:
        state = self.state
        if key in ("q", "ctrl+c"):
            try:
                self.store.save(state.settings)
            except OSError as e:
                logger.warning(f"Could not save settings on quit: {e}")
            return [Quit()]

        if key in ("l", "L"):
            self._set(pane=Pane.LOG)
            return []

        # Only the log is reachable while an execution runs.
        if state.executing:
            return []

        if key == "escape":
            if state.pane is Pane.TASKS and state.tasks.filtered:
                self._set(tasks=state.tasks.clear_filter())
                self._status(f"Showing all {len(state.tasks.items)} tasks")
            self._set(pane=Pane.TASKS, switcher=replace(state.switcher, sub=SubPane.PROVIDERS))
        elif key == "tab":
            pane, sub = next_pane(state.pane, state.switcher.sub)
            self._set(pane=pane, switcher=replace(state.switcher, sub=sub))
        elif key in ("up", "k"):
            self._move(-1)
        elif key in ("down", "j"):
            self._move(1)
        elif key == "enter":
            return self._select()
        elif key == "/" and state.pane is Pane.TASKS:
            self._set(searching=True, search_query="")
        elif key == "r":
            self._set(loading=True)
            self._status("Refreshing…", "loading")
            return [LoadItems(self.task_source, state.settings.project_id)]
        elif key in ("c", "C"):
            self._set(pane=Pane.SETTINGS, editor=EditorState.open(state.settings, self.registry))
        return []

    def _move(self, delta: int) -> None:
        state = self.state
        if state.pane is Pane.TASKS:
            self._set(tasks=state.tasks.move_cursor(delta, self.window_height))
        elif state.pane is Pane.MODELS:
            sw = state.switcher
            if sw.sub is SubPane.PROVIDERS:
                cursor = min(max(sw.provider_cursor + delta, 0), len(self.registry) - 1)
                self._set(switcher=replace(sw, provider_cursor=cursor))
            else:
                models = self.registry[sw.provider_cursor].models
                cursor = min(max(sw.model_cursor + delta, 0), len(models) - 1)
                self._set(switcher=replace(sw, model_cursor=cursor))

    def _select(self) -> list[Effect]:
        state = self.state
        if state.pane is Pane.TASKS:
            return self._start_execution()
        if state.pane is Pane.MODELS:
            sw = state.switcher
            if sw.sub is SubPane.PROVIDERS:
                self._set(switcher=replace(sw, sub=SubPane.MODELS, model_cursor=0))
            else:
                provider = self.registry[sw.provider_cursor]
                model = provider.models[sw.model_cursor]
                self._set(settings=replace(state.settings, provider=provider.id, model=model))
                self._status(f"✅ Switched to {provider.name} / {model}", "ok")
        return []

    def _start_execution(self) -> list[Effect]:
        state = self.state
        item = state.tasks.selected
        if item is None:
            self._status("No task selected", "err")
            return []
        settings = state.settings
        provider = self.registry.get(settings.provider)
        request = ExecutionRequest(
            item=item,
            provider_id=settings.provider,
            model=settings.model,
            api_key=get_api_key(settings, provider or settings.provider),
            output_dir=settings.output_dir,
            task_description=format_task_markdown(item),
        )
        try:
            job = self.controller.start(request)
        except ConfigurationError as e:
            self._status(str(e), "err")
            return []
        except ExecutionBusyError:
            return []
        self._set(
            pane=Pane.LOG,
            executing=True,
            progress_log=(),
            last_run=RunSummary(item.name, settings.provider, settings.model),
        )
        self._status("Running in YOLO mode...", "loading")
        return [ReceiveProgress(job)]
