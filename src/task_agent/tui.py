"""Textual host for the task-agent console.

The app owns no state of its own. Keys, ticks, resizes and background
results are turned into dispatcher events; after each one the whole screen
is re-rendered from the dispatcher's snapshot.
"""

from __future__ import annotations

import logging
from functools import partial

from textual import events, on
from textual.app import App, ComposeResult
from textual.css.query import NoMatches
from textual.message import Message
from textual.widgets import Static

from .dispatcher import Dispatcher, Effect, Event, KeyPressed, Quit, Resize, Tick, run_effect
from .providers import ProviderRegistry
from .render import compose_frame
from .themes import theme_by_name

logger = logging.getLogger(__name__)

TICK_INTERVAL = 0.1

CSS = """
Screen {
    overflow: hidden;
}

ConsoleView {
    width: 100%;
    height: 100%;
}
"""


def normalize_key(event: events.Key) -> str:
    """Printable keys by character, everything else by Textual's key name."""
    if event.character and len(event.character) == 1 and event.character.isprintable():
        return event.character
    return event.key


class ConsoleView(Static, can_focus=True):
    """Single widget that shows the composed frame and receives all keys."""

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.app.handle_key(normalize_key(event))


class TaskAgentApp(App):
    """Textual TUI for task-agent."""

    CSS = CSS
    ENABLE_COMMAND_PALETTE = False

    # Custom message for thread-safe updates
    class BackgroundEvent(Message):
        """Posted from a worker thread when an effect produces an event."""

        def __init__(self, event: Event) -> None:
            super().__init__()
            self.event = event

    def __init__(self, dispatcher: Dispatcher, registry: ProviderRegistry) -> None:
        super().__init__()
        self.dispatcher = dispatcher
        self.registry = registry

    def compose(self) -> ComposeResult:
        yield ConsoleView(id="console")

    def on_mount(self) -> None:
        self.query_one("#console", ConsoleView).focus()
        self.feed(Resize(self.size.width, self.size.height))
        self._run_effects(self.dispatcher.startup())
        self.set_interval(TICK_INTERVAL, self._tick)

    def on_resize(self, event: events.Resize) -> None:
        self.feed(Resize(event.size.width, event.size.height))

    def on_unmount(self) -> None:
        self.dispatcher.controller.shutdown()

    def _tick(self) -> None:
        self.feed(Tick())

    def handle_key(self, key: str) -> None:
        self.feed(KeyPressed(key))

    @on(BackgroundEvent)
    def handle_background_event(self, message: BackgroundEvent) -> None:
        """Apply a background result on the main thread."""
        self.feed(message.event)

    def feed(self, event: Event) -> None:
        """Dispatch one event, start its effects, repaint."""
        effects = self.dispatcher.dispatch(event)
        self.paint()
        self._run_effects(effects)

    def _run_effects(self, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, Quit):
                self.exit()
                return
            self.run_worker(partial(self._perform, effect), thread=True, exit_on_error=False)

    def _perform(self, effect: Effect) -> None:
        """Worker thread: run a blocking effect and post its event back."""
        event = run_effect(effect)
        logger.debug("%s -> %s", type(effect).__name__, type(event).__name__)
        if event is not None:
            self.post_message(self.BackgroundEvent(event))

    def paint(self) -> None:
        d = self.dispatcher
        try:
            view = self.query_one("#console", ConsoleView)
        except NoMatches:
            return
        frame = compose_frame(d.state, d.width, d.height, self.registry, theme_by_name(d.state.settings.theme))
        frame.no_wrap = True
        frame.overflow = "crop"
        view.update(frame)
