"""Tests for the render composer."""

from dataclasses import replace

import pytest
from rich.cells import cell_len

from task_agent.config import Settings
from task_agent.layout import ViewKind, list_window_height, main_layout, select_view
from task_agent.models import ArtifactBundle, ExecutionOutcome, LogLine, OutputFile, RunSummary, WorkItem
from task_agent.providers import ProviderRegistry
from task_agent.render import compose_frame
from task_agent.settings_editor import EditorState
from task_agent.state import Pane, SessionState, TaskListState
from task_agent.themes import THEMES, theme_by_name

REGISTRY = ProviderRegistry()
DARK = theme_by_name("dark")


def _state(**kwargs) -> SessionState:
    items = (
        WorkItem(id="1", name="Refactor the payment module", priority="high", notes="Split into services."),
        WorkItem(id="2", name="Write release notes", completed=True, tags=("docs",)),
        WorkItem(id="3", name="任务: 处理国际化字符串和宽字符" * 3, due_date="2025-01-31", assignee="Sam"),
    )
    base = SessionState(tasks=TaskListState().load(items), loading=False)
    return replace(base, **kwargs)


def _assert_dimensions(frame, width, height):
    lines = frame.plain.split("\n")
    assert len(lines) == height
    for line in lines:
        assert cell_len(line) == width, repr(line)


def _running_state() -> SessionState:
    bundle = ArtifactBundle(summary="Did it", files=(OutputFile("a.md", "x", "first"),), notes="n")
    return _state(
        pane=Pane.LOG,
        last_run=RunSummary("Refactor the payment module", "anthropic", "claude-sonnet-4-6",
                            ExecutionOutcome(bundle=bundle, output_path=None)),
        progress_log=(LogLine("Calling anthropic / claude-sonnet-4-6…"), LogLine("Parsing response…")),
    )


class TestDimensions:
    @pytest.mark.parametrize("size", [(60, 10), (80, 24), (120, 30), (203, 51)])
    def test_main_view(self, size):
        _assert_dimensions(compose_frame(_state(), *size, REGISTRY, DARK), *size)

    @pytest.mark.parametrize("pane", [Pane.TASKS, Pane.MODELS, Pane.LOG])
    def test_every_pane(self, pane):
        _assert_dimensions(compose_frame(_state(pane=pane), 100, 20, REGISTRY, DARK), 100, 20)

    def test_log_view(self):
        frame = compose_frame(_running_state(), 90, 25, REGISTRY, DARK)
        _assert_dimensions(frame, 90, 25)
        assert "Parsing response…" in frame.plain
        assert "Executing: Refactor" in frame.plain

    def test_settings_view(self):
        settings = Settings(api_keys={"anthropic": "sk-very-secret"})
        state = _state(pane=Pane.SETTINGS, editor=EditorState.open(settings, REGISTRY))
        frame = compose_frame(state, 80, 24, REGISTRY, DARK)
        _assert_dimensions(frame, 80, 24)
        assert "Configuration" in frame.plain
        assert "sk-very-secret" not in frame.plain
        assert "(not set)" in frame.plain

    def test_search_view(self):
        frame = compose_frame(_state(searching=True, search_query="pay"), 80, 24, REGISTRY, DARK)
        _assert_dimensions(frame, 80, 24)
        assert "pay█" in frame.plain

    def test_empty_list(self):
        state = SessionState(loading=False)
        frame = compose_frame(state, 70, 12, REGISTRY, DARK)
        _assert_dimensions(frame, 70, 12)
        assert "No tasks." in frame.plain


class TestViews:
    @pytest.mark.parametrize("size", [(59, 30), (120, 9), (10, 3)])
    def test_too_small_shows_resize_notice(self, size):
        frame = compose_frame(_state(), *size, REGISTRY, DARK)
        _assert_dimensions(frame, *size)
        assert select_view(_state(), *size) is ViewKind.RESIZE

    def test_resize_message_text(self):
        assert "Terminal too small" in compose_frame(_state(), 59, 20, REGISTRY, DARK).plain

    def test_zero_size_is_initializing(self):
        assert select_view(_state(), 0, 0) is ViewKind.INITIALIZING
        assert compose_frame(_state(), 0, 0, REGISTRY, DARK).plain == ""

    def test_search_takes_over_any_pane(self):
        assert select_view(_state(pane=Pane.LOG, searching=True), 80, 24) is ViewKind.SEARCH


class TestLayout:
    @pytest.mark.parametrize("width", [60, 61, 99, 100, 157])
    def test_columns_fill_width(self, width):
        geo = main_layout(width, 30)
        assert geo.left_width + geo.right_width == width
        assert geo.detail_height + geo.switcher_height == geo.body_height == 27

    def test_list_window(self):
        assert list_window_height(30) == 24


class TestContent:
    def test_idempotent(self):
        state = _running_state()
        a = compose_frame(state, 100, 30, REGISTRY, DARK)
        b = compose_frame(state, 100, 30, REGISTRY, DARK)
        assert a.plain == b.plain
        assert a.spans == b.spans

    def test_long_names_truncated_with_ellipsis(self):
        frame = compose_frame(_state(), 80, 24, REGISTRY, DARK)
        assert "…" in frame.plain
        _assert_dimensions(frame, 80, 24)

    def test_current_provider_marked(self):
        frame = compose_frame(_state(pane=Pane.MODELS), 100, 30, REGISTRY, DARK)
        assert "▶ Anthropic" in frame.plain
        assert "Model › Providers" in frame.plain

    def test_detail_shows_selected_item(self):
        frame = compose_frame(_state(), 120, 30, REGISTRY, DARK)
        assert "Refactor the payment module" in frame.plain
        assert "Split into services." in frame.plain
        assert "Incomplete" in frame.plain

    def test_theme_changes_styles_not_text(self):
        state = _state()
        frames = [compose_frame(state, 100, 30, REGISTRY, theme) for theme in THEMES]
        assert len({f.plain for f in frames}) == 1
        assert frames[0].style != frames[1].style

    def test_unknown_theme_falls_back_to_dark(self):
        assert theme_by_name("nope") is DARK


class TestSettingsView:
    def _editor_state(self, focus: int, **settings) -> SessionState:
        editor = replace(EditorState.open(Settings(**settings), REGISTRY), focus=focus)
        return _state(pane=Pane.SETTINGS, editor=editor)

    @pytest.mark.parametrize("height", [10, 12, 16])
    def test_focused_field_visible_on_short_terminals(self, height):
        editor = EditorState.open(Settings(), REGISTRY)
        for focus, field in enumerate(editor.fields):
            frame = compose_frame(self._editor_state(focus), 80, height, REGISTRY, DARK)
            _assert_dimensions(frame, 80, height)
            assert field.label in frame.plain

    def test_long_focused_value_keeps_cursor(self):
        state = self._editor_state(0, workspace_id="1" * 200)
        frame = compose_frame(state, 70, 20, REGISTRY, DARK)
        _assert_dimensions(frame, 70, 20)
        row = next(line for line in frame.plain.split("\n") if "Workspace ID" in line)
        assert "█" in row
        assert "…" in row
