"""Render composer: session snapshot + terminal size → one styled frame.

``compose_frame`` is a pure function. The returned Text always has exactly
``height`` lines of exactly ``width`` cells, colours come only from the
theme argument, and the same inputs always give the same frame.
"""

import io

from rich.cells import cell_len
from rich.console import Console
from rich.spinner import Spinner
from rich.style import Style
from rich.text import Text

from .layout import MIN_HEIGHT, MIN_WIDTH, ViewKind, main_layout, select_view
from .models import LogLine, WorkItem
from .output import preview
from .providers import ProviderRegistry
from .settings_editor import EditorState
from .state import Pane, SessionState, SubPane
from .themes import Theme

SPINNER_FRAMES = Spinner("dots").frames

_STATUS_ROLES = {"info": "muted", "ok": "green", "err": "red", "loading": "yellow"}
_LOG_ROLES = {"info": "text", "ok": "green", "err": "red", "dim": "muted"}

# Only used for word wrapping; never printed to.
_wrap_console = Console(file=io.StringIO(), width=200, color_system=None)


def _clean(s: str) -> str:
    return s.replace("\r", "").replace("\n", " ").replace("\t", " ")


def _fit(content: "Text | str", width: int, style: "Style | str" = "") -> Text:
    """Exactly ``width`` cells: truncated with … or padded with spaces."""
    if width <= 0:
        return Text()
    text = Text(_clean(content), style=style) if isinstance(content, str) else content.copy()
    text.truncate(width, overflow="ellipsis", pad=True)
    return text


def _center(content: str, width: int, style: "Style | str" = "") -> Text:
    left = max((width - cell_len(content)) // 2, 0)
    return _fit(" " * left + content, width, style)


def _spinner(frame: int) -> str:
    return SPINNER_FRAMES[frame % len(SPINNER_FRAMES)]


def _wrap(s: str, width: int) -> list[Text]:
    if width <= 0:
        return []
    return list(Text(s.replace("\t", " ")).wrap(_wrap_console, width, justify="left"))


def _panel(title: str, body: list[Text], width: int, height: int, active: bool, theme: Theme) -> list[Text]:
    """A rounded box of exactly width x height with ``body`` inside."""
    if height < 2 or width < 2:
        return [_fit("", width) for _ in range(max(height, 0))]
    border = theme.style("accent" if active else "border", bold=active)
    inner = width - 2

    head = Text.assemble(("╭─", border), (f" {_clean(title)} ", theme.style("accent" if active else "muted", bold=True)))
    if head.cell_len > width - 1:
        head.truncate(width - 1, overflow="ellipsis")
    head.append("─" * (width - 1 - head.cell_len) + "╮", style=border)

    rows = body[: height - 2]
    rows += [Text()] * (height - 2 - len(rows))
    lines = [head]
    for row in rows:
        lines.append(Text.assemble(("│", border), _fit(row, inner), ("│", border)))
    lines.append(Text("╰" + "─" * inner + "╯", style=border))
    return lines


# Main view


def _task_row(item: WorkItem, selected: bool, focused: bool, theme: Theme) -> Text:
    row = Text(f" {item.status_icon} {item.priority_icon} ")
    row.append(_clean(item.name), style=theme.style("muted" if item.completed else "text"))
    if selected:
        row.stylize(theme.highlight if focused else Style(bgcolor=theme.surface, bold=True))
    return row


def _task_panel(state: SessionState, width: int, height: int, theme: Theme) -> list[Text]:
    tasks = state.tasks
    rows = max(height - 3, 0)
    active = state.pane is Pane.TASKS
    title = f"Tasks ({len(tasks.visible)})"
    if tasks.filtered:
        title = f"Tasks ({len(tasks.visible)} of {len(tasks.items)})"

    if len(tasks.visible) > rows > 0:
        end = min(tasks.scroll + rows, len(tasks.visible))
        pct = end * 100 // len(tasks.visible)
        sub = Text(f" {tasks.scroll + 1}-{end} of {len(tasks.visible)}  {pct}%", style=theme.style("muted"))
    else:
        sub = Text(" status  name", style=theme.style("muted"))
    body = [sub]

    if not tasks.visible:
        if state.loading:
            body.append(Text(f" {_spinner(state.spinner_frame)} Loading tasks…", style=theme.style("yellow")))
        elif tasks.filtered:
            body.append(Text(" No matching tasks. Esc shows all.", style=theme.style("muted")))
        else:
            body.append(Text(" No tasks.", style=theme.style("muted")))
    else:
        for i in range(tasks.scroll, min(tasks.scroll + rows, len(tasks.visible))):
            body.append(_task_row(tasks.visible[i], i == tasks.cursor, active, theme))
    return _panel(title, body, width, height, active, theme)


def _detail_panel(state: SessionState, width: int, height: int, theme: Theme) -> list[Text]:
    item = state.tasks.selected
    inner = width - 2
    if item is None:
        body = [Text(" Select a task to see its details.", style=theme.style("muted"))]
        return _panel("Details", body, width, height, False, theme)

    label = theme.style("muted")

    def field(name: str, value: str, role: str = "text") -> Text:
        return Text.assemble((f" {name:<9}", label), (_clean(value), theme.style(role)))

    body = [
        Text(" " + _clean(item.name), style=theme.style("accent", bold=True)),
        field("ID", item.id),
        field("Status", "Complete" if item.completed else "Incomplete", "green" if item.completed else "yellow"),
    ]
    if item.priority:
        body.append(field("Priority", f"{item.priority_icon} {item.priority}"))
    if item.due_date:
        body.append(field("Due", item.due_date))
    if item.assignee:
        body.append(field("Assignee", item.assignee))
    if item.tags:
        body.append(field("Tags", ", ".join(item.tags)))
    if item.notes:
        body.append(Text())
        for line in _wrap(item.notes, inner - 1):
            body.append(Text.assemble(" ", line))
    return _panel("Details", body, width, height, False, theme)


def _switcher_panel(state: SessionState, registry: ProviderRegistry, width: int, height: int, theme: Theme) -> list[Text]:
    sw = state.switcher
    active = state.pane is Pane.MODELS
    rows = max(height - 2, 0)
    settings = state.settings
    body: list[Text] = []

    if sw.sub is SubPane.PROVIDERS:
        title = "Model › Providers"
        entries = [(p.name, p.id == settings.provider) for p in registry]
        cursor = sw.provider_cursor
    else:
        provider = registry[sw.provider_cursor]
        title = f"Model › {provider.name}"
        entries = [(m, provider.id == settings.provider and m == settings.model) for m in provider.models]
        cursor = sw.model_cursor

    start = max(cursor - rows + 1, 0) if rows else 0
    for i, (name, current) in enumerate(entries[start : start + rows], start=start):
        marker = "▶ " if current else "  "
        row = Text.assemble((f" {marker}", theme.style("green")), (name, theme.style("text")))
        if active and i == cursor:
            row.stylize(theme.highlight)
        body.append(row)
    return _panel(title, body, width, height, active, theme)


def _log_lines(state: SessionState, width: int, theme: Theme) -> list[Text]:
    run = state.last_run
    if run is None:
        return [Text(" No execution yet. Select a task and press Enter.", style=theme.style("muted"))]

    lines = [
        Text.assemble((" Executing: ", theme.style("muted")), (_clean(run.item_name), theme.style("accent", bold=True))),
        Text.assemble((" Provider:  ", theme.style("muted")), (f"{run.provider_id} / {run.model}", theme.style("text"))),
        Text(),
    ]
    for entry in state.progress_log:
        lines.append(_log_line(entry, theme))

    if state.executing:
        lines.append(Text(f" {_spinner(state.spinner_frame)} Working…", style=theme.style("yellow")))
        return lines

    outcome = run.outcome
    if outcome is None:
        return lines
    lines.append(Text())
    if outcome.succeeded:
        lines.append(Text(" ✅ Done", style=theme.style("green", bold=True)))
        lines.append(Text.assemble((" Output: ", theme.style("muted")), (str(outcome.output_path), theme.style("text"))))
    else:
        lines.append(Text(f" ❌ {_clean(outcome.error or '')}", style=theme.style("red", bold=True)))
    if outcome.bundle is not None:
        lines.append(Text())
        for text in preview(outcome.bundle).splitlines():
            for wrapped in _wrap(text, width - 1):
                lines.append(Text.assemble(" ", wrapped))
    return lines


def _log_line(entry: LogLine, theme: Theme) -> Text:
    return Text.assemble((" › ", theme.style("muted")), (_clean(entry.text), theme.style(_LOG_ROLES.get(entry.kind, "text"))))


def _log_panel(state: SessionState, width: int, height: int, theme: Theme) -> list[Text]:
    lines = _log_lines(state, width - 2, theme)
    rows = max(height - 2, 0)
    if len(lines) > rows:
        lines = lines[len(lines) - rows :]
    return _panel("Execution Log", lines, width, height, state.pane is Pane.LOG, theme)


def _header(state: SessionState, width: int, theme: Theme) -> Text:
    left = Text(" ⚡ task-agent ", style=theme.style("accent", bold=True))
    left.append("· YOLO mode", style=theme.style("muted"))
    right = Text(f"{state.settings.provider} / {state.settings.model} ", style=theme.style("text"))
    gap = width - left.cell_len - right.cell_len
    if gap < 1:
        return _fit(left, width)
    return Text.assemble(left, " " * gap, right)


def _status_bar(state: SessionState, width: int, theme: Theme) -> Text:
    status = state.status
    prefix = f" {_spinner(state.spinner_frame)} " if status.kind == "loading" else " "
    return _fit(prefix + _clean(status.text), width, theme.style(_STATUS_ROLES.get(status.kind, "muted")))


def _keybinds(state: SessionState) -> str:
    if state.executing:
        return " Executing…  l log · q quit"
    if state.pane is Pane.MODELS:
        return " ↑↓ move · Enter select · Tab pane · Esc back · q quit"
    if state.pane is Pane.LOG:
        return " Tab pane · Esc back · c config · q quit"
    return " ↑↓/jk navigate · Enter execute · Tab pane · / search · r refresh · c config · l log · q quit"


def _main_view(state: SessionState, width: int, height: int, registry: ProviderRegistry, theme: Theme) -> list[Text]:
    geo = main_layout(width, height)
    left = _task_panel(state, geo.left_width, geo.body_height, theme)
    if state.pane is Pane.LOG:
        right = _log_panel(state, geo.right_width, geo.body_height, theme)
    else:
        right = _detail_panel(state, geo.right_width, geo.detail_height, theme)
        right += _switcher_panel(state, registry, geo.right_width, geo.switcher_height, theme)

    lines = [_header(state, width, theme)]
    lines += [Text.assemble(a, b) for a, b in zip(left, right)]
    lines.append(_status_bar(state, width, theme))
    lines.append(_fit(_keybinds(state), width, theme.style("muted")))
    return lines


# Full-screen views


def _option_value(editor: EditorState, index: int) -> str:
    opts = editor.options(index)
    if not opts:
        return "(none)"
    return f"◀ {opts[editor.choices[index]]} ▶"


def _tail(value: str, width: int) -> str:
    """Keep the end of ``value`` so a trailing cursor stays visible."""
    if width <= 0 or cell_len(value) <= width:
        return value
    while value and cell_len(value) > width - 1:
        value = value[1:]
    return "…" + value


def _settings_view(state: SessionState, width: int, height: int, theme: Theme) -> list[Text]:
    editor = state.editor
    label_w = max(len(f.label) for f in editor.fields) + 2
    value_w = width - 2 - 3 - label_w
    rows = []

    for i, f in enumerate(editor.fields):
        focused = i == editor.focus
        marker = " › " if focused else "   "
        if f.is_option:
            value, role = _option_value(editor, i), "accent"
        else:
            raw = editor.values[i]
            if not raw and not focused:
                value, role = "(not set)", "muted"
            else:
                value, role = ("•" * min(len(raw), 24) if f.secret else raw), "text"
            if focused:
                value = _tail(_clean(value) + "█", value_w)
        row = Text.assemble((marker, theme.style("accent", bold=True)), (f"{f.label:<{label_w}}", theme.style("muted")), (_clean(value), theme.style(role)))
        if focused:
            row.stylize(Style(bgcolor=theme.surface))
        rows.append(row)

    # Hint and models note take two rows each; the fields scroll between them.
    window = max(height - 3 - 4, 1)
    start = max(editor.focus - window + 1, 0)

    model_index = next(i for i, f in enumerate(editor.fields) if f.key == "model")
    body = [Text(" Tab/Shift-Tab navigate · Enter confirm · ←/→ cycle · Ctrl-S save all · Esc cancel", style=theme.style("muted")), Text()]
    body += rows[start : start + window]
    body.append(Text())
    body.append(
        Text(f"   Available models: {', '.join(editor.options(model_index))}", style=theme.style("muted"))
    )
    lines = _panel("⚙ Configuration", body, width, height - 1, True, theme)
    lines.append(_status_bar(state, width, theme))
    return lines


def _search_view(state: SessionState, width: int, height: int, theme: Theme) -> list[Text]:
    box_w = min(60, width - 4)
    box_h = 5
    top = (height - box_h) // 2
    left = (width - box_w) // 2
    body = [
        Text.assemble((" 🔍 ", theme.style("accent")), (_clean(state.search_query) + "█", theme.style("text"))),
        Text(" Enter search · Esc cancel · empty query shows all", style=theme.style("muted")),
    ]
    box = _panel("Search tasks", body, box_w, box_h, True, theme)
    lines = [_fit("", width) for _ in range(height)]
    for i, row in enumerate(box):
        lines[top + i] = Text.assemble(" " * left, row, " " * (width - left - box_w))
    return lines


def _resize_view(width: int, height: int, theme: Theme) -> list[Text]:
    lines = [_fit("", width) for _ in range(height)]
    lines[height // 2] = _center(
        f"Terminal too small, please resize! (need {MIN_WIDTH}x{MIN_HEIGHT}, have {width}x{height})",
        width,
        theme.style("yellow", bold=True),
    )
    return lines


def compose_frame(state: SessionState, width: int, height: int, registry: ProviderRegistry, theme: Theme) -> Text:
    """Render the whole screen for one snapshot."""
    view = select_view(state, width, height)
    if view is ViewKind.INITIALIZING:
        return Text()
    if view is ViewKind.RESIZE:
        lines = _resize_view(width, height, theme)
    elif view is ViewKind.SEARCH:
        lines = _search_view(state, width, height, theme)
    elif view is ViewKind.SETTINGS:
        lines = _settings_view(state, width, height, theme)
    else:
        lines = _main_view(state, width, height, registry, theme)

    frame = Text("\n", style=theme.base).join(lines)
    frame.style = theme.base
    return frame
