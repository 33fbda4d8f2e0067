"""CLI entry point for task-agent."""

import json
import logging
from dataclasses import replace
from logging.handlers import RotatingFileHandler
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Settings, SettingsStore, get_api_key
from .dispatcher import Dispatcher
from .engine import EngineError, ExecutionEngine
from .execution import ExecutionController
from .output import preview, write_output
from .providers import ProviderRegistry
from .tasks import TaskSource, TaskSourceError, find_cli, format_task_markdown
from .themes import THEME_NAMES
from .tui import TaskAgentApp

console = Console()

LOG_FILE = Path.home() / ".cache" / "task-agent" / "debug.log"


def setup_logging(debug_logging: bool) -> None:
    """Configure logging once (opt-in debug logging to a rotating file)."""
    if debug_logging:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
        )
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            handlers=[handler],
        )
        logging.info("task-agent starting (debug logging enabled)")
    else:
        # Default: only warn+ so TUI stays clean
        logging.basicConfig(
            level=logging.WARNING,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(1)


def _task_source(settings: Settings, required: bool = True) -> TaskSource | None:
    path = find_cli(settings.cli_path)
    if path is None:
        if required:
            _fail("asana-cli not found in PATH or common locations (set cli_path in the config file)")
        return None
    return TaskSource(path)


@click.group(invoke_without_command=True)
@click.option("--debug-logging/--no-debug-logging", default=None, help="Enable debug logging to file")
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def main(ctx: click.Context, debug_logging: bool | None, version: bool) -> None:
    """task-agent - YOLO AI task executor for Asana."""
    if version:
        console.print(f"task-agent v{__version__}")
        ctx.exit()

    store = SettingsStore()
    settings = store.load()
    if debug_logging is not None:
        settings = replace(settings, debug_logging=debug_logging)
    setup_logging(settings.debug_logging)
    ctx.obj = {"store": store, "settings": settings}

    # If no subcommand, run the main TUI
    if ctx.invoked_subcommand is None:
        run_tui(store, settings)


def run_tui(store: SettingsStore, settings: Settings) -> None:
    """Build the console and run it until the user quits."""
    registry = ProviderRegistry()
    controller = ExecutionController(ExecutionEngine, registry, sink=write_output)
    dispatcher = Dispatcher(settings, registry, _task_source(settings, required=False), controller, store)
    try:
        TaskAgentApp(dispatcher, registry).run()
    except KeyboardInterrupt:
        pass
    finally:
        controller.shutdown()
        console.print("\n[dim]Goodbye![/dim]")


@main.command()
@click.pass_obj
def tui(obj: dict) -> None:
    """Launch the interactive console (default)."""
    run_tui(obj["store"], obj["settings"])


@main.command()
@click.argument("task_id")
@click.option("--provider", "-p", help="AI provider id")
@click.option("--model", "-m", help="Model name")
@click.option("--output", "-o", "output_dir", help="Output directory")
@click.pass_obj
def run(obj: dict, task_id: str, provider: str | None, model: str | None, output_dir: str | None) -> None:
    """Execute a single task by id without the console."""
    settings: Settings = obj["settings"]
    registry = ProviderRegistry()

    provider_id = provider or settings.provider
    prov = registry.get(provider_id)
    if prov is None:
        _fail(f"Unknown provider '{provider_id}' (choose from {', '.join(registry.ids)})")
    if model is None:
        model = settings.model if provider_id == settings.provider else prov.default_model
    api_key = get_api_key(settings, prov)
    if prov.requires_key and not api_key:
        _fail(f"No API key for {prov.name}: set {prov.env_key} or run task-agent config")

    source = _task_source(settings)
    console.print(f"🔍 Fetching task {task_id}...")
    try:
        item = source.view_item(task_id)
    except TaskSourceError as e:
        _fail(str(e))

    console.print(f"🤖 Provider : [cyan]{provider_id} / {model}[/cyan]")
    console.print(f"📋 Task     : [bold]{item.name}[/bold]")
    console.print("⚡ Running in YOLO mode...\n")

    engine = ExecutionEngine(prov, model, api_key)
    try:
        bundle = engine.execute(format_task_markdown(item), lambda msg: console.print(f" → {msg}", markup=False))
    except EngineError as e:
        _fail(str(e))

    try:
        path = write_output(bundle, item, output_dir or settings.output_dir)
    except OSError as e:
        _fail(f"Could not write output: {e}")
    console.print(f"\n[green]✅ Saved to:[/green] {path}\n")
    console.print(preview(bundle), markup=False)


@main.command(name="list")
@click.option("--project", "-P", "project_id", help="Project id")
@click.option("--json", "as_json", is_flag=True, help="JSON output")
@click.pass_obj
def list_tasks(obj: dict, project_id: str | None, as_json: bool) -> None:
    """List tasks in a project."""
    settings: Settings = obj["settings"]
    source = _task_source(settings)
    try:
        items = source.list_items(project_id or settings.project_id)
    except TaskSourceError as e:
        _fail(str(e))
    _print_items(items, as_json)


@main.command()
@click.argument("query")
@click.option("--workspace", "-w", "workspace_id", help="Workspace id")
@click.option("--json", "as_json", is_flag=True, help="JSON output")
@click.pass_obj
def search(obj: dict, query: str, workspace_id: str | None, as_json: bool) -> None:
    """Search tasks in a workspace."""
    settings: Settings = obj["settings"]
    workspace_id = workspace_id or settings.workspace_id
    if not workspace_id:
        _fail("No workspace configured (use --workspace or set workspace_id)")
    source = _task_source(settings)
    try:
        items = source.search_items(workspace_id, query)
    except TaskSourceError as e:
        _fail(str(e))
    _print_items(items, as_json)


@main.command()
@click.argument("task_id")
@click.pass_obj
def complete(obj: dict, task_id: str) -> None:
    """Mark a task as done."""
    source = _task_source(obj["settings"])
    try:
        source.complete_item(task_id)
    except TaskSourceError as e:
        _fail(str(e))
    console.print(f"[green]✅ Completed task {task_id}[/green]")


def _print_items(items, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([it.to_dict() for it in items], indent=2))
        return
    if not items:
        console.print("No tasks found.")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Done")
    table.add_column("Priority")
    table.add_column("Name")
    for it in items:
        table.add_row(it.id, "✅" if it.completed else "", it.priority, it.name)
    console.print(table)


@main.command()
@click.pass_obj
def providers(obj: dict) -> None:
    """List available AI providers and models."""
    settings: Settings = obj["settings"]
    for prov in ProviderRegistry():
        if not prov.requires_key:
            status = "[green]local (no key needed)[/green]"
        elif get_api_key(settings, prov):
            status = "[green]key found[/green]"
        else:
            status = "[red]no key[/red]"
        console.print(f"\n📦 [bold]{prov.name}[/bold] ({prov.id})  {status}")
        if prov.env_key:
            console.print(f"   Env: [dim]{prov.env_key}[/dim]")
        for m in prov.models:
            current = prov.id == settings.provider and m == settings.model
            marker = "[green]▶[/green]" if current else " "
            console.print(f"     {marker} {m}")
    console.print()


@main.command()
@click.option("--provider", "-p", type=click.Choice(ProviderRegistry().ids), help="AI provider")
@click.option("--model", "-m", help="Model name")
@click.option("--output", "-o", "output_dir", help="Output directory")
@click.option("--workspace", "-w", "workspace_id", help="Workspace id")
@click.option("--project", "-P", "project_id", help="Project id")
@click.option("--theme", type=click.Choice(THEME_NAMES), help="Colour theme")
@click.option("--show", is_flag=True, help="Show current configuration")
@click.pass_obj
def config(
    obj: dict,
    provider: str | None,
    model: str | None,
    output_dir: str | None,
    workspace_id: str | None,
    project_id: str | None,
    theme: str | None,
    show: bool,
) -> None:
    """Configure task-agent settings.

    Examples:
      task-agent config --provider openai               # Switch provider (default model)
      task-agent config -p groq -m llama-3.1-8b-instant # Provider and model
      task-agent config --theme dracula                 # Set colour theme
      task-agent config --show                          # Show current config
    """
    store: SettingsStore = obj["store"]
    registry = ProviderRegistry()

    if show or not any((provider, model, output_dir, workspace_id, project_id, theme)):
        current = store.read()
        console.print("\n[bold]Current Configuration:[/bold]")
        console.print(f"  Workspace ID: [cyan]{current.workspace_id or '(not set)'}[/cyan]")
        console.print(f"  Project ID:   [cyan]{current.project_id or '(not set)'}[/cyan]")
        console.print(f"  Provider:     [cyan]{current.provider}[/cyan]")
        console.print(f"  Model:        [cyan]{current.model}[/cyan]")
        console.print(f"  Output dir:   [cyan]{current.output_dir}[/cyan]")
        console.print(f"  Theme:        [cyan]{current.theme}[/cyan]")
        console.print(f"  Debug:        [cyan]{current.debug_logging}[/cyan]")
        console.print(f"\nConfig file: [dim]{store.path}[/dim]")
        if not show:
            console.print("Use --provider/--model/--theme to change settings, or press c in the console.")
        return

    current = store.read()
    changes: dict = {}
    if provider:
        changes["provider"] = provider
        changes["model"] = registry.default_model(provider)
    if model:
        target = registry.get(changes.get("provider", current.provider))
        if target is not None and model not in target.models:
            _fail(f"{target.name} has no model '{model}' (choose from {', '.join(target.models)})")
        changes["model"] = model
    for key, value in (
        ("output_dir", output_dir),
        ("workspace_id", workspace_id),
        ("project_id", project_id),
        ("theme", theme),
    ):
        if value:
            changes[key] = value

    new = replace(current, **changes)
    try:
        store.save(new)
    except OSError as e:
        _fail(f"Could not save config: {e}")
    console.print("\n[green]Configuration saved![/green]")
    console.print(f"  Provider: [cyan]{new.provider} / {new.model}[/cyan]")
    console.print(f"\nSaved to: [dim]{store.path}[/dim]")


if __name__ == "__main__":
    main()
