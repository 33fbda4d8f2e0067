"""Task source: wraps the asana-cli binary to fetch and manage tasks."""

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any

from .models import WorkItem

logger = logging.getLogger(__name__)

CLI_NAME = "asana-cli"
CLI_TIMEOUT = 30


class TaskSourceError(Exception):
    """asana-cli failed, timed out, or returned an unsuccessful response."""


def find_cli(path: str = "") -> str | None:
    """Locate the asana-cli binary.

    An explicit path wins; otherwise PATH, then a couple of common
    checkout locations. Returns None when nothing is found.
    """
    if path:
        return path if os.path.isfile(path) else None
    found = shutil.which(CLI_NAME)
    if found:
        return found
    for candidate in (
        Path.home() / "Developer" / "cmdln_dev" / "asana_cli-copilot" / CLI_NAME,
        Path.cwd() / CLI_NAME,
    ):
        if candidate.is_file():
            return str(candidate)
    return None


class TaskSource:
    """Runs asana-cli subcommands and decodes their JSON envelope.

    Every command is invoked with ``--json`` and answers with
    ``{"success": bool, "data": ..., "error": str}``.
    """

    def __init__(self, cli_path: str) -> None:
        self.cli_path = cli_path

    def _run(self, *args: str) -> Any:
        cmd = [self.cli_path, *args, "--json"]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=CLI_TIMEOUT)
        except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
            raise TaskSourceError(f"{CLI_NAME} failed: {e}") from e
        if result.returncode != 0:
            raise TaskSourceError(f"{CLI_NAME} error: {result.stderr.strip() or result.returncode}")
        try:
            resp = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise TaskSourceError(f"{CLI_NAME} returned invalid JSON: {e}") from e
        if not isinstance(resp, dict):
            raise TaskSourceError(f"{CLI_NAME} returned an unexpected response")
        if not resp.get("success", False):
            raise TaskSourceError(f"{CLI_NAME}: {resp.get('error') or 'unknown error'}")
        return resp.get("data")

    @staticmethod
    def _items(data: Any) -> list[WorkItem]:
        if not data:
            return []
        if not isinstance(data, list):
            raise TaskSourceError(f"{CLI_NAME} returned an unexpected task list")
        return [WorkItem.from_dict(d) for d in data if isinstance(d, dict)]

    def list_items(self, project_id: str = "") -> list[WorkItem]:
        """List tasks, optionally restricted to a project."""
        args = ["list", project_id] if project_id else ["list"]
        return self._items(self._run(*args))

    def search_items(self, workspace_id: str, query: str) -> list[WorkItem]:
        return self._items(self._run("search", workspace_id, query))

    def view_item(self, item_id: str) -> WorkItem:
        data = self._run("view", item_id)
        if not isinstance(data, dict):
            raise TaskSourceError(f"{CLI_NAME}: task {item_id} not found")
        return WorkItem.from_dict(data)

    def complete_item(self, item_id: str) -> None:
        self._run("complete", item_id)


def format_task_markdown(item: WorkItem) -> str:
    """Format a task as markdown for the execution prompt."""
    lines = [
        f"# Task: {item.name}",
        "",
        f"**ID:** {item.id}",
        f"**Status:** {'Complete' if item.completed else 'Incomplete'}",
    ]
    if item.priority:
        lines.append(f"**Priority:** {item.priority}")
    if item.due_date:
        lines.append(f"**Due:** {item.due_date}")
    if item.assignee:
        lines.append(f"**Assignee:** {item.assignee}")
    if item.tags:
        lines.append(f"**Tags:** {', '.join(item.tags)}")
    text = "\n".join(lines) + "\n"
    if item.notes:
        text += f"\n## Description\n\n{item.notes}\n"
    return text
