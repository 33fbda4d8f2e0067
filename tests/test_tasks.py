"""Tests for the asana-cli task source."""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from task_agent.models import WorkItem
from task_agent.tasks import TaskSource, TaskSourceError, find_cli, format_task_markdown

TASK_JSON = {
    "gid": "1201",
    "name": "Draft launch post",
    "completed": False,
    "priority": "high",
    "notes": "Mention the new API.",
    "due_on": "2025-03-01",
    "assignee": {"name": "Robin"},
    "tags": [{"name": "marketing"}, {"name": "launch"}],
}


def _ok(data) -> MagicMock:
    return MagicMock(returncode=0, stdout=json.dumps({"success": True, "data": data}), stderr="")


class TestTaskSource:
    @patch("task_agent.tasks.subprocess.run")
    def test_list_items(self, mock_run):
        mock_run.return_value = _ok([TASK_JSON])

        items = TaskSource("/bin/asana-cli").list_items("proj-1")

        assert mock_run.call_args.args[0] == ["/bin/asana-cli", "list", "proj-1", "--json"]
        assert items == [
            WorkItem(
                id="1201",
                name="Draft launch post",
                priority="high",
                notes="Mention the new API.",
                due_date="2025-03-01",
                assignee="Robin",
                tags=("marketing", "launch"),
            )
        ]

    @patch("task_agent.tasks.subprocess.run")
    def test_list_without_project(self, mock_run):
        mock_run.return_value = _ok(None)
        assert TaskSource("asana-cli").list_items() == []
        assert mock_run.call_args.args[0] == ["asana-cli", "list", "--json"]

    @patch("task_agent.tasks.subprocess.run")
    def test_search_items(self, mock_run):
        mock_run.return_value = _ok([TASK_JSON, {"id": "7", "name": "Other"}])
        items = TaskSource("asana-cli").search_items("ws", "launch")
        assert mock_run.call_args.args[0] == ["asana-cli", "search", "ws", "launch", "--json"]
        assert [it.id for it in items] == ["1201", "7"]

    @patch("task_agent.tasks.subprocess.run")
    def test_view_and_complete(self, mock_run):
        mock_run.return_value = _ok(TASK_JSON)
        source = TaskSource("asana-cli")
        assert source.view_item("1201").name == "Draft launch post"
        source.complete_item("1201")
        assert mock_run.call_args.args[0] == ["asana-cli", "complete", "1201", "--json"]

    @patch("task_agent.tasks.subprocess.run")
    def test_unsuccessful_response(self, mock_run):
        mock_run.return_value = MagicMock(
            returncode=0, stdout=json.dumps({"success": False, "error": "token expired"}), stderr=""
        )
        with pytest.raises(TaskSourceError, match="token expired"):
            TaskSource("asana-cli").list_items()

    @pytest.mark.parametrize("side_effect", [
        FileNotFoundError("asana-cli"),
        subprocess.TimeoutExpired(cmd="asana-cli", timeout=30),
    ])
    @patch("task_agent.tasks.subprocess.run")
    def test_process_failures(self, mock_run, side_effect):
        mock_run.side_effect = side_effect
        with pytest.raises(TaskSourceError):
            TaskSource("asana-cli").list_items()

    @patch("task_agent.tasks.subprocess.run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = MagicMock(returncode=2, stdout="", stderr="unknown project")
        with pytest.raises(TaskSourceError, match="unknown project"):
            TaskSource("asana-cli").list_items("nope")

    @patch("task_agent.tasks.subprocess.run")
    def test_invalid_json(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="<html>", stderr="")
        with pytest.raises(TaskSourceError):
            TaskSource("asana-cli").list_items()


class TestFindCli:
    def test_explicit_path(self, tmp_path):
        binary = tmp_path / "asana-cli"
        binary.write_text("#!/bin/sh\n")
        assert find_cli(str(binary)) == str(binary)
        assert find_cli(str(tmp_path / "missing")) is None

    @patch("task_agent.tasks.shutil.which", return_value="/usr/local/bin/asana-cli")
    def test_path_lookup(self, mock_which):
        assert find_cli() == "/usr/local/bin/asana-cli"

    @patch("task_agent.tasks.shutil.which", return_value=None)
    def test_not_found(self, mock_which, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert find_cli() is None


class TestFormatTaskMarkdown:
    def test_full_item(self):
        md = format_task_markdown(WorkItem.from_dict(TASK_JSON))
        assert md.startswith("# Task: Draft launch post\n")
        assert "**ID:** 1201" in md
        assert "**Status:** Incomplete" in md
        assert "**Priority:** high" in md
        assert "**Due:** 2025-03-01" in md
        assert "**Assignee:** Robin" in md
        assert "**Tags:** marketing, launch" in md
        assert md.endswith("## Description\n\nMention the new API.\n")

    def test_minimal_item(self):
        md = format_task_markdown(WorkItem(id="1", name="Bare", completed=True))
        assert "**Status:** Complete" in md
        assert "Priority" not in md
        assert "Description" not in md
