"""Data models for task-agent."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

PRIORITY_ICONS = {
    "high": "🔴",
    "medium": "🟡",
    "low": "🟢",
}


@dataclass(frozen=True)
class WorkItem:
    """A unit of work fetched from the task source.

    Never mutated in place: a completion change shows up as a new record on
    the next fetch.
    """

    id: str
    name: str
    completed: bool = False
    priority: str = ""
    notes: str = ""
    due_date: str | None = None
    assignee: str | None = None
    tags: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkItem":
        """Build a WorkItem from asana-cli JSON (``gid`` wins over ``id``)."""
        assignee = data.get("assignee") or {}
        tags = data.get("tags") or []
        return cls(
            id=str(data.get("gid") or data.get("id") or ""),
            name=data.get("name") or "",
            completed=bool(data.get("completed", False)),
            priority=data.get("priority") or "",
            notes=data.get("notes") or "",
            due_date=data.get("due_date") or data.get("due_on") or None,
            assignee=assignee.get("name") or None if isinstance(assignee, dict) else None,
            tags=tuple(t["name"] for t in tags if isinstance(t, dict) and t.get("name")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "gid": self.id,
            "name": self.name,
            "completed": self.completed,
            "priority": self.priority,
            "notes": self.notes,
            "due_date": self.due_date,
            "assignee": {"name": self.assignee} if self.assignee else None,
            "tags": [{"name": t} for t in self.tags],
        }

    @property
    def status_icon(self) -> str:
        return "✅" if self.completed else "⏳"

    @property
    def priority_icon(self) -> str:
        return PRIORITY_ICONS.get(self.priority.lower(), "  ")


@dataclass(frozen=True)
class OutputFile:
    """A single file produced by the execution engine."""

    path: str
    content: str
    description: str = ""


@dataclass(frozen=True)
class ArtifactBundle:
    """Structured result of one execution."""

    summary: str
    files: tuple[OutputFile, ...] = ()
    notes: str = ""
    output_type: str = "markdown"  # "markdown" | "code_folder" | "mixed"


@dataclass(frozen=True)
class ExecutionOutcome:
    """Terminal result of one execution, produced exactly once.

    A failed output write keeps the bundle alongside the error so the result
    can still be inspected.
    """

    bundle: ArtifactBundle | None = None
    output_path: Path | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class LogLine:
    """A line in the execution log."""

    text: str
    kind: str = "info"  # "info" | "ok" | "err" | "dim"


@dataclass(frozen=True)
class StatusLine:
    """Status bar message."""

    text: str = ""
    kind: str = "info"  # "info" | "ok" | "err" | "loading"


@dataclass(frozen=True)
class RunSummary:
    """What the execution log shows around the progress messages."""

    item_name: str
    provider_id: str
    model: str
    outcome: ExecutionOutcome | None = None
