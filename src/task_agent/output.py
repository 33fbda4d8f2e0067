"""Output sink: persists artifact bundles to disk."""

import logging
import re
from pathlib import Path, PurePosixPath

from .models import ArtifactBundle, WorkItem

logger = logging.getLogger(__name__)

RESULT_FILE = "TASK_RESULT.md"

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(name: str, max_len: int = 40) -> str:
    slug = _SLUG_STRIP.sub("-", name.lower()).strip("-")
    return slug[:max_len].rstrip("-") or "task"


def _safe_relative(path: str) -> PurePosixPath:
    """Keep a relative path inside the output folder.

    Absolute paths and paths that climb out with ``..`` are re-rooted by
    their basename.
    """
    rel = PurePosixPath(path.replace("\\", "/"))
    if rel.is_absolute() or ".." in rel.parts or not rel.name:
        return PurePosixPath(rel.name or "output.md")
    return rel


def output_folder(item: WorkItem, output_dir: str | Path) -> Path:
    return Path(output_dir).expanduser() / f"{item.id}-{slugify(item.name)}"


def write_output(bundle: ArtifactBundle, item: WorkItem, output_dir: str | Path) -> Path:
    """Write every file in the bundle plus a TASK_RESULT.md index.

    Returns the folder written to. Raises OSError on failure.
    """
    folder = output_folder(item, output_dir)
    folder.mkdir(parents=True, exist_ok=True)

    for f in bundle.files:
        target = folder / _safe_relative(f.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f.content, encoding="utf-8")
        logger.debug("Wrote %s", target)

    (folder / RESULT_FILE).write_text(result_markdown(bundle, item), encoding="utf-8")
    logger.info("Saved %d file(s) for task %s to %s", len(bundle.files), item.id, folder)
    return folder


def result_markdown(bundle: ArtifactBundle, item: WorkItem) -> str:
    lines = [
        f"# {item.name}",
        "",
        f"**Task ID:** {item.id}",
        f"**Output type:** {bundle.output_type}",
        "",
        "## Summary",
        "",
        bundle.summary or "(none)",
    ]
    if bundle.files:
        lines += ["", "## Files", ""]
        for f in bundle.files:
            desc = f" - {f.description}" if f.description else ""
            lines.append(f"- `{_safe_relative(f.path)}`{desc}")
    if bundle.notes:
        lines += ["", "## Notes", "", bundle.notes]
    return "\n".join(lines) + "\n"


def preview(bundle: ArtifactBundle) -> str:
    """Short human-readable description of a bundle."""
    lines = [f"Summary: {bundle.summary}" if bundle.summary else "Summary: (none)"]
    if bundle.files:
        lines.append(f"Files ({len(bundle.files)}):")
        for f in bundle.files:
            desc = f"  {f.description}" if f.description else ""
            lines.append(f"  • {f.path}{desc}")
    if bundle.notes:
        lines.append(f"Notes: {bundle.notes}")
    return "\n".join(lines)
