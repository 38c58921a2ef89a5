"""Sync report formatting functions.

- ``format_push_report`` -- human-readable post-push summary.
- ``format_clone_report`` -- human-readable post-clone summary.
- ``report_to_json`` -- structured dict for CLI ``--json`` and MCP output.
"""

from __future__ import annotations

from .models import CloneReport, PushReport

# ------------------------------------------------------------------
# Human-readable reports
# ------------------------------------------------------------------


def format_push_report(report: PushReport, verbose: bool = False) -> str:
    """Format a completed push as text.

    Args:
        report: The push report.
        verbose: List every pushed path with its blob address.

    Returns:
        Multi-line formatted string.
    """
    mode = "bootstrap" if report.bootstrap else "update"
    lines = [
        f"Push report for {report.target} ({mode})",
        f"Started: {report.started_at}",
        f"Completed: {report.completed_at}",
        "",
        f"Pushed {len(report.files)} documents "
        f"({report.blobs_published} distinct blobs)",
        f"Commit: {report.commit_sha}",
    ]
    if report.parent_sha:
        lines.append(f"Parent: {report.parent_sha}")
    lines.append(f"Tree: {report.tree_sha}")

    if report.removed:
        lines.append("")
        lines.append(f"Removed {len(report.removed)} documents:")
        for path in report.removed:
            lines.append(f"  {path}")

    if verbose and report.files:
        lines.append("")
        lines.append("Files:")
        for path in sorted(report.files):
            lines.append(f"  {path} {report.files[path][:12]}")

    return "\n".join(lines)


def format_clone_report(report: CloneReport) -> str:
    lines = [
        f"Clone report for {report.target}",
        f"Started: {report.started_at}",
        f"Completed: {report.completed_at}",
        "",
        f"Loaded {len(report.keys)} documents",
    ]
    if report.commit_sha:
        lines.insert(4, f"Commit: {report.commit_sha}")
    for key in report.keys:
        lines.append(f"  {key}")
    if report.skipped:
        # Count only, to keep output short
        lines.append(f"Skipped {len(report.skipped)} unrecognised files")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: PushReport | CloneReport) -> dict:
    """Convert a push or clone report to a JSON-serialisable dict.

    Suitable for MCP ``structuredContent`` output.
    """
    data: dict = {
        "kind": report.kind.value,
        "repository": report.target.full_name,
        "branch": report.target.branch,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
    }
    if isinstance(report, PushReport):
        data.update(
            {
                "mode": "bootstrap" if report.bootstrap else "update",
                "parent_sha": report.parent_sha,
                "commit_sha": report.commit_sha,
                "tree_sha": report.tree_sha,
                "counts": {
                    "documents": len(report.files),
                    "blobs": report.blobs_published,
                    "removed": len(report.removed),
                },
                "files": dict(report.files),
                "removed": list(report.removed),
            }
        )
    else:
        data.update(
            {
                "counts": {
                    "documents": len(report.keys),
                    "skipped": len(report.skipped),
                },
                "commit_sha": report.commit_sha,
                "keys": list(report.keys),
                "skipped": list(report.skipped),
            }
        )
    return data
