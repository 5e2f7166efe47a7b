"""Plain-text and markdown rendering of an explain report."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from .models import DependencyGraph, ExplainReport, FileAnalysis

MAX_BASE_DECLS = 20
MAX_SECOND_RING_SHOWN = 10
MAX_DIFF_CHARS = 4000

ACTION_ICON = {"added": "+", "removed": "-", "modified": "~"}

_DIFF_SPLIT_RE = re.compile(r"^diff --git ", re.M)


def _sorted(files: List[FileAnalysis]) -> List[FileAnalysis]:
    return sorted(files, key=lambda f: f.path)


def format_structural_summary(files: List[FileAnalysis]) -> str:
    lines = []
    for f in _sorted(files):
        if not f.structural_changes:
            continue
        items = []
        for change in f.structural_changes:
            item = f"{ACTION_ICON[change.action]}{change.name} ({change.kind})"
            if change.detail:
                item += f" [{change.detail}]"
            items.append(item)
        lines.append(f"- {f.path} ({f.status}): {', '.join(items)}")
    return "\n".join(lines)


def format_control_flow_summary(files: List[FileAnalysis]) -> str:
    blocks = []
    for f in _sorted(files):
        if not f.control_flow_annotations:
            continue
        entries = "\n".join(
            f"  - {a.function_name}() line {a.line}: {a.kind} — {a.description}"
            for a in f.control_flow_annotations
        )
        blocks.append(f"- {f.path}:\n{entries}")
    return "\n".join(blocks)


def format_base_summary(files: List[FileAnalysis], limit: int = MAX_BASE_DECLS) -> str:
    """Declarations that existed before the change, capped per file."""
    lines = []
    for f in _sorted(files):
        names = f.base_declaration_names
        if not names:
            continue
        shown = ", ".join(names[:limit])
        if len(names) > limit:
            shown += f", ... and {len(names) - limit} more"
        lines.append(f"- {f.path} — existing declarations: {shown}")
    return "\n".join(lines)


def format_history_summary(files: List[FileAnalysis]) -> str:
    blocks = []
    for f in _sorted(files):
        if not f.recent_history:
            continue
        entries = "\n".join(f"  - {h.hash} {h.message} ({h.age})" for h in f.recent_history)
        blocks.append(f"- {f.path}:\n{entries}")
    return "\n".join(blocks)


def format_dependency_graph(graph: Optional[DependencyGraph]) -> str:
    if graph is None:
        return ""

    parts: List[str] = []

    if graph.reverse_deps:
        parts.append("### Files that import changed files (may be affected):")
        by_target: Dict[str, List[str]] = {}
        for edge in graph.reverse_deps:
            uses = f" (uses: {', '.join(edge.symbols)})" if edge.symbols else ""
            by_target.setdefault(edge.to_path, []).append(f"    - {edge.from_path}{uses}")
        for target, importers in by_target.items():
            parts.append(f"- {target} is imported by {len(importers)} file(s):\n" + "\n".join(importers))
    else:
        parts.append("No other files import the changed files — blast radius is contained.")

    if graph.forward_deps:
        parts.append("\n### Dependencies of changed files:")
        by_source: Dict[str, List[str]] = {}
        for edge in graph.forward_deps:
            by_source.setdefault(edge.from_path, []).append(edge.to_path)
        for source, deps in by_source.items():
            parts.append(f"- {source} imports: {', '.join(deps)}")

    if graph.second_ring_deps:
        parts.append(
            f"\n### Second-ring impact ({len(graph.second_ring_deps)} files import the affected files above)"
        )
        dependents = graph.second_ring_dependents
        parts.append("\n".join(f"- {f}" for f in dependents[:MAX_SECOND_RING_SHOWN]))
        if len(dependents) > MAX_SECOND_RING_SHOWN:
            parts.append(f"- ... and {len(dependents) - MAX_SECOND_RING_SHOWN} more")

    return "\n".join(parts)


def truncate_diff(diff: str, max_len: int = MAX_DIFF_CHARS) -> str:
    """Keep whole ``diff --git`` sections until *max_len* would be exceeded."""
    if len(diff) <= max_len:
        return diff

    result = ""
    for section in _DIFF_SPLIT_RE.split(diff):
        if not section:
            continue
        chunk = "diff --git " + section
        if len(result) + len(chunk) > max_len:
            result += "\n... (diff truncated)"
            break
        result += chunk
    # a single oversized section still yields something
    if not result or result == "\n... (diff truncated)":
        return diff[:max_len] + "\n... (truncated)"
    return result


def render_markdown(report: ExplainReport, max_diff_chars: int = MAX_DIFF_CHARS) -> str:
    head = report.head_ref or "working tree"
    summary = report.summary
    graph = report.dependency_graph

    sections = [
        f"# Change analysis: {report.base_ref}...{head}",
        "",
        f"_Generated {report.generated_at}_",
        "",
        f"- Files changed: {summary.get('filesChanged', len(report.files))}",
        f"- Additions: {summary.get('additions', 0)}",
        f"- Deletions: {summary.get('deletions', 0)}",
        f"- Structural changes: {summary.get('structuralChanges', report.structural_change_count)}",
    ]
    if graph is not None:
        sections.append(f"- Blast radius: {graph.blast_radius}")

    def section(title: str, body: str, empty: str) -> None:
        sections.extend(["", f"## {title}", body or empty])

    section("Recent history", format_history_summary(report.files), "(no prior history)")
    section(
        "Base state",
        format_base_summary(report.files),
        "(new files only, no prior state)",
    )
    section(
        "Structural changes",
        format_structural_summary(report.files),
        "(no structural changes detected)",
    )
    section(
        "Control flow context",
        format_control_flow_summary(report.files),
        "(no notable control flow patterns detected)",
    )
    section(
        "Dependency graph",
        format_dependency_graph(graph),
        "(no dependency data available)",
    )
    section(
        "Files changed",
        "\n".join(f"- {f.path} ({f.status})" for f in _sorted(report.files)),
        "(none)",
    )

    diff = truncate_diff(report.raw_diff, max_diff_chars)
    sections.extend(["", "## Diff", f"```diff\n{diff}\n```" if diff else "(empty diff)"])
    return "\n".join(sections) + "\n"
