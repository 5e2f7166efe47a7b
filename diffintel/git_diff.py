"""Git collaborator: changed files, hunks, file versions and history.

All git access goes through ``GitRepository`` so the analysis layers can
be exercised against fakes.  Retrieval of individual file versions never
raises; a file that cannot be read simply has no content.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from . import config
from .models import ChangeSet, FileDiff, FileHistoryEntry
from .pool import parallel_limit

logger = logging.getLogger(__name__)

_DIFF_SPLIT_RE = re.compile(r"^diff --git ", re.M)
_DIFF_HEADER_RE = re.compile(r"a/(.+?) b/(.+)")


class GitError(RuntimeError):
    """A git command exited with a non-zero status."""

    def __init__(self, args: List[str], returncode: int, stderr: str = ""):
        self.command = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"git {' '.join(args)} failed with exit code {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class GitRepository:
    """Thin wrapper around the ``git`` executable for one working tree."""

    def __init__(self, root: Union[str, Path] = "."):
        self.root = Path(root).resolve()

    def run(self, *args: str) -> str:
        """Run ``git <args>`` in the repository and return stdout.

        Raises:
            GitError: if git exits with a non-zero status or is missing
        """
        cmd = list(args)
        logger.debug("git %s", " ".join(cmd))
        try:
            result = subprocess.run(
                ["git", *cmd],
                cwd=self.root,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as exc:
            raise GitError(cmd, 127, str(exc)) from exc
        if result.returncode != 0:
            raise GitError(cmd, result.returncode, result.stderr)
        return result.stdout

    def show(self, ref: str, path: str) -> Optional[str]:
        """Content of *path* at *ref*, or None when it can't be retrieved."""
        try:
            return self.run("show", f"{ref}:{path}")
        except GitError as exc:
            logger.debug("Could not read %s at %s: %s", path, ref, exc)
            return None

    def read_working_tree(self, path: str) -> Optional[str]:
        target = self.root / path
        try:
            return target.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("Could not read %s from working tree: %s", target, exc)
            return None

    def content_at(self, ref: Optional[str], path: str) -> Optional[str]:
        """Content at *ref*, or from the working tree when *ref* is None."""
        if ref is None:
            return self.read_working_tree(path)
        return self.show(ref, path)

    def ls_files(self) -> List[str]:
        output = self.run("ls-files", "-z")
        return [p for p in output.split("\0") if p]

    def ls_tree(self, ref: str) -> List[str]:
        """Paths tracked at *ref*, independent of what is checked out."""
        output = self.run("ls-tree", "-r", "--name-only", "-z", ref)
        return [p for p in output.split("\0") if p]

    def log(self, path: str, ref: str, count: int = config.HISTORY_COUNT) -> str:
        return self.run("log", "--format=%h|%s|%cr", f"-{count}", ref, "--", path)

    def is_repository(self) -> bool:
        try:
            return self.run("rev-parse", "--is-inside-work-tree").strip() == "true"
        except GitError:
            return False


# ---------------------------------------------------------------------------
# Output parsers
# ---------------------------------------------------------------------------

def parse_name_status(text: str) -> List[Tuple[str, Optional[str], str]]:
    """Parse ``git diff --name-status`` output.

    Returns:
        ``(path, old_path, status)`` tuples in output order. ``old_path``
        is only set for renames.
    """
    results: List[Tuple[str, Optional[str], str]] = []
    for line in text.strip().split("\n"):
        if not line.strip():
            continue
        parts = line.split("\t")
        code = parts[0][:1]
        if code == "R" and len(parts) >= 3:
            results.append((parts[2], parts[1], "renamed"))
        elif code == "A":
            results.append((parts[1], None, "added"))
        elif code == "D":
            results.append((parts[1], None, "deleted"))
        elif len(parts) >= 2:
            # C (copy) reports source and destination; keep the destination
            results.append((parts[-1], None, "modified"))
    return results


def parse_diff_text(text: str) -> Dict[str, Tuple[str, int, int]]:
    """Per-file ``(hunks, additions, deletions)`` keyed by new path."""
    files: Dict[str, Tuple[str, int, int]] = {}
    if not text.strip():
        return files

    for part in _DIFF_SPLIT_RE.split(text):
        if not part:
            continue
        lines = part.split("\n")
        header = _DIFF_HEADER_RE.match(lines[0])
        if not header:
            continue
        path = header.group(2)

        hunk_start = next((i for i, line in enumerate(lines) if i > 0 and line.startswith("@@")), 0)
        hunk_lines = lines[hunk_start:] if hunk_start else []

        additions = sum(1 for l in hunk_lines if l.startswith("+") and not l.startswith("+++"))
        deletions = sum(1 for l in hunk_lines if l.startswith("-") and not l.startswith("---"))
        files[path] = ("\n".join(hunk_lines), additions, deletions)
    return files


def parse_history(text: str) -> List[FileHistoryEntry]:
    entries = []
    for line in text.strip().split("\n"):
        if not line.strip():
            continue
        hash_, _, rest = line.partition("|")
        # subjects may contain "|"; the age is always the last field
        message, _, age = rest.rpartition("|")
        entries.append(FileHistoryEntry(hash=hash_, message=message, age=age))
    return entries


# ---------------------------------------------------------------------------
# Change set
# ---------------------------------------------------------------------------

def get_diff(
    repo: GitRepository,
    base_ref: str,
    head_ref: Optional[str] = None,
    concurrency: int = config.DEFAULT_CONCURRENCY,
    history_count: int = config.HISTORY_COUNT,
) -> ChangeSet:
    """Collect every changed file between *base_ref* and *head_ref*.

    With a head ref the symmetric range ``base...head`` is used; without
    one the working tree is diffed against *base_ref* and new content is
    read from disk. File versions and history are fetched through a
    bounded pool and returned in name-status order.

    Raises:
        GitError: if listing the changes fails (bad ref, not a repository)
    """
    range_args = [f"{base_ref}...{head_ref}"] if head_ref else [base_ref]
    name_status = repo.run("diff", "--name-status", "-M", *range_args)
    raw_diff = repo.run("diff", "-M", *range_args)

    statuses = parse_name_status(name_status)
    hunks_by_path = parse_diff_text(raw_diff)

    def collect(entry: Tuple[str, Optional[str], str]) -> FileDiff:
        path, old_path, status = entry
        hunks, additions, deletions = hunks_by_path.get(path, ("", 0, 0))
        source_path = old_path or path

        old_content = repo.show(base_ref, source_path) if status != "added" else None
        new_content = repo.content_at(head_ref, path) if status != "deleted" else None

        history: List[FileHistoryEntry] = []
        if history_count > 0:
            try:
                history = parse_history(repo.log(source_path, base_ref, history_count))
            except GitError as exc:
                logger.debug("No history for %s: %s", source_path, exc)

        return FileDiff(
            path=path,
            status=status,  # type: ignore[arg-type]
            hunks=hunks,
            old_path=old_path,
            old_content=old_content,
            new_content=new_content,
            additions=additions,
            deletions=deletions,
            recent_history=history,
        )

    files = parallel_limit(statuses, concurrency, collect)
    logger.debug("Collected %d changed file(s) for %s", len(files), " ".join(range_args))
    return ChangeSet(files=files, raw_diff=raw_diff, base_ref=base_ref, head_ref=head_ref)
