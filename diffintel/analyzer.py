"""Turns a change set into an explain report.

Per file: declarations of the base version, the structural diff between
base and head, and control-flow annotations around the changed lines.
Across files: one bounded dependency graph for the whole change set.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from .config_manager import AnalysisSettings, load_settings
from .control_flow import ControlFlowAnnotator, parse_changed_lines
from .dependency_graph import DependencyGraphBuilder, RepoFileIndex
from .extractor import DeclarationExtractor
from .git_diff import GitRepository
from .languages import LanguageRegistry, build_default_registry
from .models import ChangeSet, DependencyGraph, ExplainReport, FileAnalysis, FileDiff
from .parser import SyntaxParser
from .structural_diff import annotate_related, diff_declarations

logger = logging.getLogger(__name__)


class ChangeSetAnalyzer:
    """Structural analysis of every file in a change set."""

    def __init__(
        self,
        registry: Optional[LanguageRegistry] = None,
        parser: Optional[SyntaxParser] = None,
        settings: Optional[AnalysisSettings] = None,
    ):
        self.registry = registry or (parser.registry if parser else build_default_registry())
        self.parser = parser or SyntaxParser(self.registry)
        self.settings = settings or load_settings()
        self.extractor = DeclarationExtractor(self.parser, self.registry)
        self.annotator = ControlFlowAnnotator(self.parser, self.settings.guard_condition_max)

    def analyze_file(self, file_diff: FileDiff) -> FileAnalysis:
        language = self.parser.language_for_path(file_diff.path)
        if language is None and file_diff.old_path:
            language = self.parser.language_for_path(file_diff.old_path)

        empty = FileAnalysis(
            path=file_diff.path,
            status=file_diff.status,
            language=language,
            raw_diff_text=file_diff.hunks,
            recent_history=list(file_diff.recent_history),
        )
        if language is None:
            return empty

        try:
            version = file_diff.source_version(language)
            old_decls, new_decls = self.extractor.extract_version(version)

            changes = diff_declarations(file_diff.path, file_diff.status, old_decls, new_decls)
            annotate_related(changes, old_decls)

            annotations = self.annotator.annotate(
                version.new_text,
                language,
                parse_changed_lines(file_diff.hunks),
            ) if file_diff.status != "deleted" else []
        except Exception as exc:
            logger.warning("Analysis of %s failed: %s", file_diff.path, exc)
            return empty

        empty.structural_changes = changes
        empty.control_flow_annotations = annotations
        empty.base_declaration_names = [d.label for d in old_decls]
        return empty

    def build_dependency_graph(
        self,
        paths: List[str],
        repo: GitRepository,
        head_ref: Optional[str] = None,
    ) -> Optional[DependencyGraph]:
        """Dependency graph for *paths* as of *head_ref*.

        Tracked files and their content both come from *head_ref*; with no
        ref the index and the working tree are used instead.

        Returns None if the graph could not be built at all.
        """
        if head_ref is None:
            index = RepoFileIndex(repo.ls_files)
        else:
            index = RepoFileIndex(lambda: repo.ls_tree(head_ref))
        builder = DependencyGraphBuilder(
            self.parser,
            index,
            lambda _ref, path: repo.content_at(head_ref, path),
            registry=self.registry,
            max_reverse_deps=self.settings.max_reverse_deps,
            second_ring_threshold=self.settings.second_ring_threshold,
            max_scan_files=self.settings.max_repo_files,
        )
        try:
            return builder.build(paths, head_ref or "HEAD")
        except Exception as exc:
            logger.warning("Dependency graph failed: %s", exc)
            return None

    def analyze(self, change_set: ChangeSet, repo: Optional[GitRepository] = None) -> ExplainReport:
        files = [self.analyze_file(f) for f in change_set.files]

        graph = None
        if repo is not None and change_set.files:
            graph = self.build_dependency_graph(
                [f.path for f in change_set.files], repo, change_set.head_ref,
            )

        report = ExplainReport(
            generated_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            base_ref=change_set.base_ref,
            head_ref=change_set.head_ref,
            files=files,
            raw_diff=change_set.raw_diff,
            dependency_graph=graph,
        )
        report.summary = {
            "filesChanged": len(files),
            "additions": change_set.additions,
            "deletions": change_set.deletions,
            "structuralChanges": report.structural_change_count,
        }
        return report
