"""Core data models shared by extraction, diffing, annotation and graph layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

FileStatus = Literal["added", "modified", "deleted", "renamed"]
DeclarationKind = Literal["function", "class", "import", "export", "variable", "other"]
ChangeAction = Literal["added", "removed", "modified"]
AnnotationKind = Literal["guard", "try-catch"]
BlastRadius = Literal["self-contained", "contained", "wide"]

FILE_STATUSES = ("added", "modified", "deleted", "renamed")


@dataclass(frozen=True)
class SourceVersion:
    """One file's before/after content; either side may be absent."""
    path: str
    language: Optional[str] = None
    old_text: Optional[str] = None
    new_text: Optional[str] = None


@dataclass(frozen=True)
class Declaration:
    name: str
    kind: DeclarationKind
    raw_text: str
    start_line: int

    @property
    def label(self) -> str:
        return f"{self.name} ({self.kind})"


@dataclass
class StructuralChange:
    file: str
    kind: DeclarationKind
    action: ChangeAction
    name: str
    start_line: Optional[int] = None
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "file": self.file,
            "type": self.kind,
            "action": self.action,
            "name": self.name,
        }
        if self.start_line is not None:
            data["startLine"] = self.start_line
        if self.detail:
            data["detail"] = self.detail
        return data


@dataclass
class ControlFlowAnnotation:
    function_name: str
    line: int
    kind: AnnotationKind
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "functionName": self.function_name,
            "line": self.line,
            "kind": self.kind,
            "description": self.description,
        }


@dataclass
class DependencyEdge:
    """Directed edge: ``from_path`` imports ``to_path`` via ``specifier``."""
    from_path: str
    to_path: str
    specifier: str
    symbols: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_path,
            "to": self.to_path,
            "specifier": self.specifier,
            "symbols": list(self.symbols),
        }


@dataclass
class DependencyGraph:
    forward_deps: List[DependencyEdge] = field(default_factory=list)
    reverse_deps: List[DependencyEdge] = field(default_factory=list)
    second_ring_deps: List[DependencyEdge] = field(default_factory=list)
    repo_files_scanned: int = 0
    scan_time_ms: int = 0

    @property
    def reverse_dependents(self) -> List[str]:
        """Distinct importers of changed files, in edge order."""
        return list(dict.fromkeys(e.from_path for e in self.reverse_deps))

    @property
    def second_ring_dependents(self) -> List[str]:
        return list(dict.fromkeys(e.from_path for e in self.second_ring_deps))

    @property
    def blast_radius(self) -> BlastRadius:
        if not self.reverse_deps:
            return "self-contained"
        if not self.second_ring_deps:
            return "contained"
        return "wide"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "forwardDeps": [e.to_dict() for e in self.forward_deps],
            "reverseDeps": [e.to_dict() for e in self.reverse_deps],
            "secondRingDeps": [e.to_dict() for e in self.second_ring_deps],
            "repoFilesScanned": self.repo_files_scanned,
            "scanTimeMs": self.scan_time_ms,
            "blastRadius": self.blast_radius,
        }


@dataclass
class FileHistoryEntry:
    hash: str
    message: str
    age: str

    def to_dict(self) -> Dict[str, str]:
        return {"hash": self.hash, "message": self.message, "age": self.age}


@dataclass
class FileDiff:
    """Per-file diff record produced by the VCS collaborator."""
    path: str
    status: FileStatus
    hunks: str = ""
    old_path: Optional[str] = None
    old_content: Optional[str] = None
    new_content: Optional[str] = None
    additions: int = 0
    deletions: int = 0
    recent_history: List[FileHistoryEntry] = field(default_factory=list)

    def __post_init__(self):
        if self.status not in FILE_STATUSES:
            raise ValueError(f"Unknown file status: {self.status!r}")

    def source_version(self, language: Optional[str] = None) -> SourceVersion:
        return SourceVersion(
            path=self.path,
            language=language,
            old_text=self.old_content,
            new_text=self.new_content,
        )


@dataclass
class FileAnalysis:
    path: str
    status: FileStatus
    language: Optional[str]
    structural_changes: List[StructuralChange] = field(default_factory=list)
    control_flow_annotations: List[ControlFlowAnnotation] = field(default_factory=list)
    base_declaration_names: List[str] = field(default_factory=list)
    raw_diff_text: str = ""
    recent_history: List[FileHistoryEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "status": self.status,
            "language": self.language,
            "structuralChanges": [c.to_dict() for c in self.structural_changes],
            "controlFlowAnnotations": [a.to_dict() for a in self.control_flow_annotations],
            "baseDeclarationNames": list(self.base_declaration_names),
            "rawDiffText": self.raw_diff_text,
            "recentHistory": [h.to_dict() for h in self.recent_history],
        }


@dataclass
class ChangeSet:
    """Everything the VCS collaborator hands to the analyzer."""
    files: List[FileDiff]
    raw_diff: str = ""
    base_ref: str = ""
    head_ref: Optional[str] = None

    @property
    def additions(self) -> int:
        return sum(f.additions for f in self.files)

    @property
    def deletions(self) -> int:
        return sum(f.deletions for f in self.files)


@dataclass
class ExplainReport:
    generated_at: str
    base_ref: str
    head_ref: Optional[str]
    files: List[FileAnalysis]
    raw_diff: str = ""
    dependency_graph: Optional[DependencyGraph] = None
    summary: Dict[str, int] = field(default_factory=dict)

    @property
    def structural_change_count(self) -> int:
        return sum(len(f.structural_changes) for f in self.files)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at,
            "baseRef": self.base_ref,
            "headRef": self.head_ref,
            "summary": dict(self.summary),
            "files": [f.to_dict() for f in self.files],
            "dependencyGraph": self.dependency_graph.to_dict() if self.dependency_graph else None,
        }
