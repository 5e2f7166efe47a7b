"""Bounded dependency graph centred on a change set.

1. Forward deps: parse the changed files' imports and resolve them to
   tracked repository paths.
2. Reverse deps: scan the rest of the repository for imports that land on
   a changed file.
3. Second ring: scan again for imports that land on those reverse
   dependents.

Candidates are always visited in lexicographic path order before any cap
is applied, so truncated results are identical from run to run.
"""

from __future__ import annotations

import logging
import posixpath
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from . import config
from .languages import LanguageRegistry
from .models import DependencyEdge, DependencyGraph
from .parser import SyntaxParser, field_text, node_text, path_extension

logger = logging.getLogger(__name__)

ContentProvider = Callable[[str, str], Optional[str]]
FileListLoader = Callable[[], Sequence[str]]

ECMASCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
_JS_RUNTIME_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs")

# Families with an AST import extractor (used for changed files)
AST_FAMILIES = frozenset({"ecmascript", "python"})
# Families with a regex import extractor (used for the repository scans)
LIGHTWEIGHT_FAMILIES = frozenset({"ecmascript", "python", "ruby", "c"})


@dataclass(frozen=True)
class ImportInfo:
    specifier: str
    symbols: List[str] = field(default_factory=list)


# ===================================================================
# Tracked-file cache
# ===================================================================

class RepoFileIndex:
    """Lazily loaded, sorted view of the repository's tracked files.

    The list is computed once on first use and reused for the rest of the
    run; ``reset()`` discards it so the next access reloads.
    """

    def __init__(self, loader: FileListLoader):
        self._loader = loader
        self._files: Optional[List[str]] = None
        self._file_set: FrozenSet[str] = frozenset()

    def _ensure_loaded(self) -> List[str]:
        if self._files is None:
            try:
                loaded = sorted(set(f for f in self._loader() if f))
            except Exception as exc:
                logger.warning("Could not list tracked files: %s", exc)
                loaded = []
            self._files = loaded
            self._file_set = frozenset(loaded)
        return self._files

    def files(self) -> List[str]:
        return list(self._ensure_loaded())

    def contains(self, path: str) -> bool:
        self._ensure_loaded()
        return path in self._file_set

    def reset(self) -> None:
        self._files = None
        self._file_set = frozenset()

    def __len__(self) -> int:
        return len(self._ensure_loaded())


# ===================================================================
# AST import extraction
# ===================================================================

def _strip_quotes(text: str) -> str:
    return text.strip().strip("'\"`")


def extract_imports_ast(root: Any, family: str) -> List[ImportInfo]:
    """Import statements among the direct children of *root*."""
    imports: List[ImportInfo] = []
    for node in root.children:
        if family == "ecmascript":
            imports.extend(_ecmascript_imports(node))
        elif family == "python":
            imports.extend(_python_imports(node))
    return imports


def _ecmascript_imports(node: Any) -> List[ImportInfo]:
    # import ... from "specifier"
    if node.type == "import_statement":
        source = field_text(node, "source")
        if not source:
            return []
        return [ImportInfo(_strip_quotes(source), _ecmascript_symbols(node))]

    # export ... from "specifier"
    if node.type == "export_statement":
        source = field_text(node, "source")
        if source:
            return [ImportInfo(_strip_quotes(source), [])]
        return []

    # const x = require("specifier")
    if node.type in ("lexical_declaration", "variable_declaration"):
        found = []
        for declarator in node.children:
            if declarator.type != "variable_declarator":
                continue
            specifier = _require_specifier(declarator.child_by_field_name("value"))
            if specifier:
                name = field_text(declarator, "name")
                found.append(ImportInfo(specifier, [name] if name else []))
        return found

    # require("side-effect")
    if node.type == "expression_statement" and node.named_child_count:
        specifier = _require_specifier(node.named_children[0])
        if specifier:
            return [ImportInfo(specifier, [])]

    return []


def _require_specifier(value: Any) -> Optional[str]:
    if value is None or value.type != "call_expression":
        return None
    if field_text(value, "function") != "require":
        return None
    args = value.child_by_field_name("arguments")
    if args is None or not args.named_child_count:
        return None
    first = args.named_children[0]
    if first.type not in ("string", "template_string"):
        return None
    return _strip_quotes(node_text(first))


def _ecmascript_symbols(node: Any) -> List[str]:
    symbols: List[str] = []
    for child in node.children:
        if child.type == "identifier":
            symbols.append(node_text(child))
        if child.type != "import_clause":
            continue
        for clause in child.children:
            if clause.type == "identifier":
                symbols.append(node_text(clause))
            elif clause.type == "named_imports":
                for spec in clause.children:
                    if spec.type == "import_specifier":
                        name = field_text(spec, "name")
                        if name:
                            symbols.append(name)
            elif clause.type == "namespace_import":
                for part in clause.children:
                    if part.type == "identifier":
                        symbols.append(f"* as {node_text(part)}")
    return symbols


def _python_imports(node: Any) -> List[ImportInfo]:
    # from module import name1, name2
    if node.type == "import_from_statement":
        module = field_text(node, "module_name")
        if not module:
            return []
        symbols: List[str] = []
        for name_node in node.children_by_field_name("name"):
            if name_node.type == "aliased_import":
                symbols.append(field_text(name_node, "name") or node_text(name_node))
            else:
                symbols.append(node_text(name_node))
        if any(child.type == "wildcard_import" for child in node.children):
            symbols.append("*")
        return [ImportInfo(module, symbols)]

    # import a.b, c as d
    if node.type == "import_statement":
        found = []
        for name_node in node.children_by_field_name("name"):
            if name_node.type == "aliased_import":
                module = field_text(name_node, "name")
            else:
                module = node_text(name_node)
            if module:
                found.append(ImportInfo(module, []))
        return found

    return []


# ===================================================================
# Lightweight (regex) import extraction
# ===================================================================

_JS_FROM_RE = re.compile(
    r"""\b(?:import|export)\s+(?!\()([^'";]*?)\s*\bfrom\s*['"]([^'"\n]+)['"]""",
    re.S,
)
_JS_SIDE_EFFECT_RE = re.compile(r"""^[ \t]*import\s*['"]([^'"\n]+)['"]""", re.M)
_JS_CALL_RE = re.compile(r"""\b(?:require|import)\s*\(\s*['"]([^'"\n]+)['"]\s*\)""")

_PY_FROM_RE = re.compile(r"^[ \t]*from[ \t]+([\w.]+)[ \t]+import[ \t]+(\([^)]*\)|[^\n]+)", re.M)
_PY_IMPORT_RE = re.compile(r"^[ \t]*import[ \t]+([^\n#;]+)", re.M)

_RUBY_REQUIRE_RE = re.compile(
    r"""^[ \t]*(require_relative|require)[ \t(]*['"]([^'"\n]+)['"]""",
    re.M,
)
_C_INCLUDE_RE = re.compile(r'^[ \t]*#[ \t]*include[ \t]*"([^"\n]+)"', re.M)


def _split_names(text: str) -> List[str]:
    names = []
    for part in text.split(","):
        part = part.split("#", 1)[0].strip()
        if not part:
            continue
        name = re.split(r"\s+as\s+", part)[0].strip()
        if name.startswith("type "):
            name = name[5:].strip()
        if name:
            names.append(name)
    return names


def _js_clause_symbols(clause: str) -> List[str]:
    symbols: List[str] = []
    clause = clause.strip()
    if clause.startswith("type "):
        clause = clause[5:]
    braces = re.search(r"\{([^}]*)\}", clause)
    if braces:
        clause_rest = clause[: braces.start()] + clause[braces.end():]
    else:
        clause_rest = clause
    default = re.match(r"\s*([A-Za-z_$][\w$]*)\s*(?:,|$)", clause_rest)
    if default and default.group(1) != "type":
        symbols.append(default.group(1))
    if braces:
        symbols.extend(_split_names(braces.group(1)))
    namespace = re.search(r"\*\s*as\s+([A-Za-z_$][\w$]*)", clause_rest)
    if namespace:
        symbols.append(f"* as {namespace.group(1)}")
    return symbols


def extract_imports_lightweight(source: str, path: str, family: Optional[str] = None) -> List[ImportInfo]:
    """Regex import extraction, in source order.

    Much faster than parsing, and accurate enough for the repository-wide
    scans where throughput matters more than precision.
    """
    family = family or _family_for_extension(path_extension(path))
    found: List[tuple] = []

    if family == "ecmascript":
        for match in _JS_FROM_RE.finditer(source):
            found.append((match.start(), ImportInfo(match.group(2), _js_clause_symbols(match.group(1)))))
        for match in _JS_SIDE_EFFECT_RE.finditer(source):
            found.append((match.start(), ImportInfo(match.group(1), [])))
        for match in _JS_CALL_RE.finditer(source):
            found.append((match.start(), ImportInfo(match.group(1), [])))

    elif family == "python":
        for match in _PY_FROM_RE.finditer(source):
            names = match.group(2).strip()
            if names.startswith("("):
                names = names[1:-1]
            found.append((match.start(), ImportInfo(match.group(1), _split_names(names))))
        for match in _PY_IMPORT_RE.finditer(source):
            for module in _split_names(match.group(1)):
                found.append((match.start(), ImportInfo(module, [])))

    elif family == "ruby":
        for match in _RUBY_REQUIRE_RE.finditer(source):
            method, specifier = match.group(1), match.group(2)
            if method == "require_relative" and not specifier.startswith("."):
                specifier = "./" + specifier
            found.append((match.start(), ImportInfo(specifier, [])))

    elif family == "c":
        for match in _C_INCLUDE_RE.finditer(source):
            specifier = match.group(1)
            if not specifier.startswith("."):
                specifier = "./" + specifier
            found.append((match.start(), ImportInfo(specifier, [])))

    found.sort(key=lambda item: item[0])
    return [info for _, info in found]


# ===================================================================
# Resolution
# ===================================================================

_FAMILY_BY_EXTENSION: Dict[str, str] = {}


def _family_for_extension(ext: str) -> str:
    if not _FAMILY_BY_EXTENSION:
        from .languages import default_language_configs
        for cfg in default_language_configs():
            for cfg_ext in cfg.extensions:
                _FAMILY_BY_EXTENSION[cfg_ext] = cfg.family
    return _FAMILY_BY_EXTENSION.get(ext, "")


def _python_base(specifier: str, from_file: str) -> Optional[str]:
    """Repo-relative path (no suffix) for a relative Python module."""
    dots = len(specifier) - len(specifier.lstrip("."))
    if dots == 0:
        return None
    directory = posixpath.dirname(from_file)
    parts = directory.split("/") if directory else []
    if dots - 1 > len(parts):
        return None
    parts = parts[: len(parts) - (dots - 1)]
    rest = specifier[dots:]
    if rest:
        parts.extend(rest.split("."))
    return "/".join(parts)


def resolution_candidates(resolved: str, family: str) -> List[str]:
    """Candidate repo paths for a resolved specifier, in priority order."""
    candidates: List[str] = []
    stem, ext = posixpath.splitext(resolved)

    if family == "ecmascript":
        if ext:
            candidates.append(resolved)
            # TS ESM convention: "./util.js" refers to util.ts
            if ext in _JS_RUNTIME_EXTENSIONS:
                candidates.extend([f"{stem}.ts", f"{stem}.tsx"])
        candidates.extend(f"{resolved}{e}" for e in ECMASCRIPT_EXTENSIONS[:4])
        candidates.extend(f"{resolved}/index{e}" for e in ECMASCRIPT_EXTENSIONS[:4])
    elif family == "ruby":
        candidates.append(resolved if ext == ".rb" else f"{resolved}.rb")
    else:
        candidates.append(resolved)

    return list(dict.fromkeys(candidates))


def resolve_import_path(
    specifier: str,
    from_file: str,
    index: RepoFileIndex,
    family: Optional[str] = None,
) -> Optional[str]:
    """Resolve a relative import to a tracked repo path.

    Returns None for external/package imports and for anything that does
    not land on a tracked file.
    """
    family = family or _family_for_extension(path_extension(from_file))

    if family == "python":
        base = _python_base(specifier, from_file)
        if base is None:
            return None
        candidates = [f"{base}.py", f"{base}/__init__.py"] if base else ["__init__.py"]
        if specifier.strip(".") == "":
            candidates = [f"{base}/__init__.py" if base else "__init__.py"]
        for candidate in candidates:
            if index.contains(candidate):
                return candidate
        return None

    if family not in ("ecmascript", "ruby", "c"):
        return None
    if not (specifier.startswith("./") or specifier.startswith("../") or specifier in (".", "..")):
        return None

    joined = posixpath.normpath(posixpath.join(posixpath.dirname(from_file), specifier))
    if joined == ".." or joined.startswith("../") or joined.startswith("/"):
        return None
    if joined == ".":
        joined = ""

    for candidate in resolution_candidates(joined, family):
        candidate = candidate.lstrip("/")
        if index.contains(candidate):
            return candidate
    return None


# ===================================================================
# Graph builder
# ===================================================================

class DependencyGraphBuilder:
    """Builds forward, reverse and second-ring edges for a change set."""

    def __init__(
        self,
        parser: SyntaxParser,
        index: RepoFileIndex,
        content_provider: ContentProvider,
        registry: Optional[LanguageRegistry] = None,
        max_reverse_deps: int = config.MAX_REVERSE_DEPS,
        second_ring_threshold: int = config.SECOND_RING_THRESHOLD,
        max_scan_files: int = config.MAX_REPO_FILES,
    ):
        self.parser = parser
        self.registry = registry or parser.registry
        self.index = index
        self.content_provider = content_provider
        self.max_reverse_deps = max_reverse_deps
        self.second_ring_threshold = second_ring_threshold
        self.max_scan_files = max_scan_files

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def family_for(self, path: str) -> str:
        cfg = self.registry.for_path(path)
        return cfg.family if cfg is not None else ""

    def _content(self, ref: str, path: str) -> Optional[str]:
        try:
            return self.content_provider(ref, path)
        except Exception as exc:
            logger.debug("Could not read %s at %s: %s", path, ref, exc)
            return None

    def extract_imports(self, source: str, path: str) -> List[ImportInfo]:
        """AST extraction where available, regex otherwise."""
        family = self.family_for(path)
        cfg = self.registry.for_path(path)
        if family in AST_FAMILIES and cfg is not None:
            tree = self.parser.parse(source, cfg.id)
            if tree is not None:
                try:
                    return extract_imports_ast(tree.root_node, family)
                except Exception as exc:
                    logger.debug("AST import extraction failed for %s: %s", path, exc)
        return extract_imports_lightweight(source, path, family)

    def resolve(self, imp: ImportInfo, from_file: str, family: str) -> List[Tuple[str, List[str]]]:
        """Tracked targets of one import as ``(path, symbols)`` pairs.

        ``from . import a, b`` names sibling modules, so each symbol is
        tried as a module before falling back to the package itself.
        """
        if family == "python" and imp.specifier and not imp.specifier.strip(".") and imp.symbols:
            found = []
            for symbol in imp.symbols:
                target = resolve_import_path(imp.specifier + symbol, from_file, self.index, family)
                if target:
                    found.append((target, [symbol]))
            if found:
                return found

        target = resolve_import_path(imp.specifier, from_file, self.index, family)
        return [(target, list(imp.symbols))] if target else []

    def scan_candidates(self, exclude: Set[str]) -> List[str]:
        """Tracked files worth scanning, in canonical order, capped."""
        candidates = [
            path for path in self.index.files()
            if path not in exclude and self.family_for(path) in LIGHTWEIGHT_FAMILIES
        ]
        if len(candidates) > self.max_scan_files:
            logger.debug(
                "Repo has %d scannable files, capping scan at %d",
                len(candidates), self.max_scan_files,
            )
            candidates = candidates[: self.max_scan_files]
        return candidates

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, changed_files: Sequence[str], ref: str = "HEAD") -> DependencyGraph:
        started = time.monotonic()
        changed_set = set(changed_files)

        forward_deps = self._forward(changed_files, ref)

        candidates = self.scan_candidates(changed_set)
        scanned: Dict[str, List[ImportInfo]] = {}

        def imports_of(path: str) -> List[ImportInfo]:
            if path not in scanned:
                content = self._content(ref, path)
                scanned[path] = (
                    extract_imports_lightweight(content, path, self.family_for(path))
                    if content else []
                )
            return scanned[path]

        reverse_deps = self._scan(candidates, changed_set, set(), imports_of)

        dependents = list(dict.fromkeys(e.from_path for e in reverse_deps))
        second_ring: List[DependencyEdge] = []
        if dependents and len(dependents) <= self.second_ring_threshold:
            second_ring = self._scan(candidates, set(dependents), set(dependents), imports_of)
        elif dependents:
            logger.debug(
                "Skipping second ring: %d direct dependents exceeds %d",
                len(dependents), self.second_ring_threshold,
            )

        graph = DependencyGraph(
            forward_deps=forward_deps,
            reverse_deps=reverse_deps,
            second_ring_deps=second_ring,
            repo_files_scanned=len(candidates),
            scan_time_ms=int((time.monotonic() - started) * 1000),
        )
        logger.debug(
            "Dependency graph: %d forward, %d reverse, %d second-ring edges (%d files, %d ms)",
            len(graph.forward_deps), len(graph.reverse_deps), len(graph.second_ring_deps),
            graph.repo_files_scanned, graph.scan_time_ms,
        )
        return graph

    def _forward(self, changed_files: Sequence[str], ref: str) -> List[DependencyEdge]:
        edges: List[DependencyEdge] = []
        for path in changed_files:
            content = self._content(ref, path)
            if not content:
                continue
            family = self.family_for(path)
            for imp in self.extract_imports(content, path):
                for resolved, symbols in self.resolve(imp, path, family):
                    if resolved != path:
                        edges.append(DependencyEdge(path, resolved, imp.specifier, symbols))
        return edges

    def _scan(
        self,
        candidates: List[str],
        targets: Set[str],
        skip: Set[str],
        imports_of: Callable[[str], List[ImportInfo]],
    ) -> List[DependencyEdge]:
        edges: List[DependencyEdge] = []
        for candidate in candidates:
            if len(edges) >= self.max_reverse_deps:
                logger.debug("Edge cap of %d reached", self.max_reverse_deps)
                break
            if candidate in skip:
                continue
            family = self.family_for(candidate)
            for imp in imports_of(candidate):
                for resolved, symbols in self.resolve(imp, candidate, family):
                    if resolved in targets and len(edges) < self.max_reverse_deps:
                        edges.append(DependencyEdge(candidate, resolved, imp.specifier, symbols))
        return edges

