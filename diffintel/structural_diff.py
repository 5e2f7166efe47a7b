"""Structural diffing of declaration lists between two file versions."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Set

from .models import Declaration, FileStatus, StructuralChange

# Kinds whose names are raw statement text, not identifiers
_UNRELATABLE_KINDS = frozenset({"import"})
_MIN_STEM_LENGTH = 4
_MAX_RELATED = 3

_CAMEL_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def declaration_map(decls: Iterable[Declaration]) -> Dict[str, Declaration]:
    """Name -> declaration; a later duplicate name replaces an earlier one."""
    result: Dict[str, Declaration] = {}
    for decl in decls:
        result[decl.name] = decl
    return result


def diff_declarations(
    path: str,
    status: FileStatus,
    old_decls: List[Declaration],
    new_decls: List[Declaration],
) -> List[StructuralChange]:
    """Classify declarations as added, removed or modified.

    Args:
        path: File the changes are reported against (the new path on rename)
        status: added | modified | deleted | renamed
        old_decls: Declarations of the old version
        new_decls: Declarations of the new version

    Returns:
        Removed changes in old order, then added/modified in new order.
    """
    if status == "added":
        return [_change(path, d, "added") for d in new_decls]
    if status == "deleted":
        return [_change(path, d, "removed") for d in old_decls]

    old_map = declaration_map(old_decls)
    new_map = declaration_map(new_decls)
    changes: List[StructuralChange] = []

    for name, decl in old_map.items():
        if name not in new_map:
            changes.append(_change(path, decl, "removed"))

    for name, decl in new_map.items():
        old = old_map.get(name)
        if old is None:
            changes.append(_change(path, decl, "added"))
        elif old.raw_text != decl.raw_text:
            changes.append(_change(path, decl, "modified"))

    return changes


def _change(path: str, decl: Declaration, action: str) -> StructuralChange:
    return StructuralChange(
        file=path,
        kind=decl.kind,
        action=action,  # type: ignore[arg-type]
        name=decl.name,
        start_line=decl.start_line,
    )


# ---------------------------------------------------------------------------
# Related-existing annotation
# ---------------------------------------------------------------------------

def name_stems(name: str) -> Set[str]:
    """Lower-case word stems of an identifier (camelCase, snake_case, dotted)."""
    stems: Set[str] = set()
    for part in re.split(r"[^A-Za-z0-9]+", name):
        for word in _CAMEL_RE.findall(part):
            word = word.lower()
            if len(word) >= _MIN_STEM_LENGTH:
                stems.add(word)
    return stems


def annotate_related(
    changes: List[StructuralChange],
    base_decls: List[Declaration],
) -> List[StructuralChange]:
    """Mark added declarations that resemble declarations already present.

    An added ``validateUserToken`` next to an existing ``validateUser``
    is reported as ``related existing: validateUser`` so the report layer
    reads it as a change to existing behaviour rather than a new feature.
    Mutates and returns *changes*.
    """
    if not base_decls:
        return changes

    base_by_kind: Dict[str, List[Declaration]] = {}
    for decl in declaration_map(base_decls).values():
        if decl.kind not in _UNRELATABLE_KINDS:
            base_by_kind.setdefault(decl.kind, []).append(decl)

    for change in changes:
        if change.action != "added" or change.kind in _UNRELATABLE_KINDS:
            continue
        related = _related_names(change.name, base_by_kind.get(change.kind, []))
        if related:
            change.detail = "related existing: " + ", ".join(related)
    return changes


def _related_names(name: str, candidates: List[Declaration]) -> Optional[List[str]]:
    stems = name_stems(name)
    if not stems:
        return None
    related = [
        decl.name
        for decl in candidates
        if decl.name != name and stems & name_stems(decl.name)
    ]
    return related[:_MAX_RELATED] or None
