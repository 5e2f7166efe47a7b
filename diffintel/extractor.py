"""Top-level declaration extraction driven by the language registry."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from .languages import LanguageConfig, LanguageRegistry
from .models import Declaration, SourceVersion
from .parser import SyntaxParser, field_text, node_text, start_line

logger = logging.getLogger(__name__)


class DeclarationExtractor:
    """Turn one file version into an ordered list of declarations.

    Only direct children of the syntax tree's root are considered; methods
    inside a class body belong to the class's raw text, not to the list.
    """

    def __init__(self, parser: SyntaxParser, registry: Optional[LanguageRegistry] = None):
        self.parser = parser
        self.registry = registry or parser.registry

    def extract_version(self, version: SourceVersion) -> Tuple[List[Declaration], List[Declaration]]:
        """Declarations of both sides of *version*, each parsed on its own."""
        language = version.language or self.parser.language_for_path(version.path)
        if language is None:
            return [], []
        return self.extract(version.old_text, language), self.extract(version.new_text, language)

    def extract(self, source: Optional[str], language_id: str) -> List[Declaration]:
        """Extract declarations from *source*.

        Returns an empty list for empty input, an unavailable grammar, or
        any failure while parsing or walking the tree.
        """
        if not source or not source.strip():
            return []

        tree = self.parser.parse(source, language_id)
        if tree is None:
            return []

        config = self.registry.get(language_id)
        decls: List[Declaration] = []
        try:
            for node in tree.root_node.children:
                if config is not None:
                    decls.extend(_extract_with_config(node, config))
                else:
                    decls.extend(_extract_fallback(node))
        except Exception as exc:
            logger.warning("Declaration extraction failed for %s source: %s", language_id, exc)
            return []
        return decls


def _extract_with_config(node: Any, config: LanguageConfig) -> List[Declaration]:
    # Unwrap e.g. Python @decorated_definition -> inner function/class
    target = node
    wrapper_field = config.wrapper_kinds.get(node.type)
    if wrapper_field:
        inner = node.child_by_field_name(wrapper_field)
        if inner is not None:
            target = inner

    node_config = config.node_kind_map.get(target.type)
    if node_config is None:
        return []

    raw_text = node_text(node)
    line = start_line(node)

    if node_config.extractor is not None:
        extracted = node_config.extractor(target) or []
        return [
            Declaration(
                name=item.name,
                kind=item.kind or node_config.kind,
                raw_text=raw_text,
                start_line=line,
            )
            for item in extracted
        ]

    return [Declaration(
        name=field_text(target, "name") or "<anonymous>",
        kind=node_config.kind,
        raw_text=raw_text,
        start_line=line,
    )]


def _extract_fallback(node: Any) -> List[Declaration]:
    """Any named top-level node, typed ``other``, for unconfigured grammars."""
    name = field_text(node, "name")
    if not name:
        return []
    return [Declaration(name=name, kind="other", raw_text=node_text(node), start_line=start_line(node))]
