"""Syntax parser adapter built on Tree-sitter.

Wraps the per-language grammar wheels behind a single
``parse(source, language_id)`` call.  Grammars are imported lazily the
first time a language is requested and cached, including failures, so a
missing grammar package costs one warning per run rather than one per
file.  Every failure is recoverable: callers get ``None`` back and treat
the file as having no structural detail.
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from tree_sitter import Language, Parser as TSParser

if TYPE_CHECKING:
    from .languages import LanguageRegistry

logger = logging.getLogger(__name__)

# Grammars that have no declaration config: extension -> (language id, module, attr).
# Files in these languages still get the generic extractor.
FALLBACK_GRAMMARS: Dict[str, Tuple[str, str, str]] = {
    ".sh": ("bash", "tree_sitter_bash", "language"),
    ".bash": ("bash", "tree_sitter_bash", "language"),
}


# ===================================================================
# Node helpers
# ===================================================================

def node_text(node: Any) -> str:
    """Decoded source text of *node* (empty string for ``None``)."""
    if node is None:
        return ""
    text = node.text
    if text is None:
        return ""
    return text.decode("utf-8", errors="replace")


def field_text(node: Any, field_name: str) -> Optional[str]:
    """Text of the child stored under *field_name*, or ``None``."""
    child = node.child_by_field_name(field_name)
    if child is None:
        return None
    return node_text(child)


def start_line(node: Any) -> int:
    return node.start_point[0] + 1


def end_line(node: Any) -> int:
    return node.end_point[0] + 1


def path_extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name.lstrip("."):
        return ""
    return "." + name.rsplit(".", 1)[-1].lower()


# ===================================================================
# Parser adapter
# ===================================================================

class SyntaxParser:
    """Error-tolerant, multi-language parser for the analysis core.

    Tree-sitter produces a *concrete syntax tree* (CST) that preserves
    every token, so extraction keeps working on files with minor syntax
    errors.
    """

    def __init__(self, registry: Optional["LanguageRegistry"] = None) -> None:
        if registry is None:
            from .languages import build_default_registry
            registry = build_default_registry()
        self.registry = registry
        # language id -> (module, attr)
        self._grammars: Dict[str, Tuple[str, str]] = {
            cfg.id: (cfg.grammar_module, cfg.grammar_attr) for cfg in registry
        }
        for lang, module, attr in FALLBACK_GRAMMARS.values():
            self._grammars.setdefault(lang, (module, attr))
        self._parsers: Dict[str, Optional[TSParser]] = {}

    # ------------------------------------------------------------------
    # Language lookup
    # ------------------------------------------------------------------

    def language_for_path(self, path: str) -> Optional[str]:
        ext = path_extension(path)
        cfg = self.registry.for_extension(ext)
        if cfg is not None:
            return cfg.id
        fallback = FALLBACK_GRAMMARS.get(ext)
        return fallback[0] if fallback else None

    def is_language_supported(self, extension: str) -> bool:
        """Return True if a grammar for *extension* can be loaded."""
        if not extension.startswith("."):
            extension = "." + extension
        lang = self.language_for_path("file" + extension)
        return lang is not None and self._get_parser(lang) is not None

    def available_languages(self) -> List[str]:
        return [lang for lang in self._grammars if self._get_parser(lang) is not None]

    # ------------------------------------------------------------------
    # Grammar loading
    # ------------------------------------------------------------------

    def _get_parser(self, language_id: str) -> Optional[TSParser]:
        if language_id in self._parsers:
            return self._parsers[language_id]

        parser: Optional[TSParser] = None
        grammar = self._grammars.get(language_id)
        if grammar is None:
            logger.debug("No grammar mapped for language '%s'", language_id)
        else:
            mod_name, attr = grammar
            try:
                mod = importlib.import_module(mod_name)
                # tree-sitter >=0.22 per-language packages expose a
                # function that returns the Language capsule.
                parser = TSParser(Language(getattr(mod, attr)()))
                logger.debug("Loaded tree-sitter grammar for %s", language_id)
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, language_id, mod_name.replace("_", "-"),
                )
            except Exception as exc:
                logger.warning("Could not load tree-sitter grammar for %s: %s", language_id, exc)

        self._parsers[language_id] = parser
        return parser

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, source: str, language_id: str) -> Optional[Any]:
        """Parse *source* and return the tree, or ``None`` when impossible."""
        parser = self._get_parser(language_id)
        if parser is None:
            return None
        try:
            return parser.parse(source.encode("utf-8"))
        except Exception as exc:
            logger.warning("Tree-sitter failed to parse %s source: %s", language_id, exc)
            return None
