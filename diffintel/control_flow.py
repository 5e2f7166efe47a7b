"""Control-flow context for functions touched by a diff.

Correlates changed lines with their enclosing functions and flags two
defensive patterns so the report layer does not describe a guarded or
exception-wrapped operation as unguarded:

- **guard**: an ``if`` whose consequence exits early (return / throw /
  raise / process termination)
- **try-catch**: a ``try`` block overlapping the changed lines
"""

from __future__ import annotations

import logging
import re
from bisect import bisect_left
from typing import Any, Iterable, List, Optional, Sequence, Set

from . import config
from .models import ControlFlowAnnotation
from .parser import SyntaxParser, end_line, field_text, node_text, start_line

logger = logging.getLogger(__name__)

_HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")

FUNCTION_TYPES = frozenset({
    "function_declaration",
    "function_definition",
    "generator_function_declaration",
    "method_definition",
    "method_declaration",
    "constructor_declaration",
    "function_item",
    "arrow_function",
    "function_expression",
    "function",
    "method",
    "singleton_method",
})

IF_TYPES = frozenset({"if_statement", "if_expression", "if", "unless"})
TRY_TYPES = frozenset({"try_statement", "begin"})
EXIT_TYPES = frozenset({
    "return_statement",
    "return_expression",
    "return",
    "throw_statement",
    "throw_expression",
    "raise_statement",
    "exit_statement",
})
CALL_TYPES = frozenset({
    "call_expression",
    "call",
    "method_invocation",
    "invocation_expression",
    "macro_invocation",
    "function_call_expression",
})
EXIT_CALLS = frozenset({
    "process.exit",
    "sys.exit",
    "os._exit",
    "os.Exit",
    "System.exit",
    "Environment.Exit",
    "log.Fatal",
    "log.Fatalf",
    "exit",
    "_exit",
    "abort",
    "panic",
    "die",
})
# Go wraps block statements in a statement_list node
_STATEMENT_CONTAINERS = frozenset({"statement_list", "block", "body_statement"})


def parse_changed_lines(hunks: str) -> Set[int]:
    """New-side line numbers of every added line in unified-diff *hunks*."""
    lines: Set[int] = set()
    current = 0

    for line in hunks.split("\n"):
        header = _HUNK_HEADER_RE.match(line)
        if header:
            current = int(header.group(1))
            continue
        if current == 0:
            continue
        if line.startswith("+"):
            lines.add(current)
            current += 1
        elif line.startswith("-") or line.startswith("\\"):
            # removed lines and "\ No newline" markers don't exist on the new side
            continue
        else:
            current += 1

    return lines


class ControlFlowAnnotator:
    """Find guards and try blocks in functions that contain changed lines."""

    def __init__(self, parser: SyntaxParser, condition_budget: int = config.GUARD_CONDITION_MAX):
        self.parser = parser
        self.condition_budget = condition_budget

    def annotate(
        self,
        source: Optional[str],
        language_id: str,
        changed_lines: Iterable[int],
    ) -> List[ControlFlowAnnotation]:
        lines = sorted(set(changed_lines))
        if not source or not source.strip() or not lines:
            return []

        tree = self.parser.parse(source, language_id)
        if tree is None:
            return []

        annotations: List[ControlFlowAnnotation] = []
        try:
            for func in _function_nodes(tree.root_node):
                if _intersects(start_line(func), end_line(func), lines):
                    self._analyze_function(func, lines, annotations)
        except Exception as exc:
            logger.warning("Control-flow analysis failed for %s source: %s", language_id, exc)
            return []
        return annotations

    def _analyze_function(
        self,
        func: Any,
        lines: Sequence[int],
        annotations: List[ControlFlowAnnotation],
    ) -> None:
        body = func.child_by_field_name("body")
        if body is None:
            return
        name = function_name(func)

        for stmt in _body_statements(body):
            target = _unwrap_expression_statement(stmt)

            if target.type in IF_TYPES:
                description = self._describe_guard(target)
                if description:
                    annotations.append(ControlFlowAnnotation(
                        function_name=name,
                        line=start_line(target),
                        kind="guard",
                        description=description,
                    ))

            elif target.type in TRY_TYPES and _is_try_block(target):
                if _intersects(start_line(target), end_line(target), lines):
                    annotations.append(ControlFlowAnnotation(
                        function_name=name,
                        line=start_line(target),
                        kind="try-catch",
                        description="operations wrapped in try-catch",
                    ))

    def _describe_guard(self, if_node: Any) -> Optional[str]:
        consequence = if_node.child_by_field_name("consequence")
        if consequence is None:
            # php keeps the branch under "body"
            consequence = if_node.child_by_field_name("body")
        if consequence is None or not _contains_early_exit(consequence):
            return None
        condition = field_text(if_node, "condition")
        if not condition:
            return None
        budget = self.condition_budget
        if len(condition) > budget:
            condition = condition[: max(budget - 3, 0)] + "..."
        return f"returns/exits early if {condition}"


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------

def function_name(node: Any) -> str:
    """Best-effort name of a function-like node."""
    name = field_text(node, "name")
    if name:
        return name

    declarator = node.child_by_field_name("declarator")
    if declarator is not None:
        # C/C++: descend pointer/function declarators to the identifier
        while declarator.child_by_field_name("declarator") is not None:
            declarator = declarator.child_by_field_name("declarator")
        return node_text(declarator)

    parent = node.parent
    if parent is not None:
        if parent.type == "variable_declarator":
            return field_text(parent, "name") or "<anonymous>"
        if parent.type in ("assignment_expression", "pair"):
            key = parent.child_by_field_name("left") or parent.child_by_field_name("key")
            if key is not None:
                return node_text(key)
    return "<anonymous>"


def _function_nodes(root: Any) -> List[Any]:
    """All function-like nodes in document order."""
    found: List[Any] = []
    stack = [root]
    while stack:
        node = stack.pop()
        # keyword tokens share type names with nodes ("function", "method")
        if node.is_named and node.type in FUNCTION_TYPES:
            found.append(node)
        stack.extend(reversed(node.children))
    return found


def _body_statements(body: Any) -> List[Any]:
    statements: List[Any] = []
    for child in body.named_children:
        if child.type in _STATEMENT_CONTAINERS:
            statements.extend(_body_statements(child))
        else:
            statements.append(child)
    return statements


def _unwrap_expression_statement(stmt: Any) -> Any:
    # Rust: `if cond { return; }` is an expression statement
    if stmt.type == "expression_statement" and stmt.named_child_count:
        inner = stmt.named_children[0]
        if inner.type in IF_TYPES:
            return inner
    return stmt


def _is_try_block(node: Any) -> bool:
    if node.type == "begin":
        return any(child.type == "rescue" for child in node.children)
    return True


def _contains_early_exit(node: Any) -> bool:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in EXIT_TYPES:
            return True
        if current.type in CALL_TYPES and _callee(current) in EXIT_CALLS:
            return True
        for child in current.children:
            # an exit inside a nested callback doesn't leave this function
            if not (child.is_named and child.type in FUNCTION_TYPES):
                stack.append(child)
    return False


def _callee(call: Any) -> str:
    if call.type == "macro_invocation":
        return field_text(call, "macro") or ""
    target = field_text(call, "function")
    if target is not None:
        return target
    # ruby call / java method_invocation: receiver and method are separate fields
    method = field_text(call, "method") or field_text(call, "name")
    if not method:
        return ""
    receiver = field_text(call, "receiver") or field_text(call, "object")
    return f"{receiver}.{method}" if receiver else method


def _intersects(start: int, end: int, sorted_lines: Sequence[int]) -> bool:
    idx = bisect_left(sorted_lines, start)
    return idx < len(sorted_lines) and sorted_lines[idx] <= end
