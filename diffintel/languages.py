"""Declarative per-language declaration table.

Each supported language gets one :class:`LanguageConfig` that maps the
tree-sitter node types appearing at the top level of a file to a
declaration kind.  Irregular constructs (multi-name ``var`` groups, Go
receiver methods, ``impl`` blocks, C declarators...) carry a small custom
extractor instead of bespoke diffing logic.

The registry is built once (:func:`build_default_registry`) and handed to
the extractor, parser adapter and dependency graph builder explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .models import DeclarationKind
from .parser import field_text, node_text, path_extension


@dataclass(frozen=True)
class ExtractedDecl:
    """A name pulled out of one node; ``kind`` overrides the node default."""
    name: str
    kind: Optional[DeclarationKind] = None


Extractor = Callable[[Any], Optional[List[ExtractedDecl]]]


@dataclass(frozen=True)
class NodeKindConfig:
    kind: DeclarationKind
    extractor: Optional[Extractor] = None


@dataclass(frozen=True)
class LanguageConfig:
    id: str
    extensions: Tuple[str, ...]
    grammar_module: str
    node_kind_map: Mapping[str, NodeKindConfig]
    grammar_attr: str = "language"
    # Wrapper node type -> field holding the real declaration
    wrapper_kinds: Mapping[str, str] = field(default_factory=dict)
    family: str = ""

    def __post_init__(self):
        object.__setattr__(self, "extensions", tuple(self.extensions))
        object.__setattr__(self, "node_kind_map", MappingProxyType(dict(self.node_kind_map)))
        object.__setattr__(self, "wrapper_kinds", MappingProxyType(dict(self.wrapper_kinds)))
        if not self.family:
            object.__setattr__(self, "family", self.id)


class LanguageRegistry:
    """Immutable lookup of language configs by id and file extension."""

    def __init__(self, configs: Iterable[LanguageConfig]):
        by_id: Dict[str, LanguageConfig] = {}
        by_ext: Dict[str, LanguageConfig] = {}
        for cfg in configs:
            if cfg.id in by_id:
                raise ValueError(f"Duplicate language id: {cfg.id}")
            by_id[cfg.id] = cfg
            for ext in cfg.extensions:
                if ext in by_ext:
                    raise ValueError(
                        f"Extension {ext} claimed by both {by_ext[ext].id} and {cfg.id}"
                    )
                by_ext[ext] = cfg
        self._by_id = MappingProxyType(by_id)
        self._by_ext = MappingProxyType(by_ext)

    def get(self, language_id: str) -> Optional[LanguageConfig]:
        return self._by_id.get(language_id)

    def for_extension(self, ext: str) -> Optional[LanguageConfig]:
        return self._by_ext.get(ext.lower())

    def for_path(self, path: str) -> Optional[LanguageConfig]:
        return self.for_extension(path_extension(path))

    def supported_extensions(self) -> frozenset:
        return frozenset(self._by_ext)

    def __contains__(self, language_id: object) -> bool:
        return language_id in self._by_id

    def __iter__(self) -> Iterator[LanguageConfig]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)


# ---------------------------------------------------------------------------
# Shared extractor helpers
# ---------------------------------------------------------------------------

def _whole_text(node: Any) -> Optional[List[ExtractedDecl]]:
    return [ExtractedDecl(node_text(node))]


def _named(node: Any) -> Optional[List[ExtractedDecl]]:
    """Name field if present, otherwise skip the node."""
    name = field_text(node, "name")
    return [ExtractedDecl(name)] if name else None


def _named_or_anonymous(node: Any) -> Optional[List[ExtractedDecl]]:
    return [ExtractedDecl(field_text(node, "name") or "<anonymous>")]


def _children_of_type(node: Any, *types: str) -> List[Any]:
    return [child for child in node.children if child.type in types]


def _name_of(node: Any) -> Optional[str]:
    name = field_text(node, "name")
    if name:
        return name
    for child in node.children:
        if child.type in ("identifier", "name", "type_identifier"):
            return node_text(child)
    return None


def _spec_group(spec_type: str, list_type: str = "") -> Extractor:
    """Extractor for grouped specs such as Go ``var (a, b = 1, 2; c int)``."""

    def extract(node: Any) -> Optional[List[ExtractedDecl]]:
        specs = _children_of_type(node, spec_type)
        if list_type:
            for group in _children_of_type(node, list_type):
                specs.extend(_children_of_type(group, spec_type))
        results: List[ExtractedDecl] = []
        for spec in specs:
            for name_node in spec.children_by_field_name("name"):
                results.append(ExtractedDecl(node_text(name_node)))
        return results or None

    return extract


# ---------------------------------------------------------------------------
# JavaScript / TypeScript
# ---------------------------------------------------------------------------

FUNCTION_VALUE_TYPES = frozenset({
    "arrow_function",
    "function",
    "function_expression",
    "generator_function",
})


def _js_variable_declarators(node: Any) -> Optional[List[ExtractedDecl]]:
    results: List[ExtractedDecl] = []
    for child in _children_of_type(node, "variable_declarator"):
        name = field_text(child, "name") or "<unknown>"
        value = child.child_by_field_name("value")
        is_fn = value is not None and value.type in FUNCTION_VALUE_TYPES
        results.append(ExtractedDecl(name, "function" if is_fn else "variable"))
    return results or None


def _js_import(node: Any) -> Optional[List[ExtractedDecl]]:
    return [ExtractedDecl(field_text(node, "source") or node_text(node))]


def _js_export(node: Any) -> Optional[List[ExtractedDecl]]:
    decl = node.child_by_field_name("declaration")
    if decl is not None:
        name = field_text(decl, "name")
        if name:
            return [ExtractedDecl(name)]
        if decl.type in ("lexical_declaration", "variable_declaration"):
            names = [ExtractedDecl(d.name) for d in _js_variable_declarators(decl) or []]
            if names:
                return names
    return [ExtractedDecl(node_text(node)[:60])]


def _js_module_exports(node: Any) -> Optional[List[ExtractedDecl]]:
    expr = node.child(0) if node.child_count else None
    if expr is not None and expr.type == "assignment_expression":
        left = field_text(expr, "left") or ""
        if left.startswith("module.exports"):
            return [ExtractedDecl("module.exports")]
    return None


JAVASCRIPT_NODES: Dict[str, NodeKindConfig] = {
    "function_declaration": NodeKindConfig("function"),
    "generator_function_declaration": NodeKindConfig("function"),
    "class_declaration": NodeKindConfig("class"),
    "import_statement": NodeKindConfig("import", _js_import),
    "export_statement": NodeKindConfig("export", _js_export),
    "lexical_declaration": NodeKindConfig("variable", _js_variable_declarators),
    "variable_declaration": NodeKindConfig("variable", _js_variable_declarators),
    "expression_statement": NodeKindConfig("export", _js_module_exports),
}

TYPESCRIPT_NODES: Dict[str, NodeKindConfig] = {
    **JAVASCRIPT_NODES,
    "abstract_class_declaration": NodeKindConfig("class"),
    "interface_declaration": NodeKindConfig("class"),
    "type_alias_declaration": NodeKindConfig("class"),
    "enum_declaration": NodeKindConfig("class"),
    "function_signature": NodeKindConfig("function"),
}


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------

def _py_assignment(node: Any) -> Optional[List[ExtractedDecl]]:
    expr = node.child(0) if node.child_count else None
    if expr is not None and expr.type == "assignment":
        left = field_text(expr, "left")
        if left:
            return [ExtractedDecl(left)]
    return None


PYTHON_NODES: Dict[str, NodeKindConfig] = {
    "function_definition": NodeKindConfig("function"),
    "class_definition": NodeKindConfig("class"),
    "import_statement": NodeKindConfig("import", _whole_text),
    "import_from_statement": NodeKindConfig("import", _whole_text),
    "future_import_statement": NodeKindConfig("import", _whole_text),
    "expression_statement": NodeKindConfig("variable", _py_assignment),
}


# ---------------------------------------------------------------------------
# Go
# ---------------------------------------------------------------------------

def _go_method(node: Any) -> Optional[List[ExtractedDecl]]:
    receiver = (field_text(node, "receiver") or "").strip()
    if receiver.startswith("(") and receiver.endswith(")"):
        receiver = receiver[1:-1].strip()
    name = field_text(node, "name") or "<anonymous>"
    return [ExtractedDecl(f"({receiver}).{name}" if receiver else name)]


def _go_types(node: Any) -> Optional[List[ExtractedDecl]]:
    results = [
        ExtractedDecl(field_text(spec, "name") or "<anonymous>")
        for spec in _children_of_type(node, "type_spec", "type_alias")
    ]
    return results or None


GO_NODES: Dict[str, NodeKindConfig] = {
    "function_declaration": NodeKindConfig("function"),
    "method_declaration": NodeKindConfig("function", _go_method),
    "type_declaration": NodeKindConfig("class", _go_types),
    "import_declaration": NodeKindConfig("import", _whole_text),
    "var_declaration": NodeKindConfig("variable", _spec_group("var_spec", "var_spec_list")),
    "const_declaration": NodeKindConfig("variable", _spec_group("const_spec")),
}


# ---------------------------------------------------------------------------
# Rust
# ---------------------------------------------------------------------------

def _rust_impl(node: Any) -> Optional[List[ExtractedDecl]]:
    type_name = field_text(node, "type") or "<anonymous>"
    trait = field_text(node, "trait")
    return [ExtractedDecl(f"{trait} for {type_name}" if trait else f"impl {type_name}")]


RUST_NODES: Dict[str, NodeKindConfig] = {
    "function_item": NodeKindConfig("function"),
    "struct_item": NodeKindConfig("class"),
    "enum_item": NodeKindConfig("class"),
    "union_item": NodeKindConfig("class"),
    "trait_item": NodeKindConfig("class"),
    "impl_item": NodeKindConfig("class", _rust_impl),
    "use_declaration": NodeKindConfig("import", _whole_text),
    "const_item": NodeKindConfig("variable"),
    "static_item": NodeKindConfig("variable"),
    "type_item": NodeKindConfig("class"),
    "mod_item": NodeKindConfig("export"),
    "macro_definition": NodeKindConfig("function"),
}


# ---------------------------------------------------------------------------
# Java
# ---------------------------------------------------------------------------

def _java_field(node: Any) -> Optional[List[ExtractedDecl]]:
    results = []
    for declarator in node.children_by_field_name("declarator"):
        name = field_text(declarator, "name")
        if name:
            results.append(ExtractedDecl(name))
    return results or None


JAVA_NODES: Dict[str, NodeKindConfig] = {
    "method_declaration": NodeKindConfig("function"),
    "class_declaration": NodeKindConfig("class"),
    "interface_declaration": NodeKindConfig("class"),
    "enum_declaration": NodeKindConfig("class"),
    "record_declaration": NodeKindConfig("class"),
    "annotation_type_declaration": NodeKindConfig("class"),
    "import_declaration": NodeKindConfig("import", _whole_text),
    "field_declaration": NodeKindConfig("variable", _java_field),
}


# ---------------------------------------------------------------------------
# C / C++
# ---------------------------------------------------------------------------

def _c_declarator_name(declarator: Any) -> str:
    """Descend nested declarators (pointer, function, init) to the name."""
    current = declarator
    while True:
        inner = current.child_by_field_name("declarator")
        if inner is None:
            return node_text(current)
        current = inner


def _c_is_function(declarator: Any) -> bool:
    current = declarator
    while current is not None:
        if current.type == "function_declarator":
            return True
        current = current.child_by_field_name("declarator")
    return False


def _c_function(node: Any) -> Optional[List[ExtractedDecl]]:
    declarator = node.child_by_field_name("declarator")
    if declarator is None:
        return None
    return [ExtractedDecl(_c_declarator_name(declarator))]


def _c_declaration(node: Any) -> Optional[List[ExtractedDecl]]:
    results = []
    for declarator in node.children_by_field_name("declarator"):
        name = _c_declarator_name(declarator)
        if not name:
            continue
        results.append(ExtractedDecl(name, "function" if _c_is_function(declarator) else None))
    return results or None


def _c_typedef(node: Any) -> Optional[List[ExtractedDecl]]:
    results = [ExtractedDecl(_c_declarator_name(d)) for d in node.children_by_field_name("declarator")]
    return results or None


C_NODES: Dict[str, NodeKindConfig] = {
    "function_definition": NodeKindConfig("function", _c_function),
    "declaration": NodeKindConfig("variable", _c_declaration),
    "struct_specifier": NodeKindConfig("class", _named),
    "union_specifier": NodeKindConfig("class", _named),
    "enum_specifier": NodeKindConfig("class", _named),
    "type_definition": NodeKindConfig("class", _c_typedef),
    "preproc_include": NodeKindConfig("import", _whole_text),
    "preproc_def": NodeKindConfig("variable", _named),
    "preproc_function_def": NodeKindConfig("function", _named),
}


def _cpp_template(node: Any) -> Optional[List[ExtractedDecl]]:
    for child in node.children:
        if child.type == "function_definition":
            return _c_function(child)
        if child.type in ("class_specifier", "struct_specifier"):
            name = field_text(child, "name")
            return [ExtractedDecl(name, "class")] if name else None
        if child.type == "declaration":
            return _c_declaration(child)
    return None


CPP_NODES: Dict[str, NodeKindConfig] = {
    **C_NODES,
    "class_specifier": NodeKindConfig("class", _named),
    "namespace_definition": NodeKindConfig("export", _named_or_anonymous),
    "template_declaration": NodeKindConfig("function", _cpp_template),
    "using_declaration": NodeKindConfig("import", _whole_text),
    "alias_declaration": NodeKindConfig("class"),
}


# ---------------------------------------------------------------------------
# Ruby
# ---------------------------------------------------------------------------

RUBY_REQUIRE_METHODS = frozenset({"require", "require_relative", "load"})


def _ruby_require(node: Any) -> Optional[List[ExtractedDecl]]:
    if node.child_by_field_name("receiver") is not None:
        return None
    if field_text(node, "method") in RUBY_REQUIRE_METHODS:
        return [ExtractedDecl(node_text(node))]
    return None


def _left_side(node: Any) -> Optional[List[ExtractedDecl]]:
    left = field_text(node, "left")
    return [ExtractedDecl(left)] if left else None


RUBY_NODES: Dict[str, NodeKindConfig] = {
    "method": NodeKindConfig("function"),
    "singleton_method": NodeKindConfig("function"),
    "class": NodeKindConfig("class", _named),
    "module": NodeKindConfig("class", _named),
    "call": NodeKindConfig("import", _ruby_require),
    "assignment": NodeKindConfig("variable", _left_side),
}


# ---------------------------------------------------------------------------
# PHP
# ---------------------------------------------------------------------------

def _php_first_element(element_type: str) -> Extractor:
    def extract(node: Any) -> Optional[List[ExtractedDecl]]:
        for child in _children_of_type(node, element_type):
            name = _name_of(child) or (node_text(child.child(0)) if child.child_count else "")
            if name:
                return [ExtractedDecl(name)]
        return None

    return extract


PHP_NODES: Dict[str, NodeKindConfig] = {
    "function_definition": NodeKindConfig("function"),
    "method_declaration": NodeKindConfig("function"),
    "class_declaration": NodeKindConfig("class"),
    "interface_declaration": NodeKindConfig("class"),
    "trait_declaration": NodeKindConfig("class"),
    "enum_declaration": NodeKindConfig("class"),
    "namespace_use_declaration": NodeKindConfig("import", _whole_text),
    "namespace_definition": NodeKindConfig("export", _named_or_anonymous),
    "property_declaration": NodeKindConfig("variable", _php_first_element("property_element")),
    "const_declaration": NodeKindConfig("variable", _php_first_element("const_element")),
}


# ---------------------------------------------------------------------------
# C#
# ---------------------------------------------------------------------------

def _csharp_field(node: Any) -> Optional[List[ExtractedDecl]]:
    results = []
    for decl in _children_of_type(node, "variable_declaration"):
        for declarator in _children_of_type(decl, "variable_declarator"):
            name = _name_of(declarator)
            if name:
                results.append(ExtractedDecl(name))
    return results or None


CSHARP_NODES: Dict[str, NodeKindConfig] = {
    "method_declaration": NodeKindConfig("function"),
    "local_function_statement": NodeKindConfig("function"),
    "class_declaration": NodeKindConfig("class"),
    "interface_declaration": NodeKindConfig("class"),
    "struct_declaration": NodeKindConfig("class"),
    "enum_declaration": NodeKindConfig("class"),
    "record_declaration": NodeKindConfig("class"),
    "delegate_declaration": NodeKindConfig("class"),
    "namespace_declaration": NodeKindConfig("export", _named_or_anonymous),
    "file_scoped_namespace_declaration": NodeKindConfig("export", _named_or_anonymous),
    "using_directive": NodeKindConfig("import", _whole_text),
    "field_declaration": NodeKindConfig("variable", _csharp_field),
    "property_declaration": NodeKindConfig("variable"),
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def default_language_configs() -> List[LanguageConfig]:
    return [
        LanguageConfig(
            id="javascript",
            extensions=(".js", ".jsx", ".mjs", ".cjs"),
            grammar_module="tree_sitter_javascript",
            node_kind_map=JAVASCRIPT_NODES,
            family="ecmascript",
        ),
        LanguageConfig(
            id="typescript",
            extensions=(".ts", ".mts", ".cts"),
            grammar_module="tree_sitter_typescript",
            grammar_attr="language_typescript",
            node_kind_map=TYPESCRIPT_NODES,
            family="ecmascript",
        ),
        LanguageConfig(
            id="tsx",
            extensions=(".tsx",),
            grammar_module="tree_sitter_typescript",
            grammar_attr="language_tsx",
            node_kind_map=TYPESCRIPT_NODES,
            family="ecmascript",
        ),
        LanguageConfig(
            id="python",
            extensions=(".py", ".pyi"),
            grammar_module="tree_sitter_python",
            node_kind_map=PYTHON_NODES,
            wrapper_kinds={"decorated_definition": "definition"},
        ),
        LanguageConfig(
            id="go",
            extensions=(".go",),
            grammar_module="tree_sitter_go",
            node_kind_map=GO_NODES,
        ),
        LanguageConfig(
            id="rust",
            extensions=(".rs",),
            grammar_module="tree_sitter_rust",
            node_kind_map=RUST_NODES,
        ),
        LanguageConfig(
            id="java",
            extensions=(".java",),
            grammar_module="tree_sitter_java",
            node_kind_map=JAVA_NODES,
        ),
        LanguageConfig(
            id="c",
            extensions=(".c", ".h"),
            grammar_module="tree_sitter_c",
            node_kind_map=C_NODES,
            family="c",
        ),
        LanguageConfig(
            id="cpp",
            extensions=(".cpp", ".cc", ".cxx", ".hpp", ".hh", ".hxx"),
            grammar_module="tree_sitter_cpp",
            node_kind_map=CPP_NODES,
            family="c",
        ),
        LanguageConfig(
            id="ruby",
            extensions=(".rb",),
            grammar_module="tree_sitter_ruby",
            node_kind_map=RUBY_NODES,
        ),
        LanguageConfig(
            id="php",
            extensions=(".php",),
            grammar_module="tree_sitter_php",
            grammar_attr="language_php",
            node_kind_map=PHP_NODES,
        ),
        LanguageConfig(
            id="csharp",
            extensions=(".cs",),
            grammar_module="tree_sitter_c_sharp",
            node_kind_map=CSHARP_NODES,
        ),
    ]


def build_default_registry() -> LanguageRegistry:
    """Construct the registry of every built-in language config."""
    return LanguageRegistry(default_language_configs())
