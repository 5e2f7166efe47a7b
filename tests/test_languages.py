"""Tests for the language registry and parser adapter."""

import pytest

from diffintel.languages import (
    LanguageConfig,
    LanguageRegistry,
    NodeKindConfig,
    build_default_registry,
    default_language_configs,
)
from diffintel.parser import SyntaxParser, path_extension


def test_default_registry_covers_ten_languages(registry: LanguageRegistry):
    ids = {cfg.id for cfg in registry}
    assert len(registry) >= 10
    for lang in ("javascript", "typescript", "python", "go", "rust", "java", "c", "cpp", "ruby", "php", "csharp"):
        assert lang in ids


def test_lookup_by_extension(registry: LanguageRegistry):
    assert registry.for_extension(".py").id == "python"
    assert registry.for_extension(".tsx").id == "tsx"
    assert registry.for_path("src/app/Main.JAVA").id == "java"
    assert registry.for_path("Makefile") is None
    assert registry.for_path(".bashrc") is None


def test_families(registry: LanguageRegistry):
    assert registry.get("typescript").family == "ecmascript"
    assert registry.get("cpp").family == "c"
    assert registry.get("python").family == "python"


def test_duplicate_id_rejected():
    config = LanguageConfig(
        id="x",
        extensions=(".x",),
        grammar_module="tree_sitter_x",
        node_kind_map={"thing": NodeKindConfig("other")},
    )
    with pytest.raises(ValueError):
        LanguageRegistry([config, config])


def test_duplicate_extension_rejected():
    first = LanguageConfig(id="a", extensions=(".x",), grammar_module="m", node_kind_map={})
    second = LanguageConfig(id="b", extensions=(".x",), grammar_module="m", node_kind_map={})
    with pytest.raises(ValueError):
        LanguageRegistry([first, second])


def test_configs_are_read_only():
    config = default_language_configs()[0]
    with pytest.raises(TypeError):
        config.node_kind_map["new_kind"] = NodeKindConfig("other")  # type: ignore[index]


def test_supported_extensions_are_lowercase_and_dotted():
    exts = build_default_registry().supported_extensions()
    assert ".rs" in exts
    assert all(e.startswith(".") and e == e.lower() for e in exts)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("a/b/c.PY", ".py"),
        ("noext", ""),
        (".gitignore", ""),
        ("dir.d/file", ""),
        ("archive.tar.gz", ".gz"),
    ],
)
def test_path_extension(path, expected):
    assert path_extension(path) == expected


def test_parser_language_for_path(parser: SyntaxParser):
    assert parser.language_for_path("x.go") == "go"
    assert parser.language_for_path("run.sh") == "bash"
    assert parser.language_for_path("notes.txt") is None


def test_parse_unknown_language_returns_none(parser: SyntaxParser):
    assert parser.parse("anything", "cobol") is None


def test_is_language_supported_for_installed_grammar(parser: SyntaxParser):
    pytest.importorskip("tree_sitter_python")
    assert parser.is_language_supported(".py")
    assert parser.is_language_supported("py")
    assert not parser.is_language_supported(".txt")


def test_parse_tolerates_syntax_errors(parser: SyntaxParser):
    pytest.importorskip("tree_sitter_python")
    tree = parser.parse("def broken(:\n    pass\n", "python")
    assert tree is not None
    assert tree.root_node.type == "module"
