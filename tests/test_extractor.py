"""Tests for top-level declaration extraction across grammars."""

import pytest

from diffintel.extractor import DeclarationExtractor
from diffintel.models import SourceVersion


def _by_name(decls):
    return {d.name: d for d in decls}


def _added_file(extractor, source, path):
    """Declarations of a newly added file, language picked from *path*."""
    old, new = extractor.extract_version(SourceVersion(path, new_text=source))
    assert old == []
    return new


def test_empty_source_yields_nothing(extractor: DeclarationExtractor):
    assert extractor.extract("", "python") == []
    assert extractor.extract("   \n\n", "python") == []
    assert extractor.extract(None, "python") == []


def test_unsupported_path_yields_nothing(extractor: DeclarationExtractor):
    assert _added_file(extractor, "hello", "README.md") == []


def test_python_declarations(extractor: DeclarationExtractor, sample_python_code: str):
    pytest.importorskip("tree_sitter_python")
    decls = extractor.extract(sample_python_code, "python")
    names = _by_name(decls)

    assert names["hello"].kind == "function"
    assert names["Calculator"].kind == "class"
    assert names["LIMIT"].kind == "variable"
    assert names["import os"].kind == "import"
    assert names["from typing import List"].kind == "import"
    # methods live inside the class text, not at top level
    assert "add" not in names


def test_python_decorated_definition_keeps_decorator(extractor: DeclarationExtractor, sample_python_code: str):
    pytest.importorskip("tree_sitter_python")
    decorated = _by_name(extractor.extract(sample_python_code, "python"))["decorated"]

    assert decorated.kind == "function"
    assert decorated.raw_text.startswith("@staticmethod")
    assert decorated.start_line == sample_python_code.splitlines().index("@staticmethod") + 1


def test_declarations_in_document_order(extractor: DeclarationExtractor, sample_python_code: str):
    pytest.importorskip("tree_sitter_python")
    lines = [d.start_line for d in extractor.extract(sample_python_code, "python")]
    assert lines == sorted(lines)


def test_javascript_declarations(extractor: DeclarationExtractor, sample_js_code: str):
    pytest.importorskip("tree_sitter_javascript")
    decls = _added_file(extractor, sample_js_code, "src/store.js")
    names = _by_name(decls)

    assert names["helper"].kind == "function"
    assert names["limit"].kind == "variable"
    assert names["save"].kind == "function"
    assert names["Store"].kind == "class"
    assert names["load"].kind == "export"
    assert names["module.exports"].kind == "export"
    imports = [d for d in decls if d.kind == "import"]
    assert len(imports) == 1
    assert "./io" in imports[0].name


def test_typescript_declarations(extractor: DeclarationExtractor):
    pytest.importorskip("tree_sitter_typescript")
    source = (
        "interface User { id: number }\n"
        "type Id = string;\n"
        "enum Color { Red }\n"
        "export function load(): User | null { return null; }\n"
    )
    names = _by_name(_added_file(extractor, source, "model.ts"))

    assert names["User"].kind == "class"
    assert names["Id"].kind == "class"
    assert names["Color"].kind == "class"
    assert names["load"].kind == "export"


def test_go_declarations(extractor: DeclarationExtractor):
    pytest.importorskip("tree_sitter_go")
    source = (
        "package main\n"
        "\n"
        'import "fmt"\n'
        "\n"
        "type Server struct{}\n"
        "\n"
        "func (s *Server) Start() {}\n"
        "\n"
        "func main() { fmt.Println() }\n"
    )
    names = _by_name(extractor.extract(source, "go"))

    assert names["Server"].kind == "class"
    assert names["(s *Server).Start"].kind == "function"
    assert names["main"].kind == "function"
    assert names['import "fmt"'].kind == "import"


def test_rust_declarations(extractor: DeclarationExtractor):
    pytest.importorskip("tree_sitter_rust")
    source = (
        "use std::io;\n"
        "struct Point { x: i32 }\n"
        "impl Point { fn new() -> Self { Point { x: 0 } } }\n"
        "fn main() {}\n"
    )
    names = _by_name(extractor.extract(source, "rust"))

    assert names["Point"].kind == "class"
    assert names["impl Point"].kind == "class"
    assert names["main"].kind == "function"
    assert names["use std::io;"].kind == "import"


def test_java_declarations(extractor: DeclarationExtractor):
    pytest.importorskip("tree_sitter_java")
    source = "import java.util.List;\n\npublic class Foo {\n  void bar() {}\n}\n"
    decls = extractor.extract(source, "java")

    assert [(d.name, d.kind) for d in decls] == [
        ("import java.util.List;", "import"),
        ("Foo", "class"),
    ]


def test_c_declarations(extractor: DeclarationExtractor):
    pytest.importorskip("tree_sitter_c")
    source = (
        "#include <stdio.h>\n"
        "#define LIMIT 10\n"
        "int add(int a, int b) { return a + b; }\n"
        "int *make(void);\n"
    )
    names = _by_name(_added_file(extractor, source, "math.c"))

    assert names["add"].kind == "function"
    assert names["LIMIT"].kind == "variable"
    # prototypes are functions, with the pointer declarator unwrapped
    assert names["make"].kind == "function"
    assert any(d.kind == "import" for d in names.values())


def test_ruby_declarations(extractor: DeclarationExtractor):
    pytest.importorskip("tree_sitter_ruby")
    source = 'require "json"\n\nclass Foo\n  def bar; end\nend\n\ndef baz\nend\n'
    names = _by_name(extractor.extract(source, "ruby"))

    assert names["Foo"].kind == "class"
    assert names["baz"].kind == "function"
    assert names['require "json"'].kind == "import"
    assert "bar" not in names


def test_fallback_extraction_for_unconfigured_grammar(extractor: DeclarationExtractor):
    pytest.importorskip("tree_sitter_bash")
    source = "greet() {\n  echo hi\n}\n"
    decls = _added_file(extractor, source, "scripts/run.sh")

    assert [(d.name, d.kind) for d in decls] == [("greet", "other")]


def test_walk_failure_returns_empty(extractor: DeclarationExtractor, monkeypatch):
    pytest.importorskip("tree_sitter_python")

    def boom(node, config):
        raise RuntimeError("walk failed")

    monkeypatch.setattr("diffintel.extractor._extract_with_config", boom)
    assert extractor.extract("def f():\n    pass\n", "python") == []


def test_extract_version_parses_both_sides(extractor: DeclarationExtractor):
    pytest.importorskip("tree_sitter_python")
    version = SourceVersion(
        "pkg/util.py",
        language="python",
        old_text="def a():\n    pass\n",
        new_text="def a():\n    pass\n\n\ndef b():\n    pass\n",
    )
    old, new = extractor.extract_version(version)

    assert [d.name for d in old] == ["a"]
    assert [d.name for d in new] == ["a", "b"]
