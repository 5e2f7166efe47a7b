"""Pytest configuration and fixtures for diffintel tests."""

import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from diffintel.control_flow import ControlFlowAnnotator
from diffintel.extractor import DeclarationExtractor
from diffintel.languages import LanguageRegistry, build_default_registry
from diffintel.parser import SyntaxParser


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point config at a throwaway file and drop env overrides.

    config_manager resolves CONFIG_FILE at call time, so patching the
    module attribute is enough.
    """
    monkeypatch.setattr("diffintel.config.BASE_DIR", tmp_path / "home")
    monkeypatch.setattr("diffintel.config_manager.CONFIG_FILE", tmp_path / "home" / "config.toml")
    for name in ("DIFFINTEL_CONCURRENCY", "DIFFINTEL_MAX_REVERSE_DEPS", "DIFFINTEL_MAX_REPO_FILES"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture(scope="session")
def registry() -> LanguageRegistry:
    return build_default_registry()


@pytest.fixture(scope="session")
def parser(registry: LanguageRegistry) -> SyntaxParser:
    """One parser for the whole session; grammars load lazily."""
    return SyntaxParser(registry)


@pytest.fixture
def extractor(parser: SyntaxParser) -> DeclarationExtractor:
    return DeclarationExtractor(parser)


@pytest.fixture
def annotator(parser: SyntaxParser) -> ControlFlowAnnotator:
    return ControlFlowAnnotator(parser)


@pytest.fixture
def git_repo(temp_dir: Path):
    """An empty git repository with a committer identity configured."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")

    from diffintel.git_diff import GitRepository

    subprocess.run(["git", "init", "-q"], cwd=temp_dir, check=True)
    subprocess.run(["git", "config", "user.name", "Test"], cwd=temp_dir, check=True)
    subprocess.run(["git", "config", "user.email", "test@example.com"], cwd=temp_dir, check=True)
    subprocess.run(["git", "config", "commit.gpgsign", "false"], cwd=temp_dir, check=True)
    return GitRepository(temp_dir)


@pytest.fixture
def commit_all():
    """Stage everything, commit, and return the new commit hash."""

    def commit(repo, message: str) -> str:
        repo.run("add", "-A")
        repo.run("commit", "-q", "-m", message)
        return repo.run("rev-parse", "HEAD").strip()

    return commit


@pytest.fixture
def sample_python_code() -> str:
    """Sample Python module for extraction tests."""
    return '''"""Sample module for testing."""
import os
from typing import List

LIMIT = 10


def hello(name: str) -> str:
    """Say hello."""
    return f"Hello, {name}!"


@staticmethod
def decorated():
    pass


class Calculator:
    """Simple calculator."""

    def add(self, a: int, b: int) -> int:
        return a + b
'''


@pytest.fixture
def sample_js_code() -> str:
    return '''import { readFile } from "./io";
const helper = () => 1;
const limit = 5;
function save(path) {
  return helper(path);
}
class Store {}
export function load() {}
module.exports = { save };
'''
