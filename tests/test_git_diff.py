"""Tests for the git collaborator: output parsers and a real repository."""

from pathlib import Path

import pytest

from diffintel.git_diff import (
    GitError,
    GitRepository,
    get_diff,
    parse_diff_text,
    parse_history,
    parse_name_status,
)

SAMPLE_DIFF = """diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 import os
-x = 1
+x = 2
+y = 3
 print(x)
diff --git a/old.py b/new.py
similarity index 90%
rename from old.py
rename to new.py
diff --git a/bin.dat b/bin.dat
new file mode 100644
Binary files /dev/null and b/bin.dat differ
"""


def test_parse_name_status():
    text = "M\tsrc/app.py\nA\tnew.py\nD\tgone.py\nR087\told/name.py\tnew/name.py\nT\tlink\n\n"
    assert parse_name_status(text) == [
        ("src/app.py", None, "modified"),
        ("new.py", None, "added"),
        ("gone.py", None, "deleted"),
        ("new/name.py", "old/name.py", "renamed"),
        ("link", None, "modified"),
    ]


def test_parse_name_status_empty():
    assert parse_name_status("") == []


def test_parse_diff_text_counts_exclude_headers():
    parsed = parse_diff_text(SAMPLE_DIFF)

    hunks, additions, deletions = parsed["src/app.py"]
    assert hunks.startswith("@@ -1,3 +1,4 @@")
    assert "+++" not in hunks
    assert (additions, deletions) == (2, 1)


def test_parse_diff_text_files_without_hunks():
    parsed = parse_diff_text(SAMPLE_DIFF)

    assert parsed["new.py"] == ("", 0, 0)
    assert parsed["bin.dat"] == ("", 0, 0)
    assert parse_diff_text("  \n") == {}


def test_parse_history():
    text = "abc1234|Fix login | logout race|2 days ago\ndef5678|Initial commit|3 weeks ago\n"
    entries = parse_history(text)

    assert [(e.hash, e.message, e.age) for e in entries] == [
        ("abc1234", "Fix login | logout race", "2 days ago"),
        ("def5678", "Initial commit", "3 weeks ago"),
    ]
    assert parse_history("") == []


def test_run_raises_git_error_outside_repository(temp_dir: Path):
    repo = GitRepository(temp_dir)
    assert not repo.is_repository()
    with pytest.raises(GitError):
        repo.run("rev-parse", "--verify", "HEAD")


def test_show_returns_none_for_missing_file(git_repo, commit_all):
    (git_repo.root / "a.txt").write_text("hello\n")
    commit_all(git_repo, "init")

    assert git_repo.show("HEAD", "a.txt") == "hello\n"
    assert git_repo.show("HEAD", "missing.txt") is None
    assert git_repo.ls_files() == ["a.txt"]


def test_ls_tree_lists_files_at_ref_not_checkout(git_repo, commit_all):
    (git_repo.root / "a.py").write_text("a = 1\n")
    base = commit_all(git_repo, "base")
    git_repo.run("checkout", "-q", "-b", "feature")
    (git_repo.root / "b.py").write_text("b = 1\n")
    head = commit_all(git_repo, "feature")
    git_repo.run("checkout", "-q", base)

    assert git_repo.ls_files() == ["a.py"]
    assert git_repo.ls_tree(head) == ["a.py", "b.py"]
    assert git_repo.ls_tree(base) == ["a.py"]


def test_get_diff_between_commits(git_repo, commit_all):
    root = git_repo.root
    (root / "keep.py").write_text("def keep():\n    return 1\n")
    (root / "drop.py").write_text("def drop():\n    return 'gone'\n")
    base = commit_all(git_repo, "base")

    (root / "keep.py").write_text("def keep():\n    return 2\n")
    (root / "drop.py").unlink()
    (root / "fresh.py").write_text("class Fresh:\n    value = 3\n")
    head = commit_all(git_repo, "head")

    change_set = get_diff(git_repo, base, head, concurrency=2)
    by_path = {f.path: f for f in change_set.files}

    assert by_path["keep.py"].status == "modified"
    assert by_path["keep.py"].old_content == "def keep():\n    return 1\n"
    assert by_path["keep.py"].new_content == "def keep():\n    return 2\n"
    assert (by_path["keep.py"].additions, by_path["keep.py"].deletions) == (1, 1)
    assert by_path["drop.py"].status == "deleted"
    assert by_path["drop.py"].new_content is None
    assert by_path["fresh.py"].status == "added"
    assert by_path["fresh.py"].old_content is None
    assert by_path["keep.py"].recent_history[0].message == "base"
    assert change_set.raw_diff.startswith("diff --git")


def test_get_diff_detects_rename(git_repo, commit_all):
    root = git_repo.root
    body = "".join(f"def helper_{i}():\n    return {i}\n\n" for i in range(10))
    (root / "a.py").write_text(body + "def f():\n    return 1\n")
    base = commit_all(git_repo, "base")

    git_repo.run("mv", "a.py", "b.py")
    (root / "b.py").write_text(body + "def f():\n    return 2\n")
    head = commit_all(git_repo, "rename")

    files = get_diff(git_repo, base, head).files
    assert [(f.path, f.old_path, f.status) for f in files] == [("b.py", "a.py", "renamed")]
    assert files[0].old_content.endswith("return 1\n")


def test_get_diff_working_tree(git_repo, commit_all):
    root = git_repo.root
    (root / "w.py").write_text("x = 1\n")
    base = commit_all(git_repo, "base")
    (root / "w.py").write_text("x = 2\n")

    files = get_diff(git_repo, base).files
    assert len(files) == 1
    assert files[0].new_content == "x = 2\n"
    assert files[0].old_content == "x = 1\n"


def test_get_diff_bad_ref_raises(git_repo, commit_all):
    (git_repo.root / "a.txt").write_text("a\n")
    commit_all(git_repo, "init")
    with pytest.raises(GitError):
        get_diff(git_repo, "no-such-ref", "HEAD")
