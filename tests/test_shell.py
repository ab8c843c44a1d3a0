"""Tests for uv_changeset.shell against a real git repository."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import make_workspace
from uv_changeset.changesets import write_changeset
from uv_changeset.errors import CoverageFailure, GitError
from uv_changeset.models import BumpSeverity
from uv_changeset.pipeline import run_release, run_verify
from uv_changeset.shell import changed_files, deleted_files, git, list_tags

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def commit_all(repo: Path, message: str) -> None:
    git("add", "--all", cwd=repo)
    git("commit", "-q", "-m", message, cwd=repo)


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A repository whose uv workspace lives in py/, on a branch off main."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")

    git("init", "-q", cwd=tmp_path)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=tmp_path)
    (tmp_path / "README.md").write_text("# repo\n")
    make_workspace(tmp_path / "py")
    commit_all(tmp_path, "Initial commit")
    git("checkout", "-q", "-b", "feature", cwd=tmp_path)
    return tmp_path


class TestGit:
    def test_returns_stripped_stdout(self, repo: Path) -> None:
        assert git("rev-parse", "--abbrev-ref", "HEAD", cwd=repo) == "feature"

    def test_failure_raises(self, repo: Path) -> None:
        with pytest.raises(GitError, match="rev-parse"):
            git("rev-parse", "no-such-ref", cwd=repo)

    def test_unchecked_failure(self, repo: Path) -> None:
        assert git("rev-parse", "--verify", "-q", "no-such-ref", check=False, cwd=repo) == ""


class TestChangedFiles:
    def test_paths_relative_to_workspace(self, repo: Path) -> None:
        ws = repo / "py"
        with open(ws / "packages/core/pyproject.toml", "a") as f:
            f.write("# edited\n")
        commit_all(repo, "Edit core")

        assert changed_files("main", "HEAD", cwd=ws) == {"packages/core/pyproject.toml"}

    def test_working_tree_includes_untracked(self, repo: Path) -> None:
        ws = repo / "py"
        with open(ws / "packages/core/pyproject.toml", "a") as f:
            f.write("# edited\n")
        (ws / "packages/app/new.py").write_text("x = 1\n")

        assert changed_files("main", cwd=ws) == {
            "packages/app/new.py",
            "packages/core/pyproject.toml",
        }

    def test_changes_outside_workspace_are_not_reported(self, repo: Path) -> None:
        (repo / "README.md").write_text("# edited\n")
        commit_all(repo, "Edit readme")

        assert changed_files("main", "HEAD", cwd=repo / "py") == set()
        assert changed_files("main", "HEAD", cwd=repo) == {"README.md"}


class TestDeletedFiles:
    def test_paths_relative_to_workspace(self, repo: Path) -> None:
        ws = repo / "py"
        path = write_changeset(ws / ".changeset", {"core": BumpSeverity.PATCH}, "Fix.")
        commit_all(repo, "Add changeset")
        git("branch", "-f", "main", "HEAD", cwd=repo)
        path.unlink()

        assert deleted_files("main", cwd=ws) == {f".changeset/{path.name}"}


class TestListTags:
    def test_lists_tags(self, repo: Path) -> None:
        git("tag", "v1.0.0", cwd=repo)
        assert list_tags(cwd=repo) == {"v1.0.0"}


class TestVerifyInSubdirectory:
    def test_uncovered_change_fails(self, repo: Path) -> None:
        ws = repo / "py"
        with open(ws / "packages/core/pyproject.toml", "a") as f:
            f.write("# edited\n")
        commit_all(repo, "Edit core")

        with pytest.raises(CoverageFailure) as exc_info:
            run_verify(ws, base="main")
        assert exc_info.value.uncovered == ["core"]

    def test_covered_change_passes(self, repo: Path) -> None:
        ws = repo / "py"
        with open(ws / "packages/core/pyproject.toml", "a") as f:
            f.write("# edited\n")
        write_changeset(ws / ".changeset", {"core": BumpSeverity.PATCH}, "Fix.")

        report = run_verify(ws, base="main")
        assert report.changed == {"core": ["packages/core/pyproject.toml"]}
        assert report.ok

    @patch("uv_changeset.release.create_tag")
    def test_uncommitted_release_is_not_a_deletion(self, mock_tag, repo: Path) -> None:
        ws = repo / "py"
        write_changeset(ws / ".changeset", {"core": BumpSeverity.PATCH}, "Fix.")
        commit_all(repo, "Add changeset")
        git("branch", "-f", "main", "HEAD", cwd=repo)

        run_release(ws, commit=False)

        with pytest.raises(CoverageFailure) as exc_info:
            run_verify(ws, base="main")
        assert exc_info.value.deleted_changesets == []
        mock_tag.assert_not_called()
