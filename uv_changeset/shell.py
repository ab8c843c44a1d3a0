"""Shell and git utilities.

Provides simple wrappers around subprocess calls for git operations, plus
output formatting helpers. This is the only module that touches the
repository; callers issue git commands one at a time.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from .errors import GitError


def git(*args: str, check: bool = True, cwd: Path | None = None) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
        cwd: Directory to run in; defaults to the current directory.

    Returns:
        Stripped stdout from the git command.

    Raises:
        GitError: If check is True and git exits non-zero.
    """
    result = subprocess.run(["git", *args], capture_output=True, text=True, cwd=cwd)
    if check and result.returncode != 0:
        raise GitError(args, result.stderr)
    return result.stdout.strip()


def _lines(output: str) -> set[str]:
    return {line for line in output.splitlines() if line}


def changed_files(base: str, head: str | None = None, cwd: Path | None = None) -> set[str]:
    """List files that differ between a base reference and the working state.

    With ``head``, compares the merge base of base and head against head
    (what a pull request would show). Without it, compares the merge base
    against the working tree, including uncommitted and untracked files.

    Paths are relative to ``cwd``, the same way ``ls-files`` reports them,
    so a workspace in a subdirectory of the repository sees its own
    layout. Changes outside ``cwd`` are not reported.

    Returns:
        Paths relative to cwd using "/" separators.
    """
    if head:
        return _lines(
            git("diff", "--name-only", "--relative", f"{base}...{head}", cwd=cwd)
        )

    merge_base = git("merge-base", base, "HEAD", cwd=cwd)
    files = _lines(git("diff", "--name-only", "--relative", merge_base, cwd=cwd))
    files |= _lines(git("ls-files", "--others", "--exclude-standard", cwd=cwd))
    return files


def deleted_files(base: str, head: str | None = None, cwd: Path | None = None) -> set[str]:
    """List files deleted since base, relative to cwd. Renames are not reported."""
    if head:
        target = [f"{base}...{head}"]
    else:
        target = [git("merge-base", base, "HEAD", cwd=cwd)]
    return _lines(
        git("diff", "--name-only", "--relative", "--diff-filter=D", *target, cwd=cwd)
    )


def list_tags(cwd: Path | None = None) -> set[str]:
    """Return every tag name in the repository."""
    return _lines(git("tag", "--list", check=False, cwd=cwd))


def create_tag(tag: str, message: str | None = None, cwd: Path | None = None) -> None:
    """Create a tag on HEAD, annotated when a message is given."""
    if message:
        git("tag", "-a", tag, "-m", message, cwd=cwd)
    else:
        git("tag", tag, cwd=cwd)


def commit_paths(paths: list[str], title: str, body: str = "", cwd: Path | None = None) -> None:
    """Stage the given paths (additions, edits and removals) and commit them."""
    git("add", "--all", "--", *paths, cwd=cwd)

    # Check if there are actually changes to commit
    staged = git("diff", "--cached", "--name-only", check=False, cwd=cwd)
    if not staged:
        return

    message = ["-m", title] + (["-m", body] if body else [])
    git("commit", *message, cwd=cwd)


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of a command in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")

