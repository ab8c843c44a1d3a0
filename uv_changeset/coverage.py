"""Coverage verification: every changed package must have a changeset.

Changed files come from the git boundary (shell.changed_files). Each file
is assigned to the package whose directory contains it, preferring the
deepest directory when packages are nested. A package is covered only by a
changeset that names it directly; being pulled in by a cascade does not
count, since coverage is about declared intent.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from pathlib import PurePosixPath

from pydantic import BaseModel, Field

from .changesets import CHANGESET_SUFFIX, IGNORED_FILES
from .config import ChangesetConfig
from .errors import CoverageFailure
from .graph import WorkspaceGraph
from .models import Changeset


class FileMapping(BaseModel):
    """Changed files sorted by what they belong to.

    Attributes:
        package_files: Package name → changed files it owns.
        project_files: Files outside every package (root config, CI, docs).
        ignored_files: Files matching an ignored-files pattern.
        changeset_files: Files inside the changeset directory.
    """

    package_files: dict[str, list[str]] = Field(default_factory=dict)
    project_files: list[str] = Field(default_factory=list)
    ignored_files: list[str] = Field(default_factory=list)
    changeset_files: list[str] = Field(default_factory=list)


class CoverageReport(BaseModel):
    """Outcome of a coverage check.

    Attributes:
        changed: Package name → changed files, for every changed package.
        covered: Changed packages named by at least one changeset.
        uncovered: Changed packages no changeset names.
        project_files: Changed files outside every package.
        ignored_files: Changed files matching ignored-files patterns.
        deleted_changesets: Changeset files deleted since the base, when
                            deletions are not allowed.
    """

    changed: dict[str, list[str]] = Field(default_factory=dict)
    covered: list[str] = Field(default_factory=list)
    uncovered: list[str] = Field(default_factory=list)
    project_files: list[str] = Field(default_factory=list)
    ignored_files: list[str] = Field(default_factory=list)
    deleted_changesets: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.uncovered and not self.deleted_changesets

    def raise_for_status(self) -> None:
        """Raise CoverageFailure listing every problem at once."""
        if not self.ok:
            raise CoverageFailure(self.uncovered, self.deleted_changesets)


def _normalize(path: str) -> str:
    return path.replace("\\", "/").removeprefix("./")


def _is_ignored(path: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatch(path, pattern) for pattern in patterns)


def map_files_to_packages(
    graph: WorkspaceGraph,
    paths: Iterable[str],
    config: ChangesetConfig | None = None,
) -> FileMapping:
    """Assign changed files to the packages that own them.

    Args:
        graph: The workspace graph; package paths are relative to the root.
        paths: Changed files, relative to the workspace root.
        config: Supplies changeset_dir and ignored_files.
    """
    config = config or ChangesetConfig()
    mapping = FileMapping()
    for path in sorted({_normalize(p) for p in paths}):
        if path.startswith(config.changeset_prefix):
            mapping.changeset_files.append(path)
            continue
        if _is_ignored(path, config.ignored_files):
            mapping.ignored_files.append(path)
            continue
        owner = graph.owner_of(path)
        if owner is None:
            mapping.project_files.append(path)
        else:
            mapping.package_files.setdefault(owner, []).append(path)

    return mapping


def verify_coverage(
    graph: WorkspaceGraph,
    changesets: Iterable[Changeset],
    changed_paths: Iterable[str],
    config: ChangesetConfig | None = None,
    deleted_paths: Iterable[str] = (),
    allow_deleted_changesets: bool = False,
) -> CoverageReport:
    """Check that every changed package is named by a changeset.

    This check is read-only.

    Args:
        graph: The workspace graph.
        changesets: Pending changesets.
        changed_paths: Files changed since the base reference.
        config: Supplies changeset_dir and ignored_files.
        deleted_paths: Files deleted since the base reference.
        allow_deleted_changesets: If False, deleting a pending changeset
                                  fails verification.

    Returns:
        The report; call raise_for_status() to turn failures into
        CoverageFailure.
    """
    config = config or ChangesetConfig()
    mapping = map_files_to_packages(graph, changed_paths, config)

    named = {name for changeset in changesets for name in changeset.packages}
    changed = dict(sorted(mapping.package_files.items()))

    deleted: list[str] = []
    if not allow_deleted_changesets:
        archive_prefix = config.archive_path.rstrip("/") + "/"
        # An uncommitted release leaves the archived copy untracked
        archived = {
            PurePosixPath(p).name
            for p in mapping.changeset_files
            if p.startswith(archive_prefix)
        }
        deleted = sorted(
            p
            for p in map(_normalize, deleted_paths)
            if p.startswith(config.changeset_prefix)
            and not p.startswith(archive_prefix)
            and p.endswith(CHANGESET_SUFFIX)
            and PurePosixPath(p).name not in IGNORED_FILES
            and PurePosixPath(p).name not in archived
        )

    return CoverageReport(
        changed=changed,
        covered=[name for name in changed if name in named],
        uncovered=[name for name in changed if name not in named],
        project_files=mapping.project_files,
        ignored_files=mapping.ignored_files,
        deleted_changesets=deleted,
    )
