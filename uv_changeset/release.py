"""Release orchestration: apply a version plan to the workspace.

Releases are compute-then-commit:
1. prepare_release() renders every manifest, changelog and archive move in
   memory. Nothing on disk changes.
2. validate_release() checks the whole transaction and reports every
   problem at once.
3. commit_release() performs the writes, archives consumed changesets,
   commits and tags.

Writes are not rolled back if one fails midway; validation runs in full
before the first write so that window stays as small as possible. A run
interrupted before commit_release() leaves the workspace untouched.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field

from .changelog import CHANGELOG_FILENAME, aggregate, prepend_entry, render_entry
from .changesets import CHANGESET_SUFFIX, archive_changeset
from .config import ChangesetConfig
from .deps import render_pyproject
from .errors import WriteValidationFailure
from .graph import WorkspaceGraph
from .models import Changeset, VersionBump, VersionPlan
from .shell import commit_paths, create_tag, list_tags, step

RELEASE_COMMIT_TITLE = "chore: release packages"


def tag_name(package: str, version: str, single_package: bool) -> str:
    """Tag for a released package.

    Single-package workspaces use "v{version}". Multi-package workspaces
    use "{package}@{version}"; "@" cannot appear in a package name, unlike
    "-", so the split is unambiguous.

    Examples:
        tag_name("foo", "2.0.0", single_package=True) → "v2.0.0"
        tag_name("foo", "1.1.0", single_package=False) → "foo@1.1.0"
    """
    if single_package:
        return f"v{version}"
    return f"{package}@{version}"


class FileWrite(BaseModel):
    """New content for a file, relative to the workspace root."""

    path: str
    content: str


class ManifestWrite(FileWrite):
    package: str
    bump: VersionBump


class ChangesetArchive(BaseModel):
    changeset_id: str
    source: str
    destination: str


class ReleaseTransaction(BaseModel):
    """Everything a release will do, computed before anything is written.

    Attributes:
        root: Absolute workspace root.
        plan: The version plan being applied.
        manifests: pyproject.toml rewrites, one per released package.
        changelogs: CHANGELOG.md rewrites, one per released package.
        archives: Changeset files to move to the archive directory.
        consumed: The changesets being released.
        tags: Tag names to create, in plan order.
    """

    root: Path
    plan: VersionPlan
    manifests: list[ManifestWrite] = Field(default_factory=list)
    changelogs: list[FileWrite] = Field(default_factory=list)
    archives: list[ChangesetArchive] = Field(default_factory=list)
    consumed: list[Changeset] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @property
    def bumps(self) -> dict[str, VersionBump]:
        return {m.package: m.bump for m in self.manifests}

    def touched_paths(self) -> list[str]:
        """Every path the commit stages: writes plus both ends of each move."""
        paths = [w.path for w in self.manifests] + [w.path for w in self.changelogs]
        for archive in self.archives:
            paths.extend([archive.source, archive.destination])
        return paths


def prepare_release(
    root: Path,
    graph: WorkspaceGraph,
    plan: VersionPlan,
    changesets: list[Changeset],
    config: ChangesetConfig | None = None,
    release_date: date | None = None,
) -> ReleaseTransaction:
    """Compute every mutation of a release in memory.

    Each released package gets its new version, and internal requirements
    that no longer admit a released dependency are retargeted. Reads the
    current manifests and changelogs but writes nothing.

    Args:
        root: Workspace root.
        graph: The workspace graph the plan was resolved against.
        plan: The resolved version plan.
        changesets: The pending changesets the plan was resolved from.
        config: Supplies changeset_dir, archive_dir and the changelog
                settings.
        release_date: Date for changelog headings; defaults to today.
    """
    config = config or ChangesetConfig()
    release_date = release_date or date.today()
    tx = ReleaseTransaction(root=root, plan=plan, consumed=list(changesets))
    released = plan.target_versions()

    for name, planned in plan.releases.items():
        info = graph[name]
        manifest = root / info.manifest
        if manifest.exists():
            dep_versions = {
                e.target: released[e.target]
                for e in info.edges
                if e.target in released
            }
            content = render_pyproject(manifest, planned.target, dep_versions)
        else:
            # Reported by validate_release()
            content = ""
        tx.manifests.append(
            ManifestWrite(
                package=name, path=info.manifest, content=content, bump=planned.bump
            )
        )
        tx.tags.append(tag_name(name, planned.target, graph.is_single_package))

    if config.changelog:
        for entry in aggregate(plan, changesets):
            rel = (Path(graph[entry.package].path) / CHANGELOG_FILENAME).as_posix()
            path = root / rel
            existing = path.read_text(encoding="utf-8") if path.exists() else None
            tx.changelogs.append(
                FileWrite(
                    path=rel,
                    content=prepend_entry(
                        existing,
                        render_entry(entry, release_date, config.changelog_sections),
                    ),
                )
            )

    for changeset in changesets:
        filename = f"{changeset.id}{CHANGESET_SUFFIX}"
        tx.archives.append(
            ChangesetArchive(
                changeset_id=changeset.id,
                source=(Path(config.changeset_dir) / filename).as_posix(),
                destination=(Path(config.archive_path) / filename).as_posix(),
            )
        )

    return tx


def validate_release(
    tx: ReleaseTransaction, existing_tags: set[str] | None = None
) -> None:
    """Check a prepared release before anything is written.

    Args:
        tx: The prepared transaction.
        existing_tags: Tags already in the repository; queried from git
                       when omitted.

    Raises:
        WriteValidationFailure: Listing every problem found.
    """
    problems: list[str] = []

    if not tx.plan.releases:
        problems.append("Nothing to release: no pending changesets")

    for write in tx.manifests:
        if not (tx.root / write.path).is_file():
            problems.append(f"{write.package}: manifest {write.path} does not exist")

    for changeset in tx.consumed:
        # A changeset for a package outside the plan would be archived
        # without ever being released.
        orphaned = [p for p in changeset.packages if p not in tx.plan]
        if orphaned:
            problems.append(
                f"Changeset {changeset.id} names unreleased packages: {', '.join(orphaned)}"
            )

    for archive in tx.archives:
        if not (tx.root / archive.source).is_file():
            problems.append(f"Changeset file {archive.source} does not exist")
        if (tx.root / archive.destination).exists():
            problems.append(f"Archived changeset {archive.destination} already exists")

    if existing_tags is None:
        existing_tags = list_tags(cwd=tx.root)
    for tag in tx.tags:
        if tag in existing_tags:
            problems.append(f"Tag {tag} already exists")

    if problems:
        raise WriteValidationFailure(problems)


def commit_release(
    tx: ReleaseTransaction, *, commit: bool = True, tag: bool = True
) -> None:
    """Write a validated release to disk, then commit and tag it.

    Git operations run one after another: the commit, then one tag per
    released package. Tagging without committing would tag the previous
    HEAD, so tags are only created when commit is True.

    Args:
        tx: A transaction that passed validate_release().
        commit: Stage and commit the written files.
        tag: Create one tag per released package.
    """
    step("Writing manifests")
    for write in tx.manifests:
        (tx.root / write.path).write_text(write.content)
        print(f"  {write.package}: {write.bump.old} → {write.bump.new}")

    if tx.changelogs:
        step("Writing changelogs")
        for write in tx.changelogs:
            (tx.root / write.path).write_text(write.content, encoding="utf-8")
            print(f"  {write.path}")

    step("Archiving changesets")
    for archive in tx.archives:
        archive_changeset(tx.root / archive.source, (tx.root / archive.destination).parent)
        print(f"  {archive.changeset_id}")

    if not commit:
        return

    step("Committing release")
    summary = "\n".join(f"  {n}: {b.old} → {b.new}" for n, b in tx.bumps.items())
    commit_paths(tx.touched_paths(), RELEASE_COMMIT_TITLE, summary, cwd=tx.root)
    print("  Committed")

    if tag:
        step("Creating package tags")
        for name, tag_str in zip(tx.plan.names, tx.tags):
            create_tag(tag_str, f"Release {name} {tx.plan[name].target}", cwd=tx.root)
            print(f"  {tag_str}")
