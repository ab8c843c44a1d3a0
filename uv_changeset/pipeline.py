"""Workspace operations: init → status → verify → add → release.

Each operation loads the workspace, runs the engine and prints progress:
0. init: add the config table and the changeset directory
1. status: resolve the pending changesets into a version plan
2. verify: check every package changed since the base has a changeset
3. add: record a new changeset
4. release: apply the plan (manifests, changelogs, archive, commit, tags)

Errors propagate as ChangesetError subclasses; the CLI maps them to exit
codes.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path

from packaging.utils import canonicalize_name

from .changesets import load_changesets, write_changeset
from .config import load_config
from .coverage import CoverageReport, verify_coverage
from .errors import ConfigError, UnknownPackageReference
from .models import BumpSeverity, ChangeCategory, Changeset, VersionPlan
from .planner import resolve_plan
from .release import (
    ReleaseTransaction,
    commit_release,
    prepare_release,
    validate_release,
)
from .shell import changed_files, deleted_files, step
from .toml import (
    TOOL_TABLE,
    get_workspace_member_globs,
    has_project_table,
    load_pyproject,
    save_pyproject,
    set_tool_config,
)
from .workspace import Workspace, load_workspace


CHANGESET_README = """\
# Changesets

Each markdown file in this directory records an intended release: a front
matter block naming packages and bump severities, then a summary for the
changelog.

    ---
    "my-package": minor
    ---
    Add a streaming API.

Create one with `uv-changeset add`. Files are moved to the archive directory
when `uv-changeset release` consumes them.
"""


def _override(workspace: Workspace, **values: object) -> Workspace:
    """Return the workspace with config values replaced where given."""
    update = {k: v for k, v in values.items() if v is not None}
    if not update:
        return workspace
    return Workspace(
        root=workspace.root,
        config=workspace.config.model_copy(update=update),
        graph=workspace.graph,
    )


def read_changesets(workspace: Workspace) -> list[Changeset]:
    """Load pending changesets and print them."""
    step("Reading changesets")

    changesets = load_changesets(workspace.changeset_dir)
    if not changesets:
        print("  No pending changesets")
    for changeset in changesets:
        releases = ", ".join(f"{r.package} ({r.severity.value})" for r in changeset.releases)
        print(f"  {changeset.id}: {releases}")
    return changesets


def print_plan(plan: VersionPlan) -> None:
    step("Version plan")

    if not plan.releases:
        print("  Nothing to release")
    for name, release in plan.releases.items():
        reason = ""
        if release.cascaded_from:
            reason = f" (cascade from {', '.join(release.cascaded_from)})"
        print(
            f"  {name}: {release.current} → {release.target} "
            f"[{release.severity.value}]{reason}"
        )


def run_init(root: Path | None = None) -> Path:
    """Set up a workspace for changesets.

    Adds a [tool.uv-changeset] table holding the default settings to the
    root pyproject.toml unless one is already there, and creates the
    changeset directory with a README. Running it again changes nothing.

    Returns:
        The changeset directory.

    Raises:
        ConfigError: If the root pyproject.toml is missing, declares no
                     packages, or holds an invalid [tool.uv-changeset] table.
    """
    step("Initializing changesets")

    root = (root or Path.cwd()).resolve()
    pyproject = root / "pyproject.toml"
    doc = load_pyproject(pyproject)
    if not get_workspace_member_globs(doc) and not has_project_table(doc):
        raise ConfigError(
            "No [tool.uv.workspace] members or [project] table in pyproject.toml.\n"
            "uv-changeset requires a uv workspace. Example:\n\n"
            "  [tool.uv.workspace]\n"
            '  members = ["packages/*"]'
        )

    config = load_config(doc)
    if TOOL_TABLE in doc.get("tool", {}):
        print(f"  [tool.{TOOL_TABLE}] already present")
    else:
        set_tool_config(doc, config.model_dump(mode="json", by_alias=True))
        save_pyproject(pyproject, doc)
        print(f"  Added [tool.{TOOL_TABLE}] to pyproject.toml")

    changeset_dir = root / config.changeset_dir
    changeset_dir.mkdir(parents=True, exist_ok=True)
    readme = changeset_dir / "README.md"
    if not readme.exists():
        readme.write_text(CHANGESET_README, encoding="utf-8")
        print(f"  Created {readme.relative_to(root).as_posix()}")

    return changeset_dir


def run_status(
    root: Path | None = None, *, min_cascade: BumpSeverity | None = None
) -> VersionPlan:
    """Show pending changesets and the version plan they resolve to."""
    workspace = _override(load_workspace(root), min_cascade=min_cascade)
    changesets = read_changesets(workspace)
    plan = resolve_plan(workspace.graph, changesets, workspace.config)
    print_plan(plan)
    return plan


def run_verify(
    root: Path | None = None,
    *,
    base: str | None = None,
    head: str | None = None,
    allow_deleted_changesets: bool = False,
) -> CoverageReport:
    """Check that every package changed since ``base`` has a changeset.

    Args:
        root: Workspace root; defaults to the current directory.
        base: Base reference; defaults to the configured base branch.
        head: Head reference; defaults to the working tree.
        allow_deleted_changesets: Do not fail when pending changesets were
                                  deleted.

    Raises:
        CoverageFailure: Listing every uncovered package.
    """
    workspace = _override(load_workspace(root), base_branch=base)
    changesets = read_changesets(workspace)

    base_ref = workspace.config.base_branch
    step(f"Checking changes against {base_ref}")
    changed = changed_files(base_ref, head, cwd=workspace.root)
    deleted = deleted_files(base_ref, head, cwd=workspace.root)

    report = verify_coverage(
        workspace.graph,
        changesets,
        changed,
        workspace.config,
        deleted_paths=deleted,
        allow_deleted_changesets=allow_deleted_changesets,
    )

    if not report.changed:
        print("  No packages changed")
    for name, files in report.changed.items():
        status = "covered" if name in report.covered else "MISSING CHANGESET"
        print(f"  {name}: {len(files)} file(s) changed, {status}")
    if report.project_files:
        print(f"  {len(report.project_files)} project file(s) outside packages")

    report.raise_for_status()
    return report


def run_add(
    releases: Mapping[str, BumpSeverity],
    summary: str,
    root: Path | None = None,
    *,
    now: datetime | None = None,
    category: ChangeCategory = ChangeCategory.CHANGED,
) -> Path:
    """Record a new changeset.

    Raises:
        UnknownPackageReference: If a package is not in the workspace. The
                                 file is not written.
    """
    workspace = load_workspace(root)
    releases = {canonicalize_name(name): sev for name, sev in releases.items()}
    unknown = [name for name in releases if name not in workspace.graph]
    if unknown:
        raise UnknownPackageReference({name: ["<new changeset>"] for name in unknown})

    step("Writing changeset")
    path = write_changeset(
        workspace.changeset_dir, releases, summary, now, category=category
    )
    print(f"  {path.relative_to(workspace.root)}")
    return path


def run_release(
    root: Path | None = None,
    *,
    dry_run: bool = False,
    commit: bool = True,
    tag: bool = True,
    min_cascade: BumpSeverity | None = None,
    release_date: date | None = None,
) -> ReleaseTransaction:
    """Execute the full release pipeline.

    Everything is computed and validated before the first write. With
    dry_run, stops after validation and prints what would happen.

    Raises:
        UnknownPackageReference, WriteValidationFailure, GitError
    """
    # Tags point at the release commit
    tag = tag and commit
    workspace = _override(load_workspace(root), min_cascade=min_cascade)

    # Phase 1: Plan
    changesets = read_changesets(workspace)
    plan = resolve_plan(workspace.graph, changesets, workspace.config)
    print_plan(plan)

    # Phase 2: Compute and validate
    tx = prepare_release(
        workspace.root,
        workspace.graph,
        plan,
        changesets,
        workspace.config,
        release_date,
    )
    # Tag collisions only matter when tags will be created
    validate_release(tx, existing_tags=None if tag else set())

    if dry_run:
        step("Dry run: no files written")
        for path in tx.touched_paths():
            print(f"  {path}")
        if tag:
            for tag_str in tx.tags:
                print(f"  tag {tag_str}")
        return tx

    # Phase 3: Commit
    commit_release(tx, commit=commit, tag=tag)

    print(f"\n{'=' * 60}\nDone!\n{'=' * 60}")
    return tx
