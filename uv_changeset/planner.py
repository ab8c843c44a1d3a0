"""Version resolution: changesets + workspace graph → version plan.

Resolution runs in three steps:
1. Direct severities: the highest severity any changeset declares for a
   package.
2. Cascade: walking the graph in topological order (dependencies before
   dependents), a dependent whose declared requirement no longer admits a
   dependency's new version is raised to at least the minimum cascade
   severity. Dev edges are skipped. Because the runtime/build graph is
   acyclic and every dependency is final before its dependents are
   visited, a single pass reaches the fixed point.
3. Version arithmetic on the resolved severity.

The plan is a pure function of (graph, changesets, config): changeset order
does not matter, and adding a changeset never lowers any severity.
"""

from __future__ import annotations

from collections.abc import Iterable

from .config import ChangesetConfig
from .deps import requirement_allows
from .errors import UnknownPackageReference
from .graph import WorkspaceGraph
from .models import (
    CASCADE_KINDS,
    BumpSeverity,
    Changeset,
    PlannedRelease,
    VersionPlan,
    max_severity,
)
from .versions import bump_version


def check_references(graph: WorkspaceGraph, changesets: Iterable[Changeset]) -> None:
    """Ensure every package named by a changeset exists in the workspace.

    Raises:
        UnknownPackageReference: Listing every unknown package and the
                                 changesets that name it.
    """
    unknown: dict[str, list[str]] = {}
    for changeset in changesets:
        for name in changeset.packages:
            if name not in graph:
                unknown.setdefault(name, []).append(changeset.id)
    if unknown:
        raise UnknownPackageReference(unknown)


def direct_severities(changesets: Iterable[Changeset]) -> dict[str, BumpSeverity]:
    """Highest declared severity per package across all changesets."""
    severities: dict[str, BumpSeverity] = {}
    for changeset in changesets:
        for release in changeset.releases:
            severities[release.package] = max_severity(
                severities.get(release.package), release.severity
            )
    return severities


def _breaks(
    requirement: str, dependency: PlannedRelease, config: ChangesetConfig
) -> bool:
    """Return True if a dependency's release breaks a declared requirement.

    Every version the dependency could reach at or below its resolved
    severity is checked, not only the final one. A requirement with a hole
    (e.g. "!=1.0.1") therefore cannot stop breaking when the dependency's
    severity rises, which keeps the plan monotonic.
    """
    return any(
        not requirement_allows(
            requirement,
            bump_version(dependency.current, s, config.zero_version_behavior),
        )
        for s in BumpSeverity
        if s <= dependency.severity
    )


def resolve_plan(
    graph: WorkspaceGraph,
    changesets: Iterable[Changeset],
    config: ChangesetConfig | None = None,
) -> VersionPlan:
    """Compute the version plan for a set of pending changesets.

    Packages are visited once, in topological order, so every dependency's
    release is settled before its dependents are examined. A dependent
    cascades when a dependency's release breaks its requirement, and it is
    then released with at least min_cascade.

    "Breaks" is broader than "the target version no longer satisfies the
    requirement": a requirement counts as broken when any version the
    dependency reaches at or below its resolved severity falls outside it
    (see _breaks). For ordinary ranges the two agree. They differ only for a
    requirement with a hole such as "!=1.0.1", which the broader check
    treats as broken by a major bump too, so raising a dependency's
    severity never removes a dependent from the plan.

    Args:
        graph: The validated workspace graph.
        changesets: Pending changesets, in any order.
        config: Supplies min_cascade and zero_version_behavior; defaults
                apply when omitted.

    Returns:
        Plan with one entry per released package, in topological order.
        Packages neither named by a changeset nor reached by cascade are
        absent.

    Raises:
        UnknownPackageReference: If a changeset names a package outside the
                                 workspace. No partial plan is produced.
    """
    config = config or ChangesetConfig()
    changesets = list(changesets)
    check_references(graph, changesets)

    direct = direct_severities(changesets)
    releases: dict[str, PlannedRelease] = {}

    for name in graph.topological_order():
        info = graph[name]
        severity = direct.get(name)
        # dict keeps first-seen order and drops duplicate targets
        cascaded_from: dict[str, None] = {}

        for edge in graph.edges_from(name):
            if edge.kind not in CASCADE_KINDS:
                continue
            dependency = releases.get(edge.target)
            if dependency is None or not _breaks(edge.requirement, dependency, config):
                continue
            cascaded_from[edge.target] = None
            severity = max_severity(severity, config.min_cascade)

        if severity is None:
            continue

        target = bump_version(info.version, severity, config.zero_version_behavior)
        releases[name] = PlannedRelease(
            name=name,
            severity=severity,
            direct=direct.get(name),
            current=info.version,
            target=target,
            cascaded_from=tuple(cascaded_from),
        )

    return VersionPlan(releases=releases)
