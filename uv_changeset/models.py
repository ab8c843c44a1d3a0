"""Data models for uv-changeset.

These Pydantic models represent the core data structures shared by the
graph builder, the version planner, the changelog aggregator, the coverage
verifier and the release orchestrator.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BumpSeverity(str, Enum):
    """How far a release moves a version: patch < minor < major.

    Severities are totally ordered and combine with ``max``. The values are
    the literal tokens used in changeset files.
    """

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    # str already defines rich comparisons, so all four are overridden
    # to compare by rank instead of alphabetically.
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BumpSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, BumpSeverity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, BumpSeverity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, BumpSeverity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {BumpSeverity.PATCH: 0, BumpSeverity.MINOR: 1, BumpSeverity.MAJOR: 2}

# Highest first, the order changelog sections are rendered in.
SEVERITY_ORDER = (BumpSeverity.MAJOR, BumpSeverity.MINOR, BumpSeverity.PATCH)


def max_severity(*severities: BumpSeverity | None) -> BumpSeverity | None:
    """Combine severities, ignoring missing ones.

    Examples:
        max_severity(PATCH, MINOR) → MINOR
        max_severity(None, PATCH) → PATCH
        max_severity() → None
    """
    present = [s for s in severities if s is not None]
    return max(present) if present else None


class ChangeCategory(str, Enum):
    """Keep a Changelog category of a changeset (front matter key ``category``)."""

    ADDED = "added"
    CHANGED = "changed"
    DEPRECATED = "deprecated"
    REMOVED = "removed"
    FIXED = "fixed"
    SECURITY = "security"

    @property
    def heading(self) -> str:
        return self.value.capitalize()


CATEGORY_ORDER = (
    ChangeCategory.ADDED,
    ChangeCategory.CHANGED,
    ChangeCategory.DEPRECATED,
    ChangeCategory.REMOVED,
    ChangeCategory.FIXED,
    ChangeCategory.SECURITY,
)


class ChangelogGrouping(str, Enum):
    """How changelog entries group their summaries."""

    SEVERITY = "severity"
    CATEGORY = "category"


class DependencyKind(str, Enum):
    """Where a dependency was declared in the manifest.

    Dev dependencies never cascade: bumping a dev-only dependency cannot
    force a release of the package that uses it.
    """

    RUNTIME = "runtime"
    BUILD = "build"
    DEV = "dev"


CASCADE_KINDS = frozenset({DependencyKind.RUNTIME, DependencyKind.BUILD})


class Release(BaseModel):
    """A single package/severity declaration inside a changeset."""

    model_config = ConfigDict(frozen=True)

    package: str
    severity: BumpSeverity


class Changeset(BaseModel):
    """A contributor-authored intent to release one or more packages.

    Changesets are immutable once parsed. Releasing a changeset archives
    its file; the record itself is never rewritten.

    Attributes:
        id: Stable identifier (the file stem, e.g. "20261018120000-fix-auth").
        releases: Ordered package/severity declarations. Package names are
                  unique within one changeset.
        summary: Free-text markdown summary.
        ordinal: Creation order among the pending changesets.
        category: Changelog category; only used when changelogs are grouped
                  by category.
        graduate: Marks a changeset that graduates a pre-release. Kept so
                  the file survives a rewrite; it does not affect the plan.
        consumed_for_prerelease: Pre-release version that already consumed
                                 this changeset, if any. Kept, not acted on.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    releases: tuple[Release, ...]
    summary: str = ""
    ordinal: int = 0
    category: ChangeCategory = ChangeCategory.CHANGED
    graduate: bool = False
    consumed_for_prerelease: str | None = None

    @property
    def packages(self) -> list[str]:
        return [r.package for r in self.releases]

    def severity_for(self, package: str) -> BumpSeverity | None:
        """Return the severity this changeset declares for a package, if any."""
        for release in self.releases:
            if release.package == package:
                return release.severity
        return None


class DependencyEdge(BaseModel):
    """An internal dependency from one workspace package to another.

    Attributes:
        source: The dependent package (the one whose manifest declares it).
        target: The dependency.
        requirement: Declared version specifier, e.g. ">=1.0,<2" or "^1.0.0".
                     Empty means any version is acceptable.
        kind: Which manifest section declared it.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    requirement: str = ""
    kind: DependencyKind = DependencyKind.RUNTIME


class PackageInfo(BaseModel):
    """Metadata for a single package in the workspace.

    Attributes:
        name: Canonical (PEP 503) package name, unique within the workspace.
        version: Current version string from pyproject.toml.
        path: Relative path from workspace root to the package directory
              ("." for a package at the root).
        manifest: Relative path to the package's pyproject.toml.
        edges: Internal dependency edges. External deps are not tracked here
               since only workspace members take part in cascading.
    """

    name: str
    version: str
    path: str
    manifest: str = ""
    edges: list[DependencyEdge] = Field(default_factory=list)

    @property
    def deps(self) -> list[str]:
        """Names of internal dependencies, in declaration order, de-duplicated."""
        return list(dict.fromkeys(e.target for e in self.edges))


class VersionBump(BaseModel):
    """Records a version change for a package.

    Used to track what versions were bumped during a release so we can
    generate commit messages and tags.

    Attributes:
        old: The version before bumping.
        new: The version after bumping.
    """

    old: str
    new: str


class PlannedRelease(BaseModel):
    """The resolved outcome for one package in a version plan.

    Attributes:
        name: Package name.
        severity: Final severity after cascade propagation.
        direct: Highest severity declared by changesets, or None for
                cascade-only releases.
        current: Version before the release.
        target: Version after the release.
        cascaded_from: Dependencies whose new version broke this package's
                       declared requirement.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    severity: BumpSeverity
    direct: BumpSeverity | None = None
    current: str
    target: str
    cascaded_from: tuple[str, ...] = ()

    @property
    def bump(self) -> VersionBump:
        return VersionBump(old=self.current, new=self.target)


class VersionPlan(BaseModel):
    """Package name → planned release, in topological order.

    Computed fresh on every run and never persisted. Packages that are not
    released are absent.
    """

    model_config = ConfigDict(frozen=True)

    releases: dict[str, PlannedRelease] = Field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.releases

    def __len__(self) -> int:
        return len(self.releases)

    def __getitem__(self, name: str) -> PlannedRelease:
        return self.releases[name]

    def get(self, name: str) -> PlannedRelease | None:
        return self.releases.get(name)

    @property
    def names(self) -> list[str]:
        return list(self.releases)

    def target_versions(self) -> dict[str, str]:
        return {name: r.target for name, r in self.releases.items()}


class ChangelogSection(BaseModel):
    """Summaries declared with one severity, in changeset creation order."""

    severity: BumpSeverity
    summaries: list[str] = Field(default_factory=list)


class CategorySection(BaseModel):
    """Summaries of changesets with one category, in changeset creation order."""

    category: ChangeCategory
    summaries: list[str] = Field(default_factory=list)


class ChangelogEntry(BaseModel):
    """Changelog content for one released package.

    Attributes:
        package: Package name.
        version: The version being released.
        sections: Non-empty sections ordered major, minor, patch.
        categories: The same summaries grouped by changeset category, in
                    Keep a Changelog order.
        dependency_updates: Generic lines for cascade-driven updates.
    """

    package: str
    version: str
    sections: list[ChangelogSection] = Field(default_factory=list)
    categories: list[CategorySection] = Field(default_factory=list)
    dependency_updates: list[str] = Field(default_factory=list)
