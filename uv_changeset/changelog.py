"""Changelog aggregation and rendering.

Summaries are grouped per released package by the severity each changeset
declared for that package, not by the resolved severity. With
``changelog-sections = "category"`` they are grouped under Keep a Changelog
headings (Added, Changed, ...) taken from each changeset's category instead. Packages released
only because of a cascade get a generic dependency update line instead of a
made-up summary.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from .models import (
    CATEGORY_ORDER,
    SEVERITY_ORDER,
    BumpSeverity,
    CategorySection,
    ChangeCategory,
    ChangelogEntry,
    ChangelogGrouping,
    ChangelogSection,
    Changeset,
    VersionPlan,
)

CHANGELOG_FILENAME = "CHANGELOG.md"
CHANGELOG_HEADER = "# Changelog\n"

SECTION_TITLES = {
    BumpSeverity.MAJOR: "Major changes",
    BumpSeverity.MINOR: "Minor changes",
    BumpSeverity.PATCH: "Patch changes",
}
DEPENDENCY_TITLE = "Dependency updates"


def dependency_update_line(name: str, version: str) -> str:
    return f"Updated dependency `{name}` to {version}"


def aggregate(plan: VersionPlan, changesets: Iterable[Changeset]) -> list[ChangelogEntry]:
    """Build one changelog entry per package in the plan.

    Args:
        plan: The resolved version plan.
        changesets: Pending changesets; summaries keep their ordinal order.

    Returns:
        Entries in plan (topological) order. Sections are ordered major,
        minor, patch; categories follow CATEGORY_ORDER. Empty groups are
        omitted.
    """
    ordered = sorted(changesets, key=lambda c: (c.ordinal, c.id))
    entries: list[ChangelogEntry] = []

    for name, release in plan.releases.items():
        by_severity: dict[BumpSeverity, list[str]] = {s: [] for s in SEVERITY_ORDER}
        by_category: dict[ChangeCategory, list[str]] = {c: [] for c in CATEGORY_ORDER}
        for changeset in ordered:
            severity = changeset.severity_for(name)
            if severity is not None and changeset.summary:
                by_severity[severity].append(changeset.summary)
                by_category[changeset.category].append(changeset.summary)

        entries.append(
            ChangelogEntry(
                package=name,
                version=release.target,
                sections=[
                    ChangelogSection(severity=s, summaries=by_severity[s])
                    for s in SEVERITY_ORDER
                    if by_severity[s]
                ],
                categories=[
                    CategorySection(category=c, summaries=by_category[c])
                    for c in CATEGORY_ORDER
                    if by_category[c]
                ],
                dependency_updates=[
                    dependency_update_line(dep, plan[dep].target)
                    for dep in release.cascaded_from
                ],
            )
        )

    return entries


def _bullet(summary: str) -> str:
    first, *rest = summary.splitlines()
    lines = [f"- {first}"]
    # Continuation lines are indented so they stay inside the list item
    lines.extend(f"  {line}" if line.strip() else "" for line in rest)
    return "\n".join(lines)


def render_entry(
    entry: ChangelogEntry,
    release_date: date | None = None,
    grouping: ChangelogGrouping = ChangelogGrouping.SEVERITY,
) -> str:
    """Render an entry as a markdown block.

    Example:
        ## 1.3.0 (2026-10-18)

        ### Minor changes

        - Add a streaming API.

    With CATEGORY grouping the headings are ``### Added``, ``### Fixed`` etc.
    """
    heading = f"## {entry.version}"
    if release_date:
        heading += f" ({release_date.isoformat()})"
    blocks = [heading]

    if grouping is ChangelogGrouping.CATEGORY:
        groups = [(c.category.heading, c.summaries) for c in entry.categories]
    else:
        groups = [(SECTION_TITLES[s.severity], s.summaries) for s in entry.sections]
    for title, summaries in groups:
        blocks.append(f"### {title}")
        blocks.append("\n".join(_bullet(s) for s in summaries))
    if entry.dependency_updates:
        blocks.append(f"### {DEPENDENCY_TITLE}")
        blocks.append("\n".join(_bullet(s) for s in entry.dependency_updates))

    return "\n\n".join(blocks) + "\n"


def prepend_entry(existing: str | None, rendered: str) -> str:
    """Insert a rendered entry at the top of a changelog.

    The "# Changelog" header (and any text between it and the first version
    heading) stays on top. A missing or header-less changelog gets one.
    """
    if not existing or not existing.strip():
        return f"{CHANGELOG_HEADER}\n{rendered}"

    if not existing.startswith("# "):
        return f"{CHANGELOG_HEADER}\n{rendered}\n{existing}"

    lines = existing.splitlines(keepends=True)
    # Insert before the first version heading, or at the end of the preamble
    insert_at = len(lines)
    for i, line in enumerate(lines[1:], start=1):
        if line.startswith("## "):
            insert_at = i
            break

    preamble = "".join(lines[:insert_at]).rstrip("\n") + "\n\n"
    rest = "".join(lines[insert_at:])
    return preamble + rendered + ("\n" + rest if rest else "")
