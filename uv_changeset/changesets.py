"""Changeset files: parsing, serialization, loading, creation and archival.

A changeset is a markdown file in the changeset directory with a YAML front
matter block mapping package names to bump severities:

    ---
    "pkg-a": minor
    "pkg-b": patch
    ---
    Add a streaming API to pkg-a.

The keys ``category``, ``graduate`` and ``consumedForPrerelease`` are
reserved for changeset settings and are never read as package names.

The pending changesets form an append-only queue. Files are only ever
added, or moved to the archive directory on release; they are never edited
in place.
"""

from __future__ import annotations

import re
import secrets
import shutil
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

import yaml
from packaging.utils import canonicalize_name
from yaml.constructor import ConstructorError

from .errors import MalformedChangeset
from .models import BumpSeverity, ChangeCategory, Changeset, Release

FRONT_MATTER_DELIMITER = "---"
CHANGESET_SUFFIX = ".md"
# Documentation files that may live in the changeset directory.
IGNORED_FILES = frozenset({"README.md"})
MAX_CHANGESET_BYTES = 1024 * 1024

# Front matter keys that are settings, never package names.
CATEGORY_KEY = "category"
CONSUMED_KEY = "consumedForPrerelease"
GRADUATE_KEY = "graduate"
RESERVED_KEYS = frozenset({CATEGORY_KEY, CONSUMED_KEY, GRADUATE_KEY})

_SEVERITIES = ", ".join(s.value for s in BumpSeverity)
_CATEGORIES = ", ".join(c.value for c in ChangeCategory)


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate mapping keys instead of keeping the last."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise ConstructorError(
                    None, None, f"duplicate package {key!r}", key_node.start_mark
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _split_front_matter(content: str, source: str) -> tuple[str, str]:
    lines = content.lstrip().splitlines()
    if not lines or lines[0].rstrip() != FRONT_MATTER_DELIMITER:
        raise MalformedChangeset(source, "missing opening '---' delimiter")

    for i, line in enumerate(lines[1:], start=1):
        if line.rstrip() == FRONT_MATTER_DELIMITER:
            front = "\n".join(lines[1:i])
            body = "\n".join(lines[i + 1 :])
            break
    else:
        raise MalformedChangeset(source, "missing closing '---' delimiter")

    if not front.strip():
        raise MalformedChangeset(source, "empty front matter")
    return front, body


def _pop_category(data: dict, source: str) -> ChangeCategory:
    raw = data.pop(CATEGORY_KEY, None)
    if raw is None:
        return ChangeCategory.CHANGED
    try:
        return ChangeCategory(str(raw).strip().lower())
    except ValueError:
        raise MalformedChangeset(
            source, f"invalid category {raw!r}, expected one of {_CATEGORIES}"
        ) from None


def parse_changeset(content: str, changeset_id: str, ordinal: int = 0) -> Changeset:
    """Parse the text of a changeset file.

    Package names are normalized per PEP 503 so they match workspace names.
    Reserved keys set the category and pre-release markers instead.

    Args:
        content: Full file text.
        changeset_id: Identifier to assign (normally the file stem).
        ordinal: Creation order among pending changesets.

    Raises:
        MalformedChangeset: On missing delimiters, invalid YAML, duplicate
                            packages, unknown severities or categories, or
                            no releases.
    """
    if len(content.encode()) > MAX_CHANGESET_BYTES:
        raise MalformedChangeset(changeset_id, "file is too large")

    front, body = _split_front_matter(content, changeset_id)
    try:
        data = yaml.load(front, Loader=_UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise MalformedChangeset(changeset_id, f"invalid front matter: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedChangeset(changeset_id, "front matter must map packages to severities")

    category = _pop_category(data, changeset_id)
    graduate = data.pop(GRADUATE_KEY, False)
    if not isinstance(graduate, bool):
        raise MalformedChangeset(changeset_id, f"{GRADUATE_KEY!r} must be true or false")
    consumed = data.pop(CONSUMED_KEY, None)
    if consumed is not None:
        consumed = str(consumed)

    releases: list[Release] = []
    seen: set[str] = set()
    for raw_name, raw_severity in data.items():
        name = canonicalize_name(str(raw_name))
        try:
            severity = BumpSeverity(str(raw_severity).strip().lower())
        except ValueError:
            raise MalformedChangeset(
                changeset_id,
                f"invalid severity {raw_severity!r} for {raw_name!r}, expected one of {_SEVERITIES}",
            ) from None
        if name in seen:
            raise MalformedChangeset(changeset_id, f"duplicate package {name!r}")
        seen.add(name)
        releases.append(Release(package=name, severity=severity))

    if not releases:
        raise MalformedChangeset(changeset_id, "no packages declared")

    return Changeset(
        id=changeset_id,
        releases=tuple(releases),
        summary=body.strip(),
        ordinal=ordinal,
        category=category,
        graduate=graduate,
        consumed_for_prerelease=consumed,
    )


def serialize_changeset(changeset: Changeset) -> str:
    """Render a changeset back to file text.

    Example output:
        ---
        "pkg-a": minor
        ---
        Add a streaming API.
    """
    lines = [FRONT_MATTER_DELIMITER]
    if changeset.category is not ChangeCategory.CHANGED:
        lines.append(f"{CATEGORY_KEY}: {changeset.category.value}")
    if changeset.graduate:
        lines.append(f"{GRADUATE_KEY}: true")
    if changeset.consumed_for_prerelease:
        lines.append(f'{CONSUMED_KEY}: "{changeset.consumed_for_prerelease}"')
    for release in changeset.releases:
        lines.append(f'"{release.package}": {release.severity.value}')
    lines.append(FRONT_MATTER_DELIMITER)
    if changeset.summary:
        lines.append(changeset.summary)
    return "\n".join(lines) + "\n"


def changeset_files(directory: Path) -> list[Path]:
    """Pending changeset files, sorted by name (creation order for generated ids).

    Only the top level is scanned, so archived changesets are not pending.
    """
    if not directory.is_dir():
        return []
    return sorted(
        p
        for p in directory.glob(f"*{CHANGESET_SUFFIX}")
        if p.is_file() and p.name not in IGNORED_FILES
    )


def read_changeset(path: Path, ordinal: int = 0) -> Changeset:
    """Read and parse one changeset file; its id is the file stem.

    Raises:
        MalformedChangeset: If the file is unreadable, not UTF-8 or invalid.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedChangeset(
            path.stem, f"not valid UTF-8 (byte {exc.start})"
        ) from exc
    except OSError as exc:
        raise MalformedChangeset(path.stem, f"cannot read file: {exc}") from exc
    return parse_changeset(content, path.stem, ordinal)


def load_changesets(directory: Path, max_workers: int | None = None) -> list[Changeset]:
    """Read and parse every pending changeset in a directory.

    Files are parsed concurrently. All parses complete before the result is
    returned, and the result is ordered by file name regardless of which
    parse finished first, so ordinals are stable across runs.

    Raises:
        MalformedChangeset: For the first (by file name) unparseable file.
    """
    paths = changeset_files(directory)
    if not paths:
        return []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        # map() yields results in input order
        return list(pool.map(read_changeset, paths, range(len(paths))))


def _slugify(text: str, max_words: int = 4) -> str:
    words = re.findall(r"[a-z0-9]+", text.lower())[:max_words]
    return "-".join(words)


def generate_changeset_id(summary: str = "", now: datetime | None = None) -> str:
    """Create a sortable changeset id: UTC timestamp plus a short slug.

    Example: "20261018120000-fix-auth-token-refresh"
    """
    now = now or datetime.now(timezone.utc)
    slug = _slugify(summary) or secrets.token_hex(3)
    return f"{now.strftime('%Y%m%d%H%M%S')}-{slug}"


def write_changeset(
    directory: Path,
    releases: Mapping[str, BumpSeverity],
    summary: str,
    now: datetime | None = None,
    category: ChangeCategory = ChangeCategory.CHANGED,
) -> Path:
    """Create a new changeset file and return its path.

    Raises:
        MalformedChangeset: If no packages are given, or a package name is
                            a reserved front matter key.
    """
    changeset_id = generate_changeset_id(summary, now)
    if not releases:
        raise MalformedChangeset(changeset_id, "no packages declared")

    names = {name: canonicalize_name(name) for name in releases}
    reserved = sorted(name for name, canonical in names.items() if canonical in RESERVED_KEYS)
    if reserved:
        raise MalformedChangeset(
            changeset_id, f"reserved key used as package name: {', '.join(reserved)}"
        )

    changeset = Changeset(
        id=changeset_id,
        releases=tuple(
            Release(package=names[name], severity=severity)
            for name, severity in releases.items()
        ),
        summary=summary.strip(),
        category=category,
    )
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{changeset_id}{CHANGESET_SUFFIX}"
    # Same-second ids with the same slug get a random suffix
    while path.exists():
        path = directory / f"{changeset_id}-{secrets.token_hex(2)}{CHANGESET_SUFFIX}"
    path.write_text(serialize_changeset(changeset), encoding="utf-8")
    return path


def archive_changeset(path: Path, archive_dir: Path) -> Path:
    """Move a consumed changeset into the archive directory.

    Returns:
        The archived path.

    Raises:
        FileExistsError: If an archived changeset with the same name exists.
    """
    archive_dir.mkdir(parents=True, exist_ok=True)
    destination = archive_dir / path.name
    if destination.exists():
        raise FileExistsError(destination)
    shutil.move(str(path), str(destination))
    return destination
