"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying pyproject.toml
files. This is important for maintaining readable, diff-friendly files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError
from packaging.utils import canonicalize_name

from .errors import ConfigError
from .models import DependencyKind

TOOL_TABLE = "uv-changeset"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.

    Raises:
        ConfigError: If the file is missing or is not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text())
    except FileNotFoundError as exc:
        raise ConfigError(f"No pyproject.toml found at {path}") from exc
    except ParseError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def has_project_table(doc: tomlkit.TOMLDocument) -> bool:
    """Return True if the document declares a [project] table with a name."""
    return "name" in doc.get("project", {})


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to return if name is not specified.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def get_dependency_strings(
    doc: tomlkit.TOMLDocument,
) -> dict[DependencyKind, list[str]]:
    """Collect dependency strings from a pyproject.toml, grouped by kind.

    - [project].dependencies and [project].optional-dependencies.* are
      runtime: extras are installed alongside the package by its users.
    - [build-system].requires is build.
    - [dependency-groups].* (PEP 735) is dev: groups never ship with the
      package.

    Returns raw PEP 508 strings like "requests>=2.0" or "pkg[extra]~=1.0".
    Dependency-group include tables ({include-group = "..."}) are skipped.
    """
    project = doc.get("project", {})
    runtime: list[str] = [str(d) for d in project.get("dependencies", [])]
    # Collect optional dependency groups (e.g., [project.optional-dependencies.dev])
    for group_deps in project.get("optional-dependencies", {}).values():
        runtime.extend(str(d) for d in group_deps)

    build = [str(d) for d in doc.get("build-system", {}).get("requires", [])]

    dev: list[str] = []
    # Collect PEP 735 dependency groups (e.g., [dependency-groups.test])
    for group_deps in doc.get("dependency-groups", {}).values():
        dev.extend(str(d) for d in group_deps if isinstance(d, str))

    return {
        DependencyKind.RUNTIME: runtime,
        DependencyKind.BUILD: build,
        DependencyKind.DEV: dev,
    }


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace packages. Returns an empty list when the root is not
    a workspace.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    return [str(m) for m in members] if members else []


def get_workspace_exclude_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract [tool.uv.workspace].exclude glob patterns."""
    exclude = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("exclude")
    return [str(e) for e in exclude] if exclude else []


def get_tool_config(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return the [tool.uv-changeset] table as plain Python data."""
    table = doc.get("tool", {}).get(TOOL_TABLE, {})
    return table.unwrap() if table else {}


def set_tool_config(doc: tomlkit.TOMLDocument, values: dict[str, Any]) -> None:
    """Write values as the [tool.uv-changeset] table, creating [tool] if needed."""
    tool = doc.get("tool")
    if tool is None:
        tool = tomlkit.table(is_super_table=True)
        doc["tool"] = tool
    table = tomlkit.table()
    for key, value in values.items():
        table[key] = value
    tool[TOOL_TABLE] = table
