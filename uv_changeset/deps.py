"""Dependency handling utilities.

Provides functions for parsing PEP 508 dependency strings, checking whether
a declared requirement still admits a new version, and rewriting
pyproject.toml files so internal workspace requirements follow released
versions.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, cast

import tomlkit
from packaging.requirements import InvalidRequirement, Requirement
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.utils import canonicalize_name

from .toml import load_pyproject
from .versions import parse_version

# Cargo/npm style ranges: "^1.2.3", "~1.2". Anything else is PEP 440.
_RANGE_RE = re.compile(r"^\s*(?P<op>[\^~])\s*(?P<version>\d+(?:\.\d+){0,2})\s*$")


def parse_dependency(dep_str: str) -> tuple[str, str] | None:
    """Split a dependency string into (canonical name, specifier).

    Returns None for strings that are not valid PEP 508 requirements, such
    as local path references, which can never be workspace edges.
    """
    try:
        req = Requirement(dep_str)
    except InvalidRequirement:
        return None
    return canonicalize_name(req.name), str(req.specifier)


def _range_to_specifier(op: str, version_str: str) -> str:
    """Translate a caret or tilde range into an equivalent PEP 440 range.

    Caret keeps the left-most non-zero component fixed:
        ^1.2.3 → >=1.2.3,<2.0.0
        ^0.2.3 → >=0.2.3,<0.3.0
        ^0.0.3 → >=0.0.3,<0.0.4
    Tilde allows patch-level changes when a minor is given:
        ~1.2   → >=1.2.0,<1.3.0
        ~1     → >=1.0.0,<2.0.0
    """
    components = version_str.split(".")
    low = parse_version(version_str)
    if op == "^":
        if low.major > 0 or len(components) == 1:
            high = low.bump_major()
        elif low.minor > 0 or len(components) == 2:
            high = low.bump_minor()
        else:
            high = low.bump_patch()
    elif len(components) == 1:
        high = low.bump_major()
    else:
        high = low.bump_minor()
    return f">={low},<{high}"


def to_specifier_set(requirement: str) -> SpecifierSet:
    """Parse a declared requirement into a SpecifierSet.

    Accepts PEP 440 specifiers (">=1.0,<2", "~=1.2", "==1.0.0") as well as
    caret/tilde ranges ("^1.0.0", "~1.2").

    Raises:
        ValueError: If the requirement is neither.
    """
    match = _RANGE_RE.match(requirement)
    if match:
        requirement = _range_to_specifier(match["op"], match["version"])
    try:
        return SpecifierSet(requirement)
    except InvalidSpecifier as exc:
        raise ValueError(f"Invalid version requirement: {requirement!r}") from exc


def requirement_allows(requirement: str, version: str) -> bool:
    """Return True if a declared requirement admits the given version.

    An empty requirement admits every version.

    Examples:
        requirement_allows("^1.0.0", "1.4.0") → True
        requirement_allows("^1.0.0", "2.0.0") → False
        requirement_allows("", "9.9.9") → True
    """
    if not requirement.strip():
        return True
    return to_specifier_set(requirement).contains(version, prereleases=True)


def pin_dep(dep_str: str, version: str) -> str:
    """Pin a PEP 508 dependency to an exact version.

    Preserves any extras and environment markers specified in the original
    dependency string, but replaces the version specifier with an exact pin.

    Examples:
        pin_dep("requests>=2.0", "2.31.0") → "requests==2.31.0"
        pin_dep("pkg[extra1,extra2]~=1.0", "1.5.0") → "pkg[extra1,extra2]==1.5.0"
    """
    return _with_specifier(dep_str, f"=={version}")


def compatible_range(version: str) -> str:
    """Return the range of versions compatible with ``version``.

    Examples:
        compatible_range("2.0.0") → ">=2.0.0,<3.0.0"
        compatible_range("0.5.0") → ">=0.5.0,<0.6.0"
    """
    return _range_to_specifier("^", str(parse_version(version)))


def retarget_dep(dep_str: str, version: str) -> str:
    """Make an internal dependency admit a newly released version.

    Requirements that already admit the version are returned unchanged.
    Exact pins are re-pinned to the new version; any other requirement is
    replaced with the compatible range starting at the new version.

    Examples:
        retarget_dep("base>=1.0", "2.0.0") → "base>=1.0"
        retarget_dep("base==1.0.0", "1.0.1") → "base==1.0.1"
        retarget_dep("base>=1.0,<2", "2.0.0") → "base>=2.0.0,<3.0.0"
    """
    req = Requirement(dep_str)
    if requirement_allows(str(req.specifier), version):
        return dep_str
    specs = list(req.specifier)
    if len(specs) == 1 and specs[0].operator in ("==", "==="):
        return pin_dep(dep_str, version)
    return _with_specifier(dep_str, compatible_range(version))


def _with_specifier(dep_str: str, specifier: str) -> str:
    req = Requirement(dep_str)
    # Sort extras alphabetically for consistent output
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}{specifier}{marker}"


def render_pyproject(
    pyproject_path: Path,
    new_version: str,
    internal_dep_versions: dict[str, str],
) -> str:
    """Return a package's pyproject.toml with a new version applied.

    This function:
    1. Updates [project].version to new_version
    2. Retargets internal deps whose requirement no longer admits the
       dependency's released version

    Internal deps are retargeted in all locations:
    - [project].dependencies
    - [project].optional-dependencies.*
    - [build-system].requires
    - [dependency-groups].*

    Nothing is written; the caller decides when to commit the text. Uses
    tomlkit to preserve formatting and comments.

    Args:
        pyproject_path: Path to the pyproject.toml file.
        new_version: New version string to set.
        internal_dep_versions: Map of package name → released version.
    """
    doc = load_pyproject(pyproject_path)
    # Cast needed because tomlkit types are complex unions
    project = cast(dict[str, Any], doc["project"])
    project["version"] = new_version

    if internal_dep_versions:
        deps = project.get("dependencies")
        if isinstance(deps, list):
            _retarget_dep_list(deps, internal_dep_versions)

        opt_deps = project.get("optional-dependencies")
        if isinstance(opt_deps, dict):
            for group in opt_deps.values():
                if isinstance(group, list):
                    _retarget_dep_list(group, internal_dep_versions)

        build_requires = doc.get("build-system", {}).get("requires")
        if isinstance(build_requires, list):
            _retarget_dep_list(build_requires, internal_dep_versions)

        dep_groups = doc.get("dependency-groups")
        if isinstance(dep_groups, dict):
            for group in dep_groups.values():
                if isinstance(group, list):
                    _retarget_dep_list(group, internal_dep_versions)

    return tomlkit.dumps(doc)


def _retarget_dep_list(deps: list, versions: dict[str, str]) -> None:
    """Retarget internal dependencies in a list, modifying in place.

    Iterates through a list of PEP 508 dependency strings and rewrites any
    that match released internal packages. Non-string entries (such as
    dependency-group include tables) are left alone.

    Args:
        deps: List of dependency strings (modified in place).
        versions: Map of canonical package name → released version.
    """
    for i, dep_str in enumerate(deps):
        if not isinstance(dep_str, str):
            continue
        parsed = parse_dependency(str(dep_str))
        if parsed and parsed[0] in versions:
            new_dep = retarget_dep(str(dep_str), versions[parsed[0]])
            if new_dep != str(dep_str):
                deps[i] = new_dep
