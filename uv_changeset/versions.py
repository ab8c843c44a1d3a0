"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0"),
and the policy for bumping pre-1.0 versions.
"""

from __future__ import annotations

from enum import Enum

import semver
from packaging.version import InvalidVersion, Version

from .models import BumpSeverity


class ZeroVersionBehavior(str, Enum):
    """How a bump is applied to a 0.x version.

    - LITERAL: 0.x is bumped exactly like 1.x and above ("major" on 0.4.2
      gives 1.0.0).
    - EFFECTIVE_MINOR: 0.x follows the pre-1.0 convention where the minor
      component is the breaking one. "major" increments minor, "minor"
      increments patch, "patch" increments patch.
    - AUTO_PROMOTE_ON_MAJOR: "major" on 0.x graduates straight to 1.0.0;
      minor and patch bump literally.
    """

    LITERAL = "literal"
    EFFECTIVE_MINOR = "effective-minor"
    AUTO_PROMOTE_ON_MAJOR = "auto-promote-on-major"


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Only the release components (major.minor.patch) are used; PEP 440
    pre-release, post-release and local segments are dropped.

    Raises:
        ValueError: If the string is not a valid PEP 440 version.
    """
    try:
        release = list(Version(version_str).release)
    except InvalidVersion as exc:
        raise ValueError(f"Invalid version: {version_str!r}") from exc
    # Pad with zeros to ensure we have at least 3 parts
    while len(release) < 3:
        release.append(0)
    return semver.Version(*release[:3])


def effective_severity(
    version: semver.Version,
    severity: BumpSeverity,
    behavior: ZeroVersionBehavior = ZeroVersionBehavior.LITERAL,
) -> BumpSeverity:
    """Map a declared severity onto the component actually incremented.

    Only EFFECTIVE_MINOR changes anything, and only for 0.x versions.
    """
    if version.major != 0 or behavior is not ZeroVersionBehavior.EFFECTIVE_MINOR:
        return severity
    if severity is BumpSeverity.MAJOR:
        return BumpSeverity.MINOR
    return BumpSeverity.PATCH


def bump_version(
    version_str: str,
    severity: BumpSeverity,
    behavior: ZeroVersionBehavior = ZeroVersionBehavior.LITERAL,
) -> str:
    """Apply a bump severity and return the new version string.

    Examples:
        bump_version("1.2.3", MAJOR) → "2.0.0"
        bump_version("1.2.3", MINOR) → "1.3.0"
        bump_version("1.2.3", PATCH) → "1.2.4"
        bump_version("0.4.2", MAJOR, EFFECTIVE_MINOR) → "0.5.0"
        bump_version("0.4.2", MAJOR, AUTO_PROMOTE_ON_MAJOR) → "1.0.0"
    """
    version = parse_version(version_str)

    if (
        version.major == 0
        and behavior is ZeroVersionBehavior.AUTO_PROMOTE_ON_MAJOR
        and severity is BumpSeverity.MAJOR
    ):
        return "1.0.0"

    severity = effective_severity(version, severity, behavior)
    if severity is BumpSeverity.MAJOR:
        return str(version.bump_major())
    if severity is BumpSeverity.MINOR:
        return str(version.bump_minor())
    return str(version.bump_patch())
