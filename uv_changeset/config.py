"""Configuration for uv-changeset.

Settings live in the workspace root pyproject.toml:

    [tool.uv-changeset]
    changeset-dir = ".changeset"
    base-branch = "main"
    min-cascade = "patch"
    zero-version-behavior = "literal"
    ignored-files = ["*.md", "docs/**"]
    changelog-sections = "severity"

Every key is optional. CLI flags override individual values with
``ChangesetConfig.model_copy(update=...)``.
"""

from __future__ import annotations

from pathlib import PurePosixPath

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError
from .models import BumpSeverity, ChangelogGrouping
from .toml import get_tool_config
from .versions import ZeroVersionBehavior


class ChangesetConfig(BaseModel):
    """Resolved [tool.uv-changeset] settings.

    Attributes:
        changeset_dir: Directory holding pending changeset files, relative to
                       the workspace root.
        archive_dir: Directory (inside changeset_dir) consumed changesets are
                     moved to on release.
        base_branch: Default base reference for coverage verification.
        min_cascade: Severity forced on a dependent whose requirement is
                     broken by a dependency's new version.
        zero_version_behavior: Bump policy for 0.x versions.
        ignored_files: Glob patterns for changed files that never require a
                       changeset.
        changelog: Whether releases write per-package CHANGELOG.md files.
        changelog_sections: Group changelog summaries by declared severity
                            or by changeset category.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    changeset_dir: str = Field(".changeset", alias="changeset-dir")
    archive_dir: str = Field("archive", alias="archive-dir")
    base_branch: str = Field("main", alias="base-branch")
    min_cascade: BumpSeverity = Field(BumpSeverity.PATCH, alias="min-cascade")
    zero_version_behavior: ZeroVersionBehavior = Field(
        ZeroVersionBehavior.LITERAL, alias="zero-version-behavior"
    )
    ignored_files: tuple[str, ...] = Field((), alias="ignored-files")
    changelog: bool = True
    changelog_sections: ChangelogGrouping = Field(
        ChangelogGrouping.SEVERITY, alias="changelog-sections"
    )

    @property
    def changeset_prefix(self) -> str:
        """changeset_dir as a "/"-terminated prefix for matching repo paths."""
        return PurePosixPath(self.changeset_dir).as_posix().rstrip("/") + "/"

    @property
    def archive_path(self) -> str:
        return (PurePosixPath(self.changeset_dir) / self.archive_dir).as_posix()


def load_config(doc: tomlkit.TOMLDocument) -> ChangesetConfig:
    """Build a ChangesetConfig from a parsed root pyproject.toml.

    Raises:
        ConfigError: If [tool.uv-changeset] holds unknown keys or bad values.
    """
    try:
        return ChangesetConfig.model_validate(get_tool_config(doc))
    except ValidationError as exc:
        raise ConfigError(f"Invalid [tool.uv-changeset] configuration:\n{exc}") from exc
