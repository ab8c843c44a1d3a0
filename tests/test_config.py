"""Tests for uv_changeset.config."""

from __future__ import annotations

import pytest
import tomlkit

from uv_changeset.config import ChangesetConfig, load_config
from uv_changeset.errors import ConfigError
from uv_changeset.models import BumpSeverity, ChangelogGrouping
from uv_changeset.versions import ZeroVersionBehavior


class TestChangesetConfig:
    def test_defaults(self) -> None:
        config = ChangesetConfig()
        assert config.changeset_dir == ".changeset"
        assert config.base_branch == "main"
        assert config.min_cascade is BumpSeverity.PATCH
        assert config.zero_version_behavior is ZeroVersionBehavior.LITERAL
        assert config.ignored_files == ()
        assert config.changelog is True
        assert config.changelog_sections is ChangelogGrouping.SEVERITY

    def test_paths(self) -> None:
        config = ChangesetConfig(changeset_dir="changes/")
        assert config.changeset_prefix == "changes/"
        assert config.archive_path == "changes/archive"

    def test_override_with_model_copy(self) -> None:
        config = ChangesetConfig().model_copy(update={"base_branch": "develop"})
        assert config.base_branch == "develop"


class TestLoadConfig:
    def test_reads_tool_table(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        config = load_config(sample_toml_doc)
        assert config.base_branch == "develop"
        assert config.min_cascade is BumpSeverity.MINOR
        assert config.changeset_dir == ".changeset"

    def test_all_keys(self) -> None:
        doc = tomlkit.parse(
            "[tool.uv-changeset]\n"
            'changeset-dir = "changes"\n'
            'archive-dir = "done"\n'
            'zero-version-behavior = "effective-minor"\n'
            'ignored-files = ["docs/*", "*.txt"]\n'
            "changelog = false\n"
            'changelog-sections = "category"\n'
        )
        config = load_config(doc)
        assert config.changeset_dir == "changes"
        assert config.archive_path == "changes/done"
        assert config.zero_version_behavior is ZeroVersionBehavior.EFFECTIVE_MINOR
        assert config.ignored_files == ("docs/*", "*.txt")
        assert config.changelog is False
        assert config.changelog_sections is ChangelogGrouping.CATEGORY

    def test_missing_table_uses_defaults(self) -> None:
        assert load_config(tomlkit.parse("")) == ChangesetConfig()

    def test_unknown_key(self) -> None:
        doc = tomlkit.parse('[tool.uv-changeset]\nbase_brnch = "main"\n')
        with pytest.raises(ConfigError, match="Invalid \\[tool.uv-changeset\\]"):
            load_config(doc)

    def test_bad_severity(self) -> None:
        doc = tomlkit.parse('[tool.uv-changeset]\nmin-cascade = "huge"\n')
        with pytest.raises(ConfigError):
            load_config(doc)

    def test_bad_changelog_sections(self) -> None:
        doc = tomlkit.parse('[tool.uv-changeset]\nchangelog-sections = "type"\n')
        with pytest.raises(ConfigError):
            load_config(doc)
