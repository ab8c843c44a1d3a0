"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit

from uv_changeset.graph import build_graph
from uv_changeset.models import DependencyEdge, DependencyKind, PackageInfo


def make_package(
    name: str,
    version: str = "1.0.0",
    deps: dict[str, str] | None = None,
    kind: DependencyKind = DependencyKind.RUNTIME,
    path: str | None = None,
) -> PackageInfo:
    """PackageInfo with edges to ``deps`` (target name → requirement)."""
    path = path or f"packages/{name}"
    return PackageInfo(
        name=name,
        version=version,
        path=path,
        manifest=f"{path}/pyproject.toml",
        edges=[
            DependencyEdge(source=name, target=t, requirement=r, kind=kind)
            for t, r in (deps or {}).items()
        ],
    )


def write_package(
    root: Path,
    name: str,
    version: str = "1.0.0",
    dependencies: list[str] | None = None,
    extra: str = "",
) -> Path:
    """Write packages/<name>/pyproject.toml and return the package dir."""
    package_dir = root / "packages" / name
    package_dir.mkdir(parents=True, exist_ok=True)
    deps = ", ".join(f'"{d}"' for d in dependencies or [])
    (package_dir / "pyproject.toml").write_text(
        f'[project]\nname = "{name}"\nversion = "{version}"\n'
        f"dependencies = [{deps}]\n{extra}"
    )
    return package_dir


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0,<2",
]

[project.optional-dependencies]
extra = ["another-internal==0.5.0"]

[build-system]
requires = ["hatchling", "build-internal~=1.0"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1,<0.2", {include-group = "lint"}]
lint = ["ruff"]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "My_Package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
docs = ["sphinx>=7.0"]

[build-system]
requires = ["hatchling"]

[dependency-groups]
test = ["hypothesis>=6.0", {include-group = "lint"}]
lint = ["ruff"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]
exclude = ["packages/legacy"]

[tool.uv-changeset]
base-branch = "develop"
min-cascade = "minor"
"""
    return tomlkit.parse(content)


def make_workspace(root: Path) -> Path:
    """Write a three-package workspace: app → core ← cli, cli → app (dev only)."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "pyproject.toml").write_text(
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    write_package(root, "core", "1.0.0")
    write_package(root, "app", "2.1.0", ["core>=1.0,<2"])
    write_package(
        root,
        "cli",
        "0.3.0",
        ["core==1.0.0", "click>=8"],
        '\n[dependency-groups]\ndev = ["app"]\n',
    )
    return root


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """A three-package workspace: app → core ← cli, cli → app (dev only)."""
    return make_workspace(tmp_path)


@pytest.fixture
def diamond_graph():
    """top → left, right → bottom, with caret requirements."""
    return build_graph(
        [
            make_package("bottom", "1.0.0"),
            make_package("left", "1.0.0", {"bottom": "^1.0.0"}),
            make_package("right", "1.0.0", {"bottom": ">=1.0"}),
            make_package("top", "1.0.0", {"left": "^1.0.0", "right": "^1.0.0"}),
        ]
    )
