"""Workspace discovery.

Reads the uv workspace declared in the root pyproject.toml and turns every
member into a PackageInfo descriptor with its internal dependency edges.
A root pyproject.toml without [tool.uv.workspace] but with a [project]
table is treated as a single-package workspace.
"""

from __future__ import annotations

import fnmatch
import glob
from dataclasses import dataclass
from pathlib import Path

from .config import ChangesetConfig, load_config
from .deps import parse_dependency
from .errors import ConfigError
from .graph import WorkspaceGraph, build_graph
from .models import DependencyEdge, PackageInfo
from .shell import step
from .toml import (
    get_dependency_strings,
    get_project_name,
    get_project_version,
    get_workspace_exclude_globs,
    get_workspace_member_globs,
    has_project_table,
    load_pyproject,
)
from .versions import parse_version


@dataclass(frozen=True)
class Workspace:
    """A loaded workspace: where it is, how it is configured, what it holds."""

    root: Path
    config: ChangesetConfig
    graph: WorkspaceGraph

    @property
    def changeset_dir(self) -> Path:
        return self.root / self.config.changeset_dir


def _member_dirs(root: Path, member_globs: list[str], exclude: list[str]) -> list[Path]:
    member_dirs: list[Path] = []
    for pattern in member_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            rel = p.relative_to(root).as_posix()
            if any(fnmatch.fnmatch(rel, ex) for ex in exclude):
                continue
            if (p / "pyproject.toml").exists() and p not in member_dirs:
                member_dirs.append(p)
    return member_dirs


def discover_packages(root: Path) -> list[PackageInfo]:
    """Scan the workspace and discover all packages.

    Reads [tool.uv.workspace].members from root pyproject.toml to find
    package directories, then extracts name, version, and internal
    dependency edges from each package's pyproject.toml. When the root
    itself has a [project] table it is a package too, at path ".".

    Returns:
        Package descriptors, in discovery order.

    Raises:
        ConfigError: If no packages are found or a version is invalid.
    """
    root_doc = load_pyproject(root / "pyproject.toml")
    member_dirs = _member_dirs(
        root,
        get_workspace_member_globs(root_doc),
        get_workspace_exclude_globs(root_doc),
    )
    if has_project_table(root_doc) and root not in member_dirs:
        member_dirs.insert(0, root)

    if not member_dirs:
        raise ConfigError(
            "No packages found. Define [tool.uv.workspace] members in the root "
            "pyproject.toml, e.g.:\n\n"
            "  [tool.uv.workspace]\n"
            '  members = ["packages/*"]'
        )

    # First pass: collect basic info from each package
    packages: list[PackageInfo] = []
    raw_deps = []
    for d in member_dirs:
        doc = root_doc if d == root else load_pyproject(d / "pyproject.toml")
        rel = d.relative_to(root).as_posix()
        info = PackageInfo(
            name=get_project_name(doc, d.name),
            version=get_project_version(doc),
            path=rel,
            manifest=(Path(rel) / "pyproject.toml").as_posix(),
        )
        try:
            parse_version(info.version)
        except ValueError as exc:
            raise ConfigError(f"{info.manifest}: {exc}") from exc
        packages.append(info)
        raw_deps.append(get_dependency_strings(doc))

    # Second pass: keep only internal deps (within workspace), one edge per
    # target and kind
    workspace_names = {p.name for p in packages}
    for info, deps_by_kind in zip(packages, raw_deps):
        seen: set[tuple[str, str]] = set()
        for kind, dep_strings in deps_by_kind.items():
            for dep_str in dep_strings:
                parsed = parse_dependency(dep_str)
                if parsed is None:
                    continue
                dep_name, specifier = parsed
                if dep_name == info.name or dep_name not in workspace_names:
                    continue
                if (dep_name, kind) in seen:
                    continue
                seen.add((dep_name, kind))
                info.edges.append(
                    DependencyEdge(
                        source=info.name,
                        target=dep_name,
                        requirement=specifier,
                        kind=kind,
                    )
                )

    return packages


def load_workspace(root: Path | None = None) -> Workspace:
    """Discover packages, build the graph and load configuration.

    Prints the discovered packages for user feedback.

    Raises:
        ConfigError, DuplicatePackage, CyclicDependency
    """
    step("Discovering workspace packages")

    root = (root or Path.cwd()).resolve()
    config = load_config(load_pyproject(root / "pyproject.toml"))
    graph = build_graph(discover_packages(root))

    for name in graph.topological_order():
        info = graph[name]
        deps = f" → [{', '.join(info.deps)}]" if info.deps else ""
        print(f"  {name} {info.version} ({info.path}){deps}")

    return Workspace(root=root, config=config, graph=graph)
