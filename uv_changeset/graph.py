"""Dependency graph utilities.

Builds the workspace graph from package descriptors and provides the
topological order everything else walks. Packages are ordered so that when
package A depends on package B, B comes first.
"""

from __future__ import annotations

from collections.abc import Iterable

from .errors import CyclicDependency, DuplicatePackage
from .models import CASCADE_KINDS, DependencyEdge, DependencyKind, PackageInfo


def topo_sort(
    packages: dict[str, PackageInfo],
    kinds: Iterable[DependencyKind] = CASCADE_KINDS,
) -> list[str]:
    """Topologically sort packages by their internal dependencies.

    Uses Kahn's algorithm to produce an order where dependencies come
    before dependents. Packages with no dependencies are sorted
    alphabetically for deterministic output.

    Args:
        packages: Map of package name → PackageInfo with dependency edges.
        kinds: Edge kinds that constrain the order. Dev edges are excluded
               by default, so dev-only cycles are allowed.

    Returns:
        List of package names in dependency order (dependencies first).

    Raises:
        CyclicDependency: If a cycle is detected among the selected edges.

    Example:
        If A depends on B, and B depends on C:
        topo_sort({A, B, C}) → [C, B, A]
    """
    kinds = frozenset(kinds)
    # Count incoming edges (dependencies) for each package
    in_degree = {n: 0 for n in packages}
    # Track reverse dependencies (who depends on each package)
    reverse_deps: dict[str, list[str]] = {n: [] for n in packages}

    for name, info in packages.items():
        for dep in {e.target for e in info.edges if e.kind in kinds}:
            # Only count dependencies that are within the packages we're sorting
            if dep in packages:
                in_degree[name] += 1
                reverse_deps[dep].append(name)

    # Start with packages that have no dependencies (in_degree == 0)
    # Sort alphabetically for deterministic ordering
    queue = sorted(n for n, d in in_degree.items() if d == 0)
    order: list[str] = []

    while queue:
        node = queue.pop(0)
        order.append(node)
        # Decrement in_degree for all packages that depend on this one
        for dependent in sorted(reverse_deps[node]):
            in_degree[dependent] -= 1
            # When a package has all deps satisfied, add to queue
            if in_degree[dependent] == 0:
                queue.append(dependent)

    # If we didn't process all packages, there must be a cycle
    if len(order) != len(packages):
        raise CyclicDependency(set(packages) - set(order))

    return order


class WorkspaceGraph:
    """Packages of a workspace and the internal dependency edges between them.

    Built once by build_graph() and read-only afterwards. The runtime/build
    subgraph is guaranteed acyclic.
    """

    def __init__(self, packages: dict[str, PackageInfo], order: list[str]) -> None:
        self._packages = packages
        self._order = order
        self._dependents: dict[str, list[DependencyEdge]] = {n: [] for n in packages}
        for info in packages.values():
            for edge in info.edges:
                self._dependents[edge.target].append(edge)
        # Deepest directories first so nested packages win
        self._prefixes = sorted(
            (
                ("" if info.path in ("", ".") else info.path.rstrip("/") + "/", name)
                for name, info in packages.items()
            ),
            key=lambda item: (-item[0].count("/"), -len(item[0]), item[1]),
        )

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def __getitem__(self, name: str) -> PackageInfo:
        return self._packages[name]

    @property
    def packages(self) -> dict[str, PackageInfo]:
        return dict(self._packages)

    @property
    def names(self) -> list[str]:
        return sorted(self._packages)

    @property
    def is_single_package(self) -> bool:
        return len(self._packages) == 1

    def topological_order(self) -> list[str]:
        """Package names with every dependency before its dependents."""
        return list(self._order)

    def edges_from(self, name: str) -> list[DependencyEdge]:
        """Edges from a package to the packages it depends on."""
        return list(self._packages[name].edges)

    def owner_of(self, path: str) -> str | None:
        """Name of the package whose directory contains ``path``, if any.

        ``path`` is relative to the workspace root. Nested packages win over
        the packages that contain them; a package at the root owns every
        path no other package claims.
        """
        path = path.replace("\\", "/").removeprefix("./")
        for prefix, name in self._prefixes:
            if path.startswith(prefix):
                return name
        return None

    def dependents(self, name: str, include_dev: bool = False) -> list[str]:
        """Names of packages that depend on ``name``, sorted."""
        return sorted(
            {
                e.source
                for e in self._dependents[name]
                if include_dev or e.kind in CASCADE_KINDS
            }
        )


def build_graph(descriptors: Iterable[PackageInfo]) -> WorkspaceGraph:
    """Build and validate the workspace graph.

    Edges pointing at packages outside the workspace are dropped. The
    runtime/build edges are topologically sorted to prove acyclicity.

    Args:
        descriptors: Package descriptors, e.g. from discover_packages().

    Raises:
        DuplicatePackage: If two descriptors share a name.
        CyclicDependency: If runtime/build edges form a cycle. No partial
                          graph is returned.
    """
    packages: dict[str, PackageInfo] = {}
    for info in descriptors:
        if info.name in packages:
            raise DuplicatePackage(info.name, [packages[info.name].path, info.path])
        packages[info.name] = info

    internal: dict[str, PackageInfo] = {}
    for name, info in packages.items():
        edges = [
            e if e.source == name else e.model_copy(update={"source": name})
            for e in info.edges
            if e.target in packages
        ]
        internal[name] = info.model_copy(update={"edges": edges})

    order = topo_sort(internal)
    return WorkspaceGraph(internal, order)
