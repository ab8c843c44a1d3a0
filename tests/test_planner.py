"""Tests for uv_changeset.planner."""

from __future__ import annotations

import itertools

import pytest

from conftest import make_package
from uv_changeset.config import ChangesetConfig
from uv_changeset.errors import UnknownPackageReference
from uv_changeset.graph import build_graph
from uv_changeset.models import (
    BumpSeverity,
    Changeset,
    DependencyKind,
    PlannedRelease,
    Release,
)
from uv_changeset.planner import _breaks, direct_severities, resolve_plan
from uv_changeset.versions import ZeroVersionBehavior

MAJOR, MINOR, PATCH = BumpSeverity.MAJOR, BumpSeverity.MINOR, BumpSeverity.PATCH


def changeset(
    changeset_id: str, releases: dict[str, BumpSeverity], ordinal: int = 0
) -> Changeset:
    return Changeset(
        id=changeset_id,
        releases=tuple(Release(package=p, severity=s) for p, s in releases.items()),
        ordinal=ordinal,
    )


@pytest.fixture
def caret_graph():
    """b depends on a with "^1.0.0"."""
    return build_graph(
        [make_package("a", "1.0.0"), make_package("b", "1.0.0", {"a": "^1.0.0"})]
    )


class TestDirectSeverities:
    def test_takes_maximum(self) -> None:
        result = direct_severities(
            [changeset("1", {"a": PATCH, "b": MAJOR}), changeset("2", {"a": MINOR})]
        )
        assert result == {"a": MINOR, "b": MAJOR}


class TestResolvePlan:
    def test_major_breaks_caret_requirement(self, caret_graph) -> None:
        plan = resolve_plan(caret_graph, [changeset("1", {"a": MAJOR})])

        assert plan.names == ["a", "b"]
        assert plan["a"].target == "2.0.0"
        assert plan["b"] == PlannedRelease(
            name="b",
            severity=PATCH,
            direct=None,
            current="1.0.0",
            target="1.0.1",
            cascaded_from=("a",),
        )

    def test_minor_does_not_cascade(self, caret_graph) -> None:
        plan = resolve_plan(caret_graph, [changeset("1", {"a": MINOR})])

        assert plan.names == ["a"]
        assert plan["a"].target == "1.1.0"

    def test_min_cascade(self, caret_graph) -> None:
        config = ChangesetConfig(min_cascade=MINOR)
        plan = resolve_plan(caret_graph, [changeset("1", {"a": MAJOR})], config)
        assert plan["b"].target == "1.1.0"

    def test_direct_and_cascade_combine(self, caret_graph) -> None:
        plan = resolve_plan(
            caret_graph,
            [changeset("1", {"a": MAJOR}), changeset("2", {"b": MINOR})],
        )
        assert plan["b"].severity is MINOR
        assert plan["b"].direct is MINOR
        assert plan["b"].cascaded_from == ("a",)

    def test_cascade_stops_when_requirement_holds(self, diamond_graph) -> None:
        plan = resolve_plan(diamond_graph, [changeset("1", {"bottom": MAJOR})])

        # right accepts ">=1.0"; top accepts left 1.0.1 under "^1.0.0"
        assert plan.names == ["bottom", "left"]
        assert plan["left"].target == "1.0.1"

    def test_transitive_cascade(self, diamond_graph) -> None:
        config = ChangesetConfig(min_cascade=MAJOR)
        plan = resolve_plan(diamond_graph, [changeset("1", {"bottom": MAJOR})], config)

        assert plan.names == ["bottom", "left", "top"]
        assert plan["top"].cascaded_from == ("left",)
        assert plan["top"].target == "2.0.0"

    def test_dev_edges_never_cascade(self) -> None:
        graph = build_graph(
            [
                make_package("a", "1.0.0"),
                make_package("b", "1.0.0", {"a": "==1.0.0"}, kind=DependencyKind.DEV),
            ]
        )
        plan = resolve_plan(graph, [changeset("1", {"a": PATCH})])
        assert plan.names == ["a"]

    def test_empty_requirement_never_breaks(self) -> None:
        graph = build_graph([make_package("a"), make_package("b", deps={"a": ""})])
        plan = resolve_plan(graph, [changeset("1", {"a": MAJOR})])
        assert "b" not in plan

    def test_zero_version_behavior(self) -> None:
        graph = build_graph([make_package("a", "0.4.2")])
        config = ChangesetConfig(zero_version_behavior=ZeroVersionBehavior.EFFECTIVE_MINOR)
        plan = resolve_plan(graph, [changeset("1", {"a": MAJOR})], config)
        assert plan["a"].target == "0.5.0"

    def test_no_changesets(self, diamond_graph) -> None:
        assert len(resolve_plan(diamond_graph, [])) == 0

    def test_unknown_package(self, caret_graph) -> None:
        changesets = [
            changeset("1", {"ghost": PATCH, "a": PATCH}),
            changeset("2", {"ghost": MINOR, "phantom": PATCH}),
        ]
        with pytest.raises(UnknownPackageReference) as exc_info:
            resolve_plan(caret_graph, changesets)
        assert exc_info.value.references == {"ghost": ["1", "2"], "phantom": ["2"]}


class TestPlanProperties:
    @pytest.fixture
    def changesets(self) -> list[Changeset]:
        return [
            changeset("1", {"bottom": PATCH}, 0),
            changeset("2", {"left": MINOR, "bottom": MAJOR}, 1),
            changeset("3", {"top": PATCH}, 2),
        ]

    def test_deterministic(self, diamond_graph, changesets) -> None:
        assert resolve_plan(diamond_graph, changesets) == resolve_plan(
            diamond_graph, changesets
        )

    def test_order_independent(self, diamond_graph, changesets) -> None:
        expected = resolve_plan(diamond_graph, changesets)
        for perm in itertools.permutations(changesets):
            assert resolve_plan(diamond_graph, perm) == expected

    def test_monotonic(self, diamond_graph, changesets) -> None:
        for size in range(len(changesets)):
            for subset in itertools.combinations(changesets, size):
                smaller = resolve_plan(diamond_graph, subset)
                larger = resolve_plan(diamond_graph, changesets)
                for name, release in smaller.releases.items():
                    assert name in larger
                    assert larger[name].severity >= release.severity


class TestBreaks:
    def _dependency(self, severity: BumpSeverity) -> PlannedRelease:
        return PlannedRelease(
            name="a", severity=severity, current="1.0.0", target="unused"
        )

    def test_checks_lower_severities(self) -> None:
        config = ChangesetConfig()
        # 1.0.1 is excluded even though 1.1.0 is allowed
        assert _breaks("!=1.0.1", self._dependency(PATCH), config)
        assert _breaks("!=1.0.1", self._dependency(MINOR), config)

    def test_allowed(self) -> None:
        assert not _breaks("^1.0.0", self._dependency(MINOR), ChangesetConfig())

    @pytest.mark.parametrize("severity", [PATCH, MINOR, MAJOR])
    def test_requirement_with_hole_cascades_at_every_severity(self, severity) -> None:
        graph = build_graph(
            [make_package("a", "1.0.0"), make_package("b", "1.0.0", {"a": "!=1.0.1"})]
        )
        plan = resolve_plan(graph, [changeset("c", {"a": severity})])

        # 1.1.0 and 2.0.0 satisfy "!=1.0.1", yet b is released at every severity
        assert plan["b"].cascaded_from == ("a",)
        assert plan["b"].target == "1.0.1"
