"""Error taxonomy for uv-changeset.

Every failure the engine can classify derives from ChangesetError. The
core only raises; the CLI decides how to present them. ``exit_code`` keeps
policy violations (a missing changeset) distinguishable from tool faults so
CI can branch on "needs changeset" vs "tool error".
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

EXIT_VERIFICATION_FAILED = 1
EXIT_TOOL_ERROR = 2


def _bullets(items: Iterable[str]) -> str:
    return "\n".join(f"  - {item}" for item in items)


class ChangesetError(Exception):
    """Base class for all classified errors."""

    exit_code = EXIT_TOOL_ERROR


class ConfigError(ChangesetError):
    """The workspace or [tool.uv-changeset] configuration is unusable."""


class GitError(ChangesetError):
    """A git command failed."""

    def __init__(self, args: Iterable[str], stderr: str = "") -> None:
        self.command = ["git", *args]
        self.stderr = stderr.strip()
        msg = f"Command failed: {' '.join(self.command)}"
        if self.stderr:
            msg += f"\n{self.stderr}"
        super().__init__(msg)


class DuplicatePackage(ChangesetError):
    """Two workspace members declare the same package name."""

    def __init__(self, name: str, paths: Iterable[str]) -> None:
        self.name = name
        self.paths = sorted(paths)
        super().__init__(
            f"Package {name!r} is declared more than once: {', '.join(self.paths)}"
        )


class CyclicDependency(ChangesetError):
    """The runtime/build dependency graph contains a cycle."""

    def __init__(self, packages: Iterable[str]) -> None:
        self.packages = sorted(packages)
        super().__init__(
            f"Dependency cycle detected involving: {', '.join(self.packages)}"
        )


class UnknownPackageReference(ChangesetError):
    """Changesets name packages that are not in the workspace.

    Attributes:
        references: Map of unknown package name → ids of the changesets
                    that name it.
    """

    def __init__(self, references: Mapping[str, Iterable[str]]) -> None:
        self.references = {
            name: sorted(ids) for name, ids in sorted(references.items())
        }
        lines = [
            f"{name} (in {', '.join(ids)})" for name, ids in self.references.items()
        ]
        super().__init__(
            "Changesets reference packages not in the workspace:\n" + _bullets(lines)
        )


class MalformedChangeset(ChangesetError):
    """A changeset file could not be parsed."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Malformed changeset {source}: {reason}")


class CoverageFailure(ChangesetError):
    """Changed packages lack a changeset.

    This is a policy violation, not a tool fault, so it carries its own
    exit code. All offending packages are reported in one pass.
    """

    exit_code = EXIT_VERIFICATION_FAILED

    def __init__(
        self, uncovered: Iterable[str], deleted_changesets: Iterable[str] = ()
    ) -> None:
        self.uncovered = sorted(uncovered)
        self.deleted_changesets = sorted(deleted_changesets)
        parts: list[str] = []
        if self.uncovered:
            parts.append(
                "The following packages changed but have no changeset:\n"
                + _bullets(self.uncovered)
            )
        if self.deleted_changesets:
            parts.append(
                "The following changesets were deleted:\n"
                + _bullets(self.deleted_changesets)
            )
        super().__init__("\n".join(parts) or "Coverage verification failed")


class WriteValidationFailure(ChangesetError):
    """The release pre-commit validation found problems; nothing was written."""

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems = list(problems)
        super().__init__(
            "Release validation failed, no files were written:\n"
            + _bullets(self.problems)
        )
