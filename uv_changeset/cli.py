"""CLI entry point for uv-changeset."""

from __future__ import annotations

import functools
import os
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path

import click

from uv_changeset.errors import ChangesetError
from uv_changeset.models import BumpSeverity, ChangeCategory
from uv_changeset.pipeline import run_add, run_init, run_release, run_status, run_verify

__version__ = pkg_version("uv-changeset")

SEVERITY_CHOICE = click.Choice([s.value for s in BumpSeverity])
CATEGORY_CHOICE = click.Choice([c.value for c in ChangeCategory])


class CommandError(click.ClickException):
    """A classified engine error, shown on stderr with its own exit code."""

    def __init__(self, error: ChangesetError) -> None:
        super().__init__(str(error))
        self.exit_code = error.exit_code

    def show(self, file=None) -> None:
        click.echo(f"ERROR: {self.format_message()}", file=file, err=True)


def _handle_errors(func):
    """Turn ChangesetError into CommandError so click prints and exits."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ChangesetError as exc:
            raise CommandError(exc) from exc

    return wrapper


def is_interactive() -> bool:
    """True when a person can answer prompts: a TTY and not running in CI."""
    if os.environ.get("CI", "").lower() not in ("", "0", "false"):
        return False
    return sys.stdin.isatty()


def parse_release_arg(value: str) -> tuple[str, BumpSeverity]:
    """Parse "name:severity" (severity defaults to patch)."""
    name, _, severity = value.partition(":")
    if not name.strip():
        raise click.BadParameter(f"missing package name in {value!r}")
    try:
        return name.strip(), BumpSeverity((severity or "patch").strip().lower())
    except ValueError:
        raise click.BadParameter(
            f"invalid severity in {value!r}, expected one of "
            + ", ".join(s.value for s in BumpSeverity)
        ) from None


@click.group()
@click.version_option(__version__, prog_name="uv-changeset")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Workspace root. (default: current directory)",
)
@click.pass_context
def cli(ctx: click.Context, root: Path | None) -> None:
    """Changeset-driven releases for uv workspaces."""
    ctx.obj = {"root": root, "interactive": is_interactive()}


@cli.command()
@click.pass_obj
@_handle_errors
def init(obj: dict) -> None:
    """Add [tool.uv-changeset] settings and the changeset directory."""
    changeset_dir = run_init(obj["root"])
    click.echo(f"\n✓ Ready: record changes in {changeset_dir.name}/ with `uv-changeset add`")


@cli.command()
@click.option(
    "--min-cascade",
    type=SEVERITY_CHOICE,
    default=None,
    help="Severity forced on dependents whose requirement breaks.",
)
@click.pass_obj
@_handle_errors
def status(obj: dict, min_cascade: str | None) -> None:
    """Show pending changesets and the resolved version plan."""
    run_status(
        obj["root"], min_cascade=BumpSeverity(min_cascade) if min_cascade else None
    )


@cli.command()
@click.option("--base", default=None, help="Base reference. (default: base-branch)")
@click.option("--head", default=None, help="Head reference. (default: working tree)")
@click.option(
    "--allow-deleted-changesets",
    is_flag=True,
    help="Do not fail when pending changesets were deleted.",
)
@click.pass_obj
@_handle_errors
def verify(
    obj: dict, base: str | None, head: str | None, allow_deleted_changesets: bool
) -> None:
    """Check that every changed package has a changeset (exit 1 if not)."""
    run_verify(
        obj["root"],
        base=base,
        head=head,
        allow_deleted_changesets=allow_deleted_changesets,
    )
    click.echo("\n✓ All changed packages have changesets")


@cli.command()
@click.option(
    "-p",
    "--package",
    "packages",
    multiple=True,
    metavar="NAME[:SEVERITY]",
    help="Package to release, e.g. -p my-lib:minor (repeatable).",
)
@click.option("-m", "--message", default=None, help="Changeset summary.")
@click.option(
    "-c",
    "--category",
    type=CATEGORY_CHOICE,
    default=ChangeCategory.CHANGED.value,
    show_default=True,
    help="Changelog category.",
)
@click.pass_obj
@_handle_errors
def add(
    obj: dict, packages: tuple[str, ...], message: str | None, category: str
) -> None:
    """Record a new changeset."""
    interactive = obj["interactive"]

    if not packages:
        if not interactive:
            raise click.UsageError("No packages given. Use -p NAME[:SEVERITY].")
        answer = click.prompt("Packages (NAME[:SEVERITY], comma separated)")
        packages = tuple(p for p in (s.strip() for s in answer.split(",")) if p)

    releases: dict[str, BumpSeverity] = {}
    for value in packages:
        name, severity = parse_release_arg(value)
        releases[name] = severity

    if message is None:
        if not interactive:
            raise click.UsageError("No summary given. Use -m TEXT.")
        message = click.prompt("Summary")

    path = run_add(releases, message, obj["root"], category=ChangeCategory(category))
    click.echo(f"\n✓ Wrote {path.name}")


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would change, write nothing.")
@click.option("--no-commit", is_flag=True, help="Write files but do not commit or tag.")
@click.option("--no-tag", is_flag=True, help="Commit but do not create tags.")
@click.option(
    "--min-cascade",
    type=SEVERITY_CHOICE,
    default=None,
    help="Severity forced on dependents whose requirement breaks.",
)
@click.pass_obj
@_handle_errors
def release(
    obj: dict, dry_run: bool, no_commit: bool, no_tag: bool, min_cascade: str | None
) -> None:
    """Apply pending changesets: bump versions, write changelogs, tag."""
    run_release(
        obj["root"],
        dry_run=dry_run,
        commit=not no_commit,
        tag=not no_tag,
        min_cascade=BumpSeverity(min_cascade) if min_cascade else None,
    )
