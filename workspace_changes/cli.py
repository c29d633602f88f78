"""CLI entry point for workspace-changes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from workspace_changes.cache import CacheMode
from workspace_changes.changes import list_changed_packages
from workspace_changes.config import Settings, load_settings
from workspace_changes.errors import WorkspaceChangesError
from workspace_changes.git import workspace_root
from workspace_changes.windows import get_changelog


_CACHE_OPTIONS = (
    click.option(
        "--cache",
        type=click.Choice([m.value for m in CacheMode]),
        default=None,
        envvar="WORKSPACE_CHANGES_CACHE",
        help="Git cache mode. (default: memory, or persistent with --cache-dir)",
    ),
    click.option(
        "--cache-dir",
        type=click.Path(file_okay=False, path_type=Path, resolve_path=True),
        default=None,
        envvar="WORKSPACE_CHANGES_CACHE_DIR",
        help="Directory for the persistent git cache.",
    ),
    click.option(
        "--lock-timeout",
        type=click.FloatRange(min=0, min_open=True),
        default=None,
        envvar="WORKSPACE_CHANGES_LOCK_TIMEOUT",
        help="Seconds to wait for a cache lock. (default: 600)",
    ),
    click.option(
        "-j",
        "--jobs",
        type=click.IntRange(min=1),
        default=None,
        envvar="WORKSPACE_CHANGES_JOBS",
        help="Packages to check concurrently. (default: 1)",
    ),
)


def cache_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that talks to git."""
    for option in reversed(_CACHE_OPTIONS):
        func = option(func)
    return func


def _settings(cwd: Path, **overrides: Any) -> Settings:
    return load_settings(workspace_root(cwd), **overrides)


@click.group()
@click.version_option(package_name="workspace-changes")
@click.option("--debug", is_flag=True, help="Log git commands and decisions to stderr.")
@click.option(
    "-C",
    "--cwd",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Run as if started in this directory.",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, cwd: Path | None) -> None:
    """Find changed workspace packages and build their changelogs."""
    if debug:
        logging.basicConfig(
            level=logging.DEBUG, format="%(name)s: %(message)s", force=True
        )
    ctx.obj = (cwd or Path.cwd()).absolute()


@cli.command()
@cache_options
@click.pass_obj
def changed(
    cwd: Path,
    cache: str | None,
    cache_dir: Path | None,
    lock_timeout: float | None,
    jobs: int | None,
) -> None:
    """List packages changed since their last release, one per line."""
    try:
        settings = _settings(
            cwd, cache=cache, cache_dir=cache_dir, lock_timeout=lock_timeout, jobs=jobs
        )
        names = list_changed_packages(
            cwd, cache=settings.make_cache(), jobs=settings.jobs
        )
    except WorkspaceChangesError as exc:
        raise click.ClickException(str(exc)) from exc

    for name in names:
        click.echo(name)


@cli.command()
@click.option(
    "--from",
    "from_commit",
    default=None,
    metavar="COMMIT",
    help="Only include commits after this one.",
)
@click.option(
    "-n",
    "--release-count",
    type=click.IntRange(min=1),
    default=None,
    help="Include this many past releases.",
)
@cache_options
@click.pass_obj
def changelog(
    cwd: Path,
    from_commit: str | None,
    release_count: int | None,
    cache: str | None,
    cache_dir: Path | None,
    lock_timeout: float | None,
    jobs: int | None,
) -> None:
    """Print the changelog of the package in the current directory."""
    try:
        settings = _settings(
            cwd, cache=cache, cache_dir=cache_dir, lock_timeout=lock_timeout, jobs=jobs
        )
        text = get_changelog(
            cwd,
            from_commit=from_commit,
            release_count=release_count,
            cache=settings.make_cache(),
            jobs=settings.jobs,
        )
    except WorkspaceChangesError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(text)
