"""CLI entry point for bumpwise."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import click
from click.core import ParameterSource

from .errors import PromptCancelledError, ReleaseError
from .pipeline import ReleaseOptions, run_release
from .versioning import VersionOptions, release_version

# Flags that fall back to the configuration file when not given
_GIT_OVERRIDES = (
    "stage_changes",
    "git_commit",
    "git_commit_message",
    "git_commit_args",
    "git_tag",
    "git_tag_message",
    "git_tag_args",
)


@contextmanager
def _release_errors() -> Iterator[None]:
    """Turn release errors into click errors (exit code 1)."""
    try:
        yield
    except PromptCancelledError as exc:
        raise click.Abort() from exc
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc


def _collect(ctx: click.Context, params: dict[str, Any]) -> dict[str, Any]:
    """Drop git overrides the user did not pass explicitly."""
    collected = dict(params)
    for name in _GIT_OVERRIDES:
        if ctx.get_parameter_source(name) in (
            ParameterSource.DEFAULT,
            ParameterSource.DEFAULT_MAP,
            None,
        ):
            collected[name] = None
    collected["projects"] = list(params["projects"])
    collected["groups"] = list(params["groups"])
    return collected


def version_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by the `version` and `release` commands."""
    decorators = [
        click.argument("specifier", required=False),
        click.option(
            "-p",
            "--projects",
            multiple=True,
            help="Only version these projects (repeatable).",
        ),
        click.option(
            "-g",
            "--groups",
            multiple=True,
            help="Only version these release groups (repeatable).",
        ),
        click.option("--preid", help="Prerelease identifier, e.g. rc or beta."),
        click.option(
            "-d",
            "--dry-run",
            is_flag=True,
            help="Show what would change without writing anything.",
        ),
        click.option("--verbose", is_flag=True, help="Print git commands."),
        click.option(
            "--first-release",
            is_flag=True,
            help="Allow versioning projects that have no release tag yet.",
        ),
        click.option(
            "--stage-changes",
            is_flag=True,
            help="Stage changed files in git.",
        ),
        click.option(
            "--git-commit/--no-git-commit",
            default=False,
            help="Commit the changed files.",
        ),
        click.option("--git-commit-message", help="Commit message template."),
        click.option("--git-commit-args", help="Extra arguments for git commit."),
        click.option(
            "--git-tag/--no-git-tag",
            default=False,
            help="Tag each released version.",
        ),
        click.option("--git-tag-message", help="Tag message template."),
        click.option("--git-tag-args", help="Extra arguments for git tag."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.version_option(package_name="bumpwise")
def cli() -> None:
    """Version, changelog and publish the projects of a uv workspace."""


@cli.command()
@version_options
@click.pass_context
def version(ctx: click.Context, **params: Any) -> None:
    """Bump project versions, optionally committing and tagging."""
    options = VersionOptions(**_collect(ctx, params))
    with _release_errors():
        release_version(options)


@cli.command()
@version_options
@click.option("--skip-publish", is_flag=True, help="Do not publish.")
@click.option("-y", "--yes", is_flag=True, help="Publish without asking.")
@click.pass_context
def release(ctx: click.Context, **params: Any) -> None:
    """Version, write changelogs, then publish."""
    options = ReleaseOptions(**_collect(ctx, params))
    with _release_errors():
        run_release(options)
