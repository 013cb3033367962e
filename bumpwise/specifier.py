"""Deciding the version specifier for a release group.

A specifier is either a relative keyword ("minor", "prerelease", ...) or an
exact version. It comes from, in order of precedence:

1. An explicit value given on the command line.
2. The group's ``specifier_source``: conventional commits since the last
   matching tag, or an interactive prompt.

Prompting goes through a ``DecisionSource`` so the logic can be exercised
without a terminal.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol

import click

from .commits import DEFAULT_TYPE_TABLE, classify, decide, get_git_diff
from .errors import (
    InvalidSpecifierError,
    NoMatchingTagError,
    PromptCancelledError,
    ReleaseConfigError,
)
from .gitops import get_last_git_tag, interpolate
from .models import CATCH_ALL_RELEASE_GROUP, BumpDecision, ReleaseGroup
from .versions import (
    RELATIVE_KEYWORDS,
    is_prerelease,
    is_valid_specifier,
    is_valid_version,
)

CUSTOM_VERSION_CHOICE = "custom"


class DecisionSource(Protocol):
    """Where interactive decisions come from."""

    def choose_bump(self, message: str, choices: Sequence[str]) -> str:
        """Return one of choices."""
        ...

    def enter_custom_version(self, message: str) -> str:
        """Return an exact semver version."""
        ...

    def confirm(self, message: str) -> bool: ...


def _validate_semver(value: str) -> str:
    if not is_valid_version(value):
        raise click.BadParameter("Please enter a valid semver version")
    return value


class ClickDecisionSource:
    """Terminal prompts built on click.

    Ctrl-C or EOF at a prompt cancels the whole run.
    """

    def choose_bump(self, message: str, choices: Sequence[str]) -> str:
        try:
            return click.prompt(message, type=click.Choice(list(choices)))
        except click.Abort as exc:
            raise PromptCancelledError("Version selection was cancelled") from exc

    def enter_custom_version(self, message: str) -> str:
        try:
            return click.prompt(message, value_proc=_validate_semver)
        except click.Abort as exc:
            raise PromptCancelledError("Version entry was cancelled") from exc

    def confirm(self, message: str) -> bool:
        try:
            return click.confirm(message, default=False)
        except click.Abort as exc:
            raise PromptCancelledError("Confirmation was cancelled") from exc


def validate_specifier(specifier: str) -> str:
    """Return specifier if it is an exact version or relative keyword.

    Raises:
        InvalidSpecifierError: Otherwise.
    """
    if not is_valid_specifier(specifier):
        raise InvalidSpecifierError(
            f'The given version specifier "{specifier}" is not valid. Provide an '
            "exact version or a semver keyword such as "
            + ", ".join(f'"{k}"' for k in RELATIVE_KEYWORDS)
        )
    return specifier


def prompt_messages(
    group: ReleaseGroup, candidate_projects: Sequence[str]
) -> tuple[str, str]:
    """Return the (selection, custom version) prompt texts for a group."""
    if group.name == CATCH_ALL_RELEASE_GROUP:
        return (
            "What kind of change is this for all packages?",
            "What is the exact version for all packages?",
        )
    if len(candidate_projects) < len(group.projects):
        subject = (
            f"the {len(candidate_projects)} matched project(s) within "
            f'release group "{group.name}"'
        )
    else:
        subject = f'release group "{group.name}"'
    return (
        f"What kind of change is this for {subject}?",
        f"What is the exact version for {subject}?",
    )


def resolve_specifier(
    explicit_specifier: str | None,
    group: ReleaseGroup,
    candidate_projects: Sequence[str],
    *,
    decision_source: DecisionSource,
    project_file_map: Mapping[str, Sequence[str]],
    type_table: Mapping[str, BumpDecision] = DEFAULT_TYPE_TABLE,
    first_release: bool = False,
) -> str:
    """Decide the specifier for one release group.

    Args:
        explicit_specifier: Value from the command line, if any.
        group: The release group being versioned.
        candidate_projects: Projects of the group selected for this run.
        decision_source: Prompt backend for the interactive source.
        project_file_map: Project name → files it owns (for commit filtering).
        type_table: Commit type → bump for conventional commits.
        first_release: Allow releasing without a previous tag.

    Returns:
        A relative keyword, "none", or an exact version.
    """
    if explicit_specifier:
        return validate_specifier(explicit_specifier)

    source = group.version.specifier_source
    if source == "conventional-commits":
        return _from_conventional_commits(
            group, candidate_projects, project_file_map, type_table, first_release
        )
    if source == "interactive":
        selection, custom = prompt_messages(group, candidate_projects)
        return _from_prompt(decision_source, selection, custom)
    raise ReleaseConfigError(
        f'Invalid specifier_source "{source}" for release group "{group.name}". '
        'Must be one of "interactive" or "conventional-commits"'
    )


def _from_conventional_commits(
    group: ReleaseGroup,
    candidate_projects: Sequence[str],
    project_file_map: Mapping[str, Sequence[str]],
    type_table: Mapping[str, BumpDecision],
    first_release: bool,
) -> str:
    metadata = group.version.current_version_resolver_metadata
    prefix = interpolate(
        metadata.get("tag_version_prefix", "v"),
        project_name=candidate_projects[0] if candidate_projects else "",
    )
    pattern = f"{prefix}*.*.*"
    last_tag = get_last_git_tag(pattern)

    if last_tag is None:
        if not first_release:
            raise NoMatchingTagError(
                f'No git tag matching "{pattern}" was found for release group '
                f'"{group.name}". Pass --first-release to version it for the first '
                "time."
            )
    elif is_prerelease(last_tag[len(prefix) :]):
        # A prerelease line continues until someone graduates it explicitly
        return BumpDecision.PRERELEASE.value

    records = classify(get_git_diff(last_tag))
    owned = {f for name in candidate_projects for f in project_file_map.get(name, ())}
    relevant = [r for r in records if any(f in owned for f in r.affected_files)]
    return decide(relevant, type_table).value


def _from_prompt(
    decision_source: DecisionSource, selection_message: str, custom_message: str
) -> str:
    choice = decision_source.choose_bump(
        selection_message, [*RELATIVE_KEYWORDS, CUSTOM_VERSION_CHOICE]
    )
    if choice != CUSTOM_VERSION_CHOICE:
        return validate_specifier(choice)
    version = decision_source.enter_custom_version(custom_message)
    if not is_valid_version(version):
        raise InvalidSpecifierError(f'"{version}" is not a valid semver version')
    return version
