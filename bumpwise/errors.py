"""Execution errors for bumpwise.

Every error here aborts the run. None of them are retried: they all
describe repository, plugin or configuration state that would fail the
same way a second time. The CLI is the only place that turns them into a
process exit.

Configuration problems found while resolving release groups are *not*
raised; see ``bumpwise.groups.ReleaseGroupError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .groups import ReleaseGroupError


class ReleaseError(Exception):
    """Base class for errors that abort a release run."""


class ReleaseConfigError(ReleaseError):
    """The release configuration or CLI arguments cannot be honored."""


class ReleaseGroupConfigError(ReleaseConfigError):
    """A release group resolution error that a stage decided to abort on."""

    def __init__(self, error: ReleaseGroupError) -> None:
        from .groups import format_release_group_error

        super().__init__(format_release_group_error(error))
        self.error = error


class GitCommandError(ReleaseError):
    """A git subprocess exited non-zero or wrote to stderr."""

    def __init__(self, command: list[str], stderr: str) -> None:
        super().__init__(f"`{' '.join(command)}` failed:\n{stderr}".rstrip())
        self.command = command
        self.stderr = stderr


class UnknownGeneratorError(ReleaseError):
    """No version generator is registered under the requested name."""


class GeneratorContractError(ReleaseError):
    """A version generator returned something other than version data."""


class VersionDataCollisionError(ReleaseError):
    """Two version data fragments claimed the same project."""


class InvalidSpecifierError(ReleaseError):
    """A specifier is neither a semver version nor a relative keyword."""


class PromptCancelledError(ReleaseError):
    """The user cancelled an interactive prompt."""


class NoMatchingTagError(ReleaseError):
    """No git tag exists to diff conventional commits against."""


class DuplicateTagError(ReleaseError):
    """The same git tag would be created more than once."""


class PublishError(ReleaseError):
    """Building or uploading a distribution failed."""
