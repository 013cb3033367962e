"""Release configuration loaded from ``[tool.bumpwise]``.

Example (workspace root pyproject.toml):

    [tool.bumpwise.groups.core]
    projects = ["lib-a", "lib-b"]
    version = { specifier_source = "conventional-commits" }

    [tool.bumpwise.version.git]
    commit = true
    tag = true
"""

from __future__ import annotations

import shlex
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from .commits import DEFAULT_TYPE_TABLE
from .errors import ReleaseConfigError
from .models import BumpDecision, ReleaseGroupConfig, VersionPolicyConfig
from .toml import get_tool_table, load_pyproject


class GitConfig(BaseModel, extra="forbid"):
    """Git side effects to perform after files are written.

    Attributes:
        commit: Create a commit with the changed files.
        commit_message: Commit subject; "{version}" is the workspace version.
        commit_args: Extra arguments for `git commit`.
        tag: Create one tag per released version.
        tag_message: Tag annotation; defaults to the tag name.
        tag_args: Extra arguments for `git tag`.
        stage_changes: Stage the changed files even without committing.
    """

    commit: bool = False
    commit_message: str = "chore(release): publish {version}"
    commit_args: list[str] = Field(default_factory=list)
    tag: bool = False
    tag_message: str | None = None
    tag_args: list[str] = Field(default_factory=list)
    stage_changes: bool = False

    @field_validator("commit_args", "tag_args", mode="before")
    @classmethod
    def _split_args(cls, value: object) -> object:
        # Accept "--no-verify -S" as well as ["--no-verify", "-S"]
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @property
    def is_configured(self) -> bool:
        return bool(self.model_fields_set)


class VersionConfig(VersionPolicyConfig):
    """Workspace-level version defaults plus the `version` command's git config."""

    git: GitConfig = Field(default_factory=GitConfig)


class ChangelogConfig(BaseModel, extra="forbid"):
    workspace_changelog: bool = True
    project_changelogs: bool = False
    file_name: str = "CHANGELOG.md"


class ConventionalCommitsConfig(BaseModel, extra="forbid"):
    types: dict[str, BumpDecision] = Field(
        default_factory=lambda: dict(DEFAULT_TYPE_TABLE)
    )


class ReleaseConfig(BaseModel, extra="forbid"):
    """The complete ``[tool.bumpwise]`` table."""

    groups: dict[str, ReleaseGroupConfig] = Field(default_factory=dict)
    version: VersionConfig = Field(default_factory=VersionConfig)
    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    conventional_commits: ConventionalCommitsConfig = Field(
        default_factory=ConventionalCommitsConfig
    )

    @property
    def version_defaults(self) -> VersionPolicyConfig:
        """The version policy fields, without the git settings."""
        return VersionPolicyConfig(**self.version.model_dump(exclude={"git"}))


def load_release_config(root: Path) -> ReleaseConfig:
    """Read and validate ``[tool.bumpwise]`` from root/pyproject.toml.

    A missing table yields the default configuration.

    Raises:
        ReleaseConfigError: If the table does not validate.
    """
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        raise ReleaseConfigError(f"No pyproject.toml found in {root}")
    table = get_tool_table(load_pyproject(pyproject))
    try:
        return ReleaseConfig.model_validate(table)
    except ValidationError as exc:
        raise ReleaseConfigError(
            f"Invalid [tool.bumpwise] configuration:\n{exc}"
        ) from exc
