"""Data models for bumpwise.

These Pydantic models represent the core data structures that flow
through the release pipeline: projects, release groups, version data,
parsed commits and the git tags computed from them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

CATCH_ALL_RELEASE_GROUP = "__default__"
DEFAULT_VERSION_GENERATOR = "bumpwise:pyproject"
PUBLISH_TARGET = "publish"

SpecifierSource = Literal["interactive", "conventional-commits"]
CurrentVersionResolver = Literal["registry", "disk", "git-tag"]
ProjectsRelationship = Literal["fixed", "independent"]


class BumpDecision(str, Enum):
    """The kind of semver change to apply.

    Members compare by severity, so ``max()`` over a list of decisions
    yields the most significant one.
    """

    NONE = "none"
    PRERELEASE = "prerelease"
    PREPATCH = "prepatch"
    PATCH = "patch"
    PREMINOR = "preminor"
    MINOR = "minor"
    PREMAJOR = "premajor"
    MAJOR = "major"

    @property
    def severity(self) -> int:
        return _SEVERITY.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BumpDecision):
            return NotImplemented
        return self.severity < other.severity

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, BumpDecision):
            return NotImplemented
        return self.severity > other.severity

    def __le__(self, other: object) -> bool:
        if not isinstance(other, BumpDecision):
            return NotImplemented
        return self.severity <= other.severity

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, BumpDecision):
            return NotImplemented
        return self.severity >= other.severity


_SEVERITY = list(BumpDecision)


class ProjectDescriptor(BaseModel):
    """A single project in the workspace.

    Attributes:
        name: Canonical project name (PEP 503 normalized).
        root: Relative path from workspace root to the project directory.
        targets: Capabilities the project declares (e.g. "publish").
        dependencies: Internal (workspace) dependency names.
    """

    name: str
    root: str
    targets: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)


class VersionPolicyConfig(BaseModel, extra="forbid"):
    """User-supplied version policy. Every field is optional."""

    generator: str | None = None
    generator_options: dict[str, Any] = Field(default_factory=dict)
    specifier_source: str | None = None
    current_version_resolver: CurrentVersionResolver | None = None
    current_version_resolver_metadata: dict[str, Any] = Field(default_factory=dict)


class VersionPolicy(BaseModel):
    """A fully resolved version policy.

    ``specifier_source`` stays a plain string so an unsupported value can
    be reported when a specifier is resolved rather than when config loads.
    """

    generator: str = DEFAULT_VERSION_GENERATOR
    generator_options: dict[str, Any] = Field(default_factory=dict)
    specifier_source: str = "interactive"
    current_version_resolver: CurrentVersionResolver = "disk"
    current_version_resolver_metadata: dict[str, Any] = Field(default_factory=dict)


class ReleaseGroupConfig(BaseModel, extra="forbid"):
    """A release group as written in ``[tool.bumpwise.groups.<name>]``.

    Attributes:
        projects: Explicit list of project names, or "*" for all projects.
        projects_relationship: "fixed" when all members share one version.
        release_tag_pattern: Tag template; defaults depend on relationship.
        version: Group-level version policy overrides.
    """

    projects: list[str] | Literal["*"]
    projects_relationship: ProjectsRelationship = "fixed"
    release_tag_pattern: str | None = None
    version: VersionPolicyConfig = Field(default_factory=VersionPolicyConfig)


class ReleaseGroup(BaseModel):
    """A validated release group with defaults applied."""

    name: str
    projects: list[str]
    version: VersionPolicy = Field(default_factory=VersionPolicy)
    projects_relationship: ProjectsRelationship = "fixed"
    release_tag_pattern: str = "v{version}"


class VersionDataEntry(BaseModel):
    """The version change computed for one project.

    Attributes:
        current_version: Version before this run.
        new_version: Version after this run, or None if nothing changed.
        dependents: Projects whose manifests were updated to follow this one.
    """

    current_version: str
    new_version: str | None
    dependents: list[str] = Field(default_factory=list)


VersionData = dict[str, VersionDataEntry]


class CommitRecord(BaseModel):
    """A commit parsed against the conventional-commit header grammar.

    ``type`` is None when the header does not follow the grammar; such
    commits never count toward a version bump.
    """

    hash: str
    message: str
    type: str | None = None
    scope: str | None = None
    subject: str
    breaking: bool = False
    affected_files: list[str] = Field(default_factory=list)


class GitTagDescriptor(BaseModel):
    """A git tag to create, computed before any git side effect."""

    tag: str
    message: str
    args: list[str] = Field(default_factory=list)


class FileChange(BaseModel):
    """A pending change recorded in the virtual tree."""

    path: str
    type: Literal["CREATE", "UPDATE", "DELETE"]
    content: str | None = None
