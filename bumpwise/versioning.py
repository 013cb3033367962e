"""The version stage: decide, apply and commit new versions.

For each selected release group, in configuration order:

1. Resolve the specifier (CLI value, conventional commits or a prompt).
2. Run the group's version generator once against the shared tree.
3. Merge the returned version data into the run-wide map.

Only after every group is versioned is the tree flushed and handed to the
git side effects.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .config import GitConfig, ReleaseConfig, load_release_config
from .errors import (
    GeneratorContractError,
    ReleaseGroupConfigError,
    VersionDataCollisionError,
)
from .generators import VersionGeneratorOptions, resolve_generator
from .gitops import commit_and_tag
from .groups import filter_release_groups, resolve_release_groups
from .models import (
    GitTagDescriptor,
    ProjectDescriptor,
    ReleaseGroup,
    VersionData,
    VersionDataEntry,
)
from .shell import step
from .specifier import (
    ClickDecisionSource,
    DecisionSource,
    resolve_specifier,
    validate_specifier,
)
from .tree import VirtualTree, print_changes
from .workspace import create_project_file_map, discover_projects


class VersionOptions(BaseModel):
    """Options for a version run, usually straight from the CLI.

    Git fields left as None fall back to the configuration file.
    """

    root: Path = Field(default_factory=Path.cwd)
    projects: list[str] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)
    specifier: str | None = None
    preid: str | None = None
    dry_run: bool = False
    verbose: bool = False
    first_release: bool = False
    stage_changes: bool | None = None
    git_commit: bool | None = None
    git_commit_message: str | None = None
    git_commit_args: str | None = None
    git_tag: bool | None = None
    git_tag_message: str | None = None
    git_tag_args: str | None = None


class VersionResult(BaseModel):
    """Outcome of the version stage, consumed by later stages.

    Attributes:
        workspace_version: The shared version when exactly one fixed release
                           group was versioned, otherwise None.
        version_data: Computed versions keyed by project.
        release_groups: The groups that were versioned.
        projects: All workspace projects by name.
        tags: Tags created (or, in dry-run, that would be created).
    """

    workspace_version: str | None
    version_data: VersionData
    release_groups: list[ReleaseGroup]
    projects: dict[str, ProjectDescriptor] = Field(default_factory=dict)
    tags: list[GitTagDescriptor] = Field(default_factory=list)


def merge_version_data(
    target: VersionData, fragment: Mapping[str, VersionDataEntry]
) -> None:
    """Merge fragment into target; each project may be written only once.

    Raises:
        VersionDataCollisionError: If fragment shares a key with target.
            Nothing is merged in that case.
    """
    collisions = sorted(set(fragment) & set(target))
    if collisions:
        raise VersionDataCollisionError(
            "Version data was computed more than once for: "
            + ", ".join(collisions)
            + ". Two release groups or generators claimed the same project."
        )
    target.update(fragment)


def apply_version(
    group: ReleaseGroup,
    candidate_projects: Sequence[str],
    specifier: str,
    tree: VirtualTree,
    *,
    projects: Mapping[str, ProjectDescriptor],
    preid: str | None = None,
    first_release: bool = False,
    version_data: VersionData | None = None,
) -> VersionData:
    """Run a group's version generator and merge what it returns.

    Args:
        group: The release group being versioned.
        candidate_projects: Projects of the group selected for this run.
        specifier: Resolved specifier for the group.
        tree: Shared virtual tree the generator writes to.
        projects: All workspace projects by name.
        preid: Prerelease identifier for pre* specifiers.
        first_release: Passed through to the generator.
        version_data: Run-wide version data to merge into, if any.

    Returns:
        The fragment returned by the generator.

    Raises:
        UnknownGeneratorError: If the group's generator is not registered.
        GeneratorContractError: If the generator does not return version data.
        VersionDataCollisionError: If a project was already versioned.
    """
    generator = resolve_generator(group.version.generator)
    payload: dict[str, Any] = {
        **group.version.generator_options,
        # Caller-controlled fields always win over configured options
        "release_group_name": group.name,
        "projects": [projects[name] for name in candidate_projects],
        "project_graph": dict(projects),
        "specifier": specifier,
        "preid": preid,
        "current_version_resolver": group.version.current_version_resolver,
        "current_version_resolver_metadata": (
            group.version.current_version_resolver_metadata
        ),
        "projects_relationship": group.projects_relationship,
        "first_release": first_release,
    }
    result = generator(tree, VersionGeneratorOptions.model_validate(payload))

    if callable(result):
        raise GeneratorContractError(
            f'The version generator "{group.version.generator}" returned a '
            "callable instead of version data. Generators must return a mapping "
            "of project name to version data."
        )
    if not isinstance(result, Mapping):
        raise GeneratorContractError(
            f'The version generator "{group.version.generator}" returned '
            f"{type(result).__name__} instead of version data."
        )

    fragment = {
        name: VersionDataEntry.model_validate(entry) for name, entry in result.items()
    }
    if version_data is not None:
        merge_version_data(version_data, fragment)
    return fragment


def compute_workspace_version(
    groups: Sequence[ReleaseGroup], version_data: VersionData
) -> str | None:
    """Return the single shared version, if one is meaningful.

    Only a run with exactly one fixed release group has one.
    """
    if len(groups) != 1 or groups[0].projects_relationship != "fixed":
        return None
    for name in groups[0].projects:
        if name in version_data:
            return version_data[name].new_version
    return None


def resolve_git_options(config: GitConfig, options: VersionOptions) -> GitConfig:
    """Layer CLI git flags over configured git settings."""
    overrides: dict[str, Any] = {
        "stage_changes": options.stage_changes,
        "commit": options.git_commit,
        "commit_message": options.git_commit_message,
        "commit_args": shlex.split(options.git_commit_args)
        if options.git_commit_args is not None
        else None,
        "tag": options.git_tag,
        "tag_message": options.git_tag_message,
        "tag_args": shlex.split(options.git_tag_args)
        if options.git_tag_args is not None
        else None,
    }
    return config.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )


def release_version(
    options: VersionOptions,
    decision_source: DecisionSource | None = None,
    *,
    config: ReleaseConfig | None = None,
    git_config: GitConfig | None = None,
    required_target: str | None = None,
) -> VersionResult:
    """Run the version stage end to end.

    Args:
        options: Version options (filters, specifier, git overrides).
        decision_source: Prompt backend; defaults to terminal prompts.
        config: Release configuration; loaded from options.root if omitted.
        git_config: Git settings to layer CLI flags over; defaults to
                    ``[tool.bumpwise.version.git]``.
        required_target: Capability every versioned project must declare.

    Raises:
        ReleaseError: On any configuration or execution failure.
    """
    root = options.root
    config = config or load_release_config(root)
    decision_source = decision_source or ClickDecisionSource()

    # An invalid CLI specifier stops the run before any work
    if options.specifier:
        validate_specifier(options.specifier)

    projects = discover_projects(root)
    groups, error = resolve_release_groups(
        projects, config.groups, required_target, config.version_defaults
    )
    if error:
        raise ReleaseGroupConfigError(error)
    selected = filter_release_groups(
        groups, projects, options.projects, options.groups, bool(config.groups)
    )

    by_name = {p.name: p for p in projects}
    tree = VirtualTree(root)
    version_data: VersionData = {}
    file_map: dict[str, list[str]] | None = None

    for group, candidates in selected:
        step(f'Versioning release group "{group.name}"')
        needs_files = (
            not options.specifier
            and group.version.specifier_source == "conventional-commits"
        )
        if needs_files and file_map is None:
            file_map = create_project_file_map(projects)
        specifier = resolve_specifier(
            options.specifier,
            group,
            candidates,
            decision_source=decision_source,
            project_file_map=file_map or {},
            type_table=config.conventional_commits.types,
            first_release=options.first_release,
        )
        print(f"  Specifier: {specifier}")
        apply_version(
            group,
            candidates,
            specifier,
            tree,
            projects=by_name,
            preid=options.preid,
            first_release=options.first_release,
            version_data=version_data,
        )

    print_changes(tree, options.dry_run)

    versioned_groups = [group for group, _ in selected]
    workspace_version = compute_workspace_version(versioned_groups, version_data)
    tags = commit_and_tag(
        tree,
        version_data,
        versioned_groups,
        resolve_git_options(git_config or config.version.git, options),
        workspace_version=workspace_version,
        dry_run=options.dry_run,
        verbose=options.verbose,
    )

    if options.dry_run:
        print('\nNOTE: The "dry-run" flag means no changes were made.')

    return VersionResult(
        workspace_version=workspace_version,
        version_data=version_data,
        release_groups=versioned_groups,
        projects=by_name,
        tags=tags,
    )
