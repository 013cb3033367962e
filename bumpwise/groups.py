"""Release group resolution.

Turns the user's group configuration plus the workspace projects into
validated, non-overlapping release groups. Problems with the configuration
come back as a ``ReleaseGroupError`` value instead of an exception, so both
the CLI and programmatic callers can branch on the error code.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Literal

from pydantic import BaseModel

from .errors import ReleaseConfigError
from .models import (
    CATCH_ALL_RELEASE_GROUP,
    ProjectDescriptor,
    ReleaseGroup,
    ReleaseGroupConfig,
    VersionPolicy,
    VersionPolicyConfig,
)

ReleaseGroupErrorCode = Literal[
    "PROJECT_MATCHES_MULTIPLE_GROUPS",
    "RELEASE_GROUP_MATCHES_NO_PROJECTS",
    "PROJECTS_MISSING_TARGET",
]


class ReleaseGroupError(BaseModel):
    """A configuration error found while resolving release groups.

    Attributes:
        code: Stable error code.
        data: Structured payload, e.g. {"project": "lib-a"}.
    """

    code: ReleaseGroupErrorCode
    data: dict[str, Any]


def resolve_release_groups(
    projects: Sequence[ProjectDescriptor],
    group_configs: Mapping[str, ReleaseGroupConfig],
    required_target: str | None,
    defaults: VersionPolicyConfig | None = None,
) -> tuple[list[ReleaseGroup], ReleaseGroupError | None]:
    """Partition workspace projects into release groups.

    Checks run in priority order and the first violation is returned:
    a project claimed by two groups, then a group matching no projects,
    then matched projects lacking ``required_target`` (all of them, in one
    error).

    Args:
        projects: Workspace projects, in discovery order.
        group_configs: Configured groups, in configuration order.
        required_target: Capability every released project must declare,
                         or None to skip the capability check.
        defaults: Workspace-level version policy under each group's own.

    Returns:
        Tuple of (release groups, error). On error the group list is empty.
    """
    defaults = defaults or VersionPolicyConfig()

    if not group_configs:
        return _catch_all_group(projects, required_target, defaults)

    names = [p.name for p in projects]
    known = set(names)
    matched: dict[str, list[str]] = {}
    for group_name, config in group_configs.items():
        if config.projects == "*":
            matched[group_name] = list(names)
        else:
            # Unknown names are ignored; duplicates keep their first position
            matched[group_name] = [
                n for n in dict.fromkeys(config.projects) if n in known
            ]

    seen: set[str] = set()
    for group_projects in matched.values():
        for name in group_projects:
            if name in seen:
                return [], ReleaseGroupError(
                    code="PROJECT_MATCHES_MULTIPLE_GROUPS", data={"project": name}
                )
            seen.add(name)

    for group_name, group_projects in matched.items():
        if not group_projects:
            return [], ReleaseGroupError(
                code="RELEASE_GROUP_MATCHES_NO_PROJECTS",
                data={"release_group_name": group_name},
            )

    by_name = {p.name: p for p in projects}
    missing = [
        name
        for group_projects in matched.values()
        for name in group_projects
        if not _has_target(by_name[name], required_target)
    ]
    if missing:
        return [], _missing_target_error(missing, str(required_target))

    groups = [
        ReleaseGroup(
            name=group_name,
            projects=matched[group_name],
            version=_merge_policy(config.version, defaults),
            projects_relationship=config.projects_relationship,
            release_tag_pattern=config.release_tag_pattern
            or _default_tag_pattern(config.projects_relationship),
        )
        for group_name, config in group_configs.items()
    ]
    return groups, None


def _catch_all_group(
    projects: Sequence[ProjectDescriptor],
    required_target: str | None,
    defaults: VersionPolicyConfig,
) -> tuple[list[ReleaseGroup], ReleaseGroupError | None]:
    if not projects:
        return [], ReleaseGroupError(
            code="RELEASE_GROUP_MATCHES_NO_PROJECTS",
            data={"release_group_name": CATCH_ALL_RELEASE_GROUP},
        )
    eligible = [p.name for p in projects if _has_target(p, required_target)]
    if not eligible:
        return [], _missing_target_error(
            [p.name for p in projects], str(required_target)
        )
    group = ReleaseGroup(
        name=CATCH_ALL_RELEASE_GROUP,
        projects=eligible,
        version=_merge_policy(VersionPolicyConfig(), defaults),
        projects_relationship="fixed",
        release_tag_pattern=_default_tag_pattern("fixed"),
    )
    return [group], None


def _has_target(project: ProjectDescriptor, target: str | None) -> bool:
    return target is None or target in project.targets


def _missing_target_error(projects: list[str], target: str) -> ReleaseGroupError:
    return ReleaseGroupError(
        code="PROJECTS_MISSING_TARGET",
        data={"projects": projects, "target_name": target},
    )


def _default_tag_pattern(relationship: str) -> str:
    if relationship == "independent":
        return "{project_name}@{version}"
    return "v{version}"


def _merge_policy(
    group: VersionPolicyConfig, defaults: VersionPolicyConfig
) -> VersionPolicy:
    """Layer a group's policy over workspace defaults over built-in defaults."""
    fallback = VersionPolicy()
    return VersionPolicy(
        generator=group.generator or defaults.generator or fallback.generator,
        generator_options={**defaults.generator_options, **group.generator_options},
        specifier_source=group.specifier_source
        or defaults.specifier_source
        or fallback.specifier_source,
        current_version_resolver=group.current_version_resolver
        or defaults.current_version_resolver
        or fallback.current_version_resolver,
        current_version_resolver_metadata={
            **defaults.current_version_resolver_metadata,
            **group.current_version_resolver_metadata,
        },
    )


def format_release_group_error(error: ReleaseGroupError) -> str:
    """Render a ReleaseGroupError as a user-facing explanation."""
    data = error.data
    if error.code == "PROJECT_MATCHES_MULTIPLE_GROUPS":
        detail = (
            f'Project "{data["project"]}" matches more than one release group. '
            "Each project may only belong to one group in [tool.bumpwise.groups]."
        )
    elif error.code == "RELEASE_GROUP_MATCHES_NO_PROJECTS":
        detail = (
            f'Release group "{data["release_group_name"]}" matches no projects. '
            "Check the project names in its `projects` list."
        )
    else:
        listed = "\n".join(f"  - {p}" for p in data["projects"])
        detail = (
            f'The following projects are missing the "{data["target_name"]}" '
            f"target:\n{listed}\n"
            "Declare it with `[tool.bumpwise] targets` in each project's "
            "pyproject.toml, or exclude the projects from release groups."
        )
    return f"{detail}\n(code: {error.code})"


def filter_release_groups(
    groups: Sequence[ReleaseGroup],
    projects: Sequence[ProjectDescriptor],
    project_filter: Sequence[str] = (),
    group_filter: Sequence[str] = (),
    groups_configured: bool = False,
) -> list[tuple[ReleaseGroup, list[str]]]:
    """Narrow release groups to the projects or groups requested on the CLI.

    Args:
        groups: Resolved release groups.
        projects: All workspace projects.
        project_filter: Project names to release (empty means all).
        group_filter: Release group names to release (empty means all).
        groups_configured: True when the user configured groups explicitly;
                           then every filtered project must belong to one.

    Returns:
        (group, candidate projects) pairs in group order.

    Raises:
        ReleaseConfigError: If the filters cannot be reconciled with groups.
    """
    if project_filter:
        known = {p.name for p in projects}
        wanted = [name for name in dict.fromkeys(project_filter) if name in known]
        if not wanted:
            raise ReleaseConfigError(
                f'Your --projects filter "{", ".join(project_filter)}" did not '
                "match any projects in the workspace"
            )
        selected: list[tuple[ReleaseGroup, list[str]]] = []
        grouped: set[str] = set()
        for group in groups:
            members = [name for name in group.projects if name in wanted]
            if members:
                selected.append((group, members))
                grouped.update(members)
        unmatched = [name for name in wanted if name not in grouped]
        if groups_configured and unmatched:
            raise ReleaseConfigError(
                "The following projects which match your projects filter did not "
                "match any configured release groups:\n"
                + "\n".join(f"  - {name}" for name in unmatched)
            )
    else:
        selected = [(group, list(group.projects)) for group in groups]

    if group_filter:
        selected = [(g, members) for g, members in selected if g.name in group_filter]

    if not selected:
        raise ReleaseConfigError(
            "No projects could be matched for versioning with the given filters"
        )
    return selected
