"""The changelog stage.

Renders markdown release notes from conventional commits and prepends them
to CHANGELOG.md files, then commits and tags the release. A workspace
changelog needs a single workspace version; per-project changelogs are
written next to each released project's pyproject.toml.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime, timezone
from pathlib import Path

from .commits import classify, get_git_diff
from .config import ChangelogConfig, GitConfig
from .errors import ReleaseConfigError
from .gitops import commit_and_tag, get_last_git_tag, interpolate
from .models import CommitRecord, GitTagDescriptor, ProjectDescriptor, ReleaseGroup
from .shell import step
from .tree import VirtualTree, print_changes
from .versioning import VersionResult
from .workspace import create_project_file_map

TYPE_LABELS = {
    "feat": "### Features",
    "fix": "### Bug Fixes",
    "perf": "### Performance",
    "refactor": "### Refactoring",
    "docs": "### Documentation",
}

CHANGELOG_HEADER = "# Changelog"


def render_changelog_entry(
    version: str, records: Sequence[CommitRecord], today: date | None = None
) -> str:
    """Render one release section.

    Breaking changes are listed first, then commits grouped by type in the
    order of TYPE_LABELS. Other types are left out.
    """
    today = today or datetime.now(timezone.utc).date()
    lines = [f"## {version} ({today.isoformat()})", ""]

    breaking = [r for r in records if r.type and r.breaking]
    if breaking:
        lines.append("### ⚠️ Breaking Changes")
        lines.append("")
        lines.extend(_format_record(r) for r in breaking)
        lines.append("")

    for commit_type, label in TYPE_LABELS.items():
        of_type = [r for r in records if r.type == commit_type and not r.breaking]
        if of_type:
            lines.append(label)
            lines.append("")
            lines.extend(_format_record(r) for r in of_type)
            lines.append("")

    if len(lines) == 2:
        lines.append("This was a version bump only, there were no code changes.")
        lines.append("")
    return "\n".join(lines)


def _format_record(record: CommitRecord) -> str:
    scope = f"**{record.scope}:** " if record.scope else ""
    return f"- {scope}{record.subject} ({record.hash[:7]})"


def prepend_entry(existing: str | None, entry: str) -> str:
    """Insert entry below the changelog header, creating one if needed."""
    if existing is None:
        return f"{CHANGELOG_HEADER}\n\n{entry}"
    if existing.startswith("# "):
        header, _, rest = existing.partition("\n")
        return f"{header}\n\n{entry}\n{rest.lstrip()}"
    return f"{entry}\n{existing}"


def _previous_tag(pattern: str, **values: str) -> str | None:
    return get_last_git_tag(interpolate(pattern, version="*", **values))


def release_changelog(
    version_result: VersionResult,
    config: ChangelogConfig,
    git_options: GitConfig,
    *,
    root: Path,
    projects: Mapping[str, ProjectDescriptor],
    dry_run: bool = False,
    verbose: bool = False,
    today: date | None = None,
) -> list[GitTagDescriptor]:
    """Write changelog entries for the versioned projects, then commit and tag.

    Returns:
        The tags created (or that would be created in dry-run).

    Raises:
        ReleaseConfigError: If a workspace changelog is enabled but the run
            has no single workspace version.
    """
    step("Generating changelogs")

    version_data = version_result.version_data
    released = {n: e for n, e in version_data.items() if e.new_version}
    if not released:
        print("  No new versions, skipping changelogs.")
        return []

    tree = VirtualTree(root)
    groups = version_result.release_groups

    if config.workspace_changelog:
        version = version_result.workspace_version
        if version is None:
            raise ReleaseConfigError(
                "A workspace changelog needs a single workspace version, which "
                "only exists when exactly one fixed release group is released. "
                "Set [tool.bumpwise.changelog] workspace_changelog = false or "
                "release a single fixed group."
            )
        group = groups[0]
        last_tag = _previous_tag(
            group.release_tag_pattern, release_group_name=group.name
        )
        records = classify(get_git_diff(last_tag))
        entry = render_changelog_entry(version, records, today)
        path = config.file_name
        tree.write(path, prepend_entry(tree.read(path), entry))

    if config.project_changelogs:
        file_map = create_project_file_map(list(projects.values()))
        for group in groups:
            for name in group.projects:
                if name not in released:
                    continue
                _write_project_changelog(
                    tree,
                    group,
                    projects[name],
                    str(released[name].new_version),
                    file_map.get(name, []),
                    config.file_name,
                    today,
                )

    print_changes(tree, dry_run)
    return commit_and_tag(
        tree,
        version_data,
        groups,
        git_options,
        workspace_version=version_result.workspace_version,
        dry_run=dry_run,
        verbose=verbose,
    )


def _write_project_changelog(
    tree: VirtualTree,
    group: ReleaseGroup,
    project: ProjectDescriptor,
    version: str,
    owned_files: Sequence[str],
    file_name: str,
    today: date | None,
) -> None:
    last_tag = _previous_tag(
        group.release_tag_pattern,
        project_name=project.name,
        release_group_name=group.name,
    )
    owned = set(owned_files)
    records = [
        r
        for r in classify(get_git_diff(last_tag))
        if any(f in owned for f in r.affected_files)
    ]
    path = f"{project.root.rstrip('/')}/{file_name}"
    entry = render_changelog_entry(version, records, today)
    tree.write(path, prepend_entry(tree.read(path), entry))
