"""Git side effects: stage, commit and tag a release.

The order is fixed: compute tags → check duplicates → flush files → stage
→ commit → tag. Tags are computed before anything irreversible runs so a
duplicate stops the release while the repository is still untouched.

Every command honors dry-run by printing what it would run and returning
None without starting a subprocess.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from .config import GitConfig
from .errors import DuplicateTagError
from .models import GitTagDescriptor, ReleaseGroup, VersionData
from .shell import git
from .tree import VirtualTree


def interpolate(template: str, **values: str) -> str:
    """Replace {key} placeholders; unknown placeholders are left alone."""
    for key, value in values.items():
        template = template.replace(f"{{{key}}}", value)
    return template


def get_last_git_tag(pattern: str) -> str | None:
    """Return the most recent tag reachable from HEAD matching a glob, or None.

    Reachability rather than version order decides, so a graduated v1.0.0
    wins over the v1.0.0-rc.1 tagged before it.
    """
    tag = git("describe", "--tags", "--abbrev=0", "--match", pattern, check=False)
    return tag or None


def has_staged_changes() -> bool:
    return bool(git("diff", "--cached", "--name-only"))


def _announce(action: str, command: list[str], verbose: bool) -> None:
    if verbose:
        print(f"\n{action} with the following command:")
        print(" ".join(command))


def git_add_changes(
    paths: Sequence[str], *, dry_run: bool = False, verbose: bool = False
) -> str | None:
    """Stage paths with `git add`."""
    command = ["git", "add", *paths]
    _announce("Staging files in git", command, verbose)
    if dry_run:
        print("\nSkipping git add because the --dry-run flag was passed.")
        return None
    return git(*command[1:])


def git_commit_changes(
    messages: Sequence[str],
    args: Sequence[str] = (),
    *,
    amend: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
) -> str | None:
    """Commit staged changes; never creates an empty commit.

    Args:
        messages: Subject followed by optional body paragraphs (one -m each).
        args: Extra arguments for `git commit`.
        amend: Amend the previous commit instead of creating a new one.
    """
    if amend:
        command = ["git", "commit", "--amend", "--no-edit", *args]
    else:
        command = ["git", "commit", *args]
        for message in messages:
            command.extend(["-m", message])
    _announce("Committing files", command, verbose)
    if dry_run:
        print("\nSkipping git commit because the --dry-run flag was passed.")
        return None
    if not has_staged_changes():
        print("\nNo staged files found. Skipping commit.")
        return None
    return git(*command[1:])


def git_tag(
    tag: GitTagDescriptor, *, dry_run: bool = False, verbose: bool = False
) -> str | None:
    """Create an annotated tag."""
    command = ["git", "tag", tag.tag, "-m", tag.message, *tag.args]
    _announce("Tagging commit", command, verbose)
    if dry_run:
        print("\nSkipping git tag because the --dry-run flag was passed.")
        return None
    return git(*command[1:])


def compute_git_tags(
    groups: Sequence[ReleaseGroup],
    version_data: VersionData,
    message: str | None = None,
    args: Sequence[str] = (),
) -> list[GitTagDescriptor]:
    """Compute the tags for every released version.

    A fixed group gets one tag for its shared version; an independent group
    gets one tag per project with a new version. Projects without a new
    version are not tagged.

    Args:
        groups: Release groups that were versioned in this run.
        version_data: Computed versions keyed by project.
        message: Tag annotation template; defaults to the tag name.
        args: Extra arguments for every `git tag` call.
    """
    tags: list[GitTagDescriptor] = []
    for group in groups:
        released = [
            (name, version_data[name].new_version)
            for name in group.projects
            if name in version_data and version_data[name].new_version
        ]
        if group.projects_relationship == "fixed":
            # All members share one version; tag it once
            released = released[:1]
        for name, version in released:
            values = {
                "version": str(version),
                "project_name": name,
                "release_group_name": group.name,
            }
            tag = interpolate(group.release_tag_pattern, **values)
            tags.append(
                GitTagDescriptor(
                    tag=tag,
                    message=interpolate(message, **values) if message else tag,
                    args=list(args),
                )
            )
    return tags


def check_duplicate_tags(tags: Sequence[GitTagDescriptor]) -> None:
    """Raise DuplicateTagError if any tag name occurs more than once."""
    counts = Counter(t.tag for t in tags)
    duplicates = sorted(tag for tag, count in counts.items() if count > 1)
    if duplicates:
        raise DuplicateTagError(
            "The following git tags would be created more than once:\n"
            + "\n".join(f"  - {tag}" for tag in duplicates)
            + "\n\nUse a release_tag_pattern that is unique per release group."
        )


def build_commit_messages(
    template: str, version_data: VersionData, workspace_version: str | None
) -> list[str]:
    """Build the commit subject and body.

    With a single workspace version, "{version}" is replaced by it.
    Otherwise the placeholder is dropped and the body lists each released
    project as name@version.
    """
    if workspace_version:
        return [interpolate(template, version=workspace_version)]
    subject = template.replace(" {version}", "").replace("{version}", "")
    body = "\n".join(
        f"- {name}@{entry.new_version}"
        for name, entry in version_data.items()
        if entry.new_version
    )
    return [subject, body] if body else [subject]


def commit_and_tag(
    tree: VirtualTree,
    version_data: VersionData,
    groups: Sequence[ReleaseGroup],
    options: GitConfig,
    *,
    workspace_version: str | None = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> list[GitTagDescriptor]:
    """Flush the tree and run the configured git side effects in order.

    Returns:
        The tags that were (or, in dry-run, would have been) created.

    Raises:
        DuplicateTagError: Before any file or git mutation.
        GitCommandError: If a git command fails.
    """
    tags: list[GitTagDescriptor] = []
    if options.tag:
        tags = compute_git_tags(
            groups, version_data, options.tag_message, options.tag_args
        )
    check_duplicate_tags(tags)

    if dry_run:
        changed_files = [change.path for change in tree.list_changes()]
    else:
        changed_files = tree.flush()

    if options.stage_changes or options.commit:
        if changed_files:
            git_add_changes(changed_files, dry_run=dry_run, verbose=verbose)
        else:
            print("\nNo changed files to stage.")

    if options.commit:
        git_commit_changes(
            build_commit_messages(
                options.commit_message, version_data, workspace_version
            ),
            options.commit_args,
            dry_run=dry_run,
            verbose=verbose,
        )

    for tag in tags:
        git_tag(tag, dry_run=dry_run, verbose=verbose)
        if not verbose:
            print(f"  {tag.tag}")

    return tags
