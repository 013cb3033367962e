"""Release pipeline: version → changelog → publish.

This module orchestrates a full release:
1. Version every selected release group, writing files but leaving the
   commit and tags to the changelog stage
2. Write changelog entries, then commit and tag everything at once
3. Publish released projects, after confirmation unless --yes was given

Git settings for a full release live in ``[tool.bumpwise.git]``. The
``[tool.bumpwise.version.git]`` table only applies to the `version`
command and is rejected here so the two never silently disagree.
"""

from __future__ import annotations

from .changelog import release_changelog
from .config import ReleaseConfig, load_release_config
from .errors import ReleaseConfigError
from .models import PUBLISH_TARGET
from .publish import release_publish
from .shell import step
from .specifier import ClickDecisionSource, DecisionSource
from .versioning import (
    VersionOptions,
    VersionResult,
    release_version,
    resolve_git_options,
)


class ReleaseOptions(VersionOptions):
    """Options for `bumpwise release`.

    Attributes:
        skip_publish: Never publish, and do not ask.
        yes: Publish without asking.
    """

    skip_publish: bool = False
    yes: bool = False


def run_release(
    options: ReleaseOptions,
    decision_source: DecisionSource | None = None,
    *,
    config: ReleaseConfig | None = None,
) -> VersionResult:
    """Run the full release pipeline.

    Returns:
        The version result, with the tags created by the changelog stage.

    Raises:
        ReleaseError: If any stage fails. Later stages do not run.
    """
    config = config or load_release_config(options.root)
    decision_source = decision_source or ClickDecisionSource()

    if config.version.git.is_configured:
        raise ReleaseConfigError(
            "The `release` command commits and tags once, after the changelog. "
            "Move your [tool.bumpwise.version.git] settings to "
            "[tool.bumpwise.git]."
        )

    git_options = resolve_git_options(config.git, options)

    # Files are staged during versioning; commit and tags wait for the changelog
    version_options = options.model_copy(
        update={
            "stage_changes": git_options.commit,
            "git_commit": False,
            "git_tag": False,
        }
    )
    version_result = release_version(
        version_options,
        decision_source,
        config=config,
        git_config=config.git,
        required_target=PUBLISH_TARGET,
    )

    tags = release_changelog(
        version_result,
        config.changelog,
        git_options,
        root=options.root,
        projects=version_result.projects,
        dry_run=options.dry_run,
        verbose=options.verbose,
    )
    version_result = version_result.model_copy(update={"tags": tags})

    should_publish = options.yes and not options.skip_publish
    if not options.yes and not options.skip_publish and not options.dry_run:
        step("Publish")
        should_publish = decision_source.confirm(
            "Do you want to publish these versions?"
        )

    if should_publish:
        release_publish(
            version_result.projects,
            version_result.version_data,
            dry_run=options.dry_run,
            verbose=options.verbose,
        )
    else:
        print("\nSkipped publishing packages.")

    return version_result
