"""The publish stage: build and upload released projects with uv.

Projects are published in dependency order so that a dependent never
reaches the index before the version it pins.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from .errors import PublishError
from .graph import topo_sort
from .models import PUBLISH_TARGET, ProjectDescriptor, VersionData
from .shell import run, step


def release_publish(
    projects: Mapping[str, ProjectDescriptor],
    version_data: VersionData,
    *,
    dist_dir: Path = Path("dist"),
    dry_run: bool = False,
    verbose: bool = False,
) -> list[str]:
    """Build and upload every released project that declares "publish".

    Args:
        projects: All workspace projects by name.
        version_data: Versions computed by the version stage; projects
                      without a new version are skipped.
        dist_dir: Directory for built distributions (one subdir per project).

    Returns:
        Names of the projects that were (or would be) published.

    Raises:
        PublishError: If a build or upload fails.
    """
    step("Publishing projects")

    to_publish = {
        name: projects[name]
        for name, entry in version_data.items()
        if entry.new_version and PUBLISH_TARGET in projects[name].targets
    }
    if not to_publish:
        print("  Nothing to publish.")
        return []

    order = topo_sort(to_publish)
    for name in order:
        project = to_publish[name]
        out_dir = dist_dir / name
        build_cmd = ["uv", "build", project.root, "--out-dir", str(out_dir)]
        publish_cmd = ["uv", "publish", f"{out_dir}/*"]
        print(f"\n  {name} {version_data[name].new_version} ({project.root})")
        if verbose or dry_run:
            print(f"    {' '.join(build_cmd)}")
            print(f"    {' '.join(publish_cmd)}")
        if dry_run:
            continue

        if run(*build_cmd, check=False).returncode != 0:
            raise PublishError(f"Failed to build {name}")
        if run(*publish_cmd, check=False).returncode != 0:
            raise PublishError(f"Failed to publish {name}")

    if dry_run:
        print("\nSkipping publish because the --dry-run flag was passed.")
    return order
