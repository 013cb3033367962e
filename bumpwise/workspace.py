"""Workspace discovery.

Reads ``[tool.uv.workspace].members`` from the root pyproject.toml to find
project directories, then extracts each project's name, capabilities and
internal dependencies.
"""

from __future__ import annotations

import glob
from collections.abc import Sequence
from pathlib import Path

from .deps import dep_canonical_name
from .errors import ReleaseConfigError
from .models import ProjectDescriptor
from .shell import git, step
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_targets,
    get_workspace_member_globs,
    load_pyproject,
)


def discover_projects(root: Path) -> list[ProjectDescriptor]:
    """Scan the workspace and discover all projects.

    Returns:
        Projects in member-glob order (each glob's matches sorted).

    Raises:
        ReleaseConfigError: If no workspace members are defined or found.
    """
    step("Discovering workspace projects")

    root_doc = load_pyproject(root / "pyproject.toml")
    member_globs = get_workspace_member_globs(root_doc)

    # Expand globs to find all project directories
    member_dirs: list[Path] = []
    for pattern in member_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if (p / "pyproject.toml").exists() and p not in member_dirs:
                member_dirs.append(p)

    if not member_dirs:
        raise ReleaseConfigError("No projects found matching workspace members")

    # First pass: collect basic info from each project
    projects: dict[str, ProjectDescriptor] = {}
    raw_deps: dict[str, list[str]] = {}

    for d in member_dirs:
        doc = load_pyproject(d / "pyproject.toml")
        name = get_project_name(doc, d.name)
        projects[name] = ProjectDescriptor(
            name=name,
            root=d.relative_to(root).as_posix(),
            targets=get_project_targets(doc),
        )
        raw_deps[name] = get_all_dependency_strings(doc)

    # Second pass: identify which deps are internal (within workspace)
    for name, deps in raw_deps.items():
        for dep_str in deps:
            dep_name = dep_canonical_name(dep_str)
            # Only track internal deps, ignore external packages
            if dep_name in projects and dep_name not in projects[name].dependencies:
                projects[name].dependencies.append(dep_name)

    for info in projects.values():
        deps = f" → [{', '.join(info.dependencies)}]" if info.dependencies else ""
        print(f"  {info.name} ({info.root}){deps}")

    return list(projects.values())


def create_project_file_map(
    projects: Sequence[ProjectDescriptor],
) -> dict[str, list[str]]:
    """Map each project to the git-tracked files under its root.

    Paths are relative to the repository top level, the same form
    `git log --name-only` prints, so the workspace may live in a
    subdirectory of the repository.

    A file belongs to the project with the longest matching root, so a
    project nested inside another does not leak files to its parent.
    """
    workspace_prefix = git("rev-parse", "--show-prefix")
    roots = sorted(projects, key=lambda p: len(p.root), reverse=True)
    file_map: dict[str, list[str]] = {p.name: [] for p in projects}
    for path in git("ls-files", "--full-name").splitlines():
        for project in roots:
            prefix = workspace_prefix + project.root.rstrip("/") + "/"
            if path.startswith(prefix):
                file_map[project.name].append(path)
                break
    return file_map
