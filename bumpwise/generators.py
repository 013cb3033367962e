"""Version generators: the code that actually writes new versions.

A generator is a callable ``(tree, options) -> VersionData``, registered
under a ``collection:name`` string. Release groups pick one with
``version.generator``. Third-party generators are discovered through the
``bumpwise.generators`` entry point group.

The built-in ``bumpwise:pyproject`` generator updates ``[project].version``
in each project's pyproject.toml and re-pins direct dependents.
"""

from __future__ import annotations

from collections.abc import Callable
from importlib.metadata import entry_points
from typing import Any

import tomlkit
from pydantic import BaseModel, Field

from .deps import rewrite_pyproject
from .errors import NoMatchingTagError, ReleaseConfigError, UnknownGeneratorError
from .gitops import get_last_git_tag, interpolate
from .models import (
    DEFAULT_VERSION_GENERATOR,
    CurrentVersionResolver,
    ProjectDescriptor,
    ProjectsRelationship,
    VersionData,
    VersionDataEntry,
)
from .toml import get_project_version
from .tree import VirtualTree
from .versions import derive_new_version, is_relative_keyword, parse_version

ENTRY_POINT_GROUP = "bumpwise.generators"


class VersionGeneratorOptions(BaseModel, extra="allow"):
    """Everything a generator needs to version one release group.

    Group-level ``generator_options`` arrive as extra fields (see
    ``model_extra``).
    """

    release_group_name: str
    projects: list[ProjectDescriptor]
    project_graph: dict[str, ProjectDescriptor] = Field(default_factory=dict)
    specifier: str
    preid: str | None = None
    current_version_resolver: CurrentVersionResolver = "disk"
    current_version_resolver_metadata: dict[str, Any] = Field(default_factory=dict)
    projects_relationship: ProjectsRelationship = "fixed"
    first_release: bool = False


VersionGenerator = Callable[[VirtualTree, VersionGeneratorOptions], Any]

_GENERATORS: dict[str, VersionGenerator] = {}
_entry_points_loaded = False


def parse_generator_string(name: str) -> tuple[str, str]:
    """Split "collection:name" into its parts.

    Raises:
        UnknownGeneratorError: If either part is missing.
    """
    collection, _, generator = name.partition(":")
    if not collection or not generator:
        raise UnknownGeneratorError(
            f'Invalid generator string "{name}". '
            "Must be in the format [collection]:[generator]"
        )
    return collection, generator


def register_generator(name: str) -> Callable[[VersionGenerator], VersionGenerator]:
    """Decorator that registers a generator under name."""
    parse_generator_string(name)

    def decorator(func: VersionGenerator) -> VersionGenerator:
        _GENERATORS[name] = func
        return func

    return decorator


def load_entry_point_generators() -> None:
    """Register generators advertised by installed distributions.

    Explicit registrations take precedence over entry points.
    """
    global _entry_points_loaded
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        if ep.name not in _GENERATORS:
            _GENERATORS[ep.name] = ep.load()
    _entry_points_loaded = True


def resolve_generator(name: str) -> VersionGenerator:
    """Look up a registered generator.

    Raises:
        UnknownGeneratorError: If name is malformed or not registered.
    """
    parse_generator_string(name)
    if name not in _GENERATORS and not _entry_points_loaded:
        load_entry_point_generators()
    try:
        return _GENERATORS[name]
    except KeyError:
        known = ", ".join(sorted(_GENERATORS)) or "<none>"
        raise UnknownGeneratorError(
            f'No version generator named "{name}" is registered (known: {known})'
        ) from None


def _pyproject_path(project: ProjectDescriptor) -> str:
    return f"{project.root.rstrip('/')}/pyproject.toml"


def _read_pyproject(tree: VirtualTree, project: ProjectDescriptor) -> str:
    content = tree.read(_pyproject_path(project))
    if content is None:
        raise ReleaseConfigError(
            f"No pyproject.toml found for {project.name} at {_pyproject_path(project)}"
        )
    return content


def resolve_current_version(
    tree: VirtualTree, project: ProjectDescriptor, options: VersionGeneratorOptions
) -> str:
    """Find a project's current version with the configured resolver.

    "git-tag" reads the highest tag starting with ``tag_version_prefix``
    (default "v"; "{project_name}" is interpolated). With no tag, a first
    release falls back to the version on disk.
    """
    resolver = options.current_version_resolver
    if resolver == "disk":
        return get_project_version(tomlkit.parse(_read_pyproject(tree, project)))
    if resolver == "git-tag":
        prefix = interpolate(
            options.current_version_resolver_metadata.get("tag_version_prefix", "v"),
            project_name=project.name,
        )
        tag = get_last_git_tag(f"{prefix}*.*.*")
        if tag is None:
            if options.first_release:
                return get_project_version(
                    tomlkit.parse(_read_pyproject(tree, project))
                )
            raise NoMatchingTagError(
                f'No git tag matching "{prefix}*.*.*" found for {project.name}. '
                "Pass --first-release to release it for the first time."
            )
        return tag[len(prefix) :]
    raise ReleaseConfigError(
        f'The "{resolver}" current version resolver is not supported by '
        f'{DEFAULT_VERSION_GENERATOR}; use "disk" or "git-tag"'
    )


def _check_current_versions(current: dict[str, str]) -> None:
    for name, version in current.items():
        try:
            parse_version(version)
        except ValueError as exc:
            raise ReleaseConfigError(
                f'The current version of {name} ("{version}") is not a valid '
                'semver version, e.g. "1.0.0" or "1.0.0-rc.1"'
            ) from exc


@register_generator(DEFAULT_VERSION_GENERATOR)
def pyproject_version_generator(
    tree: VirtualTree, options: VersionGeneratorOptions
) -> VersionData:
    """Write new versions into each project's pyproject.toml.

    Fixed groups derive one version from the first project and apply it to
    every member. A specifier of "none" records the current versions and
    writes nothing.
    """
    current = {
        p.name: resolve_current_version(tree, p, options) for p in options.projects
    }

    if options.specifier == "none":
        return {
            p.name: VersionDataEntry(current_version=current[p.name], new_version=None)
            for p in options.projects
        }

    if is_relative_keyword(options.specifier):
        _check_current_versions(current)
    new_versions: dict[str, str] = {}
    if options.projects_relationship == "fixed" and options.projects:
        first = options.projects[0].name
        shared = derive_new_version(current[first], options.specifier, options.preid)
        new_versions = {p.name: shared for p in options.projects}
    else:
        for p in options.projects:
            new_versions[p.name] = derive_new_version(
                current[p.name], options.specifier, options.preid
            )

    data: VersionData = {}
    for project in options.projects:
        new_version = new_versions[project.name]
        path = _pyproject_path(project)
        content = _read_pyproject(tree, project)
        tree.write(path, rewrite_pyproject(content, new_version, {}))

        # Re-pin direct dependents anywhere in the workspace
        dependents = [
            other
            for other in options.project_graph.values()
            if project.name in other.dependencies
        ]
        for dependent in dependents:
            dep_path = _pyproject_path(dependent)
            tree.write(
                dep_path,
                rewrite_pyproject(
                    _read_pyproject(tree, dependent),
                    None,
                    {project.name: new_version},
                ),
            )
        print(f"  {project.name}: {current[project.name]} → {new_version}")

        data[project.name] = VersionDataEntry(
            current_version=current[project.name],
            new_version=new_version,
            dependents=[d.name for d in dependents],
        )
    return data
