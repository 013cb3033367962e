"""Tests for bumpwise.generators."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from bumpwise.errors import (
    NoMatchingTagError,
    ReleaseConfigError,
    UnknownGeneratorError,
)
from bumpwise.generators import (
    VersionGeneratorOptions,
    parse_generator_string,
    pyproject_version_generator,
    register_generator,
    resolve_current_version,
    resolve_generator,
)
from bumpwise.models import ProjectDescriptor
from bumpwise.tree import VirtualTree
from conftest import write_project


def _options(
    projects: list[ProjectDescriptor], specifier: str, **kwargs
) -> VersionGeneratorOptions:
    return VersionGeneratorOptions(
        release_group_name="core",
        projects=kwargs.pop("selected", projects),
        project_graph={p.name: p for p in projects},
        specifier=specifier,
        **kwargs,
    )


class TestRegistry:
    def test_parse(self) -> None:
        assert parse_generator_string("bumpwise:pyproject") == (
            "bumpwise",
            "pyproject",
        )

    @pytest.mark.parametrize("name", ["pyproject", ":x", "x:"])
    def test_malformed(self, name: str) -> None:
        with pytest.raises(UnknownGeneratorError, match="collection"):
            parse_generator_string(name)

    def test_builtin_is_registered(self) -> None:
        assert resolve_generator("bumpwise:pyproject") is pyproject_version_generator

    def test_register_and_resolve(self) -> None:
        @register_generator("tests:noop")
        def noop(tree, options):
            return {}

        assert resolve_generator("tests:noop") is noop

    @patch("bumpwise.generators.entry_points", return_value=[])
    def test_unknown(self, mock_entry_points: MagicMock) -> None:
        with pytest.raises(UnknownGeneratorError, match="bumpwise:pyproject"):
            resolve_generator("acme:missing")

    @patch("bumpwise.generators.entry_points")
    def test_entry_point_generator(
        self, mock_entry_points: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("bumpwise.generators._entry_points_loaded", False)

        def plugin(tree, options):
            return {}

        ep = MagicMock()
        ep.name = "acme:plugin"
        ep.load.return_value = plugin
        mock_entry_points.return_value = [ep]

        assert resolve_generator("acme:plugin") is plugin
        mock_entry_points.assert_called_with(group="bumpwise.generators")


class TestResolveCurrentVersion:
    def test_disk(self, workspace: Path, projects: list[ProjectDescriptor]) -> None:
        tree = VirtualTree(workspace)
        options = _options(projects, "patch")
        assert resolve_current_version(tree, projects[2], options) == "0.3.0"

    @patch("bumpwise.generators.get_last_git_tag")
    def test_git_tag(
        self,
        mock_tag: MagicMock,
        workspace: Path,
        projects: list[ProjectDescriptor],
    ) -> None:
        mock_tag.return_value = "lib-a@1.4.0"
        options = _options(
            projects,
            "patch",
            current_version_resolver="git-tag",
            current_version_resolver_metadata={"tag_version_prefix": "{project_name}@"},
        )

        version = resolve_current_version(VirtualTree(workspace), projects[0], options)

        assert version == "1.4.0"
        mock_tag.assert_called_once_with("lib-a@*.*.*")

    @patch("bumpwise.generators.get_last_git_tag", return_value=None)
    def test_git_tag_missing(
        self,
        mock_tag: MagicMock,
        workspace: Path,
        projects: list[ProjectDescriptor],
    ) -> None:
        options = _options(projects, "patch", current_version_resolver="git-tag")
        with pytest.raises(NoMatchingTagError):
            resolve_current_version(VirtualTree(workspace), projects[0], options)

    @patch("bumpwise.generators.get_last_git_tag", return_value=None)
    def test_git_tag_missing_on_first_release(
        self,
        mock_tag: MagicMock,
        workspace: Path,
        projects: list[ProjectDescriptor],
    ) -> None:
        options = _options(
            projects, "patch", current_version_resolver="git-tag", first_release=True
        )
        tree = VirtualTree(workspace)
        assert resolve_current_version(tree, projects[0], options) == "1.0.0"

    def test_registry_unsupported(
        self, workspace: Path, projects: list[ProjectDescriptor]
    ) -> None:
        options = _options(projects, "patch", current_version_resolver="registry")
        with pytest.raises(ReleaseConfigError, match="registry"):
            resolve_current_version(VirtualTree(workspace), projects[0], options)


class TestPyprojectGenerator:
    def test_fixed_group_shares_version(
        self, workspace: Path, projects: list[ProjectDescriptor]
    ) -> None:
        tree = VirtualTree(workspace)
        data = pyproject_version_generator(tree, _options(projects, "minor"))

        assert {n: e.new_version for n, e in data.items()} == {
            "lib-a": "1.1.0",
            "lib-b": "1.1.0",
            "lib-c": "1.1.0",
        }
        assert 'version = "1.1.0"' in str(tree.read("packages/lib-c/pyproject.toml"))

    def test_independent_projects_bump_separately(
        self, workspace: Path, projects: list[ProjectDescriptor]
    ) -> None:
        tree = VirtualTree(workspace)
        data = pyproject_version_generator(
            tree, _options(projects, "patch", projects_relationship="independent")
        )
        assert data["lib-a"].new_version == "1.0.1"
        assert data["lib-c"].new_version == "0.3.1"

    def test_dependents_are_repinned(
        self, workspace: Path, projects: list[ProjectDescriptor]
    ) -> None:
        """Versioning lib-a alone still updates lib-b's requirement on it."""
        tree = VirtualTree(workspace)
        data = pyproject_version_generator(
            tree, _options(projects, "major", selected=[projects[0]])
        )

        assert set(data) == {"lib-a"}
        assert data["lib-a"].dependents == ["lib-b"]
        lib_b = str(tree.read("packages/lib-b/pyproject.toml"))
        assert "lib-a==2.0.0" in lib_b
        assert 'version = "1.0.0"' in lib_b

    def test_none_specifier_writes_nothing(
        self, workspace: Path, projects: list[ProjectDescriptor]
    ) -> None:
        tree = VirtualTree(workspace)
        data = pyproject_version_generator(tree, _options(projects, "none"))

        assert all(entry.new_version is None for entry in data.values())
        assert data["lib-c"].current_version == "0.3.0"
        assert tree.list_changes() == []

    def test_exact_version(
        self, workspace: Path, projects: list[ProjectDescriptor]
    ) -> None:
        tree = VirtualTree(workspace)
        data = pyproject_version_generator(
            tree, _options(projects, "3.0.0-beta.1", selected=[projects[2]])
        )
        assert data["lib-c"].new_version == "3.0.0-beta.1"

    def test_pep440_only_version_is_a_config_error(
        self, workspace: Path, projects: list[ProjectDescriptor]
    ) -> None:
        write_project(workspace, "lib-a", version="1.0.0rc1")
        tree = VirtualTree(workspace)

        with pytest.raises(ReleaseConfigError, match=r'lib-a \("1\.0\.0rc1"\)'):
            pyproject_version_generator(
                tree, _options(projects, "minor", selected=[projects[0]])
            )
        assert tree.list_changes() == []

    def test_exact_version_replaces_pep440_only_version(
        self, workspace: Path, projects: list[ProjectDescriptor]
    ) -> None:
        write_project(workspace, "lib-a", version="1.0.0rc1")
        tree = VirtualTree(workspace)

        data = pyproject_version_generator(
            tree, _options(projects, "1.0.0", selected=[projects[0]])
        )
        assert data["lib-a"].current_version == "1.0.0rc1"
        assert data["lib-a"].new_version == "1.0.0"
