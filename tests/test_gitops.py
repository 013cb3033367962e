"""Tests for bumpwise.gitops."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from bumpwise.config import GitConfig
from bumpwise.errors import DuplicateTagError, GitCommandError
from bumpwise.gitops import (
    build_commit_messages,
    check_duplicate_tags,
    commit_and_tag,
    compute_git_tags,
    get_last_git_tag,
    git_commit_changes,
    has_staged_changes,
    interpolate,
)
from bumpwise.models import GitTagDescriptor, ReleaseGroup, VersionDataEntry
from bumpwise.tree import VirtualTree
from conftest import commit_file, run_git


class GitRecorder:
    """Stands in for bumpwise.shell.git and records every invocation."""

    def __init__(self, staged: str = "packages/lib-a/pyproject.toml") -> None:
        self.calls: list[tuple[str, ...]] = []
        self.staged = staged

    def __call__(self, *args: str, check: bool = True) -> str:
        self.calls.append(args)
        if args[:2] == ("diff", "--cached"):
            return self.staged
        return ""

    @property
    def mutating(self) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[0] in ("add", "commit", "tag")]


def _entry(new: str | None, current: str = "1.0.0") -> VersionDataEntry:
    return VersionDataEntry(current_version=current, new_version=new)


def _tree_with_change(root: Path) -> VirtualTree:
    tree = VirtualTree(root)
    tree.write("packages/lib-a/pyproject.toml", '[project]\nversion = "1.1.0"\n')
    return tree


class TestInterpolate:
    def test_replaces_known_placeholders(self) -> None:
        result = interpolate("{project_name}@{version}", project_name="a", version="1")
        assert result == "a@1"

    def test_leaves_unknown_placeholders(self) -> None:
        assert interpolate("v{version}-{other}", version="1") == "v1-{other}"


class TestComputeGitTags:
    def test_fixed_group_gets_one_tag(self) -> None:
        groups = [ReleaseGroup(name="core", projects=["a", "b"])]
        data = {"a": _entry("1.1.0"), "b": _entry("1.1.0")}
        tags = compute_git_tags(groups, data)
        assert tags == [GitTagDescriptor(tag="v1.1.0", message="v1.1.0")]

    def test_independent_group_tags_each_changed_project(self) -> None:
        groups = [
            ReleaseGroup(
                name="core",
                projects=["a", "b", "c"],
                projects_relationship="independent",
                release_tag_pattern="{project_name}@{version}",
            )
        ]
        data = {"a": _entry("1.1.0"), "b": _entry(None), "c": _entry("0.2.0")}
        tags = compute_git_tags(groups, data, "Release {project_name}", ["-s"])

        assert [t.tag for t in tags] == ["a@1.1.0", "c@0.2.0"]
        assert tags[0].message == "Release a"
        assert tags[1].args == ["-s"]

    def test_release_group_name_placeholder(self) -> None:
        groups = [
            ReleaseGroup(
                name="tools",
                projects=["x"],
                release_tag_pattern="{release_group_name}-v{version}",
            )
        ]
        tags = compute_git_tags(groups, {"x": _entry("2.0.0")})
        assert tags[0].tag == "tools-v2.0.0"


class TestCheckDuplicateTags:
    def test_unique(self) -> None:
        check_duplicate_tags(
            [
                GitTagDescriptor(tag="a", message="a"),
                GitTagDescriptor(tag="b", message="b"),
            ]
        )

    def test_duplicate(self) -> None:
        tags = [GitTagDescriptor(tag="v1.0.0", message="x")] * 2
        with pytest.raises(DuplicateTagError, match="v1.0.0"):
            check_duplicate_tags(tags)


class TestBuildCommitMessages:
    def test_workspace_version(self) -> None:
        messages = build_commit_messages(
            "chore(release): publish {version}", {}, "1.2.0"
        )
        assert messages == ["chore(release): publish 1.2.0"]

    def test_without_workspace_version(self) -> None:
        data = {"a": _entry("1.1.0"), "b": _entry(None), "c": _entry("0.2.0")}
        messages = build_commit_messages(
            "chore(release): publish {version}", data, None
        )
        assert messages == ["chore(release): publish", "- a@1.1.0\n- c@0.2.0"]


class TestGitCommands:
    @patch("bumpwise.gitops.git")
    def test_last_tag(self, mock_git: MagicMock) -> None:
        mock_git.return_value = "v1.10.0"
        assert get_last_git_tag("v*.*.*") == "v1.10.0"
        mock_git.assert_called_once_with(
            "describe", "--tags", "--abbrev=0", "--match", "v*.*.*", check=False
        )

    @patch("bumpwise.shell.subprocess.run")
    def test_failing_staged_lookup_raises(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=128, stdout="", stderr="fatal: not a git repository"
        )
        with pytest.raises(GitCommandError, match="not a git repository"):
            has_staged_changes()

    @patch("bumpwise.gitops.git", return_value="")
    def test_no_last_tag(self, mock_git: MagicMock) -> None:
        assert get_last_git_tag("v*.*.*") is None

    def test_commit_skipped_without_staged_files(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        recorder = GitRecorder(staged="")
        with patch("bumpwise.gitops.git", recorder):
            assert git_commit_changes(["msg"]) is None
        assert recorder.mutating == []
        assert "No staged files found" in capsys.readouterr().out

    def test_commit_command(self) -> None:
        recorder = GitRecorder()
        with patch("bumpwise.gitops.git", recorder):
            git_commit_changes(["subject", "body"], ["--no-verify"])
        assert recorder.mutating == [
            ("commit", "--no-verify", "-m", "subject", "-m", "body")
        ]

    def test_amend(self) -> None:
        recorder = GitRecorder()
        with patch("bumpwise.gitops.git", recorder):
            git_commit_changes(["ignored"], amend=True)
        assert recorder.mutating == [("commit", "--amend", "--no-edit")]


class TestCommitAndTag:
    def _options(self) -> GitConfig:
        return GitConfig(commit=True, tag=True, tag_args=["--force"])

    def test_full_sequence(self, tmp_path: Path) -> None:
        recorder = GitRecorder()
        groups = [ReleaseGroup(name="core", projects=["lib-a"])]
        data = {"lib-a": _entry("1.1.0")}

        with patch("bumpwise.gitops.git", recorder):
            tags = commit_and_tag(
                _tree_with_change(tmp_path),
                data,
                groups,
                self._options(),
                workspace_version="1.1.0",
            )

        assert [t.tag for t in tags] == ["v1.1.0"]
        assert (tmp_path / "packages/lib-a/pyproject.toml").exists()
        assert recorder.mutating == [
            ("add", "packages/lib-a/pyproject.toml"),
            ("commit", "-m", "chore(release): publish 1.1.0"),
            ("tag", "v1.1.0", "-m", "v1.1.0", "--force"),
        ]

    def test_duplicate_tags_stop_before_any_mutation(self, tmp_path: Path) -> None:
        """Two fixed groups with the default pattern collide on v1.1.0."""
        recorder = GitRecorder()
        groups = [
            ReleaseGroup(name="one", projects=["lib-a"]),
            ReleaseGroup(name="two", projects=["lib-b"]),
        ]
        data = {"lib-a": _entry("1.1.0"), "lib-b": _entry("1.1.0")}

        with patch("bumpwise.gitops.git", recorder):
            with pytest.raises(DuplicateTagError):
                commit_and_tag(
                    _tree_with_change(tmp_path), data, groups, self._options()
                )

        assert recorder.calls == []
        assert not (tmp_path / "packages/lib-a/pyproject.toml").exists()

    def test_dry_run_matches_real_run_without_subprocesses(
        self, tmp_path: Path
    ) -> None:
        groups = [
            ReleaseGroup(
                name="core",
                projects=["lib-a", "lib-b"],
                projects_relationship="independent",
                release_tag_pattern="{project_name}@{version}",
            )
        ]
        data = {"lib-a": _entry("1.1.0"), "lib-b": _entry("2.0.0")}

        dry = GitRecorder()
        with patch("bumpwise.gitops.git", dry):
            dry_tags = commit_and_tag(
                _tree_with_change(tmp_path / "dry"),
                data,
                groups,
                self._options(),
                dry_run=True,
            )

        real = GitRecorder()
        with patch("bumpwise.gitops.git", real):
            real_tags = commit_and_tag(
                _tree_with_change(tmp_path / "real"), data, groups, self._options()
            )

        assert dry_tags == real_tags
        assert dry.calls == []
        assert not (tmp_path / "dry").exists()
        assert [c[0] for c in real.mutating] == ["add", "commit", "tag", "tag"]

    def test_nothing_to_stage(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        recorder = GitRecorder(staged="")
        with patch("bumpwise.gitops.git", recorder):
            commit_and_tag(
                VirtualTree(tmp_path),
                {},
                [],
                GitConfig(commit=True),
            )
        assert recorder.mutating == []
        assert "No changed files to stage." in capsys.readouterr().out


class TestAgainstRepository:
    def test_graduated_release_wins_over_its_prerelease(self, git_repo: Path) -> None:
        commit_file(git_repo, "a.py", "feat: first")
        run_git(git_repo, "tag", "v1.0.0-rc.1")
        commit_file(git_repo, "b.py", "chore(release): publish 1.0.0")
        run_git(git_repo, "tag", "v1.0.0")
        commit_file(git_repo, "c.py", "feat: second")

        assert get_last_git_tag("v*.*.*") == "v1.0.0"

    def test_tags_outside_the_pattern_are_ignored(self, git_repo: Path) -> None:
        commit_file(git_repo, "a.py", "feat: first")
        run_git(git_repo, "tag", "lib-a@1.0.0")

        assert get_last_git_tag("v*.*.*") is None
        assert get_last_git_tag("lib-a@*.*.*") == "lib-a@1.0.0"

    def test_staged_changes(self, git_repo: Path) -> None:
        commit_file(git_repo, "a.py", "feat: first")
        assert has_staged_changes() is False

        (git_repo / "a.py").write_text("changed\n")
        run_git(git_repo, "add", "a.py")
        assert has_staged_changes() is True
