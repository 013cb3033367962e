"""Shared test fixtures."""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

import pytest
import tomlkit

from bumpwise.models import ProjectDescriptor


def write_project(
    root: Path,
    name: str,
    version: str = "1.0.0",
    dependencies: Sequence[str] = (),
    extra: str = "",
) -> Path:
    """Write packages/<name>/pyproject.toml under root."""
    project_dir = root / "packages" / name
    project_dir.mkdir(parents=True, exist_ok=True)
    deps = ", ".join(f'"{d}"' for d in dependencies)
    (project_dir / "pyproject.toml").write_text(
        f'[project]\nname = "{name}"\nversion = "{version}"\n'
        f"dependencies = [{deps}]\n{extra}"
    )
    return project_dir


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A uv workspace with lib-a, lib-b (depends on lib-a) and lib-c."""
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "root"\nversion = "0.0.0"\n\n'
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    write_project(tmp_path, "lib-a")
    write_project(tmp_path, "lib-b", dependencies=["lib-a>=1.0", "requests>=2"])
    write_project(tmp_path, "lib-c", version="0.3.0")
    return tmp_path


@pytest.fixture
def projects() -> list[ProjectDescriptor]:
    """Descriptors matching the ``workspace`` fixture."""
    return [
        ProjectDescriptor(name="lib-a", root="packages/lib-a", targets=["publish"]),
        ProjectDescriptor(
            name="lib-b",
            root="packages/lib-b",
            targets=["publish"],
            dependencies=["lib-a"],
        ),
        ProjectDescriptor(name="lib-c", root="packages/lib-c", targets=["publish"]),
    ]


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal>=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1"]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "My_Package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0", {include-group = "docs"}]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]

[tool.bumpwise]
targets = ["publish", "docs"]
"""
    return tomlkit.parse(content)


def run_git(repo: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)


def commit_file(repo: Path, path: str, message: str) -> None:
    """Write path under repo and commit it with message."""
    target = repo / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(f"{message}\n")
    run_git(repo, "add", path)
    run_git(repo, "commit", "-q", "-m", message)


@pytest.fixture
def git_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An empty git repository isolated from the user's git config."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Release Bot")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "release@example.com")
    run_git(tmp_path, "init", "-q")
    monkeypatch.chdir(tmp_path)
    return tmp_path
