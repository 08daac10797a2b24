"""Shared fixtures: a clean BULLETPROOF_* environment and real git repositories."""

from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from typing import Callable, Optional

import pytest

from bulletproof.config import ENV_PREFIX


def run_git(repo: Path, *args: str) -> str:
    """Run a git command in *repo* and return its stdout."""
    completed = subprocess.run(
        ["git", *args],
        cwd=str(repo),
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


def write_files(root: Path, files: dict[str, str]) -> None:
    """Write *files* (relative path -> content) under *root*."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all BULLETPROOF_* env vars for the duration of each test."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def isolated_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A directory that git will never resolve to an enclosing repository."""
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture()
def git_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A git repository with a single commit containing README.md."""
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(repo, "init", "-q")
    run_git(repo, "config", "user.email", "dev@example.com")
    run_git(repo, "config", "user.name", "Dev")
    run_git(repo, "config", "commit.gpgsign", "false")
    write_files(repo, {"README.md": "# Project\n"})
    run_git(repo, "add", "-A")
    run_git(repo, "commit", "-q", "-m", "initial")
    return repo


@pytest.fixture()
def commit() -> Callable[..., None]:
    """Return a helper that writes files into a repo and commits them."""

    def _commit(
        repo: Path,
        files: dict[str, str],
        message: str = "change",
    ) -> None:
        write_files(repo, files)
        run_git(repo, "add", "-A")
        run_git(repo, "commit", "-q", "-m", message)

    return _commit


@pytest.fixture()
def write_manifest() -> Callable[..., Path]:
    """Return a helper that writes a package.json with the given scripts."""

    def _write(
        root: Path,
        scripts: Optional[dict] = None,
        **extra: object,
    ) -> Path:
        data: dict = dict(extra)
        if scripts is not None:
            data["scripts"] = scripts
        path = root / "package.json"
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write
