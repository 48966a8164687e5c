"""Shared fixtures: throwaway git repositories driven by the real git executable."""

import subprocess
from pathlib import Path
from typing import Dict

import pytest

from hunky.config import Settings
from hunky.git_service import GitService
from hunky.staging import StagingService


class GitRepo:
    """Small helper around a scratch repository."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.path,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout

    def write(self, name: str, content: str) -> Path:
        target = self.path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content.encode("utf-8"))
        return target

    def commit(self, message: str = "commit") -> str:
        self.git("add", "-A")
        self.git("commit", "-q", "-m", message)
        return self.git("rev-parse", "HEAD").strip()

    def index_content(self, name: str) -> str:
        return self.git("show", f":{name}")

    def index_bytes(self, name: str) -> bytes:
        """Index content without newline translation."""
        return subprocess.run(["git", "show", f":{name}"], cwd=self.path, capture_output=True, check=True).stdout

    def staged_diff(self) -> str:
        return self.git("diff", "--cached")

    def unstaged_diff(self) -> str:
        return self.git("diff")


@pytest.fixture(autouse=True)
def git_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Dict[str, str]:
    """Isolate git from the user's configuration."""
    env = {
        "GIT_CONFIG_NOSYSTEM": "1",
        "GIT_CONFIG_GLOBAL": str(tmp_path / "gitconfig"),
        "GIT_AUTHOR_NAME": "Test Author",
        "GIT_AUTHOR_EMAIL": "author@example.com",
        "GIT_COMMITTER_NAME": "Test Author",
        "GIT_COMMITTER_EMAIL": "author@example.com",
        "GIT_CEILING_DIRECTORIES": str(tmp_path),
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    for key in ("HUNKY_LOG", "HUNKY_LOG_LEVEL", "HUNKY_CONTEXT_LINES", "HUNKY_DEBOUNCE_MS"):
        monkeypatch.delenv(key, raising=False)
    return env


@pytest.fixture
def repo(tmp_path: Path) -> GitRepo:
    """Create an empty repository with no commits."""
    path = tmp_path / "repo"
    path.mkdir()
    repo = GitRepo(path)
    repo.git("init", "-q")
    repo.git("config", "commit.gpgsign", "false")
    repo.git("config", "core.autocrlf", "false")
    return repo


@pytest.fixture
def git_repo_with_commits(repo: GitRepo) -> GitRepo:
    """Create a repository with a few committed files."""
    repo.write("file1.txt", "one\ntwo\nthree\nfour\n")
    repo.write("file2.txt", "alpha\nbeta\n")
    repo.commit("Initial commit")
    repo.write("file2.txt", "alpha\nbeta\ngamma\n")
    repo.commit("Add gamma")
    return repo


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def service(repo: GitRepo, settings: Settings) -> GitService:
    return GitService(str(repo.path), settings)


@pytest.fixture
def staging(service: GitService) -> StagingService:
    return StagingService(service)
