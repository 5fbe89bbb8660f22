"""Configuration for pytest."""

import pytest
import logging
from pathlib import Path

from backporter.git import CommitGraph, RealGit
from backporter.tests.utils import commit_file, git

# Configure logging
logger = logging.getLogger(__name__)

@pytest.fixture
def repo_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Fresh repository on branch main with one commit adding base.txt."""
    monkeypatch.setenv("GIT_MERGE_AUTOEDIT", "no")
    monkeypatch.setenv("GIT_EDITOR", "true")
    directory = str(tmp_path)
    git("init", "-q", cwd=directory)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=directory)
    git("config", "user.name", "Test User", cwd=directory)
    git("config", "user.email", "test@example.com", cwd=directory)
    git("config", "commit.gpgsign", "false", cwd=directory)
    monkeypatch.chdir(directory)
    commit_file("base.txt", "one\ntwo\nthree\n", "Initial commit")
    logger.info(f"Created test repository in {directory}")
    return directory

@pytest.fixture
def graph(repo_dir: str) -> CommitGraph:
    return CommitGraph(RealGit(repo_dir))
