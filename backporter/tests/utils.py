"""Shared utilities for backporter tests."""
import os
import subprocess
import logging
from datetime import datetime, timezone
from typing import Optional

from backporter.github import PullRequest

logger = logging.getLogger(__name__)

def run_cmd(cmd: str, cwd: Optional[str] = None, check: bool = True) -> str:
    """Run shell command and return output.

    Args:
        cmd: Command to run
        cwd: Working directory
        check: Whether to check return code

    Returns:
        str: Command output
    """
    logger.debug(f"Running command: {cmd}")
    result = subprocess.run(
        cmd, shell=True, check=check, cwd=cwd,
        capture_output=True, text=True
    )
    logger.debug(f"Command output: {result.stdout.strip()}")
    if result.stderr:
        logger.debug(f"Command stderr: {result.stderr.strip()}")
    return result.stdout.strip()

def git(*args: str, cwd: Optional[str] = None) -> str:
    """Run git with arguments passed as is (no shell quoting)."""
    result = subprocess.run(["git", *args], check=True, cwd=cwd, capture_output=True, text=True)
    return result.stdout.strip()

def commit_file(name: str, content: str, message: str, cwd: Optional[str] = None) -> str:
    """Write a file, commit it and return the new commit hash."""
    path = os.path.join(cwd or os.getcwd(), name)
    with open(path, "w") as f:
        f.write(content)
    git("add", name, cwd=cwd)
    git("commit", "-q", "-m", message, cwd=cwd)
    return git("rev-parse", "HEAD", cwd=cwd)

def make_pr(number: int, state: str = "closed", merged_day: Optional[int] = 1,
            merge_commit_sha: Optional[str] = "default", commits: Optional[int] = 1,
            title: str = "", labels: tuple = ()) -> PullRequest:
    """PullRequest with sensible defaults; merged_day=None means not merged."""
    merged_at = datetime(2024, 1, merged_day, tzinfo=timezone.utc) if merged_day is not None else None
    if merge_commit_sha == "default":
        merge_commit_sha = f"{number:04d}" + "a" * 36
    return PullRequest(
        number=number,
        state=state,
        merged_at=merged_at,
        merge_commit_sha=merge_commit_sha,
        commits=commits,
        title=title or f"Change {number}",
        html_url=f"https://github.com/owner/repo/pull/{number}",
        labels=labels,
    )
