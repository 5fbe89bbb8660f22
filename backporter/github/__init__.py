"""GitHub interfaces and implementation."""

import os
import time
import logging
import concurrent.futures
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, TypeVar, runtime_checkable

import yaml
from github import Auth, Github
from github.GithubException import GithubException, RateLimitExceededException
from github.PaginatedList import PaginatedList

from ..config.models import BackporterConfig
from ..errors import GitHubAPIError, RateLimitError
from ..typing import Commit

T = TypeVar('T')

# Get module logger
logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "rate limit"

# Sorts after every real merge time
NEVER = datetime.max.replace(tzinfo=timezone.utc)

@dataclass(frozen=True)
class PullRequest:
    """Snapshot of a pull request for one run."""
    number: int
    state: str
    merged_at: Optional[datetime] = None
    merge_commit_sha: Optional[str] = None
    commits: Optional[int] = None
    title: str = ""
    html_url: str = ""
    labels: Tuple[str, ...] = field(default_factory=tuple)
    body: str = ""

    @property
    def merged(self) -> bool:
        return self.merged_at is not None

    @classmethod
    def from_github(cls, pr: Any) -> "PullRequest":
        """Build from a PyGithub PullRequest."""
        merged_at = pr.merged_at
        if merged_at is not None and merged_at.tzinfo is None:
            merged_at = merged_at.replace(tzinfo=timezone.utc)
        return cls(
            number=pr.number,
            state=pr.state,
            merged_at=merged_at,
            merge_commit_sha=pr.merge_commit_sha,
            commits=pr.commits,
            title=pr.title or "",
            html_url=pr.html_url or "",
            labels=tuple(label.name for label in pr.labels),
            body=pr.body or "",
        )

    def __str__(self) -> str:
        return f"PR #{self.number} - {self.title}"

def merge_order(pr: PullRequest) -> Tuple[datetime, int]:
    """Sort key: merge time, then number. Unmerged PRs sort last."""
    merged_at = pr.merged_at
    if merged_at is not None and merged_at.tzinfo is None:
        merged_at = merged_at.replace(tzinfo=timezone.utc)
    return (merged_at or NEVER, pr.number)

@runtime_checkable
class PullRequestSource(Protocol):
    """What the classifier needs from GitHub (real or fake)."""
    def get_pull(self, number: int) -> PullRequest:
        """Get a pull request by number."""
        ...

    def prs_for_commit(self, sha: str) -> List[int]:
        """Numbers of the pull requests containing sha."""
        ...

def find_github_token() -> Optional[str]:
    """Find GitHub token from env vars or the gh CLI config."""
    for var in ("GITHUB_TOKEN", "GITHUB_AUTH"):
        token = os.environ.get(var, "").strip()
        if token:
            return token

    # Then try gh CLI config at ~/.config/gh/hosts.yml
    try:
        gh_config_path = Path.home() / ".config" / "gh" / "hosts.yml"
        if gh_config_path.exists():
            with open(gh_config_path, "r") as f:
                gh_config = yaml.safe_load(f)
                if gh_config and "github.com" in gh_config:
                    github_config: Dict[str, object] = gh_config["github.com"]
                    token = github_config.get("oauth_token")
                    if isinstance(token, str) and token:
                        return token
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error reading gh CLI config: {e}")
    return None

def is_rate_limited(e: GithubException) -> bool:
    """Whether GitHub refused the call because of rate limiting."""
    if isinstance(e, RateLimitExceededException):
        return True
    return RATE_LIMIT_MESSAGE in str(e.data).lower()

class GitHubClient:
    """GitHub client implementation."""
    def __init__(self, config: BackporterConfig, github_client: Github,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize with config and a PyGithub client (real or fake)."""
        self.config = config
        self.client = github_client
        self.sleep = sleep
        self._repo: Any = None

    @property
    def repo(self) -> Any:
        """Get GitHub repository."""
        if self._repo is None:
            full_name = self.config.repo.full_name
            self._repo = self.call(lambda: self.client.get_repo(full_name), f"get repo {full_name}")
        return self._repo

    def call(self, fn: Callable[[], T], description: str) -> T:
        """Run one API call, retrying with exponential backoff while rate limited.

        Raises:
            RateLimitError: If still rate limited after tool.max_retries retries
            GitHubAPIError: For any other failed response
        """
        max_retries = self.config.tool.max_retries
        attempt = 0
        while True:
            try:
                return fn()
            except GithubException as e:
                if not is_rate_limited(e):
                    raise GitHubAPIError(f"GitHub call failed: {description}", e.status, e.data) from e
                if attempt >= max_retries:
                    raise RateLimitError(
                        f"Still rate limited after {max_retries} retries: {description}", e.status, e.data) from e
                delay = self.config.tool.retry_backoff * (2 ** attempt)
                attempt += 1
                logger.warning(f"Rate limited on {description}, sleeping {delay:.0f}s (retry {attempt}/{max_retries})")
                self.sleep(delay)

    def collect_pages(self, paginated: PaginatedList, description: str) -> List[Any]:
        """All items of a paginated listing, retrying a rate-limited page in place."""
        items: List[Any] = []
        page = 0
        while True:
            batch = self.call(lambda: paginated.get_page(page), f"{description} (page {page + 1})")
            if not batch:
                break
            items.extend(batch)
            page += 1
        return items

    def search_labeled_issues(self, label: str, closed_only: bool = False) -> List[Tuple[int, str]]:
        """(number, title) of pull requests carrying label."""
        query = f'repo:{self.config.repo.full_name} is:pr label:"{label}"'
        if closed_only:
            query += " is:closed"
        logger.info(f"> github search {query}")
        issues = self.collect_pages(self.call(lambda: self.client.search_issues(query), "search issues"),
                                    "search issues")
        return [(issue.number, issue.title) for issue in issues if issue.pull_request is not None]

    def get_pull(self, number: int) -> PullRequest:
        """Get a pull request by number."""
        logger.debug(f"> github get pull #{number}")
        return PullRequest.from_github(self.call(lambda: self.repo.get_pull(number), f"get pull #{number}"))

    def get_pulls(self, numbers: List[int]) -> List[PullRequest]:
        """Fetch pull requests concurrently, keeping the order of numbers."""
        if not numbers:
            return []
        workers = min(self.config.tool.concurrency, len(numbers))
        logger.info(f"> github fetch {len(numbers)} pull requests ({workers} at a time)")
        # Resolve the repository once, before the workers share it
        self.repo
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.get_pull, numbers))

    def collect_label_prs(self, label: str) -> List[PullRequest]:
        """Every pull request carrying label, with full details."""
        numbers = [number for number, _ in self.search_labeled_issues(label)]
        return self.get_pulls(numbers)

    def prs_for_commit(self, sha: str) -> List[int]:
        """Numbers of the pull requests containing sha."""
        logger.debug(f"> github pulls for commit {sha[:8]}")
        commit = self.call(lambda: self.repo.get_commit(sha), f"get commit {sha}")
        pulls = self.collect_pages(self.call(commit.get_pulls, f"pulls for {sha}"), f"pulls for {sha}")
        return [pull.number for pull in pulls]

    def pr_commits(self, number: int) -> List[Commit]:
        """Commits of a pull request, oldest first."""
        logger.info(f"> github commits of PR #{number}")
        pull = self.call(lambda: self.repo.get_pull(number), f"get pull #{number}")
        commits = self.collect_pages(self.call(pull.get_commits, f"commits of #{number}"), f"commits of #{number}")
        return [to_commit(c) for c in commits]

    def branch_commits(self, branch: str) -> List[Commit]:
        """History of a branch, newest first."""
        logger.info(f"> github commits on {branch}")
        commits = self.collect_pages(self.call(lambda: self.repo.get_commits(sha=branch), f"commits on {branch}"),
                                     f"commits on {branch}")
        return [to_commit(c) for c in commits]

    def label_names(self) -> List[str]:
        logger.info("> github list labels")
        labels = self.collect_pages(self.call(self.repo.get_labels, "list labels"), "list labels")
        return [label.name for label in labels]

    def branch_exists(self, branch: str) -> bool:
        try:
            self.call(lambda: self.repo.get_branch(branch), f"get branch {branch}")
            return True
        except GitHubAPIError as e:
            if e.status == 404:
                return False
            raise

    def pr_labels(self, number: int) -> List[str]:
        return list(self.get_pull(number).labels)

    def remove_label(self, number: int, label: str) -> None:
        logger.info(f"> github remove label '{label}' from #{number}")
        issue = self.call(lambda: self.repo.get_issue(number), f"get issue #{number}")
        self.call(lambda: issue.remove_from_labels(label), f"remove label from #{number}")

    def add_comment(self, number: int, body: str) -> None:
        logger.info(f"> github comment on #{number}")
        issue = self.call(lambda: self.repo.get_issue(number), f"get issue #{number}")
        self.call(lambda: issue.create_comment(body), f"comment on #{number}")

def to_commit(commit: Any) -> Commit:
    """Build from a PyGithub Commit."""
    return Commit(
        sha=commit.sha,
        parents=tuple(parent.sha for parent in commit.parents),
        message=commit.commit.message,
    )

def create_client(config: BackporterConfig, token: str) -> GitHubClient:
    """GitHubClient talking to the real API with token."""
    # Retries are ours (bounded); PyGithub's own would sleep out rate limits unbounded
    return GitHubClient(config, Github(auth=Auth.Token(token), retry=None))
