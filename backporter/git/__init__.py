"""Git interfaces and implementation."""

import os
import shlex
import logging
from typing import List, Optional, Set

import git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..errors import GitError, ReferenceNotFoundError
from ..typing import Commit, GitInterface
from .markers import cherry_pick_sources

# Get module logger
logger = logging.getLogger(__name__)

# Unit/record separators keep multi-line messages intact in one log call
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = "--format=%H%x1f%P%x1f%B%x1e"

def parse_log(output: str) -> List[Commit]:
    """Parse `git log` output produced with LOG_FORMAT."""
    commits: List[Commit] = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        sha, parents, message = record.split(FIELD_SEP, 2)
        commits.append(Commit(sha=sha.strip(), parents=tuple(parents.split()), message=message.strip()))
    return commits

class RealGit:
    """Real Git implementation backed by GitPython."""
    def __init__(self, directory: Optional[str] = None):
        """Initialize with the repository directory (defaults to cwd)."""
        self.directory = directory

    def run_cmd(self, command: str, output: Optional[str] = None) -> str:
        """Run git command."""
        cmd_str = command.strip()
        logger.info(f"> git {cmd_str}")
        try:
            repo = git.Repo(self.directory or os.getcwd(), search_parent_directories=True)
            cmd_parts = shlex.split(cmd_str)
            git_command = cmd_parts[0]
            git_args = cmd_parts[1:]
            method = getattr(repo.git, git_command.replace('-', '_'))
            result = method(*git_args)
            return result if isinstance(result, str) else str(result)
        except GitCommandError as e:
            logger.debug(f"git {cmd_str} exited with {e.status}")
            raise GitError(f"Git command failed: git {cmd_str} (exit {e.status})") from e
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise GitError("Not in a git repository") from e

    def must_git(self, command: str, output: Optional[str] = None) -> str:
        """Run git command, failing on error."""
        return self.run_cmd(command, output)

    @staticmethod
    def clone(url: str, directory: str) -> None:
        """Clone url into directory."""
        logger.info(f"> git clone {url} {directory}")
        try:
            git.Repo.clone_from(url, directory)
        except GitCommandError as e:
            raise GitError(f"Git command failed: git clone {url} (exit {e.status})") from e

class CommitGraph:
    """Read-only view of history plus the working tree checks backporting needs."""

    def __init__(self, git_cmd: GitInterface):
        self.git_cmd = git_cmd

    def succeeds(self, command: str) -> bool:
        """Whether a git command exits zero."""
        try:
            self.git_cmd.must_git(command)
            return True
        except GitError:
            return False

    def resolve_ref(self, ref: str) -> str:
        """Full hash of the commit ref points to."""
        try:
            return self.git_cmd.must_git(f"rev-parse --verify --quiet {ref}^{{commit}}").strip()
        except GitError as e:
            raise ReferenceNotFoundError(ref) from e

    def parents(self, commit_hash: str) -> List[str]:
        """Parent hashes, first parent first. Empty for a root commit."""
        try:
            line = self.git_cmd.must_git(f"rev-list --parents -n 1 {commit_hash}").strip()
        except GitError as e:
            raise ReferenceNotFoundError(commit_hash) from e
        return line.split()[1:]

    def resolve_merge_commit(self, commit_hash: str) -> str:
        """Hash of the commit carrying the actual change.

        A PR merged with a merge commit records the merge itself as its
        merge_commit_sha; the change lives on the second parent.
        """
        parents = self.parents(commit_hash)
        if len(parents) == 2:
            return parents[1]
        return commit_hash

    def log_between(self, base_ref: str, head_ref: str) -> List[Commit]:
        """Commits reachable from head_ref but not base_ref, oldest first."""
        base = self.resolve_ref(base_ref)
        head = self.resolve_ref(head_ref)
        return parse_log(self.git_cmd.must_git(f"log --reverse {LOG_FORMAT} {base}..{head}"))

    def log(self, ref: str) -> List[Commit]:
        """Full history of ref, newest first."""
        head = self.resolve_ref(ref)
        return parse_log(self.git_cmd.must_git(f"log {LOG_FORMAT} {head}"))

    def cherry_picked_commits(self, base_ref: str, head_ref: str) -> Set[str]:
        """Source hashes of cherry-picks on either side of base_ref...head_ref."""
        commits = self.log_between(base_ref, head_ref) + self.log_between(head_ref, base_ref)
        found: Set[str] = set()
        for commit in commits:
            found.update(cherry_pick_sources(commit.message))
        logger.info(f"Found {len(found)} cherry-picked commits between {base_ref} and {head_ref}")
        return found

    def head(self) -> str:
        return self.git_cmd.must_git("rev-parse HEAD").strip()

    def current_branch(self) -> str:
        return self.git_cmd.must_git("rev-parse --abbrev-ref HEAD").strip()

    def is_clean(self) -> bool:
        """No staged or unstaged changes to tracked files."""
        return self.git_cmd.must_git("status --porcelain --untracked-files=no").strip() == ""

    def cherry_pick_in_progress(self) -> bool:
        return self.succeeds("rev-parse --quiet --verify CHERRY_PICK_HEAD")

    def fetch(self, remote: str) -> None:
        self.git_cmd.must_git(f"fetch {remote}")
