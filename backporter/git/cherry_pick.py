"""Applying single commits onto the current branch."""

import logging

from ..errors import DirtyWorkingTreeError, GitError
from . import CommitGraph

logger = logging.getLogger(__name__)

class CherryPickExecutor:
    """Cherry-picks commits onto HEAD, one at a time.

    Each attempt either advances HEAD by at most one commit or leaves the
    branch and working tree exactly as it found them.
    """

    def __init__(self, graph: CommitGraph):
        self.graph = graph

    def attempt(self, commit_hash: str) -> bool:
        """Cherry-pick commit_hash onto HEAD with a -x trailer.

        Returns False when the pick conflicts or otherwise fails; conflicts
        are for a human to sort out, not an error.

        Raises:
            DirtyWorkingTreeError: If there are uncommitted changes
        """
        if not self.graph.is_clean():
            raise DirtyWorkingTreeError()

        if self._pick(f"cherry-pick -x {commit_hash}"):
            return True

        if len(self.graph.parents(commit_hash)) == 2:
            logger.info(f"{commit_hash[:8]} is a merge commit, retrying relative to its first parent")
            if self._pick(f"cherry-pick -x -m 1 {commit_hash}"):
                return True

        logger.info(f"Cherry-pick of {commit_hash[:8]} failed")
        return False

    def _pick(self, command: str) -> bool:
        try:
            self.graph.git_cmd.must_git(command)
            return True
        except GitError:
            pass

        if self.graph.cherry_pick_in_progress() and self.graph.is_clean():
            # Nothing left to apply: the change is already on this branch
            logger.info("Cherry-pick is empty, skipping it")
            self.graph.git_cmd.must_git("cherry-pick --skip")
            return True

        self.abort()
        return False

    def abort(self) -> None:
        """Abort any in-progress cherry-pick."""
        if self.graph.cherry_pick_in_progress():
            self.graph.git_cmd.must_git("cherry-pick --abort")
