"""Reconciling labeled pull requests against a backport branch."""

import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional, Protocol

from ..errors import StalePRDataError
from ..github import PullRequest, PullRequestSource, merge_order
from ..util import ensure

logger = logging.getLogger(__name__)


class GraphProtocol(Protocol):
    """The commit graph operations classification needs."""
    def parents(self, commit_hash: str) -> List[str]:
        ...

    def resolve_merge_commit(self, commit_hash: str) -> str:
        ...


class ExecutorProtocol(Protocol):
    def attempt(self, commit_hash: str) -> bool:
        ...


class PRCache:
    """Per-run memo of GitHub lookups.

    Owned by one run so nothing leaks between runs and tests can hand in a fake
    source.
    """

    def __init__(self, source: PullRequestSource):
        self.source = source
        self._sha_to_prs: Dict[str, List[int]] = {}
        self._pulls: Dict[int, PullRequest] = {}

    def prs_for_commit(self, sha: str) -> List[int]:
        if sha not in self._sha_to_prs:
            self._sha_to_prs[sha] = self.source.prs_for_commit(sha)
        return self._sha_to_prs[sha]

    def refetch(self, number: int) -> PullRequest:
        """Fresh copy of a pull request, fetched at most once per run."""
        if number not in self._pulls:
            self._pulls[number] = self.source.get_pull(number)
        return self._pulls[number]


class SquashDetector:
    """Tells squash merges apart from merges of a PR's own commits."""

    def __init__(self, graph: GraphProtocol, cache: PRCache):
        self.graph = graph
        self.cache = cache

    def is_squashed(self, pr: PullRequest) -> bool:
        """Whether pr's merge commit is a brand new commit on top of unrelated history.

        A squash merge has a single parent that belongs only to other PRs (or
        none); a real merge of the PR's only commit has a parent from the PR's
        own history, even when that commit also shows up in other PRs.
        """
        if pr.merge_commit_sha is None:
            return False
        parents = self.graph.parents(pr.merge_commit_sha)
        if len(parents) != 1:
            return False
        return pr.number not in self.cache.prs_for_commit(parents[0])


@dataclass
class ClassificationResult:
    """Where each labeled pull request ended up."""
    open_prs: List[PullRequest] = field(default_factory=list)
    closed_prs: List[PullRequest] = field(default_factory=list)
    already_backported: List[PullRequest] = field(default_factory=list)
    backport_candidates: List[PullRequest] = field(default_factory=list)
    multi_commit_prs: List[PullRequest] = field(default_factory=list)
    successful_backports: List[PullRequest] = field(default_factory=list)
    failed_backports: List[PullRequest] = field(default_factory=list)
    pending: List[PullRequest] = field(default_factory=list)

    def final_categories(self) -> Dict[str, List[PullRequest]]:
        """Disjoint buckets that together hold every input PR once."""
        return {
            "open": self.open_prs,
            "closed": self.closed_prs,
            "already_backported": self.already_backported,
            "multi_commit": self.multi_commit_prs,
            "successful": self.successful_backports,
            "failed": self.failed_backports,
            "pending": self.pending,
        }

    @property
    def backported(self) -> List[PullRequest]:
        """Successful and already backported PRs, in merge order."""
        return sorted(self.successful_backports + self.already_backported, key=merge_order)

    @property
    def stale_labels(self) -> List[PullRequest]:
        """Closed or already backported PRs whose label should go."""
        return sorted(self.closed_prs + self.already_backported, key=merge_order)


class Classifier:
    """Sorts labeled PRs into categories and cherry-picks the candidates."""

    def __init__(self, graph: GraphProtocol, executor: ExecutorProtocol, cache: PRCache,
                 squash_detector: Optional[SquashDetector] = None):
        self.graph = graph
        self.executor = executor
        self.cache = cache
        self.squash_detector = squash_detector or SquashDetector(graph, cache)

    def is_backported(self, pr: PullRequest, already_ported: Collection[str]) -> bool:
        """Whether pr's change is already on the backport branch.

        Someone may have cherry-picked either the merge commit or the commit
        it resolves to, so both hashes are checked.
        """
        sha = pr.merge_commit_sha
        if sha is None:
            return False
        return self.graph.resolve_merge_commit(sha) in already_ported or sha in already_ported

    def categorize(self, pull_requests: List[PullRequest], already_ported: Collection[str]) -> ClassificationResult:
        """Split PRs by state and presence on the branch. No side effects."""
        result = ClassificationResult()
        for pr in pull_requests:
            if pr.state != "closed":
                result.open_prs.append(pr)
            elif not pr.merged:
                result.closed_prs.append(pr)
            elif self.is_backported(pr, already_ported):
                result.already_backported.append(pr)
            else:
                result.backport_candidates.append(pr)

        result.open_prs.sort(key=merge_order)
        result.closed_prs.sort(key=lambda pr: pr.number)
        result.already_backported.sort(key=merge_order)
        result.backport_candidates.sort(key=merge_order)
        logger.info(f"{len(result.open_prs)} open, {len(result.closed_prs)} closed unmerged, "
                    f"{len(result.already_backported)} already backported, "
                    f"{len(result.backport_candidates)} candidates")
        return result

    def classify(self, pull_requests: List[PullRequest], already_ported: Collection[str],
                 dry_run: bool = False) -> ClassificationResult:
        """Categorize PRs, then try to cherry-pick each candidate in merge order.

        With dry_run the candidates are left in `pending` and nothing is
        cherry-picked.

        Raises:
            StalePRDataError: If a candidate's commit count is unknown even after refetching
            DirtyWorkingTreeError: If the working tree is dirty when a pick is attempted
        """
        result = self.categorize(pull_requests, already_ported)
        if dry_run:
            result.pending.extend(result.backport_candidates)
            return result

        for pr in result.backport_candidates:
            pr = self._complete(pr)
            if pr.commits != 1:
                # A squash merge still lands as one commit we can pick
                if self.squash_detector.is_squashed(pr) and self._pick(pr):
                    logger.info(f"Backported squashed {pr}")
                    result.successful_backports.append(pr)
                else:
                    logger.info(f"{pr} has {pr.commits} commits, needs manual backport")
                    result.multi_commit_prs.append(pr)
            elif self._pick(pr):
                logger.info(f"Backported {pr}")
                result.successful_backports.append(pr)
            else:
                logger.info(f"{pr} did not cherry-pick cleanly")
                result.failed_backports.append(pr)
        return result

    def _pick(self, pr: PullRequest) -> bool:
        return self.executor.attempt(self.graph.resolve_merge_commit(ensure(pr.merge_commit_sha)))

    def _complete(self, pr: PullRequest) -> PullRequest:
        """pr itself, or a refetched copy when the commit count is missing."""
        if pr.commits is not None and pr.merge_commit_sha is not None:
            return pr
        logger.info(f"{pr} is missing its commit count, refetching")
        fresh = self.cache.refetch(pr.number)
        if fresh.commits is None:
            raise StalePRDataError(pr.number)
        if fresh.merge_commit_sha is None:
            raise StalePRDataError(pr.number, "merge commit")
        return fresh
