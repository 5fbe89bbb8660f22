"""Backport label audit.

Finds pull requests that still carry a ``backport X.Y`` label although their
change already reached the release branch, and optionally removes the label
and leaves a comment pointing at the commit.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..config.models import BackporterConfig
from ..errors import BackporterError
from ..git.markers import InlineReference, MergeMarker, parse_markers
from ..typing import Commit
from ..util import short_sha

logger = logging.getLogger(__name__)

BACKPORT_LABEL_RE = re.compile(r'^backport (\d+\.\d+)$')


@dataclass(frozen=True)
class CommitInfo:
    """Commit on the release branch carrying an original PR's change."""
    sha: str
    backport_pr: Optional[int] = None

    def describe(self) -> str:
        via = f" via #{self.backport_pr}" if self.backport_pr is not None else ""
        return f"{short_sha(self.sha)}{via}"


@dataclass
class AuditResult:
    to_remove: List[Tuple[int, str, CommitInfo]] = field(default_factory=list)
    to_keep: List[Tuple[int, str]] = field(default_factory=list)


def scan_commits(commits: Iterable[Commit], backport_pr: Optional[int] = None) -> Dict[int, CommitInfo]:
    """Map original PR number to the commit that brought it in.

    Commits are expected newest first, the order `git log` and the GitHub
    commits API return them, so a merge commit is seen before the commits
    it merged and sets the umbrella PR for them. With backport_pr given every
    commit is attributed to that PR instead. The first commit seen for an
    original PR wins.
    """
    infos: Dict[int, CommitInfo] = {}
    current_backport_pr = backport_pr
    for commit in commits:
        for marker in parse_markers(commit.message):
            if isinstance(marker, MergeMarker):
                if backport_pr is None:
                    current_backport_pr = marker.pr_number
            elif isinstance(marker, InlineReference) and marker.pr_number not in infos:
                infos[marker.pr_number] = CommitInfo(commit.sha, current_backport_pr)
    return infos


def commits_from_branch(config: BackporterConfig, github, graph=None) -> List[Commit]:
    """Release branch history, newest first.

    Read from the local clone when graph is given (the remote must already be
    fetched), otherwise from the GitHub API.
    """
    branch = config.backport.release_branch
    if graph is not None:
        return graph.log(f"{config.repo.github_remote}/{branch}")
    return github.branch_commits(branch)


def commits_from_pr(github, backport_pr: int) -> List[Commit]:
    """Commits of an umbrella backport PR, newest first."""
    return list(reversed(github.pr_commits(backport_pr)))


def audit_labels(labeled_prs: Iterable[Tuple[int, str]], commit_infos: Dict[int, CommitInfo]) -> AuditResult:
    """Split labeled (number, title) pairs by whether their change is on the branch."""
    result = AuditResult()
    for number, title in labeled_prs:
        info = commit_infos.get(number)
        if info is not None:
            result.to_remove.append((number, title, info))
        else:
            result.to_keep.append((number, title))
    return result


def backport_comment(config: BackporterConfig, info: CommitInfo, source: Optional[str] = None) -> str:
    """Comment left on a PR when its backport label is removed."""
    commit_url = f"https://github.com/{config.repo.full_name}/commit/{info.sha}"
    bp_ref = f" in #{info.backport_pr}" if info.backport_pr is not None else ""
    comment = f"This was backported to {config.backport.release_branch}{bp_ref} (commit {short_sha(info.sha)}: {commit_url})"
    if source:
        comment += f" - detected by {source}"
    return comment


def apply_audit_changes(result: AuditResult, github, config: BackporterConfig,
                        source: str = "audit workflow") -> List[int]:
    """Remove the label and comment on every PR in result.to_remove.

    A failure on one PR is logged and the rest are still processed.

    Returns:
        Numbers of the PRs that were updated
    """
    label = config.backport.label
    updated: List[int] = []
    for number, _title, info in result.to_remove:
        try:
            github.remove_label(number, label)
            github.add_comment(number, backport_comment(config, info, source))
        except BackporterError as e:
            logger.error(f"Error processing #{number}: {e}")
            continue
        logger.info(f"Removed label from #{number}")
        updated.append(number)
    logger.info(f"Removed {label} from {len(updated)} PR(s)")
    return updated


def cleanup_after_pr_merge(github, config: BackporterConfig, backport_pr: int,
                           dry_run: bool = True) -> Dict[int, CommitInfo]:
    """Drop the label from every PR an umbrella backport PR brought in.

    Returns:
        The PRs found in the umbrella PR that still had the label
    """
    label = config.backport.label
    infos = scan_commits(commits_from_pr(github, backport_pr), backport_pr=backport_pr)
    if not infos:
        logger.info(f"No cherry-picked PRs found in PR #{backport_pr}")
        return {}
    logger.info(f"Found cherry-picked PRs: {', '.join(str(n) for n in infos)}")

    labeled: Dict[int, CommitInfo] = {}
    for number, info in infos.items():
        if label not in github.pr_labels(number):
            logger.info(f"PR #{number} does not have label {label}")
            continue
        labeled[number] = info
        if dry_run:
            logger.info(f"[DRY RUN] Would remove label {label} from PR #{number} and comment")
            continue
        github.remove_label(number, label)
        github.add_comment(number, backport_comment(config, info))
    return labeled


def find_backport_versions(label_names: Iterable[str]) -> List[str]:
    """X.Y of every `backport X.Y` label, newest version first."""
    versions = []
    for name in label_names:
        match = BACKPORT_LABEL_RE.match(name)
        if match:
            versions.append(match.group(1))
    return sorted(set(versions), key=lambda v: tuple(int(p) for p in v.split(".")), reverse=True)
