"""Formatting backport results for humans and tracking issues."""

import re
from typing import IO, Dict, List, Optional, Sequence

import click

from ..audit import AuditResult
from ..backport import ClassificationResult
from ..github import PullRequest

CHANGELOG_SECTIONS = (
    ("Bug fixes", "bugfix"),
    ("Performance improvements", "performance"),
    ("Documentation", "doc"),
)


def _section(lines: List[str], heading: str, prs: Sequence[PullRequest], with_sha: bool = False) -> None:
    if not prs:
        return
    lines.append(heading)
    for pr in prs:
        line = f"    #{pr.number} - {pr.html_url}"
        if with_sha:
            line += f" - {pr.merge_commit_sha}"
        lines.append(line)
    lines.append("")


def format_report(result: ClassificationResult) -> str:
    """What happened to each PR, grouped by the action it needs."""
    lines: List[str] = []
    _section(lines, "The following PRs are closed or already backported but still have a backport label, "
                    "remove the label:", result.stale_labels)
    _section(lines, "The following PRs are open but have a backport label, merge first?", result.open_prs)
    _section(lines, "The following PRs failed to backport cleanly, manually backport:",
             result.failed_backports, with_sha=True)
    _section(lines, "The following PRs had multiple commits, manually backport:", result.multi_commit_prs)
    _section(lines, "The following PRs would be cherry-picked (dry run):", result.pending)
    if result.successful_backports:
        _section(lines, "The following PRs were backported to this branch:", result.successful_backports)
        lines.append("Push the updated branch")
        lines.append("")
    return "\n".join(lines)


def checklist_line(pr: PullRequest, checked: bool = True) -> str:
    return f"- [{'x' if checked else ' '}] #{pr.number} <!-- {pr.title} -->"


def format_checklist(result: ClassificationResult) -> str:
    """Checklist for the first post of the backport tracking PR."""
    blocks: List[List[str]] = []
    for heading, prs, checked in (
        ("Backported PRs:", result.backported, True),
        ("Need manual backport:", result.failed_backports, False),
        ("Contains multiple commits, manual intervention needed:", result.multi_commit_prs, False),
        ("Not yet attempted:", result.pending, False),
        ("Non-merged PRs with backport label:", result.open_prs, False),
    ):
        if prs:
            blocks.append([heading] + [checklist_line(pr, checked) for pr in prs])
    return "\n\n".join("\n".join(block) for block in blocks)


def format_audit(result: AuditResult, label: str) -> str:
    lines = ["", "=== PRs already backported (label should be removed) ==="]
    if not result.to_remove:
        lines.append("None")
    for number, title, info in result.to_remove:
        lines.append(f"  #{number}: {title} ({info.describe()})")
    lines += ["", f"=== PRs still needing backport ({label} should remain) ==="]
    if not result.to_keep:
        lines.append("None")
    for number, title in result.to_keep:
        lines.append(f"  #{number}: {title}")
    lines.append("")
    return "\n".join(lines)


def generate_changelog(prs: Sequence[PullRequest], repo: str, version: Optional[str] = None,
                       add_links: bool = False) -> str:
    """Release notes grouping backported PRs by their bugfix/performance/doc label.

    A PR lands in the first section whose label it carries; PRs with none of
    the labels are left out.
    """
    grouped: Dict[str, List[PullRequest]] = {heading: [] for heading, _ in CHANGELOG_SECTIONS}
    for pr in prs:
        for heading, label in CHANGELOG_SECTIONS:
            if label in pr.labels:
                grouped[heading].append(pr)
                break

    title = f"# Patch notes for {version} release" if version else "# Patch notes"
    lines = [title]
    for heading, _ in CHANGELOG_SECTIONS:
        lines.append(f"## {heading}")
        lines.extend(f"- #{pr.number} - {pr.title}" for pr in grouped[heading])
        lines.append("")
    text = "\n".join(lines)
    if add_links:
        text = re.sub(r'#(\d+)\b', rf'[#\1](https://github.com/{repo}/issues/\1)', text)
    return text


def print_report(result: ClassificationResult, file: Optional[IO[str]] = None) -> None:
    """Echo the report and the checklist to file (default stdout)."""
    click.echo(format_report(result), file=file)
    checklist = format_checklist(result)
    if checklist:
        click.echo("Update the first post with:", file=file)
        click.echo(checklist, file=file)
