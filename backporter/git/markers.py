"""Backport markers found in commit messages.

Three kinds of references are recognised:

* the ``(cherry picked from commit <hash>)`` trailer that ``git cherry-pick -x``
  appends on a line of its own,
* inline pull request references such as ``Fix parser (#1234)``,
* GitHub merge commit subjects such as ``Merge pull request #1234 from user/branch``.

Everything here is a pure text transform.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Union

# Only whole lines count; the same text inside a paragraph is not a trailer
CHERRY_PICK_TRAILER_RE = re.compile(
    r'^[ \t]*\(cherry picked from commit ([0-9a-fA-F]{4,64})\)[ \t]*$', re.MULTILINE)
INLINE_PR_RE = re.compile(r'\(#(\d+)\)')
MERGE_PR_RE = re.compile(r'Merge pull request #(\d+)')
CHECKED_PR_RE = re.compile(r'^[ \t]*[-*] \[[xX]\] #(\d+)\b', re.MULTILINE)


@dataclass(frozen=True)
class CherryPickTrailer:
    source_hash: str


@dataclass(frozen=True)
class InlineReference:
    pr_number: int


@dataclass(frozen=True)
class MergeMarker:
    pr_number: int


BackportMarker = Union[CherryPickTrailer, InlineReference, MergeMarker]


def cherry_pick_sources(message: str) -> List[str]:
    """All source hashes recorded by cherry-pick trailers, oldest pick first."""
    return [m.group(1).lower() for m in CHERRY_PICK_TRAILER_RE.finditer(message)]


def cherry_pick_source(message: str) -> Optional[str]:
    """Source hash of the most recent cherry-pick recorded in the message.

    git appends a new trailer below any existing one, so when a commit was
    cherry-picked more than once the last trailer names the commit it was
    picked from directly.
    """
    sources = cherry_pick_sources(message)
    return sources[-1] if sources else None


def inline_pr_references(message: str) -> List[int]:
    """Every ``(#N)`` in order of appearance, duplicates kept."""
    return [int(m.group(1)) for m in INLINE_PR_RE.finditer(message)]


def merge_pr_reference(message: str) -> Optional[int]:
    match = MERGE_PR_RE.search(message)
    return int(match.group(1)) if match else None


def checked_pr_references(body: str) -> List[int]:
    """PR numbers ticked off in a ``- [x] #N`` checklist."""
    return [int(m.group(1)) for m in CHECKED_PR_RE.finditer(body or "")]


def parse_markers(message: str) -> List[BackportMarker]:
    """Every marker in the message, grouped by kind."""
    markers: List[BackportMarker] = []
    merge_pr = merge_pr_reference(message)
    if merge_pr is not None:
        markers.append(MergeMarker(merge_pr))
    markers.extend(InlineReference(n) for n in inline_pr_references(message))
    markers.extend(CherryPickTrailer(h) for h in cherry_pick_sources(message))
    return markers
