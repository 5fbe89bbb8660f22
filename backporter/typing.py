"""Common types used across the codebase."""

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple


class GitInterface(Protocol):
    """Narrow port for running git commands (real or fake)."""

    def run_cmd(self, command: str, output: Optional[str] = None) -> str:
        """Run git command."""
        ...

    def must_git(self, command: str, output: Optional[str] = None) -> str:
        """Run git command, failing on error."""
        ...


@dataclass(frozen=True)
class Commit:
    """A commit read from history."""
    sha: str
    parents: Tuple[str, ...]
    message: str

    @property
    def is_merge(self) -> bool:
        return len(self.parents) == 2

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]

    def __str__(self) -> str:
        return f"{self.sha[:8]} {self.subject}"
