"""Pydantic models for config types."""

import re
from typing import Optional
from pydantic import BaseModel, Field, field_validator

VERSION_RE = re.compile(r'^\d+\.\d+$')

# Patch notes may name a point release
RELEASE_VERSION_RE = re.compile(r'^\d+\.\d+(\.\d+)?$')

# Upper bound on simultaneous GitHub requests when fetching PR details
MAX_CONCURRENCY = 20

class RepoConfig(BaseModel):
    """Repository configuration."""
    github_remote: str = "origin"
    github_repo_owner: Optional[str] = None
    github_repo_name: Optional[str] = None

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def full_name(self) -> str:
        """owner/name as GitHub spells it."""
        return f"{self.github_repo_owner}/{self.github_repo_name}"

class BackportConfig(BaseModel):
    """What to backport and where."""
    version: Optional[str] = None
    label_template: str = "backport {version}"
    release_branch_template: str = "release-{version}"
    backport_branch_template: str = "backports-release-{version}"
    validate_branch: bool = True
    require_clean: bool = True
    dry_run: bool = False

    class Config:
        """Pydantic config."""
        frozen = True

    @field_validator("version")
    @classmethod
    def check_version(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not VERSION_RE.match(value):
            raise ValueError(f"Invalid version format: {value}. Expected X.Y (e.g., 1.13)")
        return value

    @property
    def label(self) -> str:
        return self.label_template.format(version=self.version)

    @property
    def release_branch(self) -> str:
        return self.release_branch_template.format(version=self.version)

    @property
    def backport_branch(self) -> str:
        return self.backport_branch_template.format(version=self.version)

class ToolConfig(BaseModel):
    """Tool configuration."""
    concurrency: int = Field(default=MAX_CONCURRENCY, ge=1, le=MAX_CONCURRENCY)
    max_retries: int = Field(default=5, ge=0)
    retry_backoff: float = Field(default=10.0, ge=0)

    class Config:
        """Pydantic config."""
        frozen = True

class BackporterConfig(BaseModel):
    """Full backporter configuration."""
    repo: RepoConfig = Field(default_factory=RepoConfig)
    backport: BackportConfig = Field(default_factory=BackportConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)

    class Config:
        """Pydantic config."""
        frozen = True

    def for_version(self, version: str) -> "BackporterConfig":
        """Copy of this config targeting another release version."""
        backport = BackportConfig.model_validate({**self.backport.model_dump(), "version": version})
        return self.model_copy(update={"backport": backport})
