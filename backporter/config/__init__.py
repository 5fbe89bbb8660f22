"""Config module."""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..errors import ConfigurationError
from .config_parser import Config, detect_version_from_branch, parse_remote_url
from .models import BackportConfig, BackporterConfig, RepoConfig, ToolConfig

logger = logging.getLogger(__name__)

__all__ = [
    "BackportConfig", "BackporterConfig", "RepoConfig", "ToolConfig",
    "build_config", "require_repo", "require_version",
]

def build_config(parsed: Config, version: Optional[str] = None, repo: Optional[str] = None,
                 **backport_options: Any) -> BackporterConfig:
    """Validate parsed config plus command line overrides as one unit.

    Args:
        parsed: Sections from parse_config (or default_config_dict)
        version: Release version X.Y; may stay unset and be detected later
        repo: owner/name overriding whatever the remote said
        backport_options: Overrides for BackportConfig fields (dry_run, ...)
    """
    repo_section: Dict[str, Any] = dict(parsed.get('repo', {}))
    if repo:
        parts = parse_remote_url(f"https://github.com/{repo}")
        if parts is None:
            raise ConfigurationError(f"Invalid repository: {repo}. Expected owner/name")
        repo_section['github_repo_owner'], repo_section['github_repo_name'] = parts

    backport_section: Dict[str, Any] = dict(parsed.get('backport', {}))
    if version:
        backport_section['version'] = version
    backport_section.update({k: v for k, v in backport_options.items() if v is not None})

    try:
        return BackporterConfig(
            repo=RepoConfig.model_validate(repo_section),
            backport=BackportConfig.model_validate(backport_section),
            tool=ToolConfig.model_validate(parsed.get('tool', {})),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

def require_repo(config: BackporterConfig) -> BackporterConfig:
    """Fail unless the target repository is known."""
    if not config.repo.github_repo_owner or not config.repo.github_repo_name:
        raise ConfigurationError("Could not detect the GitHub repository. Use --repo owner/name")
    return config

def require_version(config: BackporterConfig, branch: Optional[str] = None) -> BackporterConfig:
    """Fail unless a release version is known, falling back to the branch name."""
    if config.backport.version is not None:
        return config
    version = detect_version_from_branch(branch) if branch else None
    if version is None:
        raise ConfigurationError(
            f"Could not detect the release version from branch '{branch}'. Use --version X.Y")
    logger.info(f"Detected version {version} from branch {branch}")
    return config.for_version(version)
