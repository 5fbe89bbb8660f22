"""Config parser logic."""

import re
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ...errors import ConfigurationError, GitError
from ...typing import GitInterface

# Get module logger
logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".backporter.yaml"

Config = Dict[str, Dict[str, Any]]

BRANCH_VERSION_RE = re.compile(r'^(?:backports?-)?release-(\d+\.\d+)$')

def default_config_dict() -> Config:
    """Defaults every other source is layered onto."""
    return {
        'repo': {
            'github_remote': 'origin',
        },
        'backport': {},
        'tool': {},
    }

def detect_version_from_branch(branch: str) -> Optional[str]:
    """Get X.Y out of backports-release-X.Y, backport-release-X.Y or release-X.Y."""
    match = BRANCH_VERSION_RE.match(branch.strip())
    return match.group(1) if match else None

def parse_remote_url(remote_url: str) -> Optional[Tuple[str, str]]:
    """Split a GitHub remote url into (owner, name)."""
    url = remote_url.strip()
    if not url:
        return None
    # Handle SSH and HTTPS urls
    if "://" in url:
        # HTTPS format: https://github.com/owner/repo.git
        repo_part = url.split("://", 1)[1].split("/", 1)[-1]
    elif "@" in url:
        # SSH format: git@github.com:owner/repo.git
        repo_part = url.split(":")[-1]
    else:
        return None
    if repo_part.endswith(".git"):
        repo_part = repo_part[:-len(".git")]
    parts = [p for p in repo_part.strip("/").split("/") if p]
    if len(parts) != 2:
        return None
    return parts[0], parts[1]

def load_config_file(path: Path) -> Config:
    """Read sections from a .backporter.yaml file, if there is one."""
    config: Config = {}
    try:
        with open(path, 'r') as f:
            logger.info(f"Found {path}, loading...")
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug(f"No {path} found, using defaults")
        return config
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid {path}: {e}") from e
    if not isinstance(data, dict):
        return config
    for section in ('repo', 'backport', 'tool'):
        if isinstance(data.get(section), dict):
            config[section] = dict(data[section])
    return config

def parse_config(git_cmd: GitInterface, root: Optional[Path] = None) -> Config:
    """Parse config from defaults, the repository config file and the git remote."""
    config = default_config_dict()

    if root is None:
        try:
            root = Path(git_cmd.must_git("rev-parse --show-toplevel").strip())
        except GitError as e:
            logger.debug(f"Could not find repository root: {e}")
            root = Path.cwd()

    for section, values in load_config_file(root / CONFIG_FILE_NAME).items():
        config[section].update(values)

    # Try to extract repo owner/name from git remote if not in config
    if not config['repo'].get('github_repo_owner') or not config['repo'].get('github_repo_name'):
        remote = config['repo'].get('github_remote', 'origin')
        try:
            parsed = parse_remote_url(git_cmd.run_cmd(f"remote get-url {remote}"))
        except GitError as e:
            logger.debug(f"Failed to read git remote {remote}: {e}")
            parsed = None
        if parsed:
            for key, value in zip(('github_repo_owner', 'github_repo_name'), parsed):
                if not config['repo'].get(key):
                    config['repo'][key] = value

    return config
