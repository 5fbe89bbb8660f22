"""CLI entry point."""

import os
import sys
import click
import logging
from typing import Any, Dict, List, Optional, Tuple
from click import Context

from ... import setup_logging
from ...audit import (apply_audit_changes, audit_labels, cleanup_after_pr_merge,
                      commits_from_branch, find_backport_versions, scan_commits)
from ...backport import Classifier, PRCache
from ...config import BackporterConfig, build_config, require_repo, require_version
from ...config.config_parser import Config, default_config_dict, parse_config
from ...config.models import RELEASE_VERSION_RE
from ...errors import (BackporterError, BranchMismatchError, ConfigurationError,
                       DirtyWorkingTreeError, GitError)
from ...git import CommitGraph, RealGit
from ...git.cherry_pick import CherryPickExecutor
from ...git.markers import checked_pr_references
from ...github import GitHubClient, create_client, find_github_token
from ...report import format_audit, generate_changelog, print_report

# Get module logger
logger = logging.getLogger(__name__)

def check(err: Exception) -> None:
    """Check for error and exit if needed."""
    if err:
        logger.error(f"{err}")
        sys.exit(1)

class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None, **attrs: Any) -> None:
        """Initialize with aliases map."""
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, command: str) -> None:
        """Add an alias for a command."""
        self.aliases[alias] = command

    def get_command(self, ctx: Context, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases."""
        if cmd_name in self.aliases:
            cmd_name = self.aliases[cmd_name]
        return super().get_command(ctx, cmd_name)

@click.group(cls=AliasedGroup)
@click.pass_context
def cli(ctx: Context) -> None:
    """Backporter - cherry-pick labeled pull requests onto release branches."""
    ctx.obj = {}

cli.add_alias('bp', 'backport')

def restore_git_state(graph: CommitGraph, branch: str) -> None:
    """Leave the repository on branch with no cherry-pick in progress."""
    logger.info("Attempting to restore repository state...")
    try:
        if graph.cherry_pick_in_progress():
            graph.git_cmd.must_git("cherry-pick --abort")
        if graph.current_branch() != branch:
            graph.git_cmd.must_git(f"checkout {branch}")
    except GitError as e:
        logger.error(f"Failed to restore {branch}: {e}")
        logger.error("Repository may be in an inconsistent state")

def setup_git(directory: Optional[str] = None) -> Tuple[CommitGraph, Config]:
    """Setup Git command and parsed config for the repository we are in."""
    if directory:
        os.chdir(directory)
    git_cmd = RealGit()
    git_cmd.must_git("rev-parse --git-dir")
    return CommitGraph(git_cmd), parse_config(git_cmd)

def setup_github(config: BackporterConfig) -> GitHubClient:
    token = find_github_token()
    if not token:
        raise ConfigurationError(
            "No GitHub token found. Set GITHUB_TOKEN (or GITHUB_AUTH), or log in with 'gh auth login'")
    return create_client(config, token)

def check_branch(config: BackporterConfig, branch: str) -> None:
    """Make sure we are about to cherry-pick onto the backport branch.

    A mismatch only needs confirming when someone is at the terminal and
    the run will actually change the branch.
    """
    expected = config.backport.backport_branch
    if not config.backport.validate_branch or branch == expected:
        return
    if not config.backport.dry_run and sys.stdin.isatty():
        logger.warning(f"Expected to be on branch {expected}, but on {branch}")
        click.confirm(f"Cherry-pick onto {branch} anyway?", abort=True)
        return
    raise BranchMismatchError(expected, branch)

@cli.command(name="backport", help="Cherry-pick labeled pull requests onto the backport branch")
@click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
              help='Run as if backporter was started in DIRECTORY instead of the current working directory')
@click.option('-v', '--version', 'version', help="Release version X.Y (detected from the branch name if omitted)")
@click.option('-r', '--repo', help="GitHub repository owner/name (detected from the remote if omitted)")
@click.option('-n', '--dry-run', is_flag=True, help="Classify pull requests without cherry-picking anything")
@click.option('--no-validate-branch', is_flag=True, help="Do not check that HEAD is the backport branch")
@click.option('--no-require-clean', is_flag=True, help="Do not check for a clean working tree up front")
@click.option('--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def backport(ctx: Context, directory: Optional[str], version: Optional[str], repo: Optional[str],
             dry_run: bool, no_validate_branch: bool, no_require_clean: bool, verbose: int) -> None:
    """Backport command."""
    setup_logging(verbose)

    try:
        graph, parsed = setup_git(directory)
        current_branch = graph.current_branch()
    except BackporterError as e:
        check(e)
        return

    try:
        config = build_config(parsed, version, repo, dry_run=dry_run,
                              validate_branch=not no_validate_branch,
                              require_clean=not no_require_clean)
        config = require_version(require_repo(config), current_branch)
        settings = config.backport
        if settings.require_clean and not graph.is_clean():
            raise DirtyWorkingTreeError()
        check_branch(config, current_branch)

        github = setup_github(config)
        graph.fetch(config.repo.github_remote)
        release_ref = f"{config.repo.github_remote}/{settings.release_branch}"
        already_ported = graph.cherry_picked_commits(release_ref, "HEAD")

        prs = github.collect_label_prs(settings.label)
        logger.info(f"Found {len(prs)} PRs labeled {settings.label}")
        classifier = Classifier(graph, CherryPickExecutor(graph), PRCache(github))
        result = classifier.classify(prs, already_ported, dry_run=settings.dry_run)
    except BackporterError as e:
        restore_git_state(graph, current_branch)
        check(e)
        return

    print_report(result)

def run_audit_for_version(config: BackporterConfig, github: GitHubClient, graph: Optional[CommitGraph],
                          dry_run: bool, cleanup_pr: Optional[int]) -> None:
    """Audit (or clean up after an umbrella PR) one backport label."""
    settings = config.backport
    click.echo("Backport Label Audit")
    click.echo("====================")
    click.echo(f"Version: {settings.version}")
    click.echo(f"Repository: {config.repo.full_name}")
    click.echo(f"Label: {settings.label}")
    click.echo(f"Branch: {settings.release_branch}")
    click.echo(f"Dry run: {dry_run}")
    click.echo()

    if not github.branch_exists(settings.release_branch):
        click.echo(f"Release branch {settings.release_branch} does not exist, skipping")
        return

    if cleanup_pr is not None:
        cleaned = cleanup_after_pr_merge(github, config, cleanup_pr, dry_run=dry_run)
        verb = "Would remove" if dry_run else "Removed"
        for number, info in cleaned.items():
            click.echo(f"{verb} {settings.label} from #{number} ({info.describe()})")
        return

    infos = scan_commits(commits_from_branch(config, github, graph))
    click.echo(f"Found {len(infos)} cherry-picked PRs")
    labeled = github.search_labeled_issues(settings.label, closed_only=True)
    click.echo(f"Found {len(labeled)} closed PRs with label {settings.label}")

    result = audit_labels(labeled, infos)
    click.echo(format_audit(result, settings.label))
    if dry_run:
        click.echo("Dry run mode - no changes made")
        if result.to_remove:
            click.echo(f"Would remove {settings.label} from {len(result.to_remove)} PR(s)")
    elif not result.to_remove:
        click.echo("No labels to remove")
    else:
        updated = apply_audit_changes(result, github, config)
        click.echo(f"Done. Removed {settings.label} from {len(updated)} PR(s)")

@cli.command(name="audit", help="Find and remove backport labels of PRs already on the release branch")
@click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
              help='Run as if backporter was started in DIRECTORY instead of the current working directory')
@click.option('-v', '--version', 'version', help="Release version X.Y. If omitted, audits every 'backport X.Y' label")
@click.option('-r', '--repo', help="GitHub repository owner/name")
@click.option('--apply', is_flag=True, help="Apply changes (default is dry-run)")
@click.option('--cleanup-pr', type=int, help="Only process the commits of this merged backport PR")
@click.option('--local', is_flag=True, help="Scan the local clone's release branch instead of asking GitHub")
@click.option('--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def audit(ctx: Context, directory: Optional[str], version: Optional[str], repo: Optional[str],
          apply: bool, cleanup_pr: Optional[int], local: bool, verbose: int) -> None:
    """Audit command."""
    setup_logging(verbose)

    try:
        graph: Optional[CommitGraph] = None
        parsed = default_config_dict()
        if local or directory:
            graph, parsed = setup_git(directory)
        elif not repo:
            try:
                _, parsed = setup_git()
            except GitError as e:
                logger.debug(f"Cannot detect repository from git: {e}")
        config = require_repo(build_config(parsed, version, repo))
        if cleanup_pr is not None and config.backport.version is None:
            raise ConfigurationError("--cleanup-pr requires --version to be specified")
        github = setup_github(config)
        if local and graph is not None:
            graph.fetch(config.repo.github_remote)

        if config.backport.version is not None:
            versions: List[str] = [config.backport.version]
        else:
            versions = find_backport_versions(github.label_names())
            if not versions:
                click.echo(f"No backport labels found in {config.repo.full_name}")
                return
            click.echo(f"Found {len(versions)} backport label(s): {', '.join(versions)}")
            click.echo()

        for v in versions:
            run_audit_for_version(config.for_version(v), github, graph if local else None,
                                  dry_run=not apply, cleanup_pr=cleanup_pr)
            if len(versions) > 1:
                click.echo()
                click.echo("=" * 60)
                click.echo()
    except BackporterError as e:
        check(e)

@cli.command(name="changelog", help="Generate patch notes from a backport PR's checklist")
@click.option('-r', '--repo', required=True, help="GitHub repository owner/name")
@click.option('--pr', 'pr_number', type=int, required=True, help="Backport PR whose ticked checklist lists the PRs")
@click.option('-v', '--version', 'version', help="Release version X.Y or X.Y.Z used in the title")
@click.option('--links', is_flag=True, help="Turn #N references into links")
@click.option('--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def changelog(ctx: Context, repo: str, pr_number: int, version: Optional[str], links: bool, verbose: int) -> None:
    """Changelog command."""
    setup_logging(verbose)

    try:
        if version is not None and not RELEASE_VERSION_RE.match(version):
            raise ConfigurationError(f"Invalid version '{version}', expected X.Y or X.Y.Z")
        config = require_repo(build_config(default_config_dict(), repo=repo))
        github = setup_github(config)
        numbers = checked_pr_references(github.get_pull(pr_number).body)
        logger.info(f"PR #{pr_number} lists {len(numbers)} backported PRs")
        prs = github.get_pulls(numbers)
    except BackporterError as e:
        check(e)
        return

    click.echo(generate_changelog(prs, config.repo.full_name, version, add_links=links))

def main() -> None:
    """Main entry point."""
    cli(obj={})

if __name__ == "__main__":
    main()
