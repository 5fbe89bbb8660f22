"""Tests for reading history from a real repository."""

from unittest.mock import MagicMock

import pytest

from backporter.backport import Classifier, PRCache
from backporter.errors import GitError, ReferenceNotFoundError
from backporter.git import CommitGraph, RealGit, parse_log
from backporter.git.cherry_pick import CherryPickExecutor
from backporter.git.markers import cherry_pick_source
from backporter.tests.utils import commit_file, git, make_pr


def make_merge(pr_number: int = 5) -> tuple:
    """Merge a one-commit feature branch into main with a merge commit.

    Returns:
        (merge hash, first parent, feature commit)
    """
    git("checkout", "-q", "-b", "feature")
    feature = commit_file("feature.txt", "feature\n", f"Add feature (#{pr_number})")
    git("checkout", "-q", "main")
    mainline = commit_file("other.txt", "other\n", "Unrelated change on main")
    git("merge", "-q", "--no-ff", "feature", "-m", f"Merge pull request #{pr_number} from user/feature")
    return git("rev-parse", "HEAD"), mainline, feature


class TestParseLog:
    def test_multiline_messages(self) -> None:
        output = ("aaa\x1fppp\x1fSubject one\n\nBody line\n\x1e\n"
                  "bbb\x1fppp qqq\x1fMerge pull request #4\n\x1e\n")
        commits = parse_log(output)
        assert [c.sha for c in commits] == ["aaa", "bbb"]
        assert commits[0].message == "Subject one\n\nBody line"
        assert commits[0].subject == "Subject one"
        assert commits[1].parents == ("ppp", "qqq")
        assert commits[1].is_merge

    def test_empty_output(self) -> None:
        assert parse_log("") == []


class TestCommitGraph:
    """Tests against a real repository."""

    def test_parents_of_root_commit(self, graph: CommitGraph) -> None:
        assert graph.parents(graph.head()) == []

    def test_parents_of_merge(self, graph: CommitGraph) -> None:
        merge, mainline, feature = make_merge()
        assert graph.parents(merge) == [mainline, feature]

    def test_resolve_merge_commit(self, graph: CommitGraph) -> None:
        merge, mainline, feature = make_merge()
        assert graph.resolve_merge_commit(merge) == feature
        assert graph.resolve_merge_commit(mainline) == mainline

    def test_resolve_ref(self, graph: CommitGraph) -> None:
        head = git("rev-parse", "HEAD")
        assert graph.resolve_ref("main") == head
        assert graph.resolve_ref("HEAD") == head

    def test_missing_ref(self, graph: CommitGraph) -> None:
        with pytest.raises(ReferenceNotFoundError) as exc_info:
            graph.resolve_ref("origin/release-9.9")
        assert "origin/release-9.9" in str(exc_info.value)

    def test_log_between_is_oldest_first(self, graph: CommitGraph) -> None:
        base = graph.head()
        first = commit_file("a.txt", "a\n", "First (#1)")
        second = commit_file("b.txt", "b\n", "Second (#2)\n\nWith a body")
        commits = graph.log_between(base, "HEAD")
        assert [c.sha for c in commits] == [first, second]
        assert commits[1].message == "Second (#2)\n\nWith a body"
        assert graph.log_between("HEAD", "HEAD") == []

    def test_log_is_newest_first(self, graph: CommitGraph) -> None:
        root = graph.head()
        first = commit_file("a.txt", "a\n", "First")
        assert [c.sha for c in graph.log("main")] == [first, root]

    def test_is_clean(self, graph: CommitGraph, repo_dir: str) -> None:
        assert graph.is_clean()
        with open("untracked.txt", "w") as f:
            f.write("untracked\n")
        assert graph.is_clean()
        with open("base.txt", "a") as f:
            f.write("four\n")
        assert not graph.is_clean()

    def test_current_branch(self, graph: CommitGraph) -> None:
        assert graph.current_branch() == "main"
        git("checkout", "-q", "-b", "backports-release-1.0")
        assert graph.current_branch() == "backports-release-1.0"

    def test_failed_command_raises(self, graph: CommitGraph) -> None:
        with pytest.raises(GitError):
            graph.git_cmd.must_git("checkout no-such-branch")
        assert not graph.succeeds("checkout no-such-branch")

    def test_not_a_repository(self, tmp_path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        with pytest.raises(GitError):
            RealGit(str(outside)).must_git("status")


class TestCherryPickedCommits:
    """Finding what is already on the backport branch."""

    def test_trailers_on_backport_branch(self, graph: CommitGraph) -> None:
        git("branch", "release-1.0")
        fix = commit_file("fix.txt", "fix\n", "Fix crash (#10)")
        other = commit_file("other.txt", "other\n", "Other change (#11)")
        git("checkout", "-q", "-b", "backports-release-1.0", "release-1.0")
        git("cherry-pick", "-x", fix)

        assert graph.cherry_picked_commits("release-1.0", "HEAD") == {fix}
        assert other not in graph.cherry_picked_commits("release-1.0", "HEAD")

    def test_decoy_in_commit_body(self, graph: CommitGraph) -> None:
        git("branch", "release-1.0")
        git("checkout", "-q", "-b", "backports-release-1.0", "release-1.0")
        commit_file("notes.txt", "notes\n",
                    "Document backports\n\n"
                    "A picked commit ends with (cherry picked from commit abc1234) on its own line.")

        assert graph.cherry_picked_commits("release-1.0", "HEAD") == set()

    def test_picks_on_release_side_count(self, graph: CommitGraph) -> None:
        """Commits only on the release branch are part of the symmetric difference."""
        fix = commit_file("fix.txt", "fix\n", "Fix crash (#10)")
        git("checkout", "-q", "-b", "release-1.0", "HEAD~1")
        git("cherry-pick", "-x", fix)
        git("checkout", "-q", "-b", "backports-release-1.0", "HEAD~1")
        commit_file("unrelated.txt", "x\n", "Unrelated (#12)")

        assert graph.cherry_picked_commits("release-1.0", "HEAD") == {fix}

    def test_already_merged_history_is_excluded(self, graph: CommitGraph) -> None:
        fix = commit_file("fix.txt", "fix\n", "Fix crash (#10)")
        git("checkout", "-q", "-b", "release-1.0", "HEAD~1")
        git("cherry-pick", "-x", fix)
        git("checkout", "-q", "-b", "backports-release-1.0")

        assert graph.cherry_picked_commits("release-1.0", "HEAD") == set()


def test_backport_of_merge_commit_pr(graph: CommitGraph) -> None:
    """A PR merged with a merge commit is picked through its feature commit."""
    git("branch", "release-1.0")
    merge, _, feature = make_merge(pr_number=5)
    git("checkout", "-q", "-b", "backports-release-1.0", "release-1.0")
    before = graph.head()

    classifier = Classifier(graph, CherryPickExecutor(graph), PRCache(MagicMock()))
    pr = make_pr(5, merge_commit_sha=merge)
    result = classifier.classify([pr], graph.cherry_picked_commits("release-1.0", "HEAD"))

    assert [p.number for p in result.successful_backports] == [5]
    assert graph.parents(graph.head()) == [before]
    assert cherry_pick_source(graph.log("HEAD")[0].message) == feature
    assert graph.is_clean()

    again = classifier.categorize([pr], graph.cherry_picked_commits("release-1.0", "HEAD"))
    assert [p.number for p in again.already_backported] == [5]
    assert again.backport_candidates == []


def test_clone(repo_dir: str, tmp_path_factory: pytest.TempPathFactory) -> None:
    head = git("rev-parse", "HEAD")
    target = str(tmp_path_factory.mktemp("clone") / "repo")
    RealGit.clone(repo_dir, target)
    assert CommitGraph(RealGit(target)).resolve_ref("origin/main") == head


def test_clone_failure(tmp_path) -> None:
    with pytest.raises(GitError):
        RealGit.clone(str(tmp_path / "missing"), str(tmp_path / "target"))
