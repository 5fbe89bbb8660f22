"""Unit tests for commit message marker parsing."""

from backporter.git.markers import (CherryPickTrailer, InlineReference, MergeMarker,
                                    checked_pr_references, cherry_pick_source, cherry_pick_sources,
                                    inline_pr_references, merge_pr_reference, parse_markers)

SHA = "0123456789abcdef0123456789abcdef01234567"


class TestCherryPickTrailer:
    """Only a trailer on a line of its own counts."""

    def test_trailer_found(self) -> None:
        message = f"Fix parser (#12)\n\nBody text.\n\n(cherry picked from commit {SHA})"
        assert cherry_pick_source(message) == SHA

    def test_trailer_is_lowercased(self) -> None:
        message = f"Fix\n\n(cherry picked from commit {SHA.upper()})"
        assert cherry_pick_source(message) == SHA

    def test_decoy_in_prose_is_ignored(self) -> None:
        """The trailer text quoted inside a sentence is not a cherry-pick."""
        message = ("Explain backports\n\n"
                   "Commits get a line like (cherry picked from commit abc1234) when picked.\n"
                   "Quoting it: `(cherry picked from commit abc1234)` is not a trailer either.")
        assert cherry_pick_sources(message) == []
        assert cherry_pick_source(message) is None

    def test_decoy_and_real_trailer(self) -> None:
        message = ("Docs (#3)\n\n"
                   "A note about (cherry picked from commit abc1234) in prose.\n\n"
                   f"(cherry picked from commit {SHA})")
        assert cherry_pick_sources(message) == [SHA]

    def test_last_trailer_wins(self) -> None:
        first = "a" * 40
        message = f"Fix\n\n(cherry picked from commit {first})\n(cherry picked from commit {SHA})"
        assert cherry_pick_sources(message) == [first, SHA]
        assert cherry_pick_source(message) == SHA

    def test_not_a_hash(self) -> None:
        assert cherry_pick_source("Fix\n\n(cherry picked from commit nothex)") is None

    def test_trailing_whitespace_allowed(self) -> None:
        assert cherry_pick_source(f"Fix\n\n  (cherry picked from commit {SHA})  \n") == SHA


class TestPullRequestReferences:
    """Tests for inline and merge PR references."""

    def test_inline_references_keep_order_and_duplicates(self) -> None:
        assert inline_pr_references("Fix a (#12) and b (#7), again (#12)") == [12, 7, 12]

    def test_bare_hash_is_not_inline_reference(self) -> None:
        assert inline_pr_references("Fixes #12") == []

    def test_merge_reference(self) -> None:
        assert merge_pr_reference("Merge pull request #4567 from user/branch\n\nBackports") == 4567
        assert merge_pr_reference("Merge branch 'main'") is None

    def test_checked_references(self) -> None:
        body = ("Backported PRs:\n"
                "- [x] #10 <!-- Fix a -->\n"
                "- [X] #11 <!-- Fix b -->\n"
                "- [ ] #12 <!-- Not done -->\n"
                "* [x] #13\n"
                "Mentions - [x] #14 mid-line\n")
        assert checked_pr_references(body) == [10, 11, 13]

    def test_checked_references_empty_body(self) -> None:
        assert checked_pr_references("") == []


def test_parse_markers_groups_by_kind() -> None:
    message = f"Merge pull request #50 from u/backports\n\nFix x (#12)\n\n(cherry picked from commit {SHA})"
    assert parse_markers(message) == [MergeMarker(50), InlineReference(12), CherryPickTrailer(SHA)]


def test_parse_markers_plain_message() -> None:
    assert parse_markers("Just a commit") == []
