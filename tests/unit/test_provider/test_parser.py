"""Tests for completion parsing."""

from __future__ import annotations

import pytest

from livecommentary.provider.parser import parse_comments


class TestTaggedCompletions:
    """Comments wrapped in <comment> tags."""

    def test_returns_tag_contents_in_order(self) -> None:
        text = "Sure! <comment> first </comment> filler <comment>second</comment> bye"
        assert parse_comments(text) == ["first", "second"]

    def test_tags_are_case_insensitive_and_span_lines(self) -> None:
        text = "<COMMENT>multi\nline</Comment>\n<comment>ok</comment>"
        assert parse_comments(text) == ["multi\nline", "ok"]

    def test_empty_tags_are_dropped(self) -> None:
        assert parse_comments("<comment>  </comment><comment>kept</comment>") == ["kept"]

    def test_duplicates_are_kept_for_the_caller_to_filter(self) -> None:
        text = "<comment>LOL</comment><comment>LOL</comment><comment>nice</comment>"
        assert parse_comments(text) == ["LOL", "LOL", "nice"]

    def test_non_greedy_matching(self) -> None:
        text = "<comment>a</comment> middle <comment>b</comment>"
        assert parse_comments(text) == ["a", "b"]


class TestPlainTextFallback:
    """Completions that ignore the tag format."""

    def test_lines_become_comments(self) -> None:
        assert parse_comments("first one\n\n  second one  \n") == ["first one", "second one"]

    @pytest.mark.parametrize(
        "preamble",
        ["Here are some comments:", "here are two", "Sure, here you go", "My reactions:"],
    )
    def test_meta_commentary_is_dropped(self, preamble: str) -> None:
        assert parse_comments(f"{preamble}\nactual comment") == ["actual comment"]

    def test_code_fences_are_unwrapped(self) -> None:
        text = "```text\nfenced one\nfenced two\n```"
        assert parse_comments(text) == ["fenced one", "fenced two"]

    def test_stray_tag_fragments_are_removed(self) -> None:
        assert parse_comments("<comment>unterminated\nnext") == ["unterminated", "next"]

    def test_all_preamble_returns_empty(self) -> None:
        assert parse_comments("Here are the comments:\nSure:") == []


class TestDegenerateInput:

    @pytest.mark.parametrize("text", ["", None, "   \n\n  "])
    def test_empty_input_returns_empty(self, text: str | None) -> None:
        assert parse_comments(text) == []
