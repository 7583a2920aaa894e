"""Tests for query evaluation against a populated store."""

import pytest

from tagdb.errors import ParseError, UsageError
from tagdb.evaluate import QueryEvaluator, run_query
from tagdb.models import Action, EntityKind


class TestEvaluate:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("mp3", ["a", "b"]),
            ("music", ["b"]),
            ("mp3 & music", ["b"]),
            ("mp3 & !music", ["a"]),
            ("mp3 | music", ["a", "b"]),
            ("!music", ["a", "c"]),
            ("!(mp3 | music)", ["c"]),
            ("!!music", ["b"]),
        ],
    )
    def test_music_table(self, music_store, text, expected):
        assert list(QueryEvaluator(music_store).evaluate(text)) == expected

    def test_missing_operand_is_usage_error(self, music_store):
        with pytest.raises(UsageError, match="Tag 'jazz' does not exist"):
            QueryEvaluator(music_store).evaluate("mp3 & jazz")

    def test_dangling_operator(self, music_store):
        with pytest.raises(ParseError):
            QueryEvaluator(music_store).evaluate("mp3 &")

    def test_two_operands_without_operator(self, music_store):
        with pytest.raises(ParseError):
            QueryEvaluator(music_store).evaluate("(mp3)(music)")

    def test_reverse_direction(self, music_store):
        evaluator = QueryEvaluator(music_store, operand_kind=EntityKind.FILE)
        assert evaluator.result_kind is EntityKind.TAG
        assert list(evaluator.evaluate("a & b")) == ["mp3"]
        assert list(evaluator.evaluate("!a")) == ["music"]

    def test_removed_relation_is_not_matched(self, music_store):
        b = music_store.require(EntityKind.FILE, "b")
        music = music_store.require(EntityKind.TAG, "music")
        music_store.relate(Action.REMOVE, b, music)
        assert list(QueryEvaluator(music_store).evaluate("music")) == []


class TestRunQuery:
    def test_valid_query(self, music_store):
        assert list(run_query(music_store, "mp3 & music")) == ["b"]

    def test_empty_result_is_not_none(self, music_store):
        result = run_query(music_store, "music & !mp3")
        assert result is not None
        assert len(result) == 0

    def test_parse_error_gives_none(self, music_store, caplog):
        assert run_query(music_store, "mp3 & (music") is None
        assert "Parentheses mismatch" in caplog.text

    def test_missing_tag_propagates(self, music_store):
        with pytest.raises(UsageError):
            run_query(music_store, "nope")
