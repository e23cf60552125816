"""Unit tests for the channel predicate compiler."""

from __future__ import annotations

import pytest

from email_cache_agent.cache import MATCH_ALL, CacheStore, compile_or_match_all, compile_predicate
from email_cache_agent.exceptions import PredicateError


class TestCompilePredicate:
    """Test suite for compile_predicate."""

    def test_literals_become_parameters(self) -> None:
        compiled = compile_predicate("sender LIKE '%@shop.example%' AND is_read = 0")

        assert compiled.sql == "sender LIKE ? AND is_read = ?"
        assert compiled.params == ("%@shop.example%", 0)

    def test_match_everything_constant(self) -> None:
        compiled = compile_predicate("1=1")

        assert compiled.sql == "? = ?"
        assert compiled.params == (1, 1)

    def test_grouping_not_and_or(self) -> None:
        compiled = compile_predicate("NOT (importance >= 4 OR deadline IS NOT NULL)")

        assert compiled.sql == "NOT (importance >= ? OR deadline IS NOT NULL)"
        assert compiled.params == (4,)

    def test_in_between_and_negations(self) -> None:
        compiled = compile_predicate(
            "sender NOT IN ('a@x', 'b@x') and timestamp between 10 and 20 and subject not like 'Re:%'"
        )

        assert compiled.sql == (
            "sender NOT IN (?, ?) AND timestamp BETWEEN ? AND ? AND subject NOT LIKE ?"
        )
        assert compiled.params == ("a@x", "b@x", 10, 20, "Re:%")

    def test_quote_escape(self) -> None:
        compiled = compile_predicate("subject = 'It''s here'")
        assert compiled.params == ("It's here",)

    def test_columns_are_case_insensitive(self) -> None:
        assert compile_predicate("SENDER = 'a'").sql == "sender = ?"

    @pytest.mark.parametrize(
        "text",
        [
            "1=1; DROP TABLE messages",
            "sender = 'a' -- comment",
            "id IN (SELECT id FROM email_vectors)",
            "password = 'x'",
            "lower(sender) = 'a'",
            "sender = ",
            "(sender = 'a'",
            "sender = 'a' sender",
            "",
        ],
    )
    def test_rejects_text_outside_grammar(self, text: str) -> None:
        with pytest.raises(PredicateError):
            compile_predicate(text)


class TestCompileOrMatchAll:
    """Test suite for the read-path fallback."""

    def test_invalid_falls_back_to_match_all(self) -> None:
        assert compile_or_match_all("sender = 'a'; DELETE FROM messages") is MATCH_ALL

    def test_empty_falls_back_to_match_all(self) -> None:
        assert compile_or_match_all(None) is MATCH_ALL
        assert compile_or_match_all("   ") is MATCH_ALL

    def test_valid_predicate_is_kept(self) -> None:
        assert compile_or_match_all("is_read = 1").sql == "is_read = ?"


def test_compiled_predicate_runs_against_cache(store: CacheStore) -> None:
    store.execute("INSERT INTO messages (id, sender, timestamp) VALUES ('m1', 'shop@x', 1)")
    store.execute("INSERT INTO messages (id, sender, timestamp) VALUES ('m2', 'boss@x', 2)")

    compiled = compile_predicate("sender LIKE 'shop%'")
    rows = store.fetchall(f"SELECT id FROM messages WHERE {compiled.sql}", compiled.params)

    assert [r["id"] for r in rows] == ["m1"]
