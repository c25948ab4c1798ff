import pytest

from voterlookup.config import SearchWeights
from voterlookup.exceptions import (
    CapabilityUnavailableError, DatastoreConnectionError, QueryExecutionError,
)
from voterlookup.models import ScoredCandidate, SearchQuery, VoterRecord
from voterlookup.search.expressions import And, Column, ILike, Or, Param, TrigramMatch
from voterlookup.search.strategies import (
    PatternStrategy, SubstringStrategy, TieredSearch, TrigramStrategy,
    build_params, default_strategies, like_pattern,
)

from conftest import FakeSession, is_pattern_sql, is_trigram_sql, voter_row


def rendered(strategy, text, ward=146):
    query = SearchQuery(text, ward)
    sql, params = strategy.build(query).bind(build_params(query, 50))
    return sql, params


def test_query_tokenizes_and_drops_single_characters():
    query = SearchQuery("  R  Kumar   Patil ", 146)
    assert query.raw_text == "R  Kumar   Patil"
    assert query.words == ["Kumar", "Patil"]
    assert query.first_word == "Kumar"


def test_build_params_roles():
    params = build_params(SearchQuery("Ram Kumar", 146), 50)
    assert params == {
        "search_text": "Ram Kumar",
        "exact_pattern": "%Ram Kumar%",
        "first_word_pattern": "%Ram%",
        "ward": "146",
        "limit": 50,
        "word_0": "Ram",
        "word_1": "Kumar",
        "word_pattern_0": "%Ram%",
        "word_pattern_1": "%Kumar%",
    }


def test_like_pattern_escapes_wildcards():
    assert like_pattern("50%_off") == "%50\\%\\_off%"


@pytest.mark.parametrize("text", ["A", "Ram", "Ram Kumar", "Ram Kumar Patil", "a b c d e", "One Two Three Four Five"])
def test_every_trigram_statement_binds(text):
    sql, params = rendered(TrigramStrategy(), text)
    assert "%(ward)s" in sql
    assert set(params) >= {"ward", "limit", "search_text"}


def test_trigram_single_word_where_clause():
    strategy = TrigramStrategy()
    where = strategy.where(SearchQuery("Ram", 146)).render()
    for fragment in (
        "full_name %% %(search_text)s",
        "relation_name %% %(search_text)s",
        "full_name %% %(word_0)s",
        "relation_name %% %(word_0)s",
        "full_name ILIKE %(exact_pattern)s",
        "relation_name ILIKE %(word_pattern_0)s",
    ):
        assert fragment in where


def test_trigram_two_words_need_both_words():
    strategy = TrigramStrategy()
    where = strategy.where(SearchQuery("Ram Kumar", 146))
    # exact x2, whole-string similarity x2, one pair
    assert len(where.items) == 5
    assert "similarity(full_name, %(search_text)s) > 0.3" in where.render()


def test_trigram_three_words_add_all_words_branch():
    strategy = TrigramStrategy()
    where = strategy.where(SearchQuery("Kumar Ram Patil", 146))
    # exact x2, similarity x2, three pairs, all three
    assert len(where.items) == 8


def test_trigram_pairs_join_the_right_words():
    strategy = TrigramStrategy()
    where = strategy.where(SearchQuery("Kumar Ram Patil", 146))
    cond = strategy.word_condition
    assert list(where.items[4:]) == [
        And(cond(0), cond(1)),
        And(cond(0), cond(2)),
        And(cond(1), cond(2)),
        And(cond(0), cond(1), cond(2)),
    ]
    assert cond(1) == Or(
        TrigramMatch(Column("full_name"), Param("word_1")),
        TrigramMatch(Column("relation_name"), Param("word_1")),
        ILike(Column("full_name"), Param("word_pattern_1")),
        ILike(Column("relation_name"), Param("word_pattern_1")),
    )


def test_trigram_zero_words_uses_whole_string_only():
    sql, params = rendered(TrigramStrategy(), "A")
    assert "word_0" not in sql
    assert "0 AS words_matched" in sql


def test_trigram_score_weights_decay_by_word_position():
    sql, _ = rendered(TrigramStrategy(), "Ram Kumar")
    assert "full_name ILIKE %(exact_pattern)s THEN 0.95" in sql
    assert "relation_name ILIKE %(exact_pattern)s THEN 0.85" in sql
    assert "full_name ILIKE %(word_pattern_0)s THEN 0.6" in sql
    assert "relation_name ILIKE %(word_pattern_0)s THEN 0.5" in sql
    assert "full_name ILIKE %(word_pattern_1)s THEN 0.55" in sql
    assert "relation_name ILIKE %(word_pattern_1)s THEN 0.45" in sql


def test_trigram_two_word_bonuses():
    sql, _ = rendered(TrigramStrategy(), "Ram Kumar")
    assert ">= 2 THEN 1.0" in sql
    assert ">= 1 THEN 0.3" in sql
    assert "THEN 0.2" not in sql


def test_trigram_three_word_bonuses():
    sql, _ = rendered(TrigramStrategy(), "Kumar Ram Patil")
    assert ">= 3 THEN 1.0" in sql
    assert "= 3 THEN 0.9" in sql
    assert "= 2 THEN 0.5" in sql


def test_trigram_four_word_bonuses():
    sql, _ = rendered(TrigramStrategy(), "Anil Ram Kumar Patil")
    assert ">= 4 THEN 1.0" in sql
    assert ">= 3 THEN 0.5" in sql
    assert ">= 2 THEN 0.3" in sql
    assert ">= 2 THEN 0.2" in sql


def test_trigram_statement_orders_and_limits():
    sql, _ = rendered(TrigramStrategy(), "Ram Kumar")
    assert "ORDER BY words_matched DESC, match_score DESC, full_name ASC, epic_number ASC" in sql
    assert "LIMIT %(limit)s" in sql


def keep(strategy, text, score, words):
    candidate = ScoredCandidate(VoterRecord(full_name="x"), score, words)
    return strategy.keep(SearchQuery(text, 146), candidate)


def test_trigram_keep_applies_minimum_score():
    strategy = TrigramStrategy()
    assert not keep(strategy, "Ram", 0.19, 1)
    assert keep(strategy, "Ram", 0.2, 1)


def test_trigram_word_quorum_is_optional():
    assert keep(TrigramStrategy(), "Ram Kumar", 0.35, 1)
    strict = TrigramStrategy(SearchWeights(require_word_quorum=True))
    assert not keep(strict, "Ram Kumar", 0.35, 1)
    assert keep(strict, "Ram Kumar", 1.0, 2)
    assert keep(strict, "Ram", 0.5, 1)


def test_pattern_scores_are_additive_and_never_negative():
    sql, params = rendered(PatternStrategy(), "a1 b2 c3 d4 e5 f6 g7")
    assert "full_name ILIKE %(exact_pattern)s THEN 10" in sql
    assert "full_name ILIKE %(first_word_pattern)s THEN 8" in sql
    assert "relation_name ILIKE %(exact_pattern)s THEN 7" in sql
    assert "relation_name ILIKE %(first_word_pattern)s THEN 6" in sql
    assert "full_name ILIKE %(word_pattern_1)s THEN 4" in sql
    assert "relation_name ILIKE %(word_pattern_1)s THEN 3" in sql
    assert "full_name ILIKE %(word_pattern_6)s THEN 0" in sql
    assert "THEN -" not in sql
    assert " + " in sql
    assert "similarity(" not in sql


def test_pattern_keep_requires_positive_score():
    strategy = PatternStrategy()
    assert not keep(strategy, "Ram", 0, 0)
    assert keep(strategy, "Ram", 5, 0)


def test_substring_statement_uses_whole_query_only():
    sql, params = rendered(SubstringStrategy(), "Ram Kumar")
    assert set(params) == {"exact_pattern", "ward", "limit"}
    assert "full_name ILIKE %(exact_pattern)s OR relation_name ILIKE %(exact_pattern)s" in sql


def run(session, text="Ram Kumar", weights=None):
    return TieredSearch(default_strategies(weights)).run(session, SearchQuery(text, 146))


def test_tier_one_runs_when_trigram_available():
    session = FakeSession(rows=[voter_row("Ram Kumar", "E1", score=1.0, words=2)])
    records = run(session)
    assert [r.full_name for r in records] == ["Ram Kumar"]
    assert session.extension_checks == ["pg_trgm"]
    assert len(session.executed) == 1
    assert is_trigram_sql(session.executed[0][0])


def test_missing_extension_falls_back_to_pattern_tier():
    session = FakeSession(
        trigram=False,
        rows=[voter_row("Ram Kumar", "E1", score=18), voter_row("Ram Singh", "E2", score=8)],
    )
    records = run(session)
    assert [r.full_name for r in records] == ["Ram Kumar", "Ram Singh"]
    assert len(session.executed) == 1
    assert is_pattern_sql(session.executed[0][0])


def test_failed_extension_check_falls_back_to_pattern_tier():
    session = FakeSession(trigram=QueryExecutionError("permission denied for pg_extension"))
    run(session)
    assert is_pattern_sql(session.executed[0][0])


def test_trigram_failure_falls_back_to_substring_tier():
    session = FakeSession(
        rows=[voter_row("Ram Kumar", "E1")],
        failures={is_trigram_sql: QueryExecutionError("function similarity does not exist")},
    )
    records = run(session)
    assert [r.full_name for r in records] == ["Ram Kumar"]
    assert len(session.executed) == 2
    last_sql = session.executed[1][0]
    assert not is_trigram_sql(last_sql)
    assert not is_pattern_sql(last_sql)


def test_pattern_failure_falls_back_to_substring_tier():
    session = FakeSession(
        trigram=False,
        rows=[voter_row("Ram Kumar", "E1")],
        failures={is_pattern_sql: QueryExecutionError("boom")},
    )
    assert [r.full_name for r in run(session)] == ["Ram Kumar"]


def test_last_tier_failure_propagates():
    session = FakeSession(failures={"ILIKE": QueryExecutionError("boom")})
    with pytest.raises(QueryExecutionError):
        run(session)


def test_connection_failure_is_never_recovered():
    session = FakeSession(failures={is_trigram_sql: DatastoreConnectionError("server closed the connection")})
    with pytest.raises(DatastoreConnectionError):
        run(session)
    assert len(session.executed) == 1


def test_unavailable_last_strategy_propagates():
    search = TieredSearch([TrigramStrategy()])
    with pytest.raises(CapabilityUnavailableError):
        search.run(FakeSession(trigram=False), SearchQuery("Ram", 146))


def test_tiered_search_requires_strategies():
    with pytest.raises(ValueError):
        TieredSearch([])
