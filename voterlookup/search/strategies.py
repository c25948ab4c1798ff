"""
Name-search strategies.

Three strategies of decreasing sophistication share one interface,
``attempt(session, query) -> list[VoterRecord]``:

1. TrigramStrategy   - pg_trgm similarity per word plus substring hits
2. PatternStrategy   - weighted ILIKE hits, no extension required
3. SubstringStrategy - plain ILIKE on the whole query

A strategy signals a recoverable failure by raising
CapabilityUnavailableError (prerequisite missing) or QueryExecutionError
(the statement failed). TieredSearch decides where to go next.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..config import SearchWeights
from ..exceptions import CapabilityUnavailableError, QueryExecutionError
from ..logger import get_logger
from ..models import VOTER_COLUMNS, ScoredCandidate, SearchQuery, VoterRecord
from ..utils.timing import timed_operation
from .expressions import (
    And, CaseWhen, Column, Compare, Expr, Greatest, ILike, Number, Or, Param,
    SelectQuery, Similarity, SimilarityAbove, Sum, TrigramMatch, WardScope,
)
from .ranking import MATCH_SCORE, ORDER_BY, WORDS_MATCHED, rank, to_candidates

logger = get_logger(__name__)

FULL_NAME = Column("full_name")
RELATIVE_NAME = Column("relation_name")

SEARCH_TEXT = Param("search_text")
EXACT_PATTERN = Param("exact_pattern")
FIRST_WORD_PATTERN = Param("first_word_pattern")
LIMIT = Param("limit")


def word_param(index: int) -> Param:
    return Param(f"word_{index}")


def word_pattern_param(index: int) -> Param:
    return Param(f"word_pattern_{index}")


def like_pattern(text: str) -> str:
    """Wrap text in % wildcards, escaping LIKE metacharacters in it."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_params(query: SearchQuery, limit: int) -> Dict[str, Any]:
    """
    Named parameter map for every name-search statement.

    Keys are semantic roles; statements reference the subset they need.
    The ward is bound as text.
    """
    params: Dict[str, Any] = {
        "search_text": query.raw_text,
        "exact_pattern": like_pattern(query.raw_text),
        "first_word_pattern": like_pattern(query.first_word),
        "ward": str(query.ward),
        "limit": limit,
    }
    for i, word in enumerate(query.words):
        params[word_param(i).name] = word
        params[word_pattern_param(i).name] = like_pattern(word)
    return params


class SearchStrategy(ABC):
    """One way of turning a name query into ranked records."""

    name = "strategy"

    def __init__(self, weights: Optional[SearchWeights] = None, limit: int = 50):
        self.weights = weights or SearchWeights()
        self.limit = limit

    @abstractmethod
    def build(self, query: SearchQuery) -> SelectQuery:
        """Construct the statement for a query."""

    def keep(self, query: SearchQuery, candidate: ScoredCandidate) -> bool:
        """Client-side acceptance test applied before ranking."""
        return True

    def check_available(self, session) -> None:
        """Raise CapabilityUnavailableError if this strategy cannot run."""

    def attempt(self, session, query: SearchQuery) -> List[VoterRecord]:
        self.check_available(session)
        statement = self.build(query)
        sql, params = statement.bind(build_params(query, self.limit))
        try:
            rows = session.fetch_all(sql, params)
        except QueryExecutionError as e:
            e.details.setdefault("strategy", self.name)
            raise
        return rank(
            to_candidates(rows),
            limit=self.limit,
            keep=lambda c: self.keep(query, c),
        )

    def _select(self, where: Expr, score: Expr, words_matched: Expr) -> SelectQuery:
        return SelectQuery(
            columns=VOTER_COLUMNS,
            where=[WardScope(), where],
            computed=[(score, MATCH_SCORE), (words_matched, WORDS_MATCHED)],
            order_by=ORDER_BY,
            limit=LIMIT,
        )


class TrigramStrategy(SearchStrategy):
    """
    Fuzzy multi-word search backed by pg_trgm.

    Each query word matches a record when it is trigram-similar to, or a
    substring of, the full name or the relative's name. Multi-word queries
    need at least two such words (or a near-whole-string match); the score
    is the best of whole-string similarity, per-word evidence and
    categorical bonuses for how many words matched.
    """

    name = "trigram"

    def __init__(
        self,
        weights: Optional[SearchWeights] = None,
        limit: int = 50,
        extension: str = "pg_trgm",
    ):
        super().__init__(weights, limit)
        self.extension = extension

    def check_available(self, session) -> None:
        try:
            available = session.extension_exists(self.extension)
        except QueryExecutionError as e:
            logger.warning(f"Could not detect {self.extension}: {e}")
            raise CapabilityUnavailableError(self.extension, strategy=self.name) from e
        if not available:
            raise CapabilityUnavailableError(self.extension, strategy=self.name)

    def word_condition(self, index: int) -> Expr:
        word, pattern = word_param(index), word_pattern_param(index)
        return Or(
            TrigramMatch(FULL_NAME, word),
            TrigramMatch(RELATIVE_NAME, word),
            ILike(FULL_NAME, pattern),
            ILike(RELATIVE_NAME, pattern),
        )

    def words_matched(self, query: SearchQuery) -> Expr:
        if not query.words:
            return Number(0)
        return Sum(*[
            CaseWhen(self.word_condition(i), 1, 0) for i in range(len(query.words))
        ])

    def where(self, query: SearchQuery) -> Expr:
        whole_string = [
            TrigramMatch(FULL_NAME, SEARCH_TEXT),
            TrigramMatch(RELATIVE_NAME, SEARCH_TEXT),
            ILike(FULL_NAME, EXACT_PATTERN),
            ILike(RELATIVE_NAME, EXACT_PATTERN),
        ]
        n = len(query.words)
        if n == 0:
            return Or(*whole_string)
        if n == 1:
            return Or(
                *whole_string,
                TrigramMatch(FULL_NAME, word_param(0)),
                TrigramMatch(RELATIVE_NAME, word_param(0)),
                ILike(FULL_NAME, word_pattern_param(0)),
                ILike(RELATIVE_NAME, word_pattern_param(0)),
            )

        threshold = self.weights.similarity_threshold
        conditions = [self.word_condition(i) for i in range(n)]
        pairs = [
            And(conditions[i], conditions[j])
            for i in range(n) for j in range(i + 1, n)
        ]
        branches: List[Expr] = [
            ILike(FULL_NAME, EXACT_PATTERN),
            ILike(RELATIVE_NAME, EXACT_PATTERN),
            SimilarityAbove(FULL_NAME, SEARCH_TEXT, threshold),
            SimilarityAbove(RELATIVE_NAME, SEARCH_TEXT, threshold),
            *pairs,
        ]
        if n >= 3:
            branches.append(And(*conditions))
        return Or(*branches)

    def score(self, query: SearchQuery) -> Expr:
        w = self.weights
        terms: List[Expr] = [
            Similarity(FULL_NAME, SEARCH_TEXT),
            Similarity(RELATIVE_NAME, SEARCH_TEXT),
            CaseWhen(ILike(FULL_NAME, EXACT_PATTERN), w.full_name_exact),
            CaseWhen(ILike(RELATIVE_NAME, EXACT_PATTERN), w.relative_name_exact),
        ]
        n = len(query.words)
        for i in range(n):
            terms.append(Similarity(FULL_NAME, word_param(i)))
            terms.append(Similarity(RELATIVE_NAME, word_param(i)))
        for i in range(n):
            pattern = word_pattern_param(i)
            terms.append(CaseWhen(ILike(FULL_NAME, pattern), w.word_pattern_score(i)))
            terms.append(CaseWhen(ILike(RELATIVE_NAME, pattern), w.word_pattern_score(i, relative=True)))
        if n > 1:
            terms.extend(self._quorum_bonuses(query))
        return Greatest(*terms)

    def _quorum_bonuses(self, query: SearchQuery) -> List[Expr]:
        """Bonuses for matching many words at once; a full match always wins."""
        w = self.weights
        n = len(query.words)
        count = self.words_matched(query)
        bonuses: List[Expr] = [CaseWhen(Compare(count, ">=", Number(n)), w.all_words_bonus)]
        if n == 3:
            bonuses.append(CaseWhen(Compare(count, "=", Number(3)), w.three_of_three_bonus))
            bonuses.append(CaseWhen(Compare(count, "=", Number(2)), w.two_of_three_bonus))
            return bonuses

        most = math.ceil(n * w.most_words_fraction)
        if most < n:
            bonuses.append(CaseWhen(Compare(count, ">=", Number(most)), w.most_words_bonus))
        half = math.ceil(n * w.half_words_fraction)
        bonuses.append(CaseWhen(Compare(count, ">=", Number(half)), w.half_words_bonus))
        if n >= 4:
            bonuses.append(CaseWhen(Compare(count, ">=", Number(2)), w.two_words_bonus))
        return bonuses

    def build(self, query: SearchQuery) -> SelectQuery:
        return self._select(self.where(query), self.score(query), self.words_matched(query))

    def keep(self, query: SearchQuery, candidate: ScoredCandidate) -> bool:
        if candidate.match_score < self.weights.min_score:
            return False
        if query.is_multiword and self.weights.require_word_quorum:
            return candidate.words_matched >= min(self.weights.min_words_for_multiword, len(query.words))
        return True


class PatternStrategy(SearchStrategy):
    """
    Weighted substring search for databases without pg_trgm.

    Whole-query and first-word hits weigh most; later words weigh less.
    """

    name = "pattern"

    def patterns(self, query: SearchQuery) -> List[Param]:
        return [EXACT_PATTERN, FIRST_WORD_PATTERN] + [
            word_pattern_param(i) for i in range(len(query.words))
        ]

    def where(self, query: SearchQuery) -> Expr:
        return Or(*[
            Or(ILike(FULL_NAME, p), ILike(RELATIVE_NAME, p))
            for p in self.patterns(query)
        ])

    def score(self, query: SearchQuery) -> Expr:
        w = self.weights
        terms: List[Expr] = [
            CaseWhen(ILike(FULL_NAME, EXACT_PATTERN), w.pattern_full_name_exact),
            CaseWhen(ILike(FULL_NAME, FIRST_WORD_PATTERN), w.pattern_full_name_first_word),
            CaseWhen(ILike(RELATIVE_NAME, EXACT_PATTERN), w.pattern_relative_name_exact),
            CaseWhen(ILike(RELATIVE_NAME, FIRST_WORD_PATTERN), w.pattern_relative_name_first_word),
        ]
        for i in range(len(query.words)):
            pattern = word_pattern_param(i)
            terms.append(CaseWhen(ILike(FULL_NAME, pattern), w.pattern_word_score(i)))
            terms.append(CaseWhen(ILike(RELATIVE_NAME, pattern), w.pattern_word_score(i, relative=True)))
        return Sum(*terms)

    def build(self, query: SearchQuery) -> SelectQuery:
        return self._select(self.where(query), self.score(query), Number(0))

    def keep(self, query: SearchQuery, candidate: ScoredCandidate) -> bool:
        return candidate.match_score > 0


class SubstringStrategy(SearchStrategy):
    """Last resort: the whole query as a case-insensitive substring, A-Z."""

    name = "substring"

    def build(self, query: SearchQuery) -> SelectQuery:
        where = Or(ILike(FULL_NAME, EXACT_PATTERN), ILike(RELATIVE_NAME, EXACT_PATTERN))
        return self._select(where, Number(0), Number(0))


class TieredSearch:
    """
    Runs strategies in order until one returns.

    - CapabilityUnavailableError moves on to the next strategy.
    - QueryExecutionError jumps to the last strategy.
    - Errors from the last strategy, and connection failures from any
      strategy, propagate.
    """

    def __init__(self, strategies: Sequence[SearchStrategy]):
        if not strategies:
            raise ValueError("TieredSearch needs at least one strategy")
        self.strategies = list(strategies)

    def run(self, session, query: SearchQuery) -> List[VoterRecord]:
        last = len(self.strategies) - 1
        index = 0
        while True:
            strategy = self.strategies[index]
            try:
                with timed_operation(f"{strategy.name} search for {query.raw_text!r}", logger):
                    records = strategy.attempt(session, query)
            except CapabilityUnavailableError as e:
                if index == last:
                    raise
                logger.info(
                    f"{strategy.name} search unavailable ({e.capability}), "
                    f"using {self.strategies[index + 1].name} search"
                )
                index += 1
                continue
            except QueryExecutionError as e:
                if index == last:
                    raise
                logger.error(
                    f"{strategy.name} search failed, falling back to "
                    f"{self.strategies[last].name} search: {e}"
                )
                index = last
                continue

            logger.debug(f"{strategy.name} search returned {len(records)} voter(s)")
            return records


def default_strategies(
    weights: Optional[SearchWeights] = None,
    limit: int = 50,
    extension: str = "pg_trgm",
) -> List[SearchStrategy]:
    return [
        TrigramStrategy(weights, limit, extension=extension),
        PatternStrategy(weights, limit),
        SubstringStrategy(weights, limit),
    ]
