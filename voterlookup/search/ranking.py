"""
Result ranking.

The only definition of result order. SQL statements render ORDER_BY so the
datastore keeps the best rows when it applies LIMIT; ranking_key re-applies
the same order client-side after filtering, so both layers agree.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from ..models import ScoredCandidate, VoterRecord

MATCH_SCORE = "match_score"
WORDS_MATCHED = "words_matched"

ORDER_BY: Sequence[str] = (
    f"{WORDS_MATCHED} DESC",
    f"{MATCH_SCORE} DESC",
    "full_name ASC",
    "epic_number ASC",
)


def ranking_key(candidate: ScoredCandidate):
    """More words matched first, then higher score, then name A-Z, then EPIC."""
    return (
        -candidate.words_matched,
        -candidate.match_score,
        candidate.record.full_name or "",
        candidate.record.epic_number or "",
    )


def to_candidates(rows: Iterable[Mapping[str, Any]]) -> List[ScoredCandidate]:
    """Split datastore rows into records and their ranking inputs."""
    candidates = []
    for row in rows:
        candidates.append(ScoredCandidate(
            record=VoterRecord.from_row(row),
            match_score=float(row.get(MATCH_SCORE) or 0),
            words_matched=int(row.get(WORDS_MATCHED) or 0),
        ))
    return candidates


def rank(
    candidates: Iterable[ScoredCandidate],
    limit: int,
    keep: Optional[Callable[[ScoredCandidate], bool]] = None,
) -> List[VoterRecord]:
    """
    Filter, order, de-duplicate by EPIC number and cap.

    Args:
        candidates: Scored rows from one search strategy
        limit: Maximum number of records to return
        keep: Optional predicate; candidates failing it are dropped

    Returns:
        Records in rank order. Scores are not exposed.
    """
    pool = [c for c in candidates if keep is None or keep(c)]
    pool.sort(key=ranking_key)

    seen = set()
    results: List[VoterRecord] = []
    for candidate in pool:
        epic = candidate.record.epic_number
        if epic:
            key = epic.upper()
            if key in seen:
                continue
            seen.add(key)
        results.append(candidate.record)
        if len(results) >= limit:
            break
    return results
