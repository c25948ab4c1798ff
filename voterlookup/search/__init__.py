"""
Voter search: SQL clause builder, ranking, fallback strategies and service.
"""

from .ranking import ORDER_BY, rank, ranking_key
from .strategies import (
    SearchStrategy,
    TrigramStrategy,
    PatternStrategy,
    SubstringStrategy,
    TieredSearch,
    default_strategies,
)
from .service import VoterSearchService

__all__ = [
    "ORDER_BY",
    "rank",
    "ranking_key",
    "SearchStrategy",
    "TrigramStrategy",
    "PatternStrategy",
    "SubstringStrategy",
    "TieredSearch",
    "default_strategies",
    "VoterSearchService",
]
