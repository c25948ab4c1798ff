"""
Data models for the voter lookup application.
"""

from .voter import VOTER_COLUMNS, VoterRecord, VoterDetails
from .search import SearchMethod, SearchQuery, ScoredCandidate, tokenize

__all__ = [
    # Voter models
    "VOTER_COLUMNS",
    "VoterRecord",
    "VoterDetails",

    # Search models
    "SearchMethod",
    "SearchQuery",
    "ScoredCandidate",
    "tokenize",
]
