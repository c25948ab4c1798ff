"""
Search request and ranking models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union

from ..exceptions import ValidationError
from .voter import VoterRecord


class SearchMethod(str, Enum):
    """How the query text is interpreted."""

    NAME = "name"
    EPIC = "epic"
    HOUSE = "house"

    @classmethod
    def parse(cls, value: Union[str, "SearchMethod"]) -> "SearchMethod":
        """
        Accept the enum, its value, or the numeric menu code used by the
        web form and chat bot ("1" name, "2" EPIC, "3" house).
        """
        if isinstance(value, SearchMethod):
            return value
        key = str(value).strip().lower()
        codes = {"1": cls.NAME, "2": cls.EPIC, "3": cls.HOUSE}
        if key in codes:
            return codes[key]
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(
                "Invalid search method",
                field_name="method",
                field_value=value,
                expected="1 (name), 2 (EPIC) or 3 (house)",
            ) from None


def tokenize(text: str) -> List[str]:
    """Split on whitespace, dropping single-character tokens."""
    return [w for w in text.split() if len(w) > 1]


@dataclass(frozen=True)
class SearchQuery:
    """A trimmed query string scoped to one ward."""

    raw_text: str
    ward: int
    words: List[str] = field(init=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "raw_text", self.raw_text.strip())
        object.__setattr__(self, "words", tokenize(self.raw_text))

    @property
    def is_empty(self) -> bool:
        return not self.raw_text

    @property
    def is_multiword(self) -> bool:
        return len(self.words) > 1

    @property
    def first_word(self) -> str:
        return self.words[0] if self.words else self.raw_text


@dataclass
class ScoredCandidate:
    """
    A record with its ranking inputs.

    Lives only inside the ranking step; callers receive bare records.
    """

    record: VoterRecord
    match_score: float = 0.0
    words_matched: int = 0
