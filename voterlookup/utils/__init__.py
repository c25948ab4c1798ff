"""
Utility functions for the voter lookup application.
"""

from .timing import (
    timed_operation,
    TimingResult,
)

__all__ = [
    "timed_operation",
    "TimingResult",
]
