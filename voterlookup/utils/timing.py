"""
Timing for logged search steps.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass
class TimingResult:
    name: str
    duration_ms: float = 0.0
    error: Optional[str] = None

    def __str__(self) -> str:
        msg = f"{self.name}: {self.duration_ms:.1f}ms"
        if self.error:
            msg += f" (failed: {self.error})"
        return msg


@contextmanager
def timed_operation(
    name: str,
    logger: Optional[logging.Logger] = None,
    log_level: int = logging.DEBUG
) -> Iterator[TimingResult]:
    """
    Time the block and log one line on exit, including when it raises.

    Usage:
        with timed_operation("trigram search", logger):
            records = strategy.attempt(session, query)
    """
    result = TimingResult(name=name)
    start = time.perf_counter()
    try:
        yield result
    except Exception as e:
        result.error = str(e)
        raise
    finally:
        result.duration_ms = (time.perf_counter() - start) * 1000
        if logger:
            logger.log(log_level, str(result))
