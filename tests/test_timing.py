import logging

import pytest

from voterlookup.utils import timed_operation


def test_logs_duration(caplog):
    logger = logging.getLogger("timing_test")
    caplog.set_level(logging.DEBUG, logger="timing_test")
    with timed_operation("trigram search", logger) as timing:
        pass
    assert timing.error is None
    assert timing.duration_ms >= 0
    assert caplog.records[-1].getMessage().startswith("trigram search: ")


def test_logs_failure_and_reraises(caplog):
    logger = logging.getLogger("timing_test")
    caplog.set_level(logging.DEBUG, logger="timing_test")
    with pytest.raises(RuntimeError):
        with timed_operation("pattern search", logger):
            raise RuntimeError("boom")
    assert caplog.records[-1].getMessage().endswith("(failed: boom)")
