import logging

from shelfaware.logging import get_logger, set_level


def test_logger_is_namespaced_and_configured_once():
    first = get_logger("unit-test")
    second = get_logger("unit-test")

    assert first is second
    assert first.name == "shelfaware.unit-test"
    assert len(first.handlers) >= 1
    assert first.propagate is False


def test_set_level_applies_to_handlers():
    log = get_logger("unit-test-level")
    previous = log.level
    try:
        assert set_level("debug", log) == logging.DEBUG
        assert log.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in log.handlers)
        assert set_level("nonsense", log) == logging.INFO
    finally:
        set_level(previous, log)
