from __future__ import annotations

import io
import logging

import pytest

from budget_tracker.logging_setup import (
    configure_logging,
    get_logger,
    reset_logging,
    resolve_level,
)


@pytest.fixture
def clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("debug", logging.DEBUG),
        (" Warning ", logging.WARNING),
        ("15", 15),
        (logging.ERROR, logging.ERROR),
        ("chatty", logging.INFO),
    ],
)
def test_resolve_level(value, expected):
    assert resolve_level(value) == expected


def test_resolve_level_reads_environment(monkeypatch):
    monkeypatch.setenv("BUDGET_TRACKER_LOG_LEVEL", "error")
    assert resolve_level() == logging.ERROR
    monkeypatch.delenv("BUDGET_TRACKER_LOG_LEVEL")
    assert resolve_level() == logging.INFO


def test_configure_logging_writes_package_records_once(clean_logging):
    stream = io.StringIO()

    root = configure_logging("DEBUG", fmt="%(name)s|%(message)s", stream=stream)
    configure_logging("ERROR", stream=io.StringIO())
    get_logger("budget_tracker.session").debug("saved %s", "alice")

    assert root.level == logging.DEBUG
    assert root.propagate is False
    assert stream.getvalue() == "budget_tracker.session|saved alice\n"


def test_reset_logging_restores_propagation(clean_logging):
    configure_logging(stream=io.StringIO())
    reset_logging()

    root = logging.getLogger("budget_tracker")
    assert root.propagate is True
    assert not [h for h in root.handlers if isinstance(h, logging.StreamHandler)]
