from __future__ import annotations

import logging
from pathlib import Path

import pytest

from supportdesk.logging import get_log_file_path, log_call


LOGGER = logging.getLogger("supportdesk.tests.log_call")


@log_call(logger=LOGGER, redact=("token",), include_result=True)
def _combine(text: str, token: str | None = None) -> str:
    return text.upper()


@log_call(logger=LOGGER)
def _explode(reason: str) -> None:
    raise RuntimeError(reason)


def test_log_call_redacts_named_arguments(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger=LOGGER.name):
        assert _combine("hi", token="secret") == "HI"

    messages = [record.getMessage() for record in caplog.records]
    assert any("token=<redacted>" in message for message in messages)
    assert any("text='hi'" in message for message in messages)
    assert any("returned 'HI'" in message for message in messages)
    assert not any("secret" in message for message in messages)


def test_log_call_logs_and_reraises_failures(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger=LOGGER.name):
        with pytest.raises(RuntimeError):
            _explode("bad input")

    failures = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert failures
    assert "bad input" in failures[0].getMessage()


def test_log_call_preserves_metadata() -> None:
    assert _combine.__name__ == "_combine"


def test_get_log_file_path_prefers_logger_attribute(tmp_path) -> None:
    logger = logging.getLogger("supportdesk.tests.log_path")
    logger.log_path = tmp_path / "supportdesk.log"  # type: ignore[attr-defined]

    assert get_log_file_path(logger) == Path(tmp_path / "supportdesk.log")
