"""Tests for the structured JSON log formatter."""

from __future__ import annotations

import json
import logging
import sys

from api.middleware.json_formatter import JSONFormatter


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("api.access", logging.INFO, __file__, 1, "request %s", ("completed",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_basic_fields() -> None:
    payload = json.loads(JSONFormatter().format(_record()))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "api.access"
    assert payload["message"] == "request completed"
    assert "exc_info" not in payload


def test_extra_fields_are_copied() -> None:
    payload = json.loads(JSONFormatter().format(_record(owner_id="owner-a", request={"path": "/x"})))
    assert payload["owner_id"] == "owner-a"
    assert payload["request"] == {"path": "/x"}


def test_exception_is_included() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()
    payload = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: boom" in payload["exc_info"]
