import logging

from visiongate.observability import logging as event_logging
from visiongate.util import logger as logger_module


def test_log_event_renders_fields_and_skips_empty(monkeypatch):
    calls: list[tuple] = []
    monkeypatch.setattr(event_logging.logger, "isEnabledFor", lambda level: True)
    monkeypatch.setattr(event_logging.logger, "log", lambda level, msg, *args: calls.append((level, msg % args)))

    event_logging.log_event("pipeline_planned", request_id="req-1", model=None, steps=["acquire_image"])

    assert calls == [(logging.INFO, "event=pipeline_planned request_id=req-1 steps=['acquire_image']")]


def test_log_event_respects_level(monkeypatch):
    calls: list = []
    monkeypatch.setattr(event_logging.logger, "isEnabledFor", lambda level: level >= logging.WARNING)
    monkeypatch.setattr(event_logging.logger, "log", lambda *args: calls.append(args))

    event_logging.log_event("pipeline_completed", request_id="req-1")
    event_logging.log_event("pipeline_failed", level=logging.WARNING, request_id="req-1")

    assert len(calls) == 1
    assert calls[0][0] == logging.WARNING


def test_resolve_level_falls_back_to_info():
    assert logger_module._resolve_level("debug") == logging.DEBUG
    assert logger_module._resolve_level(" Warning ") == logging.WARNING
    assert logger_module._resolve_level("chatty") == logging.INFO
    assert logger_module._resolve_level("") == logging.INFO


def test_file_handler_disabled_without_log_dir(monkeypatch):
    monkeypatch.setattr(logger_module.settings, "log_dir", "")
    assert logger_module._file_handler() is None
