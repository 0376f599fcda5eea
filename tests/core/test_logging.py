import json
import logging

from app.core.logging import JsonFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("app.workers.pool", logging.INFO, __file__, 1, "job_completed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_whitelisted_extras_are_emitted():
    line = json.loads(JsonFormatter().format(_record(job_id="j1", state="completed", public_id="temp/v")))
    assert line["message"] == "job_completed"
    assert line["job_id"] == "j1"
    assert line["state"] == "completed"
    assert line["public_id"] == "temp/v"


def test_unknown_extras_are_dropped():
    line = json.loads(JsonFormatter().format(_record(password="secret", job_id=None)))
    assert "password" not in line
    assert "job_id" not in line
