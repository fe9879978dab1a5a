"""
Tests for run logging setup
"""

import json
import logging

from io_utils.logs import JSONFormatter, setup_logging


def test_json_formatter_includes_extra():
    record = logging.makeLogRecord(
        {"name": "pipeline", "levelname": "WARNING", "msg": "Removing %s", "args": ("a.json",), "stage": "taxonomy"}
    )

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Removing a.json"
    assert data["level"] == "WARNING"
    assert data["logger"] == "pipeline"
    assert data["stage"] == "taxonomy"
    assert data["timestamp"].endswith("Z")


def test_setup_logging_writes_run_log(tmp_path):
    root = logging.getLogger()
    before = root.handlers[:]
    try:
        setup_logging(tmp_path / "out", level="debug")
        logging.getLogger("pipeline").debug("hello from the pipeline")

        text = (tmp_path / "out" / "run.log").read_text(encoding="utf-8")
        assert "hello from the pipeline" in text
        assert root.level == logging.DEBUG
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                handler.close()
                root.removeHandler(handler)
