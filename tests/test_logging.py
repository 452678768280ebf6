import json
import logging
import sys

from objstore.common.logging import JsonFormatter, setup_logging


def test_setup_logging_levels():
    setup_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("botocore").level == logging.WARNING
    assert logging.getLogger("s3transfer").level == logging.WARNING
    startup = logging.getLogger("objstore.startup")
    assert startup.propagate is False
    assert not isinstance(startup.handlers[0].formatter, JsonFormatter)
    assert any(
        isinstance(handler.formatter, JsonFormatter)
        for handler in logging.getLogger().handlers
    )

    setup_logging("INFO")


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad key")
    except ValueError:
        record = logging.LogRecord(
            "objstore", logging.ERROR, __file__, 1, "failed", (), None
        )
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "failed"
    assert "ValueError: bad key" in payload["exception"]
