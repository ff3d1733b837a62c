import json
import logging

from restobill.app.obs.logging import JsonFormatter


def test_json_formatter_redacts_pii_and_keeps_context():
    record = logging.LogRecord(
        "restobill", logging.WARNING, __file__, 1, "guest 9876543210 a@b.io", (), None
    )
    record.restaurant = "r1"
    record.table = "5"
    record.category = "PartialResolutionWarning"

    data = json.loads(JsonFormatter().format(record))

    assert data["msg"] == "guest *** ***"
    assert data["level"] == "WARNING"
    assert data["restaurant"] == "r1"
    assert data["table"] == "5"
    assert data["invoice"] is None
    assert data["category"] == "PartialResolutionWarning"
