import json
import logging

from core.logging import JSONFormatter


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        name="dealership",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Commission %s paid",
        args=("c-1",),
        exc_info=None,
    )
    record.commission_id = "c-1"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "dealership"
    assert payload["message"] == "Commission c-1 paid"
    assert payload["commission_id"] == "c-1"
