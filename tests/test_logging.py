"""JSON log formatting and credential scrubbing."""

import json
import logging
import sys

from ao_price_oracle.core.logging import REDACTED, OracleJsonFormatter


def _format(**extra) -> dict:
    record = logging.makeLogRecord(
        {"name": "ao.test", "levelname": "INFO", "msg": "oracle_cycle_started", **extra}
    )
    return json.loads(OracleJsonFormatter("ao-price-oracle").format(record))


def test_record_carries_event_service_and_context() -> None:
    entry = _format(cycle_id=3, price=12.5)

    assert entry["event"] == "oracle_cycle_started"
    assert entry["service"] == "ao-price-oracle"
    assert entry["logger"] == "ao.test"
    assert entry["level"] == "INFO"
    assert entry["context"] == {"cycle_id": 3, "price": 12.5}
    assert "exception" not in entry


def test_plain_record_has_no_context() -> None:
    assert "context" not in _format()


def test_credential_fields_are_redacted_at_any_depth() -> None:
    entry = _format(
        jwk={"kty": "RSA", "d": "secret"},
        settings={"ORACLE_PK": "{...}", "PROCESS_ID": "pid"},
        keys=[{"qi": "secret"}],
    )

    assert entry["context"]["jwk"] == REDACTED
    assert entry["context"]["settings"] == {"ORACLE_PK": REDACTED, "PROCESS_ID": "pid"}
    assert entry["context"]["keys"] == [{"qi": REDACTED}]
    assert "secret" not in json.dumps(entry)


def test_exception_is_rendered() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.makeLogRecord({"msg": "oracle_cycle_crashed", "exc_info": sys.exc_info()})

    entry = json.loads(OracleJsonFormatter("svc").format(record))

    assert "RuntimeError: boom" in entry["exception"]
