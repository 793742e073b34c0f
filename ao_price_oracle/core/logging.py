"""JSON-lines logging for the oracle, with credential fields scrubbed from context."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}
# Context keys that may hold wallet key material and must never reach stdout.
SECRET_KEYS = frozenset({"oracle_pk", "jwk", "private_key", "d", "p", "q", "dp", "dq", "qi"})
REDACTED = "[redacted]"
_NOISY_LOGGERS = ("httpx", "httpcore")


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SECRET_KEYS else _scrub(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_scrub(item) for item in value]
    return value


class OracleJsonFormatter(logging.Formatter):
    """One compact JSON object per record: event name, service, and scrubbed context."""

    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "event": record.getMessage(),
        }

        context = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        if context:
            entry["context"] = _scrub(context)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=True, separators=(",", ":"), default=str)


def configure_logging(level: str = "INFO", service: str = "ao-price-oracle") -> None:
    """Route all records to stdout as JSON; repeated calls are ignored."""

    root = logging.getLogger()
    if getattr(root, "_ao_price_oracle_configured", False):
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(OracleJsonFormatter(service))
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    root._ao_price_oracle_configured = True  # type: ignore[attr-defined]
