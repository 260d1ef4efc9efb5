import json, logging, os, sys
from datetime import datetime, timezone

# Keys copied from a record's `extra=` onto the JSON line
CONTEXT_KEYS = ("request_id", "route", "remote_addr", "wallet_did", "entity_id")


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in CONTEXT_KEYS:
            value = getattr(record, k, None)
            if value is not None:
                payload[k] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def wallet_context(did=None, entity_id=None):
    """`extra=` mapping that tags a log line with the wallet identity."""
    extra = {"wallet_did": did or "-"}
    if entity_id is not None:
        extra["entity_id"] = entity_id
    return extra


def configure_logging():
    handlers = [logging.StreamHandler(sys.stdout)]

    # Empty WALLET_LOG_FILE keeps logs on stdout only
    log_file = os.getenv("WALLET_LOG_FILE", "wallet_debug.log")
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    log_level = os.getenv("WALLET_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers = handlers
