import logging
from datetime import datetime, timezone

from engine.json_utils import safe_json_dumps


def utc_now():
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def log_event(level, message, **fields):
    payload = {"message": message, **fields}
    try:
        logging.log(level, safe_json_dumps(payload, sort_keys=True))
    except Exception as exc:
        logging.log(level, f"log_event_serialization_failed: {exc} message={message}")
