import json, logging, os, sys
from datetime import datetime, timezone

from app.core.config import SERVICE_NAME

# Request context attached via ``extra=`` by the HTTP layer
REQUEST_FIELDS = ("request_id", "route", "remote_addr", "method", "duration_ms")


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(
            {k: getattr(record, k) for k in REQUEST_FIELDS if hasattr(record, k)}
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging():
    """Route all loggers through JSON handlers on the root logger.

    CERTVERIFY_LOG_LEVEL sets the initial level (default INFO);
    CERTVERIFY_LOG_FILE additionally appends to a file.
    """
    formatter = JsonFormatter()
    handlers = [logging.StreamHandler(sys.stdout)]

    log_file = os.getenv("CERTVERIFY_LOG_FILE", "")
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a"))

    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    log_level = os.getenv("CERTVERIFY_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers = handlers
