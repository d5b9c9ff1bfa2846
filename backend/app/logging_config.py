import json
import logging
import os

# External image URLs must not reach the logs
QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def setup_logging() -> None:
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if os.environ.get("JSON_LOGS", "0") == "1":
        logging.getLogger().handlers = [JSONLogHandler()]
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class JSONLogHandler(logging.StreamHandler):
    """One JSON object per line; ``provider`` and ``task_id`` extras are passed through."""

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            entry = {
                "ts": record.created,
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            for key in ("provider", "task_id"):
                if hasattr(record, key):
                    entry[key] = getattr(record, key)
            if record.exc_info:
                entry["exc_info"] = self.formatException(record.exc_info)
            self.stream.write(json.dumps(entry, ensure_ascii=False) + "\n")
            self.flush()
        except Exception:
            self.handleError(record)
