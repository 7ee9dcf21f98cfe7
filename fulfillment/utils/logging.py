"""
JSON formatter for structured provisioning logs.
"""
import json
import logging
from datetime import datetime, timezone


# ``extra=`` fields copied into the JSON line when present
EXTRA_FIELDS = (
    "request_id",
    "order_id",
    "order_number",
    "order_item_id",
    "operation",
    "status",
    "channel",
    "recipient",
    "http_status",
    "error_code",
    "correlation_id",
    "remote_request_id",
    "subscription_id",
    "attempt",
    "error",
    "variables",
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record):
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)
