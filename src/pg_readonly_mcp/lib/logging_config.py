"""Logging setup for the server.

Everything is written to stderr (and optionally a file): stdout is reserved
for the MCP stdio transport. SQL text is masked before it is logged.
"""

import logging
import json
import re
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional

SERVICE_NAME = "pg-readonly-mcp"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ('uvicorn.access', 'httpx', 'mcp.server.lowlevel.server')

_STRING_LITERAL_RE = re.compile(r"'(?:[^']|'')*'")

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with adapter extra fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'service': SERVICE_NAME,
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}.{record.funcName}:{record.lineno}"
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        entry.update(getattr(record, 'extra_fields', {}))

        return json.dumps(entry, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """Attaches a fixed set of fields to every record as ``extra_fields``."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {'extra_fields': self.extra}
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """Configure the root logger.

    Replaces any handlers already installed, so calling it twice is safe.

    Args:
        level: Logging level name; unknown names fall back to INFO
        json_format: Emit JSONFormatter records instead of plain text
        log_file: Optional file that receives the same records
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    formatter = JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_logger.level, logging.WARNING))


def get_logger(name: str, extra_fields: Dict[str, Any] = None) -> logging.Logger:
    """Module logger, wrapped in a ContextAdapter when extra fields are given."""
    logger = logging.getLogger(name)
    if extra_fields:
        return ContextAdapter(logger, extra_fields)
    return logger


def mask_statement(query: str, max_length: int = 500) -> str:
    """Prepare a statement for logging.

    String literals are masked since they may carry sensitive values, the
    text is truncated and whitespace is collapsed.
    """
    masked = _STRING_LITERAL_RE.sub("'***'", query)
    masked = ' '.join(masked.split())
    if len(masked) > max_length:
        masked = masked[:max_length] + "..."
    return masked


def log_database_query(query: str, params: Optional[tuple] = None,
                       logger_instance: Optional[logging.Logger] = None) -> None:
    """Debug-log a statement about to run. Parameter values are never logged, only their count."""
    logger_instance = logger_instance or logging.getLogger(__name__)

    suffix = f" | Params: {len(params)} bound" if params else ""
    logger_instance.debug(f"SQL Query: {mask_statement(query)}{suffix}")


def log_error_with_context(error: Exception, context: dict,
                           logger_instance: Optional[logging.Logger] = None) -> None:
    """Log an unexpected error with its traceback and the context it happened in."""
    logger_instance = logger_instance or logging.getLogger(__name__)
    logger_instance.error(
        f"{type(error).__name__}: {error} | Context: {context}",
        exc_info=True
    )
