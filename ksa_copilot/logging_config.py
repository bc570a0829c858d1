"""
KSA Copilot Logging
===================

Log records from the KB and pack engine carry context through ``extra``
(pack, regulation version, checklist item, search result count). Both
output formats surface it:

- JSON lines, one object per record, context as top-level keys
- Plain text, context appended as ``key=value`` pairs

Usage:
    from ksa_copilot.config import get_settings
    from ksa_copilot.logging_config import setup_logging

    setup_logging(get_settings().logging)
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import LoggingConfig

CONTEXT_FIELDS = ("pack_id", "version", "reg_code", "item_key", "result_count", "duration")

QUIET_LOGGERS = ("openai", "httpx", "httpcore")

TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s | %(message)s"


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """KB context attached to a record via ``extra``."""
    context = {}
    for key in CONTEXT_FIELDS:
        value = getattr(record, key, None)
        if value is not None:
            context[key] = value
    return context


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

        {"ts": "...", "level": "INFO", "logger": "ksa_copilot.rag.retriever",
         "msg": "...", "pack_id": "nitaqat", "version": "v2025.10", "result_count": 2}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(record_context(record))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text with KB context appended."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        head, sep, tail = line.partition("\n")
        return f"{head} [{pairs}]{sep}{tail}"


def _is_ours(handler: logging.Handler) -> bool:
    return getattr(handler, "_ksa_copilot", False)


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Install console (and optional rotating file) handlers on the root logger.

    Handlers from a previous call are replaced; handlers installed by other
    code (pytest, uvicorn) are left alone.
    """
    config = config or LoggingConfig()

    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in [h for h in root.handlers if _is_ours(h)]:
        root.removeHandler(handler)
        handler.close()

    formatter = JSONFormatter() if config.json_logs else ContextFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=config.file_max_bytes,
            backupCount=config.file_backup_count,
            encoding="utf-8",
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._ksa_copilot = True
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={config.level} json={config.json_logs} file={config.log_file or 'none'}"
    )
