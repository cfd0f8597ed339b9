"""Loguru logging configuration.

Human-readable stderr output, an opt-in JSON sink for records bound with
``json_output=True``, and an optional rotating file sink.  Credential
material bound into ``extra`` is masked before any sink sees it.
"""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"

SENSITIVE_KEYS: frozenset[str] = frozenset(
    {"password", "new_password", "access_token", "refresh_token", "token", "authorization"}
)
_MASK = "[REDACTED]"


def _mask_credentials(record: Any) -> None:
    """Replace sensitive values bound via ``logger.bind`` with a mask."""
    extra = record["extra"]
    for key in extra:
        if key.lower() in SENSITIVE_KEYS:
            extra[key] = _MASK


def setup_logging(log_level: str = "INFO", log_dir: str | None = None) -> None:
    """Configure Loguru sinks for the API server and the CLI.

    Args:
        log_level: Minimum log level to emit (case-insensitive).
        log_dir: Optional directory for log files.  When set, a rotating
            file sink is added (rotated every 24 hours, retained 7 days).
    """
    level = log_level.upper()
    logger.remove()
    logger.configure(patcher=_mask_credentials)
    logger.add(sys.stderr, level=level, format=_LOG_FORMAT, serialize=False)
    logger.add(
        sys.stderr,
        level=level,
        serialize=True,
        filter=lambda record: record["extra"].get("json_output", False),
    )

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / "farm-manager.log",
            level=level,
            format=_LOG_FORMAT,
            rotation="24h",
            retention="7 days",
        )
