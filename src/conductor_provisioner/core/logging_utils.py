"""Logging utilities for conductor-provisioner.

Centralized, dual-channel logging:
- Console handler: INFO and above to stderr (human-friendly progress lines).
- File handler (optional): level driven by configuration, written under the
  configured log directory with filename pattern: conductor-setup-<mode>-YYYY-MM-DD.log.
- Secret redaction on every handler: tokens, key secrets and API keys are masked.

This module is idempotent: calling `setup_logging(...)` multiple times reconfigures
the root logger cleanly without duplicating handlers.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

DEF_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
DEF_FILE_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "[%(filename)s:%(lineno)d %(funcName)s] - %(message)s"
)


class MaskSecretsFilter(logging.Filter):
    """
    Redact common secrets (auth headers, tokens, key secrets, API keys) from log records.
    """

    _patterns = [
        re.compile(r"(X-Authorization['\"]?\s*[:=]\s*['\"]?)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(api[_-]?key['\"]?\s*[=:]\s*['\"]?)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(key[_-]?secret['\"]?\s*[=:]\s*['\"]?)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(\btoken['\"]?\s*[=:]\s*['\"]?)([A-Za-z0-9._-]+)", re.IGNORECASE),
    ]

    @staticmethod
    def _mask(text: str) -> str:
        masked = text
        for pat in MaskSecretsFilter._patterns:
            masked = pat.sub(r"\1***REDACTED***", masked)
        return masked

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask(str(v)) for k, v in record.args.items()}
            else:
                record.args = tuple(
                    self._mask(a) if isinstance(a, str) else a for a in record.args
                )
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        return True


def _level(name: Optional[str], default: int) -> int:
    return getattr(logging, (name or "").upper(), default) if name else default


def _build_log_filename(action: str) -> str:
    """Build log file name: conductor-setup-<action>-YYYY-MM-DD.log"""
    ts = datetime.now().strftime("%Y-%m-%d")
    return f"conductor-setup-{action}-{ts}.log"


def setup_logging(
    console_level: Optional[str] = None,
    *,
    file_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    action: str = "apply",
) -> Optional[Path]:
    """Configure the root logger with console + optional file handlers.

    Args:
        console_level: Console threshold (defaults to INFO).
        file_level: File threshold (defaults to DEBUG).
        log_dir: Directory for the file log. No file handler when empty.
        action: Run mode (``plan`` or ``apply``) used in the log filename.

    Returns:
        The log file path when a file handler was installed, else None.

    Root level is set to the *minimum* of the handler levels so the file
    handler is never starved by the root filter.
    """
    logging.captureWarnings(True)

    c_level = _level(console_level, logging.INFO)
    f_level = _level(file_level, logging.DEBUG)
    mask = MaskSecretsFilter()

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(c_level)
    console_handler.setFormatter(logging.Formatter(DEF_CONSOLE_FORMAT))
    console_handler.addFilter(mask)
    root.addHandler(console_handler)

    logfile: Optional[Path] = None
    if log_dir:
        logs = Path(log_dir)
        logs.mkdir(parents=True, exist_ok=True)
        logfile = logs / _build_log_filename(action)
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setLevel(f_level)
        file_handler.setFormatter(logging.Formatter(DEF_FILE_FORMAT))
        file_handler.addFilter(mask)
        root.addHandler(file_handler)
        root.setLevel(min(c_level, f_level))
    else:
        root.setLevel(c_level)

    # requests/urllib3 connection chatter stays out of the console
    logging.getLogger("urllib3").setLevel(max(logging.WARNING, root.level))
    return logfile


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a child logger with the given name."""
    return logging.getLogger(name or "conductor_provisioner")
