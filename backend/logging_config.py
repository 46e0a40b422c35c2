"""Logging setup shared by the service and the CLI."""

import logging
import os
import re
import sys
from typing import Optional


class SecretCodeFilter(logging.Filter):
    """Mask secret codes and signatures in log records."""

    PATTERNS = [
        (re.compile(r'(secret[_-]?code["\']?\s*[:=]\s*["\']?)([^"\'}\s,&]+)', re.IGNORECASE), r'\1***'),
        (re.compile(r'([?&]code=)([^&\s]+)', re.IGNORECASE), r'\1***'),
        (re.compile(r'([?&]signature=)([^&\s]+)', re.IGNORECASE), r'\1***'),
        (re.compile(r'(x-secret-code["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE), r'\1***'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._mask(arg) for arg in record.args)

        return True

    def _mask(self, value):
        if isinstance(value, str):
            for pattern, replacement in self.PATTERNS:
                value = pattern.sub(replacement, value)
        return value


def setup_logging(component_name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root handler for a component.

    Args:
        component_name: 'library' for the service, 'cli' for the client
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL env var or INFO

    Returns:
        The component logger
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_library_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handler.addFilter(SecretCodeFilter())
        handler._library_handler = True
        root.addHandler(handler)

    return logging.getLogger(component_name)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
