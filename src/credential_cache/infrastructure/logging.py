"""Process logging configuration for the credential cache API."""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(*, level: str) -> None:
    """Configure root logging once with the shared format and runtime level."""

    normalized_level = level.strip().upper() or "INFO"
    resolved_level = getattr(logging, normalized_level, logging.INFO)
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    logging.basicConfig(level=resolved_level, format=_LOG_FORMAT)
    # Driver-level SQL logging would echo ciphertext columns.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
