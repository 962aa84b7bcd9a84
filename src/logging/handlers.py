# src/logging/handlers.py
"""Size-based rotating file handler for log files."""

from __future__ import annotations

import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def parse_size(size_str: str) -> int:
    """Parse size string like '10MB' into bytes.

    Supported suffixes: B, KB, MB, GB (case-insensitive).
    """
    match = re.match(r"^(\d+)\s*(B|KB|MB|GB)$", size_str.strip(), re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    return int(match.group(1)) * _SIZE_UNITS[match.group(2).upper()]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 30,
) -> RotatingFileHandler:
    """Create a rotating file handler, creating parent directories as needed."""
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    return RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
