"""
Logging utilities for the FastAPI application and operator scripts.

Provides a consistent logging format and keeps bearer secrets out of log lines.
"""

import logging
import sys
from typing import Optional


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request line at INFO; provider calls are logged by the services.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Render a token as its trailing characters only, e.g. ``***a1b2``."""
    if not value:
        return "<none>"
    if len(value) <= visible:
        return "***"
    return f"***{value[-visible:]}"


__all__ = ["configure_logging", "mask_secret"]
