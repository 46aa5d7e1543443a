"""
Logging setup shared by scripts and embedding applications.
"""

import logging
import os
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure root logging.

    Args:
        level: Level name; defaults to WAYMARK_LOG_LEVEL or INFO
        fmt: Log format string
    """
    level_name = (level or os.getenv("WAYMARK_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=fmt or DEFAULT_FORMAT
    )
