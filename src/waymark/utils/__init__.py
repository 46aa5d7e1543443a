"""
Utilities: logging setup and session reporting.
"""

from .logger import setup_logging
from .session_reporter import SessionReporter

__all__ = ['setup_logging', 'SessionReporter']
