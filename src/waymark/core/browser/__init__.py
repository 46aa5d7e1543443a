"""
Playwright adapters that feed the state registry.
"""

from .capture import capture_observation
from .events import NavigationWatcher

__all__ = ['capture_observation', 'NavigationWatcher']
