"""
Observation Diff

Decides whether two observations describe the same location and, if they do,
what changed between them. Comparing different locations is meaningless, so
in that case every delta is left empty.
"""

import asyncio
import logging
from typing import Optional

from ...config.exploration import DiffConfig
from .aria import diff_aria_snapshots
from .html_diff import HtmlDiffResult, html_diff
from .observation import Observation

logger = logging.getLogger(__name__)


class Diff:
    """Lazily computed delta between a current and a previous observation."""

    def __init__(self, current: Observation, previous: Optional[Observation] = None,
                 config: Optional[DiffConfig] = None):
        self.current = current
        self.previous = previous
        self.config = config or DiffConfig()

        self.html_delta: Optional[HtmlDiffResult] = None
        self.aria_delta: Optional[str] = None
        self.calculated = False

        self._same_location = current.is_same_location(previous)

    def is_same_location(self) -> bool:
        return self._same_location

    def location_changed(self) -> bool:
        return not self._same_location

    @property
    def html_subtree(self) -> Optional[str]:
        if self.html_delta is None or not self.html_delta.has_changes:
            return None
        return self.html_delta.subtree

    @property
    def aria_changed(self) -> bool:
        return self.aria_delta is not None

    async def calculate(self) -> 'Diff':
        """Populate the deltas. A no-op across locations or without a previous observation."""
        self.calculated = True
        if self.previous is None:
            return self

        if not self._same_location:
            logger.debug(
                f"Skipping diff: {self.previous.relative_path} → {self.current.relative_path}"
            )
            return self

        self.html_delta = await asyncio.to_thread(
            html_diff,
            self.previous.html,
            self.current.html,
            self.config.min_text_length
        )
        if self.config.compare_aria:
            self.aria_delta = diff_aria_snapshots(self.previous.aria_snapshot, self.current.aria_snapshot)

        return self

    def has_changes(self) -> bool:
        if self.previous is None:
            return False
        html_changed = self.html_delta is not None and self.html_delta.has_changes
        return html_changed or self.aria_changed
