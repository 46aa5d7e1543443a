"""
Error Types

Exceptions raised by the state tracking and iteration layers.
"""

from typing import List, Optional


class WaymarkError(Exception):
    """Base class for all waymark errors."""


class DeadLoopDetected(WaymarkError):
    """
    Raised when exploration keeps cycling through a small set of states.

    Kept separate from ordinary handler failures so a calling agent can pick a
    different strategy (e.g. reset to a known state) instead of retrying blindly.
    """

    def __init__(self, fingerprints: List[str], message: Optional[str] = None):
        self.fingerprints = list(fingerprints)
        unique = sorted(set(self.fingerprints))
        if message is None:
            message = (
                f"Dead loop detected: last {len(self.fingerprints)} transitions "
                f"cycle through {len(unique)} state(s): {', '.join(unique)}"
            )
        super().__init__(message)


class InterruptUnavailable(WaymarkError):
    """Raised when operator input is needed but no input source is available."""
