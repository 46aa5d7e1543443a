"""
Core functionality for state tracking and iteration control.
"""

from .errors import DeadLoopDetected, InterruptUnavailable, WaymarkError
from .execution import InterruptCoordinator, IterationScheduler
from .state import Diff, Observation, StateNode, StateRegistry, Transition, Trigger

__all__ = [
    'Observation', 'StateNode', 'Transition', 'Trigger', 'StateRegistry', 'Diff',
    'IterationScheduler', 'InterruptCoordinator',
    'WaymarkError', 'DeadLoopDetected', 'InterruptUnavailable'
]
