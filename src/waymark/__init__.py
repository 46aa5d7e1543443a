"""
Waymark: State Tracking for Autonomous Web Exploration

Gives an exploring agent a memory of where it has been and a controllable
iteration loop.

Key Components:
- State: Observations, fingerprints, diffs, the state registry and paths
- Execution: Iteration scheduler, interrupts, tracing and retry
- Browser: Playwright capture and navigation adapters
- Config: Centralized configuration management
"""

from .config import ExplorationConfig
from .core import (
    Diff, IterationScheduler, InterruptCoordinator, Observation,
    StateNode, StateRegistry, Transition, Trigger, WaymarkError
)
from .core.execution import Continue, LoopContext, Retry, Stop, loop

__version__ = "0.1.0"

__all__ = [
    # State
    'Observation', 'StateNode', 'Transition', 'Trigger', 'StateRegistry', 'Diff',

    # Execution
    'IterationScheduler', 'InterruptCoordinator', 'LoopContext',
    'Continue', 'Stop', 'Retry', 'loop',

    # Config and errors
    'ExplorationConfig', 'WaymarkError'
]
