"""
Configuration Management

Centralized configuration for waymark components.
"""

from .exploration import DeadLoopConfig, DiffConfig, ExplorationConfig, SchedulerConfig

__all__ = [
    'ExplorationConfig', 'DeadLoopConfig',
    'SchedulerConfig', 'DiffConfig'
]
