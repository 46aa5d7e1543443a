"""
Exploration Configuration

Configuration classes for state tracking, dead-loop detection and the
iteration scheduler.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "WAYMARK_"


@dataclass
class DeadLoopConfig:
    """Tunables for dead-loop detection over the transition history."""
    window: int = 10        # smallest trailing window inspected
    window_step: int = 3    # window growth per round
    unique_limit: int = 1   # distinct states allowed in the smallest window


@dataclass
class SchedulerConfig:
    """Configuration for the iteration scheduler."""
    max_attempts: int = 5
    interruptible: bool = True
    stop_keywords: Tuple[str, ...] = ("stop", "exit")
    interrupt_prompt: str = "Execution interrupted. What should we do instead?"


@dataclass
class DiffConfig:
    """Configuration for structural and accessibility diffing."""
    min_text_length: int = 5
    compare_aria: bool = True


@dataclass
class ExplorationConfig:
    """Main configuration."""
    dead_loop: DeadLoopConfig = None
    scheduler: SchedulerConfig = None
    diff: DiffConfig = None
    log_level: str = "INFO"

    def __post_init__(self):
        if self.dead_loop is None:
            self.dead_loop = DeadLoopConfig()
        if self.scheduler is None:
            self.scheduler = SchedulerConfig()
        if self.diff is None:
            self.diff = DiffConfig()

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'ExplorationConfig':
        """
        Build configuration from environment variables (and a .env file).

        Args:
            env_file: Optional path to a .env file; defaults to python-dotenv lookup

        Returns:
            ExplorationConfig with overrides applied
        """
        load_dotenv(env_file)

        config = cls()
        config.scheduler.max_attempts = _env_int("MAX_ATTEMPTS", config.scheduler.max_attempts)
        config.scheduler.interruptible = _env_bool("INTERRUPTIBLE", config.scheduler.interruptible)
        config.dead_loop.window = _env_int("DEAD_LOOP_WINDOW", config.dead_loop.window)
        config.dead_loop.window_step = _env_int("DEAD_LOOP_STEP", config.dead_loop.window_step)
        config.dead_loop.unique_limit = _env_int("DEAD_LOOP_UNIQUE_LIMIT", config.dead_loop.unique_limit)
        config.log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL", config.log_level).upper()
        return config

    @classmethod
    def for_strict_loop_detection(cls) -> 'ExplorationConfig':
        """Create config that flags oscillation sooner."""
        return cls(
            dead_loop=DeadLoopConfig(window=6, window_step=2, unique_limit=1)
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {ENV_PREFIX}{name}={raw!r}, using {default}")
        return default
    if value < 1:
        logger.warning(f"Ignoring non-positive {ENV_PREFIX}{name}={value}, using {default}")
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    logger.warning(f"Ignoring invalid {ENV_PREFIX}{name}={raw!r}, using {default}")
    return default
