"""
Exploration path: the ordered list of steps taken during a session.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .models import Transition
from .observation import Observation


@dataclass(frozen=True)
class PathStep:
    """One move: where we started, how we moved, where we ended up."""
    initial: Optional[Observation]
    transition: Transition
    result: Observation


class Path:
    """Append-only sequence of path steps."""

    def __init__(self):
        self._steps: List[PathStep] = []

    def add_step(self, initial: Optional[Observation], transition: Transition,
                 result: Observation) -> PathStep:
        step = PathStep(initial, transition, result)
        self._steps.append(step)
        return step

    @property
    def steps(self) -> List[PathStep]:
        return list(self._steps)

    def get_step(self, index: int) -> Optional[PathStep]:
        if 0 <= index < len(self._steps):
            return self._steps[index]
        return None

    def last_step(self) -> Optional[PathStep]:
        return self._steps[-1] if self._steps else None

    def current_observation(self) -> Optional[Observation]:
        last = self.last_step()
        return last.result if last else None

    def summary(self) -> Dict[str, Any]:
        last = self.last_step()
        return {
            'steps': len(self._steps),
            'last_trigger': last.transition.trigger.value if last else None
        }

    def clear(self) -> None:
        self._steps.clear()

    def __len__(self) -> int:
        return len(self._steps)
