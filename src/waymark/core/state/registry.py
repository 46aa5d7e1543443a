"""
State Registry

Single source of truth for "where are we" and "have we been here" during one
exploration session. Deduplicates observations into state nodes by
fingerprint, records transitions between them, notifies listeners, and
detects dead loops.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ...config.exploration import DeadLoopConfig, ExplorationConfig
from ..errors import DeadLoopDetected
from .fingerprinting import normalize_path
from .models import StateNode, Transition, Trigger
from .observation import ArtifactRefs, Observation
from .path import Path

logger = logging.getLogger(__name__)

StateChangeListener = Callable[[Transition], Any]


class StateRegistry:
    """
    Tracks distinct states and the transitions between them.

    All mutation and listener notification happen synchronously inside
    update(), so an observer never sees a half-applied transition.
    """

    def __init__(self, config: Optional[ExplorationConfig] = None):
        self.config = config or ExplorationConfig()

        self._states: Dict[str, StateNode] = {}
        self._history: List[Transition] = []
        self._current: Optional[StateNode] = None
        self._current_observation: Optional[Observation] = None
        self._path = Path()
        self._listeners: List[StateChangeListener] = []

        logger.debug("🎯 State registry initialized")

    @property
    def dead_loop(self) -> DeadLoopConfig:
        return self.config.dead_loop

    @property
    def current(self) -> Optional[StateNode]:
        return self._current

    @property
    def path(self) -> Path:
        return self._path

    # -- updates ---------------------------------------------------------

    def update(self, observation: Observation, action: Optional[str] = None,
               artifacts: Optional[ArtifactRefs] = None,
               trigger: Trigger = Trigger.MANUAL) -> StateNode:
        """
        Record an observation.

        Args:
            observation: Captured view of the page
            action: Description of the action that led here
            artifacts: Saved file references to attach to the state node
            trigger: What caused the change

        Returns:
            The current state node; the very same object when the fingerprint
            did not change
        """
        fingerprint = observation.fingerprint()
        if self._current is not None and self._current.fingerprint == fingerprint:
            return self._current

        node = self._states.get(fingerprint)
        if node is None:
            node = StateNode.from_observation(observation)
            self._states[fingerprint] = node
            logger.info(f"🆕 New state discovered: {fingerprint}")

        node.visit_count += 1
        node.last_seen = datetime.now()
        if artifacts is not None:
            node.artifacts = artifacts
        elif observation.artifacts is not None:
            node.artifacts = observation.artifacts

        previous_node = self._current
        previous_observation = self._current_observation
        transition = Transition(
            from_state=previous_node,
            to_state=node,
            trigger=trigger,
            action=action,
            observation=observation,
            error=observation.error
        )
        self._history.append(transition)
        self._path.add_step(previous_observation, transition, observation)
        self._current = node
        self._current_observation = observation

        logger.info(f"🔄 State transition: {transition.describe()}")
        self._emit(transition)
        return node

    def update_from_basic(self, url: str, title: Optional[str] = None,
                          trigger: Trigger = Trigger.NAVIGATION) -> StateNode:
        """Record a navigation signal that carries only a URL and title."""
        return self.update(Observation(url=url, title=title), trigger=trigger)

    # -- listeners -------------------------------------------------------

    def on_change(self, listener: StateChangeListener) -> Callable[[], None]:
        """
        Subscribe to state transitions.

        Returns:
            Function that removes the listener; calling it twice is harmless
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def clear_listeners(self) -> None:
        self._listeners.clear()
        logger.debug("All state change listeners cleared")

    def _emit(self, transition: Transition) -> None:
        for listener in list(self._listeners):
            try:
                listener(transition)
            except Exception as e:
                logger.error(f"Error in state change listener: {e}")

    # -- queries ---------------------------------------------------------

    def has_changed(self, node: Optional[StateNode]) -> bool:
        """True when node is not the current node object."""
        return node is not self._current

    @staticmethod
    def states_equal(first: Optional[StateNode], second: Optional[StateNode]) -> bool:
        if first is None and second is None:
            return True
        if first is None or second is None:
            return False
        return first.fingerprint == second.fingerprint

    def get_state(self, fingerprint: str) -> Optional[StateNode]:
        return self._states.get(fingerprint)

    def states(self) -> List[StateNode]:
        return list(self._states.values())

    def get_history(self) -> List[Transition]:
        return list(self._history)

    def get_recent(self, count: int = 5) -> List[Transition]:
        if count <= 0:
            return []
        return self._history[-count:]

    def previous_observation(self) -> Optional[Observation]:
        """The observation captured just before the current one."""
        last = self._path.last_step()
        return last.initial if last else None

    def has_visited(self, path: str) -> bool:
        target = normalize_path(path)
        return any(normalize_path(t.to_state.relative_path) == target for t in self._history)

    def visit_count(self, path: str) -> int:
        target = normalize_path(path)
        return sum(1 for t in self._history if normalize_path(t.to_state.relative_path) == target)

    def last_visit(self, path: str) -> Optional[Transition]:
        target = normalize_path(path)
        for transition in reversed(self._history):
            if normalize_path(transition.to_state.relative_path) == target:
                return transition
        return None

    # -- dead loops ------------------------------------------------------

    def _trailing_dead_loop_window(self) -> Optional[List[str]]:
        fingerprints = [t.to_state.fingerprint for t in self._history]
        window_size = self.dead_loop.window
        unique_limit = self.dead_loop.unique_limit

        if window_size < 1 or len(fingerprints) < window_size:
            return None

        current = self._current.fingerprint if self._current else fingerprints[-1]

        while window_size <= len(fingerprints):
            window = fingerprints[-window_size:]
            if current not in window:
                return None
            if len(set(window)) <= unique_limit:
                return window
            window_size += max(1, self.dead_loop.window_step)
            unique_limit += 1

        return None

    def is_in_dead_loop(self) -> bool:
        """
        True when the trailing transitions keep cycling through a few states.

        Evaluated from the stored history on every call: the smallest window
        may hold unique_limit states, and each larger window (grown by
        window_step) may hold one more.
        """
        window = self._trailing_dead_loop_window()
        if window is not None:
            logger.warning(f"♻️ Dead loop detected: {', '.join(window)}")
            return True
        return False

    def assert_progress(self) -> None:
        """Raise DeadLoopDetected when the agent is oscillating."""
        window = self._trailing_dead_loop_window()
        if window is not None:
            raise DeadLoopDetected(window)

    # -- lifecycle -------------------------------------------------------

    def reset(self) -> None:
        """Forget all states, history and the current node. Listeners stay."""
        self._states.clear()
        self._history.clear()
        self._path.clear()
        self._current = None
        self._current_observation = None
        logger.info("🧹 State history cleared")

    def cleanup(self) -> None:
        self.reset()
        self.clear_listeners()

    # -- reporting -------------------------------------------------------

    def summary(self) -> Dict[str, Any]:
        """Get state analysis summary."""
        most_visited = sorted(self._states.values(), key=lambda n: n.visit_count, reverse=True)[:5]
        recent = sorted(self._states.values(), key=lambda n: n.last_seen, reverse=True)[:5]

        states_by_path: Dict[str, int] = {}
        for node in self._states.values():
            states_by_path[node.relative_path] = states_by_path.get(node.relative_path, 0) + 1
        complex_paths = {path: count for path, count in states_by_path.items() if count > 1}

        return {
            'total_states_discovered': len(self._states),
            'total_state_transitions': len(self._history),
            'unique_paths_visited': len(states_by_path),
            'complex_paths': len(complex_paths),
            'current_state': self._current.fingerprint if self._current else None,
            'most_visited_states': [
                {
                    'fingerprint': node.fingerprint,
                    'visit_count': node.visit_count,
                    'path': node.relative_path
                }
                for node in most_visited
            ],
            'recent_states': [
                {
                    'fingerprint': node.fingerprint,
                    'path': node.relative_path,
                    'title': node.title,
                    'last_seen': node.last_seen.isoformat()
                }
                for node in recent
            ],
            'complex_paths_detail': complex_paths
        }

    def graph_data(self) -> Dict[str, Any]:
        """Get nodes and aggregated edges for graph visualization."""
        nodes = [
            {
                'id': node.fingerprint,
                'label': node.title or node.relative_path,
                'path': node.relative_path,
                'visit_count': node.visit_count
            }
            for node in self._states.values()
        ]

        edge_counts: Dict[tuple, int] = {}
        for transition in self._history:
            if transition.from_state is None:
                continue
            key = (transition.from_state.fingerprint, transition.to_state.fingerprint)
            edge_counts[key] = edge_counts.get(key, 0) + 1

        edges = [
            {'from': source, 'to': target, 'count': count, 'label': str(count)}
            for (source, target), count in edge_counts.items()
        ]

        return {
            'nodes': nodes,
            'edges': edges,
            'stats': {
                'total_nodes': len(nodes),
                'total_edges': len(edges),
                'total_transitions': len(self._history)
            }
        }

    def export_to_dict(self) -> Dict[str, Any]:
        """Export all state data to dictionary format."""
        return {
            'states': {fingerprint: node.to_dict() for fingerprint, node in self._states.items()},
            'transitions': [
                {
                    'from_state': t.from_state.fingerprint if t.from_state else None,
                    'to_state': t.to_state.fingerprint,
                    'trigger': t.trigger.value,
                    'action': t.action,
                    'error': t.error,
                    'timestamp': t.timestamp.isoformat()
                }
                for t in self._history
            ],
            'path': self._path.summary(),
            'summary': self.summary()
        }
