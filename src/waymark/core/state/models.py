"""
State graph records: deduplicated state nodes and the transitions between them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from dataclasses_json import DataClassJsonMixin

from .observation import ArtifactRefs, Observation


class Trigger(str, Enum):
    """What caused a state change."""
    MANUAL = "manual"
    NAVIGATION = "navigation"
    AUTOMATIC = "automatic"


@dataclass(eq=False)
class StateNode(DataClassJsonMixin):
    """
    One distinct observed state, keyed by fingerprint.

    Nodes compare by identity: the registry hands out the same object every
    time the fingerprint is seen again.
    """
    fingerprint: str
    relative_path: str
    full_url: Optional[str] = None
    title: Optional[str] = None
    h1: Optional[str] = None
    h2: Optional[str] = None
    h3: Optional[str] = None
    h4: Optional[str] = None
    aria_snapshot: Optional[str] = None
    artifacts: Optional[ArtifactRefs] = None
    visit_count: int = 0
    first_seen: datetime = field(default_factory=datetime.now)
    last_seen: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_observation(cls, observation: Observation) -> 'StateNode':
        return cls(
            fingerprint=observation.fingerprint(),
            relative_path=observation.relative_path,
            full_url=observation.full_url,
            title=observation.title,
            h1=observation.h1,
            h2=observation.h2,
            h3=observation.h3,
            h4=observation.h4,
            aria_snapshot=observation.aria_snapshot,
            artifacts=observation.artifacts,
            first_seen=observation.timestamp,
            last_seen=observation.timestamp
        )


@dataclass(frozen=True)
class Transition:
    """A recorded move from one state node to another."""
    from_state: Optional[StateNode]
    to_state: StateNode
    trigger: Trigger = Trigger.MANUAL
    action: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    observation: Optional[Observation] = None
    error: Optional[str] = None

    def describe(self) -> str:
        origin = self.from_state.fingerprint if self.from_state else '(start)'
        return f"{origin} → {self.to_state.fingerprint} [{self.trigger.value}]"
