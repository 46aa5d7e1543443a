"""
Tracing

A tracer wraps a scheduler run in a named span. The default NullTracer does
nothing; Observability keeps an in-process trace that nested spans join, so
downstream LLM calls can attach the same trace id.
"""

import logging
import secrets
import time
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, AsyncIterator, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Tracer(Protocol):
    """Anything that can open a named async span."""

    def span(self, name: str, metadata: Dict[str, Any]) -> AsyncContextManager[None]:
        ...


class NullTracer:
    """Tracer that records nothing."""

    @asynccontextmanager
    async def span(self, name: str, metadata: Dict[str, Any]) -> AsyncIterator[None]:
        yield


@dataclass
class SpanRecord:
    name: str
    trace_id: str
    duration: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class _TraceState:
    trace_id: str
    metadata: Dict[str, Any]
    update_parent: bool = True


class Observability:
    """
    In-process tracer.

    The outermost span starts a trace; spans opened inside it join that trace
    instead of starting their own. The active trace is tracked per asyncio
    task (via contextvars), so concurrent runs each get their own trace and
    tasks spawned inside a span inherit it.
    """

    def __init__(self):
        self._trace: ContextVar[Optional[_TraceState]] = ContextVar(
            f"waymark_trace_{id(self)}", default=None
        )
        self.spans: List[SpanRecord] = []

    @property
    def current_trace_id(self) -> Optional[str]:
        state = self._trace.get()
        return state.trace_id if state else None

    @asynccontextmanager
    async def span(self, name: str, metadata: Dict[str, Any]) -> AsyncIterator[None]:
        state = self._trace.get()
        token = None
        if state is None:
            trace_id = metadata.get('trace_id') or secrets.token_hex(16)
            state = _TraceState(trace_id=trace_id, metadata={**metadata, 'trace_id': trace_id})
            token = self._trace.set(state)

        began = time.monotonic()
        try:
            yield
        finally:
            self.spans.append(SpanRecord(name, state.trace_id, time.monotonic() - began, dict(metadata)))
            if token is not None:
                self._trace.reset(token)
            logger.debug(f"Span finished: {name} ({state.trace_id})")

    def telemetry(self) -> Optional[Dict[str, Any]]:
        """
        Metadata for the active trace, or None outside a trace.

        update_parent is True only on the first call within a trace.
        """
        state = self._trace.get()
        if state is None:
            return None

        telemetry = {
            'is_enabled': True,
            'metadata': {
                **state.metadata,
                'trace_id': state.trace_id,
                'update_parent': state.update_parent
            }
        }
        state.update_parent = False
        return telemetry
