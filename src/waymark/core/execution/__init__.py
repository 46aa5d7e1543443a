"""
Iteration control: scheduler, operator interrupts, tracing and retry.
"""

from .interrupts import InterruptCoordinator, is_stop_instruction
from .retry import RetryOptions, with_retry
from .scheduler import (
    CatchContext, Continue, IterationScheduler, LoopContext, LoopReport,
    LoopStatus, Retry, Stop, TraceOptions, loop
)
from .tracing import NullTracer, Observability, Tracer

__all__ = [
    'IterationScheduler', 'LoopContext', 'CatchContext', 'LoopReport', 'LoopStatus',
    'Continue', 'Stop', 'Retry', 'TraceOptions', 'loop',
    'InterruptCoordinator', 'is_stop_instruction',
    'Tracer', 'NullTracer', 'Observability',
    'RetryOptions', 'with_retry'
]
