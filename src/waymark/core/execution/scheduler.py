"""
Iteration Scheduler

Runs an async handler repeatedly until it asks to stop, the attempt bound is
reached, or an unrecoverable error escapes. Each handler invocation can be
raced against an operator interrupt, and the whole run can be wrapped in a
tracing span.

Handlers return a tagged outcome instead of raising to control the loop:

    async def step(ctx: LoopContext):
        if done():
            return Stop(result)
        if flaky():
            return Retry("page still loading")
        return Continue(partial)

ctx.stop() sets a flag that nested calls can flip; the scheduler honours it as
soon as the current handler invocation returns.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from ...config.exploration import ExplorationConfig
from .interrupts import DEFAULT_STOP_KEYWORDS, InterruptCoordinator, is_stop_instruction
from .tracing import NullTracer, Tracer

logger = logging.getLogger(__name__)


class LoopStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    EXHAUSTED = "exhausted"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass(frozen=True)
class Continue:
    """Record value as the latest result and keep iterating."""
    value: Any = None


@dataclass(frozen=True)
class Stop:
    """Record value as the final result and end the run."""
    value: Any = None


@dataclass(frozen=True)
class Retry:
    """Keep the previous result and try again (consumes an attempt)."""
    reason: Optional[str] = None


LoopOutcome = Union[Continue, Stop, Retry]


class _StopFlag:
    def __init__(self):
        self.requested = False

    def __call__(self) -> None:
        self.requested = True


@dataclass
class LoopContext:
    """Per-iteration context handed to the handler."""
    iteration: int
    instruction: Optional[str] = None
    _stop: _StopFlag = field(default_factory=_StopFlag, repr=False)
    _pause: Optional[Callable[[Optional[str]], Awaitable[Optional[str]]]] = field(default=None, repr=False)

    def stop(self) -> None:
        """Ask the scheduler to end the run once this invocation returns."""
        self._stop()

    @property
    def stop_requested(self) -> bool:
        return self._stop.requested

    async def pause(self, prompt: Optional[str] = None) -> Optional[str]:
        """Ask the operator for a fresh instruction and return it."""
        if self._pause is None:
            return None
        return await self._pause(prompt)


@dataclass
class CatchContext:
    """Context handed to the error policy."""
    error: Exception
    iteration: int
    _stop: _StopFlag = field(default_factory=_StopFlag, repr=False)

    def stop(self) -> None:
        self._stop()

    @property
    def stop_requested(self) -> bool:
        return self._stop.requested


@dataclass
class TraceOptions:
    """Identifiers attached to the span that wraps a run."""
    name: Optional[str] = None
    agent: Optional[str] = None
    session_id: Optional[str] = None
    tags: Optional[List[str]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def span_name(self) -> str:
        if self.name:
            return self.name
        return f"{self.agent}.loop" if self.agent else "loop"

    def span_metadata(self) -> Dict[str, Any]:
        metadata = dict(self.metadata)
        if self.session_id:
            metadata['session_id'] = self.session_id
        tags = self.tags if self.tags is not None else ([self.agent] if self.agent else None)
        if tags:
            metadata['tags'] = list(tags)
        return metadata


@dataclass
class LoopReport:
    """How the last run ended."""
    status: LoopStatus = LoopStatus.RUNNING
    iterations: int = 0
    last_error: Optional[BaseException] = None
    instruction: Optional[str] = None

    @property
    def message(self) -> str:
        if self.status == LoopStatus.STOPPED:
            return f"Loop stopped at iteration {self.iterations}"
        if self.status == LoopStatus.INTERRUPTED:
            return f"Loop interrupted by operator at iteration {self.iterations}"
        if self.status == LoopStatus.FAILED:
            return f"Loop failed at iteration {self.iterations}: {self.last_error!r}"
        if self.status == LoopStatus.EXHAUSTED:
            message = f"Loop exhausted after {self.iterations} iterations"
            if self.last_error is not None:
                message += f"; last error: {self.last_error!r}"
            return message
        return f"Loop running (iteration {self.iterations})"


Handler = Callable[[LoopContext], Awaitable[Any]]
ErrorPolicy = Callable[[CatchContext], Any]
InterruptHook = Callable[[str, int], Any]

_INTERRUPTED = object()


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class IterationScheduler:
    """
    Cooperative loop driver for agent iterations.

    Args:
        max_attempts: Upper bound on handler invocations
        interrupts: Coordinator to race each invocation against
        interruptible: Set False to ignore the coordinator
        on_error: Policy called with CatchContext for handler errors; without
            one, errors propagate and abort the run
        on_interrupt: Hook called with (instruction, iteration) before the
            instruction is carried into the next iteration
        tracer: Span provider; NullTracer when omitted
        trace: Span identifiers; the run is traced only when given
        stop_keywords: Operator answers that end the run
        interrupt_prompt: Prompt shown when collecting an instruction
    """

    def __init__(self, max_attempts: int = 5,
                 interrupts: Optional[InterruptCoordinator] = None,
                 interruptible: bool = True,
                 on_error: Optional[ErrorPolicy] = None,
                 on_interrupt: Optional[InterruptHook] = None,
                 tracer: Optional[Tracer] = None,
                 trace: Optional[TraceOptions] = None,
                 stop_keywords: Iterable[str] = DEFAULT_STOP_KEYWORDS,
                 interrupt_prompt: Optional[str] = None):
        self.max_attempts = max_attempts
        self.interrupts = interrupts
        self.interruptible = interruptible
        self.on_error = on_error
        self.on_interrupt = on_interrupt
        self.tracer = tracer or NullTracer()
        self.trace = trace
        self.stop_keywords = tuple(stop_keywords)
        self.interrupt_prompt = interrupt_prompt

        self.last_report = LoopReport()
        self._abandoned: Set[asyncio.Future] = set()

    @classmethod
    def from_config(cls, config: ExplorationConfig, **overrides) -> 'IterationScheduler':
        options = {
            'max_attempts': config.scheduler.max_attempts,
            'interruptible': config.scheduler.interruptible,
            'stop_keywords': config.scheduler.stop_keywords,
            'interrupt_prompt': config.scheduler.interrupt_prompt,
        }
        options.update(overrides)
        return cls(**options)

    @property
    def _can_interrupt(self) -> bool:
        return self.interruptible and self.interrupts is not None

    async def run(self, handler: Handler) -> Any:
        """
        Run handler until it stops, attempts run out, or an error escapes.

        Returns:
            The result of the last completed iteration (None if none completed)
        """
        if self.trace is None:
            return await self._run(handler)

        async with self.tracer.span(self.trace.span_name(), self.trace.span_metadata()):
            return await self._run(handler)

    async def _run(self, handler: Handler) -> Any:
        report = LoopReport()
        self.last_report = report
        result = None
        instruction: Optional[str] = None

        for iteration in range(1, self.max_attempts + 1):
            report.iterations = iteration
            if iteration > 1:
                logger.debug(f"Loop iteration {iteration}/{self.max_attempts}")

            # An interrupt that arrived after the previous handler returned
            if self._can_interrupt and self.interrupts.interrupted:
                should_stop, instruction = await self._handle_interrupt(iteration - 1, report)
                if should_stop:
                    report.iterations = iteration - 1
                    return result

            context = LoopContext(iteration, instruction, _pause=self._pause_for(iteration))
            instruction = None

            try:
                outcome = await self._invoke(handler, context)
            except Exception as error:
                report.last_error = error
                if self.on_error is None:
                    report.status = LoopStatus.FAILED
                    logger.error(f"💥 {report.message}")
                    raise

                catch_context = CatchContext(error, iteration)
                try:
                    await _maybe_await(self.on_error(catch_context))
                except Exception:
                    report.status = LoopStatus.FAILED
                    logger.error(f"💥 {report.message}")
                    raise

                if catch_context.stop_requested or context.stop_requested:
                    report.status = LoopStatus.STOPPED
                    logger.info(f"🏁 Loop stopped via error policy at iteration {iteration}")
                    return result

                logger.warning(f"Loop error at iteration {iteration}: {error}")
                continue

            if outcome is _INTERRUPTED:
                should_stop, instruction = await self._handle_interrupt(iteration, report)
                if should_stop:
                    return result
                continue

            if isinstance(outcome, Retry):
                logger.debug(f"Iteration {iteration} asked to retry: {outcome.reason}")
            elif isinstance(outcome, (Continue, Stop)):
                result = outcome.value
            else:
                result = outcome

            if isinstance(outcome, Stop) or context.stop_requested:
                report.status = LoopStatus.STOPPED
                logger.debug(f"🏁 {report.message}")
                return result

        report.status = LoopStatus.EXHAUSTED
        if report.last_error is not None:
            logger.warning(f"⚠️ {report.message}")
        else:
            logger.info(report.message)
        return result

    async def _invoke(self, handler: Handler, context: LoopContext) -> Any:
        """Await the handler, or race it against an interrupt signal."""
        if not self._can_interrupt:
            return await handler(context)

        handler_task = asyncio.ensure_future(handler(context))
        interrupt_task = asyncio.ensure_future(self.interrupts.wait_for_interrupt())
        try:
            done, _ = await asyncio.wait(
                {handler_task, interrupt_task},
                return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            handler_task.cancel()
            interrupt_task.cancel()
            raise

        if handler_task in done:
            interrupt_task.cancel()
            return handler_task.result()

        wait_error = interrupt_task.exception()
        if wait_error is not None:
            logger.error(f"Interrupt wait failed: {wait_error}")
            self._abandon(handler_task)
            raise wait_error

        if not self.interrupts.interrupted:
            # Woken without a pending interrupt
            return await handler_task

        self._abandon(handler_task)
        return _INTERRUPTED

    def _abandon(self, task: asyncio.Future) -> None:
        """Let an interrupted invocation finish in the background; its result is discarded."""
        self._abandoned.add(task)
        task.add_done_callback(self._on_abandoned_done)
        logger.debug("Abandoned in-flight iteration after interrupt")

    def _on_abandoned_done(self, task: asyncio.Future) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Abandoned iteration failed: {error}")

    async def _handle_interrupt(self, iteration: int, report: LoopReport) -> Tuple[bool, Optional[str]]:
        """
        Collect the operator's instruction for a pending interrupt.

        Returns:
            (should_stop, instruction); (False, None) when nothing is pending
        """
        if not self.interrupts.interrupted:
            logger.debug(f"No interrupt pending after iteration {iteration}")
            return False, None

        try:
            instruction = await self.interrupts.check_interrupt(self.interrupt_prompt)
        except Exception as error:
            report.last_error = error
            report.status = LoopStatus.FAILED
            logger.error(f"💥 {report.message}")
            raise
        report.instruction = instruction

        if is_stop_instruction(instruction, self.stop_keywords):
            report.status = LoopStatus.INTERRUPTED
            logger.info(f"🛑 {report.message}")
            return True, None

        logger.info(f"↪️ Operator instruction after iteration {iteration}: {instruction}")
        if self.on_interrupt is not None:
            await _maybe_await(self.on_interrupt(instruction, iteration))
        return False, instruction

    def _pause_for(self, iteration: int) -> Callable[[Optional[str]], Awaitable[Optional[str]]]:
        async def pause(prompt: Optional[str] = None) -> Optional[str]:
            if self.interrupts is None:
                logger.info(f"Pause requested at iteration {iteration} but no operator is attached")
                return None
            return await self.interrupts.request_input(prompt or f"Paused at iteration {iteration}. Enter instruction:")

        return pause


async def loop(handler: Handler, max_attempts: int = 5, **options) -> Any:
    """Run handler with a one-off IterationScheduler and return its last result."""
    return await IterationScheduler(max_attempts=max_attempts, **options).run(handler)
