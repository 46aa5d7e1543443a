#!/usr/bin/env python3
"""
Tests for the iteration scheduler.
"""

import asyncio
import logging

import pytest

from waymark.config.exploration import ExplorationConfig, SchedulerConfig
from waymark.core.errors import InterruptUnavailable
from waymark.core.execution.interrupts import InterruptCoordinator
from waymark.core.execution.scheduler import (
    Continue, IterationScheduler, LoopStatus, Retry, Stop, TraceOptions, loop
)
from waymark.core.execution.tracing import Observability


def operator(answer):
    async def callback(prompt):
        return answer
    return callback


@pytest.mark.asyncio
async def test_stop_on_second_iteration():
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        if ctx.iteration == 2:
            return Stop(f"result-{ctx.iteration}")
        return Continue(f"result-{ctx.iteration}")

    scheduler = IterationScheduler(max_attempts=5)
    result = await scheduler.run(handler)

    assert result == 'result-2'
    assert calls == [1, 2]
    assert scheduler.last_report.status == LoopStatus.STOPPED
    assert scheduler.last_report.iterations == 2


@pytest.mark.asyncio
async def test_stop_from_nested_call():
    calls = []

    def finish(ctx):
        ctx.stop()

    async def handler(ctx):
        calls.append(ctx.iteration)
        if ctx.iteration == 2:
            finish(ctx)
        return ctx.iteration

    result = await IterationScheduler(max_attempts=5).run(handler)

    assert result == 2
    assert calls == [1, 2]


@pytest.mark.asyncio
async def test_exhaustion_returns_last_result():
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        return ctx.iteration * 10

    scheduler = IterationScheduler(max_attempts=5)
    result = await scheduler.run(handler)

    assert result == 50
    assert calls == [1, 2, 3, 4, 5]
    assert scheduler.last_report.status == LoopStatus.EXHAUSTED
    assert scheduler.last_report.message == 'Loop exhausted after 5 iterations'


@pytest.mark.asyncio
async def test_retry_keeps_previous_result():
    async def handler(ctx):
        if ctx.iteration == 1:
            return Continue('first')
        return Retry('still loading')

    assert await IterationScheduler(max_attempts=3).run(handler) == 'first'


@pytest.mark.asyncio
async def test_error_without_policy_propagates():
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        raise ValueError('selector not found')

    scheduler = IterationScheduler(max_attempts=5)
    with pytest.raises(ValueError):
        await scheduler.run(handler)

    assert calls == [1]
    assert scheduler.last_report.status == LoopStatus.FAILED
    assert isinstance(scheduler.last_report.last_error, ValueError)


@pytest.mark.asyncio
async def test_error_policy_can_continue():
    seen = []

    async def handler(ctx):
        if ctx.iteration == 1:
            raise ValueError('flaky click')
        return Stop('recovered')

    scheduler = IterationScheduler(max_attempts=5, on_error=lambda ctx: seen.append((ctx.iteration, str(ctx.error))))

    assert await scheduler.run(handler) == 'recovered'
    assert seen == [(1, 'flaky click')]


@pytest.mark.asyncio
async def test_error_policy_can_stop():
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        raise ValueError('page crashed')

    def policy(ctx):
        ctx.stop()

    scheduler = IterationScheduler(max_attempts=5, on_error=policy)

    assert await scheduler.run(handler) is None
    assert calls == [1]
    assert scheduler.last_report.status == LoopStatus.STOPPED


@pytest.mark.asyncio
async def test_async_error_policy_can_raise():
    async def handler(ctx):
        raise ValueError('page crashed')

    async def policy(ctx):
        raise RuntimeError('giving up') from ctx.error

    scheduler = IterationScheduler(max_attempts=5, on_error=policy)
    with pytest.raises(RuntimeError):
        await scheduler.run(handler)

    assert scheduler.last_report.status == LoopStatus.FAILED


@pytest.mark.asyncio
async def test_exhaustion_after_handled_errors():
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        raise ValueError('always failing')

    scheduler = IterationScheduler(max_attempts=3, on_error=lambda ctx: None)

    assert await scheduler.run(handler) is None
    assert calls == [1, 2, 3]
    assert scheduler.last_report.status == LoopStatus.EXHAUSTED
    assert isinstance(scheduler.last_report.last_error, ValueError)


@pytest.mark.asyncio
async def test_interrupt_with_stop_ends_run():
    coordinator = InterruptCoordinator(operator('stop'))
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        coordinator.signal_interrupt()
        await asyncio.sleep(0.05)
        return Continue('never recorded')

    scheduler = IterationScheduler(max_attempts=5, interrupts=coordinator)
    result = await scheduler.run(handler)
    await asyncio.sleep(0.1)

    assert result is None
    assert calls == [1]
    assert scheduler.last_report.status == LoopStatus.INTERRUPTED
    assert scheduler.last_report.instruction == 'stop'
    assert not coordinator.interrupted


@pytest.mark.asyncio
async def test_interrupt_instruction_reaches_next_iteration():
    coordinator = InterruptCoordinator(operator('go to settings'))
    instructions = []
    hooked = []

    async def handler(ctx):
        instructions.append(ctx.instruction)
        if ctx.iteration == 1:
            coordinator.signal_interrupt()
            await asyncio.sleep(0.05)
            return Continue('abandoned')
        return Stop(ctx.instruction)

    scheduler = IterationScheduler(
        max_attempts=5,
        interrupts=coordinator,
        on_interrupt=lambda instruction, iteration: hooked.append((instruction, iteration))
    )
    result = await scheduler.run(handler)
    await asyncio.sleep(0.1)

    assert result == 'go to settings'
    assert instructions == [None, 'go to settings']
    assert hooked == [('go to settings', 1)]


@pytest.mark.asyncio
async def test_interrupt_after_handler_returns_is_handled_before_next_iteration():
    coordinator = InterruptCoordinator(operator('exit'))
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        coordinator.signal_interrupt()
        return f"done-{ctx.iteration}"

    scheduler = IterationScheduler(max_attempts=5, interrupts=coordinator)
    result = await scheduler.run(handler)

    assert result == 'done-1'
    assert calls == [1]
    assert scheduler.last_report.status == LoopStatus.INTERRUPTED
    assert scheduler.last_report.iterations == 1


@pytest.mark.asyncio
async def test_interrupts_ignored_when_disabled():
    coordinator = InterruptCoordinator(operator('stop'))
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        coordinator.signal_interrupt()
        return ctx.iteration

    scheduler = IterationScheduler(max_attempts=3, interrupts=coordinator, interruptible=False)

    assert await scheduler.run(handler) == 3
    assert calls == [1, 2, 3]
    assert coordinator.interrupted


@pytest.mark.asyncio
async def test_abandoned_iteration_failure_is_logged(caplog):
    coordinator = InterruptCoordinator(operator('stop'))

    async def handler(ctx):
        coordinator.signal_interrupt()
        await asyncio.sleep(0.01)
        raise ValueError('late failure')

    with caplog.at_level(logging.WARNING):
        await IterationScheduler(max_attempts=5, interrupts=coordinator).run(handler)
        await asyncio.sleep(0.05)

    assert 'Abandoned iteration failed: late failure' in caplog.text


@pytest.mark.asyncio
async def test_pause_asks_operator():
    coordinator = InterruptCoordinator(operator('slow down'))

    async def handler(ctx):
        return Stop(await ctx.pause())

    assert await IterationScheduler(interrupts=coordinator).run(handler) == 'slow down'


@pytest.mark.asyncio
async def test_pause_without_operator():
    async def handler(ctx):
        return Stop(await ctx.pause('Anything?'))

    assert await IterationScheduler().run(handler) is None


@pytest.mark.asyncio
async def test_run_is_wrapped_in_span():
    tracer = Observability()
    telemetry = []

    async def handler(ctx):
        telemetry.append(tracer.telemetry())
        return Stop('traced')

    scheduler = IterationScheduler(
        tracer=tracer,
        trace=TraceOptions(agent='navigator', session_id='s-1')
    )

    assert await scheduler.run(handler) == 'traced'
    assert len(tracer.spans) == 1
    span = tracer.spans[0]
    assert span.name == 'navigator.loop'
    assert span.metadata == {'session_id': 's-1', 'tags': ['navigator']}
    assert telemetry[0]['metadata']['trace_id'] == span.trace_id
    assert tracer.current_trace_id is None


@pytest.mark.asyncio
async def test_untraced_run_opens_no_span():
    tracer = Observability()

    async def handler(ctx):
        return Stop(None)

    await IterationScheduler(tracer=tracer).run(handler)

    assert tracer.spans == []


def test_trace_options_defaults():
    assert TraceOptions().span_name() == 'loop'
    assert TraceOptions(name='custom', agent='navigator').span_name() == 'custom'
    assert TraceOptions(tags=['a'], metadata={'k': 'v'}).span_metadata() == {'k': 'v', 'tags': ['a']}


@pytest.mark.asyncio
async def test_from_config():
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)

    config = ExplorationConfig(scheduler=SchedulerConfig(max_attempts=2))
    await IterationScheduler.from_config(config).run(handler)
    assert calls == [1, 2]

    calls.clear()
    await IterationScheduler.from_config(config, max_attempts=3).run(handler)
    assert calls == [1, 2, 3]


@pytest.mark.asyncio
async def test_loop_helper():
    async def handler(ctx):
        return Stop(ctx.iteration) if ctx.iteration == 3 else Continue(ctx.iteration)

    assert await loop(handler, max_attempts=10) == 3


def test_coordinator_reused_across_event_loops():
    coordinator = InterruptCoordinator(operator('stop'))
    calls = []

    async def handler(ctx):
        calls.append(ctx.iteration)
        return ctx.iteration

    async def run():
        scheduler = IterationScheduler(max_attempts=3, interrupts=coordinator)
        result = await scheduler.run(handler)
        return result, scheduler.last_report.status

    assert asyncio.run(run()) == (3, LoopStatus.EXHAUSTED)
    assert asyncio.run(run()) == (3, LoopStatus.EXHAUSTED)
    assert calls == [1, 2, 3, 1, 2, 3]


class LostInterruptSource(InterruptCoordinator):
    async def wait_for_interrupt(self):
        raise RuntimeError('interrupt source lost')


@pytest.mark.asyncio
async def test_failed_interrupt_wait_is_an_error_not_an_interrupt():
    async def handler(ctx):
        await asyncio.sleep(0.01)
        return ctx.iteration

    scheduler = IterationScheduler(max_attempts=3, interrupts=LostInterruptSource(operator('stop')))
    with pytest.raises(RuntimeError, match='interrupt source lost'):
        await scheduler.run(handler)
    await asyncio.sleep(0.05)

    assert scheduler.last_report.status == LoopStatus.FAILED
    assert scheduler.last_report.instruction is None


@pytest.mark.asyncio
async def test_missing_operator_input_fails_the_run():
    coordinator = InterruptCoordinator(console_fallback=False)

    async def handler(ctx):
        coordinator.signal_interrupt()
        return ctx.iteration

    scheduler = IterationScheduler(max_attempts=3, interrupts=coordinator)
    with pytest.raises(InterruptUnavailable):
        await scheduler.run(handler)

    assert scheduler.last_report.status == LoopStatus.FAILED
    assert isinstance(scheduler.last_report.last_error, InterruptUnavailable)
