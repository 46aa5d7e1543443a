#!/usr/bin/env python3
"""
Tests for the interrupt coordinator.
"""

import asyncio

import pytest

from waymark.core.errors import InterruptUnavailable
from waymark.core.execution.interrupts import InterruptCoordinator, is_stop_instruction


def answering(answer):
    prompts = []

    async def callback(prompt):
        prompts.append(prompt)
        return answer

    callback.prompts = prompts
    return callback


def test_stop_instructions():
    assert is_stop_instruction(None)
    assert is_stop_instruction('')
    assert is_stop_instruction('   ')
    assert is_stop_instruction('STOP')
    assert is_stop_instruction(' exit ')
    assert not is_stop_instruction('stop at the cart page')
    assert is_stop_instruction('quit', keywords=('quit',))


@pytest.mark.asyncio
async def test_check_without_interrupt_returns_none():
    coordinator = InterruptCoordinator(answering('ignored'))

    assert await coordinator.check_interrupt() is None


@pytest.mark.asyncio
async def test_check_collects_stripped_instruction_and_resets():
    callback = answering('  open the settings page  ')
    coordinator = InterruptCoordinator(callback)

    coordinator.signal_interrupt()
    instruction = await coordinator.check_interrupt('What now?')

    assert instruction == 'open the settings page'
    assert callback.prompts == ['What now?']
    assert not coordinator.interrupted


@pytest.mark.asyncio
async def test_blank_answer_is_none():
    coordinator = InterruptCoordinator(answering('   '))
    coordinator.signal_interrupt()

    assert await coordinator.check_interrupt() is None


@pytest.mark.asyncio
async def test_signal_is_idempotent_and_listeners_are_isolated():
    coordinator = InterruptCoordinator(answering('go'))
    calls = []

    def broken():
        raise RuntimeError('listener exploded')

    coordinator.on_interrupt(broken)
    unsubscribe = coordinator.on_interrupt(lambda: calls.append('signal'))

    coordinator.signal_interrupt()
    coordinator.signal_interrupt()
    assert calls == ['signal']

    await coordinator.check_interrupt()
    unsubscribe()
    coordinator.signal_interrupt()
    assert calls == ['signal']


@pytest.mark.asyncio
async def test_wait_for_interrupt():
    coordinator = InterruptCoordinator()
    waiter = asyncio.ensure_future(coordinator.wait_for_interrupt())

    await asyncio.sleep(0)
    assert not waiter.done()

    coordinator.signal_interrupt()
    await asyncio.wait_for(waiter, timeout=1)
    assert coordinator.interrupted


@pytest.mark.asyncio
async def test_missing_input_source_raises():
    coordinator = InterruptCoordinator(console_fallback=False)
    coordinator.signal_interrupt()

    with pytest.raises(InterruptUnavailable):
        await coordinator.check_interrupt()

    assert not coordinator.interrupted


@pytest.mark.asyncio
async def test_console_fallback(monkeypatch):
    monkeypatch.setattr(
        'waymark.core.execution.interrupts.Prompt.ask',
        lambda *args, **kwargs: ' go left '
    )
    coordinator = InterruptCoordinator()

    assert await coordinator.request_input('Where to?') == 'go left'


@pytest.mark.asyncio
async def test_callback_can_be_replaced():
    coordinator = InterruptCoordinator(answering('first'))
    coordinator.set_input_callback(answering('second'))

    assert await coordinator.request_input('?') == 'second'


def test_wait_works_on_a_new_event_loop():
    coordinator = InterruptCoordinator(answering('go'))

    async def signal_and_wait():
        waiter = asyncio.ensure_future(coordinator.wait_for_interrupt())
        await asyncio.sleep(0)
        coordinator.signal_interrupt()
        await asyncio.wait_for(waiter, timeout=1)
        return await coordinator.check_interrupt()

    assert asyncio.run(signal_and_wait()) == 'go'
    assert asyncio.run(signal_and_wait()) == 'go'


@pytest.mark.asyncio
async def test_signal_from_worker_thread_wakes_waiter():
    coordinator = InterruptCoordinator()
    waiter = asyncio.ensure_future(coordinator.wait_for_interrupt())
    await asyncio.sleep(0)

    await asyncio.to_thread(coordinator.signal_interrupt_threadsafe)
    await asyncio.wait_for(waiter, timeout=1)

    assert coordinator.interrupted


@pytest.mark.asyncio
async def test_interrupt_signalled_before_waiting_is_seen():
    coordinator = InterruptCoordinator()
    coordinator.signal_interrupt()

    await asyncio.wait_for(coordinator.wait_for_interrupt(), timeout=1)
