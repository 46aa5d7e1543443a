"""
Interrupt Coordination

Mediates between a human operator and an in-flight autonomous iteration. The
UI layer calls signal_interrupt() (e.g. from a keypress handler) and registers
a callback that collects a replacement instruction; the scheduler awaits the
signal and asks for that instruction between iterations.

The coordinator is an explicitly constructed service: create one per
exploration session and pass it to both the scheduler and the UI layer.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from rich.prompt import Prompt

from ..errors import InterruptUnavailable

logger = logging.getLogger(__name__)

InputCallback = Callable[[str], Awaitable[Optional[str]]]
InterruptListener = Callable[[], None]

DEFAULT_PROMPT = "Execution interrupted. What should we do instead?"
DEFAULT_STOP_KEYWORDS = ("stop", "exit")


def is_stop_instruction(instruction: Optional[str],
                        keywords: Iterable[str] = DEFAULT_STOP_KEYWORDS) -> bool:
    """True for a missing/blank instruction or one of the stop keywords (case-insensitive)."""
    if instruction is None:
        return True
    cleaned = instruction.strip().lower()
    if not cleaned:
        return True
    return cleaned in {keyword.lower() for keyword in keywords}


class InterruptCoordinator:
    """Holds the interrupt flag and the operator input callback."""

    def __init__(self, input_callback: Optional[InputCallback] = None,
                 prompt: str = DEFAULT_PROMPT, console_fallback: bool = True):
        self.prompt = prompt
        self.console_fallback = console_fallback
        self._input_callback = input_callback
        self._interrupted = False
        self._event: Optional[asyncio.Event] = None
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._listeners: List[InterruptListener] = []

    def set_input_callback(self, callback: Optional[InputCallback]) -> None:
        self._input_callback = callback

    def on_interrupt(self, listener: InterruptListener) -> Callable[[], None]:
        """Subscribe to interrupt signals. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    def _get_event(self) -> asyncio.Event:
        """Event bound to the running loop; rebuilt when the loop changes."""
        loop = asyncio.get_running_loop()
        if self._event is None or self._event_loop is not loop:
            self._event = asyncio.Event()
            self._event_loop = loop
            if self._interrupted:
                self._event.set()
        return self._event

    def signal_interrupt(self) -> None:
        """
        Request an interrupt. Repeated calls before it is handled are ignored.

        Must be called on the event loop's thread; use
        signal_interrupt_threadsafe() from other threads.
        """
        if self._interrupted:
            return
        self._interrupted = True
        if self._event is not None:
            self._event.set()
        logger.info("⏸️ Interrupt requested")

        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Error in interrupt listener: {e}")

    def signal_interrupt_threadsafe(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        Request an interrupt from a thread other than the loop's (e.g. a keypress handler).

        Args:
            loop: Loop to signal on; defaults to the loop currently waiting on
                this coordinator
        """
        loop = loop or self._event_loop
        if loop is None or loop.is_closed():
            self.signal_interrupt()
            return
        loop.call_soon_threadsafe(self.signal_interrupt)

    async def wait_for_interrupt(self) -> None:
        """Return once an interrupt has been signalled."""
        await self._get_event().wait()

    async def check_interrupt(self, prompt: Optional[str] = None) -> Optional[str]:
        """
        Collect the operator's instruction if an interrupt is pending.

        Returns:
            The stripped instruction, or None when nothing is pending or the
            operator entered nothing
        """
        if not self._interrupted:
            return None

        try:
            instruction = await self.request_input(prompt or self.prompt)
        finally:
            self.reset()
        return instruction

    async def request_input(self, prompt: str) -> Optional[str]:
        """Ask the operator for an instruction."""
        if self._input_callback is not None:
            answer = await self._input_callback(prompt)
        elif self.console_fallback:
            answer = await asyncio.to_thread(Prompt.ask, prompt, default="", show_default=False)
        else:
            raise InterruptUnavailable("No input callback registered and console input is disabled")

        if answer is None:
            return None
        answer = answer.strip()
        return answer or None

    def reset(self) -> None:
        self._interrupted = False
        if self._event is not None:
            self._event.clear()
