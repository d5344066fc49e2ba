"""
Cooperative cancellation shared by the pollers and the writer loop.
"""

import asyncio
import logging
import os
import signal

log = logging.getLogger(__name__)


class Stopper:
    """
    A broadcast stop signal.

    `stop()` sets the flag and wakes every task blocked in `wait()`. Stopping is
    permanent for the lifetime of the instance; every task holding a reference
    observes the same flag.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def stop(self) -> None:
        if not self._event.is_set():
            log.debug("Stop requested")
        self._event.set()

    def stopped(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Suspends until `stop()` is called, returning at once if it already was."""
        await self._event.wait()


def install_interrupt_handler(stopper: Stopper) -> None:
    """
    Routes SIGINT to the stopper. The first interrupt requests a graceful stop,
    the second terminates the process immediately.
    """
    loop = asyncio.get_running_loop()

    def on_interrupt() -> None:
        if stopper.stopped():
            log.warning("[red]Interrupted again, exiting immediately[/red]")
            os._exit(1)
        log.warning(
            "[yellow]Stopping capture, press Ctrl-C again to exit immediately[/yellow]"
        )
        stopper.stop()

    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
    except NotImplementedError:
        # Windows event loops have no add_signal_handler
        signal.signal(signal.SIGINT, lambda *_: loop.call_soon_threadsafe(on_interrupt))


def remove_interrupt_handler() -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.remove_signal_handler(signal.SIGINT)
    except NotImplementedError:
        signal.signal(signal.SIGINT, signal.default_int_handler)
