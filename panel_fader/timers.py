"""Fire-once timers on the asyncio loop.

Everything in the fader suspends through a timer source with three calls:
``after(delay_ms, callback) -> handle``, ``cancel(handle)`` and ``now()``
(seconds on a monotonic clock). Tests substitute a virtual clock.
"""

import asyncio


class LoopTimers:
    def __init__(self, loop=None):
        self._loop = loop or asyncio.get_running_loop()

    def after(self, delay_ms, callback):
        return self._loop.call_later(max(0, delay_ms) / 1000.0, callback)

    def cancel(self, handle):
        # Cancelling a handle that already ran is a no-op for asyncio.
        if handle is not None:
            handle.cancel()

    def now(self):
        return self._loop.time()
