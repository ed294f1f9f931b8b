"""Collapses bursts of recompute requests into single firings."""

import logging

logger = logging.getLogger(__name__)


class DebounceScheduler:
    """Last-call-wins debounce with a forced immediate path.

    ``fire`` is called with ``force=False`` from a debounced firing and
    ``force=True`` from ``schedule_immediate``.
    """

    def __init__(self, timers, fire):
        self._timers = timers
        self._fire = fire
        self._handle = None

    @property
    def pending(self):
        return self._handle is not None

    def schedule_debounced(self, after_ms):
        self.cancel()
        self._handle = self._timers.after(after_ms, self._on_timer)

    def schedule_immediate(self):
        self.cancel()
        self._fire(True)

    def cancel(self):
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            self._timers.cancel(handle)
        except Exception:
            logger.exception("Failed to cancel pending recompute")

    def _on_timer(self):
        self._handle = None
        self._fire(False)
