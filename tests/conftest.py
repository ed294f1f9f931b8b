from contextlib import contextmanager
from itertools import count

import pytest

from panel_fader.errors import StyleApplicationFailed, WindowAttributeUnreadable
from panel_fader.models import WindowView
from panel_fader.topology import EventKind


class FakeHandle:
    def __init__(self, when, seq, callback):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False
        self.fired = False


class FakeTimers:
    """Virtual millisecond clock; callbacks run only inside ``advance``."""

    def __init__(self):
        self.time_ms = 0
        self._queue = []
        self._seq = count()

    def after(self, delay_ms, callback):
        handle = FakeHandle(self.time_ms + max(0, delay_ms), next(self._seq), callback)
        self._queue.append(handle)
        return handle

    def cancel(self, handle):
        handle.cancelled = True

    def now(self):
        return self.time_ms / 1000.0

    @property
    def pending(self):
        return [h for h in self._queue if not h.cancelled and not h.fired]

    def advance(self, ms):
        target = self.time_ms + ms
        while True:
            due = [h for h in self.pending if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self.time_ms = handle.when
            handle.fired = True
            handle.callback()
        self.time_ms = target


class FakeSource:
    """In-memory topology source whose windows are WindowViews already."""

    def __init__(self, windows=(), primary=0, global_fullscreen=False):
        self.windows = list(windows)
        self.primary = primary
        self.global_fullscreen = global_fullscreen
        self.overview_visible = False
        self.unreadable = set()
        self.fail_kinds = set()
        self.fail_unsubscribe = False
        self.subscriptions = {}
        self.window_subscriptions = {}
        self.unsubscribed = []
        self.list_calls = 0
        self._ids = count(1)

    @contextmanager
    def consistent_reads(self):
        yield self

    def list_windows(self):
        self.list_calls += 1
        return list(self.windows)

    def read_window(self, window):
        if window.id in self.unreadable:
            raise WindowAttributeUnreadable(window.id, "gone")
        return window

    def subscribe(self, kind, handler):
        if kind in self.fail_kinds:
            raise RuntimeError("signal does not exist")
        handle = next(self._ids)
        self.subscriptions[handle] = (kind, handler)
        return handle

    def subscribe_window(self, window_id, prop, handler):
        handle = next(self._ids)
        self.window_subscriptions[handle] = (window_id, prop, handler)
        return handle

    def unsubscribe(self, handle):
        self.unsubscribed.append(handle)
        if self.fail_unsubscribe:
            raise RuntimeError("already disconnected")
        self.subscriptions.pop(handle, None)
        self.window_subscriptions.pop(handle, None)

    def emit(self, kind, window=None):
        if kind is EventKind.WINDOW_DESTROYED and window is not None:
            # Like the host, a destroyed window takes its subscriptions with it.
            for handle, (wid, _prop, _handler) in list(self.window_subscriptions.items()):
                if wid == window.id:
                    del self.window_subscriptions[handle]
        for wanted, handler in list(self.subscriptions.values()):
            if wanted is kind:
                handler(window)

    def emit_property(self, window_id, prop):
        for wid, wanted, handler in list(self.window_subscriptions.values()):
            if wid == window_id and wanted == prop:
                handler()

    def primary_monitor_index(self):
        return self.primary

    def is_global_fullscreen_on_primary(self):
        return self.global_fullscreen

    def is_overview_visible(self):
        return self.overview_visible


class RecordingApplier:
    def __init__(self):
        self.painted = []
        self.restored = []
        self.fail = False

    def apply_opacity(self, opacity):
        if self.fail:
            raise StyleApplicationFailed("panel is gone")
        self.painted.append(opacity)

    def save_style(self):
        return "background-color: original"

    def restore_style(self, style):
        self.restored.append(style)


def window(id=1, **attrs):
    return WindowView(id=id, title=f"window {id}", **attrs)


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def applier():
    return RecordingApplier()
