"""Turns every topology event into one "topology may have changed" signal."""

import logging

from .errors import SubscriptionFailure, WindowAttributeUnreadable
from .logging_utils import DebugLog
from .models import WindowKind
from .topology import DISCOVERY_EVENTS, TOPOLOGY_EVENTS, WINDOW_PROPERTIES, EventKind

logger = logging.getLogger(__name__)


class EventNormalizer:
    """Owns every subscription made against a topology source.

    Windows seen through several discovery paths are subscribed once: the
    ids of attached windows live in ``attached``, the source's window objects
    are never marked. Per-window handles are kept apart from the global ones
    and forgotten when their window is destroyed.
    """

    def __init__(self, source, log=None):
        self._source = source
        self._log = log or DebugLog(logger)
        self._listeners = []
        self._overview_showing = []
        self._overview_hidden = []
        self._handles = []
        self._window_handles = {}

    @property
    def attached(self):
        return set(self._window_handles)

    @property
    def subscription_count(self):
        return len(self._handles) + sum(len(handles) for handles in self._window_handles.values())

    # ---------------------
    def on_topology_may_have_changed(self, callback):
        self._listeners.append(callback)

    def on_overview_showing(self, callback):
        self._overview_showing.append(callback)

    def on_overview_hidden(self, callback):
        self._overview_hidden.append(callback)

    # ---------------------
    def start(self):
        """Subscribe to every event kind and attach windows that already exist."""
        for kind in TOPOLOGY_EVENTS:
            self._subscribe(kind, self._make_topology_handler(kind))
        self._subscribe(EventKind.OVERVIEW_SHOWING, lambda _win=None: self._emit(self._overview_showing))
        self._subscribe(EventKind.OVERVIEW_HIDDEN, lambda _win=None: self._emit(self._overview_hidden))
        self._attach_existing()
        self._log.info("All signals connected", subscriptions=len(self._handles))

    def _subscribe(self, kind, handler):
        handle = self._guarded(lambda: self._source.subscribe(kind, handler), kind.value)
        if handle is not None:
            self._handles.append(handle)
        return handle

    def _guarded(self, subscribe, label):
        try:
            handle = subscribe()
        except Exception as e:
            logger.warning("Continuing without signal: %s", SubscriptionFailure(f"{label}: {e}"))
            return None
        return handle

    def _make_topology_handler(self, kind):
        def handler(window=None):
            if kind in DISCOVERY_EVENTS and window is not None:
                self.attach_window(window)
            elif kind is EventKind.WINDOW_DESTROYED and window is not None:
                # The host has already released this window's subscriptions.
                self._window_handles.pop(window.id, None)
            self._log.debug("Topology event", kind=kind.value, window=_describe(window))
            self.notify()

        return handler

    def _attach_existing(self):
        try:
            windows = list(self._source.list_windows())
        except Exception as e:
            logger.warning("Could not list existing windows: %s", e)
            return
        for window in windows:
            try:
                view = self._source.read_window(window)
            except WindowAttributeUnreadable as e:
                self._log.debug("Skipping unreadable window", error=str(e))
                continue
            if view.kind is WindowKind.NORMAL:
                self.attach_window(view)

    # ---------------------
    def attach_window(self, window):
        """Subscribe to the window's property changes, once per window."""
        if window is None or window.id in self._window_handles:
            return
        handles = self._window_handles[window.id] = []
        for prop in WINDOW_PROPERTIES:
            handler = self._make_property_handler(window, prop)
            handle = self._guarded(
                lambda: self._source.subscribe_window(window.id, prop, handler),
                f"{prop} on window {window.id}",
            )
            if handle is not None:
                handles.append(handle)
        self._log.debug("Connected signals for window", window=_describe(window))

    def _make_property_handler(self, window, prop):
        def handler(*_args):
            self._log.debug("Window property changed", window=_describe(window), prop=prop)
            self.notify()

        return handler

    # ---------------------
    def notify(self):
        self._emit(self._listeners)

    def _emit(self, callbacks):
        for callback in list(callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Topology listener failed")

    def teardown_all(self):
        """Release every subscription this normalizer created."""
        handles, self._handles = self._handles, []
        for window_handles in self._window_handles.values():
            handles.extend(window_handles)
        self._window_handles.clear()
        for handle in handles:
            try:
                self._source.unsubscribe(handle)
            except Exception as e:
                logger.warning("Error disconnecting signal: %s", e)
        if handles:
            self._log.info("All signals disconnected", released=len(handles))


def _describe(window):
    if window is None:
        return "unknown"
    return window.title or str(window.id)
