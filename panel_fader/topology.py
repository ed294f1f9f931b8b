"""Window topology events and snapshot taking.

A topology source is any object offering::

    list_windows() -> iterable of host windows
    read_window(window) -> WindowView        # may raise WindowAttributeUnreadable
    subscribe(kind, handler) -> handle       # handler(WindowView or None)
    subscribe_window(window_id, prop, handler) -> handle   # handler()
    unsubscribe(handle)
    primary_monitor_index() -> int
    is_global_fullscreen_on_primary() -> bool
    is_overview_visible() -> bool
    consistent_reads() -> context manager; queries inside it share one host read

``panel_fader.sway.SwayTopologySource`` is the sway implementation.
"""

import logging
from enum import Enum

from .errors import WindowAttributeUnreadable
from .models import TopologySnapshot

logger = logging.getLogger(__name__)


class EventKind(Enum):
    WINDOW_CREATED = "window-created"
    WINDOW_LEFT_MONITOR = "window-left-monitor"
    WINDOW_MAPPED = "window-mapped"
    WINDOW_DESTROYED = "window-destroyed"
    WINDOW_MINIMIZED = "window-minimized"
    WINDOW_UNMINIMIZED = "window-unminimized"
    FULLSCREEN_CHANGED = "in-fullscreen-changed"
    WORKSPACE_CHANGED = "active-workspace-changed"
    MONITORS_CHANGED = "monitors-changed"
    OVERVIEW_SHOWING = "overview-showing"
    OVERVIEW_HIDDEN = "overview-hidden"


TOPOLOGY_EVENTS = (
    EventKind.WINDOW_CREATED,
    EventKind.WINDOW_LEFT_MONITOR,
    EventKind.WINDOW_MAPPED,
    EventKind.WINDOW_DESTROYED,
    EventKind.WINDOW_MINIMIZED,
    EventKind.WINDOW_UNMINIMIZED,
    EventKind.FULLSCREEN_CHANGED,
    EventKind.WORKSPACE_CHANGED,
    EventKind.MONITORS_CHANGED,
)

# Events that may reveal a window not seen before.
DISCOVERY_EVENTS = frozenset({EventKind.WINDOW_CREATED, EventKind.WINDOW_MAPPED})

WINDOW_PROPERTIES = ("fullscreen", "maximized-horizontally", "maximized-vertically")


def read_windows(source):
    """Read every listed window, skipping the ones that cannot be read."""
    views = []
    for window in source.list_windows():
        try:
            views.append(source.read_window(window))
        except WindowAttributeUnreadable as e:
            logger.debug("Excluding window from snapshot: %s", e)
    return views


def take_snapshot(source):
    """Fresh TopologySnapshot, every field taken from the same host read."""
    with source.consistent_reads():
        windows = tuple(read_windows(source))
        return TopologySnapshot(
            windows=windows,
            primary_monitor_index=source.primary_monitor_index(),
            global_fullscreen_on_primary=bool(source.is_global_fullscreen_on_primary()),
        )
