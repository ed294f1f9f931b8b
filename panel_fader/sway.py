"""Sway / SwayFX host binding over i3ipc.

Requests (tree, outputs, commands) go over a blocking ``i3ipc.Connection``
so a whole snapshot is read inside one loop callback. Events come from an
``i3ipc.aio.Connection`` running on the same asyncio loop.
"""

import logging
from contextlib import contextmanager
from itertools import count

from i3ipc import Event

from .errors import StyleApplicationFailed, SubscriptionFailure, WindowAttributeUnreadable
from .models import WindowKind, WindowView
from .topology import EventKind

logger = logging.getLogger(__name__)

SCRATCHPAD = "__i3_scratch"
WINDOW_TYPES = ("con", "floating_con")

# ======================
# Event mapping
# ======================
KIND_EVENTS = {
    EventKind.WINDOW_CREATED: (Event.WINDOW_NEW,),
    EventKind.WINDOW_DESTROYED: (Event.WINDOW_CLOSE,),
    EventKind.WINDOW_LEFT_MONITOR: (Event.WINDOW_MOVE,),
    EventKind.FULLSCREEN_CHANGED: (Event.WINDOW_FULLSCREEN_MODE,),
    EventKind.WORKSPACE_CHANGED: (Event.WORKSPACE_FOCUS,),
    EventKind.MONITORS_CHANGED: (Event.OUTPUT,),
}

OVERVIEW_KINDS = (EventKind.OVERVIEW_SHOWING, EventKind.OVERVIEW_HIDDEN)

# window::<change> -> per-window properties it may have changed
WINDOW_CHANGE_PROPERTIES = {
    "fullscreen_mode": ("fullscreen",),
    "floating": ("maximized-horizontally", "maximized-vertically"),
}
WINDOW_CHANGE_EVENTS = (Event.WINDOW_FULLSCREEN_MODE, Event.WINDOW_FLOATING, Event.WINDOW_CLOSE)


def is_window(con):
    """Leaf containers of tiling or floating type hold application windows."""
    return con.type in WINDOW_TYPES and not con.nodes and not con.floating_nodes


def output_name(con):
    node = con
    while node is not None:
        if node.type == "output":
            return node.name
        node = node.parent
    return None


def tiled_window_count(workspace):
    return sum(1 for con in workspace.descendants() if con.type == "con" and is_window(con))


def _class_tag(con):
    return getattr(con, "app_id", None) or getattr(con, "window_class", None) or ""


class SwayTopologySource:
    """Windows, outputs and events of a running sway session."""

    def __init__(self, query, events=None, primary_output=None, overview_mode=None):
        self._query = query
        self._events = events
        self.primary_output = primary_output
        self.overview_mode = overview_mode
        self.binding_mode = "default"

        self._ids = count(1)
        self._subscriptions = {}
        self._window_handlers = {}
        self._overview_handlers = {}
        self._outputs = []
        self._primary_workspace = None
        self._tree = None
        self._pinned = 0

        if events is not None:
            events.on(Event.MODE, self._on_mode)
            for event in WINDOW_CHANGE_EVENTS:
                events.on(event, self._on_window_change)

    def close(self):
        if self._events is None:
            return
        self._events.off(self._on_mode)
        self._events.off(self._on_window_change)
        for wrappers in self._subscriptions.values():
            for wrapper in wrappers:
                self._events.off(wrapper)
        self._subscriptions.clear()
        self._window_handlers.clear()
        self._overview_handlers.clear()

    # ---------------------
    # Layout
    # ---------------------
    @contextmanager
    def consistent_reads(self):
        """Serve every query inside the block from one tree and outputs fetch."""
        self._refresh_layout()
        self._pinned += 1
        try:
            yield self
        finally:
            self._pinned -= 1

    def _sync(self):
        if not self._pinned:
            self._refresh_layout()

    def _refresh_layout(self):
        outputs = [output for output in self._query.get_outputs() if output.active]
        self._outputs = [output.name for output in outputs]
        primary = None
        if self.primary_output is not None:
            primary = next((output for output in outputs if output.name == self.primary_output), None)
        if primary is None and outputs:
            primary = outputs[0]
        self._primary_workspace = primary.current_workspace if primary is not None else None
        self._tree = self._query.get_tree()

    def primary_monitor_index(self):
        self._sync()
        return self._primary_index()

    def _primary_index(self):
        if self.primary_output in self._outputs:
            return self._outputs.index(self.primary_output)
        return 0

    def is_global_fullscreen_on_primary(self):
        self._sync()
        for con in self._tree.descendants():
            if not is_window(con):
                continue
            mode = con.fullscreen_mode or 0
            if mode == 2:
                return True
            if mode == 1:
                workspace = con.workspace()
                if workspace is not None and workspace.name == self._primary_workspace:
                    return True
        return False

    def is_overview_visible(self):
        return self.overview_mode is not None and self.binding_mode == self.overview_mode

    # ---------------------
    # Windows
    # ---------------------
    def list_windows(self):
        self._sync()
        return [con for con in self._tree.descendants() if is_window(con)]

    def read_window(self, con):
        """WindowView for a container taken from a fresh tree."""
        try:
            workspace = con.workspace()
            if workspace is None:
                raise WindowAttributeUnreadable(con.id, "not attached to a workspace")
            stashed = workspace.name == SCRATCHPAD
            if stashed:
                # Scratchpad windows belong to every workspace and show on the primary output.
                monitor_index = self._primary_index()
                on_active = True
            else:
                name = output_name(con)
                monitor_index = self._outputs.index(name) if name in self._outputs else -1
                on_active = workspace.name == self._primary_workspace

            window_type = con.ipc_data.get("window_type")
            normal = con.type in WINDOW_TYPES and window_type in (None, "normal")
            maximized = con.type == "con" and not stashed and tiled_window_count(workspace) == 1
            return WindowView(
                id=con.id,
                kind=WindowKind.NORMAL if normal else WindowKind.OTHER,
                hidden=not stashed and con.ipc_data.get("visible") is False,
                minimized=stashed,
                fullscreen=(con.fullscreen_mode or 0) != 0,
                maximized_horizontally=maximized,
                maximized_vertically=maximized,
                monitor_index=monitor_index,
                on_active_workspace=on_active,
                class_tag=_class_tag(con),
                title=con.name,
            )
        except WindowAttributeUnreadable:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise WindowAttributeUnreadable(getattr(con, "id", None), str(e)) from e

    def _view_for_event(self, event):
        """WindowView built from the event payload alone.

        Events arrive in bursts before any debouncing, so no tree is fetched
        here: the normalizer keys on the id and the next snapshot reads the
        window in full.
        """
        con = getattr(event, "container", None)
        if con is None:
            return None
        window_type = (getattr(con, "ipc_data", None) or {}).get("window_type")
        normal = con.type in WINDOW_TYPES and window_type in (None, "normal")
        return WindowView(
            id=con.id,
            kind=WindowKind.NORMAL if normal else WindowKind.OTHER,
            fullscreen=(getattr(con, "fullscreen_mode", 0) or 0) != 0,
            class_tag=_class_tag(con),
            title=con.name,
        )

    # ---------------------
    # Subscriptions
    # ---------------------
    def subscribe(self, kind, handler):
        if self._events is None:
            raise SubscriptionFailure("no event connection")
        handle = next(self._ids)
        if kind in OVERVIEW_KINDS:
            self._overview_handlers[handle] = (kind, handler)
            return handle
        wrappers = []
        for event in KIND_EVENTS.get(kind, ()):
            wrapper = self._wrap(handler)
            self._events.on(event, wrapper)
            wrappers.append(wrapper)
        self._subscriptions[handle] = wrappers
        return handle

    def subscribe_window(self, window_id, prop, handler):
        if self._events is None:
            raise SubscriptionFailure("no event connection")
        handle = next(self._ids)
        self._window_handlers.setdefault(window_id, {})[handle] = (prop, handler)
        return handle

    def unsubscribe(self, handle):
        for wrapper in self._subscriptions.pop(handle, ()):
            self._events.off(wrapper)
        self._overview_handlers.pop(handle, None)
        for handlers in self._window_handlers.values():
            handlers.pop(handle, None)

    def _wrap(self, handler):
        def wrapper(_conn, event):
            handler(self._view_for_event(event))

        return wrapper

    def _on_mode(self, _conn, event):
        was_visible = self.is_overview_visible()
        self.binding_mode = event.change
        visible = self.is_overview_visible()
        if visible == was_visible:
            return
        wanted = EventKind.OVERVIEW_SHOWING if visible else EventKind.OVERVIEW_HIDDEN
        for kind, handler in list(self._overview_handlers.values()):
            if kind is wanted:
                handler(None)

    def _on_window_change(self, _conn, event):
        con_id = event.container.id
        props = WINDOW_CHANGE_PROPERTIES.get(event.change, ())
        for prop, handler in list(self._window_handlers.get(con_id, {}).values()):
            if prop in props:
                handler()
        if event.change == "close":
            # sway sends nothing more for a closed window.
            self._window_handlers.pop(con_id, None)


class SwayOpacityApplier:
    """Paints the panel with ``<criteria> opacity <x>`` commands."""

    def __init__(self, conn, criteria, restore_opacity=1.0):
        self._conn = conn
        self.criteria = criteria
        self.restore_opacity = restore_opacity

    def apply_opacity(self, opacity):
        command = f"{self.criteria} opacity {opacity:.3f}"
        try:
            replies = self._conn.command(command)
        except Exception as e:
            raise StyleApplicationFailed(f"{command}: {e}") from e
        for reply in replies or ():
            if not reply.success:
                raise StyleApplicationFailed(f"{command}: {reply.error}")

    def save_style(self):
        return self.restore_opacity

    def restore_style(self, style):
        if style is not None:
            self.apply_opacity(style)
