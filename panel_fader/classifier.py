"""Pure mapping from a window snapshot and a config to a panel state."""

from .models import Classification, PanelState, WindowKind

# Windows owned by the shell itself never count.
SHELL_INTERNAL_CLASSES = frozenset({"gjs", "gnome-shell"})


def is_normal_window(win, primary_monitor_index, excluded_classes=SHELL_INTERNAL_CLASSES):
    return (
        win.kind is WindowKind.NORMAL
        and not win.hidden
        and win.on_active_workspace
        and win.monitor_index == primary_monitor_index
        and win.class_tag not in excluded_classes
    )


def normal_windows(snapshot, excluded_classes=SHELL_INTERNAL_CLASSES):
    """Windows of ``snapshot`` that count towards the panel state, in order."""
    return [
        win
        for win in snapshot.windows
        if is_normal_window(win, snapshot.primary_monitor_index, excluded_classes)
    ]


def classify(snapshot, config, excluded_classes=SHELL_INTERNAL_CLASSES):
    """Return the Classification for ``snapshot`` under ``config``.

    Opaque wins over semi-opaque, which wins over transparent. A fullscreen
    window, a maximized window (when ``config.maximized_opaque``) and the
    host's own fullscreen flag are equivalent triggers for opaque.
    """
    normal = normal_windows(snapshot, excluded_classes)
    visible = [win for win in normal if not win.minimized]

    has_fullscreen = any(win.fullscreen for win in visible)
    has_opaque_maximized = config.maximized_opaque and any(
        win.maximized and win.monitor_index == snapshot.primary_monitor_index
        for win in visible
    )

    if has_fullscreen:
        state, reason = PanelState.OPAQUE, "fullscreen window present"
    elif has_opaque_maximized:
        state, reason = PanelState.OPAQUE, "maximized window on primary monitor"
    elif snapshot.global_fullscreen_on_primary:
        state, reason = PanelState.OPAQUE, "global fullscreen detected"
    elif visible:
        state, reason = PanelState.SEMI_OPAQUE, f"{len(visible)} visible windows present"
    elif normal:
        state, reason = PanelState.TRANSPARENT, f"all {len(normal)} windows are minimized"
    else:
        state, reason = PanelState.TRANSPARENT, "no windows present"

    return Classification(state, config.opacity_for(state), reason)
