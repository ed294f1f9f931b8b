"""Plain data shared by the classifier, the driver and the controller."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class WindowKind(Enum):
    NORMAL = "normal"
    OTHER = "other"


class PanelState(Enum):
    TRANSPARENT = "transparent"
    SEMI_OPAQUE = "semi-opaque"
    OPAQUE = "opaque"


class ControllerState(Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    DISABLED = "disabled"


@dataclass(frozen=True)
class WindowView:
    """Attributes of one window, valid only for the instant they were read."""

    id: object
    kind: WindowKind = WindowKind.NORMAL
    hidden: bool = False
    minimized: bool = False
    fullscreen: bool = False
    maximized_horizontally: bool = False
    maximized_vertically: bool = False
    monitor_index: int = 0
    on_active_workspace: bool = True
    class_tag: str = ""
    title: Optional[str] = None

    @property
    def maximized(self):
        return self.maximized_horizontally and self.maximized_vertically


@dataclass(frozen=True)
class TopologySnapshot:
    windows: Tuple[WindowView, ...] = ()
    primary_monitor_index: int = 0
    global_fullscreen_on_primary: bool = False


@dataclass(frozen=True)
class Classification:
    state: PanelState
    opacity: float
    reason: str


@dataclass
class AnimationJob:
    from_opacity: float
    to_opacity: float
    duration_ms: int
    started_at: float
    done: bool = field(default=False)

    def progress(self, now):
        """Fraction of the duration elapsed at ``now``, clamped to [0, 1]."""
        if self.duration_ms <= 0:
            return 1.0
        elapsed_ms = (now - self.started_at) * 1000.0
        return min(1.0, max(0.0, elapsed_ms / self.duration_ms))
