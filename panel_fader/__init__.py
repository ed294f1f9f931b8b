"""Fade a panel between transparent, semi-opaque and opaque as windows come and go."""

from .animation import FadeDriver, ImmediateDriver
from .classifier import classify
from .controller import PanelController
from .models import Classification, PanelState, TopologySnapshot, WindowKind, WindowView
from .settings import Config, Settings

__version__ = "0.1.0"

__all__ = [
    "Classification",
    "Config",
    "FadeDriver",
    "ImmediateDriver",
    "PanelController",
    "PanelState",
    "Settings",
    "TopologySnapshot",
    "WindowKind",
    "WindowView",
    "classify",
]
