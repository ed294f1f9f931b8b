import pytest

from conftest import window
from panel_fader.classifier import classify, normal_windows
from panel_fader.models import PanelState, TopologySnapshot, WindowKind
from panel_fader.settings import Config


def snapshot(*windows, primary=0, global_fullscreen=False):
    return TopologySnapshot(
        windows=tuple(windows),
        primary_monitor_index=primary,
        global_fullscreen_on_primary=global_fullscreen,
    )


def test_no_windows_is_transparent():
    result = classify(snapshot(), Config())

    assert result.state is PanelState.TRANSPARENT
    assert result.opacity == 0.0
    assert result.reason == "no windows present"


def test_one_visible_window_is_semi_opaque():
    result = classify(snapshot(window(1)), Config())

    assert result.state is PanelState.SEMI_OPAQUE
    assert result.opacity == 0.85
    assert result.reason == "1 visible windows present"


def test_fullscreen_overrides_semi_opaque_windows():
    result = classify(snapshot(window(1), window(2, fullscreen=True), window(3)), Config())

    assert result.state is PanelState.OPAQUE
    assert result.opacity == 1.0
    assert result.reason == "fullscreen window present"


def test_fullscreen_wins_regardless_of_window_order():
    first = classify(snapshot(window(1, fullscreen=True), window(2)), Config())
    last = classify(snapshot(window(2), window(1, fullscreen=True)), Config())

    assert first.state is last.state is PanelState.OPAQUE


def test_all_minimized_is_transparent():
    result = classify(snapshot(window(1, minimized=True), window(2, minimized=True)), Config())

    assert result.state is PanelState.TRANSPARENT
    assert result.reason == "all 2 windows are minimized"


def test_minimized_fullscreen_window_does_not_count():
    result = classify(snapshot(window(1, minimized=True, fullscreen=True)), Config())

    assert result.state is PanelState.TRANSPARENT


@pytest.mark.parametrize(
    "attrs",
    [
        {"kind": WindowKind.OTHER},
        {"hidden": True},
        {"on_active_workspace": False},
        {"monitor_index": 1},
        {"class_tag": "gnome-shell"},
        {"class_tag": "gjs"},
    ],
)
def test_non_normal_windows_never_count(attrs):
    win = window(1, fullscreen=True, maximized_horizontally=True, maximized_vertically=True, **attrs)

    result = classify(snapshot(win), Config(maximized_opaque=True))

    assert result.state is PanelState.TRANSPARENT
    assert normal_windows(snapshot(win)) == []


def test_custom_excluded_classes():
    snap = snapshot(window(1, class_tag="waybar"))

    assert classify(snap, Config(), excluded_classes={"waybar"}).state is PanelState.TRANSPARENT
    assert classify(snap, Config()).state is PanelState.SEMI_OPAQUE


def test_primary_monitor_index_is_taken_from_snapshot():
    snap = snapshot(window(1, monitor_index=1), primary=1)

    assert classify(snap, Config()).state is PanelState.SEMI_OPAQUE


@pytest.mark.parametrize(
    "maximized_opaque, horizontal, vertical, expected",
    [
        (False, True, True, PanelState.SEMI_OPAQUE),
        (True, True, True, PanelState.OPAQUE),
        (True, True, False, PanelState.SEMI_OPAQUE),
        (True, False, True, PanelState.SEMI_OPAQUE),
    ],
)
def test_maximized_counts_only_when_enabled(maximized_opaque, horizontal, vertical, expected):
    win = window(1, maximized_horizontally=horizontal, maximized_vertically=vertical)

    result = classify(snapshot(win), Config(maximized_opaque=maximized_opaque))

    assert result.state is expected
    if expected is PanelState.OPAQUE:
        assert result.reason == "maximized window on primary monitor"


def test_global_fullscreen_alone_is_opaque():
    result = classify(snapshot(global_fullscreen=True), Config())

    assert result.state is PanelState.OPAQUE
    assert result.reason == "global fullscreen detected"


def test_opacity_follows_config():
    config = Config(transparent_opacity=10, semi_opaque_opacity=50, opaque_opacity=90)

    assert classify(snapshot(), config).opacity == 0.1
    assert classify(snapshot(window(1)), config).opacity == 0.5
    assert classify(snapshot(window(1, fullscreen=True)), config).opacity == 0.9


def test_classification_is_deterministic():
    snap = snapshot(window(1), window(2, minimized=True), window(3, kind=WindowKind.OTHER))
    config = Config(maximized_opaque=True)

    assert classify(snap, config) == classify(snap, config)
