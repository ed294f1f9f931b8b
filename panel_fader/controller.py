"""The panel controller: topology events in, debounced opacity transitions out."""

import logging

from .animation import FadeDriver
from .classifier import SHELL_INTERNAL_CLASSES, classify, normal_windows
from .errors import SubscriptionFailure
from .logging_utils import DebugLog
from .models import ControllerState, PanelState
from .normalizer import EventNormalizer
from .scheduler import DebounceScheduler
from .settings import ANIMATION_DURATION, DEBUG_LOGGING, MAXIMIZED_OPAQUE, OPACITY_KEYS, Config, ConfigLoader
from .topology import take_snapshot

logger = logging.getLogger(__name__)

WARMUP_MS = 500  # let the host settle its own layout before the first update
QUIET_WINDOW_MS = 200
SETTLE_MS = 100  # after a duration change, before retiming the transition

# Changing any of these repaints even when the state label stays the same.
REPAINT_KEYS = OPACITY_KEYS + (MAXIMIZED_OPAQUE,)


class PanelController:
    """Keeps the panel opacity in line with the window topology.

    ``source`` is a topology source (see ``panel_fader.topology``),
    ``settings`` a store with ``get_int``/``get_bool``/``subscribe_to_change``
    (or None for defaults), ``applier`` paints opacities and saves/restores
    the surface's original style. ``driver`` defaults to a FadeDriver.

    ``current_state`` and ``current_opacity`` are the logical state and its
    target opacity; what is actually on screen is ``driver.current_opacity``.
    A stopped controller cannot be started again.
    """

    def __init__(
        self,
        source,
        settings,
        applier,
        timers,
        driver=None,
        *,
        quiet_ms=QUIET_WINDOW_MS,
        warmup_ms=WARMUP_MS,
        settle_ms=SETTLE_MS,
        excluded_classes=SHELL_INTERNAL_CLASSES,
        debug=False,
    ):
        self.source = source
        self.settings = settings
        self.applier = applier
        self.timers = timers
        self.driver = driver if driver is not None else FadeDriver(applier, timers)
        self.quiet_ms = quiet_ms
        self.warmup_ms = warmup_ms
        self.settle_ms = settle_ms
        self.excluded_classes = frozenset(excluded_classes)
        self.debug = debug

        self.state = ControllerState.UNINITIALIZED
        self.config = Config()
        self.current_state = None
        self.current_opacity = None
        self.last_reason = None

        self._config_loader = ConfigLoader(settings)
        self._log = DebugLog(logger, lambda: self.debug or self.config.debug_logging)
        self._settings_handles = []
        self._settle_handle = None
        self._original_style = None
        self._style_saved = False

        self.scheduler = DebounceScheduler(timers, self._on_recompute)
        self.normalizer = EventNormalizer(source, self._log)
        self.normalizer.on_topology_may_have_changed(self._on_topology_changed)
        self.normalizer.on_overview_showing(self._on_overview_showing)
        self.normalizer.on_overview_hidden(self._on_topology_changed)

    @property
    def running(self):
        return self.state is ControllerState.RUNNING

    # ======================
    # Lifecycle
    # ======================
    def start(self):
        if self.state is not ControllerState.UNINITIALIZED:
            logger.warning("Panel fader cannot start from state %s", self.state.value)
            return
        self.state = ControllerState.RUNNING
        logger.info("Panel fader enabled")

        self._step("load settings", self.reload_config)
        self._step("connect settings signals", self._connect_settings_signals)
        self._step("store original style", self._save_original_style)
        self._step("connect window signals", self.normalizer.start)
        # The warm-up shares the debounce timer: an early event replaces it with
        # the shorter quiet window, bringing the first update forward.
        self._step("schedule initial update", lambda: self.scheduler.schedule_debounced(self.warmup_ms))
        self._log.info("Setup completed")

    def stop(self):
        if self.state is ControllerState.DISABLED:
            return
        self.state = ControllerState.DISABLED

        self._step("cancel scheduled update", self.scheduler.cancel)
        self._step("cancel settle timer", self._cancel_settle)
        self._step("cancel animation", self.driver.cancel)
        self._step("disconnect window signals", self.normalizer.teardown_all)
        self._step("disconnect settings signals", self._disconnect_settings_signals)
        self._step("restore original style", self._restore_original_style)

        self.current_state = None
        self.current_opacity = None
        logger.info("Panel fader disabled")

    def _step(self, label, func):
        try:
            func()
        except Exception:
            logger.exception("Failed to %s", label)

    def _save_original_style(self):
        self._original_style = self.applier.save_style()
        self._style_saved = True

    def _restore_original_style(self):
        if self._style_saved:
            self.applier.restore_style(self._original_style)

    def reload_config(self):
        self.config = self._config_loader.load()
        return self.config

    # ======================
    # Settings
    # ======================
    def _connect_settings_signals(self):
        if self.settings is None:
            logger.info("Settings not available, using defaults")
            return
        for key in REPAINT_KEYS:
            self._watch(key, self._on_repaint_setting_changed)
        self._watch(ANIMATION_DURATION, self._on_duration_changed)
        self._watch(DEBUG_LOGGING, self._on_debug_changed)
        self._log.info("Connected settings signals", count=len(self._settings_handles))

    def _watch(self, key, handler):
        try:
            handle = self.settings.subscribe_to_change(key, handler)
        except Exception as e:
            logger.warning("Continuing without signal: %s", SubscriptionFailure(f"{key}: {e}"))
            return
        self._settings_handles.append(handle)

    def _disconnect_settings_signals(self):
        handles, self._settings_handles = self._settings_handles, []
        for handle in handles:
            try:
                self.settings.unsubscribe(handle)
            except Exception as e:
                logger.warning("Error disconnecting settings signal: %s", e)

    def _on_repaint_setting_changed(self, key=None):
        if not self.running:
            return
        self.reload_config()
        self._log.info("Setting changed, forcing panel update", key=key)
        self.scheduler.schedule_immediate()

    def _on_duration_changed(self, key=ANIMATION_DURATION):
        if not self.running:
            return
        self._cancel_settle()
        duration = self.reload_config().animation_duration
        self._log.info("Animation duration changed", duration_ms=duration)

        if duration == 0:
            self.scheduler.schedule_immediate()
        elif self.current_state is not None:
            self._settle_handle = self.timers.after(self.settle_ms, self._on_settled)

    def _on_settled(self):
        self._settle_handle = None
        if not self.running or self.current_state is None:
            return
        try:
            if self.source.is_overview_visible():
                self._log.info("Overview is visible, dropping retime")
                return
            self.set_panel_state(self.current_state, "animation duration changed", force=True)
        except Exception:
            logger.exception("Failed to retime panel transition")

    def _cancel_settle(self):
        handle, self._settle_handle = self._settle_handle, None
        if handle is not None:
            self.timers.cancel(handle)

    def _on_debug_changed(self, key=DEBUG_LOGGING):
        self.reload_config()
        self._log.info("Debug logging setting changed")

    # ======================
    # Topology
    # ======================
    def _on_topology_changed(self):
        if self.running:
            self.scheduler.schedule_debounced(self.quiet_ms)

    def _on_overview_showing(self):
        if not self.running:
            return
        self._log.info("Overview showing")
        try:
            self.set_panel_state(PanelState.OPAQUE, "overview showing")
        except Exception:
            logger.exception("Failed to update panel for overview")

    def _on_recompute(self, force):
        if not self.running:
            return
        try:
            self.update_panel_state(force=force)
        except Exception:
            logger.exception("Panel update failed")

    def update_panel_state(self, force=False):
        """Classify a fresh snapshot and apply the result.

        Returns the Classification, or None when skipped because the
        overview is visible.
        """
        if self.source.is_overview_visible():
            self._log.info("Overview is visible, skipping update")
            return None

        config = self.reload_config()
        snapshot = take_snapshot(self.source)
        counted = normal_windows(snapshot, self.excluded_classes)
        self._log.info(
            "Updating panel state",
            windows=len(snapshot.windows),
            normal=len(counted),
            visible=sum(1 for win in counted if not win.minimized),
        )
        result = classify(snapshot, config, self.excluded_classes)
        self.set_panel_state(result.state, result.reason, force=force)
        return result

    def set_panel_state(self, state, reason, force=False):
        """Move to ``state``; returns False when nothing needed repainting."""
        config = self.config
        opacity = config.opacity_for(state)
        state_changed = self.current_state is not state
        opacity_changed = self.current_opacity != opacity

        if not (state_changed or opacity_changed or force):
            self._log.info("No change needed", state=state.value, opacity=opacity)
            return False

        previous = self.current_state
        previous_opacity = self.current_opacity
        self.current_state = state
        self.current_opacity = opacity
        self.last_reason = reason

        if state_changed:
            self._log.info(
                "State changed",
                previous=previous.value if previous else None,
                state=state.value,
                reason=reason,
            )
        elif opacity_changed:
            self._log.info("Opacity changed", state=state.value, previous=previous_opacity, opacity=opacity)
        else:
            self._log.info("Force updating", state=state.value, reason=reason)

        self.driver.animate_to(opacity, config.animation_duration)
        return True
