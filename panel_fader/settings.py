"""Settings keys, stores with change notification, and the Config snapshot."""

import json
import logging
from itertools import count
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, TypeAdapter, ValidationError, field_validator
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import ConfigurationUnavailable
from .models import PanelState

logger = logging.getLogger(__name__)

# ======================
# Keys and defaults
# ======================
TRANSPARENT_OPACITY = "transparent-opacity"
SEMI_OPAQUE_OPACITY = "semi-opaque-opacity"
OPAQUE_OPACITY = "opaque-opacity"
MAXIMIZED_OPAQUE = "maximized-opaque"
ANIMATION_DURATION = "animation-duration"
DEBUG_LOGGING = "debug-logging"

OPACITY_KEYS = (TRANSPARENT_OPACITY, SEMI_OPAQUE_OPACITY, OPAQUE_OPACITY)
BOOL_KEYS = (MAXIMIZED_OPAQUE, DEBUG_LOGGING)

DEFAULTS = {
    TRANSPARENT_OPACITY: 0,
    SEMI_OPAQUE_OPACITY: 85,
    OPAQUE_OPACITY: 100,
    MAXIMIZED_OPAQUE: False,
    ANIMATION_DURATION: 300,
    DEBUG_LOGGING: False,
}

ALL_KEYS = tuple(DEFAULTS)

# settings key -> Config field
FIELDS = {key: key.replace("-", "_") for key in ALL_KEYS}

PERCENT = (0, 100)
DURATION_MS = (0, 1000)

_STRICT_INT = TypeAdapter(StrictInt)
_STRICT_BOOL = TypeAdapter(StrictBool)


class Config(BaseModel):
    """Immutable snapshot of the settings; opacities are percentages."""

    model_config = ConfigDict(frozen=True)

    transparent_opacity: int = Field(default=DEFAULTS[TRANSPARENT_OPACITY], ge=PERCENT[0], le=PERCENT[1])
    semi_opaque_opacity: int = Field(default=DEFAULTS[SEMI_OPAQUE_OPACITY], ge=PERCENT[0], le=PERCENT[1])
    opaque_opacity: int = Field(default=DEFAULTS[OPAQUE_OPACITY], ge=PERCENT[0], le=PERCENT[1])
    maximized_opaque: bool = Field(default=DEFAULTS[MAXIMIZED_OPAQUE])
    animation_duration: int = Field(default=DEFAULTS[ANIMATION_DURATION], ge=DURATION_MS[0], le=DURATION_MS[1])
    debug_logging: bool = Field(default=DEFAULTS[DEBUG_LOGGING])

    @field_validator(
        "transparent_opacity",
        "semi_opaque_opacity",
        "opaque_opacity",
        "animation_duration",
        mode="wrap",
    )
    @classmethod
    def clamp_to_range(cls, value, handler, info):
        """Out-of-range integers are pulled to the nearest bound."""
        try:
            return handler(value)
        except ValidationError:
            if isinstance(value, bool) or not isinstance(value, int):
                raise
            low, high = DURATION_MS if info.field_name == "animation_duration" else PERCENT
            return handler(min(max(value, low), high))

    def opacity_for(self, state):
        """Opacity fraction painted for ``state``."""
        if state is PanelState.TRANSPARENT:
            percent = self.transparent_opacity
        elif state is PanelState.SEMI_OPAQUE:
            percent = self.semi_opaque_opacity
        else:
            percent = self.opaque_opacity
        return percent / 100


def validate_setting(key, value):
    """``value`` as the Config field behind ``key`` would hold it.

    Raises ValidationError for values of the wrong type.
    """
    name = FIELDS[key]
    return getattr(Config.model_validate({name: value}), name)


# ======================
# Stores
# ======================
class Settings:
    """In-memory key/value store that notifies subscribers of changed keys."""

    def __init__(self, values=None):
        self._values = dict(DEFAULTS)
        if values:
            self._values.update(values)
        self._handlers = {}
        self._ids = count(1)

    def get_int(self, key):
        value = self._values[key]
        try:
            return _STRICT_INT.validate_python(value)
        except ValidationError as e:
            raise ConfigurationUnavailable(f"{key} is not an integer: {value!r}") from e

    def get_bool(self, key):
        value = self._values[key]
        try:
            return _STRICT_BOOL.validate_python(value)
        except ValidationError as e:
            raise ConfigurationUnavailable(f"{key} is not a boolean: {value!r}") from e

    def set(self, key, value):
        if self._values.get(key) == value and key in self._values:
            return
        self._values[key] = value
        self._notify(key)

    def subscribe_to_change(self, key, handler):
        handle = next(self._ids)
        self._handlers[handle] = (key, handler)
        return handle

    def unsubscribe(self, handle):
        self._handlers.pop(handle, None)

    def _notify(self, key):
        for handle, (wanted, handler) in list(self._handlers.items()):
            if wanted != key or handle not in self._handlers:
                continue
            try:
                handler(key)
            except Exception:
                logger.exception("Settings handler for %s failed", key)


class JsonFileSettings(Settings):
    """Settings backed by a JSON object on disk; ``reload()`` notifies changed keys."""

    def __init__(self, path):
        super().__init__()
        self.path = Path(path).expanduser()
        self._read_into_values()

    def _read(self):
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.info("No settings file at %s, using defaults", self.path)
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Failed to read settings %s: %s", self.path, e)
            return None
        if not isinstance(raw, dict):
            logger.warning("Settings %s must hold a JSON object, ignoring", self.path)
            return None
        unknown = sorted(set(raw) - set(DEFAULTS))
        if unknown:
            logger.warning("Ignoring unknown settings keys: %s", ", ".join(unknown))
        return {key: raw[key] for key in DEFAULTS if key in raw}

    def _read_into_values(self):
        loaded = self._read()
        if loaded is None:
            return
        self._values = dict(DEFAULTS)
        self._values.update(loaded)

    def reload(self):
        """Re-read the file and notify every key whose value changed."""
        loaded = self._read()
        if loaded is None:
            return []
        fresh = dict(DEFAULTS)
        fresh.update(loaded)
        changed = [key for key in DEFAULTS if fresh[key] != self._values.get(key)]
        self._values = fresh
        for key in changed:
            logger.debug("Setting %s changed to %r", key, fresh[key])
            self._notify(key)
        return changed


class _ReloadHandler(FileSystemEventHandler):
    """Forward events for one file name to the watcher."""

    def __init__(self, watcher, filename):
        super().__init__()
        self._watcher = watcher
        self._filename = filename

    def _matches(self, event):
        if event.is_directory:
            return False
        path = getattr(event, "dest_path", None) or event.src_path
        return Path(path).name == self._filename

    def on_modified(self, event):
        if self._matches(event):
            self._watcher.file_changed()

    def on_created(self, event):
        if self._matches(event):
            self._watcher.file_changed()

    def on_moved(self, event):
        if self._matches(event):
            self._watcher.file_changed()


class SettingsFileWatcher:
    """Watch a JsonFileSettings file and reload it on the event loop.

    Watches the parent directory since editors often save through a temp
    file and a rename. Events arrive on watchdog's observer thread and are
    handed to the loop with ``call_soon_threadsafe``; bursts are collapsed
    with ``debounce_ms``.
    """

    def __init__(self, settings, loop, debounce_ms=100):
        self.settings = settings
        self._loop = loop
        self._debounce_s = debounce_ms / 1000
        self._pending = None
        self._observer = None

    def start(self):
        if self._observer is not None:
            return
        watch_dir = self.settings.path.parent
        watch_dir.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        observer.schedule(_ReloadHandler(self, self.settings.path.name), str(watch_dir), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes", self.settings.path)

    def stop(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None

    def file_changed(self):
        """Called from the observer thread."""
        self._loop.call_soon_threadsafe(self._schedule_reload)

    def _schedule_reload(self):
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self._loop.call_later(self._debounce_s, self._reload)

    def _reload(self):
        self._pending = None
        self.settings.reload()


# ======================
# Snapshot
# ======================
class ConfigLoader:
    """Builds Config snapshots from a store, falling back to defaults per key.

    Each value is validated through the matching Config field, so
    out-of-range integers are clamped. A missing store, a getter that fails,
    or a value of the wrong type degrades to the documented default for that
    key. The first degradation is logged as a warning, later
    ones are not.
    """

    def __init__(self, store):
        self.store = store
        self._warned = False

    def _degraded(self, detail):
        if not self._warned:
            self._warned = True
            logger.warning("Settings unavailable, using defaults (%s)", detail)

    def get_int(self, key):
        return self._get(key, "get_int")

    def get_bool(self, key):
        return self._get(key, "get_bool")

    def _get(self, key, getter):
        if self.store is None:
            self._degraded("no settings store")
            return DEFAULTS[key]
        try:
            value = getattr(self.store, getter)(key)
            if value is None:
                return DEFAULTS[key]
            return validate_setting(key, value)
        except Exception as e:
            self._degraded(f"{key}: {e}")
            return DEFAULTS[key]

    def load(self):
        values = {}
        for key in ALL_KEYS:
            values[FIELDS[key]] = self.get_bool(key) if key in BOOL_KEYS else self.get_int(key)
        return Config.model_validate(values)


def load_config(store):
    """One-off Config snapshot from ``store`` (which may be None)."""
    return ConfigLoader(store).load()
