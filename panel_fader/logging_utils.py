"""Logging setup and the debug-gated log sink."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ContextFormatter(logging.Formatter):
    """Append the ``context`` dict passed through ``extra`` to the message."""

    def format(self, record):
        text = super().format(record)
        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{key}={value!r}" for key, value in sorted(context.items()))
            text = f"{text} [{pairs}]"
        return text


class DebugLog:
    """Log sink taking ``(level, message, context)``, muted unless debug logging is on.

    ``enabled`` is called on every message so flipping the ``debug-logging``
    setting takes effect without rebuilding anything. Warnings and errors
    bypass the gate.
    """

    def __init__(self, logger, enabled=lambda: False):
        self._logger = logger
        self._enabled = enabled

    def log(self, level, message, **context):
        if level < logging.WARNING:
            try:
                if not self._enabled():
                    return
            except Exception:
                return
        self._logger.log(level, message, extra={"context": context})

    def debug(self, message, **context):
        self.log(logging.DEBUG, message, **context)

    def info(self, message, **context):
        self.log(logging.INFO, message, **context)

    def warning(self, message, **context):
        self.log(logging.WARNING, message, **context)

    def error(self, message, **context):
        self.log(logging.ERROR, message, **context)


def build_rotating_file_handler(log_path, *, retention=3, max_bytes=256 * 1024, formatter=None):
    """Construct a rotating file handler, creating the directory if needed."""
    log_path = Path(log_path).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=max(0, retention - 1),
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def setup_logging(debug=False, log_file=None):
    """Configure the ``panel_fader`` logger tree for the command line daemon."""
    formatter = ContextFormatter(LOG_FORMAT)
    root = logging.getLogger("panel_fader")
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.handlers.clear()

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if log_file:
        root.addHandler(build_rotating_file_handler(log_file, formatter=formatter))
    return root
