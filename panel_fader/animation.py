"""Opacity animation drivers.

A driver owns the last painted opacity and at most one live AnimationJob.
``ImmediateDriver`` paints targets at once; ``FadeDriver`` interpolates
towards them on a timer with an ease-out curve.
"""

import logging

from .errors import StyleApplicationFailed
from .models import AnimationJob

logger = logging.getLogger(__name__)

FRAME_MS = 10  # milliseconds between frames


def ease_out_quad(t):
    """Monotonic on [0, 1], rate of change strictly decreasing."""
    return 1.0 - (1.0 - t) * (1.0 - t)


def ease_out_cubic(t):
    inverse = 1.0 - t
    return 1.0 - inverse * inverse * inverse


class AnimationDriver:
    """Common base: painting through the style applier and failure handling."""

    def __init__(self, applier):
        self._applier = applier
        self.current_opacity = None
        self.job = None

    @property
    def active(self):
        return self.job is not None and not self.job.done

    def animate_to(self, target, duration_ms):
        raise NotImplementedError

    def cancel(self):
        """Stop any job, leaving the last painted opacity where it is."""

    def _paint(self, opacity):
        # The value counts as painted even when the host refuses it; the next
        # frame or classification retries.
        self.current_opacity = opacity
        try:
            self._applier.apply_opacity(opacity)
        except StyleApplicationFailed as e:
            logger.warning("Failed to apply opacity %.3f: %s", opacity, e)
        except Exception as e:
            logger.warning("Failed to apply opacity %.3f: %s", opacity, StyleApplicationFailed(str(e)))


class ImmediateDriver(AnimationDriver):
    def animate_to(self, target, duration_ms=0):
        self._paint(target)


class FadeDriver(AnimationDriver):
    def __init__(self, applier, timers, frame_ms=FRAME_MS, easing=ease_out_quad):
        super().__init__(applier)
        self._timers = timers
        self._frame_ms = max(1, int(frame_ms))
        self._easing = easing
        self._handle = None

    def animate_to(self, target, duration_ms):
        """Fade from the opacity painted right now to ``target``.

        A zero duration, or nothing painted yet, applies ``target``
        synchronously without creating a job.
        """
        self.cancel()
        start = self.current_opacity
        if duration_ms <= 0 or start is None or start == target:
            self._paint(target)
            return

        self.job = AnimationJob(
            from_opacity=start,
            to_opacity=target,
            duration_ms=int(duration_ms),
            started_at=self._timers.now(),
        )
        logger.debug("Fading %.3f -> %.3f over %dms", start, target, duration_ms)
        self._handle = self._timers.after(self._frame_ms, self._tick)

    def cancel(self):
        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                self._timers.cancel(handle)
            except Exception:
                logger.exception("Failed to cancel animation frame")
        self.job = None

    def _tick(self):
        self._handle = None
        job = self.job
        if job is None or job.done:
            return

        progress = job.progress(self._timers.now())
        if progress >= 1.0:
            job.done = True
            self._paint(job.to_opacity)
            return

        delta = job.to_opacity - job.from_opacity
        self._paint(job.from_opacity + delta * self._easing(progress))
        self._handle = self._timers.after(self._frame_ms, self._tick)


EASINGS = {
    "quad": ease_out_quad,
    "cubic": ease_out_cubic,
}
