# =============================
# UniformAnimationDriver — wall-clock progress timeline
# =============================
"""
Drives ``UniformSet.progress`` through a looping, eased timeline and
stores the latest pointer sample.

The clock is wall time (``time.perf_counter`` by default), not frame
count, so effect speed does not depend on the frame rate.  Easing names
follow the usual tween-library convention: ``powerN.in/out/inOut``
where power1 is quadratic, power2 cubic and so on, plus ``sine.inOut``
and ``linear``.
"""

import logging
import math
import time

from effects import AnimationCurve, LoopMode

log = logging.getLogger(__name__)


def _power(exp):
    def ease_in(t):
        return t ** exp

    def ease_out(t):
        return 1.0 - (1.0 - t) ** exp

    def ease_in_out(t):
        if t < 0.5:
            return (2.0 * t) ** exp / 2.0
        return 1.0 - (2.0 * (1.0 - t)) ** exp / 2.0

    return ease_in, ease_out, ease_in_out


def _build_easings():
    table = {
        "linear": lambda t: t,
        "none": lambda t: t,
        "sine.inOut": lambda t: -(math.cos(math.pi * t) - 1.0) / 2.0,
    }
    for n in range(1, 5):
        e_in, e_out, e_in_out = _power(n + 1)
        table[f"power{n}.in"] = e_in
        table[f"power{n}.out"] = e_out
        table[f"power{n}.inOut"] = e_in_out
    return table


EASINGS = _build_easings()


def get_easing(name):
    try:
        return EASINGS[name]
    except KeyError:
        raise ValueError(f"Unknown easing '{name}'") from None


def timeline_value(curve: AnimationCurve, elapsed: float, ease=None) -> float:
    """Progress value ``elapsed`` seconds after the timeline started."""
    if ease is None:
        ease = get_easing(curve.ease)
    if elapsed <= 0.0:
        return float(curve.start)

    cycles = elapsed / curve.duration
    iteration = int(math.floor(cycles))
    local = cycles - iteration
    if 0 <= curve.repeat < iteration:
        # Finite timeline finished: hold the last iteration's end
        iteration, local = curve.repeat, 1.0

    if curve.loop is LoopMode.YOYO and iteration % 2 == 1:
        local = 1.0 - local
    return curve.start + (curve.target - curve.start) * ease(local)


class UniformAnimationDriver:
    """Owns the time-varying uniforms: ``progress`` and ``pointer``."""

    def __init__(self, uniforms, clock=time.perf_counter):
        self.uniforms = uniforms
        self.clock = clock
        self.curve = None
        self._ease = None
        self._t0 = 0.0

    @property
    def running(self) -> bool:
        return self.curve is not None

    def start(self, curve: AnimationCurve, now=None):
        """Begin a fresh timeline; progress jumps to ``curve.start``."""
        if curve.duration <= 0.0:
            raise ValueError(f"Animation duration must be > 0 ({curve.duration})")
        self._ease = get_easing(curve.ease)
        self.curve = curve
        self._t0 = self.clock() if now is None else now
        self.uniforms.progress = float(curve.start)
        log.debug("Timeline start: %.2f → %.2f over %.2fs (%s, %s)",
                  curve.start, curve.target, curve.duration,
                  curve.ease, curve.loop.value)

    def stop(self):
        """Discard the timeline; progress keeps its last value."""
        self.curve = None
        self._ease = None

    def sample(self, now=None) -> float:
        if self.curve is None:
            return self.uniforms.progress
        if now is None:
            now = self.clock()
        value = timeline_value(self.curve, now - self._t0, self._ease)
        self.uniforms.progress = value
        return value

    def set_pointer(self, pos):
        """Latest raw pointer sample wins; no smoothing, no history."""
        x, y = pos
        self.uniforms.pointer = (float(x), float(y))
