# =============================
# AverageColorExtractor — representative tint of a raw image
# =============================
"""
Average R, G, B over every pixel, normalise by the channel maximum,
boost by 1.25 and clamp to 1.0.  The result tints the procedural mask.

Extraction runs on a background executor.  Publishing is versioned:
each request captures ``slot.begin()`` and its result is only written
if that version is still the slot's current one when the render thread
polls it.  A slow, older request therefore can never overwrite a newer
one, whatever order they finish in.
"""

import logging
from dataclasses import dataclass
from concurrent.futures import Future
from typing import List, Tuple

import numpy as np

from config import FALLBACK_TINT, TINT_BOOST
from errors import AssetDecodeError
from tasks import InlineExecutor
from textures import decode_pixels

log = logging.getLogger(__name__)

AverageColor = Tuple[float, float, float]


def extract_average_color(pixels, boost: float = TINT_BOOST) -> AverageColor:
    """Boosted mean colour of an (H, W, 3|4) buffer; alpha is ignored."""
    arr = np.asarray(pixels)
    if arr.ndim == 2:
        arr = arr[..., None].repeat(3, axis=2)
    if arr.ndim != 3 or arr.shape[2] < 3 or arr.shape[0] * arr.shape[1] == 0:
        raise AssetDecodeError(f"not an RGB pixel buffer: shape {arr.shape}")
    if np.issubdtype(arr.dtype, np.integer):
        channel_max = float(np.iinfo(arr.dtype).max)
    else:
        channel_max = 1.0
    rgb = arr[..., :3].reshape(-1, 3).astype(np.float64)
    avg = rgb.sum(axis=0) / (rgb.shape[0] * channel_max)
    return tuple(float(min(1.0, v * boost)) for v in avg)


class TintSlot:
    """Versioned AverageColor holder owned by the active effect."""

    def __init__(self, fallback: AverageColor = FALLBACK_TINT):
        self.fallback = tuple(fallback)
        self.color = self.fallback
        self.version = 0
        self.is_fallback = True

    def begin(self) -> int:
        """Start a new request; every older version becomes stale."""
        self.version += 1
        return self.version

    def invalidate(self):
        """Drop the current colour (image replaced) and stale all requests."""
        self.version += 1
        self.color = self.fallback
        self.is_fallback = True

    def publish(self, version: int, color: AverageColor) -> bool:
        if version != self.version:
            log.debug("Stale tint dropped (v%d, current v%d)",
                      version, self.version)
            return False
        self.color = tuple(color)
        self.is_fallback = False
        return True


@dataclass
class ColorRequest:
    slot: TintSlot
    version: int
    future: Future


class AverageColorExtractor:
    """Schedules extractions and publishes finished ones on ``poll()``."""

    def __init__(self, executor=None, boost: float = TINT_BOOST,
                 fallback: AverageColor = FALLBACK_TINT):
        self.executor = executor if executor is not None else InlineExecutor()
        self.boost = boost
        self.fallback = tuple(fallback)
        self._pending: List[ColorRequest] = []

    def extract(self, source) -> AverageColor:
        """Synchronous extraction from encoded bytes or a pixel buffer."""
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = decode_pixels(bytes(source))
        return extract_average_color(source, self.boost)

    def extract_or_fallback(self, source) -> AverageColor:
        try:
            return self.extract(source)
        except AssetDecodeError as e:
            log.warning("Tint extraction failed (%s); using fallback", e)
            return self.fallback

    def request(self, slot: TintSlot, source) -> ColorRequest:
        req = ColorRequest(slot, slot.begin(),
                           self.executor.submit(self.extract, source))
        self._pending.append(req)
        return req

    def poll(self) -> List[ColorRequest]:
        """Publish finished requests; returns those that were applied."""
        published = []
        waiting = []
        for req in self._pending:
            if not req.future.done():
                waiting.append(req)
                continue
            try:
                color = req.future.result()
            except AssetDecodeError as e:
                log.warning("Tint extraction failed (%s); keeping fallback", e)
                continue
            if req.slot.publish(req.version, color):
                log.info("Tint v%d: (%.3f, %.3f, %.3f)",
                         req.version, *color)
                published.append(req)
        self._pending = waiting
        return published

    @property
    def pending(self) -> int:
        return len(self._pending)

    def cancel_all(self):
        """Forget in-flight requests; ones already running finish unobserved."""
        for req in self._pending:
            req.future.cancel()
        self._pending.clear()
