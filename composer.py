# =============================
# EffectComposer — lifecycle of the active effect
# =============================
"""
State machine driving one effect at a time::

    UNINITIALIZED ─select()→ TEXTURES_LOADING ─pair→ COLOR_EXTRACTING
        ─tint→ GRAPH_READY ─frame()→ RUNNING

The graph is first built with the fallback tint and drawn while the
colour is extracted.  When extraction fails the fallback stays and the
composer goes from COLOR_EXTRACTING straight to RUNNING; GRAPH_READY
is only entered by the rebuild that follows a published tint.

``select()`` is valid from any phase and restarts the sequence.  Every
load carries the version that was current when it was submitted; a
load finishing after a newer ``select()`` is dropped, never applied.

Nothing here blocks.  Background work (file reads, decode, colour
extraction) runs on the executor; ``frame()`` applies whatever has
finished, on the render thread, and then submits one frame if a graph
exists.
"""

import logging
import time
from dataclasses import dataclass
from concurrent.futures import Future
from typing import Optional

from animation import UniformAnimationDriver
from app_state import ComposerPhase, UniformSet
from color_extract import AverageColorExtractor, TintSlot
from config import DEFAULT_ASSET_SET, FALLBACK_TINT
from effects import EffectVariant, get_variant
from errors import EffectError, GraphBuildError
from graph_builder import ShaderGraphBuilder
from tasks import InlineExecutor
from textures import AssetLibrary, load_texture_pair

log = logging.getLogger(__name__)


@dataclass
class _PendingLoad:
    version: int
    variant: EffectVariant
    future: Future


def _load_assets(assets, paths, variant, name):
    """Worker side: read both files and decode them."""
    raw_bytes = assets.read(paths.raw)
    depth_bytes = assets.read(paths.depth)
    pair = load_texture_pair(raw_bytes, depth_bytes, variant, name=name)
    return pair, raw_bytes


class EffectComposer:
    def __init__(self, submit_frame, pointer_source, assets=None,
                 executor=None, clock=time.perf_counter, builder=None,
                 extractor=None, fallback_tint=FALLBACK_TINT):
        self.submit_frame = submit_frame
        self.pointer_source = pointer_source
        self.assets = assets if assets is not None else AssetLibrary()
        self.executor = executor if executor is not None else InlineExecutor()
        self.clock = clock
        self.builder = builder if builder is not None else ShaderGraphBuilder()
        self.extractor = (extractor if extractor is not None
                          else AverageColorExtractor(self.executor,
                                                     fallback=fallback_tint))

        self.uniforms = UniformSet(tint=tuple(fallback_tint))
        self.driver = UniformAnimationDriver(self.uniforms, clock)
        self.tint_slot = TintSlot(fallback_tint)
        self.error: Optional[EffectError] = None
        self.asset_set = DEFAULT_ASSET_SET

        self._phase = ComposerPhase.UNINITIALIZED
        self._version = 0
        self._load: Optional[_PendingLoad] = None
        self._variant: Optional[EffectVariant] = None
        self._pair = None
        self._graph = None

    # ────────── read-only views ──────────
    @property
    def phase(self) -> ComposerPhase:
        return self._phase

    @property
    def variant(self):
        return self._variant

    @property
    def texture_pair(self):
        return self._pair

    @property
    def graph(self):
        return self._graph

    @property
    def version(self) -> int:
        return self._version

    # ────────── control ──────────
    def select(self, variant_id: str, asset_set: Optional[str] = None):
        """Switch to ``variant_id``; raises UnknownVariantError synchronously."""
        variant = get_variant(variant_id)
        asset_set = asset_set or self.asset_set
        paths = self.assets.resolve(asset_set, variant)

        self._reset()
        self._version += 1
        self._variant = variant
        self.asset_set = asset_set
        self.error = None
        self.uniforms.progress = float(variant.curve.start)
        name = f"{asset_set}/{variant.id}"
        future = self.executor.submit(_load_assets, self.assets, paths,
                                      variant, name)
        self._load = _PendingLoad(self._version, variant, future)
        log.info("Effect '%s' selected (set %s, load v%d)",
                 variant.id, asset_set, self._version)
        self._set_phase(ComposerPhase.TEXTURES_LOADING)

    def teardown(self):
        """Drop every resource and in-flight task; back to UNINITIALIZED."""
        self._reset()
        self._version += 1
        self._variant = None
        self._set_phase(ComposerPhase.UNINITIALIZED)

    def _reset(self):
        if self._load is not None:
            if not self._load.future.done():
                log.debug("Load v%d superseded", self._load.version)
            self._load.future.cancel()
            self._load = None
        self.extractor.cancel_all()
        self.driver.stop()
        self.tint_slot.invalidate()
        self.uniforms.tint = self.tint_slot.color
        self._graph = None
        self._pair = None

    # ────────── per frame ──────────
    def frame(self, now=None) -> bool:
        """Apply finished background work, then submit one frame if possible."""
        if now is None:
            now = self.clock()

        load = self._load
        if load is not None and load.future.done():
            self._load = None
            self._finish_load(load, now)

        for req in self.extractor.poll():
            if req.slot is self.tint_slot and self._pair is not None:
                self.uniforms.tint = req.slot.color
                self._graph = self._build()
                self._set_phase(ComposerPhase.GRAPH_READY)

        if self._graph is None:
            return False

        self.driver.set_pointer(self.pointer_source())
        self.driver.sample(now)
        self.submit_frame(self._graph, self.uniforms)
        self._set_phase(ComposerPhase.RUNNING)
        return True

    def _finish_load(self, load, now):
        if load.version != self._version:
            log.debug("Stale load v%d dropped (current v%d)",
                      load.version, self._version)
            return
        try:
            pair, raw_bytes = load.future.result()
        except EffectError as e:
            raise self._fail(e)
        self._pair = pair
        self.extractor.request(self.tint_slot, raw_bytes)
        # Build now with the fallback tint; rebuilt once the tint lands
        self._graph = self._build()
        self.driver.start(load.variant.curve, now)
        self._set_phase(ComposerPhase.COLOR_EXTRACTING)

    def _build(self):
        try:
            return self.builder.build(self._pair, self.uniforms, self._variant)
        except GraphBuildError as e:
            raise self._fail(e)

    def _fail(self, error):
        """Reset to UNINITIALIZED and record ``error``; the caller raises it."""
        if not isinstance(error, GraphBuildError):
            log.error("Effect '%s' failed: %s",
                      self._variant.id if self._variant else "?", error)
        self._reset()
        self.error = error
        self._set_phase(ComposerPhase.UNINITIALIZED)
        return error

    def _set_phase(self, phase):
        if phase is self._phase:
            return
        log.debug("Composer: %s → %s", self._phase.value, phase.value)
        self._phase = phase
