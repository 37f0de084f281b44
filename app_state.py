# =============================
# Explicit uniform state
# =============================
"""
Replaces ambient, globally shared uniform objects.

One ``UniformSet`` is owned by the ``EffectComposer`` and passed by
reference to the animation driver (writer) and the frame submission
step (reader).  It is the only state the GPU evaluation reads.

Thread confinement: every write and read happens on the render thread.
Background workers hand their results back through futures and never
touch this object.  Each field is replaced by assigning a complete new
value (tuple / float), never mutated in place, so a reader can never
observe half of a vector even if that confinement is ever relaxed.

``HostState`` holds the window / input bookkeeping of ``main.py``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from config import FALLBACK_TINT, WINDOW_H, WINDOW_W


class ComposerPhase(Enum):
    UNINITIALIZED = "uninitialized"
    TEXTURES_LOADING = "textures_loading"
    COLOR_EXTRACTING = "color_extracting"
    GRAPH_READY = "graph_ready"
    RUNNING = "running"


@dataclass
class UniformSet:
    pointer: Tuple[float, float] = (0.0, 0.0)   # NDC, y up
    progress: float = 0.0                       # animation timeline only
    tint: Tuple[float, float, float] = FALLBACK_TINT

    def snapshot(self):
        """Immutable copy for logging / tests."""
        return (self.pointer, self.progress, self.tint)


@dataclass
class HostState:
    """Window / input state of the application host (replaces globals)."""

    # ── Timing / FPS ──
    start_time: float = 0.0
    prev_frame_time: float = 0.0
    fps_counter: int = 0
    fps_timer: float = 0.0
    current_fps: int = 0

    # ── Edge-triggered hotkeys ──
    f10_was_pressed: bool = False
    f11_was_pressed: bool = False
    f12_was_pressed: bool = False
    tab_was_pressed: bool = False

    # ── Fullscreen ──
    is_fullscreen: bool = False
    windowed_pos: List[int] = field(default_factory=lambda: [100, 100])
    windowed_size: List[int] = field(
        default_factory=lambda: [WINDOW_W, WINDOW_H])

    # ── Selection requested by UI / hotkeys, applied once per frame ──
    selection_dirty: bool = True

    # ── Screenshot ──
    screenshot_requested: bool = False
    screenshot_data: Optional[np.ndarray] = None
    screenshot_flash: float = 0.0

    # ── Last error surfaced by the composer ──
    error_msg: str = ""
