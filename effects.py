# =============================
# Effect catalogue
# =============================
"""
The closed set of effect presets.  Each preset is an immutable
``EffectVariant`` descriptor; the two mask strategies (noisy scan
lines vs. an SDF cross grid) are separate presets with their own
constants, not points on a continuous parameter space.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from config import (
    CROSS_EDGE, CROSS_HALF_EXTENTS, FLOW_EDGE, LINE_EDGES,
)
from errors import UnknownVariantError


class PatternKind(Enum):
    LINES = "lines"       # cell-noise modulated horizontal line grid
    CROSS = "cross"       # sd_cross tiled grid


class LoopMode(Enum):
    YOYO = "yoyo"         # start → target → start ...
    RESTART = "restart"   # start → target, jump back, repeat


@dataclass(frozen=True)
class AnimationCurve:
    """Progress timeline: ``start`` → ``target`` over ``duration`` seconds."""

    start: float = 0.0
    target: float = 1.0
    duration: float = 4.5
    ease: str = "power2.inOut"
    loop: LoopMode = LoopMode.YOYO
    repeat: int = -1      # -1 = forever; N = N extra iterations


@dataclass(frozen=True)
class CrossShape:
    half_extents: Tuple[float, float] = CROSS_HALF_EXTENTS
    corner_radius: float = 0.0
    edge: float = CROSS_EDGE


# Factor order of the tint composition (pattern × flow × tint)
DEFAULT_BLEND_ORDER = ("pattern", "flow", "tint")


@dataclass(frozen=True)
class EffectVariant:
    id: str
    label: str
    native_width: int
    native_height: int
    tiling_density: float
    pattern: PatternKind
    curve: AnimationCurve
    raw_asset: str
    depth_asset: str
    cross: Optional[CrossShape] = None
    line_edges: Tuple[float, float] = LINE_EDGES
    invert_depth: bool = False
    flow_edge: float = FLOW_EDGE
    base_gain: float = 1.0       # dims the parallax-sampled base colour
    tint_gain: float = 1.0       # brightens the tint for thin masks
    blend_order: Tuple[str, ...] = field(default=DEFAULT_BLEND_ORDER)

    @property
    def aspect(self) -> float:
        return self.native_width / self.native_height


LINES = EffectVariant(
    id="lines",
    label="Ember Lines",
    native_width=1600,
    native_height=900,
    tiling_density=150.0,
    pattern=PatternKind.LINES,
    curve=AnimationCurve(start=0.0, target=1.0, duration=4.5,
                         ease="power2.inOut"),
    raw_asset="raw-1.png",
    depth_asset="depth-1.png",
)

CROSSES = EffectVariant(
    id="crosses",
    label="Cross Grid",
    native_width=1226,
    native_height=650,
    tiling_density=50.0,
    pattern=PatternKind.CROSS,
    cross=CrossShape(),
    curve=AnimationCurve(start=0.0, target=0.9, duration=4.5,
                         ease="power1.inOut"),
    raw_asset="raw-3.jpg",
    depth_asset="depth-3.png",
    invert_depth=True,
    base_gain=0.5,
    tint_gain=1.5,
)

CATALOG: Dict[str, EffectVariant] = {v.id: v for v in (LINES, CROSSES)}


def get_variant(variant_id: str) -> EffectVariant:
    try:
        return CATALOG[variant_id]
    except KeyError:
        raise UnknownVariantError(
            f"Unknown effect '{variant_id}' "
            f"(known: {', '.join(CATALOG)})") from None


def list_variants():
    return list(CATALOG.values())
