# =============================
# ShaderGraphBuilder — effect variant → ShaderGraph
# =============================
"""
Assembles the per-pixel program of one effect variant:

    base  = raw(uv + depth(uv) · pointer · 0.01) · base_gain
    flow  = 1 − smoothstep(0, flow_edge, |depth′ − progress|)
    mask  = pattern · flow · tint · tint_gain     (in blend_order)
    final = screen(base, mask)

``depth′`` is ``1 − depth`` for variants whose depth maps are stored
near = dark.  The pattern is evaluated in aspect-corrected uv so the
tiles stay square on non-square images.
"""

import logging

from config import PARALLAX_STRENGTH
from effects import DEFAULT_BLEND_ORDER, EffectVariant, PatternKind
from errors import GraphBuildError
from shader_graph import (
    ShaderGraph, blend_screen, cell_noise, mod, one_minus, sd_cross,
    smoothstep, swizzle, texture, uniform, uv, vec2,
)

log = logging.getLogger(__name__)


class ShaderGraphBuilder:
    """Stateless; one instance can serve every variant."""

    def __init__(self, parallax_strength: float = PARALLAX_STRENGTH):
        self.parallax_strength = parallax_strength

    def build(self, texture_pair, uniforms, variant: EffectVariant) -> ShaderGraph:
        try:
            self._validate(texture_pair, variant)
            root = self._compose(variant)
            graph = ShaderGraph(root=root, textures=texture_pair,
                                variant_id=variant.id,
                                tint=tuple(uniforms.tint))
        except GraphBuildError as e:
            log.error("Graph build failed for '%s': %s", variant.id, e)
            raise
        log.debug("Graph built: %s sig=%s tint=(%.3f, %.3f, %.3f)",
                  variant.id, graph.signature[:10], *graph.tint)
        return graph

    # ────────── validation ──────────
    @staticmethod
    def _validate(pair, variant):
        raw_hw = pair.raw.shape[:2]
        depth_hw = pair.depth.shape[:2]
        if raw_hw != depth_hw:
            raise GraphBuildError(
                f"raw {raw_hw[1]}x{raw_hw[0]} and depth "
                f"{depth_hw[1]}x{depth_hw[0]} differ in size")
        if 0 in raw_hw:
            raise GraphBuildError("empty texture")
        if variant.native_width <= 0 or variant.native_height <= 0:
            raise GraphBuildError(
                f"native size must be positive "
                f"({variant.native_width}x{variant.native_height})")
        if variant.tiling_density <= 0:
            raise GraphBuildError(
                f"tiling density must be positive ({variant.tiling_density})")
        if variant.flow_edge <= 0:
            raise GraphBuildError(
                f"flow edge must be positive ({variant.flow_edge})")
        if variant.pattern is PatternKind.CROSS and variant.cross is None:
            raise GraphBuildError("cross pattern needs CrossShape parameters")
        if variant.pattern is PatternKind.LINES:
            lo, hi = variant.line_edges
            if lo == hi:
                raise GraphBuildError(f"line edges must differ ({lo})")
        if sorted(variant.blend_order) != sorted(DEFAULT_BLEND_ORDER):
            raise GraphBuildError(
                f"blend order must be a permutation of {DEFAULT_BLEND_ORDER}, "
                f"got {variant.blend_order}")

    # ────────── graph ──────────
    def _compose(self, variant):
        coord = uv()
        depth = texture("depth", coord)

        # Parallax: shift the colour lookup by depth · pointer
        offset = depth * uniform("pointer") * self.parallax_strength
        base = texture("raw", coord + offset)
        if variant.base_gain != 1.0:
            base = base * variant.base_gain

        depth_value = one_minus(depth) if variant.invert_depth else depth
        flow = one_minus(smoothstep(
            0.0, variant.flow_edge, abs(depth_value - uniform("progress"))))

        terms = {
            "pattern": self._pattern(variant, coord),
            "flow": flow,
            "tint": self._tint(variant),
        }
        order = variant.blend_order
        mask = terms[order[0]] * terms[order[1]] * terms[order[2]]
        return blend_screen(base, mask)

    @staticmethod
    def _tint(variant):
        tint = uniform("tint")
        if variant.tint_gain != 1.0:
            tint = tint * variant.tint_gain
        return tint

    @staticmethod
    def _pattern(variant, coord):
        t_uv = vec2(swizzle(coord, "x") * variant.aspect, swizzle(coord, "y"))
        tiled = mod(t_uv * variant.tiling_density, 2.0) - 1.0

        if variant.pattern is PatternKind.LINES:
            lo, hi = variant.line_edges
            line = smoothstep(lo, hi, abs(swizzle(tiled, "y")))
            noise = cell_noise(t_uv * (variant.tiling_density / 2.0))
            return line * noise

        shape = variant.cross
        dist = sd_cross(tiled, shape.half_extents, shape.corner_radius)
        return one_minus(smoothstep(0.0, shape.edge, dist))
