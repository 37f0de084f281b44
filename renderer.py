# =============================
# Renderer — compiles shader graphs, uploads textures, draws frames
# =============================
"""
The host side of frame submission.  ``submit(graph, uniforms)`` is the
only entry point the composer uses; everything GPU-specific lives here.

Programs are cached by ``ShaderGraph.signature``: a graph rebuilt with a
new tint compiles to the same source (the tint is a uniform), so the
rebuild costs no shader compile.  Textures are cached per TexturePair
and released as soon as a different pair is drawn.
"""

import logging
import os
from datetime import datetime

import numpy as np
import cv2
import moderngl
import glfw

from config import settings
from shader_graph import compile_glsl
from shaders import FULLSCREEN_VERTEX_SHADER

log = logging.getLogger(__name__)

# Texture units of the graph samplers
_TEXTURE_UNITS = {"raw": 0, "depth": 1}


def cover_viewport(fb_w, fb_h, aspect):
    """Viewport (x, y, w, h) that fills the framebuffer at ``aspect``.

    The effect is scaled until both axes are covered and centred, so the
    overflowing axis is cropped evenly on both sides.
    """
    if fb_w <= 0 or fb_h <= 0:
        return 0, 0, 0, 0
    if fb_w / fb_h > aspect:
        w, h = fb_w, int(round(fb_w / aspect))
    else:
        w, h = int(round(fb_h * aspect)), fb_h
    return (fb_w - w) // 2, (fb_h - h) // 2, w, h


def cursor_to_ndc(x, y, win_w, win_h):
    """Window cursor position (origin top-left) → NDC in [-1, 1], y up."""
    if win_w <= 0 or win_h <= 0:
        return 0.0, 0.0
    return 2.0 * x / win_w - 1.0, 1.0 - 2.0 * y / win_h


def _upload(ctx, image):
    """float32 image (row 0 = top) → linear, clamp-to-edge texture."""
    # Plain f4 storage: raw colours are sampled as encoded, not linearised
    h, w = image.shape[:2]
    components = 1 if image.ndim == 2 else image.shape[2]
    # GL textures start at the bottom row
    data = np.ascontiguousarray(np.flipud(image), dtype=np.float32)
    tex = ctx.texture((w, h), components, data.tobytes(), dtype='f4')
    tex.filter = (moderngl.LINEAR, moderngl.LINEAR)
    tex.repeat_x = False
    tex.repeat_y = False
    return tex


class Renderer:
    """moderngl frame submission for ShaderGraphs."""

    def __init__(self, ctx: moderngl.Context):
        self.ctx = ctx

        # ── Screen quad VBO (single overdraw triangle) ──
        self._screen_quad_vbo = ctx.buffer(np.array([
            -1.0, -1.0, 0.0, 0.0,
             3.0, -1.0, 2.0, 0.0,
            -1.0,  3.0, 0.0, 2.0,
        ], dtype='f4'))

        self._programs = {}          # signature → (program, vao)
        self._pair = None
        self._textures = {}          # "raw" / "depth" → Texture
        self._size = (0, 0)
        self.frames = 0

    # ────────────────── Framebuffer ──────────────────

    def resize(self, w, h):
        self._size = (int(w), int(h))

    def clear(self):
        bg = settings["bg_color"]
        self.ctx.screen.use()
        self.ctx.viewport = (0, 0, *self._size)
        self.ctx.clear(bg[0], bg[1], bg[2])

    # ────────────────── Programs / textures ──────────────────

    def _program_for(self, graph):
        entry = self._programs.get(graph.signature)
        if entry is None:
            source = compile_glsl(graph)
            prog = self.ctx.program(
                vertex_shader=FULLSCREEN_VERTEX_SHADER,
                fragment_shader=source)
            vao = self.ctx.vertex_array(
                prog, [(self._screen_quad_vbo, '2f 2f', 'in_pos', 'in_uv')])
            entry = (prog, vao)
            self._programs[graph.signature] = entry
            log.info("Program compiled for '%s' (%s)",
                     graph.variant_id, graph.signature[:10])
        return entry

    def _bind_textures(self, pair):
        if pair is not self._pair:
            self._release_textures()
            self._textures = {"raw": _upload(self.ctx, pair.raw),
                              "depth": _upload(self.ctx, pair.depth)}
            self._pair = pair
            log.info("Textures uploaded: %s (%dx%d)", pair.name or "?",
                     *pair.size)
        for name, tex in self._textures.items():
            tex.use(_TEXTURE_UNITS[name])

    def _release_textures(self):
        for tex in self._textures.values():
            tex.release()
        self._textures = {}
        self._pair = None

    # ────────────────── Frame submission ──────────────────

    def submit(self, graph, uniforms):
        """Draw ``graph`` with the current ``uniforms`` into the screen."""
        fb_w, fb_h = self._size
        if fb_w < 1 or fb_h < 1:
            return
        prog, vao = self._program_for(graph)
        self._bind_textures(graph.textures)

        for name in graph.texture_names:
            key = f"u_{name}"
            if key in prog:
                prog[key].value = _TEXTURE_UNITS[name]
        values = {"u_pointer": tuple(uniforms.pointer),
                  "u_progress": float(uniforms.progress),
                  "u_tint": tuple(uniforms.tint)}
        for key, value in values.items():
            # The GLSL compiler drops unused uniforms
            if key in prog:
                prog[key].value = value

        self.ctx.screen.use()
        self.ctx.disable(moderngl.DEPTH_TEST)
        self.ctx.viewport = cover_viewport(fb_w, fb_h, graph.textures.aspect)
        vao.render(moderngl.TRIANGLES)
        self.ctx.viewport = (0, 0, fb_w, fb_h)
        self.frames += 1

    # ────────────────── Screenshot ──────────────────

    def capture_screenshot(self, window):
        """Capture framebuffer pixels (call BEFORE imgui render)."""
        w, h = glfw.get_framebuffer_size(window)
        data = self.ctx.screen.read(
            viewport=(0, 0, w, h), components=3, alignment=1)
        expected = w * h * 3
        if len(data) != expected:
            log.error("Screenshot: data size %d != %dx%dx3=%d",
                      len(data), w, h, expected)
            return None
        img = np.frombuffer(data, dtype=np.uint8).reshape((h, w, 3))
        img = np.flipud(img)
        return cv2.cvtColor(img, cv2.COLOR_RGB2BGR)

    @staticmethod
    def save_screenshot_to_disk(img, screenshots_dir, prefix="effect"):
        """Save captured pixels to PNG (call outside GL context)."""
        if img is None:
            return None
        os.makedirs(screenshots_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")[:-3]
        path = os.path.join(screenshots_dir, f"{prefix}_{timestamp}.png")
        cv2.imwrite(path, img)
        log.info("Screenshot saved: %s (%dx%d)",
                 path, img.shape[1], img.shape[0])
        return path

    # ────────────────── Cleanup ──────────────────

    def release(self):
        """Release all GPU resources."""
        self._release_textures()
        for prog, vao in self._programs.values():
            vao.release()
            prog.release()
        self._programs.clear()
        self._screen_quad_vbo.release()
