# =============================
# UIManager — ImGui control panel
# =============================
"""
Effect / asset-set selection and a status readout.

The panel never talks to the composer directly: a click writes the
choice into ``settings`` and flags ``state.selection_dirty``; the
application applies it once per frame.  Keeps ``main.py`` free of
draw-call clutter.
"""

import logging

import imgui

from app_state import ComposerPhase
from config import ASSET_SETS, settings
from effects import list_variants

log = logging.getLogger(__name__)

_ACCENT = (0.39, 0.40, 0.95, 1.0)
_PHASE_COLORS = {
    ComposerPhase.UNINITIALIZED: (0.6, 0.6, 0.6, 1.0),
    ComposerPhase.TEXTURES_LOADING: (1.0, 0.65, 0.0, 1.0),
    ComposerPhase.COLOR_EXTRACTING: (1.0, 0.85, 0.2, 1.0),
    ComposerPhase.GRAPH_READY: (0.15, 0.85, 0.95, 1.0),
    ComposerPhase.RUNNING: (0.31, 0.75, 0.31, 1.0),
}


class UIManager:
    """Draws the settings panel; selection changes go through ``settings``."""

    # ────────────────── Selection helpers ──────────────────

    @staticmethod
    def request(state, effect=None, asset_set=None):
        """Queue a new (effect, asset set); applied by the app loop."""
        if effect is not None:
            settings["effect"] = effect
        if asset_set is not None:
            settings["asset_set"] = asset_set
        state.selection_dirty = True
        log.debug("Selection requested: %s / %s",
                  settings["effect"], settings["asset_set"])

    @staticmethod
    def next_effect(state):
        ids = [v.id for v in list_variants()]
        i = ids.index(settings["effect"]) if settings["effect"] in ids else -1
        UIManager.request(state, effect=ids[(i + 1) % len(ids)])

    # ────────────────── Main draw ──────────────────

    def draw(self, state, composer, renderer, now):
        if not settings["show_panel"]:
            return

        imgui.push_style_color(imgui.COLOR_TITLE_BACKGROUND_ACTIVE, *_ACCENT)
        imgui.push_style_color(imgui.COLOR_BUTTON_ACTIVE, *_ACCENT)
        imgui.push_style_color(imgui.COLOR_CHECK_MARK, 0.31, 0.75, 0.31, 1.0)

        imgui.begin("Depth Parallax")
        self._draw_effect_section(state)
        self._draw_asset_section(state)
        self._draw_display_section()
        self._draw_status_section(state, composer, renderer)

        imgui.separator()
        imgui.text("ESC - quit | F10 - toggle panel | F11 - fullscreen")
        imgui.text("F12 - screenshot | Tab - next effect")
        imgui.end()

        imgui.pop_style_color(3)

    # ────────────────── Section: Effect ──────────────────

    @staticmethod
    def _draw_effect_section(state):
        imgui.text("Effect:")
        for i, variant in enumerate(list_variants()):
            if i > 0:
                imgui.same_line()
            clicked = imgui.radio_button(
                f"{variant.label}##fx", settings["effect"] == variant.id)
            if clicked and variant.id != settings["effect"]:
                UIManager.request(state, effect=variant.id)
        imgui.separator()

    # ────────────────── Section: Asset set ──────────────────

    @staticmethod
    def _draw_asset_section(state):
        imgui.text("Pictures:")
        for i, name in enumerate(ASSET_SETS):
            if i > 0:
                imgui.same_line()
            active = settings["asset_set"] == name
            if active:
                imgui.push_style_color(imgui.COLOR_BUTTON, *_ACCENT)
            clicked = imgui.button(f"Set {i + 1}##set")
            if active:
                imgui.pop_style_color()
            if clicked and not active:
                UIManager.request(state, asset_set=name)
        imgui.separator()

    # ────────────────── Section: Display ──────────────────

    @staticmethod
    def _draw_display_section():
        changed, val = imgui.checkbox("VSync", bool(settings["vsync"]))
        if changed:
            settings["vsync"] = int(val)
        if not settings["vsync"]:
            imgui.same_line()
            changed, val = imgui.checkbox(
                "Frame Limiter", bool(settings["frame_limiter"]))
            if changed:
                settings["frame_limiter"] = int(val)

        changed, color = imgui.color_edit3(
            "Background", *settings["bg_color"])
        if changed:
            settings["bg_color"] = list(color)
        imgui.separator()

    # ────────────────── Section: Status ──────────────────

    @staticmethod
    def _draw_status_section(state, composer, renderer):
        phase = composer.phase
        imgui.text("Phase:")
        imgui.same_line()
        imgui.push_style_color(imgui.COLOR_TEXT, *_PHASE_COLORS[phase])
        imgui.text(phase.value.replace("_", " ").upper())
        imgui.pop_style_color()

        variant = composer.variant
        imgui.text(f"Effect: {variant.label if variant else '-'}  "
                   f"Set: {composer.asset_set}")

        u = composer.uniforms
        imgui.text(f"Progress: {u.progress:.3f}")
        imgui.progress_bar(min(max(u.progress, 0.0), 1.0), (0, 0), "")
        imgui.text(f"Pointer: ({u.pointer[0]:+.2f}, {u.pointer[1]:+.2f})")

        imgui.text("Tint:")
        imgui.same_line()
        imgui.color_button("##tint", *u.tint, 1.0)
        imgui.same_line()
        source = "fallback" if composer.tint_slot.is_fallback else "image"
        imgui.text(f"({u.tint[0]:.2f}, {u.tint[1]:.2f}, {u.tint[2]:.2f}) "
                   f"{source}")

        imgui.text(f"FPS: {state.current_fps}  Frames: {renderer.frames}")

        if state.screenshot_flash > 0:
            imgui.push_style_color(imgui.COLOR_TEXT, 0.31, 0.75, 0.31, 1.0)
            imgui.text("Screenshot saved")
            imgui.pop_style_color()

        if state.error_msg:
            imgui.separator()
            imgui.push_style_color(imgui.COLOR_TEXT, 1.0, 0.35, 0.35, 1.0)
            imgui.text_wrapped(f"Error: {state.error_msg}")
            imgui.pop_style_color()
            if imgui.button("Retry"):
                UIManager.request(state)
