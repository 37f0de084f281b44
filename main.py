# =============================
# Depth Parallax — Application
# =============================
"""
Entry point.

  ``composer.py``  : ``EffectComposer`` (loads, tint, timeline, graph)
  ``renderer.py``  : ``Renderer``       (programs, textures, draw)
  ``ui_manager.py``: ``UIManager``      (ImGui panel)

This file contains the thin ``Application`` class: window creation,
event loop, pointer sampling and delegation to the subsystems above.
"""

import logging
import time
import threading

import glfw
import moderngl
import imgui
from imgui.integrations.glfw import GlfwRenderer

from config import (
    SCREENSHOTS_DIR, TARGET_FPS, WINDOW_H, WINDOW_TITLE, WINDOW_W, settings,
)
from app_state import HostState
from composer import EffectComposer
from errors import EffectError
from renderer import Renderer, cursor_to_ndc
from tasks import make_executor
from ui_manager import UIManager

log = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO,
                    format="%(asctime)s [%(levelname)s] %(message)s")

FRAME_TIME = 1.0 / TARGET_FPS
_SPIN_THRESHOLD = 0.0015  # switch from sleep to spin-wait at 1.5 ms remaining


class Application:
    """Top-level application object.  Owns all subsystems."""

    def __init__(self):
        self.state = HostState()

        # ── GLFW + OpenGL ──
        if not glfw.init():
            log.critical("GLFW init failed")
            raise SystemExit(1)

        glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
        glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
        glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
        glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, True)

        self.window = glfw.create_window(
            WINDOW_W, WINDOW_H, WINDOW_TITLE, None, None)
        if not self.window:
            glfw.terminate()
            raise SystemExit(1)

        glfw.make_context_current(self.window)
        glfw.swap_interval(settings["vsync"])
        self._last_vsync = settings["vsync"]

        self.ctx = moderngl.create_context()

        # ── ImGui ──
        imgui.create_context()
        self.impl = GlfwRenderer(self.window)

        # From this point, failures must clean up GL resources.
        try:
            self.executor = make_executor(settings["background_workers"])
            self.renderer = Renderer(self.ctx)
            self.ui = UIManager()
            self.composer = EffectComposer(
                submit_frame=self.renderer.submit,
                pointer_source=self._pointer,
                executor=self.executor)
        except Exception:
            log.exception("Error during Application init, cleaning up")
            self._cleanup()
            raise

    # ────────────────────── Pointer ──────────────────────

    def _pointer(self):
        """Latest cursor position in NDC; held while ImGui owns the mouse."""
        if imgui.get_io().want_capture_mouse:
            return self.composer.uniforms.pointer
        mx, my = glfw.get_cursor_pos(self.window)
        ww, wh = glfw.get_window_size(self.window)
        return cursor_to_ndc(mx, my, ww, wh)

    # ────────────────────── Main loop ──────────────────────

    def run(self):
        s = self.state
        s.start_time = s.prev_frame_time = s.fps_timer = time.perf_counter()
        try:
            while not glfw.window_should_close(self.window):
                now = time.perf_counter()
                dt = now - s.prev_frame_time
                s.prev_frame_time = now

                # FPS
                s.fps_counter += 1
                if now - s.fps_timer >= 1.0:
                    s.current_fps = s.fps_counter
                    s.fps_counter = 0
                    s.fps_timer = now

                # Events
                glfw.poll_events()
                self.impl.process_inputs()

                if glfw.get_key(self.window, glfw.KEY_ESCAPE) == glfw.PRESS:
                    break

                self._handle_hotkeys()
                self._apply_selection()

                # ── Effect frame ──
                w, h = glfw.get_framebuffer_size(self.window)
                if w < 1 or h < 1:
                    glfw.wait_events_timeout(0.05)
                    continue
                self.renderer.resize(w, h)
                self.renderer.clear()
                try:
                    self.composer.frame(now)
                except EffectError as e:
                    # Already logged by the composer; keep the host alive
                    s.error_msg = str(e)

                # ── Screenshot ──
                if s.screenshot_requested:
                    s.screenshot_requested = False
                    try:
                        s.screenshot_data = self.renderer.capture_screenshot(
                            self.window)
                    except moderngl.Error as e:
                        log.error("Screenshot capture error: %s", e)
                        s.screenshot_data = None
                    s.screenshot_flash = 1.5

                # ── ImGui ──
                imgui.new_frame()
                self.ui.draw(s, self.composer, self.renderer, now)
                imgui.render()
                self.impl.render(imgui.get_draw_data())

                glfw.swap_buffers(self.window)

                # ── VSync: apply changes dynamically ──
                if settings["vsync"] != self._last_vsync:
                    glfw.swap_interval(settings["vsync"])
                    self._last_vsync = settings["vsync"]

                # ── Frame limiter (active when vsync is off) ──
                if settings["frame_limiter"] and not settings["vsync"]:
                    target = now + FRAME_TIME
                    # Sleep for bulk of wait (minus spin margin)
                    sleep_time = target - time.perf_counter() - _SPIN_THRESHOLD
                    if sleep_time > 0:
                        time.sleep(sleep_time)
                    # Spin-wait for remaining sub-ms precision
                    while time.perf_counter() < target:
                        pass

                # ── Deferred saves (background thread) ──
                if s.screenshot_data is not None:
                    _img = s.screenshot_data
                    s.screenshot_data = None
                    threading.Thread(
                        target=self.renderer.save_screenshot_to_disk,
                        args=(_img, str(SCREENSHOTS_DIR), settings["effect"]),
                        daemon=True,
                    ).start()

                if s.screenshot_flash > 0:
                    s.screenshot_flash = max(s.screenshot_flash - dt, 0.0)

        finally:
            self._cleanup()

    def _apply_selection(self):
        s = self.state
        if not s.selection_dirty:
            return
        s.selection_dirty = False
        s.error_msg = ""
        try:
            self.composer.select(settings["effect"], settings["asset_set"])
        except EffectError as e:
            log.error("Cannot select '%s' / '%s': %s",
                      settings["effect"], settings["asset_set"], e)
            s.error_msg = str(e)

    # ────────────────────── Hotkeys ──────────────────────

    def _handle_hotkeys(self):
        s = self.state
        w = self.window
        io = imgui.get_io()

        # F10: toggle panel
        f10 = glfw.get_key(w, glfw.KEY_F10) == glfw.PRESS
        if f10 and not s.f10_was_pressed:
            settings["show_panel"] = 0 if settings["show_panel"] else 1
        s.f10_was_pressed = f10

        # F11: fullscreen
        f11 = glfw.get_key(w, glfw.KEY_F11) == glfw.PRESS
        if f11 and not s.f11_was_pressed:
            self._toggle_fullscreen()
        s.f11_was_pressed = f11

        # F12: screenshot
        f12 = glfw.get_key(w, glfw.KEY_F12) == glfw.PRESS
        if f12 and not s.f12_was_pressed:
            s.screenshot_requested = True
        s.f12_was_pressed = f12

        # Tab: next effect
        tab = glfw.get_key(w, glfw.KEY_TAB) == glfw.PRESS
        if tab and not s.tab_was_pressed and not io.want_capture_keyboard:
            UIManager.next_effect(s)
        s.tab_was_pressed = tab

    # ────────────────────── Fullscreen ──────────────────────

    def _toggle_fullscreen(self):
        s = self.state
        if s.is_fullscreen:
            glfw.set_window_monitor(
                self.window, None,
                s.windowed_pos[0], s.windowed_pos[1],
                s.windowed_size[0], s.windowed_size[1], 0)
            s.is_fullscreen = False
        else:
            s.windowed_pos = list(glfw.get_window_pos(self.window))
            s.windowed_size = list(glfw.get_window_size(self.window))
            monitor = glfw.get_primary_monitor()
            mode = glfw.get_video_mode(monitor)
            glfw.set_window_monitor(
                self.window, monitor, 0, 0,
                mode.size.width, mode.size.height,
                mode.refresh_rate)
            s.is_fullscreen = True

    # ────────────────────── Cleanup ──────────────────────

    def _cleanup(self):
        # Release in reverse init order; guard each in case init failed partway.
        if hasattr(self, 'composer'):
            self.composer.teardown()
        if hasattr(self, 'executor'):
            self.executor.shutdown(wait=False, cancel_futures=True)
        if hasattr(self, 'impl'):
            self.impl.shutdown()
        if hasattr(self, 'renderer'):
            self.renderer.release()
        if hasattr(self, 'ctx'):
            self.ctx.release()
        glfw.terminate()


def main():
    app = Application()
    app.run()


# ── Entry point ──
if __name__ == "__main__":
    main()
