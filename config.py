# =============================
# Configuration — depth parallax effects
# =============================
from pathlib import Path
from typing import List, TypedDict

_BASE_DIR = Path(__file__).resolve().parent

# Asset catalogue (one raw/depth pair per effect inside every set)
ASSETS_DIR = _BASE_DIR / "assets"
ASSET_SET_COUNT = 5
ASSET_SETS = [f"pictures_{i + 1}" for i in range(ASSET_SET_COUNT)]
DEFAULT_ASSET_SET = "pictures_1"

# Screenshots (F12)
SCREENSHOTS_DIR = _BASE_DIR / "screenshots"

# Window
WINDOW_W, WINDOW_H = 1280, 720
WINDOW_TITLE = "Depth Parallax"

# Rendering
TARGET_FPS = 120

# Parallax: depth.r * pointer * strength is added to the sampling uv
PARALLAX_STRENGTH = 0.01

# Average colour tint
TINT_BOOST = 1.25
FALLBACK_TINT = (0.9, 0.39, 0.12)

# Pattern constants shared by the catalogue
FLOW_EDGE = 0.02
LINE_EDGES = (0.25, 0.22)       # smoothstep(inner, outer, |tile.y|)
CROSS_HALF_EXTENTS = (0.3, 0.02)
CROSS_EDGE = 0.02

# Default effect
DEFAULT_EFFECT = "lines"

# =============================
# Runtime settings (mutable)
# =============================


class Settings(TypedDict):
    """Typed schema for the runtime settings dict.

    Toggles are ``int`` 0/1 to match ImGui checkbox conventions.
    """
    effect: str
    asset_set: str
    vsync: int
    frame_limiter: int
    # 0 = run decode/extraction inline on the render thread
    background_workers: int
    show_panel: int
    bg_color: List[float]     # [r, g, b] 0‒1


settings: Settings = {
    "effect": DEFAULT_EFFECT,
    "asset_set": DEFAULT_ASSET_SET,
    "vsync": 1,
    "frame_limiter": 0,
    "background_workers": 2,
    "show_panel": 1,
    "bg_color": [0.0, 0.0, 0.0],
}
