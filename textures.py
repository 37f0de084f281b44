# =============================
# Textures — decode and asset catalogue
# =============================
"""
Raw colour / depth image pairs.

Images are decoded with OpenCV into float32 arrays, row 0 at the top.
The colour image becomes RGB (OpenCV decodes BGR), the depth image a
single channel in [0, 1] (red channel for colour-encoded maps).

Colour values stay in their encoded (sRGB) form: no linearisation on
decode and no sRGB framebuffer, so tint and screen blending happen on
encoded values.  A three.js build tagging the raw map as sRGB blends in
linear space instead and comes out somewhat brighter.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np

from config import ASSETS_DIR, ASSET_SETS
from errors import AssetDecodeError, TextureLoadError, UnknownVariantError

log = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class TexturePair:
    """Immutable colour + depth textures of one asset set."""

    raw: np.ndarray           # float32 (H, W, 3) RGB 0..1
    depth: np.ndarray         # float32 (H, W) 0..1
    native_width: int
    native_height: int
    name: str = ""

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) of the colour image in pixels."""
        return self.raw.shape[1], self.raw.shape[0]

    @property
    def aspect(self) -> float:
        return self.native_width / self.native_height


def _normalise(pixels: np.ndarray) -> np.ndarray:
    if np.issubdtype(pixels.dtype, np.integer):
        scale = 1.0 / np.iinfo(pixels.dtype).max
        return pixels.astype(np.float32) * np.float32(scale)
    return pixels.astype(np.float32)


def decode_pixels(data: bytes) -> np.ndarray:
    """Decode encoded image bytes to an RGB(A) array, native dtype.

    Raises AssetDecodeError when OpenCV cannot make sense of the bytes.
    """
    if not data:
        raise AssetDecodeError("empty image buffer")
    buf = np.frombuffer(data, dtype=np.uint8)
    try:
        img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
        if img is None:
            raise AssetDecodeError(f"cannot decode image ({len(data)} bytes)")
        if img.ndim == 2:
            return img
        if img.shape[2] == 4:
            return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    except cv2.error as e:
        # e.g. a header claiming more pixels than CV_IO_MAX_IMAGE_PIXELS
        raise AssetDecodeError(
            f"cannot decode image ({len(data)} bytes): {e}") from e


def decode_image(data: bytes, depth: bool = False) -> np.ndarray:
    """Decode to float32: RGB (H, W, 3), or (H, W) when ``depth``."""
    pixels = decode_pixels(data)
    if depth:
        channel = pixels if pixels.ndim == 2 else pixels[..., 0]
        return _normalise(channel)
    if pixels.ndim == 2:
        pixels = np.repeat(pixels[..., None], 3, axis=2)
    return _normalise(pixels[..., :3])


@dataclass(frozen=True)
class AssetPaths:
    raw: Path
    depth: Path


class AssetLibrary:
    """Resolves (asset set, effect variant) to the raw/depth files on disk."""

    def __init__(self, root=ASSETS_DIR, asset_sets=None):
        self.root = Path(root)
        self.asset_sets = list(asset_sets if asset_sets is not None else ASSET_SETS)

    def resolve(self, asset_set: str, variant) -> AssetPaths:
        if asset_set not in self.asset_sets:
            raise UnknownVariantError(f"Unknown asset set '{asset_set}'")
        folder = self.root / asset_set
        return AssetPaths(folder / variant.raw_asset,
                          folder / variant.depth_asset)

    @staticmethod
    def read(path: Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise TextureLoadError(f"cannot read {path}: {e}") from e


def load_texture_pair(raw_bytes: bytes, depth_bytes: bytes, variant,
                      name: str = "") -> TexturePair:
    """Decode both images into a TexturePair.

    A picture that cannot be decoded is fatal (TextureLoadError); size
    agreement between the two is checked later by the graph builder.
    """
    try:
        raw = decode_image(raw_bytes)
        depth = decode_image(depth_bytes, depth=True)
    except AssetDecodeError as e:
        raise TextureLoadError(f"texture pair '{name}': {e}") from e
    log.info("Textures loaded: %s raw=%dx%d depth=%dx%d", name or "?",
             raw.shape[1], raw.shape[0], depth.shape[1], depth.shape[0])
    return TexturePair(raw=raw, depth=depth,
                       native_width=variant.native_width,
                       native_height=variant.native_height,
                       name=name)
