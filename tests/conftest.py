import struct
import zlib
from concurrent.futures import Executor, Future

import cv2
import numpy as np
import pytest

from app_state import UniformSet
from effects import CROSSES, LINES
from textures import AssetLibrary, TexturePair


def encode(rgb, ext=".png"):
    """Encode an RGB (or single-channel) uint8/uint16 array to image bytes."""
    img = np.asarray(rgb)
    if img.ndim == 3:
        img = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
    ok, buf = cv2.imencode(ext, img)
    assert ok
    return buf.tobytes()


def oversized_png(width=100000, height=100000):
    """A PNG header claiming more pixels than OpenCV will decode."""
    def chunk(kind, payload):
        crc = zlib.crc32(kind + payload) & 0xFFFFFFFF
        return (struct.pack(">I", len(payload)) + kind + payload
                + struct.pack(">I", crc))

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    idat = zlib.compress(b"\x00" * 4)
    return (b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr)
            + chunk(b"IDAT", idat) + chunk(b"IEND", b""))


def solid(w, h, rgb):
    img = np.empty((h, w, 3), dtype=np.uint8)
    img[...] = rgb
    return img


class ManualExecutor(Executor):
    """Queues submissions; tests decide when (and in which order) they run."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run(self, index=0):
        future, fn, args, kwargs = self.jobs.pop(index)
        if not future.set_running_or_notify_cancel():
            return future
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def run_all(self):
        while self.jobs:
            self.run(0)


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def uniforms():
    return UniformSet()


def make_pair(raw, depth, variant=LINES, name="test"):
    return TexturePair(raw=np.asarray(raw, dtype=np.float32),
                       depth=np.asarray(depth, dtype=np.float32),
                       native_width=variant.native_width,
                       native_height=variant.native_height,
                       name=name)


@pytest.fixture
def checkerboard_pair():
    raw = np.zeros((2, 2, 3), dtype=np.float32)
    raw[0, 0] = raw[1, 1] = 1.0
    depth = np.full((2, 2), 0.5, dtype=np.float32)
    return raw, depth


def write_asset_set(root, name, size=(8, 6), lines_rgb=(200, 100, 40),
                    crosses_rgb=(40, 120, 220), depth_size=None):
    w, h = size
    dw, dh = depth_size or size
    folder = root / name
    folder.mkdir(parents=True, exist_ok=True)
    ramp = np.tile(np.linspace(0, 255, dw, dtype=np.uint8), (dh, 1))
    (folder / LINES.raw_asset).write_bytes(encode(solid(w, h, lines_rgb)))
    (folder / LINES.depth_asset).write_bytes(encode(ramp))
    (folder / CROSSES.raw_asset).write_bytes(
        encode(solid(w, h, crosses_rgb), ".jpg"))
    (folder / CROSSES.depth_asset).write_bytes(encode(ramp))
    return folder


@pytest.fixture
def assets(tmp_path):
    write_asset_set(tmp_path, "pictures_1")
    write_asset_set(tmp_path, "pictures_2", lines_rgb=(10, 200, 90))
    return AssetLibrary(tmp_path, ["pictures_1", "pictures_2", "pictures_3"])
