# =============================
# Shader math — SDFs, tiling, blend helpers (numpy)
# =============================
"""
Pure, stateless numeric functions shared by the graph interpreter and
mirrored one-to-one by the GLSL library in ``shaders.py``.

All functions are vectorised: 2D coordinates live in the trailing axis
of size 2, so the same call works on a single point, a row of points
or a whole HxWx2 uv grid.
"""

import numpy as np

_U32 = np.uint32


def smoothstep(edge0, edge1, x):
    """Hermite threshold.  ``edge0 > edge1`` is allowed and inverts the ramp."""
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / (edge1 - edge0),
                0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def screen_blend(base, blend):
    """Screen compositing: ``1 - (1 - base) * (1 - blend)``, channel-wise."""
    return 1.0 - (1.0 - np.asarray(base, dtype=np.float64)) * (
        1.0 - np.asarray(blend, dtype=np.float64))


def tile_uv(uv, density):
    """Remap a repeating coordinate into a per-tile local frame in [-1, 1).

    Periodic with period ``2 / density`` along each axis.
    """
    return np.mod(np.asarray(uv, dtype=np.float64) * density, 2.0) - 1.0


def sd_cross(p, half_extents, corner_radius=0.0):
    """Signed distance to a centred, axis-aligned plus shape.

    ``half_extents`` is (arm length, arm half-width).  Negative inside.
    """
    p = np.abs(np.asarray(p, dtype=np.float64))
    b = np.asarray(half_extents, dtype=np.float64)
    bx, by = b[..., 0], b[..., 1]

    # Fold into the first octant: x >= y
    swap = p[..., 1] > p[..., 0]
    px = np.where(swap, p[..., 1], p[..., 0])
    py = np.where(swap, p[..., 0], p[..., 1])

    qx = px - bx
    qy = py - by
    k = np.maximum(qy, qx)
    outside = k > 0.0

    # Arm region measures to the box; the concave corner region to the arm side
    wx = np.where(outside, qx, by - px)
    wy = np.where(outside, qy, -k)
    d = np.hypot(np.maximum(wx, 0.0), np.maximum(wy, 0.0))
    return np.where(outside, d, -d) + corner_radius


# ── MaterialX cell noise (mx_cell_noise_float) ──

def _rot(x, k):
    return (x << _U32(k)) | (x >> _U32(32 - k))


def _bjfinal(a, b, c):
    """Bob Jenkins lookup3 final mix, uint32 wrap-around."""
    c ^= b
    c -= _rot(b, 14)
    a ^= c
    a -= _rot(c, 11)
    b ^= a
    b -= _rot(a, 25)
    c ^= b
    c -= _rot(b, 16)
    a ^= c
    a -= _rot(c, 4)
    b ^= a
    b -= _rot(a, 14)
    c ^= b
    c -= _rot(b, 24)
    return c


def hash_cell(ix, iy):
    """lookup3 hash of an integer lattice cell, as uint32."""
    ix = np.atleast_1d(np.asarray(ix, dtype=np.int64)).astype(_U32)
    iy = np.atleast_1d(np.asarray(iy, dtype=np.int64)).astype(_U32)
    ix, iy = np.broadcast_arrays(ix, iy)
    seed = _U32(0xDEADBEEF + (2 << 2) + 13)
    a = np.full(ix.shape, seed, dtype=_U32)
    b = a.copy()
    c = a.copy()
    a += ix
    b += iy
    return _bjfinal(a, b, c)


def cell_noise(p):
    """Constant-per-cell value noise in [0, 1] over the integer lattice."""
    p = np.asarray(p, dtype=np.float64)
    shape = p.shape[:-1]
    ix = np.floor(p[..., 0])
    iy = np.floor(p[..., 1])
    bits = hash_cell(ix, iy)
    return (bits.astype(np.float64) / float(0xFFFFFFFF)).reshape(shape)
