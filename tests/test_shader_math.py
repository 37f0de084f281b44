import math

import numpy as np
import pytest

from shader_math import (
    cell_noise, hash_cell, screen_blend, sd_cross, smoothstep, tile_uv,
)

B = (0.3, 0.02)


def _points(n=200, seed=3):
    rng = np.random.default_rng(seed)
    return rng.uniform(-1.0, 1.0, size=(n, 2))


# ────────── sd_cross ──────────

def test_sd_cross_rotation_and_reflection_invariant():
    p = _points()
    d = sd_cross(p, B)
    rot90 = np.stack([-p[:, 1], p[:, 0]], axis=-1)
    np.testing.assert_allclose(sd_cross(rot90, B), d, atol=1e-12)
    np.testing.assert_allclose(sd_cross(p * [-1.0, 1.0], B), d, atol=1e-12)
    np.testing.assert_allclose(sd_cross(p * [1.0, -1.0], B), d, atol=1e-12)
    np.testing.assert_allclose(sd_cross(p[:, ::-1], B), d, atol=1e-12)


@pytest.mark.parametrize("b", [(0.3, 0.02), (0.5, 0.5), (0.1, 0.05), (1.0, 0.2)])
def test_sd_cross_centre_is_inside(b):
    assert sd_cross((0.0, 0.0), b) < 0.0


@pytest.mark.parametrize("p", [(0.3, 0.0), (0.1, 0.02), (0.02, 0.25), (-0.3, 0.01)])
def test_sd_cross_zero_on_boundary(p):
    assert sd_cross(p, B) == pytest.approx(0.0, abs=1e-12)


def test_sd_cross_exact_distances():
    # along an arm: distance to the arm side
    assert sd_cross((0.1, 0.0), B) == pytest.approx(-0.02)
    # beyond the arm tip
    assert sd_cross((0.5, 0.0), B) == pytest.approx(0.2)
    # diagonal, nearest point is the arm corner (0.3, 0.02)
    assert sd_cross((0.5, 0.5), B) == pytest.approx(math.hypot(0.2, 0.48))


def test_sd_cross_corner_radius_offsets_distance():
    p = _points(50)
    np.testing.assert_allclose(sd_cross(p, B, 0.05), sd_cross(p, B) + 0.05)


def test_sd_cross_keeps_leading_shape():
    grid = np.zeros((4, 5, 2))
    assert sd_cross(grid, B).shape == (4, 5)


# ────────── tiling ──────────

@pytest.mark.parametrize("density", [50.0, 150.0, 7.0])
def test_tile_uv_is_periodic(density):
    uv = np.random.default_rng(1).uniform(0.0, 1.0, size=(100, 2))
    shifted = uv + [2.0 / density, 0.0]
    np.testing.assert_allclose(tile_uv(shifted, density), tile_uv(uv, density),
                               atol=1e-9)


def test_tile_uv_range():
    uv = np.random.default_rng(2).uniform(-3.0, 3.0, size=(500, 2))
    t = tile_uv(uv, 50.0)
    assert t.min() >= -1.0
    assert t.max() < 1.0


# ────────── smoothstep / blend ──────────

def test_smoothstep_edges():
    assert smoothstep(0.0, 0.02, 0.0) == 0.0
    assert smoothstep(0.0, 0.02, 0.02) == 1.0
    assert smoothstep(0.0, 1.0, 0.5) == pytest.approx(0.5)


def test_smoothstep_reversed_edges_invert_the_ramp():
    assert smoothstep(0.25, 0.22, 0.2) == 1.0
    assert smoothstep(0.25, 0.22, 0.3) == 0.0
    assert smoothstep(0.25, 0.22, 0.235) == pytest.approx(0.5)


def test_screen_blend_self():
    a = np.linspace(0.0, 1.0, 11)
    out = screen_blend(a, a)
    np.testing.assert_allclose(out, 1.0 - (1.0 - a) ** 2)
    assert np.all(out >= a)


def test_screen_blend_identity_and_saturation():
    base = np.array([0.1, 0.5, 0.9])
    np.testing.assert_allclose(screen_blend(base, 0.0), base)
    np.testing.assert_allclose(screen_blend(base, 1.0), 1.0)
    np.testing.assert_allclose(screen_blend(0.2, 0.5), 0.6)


# ────────── cell noise ──────────

def test_cell_noise_constant_inside_a_cell():
    pts = np.array([[3.01, 7.2], [3.5, 7.5], [3.99, 7.99]])
    vals = cell_noise(pts)
    assert vals[0] == vals[1] == vals[2]


def test_cell_noise_range_and_variation():
    ij = np.stack(np.meshgrid(np.arange(-10, 10), np.arange(-10, 10)), -1)
    vals = cell_noise(ij + 0.5)
    assert vals.shape == (20, 20)
    assert vals.min() >= 0.0
    assert vals.max() <= 1.0
    assert len(np.unique(vals)) > 300


def test_cell_noise_scalar_point():
    v = cell_noise(np.array([12.3, -4.2]))
    assert np.ndim(v) == 0
    assert v == cell_noise(np.array([[12.9, -4.9]]))[0]


def test_hash_cell_deterministic_and_wraps_negative():
    a = hash_cell(-1, 5)
    b = hash_cell(np.int64(-1), np.int64(5))
    assert a.dtype == np.uint32
    assert a[0] == b[0]
    assert hash_cell(0, 0)[0] != hash_cell(1, 0)[0]
