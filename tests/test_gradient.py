"""Tests for gradient accumulation and post-processing."""

import numpy as np
import pytest

from strata_fwi import (
    GradientAccumulator,
    PaddedGrid,
    bell_smooth,
    mute_surface,
    postprocess_gradient,
    scale_gradient,
)
from strata_fwi.inversion.gradient import EPS, bell_weights

# =============================================================================
# GradientAccumulator
# =============================================================================


class TestGradientAccumulator:
    @pytest.fixture
    def small_grid(self):
        return PaddedGrid(nz=6, nx=8, dz=1.0, dx=1.0, nb=2)

    def test_shapes(self, small_grid):
        acc = GradientAccumulator(small_grid)

        assert acc.gradient.shape == (6, 8)
        assert acc.illumination.shape == (8, 12)
        assert acc.objective == 0.0
        assert acc.shots == 0

    def test_merge(self, small_grid):
        a = GradientAccumulator(small_grid)
        b = GradientAccumulator(small_grid)
        a.gradient[:] = 1.0
        b.gradient[:] = 2.0
        b.illumination[3, 4] = 5.0
        a.objective, b.objective = 1.5, 2.5
        a.shots, b.shots = 2, 3
        a.merge(b)

        np.testing.assert_array_equal(a.gradient, 3.0)
        assert a.illumination[3, 4] == 5.0
        assert a.objective == pytest.approx(4.0)
        assert a.shots == 5

    def test_merge_grid_mismatch(self, small_grid):
        other = GradientAccumulator(PaddedGrid(nz=6, nx=8, dz=1.0, dx=1.0, nb=3))
        with pytest.raises(ValueError, match="different grids"):
            GradientAccumulator(small_grid).merge(other)

    def test_reset(self, small_grid):
        acc = GradientAccumulator(small_grid)
        acc.gradient[:] = 1.0
        acc.illumination[:] = 1.0
        acc.objective = 3.0
        acc.shots = 1
        acc.reset()

        assert not acc.gradient.any()
        assert not acc.illumination.any()
        assert acc.objective == 0.0
        assert acc.shots == 0

    def test_interior_illumination(self, small_grid):
        acc = GradientAccumulator(small_grid)
        acc.illumination[0, 2] = 7.0
        acc.illumination[0, 0] = 9.0

        inner = acc.interior_illumination()
        assert inner.shape == (6, 8)
        assert inner[0, 0] == 7.0
        assert inner.sum() == 7.0


# =============================================================================
# Scaling
# =============================================================================


class TestScaleGradient:
    @pytest.fixture
    def velocity(self):
        v = np.full((5, 6), 2000.0, dtype=np.float32)
        v[2:, :] = 4000.0
        return v

    def test_velocity_scaling(self, velocity):
        g = np.ones((5, 6), dtype=np.float32)
        scaled = scale_gradient(g, velocity)

        assert scaled[1, 2] == pytest.approx(2.0 / 2000.0)
        assert scaled[3, 2] == pytest.approx(2.0 / 4000.0)

    def test_edges_replicated(self, velocity):
        rng = np.random.default_rng(0)
        scaled = scale_gradient(rng.standard_normal((5, 6)), velocity)

        np.testing.assert_array_equal(scaled[0, :], scaled[1, :])
        np.testing.assert_array_equal(scaled[-1, :], scaled[-2, :])
        np.testing.assert_array_equal(scaled[:, 0], scaled[:, 1])
        np.testing.assert_array_equal(scaled[:, -1], scaled[:, -2])

    def test_edge_values_ignored(self, velocity):
        """Outermost raw values are discarded in favour of their neighbours."""
        g = np.ones((5, 6), dtype=np.float32)
        g[0, :] = 1e6
        g[:, -1] = -1e6
        scaled = scale_gradient(g, velocity)

        assert np.all(np.abs(scaled) < 1.0)

    def test_illumination_preconditioning(self, velocity):
        g = np.ones((5, 6), dtype=np.float32)
        illum = np.full((5, 6), 4.0, dtype=np.float32)
        scaled = scale_gradient(g, velocity, illum)

        assert scaled[1, 2] == pytest.approx(2.0 / (2000.0 * np.sqrt(4.0 + EPS)))

    def test_zero_illumination_is_finite(self, velocity):
        scaled = scale_gradient(
            np.ones((5, 6), dtype=np.float32), velocity, np.zeros((5, 6), dtype=np.float32)
        )

        assert np.all(np.isfinite(scaled))

    def test_input_not_modified(self, velocity):
        g = np.ones((5, 6), dtype=np.float32)
        scale_gradient(g, velocity)

        np.testing.assert_array_equal(g, 1.0)

    def test_shape_checks(self, velocity):
        with pytest.raises(ValueError, match="at least 3x3"):
            scale_gradient(np.ones((2, 6)), velocity[:2])
        with pytest.raises(ValueError, match="Velocity shape"):
            scale_gradient(np.ones((5, 6)), velocity[:4])
        with pytest.raises(ValueError, match="Illumination shape"):
            scale_gradient(np.ones((5, 6)), velocity, np.ones((5, 5)))


# =============================================================================
# Smoothing and muting
# =============================================================================


class TestBellSmooth:
    def test_weights(self):
        w = bell_weights(2)

        assert len(w) == 5
        assert w[2] == 1.0
        assert w[1] == pytest.approx(np.exp(-1.0))
        assert w[0] == pytest.approx(np.exp(-4.0))
        np.testing.assert_array_equal(w, w[::-1])

    def test_invalid_radius(self):
        with pytest.raises(ValueError):
            bell_weights(0)

    def test_impulse_response(self):
        """A centred spike spreads into the outer product of the weights."""
        g = np.zeros((11, 11), dtype=np.float32)
        g[5, 5] = 1.0
        out = bell_smooth(g, 2)

        w = bell_weights(2)
        np.testing.assert_allclose(out[3:8, 3:8], np.outer(w, w), rtol=1e-6)
        assert out[2, 5] == 0.0
        assert out.sum() == pytest.approx(w.sum() ** 2, rel=1e-6)

    def test_unnormalized(self):
        """A constant field is scaled by the weight sum away from the edges."""
        out = bell_smooth(np.ones((20, 20), dtype=np.float32), 3)

        total = bell_weights(3).sum() ** 2
        assert out[10, 10] == pytest.approx(total, rel=1e-6)

    def test_edges_truncated(self):
        """Samples beyond the grid contribute nothing."""
        g = np.ones((20, 20), dtype=np.float32)
        out = bell_smooth(g, 2)

        w = bell_weights(2)
        assert out[0, 10] == pytest.approx(w[2:].sum() * w.sum(), rel=1e-6)
        assert out[0, 0] == pytest.approx(w[2:].sum() ** 2, rel=1e-6)


class TestMute:
    def test_rows_zeroed(self):
        g = np.ones((6, 4), dtype=np.float32)
        out = mute_surface(g, 2)

        assert out is g
        assert not g[:2].any()
        np.testing.assert_array_equal(g[2:], 1.0)

    def test_zero_rows(self):
        g = np.ones((3, 3), dtype=np.float32)

        np.testing.assert_array_equal(mute_surface(g, 0), 1.0)

    def test_negative_rows(self):
        with pytest.raises(ValueError):
            mute_surface(np.ones((3, 3)), -1)


class TestPostprocess:
    @pytest.fixture
    def acc(self):
        grid = PaddedGrid(nz=10, nx=12, dz=1.0, dx=1.0, nb=2)
        acc = GradientAccumulator(grid)
        rng = np.random.default_rng(1)
        acc.gradient[:] = rng.standard_normal(grid.shape)
        acc.illumination[:] = rng.uniform(1.0, 2.0, grid.padded_shape)
        return acc

    @pytest.fixture
    def velocity(self):
        return np.full((10, 12), 1500.0, dtype=np.float32)

    def test_raw_scaling_only(self, acc, velocity):
        out = postprocess_gradient(acc, velocity, precondition=False, smooth=False)

        np.testing.assert_allclose(out, scale_gradient(acc.gradient, velocity), rtol=1e-6)

    def test_full_chain(self, acc, velocity):
        out = postprocess_gradient(acc, velocity, precondition=True, smooth=True, rbell=2, mute=3)

        expected = scale_gradient(acc.gradient, velocity, acc.interior_illumination())
        expected = bell_smooth(expected, 2)
        expected[:3] = 0.0
        np.testing.assert_allclose(out, expected, rtol=1e-5, atol=1e-9)
        assert not out[:3].any()
