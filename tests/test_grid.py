"""
Unit tests for the padded grid (PaddedGrid, expand, window).

Tests verify:
- Grid construction and derived shapes
- Linear position encoding
- Edge extrapolation into the absorbing border
- Interior extraction
"""

import numpy as np
import pytest

from strata_fwi import PaddedGrid, expand, window

# =============================================================================
# PaddedGrid Tests
# =============================================================================


class TestPaddedGrid:
    def test_basic_construction(self):
        """Test shapes derived from the physical size and border width."""
        grid = PaddedGrid(nz=100, nx=200, dz=10.0, dx=5.0, nb=30)

        assert grid.shape == (100, 200)
        assert grid.nzpad == 130
        assert grid.nxpad == 260
        assert grid.padded_shape == (130, 260)
        assert grid.num_cells == 130 * 260

    def test_no_border(self):
        """A zero-width border leaves the padded grid equal to the physical one."""
        grid = PaddedGrid(nz=10, nx=12, dz=1.0, dx=1.0)

        assert grid.padded_shape == grid.shape

    def test_interior_slices(self):
        """The interior sits at offset (0, nb): no border above the surface."""
        grid = PaddedGrid(nz=10, nx=20, dz=1.0, dx=1.0, nb=5)

        z, x = grid.interior
        assert (z.start, z.stop) == (0, 10)
        assert (x.start, x.stop) == (5, 25)

    def test_physical_extent(self):
        grid = PaddedGrid(nz=100, nx=80, dz=10.0, dx=12.5, nb=20)

        Lz, Lx = grid.physical_extent()
        assert Lz == pytest.approx(1000.0)
        assert Lx == pytest.approx(1000.0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"nz": 0, "nx": 10, "dz": 1.0, "dx": 1.0},
            {"nz": 10, "nx": -1, "dz": 1.0, "dx": 1.0},
            {"nz": 10, "nx": 10, "dz": 0.0, "dx": 1.0},
            {"nz": 10, "nx": 10, "dz": 1.0, "dx": -2.0},
            {"nz": 10, "nx": 10, "dz": 1.0, "dx": 1.0, "nb": -1},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            PaddedGrid(**kwargs)

    def test_zeros(self):
        grid = PaddedGrid(nz=4, nx=6, dz=1.0, dx=1.0, nb=2)

        assert grid.zeros().shape == (6, 10)
        assert grid.zeros(padded=False).shape == (4, 6)
        assert grid.zeros().dtype == np.float32


class TestLinearPositions:
    def test_linear_index(self):
        """Positions are encoded depth-fastest as z + nz*x."""
        grid = PaddedGrid(nz=10, nx=20, dz=1.0, dx=1.0, nb=3)

        assert grid.linear_index(2, 5) == 52
        assert grid.linear_index(0, 0) == 0

    def test_unravel_applies_border_offset(self):
        grid = PaddedGrid(nz=10, nx=20, dz=1.0, dx=1.0, nb=3)

        z = np.array([0, 2, 9])
        x = np.array([0, 5, 19])
        pz, px = grid.unravel(grid.linear_index(z, x))

        np.testing.assert_array_equal(pz, z)
        np.testing.assert_array_equal(px, x + 3)


# =============================================================================
# expand / window Tests
# =============================================================================


class TestExpandWindow:
    @pytest.fixture
    def grid(self):
        return PaddedGrid(nz=5, nx=6, dz=1.0, dx=1.0, nb=3)

    @pytest.fixture
    def interior(self, grid):
        return np.arange(grid.nz * grid.nx, dtype=np.float32).reshape(grid.shape)

    def test_interior_preserved(self, grid, interior):
        padded = expand(grid, interior)

        assert padded.shape == grid.padded_shape
        np.testing.assert_array_equal(padded[grid.interior], interior)

    def test_bottom_border_repeats_last_row(self, grid, interior):
        padded = expand(grid, interior)

        for row in range(grid.nz, grid.nzpad):
            np.testing.assert_array_equal(padded[row, 3:9], interior[-1])

    def test_side_borders_repeat_edge_columns(self, grid, interior):
        padded = expand(grid, interior)

        for col in range(3):
            np.testing.assert_array_equal(padded[: grid.nz, col], interior[:, 0])
            np.testing.assert_array_equal(padded[: grid.nz, 9 + col], interior[:, -1])

    def test_corners_take_corner_value(self, grid, interior):
        """Corners get the bottom corner values via the extended edge column."""
        padded = expand(grid, interior)

        assert np.all(padded[grid.nz:, :3] == interior[-1, 0])
        assert np.all(padded[grid.nz:, 9:] == interior[-1, -1])

    def test_window_inverts_expand(self, grid, interior):
        np.testing.assert_array_equal(window(grid, expand(grid, interior)), interior)

    def test_window_returns_copy(self, grid, interior):
        padded = expand(grid, interior)
        inner = window(grid, padded)
        inner[0, 0] = -1.0

        assert padded[0, 3] == interior[0, 0]

    def test_shape_mismatch(self, grid, interior):
        with pytest.raises(ValueError, match="Expected array of shape"):
            expand(grid, interior.T)
        with pytest.raises(ValueError, match="Expected array of shape"):
            window(grid, interior)
