"""
Padded grid specification for 2-D acoustic propagation.

The physical model is an (nz, nx) array of cells. For propagation it is
embedded in a larger array with an absorbing border of ``nb`` cells on the
left, right and bottom. The top row is a free surface and gets no border, so
the physical interior of every padded array sits at the fixed offset
(z=0, x=nb).

Functions:
    expand: Embed an interior array into the padded domain with constant
        edge extrapolation into the border
    window: Extract the interior sub-array from a padded array

Example:
    >>> import numpy as np
    >>> from strata_fwi import PaddedGrid, expand, window
    >>> grid = PaddedGrid(nz=100, nx=200, dz=10.0, dx=10.0, nb=30)
    >>> grid.padded_shape
    (130, 260)
    >>> v = np.full(grid.shape, 2000.0, dtype=np.float32)
    >>> vpad = expand(grid, v)
    >>> np.array_equal(window(grid, vpad), v)
    True
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class PaddedGrid:
    """Regular 2-D grid with an absorbing border on three sides.

    Args:
        nz: Number of physical cells in depth
        nx: Number of physical cells laterally
        dz: Cell spacing in depth (m)
        dx: Lateral cell spacing (m)
        nb: Absorbing border width in cells (default: 0)

    Attributes:
        shape: Physical shape (nz, nx)
        padded_shape: Padded shape (nz + nb, nx + 2*nb)
        interior: Slices selecting the physical region of a padded array

    Example:
        >>> grid = PaddedGrid(nz=50, nx=80, dz=5.0, dx=5.0, nb=20)
        >>> grid.nzpad, grid.nxpad
        (70, 120)
    """

    nz: int
    nx: int
    dz: float
    dx: float
    nb: int = 0

    def __post_init__(self):
        if self.nz < 1 or self.nx < 1:
            raise ValueError(f"Grid dimensions must be positive, got nz={self.nz}, nx={self.nx}")
        if self.dz <= 0 or self.dx <= 0:
            raise ValueError(f"Grid spacing must be positive, got dz={self.dz}, dx={self.dx}")
        if self.nb < 0:
            raise ValueError(f"Border width must be non-negative, got nb={self.nb}")

    @property
    def shape(self) -> tuple[int, int]:
        """Physical grid shape (nz, nx)."""
        return (self.nz, self.nx)

    @property
    def nzpad(self) -> int:
        """Padded depth dimension (no border above the free surface)."""
        return self.nz + self.nb

    @property
    def nxpad(self) -> int:
        """Padded lateral dimension."""
        return self.nx + 2 * self.nb

    @property
    def padded_shape(self) -> tuple[int, int]:
        """Padded grid shape (nzpad, nxpad)."""
        return (self.nzpad, self.nxpad)

    @property
    def interior(self) -> tuple[slice, slice]:
        """Slices selecting the physical region of a padded array."""
        return (slice(0, self.nz), slice(self.nb, self.nb + self.nx))

    @property
    def num_cells(self) -> int:
        """Number of cells in the padded domain."""
        return self.nzpad * self.nxpad

    def physical_extent(self) -> tuple[float, float]:
        """Get physical domain size in meters.

        Returns:
            Tuple (Lz, Lx) of domain dimensions
        """
        return (self.nz * self.dz, self.nx * self.dx)

    def linear_index(self, z, x):
        """Linearize physical (z, x) coordinates as ``z + nz*x``."""
        return z + self.nz * x

    def unravel(self, index) -> tuple:
        """Split linear indices back into padded (z, x) array coordinates.

        The returned x coordinates already include the border offset, so they
        can index a padded array directly.
        """
        index = np.asarray(index, dtype=np.int64)
        return index % self.nz, index // self.nz + self.nb

    def zeros(self, padded: bool = True) -> NDArray[np.float32]:
        """Allocate a zeroed float32 array on the padded or physical grid."""
        return np.zeros(self.padded_shape if padded else self.shape, dtype=np.float32)


def expand(grid: PaddedGrid, a: NDArray[np.floating]) -> NDArray[np.float32]:
    """Embed an interior array into the padded domain.

    The interior is copied at offset (0, nb), then the last interior row is
    replicated downward into the bottom border and the outermost columns
    (including the bottom border rows) are replicated outward into the left
    and right borders.

    Args:
        grid: Padded grid specification
        a: Array of shape (nz, nx)

    Returns:
        New float32 array of shape (nzpad, nxpad)
    """
    a = np.asarray(a, dtype=np.float32)
    if a.shape != grid.shape:
        raise ValueError(f"Expected array of shape {grid.shape}, got {a.shape}")

    nz, nx, nb = grid.nz, grid.nx, grid.nb
    b = np.empty(grid.padded_shape, dtype=np.float32)
    b[grid.interior] = a

    # Bottom border from the last interior row
    b[nz:, nb:nb + nx] = a[-1, :]

    # Left and right borders from the edge columns, full padded height
    b[:, :nb] = b[:, nb:nb + 1]
    b[:, nb + nx:] = b[:, nb + nx - 1:nb + nx]

    return b


def window(grid: PaddedGrid, b: NDArray[np.floating]) -> NDArray[np.float32]:
    """Extract the interior sub-array from a padded array.

    Args:
        grid: Padded grid specification
        b: Array of shape (nzpad, nxpad)

    Returns:
        New float32 array of shape (nz, nx)
    """
    if b.shape != grid.padded_shape:
        raise ValueError(f"Expected array of shape {grid.padded_shape}, got {b.shape}")
    return np.array(b[grid.interior], dtype=np.float32)
