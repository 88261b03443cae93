"""Gradient accumulation and post-processing.

During back-propagation every shot adds ``Laplacian(source) * adjoint`` into
a physical-grid gradient and ``source²`` into a padded illumination map.
After the shot loop the raw gradient is turned into an update direction:

    1. scale by 2/v, optionally by 1/sqrt(illumination + eps) as well
    2. replicate the second row/column into the outermost ones
    3. separable bell smoothing (optional)
    4. zero a band of near-surface rows

Example:
    >>> acc = GradientAccumulator(grid)
    >>> solver.backward(shot, res, acc.gradient, acc.illumination)
    >>> g = postprocess_gradient(acc, velocity, precondition=True, rbell=2, mute=5)
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from scipy import ndimage

from strata_fwi.core.grid import PaddedGrid, window

# Added to denominators that may vanish
EPS = float(np.finfo(np.float32).eps)


@dataclass
class GradientAccumulator:
    """Per-iteration gradient, illumination and objective sums.

    Args:
        grid: Padded grid specification

    Attributes:
        gradient: Raw gradient on the physical grid (nz, nx)
        illumination: Source-field energy on the padded grid
        objective: Sum of squared residuals
        shots: Number of shots accumulated
    """

    grid: PaddedGrid
    gradient: NDArray[np.float32] = field(init=False, repr=False)
    illumination: NDArray[np.float32] = field(init=False, repr=False)
    objective: float = 0.0
    shots: int = 0

    def __post_init__(self):
        self.gradient = self.grid.zeros(padded=False)
        self.illumination = self.grid.zeros(padded=True)

    def reset(self) -> None:
        """Zero all sums for the next iteration."""
        self.gradient.fill(0)
        self.illumination.fill(0)
        self.objective = 0.0
        self.shots = 0

    def merge(self, other: GradientAccumulator) -> None:
        """Add another accumulator's sums into this one.

        The sums commute, so merging worker results in any order gives the
        same value up to floating-point rounding.
        """
        if other.grid != self.grid:
            raise ValueError("Cannot merge accumulators built on different grids")
        self.gradient += other.gradient
        self.illumination += other.illumination
        self.objective += other.objective
        self.shots += other.shots

    def interior_illumination(self) -> NDArray[np.float32]:
        """Illumination on the physical grid."""
        return window(self.grid, self.illumination)


def scale_gradient(
    gradient: NDArray[np.floating],
    velocity: NDArray[np.floating],
    illumination: NDArray[np.floating] | None = None,
) -> NDArray[np.float32]:
    """Scale a raw gradient to a velocity gradient.

    Interior points are multiplied by 2/v, and additionally divided by
    sqrt(illumination + eps) when an illumination map is given. The outermost
    rows and columns are then copied from their inner neighbours.

    Args:
        gradient: Raw gradient (nz, nx)
        velocity: Physical velocity (nz, nx), not squared
        illumination: Physical-grid illumination for preconditioning, or None

    Returns:
        New scaled gradient
    """
    g = np.array(gradient, dtype=np.float32)
    if g.ndim != 2 or min(g.shape) < 3:
        raise ValueError(f"Gradient must be 2-D and at least 3x3, got shape {g.shape}")
    if velocity.shape != g.shape:
        raise ValueError(f"Velocity shape {velocity.shape} does not match gradient {g.shape}")

    inner = (slice(1, -1), slice(1, -1))
    v = np.asarray(velocity, dtype=np.float32)[inner]
    if illumination is None:
        g[inner] *= 2.0 / v
    else:
        if illumination.shape != g.shape:
            raise ValueError(
                f"Illumination shape {illumination.shape} does not match gradient {g.shape}"
            )
        g[inner] *= 2.0 / (v * np.sqrt(np.asarray(illumination, dtype=np.float32)[inner] + EPS))

    g[0, :] = g[1, :]
    g[-1, :] = g[-2, :]
    g[:, 0] = g[:, 1]
    g[:, -1] = g[:, -2]
    return g


def bell_weights(rbell: int) -> NDArray[np.float64]:
    """Unnormalized bell weights exp(-2*i²/rbell) for i in [-rbell, rbell]."""
    if rbell < 1:
        raise ValueError(f"Smoothing radius must be at least 1, got {rbell}")
    i = np.arange(-rbell, rbell + 1, dtype=np.float64)
    return np.exp(-2.0 * i * i / rbell)


def bell_smooth(g: NDArray[np.floating], rbell: int) -> NDArray[np.float32]:
    """Separable bell smoothing, first along depth then laterally.

    The weights are not normalized, and samples beyond the edge of the grid
    contribute nothing.
    """
    weights = bell_weights(rbell)
    out = ndimage.correlate1d(
        np.asarray(g, dtype=np.float32), weights, axis=0, mode="constant", cval=0.0
    )
    return ndimage.correlate1d(out, weights, axis=1, mode="constant", cval=0.0)


def mute_surface(g: NDArray[np.floating], nrows: int) -> NDArray[np.floating]:
    """Zero the top ``nrows`` rows of ``g`` in place and return it."""
    if nrows < 0:
        raise ValueError(f"Number of muted rows must be non-negative, got {nrows}")
    g[:nrows, :] = 0.0
    return g


def postprocess_gradient(
    acc: GradientAccumulator,
    velocity: NDArray[np.floating],
    precondition: bool = True,
    smooth: bool = True,
    rbell: int = 2,
    mute: int = 0,
) -> NDArray[np.float32]:
    """Scale, smooth and mute an accumulated gradient.

    Args:
        acc: Accumulated raw gradient and illumination
        velocity: Physical velocity model (nz, nx)
        precondition: Divide by the square root of the illumination
        smooth: Apply bell smoothing
        rbell: Bell radius in cells
        mute: Number of near-surface rows to zero

    Returns:
        Post-processed gradient (nz, nx)
    """
    illum = acc.interior_illumination() if precondition else None
    g = scale_gradient(acc.gradient, velocity, illum)
    if smooth:
        g = bell_smooth(g, rbell)
    return mute_surface(g, mute)
