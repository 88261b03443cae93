"""Explicit finite-difference stencil for the 2-D constant-density acoustic equation.

Physics:
    ∂²p/∂t² = v² (∂²p/∂z² + ∂²p/∂x²)

Discretization (second order in time, fourth order in space):
    p_new = 2*p_cur - p_prev + v²dt² * L(p_cur)

where L is the 5-point-per-axis Laplacian with weights 4/3 (nearest
neighbours) and -1/12 (next-nearest), scaled by 1/dz² and 1/dx². Only points
at least two cells from every edge of the padded array are updated; the
outer two-cell guard band is never written.

The operator is self-adjoint, so the same update advances the forward field,
the adjoint (residual) field, and, with the two time slices exchanged, the
time-reversed reconstruction of the forward field.

Stability:
    v*dt*sqrt(1/dz² + 1/dx²) <= sqrt(3)/2

Example:
    >>> pair = WavefieldPair(grid.padded_shape)
    >>> coeffs = StencilCoefficients.from_spacing(grid.dz, grid.dx)
    >>> step_forward(pair, vv, coeffs)
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

# Fourth-order central-difference weights for the second derivative
C1 = 4.0 / 3.0
C2 = -1.0 / 12.0

# Courant limit for the 2-D, 4th-order-space / 2nd-order-time scheme
STABILITY_LIMIT = float(np.sqrt(3.0) / 2.0)

# Region updated by the stencil: two cells away from every edge
_INNER = (slice(2, -2), slice(2, -2))


@dataclass(frozen=True)
class StencilCoefficients:
    """Weights of the fourth-order Laplacian.

    The center weight equals minus the sum of all eight neighbour weights.

    Args:
        dz: Cell spacing in depth
        dx: Lateral cell spacing
        c0: Center weight
        c11: Nearest neighbours in z
        c12: Next-nearest neighbours in z
        c21: Nearest neighbours in x
        c22: Next-nearest neighbours in x
    """

    dz: float
    dx: float
    c0: float
    c11: float
    c12: float
    c21: float
    c22: float

    @classmethod
    def from_spacing(cls, dz: float, dx: float) -> StencilCoefficients:
        """Build the weights for cell spacings dz and dx."""
        c11 = C1 / dz**2
        c12 = C2 / dz**2
        c21 = C1 / dx**2
        c22 = C2 / dx**2
        c0 = -2.0 * (c11 + c12 + c21 + c22)
        return cls(dz=dz, dx=dx, c0=c0, c11=c11, c12=c12, c21=c21, c22=c22)


class WavefieldPair:
    """Previous and current time slices of one wavefield.

    The two buffers are allocated once and never copied. After each step the
    roles are exchanged by toggling which slot is "current", so the buffer
    that received the new slice becomes current and the old current becomes
    previous.

    Args:
        shape: Padded array shape
        dtype: Field dtype (default: float32)

    Example:
        >>> pair = WavefieldPair((64, 96))
        >>> a = pair.cur
        >>> pair.swap()
        >>> pair.prev is a
        True
    """

    def __init__(self, shape: tuple[int, int], dtype=np.float32):
        self._slots = (np.zeros(shape, dtype=dtype), np.zeros(shape, dtype=dtype))
        self._current = 1

    @property
    def cur(self) -> NDArray[np.floating]:
        """Current time slice."""
        return self._slots[self._current]

    @property
    def prev(self) -> NDArray[np.floating]:
        """Previous time slice (overwritten by the next step)."""
        return self._slots[1 - self._current]

    @property
    def shape(self) -> tuple[int, int]:
        return self._slots[0].shape

    def swap(self) -> None:
        """Exchange the current and previous roles."""
        self._current = 1 - self._current

    def reset(self) -> None:
        """Zero both slices and restore the initial roles."""
        for slot in self._slots:
            slot.fill(0)
        self._current = 1


def laplacian4(p: NDArray[np.floating], coeffs: StencilCoefficients) -> NDArray[np.floating]:
    """Fourth-order Laplacian of ``p`` on the region two cells from every edge.

    Returns:
        Array of shape (nzpad - 4, nxpad - 4)
    """
    return (
        coeffs.c0 * p[2:-2, 2:-2]
        + coeffs.c11 * (p[1:-3, 2:-2] + p[3:-1, 2:-2])
        + coeffs.c12 * (p[:-4, 2:-2] + p[4:, 2:-2])
        + coeffs.c21 * (p[2:-2, 1:-3] + p[2:-2, 3:-1])
        + coeffs.c22 * (p[2:-2, :-4] + p[2:-2, 4:])
    )


def laplacian2(p: NDArray[np.floating], dz: float, dx: float) -> NDArray[np.floating]:
    """Second-order 5-point Laplacian of ``p`` on the stencil update region.

    Returns:
        Array of shape (nzpad - 4, nxpad - 4)
    """
    center = p[2:-2, 2:-2]
    d2z = (p[1:-3, 2:-2] - 2.0 * center + p[3:-1, 2:-2]) / dz**2
    d2x = (p[2:-2, 1:-3] - 2.0 * center + p[2:-2, 3:-1]) / dx**2
    return d2z + d2x


def step_forward(
    pair: WavefieldPair,
    vv: NDArray[np.floating],
    coeffs: StencilCoefficients,
) -> None:
    """Advance a wavefield by one time step.

    Writes ``2*cur - prev + vv*L(cur)`` into the previous buffer, then swaps
    roles so the new slice is current.

    Args:
        pair: Wavefield time slices (modified in place)
        vv: Padded v²dt² array
        coeffs: Laplacian weights
    """
    cur, prev = pair.cur, pair.prev
    prev[_INNER] = 2.0 * cur[_INNER] - prev[_INNER] + vv[_INNER] * laplacian4(cur, coeffs)
    pair.swap()


def step_backward(
    pair: WavefieldPair,
    vv: NDArray[np.floating],
    coeffs: StencilCoefficients,
    lap: NDArray[np.floating],
    illum: NDArray[np.floating],
) -> None:
    """Advance a wavefield one step while imaging the current slice.

    Before the buffers are advanced, stores the second-order Laplacian of
    the current slice in ``lap`` and adds its squared amplitude to
    ``illum``. Both observe the pre-update field.

    Args:
        pair: Wavefield time slices (modified in place)
        vv: Padded v²dt² array
        coeffs: Laplacian weights
        lap: Padded output array for the plain Laplacian of the current slice
        illum: Padded illumination accumulator
    """
    cur = pair.cur
    lap[_INNER] = laplacian2(cur, coeffs.dz, coeffs.dx)
    illum[_INNER] += cur[_INNER] * cur[_INNER]
    step_forward(pair, vv, coeffs)


def courant_number(vmax: float, dt: float, dz: float, dx: float) -> float:
    """Courant number ``vmax*dt*sqrt(1/dz² + 1/dx²)`` of the scheme."""
    return float(vmax * dt * np.sqrt(1.0 / dz**2 + 1.0 / dx**2))


def max_stable_dt(vmax: float, dz: float, dx: float) -> float:
    """Largest time step that satisfies the Courant limit for ``vmax``."""
    return float(STABILITY_LIMIT / (vmax * np.sqrt(1.0 / dz**2 + 1.0 / dx**2)))
