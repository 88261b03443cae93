"""
Boundary conditions for 2-D acoustic propagation.

This module provides the sponge absorbing boundary used by the propagator.

Sponge (multiplicative taper)
-----------------------------
A 1-D damping profile of length ``nb`` multiplies the wavefield inside the
absorbing border after every time step:

    w[i] = exp(-(alpha * (nb - i))**2),   i = 0 .. nb-1

``i = 0`` is the outermost cell (strongest damping) and the profile rises
toward 1 at the interior edge. The left, right and bottom borders are
damped; the top row is the free surface and is left untouched. Corner
cells lie in two borders and are damped twice.

The same taper must be applied to both time slices of a wavefield, and to
the adjoint field during back-propagation, so the forward and adjoint
operators stay consistent.

Example:
    >>> sponge = Sponge(nb=30)
    >>> sponge.apply(pair.prev, pair.cur)
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


class Sponge:
    """Multiplicative sponge absorbing boundary.

    Args:
        nb: Border width in cells (0 disables the sponge)
        alpha: Damping strength (default: 0.015)

    Attributes:
        profile: Damping weights, index 0 at the outer edge

    Example:
        >>> sponge = Sponge(nb=20)
        >>> bool(np.all(np.diff(sponge.profile) > 0))
        True
    """

    def __init__(self, nb: int, alpha: float = 0.015):
        if nb < 0:
            raise ValueError(f"Sponge width must be non-negative, got {nb}")
        if alpha <= 0:
            raise ValueError(f"Sponge strength must be positive, got {alpha}")

        self.nb = nb
        self.alpha = alpha

        i = np.arange(nb, dtype=np.float64)
        self.profile: NDArray[np.float32] = np.exp(-((alpha * (nb - i)) ** 2)).astype(np.float32)

        # Outer edge last, for the right and bottom borders
        self._reversed = self.profile[::-1].copy()

    def apply(self, *fields: NDArray[np.floating]) -> None:
        """Damp the left, right and bottom borders of each field in place.

        Args:
            *fields: Padded arrays of shape (nz + nb, nx + 2*nb)
        """
        nb = self.nb
        if nb == 0:
            return

        for field in fields:
            if field.shape[0] <= nb or field.shape[1] <= 2 * nb:
                raise ValueError(
                    f"Field of shape {field.shape} is too small for a sponge of width {nb}"
                )
            field[-nb:, :] *= self._reversed[:, np.newaxis]
            field[:, :nb] *= self.profile[np.newaxis, :]
            field[:, -nb:] *= self._reversed[np.newaxis, :]

    def __repr__(self) -> str:
        return f"Sponge(nb={self.nb}, alpha={self.alpha})"
