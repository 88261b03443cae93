"""Boundary-strip checkpointing for time-reversed wavefield reconstruction.

Storing the forward wavefield at every time step costs O(nt * nz * nx)
memory. Instead, after each forward step the store keeps only thin strips of
``order`` cells along the left, right and bottom edges of the physical
interior. The top edge is the free surface and needs no strip.

During back-propagation the forward field is rebuilt by running the stencil
with its two time slices exchanged. Interior points deeper than ``order``
cells depend only on other interior points and are reproduced exactly; the
strips, whose stencil reaches into the damped border, are overwritten from
the store before each reverse step. Memory is O(nt * perimeter).

Record layout (one row per time step, float32):
    [left strip (nz*order) | right strip (nz*order) | bottom strip (order*nx)]

Access discipline:
    1. write(0), write(1), ..., write(nt-1) during the forward pass
    2. seal()
    3. read(nt-1), read(nt-2), ..., read(0) during the backward pass

Any other order raises CheckpointError.

Example:
    >>> store = BoundaryCheckpoint(grid, nt=1000, order=2)
    >>> for it in range(nt):
    ...     step(...)
    ...     store.write(it, pair.cur)
    >>> store.seal()
    >>> for it in reversed(range(nt)):
    ...     store.read(it, field)
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .grid import PaddedGrid

# Half-width of the fourth-order stencil
MIN_ORDER = 2


class CheckpointError(RuntimeError):
    """Raised when the write-seal-read stack discipline is violated."""

    pass


class BoundaryCheckpoint:
    """Stack of per-time-step boundary strips for one shot.

    Args:
        grid: Padded grid specification
        nt: Number of time steps (records)
        order: Strip thickness in cells (default: 2, the stencil half-width)

    Attributes:
        record_size: Scalars per record, 2*order*nz + order*nx
        nbytes: Total storage in bytes
    """

    def __init__(self, grid: PaddedGrid, nt: int, order: int = MIN_ORDER):
        if nt < 1:
            raise ValueError(f"nt must be positive, got {nt}")
        if order < MIN_ORDER:
            raise ValueError(
                f"Checkpoint order must be at least the stencil half-width "
                f"({MIN_ORDER}), got {order}"
            )
        if order > grid.nz or 2 * order > grid.nx:
            raise ValueError(
                f"Checkpoint order {order} is too thick for a {grid.nz}x{grid.nx} grid"
            )

        self.grid = grid
        self.nt = nt
        self.order = order

        nz, nx, nb = grid.nz, grid.nx, grid.nb
        self._left = (slice(0, nz), slice(nb, nb + order))
        self._right = (slice(0, nz), slice(nb + nx - order, nb + nx))
        self._bottom = (slice(nz - order, nz), slice(nb, nb + nx))

        side = nz * order
        self._segments = (
            (self._left, slice(0, side), (nz, order)),
            (self._right, slice(side, 2 * side), (nz, order)),
            (self._bottom, slice(2 * side, 2 * side + order * nx), (order, nx)),
        )
        self.record_size = 2 * side + order * nx

        self._records = np.zeros((nt, self.record_size), dtype=np.float32)
        self._next_write = 0
        self._next_read = -1
        self._sealed = False

    @property
    def sealed(self) -> bool:
        """True once the forward pass has written every record."""
        return self._sealed

    @property
    def exhausted(self) -> bool:
        """True once every record has been read back."""
        return self._sealed and self._next_read < 0

    @property
    def nbytes(self) -> int:
        return self._records.nbytes

    def write(self, it: int, field: NDArray[np.floating]) -> None:
        """Save the boundary strips of ``field`` as record ``it``.

        Records must be written in strictly increasing order starting at 0.
        """
        if self._sealed:
            raise CheckpointError("Cannot write to a sealed checkpoint")
        if it != self._next_write:
            raise CheckpointError(
                f"Checkpoint records must be written in order: expected {self._next_write}, got {it}"
            )
        self._check_shape(field)

        record = self._records[it]
        for strip, span, _ in self._segments:
            record[span] = field[strip].ravel()
        self._next_write += 1

    def seal(self) -> None:
        """Close the store for writing and open it for reverse reading."""
        if self._sealed:
            raise CheckpointError("Checkpoint is already sealed")
        if self._next_write != self.nt:
            raise CheckpointError(
                f"Checkpoint incomplete: {self._next_write} of {self.nt} records written"
            )
        self._sealed = True
        self._next_read = self.nt - 1

    def read(self, it: int, field: NDArray[np.floating]) -> None:
        """Overwrite the boundary strips of ``field`` with record ``it``.

        Records must be read in strictly decreasing order starting at nt-1.
        """
        if not self._sealed:
            raise CheckpointError("Checkpoint must be sealed before reading")
        if it != self._next_read:
            raise CheckpointError(
                f"Checkpoint records must be read in reverse order: expected {self._next_read}, got {it}"
            )
        self._check_shape(field)

        record = self._records[it]
        for strip, span, shape in self._segments:
            field[strip] = record[span].reshape(shape)
        self._next_read -= 1

    def reset(self) -> None:
        """Discard all records so the store can serve the next shot."""
        self._records.fill(0)
        self._next_write = 0
        self._next_read = -1
        self._sealed = False

    def _check_shape(self, field: NDArray[np.floating]) -> None:
        if field.shape != self.grid.padded_shape:
            raise CheckpointError(
                f"Field shape {field.shape} does not match padded grid {self.grid.padded_shape}"
            )

    def __repr__(self) -> str:
        state = "sealed" if self._sealed else f"{self._next_write}/{self.nt} written"
        return (
            f"BoundaryCheckpoint(nt={self.nt}, order={self.order}, "
            f"record_size={self.record_size}, {state})"
        )
