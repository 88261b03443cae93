"""Source/receiver geometry, sampling and data misfit.

Positions follow a regular sampling rule on the physical grid:

    position[i] = (zbeg + i*jz) + nz * (xbeg + i*jx)

Sources are sampled with one pattern (one source per shot). Receivers are
sampled with a second pattern that is either fixed for every shot, or, in
common-shot-gather mode, shifted with the source from shot to shot.

Example:
    >>> acq = Acquisition(
    ...     sources=SamplingPattern(zbeg=2, xbeg=10, jz=0, jx=20, count=5),
    ...     receivers=SamplingPattern(zbeg=2, xbeg=0, jz=0, jx=1, count=100),
    ... )
    >>> acq.validate(grid)
    >>> shot = acq.shot_geometry(0, grid)
    >>> inject(pair.cur, shot.source_cells, wavelet[it])
    >>> trace = record(pair.cur, shot.receiver_cells)
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .grid import PaddedGrid


class AcquisitionError(ValueError):
    """Raised when a source or receiver falls outside the computable grid."""

    pass


@dataclass(frozen=True)
class SamplingPattern:
    """Regularly spaced positions on the physical grid.

    Args:
        zbeg: Depth index of the first position
        xbeg: Lateral index of the first position
        jz: Depth increment between positions
        jx: Lateral increment between positions
        count: Number of positions
    """

    zbeg: int
    xbeg: int
    jz: int
    jx: int
    count: int

    def __post_init__(self):
        if self.count < 1:
            raise ValueError(f"Sampling pattern needs at least one position, got {self.count}")

    def z(self) -> NDArray[np.int64]:
        """Depth index of every position."""
        return self.zbeg + np.arange(self.count, dtype=np.int64) * self.jz

    def x(self) -> NDArray[np.int64]:
        """Lateral index of every position."""
        return self.xbeg + np.arange(self.count, dtype=np.int64) * self.jx

    def positions(self, nz: int) -> NDArray[np.int64]:
        """Linear positions ``z + nz*x``."""
        return self.z() + nz * self.x()

    def within(self, grid: PaddedGrid) -> bool:
        """Whether every position lies on the physical grid."""
        z, x = self.z(), self.x()
        return bool(
            z.min() >= 0 and x.min() >= 0 and z.max() < grid.nz and x.max() < grid.nx
        )

    def shifted(self, dz: int, dx: int) -> SamplingPattern:
        """Copy of the pattern with its first position moved by (dz, dx)."""
        return SamplingPattern(
            zbeg=self.zbeg + dz, xbeg=self.xbeg + dx, jz=self.jz, jx=self.jx, count=self.count
        )


@dataclass(frozen=True)
class ShotGeometry:
    """Source and receiver positions for one shot.

    Attributes:
        index: Shot number
        source: Linear source position on the physical grid
        receivers: Linear receiver positions on the physical grid
        source_cells: Padded (z, x) index arrays of the source
        receiver_cells: Padded (z, x) index arrays of the receivers
    """

    index: int
    source: int
    receivers: NDArray[np.int64]
    source_cells: tuple[NDArray[np.int64], NDArray[np.int64]]
    receiver_cells: tuple[NDArray[np.int64], NDArray[np.int64]]

    @property
    def ng(self) -> int:
        return len(self.receivers)


@dataclass(frozen=True)
class Acquisition:
    """Survey layout: source pattern, receiver pattern and gather mode.

    Args:
        sources: One position per shot (count = ns)
        receivers: Receiver positions for shot 0 (count = ng)
        csdgather: If True, receivers move with the source (common-shot gather)
    """

    sources: SamplingPattern
    receivers: SamplingPattern
    csdgather: bool = False

    @property
    def ns(self) -> int:
        return self.sources.count

    @property
    def ng(self) -> int:
        return self.receivers.count

    def receiver_pattern(self, shot: int) -> SamplingPattern:
        """Receiver pattern for one shot."""
        if not self.csdgather:
            return self.receivers
        return self.receivers.shifted(shot * self.sources.jz, shot * self.sources.jx)

    def validate(self, grid: PaddedGrid) -> None:
        """Check every source and receiver lies on the physical grid.

        Raises:
            AcquisitionError: If any position is outside the grid
        """
        if not self.sources.within(grid):
            raise AcquisitionError(
                f"Sources exceed the computing zone: {self.sources} on a "
                f"{grid.nz}x{grid.nx} grid"
            )
        if self.csdgather:
            for shot in range(self.ns):
                pattern = self.receiver_pattern(shot)
                if not pattern.within(grid):
                    raise AcquisitionError(
                        f"Geophones of shot {shot} exceed the computing zone: {pattern} on a "
                        f"{grid.nz}x{grid.nx} grid"
                    )
        elif not self.receivers.within(grid):
            raise AcquisitionError(
                f"Geophones exceed the computing zone: {self.receivers} on a "
                f"{grid.nz}x{grid.nx} grid"
            )

    def shot_geometry(self, shot: int, grid: PaddedGrid) -> ShotGeometry:
        """Source and receiver positions for shot number ``shot``."""
        if not 0 <= shot < self.ns:
            raise IndexError(f"Shot {shot} out of range for {self.ns} shots")

        source = int(self.sources.positions(grid.nz)[shot])
        receivers = self.receiver_pattern(shot).positions(grid.nz)
        return ShotGeometry(
            index=shot,
            source=source,
            receivers=receivers,
            source_cells=grid.unravel(np.array([source])),
            receiver_cells=grid.unravel(receivers),
        )


def inject(
    field: NDArray[np.floating],
    cells: tuple[NDArray[np.int64], NDArray[np.int64]],
    amplitude,
    sign: float = 1.0,
) -> None:
    """Add (or with ``sign=-1`` subtract) amplitudes at padded cells in place.

    Args:
        field: Padded wavefield
        cells: Padded (z, x) index arrays
        amplitude: Scalar or one value per cell
        sign: +1 to inject, -1 to remove a previous injection
    """
    values = np.broadcast_to(np.asarray(amplitude, dtype=field.dtype), cells[0].shape)
    np.add.at(field, cells, sign * values)


def record(
    field: NDArray[np.floating],
    cells: tuple[NDArray[np.int64], NDArray[np.int64]],
) -> NDArray[np.floating]:
    """Extract field values at padded cells."""
    return field[cells]


def residual(
    synthetic: NDArray[np.floating], observed: NDArray[np.floating]
) -> NDArray[np.float32]:
    """Signed data residual ``synthetic - observed`` of shape (nt, ng)."""
    if synthetic.shape != observed.shape:
        raise ValueError(
            f"Synthetic data shape {synthetic.shape} does not match observed {observed.shape}"
        )
    return (np.asarray(synthetic, dtype=np.float32) - np.asarray(observed, dtype=np.float32))


def objective(res: NDArray[np.floating]) -> float:
    """Sum of squared residuals over all time samples and receivers."""
    res = np.asarray(res, dtype=np.float64)
    return float(np.sum(res * res))
