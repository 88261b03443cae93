"""2-D acoustic forward modeling and adjoint-state back-propagation.

This module drives the stencil propagator for one shot at a time:

Forward pass (it = 0 .. nt-1):
    1. p_{it+1} = 2*p_it - p_{it-1} + v²dt² * L(p_it)
    2. add wavelet[it] at the source cell
    3. damp both time slices in the sponge
    4. record p_{it+1} at the receivers -> synthetic[it]
    5. checkpoint the boundary strips of p_{it+1}

Backward pass (it = nt-1 .. 1):
    1. restore the strips of p_it from the checkpoint
    2. remove wavelet[it] from p_{it+1}
    3. reconstruct p_{it-1} from (p_it, p_{it+1}), imaging p_it on the way
       (plain Laplacian and illumination)
    4. advance the adjoint field one step, add residual[it] at the
       receivers, damp it in the sponge
    5. gradient += Laplacian(p_it) * adjoint, on the physical interior

The step at it = 0 is skipped: p_0 is the quiescent initial state, so its
Laplacian and illumination contributions are identically zero.

All state that used to be process-wide (grid, v²dt², stencil weights,
sponge) lives on a SimulationContext built once per velocity model.

Example:
    >>> context = SimulationContext(grid=grid, nt=1000, dt=1e-3, velocity=v)
    >>> solver = WaveSolver(context, RickerWavelet(10.0).waveform(1000, 1e-3))
    >>> shot = acquisition.shot_geometry(0, grid)
    >>> synthetic = solver.forward(shot)
    >>> solver.backward(shot, synthetic - observed, gradient, illumination)
"""

from __future__ import annotations

import warnings
from collections.abc import Iterator
from dataclasses import dataclass, field, replace

import numpy as np
from numpy.typing import NDArray

from strata_fwi.boundaries import Sponge

from .acquisition import ShotGeometry, inject, record
from .checkpoint import MIN_ORDER, BoundaryCheckpoint, CheckpointError
from .grid import PaddedGrid, expand
from .stencil import (
    STABILITY_LIMIT,
    StencilCoefficients,
    WavefieldPair,
    courant_number,
    step_backward,
    step_forward,
)


@dataclass(frozen=True)
class SimulationContext:
    """Read-only propagation state shared by every shot of one model.

    Args:
        grid: Padded grid specification
        nt: Number of time steps
        dt: Time step in seconds
        velocity: Physical velocity model (nz, nx) in m/s
        order: Checkpoint strip thickness (default: 2)

    Attributes:
        vv: Padded v²dt² array used by the stencil
        coeffs: Fourth-order Laplacian weights
        sponge: Absorbing boundary for the grid's border width
        courant: Courant number for the fastest velocity
    """

    grid: PaddedGrid
    nt: int
    dt: float
    velocity: NDArray[np.floating]
    order: int = MIN_ORDER
    vv: NDArray[np.float32] = field(init=False, repr=False)
    coeffs: StencilCoefficients = field(init=False, repr=False)
    sponge: Sponge = field(init=False, repr=False)

    def __post_init__(self):
        if self.nt < 1:
            raise ValueError(f"nt must be positive, got {self.nt}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if min(self.grid.padded_shape) < 5:
            raise ValueError(
                f"Padded grid {self.grid.padded_shape} is smaller than the 5-point stencil"
            )

        velocity = np.asarray(self.velocity, dtype=np.float32)
        object.__setattr__(self, "velocity", velocity)
        if self.velocity.shape != self.grid.shape:
            raise ValueError(
                f"Velocity shape {self.velocity.shape} does not match grid {self.grid.shape}"
            )
        if np.any(self.velocity <= 0):
            raise ValueError("Velocity model must be strictly positive")

        vpad = expand(self.grid, velocity)
        vv = (vpad * vpad * np.float32(self.dt * self.dt)).astype(np.float32)
        object.__setattr__(self, "vv", vv)
        object.__setattr__(
            self, "coeffs", StencilCoefficients.from_spacing(self.grid.dz, self.grid.dx)
        )
        object.__setattr__(self, "sponge", Sponge(self.grid.nb))

        if self.courant > STABILITY_LIMIT:
            warnings.warn(
                f"Courant number {self.courant:.3f} exceeds the stability limit "
                f"{STABILITY_LIMIT:.3f}; the wavefield will grow without bound",
                UserWarning,
                stacklevel=2,
            )

    @property
    def courant(self) -> float:
        """Courant number for the fastest velocity in the model."""
        return courant_number(float(self.velocity.max()), self.dt, self.grid.dz, self.grid.dx)

    def with_velocity(self, velocity: NDArray[np.floating]) -> SimulationContext:
        """New context for another velocity model on the same grid."""
        return replace(self, velocity=velocity)


class WaveSolver:
    """Forward and adjoint propagation for one shot at a time.

    Owns its wavefield buffers and checkpoint store, so independent solvers
    may run concurrently on a shared SimulationContext.

    Args:
        context: Propagation state (grid, v²dt², stencil, sponge)
        wavelet: Source signature, one sample per time step

    Example:
        >>> solver = WaveSolver(context, wavelet)
        >>> synthetic = solver.forward(shot)
        >>> solver.backward(shot, residual, gradient, illumination)
    """

    def __init__(self, context: SimulationContext, wavelet: NDArray[np.floating]):
        wavelet = np.asarray(wavelet, dtype=np.float32)
        if wavelet.shape != (context.nt,):
            raise ValueError(
                f"Wavelet must have one sample per time step ({context.nt}), got {wavelet.shape}"
            )

        self.context = context
        self.wavelet = wavelet

        shape = context.grid.padded_shape
        self._source = WavefieldPair(shape)
        self._adjoint = WavefieldPair(shape)
        self._lap = np.zeros(shape, dtype=np.float32)
        self.checkpoint = BoundaryCheckpoint(context.grid, context.nt, context.order)

        self._shot: int | None = None

    def forward(self, shot: ShotGeometry, save_checkpoint: bool = True) -> NDArray[np.float32]:
        """Propagate the source wavefield and record synthetic data.

        Args:
            shot: Source and receiver positions
            save_checkpoint: Keep boundary strips for a following backward pass

        Returns:
            Synthetic data of shape (nt, ng)
        """
        ctx = self.context
        pair = self._source
        pair.reset()
        self.checkpoint.reset()
        self._shot = None

        synthetic = np.zeros((ctx.nt, shot.ng), dtype=np.float32)
        for it in range(ctx.nt):
            step_forward(pair, ctx.vv, ctx.coeffs)
            inject(pair.cur, shot.source_cells, self.wavelet[it])
            ctx.sponge.apply(pair.prev, pair.cur)
            synthetic[it] = record(pair.cur, shot.receiver_cells)
            if save_checkpoint:
                self.checkpoint.write(it, pair.cur)

        if save_checkpoint:
            self.checkpoint.seal()
            self._shot = shot.index
        return synthetic

    def model_shot(self, shot: ShotGeometry) -> NDArray[np.float32]:
        """Forward modeling only, without checkpointing."""
        return self.forward(shot, save_checkpoint=False)

    def backward(
        self,
        shot: ShotGeometry,
        res: NDArray[np.floating],
        gradient: NDArray[np.floating],
        illumination: NDArray[np.floating],
    ) -> None:
        """Back-propagate a data residual and accumulate its gradient.

        Must follow ``forward(shot)`` for the same shot.

        Args:
            shot: Geometry used by the preceding forward pass
            res: Residual ``synthetic - observed`` of shape (nt, ng)
            gradient: Physical-grid accumulator (nz, nx), updated in place
            illumination: Padded accumulator, updated in place
        """
        ctx = self.context
        grid = ctx.grid
        if res.shape != (ctx.nt, shot.ng):
            raise ValueError(f"Residual must have shape {(ctx.nt, shot.ng)}, got {res.shape}")
        if gradient.shape != grid.shape:
            raise ValueError(f"Gradient must have shape {grid.shape}, got {gradient.shape}")

        res = np.asarray(res, dtype=np.float32)
        adj = self._adjoint
        adj.reset()
        interior = grid.interior

        for it in self._replay(shot, illumination):
            step_forward(adj, ctx.vv, ctx.coeffs)
            inject(adj.cur, shot.receiver_cells, res[it])
            ctx.sponge.apply(adj.prev, adj.cur)
            gradient += self._lap[interior] * adj.cur[interior]

    def reconstruct(self, shot: ShotGeometry) -> Iterator[tuple[int, NDArray[np.float32]]]:
        """Replay the checkpoint and yield the rebuilt forward field.

        Must follow ``forward(shot)`` for the same shot.

        Yields:
            (it, field) pairs for it = nt-1 .. 1, where ``field`` is a copy
            of the physical interior of p_it, the field recorded at step it-1
        """
        scratch = np.zeros(self.context.grid.padded_shape, dtype=np.float32)
        for it in self._replay(shot, scratch):
            yield it, np.array(self._source.prev[self.context.grid.interior])

    def _replay(self, shot: ShotGeometry, illumination: NDArray[np.floating]) -> Iterator[int]:
        """Run the source field backward in time, one reverse step per yield.

        After each yield ``self._lap`` holds the plain Laplacian of p_it and
        the source pair's previous slice holds p_it.
        """
        ctx = self.context
        if not self.checkpoint.sealed or self.checkpoint.exhausted:
            raise CheckpointError("backward pass requires a completed forward pass")
        if self._shot != shot.index:
            raise CheckpointError(
                f"Checkpoint belongs to shot {self._shot}, not shot {shot.index}"
            )
        if illumination.shape != ctx.grid.padded_shape:
            raise ValueError(
                f"Illumination must have shape {ctx.grid.padded_shape}, got {illumination.shape}"
            )

        pair = self._source
        # Time reversal: the later slice p_nt plays the previous role
        pair.swap()
        self.checkpoint.read(ctx.nt - 1, pair.prev)

        for it in range(ctx.nt - 1, 0, -1):
            self.checkpoint.read(it - 1, pair.cur)
            inject(pair.prev, shot.source_cells, self.wavelet[it], sign=-1.0)
            step_backward(pair, ctx.vv, ctx.coeffs, self._lap, illumination)
            yield it
