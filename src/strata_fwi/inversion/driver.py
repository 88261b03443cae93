"""Per-iteration gradient computation over a set of shots.

For every outer iteration the driver:

    1. builds a SimulationContext for the current velocity model
    2. for each shot: forward-models synthetic data, forms the residual,
       adds its energy to the objective, and back-propagates it into the
       gradient and illumination accumulators
    3. post-processes the gradient (scaling, smoothing, muting)

The velocity model is never updated here. Each iteration evaluates the
gradient of the model the driver holds; an external orchestrator that wants
a model update combines ``compute_gradient`` with the primitives in
``strata_fwi.inversion.cg`` and calls ``compute_gradient`` again with the
updated model.

Shot parallelism:
    With ``workers > 1`` shots are split round-robin across a thread pool.
    Each worker owns its WaveSolver (field buffers and checkpoint store) and
    a private GradientAccumulator; the partial sums are merged in worker
    order after the pool drains. The sums commute, so the result matches the
    sequential one up to floating-point rounding.

Example:
    >>> driver = GradientDriver(velocity, dz=10.0, dx=10.0, shots=shots,
    ...                         config=InversionConfig(iterations=1, mute=5))
    >>> for result in driver.run():
    ...     print(result.iteration, result.objective)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from strata_fwi.core.acquisition import Acquisition, objective, residual
from strata_fwi.core.checkpoint import MIN_ORDER
from strata_fwi.core.grid import PaddedGrid
from strata_fwi.core.solver import SimulationContext, WaveSolver
from strata_fwi.core.waveforms import RickerWavelet

from .gradient import GradientAccumulator, postprocess_gradient


@dataclass
class InversionConfig:
    """Options controlling one gradient computation run.

    Args:
        iterations: Number of outer iterations (default: 1)
        order: Checkpoint strip thickness in cells (default: 2)
        precondition: Divide the gradient by sqrt(illumination) (default: True)
        smooth: Apply bell smoothing to the gradient (default: True)
        rbell: Bell smoothing radius in cells (default: 2)
        mute: Number of near-surface gradient rows to zero (default: 0)
        workers: Number of shots processed concurrently (default: 1)
        verbose: Report per-shot progress in the CLI (default: False)
    """

    iterations: int = 1
    order: int = MIN_ORDER
    precondition: bool = True
    smooth: bool = True
    rbell: int = 2
    mute: int = 0
    workers: int = 1
    verbose: bool = False

    def __post_init__(self):
        if self.iterations < 1:
            raise ValueError(f"iterations must be at least 1, got {self.iterations}")
        if self.order < MIN_ORDER:
            raise ValueError(f"order must be at least {MIN_ORDER}, got {self.order}")
        if self.rbell < 1:
            raise ValueError(f"rbell must be at least 1, got {self.rbell}")
        if self.mute < 0:
            raise ValueError(f"mute must be non-negative, got {self.mute}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")


@dataclass
class ShotData:
    """Observed shot gathers and the acquisition that produced them.

    Args:
        nt: Time samples per trace
        dt: Sampling interval in seconds
        acquisition: Source and receiver layout
        wavelet: Source signature
        nb: Absorbing border width in cells
        observed: Observed data of shape (ns, nt, ng), or None when only
            forward modeling is needed
    """

    nt: int
    dt: float
    acquisition: Acquisition
    wavelet: RickerWavelet
    nb: int
    observed: NDArray[np.float32] | None = None

    def __post_init__(self):
        if self.nt < 1:
            raise ValueError(f"nt must be positive, got {self.nt}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.observed is not None:
            self.observed = np.asarray(self.observed, dtype=np.float32)
            expected = (self.ns, self.nt, self.ng)
            if self.observed.shape != expected:
                raise ValueError(
                    f"Observed data must have shape {expected}, got {self.observed.shape}"
                )

    @property
    def ns(self) -> int:
        return self.acquisition.ns

    @property
    def ng(self) -> int:
        return self.acquisition.ng


@dataclass
class IterationResult:
    """Outputs of one outer iteration.

    Attributes:
        iteration: Iteration number (0-based)
        gradient: Post-processed gradient (nz, nx)
        illumination: Source illumination on the physical grid (nz, nx)
        objective: Sum of squared residuals over all shots
    """

    iteration: int
    gradient: NDArray[np.float32]
    illumination: NDArray[np.float32]
    objective: float


class GradientDriver:
    """Computes FWI gradients for a velocity model and a set of shots.

    Args:
        velocity: Physical velocity model (nz, nx) in m/s
        dz: Depth spacing in meters
        dx: Lateral spacing in meters
        shots: Observed data and acquisition
        config: Run options (default: InversionConfig())
        callback: Called after each shot as callback(iteration, shot)

    Raises:
        AcquisitionError: If any source or receiver lies outside the grid

    Attributes:
        grid: Padded grid built from the model shape and ``shots.nb``
        objective_history: Objective value of every computed iteration
    """

    def __init__(
        self,
        velocity: NDArray[np.floating],
        dz: float,
        dx: float,
        shots: ShotData,
        config: InversionConfig | None = None,
        callback: Callable[[int, int], None] | None = None,
    ):
        self.velocity = np.asarray(velocity, dtype=np.float32)
        if self.velocity.ndim != 2:
            raise ValueError(f"Velocity model must be 2-D, got shape {self.velocity.shape}")

        nz, nx = self.velocity.shape
        self.grid = PaddedGrid(nz=nz, nx=nx, dz=dz, dx=dx, nb=shots.nb)
        self.shots = shots
        self.config = config if config is not None else InversionConfig()
        self.callback = callback

        # Fail before any propagation
        shots.acquisition.validate(self.grid)

        self.wavelet = shots.wavelet.waveform(shots.nt, shots.dt)
        self.objective_history: list[float] = []

    def context(self, velocity: NDArray[np.floating] | None = None) -> SimulationContext:
        """Propagation context for ``velocity`` (default: the driver's model)."""
        return SimulationContext(
            grid=self.grid,
            nt=self.shots.nt,
            dt=self.shots.dt,
            velocity=self.velocity if velocity is None else velocity,
            order=self.config.order,
        )

    def run(self) -> Iterator[IterationResult]:
        """Compute the gradient of the driver's model once per iteration."""
        for iteration in range(self.config.iterations):
            yield self.compute_gradient(iteration=iteration)

    def compute_gradient(
        self, velocity: NDArray[np.floating] | None = None, iteration: int = 0
    ) -> IterationResult:
        """Gradient, illumination and objective for one velocity model.

        Args:
            velocity: Model to evaluate (default: the driver's model)
            iteration: Iteration number passed to the callback and result

        Returns:
            IterationResult with the post-processed gradient
        """
        if self.shots.observed is None:
            raise ValueError("Gradient computation requires observed shot data")

        context = self.context(velocity)
        acc = self._accumulate(context, iteration)

        cfg = self.config
        gradient = postprocess_gradient(
            acc,
            context.velocity,
            precondition=cfg.precondition,
            smooth=cfg.smooth,
            rbell=cfg.rbell,
            mute=cfg.mute,
        )
        self.objective_history.append(acc.objective)
        return IterationResult(
            iteration=iteration,
            gradient=gradient,
            illumination=acc.interior_illumination(),
            objective=acc.objective,
        )

    def model(self, velocity: NDArray[np.floating] | None = None) -> NDArray[np.float32]:
        """Forward-model every shot.

        Returns:
            Synthetic data of shape (ns, nt, ng)
        """
        context = self.context(velocity)
        shots = self.shots
        data = np.zeros((shots.ns, shots.nt, shots.ng), dtype=np.float32)

        def work(indices: Sequence[int]) -> None:
            solver = WaveSolver(context, self.wavelet)
            for shot in indices:
                geometry = shots.acquisition.shot_geometry(shot, self.grid)
                data[shot] = solver.model_shot(geometry)
                if self.callback:
                    self.callback(0, shot)

        self._dispatch(work)
        return data

    def _accumulate(self, context: SimulationContext, iteration: int) -> GradientAccumulator:
        """Run forward and backward passes for every shot and reduce the sums."""

        def work(indices: Sequence[int]) -> GradientAccumulator:
            solver = WaveSolver(context, self.wavelet)
            acc = GradientAccumulator(self.grid)
            for shot in indices:
                self._process_shot(solver, acc, shot)
                if self.callback:
                    self.callback(iteration, shot)
            return acc

        partials = self._dispatch(work)
        if len(partials) == 1:
            return partials[0]

        total = GradientAccumulator(self.grid)
        for partial in partials:
            total.merge(partial)
        return total

    def _process_shot(self, solver: WaveSolver, acc: GradientAccumulator, shot: int) -> None:
        geometry = self.shots.acquisition.shot_geometry(shot, self.grid)
        synthetic = solver.forward(geometry)
        res = residual(synthetic, self.shots.observed[shot])
        acc.objective += objective(res)
        solver.backward(geometry, res, acc.gradient, acc.illumination)
        acc.shots += 1

    def _dispatch(self, work: Callable[[Sequence[int]], object]) -> list:
        """Run ``work`` over round-robin shot partitions, one per worker."""
        ns = self.shots.ns
        workers = min(self.config.workers, ns)
        if workers == 1:
            return [work(range(ns))]

        partitions = [range(k, ns, workers) for k in range(workers)]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="shot") as pool:
            futures = [pool.submit(work, part) for part in partitions]
            return [future.result() for future in futures]
