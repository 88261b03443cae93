"""Core propagation components."""

from strata_fwi.core.acquisition import (
    Acquisition,
    AcquisitionError,
    SamplingPattern,
    ShotGeometry,
    inject,
    objective,
    record,
    residual,
)
from strata_fwi.core.checkpoint import MIN_ORDER, BoundaryCheckpoint, CheckpointError
from strata_fwi.core.grid import PaddedGrid, expand, window
from strata_fwi.core.solver import SimulationContext, WaveSolver
from strata_fwi.core.stencil import (
    STABILITY_LIMIT,
    StencilCoefficients,
    WavefieldPair,
    courant_number,
    laplacian2,
    laplacian4,
    max_stable_dt,
    step_backward,
    step_forward,
)
from strata_fwi.core.waveforms import RickerWavelet

__all__ = [
    "PaddedGrid",
    "expand",
    "window",
    "StencilCoefficients",
    "WavefieldPair",
    "laplacian4",
    "laplacian2",
    "step_forward",
    "step_backward",
    "courant_number",
    "max_stable_dt",
    "STABILITY_LIMIT",
    "BoundaryCheckpoint",
    "CheckpointError",
    "MIN_ORDER",
    "Acquisition",
    "AcquisitionError",
    "SamplingPattern",
    "ShotGeometry",
    "inject",
    "record",
    "residual",
    "objective",
    "SimulationContext",
    "WaveSolver",
    "RickerWavelet",
]
