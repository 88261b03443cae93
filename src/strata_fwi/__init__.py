"""
Strata FWI - 2-D acoustic full-waveform inversion gradients.

Main exports:
- GradientDriver: Per-iteration gradient computation over all shots
- WaveSolver: Forward modeling and adjoint back-propagation for one shot
- SimulationContext: Grid, v²dt², stencil and sponge for one velocity model
- BoundaryCheckpoint: Boundary-strip store for wavefield reconstruction
- Acquisition, SamplingPattern: Source and receiver layout
- RickerWavelet: Source signature
- Sponge: Absorbing boundary
- cg_beta, cg_direction, step_length: Conjugate-gradient primitives
"""

from strata_fwi.boundaries import Sponge
from strata_fwi.core.acquisition import (
    Acquisition,
    AcquisitionError,
    SamplingPattern,
    ShotGeometry,
    objective,
    residual,
)
from strata_fwi.core.checkpoint import BoundaryCheckpoint, CheckpointError
from strata_fwi.core.grid import PaddedGrid, expand, window
from strata_fwi.core.solver import SimulationContext, WaveSolver
from strata_fwi.core.stencil import (
    STABILITY_LIMIT,
    StencilCoefficients,
    WavefieldPair,
    courant_number,
    max_stable_dt,
    step_backward,
    step_forward,
)
from strata_fwi.core.waveforms import RickerWavelet
from strata_fwi.inversion import (
    GradientAccumulator,
    GradientDriver,
    InversionConfig,
    IterationResult,
    ShotData,
    StepLengthAccumulator,
    bell_smooth,
    cg_beta,
    cg_direction,
    mute_surface,
    perturb_model,
    postprocess_gradient,
    scale_gradient,
    step_length,
    trial_step,
    update_model,
)

# Submodules for more specific imports
from . import core, inversion, io

__version__ = "0.1.0"

__all__ = [
    # Core
    "PaddedGrid",
    "expand",
    "window",
    "Sponge",
    "StencilCoefficients",
    "WavefieldPair",
    "step_forward",
    "step_backward",
    "courant_number",
    "max_stable_dt",
    "STABILITY_LIMIT",
    "BoundaryCheckpoint",
    "CheckpointError",
    "Acquisition",
    "AcquisitionError",
    "SamplingPattern",
    "ShotGeometry",
    "residual",
    "objective",
    "RickerWavelet",
    "SimulationContext",
    "WaveSolver",
    # Inversion
    "GradientDriver",
    "InversionConfig",
    "IterationResult",
    "ShotData",
    "GradientAccumulator",
    "scale_gradient",
    "bell_smooth",
    "mute_surface",
    "postprocess_gradient",
    "cg_beta",
    "cg_direction",
    "trial_step",
    "perturb_model",
    "StepLengthAccumulator",
    "step_length",
    "update_model",
    # Submodules
    "core",
    "inversion",
    "io",
]
