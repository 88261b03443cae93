"""Gradient computation, post-processing and conjugate-gradient primitives."""

from strata_fwi.inversion.cg import (
    StepLengthAccumulator,
    cg_beta,
    cg_direction,
    perturb_model,
    step_length,
    trial_step,
    update_model,
)
from strata_fwi.inversion.driver import (
    GradientDriver,
    InversionConfig,
    IterationResult,
    ShotData,
)
from strata_fwi.inversion.gradient import (
    EPS,
    GradientAccumulator,
    bell_smooth,
    bell_weights,
    mute_surface,
    postprocess_gradient,
    scale_gradient,
)

__all__ = [
    "GradientDriver",
    "InversionConfig",
    "IterationResult",
    "ShotData",
    "GradientAccumulator",
    "scale_gradient",
    "bell_weights",
    "bell_smooth",
    "mute_surface",
    "postprocess_gradient",
    "EPS",
    "cg_beta",
    "cg_direction",
    "trial_step",
    "perturb_model",
    "StepLengthAccumulator",
    "step_length",
    "update_model",
]
