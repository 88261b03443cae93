"""Nonlinear conjugate-gradient primitives.

Stateless building blocks for a velocity update. Nothing in this package
calls them automatically; an outer driver decides when to use them.

Search direction:
    d_k = -g_k + beta * d_{k-1}

Hybrid beta (Hestenes-Stiefel / Dai-Yuan), with y = g_k - g_{k-1}:
    beta_HS = <g_k, y> / (<d_{k-1}, y> + EPS)
    beta_DY = <g_k, g_k> / (<d_{k-1}, y> + EPS)
    beta    = max(0, min(beta_HS, beta_DY))

Step length from one trial perturbation m + eps*d:
    eps   = 0.01 * max|m| / (max|d| + EPS)
    delta = f(m + eps*d) - f(m)
    alpha = eps * sum(-delta * residual) / (sum(delta²) + EPS)

Example:
    >>> beta = cg_beta(g_new, g_old, d_old)
    >>> d = cg_direction(g_new, d_old, beta)
    >>> eps = trial_step(v, d)
    >>> trial = forward_model(perturb_model(v, d, eps))  # external
    >>> acc = StepLengthAccumulator(ng)
    >>> acc.add(trial, synthetic, residual)
    >>> v = update_model(v, d, step_length(acc, eps))
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .gradient import EPS


def _dot(a: NDArray[np.floating], b: NDArray[np.floating]) -> float:
    return float(np.vdot(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64)))


def cg_beta(
    g_new: NDArray[np.floating],
    g_old: NDArray[np.floating],
    d_old: NDArray[np.floating],
) -> float:
    """Hybrid Hestenes-Stiefel / Dai-Yuan conjugacy coefficient.

    Returns 0 (steepest-descent restart) whenever either formula is
    non-positive. EPS in the common denominator keeps beta bounded when
    <d_old, y> is close to zero.
    """
    if not (g_new.shape == g_old.shape == d_old.shape):
        raise ValueError("Gradients and direction must share one shape")

    y = np.asarray(g_new, dtype=np.float64) - np.asarray(g_old, dtype=np.float64)
    denom = _dot(d_old, y)
    beta_hs = _dot(g_new, y) / (denom + EPS)
    beta_dy = _dot(g_new, g_new) / (denom + EPS)
    return max(0.0, min(beta_hs, beta_dy))


def cg_direction(
    gradient: NDArray[np.floating],
    d_old: NDArray[np.floating] | None = None,
    beta: float = 0.0,
) -> NDArray[np.float32]:
    """Conjugate search direction ``-gradient + beta*d_old``.

    With no previous direction this is steepest descent.
    """
    d = -np.asarray(gradient, dtype=np.float32)
    if d_old is not None:
        if d_old.shape != d.shape:
            raise ValueError(f"Direction shape {d_old.shape} does not match gradient {d.shape}")
        d = d + np.float32(beta) * np.asarray(d_old, dtype=np.float32)
    return d


def trial_step(velocity: NDArray[np.floating], direction: NDArray[np.floating]) -> float:
    """Small, scale-invariant trial perturbation size."""
    vmax = float(np.max(np.abs(velocity)))
    dmax = float(np.max(np.abs(direction)))
    return 0.01 * vmax / (dmax + EPS)


def perturb_model(
    velocity: NDArray[np.floating], direction: NDArray[np.floating], epsilon: float
) -> NDArray[np.float32]:
    """Trial model ``velocity + epsilon*direction`` (new array)."""
    return (np.asarray(velocity, dtype=np.float32) + np.float32(epsilon) * direction).astype(
        np.float32
    )


class StepLengthAccumulator:
    """Per-receiver numerator and denominator sums for the step length.

    Args:
        ng: Number of receivers

    Attributes:
        numerator: Sum over time of -(trial - synthetic) * residual
        denominator: Sum over time of (trial - synthetic)²
    """

    def __init__(self, ng: int):
        if ng < 1:
            raise ValueError(f"ng must be positive, got {ng}")
        self.ng = ng
        self.numerator = np.zeros(ng, dtype=np.float64)
        self.denominator = np.zeros(ng, dtype=np.float64)

    def add(
        self,
        trial: NDArray[np.floating],
        synthetic: NDArray[np.floating],
        res: NDArray[np.floating],
    ) -> None:
        """Accumulate one shot (arrays of shape (nt, ng)) or one time sample (ng,)."""
        if not (trial.shape == synthetic.shape == res.shape):
            raise ValueError("Trial, synthetic and residual data must share one shape")
        if trial.shape[-1] != self.ng:
            raise ValueError(f"Expected {self.ng} receivers, got {trial.shape[-1]}")

        delta = np.asarray(trial, dtype=np.float64) - np.asarray(synthetic, dtype=np.float64)
        r = np.asarray(res, dtype=np.float64)
        self.numerator -= (delta * r).reshape(-1, self.ng).sum(axis=0)
        self.denominator += (delta * delta).reshape(-1, self.ng).sum(axis=0)

    def reset(self) -> None:
        self.numerator.fill(0)
        self.denominator.fill(0)


def step_length(acc: StepLengthAccumulator, epsilon: float) -> float:
    """Parabolic step-length estimate from a trial perturbation of size epsilon."""
    return float(epsilon * acc.numerator.sum() / (acc.denominator.sum() + EPS))


def update_model(
    velocity: NDArray[np.floating], direction: NDArray[np.floating], alpha: float
) -> NDArray[np.floating]:
    """Apply ``velocity += alpha*direction`` in place and return velocity."""
    if velocity.shape != direction.shape:
        raise ValueError(
            f"Direction shape {direction.shape} does not match velocity {velocity.shape}"
        )
    velocity += np.asarray(alpha * np.asarray(direction), dtype=velocity.dtype)
    return velocity
