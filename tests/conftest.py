"""Shared fixtures for the strata-fwi test suite.

The models are deliberately tiny (24 × 32 cells, 200 steps) so full
forward/backward passes run in well under a second each.
"""

import numpy as np
import pytest

from strata_fwi import (
    Acquisition,
    GradientDriver,
    PaddedGrid,
    RickerWavelet,
    SamplingPattern,
    ShotData,
    expand,
)

NZ, NX, NB = 24, 32, 8
DZ = DX = 10.0
NT, DT = 200, 1e-3


@pytest.fixture
def grid():
    return PaddedGrid(nz=NZ, nx=NX, dz=DZ, dx=DX, nb=NB)


@pytest.fixture
def true_velocity():
    """Two-layer model with an interface at depth index 12."""
    v = np.full((NZ, NX), 2000.0, dtype=np.float32)
    v[12:, :] = 2500.0
    return v


@pytest.fixture
def start_velocity():
    return np.full((NZ, NX), 2000.0, dtype=np.float32)


@pytest.fixture
def acquisition():
    return Acquisition(
        sources=SamplingPattern(zbeg=2, xbeg=8, jz=0, jx=16, count=2),
        receivers=SamplingPattern(zbeg=2, xbeg=0, jz=0, jx=1, count=NX),
    )


@pytest.fixture
def wavelet():
    return RickerWavelet(frequency=20.0)


@pytest.fixture
def make_shots(wavelet):
    """Build a ShotData for an acquisition, optionally with observed data."""

    def _make(acquisition, observed=None):
        return ShotData(
            nt=NT, dt=DT, acquisition=acquisition, wavelet=wavelet, nb=NB, observed=observed
        )

    return _make


@pytest.fixture
def observed_shots(true_velocity, acquisition, make_shots):
    """Shot gathers modeled in the two-layer model."""
    driver = GradientDriver(true_velocity, DZ, DX, make_shots(acquisition))
    return make_shots(acquisition, observed=driver.model())


def _reference_forward(grid, velocity, dt, wavelet, shot):
    """Plain forward propagator written out step by step.

    Returns:
        (traces, history) where history[it] is the interior of p_{it+1}
    """
    vpad = expand(grid, velocity).astype(np.float32)
    vv = vpad * vpad * np.float32(dt * dt)
    c1z, c2z = 4.0 / 3.0 / grid.dz**2, -1.0 / 12.0 / grid.dz**2
    c1x, c2x = 4.0 / 3.0 / grid.dx**2, -1.0 / 12.0 / grid.dx**2

    nb = grid.nb
    weights = np.exp(-((0.015 * (nb - np.arange(nb))) ** 2)).astype(np.float32)

    def damp(p):
        for i in range(nb):
            p[grid.nzpad - 1 - i, :] *= weights[i]
        for i in range(nb):
            p[:, i] *= weights[i]
            p[:, grid.nxpad - 1 - i] *= weights[i]

    prev = np.zeros(grid.padded_shape, dtype=np.float32)
    cur = np.zeros(grid.padded_shape, dtype=np.float32)
    traces = np.zeros((len(wavelet), shot.ng), dtype=np.float32)
    history = []
    sz, sx = shot.source_cells[0][0], shot.source_cells[1][0]

    for it in range(len(wavelet)):
        c = cur[2:-2, 2:-2]
        lap = (
            -2.0 * (c1z + c2z + c1x + c2x) * c
            + c1z * (cur[1:-3, 2:-2] + cur[3:-1, 2:-2])
            + c2z * (cur[:-4, 2:-2] + cur[4:, 2:-2])
            + c1x * (cur[2:-2, 1:-3] + cur[2:-2, 3:-1])
            + c2x * (cur[2:-2, :-4] + cur[2:-2, 4:])
        )
        new = prev.copy()
        new[2:-2, 2:-2] = 2.0 * c - prev[2:-2, 2:-2] + vv[2:-2, 2:-2] * lap
        new[sz, sx] += wavelet[it]
        damp(cur)
        damp(new)
        prev, cur = cur, new
        traces[it] = cur[shot.receiver_cells]
        history.append(cur[grid.interior].copy())

    return traces, history


@pytest.fixture
def reference_forward():
    """Independent propagator for checking WaveSolver traces and snapshots."""
    return _reference_forward
