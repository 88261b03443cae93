"""Source waveforms for seismic modeling.

Classes:
    RickerWavelet: Zero-phase Ricker (Mexican hat) wavelet

Example:
    >>> from strata_fwi import RickerWavelet
    >>> wavelet = RickerWavelet(frequency=10.0, amplitude=1.0)
    >>> samples = wavelet.waveform(nt=1000, dt=0.001)
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class RickerWavelet:
    """Ricker wavelet delayed by one dominant period.

    w(t) = A * (1 - 2*(pi*fm*(t - t0))**2) * exp(-(pi*fm*(t - t0))**2)

    with t0 = 1/fm so the wavelet starts close to zero.

    Args:
        frequency: Dominant frequency fm in Hz
        amplitude: Peak amplitude A (default: 1.0)
    """

    frequency: float
    amplitude: float = 1.0

    def __post_init__(self):
        if self.frequency <= 0:
            raise ValueError(f"Dominant frequency must be positive, got {self.frequency}")

    @property
    def delay(self) -> float:
        """Time of the wavelet peak in seconds."""
        return 1.0 / self.frequency

    def waveform(self, nt: int, dt: float) -> NDArray[np.float32]:
        """Sample the wavelet at t = it*dt for it in [0, nt).

        Args:
            nt: Number of samples
            dt: Sampling interval in seconds

        Returns:
            float32 array of length nt
        """
        if nt < 1:
            raise ValueError(f"nt must be positive, got {nt}")
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")

        # Ricker energy is negligible above ~3*fm
        nyquist = 0.5 / dt
        if 3.0 * self.frequency > nyquist:
            warnings.warn(
                f"Ricker wavelet at {self.frequency:g} Hz is undersampled by dt={dt:g} s "
                f"(Nyquist {nyquist:g} Hz)",
                UserWarning,
                stacklevel=2,
            )

        t = np.arange(nt, dtype=np.float64) * dt
        arg = (np.pi * self.frequency * (t - self.delay)) ** 2
        return (self.amplitude * (1.0 - 2.0 * arg) * np.exp(-arg)).astype(np.float32)
