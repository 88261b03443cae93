"""
Unit tests for the Ricker source wavelet.

Tests verify:
- Peak time and amplitude
- Zero crossings and symmetry about the peak
- Undersampling warning
- Parameter validation
"""

import numpy as np
import pytest

from strata_fwi import RickerWavelet


class TestRickerWavelet:
    def test_peak_at_delay(self):
        """The peak sits one dominant period after t=0 with value A."""
        wavelet = RickerWavelet(frequency=10.0, amplitude=2.5)
        samples = wavelet.waveform(nt=300, dt=1e-3)

        assert wavelet.delay == pytest.approx(0.1)
        assert np.argmax(samples) == 100
        assert samples[100] == pytest.approx(2.5, rel=1e-5)

    def test_symmetric_about_peak(self):
        samples = RickerWavelet(frequency=10.0).waveform(nt=201, dt=1e-3)

        np.testing.assert_allclose(samples[:100], samples[200:100:-1], atol=1e-6)

    def test_zero_crossings(self):
        """w = 0 where (pi*fm*(t - t0))² = 1/2."""
        fm = 10.0
        t_zero = 1.0 / fm + 1.0 / (np.pi * fm * np.sqrt(2.0))
        dt = 1e-4
        samples = RickerWavelet(frequency=fm).waveform(nt=3000, dt=dt)

        assert abs(samples[int(round(t_zero / dt))]) < 1e-2

    def test_starts_near_zero(self):
        samples = RickerWavelet(frequency=15.0).waveform(nt=10, dt=1e-3)

        assert abs(samples[0]) < 2e-3

    def test_dtype_and_length(self):
        samples = RickerWavelet(frequency=10.0).waveform(nt=64, dt=2e-3)

        assert samples.dtype == np.float32
        assert samples.shape == (64,)

    def test_undersampled_warning(self):
        with pytest.warns(UserWarning, match="undersampled"):
            RickerWavelet(frequency=100.0).waveform(nt=10, dt=0.01)

    @pytest.mark.parametrize("frequency", [0.0, -5.0])
    def test_invalid_frequency(self, frequency):
        with pytest.raises(ValueError):
            RickerWavelet(frequency=frequency)

    def test_invalid_sampling(self):
        wavelet = RickerWavelet(frequency=10.0)
        with pytest.raises(ValueError):
            wavelet.waveform(nt=0, dt=1e-3)
        with pytest.raises(ValueError):
            wavelet.waveform(nt=10, dt=0.0)
