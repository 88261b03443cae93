"""
Tests for the per-iteration gradient driver.

Tests verify:
- Configuration validation
- Acquisition checks before any propagation
- Zero gradient for a model that explains the data
- Objective additivity over shots
- Worker-parallel results matching the sequential ones
- Callback and iteration bookkeeping
- Trace and gradient support for a single source with a receiver above it
"""

from dataclasses import replace

import numpy as np
import pytest

from strata_fwi import (
    Acquisition,
    AcquisitionError,
    GradientDriver,
    InversionConfig,
    RickerWavelet,
    SamplingPattern,
    ShotData,
)

DZ = DX = 10.0

# =============================================================================
# Configuration
# =============================================================================


class TestInversionConfig:
    def test_defaults(self):
        config = InversionConfig()

        assert config.iterations == 1
        assert config.order == 2
        assert config.precondition is True
        assert config.smooth is True
        assert config.rbell == 2
        assert config.mute == 0
        assert config.workers == 1

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"iterations": 0},
            {"order": 1},
            {"rbell": 0},
            {"mute": -1},
            {"workers": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            InversionConfig(**kwargs)


class TestShotData:
    def test_observed_shape_checked(self, acquisition, wavelet):
        with pytest.raises(ValueError, match="Observed data must have shape"):
            ShotData(
                nt=10,
                dt=1e-3,
                acquisition=acquisition,
                wavelet=wavelet,
                nb=4,
                observed=np.zeros((2, 10, 3)),
            )

    def test_counts(self, acquisition, wavelet):
        shots = ShotData(nt=10, dt=1e-3, acquisition=acquisition, wavelet=wavelet, nb=4)

        assert shots.ns == 2
        assert shots.ng == 32
        assert shots.observed is None

    def test_invalid_time_axis(self, acquisition, wavelet):
        with pytest.raises(ValueError):
            ShotData(nt=0, dt=1e-3, acquisition=acquisition, wavelet=wavelet, nb=4)
        with pytest.raises(ValueError):
            ShotData(nt=10, dt=-1.0, acquisition=acquisition, wavelet=wavelet, nb=4)


# =============================================================================
# Driver
# =============================================================================


class TestGradientDriver:
    def test_acquisition_checked_up_front(self, start_velocity, make_shots):
        acq = Acquisition(
            sources=SamplingPattern(zbeg=2, xbeg=8, jz=0, jx=16, count=3),
            receivers=SamplingPattern(zbeg=2, xbeg=0, jz=0, jx=1, count=32),
        )
        with pytest.raises(AcquisitionError):
            GradientDriver(start_velocity, DZ, DX, make_shots(acq))

    def test_velocity_must_be_2d(self, acquisition, make_shots):
        with pytest.raises(ValueError, match="2-D"):
            GradientDriver(np.ones(10), DZ, DX, make_shots(acquisition))

    def test_model_shape(self, true_velocity, acquisition, make_shots):
        data = GradientDriver(true_velocity, DZ, DX, make_shots(acquisition)).model()

        assert data.shape == (2, 200, 32)
        assert np.abs(data).max() > 0

    def test_requires_observed_data(self, start_velocity, acquisition, make_shots):
        driver = GradientDriver(start_velocity, DZ, DX, make_shots(acquisition))
        with pytest.raises(ValueError, match="observed"):
            driver.compute_gradient()

    def test_zero_residual_zero_gradient(self, true_velocity, observed_shots):
        """The true model explains the data exactly."""
        driver = GradientDriver(true_velocity, DZ, DX, observed_shots)
        result = driver.compute_gradient()

        assert result.objective == 0.0
        assert not result.gradient.any()
        assert result.illumination.max() > 0

    def test_mismatched_model(self, start_velocity, observed_shots):
        config = InversionConfig(mute=3)
        result = GradientDriver(start_velocity, DZ, DX, observed_shots, config).compute_gradient()

        assert result.objective > 0
        assert result.gradient.shape == start_velocity.shape
        assert np.all(np.isfinite(result.gradient))
        assert np.abs(result.gradient).max() > 0
        assert not result.gradient[:3].any()

    def test_objective_additive_over_shots(self, start_velocity, observed_shots, make_shots):
        acq = observed_shots.acquisition
        total = GradientDriver(start_velocity, DZ, DX, observed_shots).compute_gradient()

        parts = []
        for shot in range(acq.ns):
            single = Acquisition(
                sources=SamplingPattern(
                    zbeg=acq.sources.zbeg,
                    xbeg=acq.sources.xbeg + shot * acq.sources.jx,
                    jz=0,
                    jx=0,
                    count=1,
                ),
                receivers=acq.receivers,
            )
            shots = make_shots(single, observed=observed_shots.observed[shot:shot + 1])
            parts.append(GradientDriver(start_velocity, DZ, DX, shots).compute_gradient().objective)

        assert total.objective == pytest.approx(sum(parts), rel=1e-6)

    def test_workers_match_sequential(self, start_velocity, observed_shots):
        sequential = GradientDriver(
            start_velocity, DZ, DX, observed_shots, InversionConfig(workers=1)
        ).compute_gradient()
        parallel = GradientDriver(
            start_velocity, DZ, DX, observed_shots, InversionConfig(workers=2)
        ).compute_gradient()

        assert parallel.objective == pytest.approx(sequential.objective, rel=1e-6)
        scale = np.abs(sequential.gradient).max()
        np.testing.assert_allclose(parallel.gradient, sequential.gradient, atol=1e-4 * scale)
        np.testing.assert_allclose(parallel.illumination, sequential.illumination, rtol=1e-4)

    def test_more_workers_than_shots(self, true_velocity, acquisition, make_shots):
        shots = make_shots(acquisition)
        data = GradientDriver(true_velocity, DZ, DX, shots, InversionConfig(workers=8)).model()
        reference = GradientDriver(true_velocity, DZ, DX, shots).model()

        np.testing.assert_array_equal(data, reference)

    def test_run_iterations(self, start_velocity, observed_shots):
        calls = []
        driver = GradientDriver(
            start_velocity,
            DZ,
            DX,
            observed_shots,
            InversionConfig(iterations=2),
            callback=lambda iteration, shot: calls.append((iteration, shot)),
        )
        results = list(driver.run())

        assert [r.iteration for r in results] == [0, 1]
        assert calls == [(0, 0), (0, 1), (1, 0), (1, 1)]
        # The model is not updated between iterations
        assert driver.objective_history[0] == driver.objective_history[1]
        np.testing.assert_array_equal(results[0].gradient, results[1].gradient)

    def test_compute_gradient_with_other_model(self, start_velocity, true_velocity, observed_shots):
        driver = GradientDriver(start_velocity, DZ, DX, observed_shots)
        first = driver.compute_gradient()
        second = driver.compute_gradient(velocity=true_velocity, iteration=1)

        assert second.objective == 0.0
        assert driver.objective_history == [first.objective, 0.0]
        np.testing.assert_array_equal(driver.velocity, start_velocity)


# =============================================================================
# Single shot with the receiver above the source
# =============================================================================


class TestVerticalPair:
    """One source at depth 100 m with one receiver 60 m above it.

    The interface of the two-layer model lies 20 m below the source, so in
    100 steps the only data difference is the reflection from it.
    """

    NT = 100
    COLUMN = 16

    @pytest.fixture
    def pair_acquisition(self):
        return Acquisition(
            sources=SamplingPattern(zbeg=10, xbeg=self.COLUMN, jz=0, jx=0, count=1),
            receivers=SamplingPattern(zbeg=4, xbeg=self.COLUMN, jz=0, jx=0, count=1),
        )

    @pytest.fixture
    def pair_shots(self, pair_acquisition):
        return ShotData(
            nt=self.NT,
            dt=1e-3,
            acquisition=pair_acquisition,
            wavelet=RickerWavelet(frequency=25.0),
            nb=8,
        )

    def test_trace_matches_reference(
        self, true_velocity, pair_shots, grid, reference_forward
    ):
        synthetic = GradientDriver(true_velocity, DZ, DX, pair_shots).model()
        shot = pair_shots.acquisition.shot_geometry(0, grid)
        samples = pair_shots.wavelet.waveform(self.NT, 1e-3)
        traces, _ = reference_forward(grid, true_velocity, 1e-3, samples, shot)

        scale = np.max(np.abs(traces))
        assert scale > 0
        np.testing.assert_allclose(synthetic[0, :, 0], traces[:, 0], atol=1e-4 * scale)

    def test_gradient_confined_near_the_pair(self, true_velocity, start_velocity, pair_shots):
        observed = GradientDriver(true_velocity, DZ, DX, pair_shots).model()
        shots = replace(pair_shots, observed=observed)
        config = InversionConfig(precondition=False, smooth=False)
        result = GradientDriver(start_velocity, DZ, DX, shots, config).compute_gradient()

        assert result.objective > 0
        g = np.abs(result.gradient)
        band = g[:, self.COLUMN - 5:self.COLUMN + 6]
        outside = np.concatenate(
            [g[:, :self.COLUMN - 10], g[:, self.COLUMN + 11:]], axis=1
        )

        assert band.max() > 0
        assert outside.max() < 1e-2 * band.max()
