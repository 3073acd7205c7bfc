"""
Unit Tests for the Wavefront Queue

Tests cover:
- Argument validation at construction
- History seeding and monotonic time
- Surface and bottom reflection bookkeeping
- Abort on non-finite ray states
- Recorder hand-off and persistence failures
"""

import pytest
import numpy as np
from pathlib import Path
from unittest.mock import Mock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from oceanray.exceptions import NumericalInstabilityError, PersistenceError
from oceanray.launch_grid import linear_sequence
from oceanray.ocean import ConstantProfile, FlatBoundary, OceanModel
from oceanray.ocean.profile import ProfileModel
from oceanray.proploss import PropagationLoss
from oceanray.wave_queue import WaveQueue


SOURCE = (45.0, -45.0, -50.0)


def shallow_ocean(depth=100.0, profile=None) -> OceanModel:
    return OceanModel.for_area(45.0, bottom=FlatBoundary(depth),
                               profile=profile or ConstantProfile(1500.0))


def make_queue(ocean=None, **kwargs) -> WaveQueue:
    args = dict(
        ocean=ocean or shallow_ocean(),
        frequencies=[1000.0],
        source=SOURCE,
        de=linear_sequence(-40.0, 10.0, 40.0),
        az=linear_sequence(-10.0, 5.0, 10.0),
        time_step=0.01,
    )
    args.update(kwargs)
    return WaveQueue(**args)


class UnstableProfile(ProfileModel):
    """Isovelocity until ``after`` seconds, then a non-finite gradient."""

    def __init__(self, after):
        self.after = after

    def sound_speed(self, lat, lon, alt, time=0.0):
        zero = np.zeros(np.broadcast(np.asarray(lat), np.asarray(lon), np.asarray(alt)).shape)
        bad = np.nan if time > self.after else 0.0
        return zero + 1500.0, (zero + bad, zero.copy(), zero.copy())


class ListRecorder:
    def __init__(self):
        self.times = []

    def record(self, wavefront):
        self.times.append(wavefront.time)


class TestValidation:
    """Test construction arguments"""

    def test_non_monotonic_de(self):
        """Test D/E angles must be strictly monotonic"""
        with pytest.raises(ValueError):
            make_queue(de=[-10.0, 10.0, 0.0])

    @pytest.mark.parametrize("dt", [0.0, -0.1, np.nan])
    def test_time_step(self, dt):
        """Test the time step must be positive"""
        with pytest.raises(ValueError):
            make_queue(time_step=dt)

    @pytest.mark.parametrize("source", [
        (45.0, -45.0, -500.0),
        (45.0, -45.0, 10.0),
        (45.0, -45.0),
        (45.0, np.nan, -50.0),
    ])
    def test_source(self, source):
        """Test the source must be a triple inside the water column"""
        with pytest.raises(ValueError):
            make_queue(source=source)

    def test_frequencies(self):
        """Test frequencies must be positive and increasing"""
        with pytest.raises(ValueError):
            make_queue(frequencies=[2000.0, 1000.0])

    def test_target_frequency_mismatch(self):
        """Test a target set bound to other frequencies is rejected"""
        loss = PropagationLoss([[45.001, -45.0, -50.0]], frequencies=[500.0])
        with pytest.raises(ValueError):
            make_queue(targets=loss)

    def test_domain_tolerance(self):
        """Test a negative domain tolerance is rejected"""
        with pytest.raises(ValueError):
            make_queue(domain_tolerance=-1.0)

    def test_unknown_integrator(self):
        """Test unknown integrators are rejected"""
        with pytest.raises(ValueError):
            make_queue(integrator="euler")


class TestSeeding:
    """Test the initial wavefronts"""

    def test_history_seeded(self):
        """Test the launch and step-back wavefronts"""
        wave = make_queue()
        assert len(wave.history) == 2
        assert wave.time() == 0.0
        assert wave.history.previous.time == pytest.approx(-0.01)
        assert wave.step_count == 0

    def test_rays_start_at_source(self):
        """Test every ray starts at the source, valid and unreflected"""
        front = make_queue().wavefront
        np.testing.assert_allclose(front.latitude, SOURCE[0])
        np.testing.assert_allclose(front.altitude, SOURCE[2], atol=1e-6)
        assert np.all(front.valid)
        assert not np.any(front.surface)
        assert front.shape == (9, 5)

    def test_source_speed(self):
        """Test the source sound speed is sampled from the profile"""
        assert make_queue().source_speed == pytest.approx(1500.0)

    def test_targets_bound(self):
        """Test targets receive the queue frequencies"""
        loss = PropagationLoss([[45.001, -45.0, -50.0]])
        make_queue(targets=loss)
        np.testing.assert_array_equal(loss.frequencies, [1000.0])


class TestStepping:
    """Test time marching"""

    def test_monotonic_time(self):
        """Test each step advances the time by one time step"""
        wave = make_queue()
        times = [wave.step().time for _ in range(5)]
        np.testing.assert_allclose(times, 0.01 * np.arange(1, 6))
        assert np.all(np.diff(times) > 0)
        assert wave.step_count == 5
        assert len(wave.history) == 3

    def test_run(self):
        """Test run stops once the time budget is reached"""
        wave = make_queue()
        steps = wave.run(0.05)
        assert steps == 5
        assert wave.time() >= 0.05

    def test_snapshots_read_only(self):
        """Test handed out wavefronts cannot be modified"""
        front = make_queue().step()
        with pytest.raises(ValueError):
            front.attenuation[0, 0, 0] = 1.0

    def test_spherical_spreading(self):
        """Test rays travel c * t from the source in isovelocity water"""
        wave = make_queue(de=linear_sequence(-10.0, 5.0, 10.0))
        start = wave.wavefront.position[:, 0, 0]
        wave.run(0.02)
        front = wave.wavefront
        distance = np.linalg.norm(front.position - start[:, None, None], axis=0)
        np.testing.assert_allclose(distance, 1500.0 * 0.02, rtol=1e-5)


class TestReflection:
    """Test boundary reflections"""

    def setup_method(self):
        self.wave = make_queue()
        self.fronts = [self.wave.wavefront]
        for _ in range(20):
            self.fronts.append(self.wave.step())

    def test_counts_never_decrease(self):
        """Test reflection counters are monotonic"""
        for before, after in zip(self.fronts, self.fronts[1:]):
            assert np.all(after.surface >= before.surface)
            assert np.all(after.bottom >= before.bottom)

    def test_both_boundaries_reached(self):
        """Test upward rays hit the surface and downward rays the bottom"""
        last = self.fronts[-1]
        de = self.wave.grid.de
        assert np.all(last.surface[de >= 40.0] >= 1)
        assert np.all(last.bottom[de <= -40.0] >= 1)
        assert np.all(last.surface[de == 0.0] == 0)
        assert np.all(last.bottom[de == 0.0] == 0)

    def test_vertical_slowness_flips(self):
        """Test the radial slowness changes sign at a surface reflection"""
        for before, after in zip(self.fronts, self.fronts[1:]):
            hit = after.surface > before.surface
            assert np.all(before.state[3][hit] > 0)
            assert np.all(after.state[3][hit] < 0)

    def test_rays_stay_in_water(self):
        """Test reflected rays remain valid and inside the water column"""
        tol = self.wave.domain_tolerance
        for front in self.fronts:
            assert np.all(front.valid)
            assert np.all(front.altitude <= tol)
            assert np.all(front.altitude >= -100.0 - tol)

    def test_surface_phase(self):
        """Test a pressure-release surface adds pi of phase per bounce"""
        last = self.fronts[-1]
        once = (last.surface == 1) & (last.bottom == 0) & (last.caustic == 0)
        assert np.any(once)
        np.testing.assert_allclose(np.abs(last.phase[once][:, 0]), np.pi)


class TestInstability:
    """Test non-finite ray states"""

    def test_nan_gradient_raises(self):
        """Test a non-finite environment aborts the run"""
        wave = make_queue(ocean=shallow_ocean(profile=UnstableProfile(after=0.015)))
        with pytest.raises(NumericalInstabilityError) as info:
            wave.run(1.0)
        assert info.value.rays > 0
        assert info.value.time == pytest.approx(0.03)


class TestRecorders:
    """Test wavefront emission"""

    def test_record_every_step(self):
        """Test the current and each new wavefront are recorded"""
        wave = make_queue()
        recorder = ListRecorder()
        wave.attach_recorder(recorder)
        wave.run(0.03)
        np.testing.assert_allclose(recorder.times, [0.0, 0.01, 0.02, 0.03])

    def test_skip_current(self):
        """Test attaching without recording the current wavefront"""
        wave = make_queue()
        recorder = ListRecorder()
        wave.attach_recorder(recorder, record_current=False)
        wave.step()
        assert len(recorder.times) == 1

    def test_failures_collected(self):
        """Test persistence failures do not stop the run"""
        wave = make_queue()
        recorder = Mock()
        recorder.record.side_effect = PersistenceError("disk full")
        wave.attach_recorder(recorder)
        steps = wave.run(0.02)
        assert steps == 2
        assert recorder.record.call_count == 3
        assert len(wave.persistence_errors) == 3
        assert all(isinstance(e, PersistenceError) for e in wave.persistence_errors)

    def test_os_errors_collected(self):
        """Test a recorder raising a raw OSError does not stop the run"""
        wave = make_queue()
        recorder = Mock()
        recorder.record.side_effect = OSError(28, "No space left on device")
        wave.attach_recorder(recorder)
        wave.step()
        wave.step()
        assert wave.time() == pytest.approx(0.02)
        assert len(wave.persistence_errors) == 3
        assert all(e.errno == 28 for e in wave.persistence_errors)


class TestStatistics:
    """Test run statistics"""

    def test_integrator_counts_rays(self):
        """Test the integrator counts every ray advanced"""
        wave = make_queue()
        wave.run(0.03)
        stats = wave.integrator.stats
        assert stats.total_steps == 3
        assert stats.ray_steps == 3 * 9 * 5
        assert wave.equations.evaluations > 3
