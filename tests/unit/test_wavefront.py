"""
Unit Tests for Wavefront Snapshots

Tests cover:
- Read-only snapshots and single-ray extraction
- Reflection families and invalid rays
- The three-slot history ring buffer
- Beam Jacobian geometry and orientation correction
- Caustic detection with reflection-aware stencils
"""

import pytest
import numpy as np
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from oceanray.wavefront import (
    Wavefront, WavefrontHistory, beam_jacobian, detect_caustics, uniform_stencil
)


R = 6378101.0
SHAPE = (5, 4)


def make_wavefront(time=0.0, jacobian=None, surface=None, bottom=None, valid=None,
                   n_freq=2) -> Wavefront:
    """Synthetic wavefront with rays 1000 m deep at 45N 45W."""
    state = np.zeros((6,) + SHAPE)
    state[0] = R - 1000.0
    state[1] = np.radians(45.0)
    state[2] = np.radians(-45.0)
    state[4] = -1.0 / 1500.0
    return Wavefront(
        time=time,
        state=state,
        position=np.zeros((3,) + SHAPE),
        velocity=np.zeros((3,) + SHAPE),
        sound_speed=np.full(SHAPE, 1500.0),
        absorption=np.zeros(SHAPE + (n_freq,)),
        attenuation=np.arange(np.prod(SHAPE) * n_freq, dtype=float).reshape(SHAPE + (n_freq,)),
        phase=np.zeros(SHAPE + (n_freq,)),
        jacobian=np.ones(SHAPE) if jacobian is None else jacobian,
        surface=np.zeros(SHAPE, dtype=np.int32) if surface is None else surface,
        bottom=np.zeros(SHAPE, dtype=np.int32) if bottom is None else bottom,
        caustic=np.zeros(SHAPE, dtype=np.int32),
        valid=np.ones(SHAPE, dtype=bool) if valid is None else valid,
        earth_radius=R,
    )


class TestWavefront:
    """Test the wavefront snapshot"""

    def test_arrays_read_only(self):
        """Test snapshot arrays cannot be modified"""
        wave = make_wavefront()
        with pytest.raises(ValueError):
            wave.state[0, 0, 0] = 0.0
        with pytest.raises(ValueError):
            wave.surface[0, 0] = 3

    def test_geographic(self):
        """Test positions convert back to latitude, longitude and altitude"""
        wave = make_wavefront()
        assert wave.shape == SHAPE
        np.testing.assert_allclose(wave.latitude, 45.0)
        np.testing.assert_allclose(wave.longitude, -45.0)
        np.testing.assert_allclose(wave.altitude, -1000.0, atol=1e-6)

    def test_ray_extraction(self):
        """Test a single ray's state"""
        ray = make_wavefront(time=2.5).ray(1, 2)
        assert ray.time == 2.5
        assert ray.altitude == pytest.approx(-1000.0, abs=1e-6)
        assert ray.slowness[1] == pytest.approx(-1.0 / 1500.0)
        assert ray.attenuation == (12.0, 13.0)
        assert ray.valid

    def test_family_labels(self):
        """Test families combine reflection counts and mark invalid rays"""
        surface = np.zeros(SHAPE, dtype=np.int32)
        bottom = np.zeros(SHAPE, dtype=np.int32)
        valid = np.ones(SHAPE, dtype=bool)
        surface[0, 0] = 1
        bottom[0, 1] = 1
        valid[4, 3] = False
        family = make_wavefront(surface=surface, bottom=bottom, valid=valid).family
        assert family[0, 0] != family[0, 1]
        assert family[0, 0] != family[1, 1]
        assert family[4, 3] == -1
        assert family[2, 2] == 0


class TestWavefrontHistory:
    """Test the history ring buffer"""

    def test_holds_three_newest(self):
        """Test old snapshots are evicted"""
        history = WavefrontHistory()
        waves = [make_wavefront(time=float(t)) for t in range(5)]
        for wave in waves:
            history.push(wave)
        assert len(history) == 3
        assert history.current is waves[4]
        assert history.previous is waves[3]
        assert history.past is waves[2]
        assert [w.time for w in history] == [4.0, 3.0, 2.0]

    def test_partial_history(self):
        """Test indexing beyond the stored snapshots raises"""
        history = WavefrontHistory()
        history.push(make_wavefront())
        assert len(history) == 1
        with pytest.raises(IndexError):
            _ = history.previous


def spherical_shell(radius, de, az):
    """Positions and velocities of rays from a point source in free space."""
    de_m, az_m = np.meshgrid(de, az, indexing="ij")
    direction = np.stack([np.cos(de_m) * np.cos(az_m), np.cos(de_m) * np.sin(az_m), np.sin(de_m)])
    return radius * direction, 1500.0 * direction


class TestBeamJacobian:
    """Test the beam Jacobian"""

    def test_spherical_spreading(self):
        """Test |J| = r^2 cos(de) for a spherical wavefront"""
        de = np.radians(np.arange(-30.0, 31.0, 1.0))
        az = np.radians(np.arange(-10.0, 11.0, 1.0))
        position, velocity = spherical_shell(2000.0, de, az)
        zeros = np.zeros(position.shape[1:], dtype=np.int32)
        jacobian = beam_jacobian(position, velocity, de, az, zeros, zeros)
        expected = 2000.0 ** 2 * np.cos(de)[:, None] * np.ones(az.size)
        np.testing.assert_allclose(np.abs(jacobian[1:-1, 1:-1]), expected[1:-1, 1:-1], rtol=1e-3)
        assert np.all(np.sign(jacobian) == np.sign(jacobian[0, 0]))

    def test_reflection_orientation(self):
        """Test an odd number of reflections flips the correction sign"""
        de = np.radians([-1.0, 0.0, 1.0])
        az = np.radians([-1.0, 0.0, 1.0])
        position, velocity = spherical_shell(1000.0, de, az)
        zeros = np.zeros((3, 3), dtype=np.int32)
        ones = np.ones((3, 3), dtype=np.int32)
        direct = beam_jacobian(position, velocity, de, az, zeros, zeros)
        once = beam_jacobian(position, velocity, de, az, ones, zeros)
        twice = beam_jacobian(position, velocity, de, az, ones, ones)
        np.testing.assert_allclose(once, -direct)
        np.testing.assert_allclose(twice, direct)


class TestCaustics:
    """Test caustic detection"""

    def test_sign_flip_detected(self):
        """Test a Jacobian sign reversal marks a caustic"""
        previous = make_wavefront()
        jacobian = np.ones(SHAPE)
        jacobian[2, 1] = -1.0
        family = np.zeros(SHAPE, dtype=np.int64)
        caustics = detect_caustics(previous, jacobian, family)
        assert caustics[2, 1]
        assert np.count_nonzero(caustics) == 1

    def test_mixed_stencil_ignored(self):
        """Test rays next to a reflection front are not tested"""
        previous = make_wavefront()
        jacobian = -np.ones(SHAPE)
        family = np.zeros(SHAPE, dtype=np.int64)
        family[2, 2] = 65536
        caustics = detect_caustics(previous, jacobian, family)
        for idx in [(2, 2), (1, 2), (3, 2), (2, 1), (2, 3)]:
            assert not caustics[idx]
        assert caustics[0, 0]

    def test_invalid_rays_ignored(self):
        """Test invalid rays never count caustics"""
        previous = make_wavefront()
        family = np.full(SHAPE, -1, dtype=np.int64)
        assert not np.any(detect_caustics(previous, -np.ones(SHAPE), family))

    def test_uniform_stencil(self):
        """Test the four-neighbour family check"""
        family = np.zeros((3, 3), dtype=np.int64)
        family[0, 0] = 1
        stencil = uniform_stencil(family)
        assert not stencil[0, 0]
        assert not stencil[0, 1]
        assert not stencil[1, 0]
        assert stencil[1, 1]
        assert stencil[2, 2]
