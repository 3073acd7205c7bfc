"""
Unit Tests for Geodesy Module

Tests cover:
- Local earth radius of the area of operations
- Spherical, Cartesian and East-North-Up transformations
- Great circle distances and phase wrapping
"""

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from common.geodesy import (
    earth_radius_at,
    geographic_to_spherical,
    spherical_to_geographic,
    spherical_to_cartesian,
    spherical_vector_to_cartesian,
    cartesian_to_enu,
    local_offsets,
    great_circle_distance,
    wrap_phase,
)
from common.constants import WGS84_POLAR_RADIUS_M


class TestEarthRadius:
    """Test the Gaussian radius of curvature"""

    def test_mid_latitude(self):
        """Test the radius used by the 45 degree scenarios"""
        assert earth_radius_at(45.0) == pytest.approx(6378101.0, abs=2.0)

    def test_equator_equals_polar_radius(self):
        """Test the formula reduces to b at the equator"""
        assert earth_radius_at(0.0) == pytest.approx(WGS84_POLAR_RADIUS_M)

    def test_symmetric_in_latitude(self):
        """Test north and south give the same radius"""
        assert earth_radius_at(30.0) == pytest.approx(earth_radius_at(-30.0))


class TestCoordinateTransforms:
    """Test coordinate transformations"""

    def test_geographic_roundtrip(self):
        """Test spherical conversion inverts exactly"""
        lat = np.array([45.0, -10.0, 89.0])
        lon = np.array([-45.0, 170.0, 0.0])
        alt = np.array([-1000.0, -5.0, 0.0])
        rho, theta, phi = geographic_to_spherical(lat, lon, alt, 6378101.0)
        lat2, lon2, alt2 = spherical_to_geographic(rho, theta, phi, 6378101.0)
        np.testing.assert_allclose(lat2, lat, atol=1e-12)
        np.testing.assert_allclose(lon2, lon, atol=1e-12)
        np.testing.assert_allclose(alt2, alt, atol=1e-6)

    def test_cartesian_axes(self):
        """Test the north pole and the equator at 90E"""
        pole = spherical_to_cartesian(1.0, 0.0, 0.0)
        np.testing.assert_allclose(pole, [0.0, 0.0, 1.0], atol=1e-15)
        east = spherical_to_cartesian(2.0, np.pi / 2, np.pi / 2)
        np.testing.assert_allclose(east, [0.0, 2.0, 0.0], atol=1e-15)

    def test_enu_of_spherical_components(self):
        """Test (up, south, east) components map back to east/north/up"""
        lat, lon = 45.0, -45.0
        theta, phi = np.radians(90.0 - lat), np.radians(lon)
        vector = spherical_vector_to_cartesian(theta, phi, 3.0, -2.0, 1.0)
        east, north, up = cartesian_to_enu(lat, lon, vector)
        assert east == pytest.approx(1.0)
        assert north == pytest.approx(2.0)
        assert up == pytest.approx(3.0)

    def test_local_offsets(self):
        """Test 0.01 degree of latitude is about 1.1 km north"""
        north, east = local_offsets(45.01, -45.0, 45.0, -45.0, 6378101.0)
        assert north == pytest.approx(np.radians(0.01) * 6378101.0)
        assert east == pytest.approx(0.0, abs=1e-9)


class TestDistanceAndPhase:
    """Test great circle distance and phase wrapping"""

    def test_distance_along_meridian(self):
        """Test distance along a meridian is R times the angle"""
        d = great_circle_distance(45.0, -45.0, 45.02, -45.0, 6378101.0)
        assert d == pytest.approx(np.radians(0.02) * 6378101.0, rel=1e-9)

    def test_zero_distance(self):
        """Test coincident points"""
        assert great_circle_distance(10.0, 20.0, 10.0, 20.0) == pytest.approx(0.0, abs=1e-6)

    def test_wrap_phase_interval(self):
        """Test wrapping into [-pi, pi)"""
        wrapped = wrap_phase(np.array([np.pi, -np.pi, 3 * np.pi / 2, 0.25, -7.0]))
        np.testing.assert_allclose(wrapped, [-np.pi, -np.pi, -np.pi / 2, 0.25, -7.0 + 2 * np.pi])
        assert np.all(wrapped >= -np.pi) and np.all(wrapped < np.pi)
