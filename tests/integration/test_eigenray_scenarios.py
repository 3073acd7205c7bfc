"""
Eigenray Scenario Integration Tests

Propagates complete ray fans through reference environments and checks
the eigenrays against analytic travel times, angles and losses.

Scenarios:
- Flat: isovelocity 1500 m/s ocean, 3000 m flat bottom, source and
  target 1000 m deep, 0.02 deg apart in latitude, 10 kHz. The direct,
  surface and bottom paths must be found.
- Curved: isovelocity ocean too deep for bottom paths, source 200 m and
  target 150 m deep, 1.2 deg apart. Earth curvature bends the paths
  back to the surface, giving one direct and three surface paths.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from oceanray.launch_grid import linear_sequence
from oceanray.ocean import ConstantProfile, FlatBoundary, OceanModel
from oceanray.proploss import PropagationLoss
from oceanray.wave_queue import WaveQueue


def propagate(source, target, frequency, bottom_depth, de, az, time_max, time_step=0.1):
    ocean = OceanModel.for_area(source[0], bottom=FlatBoundary(bottom_depth),
                                profile=ConstantProfile(1500.0))
    loss = PropagationLoss([target])
    wave = WaveQueue(ocean, [frequency], source, de, az, time_step=time_step, targets=loss)
    wave.run(time_max)
    loss.sum_eigenrays()
    return loss


def flat_scenario():
    return propagate(
        source=(45.0, -45.0, -1000.0),
        target=(45.02, -45.0, -1000.0),
        frequency=10e3,
        bottom_depth=3000.0,
        de=linear_sequence(-60.0, 1.0, 60.0),
        az=linear_sequence(-4.0, 1.0, 4.0),
        time_max=3.5,
    )


@pytest.fixture(scope="module")
def flat_loss():
    """Propagation loss of the flat-bottom scenario"""
    return flat_scenario()


@pytest.fixture(scope="module")
def flat_rays(flat_loss):
    """Eigenrays of the flat-bottom scenario, in arrival order"""
    return sorted(flat_loss.eigenrays(0), key=lambda ray: ray.time)


@pytest.fixture(scope="module")
def curved_rays():
    """Eigenrays of the curved-earth scenario"""
    loss = propagate(
        source=(45.0, -45.0, -200.0),
        target=(46.2, -45.0, -150.0),
        frequency=2000.0,
        bottom_depth=1e5,
        de=linear_sequence(-1.0, 0.05, 1.0),
        az=linear_sequence(-4.0, 1.0, 4.0),
        time_max=120.0,
    )
    return loss.eigenrays(0)


class TestFlatBottom:
    """Test the flat-bottom isovelocity scenario"""

    def test_three_paths(self, flat_rays):
        """Test direct, surface and bottom paths arrive in that order"""
        assert len(flat_rays) == 3
        direct, surface, bottom = flat_rays
        assert (direct.surface, direct.bottom) == (0, 0)
        assert (surface.surface, surface.bottom) == (1, 0)
        assert (bottom.surface, bottom.bottom) == (0, 1)

    def test_direct_path(self, flat_rays):
        """Test travel time, loss, phase and angles of the direct path"""
        ray = flat_rays[0]
        assert ray.time == pytest.approx(1.484018789, abs=0.002)
        assert ray.intensity[0] == pytest.approx(66.9506, abs=0.1)
        assert ray.phase[0] == pytest.approx(0.0, abs=1e-6)
        assert ray.source_de == pytest.approx(-0.01, abs=0.01)
        assert ray.target_de == pytest.approx(0.01, abs=0.01)
        assert not ray.extrapolated

    def test_surface_path(self, flat_rays):
        """Test the surface path carries the pressure-release phase"""
        ray = flat_rays[1]
        assert ray.time == pytest.approx(1.995102731, abs=0.002)
        assert ray.intensity[0] == pytest.approx(69.5211, abs=0.1)
        assert abs(ray.phase[0]) == pytest.approx(np.pi, abs=1e-6)
        assert ray.source_de == pytest.approx(41.93623171, abs=0.01)
        assert ray.target_de == pytest.approx(-41.93623171, abs=0.01)

    def test_bottom_path(self, flat_rays):
        """Test the bottom path, launched just outside the ray fan"""
        ray = flat_rays[2]
        assert ray.time == pytest.approx(3.051676949, abs=0.02)
        assert ray.phase[0] == pytest.approx(0.0, abs=1e-6)
        assert ray.source_de == pytest.approx(-60.91257162, abs=1.0)
        assert ray.target_de == pytest.approx(60.91257162, abs=1.0)
        assert ray.extrapolated

    def test_azimuths(self, flat_rays):
        """Test every path stays in the north-going vertical plane"""
        for ray in flat_rays:
            assert ray.source_az == pytest.approx(0.0, abs=1e-6)
            assert ray.target_az == pytest.approx(0.0, abs=1e-6)

    def test_summed_loss(self, flat_loss, flat_rays):
        """Test the coherent loss lies within the interference bounds"""
        amplitudes = [10.0 ** (-ray.intensity[0] / 20.0) for ray in flat_rays]
        bound = -20.0 * np.log10(sum(amplitudes))
        assert flat_loss.intensity[0, 0] >= bound - 1e-9
        assert flat_loss.intensity[0, 0] < 300.0

    def test_deterministic(self, flat_rays):
        """Test a repeated run finds identical eigenrays"""
        again = sorted(flat_scenario().eigenrays(0), key=lambda ray: ray.time)
        assert again == flat_rays


@pytest.mark.slow
class TestCurvedEarth:
    """Test the curved-earth scenario"""

    def test_four_paths(self, curved_rays):
        """Test one direct and three surface-reflected paths"""
        assert len(curved_rays) == 4
        assert sum(1 for ray in curved_rays if ray.surface == 0) == 1
        assert all(ray.bottom == 0 for ray in curved_rays)

    @pytest.mark.parametrize("expected", [
        (0, 89.05102557, -0.578554378, 0.621445622),
        (1, 89.05369537, 0.337347599, 0.406539112),
        (1, 89.05379297, -0.053251329, 0.233038477),
        (1, 89.05320459, -0.433973977, -0.48969753),
    ])
    def test_path(self, curved_rays, expected):
        """Test travel time and launch and arrival angles of each path"""
        surface, time, source_de, target_de = expected
        ray = min((r for r in curved_rays if r.surface == surface),
                  key=lambda r: abs(r.source_de - source_de))
        assert ray.time == pytest.approx(time, abs=2e-5)
        assert ray.source_de == pytest.approx(source_de, abs=0.02)
        assert ray.target_de == pytest.approx(target_de, abs=0.02)
