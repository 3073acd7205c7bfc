"""
Boundary Collision and Reflection

Rays that end a time step outside the water column are moved back to
the exact point where they met the boundary, reflected, and carried on
for the remainder of the step.

The collision time is found by bisection on the boundary altitude along
a cubic Hermite path between the two states, built from the radii and
radial velocities at both ends. Reflection mirrors the slowness about
the boundary normal:

    p' = p - 2 (p . n) n

which for a flat boundary flips the sign of the vertical component.
"""

import logging
from dataclasses import dataclass
import numpy as np

from common.constants import BISECTION_ITERATIONS
from common.geodesy import spherical_to_geographic
from .integrators import RK4Integrator
from .ocean import BoundaryModel
from .ray_equations import RayEquations

logger = logging.getLogger(__name__)


def hermite_basis(s):
    """Cubic Hermite basis functions h00, h10, h01, h11 at s."""
    s2 = s * s
    s3 = s2 * s
    return (2 * s3 - 3 * s2 + 1, s3 - 2 * s2 + s, -2 * s3 + 3 * s2, s3 - s2)


def hermite_basis_derivative(s):
    """Derivatives of the cubic Hermite basis functions at s."""
    s2 = s * s
    return (6 * s2 - 6 * s, 3 * s2 - 4 * s + 1, -6 * s2 + 6 * s, 3 * s2 - 2 * s)


def reflect_slowness(slowness: np.ndarray, normal) -> tuple:
    """
    Mirror slowness vectors about boundary normals.

    Args:
        slowness: (3, ...) physical spherical slowness components
        normal: (n_rho, n_theta, n_phi) unit normals

    Returns:
        (reflected slowness, grazing angle in radians)
    """
    n = np.stack([np.asarray(c, dtype=float) for c in normal])
    p_dot_n = np.sum(slowness * n, axis=0)
    magnitude = np.linalg.norm(slowness, axis=0)
    grazing = np.arcsin(np.clip(np.abs(p_dot_n) / magnitude, 0.0, 1.0))
    return slowness - 2.0 * p_dot_n * n, grazing


def collision_fraction(start: np.ndarray, start_rate: np.ndarray,
                       end: np.ndarray, end_rate: np.ndarray,
                       dt: float, boundary: BoundaryModel, earth_radius: float,
                       outside_above: bool, time: float = 0.0,
                       iterations: int = BISECTION_ITERATIONS) -> np.ndarray:
    """
    Fraction of the step at which each ray meets a boundary.

    Args:
        start: (6, n) states at the start of the step (inside the water)
        start_rate: (6, n) time derivatives at the start
        end: (6, n) states at the end of the step (outside the water)
        end_rate: (6, n) time derivatives at the end
        dt: Time step (seconds)
        boundary: Boundary being crossed
        earth_radius: Radius of the spherical earth (m)
        outside_above: True for the surface, False for the bottom
        time: Time at the start of the step
        iterations: Number of bisection iterations

    Returns:
        (n,) fractions in [0, 1]
    """
    sign = 1.0 if outside_above else -1.0
    lo = np.zeros(start.shape[1])
    hi = np.ones(start.shape[1])
    for _ in range(iterations):
        mid = 0.5 * (lo + hi)
        h00, h10, h01, h11 = hermite_basis(mid)
        rho = h00 * start[0] + h01 * end[0] + dt * (h10 * start_rate[0] + h11 * end_rate[0])
        theta = start[1] + mid * (end[1] - start[1])
        phi = start[2] + mid * (end[2] - start[2])
        lat, lon, alt = spherical_to_geographic(rho, theta, phi, earth_radius)
        outside = sign * (alt + boundary.depth(lat, lon, time + mid * dt)) > 0.0
        hi = np.where(outside, mid, hi)
        lo = np.where(outside, lo, mid)
    return 0.5 * (lo + hi)


@dataclass
class ReflectionResult:
    """
    Outcome of reflecting a group of rays during one step.

    Attributes:
        end: (6, n) states at the end of the step
        image: (6, n) reflected rays integrated back to the start time
        fraction: (n,) fraction of the step at which the collision happened
        grazing: (n,) grazing angles (radians)
        loss: (n, n_freq) reflection loss (dB)
        phase: (n, n_freq) reflection phase change (radians)
    """
    end: np.ndarray
    image: np.ndarray
    fraction: np.ndarray
    grazing: np.ndarray
    loss: np.ndarray
    phase: np.ndarray


class BoundaryReflector:
    """
    Reflects rays off the surface or bottom within a time step.

    Sub-steps to and from the collision use RK4 with per-ray step sizes.
    The image state, the reflected ray traced backwards to the start of
    the step, is what the time-centered integrator and the eigenray
    search use in place of the incident ray.
    """

    def __init__(self, equations: RayEquations, frequencies: np.ndarray):
        self.equations = equations
        self.frequencies = frequencies
        self._rk4 = RK4Integrator(equations)

    def reflect(self, start: np.ndarray, end: np.ndarray, dt: float, time: float,
                boundary: BoundaryModel, outside_above: bool) -> ReflectionResult:
        """
        Reflect rays that crossed a boundary between start and end.

        Args:
            start: (6, n) states at time (inside the water)
            end: (6, n) predicted states at time + dt (outside the water)
            dt: Time step (seconds)
            time: Start time of the step
            boundary: Boundary that was crossed
            outside_above: True for the surface, False for the bottom
        """
        earth_radius = self.equations.earth_radius
        fraction = collision_fraction(
            start, self.equations(start, time), end, self.equations(end, time + dt),
            dt, boundary, earth_radius, outside_above, time)

        to_hit = fraction * dt
        hit = self._rk4.advance(start, to_hit, time)
        hit_times = time + to_hit
        # RK4 samples the environment at one time for the whole group
        hit_time = float(np.mean(hit_times))

        lat, lon, _ = spherical_to_geographic(hit[0], hit[1], hit[2], earth_radius)
        slowness, grazing = reflect_slowness(hit[3:], boundary.normal(lat, lon, hit_times))
        hit = np.concatenate([hit[:3], slowness])

        new_end = self._rk4.advance(hit, dt - to_hit, hit_time)
        image = self._rk4.advance(hit, -to_hit, hit_time)
        loss, phase = boundary.reflection_coefficient(grazing, self.frequencies)

        logger.debug(
            f"Reflected {start.shape[1]} rays off the "
            f"{'surface' if outside_above else 'bottom'} near t={time:.3f}s")
        return ReflectionResult(end=new_end, image=image, fraction=fraction,
                                grazing=grazing, loss=loss, phase=phase)
