"""
Ray Equations on a Spherical Earth

Time-domain ray equations for a fan of acoustic rays. The state of each
ray is

    [rho, theta, phi, p_rho, p_theta, p_phi]

where (rho, theta, phi) are earth-centred radius, colatitude and
longitude, and (p_rho, p_theta, p_phi) are the physical components of
the slowness vector along the local (up, south, east) unit vectors,
with |p| = 1/c.

    drho/dt   = c^2 p_rho
    dtheta/dt = c^2 p_theta / rho
    dphi/dt   = c^2 p_phi / (rho sin(theta))

    dp_rho/dt   = -g_rho/c   + c^2 (p_theta^2 + p_phi^2) / rho
    dp_theta/dt = -g_theta/c + c^2 (p_phi^2 cot(theta) - p_rho p_theta) / rho
    dp_phi/dt   = -g_phi/c   - c^2 p_phi (p_rho + p_theta cot(theta)) / rho

with g the sound speed gradient in the same physical components. The
curvature terms keep straight (isovelocity) rays straight in Cartesian
space.

Reference: Reilly & Gesey (2013), WaveQ3D; Jensen et al. (2011) Sec. 3.2
"""

import numpy as np

from common.geodesy import (
    spherical_to_cartesian,
    spherical_to_geographic,
    spherical_vector_to_cartesian,
)
from .ocean import OceanModel


class RayEquations:
    """
    Vectorized derivative function for the ray fan.

    Instances are callable as f(state, time) and can be handed straight
    to any integrator.
    """

    def __init__(self, ocean: OceanModel):
        self.ocean = ocean
        self.evaluations = 0

    @property
    def earth_radius(self) -> float:
        return self.ocean.earth_radius

    def geographic(self, state: np.ndarray):
        """(lat, lon, alt) of each ray in a state array."""
        return spherical_to_geographic(state[0], state[1], state[2], self.earth_radius)

    def sound_speed(self, state: np.ndarray, time: float = 0.0):
        """
        Sound speed and gradient at the ray positions.

        Returns:
            (c, g_rho, g_theta, g_phi), gradient in physical spherical components
        """
        lat, lon, alt = self.geographic(state)
        c, (dc_up, dc_north, dc_east) = self.ocean.sound_speed(lat, lon, alt, time)
        return c, dc_up, -dc_north, dc_east

    def __call__(self, state: np.ndarray, time: float = 0.0) -> np.ndarray:
        """
        Compute dy/dt for every ray.

        Args:
            state: Array with leading axis of length 6
            time: Simulation time (seconds)

        Returns:
            Array of derivatives shaped like state
        """
        self.evaluations += 1
        rho, theta, _, p_rho, p_theta, p_phi = state
        c, g_rho, g_theta, g_phi = self.sound_speed(state, time)

        c2 = c * c
        sin_t = np.sin(theta)
        cot_t = np.cos(theta) / sin_t
        c2_rho = c2 / rho

        return np.stack([
            c2 * p_rho,
            c2_rho * p_theta,
            c2_rho * p_phi / sin_t,
            -g_rho / c + c2_rho * (p_theta * p_theta + p_phi * p_phi),
            -g_theta / c + c2_rho * (p_phi * p_phi * cot_t - p_rho * p_theta),
            -g_phi / c - c2_rho * p_phi * (p_rho + p_theta * cot_t),
        ])


def initial_slowness(de: np.ndarray, az: np.ndarray, speed) -> np.ndarray:
    """
    Slowness components for rays launched at the given angles.

    Args:
        de: D/E angles (radians, positive up)
        az: AZ angles (radians, clockwise from north)
        speed: Sound speed at the source (m/s)

    Returns:
        Array (3, ...) of (p_rho, p_theta, p_phi)
    """
    cos_de = np.cos(de)
    return np.stack([
        np.sin(de) / speed,
        -cos_de * np.cos(az) / speed,
        cos_de * np.sin(az) / speed,
    ])


def cartesian_geometry(state: np.ndarray, speed: np.ndarray):
    """
    Cartesian positions and ray velocities for a state array.

    Args:
        state: Array with leading axis of length 6
        speed: Sound speed at each ray (m/s)

    Returns:
        (position, velocity), each with a leading axis of length 3;
        velocity is c^2 p, so its magnitude is the local sound speed.
    """
    rho, theta, phi, p_rho, p_theta, p_phi = state
    position = spherical_to_cartesian(rho, theta, phi)
    c2 = speed * speed
    velocity = spherical_vector_to_cartesian(theta, phi, c2 * p_rho, c2 * p_theta, c2 * p_phi)
    return position, velocity
