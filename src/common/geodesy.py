"""
Geodesy and Coordinate Transformation Utilities

This module provides the coordinate transformations used by the
wavefront model. Ray positions are kept in an earth-centred spherical
frame (radius, colatitude, longitude) built on the local radius of
curvature of the area of operations, and are converted to Cartesian
coordinates for interpolation and to a local East-North-Up frame for
reporting arrival angles.

All functions accept scalars or numpy arrays and broadcast.
"""

import numpy as np
from typing import Tuple
from .constants import (
    EARTH_RADIUS_M,
    WGS84_POLAR_RADIUS_M,
    WGS84_ECCENTRICITY_SQ,
    DEG_TO_RAD,
    RAD_TO_DEG,
)


def earth_radius_at(latitude: float) -> float:
    """
    Compute the local earth radius for an area of operations

    Uses the Gaussian radius of curvature of the WGS-84 ellipsoid so that
    a spherical earth built on it matches the ellipsoid's curvature near
    the given latitude.

    Args:
        latitude: Geodetic latitude of the area of operations (degrees)

    Returns:
        Earth radius in meters
    """
    s = np.sin(latitude * DEG_TO_RAD)
    return float(WGS84_POLAR_RADIUS_M / (1.0 - WGS84_ECCENTRICITY_SQ * s * s))


def geographic_to_spherical(lat, lon, alt, earth_radius: float = EARTH_RADIUS_M):
    """
    Convert geographic coordinates to earth-centred spherical coordinates

    Args:
        lat: Latitude (degrees)
        lon: Longitude (degrees)
        alt: Altitude relative to mean sea level (meters, negative below)
        earth_radius: Radius of the spherical earth (meters)

    Returns:
        (rho, theta, phi): radius (m), colatitude (rad), longitude (rad)
    """
    rho = earth_radius + np.asarray(alt, dtype=float)
    theta = (90.0 - np.asarray(lat, dtype=float)) * DEG_TO_RAD
    phi = np.asarray(lon, dtype=float) * DEG_TO_RAD
    return rho, theta, phi


def spherical_to_geographic(rho, theta, phi, earth_radius: float = EARTH_RADIUS_M):
    """
    Convert earth-centred spherical coordinates to geographic coordinates

    Returns:
        (lat, lon, alt): latitude (deg), longitude (deg), altitude (m)
    """
    lat = 90.0 - np.asarray(theta) * RAD_TO_DEG
    lon = np.asarray(phi) * RAD_TO_DEG
    alt = np.asarray(rho) - earth_radius
    return lat, lon, alt


def spherical_to_cartesian(rho, theta, phi) -> np.ndarray:
    """
    Convert spherical coordinates to earth-centred Cartesian coordinates

    Returns:
        Array with a leading axis of length 3 holding (x, y, z) in meters
    """
    sin_t = np.sin(theta)
    return np.stack([
        rho * sin_t * np.cos(phi),
        rho * sin_t * np.sin(phi),
        rho * np.cos(theta),
    ])


def spherical_basis(theta, phi) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Unit vectors of the spherical frame expressed in Cartesian coordinates

    Returns:
        (r_hat, theta_hat, phi_hat), each with a leading axis of length 3.
        theta_hat points south and phi_hat points east.
    """
    sin_t, cos_t = np.sin(theta), np.cos(theta)
    sin_p, cos_p = np.sin(phi), np.cos(phi)
    r_hat = np.stack([sin_t * cos_p, sin_t * sin_p, cos_t])
    theta_hat = np.stack([cos_t * cos_p, cos_t * sin_p, -sin_t])
    phi_hat = np.stack([-sin_p, cos_p, np.zeros_like(sin_p)])
    return r_hat, theta_hat, phi_hat


def spherical_vector_to_cartesian(theta, phi, v_rho, v_theta, v_phi) -> np.ndarray:
    """
    Convert physical spherical vector components to Cartesian components
    """
    r_hat, theta_hat, phi_hat = spherical_basis(theta, phi)
    return v_rho * r_hat + v_theta * theta_hat + v_phi * phi_hat


def cartesian_to_enu(lat, lon, vector: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Project a Cartesian vector onto the local East-North-Up frame

    Args:
        lat: Latitude of the local frame origin (degrees)
        lon: Longitude of the local frame origin (degrees)
        vector: Cartesian vector with a leading axis of length 3

    Returns:
        (east, north, up) components
    """
    theta = (90.0 - np.asarray(lat, dtype=float)) * DEG_TO_RAD
    phi = np.asarray(lon, dtype=float) * DEG_TO_RAD
    r_hat, theta_hat, phi_hat = spherical_basis(theta, phi)
    east = np.sum(vector * phi_hat, axis=0)
    north = -np.sum(vector * theta_hat, axis=0)
    up = np.sum(vector * r_hat, axis=0)
    return east, north, up


def local_offsets(lat, lon, origin_lat: float, origin_lon: float,
                  earth_radius: float = EARTH_RADIUS_M) -> Tuple[np.ndarray, np.ndarray]:
    """
    Approximate north and east distances from a reference point

    Uses a flat-earth projection about the origin, adequate for the
    analytic range-dependent environments.

    Returns:
        (north_m, east_m) offsets in meters
    """
    north = (np.asarray(lat, dtype=float) - origin_lat) * DEG_TO_RAD * earth_radius
    east = ((np.asarray(lon, dtype=float) - origin_lon) * DEG_TO_RAD
            * earth_radius * np.cos(origin_lat * DEG_TO_RAD))
    return north, east


def great_circle_distance(lat1: float, lon1: float, lat2: float, lon2: float,
                          earth_radius: float = EARTH_RADIUS_M) -> float:
    """
    Calculate great circle distance between two points using Haversine formula

    Args:
        lat1: Latitude of point 1 (degrees)
        lon1: Longitude of point 1 (degrees)
        lat2: Latitude of point 2 (degrees)
        lon2: Longitude of point 2 (degrees)
        earth_radius: Radius of the spherical earth (meters)

    Returns:
        Distance in meters
    """
    lat1_rad = lat1 * DEG_TO_RAD
    lat2_rad = lat2 * DEG_TO_RAD
    dlat = (lat2 - lat1) * DEG_TO_RAD
    dlon = (lon2 - lon1) * DEG_TO_RAD

    a = (np.sin(dlat / 2)**2 +
         np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2)**2)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return earth_radius * c


def wrap_phase(phase):
    """Wrap phase angles into the interval [-pi, pi)."""
    return np.mod(np.asarray(phase, dtype=float) + np.pi, 2.0 * np.pi) - np.pi
