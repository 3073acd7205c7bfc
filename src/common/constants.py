"""
Physical and Mathematical Constants for OceanRay

This module contains the constants used throughout the ocean
environment models, the wavefront integrator and the eigenray search.
"""

import numpy as np

# WGS-84 reference ellipsoid
WGS84_EQUATORIAL_RADIUS_M = 6378137.0  # Semi-major axis (m)
WGS84_POLAR_RADIUS_M = 6356752.3142  # Semi-minor axis (m)
WGS84_ECCENTRICITY_SQ = 1.0 - (WGS84_POLAR_RADIUS_M / WGS84_EQUATORIAL_RADIUS_M) ** 2

# Mean Earth radius, used when no area of operations has been set
EARTH_RADIUS_M = 6371000.0

# Ocean acoustics
DEFAULT_SOUND_SPEED = 1500.0  # Nominal sound speed in sea water (m/s)

# Propagation loss
TOTAL_LOSS_DB = 300.0  # Loss reported for targets with no eigenrays
MIN_AMPLITUDE = 1e-15  # Floor applied before converting amplitudes to dB

# Conversion factors
DEG_TO_RAD = np.pi / 180.0  # Degrees to radians
RAD_TO_DEG = 180.0 / np.pi  # Radians to degrees
DB_PER_KM_TO_DB_PER_M = 1e-3
SECONDS_PER_DAY = 86400.0
DAYS_PER_YEAR = 365.25  # Mean calendar year (days)

# Numerical parameters
DOMAIN_TOLERANCE_M = 1.0  # Overshoot allowed past a boundary before a ray is invalid
BISECTION_ITERATIONS = 50  # Iterations used to locate boundary collisions
GRADIENT_DELTA_M = 10.0  # Finite-difference step for gridded sound speed (m)
