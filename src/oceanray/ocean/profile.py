"""
Sound Speed Profile Models

Each profile returns the speed of sound and its spatial gradient at a
set of positions. Gradients are reported in local (up, north, east)
components, in (m/s)/m, which the ray equations convert to the
spherical frame.

Positions are given as latitude (deg), longitude (deg) and altitude
(m, negative below the sea surface); any array shape is accepted and
results have the broadcast shape of the inputs.

Variants:
    - ConstantProfile: isovelocity ocean
    - LinearProfile: constant vertical gradient
    - MunkProfile: canonical deep-water sound channel
    - RangeDependentProfile: analytic horizontal gradients on any profile
    - GriddedProfile: tabulated (lat, lon, depth) data, e.g. climatology
    - SeasonalProfile: one profile per month, chosen by time of year

Reference: Jensen, Kuperman, Porter & Schmidt, "Computational Ocean
Acoustics" (2011), Ch. 1
"""

from abc import ABC, abstractmethod
from typing import Sequence, Tuple
import numpy as np
from scipy.interpolate import RegularGridInterpolator

from common.constants import (
    DAYS_PER_YEAR,
    DEFAULT_SOUND_SPEED,
    DEG_TO_RAD,
    EARTH_RADIUS_M,
    GRADIENT_DELTA_M,
    SECONDS_PER_DAY,
)
from common.geodesy import local_offsets

Gradient = Tuple[np.ndarray, np.ndarray, np.ndarray]


def mackenzie_sound_speed(temperature, salinity, depth):
    """
    Nine-term Mackenzie (1981) equation for sound speed in sea water

    Args:
        temperature: Temperature (deg C), valid 2 to 30
        salinity: Salinity (ppt), valid 25 to 40
        depth: Depth (m, positive down), valid 0 to 8000

    Returns:
        Sound speed (m/s)
    """
    t = np.asarray(temperature, dtype=float)
    s = np.asarray(salinity, dtype=float) - 35.0
    d = np.asarray(depth, dtype=float)
    return (1448.96 + 4.591 * t - 5.304e-2 * t**2 + 2.374e-4 * t**3
            + 1.340 * s + 1.630e-2 * d + 1.675e-7 * d**2
            - 1.025e-2 * t * s - 7.139e-13 * t * d**3)


class ProfileModel(ABC):
    """
    Abstract base class for sound speed profiles.

    Subclasses must implement sound_speed().
    """

    @abstractmethod
    def sound_speed(self, lat, lon, alt, time: float = 0.0) -> Tuple[np.ndarray, Gradient]:
        """
        Compute sound speed and its gradient.

        Args:
            lat: Latitude (degrees)
            lon: Longitude (degrees)
            alt: Altitude (meters, negative below sea level)
            time: Simulation time (seconds)

        Returns:
            (speed, (dc_dup, dc_dnorth, dc_deast))
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _zeros_like(*arrays) -> np.ndarray:
    return np.zeros(np.broadcast(*[np.asarray(a) for a in arrays]).shape)


class ConstantProfile(ProfileModel):
    """Isovelocity ocean."""

    def __init__(self, speed: float = DEFAULT_SOUND_SPEED):
        if speed <= 0:
            raise ValueError(f"Sound speed must be positive, got {speed}")
        self.speed = float(speed)

    def sound_speed(self, lat, lon, alt, time: float = 0.0):
        zero = _zeros_like(lat, lon, alt)
        return zero + self.speed, (zero, zero.copy(), zero.copy())

    def __repr__(self) -> str:
        return f"ConstantProfile(speed={self.speed})"


class LinearProfile(ProfileModel):
    """
    Sound speed varying linearly with depth.

    c(z) = c0 + g * z, with z the depth below the sea surface.
    """

    def __init__(self, surface_speed: float = DEFAULT_SOUND_SPEED, gradient: float = 0.0):
        """
        Args:
            surface_speed: Sound speed at the sea surface (m/s)
            gradient: Rate of change with depth ((m/s)/m, positive increases with depth)
        """
        self.surface_speed = float(surface_speed)
        self.gradient = float(gradient)

    def sound_speed(self, lat, lon, alt, time: float = 0.0):
        zero = _zeros_like(lat, lon, alt)
        depth = -np.asarray(alt, dtype=float) + zero
        speed = self.surface_speed + self.gradient * depth
        return speed, (zero - self.gradient, zero.copy(), zero.copy())

    def __repr__(self) -> str:
        return f"LinearProfile(c0={self.surface_speed}, g={self.gradient})"


class MunkProfile(ProfileModel):
    """
    Munk (1974) canonical deep-water sound channel.

    c(z) = c1 * (1 + eps * (eta - 1 + exp(-eta))),  eta = 2 (z - z1) / B
    """

    def __init__(
        self,
        axis_depth: float = 1300.0,
        scale_depth: float = 1300.0,
        axis_speed: float = 1500.0,
        epsilon: float = 0.00737,
    ):
        self.axis_depth = axis_depth
        self.scale_depth = scale_depth
        self.axis_speed = axis_speed
        self.epsilon = epsilon

    def sound_speed(self, lat, lon, alt, time: float = 0.0):
        zero = _zeros_like(lat, lon, alt)
        depth = -np.asarray(alt, dtype=float) + zero
        eta = 2.0 * (depth - self.axis_depth) / self.scale_depth
        speed = self.axis_speed * (1.0 + self.epsilon * (eta - 1.0 + np.exp(-eta)))
        dc_dz = self.axis_speed * self.epsilon * (2.0 / self.scale_depth) * (1.0 - np.exp(-eta))
        return speed, (-dc_dz, zero, zero.copy())

    def __repr__(self) -> str:
        return (f"MunkProfile(z1={self.axis_depth}, B={self.scale_depth}, "
                f"c1={self.axis_speed}, eps={self.epsilon})")


class RangeDependentProfile(ProfileModel):
    """
    Adds constant horizontal gradients to another profile.

    The speed at a point is the base speed plus the north and east
    gradients times the distance from a reference point, which models
    fronts and eddies in analytic test environments.
    """

    def __init__(
        self,
        base: ProfileModel,
        origin_lat: float,
        origin_lon: float,
        north_gradient: float = 0.0,
        east_gradient: float = 0.0,
        earth_radius: float = EARTH_RADIUS_M,
    ):
        self.base = base
        self.origin_lat = origin_lat
        self.origin_lon = origin_lon
        self.north_gradient = north_gradient
        self.east_gradient = east_gradient
        self.earth_radius = earth_radius

    def sound_speed(self, lat, lon, alt, time: float = 0.0):
        speed, (dc_up, dc_north, dc_east) = self.base.sound_speed(lat, lon, alt, time)
        north, east = local_offsets(lat, lon, self.origin_lat, self.origin_lon,
                                    self.earth_radius)
        speed = speed + self.north_gradient * north + self.east_gradient * east
        return speed, (dc_up, dc_north + self.north_gradient, dc_east + self.east_gradient)


class GriddedProfile(ProfileModel):
    """
    Sound speed tabulated on a (latitude, longitude, depth) grid.

    Values are interpolated with scipy's RegularGridInterpolator and
    extrapolated linearly outside the grid. The gradient is computed by
    central differences, with steps of GRADIENT_DELTA_M in each direction.
    """

    def __init__(
        self,
        latitudes: np.ndarray,
        longitudes: np.ndarray,
        depths: np.ndarray,
        speeds: np.ndarray,
        earth_radius: float = EARTH_RADIUS_M,
        method: str = "linear",
    ):
        """
        Args:
            latitudes: Strictly increasing latitudes (degrees)
            longitudes: Strictly increasing longitudes (degrees)
            depths: Strictly increasing depths (meters, positive down)
            speeds: Sound speed array of shape (n_lat, n_lon, n_depth)
            earth_radius: Radius used to convert angular steps to meters
            method: Interpolation method passed to RegularGridInterpolator
        """
        speeds = np.asarray(speeds, dtype=float)
        expected = (len(latitudes), len(longitudes), len(depths))
        if speeds.shape != expected:
            raise ValueError(f"speeds has shape {speeds.shape}, expected {expected}")
        self.earth_radius = earth_radius
        self._interp = RegularGridInterpolator(
            (np.asarray(latitudes, dtype=float),
             np.asarray(longitudes, dtype=float),
             np.asarray(depths, dtype=float)),
            speeds,
            method=method,
            bounds_error=False,
            fill_value=None,
        )

    def _evaluate(self, lat, lon, depth) -> np.ndarray:
        lat, lon, depth = np.broadcast_arrays(
            np.asarray(lat, dtype=float), np.asarray(lon, dtype=float),
            np.asarray(depth, dtype=float))
        points = np.stack([lat.ravel(), lon.ravel(), depth.ravel()], axis=-1)
        return self._interp(points).reshape(lat.shape)

    def sound_speed(self, lat, lon, alt, time: float = 0.0):
        lat = np.asarray(lat, dtype=float)
        lon = np.asarray(lon, dtype=float)
        depth = -np.asarray(alt, dtype=float)
        delta = GRADIENT_DELTA_M

        speed = self._evaluate(lat, lon, depth)

        dc_up = -(self._evaluate(lat, lon, depth + delta)
                  - self._evaluate(lat, lon, depth - delta)) / (2 * delta)

        dlat = delta / (self.earth_radius * DEG_TO_RAD)
        dc_north = (self._evaluate(lat + dlat, lon, depth)
                    - self._evaluate(lat - dlat, lon, depth)) / (2 * delta)

        dlon = dlat / np.maximum(np.cos(lat * DEG_TO_RAD), 1e-6)
        dc_east = (self._evaluate(lat, lon + dlon, depth)
                   - self._evaluate(lat, lon - dlon, depth)) / (2 * delta)

        return speed, (dc_up, dc_north, dc_east)


class SeasonalProfile(ProfileModel):
    """
    Monthly profiles chosen by time of year.

    Simulation time counts seconds from ``start_day_of_year`` (days
    after 00:00 on 1 January). The year is split into twelve equal
    months. A month without its own profile uses the nearest month that
    has one, counting round the turn of the year; ties go to the
    earlier month.

    Example:
        profile = SeasonalProfile([january, july], months=[1, 7],
                                  start_day_of_year=180.0)
    """

    def __init__(self, profiles: Sequence[ProfileModel], months: Sequence[int],
                 start_day_of_year: float = 0.0):
        months = [int(m) for m in months]
        if len(months) != len(profiles) or not months:
            raise ValueError("Need one month number for each profile")
        if len(set(months)) != len(months) or not all(1 <= m <= 12 for m in months):
            raise ValueError(f"Months must be distinct values in 1..12, got {months}")
        if not np.isfinite(start_day_of_year):
            raise ValueError("start_day_of_year must be finite")

        self.months = months
        self.profiles = list(profiles)
        self.start_day_of_year = float(start_day_of_year)
        self._by_month = []
        for month in range(1, 13):
            gap = [min(abs(month - m), 12 - abs(month - m)) for m in months]
            best = min(range(len(months)), key=lambda n: (gap[n], months[n]))
            self._by_month.append(self.profiles[best])

    def month(self, time: float = 0.0) -> int:
        """Calendar month (1..12) in effect at simulation time."""
        day = (self.start_day_of_year + time / SECONDS_PER_DAY) % DAYS_PER_YEAR
        return min(int(day / (DAYS_PER_YEAR / 12.0)) + 1, 12)

    def sound_speed(self, lat, lon, alt, time: float = 0.0):
        return self._by_month[self.month(time) - 1].sound_speed(lat, lon, alt, time)
