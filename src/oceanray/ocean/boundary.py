"""
Ocean Boundary Models

A boundary model describes the sea surface or the sea floor: its depth
below mean sea level, its unit normal, and how it reflects sound.

Normals are returned as physical spherical components (rho, theta, phi)
of the upward unit normal, i.e. (up, -north, east). The reflection law
p' = p - 2 (p . n) n is independent of the normal's sign, so the same
convention is used for surface and bottom.

Variants:
    - FlatBoundary: constant depth
    - SlopedBoundary: planar slope about a reference point
    - GriddedBoundary: tabulated bathymetry
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple
import numpy as np
from scipy.interpolate import RegularGridInterpolator

from common.constants import DEG_TO_RAD, EARTH_RADIUS_M
from common.geodesy import local_offsets
from .reflection import ReflectionModel, ConstantReflection

Normal = Tuple[np.ndarray, np.ndarray, np.ndarray]


class BoundaryModel(ABC):
    """
    Abstract base class for the sea surface and sea floor.

    Subclasses must implement depth() and normal(). Reflection is
    delegated to a ReflectionModel supplied at construction.
    """

    def __init__(self, reflection: Optional[ReflectionModel] = None):
        self.reflection = reflection or ConstantReflection()

    @abstractmethod
    def depth(self, lat, lon, time: float = 0.0) -> np.ndarray:
        """
        Depth of the boundary below mean sea level.

        Args:
            lat: Latitude (degrees)
            lon: Longitude (degrees)
            time: Simulation time (seconds), scalar or one per point

        Returns:
            Depth in meters (positive down)
        """
        pass

    @abstractmethod
    def normal(self, lat, lon, time: float = 0.0) -> Normal:
        """
        Upward unit normal of the boundary.

        Arguments are as for depth(); time may give each point its own
        collision time.

        Returns:
            (n_rho, n_theta, n_phi) physical spherical components
        """
        pass

    def reflection_coefficient(self, grazing, frequencies) -> Tuple[np.ndarray, np.ndarray]:
        """
        Reflection loss (dB) and phase change (radians).

        Args:
            grazing: Grazing angles (radians)
            frequencies: Frequencies (Hz)
        """
        return self.reflection.coefficient(grazing, frequencies)


def _upward_normal(north_slope, east_slope) -> Normal:
    """Unit normal of a surface whose depth grows by the given slopes."""
    norm = np.sqrt(1.0 + north_slope**2 + east_slope**2)
    return 1.0 / norm, -north_slope / norm, east_slope / norm


class FlatBoundary(BoundaryModel):
    """Boundary at a constant depth, e.g. the mean sea surface."""

    def __init__(self, depth: float = 0.0, reflection: Optional[ReflectionModel] = None):
        super().__init__(reflection)
        self._depth = float(depth)

    def depth(self, lat, lon, time: float = 0.0):
        shape = np.broadcast(np.asarray(lat), np.asarray(lon)).shape
        return np.full(shape, self._depth)

    def normal(self, lat, lon, time: float = 0.0):
        shape = np.broadcast(np.asarray(lat), np.asarray(lon)).shape
        return np.ones(shape), np.zeros(shape), np.zeros(shape)

    def __repr__(self) -> str:
        return f"FlatBoundary(depth={self._depth}, reflection={self.reflection!r})"


class SlopedBoundary(BoundaryModel):
    """
    Planar boundary tilted about a reference point.

    depth = depth0 + north_slope * dn + east_slope * de, where dn and de
    are the distances north and east of the reference point. Slopes are
    dimensionless (meters of depth per meter of range).
    """

    def __init__(
        self,
        reference_depth: float,
        origin_lat: float,
        origin_lon: float,
        north_slope: float = 0.0,
        east_slope: float = 0.0,
        earth_radius: float = EARTH_RADIUS_M,
        reflection: Optional[ReflectionModel] = None,
    ):
        super().__init__(reflection)
        self.reference_depth = reference_depth
        self.origin_lat = origin_lat
        self.origin_lon = origin_lon
        self.north_slope = north_slope
        self.east_slope = east_slope
        self.earth_radius = earth_radius

    def depth(self, lat, lon, time: float = 0.0):
        north, east = local_offsets(lat, lon, self.origin_lat, self.origin_lon,
                                    self.earth_radius)
        return self.reference_depth + self.north_slope * north + self.east_slope * east

    def normal(self, lat, lon, time: float = 0.0):
        shape = np.broadcast(np.asarray(lat), np.asarray(lon)).shape
        n_rho, n_theta, n_phi = _upward_normal(self.north_slope, self.east_slope)
        return np.full(shape, n_rho), np.full(shape, n_theta), np.full(shape, n_phi)


class GriddedBoundary(BoundaryModel):
    """
    Boundary depth tabulated on a (latitude, longitude) grid.

    Depths are interpolated bilinearly and extrapolated outside the grid.
    Normals come from central differences of the interpolated surface.
    """

    def __init__(
        self,
        latitudes: np.ndarray,
        longitudes: np.ndarray,
        depths: np.ndarray,
        earth_radius: float = EARTH_RADIUS_M,
        reflection: Optional[ReflectionModel] = None,
        gradient_delta: float = 50.0,
    ):
        """
        Args:
            latitudes: Strictly increasing latitudes (degrees)
            longitudes: Strictly increasing longitudes (degrees)
            depths: Depth array of shape (n_lat, n_lon), meters positive down
            earth_radius: Radius used to convert angular steps to meters
            reflection: Reflection model for this boundary
            gradient_delta: Finite-difference step for normals (meters)
        """
        super().__init__(reflection)
        depths = np.asarray(depths, dtype=float)
        if depths.shape != (len(latitudes), len(longitudes)):
            raise ValueError(
                f"depths has shape {depths.shape}, expected "
                f"{(len(latitudes), len(longitudes))}")
        self.earth_radius = earth_radius
        self.gradient_delta = gradient_delta
        self._interp = RegularGridInterpolator(
            (np.asarray(latitudes, dtype=float), np.asarray(longitudes, dtype=float)),
            depths,
            method="linear",
            bounds_error=False,
            fill_value=None,
        )

    def depth(self, lat, lon, time: float = 0.0):
        lat, lon = np.broadcast_arrays(np.asarray(lat, dtype=float),
                                       np.asarray(lon, dtype=float))
        points = np.stack([lat.ravel(), lon.ravel()], axis=-1)
        return self._interp(points).reshape(lat.shape)

    def normal(self, lat, lon, time: float = 0.0):
        lat = np.asarray(lat, dtype=float)
        lon = np.asarray(lon, dtype=float)
        delta = self.gradient_delta
        dlat = delta / (self.earth_radius * DEG_TO_RAD)
        dlon = dlat / np.maximum(np.cos(lat * DEG_TO_RAD), 1e-6)

        north_slope = (self.depth(lat + dlat, lon) - self.depth(lat - dlat, lon)) / (2 * delta)
        east_slope = (self.depth(lat, lon + dlon) - self.depth(lat, lon - dlon)) / (2 * delta)
        return _upward_normal(north_slope, east_slope)
