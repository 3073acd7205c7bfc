"""
Composite Ocean Environment

Bundles the surface, bottom, sound speed profile and volume attenuation
that the wavefront model queries, together with the earth radius of the
area of operations.
"""

from dataclasses import dataclass, field
from typing import Optional
import numpy as np

from common.geodesy import earth_radius_at
from .attenuation import AttenuationModel, ConstantAttenuation
from .boundary import BoundaryModel, FlatBoundary
from .profile import ProfileModel, ConstantProfile
from .reflection import ConstantReflection


def default_surface() -> FlatBoundary:
    """Pressure-release sea surface at mean sea level."""
    return FlatBoundary(0.0, ConstantReflection(0.0, np.pi))


@dataclass
class OceanModel:
    """
    Ocean environment used by the wavefront queue.

    Attributes:
        surface: Sea surface boundary (depth normally 0)
        bottom: Sea floor boundary
        profile: Sound speed profile
        attenuation: Volume attenuation model
        earth_radius: Radius of the spherical earth (meters)
    """
    surface: BoundaryModel = field(default_factory=default_surface)
    bottom: BoundaryModel = field(default_factory=lambda: FlatBoundary(3000.0))
    profile: ProfileModel = field(default_factory=ConstantProfile)
    attenuation: AttenuationModel = field(default_factory=ConstantAttenuation)
    earth_radius: float = 6371000.0

    @classmethod
    def for_area(
        cls,
        latitude: float,
        surface: Optional[BoundaryModel] = None,
        bottom: Optional[BoundaryModel] = None,
        profile: Optional[ProfileModel] = None,
        attenuation: Optional[AttenuationModel] = None,
    ) -> 'OceanModel':
        """
        Build an ocean whose earth radius matches the local curvature
        of the WGS-84 ellipsoid at the given latitude.
        """
        return cls(
            surface=surface or default_surface(),
            bottom=bottom or FlatBoundary(3000.0),
            profile=profile or ConstantProfile(),
            attenuation=attenuation or ConstantAttenuation(),
            earth_radius=earth_radius_at(latitude),
        )

    def sound_speed(self, lat, lon, alt, time: float = 0.0):
        """Sound speed (m/s) and gradient (up, north, east)."""
        return self.profile.sound_speed(lat, lon, alt, time)

    def absorption(self, lat, lon, alt, frequencies, time: float = 0.0):
        """Volume attenuation (dB/m), trailing frequency axis."""
        return self.attenuation.absorption(lat, lon, alt, frequencies, time)

    def surface_altitude(self, lat, lon, time: float = 0.0):
        """Altitude of the sea surface (meters)."""
        return -self.surface.depth(lat, lon, time)

    def bottom_altitude(self, lat, lon, time: float = 0.0):
        """Altitude of the sea floor (meters, negative)."""
        return -self.bottom.depth(lat, lon, time)
