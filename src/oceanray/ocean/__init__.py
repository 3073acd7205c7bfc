"""
Ocean Environment Models

Sound speed, attenuation and boundary models queried by the wavefront
queue, plus the data store that owns gridded environmental data.
"""

from .profile import (
    ProfileModel,
    ConstantProfile,
    LinearProfile,
    MunkProfile,
    RangeDependentProfile,
    GriddedProfile,
    SeasonalProfile,
    mackenzie_sound_speed,
)
from .attenuation import AttenuationModel, ConstantAttenuation, ThorpAttenuation
from .reflection import ReflectionModel, ConstantReflection, RayleighReflection
from .boundary import BoundaryModel, FlatBoundary, SlopedBoundary, GriddedBoundary
from .ocean_model import OceanModel, default_surface
from .data_store import OceanDataStore, GriddedField

__all__ = [
    'ProfileModel',
    'ConstantProfile',
    'LinearProfile',
    'MunkProfile',
    'RangeDependentProfile',
    'GriddedProfile',
    'SeasonalProfile',
    'mackenzie_sound_speed',
    'AttenuationModel',
    'ConstantAttenuation',
    'ThorpAttenuation',
    'ReflectionModel',
    'ConstantReflection',
    'RayleighReflection',
    'BoundaryModel',
    'FlatBoundary',
    'SlopedBoundary',
    'GriddedBoundary',
    'OceanModel',
    'default_surface',
    'OceanDataStore',
    'GriddedField',
]
