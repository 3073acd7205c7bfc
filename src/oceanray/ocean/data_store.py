"""
Gridded Ocean Data Store

Owns the gridded environmental datasets (bathymetry and temperature /
salinity climatology) used to build data-driven boundaries and sound
speed profiles. Datasets are read with xarray from netCDF files, or
taken directly from in-memory xarray Datasets, and cached until they
are reloaded or cleared.

A store is created by the caller and passed to whatever builds the
ocean; there is no module-level cache.

Example:
    store = OceanDataStore(earth_radius=earth_radius_at(45.0))
    store.load_bathymetry("gebco_subset.nc", variable="elevation")
    store.load_climatology("woa_subset.nc")

    ocean = OceanModel(
        bottom=store.bathymetry_boundary(RayleighReflection()),
        profile=store.sound_speed_profile(),
        earth_radius=store.earth_radius,
    )
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import xarray as xr

from common.constants import EARTH_RADIUS_M
from .boundary import GriddedBoundary
from .profile import GriddedProfile, ProfileModel, SeasonalProfile, mackenzie_sound_speed
from .reflection import ReflectionModel

logger = logging.getLogger(__name__)

Source = Union[str, Path, xr.Dataset]


@dataclass
class GriddedField:
    """
    A gridded variable held in memory.

    Attributes:
        latitudes: Increasing latitudes (degrees)
        longitudes: Increasing longitudes (degrees)
        values: Data array, latitude and longitude leading (after the month
                axis when months is set)
        depths: Increasing depths (meters) for 3-D fields, else None
        source: Where the field was read from, for reloads
        months: Calendar months (1..12) of a leading time axis on
                values, else None
    """
    latitudes: np.ndarray
    longitudes: np.ndarray
    values: np.ndarray
    depths: Optional[np.ndarray] = None
    source: Optional[Source] = None
    months: Optional[np.ndarray] = None


def _sorted_axis(ds: xr.Dataset, name: str) -> xr.Dataset:
    """Sort a dataset along a coordinate so interpolation grids increase."""
    if name in ds.coords and ds[name].size > 1 and ds[name].values[0] > ds[name].values[-1]:
        ds = ds.sortby(name)
    return ds


class OceanDataStore:
    """
    Cache of gridded environmental data with a load / reload lifecycle.
    """

    def __init__(self, earth_radius: float = EARTH_RADIUS_M):
        self.earth_radius = earth_radius
        self._fields: Dict[str, GriddedField] = {}
        self._load_args: Dict[str, dict] = {}

    @property
    def loaded(self) -> tuple:
        """Names of the fields currently held."""
        return tuple(sorted(self._fields))

    def _open(self, source: Source) -> xr.Dataset:
        if isinstance(source, xr.Dataset):
            return source
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Ocean data file not found: {path}")
        logger.info(f"Reading ocean data from {path}")
        with xr.open_dataset(path) as ds:
            return ds.load()

    def load_bathymetry(
        self,
        source: Source,
        variable: str = "elevation",
        lat_name: str = "lat",
        lon_name: str = "lon",
        positive_up: bool = True,
    ) -> GriddedField:
        """
        Load a bathymetry grid.

        Args:
            source: netCDF path or xarray Dataset
            variable: Name of the height / depth variable
            lat_name: Name of the latitude coordinate
            lon_name: Name of the longitude coordinate
            positive_up: True if the variable is elevation (GEBCO style,
                         negative in the ocean); False if it is depth

        Returns:
            The cached depth field (meters, positive down)
        """
        ds = self._open(source)
        ds = _sorted_axis(_sorted_axis(ds, lat_name), lon_name)
        values = ds[variable].transpose(lat_name, lon_name).values.astype(float)
        depths = -values if positive_up else values

        field = GriddedField(
            latitudes=ds[lat_name].values.astype(float),
            longitudes=ds[lon_name].values.astype(float),
            values=depths,
            source=source,
        )
        self._fields["bathymetry"] = field
        self._load_args["bathymetry"] = dict(
            variable=variable, lat_name=lat_name, lon_name=lon_name, positive_up=positive_up)
        logger.info(
            f"Loaded bathymetry {depths.shape}: depth {np.nanmin(depths):.0f} "
            f"to {np.nanmax(depths):.0f} m")
        return field

    def load_climatology(
        self,
        source: Source,
        temperature: str = "temperature",
        salinity: str = "salinity",
        lat_name: str = "lat",
        lon_name: str = "lon",
        depth_name: str = "depth",
        time_name: str = "time",
        month: Optional[int] = None,
    ) -> GriddedField:
        """
        Load temperature / salinity climatology and convert to sound speed.

        Sound speed is computed with the Mackenzie equation. Missing values
        (land, below the sea floor) are filled from the nearest valid value
        above in the same water column.

        Monthly climatologies (WOA style) carry a time axis, given either as
        datetimes or as month numbers 1..12. Every month is kept unless
        ``month`` picks a single one.

        Returns:
            The cached sound speed field (m/s)

        Raises:
            KeyError: If ``month`` is not in the dataset
        """
        ds = self._open(source)
        for name in (lat_name, lon_name, depth_name):
            ds = _sorted_axis(ds, name)
        order = (lat_name, lon_name, depth_name)

        months = None
        if time_name in ds[temperature].dims:
            months = _month_numbers(ds[time_name])
            if month is not None:
                matches = np.flatnonzero(months == month)
                if matches.size == 0:
                    raise KeyError(f"Month {month} not in climatology (has {months.tolist()})")
                ds = ds.isel({time_name: int(matches[0])})
                months = None
            else:
                order = (time_name,) + order

        temp = ds[temperature].transpose(*order).values.astype(float)
        salt = ds[salinity].transpose(*order).values.astype(float)
        depths = ds[depth_name].values.astype(float)

        speed = mackenzie_sound_speed(temp, salt, depths)
        speed = _fill_down(speed)

        field = GriddedField(
            latitudes=ds[lat_name].values.astype(float),
            longitudes=ds[lon_name].values.astype(float),
            values=speed,
            depths=depths,
            source=source,
            months=months,
        )
        self._fields["sound_speed"] = field
        self._load_args["sound_speed"] = dict(
            temperature=temperature, salinity=salinity,
            lat_name=lat_name, lon_name=lon_name, depth_name=depth_name,
            time_name=time_name, month=month)
        logger.info(
            f"Loaded climatology {speed.shape}"
            + (f" for months {months.tolist()}" if months is not None else ""))
        return field

    def reload(self) -> None:
        """Re-read every loaded field from its source."""
        for name, field in list(self._fields.items()):
            args = self._load_args[name]
            if name == "bathymetry":
                self.load_bathymetry(field.source, **args)
            else:
                self.load_climatology(field.source, **args)

    def clear(self) -> None:
        """Drop all cached fields."""
        self._fields.clear()
        self._load_args.clear()

    def _require(self, name: str) -> GriddedField:
        if name not in self._fields:
            raise KeyError(f"No {name} data loaded")
        return self._fields[name]

    def bathymetry_boundary(self, reflection: Optional[ReflectionModel] = None) -> GriddedBoundary:
        """Sea floor built from the cached bathymetry."""
        field = self._require("bathymetry")
        return GriddedBoundary(
            field.latitudes, field.longitudes, field.values,
            earth_radius=self.earth_radius, reflection=reflection)

    def sound_speed_profile(self, start_day_of_year: float = 0.0) -> ProfileModel:
        """
        Sound speed profile built from the cached climatology.

        A monthly climatology gives a SeasonalProfile whose simulation
        time starts at ``start_day_of_year``; otherwise a GriddedProfile.
        """
        field = self._require("sound_speed")
        if field.months is None:
            return GriddedProfile(
                field.latitudes, field.longitudes, field.depths, field.values,
                earth_radius=self.earth_radius)
        profiles = [
            GriddedProfile(field.latitudes, field.longitudes, field.depths, values,
                           earth_radius=self.earth_radius)
            for values in field.values
        ]
        return SeasonalProfile(profiles, field.months, start_day_of_year=start_day_of_year)


def _fill_down(values: np.ndarray) -> np.ndarray:
    """Fill NaNs along the last axis from the last valid value above."""
    filled = values.copy()
    for k in range(1, filled.shape[-1]):
        missing = np.isnan(filled[..., k])
        filled[..., k][missing] = filled[..., k - 1][missing]
    if np.isnan(filled).any():
        filled = np.where(np.isnan(filled), np.nanmean(filled), filled)
    return filled


def _month_numbers(coord: xr.DataArray) -> np.ndarray:
    """Calendar months (1..12) of a time coordinate."""
    if np.issubdtype(coord.dtype, np.datetime64):
        return coord.dt.month.values.astype(int)
    months = coord.values.astype(int)
    if np.any((months < 1) | (months > 12)):
        raise ValueError(f"Time coordinate {coord.name!r} is not months 1..12: {months.tolist()}")
    return months
