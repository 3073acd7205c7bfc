"""
Persistence of Wavefronts and Propagation Loss

Writers for the products of a propagation run:

- WavefrontRecorder: netCDF file of the ray fan, one time slice appended
  per step along an unlimited time dimension
- write_proploss_netcdf: eigenrays and summed loss for every target
- write_eigenray_csv: one row per eigenray, for quick inspection

All failures are raised as PersistenceError so callers can tell output
problems apart from numerical ones.
"""

import csv
import logging
from pathlib import Path
from typing import Optional, Union

import netCDF4
import numpy as np
import xarray as xr

from .exceptions import PersistenceError
from .proploss import PropagationLoss
from .wavefront import Wavefront

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

EIGENRAY_COLUMNS = [
    'time',
    'intensity',
    'phase',
    'source_de',
    'source_az',
    'target_de',
    'target_az',
    'surface_count',
    'bottom_count',
    'caustic_count',
]


class WavefrontRecorder:
    """
    Appends wavefronts to a netCDF file.

    Variables are keyed by (time, de, az): latitude, longitude, depth,
    travel_time, surface_count, bottom_count and caustic_count.

    Example:
        with WavefrontRecorder("wavefront.nc", grid.de, grid.az) as recorder:
            wave.attach_recorder(recorder)
            wave.run(10.0)
    """

    def __init__(self, path: PathLike, de, az, title: str = "wavefront history"):
        self.path = Path(path)
        self.records = 0
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._nc = netCDF4.Dataset(str(self.path), 'w', format='NETCDF4')
            self._nc.title = title
            self._nc.createDimension('time', None)
            self._nc.createDimension('de', len(de))
            self._nc.createDimension('az', len(az))

            de_var = self._nc.createVariable('de', 'f8', ('de',))
            de_var.units = 'degrees'
            de_var.long_name = 'launch depression/elevation angle, positive up'
            de_var[:] = np.asarray(de, dtype=float)
            az_var = self._nc.createVariable('az', 'f8', ('az',))
            az_var.units = 'degrees'
            az_var.long_name = 'launch azimuth, clockwise from north'
            az_var[:] = np.asarray(az, dtype=float)

            time_var = self._nc.createVariable('time', 'f8', ('time',))
            time_var.units = 's'

            dims = ('time', 'de', 'az')
            for name, units in (('latitude', 'degrees_north'), ('longitude', 'degrees_east'),
                                ('depth', 'meters'), ('travel_time', 's')):
                self._nc.createVariable(name, 'f8', dims).units = units
            for name in ('surface_count', 'bottom_count', 'caustic_count'):
                self._nc.createVariable(name, 'i4', dims)
        except (OSError, RuntimeError) as e:
            raise PersistenceError(f"cannot create wavefront file {self.path}: {e}") from e
        logger.info(f"Recording wavefronts to {self.path}")

    def record(self, wavefront: Wavefront) -> None:
        """Append one wavefront as the next time slice."""
        if self._nc is None:
            raise PersistenceError(f"wavefront file {self.path} is closed")
        lat, lon, alt = wavefront.geographic
        n = self.records
        try:
            self._nc['time'][n] = wavefront.time
            self._nc['latitude'][n] = lat
            self._nc['longitude'][n] = lon
            self._nc['depth'][n] = -alt
            self._nc['travel_time'][n] = np.full(wavefront.shape, wavefront.time)
            self._nc['surface_count'][n] = wavefront.surface
            self._nc['bottom_count'][n] = wavefront.bottom
            self._nc['caustic_count'][n] = wavefront.caustic
        except (OSError, RuntimeError, IndexError, ValueError) as e:
            raise PersistenceError(f"cannot write wavefront t={wavefront.time}: {e}") from e
        self.records += 1

    def close(self) -> None:
        if self._nc is not None:
            self._nc.close()
            self._nc = None
            logger.info(f"Closed {self.path} after {self.records} wavefronts")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def write_proploss_netcdf(loss: PropagationLoss, path: PathLike,
                          title: str = "propagation loss") -> Path:
    """
    Write targets, eigenrays and summed loss to netCDF.

    Eigenray fields use (target, eigenray, frequency) dimensions padded
    with NaN (counts with -1) up to the largest eigenray count.

    Returns:
        Path of the written file
    """
    if loss.frequencies is None:
        raise ValueError("propagation loss has no frequencies")
    path = Path(path)
    n_targets = loss.num_targets
    n_freq = loss.frequencies.size
    per_target = [loss.eigenrays(k) for k in range(n_targets)]
    n_rays = max([len(rays) for rays in per_target] + [1])

    scalar = {name: np.full((n_targets, n_rays), np.nan)
              for name in ('time', 'source_de', 'source_az', 'target_de', 'target_az')}
    counts = {name: np.full((n_targets, n_rays), -1, dtype=np.int32)
              for name in ('surface_count', 'bottom_count', 'caustic_count')}
    intensity = np.full((n_targets, n_rays, n_freq), np.nan)
    phase = np.full((n_targets, n_rays, n_freq), np.nan)

    for k, rays in enumerate(per_target):
        for r, ray in enumerate(rays):
            for name in scalar:
                scalar[name][k, r] = getattr(ray, name)
            counts['surface_count'][k, r] = ray.surface
            counts['bottom_count'][k, r] = ray.bottom
            counts['caustic_count'][k, r] = ray.caustic
            intensity[k, r] = ray.intensity
            phase[k, r] = ray.phase

    ray_dims = ('target', 'eigenray')
    data_vars = {name: (ray_dims, values) for name, values in scalar.items()}
    data_vars.update({name: (ray_dims, values) for name, values in counts.items()})
    data_vars['intensity'] = (ray_dims + ('frequency',), intensity)
    data_vars['phase'] = (ray_dims + ('frequency',), phase)

    targets = loss.flat_targets
    data_vars['latitude'] = (('target',), targets[:, 0])
    data_vars['longitude'] = (('target',), targets[:, 1])
    data_vars['altitude'] = (('target',), targets[:, 2])
    data_vars['num_eigenrays'] = (('target',), np.array([len(r) for r in per_target],
                                                        dtype=np.int32))
    if loss.intensity is not None:
        data_vars['loss'] = (('target', 'frequency'), loss.intensity.reshape(n_targets, n_freq))
        data_vars['loss_phase'] = (('target', 'frequency'), loss.phase.reshape(n_targets, n_freq))

    ds = xr.Dataset(
        data_vars,
        coords={'frequency': loss.frequencies},
        attrs={
            'title': title,
            'target_shape': list(loss.target_shape),
            'total_loss_db': loss.total_loss_db,
        },
    )
    ds['time'].attrs['units'] = 's'
    ds['intensity'].attrs['units'] = 'dB'
    ds['phase'].attrs['units'] = 'radians'
    ds['frequency'].attrs['units'] = 'Hz'

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        ds.to_netcdf(path)
    except (OSError, RuntimeError, ValueError) as e:
        raise PersistenceError(f"cannot write propagation loss to {path}: {e}") from e

    logger.info(f"Wrote {loss.num_eigenrays} eigenrays for {n_targets} targets to {path}")
    return path


def write_eigenray_csv(loss: PropagationLoss, path: PathLike, index: Optional[int] = None,
                       frequency_index: int = 0) -> Path:
    """
    Write eigenrays as a comma-separated table.

    Args:
        loss: Propagation loss holding the eigenrays
        path: Output file
        index: Flat target index, or None for every target
        frequency_index: Frequency whose intensity and phase are written

    Returns:
        Path of the written file
    """
    path = Path(path)
    indices = range(loss.num_targets) if index is None else [index]
    with_target = len(indices) > 1
    headers = (['target'] if with_target else []) + EIGENRAY_COLUMNS

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', newline='', encoding='utf-8') as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(headers)
            for k in indices:
                for ray in loss.eigenrays(k):
                    row = [
                        ray.time,
                        ray.intensity[frequency_index],
                        ray.phase[frequency_index],
                        ray.source_de,
                        ray.source_az,
                        ray.target_de,
                        ray.target_az,
                        ray.surface,
                        ray.bottom,
                        ray.caustic,
                    ]
                    writer.writerow(([k] if with_target else []) + row)
    except OSError as e:
        raise PersistenceError(f"cannot write eigenray table {path}: {e}") from e

    logger.info(f"Wrote eigenray table to {path}")
    return path
