"""
OceanRay Wavefront Propagation Package

3D time-domain ray tracing of underwater sound on a spherical earth,
with eigenray search and coherent transmission loss.

A fan of rays launched from the source is marched through the ocean
one time step at a time. Consecutive wavefronts bracket every target;
interpolating between them yields the eigenrays (exact source to target
paths), whose complex amplitudes are summed into propagation loss.

Core Components:
- OceanModel: Sound speed, attenuation, surface and bottom
- LaunchGrid: D/E and AZ launch angles of the ray fan
- WaveQueue: Time-marching wavefront engine
- EigenraySearch: Cell-by-cell root finding between wavefronts
- PropagationLoss: Per-target eigenray lists and summed loss
- WavefrontRecorder / write_proploss_netcdf / write_eigenray_csv: Output

Based on concepts from:
- WaveQ3D (Reilly & Gesey) - Wavefront queue propagation model
- Jensen, Kuperman, Porter & Schmidt, Computational Ocean Acoustics
"""

__version__ = "0.1.0"
__author__ = "OceanRay Project"

from .eigenray import Eigenray
from .eigenray_search import EigenraySearch
from .exceptions import NumericalInstabilityError, PersistenceError
from .launch_grid import LaunchGrid, linear_sequence
from .ocean import OceanModel
from .persistence import WavefrontRecorder, write_eigenray_csv, write_proploss_netcdf
from .proploss import PropagationLoss
from .wave_queue import WaveQueue
from .wavefront import RayState, Wavefront, WavefrontHistory

__all__ = [
    'Eigenray',
    'EigenraySearch',
    'LaunchGrid',
    'linear_sequence',
    'NumericalInstabilityError',
    'OceanModel',
    'PersistenceError',
    'PropagationLoss',
    'RayState',
    'WaveQueue',
    'Wavefront',
    'WavefrontHistory',
    'WavefrontRecorder',
    'write_eigenray_csv',
    'write_proploss_netcdf',
]
