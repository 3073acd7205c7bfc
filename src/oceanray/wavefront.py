"""
Wavefront Snapshots and History

A Wavefront is the state of every ray in the D/E x AZ fan at one
instant. Snapshots are immutable once built: their arrays are marked
read-only, and the wave queue only ever replaces whole snapshots.

The WavefrontHistory keeps the three most recent snapshots in a ring
buffer indexed modulo 3, which is what the time-centered integrator and
the caustic test need.
"""

from dataclasses import dataclass, fields
from typing import Iterator, List, Optional
import numpy as np

from common.geodesy import spherical_to_geographic


@dataclass(frozen=True)
class RayState:
    """
    State of a single ray, extracted from a Wavefront.

    Attributes:
        latitude, longitude: Ray position (degrees)
        altitude: Ray altitude (meters, negative below sea level)
        slowness: (p_rho, p_theta, p_phi) in s/m
        time: Travel time (seconds)
        attenuation: Accumulated loss per frequency (dB)
        phase: Accumulated phase per frequency (radians)
        jacobian: Orientation-corrected beam Jacobian (m^2/rad^2)
        surface, bottom, caustic: Event counters
        valid: False once the ray has left the water column
    """
    latitude: float
    longitude: float
    altitude: float
    slowness: tuple
    time: float
    attenuation: tuple
    phase: tuple
    jacobian: float
    surface: int
    bottom: int
    caustic: int
    valid: bool


@dataclass(frozen=True)
class Wavefront:
    """
    The ray fan at one time.

    Per-ray arrays have shape (n_de, n_az); per-frequency arrays add a
    trailing frequency axis; vector arrays add a leading axis.

    Attributes:
        time: Simulation time (seconds)
        state: (6, n_de, n_az) spherical positions and slowness
        position: (3, n_de, n_az) Cartesian positions (m)
        velocity: (3, n_de, n_az) Cartesian ray velocities c^2 p (m/s)
        sound_speed: Local sound speed (m/s)
        absorption: Volume attenuation at each ray (dB/m per frequency)
        attenuation: Accumulated absorption and reflection loss (dB)
        phase: Accumulated reflection and caustic phase (radians)
        jacobian: Beam Jacobian corrected for reflection orientation
        surface: Surface reflection count
        bottom: Bottom reflection count
        caustic: Caustic count
        valid: Rays still inside the water column
        earth_radius: Radius of the spherical earth (m)
    """
    time: float
    state: np.ndarray
    position: np.ndarray
    velocity: np.ndarray
    sound_speed: np.ndarray
    absorption: np.ndarray
    attenuation: np.ndarray
    phase: np.ndarray
    jacobian: np.ndarray
    surface: np.ndarray
    bottom: np.ndarray
    caustic: np.ndarray
    valid: np.ndarray
    earth_radius: float

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, np.ndarray):
                value.flags.writeable = False

    @property
    def shape(self) -> tuple:
        """(n_de, n_az)"""
        return self.state.shape[1:]

    @property
    def geographic(self):
        """(latitude, longitude, altitude) arrays."""
        return spherical_to_geographic(self.state[0], self.state[1], self.state[2],
                                       self.earth_radius)

    @property
    def latitude(self) -> np.ndarray:
        return self.geographic[0]

    @property
    def longitude(self) -> np.ndarray:
        return self.geographic[1]

    @property
    def altitude(self) -> np.ndarray:
        return self.geographic[2]

    @property
    def family(self) -> np.ndarray:
        """
        Integer label shared by rays with the same reflection history.

        Invalid rays get -1 so they never match a valid neighbour.
        """
        label = self.surface.astype(np.int64) * 65536 + self.bottom.astype(np.int64)
        return np.where(self.valid, label, -1)

    def ray(self, de_index: int, az_index: int) -> RayState:
        """Extract the state of one ray."""
        lat, lon, alt = self.geographic
        idx = (de_index, az_index)
        return RayState(
            latitude=float(lat[idx]),
            longitude=float(lon[idx]),
            altitude=float(alt[idx]),
            slowness=tuple(float(p) for p in self.state[3:, de_index, az_index]),
            time=self.time,
            attenuation=tuple(self.attenuation[idx].tolist()),
            phase=tuple(self.phase[idx].tolist()),
            jacobian=float(self.jacobian[idx]),
            surface=int(self.surface[idx]),
            bottom=int(self.bottom[idx]),
            caustic=int(self.caustic[idx]),
            valid=bool(self.valid[idx]),
        )


def beam_jacobian(position: np.ndarray, velocity: np.ndarray,
                  de_rad: np.ndarray, az_rad: np.ndarray,
                  surface: np.ndarray, bottom: np.ndarray) -> np.ndarray:
    """
    Orientation-corrected beam Jacobian of a wavefront.

        J = (dx/d(de) x dx/d(az)) . t_hat * (-1)^(surface + bottom)

    Derivatives are finite differences across the launch-angle grid.
    Each reflection mirrors the wavefront and flips the sign of J; the
    correction factor removes that flip so that only a caustic changes
    the sign.
    """
    dx_dde = np.gradient(position, de_rad, axis=1)
    dx_daz = np.gradient(position, az_rad, axis=2)
    speed = np.linalg.norm(velocity, axis=0)
    t_hat = velocity / np.where(speed > 0, speed, 1.0)
    jacobian = np.sum(np.cross(dx_dde, dx_daz, axis=0) * t_hat, axis=0)
    orientation = np.where((surface + bottom) % 2 == 0, 1.0, -1.0)
    return jacobian * orientation


def uniform_stencil(family: np.ndarray) -> np.ndarray:
    """True where a ray and its four grid neighbours share one family."""
    same = np.ones(family.shape, dtype=bool)
    same[1:, :] &= family[1:, :] == family[:-1, :]
    same[:-1, :] &= family[:-1, :] == family[1:, :]
    same[:, 1:] &= family[:, 1:] == family[:, :-1]
    same[:, :-1] &= family[:, :-1] == family[:, 1:]
    return same


def detect_caustics(previous: Wavefront, jacobian: np.ndarray, family: np.ndarray) -> np.ndarray:
    """
    Rays whose corrected Jacobian changed sign since the previous snapshot.

    Only rays whose finite-difference stencil holds a single family in
    both snapshots are tested, so reflections that have reached some
    neighbours but not others are never mistaken for caustics.
    """
    flipped = previous.jacobian * jacobian < 0.0
    stable = (uniform_stencil(previous.family) & uniform_stencil(family)
              & (previous.family == family) & (family >= 0))
    return flipped & stable


class WavefrontHistory:
    """
    Ring buffer of the three most recent wavefronts.

    Index 0 is the newest snapshot, 1 the one before it and 2 the oldest.
    """

    SIZE = 3

    def __init__(self):
        self._slots: List[Optional[Wavefront]] = [None] * self.SIZE
        self._count = 0

    def push(self, wavefront: Wavefront) -> None:
        """Add a snapshot, evicting the oldest when full."""
        self._slots[self._count % self.SIZE] = wavefront
        self._count += 1

    def __len__(self) -> int:
        return min(self._count, self.SIZE)

    def __getitem__(self, age: int) -> Wavefront:
        if not 0 <= age < len(self):
            raise IndexError(f"history holds {len(self)} wavefronts, asked for age {age}")
        return self._slots[(self._count - 1 - age) % self.SIZE]

    def __iter__(self) -> Iterator[Wavefront]:
        return (self[age] for age in range(len(self)))

    @property
    def current(self) -> Wavefront:
        return self[0]

    @property
    def previous(self) -> Wavefront:
        return self[1]

    @property
    def past(self) -> Wavefront:
        return self[2]
