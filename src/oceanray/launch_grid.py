"""
Launch Angle Grid

Depression/elevation (D/E) and azimuthal (AZ) launch angles of the ray
fan. D/E is measured from the local horizontal, positive up; AZ is
measured clockwise from true north. Both sequences must be strictly
monotonic so that adjacent rays bound a well-defined cell.
"""

from dataclasses import dataclass, field
import numpy as np

from common.constants import DEG_TO_RAD


def linear_sequence(first: float, increment: float, last: float) -> np.ndarray:
    """
    Inclusive linear sequence from first to last.

    Values are computed as first + n * increment, so rounding does not
    accumulate, and last is included when it falls on the sequence to
    within a small fraction of the increment.

    Example:
        linear_sequence(-1.0, 0.05, 1.0)   # 41 values
    """
    if increment == 0:
        raise ValueError("increment must be non-zero")
    count = int(np.floor((last - first) / increment + 1e-9)) + 1
    if count < 1:
        raise ValueError(f"empty sequence from {first} to {last} by {increment}")
    return first + increment * np.arange(count, dtype=float)


def validate_angles(values, name: str) -> np.ndarray:
    """
    Check that a launch angle sequence is usable.

    Raises:
        ValueError: If the sequence is not 1-D, has fewer than two
                    entries, contains non-finite values or is not
                    strictly monotonic
    """
    angles = np.array(values, dtype=float)
    if angles.ndim != 1:
        raise ValueError(f"{name} must be one-dimensional")
    if angles.size < 2:
        raise ValueError(f"{name} needs at least two angles, got {angles.size}")
    if not np.all(np.isfinite(angles)):
        raise ValueError(f"{name} contains non-finite values")
    steps = np.diff(angles)
    if not (np.all(steps > 0) or np.all(steps < 0)):
        raise ValueError(f"{name} must be strictly monotonic")
    return angles


def validate_frequencies(values) -> np.ndarray:
    """Frequencies must be positive, finite and strictly increasing."""
    freqs = np.atleast_1d(np.asarray(values, dtype=float))
    if freqs.ndim != 1 or freqs.size == 0:
        raise ValueError("at least one frequency is required")
    if not np.all(np.isfinite(freqs)) or np.any(freqs <= 0):
        raise ValueError("frequencies must be positive and finite")
    if np.any(np.diff(freqs) <= 0):
        raise ValueError("frequencies must be strictly increasing")
    return freqs


@dataclass
class LaunchGrid:
    """
    Launch angles of the ray fan.

    Attributes:
        de: D/E angles (degrees, positive up)
        az: AZ angles (degrees, clockwise from north)
    """
    de: np.ndarray
    az: np.ndarray
    de_rad: np.ndarray = field(init=False, repr=False)
    az_rad: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.de = validate_angles(self.de, "D/E sequence")
        self.az = validate_angles(self.az, "AZ sequence")
        if np.any(np.abs(self.de) > 90.0):
            raise ValueError("D/E angles must lie between -90 and 90 degrees")
        self.de.flags.writeable = False
        self.az.flags.writeable = False
        self.de_rad = self.de * DEG_TO_RAD
        self.az_rad = self.az * DEG_TO_RAD

    @property
    def shape(self) -> tuple:
        """(n_de, n_az)"""
        return (self.de.size, self.az.size)

    @property
    def cell_shape(self) -> tuple:
        """Number of cells between adjacent rays."""
        return (self.de.size - 1, self.az.size - 1)

    def mesh(self):
        """Launch angles broadcast over the grid, in radians."""
        return np.meshgrid(self.de_rad, self.az_rad, indexing="ij")
