"""
Eigenray Record

An eigenray is a single acoustic path connecting the source to one
target, as found by the eigenray search.
"""

from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True)
class Eigenray:
    """
    One source-to-target acoustic path.

    Attributes:
        time: Travel time (seconds)
        intensity: One-way transmission loss per frequency (dB, positive = loss)
        phase: Phase per frequency, relative to the source (radians, [-pi, pi))
        source_de: Launch D/E angle (degrees, positive up)
        source_az: Launch AZ angle (degrees, clockwise from north)
        target_de: Arrival D/E angle of the ray direction at the target (degrees)
        target_az: Arrival AZ angle of the ray direction at the target (degrees)
        surface: Number of surface reflections
        bottom: Number of bottom reflections
        caustic: Number of caustics the path has passed through
        extrapolated: True if the path lies outside the launched ray fan,
                      in which case its accuracy is reduced
    """
    time: float
    intensity: tuple
    phase: tuple
    source_de: float
    source_az: float
    target_de: float
    target_az: float
    surface: int = 0
    bottom: int = 0
    caustic: int = 0
    extrapolated: bool = False

    def __post_init__(self):
        # Accept any sequence but always store immutable tuples of floats
        object.__setattr__(self, 'intensity', tuple(float(v) for v in np.atleast_1d(self.intensity)))
        object.__setattr__(self, 'phase', tuple(float(v) for v in np.atleast_1d(self.phase)))
        if len(self.intensity) != len(self.phase):
            raise ValueError("intensity and phase must have one value per frequency")

    @property
    def num_frequencies(self) -> int:
        return len(self.intensity)

    def amplitude(self) -> np.ndarray:
        """Complex pressure amplitude per frequency, 10^(-I/20) e^(i phase)."""
        return 10.0 ** (-np.asarray(self.intensity) / 20.0) * np.exp(1j * np.asarray(self.phase))

    def __repr__(self) -> str:
        return (f"Eigenray(t={self.time:.6f}s, TL={self.intensity[0]:.2f}dB, "
                f"src=({self.source_de:.3f}, {self.source_az:.3f}), "
                f"srf={self.surface}, btm={self.bottom}, cst={self.caustic}"
                f"{', extrapolated' if self.extrapolated else ''})")
