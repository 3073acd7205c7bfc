"""
Volume Attenuation Models

Absorption of sound in sea water, in dB per meter of travel. Results
have the broadcast shape of the positions with a trailing frequency axis.
"""

from abc import ABC, abstractmethod
import numpy as np

from common.constants import DB_PER_KM_TO_DB_PER_M


class AttenuationModel(ABC):
    """Abstract base class for volume attenuation."""

    @abstractmethod
    def absorption(self, lat, lon, alt, frequencies, time: float = 0.0) -> np.ndarray:
        """
        Compute volume attenuation.

        Args:
            lat: Latitude (degrees)
            lon: Longitude (degrees)
            alt: Altitude (meters, negative below sea level)
            frequencies: 1-D array of frequencies (Hz)
            time: Simulation time (seconds)

        Returns:
            Attenuation in dB/m, shape position.shape + (n_freq,)
        """
        pass


def _position_shape(lat, lon, alt) -> tuple:
    return np.broadcast(np.asarray(lat), np.asarray(lon), np.asarray(alt)).shape


class ConstantAttenuation(AttenuationModel):
    """Frequency independent attenuation, e.g. 0 for a lossless ocean."""

    def __init__(self, coefficient: float = 0.0):
        """
        Args:
            coefficient: Attenuation (dB/m)
        """
        if coefficient < 0:
            raise ValueError(f"Attenuation must be non-negative, got {coefficient}")
        self.coefficient = float(coefficient)

    def absorption(self, lat, lon, alt, frequencies, time: float = 0.0):
        shape = _position_shape(lat, lon, alt) + (len(np.atleast_1d(frequencies)),)
        return np.full(shape, self.coefficient)

    def __repr__(self) -> str:
        return f"ConstantAttenuation({self.coefficient} dB/m)"


class ThorpAttenuation(AttenuationModel):
    """
    Thorp (1967) empirical absorption for sea water.

    alpha (dB/km) = 0.11 f^2/(1 + f^2) + 44 f^2/(4100 + f^2)
                    + 2.75e-4 f^2 + 0.003,    f in kHz

    Valid from a few hundred Hz to about 50 kHz; depth dependence is ignored.
    """

    @staticmethod
    def coefficient(frequencies) -> np.ndarray:
        """Absorption in dB/m for each frequency (Hz)."""
        f2 = (np.atleast_1d(np.asarray(frequencies, dtype=float)) / 1000.0) ** 2
        db_per_km = 0.11 * f2 / (1.0 + f2) + 44.0 * f2 / (4100.0 + f2) + 2.75e-4 * f2 + 0.003
        return db_per_km * DB_PER_KM_TO_DB_PER_M

    def absorption(self, lat, lon, alt, frequencies, time: float = 0.0):
        alpha = self.coefficient(frequencies)
        shape = _position_shape(lat, lon, alt) + alpha.shape
        return np.broadcast_to(alpha, shape).copy()

    def __repr__(self) -> str:
        return "ThorpAttenuation()"
