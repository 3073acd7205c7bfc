"""
Boundary Reflection Loss Models

A reflection model maps grazing angle and frequency to the loss (dB,
positive) and phase change (radians) of a ray bouncing off a boundary.
Results have shape grazing.shape + (n_freq,).
"""

from abc import ABC, abstractmethod
from typing import Tuple
import numpy as np


class ReflectionModel(ABC):
    """Abstract base class for boundary reflection coefficients."""

    @abstractmethod
    def coefficient(self, grazing, frequencies) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute reflection loss and phase.

        Args:
            grazing: Grazing angles (radians, 0 = horizontal)
            frequencies: 1-D array of frequencies (Hz)

        Returns:
            (loss_db, phase_rad)
        """
        pass


class ConstantReflection(ReflectionModel):
    """
    Angle and frequency independent reflection.

    The defaults describe a perfectly reflecting rigid bottom. A
    pressure-release sea surface is ConstantReflection(0.0, np.pi).
    """

    def __init__(self, loss_db: float = 0.0, phase: float = 0.0):
        self.loss_db = float(loss_db)
        self.phase = float(phase)

    def coefficient(self, grazing, frequencies):
        shape = np.shape(grazing) + (len(np.atleast_1d(frequencies)),)
        return np.full(shape, self.loss_db), np.full(shape, self.phase)

    def __repr__(self) -> str:
        return f"ConstantReflection(loss={self.loss_db} dB, phase={self.phase:.4f})"


class RayleighReflection(ReflectionModel):
    """
    Rayleigh reflection from a homogeneous fluid half-space.

        R = (m sin(g) - sqrt(n^2 - cos^2(g))) / (m sin(g) + sqrt(n^2 - cos^2(g)))

    where m is the bottom/water density ratio and n the water/bottom
    (complex) index of refraction. Attenuation in the bottom is given in
    dB per wavelength and enters as the imaginary part of n.

    Reference: Jensen et al., "Computational Ocean Acoustics", Sec. 1.6
    """

    # dB per wavelength to loss tangent: 40 * pi * log10(e)
    _DB_PER_WAVELENGTH = 40.0 * np.pi * np.log10(np.e)

    def __init__(self, density_ratio: float = 1.9, speed_ratio: float = 1.1,
                 attenuation: float = 0.8):
        """
        Args:
            density_ratio: Bottom density / water density
            speed_ratio: Bottom sound speed / water sound speed
            attenuation: Bottom attenuation (dB/wavelength)
        """
        if density_ratio <= 0 or speed_ratio <= 0:
            raise ValueError("density_ratio and speed_ratio must be positive")
        self.density_ratio = density_ratio
        self.speed_ratio = speed_ratio
        self.attenuation = attenuation

    def coefficient(self, grazing, frequencies):
        grazing = np.asarray(grazing, dtype=float)
        delta = self.attenuation / self._DB_PER_WAVELENGTH
        n = (1.0 + 1j * delta) / self.speed_ratio
        sin_g = np.sin(grazing)
        root = np.sqrt(n * n - np.cos(grazing) ** 2 + 0j)
        r = (self.density_ratio * sin_g - root) / (self.density_ratio * sin_g + root)

        loss = -20.0 * np.log10(np.maximum(np.abs(r), 1e-15))
        phase = np.angle(r)
        n_freq = len(np.atleast_1d(frequencies))
        shape = grazing.shape + (n_freq,)
        return (np.broadcast_to(loss[..., np.newaxis], shape).copy(),
                np.broadcast_to(phase[..., np.newaxis], shape).copy())

    def __repr__(self) -> str:
        return (f"RayleighReflection(density={self.density_ratio}, "
                f"speed={self.speed_ratio}, atten={self.attenuation})")
