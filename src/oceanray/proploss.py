"""
Propagation Loss Accumulator

Collects the eigenrays found for every target and reduces them to one
transmission loss and phase per frequency.

Coherent summation adds the complex pressure amplitudes

    A = sum_k 10^(-I_k/20) exp(i phi_k)

so that paths interfere; incoherent summation adds their powers. Loss
is reported as -20 log10 |A| (positive dB), capped at the total-loss
value used for targets that no eigenray reached.
"""

import logging
from typing import List, Optional
import numpy as np

from common.constants import MIN_AMPLITUDE, TOTAL_LOSS_DB
from common.geodesy import wrap_phase
from .eigenray import Eigenray
from .launch_grid import validate_frequencies

logger = logging.getLogger(__name__)


def validate_targets(targets) -> np.ndarray:
    """
    Check a target array of (latitude, longitude, altitude) triples.

    Raises:
        ValueError: If the array is empty, does not end in an axis of
                    length 3, holds non-finite values or latitudes
                    outside [-90, 90]
    """
    points = np.array(targets, dtype=float)
    if points.ndim == 1:
        points = points.reshape(1, 3) if points.size == 3 else points
    if points.ndim < 2 or points.shape[-1] != 3:
        raise ValueError(f"targets must have shape (..., 3), got {points.shape}")
    if points.size == 0:
        raise ValueError("at least one target is required")
    if not np.all(np.isfinite(points)):
        raise ValueError("target positions must be finite")
    if np.any(np.abs(points[..., 0]) > 90.0):
        raise ValueError("target latitudes must lie between -90 and 90 degrees")
    return points


class PropagationLoss:
    """
    Eigenray lists and summed loss for a set of targets.

    Targets may be laid out on any grid; the leading axes of the target
    array index the results.

    Example:
        loss = PropagationLoss([[45.02, -45.0, -1000.0]], frequencies=[10e3])
        ... run a WaveQueue with targets=loss ...
        loss.sum_eigenrays()
        print(loss.intensity[0, 0])
    """

    def __init__(self, targets, frequencies=None, total_loss_db: float = TOTAL_LOSS_DB):
        """
        Args:
            targets: (..., 3) array of (latitude, longitude, altitude)
            frequencies: Frequencies (Hz); may be left for the wave queue to bind
            total_loss_db: Loss reported where no eigenray arrives (dB)
        """
        self.targets = validate_targets(targets)
        self.targets.flags.writeable = False
        self.total_loss_db = float(total_loss_db)
        self.frequencies = None if frequencies is None else validate_frequencies(frequencies)

        self._eigenrays: List[List[Eigenray]] = [[] for _ in range(self.num_targets)]
        self.intensity: Optional[np.ndarray] = None
        self.phase: Optional[np.ndarray] = None

    @property
    def target_shape(self) -> tuple:
        return self.targets.shape[:-1]

    @property
    def num_targets(self) -> int:
        return int(np.prod(self.target_shape))

    @property
    def flat_targets(self) -> np.ndarray:
        """(n, 3) view of the targets in row-major order."""
        return self.targets.reshape(-1, 3)

    def bind_frequencies(self, frequencies) -> None:
        """
        Attach the run frequencies, checking any already given.

        Raises:
            ValueError: If different frequencies were given at construction
        """
        freqs = validate_frequencies(frequencies)
        if self.frequencies is None:
            self.frequencies = freqs
        elif self.frequencies.shape != freqs.shape or not np.allclose(self.frequencies, freqs):
            raise ValueError("propagation loss frequencies do not match the wave queue")

    def _flat_index(self, index) -> int:
        if np.ndim(index) == 0 and isinstance(index, (int, np.integer)):
            if not 0 <= index < self.num_targets:
                raise IndexError(f"target index {index} out of range")
            return int(index)
        return int(np.ravel_multi_index(tuple(index), self.target_shape))

    def eigenrays(self, *index) -> List[Eigenray]:
        """
        Eigenrays found for one target, in the order they were found.

        Index by flat target number or by one index per target axis.
        """
        if len(index) == 1:
            index = index[0]
        return list(self._eigenrays[self._flat_index(index)])

    def add_eigenray(self, index, ray: Eigenray) -> None:
        """Append an eigenray to a target's list."""
        if self.frequencies is not None and ray.num_frequencies != self.frequencies.size:
            raise ValueError(
                f"eigenray has {ray.num_frequencies} frequencies, expected {self.frequencies.size}")
        self._eigenrays[self._flat_index(index)].append(ray)

    @property
    def num_eigenrays(self) -> int:
        return sum(len(rays) for rays in self._eigenrays)

    def sum_eigenrays(self, coherent: bool = True) -> None:
        """
        Reduce each target's eigenrays to one loss and phase per frequency.

        Results are stored in ``intensity`` and ``phase`` with shape
        target_shape + (n_freq,). Summation only reads the eigenray lists,
        so calling it again gives the same result.

        Args:
            coherent: Sum complex amplitudes (True) or powers (False)
        """
        if self.frequencies is None:
            raise ValueError("frequencies are unknown; bind them before summing")
        n_freq = self.frequencies.size
        intensity = np.full((self.num_targets, n_freq), self.total_loss_db)
        phase = np.zeros((self.num_targets, n_freq))

        for k, rays in enumerate(self._eigenrays):
            if not rays:
                continue
            amplitudes = np.array([ray.amplitude() for ray in rays])
            if coherent:
                total = amplitudes.sum(axis=0)
                magnitude = np.abs(total)
                phase[k] = wrap_phase(np.angle(total))
            else:
                magnitude = np.sqrt(np.sum(np.abs(amplitudes) ** 2, axis=0))
            loss = -20.0 * np.log10(np.maximum(magnitude, MIN_AMPLITUDE))
            intensity[k] = np.minimum(loss, self.total_loss_db)

        self.intensity = intensity.reshape(self.target_shape + (n_freq,))
        self.phase = phase.reshape(self.target_shape + (n_freq,))
        logger.info(f"Summed {self.num_eigenrays} eigenrays over {self.num_targets} targets "
                    f"({'coherent' if coherent else 'incoherent'})")
