"""
Base Classes for Wavefront Integrators

Provides abstract base class and data structures for the numerical
integrators that advance a ray fan through time.

The ray equations are 6 coupled first-order ODEs per ray, written in
the time domain on a spherical earth:
    dx/dt = c^2 p             (position evolution)
    dp/dt = -grad(c) / c      (slowness evolution)

where p is the slowness vector (|p| = 1/c). The state of a whole fan is
a (6, n_de, n_az) array [rho, theta, phi, p_rho, p_theta, p_phi] and
every integrator operates on all rays at once.

Reference: Reilly & Gesey, "WaveQ3D: Fast and accurate acoustic
transmission loss in range dependent environments" (2013)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional
import numpy as np

DerivativeFunc = Callable[[np.ndarray, float], np.ndarray]


@dataclass
class IntegrationStep:
    """
    Result of a single integration step.

    Attributes:
        state: New state array, same shape as the input state
        error_estimate: Local truncation error estimate (0 if not computed)
        step_size_used: Largest magnitude time step taken (seconds)
        derivatives_computed: Number of derivative evaluations
        accepted: Whether the error estimate met the tolerance
    """
    state: np.ndarray
    error_estimate: float
    step_size_used: float
    derivatives_computed: int
    accepted: bool = True

    def __repr__(self) -> str:
        return (f"IntegrationStep(error={self.error_estimate:.2e}, "
                f"dt={self.step_size_used:.4f}s, "
                f"derivs={self.derivatives_computed}, "
                f"accepted={self.accepted})")


@dataclass
class IntegrationStats:
    """
    Statistics accumulated over a propagation run.

    Attributes:
        total_steps: Total number of integration steps taken
        rejected_steps: Steps whose error estimate exceeded the tolerance
        total_derivative_evals: Total derivative function calls
        ray_steps: Individual ray advances (steps x rays in the fan)
        max_error: Maximum error estimate encountered
    """
    total_steps: int = 0
    rejected_steps: int = 0
    total_derivative_evals: int = 0
    ray_steps: int = 0
    max_error: float = 0.0

    def update(self, step_result: IntegrationStep) -> None:
        """Update statistics with a step result."""
        self.total_steps += 1
        self.total_derivative_evals += step_result.derivatives_computed
        self.ray_steps += int(np.prod(step_result.state.shape[1:]))
        self.max_error = max(self.max_error, step_result.error_estimate)
        if not step_result.accepted:
            self.rejected_steps += 1

    def __repr__(self) -> str:
        return (f"IntegrationStats(steps={self.total_steps}, "
                f"rejected={self.rejected_steps}, "
                f"derivs={self.total_derivative_evals}, "
                f"rays={self.ray_steps}, "
                f"max_error={self.max_error:.2e})")


class BaseIntegrator(ABC):
    """
    Abstract base class for wavefront integrators.

    All integrators solve
        dy/dt = f(y, t)

    for a state array y whose leading axis holds the 6 ray variables.

    Subclasses must implement:
        - step(): Perform one integration step
        - name(): Return integrator name for logging

    Multistep integrators (leapfrog) need the state one step earlier and
    set ``requires_previous``.

    Attributes:
        derivative_func: Function f(y, t) returning an array shaped like y
        tolerance: Error tolerance used to flag steps (error-estimating methods)
        stats: Integration statistics
    """

    requires_previous = False

    def __init__(self, derivative_func: DerivativeFunc, tolerance: float = 1e-6):
        """
        Initialize integrator.

        Args:
            derivative_func: Function computing dy/dt given (state, time)
            tolerance: Local error tolerance for quality monitoring
        """
        self.derivative_func = derivative_func
        self.tolerance = tolerance
        self.stats = IntegrationStats()

    @abstractmethod
    def step(
        self,
        state: np.ndarray,
        dt: float,
        time: float,
        previous: Optional[np.ndarray] = None,
    ) -> IntegrationStep:
        """
        Perform single integration step.

        Args:
            state: Current state, leading axis of length 6
            dt: Time step (seconds)
            time: Time of the current state (seconds)
            previous: State at time - dt, for multistep methods

        Returns:
            IntegrationStep with new state and diagnostics
        """
        pass

    @abstractmethod
    def name(self) -> str:
        """
        Return integrator name for logging.

        Returns:
            Human-readable integrator name
        """
        pass

    def reset_stats(self) -> None:
        """Reset integration statistics for a new run."""
        self.stats = IntegrationStats()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(tol={self.tolerance})"
