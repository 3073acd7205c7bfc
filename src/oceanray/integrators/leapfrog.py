"""
Time-Centered (Leapfrog) Integrator

Second-order multistep scheme used to march the wavefront:

    y(t + dt) = y(t - dt) + 2 dt f(y(t), t)

It needs one derivative evaluation per step and the state one step
back, which the wave queue keeps in its three-slice history. After a
boundary reflection the "previous" state handed to this integrator must
be the reflected ray's image at the current time, not the incident ray,
so that all three states lie on one smooth trajectory.
"""

import numpy as np
from typing import Optional

from .base import BaseIntegrator, IntegrationStep


class LeapfrogIntegrator(BaseIntegrator):
    """
    Second-order time-centered integrator.

    The scheme is started by a one-sided step (see RK4Integrator), after
    which each step reuses the previous state.
    """

    requires_previous = True

    def name(self) -> str:
        """Return integrator name."""
        return "Leapfrog (2nd Order Time-Centered)"

    def step(
        self,
        state: np.ndarray,
        dt: float,
        time: float,
        previous: Optional[np.ndarray] = None,
    ) -> IntegrationStep:
        """
        Perform one leapfrog step.

        Args:
            state: State at time t
            dt: Time step (seconds)
            time: Current time t
            previous: State at time t - dt

        Returns:
            IntegrationStep with the state at t + dt

        Raises:
            ValueError: If previous is missing or mis-shaped
        """
        if previous is None:
            raise ValueError("Leapfrog integration requires the previous state")
        if previous.shape != state.shape:
            raise ValueError(
                f"previous state shape {previous.shape} does not match {state.shape}")

        derivative = self.derivative_func(state, time)
        result = IntegrationStep(
            state=previous + 2.0 * dt * derivative,
            error_estimate=0.0,
            step_size_used=float(abs(dt)),
            derivatives_computed=1,
        )
        self.stats.update(result)
        return result
