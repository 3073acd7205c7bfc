"""
Wavefront Queue

Marches every ray of the launch fan through the ocean in lock-step, one
global time step at a time, and hands each pair of consecutive
wavefronts to the eigenray search.

Each step:
1. Integrate the ray equations for all valid rays with the time-centered
   (leapfrog) scheme, using the two most recent states.
2. Reflect rays that crossed the surface or bottom: locate the collision,
   mirror the slowness about the boundary normal, finish the step, and
   keep an image state (the reflected ray traced back to the start of
   the step) in place of the incident state.
3. Accumulate volume attenuation, reflection loss and phase; mark rays
   that left the water column invalid; abort on non-finite values.
4. Update the beam Jacobian and count caustics, where its orientation
   corrected sign reverses (-pi/2 phase each).
5. Search the new window for eigenrays, rotate the history and emit the
   new wavefront to any attached recorders.

The queue has no stopping condition of its own; callers loop on
``step()`` until their time budget is spent.

Example:
    ocean = OceanModel.for_area(45.0)
    loss = PropagationLoss([[45.02, -45.0, -1000.0]])
    wave = WaveQueue(ocean, [10e3], (45.0, -45.0, -1000.0),
                     linear_sequence(-60, 1, 60), linear_sequence(-4, 1, 4),
                     time_step=0.1, targets=loss)
    wave.run(3.5)
    loss.sum_eigenrays()
"""

import logging
from typing import List, Optional, Sequence
import numpy as np

from common.config import SearchConfig
from common.constants import DOMAIN_TOLERANCE_M
from common.geodesy import geographic_to_spherical
from .eigenray_search import EigenraySearch
from .exceptions import NumericalInstabilityError
from .integrators import RK4Integrator, create_integrator
from .launch_grid import LaunchGrid, validate_frequencies
from .ocean import OceanModel
from .proploss import PropagationLoss
from .ray_equations import RayEquations, cartesian_geometry, initial_slowness
from .reflection import BoundaryReflector
from .wavefront import Wavefront, WavefrontHistory, beam_jacobian, detect_caustics

logger = logging.getLogger(__name__)


class WaveQueue:
    """
    Time-marching wavefront engine.

    The queue owns the three most recent wavefronts; everything it hands
    out is a read-only snapshot.
    """

    def __init__(
        self,
        ocean: OceanModel,
        frequencies: Sequence[float],
        source: Sequence[float],
        de: Sequence[float],
        az: Sequence[float],
        time_step: float,
        targets: Optional[PropagationLoss] = None,
        integrator: str = "leapfrog",
        search_config: Optional[SearchConfig] = None,
        domain_tolerance: float = DOMAIN_TOLERANCE_M,
        time: float = 0.0,
    ):
        """
        Initialize the ray fan at the source and seed the history.

        Args:
            ocean: Ocean environment
            frequencies: Frequencies (Hz), strictly increasing
            source: (latitude, longitude, altitude) of the source
            de: D/E launch angles (degrees), strictly monotonic
            az: AZ launch angles (degrees), strictly monotonic
            time_step: Global time step (seconds)
            targets: Accumulator receiving the eigenrays, or None
            integrator: Name of the time integrator
            search_config: Eigenray search settings
            domain_tolerance: Overshoot past a boundary (m) before a ray is invalid
            time: Launch time (seconds)

        Raises:
            ValueError: For invalid angles, frequencies, time step, source
                        position or targets
        """
        self.grid = LaunchGrid(de, az)
        self.frequencies = validate_frequencies(frequencies)
        if not np.isfinite(time_step) or time_step <= 0:
            raise ValueError(f"time_step must be positive, got {time_step}")
        if domain_tolerance < 0:
            raise ValueError("domain_tolerance must be non-negative")

        self.ocean = ocean
        self.time_step = float(time_step)
        self.domain_tolerance = float(domain_tolerance)
        self.equations = RayEquations(ocean)
        self.integrator = create_integrator(integrator, self.equations)
        self._rk4 = RK4Integrator(self.equations)
        self._reflector = BoundaryReflector(self.equations, self.frequencies)

        source = np.asarray(source, dtype=float)
        if source.shape != (3,) or not np.all(np.isfinite(source)):
            raise ValueError("source must be a finite (latitude, longitude, altitude) triple")
        lat, lon, alt = source
        if not (ocean.bottom_altitude(lat, lon, time) <= alt <= ocean.surface_altitude(lat, lon, time)):
            raise ValueError(f"source altitude {alt} m is outside the water column")
        self.source = (float(lat), float(lon), float(alt))
        speed, _ = ocean.sound_speed(lat, lon, alt, time)
        self.source_speed = float(speed)

        self.targets = targets
        self.search = EigenraySearch(self.grid, self.frequencies, self.source_speed, search_config)
        if targets is not None:
            targets.bind_frequencies(self.frequencies)
            self.search.set_targets(targets.flat_targets, ocean.earth_radius)

        self._t0 = float(time)
        self._step_count = 0
        self._recorders: List = []
        self.persistence_errors: List[Exception] = []
        self._history = WavefrontHistory()
        self._seed()

        logger.info(
            f"Wave queue initialized: {self.grid.shape[0]}x{self.grid.shape[1]} rays, "
            f"{self.frequencies.size} frequencies, dt={self.time_step}s, "
            f"integrator={self.integrator.name()}, "
            f"targets={0 if targets is None else targets.num_targets}")

    def _seed(self) -> None:
        """Fill the history with the launch state and a one-sided step back."""
        shape = self.grid.shape
        de, az = self.grid.mesh()
        rho, theta, phi = geographic_to_spherical(*self.source, self.ocean.earth_radius)
        start = np.concatenate([
            np.stack([np.full(shape, rho), np.full(shape, theta), np.full(shape, phi)]),
            initial_slowness(de, az, self.source_speed),
        ])
        back = self._rk4.advance(start, -self.time_step, self._t0)

        n_freq = self.frequencies.size
        for t, state in ((self._t0 - self.time_step, back), (self._t0, start)):
            self._history.push(self._build(
                t, state,
                attenuation=np.zeros(shape + (n_freq,)),
                phase=np.zeros(shape + (n_freq,)),
                surface=np.zeros(shape, dtype=np.int32),
                bottom=np.zeros(shape, dtype=np.int32),
                caustic=np.zeros(shape, dtype=np.int32),
                valid=np.ones(shape, dtype=bool),
            ))
        self._previous_state = back

    def _sample(self, state: np.ndarray, time: float):
        """Environment and Cartesian geometry at the ray positions."""
        lat, lon, alt = self.equations.geographic(state)
        speed, _ = self.ocean.sound_speed(lat, lon, alt, time)
        speed = np.array(np.broadcast_to(speed, lat.shape), dtype=float)
        absorption = np.array(self.ocean.absorption(lat, lon, alt, self.frequencies, time),
                              dtype=float)
        position, velocity = cartesian_geometry(state, speed)
        return speed, absorption, position, velocity

    def _build(self, time, state, attenuation, phase, surface, bottom, caustic, valid,
               sample=None, jacobian=None) -> Wavefront:
        speed, absorption, position, velocity = sample or self._sample(state, time)
        if jacobian is None:
            jacobian = beam_jacobian(position, velocity, self.grid.de_rad, self.grid.az_rad,
                                     surface, bottom)
        return Wavefront(
            time=time, state=state, position=position, velocity=velocity,
            sound_speed=speed, absorption=absorption, attenuation=attenuation,
            phase=phase, jacobian=jacobian, surface=surface, bottom=bottom,
            caustic=caustic, valid=valid, earth_radius=self.ocean.earth_radius,
        )

    @property
    def history(self) -> WavefrontHistory:
        return self._history

    @property
    def wavefront(self) -> Wavefront:
        """The most recent wavefront."""
        return self._history.current

    @property
    def step_count(self) -> int:
        return self._step_count

    def time(self) -> float:
        """Current simulation time (seconds)."""
        return self._history.current.time

    def attach_recorder(self, recorder, record_current: bool = True) -> None:
        """
        Send every new wavefront to ``recorder.record(wavefront)``.

        Recorder failures (any ``OSError``, which includes
        ``PersistenceError``) are logged and kept in ``persistence_errors``;
        they never stop the simulation.
        """
        self._recorders.append(recorder)
        if record_current:
            self._emit(recorder, self._history.current)

    def _emit(self, recorder, wavefront: Wavefront) -> None:
        try:
            recorder.record(wavefront)
        except OSError as e:
            logger.error(f"Failed to record wavefront at t={wavefront.time:.3f}s: {e}",
                         extra={"sim_time": wavefront.time})
            self.persistence_errors.append(e)

    def run(self, time_max: float) -> int:
        """
        Step until the simulation time reaches time_max.

        Returns:
            Number of steps taken
        """
        steps = 0
        while self.time() < time_max:
            self.step()
            steps += 1
        logger.info(f"Reached t={self.time():.3f}s after {steps} steps: {self.integrator.stats}, "
                    f"{self.equations.evaluations} ray equation evaluations",
                    extra={"sim_time": self.time()})
        return steps

    def step(self) -> Wavefront:
        """
        Advance every ray by one time step.

        Returns:
            The new wavefront

        Raises:
            NumericalInstabilityError: If a valid ray became non-finite
        """
        current = self._history.current
        dt = self.time_step
        t = current.time
        t_new = self._t0 + (self._step_count + 1) * dt
        valid = current.valid

        with np.errstate(invalid='ignore', divide='ignore', over='ignore'):
            result = self.integrator.step(current.state, dt, t, previous=self._previous_state)
        state = np.where(valid, result.state, current.state)

        surface = current.surface.copy()
        bottom = current.bottom.copy()
        attenuation = current.attenuation.copy()
        phase = current.phase.copy()
        start_state = current.state.copy()

        lat, lon, alt = self.equations.geographic(state)
        above = valid & (alt > self.ocean.surface_altitude(lat, lon, t_new))
        below = valid & ~above & (alt < self.ocean.bottom_altitude(lat, lon, t_new))
        reflected = above | below

        for crossed, boundary, outside_above, counter in (
                (above, self.ocean.surface, True, surface),
                (below, self.ocean.bottom, False, bottom)):
            if not np.any(crossed):
                continue
            hit = self._reflector.reflect(current.state[:, crossed], state[:, crossed],
                                          dt, t, boundary, outside_above)
            state[:, crossed] = hit.end
            start_state[:, crossed] = hit.image
            counter[crossed] += 1
            attenuation[crossed] += hit.loss
            phase[crossed] += hit.phase

        self._check_finite(state, attenuation, phase, valid, t_new)

        lat, lon, alt = self.equations.geographic(state)
        tol = self.domain_tolerance
        inside = ((alt <= self.ocean.surface_altitude(lat, lon, t_new) + tol)
                  & (alt >= self.ocean.bottom_altitude(lat, lon, t_new) - tol)
                  & (state[1] > 0.0) & (state[1] < np.pi))
        new_valid = valid & inside
        lost = int(np.count_nonzero(valid & ~new_valid))
        if lost:
            logger.warning(f"{lost} rays left the water column at t={t_new:.3f}s",
                           extra={"sim_time": t_new})

        sample = self._sample(state, t_new)
        speed, absorption = sample[0], sample[1]
        path_loss = 0.5 * dt * (current.absorption * current.sound_speed[..., np.newaxis]
                                + absorption * speed[..., np.newaxis])
        attenuation += np.where(new_valid[..., np.newaxis], path_loss, 0.0)

        jacobian = beam_jacobian(sample[2], sample[3], self.grid.de_rad, self.grid.az_rad,
                                 surface, bottom)
        family = np.where(new_valid, surface.astype(np.int64) * 65536 + bottom, -1)
        caustics = detect_caustics(current, jacobian, family) & new_valid
        caustic = current.caustic + caustics
        phase[caustics] -= 0.5 * np.pi

        new = self._build(t_new, state, attenuation, phase, surface, bottom, caustic,
                          new_valid, sample=sample, jacobian=jacobian)

        if np.any(reflected):
            flag = reflected[..., np.newaxis]
            start = self._build(
                t, start_state,
                attenuation=np.where(flag, attenuation, current.attenuation),
                phase=np.where(flag, phase, current.phase),
                surface=surface.copy(), bottom=bottom.copy(),
                caustic=current.caustic.copy(), valid=current.valid.copy(),
            )
        else:
            start = current

        if self.targets is not None:
            found = self.search.search(start, new)
            for index, ray in found:
                self.targets.add_eigenray(index, ray)
            if found:
                logger.debug(f"t={t_new:.3f}s: {len(found)} eigenrays found")

        self._previous_state = start.state
        self._history.push(new)
        self._step_count += 1

        if np.any(caustics):
            logger.debug(f"{int(np.count_nonzero(caustics))} caustics at t={t_new:.3f}s")

        for recorder in self._recorders:
            self._emit(recorder, new)
        return new

    def _check_finite(self, state, attenuation, phase, valid, time) -> None:
        bad = ~(np.all(np.isfinite(state), axis=0)
                & np.all(np.isfinite(attenuation), axis=-1)
                & np.all(np.isfinite(phase), axis=-1)) & valid
        count = int(np.count_nonzero(bad))
        if count:
            logger.error(f"Non-finite ray state for {count} rays at t={time:.3f}s",
                         extra={"sim_time": time})
            raise NumericalInstabilityError(
                f"{count} rays became non-finite at t={time:.3f}s", time=time, rays=count)
