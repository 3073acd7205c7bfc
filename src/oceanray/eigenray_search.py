"""
Eigenray Search and Interpolation

Finds the acoustic paths that connect the source to each target between
two consecutive wavefronts.

Algorithm:
1. Every cell of the ray fan (adjacent D/E rows x adjacent AZ columns)
   spans a small volume between the two wavefronts. The target's offset
   from the 8 corner nodes is projected onto a frame aligned with the
   cell (D/E edge, AZ edge, propagation direction). A cell is a
   candidate only if the offsets change sign along every axis, i.e. the
   target lies within the cell's (slightly enlarged) box.
2. For each candidate the wavefront is modelled as a tensor-product
   cubic Hermite surface in (D/E, AZ), with tangents from finite
   differences across neighbouring rays of the same reflection family,
   and as a cubic Hermite in time using positions and ray velocities at
   both ends. Newton's method solves model(u, v, s) = target.
3. Roots inside the cell are converted into Eigenrays. Cells on the
   edge of the fan may extrapolate up to ``extrapolation_limit`` cells
   outward; such eigenrays are flagged as extrapolated.

Cell parameters follow half-open intervals, u, v, s in [0, 1), after
snapping values within ``snap_tolerance`` of a cell edge onto it. A
target lying exactly on a grid line therefore belongs to the cell whose
lower-index edge holds it, and a target reached exactly at a time step
belongs to the later window.

At most one eigenray is produced per cell per time step. Two paths that
fall between the same pair of rays in the same step cannot be separated;
finer launch angle spacing is the only remedy.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

import numpy as np

from common.config import SearchConfig
from common.constants import RAD_TO_DEG
from common.geodesy import (
    cartesian_to_enu,
    geographic_to_spherical,
    spherical_to_cartesian,
    wrap_phase,
)
from .eigenray import Eigenray
from .launch_grid import LaunchGrid
from .reflection import hermite_basis, hermite_basis_derivative
from .wavefront import Wavefront

logger = logging.getLogger(__name__)

# Newton starting points tried in order until one converges
_START_POINTS = (
    (0.5, 0.5, 0.5),
    (0.5, 0.5, 0.0),
    (0.5, 0.5, 1.0),
    (0.0, 0.5, 0.5),
    (1.0, 0.5, 0.5),
    (0.5, 0.0, 0.5),
    (0.5, 1.0, 0.5),
)

_E_LOWER = np.array([0.0, 1.0, 0.0, 0.0])
_E_UPPER = np.array([0.0, 0.0, 1.0, 0.0])


def tangent_weights(angles: np.ndarray, i: int, use_lower: bool, use_upper: bool):
    """
    Finite-difference tangent weights for the cell [i, i+1].

    Tangents are expressed per unit of the cell parameter u, over the
    four nodes i-1, i, i+1, i+2. A neighbour outside the cell is used
    only when allowed; otherwise the tangent falls back to the secant
    across the cell.

    Returns:
        (lower, upper) weight vectors for the tangents at nodes i and i+1
    """
    h = angles[i + 1] - angles[i]
    lower = np.zeros(4)
    upper = np.zeros(4)

    if use_lower:
        hm, hp = angles[i] - angles[i - 1], h
        lower[0:3] = (-hp / (hm * (hm + hp)), (hp - hm) / (hm * hp), hm / (hp * (hm + hp)))
        lower *= h
    else:
        lower[1:3] = (-1.0, 1.0)

    if use_upper:
        hm, hp = h, angles[i + 2] - angles[i + 1]
        upper[1:4] = (-hp / (hm * (hm + hp)), (hp - hm) / (hm * hp), hm / (hp * (hm + hp)))
        upper *= h
    else:
        upper[1:3] = (-1.0, 1.0)

    return lower, upper


def hermite_weights(u: float, lower: np.ndarray, upper: np.ndarray):
    """
    Node weights of a 1-D cubic Hermite interpolant and their derivative.

    Outside [0, 1] the interpolant continues along its end tangents.

    Returns:
        (weights, dweights_du), each of length 4
    """
    if u < 0.0:
        return _E_LOWER + u * lower, lower
    if u > 1.0:
        return _E_UPPER + (u - 1.0) * upper, upper
    h00, h10, h01, h11 = hermite_basis(u)
    d00, d10, d01, d11 = hermite_basis_derivative(u)
    weights = h00 * _E_LOWER + h01 * _E_UPPER + h10 * lower + h11 * upper
    derivative = d00 * _E_LOWER + d01 * _E_UPPER + d10 * lower + d11 * upper
    return weights, derivative


def _snap(value: float, tolerance: float) -> float:
    nearest = round(value)
    if abs(value - nearest) < tolerance:
        return float(nearest)
    return value


def _stencil(index: int, size: int) -> np.ndarray:
    """Node indices i-1..i+2, clipped to the grid."""
    return np.clip(np.arange(index - 1, index + 3), 0, size - 1)


class _Window:
    """
    Quantities shared by every target for one pair of wavefronts.
    """

    def __init__(self, start: Wavefront, end: Wavefront, grid: LaunchGrid,
                 config: SearchConfig):
        self.start = start
        self.end = end
        self.dt = end.time - start.time
        self.grid = grid
        self.config = config

        valid = start.valid & end.valid
        self.family = np.where(valid, end.family, -1)
        fam = self.family
        self.cell_ok = ((fam[:-1, :-1] >= 0)
                        & (fam[:-1, :-1] == fam[1:, :-1])
                        & (fam[:-1, :-1] == fam[:-1, 1:])
                        & (fam[:-1, :-1] == fam[1:, 1:]))

        n_de, n_az = grid.cell_shape
        limit = config.extrapolation_limit
        self.u_range = (np.where(np.arange(n_de) == 0, -limit, 0.0),
                        np.where(np.arange(n_de) == n_de - 1, 1.0 + limit, 1.0))
        self.v_range = (np.where(np.arange(n_az) == 0, -limit, 0.0),
                        np.where(np.arange(n_az) == n_az - 1, 1.0 + limit, 1.0))

        self.nodes = self._box_nodes()
        self.axes = self._cell_frames()

    def _box_nodes(self) -> np.ndarray:
        """Corner nodes of each cell at both times, extended at the fan edges."""
        u_lo, u_hi = (r[:, np.newaxis] for r in self.u_range)
        v_lo, v_hi = (r[np.newaxis, :] for r in self.v_range)
        nodes = []
        for position in (self.start.position, self.end.position):
            c00 = position[:, :-1, :-1]
            c10 = position[:, 1:, :-1]
            c01 = position[:, :-1, 1:]
            c11 = position[:, 1:, 1:]
            for u in (u_lo, u_hi):
                for v in (v_lo, v_hi):
                    nodes.append((1 - u) * (1 - v) * c00 + u * (1 - v) * c10
                                 + (1 - u) * v * c01 + u * v * c11)
        return np.stack(nodes)

    def _cell_frames(self) -> np.ndarray:
        """Orthonormal (D/E, AZ, propagation) axes for every cell."""
        p = self.end.position
        v = self.end.velocity
        t_hat = v[:, :-1, :-1] + v[:, 1:, :-1] + v[:, :-1, 1:] + v[:, 1:, 1:]
        t_hat = t_hat / np.maximum(np.linalg.norm(t_hat, axis=0), 1e-30)

        def across(edge):
            edge = edge - np.sum(edge * t_hat, axis=0) * t_hat
            norm = np.linalg.norm(edge, axis=0)
            return edge / np.maximum(norm, 1e-30), norm

        d_u = p[:, 1:, :-1] - p[:, :-1, :-1] + p[:, 1:, 1:] - p[:, :-1, 1:]
        d_v = p[:, :-1, 1:] - p[:, :-1, :-1] + p[:, 1:, 1:] - p[:, 1:, :-1]
        e_u, norm_u = across(d_u)
        e_v, norm_v = across(d_v)

        # Fold or source point: fall back to any direction normal to t_hat
        fallback, _ = across(np.broadcast_to(np.array([1.0, 0.0, 0.0])[:, None, None], d_u.shape)
                             + 0.5 * np.broadcast_to(np.array([0.0, 1.0, 0.0])[:, None, None], d_u.shape))
        e1 = np.where(norm_u > 1e-9, e_u, np.where(norm_v > 1e-9, e_v, fallback))
        e2 = np.cross(t_hat, e1, axis=0)
        return np.stack([e1, e2, t_hat])

    def candidates(self, target: np.ndarray) -> np.ndarray:
        """(i, j) indices of cells that may hold the target, in grid order."""
        offsets = self.nodes - target[np.newaxis, :, np.newaxis, np.newaxis]
        projected = np.einsum('nkij,akij->naij', offsets, self.axes)
        lo = projected.min(axis=0)
        hi = projected.max(axis=0)
        band = self.config.prefilter_margin * (hi - lo)
        inside = np.all((lo - band <= 0.0) & (hi + band >= 0.0), axis=0)
        return np.argwhere(inside & self.cell_ok)

    def neighbour_allowed(self, rows: np.ndarray, cols: np.ndarray, family: int) -> bool:
        return bool(np.all(self.family[np.ix_(rows, cols)] == family))


class _CellModel:
    """
    Cubic Hermite model of the wavefront over one cell and time step.
    """

    def __init__(self, window: _Window, i: int, j: int, target: np.ndarray):
        self.window = window
        self.i = i
        self.j = j
        grid = window.grid
        n_de, n_az = grid.shape
        family = window.family[i, j]

        rows = _stencil(i, n_de)
        cols = _stencil(j, n_az)
        inner_rows = np.arange(max(i - 1, 0), min(i + 3, n_de))
        inner_cols = np.arange(max(j - 1, 0), min(j + 3, n_az))

        self.u_tangents = tangent_weights(
            grid.de, i,
            i >= 1 and window.neighbour_allowed(np.array([i - 1]), inner_cols, family),
            i + 2 < n_de and window.neighbour_allowed(np.array([i + 2]), inner_cols, family))
        self.v_tangents = tangent_weights(
            grid.az, j,
            j >= 1 and window.neighbour_allowed(inner_rows, np.array([j - 1]), family),
            j + 2 < n_az and window.neighbour_allowed(inner_rows, np.array([j + 2]), family))

        block = np.ix_(rows, cols)
        start, end = window.start, window.end
        self.blocks = np.stack([
            start.position[(slice(None),) + block] - target[:, None, None],
            end.position[(slice(None),) + block] - target[:, None, None],
            start.velocity[(slice(None),) + block],
            end.velocity[(slice(None),) + block],
        ])

    def evaluate(self, q: np.ndarray):
        """
        Model position relative to the target and its partial derivatives.

        Returns:
            (x, dx_du, dx_dv, dx_ds)
        """
        u, v, s = q
        wu, dwu = hermite_weights(u, *self.u_tangents)
        wv, dwv = hermite_weights(v, *self.v_tangents)
        angular = np.einsum('qcmn,am,bn->qabc', self.blocks,
                            np.stack([wu, dwu]), np.stack([wv, dwv]))

        dt = self.window.dt
        h00, h10, h01, h11 = hermite_basis(s)
        d00, d10, d01, d11 = hermite_basis_derivative(s)
        value = np.array([h00, h01, dt * h10, dt * h11])
        rate = np.array([d00, d01, dt * d10, dt * d11])

        x = value @ angular[:, 0, 0]
        dx_du = value @ angular[:, 1, 0]
        dx_dv = value @ angular[:, 0, 1]
        dx_ds = rate @ angular[:, 0, 0]
        return x, dx_du, dx_dv, dx_ds


class EigenraySearch:
    """
    Locates eigenrays for a set of targets between consecutive wavefronts.

    Example:
        search = EigenraySearch(grid, frequencies, source_speed=1500.0)
        search.set_targets(loss.flat_targets, ocean.earth_radius)
        for index, ray in search.search(start, end):
            loss.add_eigenray(index, ray)
    """

    def __init__(
        self,
        grid: LaunchGrid,
        frequencies: np.ndarray,
        source_speed: float,
        config: Optional[SearchConfig] = None,
    ):
        self.grid = grid
        self.frequencies = np.asarray(frequencies, dtype=float)
        self.source_speed = float(source_speed)
        self.config = config or SearchConfig()
        self._targets_geo = np.zeros((0, 3))
        self._targets_xyz = np.zeros((0, 3))
        self.candidates_tested = 0

    @property
    def num_targets(self) -> int:
        return self._targets_geo.shape[0]

    def set_targets(self, targets: np.ndarray, earth_radius: float) -> None:
        """
        Args:
            targets: (n, 3) array of (latitude, longitude, altitude)
            earth_radius: Radius of the spherical earth (m)
        """
        targets = np.asarray(targets, dtype=float).reshape(-1, 3)
        rho, theta, phi = geographic_to_spherical(targets[:, 0], targets[:, 1], targets[:, 2],
                                                  earth_radius)
        self._targets_geo = targets
        self._targets_xyz = spherical_to_cartesian(rho, theta, phi).T.copy()

    def search(self, start: Wavefront, end: Wavefront) -> List[Tuple[int, Eigenray]]:
        """
        Find the eigenrays arriving during [start.time, end.time).

        Args:
            start: Wavefront at the beginning of the step, with reflected
                   rays replaced by their images
            end: Wavefront at the end of the step

        Returns:
            (flat target index, Eigenray) pairs in target order
        """
        if self.num_targets == 0:
            return []
        window = _Window(start, end, self.grid, self.config)
        indices = range(self.num_targets)

        if self.config.max_workers > 1 and self.num_targets > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                per_target = list(executor.map(lambda k: self._search_target(window, k), indices))
        else:
            per_target = [self._search_target(window, k) for k in indices]

        # Counts are summed here so worker threads never share the counter
        self.candidates_tested += sum(tested for _, tested in per_target)
        return [(k, ray) for k, (rays, _) in zip(indices, per_target) for ray in rays]

    def _search_target(self, window: _Window, k: int) -> Tuple[List[Eigenray], int]:
        """Eigenrays found for target k and the number of cells tried."""
        target = self._targets_xyz[k]
        found = []
        tested = 0
        for i, j in window.candidates(target):
            tested += 1
            ray = self._solve_cell(window, int(i), int(j), target, k)
            if ray is not None:
                logger.debug(f"Eigenray for target {k}: {ray}", extra={"target": k})
                found.append(ray)
        return found, tested

    def _newton(self, model: _CellModel, start) -> Optional[np.ndarray]:
        cfg = self.config
        q = np.array(start, dtype=float)
        for _ in range(cfg.max_iterations):
            x, dx_du, dx_dv, dx_ds = model.evaluate(q)
            jacobian = np.column_stack([dx_du, dx_dv, dx_ds])
            try:
                dq = np.linalg.solve(jacobian, -x)
            except np.linalg.LinAlgError:
                return None
            if not np.all(np.isfinite(dq)):
                return None
            largest = np.max(np.abs(dq))
            if largest > 1.0:
                dq = dq / largest
            q = q + dq
            if np.max(np.abs(q)) > 10.0:
                return None
            if largest < cfg.newton_tolerance:
                break

        x, _, _, _ = model.evaluate(q)
        if np.linalg.norm(x) > cfg.residual_tolerance_m:
            return None
        return q

    def _solve_cell(self, window: _Window, i: int, j: int, target: np.ndarray,
                    k: int) -> Optional[Eigenray]:
        model = _CellModel(window, i, j, target)
        for start in _START_POINTS:
            q = self._newton(model, start)
            if q is not None:
                break
        else:
            return None

        snap = self.config.snap_tolerance
        u, v, s = (_snap(float(value), snap) for value in q)
        if not (window.u_range[0][i] <= u < window.u_range[1][i]
                and window.v_range[0][j] <= v < window.v_range[1][j]
                and 0.0 <= s < 1.0):
            return None

        return self._build_eigenray(window, model, i, j, u, v, s, k)

    def _build_eigenray(self, window: _Window, model: _CellModel, i: int, j: int,
                        u: float, v: float, s: float, k: int) -> Eigenray:
        grid = self.grid
        _, dx_du, dx_dv, dx_ds = model.evaluate(np.array([u, v, s]))

        source_de = grid.de[i] + u * (grid.de[i + 1] - grid.de[i])
        source_az = grid.az[j] + v * (grid.az[j + 1] - grid.az[j])

        velocity = dx_ds / window.dt
        speed = np.linalg.norm(velocity)
        lat, lon = self._targets_geo[k, 0], self._targets_geo[k, 1]
        east, north, up = cartesian_to_enu(lat, lon, velocity)
        target_de = float(np.arcsin(np.clip(up / speed, -1.0, 1.0)) * RAD_TO_DEG)
        target_az = float(np.arctan2(east, north) * RAD_TO_DEG)

        # Spreading loss from the beam Jacobian per unit solid launch angle
        d_de = grid.de_rad[i + 1] - grid.de_rad[i]
        d_az = grid.az_rad[j + 1] - grid.az_rad[j]
        jacobian = np.dot(np.cross(dx_du, dx_dv), velocity / speed) / (d_de * d_az)
        cos_de = max(np.cos(np.radians(source_de)), 1e-12)
        spreading = 10.0 * np.log10(max(abs(jacobian) / cos_de, 1.0))
        impedance = 10.0 * np.log10(speed / self.source_speed)

        uc, vc = min(max(u, 0.0), 1.0), min(max(v, 0.0), 1.0)
        weights = np.array([[(1 - uc) * (1 - vc), (1 - uc) * vc],
                            [uc * (1 - vc), uc * vc]])
        corners = (slice(i, i + 2), slice(j, j + 2))
        attenuation = ((1 - s) * np.einsum('ab,abf->f', weights, window.start.attenuation[corners])
                       + s * np.einsum('ab,abf->f', weights, window.end.attenuation[corners]))

        nearest = window.end if s >= 0.5 else window.start
        ci, cj = i + int(round(uc)), j + int(round(vc))

        return Eigenray(
            time=window.start.time + s * window.dt,
            intensity=spreading - impedance + attenuation,
            phase=wrap_phase(nearest.phase[ci, cj]),
            source_de=float(source_de),
            source_az=float(source_az),
            target_de=target_de,
            target_az=target_az,
            surface=int(nearest.surface[ci, cj]),
            bottom=int(nearest.bottom[ci, cj]),
            caustic=int(nearest.caustic[ci, cj]),
            extrapolated=not (0.0 <= u < 1.0 and 0.0 <= v < 1.0),
        )
