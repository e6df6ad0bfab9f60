"""
Per-thruster force bounds, applied as hard box constraints in the solver.
"""
from typing import Dict, Mapping, Sequence, Tuple

import numpy as np

from thrust_mapper.vehicle import (
    RIPTIDE_FORCE_LIMIT,
    THRUSTER_INDEX,
    THRUSTER_ORDER,
    ThrusterId,
    ThrusterSpec,
)


def force_limits(
    force_min: float = -RIPTIDE_FORCE_LIMIT,
    force_max: float = RIPTIDE_FORCE_LIMIT,
    overrides: Mapping[ThrusterId, Tuple[float, float]] = None,
) -> Dict[ThrusterId, Tuple[float, float]]:
    """
    Build a (min, max) limit per thruster from shared defaults.

    Args:
        force_min: Default lower force bound [N]
        force_max: Default upper force bound [N]
        overrides: Optional per-thruster (min, max) replacing the defaults

    Raises:
        ValueError: If any lower bound is not strictly below its upper bound
    """
    limits = {t: (float(force_min), float(force_max)) for t in THRUSTER_ORDER}
    for thruster, (lo, hi) in (overrides or {}).items():
        limits[thruster] = (float(lo), float(hi))

    for thruster, (lo, hi) in limits.items():
        if not lo < hi:
            raise ValueError(f"{thruster.value}: lower force bound must be below upper bound")
    return limits


class ForceBounds:
    """
    Lower/upper force bound per thruster, in thruster order.

    Args:
        thrusters: Thruster specs covering all ten thrusters
    """

    def __init__(self, thrusters: Sequence[ThrusterSpec]):
        lower = np.full(len(THRUSTER_ORDER), np.nan)
        upper = np.full(len(THRUSTER_ORDER), np.nan)
        for spec in thrusters:
            i = THRUSTER_INDEX[spec.id]
            lower[i] = spec.force_min
            upper[i] = spec.force_max

        if np.any(np.isnan(lower)) or np.any(np.isnan(upper)):
            raise ValueError("Force bounds required for every thruster")
        if np.any(lower >= upper):
            raise ValueError("Lower force bound must be below upper bound")

        lower.setflags(write=False)
        upper.setflags(write=False)
        self.lower = lower
        self.upper = upper

    def for_thruster(self, thruster: ThrusterId) -> Tuple[float, float]:
        i = THRUSTER_INDEX[thruster]
        return float(self.lower[i]), float(self.upper[i])

    def contains(self, forces: np.ndarray, tol: float = 0.0) -> bool:
        """True if every force lies within its bounds (widened by tol)."""
        forces = np.asarray(forces, dtype=float)
        return bool(np.all(forces >= self.lower - tol) and np.all(forces <= self.upper + tol))

    def violations(self, forces: np.ndarray, tol: float = 0.0) -> Dict[ThrusterId, float]:
        """Thrusters whose force lies outside its bounds, with the offending value."""
        forces = np.asarray(forces, dtype=float)
        out = {}
        for thruster, i in THRUSTER_INDEX.items():
            if forces[i] < self.lower[i] - tol or forces[i] > self.upper[i] + tol:
                out[thruster] = float(forces[i])
        return out

    def initial_guess(self) -> np.ndarray:
        """All-zero starting point, moved inside the box where zero is not feasible."""
        return np.clip(np.zeros(len(THRUSTER_ORDER)), self.lower, self.upper)
