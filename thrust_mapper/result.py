"""
Outbound force record built from one solve.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Sequence

import numpy as np

from thrust_mapper.equations import AXES
from thrust_mapper.solver import SolverSummary
from thrust_mapper.vehicle import THRUSTER_ORDER, ThrusterId


@dataclass(frozen=True)
class AllocationResult:
    """
    Thruster forces for one command, with the solve outcome attached.

    Attributes:
        forces: Force per thruster [N]
        stamp: Time the result was produced (clock-dependent type)
        summary: Solver convergence summary
        residuals: Final residual per axis (m/s² or rad/s²)
    """
    forces: Mapping[ThrusterId, float]
    stamp: Any
    summary: SolverSummary
    residuals: Mapping[str, float] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return self.summary.converged

    def force_vector(self) -> np.ndarray:
        """Forces in thruster order."""
        return np.array([self.forces[t] for t in THRUSTER_ORDER], dtype=float)

    def as_dict(self) -> Dict[str, float]:
        """Forces keyed by thruster name, in thruster order."""
        return {t.value: self.forces[t] for t in THRUSTER_ORDER}


def package_result(
    forces: Sequence[float],
    stamp: Any,
    summary: SolverSummary,
    residuals: Sequence[float],
) -> AllocationResult:
    """Copy solved values into an immutable, named record."""
    forces = np.asarray(forces, dtype=float).reshape(-1)
    if forces.shape[0] != len(THRUSTER_ORDER):
        raise ValueError(f"Expected {len(THRUSTER_ORDER)} forces, got {forces.shape[0]}")
    residuals = np.asarray(residuals, dtype=float).reshape(-1)
    if residuals.shape[0] != len(AXES):
        raise ValueError(f"Expected {len(AXES)} residuals, got {residuals.shape[0]}")

    return AllocationResult(
        forces=MappingProxyType({t: float(f) for t, f in zip(THRUSTER_ORDER, forces)}),
        stamp=stamp,
        summary=summary,
        residuals=MappingProxyType({axis: float(r) for axis, r in zip(AXES, residuals)}),
    )
