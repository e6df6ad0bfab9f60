"""
Allocation equations: one residual per body axis.

Each axis relates the forces of a subset of thrusters to the commanded
acceleration on that axis:

    surge: Σ F_surge / m                      - a_x
    sway:  Σ F_sway / m                       - a_y
    heave: Σ F_heave / m                      - a_z
    roll:  (Σ F_heave⋅y + Σ F_sway⋅z) / Ix    - α_x
    pitch: (Σ F_surge⋅z + Σ F_heave⋅x) / Iy   - α_y
    yaw:   (Σ F_surge⋅y + Σ F_sway⋅x) / Iz    - α_z

Moments use one lever-arm component per thruster (the offset perpendicular
to the rotation axis in the thruster's plane of action) instead of the full
r × F cross product. All residuals are linear in the forces, so their
Jacobian is the constant matrix of geometric coefficients.
"""
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np

from thrust_mapper.vehicle import (
    HEAVE_THRUSTERS,
    N_THRUSTERS,
    SURGE_THRUSTERS,
    SWAY_THRUSTERS,
    THRUSTER_INDEX,
    THRUSTER_ORDER,
    ThrusterId,
    ThrusterSpec,
    VehicleParameters,
)

AXES = ("surge", "sway", "heave", "roll", "pitch", "yaw")

X, Y, Z = 0, 1, 2


@dataclass(frozen=True)
class AxisEquation:
    """
    Linear residual for one axis: (Σ c_i⋅F_i) / divisor - target.

    Args:
        name: Axis name
        thrusters: Thrusters contributing to this axis
        coefficients: Signed weight per contributing thruster (1 for forces,
            lever arm [m] for moments)
        divisor: Mass [kg] or moment of inertia [kg⋅m²]
    """
    name: str
    thrusters: Tuple[ThrusterId, ...]
    coefficients: Tuple[float, ...]
    divisor: float

    def __post_init__(self):
        if len(self.thrusters) != len(self.coefficients):
            raise ValueError(f"{self.name}: one coefficient per thruster required")
        if self.divisor <= 0.0:
            raise ValueError(f"{self.name}: divisor must be positive")

    def evaluate(self, forces: np.ndarray, target: float) -> float:
        """Residual for the full force vector (thruster order) and axis target."""
        total = 0.0
        for thruster, c in zip(self.thrusters, self.coefficients):
            total += forces[THRUSTER_INDEX[thruster]] * c
        return float(total / self.divisor - target)

    def jacobian_row(self) -> np.ndarray:
        """d(residual)/d(forces), constant since the residual is linear."""
        row = np.zeros(N_THRUSTERS, dtype=float)
        for thruster, c in zip(self.thrusters, self.coefficients):
            row[THRUSTER_INDEX[thruster]] = c / self.divisor
        return row


def _weighted(specs: Dict[ThrusterId, ThrusterSpec], group: Sequence[ThrusterId], component: int):
    return tuple(group), tuple(float(specs[t].position[component]) for t in group)


def _unit(group: Sequence[ThrusterId]):
    return tuple(group), tuple(1.0 for _ in group)


class AllocationEquationSet:
    """
    The six axis equations of the allocation problem.

    Coefficients are fixed from the thruster positions when the set is
    built; command targets are passed in on every evaluation.
    """

    def __init__(self, vehicle: VehicleParameters, thrusters: Sequence[ThrusterSpec]):
        specs = {spec.id: spec for spec in thrusters}
        missing = [t.value for t in THRUSTER_ORDER if t not in specs]
        if missing:
            raise ValueError(f"Missing thruster specs: {', '.join(missing)}")

        m = vehicle.mass
        inertia = vehicle.inertia

        roll_ids, roll_c = _weighted(specs, HEAVE_THRUSTERS, Y)
        sway_ids, sway_z = _weighted(specs, SWAY_THRUSTERS, Z)
        pitch_ids, pitch_c = _weighted(specs, SURGE_THRUSTERS, Z)
        heave_ids, heave_x = _weighted(specs, HEAVE_THRUSTERS, X)
        yaw_ids, yaw_c = _weighted(specs, SURGE_THRUSTERS, Y)
        _, sway_x = _weighted(specs, SWAY_THRUSTERS, X)

        self.equations: Tuple[AxisEquation, ...] = (
            AxisEquation("surge", *_unit(SURGE_THRUSTERS), m),
            AxisEquation("sway", *_unit(SWAY_THRUSTERS), m),
            AxisEquation("heave", *_unit(HEAVE_THRUSTERS), m),
            AxisEquation("roll", roll_ids + sway_ids, roll_c + sway_z, inertia.ix),
            AxisEquation("pitch", pitch_ids + heave_ids, pitch_c + heave_x, inertia.iy),
            AxisEquation("yaw", yaw_ids + sway_ids, yaw_c + sway_x, inertia.iz),
        )

        jac = np.vstack([eq.jacobian_row() for eq in self.equations])
        jac.setflags(write=False)
        self._jacobian = jac

    def residuals(self, forces: np.ndarray, targets: np.ndarray) -> np.ndarray:
        """
        Evaluate all six residuals.

        Args:
            forces: Thruster forces [N] in thruster order, shape (10,)
            targets: Commanded accelerations in AXES order, shape (6,)

        Returns:
            Residuals in AXES order, shape (6,)
        """
        forces = np.asarray(forces, dtype=float)
        return np.array(
            [eq.evaluate(forces, t) for eq, t in zip(self.equations, targets)],
            dtype=float,
        )

    def jacobian(self, forces: np.ndarray = None) -> np.ndarray:
        """Constant (6, 10) Jacobian. `forces` is accepted for solver callbacks."""
        return self._jacobian

    def accelerations(self, forces: np.ndarray) -> np.ndarray:
        """Body accelerations produced by `forces`, in AXES order."""
        return self._jacobian @ np.asarray(forces, dtype=float)

    def axis_coupling(self) -> Dict[str, Tuple[ThrusterId, ...]]:
        """Which thrusters feed each axis equation."""
        return {eq.name: eq.thrusters for eq in self.equations}
