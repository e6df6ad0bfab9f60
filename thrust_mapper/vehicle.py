"""
Vehicle constants and thruster layout for the ten-thruster AUV.

Thrusters are grouped by the axis they push along:
4 surge (x), 2 sway (y), 4 heave (z).
"""
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np


class ThrusterId(Enum):
    """Named thrusters, in the order used for the force vector."""
    SURGE_STBD_HI = "surge_stbd_hi"
    SURGE_PORT_HI = "surge_port_hi"
    SURGE_PORT_LO = "surge_port_lo"
    SURGE_STBD_LO = "surge_stbd_lo"
    SWAY_FWD = "sway_fwd"
    SWAY_AFT = "sway_aft"
    HEAVE_PORT_AFT = "heave_port_aft"
    HEAVE_STBD_AFT = "heave_stbd_aft"
    HEAVE_STBD_FWD = "heave_stbd_fwd"
    HEAVE_PORT_FWD = "heave_port_fwd"

    @classmethod
    def from_name(cls, name: str) -> "ThrusterId":
        try:
            return cls(name.lower())
        except ValueError:
            raise ValueError(f"Unknown thruster: {name}") from None


THRUSTER_ORDER: Tuple[ThrusterId, ...] = tuple(ThrusterId)
THRUSTER_INDEX = {tid: i for i, tid in enumerate(THRUSTER_ORDER)}
N_THRUSTERS = len(THRUSTER_ORDER)

SURGE_THRUSTERS = (
    ThrusterId.SURGE_STBD_HI,
    ThrusterId.SURGE_PORT_HI,
    ThrusterId.SURGE_PORT_LO,
    ThrusterId.SURGE_STBD_LO,
)
SWAY_THRUSTERS = (
    ThrusterId.SWAY_FWD,
    ThrusterId.SWAY_AFT,
)
HEAVE_THRUSTERS = (
    ThrusterId.HEAVE_PORT_AFT,
    ThrusterId.HEAVE_STBD_AFT,
    ThrusterId.HEAVE_STBD_FWD,
    ThrusterId.HEAVE_PORT_FWD,
)


@dataclass(frozen=True)
class Inertia:
    """Principal moments of inertia [kg⋅m²]."""
    ix: float
    iy: float
    iz: float


@dataclass(frozen=True)
class VehicleParameters:
    """
    Rigid-body constants of the vehicle.

    Args:
        mass: Vehicle mass [kg]
        inertia: Principal moments of inertia about the centre of mass

    Raises:
        ValueError: If mass or any moment of inertia is not positive
    """
    mass: float
    inertia: Inertia

    def __post_init__(self):
        if not np.isfinite(self.mass) or self.mass <= 0.0:
            raise ValueError("mass must be positive")
        for axis in ("ix", "iy", "iz"):
            value = getattr(self.inertia, axis)
            if not np.isfinite(value) or value <= 0.0:
                raise ValueError(f"inertia {axis} must be positive")


@dataclass(frozen=True)
class ThrusterSpec:
    """A single thruster: body-frame position and force limits [N]."""
    id: ThrusterId
    position: Tuple[float, float, float]
    force_min: float
    force_max: float

    def __post_init__(self):
        if len(self.position) != 3:
            raise ValueError(f"{self.id.value}: position must be a 3-vector")
        if not self.force_min < self.force_max:
            raise ValueError(
                f"{self.id.value}: force_min must be below force_max "
                f"(got {self.force_min}, {self.force_max})"
            )


# Riptide reference values
RIPTIDE_MASS = 48.8428
RIPTIDE_INERTIA = Inertia(ix=0.55649783, iy=1.89075467, iz=1.96057706)
RIPTIDE_FORCE_LIMIT = 18.0
