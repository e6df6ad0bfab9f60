"""
Shared fixtures: Riptide mass/inertia with a symmetric nominal thruster layout.
"""
import pytest

from thrust_mapper.constraints import force_limits
from thrust_mapper.geometry import ThrusterGeometry
from thrust_mapper.thrust_allocator import ThrustAllocator
from thrust_mapper.vehicle import (
    RIPTIDE_INERTIA,
    RIPTIDE_MASS,
    ThrusterId,
    VehicleParameters,
)

NOMINAL_POSITIONS = {
    ThrusterId.SURGE_STBD_HI: (-0.35, -0.25, 0.10),
    ThrusterId.SURGE_PORT_HI: (-0.35, 0.25, 0.10),
    ThrusterId.SURGE_PORT_LO: (-0.35, 0.25, -0.10),
    ThrusterId.SURGE_STBD_LO: (-0.35, -0.25, -0.10),
    ThrusterId.SWAY_FWD: (0.30, 0.00, 0.05),
    ThrusterId.SWAY_AFT: (-0.30, 0.00, 0.05),
    ThrusterId.HEAVE_PORT_AFT: (-0.30, 0.25, 0.00),
    ThrusterId.HEAVE_STBD_AFT: (-0.30, -0.25, 0.00),
    ThrusterId.HEAVE_STBD_FWD: (0.30, -0.25, 0.00),
    ThrusterId.HEAVE_PORT_FWD: (0.30, 0.25, 0.00),
}


@pytest.fixture
def vehicle():
    return VehicleParameters(mass=RIPTIDE_MASS, inertia=RIPTIDE_INERTIA)


@pytest.fixture
def geometry():
    return ThrusterGeometry(NOMINAL_POSITIONS)


@pytest.fixture
def specs(geometry):
    return geometry.thruster_specs(force_limits(-18.0, 18.0))


@pytest.fixture
def allocator(vehicle, specs):
    return ThrustAllocator(vehicle, specs)
