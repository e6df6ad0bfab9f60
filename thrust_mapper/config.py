"""
Vehicle variant configuration loaded from YAML.

Example layout (see config/riptide.yaml):

    vehicle:
      mass: 48.8428
      inertia: {ix: 0.5565, iy: 1.8908, iz: 1.9606}
    thrust_limits:
      min: -18.0
      max: 18.0
      overrides:
        sway_fwd: {min: -10.0, max: 10.0}
    solver:
      max_iterations: 100
      linear_solver: exact
    geometry:
      source: tf
      base_frame: base_link
      frame_suffix: _thruster
      lookup_timeout: 10.0
      positions:
        surge_stbd_hi: [-0.3, -0.2, 0.1]
    command_limits:
      max_linear_acceleration: null
      max_angular_acceleration: null
    observability:
      log_solution: false
      report: false
"""
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from thrust_mapper.constraints import force_limits
from thrust_mapper.geometry import (
    DEFAULT_BASE_FRAME,
    DEFAULT_FRAME_SUFFIX,
    DEFAULT_LOOKUP_TIMEOUT,
    ThrusterGeometry,
    geometry_from_positions,
)
from thrust_mapper.solver import SolverOptions
from thrust_mapper.thrust_allocator import CommandLimits
from thrust_mapper.vehicle import (
    RIPTIDE_FORCE_LIMIT,
    Inertia,
    ThrusterId,
    VehicleParameters,
)

GEOMETRY_SOURCES = ("tf", "config")


@dataclass(frozen=True)
class GeometryConfig:
    """Where thruster positions come from."""
    source: str = "tf"
    base_frame: str = DEFAULT_BASE_FRAME
    frame_suffix: str = DEFAULT_FRAME_SUFFIX
    lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT
    positions: Mapping[str, List[float]] = field(default_factory=dict)

    def __post_init__(self):
        if self.source not in GEOMETRY_SOURCES:
            raise ValueError(f"Unknown geometry source: {self.source}")
        if self.lookup_timeout <= 0.0:
            raise ValueError("lookup_timeout must be positive")

    def static_geometry(self) -> ThrusterGeometry:
        """Geometry table from the configured positions."""
        if not self.positions:
            raise ValueError("No thruster positions defined in config")
        return geometry_from_positions(self.positions)


@dataclass(frozen=True)
class MapperConfig:
    """Everything needed to build a ThrustAllocator for one vehicle variant."""
    vehicle: VehicleParameters
    force_limits: Dict[ThrusterId, Tuple[float, float]]
    solver: SolverOptions = SolverOptions()
    geometry: GeometryConfig = GeometryConfig()
    command_limits: CommandLimits = CommandLimits()
    log_solution: bool = False
    report: bool = False


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


def config_from_dict(config: dict) -> MapperConfig:
    """
    Parse a config dictionary (as read from YAML).

    Raises:
        ValueError: If required keys are missing or values are invalid
    """
    if not config:
        raise ValueError("Empty configuration")

    vehicle_cfg = config.get("vehicle")
    if not vehicle_cfg or "mass" not in vehicle_cfg or "inertia" not in vehicle_cfg:
        raise ValueError("vehicle.mass and vehicle.inertia must be defined")
    inertia_cfg = vehicle_cfg["inertia"]
    try:
        inertia = Inertia(
            ix=float(inertia_cfg["ix"]),
            iy=float(inertia_cfg["iy"]),
            iz=float(inertia_cfg["iz"]),
        )
    except KeyError as exc:
        raise ValueError(f"vehicle.inertia is missing {exc.args[0]}") from None
    vehicle = VehicleParameters(mass=float(vehicle_cfg["mass"]), inertia=inertia)

    limits_cfg = config.get("thrust_limits", {})
    default_min = float(limits_cfg.get("min", -RIPTIDE_FORCE_LIMIT))
    default_max = float(limits_cfg.get("max", RIPTIDE_FORCE_LIMIT))
    overrides = {}
    for name, bounds in (limits_cfg.get("overrides") or {}).items():
        overrides[ThrusterId.from_name(name)] = (
            float(bounds.get("min", default_min)),
            float(bounds.get("max", default_max)),
        )
    limits = force_limits(default_min, default_max, overrides)

    solver_cfg = config.get("solver", {})
    solver = SolverOptions(
        max_iterations=int(solver_cfg.get("max_iterations", 100)),
        linear_solver=str(solver_cfg.get("linear_solver", "exact")).lower(),
        ftol=float(solver_cfg.get("ftol", 1e-8)),
        xtol=float(solver_cfg.get("xtol", 1e-8)),
        gtol=float(solver_cfg.get("gtol", 1e-8)),
    )

    geometry_cfg = config.get("geometry", {})
    positions = {str(k): [float(v) for v in p] for k, p in (geometry_cfg.get("positions") or {}).items()}
    geometry = GeometryConfig(
        source=str(geometry_cfg.get("source", "tf")).lower(),
        base_frame=str(geometry_cfg.get("base_frame", DEFAULT_BASE_FRAME)),
        frame_suffix=str(geometry_cfg.get("frame_suffix", DEFAULT_FRAME_SUFFIX)),
        lookup_timeout=float(geometry_cfg.get("lookup_timeout", DEFAULT_LOOKUP_TIMEOUT)),
        positions=positions,
    )

    command_cfg = config.get("command_limits") or {}
    command_limits = CommandLimits(
        max_linear_acceleration=_optional_float(command_cfg.get("max_linear_acceleration")),
        max_angular_acceleration=_optional_float(command_cfg.get("max_angular_acceleration")),
    )

    observability = config.get("observability") or {}

    return MapperConfig(
        vehicle=vehicle,
        force_limits=limits,
        solver=solver,
        geometry=geometry,
        command_limits=command_limits,
        log_solution=bool(observability.get("log_solution", False)),
        report=bool(observability.get("report", False)),
    )


def resolve_toggle(value: str, file_value: bool) -> bool:
    """
    Resolve an on/off override given as text (launch argument or ROS parameter).

    An empty value keeps `file_value`; otherwise 'true'/'false' (any case)
    wins over the file.

    Raises:
        ValueError: If the value is neither empty nor a boolean word
    """
    value = value.strip().lower()
    if not value:
        return bool(file_value)
    if value in ("true", "1", "on", "yes"):
        return True
    if value in ("false", "0", "off", "no"):
        return False
    raise ValueError(f"Expected true/false or empty, got '{value}'")


def load_config(yaml_path: str) -> MapperConfig:
    """
    Load a vehicle configuration from a YAML file.

    Args:
        yaml_path: Path to YAML configuration file

    Returns:
        MapperConfig
    """
    with open(yaml_path, 'r') as f:
        config = yaml.safe_load(f)

    return config_from_dict(config)
