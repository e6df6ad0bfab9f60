"""
Thrust allocator for the ten-thruster AUV.
Maps a commanded 6-DOF body acceleration to per-thruster force commands.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from thrust_mapper.constraints import ForceBounds
from thrust_mapper.equations import AXES, AllocationEquationSet
from thrust_mapper.result import AllocationResult, package_result
from thrust_mapper.solver import SolverOptions, SolverSummary, solve_bounded
from thrust_mapper.vehicle import THRUSTER_ORDER, ThrusterSpec, VehicleParameters


class AllocatorState(Enum):
    """Allocation cycle states."""
    IDLE = "idle"
    SOLVING = "solving"
    PUBLISHING = "publishing"


class InvalidCommandError(ValueError):
    """Command rejected before an allocation problem was built."""


class AllocationError(RuntimeError):
    """Solver returned forces outside the thruster bounds."""


@dataclass(frozen=True)
class AccelerationCommand:
    """Desired body acceleration: linear [m/s²] and angular [rad/s²]."""
    surge: float = 0.0
    sway: float = 0.0
    heave: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0

    @classmethod
    def from_vectors(cls, linear: Sequence[float], angular: Sequence[float]) -> "AccelerationCommand":
        """Build from linear (x, y, z) and angular (x, y, z) components."""
        lx, ly, lz = (float(v) for v in linear)
        ax, ay, az = (float(v) for v in angular)
        return cls(surge=lx, sway=ly, heave=lz, roll=ax, pitch=ay, yaw=az)

    def as_array(self) -> np.ndarray:
        """Components in (surge, sway, heave, roll, pitch, yaw) order."""
        return np.array([getattr(self, axis) for axis in AXES], dtype=float)


@dataclass(frozen=True)
class CommandLimits:
    """Optional magnitude limits; commands beyond them are rejected."""
    max_linear_acceleration: Optional[float] = None
    max_angular_acceleration: Optional[float] = None

    def __post_init__(self):
        for name in ("max_linear_acceleration", "max_angular_acceleration"):
            value = getattr(self, name)
            if value is not None and value <= 0.0:
                raise ValueError(f"{name} must be positive")


class AllocationContext:
    """
    Problem state for a single command: the six targets and the ten
    force unknowns. A new context is created for every cycle.
    """

    def __init__(self, command: AccelerationCommand, initial_guess: np.ndarray):
        self.command = command
        self.targets = command.as_array()
        self.targets.setflags(write=False)
        self.forces = np.array(initial_guess, dtype=float)


class ThrustAllocator:
    """
    Allocates a 6-DOF acceleration command to ten bounded thrusters.

    Each call to `allocate` runs one cycle:
        IDLE -> SOLVING -> PUBLISHING -> IDLE

    The forces are found by minimising the sum of squared axis residuals
    subject to per-thruster box constraints, always starting from zero
    force. With ten thrusters and six axes the solution is not unique; the
    allocator returns whichever point the solver reaches from zero.
    """

    def __init__(
        self,
        vehicle: VehicleParameters,
        thrusters: Sequence[ThrusterSpec],
        solver_options: SolverOptions = SolverOptions(),
        command_limits: CommandLimits = CommandLimits(),
        publish: Callable[[AllocationResult], None] = None,
        clock: Callable[[], object] = time.time,
        log_solution: bool = False,
        report: bool = False,
        logger: logging.Logger = None,
    ):
        """
        Initialize thrust allocator.

        Args:
            vehicle: Mass and inertia of the vehicle
            thrusters: Specs (position and force bounds) for all ten thrusters
            solver_options: Iteration cap, linear solver and tolerances
            command_limits: Optional magnitude limits for incoming commands
            publish: Optional callback receiving every result
            clock: Callable returning the timestamp for results
            log_solution: Log initial guess and solved forces at debug level
            report: Log the full solver summary for every cycle
            logger: Optional logger (ROS node logger or logging.Logger)

        Raises:
            ValueError: If the thruster set or bounds are invalid
        """
        if len(thrusters) != len(THRUSTER_ORDER):
            raise ValueError(f"Expected {len(THRUSTER_ORDER)} thrusters, got {len(thrusters)}")

        self.vehicle = vehicle
        self.thrusters = tuple(thrusters)
        self.equations = AllocationEquationSet(vehicle, self.thrusters)
        self.bounds = ForceBounds(self.thrusters)
        self.solver_options = solver_options
        self.command_limits = command_limits
        self.publish = publish
        self.clock = clock
        self.log_solution = log_solution
        self.report = report
        self.logger = logger or logging.getLogger(__name__)

        self.state = AllocatorState.IDLE

    @classmethod
    def from_config(cls, config, geometry, **kwargs) -> "ThrustAllocator":
        """Build an allocator from a MapperConfig and a resolved geometry table."""
        kwargs.setdefault("solver_options", config.solver)
        kwargs.setdefault("command_limits", config.command_limits)
        kwargs.setdefault("log_solution", config.log_solution)
        kwargs.setdefault("report", config.report)
        return cls(config.vehicle, geometry.thruster_specs(config.force_limits), **kwargs)

    def validate(self, command: AccelerationCommand):
        """
        Reject commands that would make the problem meaningless.

        Raises:
            InvalidCommandError: On non-finite components or magnitudes
                beyond the configured limits
        """
        values = command.as_array()
        if not np.all(np.isfinite(values)):
            raise InvalidCommandError(f"Command has non-finite components: {values.tolist()}")

        max_lin = self.command_limits.max_linear_acceleration
        if max_lin is not None and np.any(np.abs(values[:3]) > max_lin):
            raise InvalidCommandError(
                f"Linear acceleration {values[:3].tolist()} exceeds limit {max_lin} m/s²"
            )
        max_ang = self.command_limits.max_angular_acceleration
        if max_ang is not None and np.any(np.abs(values[3:]) > max_ang):
            raise InvalidCommandError(
                f"Angular acceleration {values[3:].tolist()} exceeds limit {max_ang} rad/s²"
            )

    def allocate(self, command: AccelerationCommand) -> AllocationResult:
        """
        Run one allocation cycle for `command`.

        The result is returned (and handed to `publish`, if set) whether or
        not the solver converged.

        Args:
            command: Desired body acceleration

        Returns:
            AllocationResult with forces, timestamp and solver summary

        Raises:
            InvalidCommandError: If the command is rejected
            AllocationError: If the solver returns out-of-bounds forces
        """
        self.validate(command)

        try:
            # IDLE -> SOLVING: fresh targets, cold-start unknowns
            self.state = AllocatorState.SOLVING
            context = AllocationContext(command, self.bounds.initial_guess())
            summary = self._solve(context)

            # SOLVING -> PUBLISHING
            self.state = AllocatorState.PUBLISHING
            violations = self.bounds.violations(context.forces)
            if violations:
                raise AllocationError(
                    "Solver returned out-of-bounds forces: "
                    + ", ".join(f"{t.value}={f:.4f}" for t, f in violations.items())
                )
            result = package_result(
                context.forces,
                self.clock(),
                summary,
                self.equations.residuals(context.forces, context.targets),
            )
            if self.publish is not None:
                self.publish(result)
            return result
        finally:
            self.state = AllocatorState.IDLE

    def _solve(self, context: AllocationContext) -> SolverSummary:
        if self.log_solution:
            self.logger.debug(f"Initial forces: {self._format_forces(context.forces)}")

        targets = context.targets
        context.forces, summary = solve_bounded(
            residuals=lambda x: self.equations.residuals(x, targets),
            jacobian=self.equations.jacobian,
            x0=context.forces,
            lower=self.bounds.lower,
            upper=self.bounds.upper,
            options=self.solver_options,
        )

        if self.report:
            self.logger.info(f"Solver summary: {summary.report()}")
        if self.log_solution:
            self.logger.debug(f"Final forces: {self._format_forces(context.forces)}")
        if not summary.converged:
            self.logger.warning(
                f"Allocation did not converge for command {targets.tolist()}: {summary.message}"
            )
        return summary

    @staticmethod
    def _format_forces(forces: np.ndarray) -> str:
        return ", ".join(f"{t.value}={f:.3f}" for t, f in zip(THRUSTER_ORDER, forces))
