"""
Tests for ThrustAllocator - ten-thruster 6-DOF allocation.
"""
import pytest
import numpy as np
from thrust_mapper.constraints import force_limits
from thrust_mapper.solver import SolverOptions
from thrust_mapper.thrust_allocator import (
    AccelerationCommand,
    AllocatorState,
    CommandLimits,
    InvalidCommandError,
    ThrustAllocator,
)
from thrust_mapper.vehicle import (
    HEAVE_THRUSTERS,
    RIPTIDE_MASS,
    SURGE_THRUSTERS,
    SWAY_THRUSTERS,
    ThrusterId,
)


def forces_of(result, group):
    return np.array([result.forces[t] for t in group])


class TestThrustAllocatorInitialization:
    """Test ThrustAllocator initialization and parameter validation."""

    def test_default_initialization(self, allocator):
        """Test ThrustAllocator initializes with default options."""
        assert allocator.state == AllocatorState.IDLE
        assert allocator.solver_options.max_iterations == 100
        assert allocator.solver_options.linear_solver == "exact"
        assert np.all(allocator.bounds.lower == -18.0)
        assert np.all(allocator.bounds.upper == 18.0)

    def test_wrong_thruster_count(self, vehicle, specs):
        """Test that an incomplete thruster set raises error."""
        with pytest.raises(ValueError, match="Expected 10 thrusters"):
            ThrustAllocator(vehicle, specs[:9])

    def test_from_config_uses_file_settings(self, geometry):
        """Test building the allocator from a parsed config."""
        from thrust_mapper.config import config_from_dict
        config = config_from_dict({
            "vehicle": {"mass": 30.0, "inertia": {"ix": 1.0, "iy": 2.0, "iz": 3.0}},
            "thrust_limits": {"min": -10.0, "max": 12.0},
            "solver": {"max_iterations": 50, "linear_solver": "lsmr"},
            "observability": {"report": True},
        })
        allocator = ThrustAllocator.from_config(config, geometry)
        assert allocator.vehicle.mass == 30.0
        assert allocator.solver_options.max_iterations == 50
        assert allocator.solver_options.linear_solver == "lsmr"
        assert allocator.report is True
        assert allocator.log_solution is False
        assert allocator.bounds.for_thruster(ThrusterId.SWAY_AFT) == (-10.0, 12.0)


class TestThrustAllocation:
    """Test allocation of single-axis and combined commands."""

    def test_zero_input(self, allocator):
        """Test that a zero command produces zero forces."""
        result = allocator.allocate(AccelerationCommand())

        assert np.allclose(result.force_vector(), 0.0, atol=1e-6)
        assert result.converged

    def test_pure_surge(self, allocator):
        """Test pure surge is carried by the surge thrusters only."""
        result = allocator.allocate(AccelerationCommand(surge=1.0))

        surge = forces_of(result, SURGE_THRUSTERS)
        others = forces_of(result, SWAY_THRUSTERS + HEAVE_THRUSTERS)

        # Σ F_surge = m * a
        assert np.sum(surge) == pytest.approx(RIPTIDE_MASS, rel=1e-4)
        assert np.allclose(others, 0.0, atol=1e-6)
        # Symmetric layout: equal share per thruster
        assert np.allclose(surge, RIPTIDE_MASS / 4.0, rtol=1e-4)

    def test_pure_reverse_surge(self, allocator):
        """Test negative surge mirrors positive surge."""
        forward = allocator.allocate(AccelerationCommand(surge=1.0))
        reverse = allocator.allocate(AccelerationCommand(surge=-1.0))

        assert np.allclose(forward.force_vector(), -reverse.force_vector(), atol=1e-6)

    def test_pure_sway(self, allocator):
        """Test pure sway is carried by the sway thrusters."""
        result = allocator.allocate(AccelerationCommand(sway=0.5))

        sway = forces_of(result, SWAY_THRUSTERS)
        assert np.sum(sway) == pytest.approx(0.5 * RIPTIDE_MASS, rel=1e-4)
        assert np.allclose(forces_of(result, SURGE_THRUSTERS), 0.0, atol=1e-6)

    def test_pure_heave(self, allocator):
        """Test pure heave is carried by the heave thrusters."""
        result = allocator.allocate(AccelerationCommand(heave=-0.8))

        heave = forces_of(result, HEAVE_THRUSTERS)
        assert np.sum(heave) == pytest.approx(-0.8 * RIPTIDE_MASS, rel=1e-4)
        assert np.allclose(forces_of(result, SURGE_THRUSTERS + SWAY_THRUSTERS), 0.0, atol=1e-6)

    def test_pure_roll_coupling(self, allocator):
        """Test roll is produced by heave/sway thrusters, never surge."""
        result = allocator.allocate(AccelerationCommand(roll=1.0))

        assert np.allclose(forces_of(result, SURGE_THRUSTERS), 0.0, atol=1e-6)
        assert np.max(np.abs(forces_of(result, HEAVE_THRUSTERS))) > 1e-3
        assert result.residuals["roll"] == pytest.approx(0.0, abs=1e-5)

    def test_pure_roll_heave_pattern(self, allocator):
        """Test positive roll pushes port heave thrusters against starboard."""
        result = allocator.allocate(AccelerationCommand(roll=1.0))

        port = result.forces[ThrusterId.HEAVE_PORT_FWD] + result.forces[ThrusterId.HEAVE_PORT_AFT]
        stbd = result.forces[ThrusterId.HEAVE_STBD_FWD] + result.forces[ThrusterId.HEAVE_STBD_AFT]
        # Port is +y, so port thrusters carry the positive share
        assert port > 0.0
        assert stbd < 0.0
        assert port == pytest.approx(-stbd, abs=1e-4)

    def test_pure_pitch(self, allocator):
        """Test pure pitch command is achieved with no net heave."""
        result = allocator.allocate(AccelerationCommand(pitch=1.0))

        for axis, r in result.residuals.items():
            assert r == pytest.approx(0.0, abs=1e-5), axis
        assert np.sum(forces_of(result, HEAVE_THRUSTERS)) == pytest.approx(0.0, abs=1e-4)

    def test_pure_yaw(self, allocator):
        """Test pure yaw command is achieved with no net surge or sway."""
        result = allocator.allocate(AccelerationCommand(yaw=-0.5))

        for axis, r in result.residuals.items():
            assert r == pytest.approx(0.0, abs=1e-5), axis

    def test_combined_command(self, allocator):
        """Test a feasible combined command is reproduced on every axis."""
        command = AccelerationCommand(surge=0.5, sway=0.2, heave=-0.3, roll=0.5, pitch=0.2, yaw=-0.4)

        result = allocator.allocate(command)

        achieved = allocator.equations.accelerations(result.force_vector())
        assert np.allclose(achieved, command.as_array(), atol=1e-5)
        assert result.converged

    def test_from_vectors(self, allocator):
        """Test building a command from linear/angular vectors."""
        command = AccelerationCommand.from_vectors((1.0, 2.0, 3.0), (0.1, 0.2, 0.3))
        assert command == AccelerationCommand(surge=1.0, sway=2.0, heave=3.0, roll=0.1, pitch=0.2, yaw=0.3)
        assert np.allclose(command.as_array(), [1.0, 2.0, 3.0, 0.1, 0.2, 0.3])


class TestThrustSaturation:
    """Test that force bounds hold as hard constraints."""

    def test_surge_saturation(self, allocator):
        """Test surge beyond 4 x 18 N saturates every surge thruster."""
        result = allocator.allocate(AccelerationCommand(surge=3.0))

        surge = forces_of(result, SURGE_THRUSTERS)
        assert np.allclose(surge, 18.0, atol=1e-2)
        assert np.all(surge <= 18.0)
        # Unreachable part of the command stays as residual
        assert result.residuals["surge"] == pytest.approx(4 * 18.0 / RIPTIDE_MASS - 3.0, abs=1e-3)

    def test_surge_saturation_leaves_other_thrusters_idle(self, allocator):
        """Test saturated surge does not spill into sway or heave thrusters."""
        result = allocator.allocate(AccelerationCommand(surge=3.0))

        assert np.allclose(forces_of(result, SWAY_THRUSTERS + HEAVE_THRUSTERS), 0.0, atol=1e-6)
        for axis in ("sway", "heave", "roll", "pitch", "yaw"):
            assert result.residuals[axis] == pytest.approx(0.0, abs=1e-6), axis

    def test_saturation_is_repeatable(self, allocator):
        """Test saturated solutions are stable from cycle to cycle."""
        first = allocator.allocate(AccelerationCommand(surge=3.0))
        second = allocator.allocate(AccelerationCommand(surge=3.0))

        assert np.allclose(first.force_vector(), second.force_vector(), atol=1e-9)
        assert first.residuals["surge"] == pytest.approx(second.residuals["surge"], abs=1e-9)

    def test_reverse_saturation(self, allocator):
        """Test saturation at the negative limit."""
        result = allocator.allocate(AccelerationCommand(surge=-5.0))

        surge = forces_of(result, SURGE_THRUSTERS)
        assert np.allclose(surge, -18.0, atol=1e-2)
        assert np.all(surge >= -18.0)

    @pytest.mark.parametrize("command", [
        AccelerationCommand(surge=0.3, yaw=0.2),
        AccelerationCommand(sway=4.0, roll=-3.0),
        AccelerationCommand(heave=10.0, pitch=25.0),
        AccelerationCommand(roll=200.0, pitch=-150.0, yaw=90.0),
        AccelerationCommand(surge=100.0, sway=-50.0, heave=30.0, roll=500.0, pitch=-200.0, yaw=100.0),
        AccelerationCommand(surge=-1e4, sway=1e4, heave=-1e4, roll=1e4, pitch=-1e4, yaw=1e4),
    ])
    def test_bounds_respected(self, allocator, command):
        """Test every force is within bounds for feasible and infeasible commands."""
        result = allocator.allocate(command)

        forces = result.force_vector()
        assert np.all(forces >= -18.0)
        assert np.all(forces <= 18.0)

    def test_asymmetric_bounds(self, vehicle, geometry):
        """Test per-thruster overrides are enforced."""
        limits = force_limits(-18.0, 18.0, {ThrusterId.SURGE_PORT_HI: (-5.0, 5.0)})
        allocator = ThrustAllocator(vehicle, geometry.thruster_specs(limits))

        result = allocator.allocate(AccelerationCommand(surge=3.0))

        assert -5.0 <= result.forces[ThrusterId.SURGE_PORT_HI] <= 5.0
        assert np.all(result.force_vector() <= 18.0)


class TestAllocationCycle:
    """Test the per-command cycle: reset, solve, publish."""

    def test_determinism(self, allocator):
        """Test the same command twice yields the same forces."""
        command = AccelerationCommand(surge=0.4, sway=-0.1, heave=0.2, roll=0.3, pitch=-0.2, yaw=0.1)

        first = allocator.allocate(command)
        second = allocator.allocate(command)

        assert np.allclose(first.force_vector(), second.force_vector(), atol=1e-9)

    def test_cold_start_not_affected_by_previous_command(self, vehicle, specs, allocator):
        """Test a cycle does not depend on the command before it."""
        command = AccelerationCommand(heave=0.5, roll=-0.5)
        fresh = ThrustAllocator(vehicle, specs).allocate(command)

        allocator.allocate(AccelerationCommand(surge=3.0, yaw=2.0))
        after = allocator.allocate(command)

        assert np.allclose(fresh.force_vector(), after.force_vector(), atol=1e-9)

    def test_command_replaces_previous(self, allocator):
        """Test a zero command after a nonzero one returns zero forces."""
        allocator.allocate(AccelerationCommand(surge=1.0, roll=1.0))
        result = allocator.allocate(AccelerationCommand())

        assert np.allclose(result.force_vector(), 0.0, atol=1e-6)

    def test_publish_callback(self, vehicle, specs):
        """Test each result is handed to the publish callback."""
        published = []
        allocator = ThrustAllocator(vehicle, specs, publish=published.append)

        result = allocator.allocate(AccelerationCommand(surge=0.5))

        assert published == [result]

    def test_state_during_publish(self, vehicle, specs):
        """Test the allocator is PUBLISHING while the callback runs, IDLE after."""
        states = []
        allocator = ThrustAllocator(vehicle, specs)
        allocator.publish = lambda result: states.append(allocator.state)

        allocator.allocate(AccelerationCommand(heave=0.2))

        assert states == [AllocatorState.PUBLISHING]
        assert allocator.state == AllocatorState.IDLE

    def test_state_reset_after_failure(self, vehicle, specs):
        """Test a failing publish still returns the allocator to IDLE."""
        def fail(result):
            raise RuntimeError("transport down")

        allocator = ThrustAllocator(vehicle, specs, publish=fail)

        with pytest.raises(RuntimeError, match="transport down"):
            allocator.allocate(AccelerationCommand(surge=0.1))
        assert allocator.state == AllocatorState.IDLE

    def test_clock_stamp(self, vehicle, specs):
        """Test results are stamped with the injected clock."""
        allocator = ThrustAllocator(vehicle, specs, clock=lambda: 42.5)

        result = allocator.allocate(AccelerationCommand())

        assert result.stamp == 42.5

    def test_non_converged_result_still_published(self, vehicle, specs):
        """Test hitting the iteration cap still yields an in-bounds result."""
        published = []
        allocator = ThrustAllocator(
            vehicle, specs,
            solver_options=SolverOptions(max_iterations=1),
            publish=published.append,
        )

        result = allocator.allocate(AccelerationCommand(surge=1.0))

        assert not result.converged
        assert result.summary.status == 0
        assert published == [result]
        assert allocator.bounds.contains(result.force_vector())

    def test_non_convergence_logged(self, vehicle, specs, caplog):
        """Test non-convergence is logged as a warning."""
        allocator = ThrustAllocator(vehicle, specs, solver_options=SolverOptions(max_iterations=1))

        with caplog.at_level("WARNING"):
            allocator.allocate(AccelerationCommand(surge=1.0))

        assert "did not converge" in caplog.text

    def test_solution_logging(self, vehicle, specs, caplog):
        """Test log_solution and report toggles produce log records."""
        allocator = ThrustAllocator(vehicle, specs, log_solution=True, report=True)

        with caplog.at_level("DEBUG"):
            allocator.allocate(AccelerationCommand(surge=0.2))

        assert "Initial forces" in caplog.text
        assert "Final forces" in caplog.text
        assert "Solver summary" in caplog.text

    def test_lsmr_linear_solver(self, vehicle, specs):
        """Test the iterative linear solver reaches the same accelerations."""
        allocator = ThrustAllocator(vehicle, specs, solver_options=SolverOptions(linear_solver="lsmr"))
        command = AccelerationCommand(surge=0.5, heave=0.2, yaw=0.3)

        result = allocator.allocate(command)

        achieved = allocator.equations.accelerations(result.force_vector())
        assert np.allclose(achieved, command.as_array(), atol=1e-4)

    def test_lsmr_roll_coupling(self, vehicle, specs):
        """Test roll stays off the surge thrusters with the iterative linear solver."""
        allocator = ThrustAllocator(vehicle, specs, solver_options=SolverOptions(linear_solver="lsmr"))

        result = allocator.allocate(AccelerationCommand(roll=1.0))

        assert np.allclose(forces_of(result, SURGE_THRUSTERS), 0.0, atol=1e-6)
        assert result.residuals["roll"] == pytest.approx(0.0, abs=1e-4)


class TestCommandValidation:
    """Test rejection of malformed commands."""

    @pytest.mark.parametrize("command", [
        AccelerationCommand(surge=float("nan")),
        AccelerationCommand(yaw=float("inf")),
        AccelerationCommand(heave=-float("inf"), roll=float("nan")),
    ])
    def test_non_finite_rejected(self, allocator, command):
        """Test NaN/Inf commands raise before solving."""
        published = []
        allocator.publish = published.append

        with pytest.raises(InvalidCommandError, match="non-finite"):
            allocator.allocate(command)
        assert published == []
        assert allocator.state == AllocatorState.IDLE

    def test_linear_limit(self, vehicle, specs):
        """Test linear acceleration limit."""
        allocator = ThrustAllocator(vehicle, specs, command_limits=CommandLimits(max_linear_acceleration=2.0))

        allocator.allocate(AccelerationCommand(surge=2.0))
        with pytest.raises(InvalidCommandError, match="Linear acceleration"):
            allocator.allocate(AccelerationCommand(sway=-2.5))

    def test_angular_limit(self, vehicle, specs):
        """Test angular acceleration limit."""
        allocator = ThrustAllocator(vehicle, specs, command_limits=CommandLimits(max_angular_acceleration=5.0))

        allocator.allocate(AccelerationCommand(roll=5.0))
        with pytest.raises(InvalidCommandError, match="Angular acceleration"):
            allocator.allocate(AccelerationCommand(pitch=5.1))

    def test_invalid_limits(self):
        """Test that non-positive limits raise error."""
        with pytest.raises(ValueError):
            CommandLimits(max_linear_acceleration=0.0)
        with pytest.raises(ValueError):
            CommandLimits(max_angular_acceleration=-1.0)

    def test_invalid_command_is_value_error(self, allocator):
        """Test InvalidCommandError can be handled as ValueError."""
        with pytest.raises(ValueError):
            allocator.allocate(AccelerationCommand(sway=float("nan")))
