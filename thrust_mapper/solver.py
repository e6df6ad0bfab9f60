"""
Bounded nonlinear least-squares, wrapped around scipy.optimize.least_squares.

The allocation core only depends on `solve_bounded` and the two small
records below, so the algorithm behind it can be swapped without touching
the allocation cycle.
"""
from dataclasses import dataclass
from typing import Callable, Tuple

import numpy as np
from scipy.optimize import least_squares

LINEAR_SOLVERS = ("exact", "lsmr")

_STATUS_MESSAGES = {
    -1: "improper input parameters",
    0: "iteration limit reached",
    1: "gradient tolerance satisfied",
    2: "cost tolerance satisfied",
    3: "step tolerance satisfied",
    4: "cost and step tolerances satisfied",
}


@dataclass(frozen=True)
class SolverOptions:
    """
    Solver settings.

    Args:
        max_iterations: Cap on residual evaluations per solve
        linear_solver: Trust-region subproblem solver, 'exact' (dense SVD)
            or 'lsmr' (iterative)
        ftol, xtol, gtol: Termination tolerances on cost, step and gradient
    """
    max_iterations: int = 100
    linear_solver: str = "exact"
    ftol: float = 1e-8
    xtol: float = 1e-8
    gtol: float = 1e-8

    def __post_init__(self):
        if int(self.max_iterations) < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.linear_solver not in LINEAR_SOLVERS:
            raise ValueError(
                f"Unknown linear solver: {self.linear_solver} (expected one of {', '.join(LINEAR_SOLVERS)})"
            )
        for name in ("ftol", "xtol", "gtol"):
            if getattr(self, name) <= 0.0:
                raise ValueError(f"{name} must be positive")


@dataclass(frozen=True)
class SolverSummary:
    """Outcome of one solve."""
    converged: bool
    iterations: int
    cost: float
    status: int
    message: str
    optimality: float

    def report(self) -> str:
        return (
            f"converged={self.converged}, iterations={self.iterations}, "
            f"cost={self.cost:.6e}, optimality={self.optimality:.3e}, "
            f"status={self.status} ({self.message})"
        )


def solve_bounded(
    residuals: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    x0: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    options: SolverOptions = SolverOptions(),
) -> Tuple[np.ndarray, SolverSummary]:
    """
    Minimise 0.5 * Σ residuals(x)² subject to lower <= x <= upper.

    Uses the dogbox method: every step is a dogleg step, clipped to the box,
    so iterates never leave the bounds. The steps are built from
    minimum-norm Gauss-Newton and gradient directions, which both lie in the
    row space of the Jacobian. Starting from zero, thrusters that do not
    enter an axis equation therefore stay at zero.
    Hitting the iteration cap is not an error: the last iterate is returned
    with `converged=False`.

    Args:
        residuals: Callable mapping x (n,) to residuals (m,)
        jacobian: Callable mapping x (n,) to the (m, n) Jacobian
        x0: Initial guess (n,), must lie within the bounds
        lower: Lower bounds (n,)
        upper: Upper bounds (n,)
        options: Solver settings

    Returns:
        (x, summary): Solution (n,) and convergence summary
    """
    result = least_squares(
        residuals,
        np.asarray(x0, dtype=float),
        jac=lambda x: np.array(jacobian(x), dtype=float),
        bounds=(np.asarray(lower, dtype=float), np.asarray(upper, dtype=float)),
        method="dogbox",
        tr_solver=options.linear_solver,
        x_scale=1.0,
        max_nfev=int(options.max_iterations),
        ftol=options.ftol,
        xtol=options.xtol,
        gtol=options.gtol,
    )

    summary = SolverSummary(
        converged=bool(result.status > 0),
        iterations=int(result.nfev),
        cost=float(result.cost),
        status=int(result.status),
        message=_STATUS_MESSAGES.get(int(result.status), str(result.message)),
        optimality=float(result.optimality),
    )
    return np.asarray(result.x, dtype=float), summary
