"""
Thruster geometry table.

Holds the body-frame position of every thruster relative to the centre of
mass. The table is built once at startup, either from a transform lookup
per thruster frame or from static positions in the vehicle config, and is
read-only afterwards.
"""
import logging
from typing import Callable, Dict, Mapping, Sequence, Tuple

import numpy as np

from thrust_mapper.vehicle import (
    THRUSTER_INDEX,
    THRUSTER_ORDER,
    ThrusterId,
    ThrusterSpec,
)

# lookup(base_frame, thruster_frame, timeout_sec) -> (x, y, z)
PositionLookup = Callable[[str, str, float], Sequence[float]]

DEFAULT_BASE_FRAME = "base_link"
DEFAULT_FRAME_SUFFIX = "_thruster"
DEFAULT_LOOKUP_TIMEOUT = 10.0


class GeometryLookupError(RuntimeError):
    """A thruster position could not be resolved."""


def thruster_frame(thruster: ThrusterId, suffix: str = DEFAULT_FRAME_SUFFIX) -> str:
    """Frame name published for a thruster, e.g. 'sway_fwd_thruster'."""
    return f"{thruster.value}{suffix}"


class ThrusterGeometry:
    """
    Immutable table of thruster positions [m] in the vehicle body frame.

    Args:
        positions: Mapping from every ThrusterId to an (x, y, z) position

    Raises:
        GeometryLookupError: If a thruster is missing or a position is not a
            finite 3-vector
    """

    def __init__(self, positions: Mapping[ThrusterId, Sequence[float]]):
        missing = [t.value for t in THRUSTER_ORDER if t not in positions]
        if missing:
            raise GeometryLookupError(f"Missing thruster positions: {', '.join(missing)}")

        table = np.zeros((len(THRUSTER_ORDER), 3), dtype=float)
        for i, thruster in enumerate(THRUSTER_ORDER):
            p = np.asarray(positions[thruster], dtype=float).reshape(-1)
            if p.shape[0] != 3 or not np.all(np.isfinite(p)):
                raise GeometryLookupError(
                    f"{thruster.value}: position must be a finite 3-vector, got {positions[thruster]}"
                )
            table[i] = p

        table.setflags(write=False)
        self._table = table

    def position(self, thruster: ThrusterId) -> np.ndarray:
        """Return the (read-only) position of one thruster."""
        return self._table[THRUSTER_INDEX[thruster]]

    def as_array(self) -> np.ndarray:
        """Return all positions as a read-only (10, 3) array in thruster order."""
        return self._table

    def thruster_specs(
        self, force_limits: Mapping[ThrusterId, Tuple[float, float]]
    ) -> Tuple[ThrusterSpec, ...]:
        """Combine positions with per-thruster (min, max) force limits."""
        specs = []
        for thruster in THRUSTER_ORDER:
            force_min, force_max = force_limits[thruster]
            specs.append(ThrusterSpec(
                id=thruster,
                position=tuple(float(v) for v in self.position(thruster)),
                force_min=float(force_min),
                force_max=float(force_max),
            ))
        return tuple(specs)

    def __repr__(self) -> str:
        rows = ", ".join(
            f"{t.value}=({p[0]:.3f}, {p[1]:.3f}, {p[2]:.3f})"
            for t, p in zip(THRUSTER_ORDER, self._table)
        )
        return f"ThrusterGeometry({rows})"


def lookup_thruster_geometry(
    lookup: PositionLookup,
    base_frame: str = DEFAULT_BASE_FRAME,
    frame_suffix: str = DEFAULT_FRAME_SUFFIX,
    timeout: float = DEFAULT_LOOKUP_TIMEOUT,
    logger: logging.Logger = None,
) -> ThrusterGeometry:
    """
    Resolve every thruster position through a transform lookup.

    Each lookup blocks for at most `timeout` seconds. The first failure
    aborts the whole table; a partially resolved geometry is never returned.

    Args:
        lookup: Callable returning the thruster frame origin in base_frame
        base_frame: Vehicle body frame
        frame_suffix: Suffix appended to thruster names to form frame ids
        timeout: Per-lookup timeout [s]
        logger: Optional logger

    Returns:
        ThrusterGeometry with all ten positions

    Raises:
        GeometryLookupError: If any lookup fails or times out
    """
    if timeout <= 0.0:
        raise ValueError("timeout must be positive")
    logger = logger or logging.getLogger(__name__)

    positions: Dict[ThrusterId, Sequence[float]] = {}
    for thruster in THRUSTER_ORDER:
        frame = thruster_frame(thruster, frame_suffix)
        try:
            positions[thruster] = lookup(base_frame, frame, timeout)
        except (GeometryLookupError, TimeoutError) as exc:
            logger.error(f"Could not resolve {frame} in {base_frame} within {timeout:.1f}s: {exc}")
            raise GeometryLookupError(f"Lookup of {frame} relative to {base_frame} failed: {exc}") from exc
        logger.info(f"Resolved {frame}: {np.round(np.asarray(positions[thruster], dtype=float), 4).tolist()}")

    return ThrusterGeometry(positions)


def geometry_from_positions(positions: Mapping[str, Sequence[float]]) -> ThrusterGeometry:
    """Build the table from a name -> [x, y, z] mapping, e.g. from YAML."""
    return ThrusterGeometry({ThrusterId.from_name(name): p for name, p in positions.items()})
