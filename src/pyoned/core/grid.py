"""
Grid container for one-dimensional flow domains.
"""
import logging
from typing import Optional, Sequence

import numpy as np
from scipy.interpolate import CubicSpline

from .base import GridComponent
from .errors import GridSizeError
from .layout import FlowStateLayout

logger = logging.getLogger(__name__)


class FlowGrid(GridComponent):
    """
    Ordered, strictly increasing set of grid points and the spacing metrics
    used by the finite difference stencils.
    """
    def __init__(self, z: Optional[Sequence[float]] = None, min_points: int = 2):
        super().__init__()
        self.min_points = min_points

        # Grid points
        self.z = None  # Grid point locations
        self.nPoints = 0
        self.jj = 0  # nPoints - 1

        # Grid metrics
        self.hh = None  # Spacing, hh[j] = z[j+1] - z[j]
        self.dlj = None  # Half-width of the control volume around j
        self.zhalf = None  # Midpoints between j and j+1

        if z is not None:
            self.setup(z)

    def initialize(self) -> None:
        self.update_grid_metrics()
        super().initialize()

    def setup(self, z: Sequence[float]) -> None:
        """Replace the grid points and recompute the spacing."""
        z = np.array(z, dtype=float).ravel()
        if len(z) < self.min_points:
            raise GridSizeError(
                f"grid must contain at least {self.min_points} points, "
                f"got {len(z)}")
        if not np.all(np.isfinite(z)):
            raise GridSizeError("grid points must be finite")
        if np.any(np.diff(z) <= 0.0):
            raise GridSizeError("grid points must be monotonically increasing")
        self.z = z
        self.setSize(len(z))
        self.initialize()

    def setSize(self, new_nPoints: int) -> None:
        """Set grid size"""
        self.nPoints = new_nPoints
        self.jj = new_nPoints - 1

    def update_grid_metrics(self) -> None:
        """Update spacing and midpoint arrays"""
        self.hh = np.diff(self.z)
        self.zhalf = 0.5 * (self.z[1:] + self.z[:-1])
        self.dlj = np.zeros(self.nPoints)
        if self.nPoints > 2:
            self.dlj[1:-1] = 0.5 * (self.z[2:] - self.z[:-2])

    @property
    def n_points(self) -> int:
        return self.nPoints

    def zmin(self) -> float:
        return self.z[0]

    def zmax(self) -> float:
        return self.z[-1]

    def closest_point(self, z_target: float) -> int:
        """Index of the grid point nearest to z_target."""
        return int(np.argmin(np.abs(self.z - z_target)))


def interpolate_solution(layout: FlowStateLayout, z_old: Sequence[float],
                         x_old: np.ndarray, z_new: Sequence[float],
                         method: str = "linear") -> np.ndarray:
    """
    Carry a solution vector from one grid onto another.

    Args:
        layout: Layout shared by both solution vectors
        z_old: Grid the solution is defined on
        x_old: Flat solution vector on z_old
        z_new: Target grid
        method: 'linear' or 'spline' (cubic spline through the old points)

    Returns:
        np.ndarray: Flat solution vector on z_new
    """
    z_old = np.asarray(z_old, dtype=float)
    z_new = np.asarray(z_new, dtype=float)
    if layout.n_points(x_old) != len(z_old):
        raise GridSizeError(
            f"solution has {layout.n_points(x_old)} points but grid has "
            f"{len(z_old)}")
    if method not in ("linear", "spline"):
        raise ValueError(f"Unknown interpolation method: {method}")

    x_new = np.zeros(layout.size(len(z_new)))
    for n in range(layout.n_components):
        v = layout.column(x_old, n)
        if method == "spline" and len(z_old) > 2:
            v_new = CubicSpline(z_old, v)(z_new)
        else:
            v_new = np.interp(z_new, z_old, v)
        x_new[layout.index(n, 0)::layout.n_components] = v_new
    logger.debug("Interpolated solution from %d to %d points (%s)",
                 len(z_old), len(z_new), method)
    return x_new
