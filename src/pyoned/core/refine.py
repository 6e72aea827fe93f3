"""
Adaptive grid refinement for one-dimensional flow domains.

A Refiner inspects a (grid, solution) pair of its domain and reports where
points should be inserted and which points may be dropped. It never modifies
the grid or solution itself; the caller builds the new grid with
:meth:`Refiner.get_new_grid` and interpolates the solution onto it.
"""
import logging
from dataclasses import asdict, dataclass, replace
from typing import Dict, List

import numpy as np

from .errors import ConfigurationError, GridSizeError, StructuralError

logger = logging.getLogger(__name__)


@dataclass
class RefineCriteria:
    """Grid refinement criteria"""
    ratio: float = 10.0  # Max ratio of adjacent interval lengths
    slope: float = 0.8  # Max change in value between points, relative to range
    curve: float = 0.8  # Max change in slope between points, relative to range
    prune: float = -0.1  # Removal threshold; negative disables slope/curvature pruning
    grid_min: float = 1e-10  # Intervals below 2*grid_min are not split
    max_points: int = 1000  # Max number of grid points

    def __post_init__(self):
        if self.ratio < 2.0:
            raise ConfigurationError("'ratio' must be greater than 2.0 "
                                     f"({self.ratio} was specified).")
        if self.slope < 0.0 or self.slope > 1.0:
            raise ConfigurationError("'slope' must be between 0.0 and 1.0 "
                                     f"({self.slope} was specified).")
        if self.curve < 0.0 or self.curve > 1.0:
            raise ConfigurationError("'curve' must be between 0.0 and 1.0 "
                                     f"({self.curve} was specified).")
        if self.prune > self.curve or self.prune > self.slope:
            raise ConfigurationError("'prune' must be less than 'curve' and "
                                     f"'slope' ({self.prune} was specified).")
        if self.grid_min < 0.0:
            raise ConfigurationError("'grid_min' must be non-negative "
                                     f"({self.grid_min} was specified).")
        if self.max_points < 2:
            raise ConfigurationError("'max_points' must be at least 2 "
                                     f"({self.max_points} was specified).")


class Refiner:
    """
    Decides where a domain's grid needs new points.

    The domain is only queried for its layout (component count, names and
    offsets), its current point count and the location of its fixed
    temperature anchor, if any.
    """
    def __init__(self, domain, criteria: RefineCriteria = None):
        self._domain = domain
        self.criteria = criteria if criteria is not None else RefineCriteria()
        self._active = [True] * domain.n_components

        # Components with range below min_range * max|value| are ignored
        self.min_range = 0.01
        # Floor added to the normalization of the value and slope criteria
        self.thresh = np.sqrt(np.finfo(float).eps)

        # Results of the last analysis
        self._loc: Dict[int, float] = {}  # insert after j -> severity
        self._keep: Dict[int, int] = {}  # 1 keep, -1 removal candidate
        self._c: List[str] = []  # what triggered refinement

    # -----------------------------------------------------------------
    # Configuration
    # -----------------------------------------------------------------

    def set_criteria(self, ratio: float = 10.0, slope: float = 0.8,
                     curve: float = 0.8, prune: float = -0.1) -> None:
        self.criteria = replace(self.criteria, ratio=ratio, slope=slope,
                                curve=curve, prune=prune)

    def get_criteria(self) -> dict:
        return asdict(self.criteria)

    def set_active(self, comp: int, state: bool = True) -> None:
        """Include or exclude component comp from refinement decisions"""
        if comp < 0 or comp >= len(self._active):
            raise StructuralError(f"component {comp} out of range")
        self._active[comp] = bool(state)

    def is_active(self, comp: int) -> bool:
        return self._active[comp]

    def set_max_points(self, npmax: int) -> None:
        self.criteria = replace(self.criteria, max_points=npmax)

    def max_points(self) -> int:
        return self.criteria.max_points

    def set_grid_min(self, grid_min: float) -> None:
        self.criteria = replace(self.criteria, grid_min=grid_min)

    def grid_min(self) -> float:
        return self.criteria.grid_min

    # -----------------------------------------------------------------
    # Analysis
    # -----------------------------------------------------------------

    def value(self, x: np.ndarray, n: int, j: int) -> float:
        return x[self._domain.index(n, j)]

    def _insert(self, j: int, r: float, name: str) -> None:
        self._loc[j] = max(r, self._loc.get(j, 0.0))
        if name not in self._c:
            self._c.append(name)

    def analyze(self, z, x) -> int:
        """
        Determine where new points are needed for the grid z and solution x.

        Returns:
            int: Number of points to be inserted
        """
        z = np.asarray(z, dtype=float)
        x = np.asarray(x, dtype=float)
        n = len(z)
        crit = self.criteria
        domain = self._domain

        if n < 2:
            raise GridSizeError(f"cannot refine a grid of {n} points")
        if n > crit.max_points:
            raise GridSizeError(f"grid has {n} points, more than the maximum "
                                f"of {crit.max_points}")
        if n != domain.n_points:
            raise StructuralError(f"grid has {n} points but the domain has "
                                  f"{domain.n_points}")
        nv = domain.n_components
        if len(x) != nv * n:
            raise StructuralError(f"solution length {len(x)} does not match "
                                  f"{nv} components at {n} points")
        dz = np.diff(z)
        if np.any(dz <= 0.0):
            raise GridSizeError("grid points must be monotonically increasing")

        self._loc = {}
        self._c = []
        keep = self._keep = {0: 1, n - 1: 1}
        gridmin2 = 2.0 * crit.grid_min

        for i in range(nv):
            if not self._active[i]:
                continue
            name = domain.component_name(i)
            v = np.array([self.value(x, i, j) for j in range(n)])
            s = np.diff(v) / dz

            vmin, vmax = v.min(), v.max()
            smin, smax = s.min(), s.max()
            aa = max(abs(vmax), abs(vmin))
            ss = max(abs(smax), abs(smin))

            # Only refine on components whose range is more than small
            # fluctuations on a constant background
            if vmax - vmin > self.min_range * aa:
                dmax = crit.slope * (vmax - vmin) + self.thresh
                for j in range(n - 1):
                    r = abs(v[j+1] - v[j]) / dmax
                    if r > 1.0 and dz[j] >= gridmin2:
                        logger.debug("Refine: slope of %s wants a point after %d "
                                     "(r = %g)", name, j, r)
                        self._insert(j, r, name)
                    if r >= crit.prune:
                        keep[j] = 1
                        keep[j+1] = 1
                    elif keep.get(j, 0) == 0:
                        keep[j] = -1

            if n > 2 and smax - smin > self.min_range * ss:
                dmax = crit.curve * (smax - smin)
                for j in range(n - 2):
                    r = abs(s[j+1] - s[j]) / (dmax + self.thresh / dz[j])
                    if r > 1.0 and dz[j] >= gridmin2 and dz[j+1] >= gridmin2:
                        logger.debug("Refine: curvature of %s wants points after "
                                     "%d and %d (r = %g)", name, j, j + 1, r)
                        self._insert(j, r, name)
                        self._insert(j + 1, r, name)
                    if r >= crit.prune:
                        keep[j+1] = 1
                    elif keep.get(j+1, 0) == 0:
                        keep[j+1] = -1

        # Refine based on the grid itself
        ratio = crit.ratio
        for j in range(1, n - 1):
            # Interval much longer than its left neighbour
            if dz[j] > ratio * dz[j-1]:
                self._insert(j, dz[j] / (ratio * dz[j-1]), f"point {j}")
            # Interval much longer than its right neighbour
            if dz[j] < dz[j-1] / ratio:
                self._insert(j - 1, dz[j-1] / (ratio * dz[j]), f"point {j-1}")
            # Interval much shorter than both neighbours
            if j < n - 2 and ratio * dz[j] < min(dz[j-1], dz[j+1]):
                if keep.get(j + 1, 0) == 0:
                    keep[j+1] = -1

        anchor = domain.fixed_point_location()
        for j in range(1, n - 1):
            # Keep the point if removing it would make the merged interval
            # too long compared to its neighbours
            if j > 1 and z[j+1] - z[j-1] > ratio * dz[j-2]:
                keep[j] = 1
            if j < n - 2 and z[j+1] - z[j-1] > ratio * dz[j+1]:
                keep[j] = 1
            if anchor is not None and z[j] == anchor:
                keep[j] = 1

        # Never remove two adjacent points in one pass
        for j in range(2, n - 1):
            if keep.get(j, 0) == -1 and keep.get(j-1, 0) == -1:
                keep[j] = 1

        self._cap_insertions(n)
        return len(self._loc)

    def _cap_insertions(self, n: int) -> None:
        """Drop the least severe insertions beyond the point cap"""
        allowed = self.criteria.max_points - n
        if len(self._loc) <= allowed:
            return
        ranked = sorted(self._loc.items(), key=lambda item: (-item[1], item[0]))
        accepted = dict(ranked[:max(allowed, 0)])
        logger.warning("Refine: %d insertions requested but only %d allowed "
                       "by max_points = %d", len(self._loc), len(accepted),
                       self.criteria.max_points)
        self._loc = {j: accepted[j] for j in sorted(accepted)}

    # -----------------------------------------------------------------
    # Results
    # -----------------------------------------------------------------

    def n_new_points(self) -> int:
        return len(self._loc)

    def new_point_needed(self, j: int) -> bool:
        return j in self._loc

    def keep_point(self, j: int) -> bool:
        return self._keep.get(j, 0) != -1

    def insertion_points(self) -> List[int]:
        return sorted(self._loc)

    def removal_points(self) -> List[int]:
        """Points the last analysis marked for removal"""
        return sorted(j for j, k in self._keep.items() if k == -1)

    def n_removed_points(self) -> int:
        return len(self.removal_points())

    def get_new_grid(self, z) -> np.ndarray:
        """
        Grid with points inserted and removed according to the last analysis.

        A flagged interval [z[j], z[j+1]] of the old grid gets its midpoint
        inserted even when z[j] itself is removed.
        """
        z = np.asarray(z, dtype=float)
        removals = self.removal_points()
        if not self._loc and not removals:
            return z.copy()
        n = len(z)
        if max(list(self._loc) + removals) > n - 2:
            raise StructuralError("grid does not match the last analysis")

        znew = []
        for j in range(n - 1):
            if self.keep_point(j):
                znew.append(z[j])
            if j in self._loc:
                znew.append(0.5 * (z[j] + z[j+1]))
        znew.append(z[n-1])
        return np.array(znew)

    def show(self) -> str:
        """Log and return a summary of the last analysis"""
        domain_id = getattr(self._domain, "id", "domain")
        removals = self.removal_points()
        if self._loc:
            points = " ".join(str(j) for j in sorted(self._loc))
            names = " ".join(self._c)
            text = (f"Refining grid in {domain_id}.\n"
                    f"    New points inserted after grid points {points}\n"
                    f"    to resolve {names}")
        else:
            text = f"no new points needed in {domain_id}"
        if removals:
            text += "\n    Grid points removed: " + " ".join(str(j) for j in removals)
        logger.info("%s", text)
        return text
