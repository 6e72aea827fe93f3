"""
Layout of the flat solution vector of a one-dimensional flow domain.

The solution vector holds, for every grid point, the components
``u, V, T, lambda, Y_0 ... Y_{K-1}`` in that order. Every read or write of a
component goes through :meth:`FlowStateLayout.index`.
"""
from typing import List, Sequence

import numpy as np

from .errors import ConfigurationError, StructuralError

# Offsets of solution components at a grid point
OFFSET_U = 0  # axial velocity
OFFSET_V = 1  # strain rate
OFFSET_T = 2  # temperature
OFFSET_L = 3  # (1/r) dP/dr
OFFSET_Y = 4  # mass fractions

FLOW_COMPONENTS = ("u", "V", "T", "lambda")


class FlowStateLayout:
    """
    Maps (component, grid point) pairs to offsets in the flat solution vector.
    """
    def __init__(self, species_names: Sequence[str]):
        self.species_names: List[str] = list(species_names)
        self.n_species = len(self.species_names)
        self.n_components = OFFSET_Y + self.n_species

    def index(self, n: int, j: int) -> int:
        """Offset of component n at grid point j."""
        if n < 0 or n >= self.n_components:
            raise StructuralError(
                f"component {n} out of range [0, {self.n_components})")
        if j < 0:
            raise StructuralError(f"negative grid point index {j}")
        return n + self.n_components * j

    def size(self, n_points: int) -> int:
        """Length of a solution vector for n_points grid points."""
        return self.n_components * n_points

    def n_points(self, x: np.ndarray) -> int:
        if len(x) % self.n_components:
            raise StructuralError(
                f"solution length {len(x)} is not a multiple of "
                f"{self.n_components} components")
        return len(x) // self.n_components

    # ---------------------------------------------------------------
    # Component names
    # ---------------------------------------------------------------

    def component_name(self, n: int) -> str:
        if 0 <= n < OFFSET_Y:
            return FLOW_COMPONENTS[n]
        if OFFSET_Y <= n < self.n_components:
            return self.species_names[n - OFFSET_Y]
        return "<unknown>"

    def component_index(self, name: str) -> int:
        if name in FLOW_COMPONENTS:
            return FLOW_COMPONENTS.index(name)
        if name in self.species_names:
            return OFFSET_Y + self.species_names.index(name)
        raise ConfigurationError(f"no component named '{name}'")

    # ---------------------------------------------------------------
    # Accessors
    # ---------------------------------------------------------------

    def component(self, x: np.ndarray, n: int, j: int) -> float:
        return x[self.index(n, j)]

    def set_component(self, x: np.ndarray, n: int, j: int, value: float) -> None:
        x[self.index(n, j)] = value

    def u(self, x: np.ndarray, j: int) -> float:
        return x[self.index(OFFSET_U, j)]

    def set_u(self, x: np.ndarray, j: int, value: float) -> None:
        x[self.index(OFFSET_U, j)] = value

    def V(self, x: np.ndarray, j: int) -> float:
        return x[self.index(OFFSET_V, j)]

    def set_V(self, x: np.ndarray, j: int, value: float) -> None:
        x[self.index(OFFSET_V, j)] = value

    def T(self, x: np.ndarray, j: int) -> float:
        return x[self.index(OFFSET_T, j)]

    def set_T(self, x: np.ndarray, j: int, value: float) -> None:
        x[self.index(OFFSET_T, j)] = value

    def lambda_(self, x: np.ndarray, j: int) -> float:
        return x[self.index(OFFSET_L, j)]

    def set_lambda(self, x: np.ndarray, j: int, value: float) -> None:
        x[self.index(OFFSET_L, j)] = value

    def Y(self, x: np.ndarray, k: int, j: int) -> float:
        return x[self.index(OFFSET_Y + k, j)]

    def set_Y(self, x: np.ndarray, k: int, j: int, value: float) -> None:
        x[self.index(OFFSET_Y + k, j)] = value

    def species(self, x: np.ndarray, j: int) -> np.ndarray:
        """Mass fractions at point j, as a view into x."""
        start = self.index(OFFSET_Y, j)
        return x[start:start + self.n_species]

    def set_species(self, x: np.ndarray, j: int, Y: np.ndarray) -> None:
        start = self.index(OFFSET_Y, j)
        x[start:start + self.n_species] = Y

    def X(self, x: np.ndarray, k: int, j: int, wtm: float,
          wt: np.ndarray) -> float:
        """Mole fraction of species k at point j."""
        return wtm * self.Y(x, k, j) / wt[k]

    def column(self, x: np.ndarray, n: int) -> np.ndarray:
        """Values of component n at every grid point."""
        start = self.index(n, 0)
        return x[start::self.n_components]

    def as_columns(self, x: np.ndarray) -> np.ndarray:
        """Read-only (n_components, n_points) view of a solution vector."""
        view = np.asarray(x).reshape(self.n_points(x), self.n_components).T
        view.flags.writeable = False
        return view
