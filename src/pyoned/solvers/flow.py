"""
Residual model for one-dimensional, axisymmetric, chemically reacting flows.

The flow equations are the similarity form of the axisymmetric stagnation
flow equations: continuity, radial momentum (strain rate V), energy, species
transport and the pressure curvature eigenvalue lambda. Two flow types share
all interior equations and differ only in their continuity equation and
right boundary:

* ``AXISYMMETRIC_STAGNATION``: mass flux is imposed by the boundaries and
  integrated leftward from the right boundary.
* ``FREE_FLAME``: mass flux is an unknown fixed by pinning the temperature at
  one grid point, which anchors the flame.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import cantera as ct

from ..core.base import DomainComponent
from ..core.errors import (ConfigurationError, GridSizeError,
                           SolutionRestoreError, StructuralError)
from ..core.grid import FlowGrid
from ..core.layout import (FlowStateLayout, OFFSET_L, OFFSET_T, OFFSET_U,
                           OFFSET_V, OFFSET_Y)
from ..core.refine import Refiner
from ..transport.chemistry import heat_release_terms
from ..transport.properties import FlowProperties, TransportOption

logger = logging.getLogger(__name__)


class FlowType(Enum):
    """Flow configurations, differing in continuity and right boundary"""
    AXISYMMETRIC_STAGNATION = "Axisymmetric Stagnation"
    FREE_FLAME = "Free Flame"


def validate_emissivities(e_left: float, e_right: float) -> None:
    if e_left < 0 or e_left > 1:
        raise ConfigurationError(
            "The left boundary emissivity must be between 0.0 and 1.0!")
    if e_right < 0 or e_right > 1:
        raise ConfigurationError(
            "The right boundary emissivity must be between 0.0 and 1.0!")


@dataclass
class FlowConfig:
    """Configuration for a flow domain"""
    pressure: float = ct.one_atm  # [Pa]
    transport: TransportOption = TransportOption.MIXTURE_AVERAGED
    radiation: bool = False
    emissivity_left: float = 0.0
    emissivity_right: float = 0.0
    viscous: Optional[bool] = None  # None: stagnation flows only
    force_full_update: bool = False  # Update transport for Jacobian columns

    def __post_init__(self):
        if self.pressure <= 0:
            raise ConfigurationError(
                f"pressure must be positive ({self.pressure} was specified)")
        if not isinstance(self.transport, TransportOption):
            try:
                self.transport = TransportOption(self.transport)
            except ValueError:
                raise ConfigurationError(
                    f"unknown transport option '{self.transport}'") from None
        validate_emissivities(self.emissivity_left, self.emissivity_right)


class FlowDomain(DomainComponent):
    """
    Flow domain mapping a solution vector to the residuals of the flow
    equations on a non-uniform grid.
    """
    def __init__(self, gas, z: Sequence[float],
                 flow_type: FlowType = FlowType.AXISYMMETRIC_STAGNATION,
                 config: Optional[FlowConfig] = None,
                 domain_id: Optional[str] = None):
        config = config if config is not None else FlowConfig()
        super().__init__(config)
        self.gas = gas
        self.flow_type = FlowType(flow_type)
        self.id = domain_id or ("flame" if self.is_free else "flow")

        self.layout = FlowStateLayout(gas.species_names)
        self.grid = FlowGrid(z)
        self.properties = FlowProperties(gas, self.layout, self.grid.n_points,
                                         transport=config.transport,
                                         pressure=config.pressure)
        viscous = config.viscous
        if viscous is None:
            viscous = not self.is_free
        self.properties.viscous = viscous

        # Radiation
        self.do_radiation = config.radiation
        self.epsilon_left = config.emissivity_left
        self.epsilon_right = config.emissivity_right

        # Fixed temperature profile (absolute coordinates)
        self._zfix = None
        self._tfix = None

        # Flame anchor for free flames
        self.z_fixed = None
        self.t_fixed = None

        # Species holding the mass fraction constraint at each boundary
        self._k_excess_left = None
        self._k_excess_right = None

        self._x_prev = None
        self._transport_ready = False

        self.refiner = Refiner(self)
        # lambda is uniform and never needs resolution
        self.refiner.set_active(OFFSET_L, False)

        self.initialize()

    def initialize(self) -> None:
        """Allocate per-point flags and fixed values"""
        n = self.n_points
        self.energy_enabled = np.ones(n, dtype=bool)
        self.species_enabled = np.ones(n, dtype=bool)
        self.fixed_temp = np.full(n, np.nan)
        self.fixed_y = np.full((self.n_species, n), np.nan)
        super().initialize()

    # -----------------------------------------------------------------
    # Problem description
    # -----------------------------------------------------------------

    @property
    def is_free(self) -> bool:
        return self.flow_type is FlowType.FREE_FLAME

    @property
    def flow_type_name(self) -> str:
        return self.flow_type.value

    def fixed_mdot(self) -> bool:
        """True if the mass flow rate is imposed rather than solved for"""
        return not self.is_free

    @property
    def n_points(self) -> int:
        return self.grid.n_points

    @property
    def n_components(self) -> int:
        return self.layout.n_components

    @property
    def n_species(self) -> int:
        return self.layout.n_species

    @property
    def z(self) -> np.ndarray:
        return self.grid.z

    @property
    def dz(self) -> np.ndarray:
        return self.grid.hh

    @property
    def pressure(self) -> float:
        return self.properties.pressure

    def set_pressure(self, p: float) -> None:
        if p <= 0:
            raise ConfigurationError(f"pressure must be positive ({p} was specified)")
        self.properties.pressure = p

    def index(self, n: int, j: int) -> int:
        return self.layout.index(n, j)

    def size(self) -> int:
        return self.layout.size(self.n_points)

    def component_name(self, n: int) -> str:
        return self.layout.component_name(n)

    def component_index(self, name: str) -> int:
        return self.layout.component_index(name)

    def density(self, j: int) -> float:
        return self.properties.rho[j]

    def bounds(self, n: int) -> Tuple[float, float]:
        """Lower and upper bounds on component n for the nonlinear solver"""
        if n in (OFFSET_U, OFFSET_V, OFFSET_L):
            return -1e20, 1e20
        if n == OFFSET_T:
            return 200.0, 2.0 * self.gas.max_temp
        if OFFSET_Y <= n < self.n_components:
            return -1e-7, 1e5
        raise StructuralError(f"component {n} out of range")

    # -----------------------------------------------------------------
    # Grid
    # -----------------------------------------------------------------

    def setup_grid(self, z: Sequence[float]) -> None:
        """Replace the grid; per-point arrays are reallocated if its size changes"""
        n_old = self.n_points
        self.grid.setup(z)
        if self.n_points != n_old:
            self.resize(self.n_components, self.n_points)
        self._transport_ready = False
        self._apply_fixed_temp_profile()

    def resize(self, n_components: int, n_points: int) -> None:
        """
        Reallocate per-point arrays for a new grid size.

        Values of the derived fields are discarded. Flags keep their values
        at surviving indices; new points take the flag of the last point.
        """
        if n_components != self.n_components:
            raise StructuralError(
                f"flow domain has {self.n_components} components, "
                f"cannot resize to {n_components}")
        if n_points < 2:
            raise GridSizeError(f"grid must contain at least 2 points, got {n_points}")

        self.properties.resize(n_points)
        self.energy_enabled = _resize_array(self.energy_enabled, n_points)
        self.species_enabled = _resize_array(self.species_enabled, n_points)
        self.fixed_temp = _resize_array(self.fixed_temp, n_points, np.nan)
        self.fixed_y = np.full((self.n_species, n_points), np.nan)
        self._x_prev = None
        self._transport_ready = False

    # -----------------------------------------------------------------
    # Energy and species equations
    # -----------------------------------------------------------------

    def solve_energy_equation(self, j: Optional[int] = None) -> bool:
        """
        Solve the energy equation at point j, or at all points.

        Returns:
            bool: True if any flag changed and the Jacobian must be rebuilt
        """
        changed = self._set_flags(self.energy_enabled, j, True)
        for n in (OFFSET_U, OFFSET_V, OFFSET_T):
            self.refiner.set_active(n, True)
        if changed:
            logger.debug("Energy equation enabled in %s", self.id)
        return changed

    def fix_temperature(self, j: Optional[int] = None) -> bool:
        """
        Hold the temperature at its fixed value at point j, or at all points.

        Returns:
            bool: True if any flag changed and the Jacobian must be rebuilt
        """
        changed = self._set_flags(self.energy_enabled, j, False)
        for n in (OFFSET_U, OFFSET_V, OFFSET_T):
            self.refiner.set_active(n, False)
        if changed:
            logger.debug("Energy equation disabled in %s", self.id)
        return changed

    def solve_species(self, j: Optional[int] = None) -> bool:
        return self._set_flags(self.species_enabled, j, True)

    def fix_species(self, j: Optional[int] = None) -> bool:
        return self._set_flags(self.species_enabled, j, False)

    def do_energy(self, j: int) -> bool:
        return bool(self.energy_enabled[j])

    def do_species(self, j: int) -> bool:
        return bool(self.species_enabled[j])

    def _set_flags(self, flags: np.ndarray, j: Optional[int], value: bool) -> bool:
        if j is None:
            changed = bool(np.any(flags != value))
            flags[:] = value
        else:
            self._check_point(j)
            changed = bool(flags[j] != value)
            flags[j] = value
        return changed

    def set_temperature(self, j: int, t: float) -> bool:
        """Pin the temperature at point j to t and disable its energy equation"""
        self._check_point(j)
        self.fixed_temp[j] = t
        return self.fix_temperature(j)

    def T_fixed(self, j: int) -> float:
        return self.fixed_temp[j]

    def set_fixed_temp_profile(self, zfixed: Sequence[float],
                               tfixed: Sequence[float]) -> None:
        """
        Temperature profile used where the energy equation is disabled.

        Args:
            zfixed: Increasing positions, in the coordinates of the grid
            tfixed: Temperatures at those positions
        """
        zfixed = np.array(zfixed, dtype=float).ravel()
        tfixed = np.array(tfixed, dtype=float).ravel()
        if len(zfixed) == 0 or len(zfixed) != len(tfixed):
            raise ConfigurationError(
                "fixed temperature profile needs matching, non-empty position "
                "and temperature arrays")
        if np.any(np.diff(zfixed) <= 0.0):
            raise ConfigurationError(
                "fixed temperature profile positions must be increasing")
        self._zfix = zfixed
        self._tfix = tfixed
        self._apply_fixed_temp_profile()

    def fixed_temp_profile(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        if self._zfix is None:
            return None
        return self._zfix.copy(), self._tfix.copy()

    def _apply_fixed_temp_profile(self) -> None:
        if self._zfix is not None:
            self.fixed_temp[:] = np.interp(self.z, self._zfix, self._tfix)

    # -----------------------------------------------------------------
    # Radiation and transport options
    # -----------------------------------------------------------------

    def set_boundary_emissivities(self, e_left: float, e_right: float) -> None:
        validate_emissivities(e_left, e_right)
        self.epsilon_left = e_left
        self.epsilon_right = e_right

    def enable_radiation(self, do_radiation: bool) -> None:
        self.do_radiation = bool(do_radiation)

    def radiation_enabled(self) -> bool:
        return self.do_radiation

    def set_transport(self, option: TransportOption) -> None:
        self.properties.set_transport(option)
        self._transport_ready = False

    def enable_soret(self, with_soret: bool) -> None:
        current = self.properties.transport
        if with_soret:
            if current is TransportOption.MIXTURE_AVERAGED:
                raise ConfigurationError(
                    "Thermal diffusion (the Soret effect) requires using a "
                    "multicomponent transport model.")
            self.set_transport(TransportOption.MULTICOMPONENT_SORET)
        elif current is TransportOption.MULTICOMPONENT_SORET:
            self.set_transport(TransportOption.MULTICOMPONENT)

    def with_soret(self) -> bool:
        return self.properties.soret

    def set_viscosity_flag(self, do_visc: bool) -> None:
        self.properties.viscous = bool(do_visc)
        self._transport_ready = False

    # -----------------------------------------------------------------
    # Free flame anchor
    # -----------------------------------------------------------------

    def set_fixed_point(self, j: int, t: float) -> None:
        """Anchor a free flame by fixing the temperature at interior point j"""
        self._check_point(j)
        if j == 0 or j == self.n_points - 1:
            raise ConfigurationError(
                f"the flame anchor must be an interior grid point, got {j}")
        self.z_fixed = self.z[j]
        self.t_fixed = t

    def set_fixed_temperature_point(self, z_target: float, t: float) -> int:
        """Anchor a free flame at the grid point closest to z_target"""
        j = self.grid.closest_point(z_target)
        self.set_fixed_point(j, t)
        return j

    def fixed_point_location(self) -> Optional[float]:
        """Position of the flame anchor, if this domain has one"""
        return self.z_fixed if self.is_free else None

    # -----------------------------------------------------------------
    # Gas state and derived fields
    # -----------------------------------------------------------------

    def set_gas(self, x: np.ndarray, j: int) -> None:
        self.properties.set_gas(x, j)

    def set_gas_at_midpoint(self, x: np.ndarray, j: int) -> None:
        self.properties.set_gas_at_midpoint(x, j)

    def update_thermo(self, x: np.ndarray, j0: int, j1: int) -> None:
        self._check_range(j0, j1)
        self.properties.update_thermo(x, j0, j1)

    def update_transport(self, x: np.ndarray, j0: int, j1: int) -> None:
        self._check_range(j0, j1)
        self.properties.update_transport(x, j0, j1)

    def update_diffusive_fluxes(self, x: np.ndarray, j0: int, j1: int) -> None:
        self._check_range(j0, j1)
        self.properties.update_diffusive_fluxes(x, self.grid, j0, j1)

    def store_previous_solution(self, x: np.ndarray) -> None:
        """Solution at the previous pseudo-time step, used when rdt != 0"""
        x = np.asarray(x, dtype=float)
        self._check_solution(x)
        self._x_prev = x.copy()

    def initial_solution(self) -> np.ndarray:
        """Uniform solution at the current temperature and composition of the gas"""
        x = np.zeros(self.size())
        T = self.gas.T
        Y = self.gas.Y
        for j in range(self.n_points):
            self.layout.set_T(x, j, T)
            self.layout.set_species(x, j, Y)
        return x

    def finalize(self, x: np.ndarray) -> None:
        """
        Record fixed values from a converged solution.

        Points solving the energy equation take their current temperature as
        the fixed temperature; others use the fixed profile if one is set.
        """
        lay = self.layout
        x = np.asarray(x, dtype=float)
        self._check_solution(x)
        for j in range(self.n_points):
            if self.energy_enabled[j] or self._zfix is None:
                if self.energy_enabled[j] or np.isnan(self.fixed_temp[j]):
                    self.fixed_temp[j] = lay.T(x, j)
            else:
                self.fixed_temp[j] = np.interp(self.z[j], self._zfix, self._tfix)
            self.fixed_y[:, j] = lay.species(x, j)

        if self.is_free and self.t_fixed is not None:
            self._relocate_fixed_point(x)

    def _relocate_fixed_point(self, x: np.ndarray) -> None:
        """Move the anchor onto the grid if it was lost by regridding"""
        if np.any(self.z == self.z_fixed):
            return
        T = self.layout.column(x, OFFSET_T)
        for j in range(self.n_points - 2):
            # Where the temperature profile crosses the anchor temperature
            if (T[j] - self.t_fixed) * (T[j+1] - self.t_fixed) <= 0.0:
                self.t_fixed = T[j+1]
                self.z_fixed = self.z[j+1]
                logger.info("Free flame anchor moved to z = %g, T = %g",
                            self.z_fixed, self.t_fixed)
                return

    # -----------------------------------------------------------------
    # Residual evaluation
    # -----------------------------------------------------------------

    def evaluate_residual(self, j, x, rsd, diag=None, rdt: float = 0.0) -> None:
        """
        Evaluate the residual of the flow equations.

        If j is None the residual is evaluated at all grid points. Otherwise
        only the rows of points j-1, j and j+1 are written, which is used to
        build the Jacobian one column at a time.

        Args:
            j: Grid point, or None for all points
            x: Solution vector
            rsd: Residual vector, written in place
            diag: Optional int array set to 1 for time-dependent rows and 0
                for algebraic rows
            rdt: Reciprocal of the pseudo time step; 0 for steady state
        """
        n = self.n_points
        if n < 3:
            raise StructuralError(
                f"flow domain needs at least 3 grid points, has {n}")
        x = np.asarray(x, dtype=float)
        self._check_solution(x)
        if len(rsd) != len(x):
            raise StructuralError(
                f"residual length {len(rsd)} does not match solution length {len(x)}")
        if rdt != 0.0 and self._x_prev is None:
            raise StructuralError(
                "a previous solution must be stored for time-dependent residuals")
        if self.is_free and (self.z_fixed is None
                             or not np.any(self.z[1:-1] == self.z_fixed)):
            raise StructuralError(
                f"free flame '{self.id}' has no anchor at an interior grid "
                "point; call set_fixed_point() first")

        if j is None:
            jmin, jmax = 0, n - 1
        else:
            self._check_point(j)
            jmin = max(j, 1) - 1
            jmax = min(j + 1, n - 1)

        # Properties are needed one point beyond the evaluated points
        j0 = max(jmin, 1) - 1
        j1 = min(jmax + 1, n - 1)

        props = self.properties
        props.update_thermo(x, j0, j1)
        if j is None or self.config.force_full_update or not self._transport_ready:
            # Transport properties are held fixed while building the Jacobian
            props.update_transport(x, j0, j1)
        if j is None:
            self._transport_ready = True
            self._k_excess_left = int(np.argmax(self.layout.species(x, 0)))
            self._k_excess_right = int(np.argmax(self.layout.species(x, n - 1)))
        props.update_diffusive_fluxes(x, self.grid, j0, j1)

        if self.do_radiation:
            props.update_radiation(x, jmin, jmax, self.epsilon_left,
                                   self.epsilon_right)

        for jp in range(jmin, jmax + 1):
            if jp == 0:
                self._eval_left_boundary(x, rsd, diag, rdt)
            elif jp == n - 1:
                self._eval_right_boundary(x, rsd, diag, rdt)
            else:
                self._eval_interior(jp, x, rsd, diag, rdt)

    def rho_u(self, x: np.ndarray, j: int) -> float:
        return self.properties.rho[j] * self.layout.u(x, j)

    def _upwind(self, x: np.ndarray, j: int) -> int:
        """Right end of the upwind interval at point j"""
        return j if self.layout.u(x, j) > 0.0 else j + 1

    def dVdz(self, x: np.ndarray, j: int) -> float:
        jloc = self._upwind(x, j)
        lay = self.layout
        return (lay.V(x, jloc) - lay.V(x, jloc - 1)) / self.dz[jloc - 1]

    def dTdz(self, x: np.ndarray, j: int) -> float:
        jloc = self._upwind(x, j)
        lay = self.layout
        return (lay.T(x, jloc) - lay.T(x, jloc - 1)) / self.dz[jloc - 1]

    def dYdz(self, x: np.ndarray, j: int) -> np.ndarray:
        jloc = self._upwind(x, j)
        lay = self.layout
        return (lay.species(x, jloc) - lay.species(x, jloc - 1)) / self.dz[jloc - 1]

    def shear(self, x: np.ndarray, j: int) -> float:
        lay = self.layout
        z = self.z
        visc = self.properties.visc
        c1 = visc[j-1] * (lay.V(x, j) - lay.V(x, j-1))
        c2 = visc[j] * (lay.V(x, j+1) - lay.V(x, j))
        return 2.0 * (c2 / (z[j+1] - z[j]) - c1 / (z[j] - z[j-1])) / (z[j+1] - z[j-1])

    def div_heat_flux(self, x: np.ndarray, j: int) -> float:
        lay = self.layout
        z = self.z
        tcon = self.properties.tcon
        c1 = tcon[j-1] * (lay.T(x, j) - lay.T(x, j-1))
        c2 = tcon[j] * (lay.T(x, j+1) - lay.T(x, j))
        return -2.0 * (c2 / (z[j+1] - z[j]) - c1 / (z[j] - z[j-1])) / (z[j+1] - z[j-1])

    def _eval_interior(self, j: int, x: np.ndarray, rsd: np.ndarray,
                       diag, rdt: float) -> None:
        lay = self.layout
        props = self.properties
        idx = lay.index
        rho = props.rho[j]
        rho_u = self.rho_u(x, j)

        self._eval_continuity(j, x, rsd, diag, rdt)

        # Radial momentum
        #   rho dV/dt + rho u dV/dz + rho V^2 = d(mu dV/dz)/dz - lambda
        V = lay.V(x, j)
        iV = idx(OFFSET_V, j)
        rsd[iV] = ((self.shear(x, j) - lay.lambda_(x, j) - rho_u * self.dVdz(x, j)
                    - rho * V * V) / rho - self._transient(x, iV, rdt))
        _set_diag(diag, iV, 1)

        # Species
        #   rho dY_k/dt + rho u dY_k/dz + dJ_k/dz = M_k omega_k
        props.update_production_rates(x, j)
        iY = idx(OFFSET_Y, j)
        iYend = iY + self.n_species
        if self.species_enabled[j]:
            convec = rho_u * self.dYdz(x, j)
            diffus = 2.0 * (props.flux[:, j] - props.flux[:, j-1]) / (self.z[j+1] - self.z[j-1])
            rsd[iY:iYend] = (props.wt * props.wdot[:, j] - convec - diffus) / rho
            if rdt != 0.0:
                rsd[iY:iYend] -= rdt * (x[iY:iYend] - self._x_prev[iY:iYend])
            _set_diag(diag, slice(iY, iYend), 1)
        else:
            self._check_fixed_y(j)
            rsd[iY:iYend] = lay.species(x, j) - self.fixed_y[:, j]
            _set_diag(diag, slice(iY, iYend), 0)

        # Energy
        #   rho cp dT/dt + rho cp u dT/dz = d(k dT/dz)/dz
        #       - sum_k(omega_k h_k) - sum_k(J_k cp_k / M_k) dT/dz
        iT = idx(OFFSET_T, j)
        if self.energy_enabled[j]:
            cp = props.cp[j]
            dtdz = self.dTdz(x, j)
            flux_mean = 0.5 * (props.flux[:, j-1] + props.flux[:, j])
            heat, flux_term = heat_release_terms(
                self.gas, props.wdot[:, j], flux_mean, dtdz, props.wt)
            res = -cp * rho_u * dtdz - self.div_heat_flux(x, j) - heat - flux_term
            res /= rho * cp
            res -= self._transient(x, iT, rdt)
            if self.do_radiation:
                res -= props.qdot_radiation[j] / (rho * cp)
            rsd[iT] = res
            _set_diag(diag, iT, 1)
        else:
            rsd[iT] = lay.T(x, j) - self._fixed_temperature(j)
            _set_diag(diag, iT, 0)

        # lambda is uniform
        iL = idx(OFFSET_L, j)
        rsd[iL] = lay.lambda_(x, j) - lay.lambda_(x, j-1)
        _set_diag(diag, iL, 0)

    def _eval_left_boundary(self, x: np.ndarray, rsd: np.ndarray,
                            diag, rdt: float) -> None:
        """
        Default left boundary equations. A boundary object attached to the
        left modifies these to impose its own values.
        """
        lay = self.layout
        props = self.properties
        idx = lay.index
        rho = props.rho

        # Continuity propagates right to left: rho_u at 0 depends on rho_u at 1
        rsd[idx(OFFSET_U, 0)] = (-(self.rho_u(x, 1) - self.rho_u(x, 0)) / self.dz[0]
                                 - (rho[1] * lay.V(x, 1) + rho[0] * lay.V(x, 0)))
        rsd[idx(OFFSET_V, 0)] = lay.V(x, 0)
        if self.energy_enabled[0]:
            rsd[idx(OFFSET_T, 0)] = lay.T(x, 0)
        else:
            rsd[idx(OFFSET_T, 0)] = lay.T(x, 0) - self._fixed_temperature(0)
        rsd[idx(OFFSET_L, 0)] = -self.rho_u(x, 0)

        # Zero species flux by default
        self._species_boundary(x, rsd, 0, -(props.flux[:, 0] + self.rho_u(x, 0) * lay.species(x, 0)),
                               self._excess_species_left(x))
        _set_diag(diag, slice(idx(OFFSET_U, 0), idx(OFFSET_U, 1)), 0)

    def _species_boundary(self, x: np.ndarray, rsd: np.ndarray, j: int,
                          values: np.ndarray, k_excess: int) -> None:
        lay = self.layout
        iY = lay.index(OFFSET_Y, j)
        iYend = iY + self.n_species
        Y = lay.species(x, j)
        if self.species_enabled[j]:
            rsd[iY:iYend] = values
            rsd[lay.index(OFFSET_Y + k_excess, j)] = 1.0 - Y.sum()
        else:
            self._check_fixed_y(j)
            rsd[iY:iYend] = Y - self.fixed_y[:, j]

    def _excess_species_left(self, x: np.ndarray) -> int:
        if self._k_excess_left is None:
            self._k_excess_left = int(np.argmax(self.layout.species(x, 0)))
        return self._k_excess_left

    def _excess_species_right(self, x: np.ndarray) -> int:
        if self._k_excess_right is None:
            self._k_excess_right = int(np.argmax(
                self.layout.species(x, self.n_points - 1)))
        return self._k_excess_right

    # -----------------------------------------------------------------
    # Flow type hooks
    # -----------------------------------------------------------------

    def _eval_continuity(self, j: int, x: np.ndarray, rsd: np.ndarray,
                         diag, rdt: float) -> None:
        """Continuity equation at interior point j (algebraic)"""
        if self.is_free:
            self._free_flame_continuity(j, x, rsd)
        else:
            self._stagnation_continuity(j, x, rsd)
        _set_diag(diag, self.layout.index(OFFSET_U, j), 0)

    def _eval_right_boundary(self, x: np.ndarray, rsd: np.ndarray,
                             diag, rdt: float) -> None:
        """
        Default right boundary equations. A boundary object attached to the
        right modifies these to impose its own values.
        """
        lay = self.layout
        idx = lay.index
        j = self.n_points - 1

        if self.is_free:
            # Zero gradient outflow
            rsd[idx(OFFSET_U, j)] = self.rho_u(x, j) - self.rho_u(x, j-1)
            T_res = lay.T(x, j) - lay.T(x, j-1)
        else:
            rsd[idx(OFFSET_U, j)] = self.rho_u(x, j)
            T_res = lay.T(x, j)
        rsd[idx(OFFSET_V, j)] = lay.V(x, j)
        if self.energy_enabled[j]:
            rsd[idx(OFFSET_T, j)] = T_res
        else:
            rsd[idx(OFFSET_T, j)] = lay.T(x, j) - self._fixed_temperature(j)
        rsd[idx(OFFSET_L, j)] = lay.lambda_(x, j) - lay.lambda_(x, j-1)

        flux = self.properties.flux[:, j-1]
        self._species_boundary(x, rsd, j, flux + self.rho_u(x, j) * lay.species(x, j),
                               self._excess_species_right(x))
        _set_diag(diag, slice(idx(OFFSET_U, j), idx(OFFSET_U, j) + self.n_components), 0)

    def _stagnation_continuity(self, j: int, x: np.ndarray, rsd: np.ndarray) -> None:
        # d(rho u)/dz + 2 rho V = 0, integrated leftward from the right boundary
        lay = self.layout
        rho = self.properties.rho
        rsd[lay.index(OFFSET_U, j)] = (
            -(self.rho_u(x, j+1) - self.rho_u(x, j)) / self.dz[j]
            - (rho[j+1] * lay.V(x, j+1) + rho[j] * lay.V(x, j)))

    def _free_flame_continuity(self, j: int, x: np.ndarray, rsd: np.ndarray) -> None:
        lay = self.layout
        rho = self.properties.rho
        iU = lay.index(OFFSET_U, j)
        zj = self.z[j]
        z_fixed = self.z_fixed

        if zj > z_fixed:
            rsd[iU] = (-(self.rho_u(x, j) - self.rho_u(x, j-1)) / self.dz[j-1]
                       - (rho[j-1] * lay.V(x, j-1) + rho[j] * lay.V(x, j)))
        elif zj == z_fixed:
            if self.energy_enabled[j]:
                rsd[iU] = lay.T(x, j) - self.t_fixed
            else:
                rsd[iU] = self.rho_u(x, j) - rho[0] * 0.3
        else:
            rsd[iU] = (-(self.rho_u(x, j+1) - self.rho_u(x, j)) / self.dz[j]
                       - (rho[j+1] * lay.V(x, j+1) + rho[j] * lay.V(x, j)))

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _transient(self, x: np.ndarray, i: int, rdt: float) -> float:
        if rdt == 0.0:
            return 0.0
        return rdt * (x[i] - self._x_prev[i])

    def _fixed_temperature(self, j: int) -> float:
        t = self.fixed_temp[j]
        if np.isnan(t):
            raise StructuralError(
                f"energy equation is disabled at point {j} but no fixed "
                "temperature is defined there")
        return t

    def _check_fixed_y(self, j: int) -> None:
        if np.any(np.isnan(self.fixed_y[:, j])):
            raise StructuralError(
                f"species equations are disabled at point {j} but no fixed "
                "mass fractions are defined there; call finalize() first")

    def _check_point(self, j: int) -> None:
        if j < 0 or j >= self.n_points:
            raise StructuralError(
                f"grid point {j} out of range [0, {self.n_points})")

    def _check_range(self, j0: int, j1: int) -> None:
        if j0 < 0 or j1 >= self.n_points or j0 > j1:
            raise StructuralError(
                f"point range [{j0}, {j1}] invalid for {self.n_points} points")

    def _check_solution(self, x: np.ndarray) -> None:
        if len(x) != self.size():
            raise StructuralError(
                f"solution length {len(x)} does not match {self.n_components} "
                f"components at {self.n_points} points")

    # -----------------------------------------------------------------
    # Output
    # -----------------------------------------------------------------

    def show_solution(self, x: np.ndarray) -> str:
        """Log and return a table of the solution, five components per block"""
        lay = self.layout
        x = np.asarray(x, dtype=float)
        self._check_solution(x)
        rule = "-" * 79
        lines = [f"    Pressure: {self.pressure:10.4g} Pa"]
        for first in range(0, self.n_components, 5):
            comps = range(first, min(first + 5, self.n_components))
            lines.append(rule)
            lines.append("          z " + "".join(
                f" {lay.component_name(n):>10s} " for n in comps))
            lines.append(rule)
            for j in range(self.n_points):
                lines.append(f" {self.z[j]:10.4g} " + "".join(
                    f" {lay.component(x, n, j):10.4g} " for n in comps))
        if self.do_radiation:
            lines.append(rule)
            lines.append("          z      radiative heat loss")
            lines.append(rule)
            for j in range(self.n_points):
                lines.append(f" {self.z[j]:10.4g}        "
                             f"{self.properties.qdot_radiation[j]:10.4g}")
        text = "\n".join(lines)
        logger.info("\n%s", text)
        return text

    def save(self, x: np.ndarray) -> Dict[str, Any]:
        """
        Describe the solution and configuration of this domain as a nested
        document of plain Python types.
        """
        lay = self.layout
        x = np.asarray(x, dtype=float)
        self._check_solution(x)
        doc = {
            "id": self.id,
            "type": self.flow_type_name,
            "points": self.n_points,
            "pressure": float(self.pressure),
            "grid": self.z.tolist(),
            "components": {lay.component_name(n): lay.column(x, n).tolist()
                           for n in range(self.n_components)},
            "energy_enabled": self.energy_enabled.tolist(),
            "species_enabled": self.species_enabled.tolist(),
            "transport_model": self.properties.transport.value,
            "viscous": bool(self.properties.viscous),
            "radiation_enabled": bool(self.do_radiation),
            "emissivity_left": float(self.epsilon_left),
            "emissivity_right": float(self.epsilon_right),
            "refine_criteria": self.refiner.get_criteria(),
        }
        if self._zfix is not None:
            doc["fixed_temperature_profile"] = {"z": self._zfix.tolist(),
                                                "T": self._tfix.tolist()}
        if self.is_free:
            doc["z_fixed"] = None if self.z_fixed is None else float(self.z_fixed)
            doc["t_fixed"] = None if self.t_fixed is None else float(self.t_fixed)
        return doc

    def restore(self, doc: Dict[str, Any]) -> np.ndarray:
        """
        Restore grid, configuration and solution from a document written by save().

        Returns:
            np.ndarray: The restored solution vector
        """
        lay = self.layout
        for key in ("grid", "components"):
            if key not in doc:
                raise SolutionRestoreError(f"Required data '{key}' missing")
        doc_type = doc.get("type", self.flow_type_name)
        if doc_type != self.flow_type_name:
            logger.warning("Restoring a '%s' solution into a '%s' domain",
                           doc_type, self.flow_type_name)

        self.setup_grid(doc["grid"])
        n_points = self.n_points
        components = doc["components"]
        x = np.zeros(self.size())
        for n in range(self.n_components):
            name = lay.component_name(n)
            if name not in components:
                if n < OFFSET_Y:
                    raise SolutionRestoreError(f"Required data '{name}' missing")
                logger.warning("No data for species '%s' in '%s'; setting its "
                               "mass fraction to zero", name, self.id)
                continue
            values = np.asarray(components[name], dtype=float)
            if len(values) != n_points:
                raise SolutionRestoreError(
                    f"'{name}' has {len(values)} values for {n_points} grid points")
            x[lay.index(n, 0)::self.n_components] = values
        for name in components:
            if name not in lay.species_names and name not in ("u", "V", "T", "lambda"):
                logger.warning("Ignoring data for unknown species '%s'", name)

        if "pressure" in doc:
            self.set_pressure(doc["pressure"])
        if "transport_model" in doc:
            try:
                self.set_transport(doc["transport_model"])
            except ConfigurationError as err:
                raise SolutionRestoreError(str(err)) from err
        if "viscous" in doc:
            self.set_viscosity_flag(doc["viscous"])
        self.set_boundary_emissivities(doc.get("emissivity_left", self.epsilon_left),
                                       doc.get("emissivity_right", self.epsilon_right))
        self.enable_radiation(doc.get("radiation_enabled", self.do_radiation))
        for key, flags in (("energy_enabled", self.energy_enabled),
                           ("species_enabled", self.species_enabled)):
            if key in doc:
                if len(doc[key]) != n_points:
                    raise SolutionRestoreError(
                        f"'{key}' has {len(doc[key])} values for {n_points} points")
                flags[:] = np.asarray(doc[key], dtype=bool)
        if "refine_criteria" in doc:
            crit = dict(doc["refine_criteria"])
            self.refiner.set_criteria(crit["ratio"], crit["slope"],
                                      crit["curve"], crit["prune"])
            self.refiner.set_grid_min(crit.get("grid_min", self.refiner.grid_min()))
            self.refiner.set_max_points(crit.get("max_points", self.refiner.max_points()))

        # Fixed temperature simulations hold the restored profile by default
        profile = doc.get("fixed_temperature_profile")
        if profile is not None:
            self.set_fixed_temp_profile(profile["z"], profile["T"])
        else:
            self.set_fixed_temp_profile(self.z, lay.column(x, OFFSET_T))

        if self.is_free:
            self.z_fixed = doc.get("z_fixed", self.z_fixed)
            self.t_fixed = doc.get("t_fixed", self.t_fixed)

        self.finalize(x)
        logger.info("Restored %d points into '%s'", n_points, self.id)
        return x


def _resize_array(a: np.ndarray, n: int, fill=None) -> np.ndarray:
    """Keep the first n entries of a; extend with fill or the last value"""
    if n <= len(a):
        return a[:n].copy()
    value = fill if fill is not None else a[-1]
    return np.concatenate([a, np.full(n - len(a), value, dtype=a.dtype)])


def _set_diag(diag, i, value: int) -> None:
    if diag is not None:
        diag[i] = value
