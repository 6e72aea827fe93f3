"""
Per-point thermodynamic, transport and chemistry fields of a flow domain.
"""
import logging
from enum import Enum
from typing import Optional

import numpy as np

from ..core.base import TransportComponent
from ..core.errors import ConfigurationError, StructuralError
from ..core.grid import FlowGrid
from ..core.layout import FlowStateLayout
from . import chemistry

logger = logging.getLogger(__name__)


class TransportOption(Enum):
    """Transport models supported by the flow equations"""
    MIXTURE_AVERAGED = "mixture-averaged"
    MULTICOMPONENT = "multicomponent"
    MULTICOMPONENT_SORET = "multicomponent-soret"

    @property
    def model(self) -> str:
        """Transport model name understood by the property cache"""
        if self is TransportOption.MIXTURE_AVERAGED:
            return "mixture-averaged"
        return "multicomponent"

    @property
    def soret(self) -> bool:
        return self is TransportOption.MULTICOMPONENT_SORET


class FlowProperties(TransportComponent):
    """
    Derived fields of a flow solution.

    Density, mean molecular weight and heat capacity are stored at the grid
    points. Viscosity, conductivity, diffusion coefficients and diffusive
    fluxes are stored at the midpoint between j and j+1 under index j.
    """
    def __init__(self, gas, layout: FlowStateLayout, n_points: int,
                 transport: TransportOption = TransportOption.MIXTURE_AVERAGED,
                 pressure: Optional[float] = None):
        super().__init__()
        self.gas = gas
        self.layout = layout
        self.n_species = layout.n_species
        self.n_points = n_points
        self.pressure = pressure if pressure is not None else gas.P
        self.viscous = True

        # Species properties
        self.wt = np.array(gas.molecular_weights, dtype=float)
        self._ybar = np.zeros(self.n_species)

        self.transport = None
        self.set_transport(transport)

        self.initialize()

    def initialize(self) -> None:
        """Allocate per-point arrays"""
        n = self.n_points
        K = self.n_species
        # Mixture thermo properties
        self.rho = np.zeros(n)
        self.wtm = np.zeros(n)
        self.cp = np.zeros(n)

        # Transport properties
        self.visc = np.zeros(n)
        self.tcon = np.zeros(n)
        self.diff = np.zeros((K, n))
        self.multidiff = (np.zeros((K, K, n))
                          if self.transport is not TransportOption.MIXTURE_AVERAGED
                          else None)
        self.dthermal = np.zeros((K, n))
        self.flux = np.zeros((K, n))

        # Production rates and radiation
        self.wdot = np.zeros((K, n))
        self.qdot_radiation = np.zeros(n)
        super().initialize()

    def resize(self, n_points: int) -> None:
        if n_points < 1:
            raise StructuralError(f"cannot resize to {n_points} points")
        self.n_points = n_points
        self.initialize()

    def set_transport(self, option: TransportOption) -> None:
        """Select the transport model and switch the property cache to it"""
        if not isinstance(option, TransportOption):
            try:
                option = TransportOption(option)
            except ValueError:
                raise ConfigurationError(
                    f"unknown transport option '{option}'") from None
        if self.gas.transport_model != option.model:
            self.gas.transport_model = option.model
        changed = option is not self.transport
        self.transport = option
        if changed and self.is_initialized():
            self.initialize()
        logger.debug("Transport option set to %s", option.value)

    @property
    def soret(self) -> bool:
        return self.transport.soret

    # -----------------------------------------------------------------
    # Gas state
    # -----------------------------------------------------------------

    def set_gas(self, x: np.ndarray, j: int) -> None:
        """Set the gas to the state of the solution at point j"""
        lay = self.layout
        self.gas.set_unnormalized_mass_fractions(lay.species(x, j))
        self.gas.TP = lay.T(x, j), self.pressure

    def set_gas_at_midpoint(self, x: np.ndarray, j: int) -> None:
        """Set the gas to the state midway between points j and j+1"""
        lay = self.layout
        self._ybar[:] = 0.5 * (lay.species(x, j) + lay.species(x, j + 1))
        self.gas.set_unnormalized_mass_fractions(self._ybar)
        self.gas.TP = 0.5 * (lay.T(x, j) + lay.T(x, j + 1)), self.pressure

    # -----------------------------------------------------------------
    # Updates
    # -----------------------------------------------------------------

    def update_thermo(self, x: np.ndarray, j0: int, j1: int) -> None:
        """Update density, mean molecular weight and cp from j0 to j1 (inclusive)"""
        for j in range(j0, j1 + 1):
            self.set_gas(x, j)
            self.rho[j] = self.gas.density
            self.wtm[j] = self.gas.mean_molecular_weight
            self.cp[j] = self.gas.cp_mass

    def update_transport(self, x: np.ndarray, j0: int, j1: int) -> None:
        """Update midpoint transport properties for the intervals in [j0, j1]"""
        gas = self.gas
        for j in range(j0, j1):
            self.set_gas_at_midpoint(x, j)
            wtm = gas.mean_molecular_weight
            rho = gas.density
            self.visc[j] = gas.viscosity if self.viscous else 0.0
            if self.transport is TransportOption.MIXTURE_AVERAGED:
                # Factor outside the mole fraction gradient
                self.diff[:, j] = self.wt * rho * gas.mix_diff_coeffs / wtm
            else:
                self.multidiff[:, :, j] = gas.multi_diff_coeffs
                self.diff[:, j] = self.wt * rho / (wtm * wtm)
            self.tcon[j] = gas.thermal_conductivity
            if self.soret:
                self.dthermal[:, j] = gas.thermal_diff_coeffs

    def update_diffusive_fluxes(self, x: np.ndarray, grid: FlowGrid,
                                j0: int, j1: int) -> None:
        """
        Update the species diffusive mass fluxes for the intervals in [j0, j1].

        Requires update_thermo over [j0, j1] and update_transport over the
        same intervals.
        """
        lay = self.layout
        hh = grid.hh
        for j in range(j0, j1):
            Xj = self.wtm[j] * lay.species(x, j) / self.wt
            Xjp = self.wtm[j + 1] * lay.species(x, j + 1) / self.wt
            if self.transport is TransportOption.MIXTURE_AVERAGED:
                flux = self.diff[:, j] * (Xj - Xjp) / hh[j]
                # Correction flux so that sum_k Y_k V_k = 0
                flux += -flux.sum() * lay.species(x, j)
            else:
                flux = (self.multidiff[:, :, j] @ (self.wt * (Xj - Xjp))
                        * self.diff[:, j] / hh[j])
            self.flux[:, j] = flux

        if self.soret:
            z = grid.z
            for j in range(j0, j1):
                Tj = lay.T(x, j)
                Tjp = lay.T(x, j + 1)
                grad_log_T = 2.0 * (Tjp - Tj) / ((Tjp + Tj) * (z[j + 1] - z[j]))
                self.flux[:, j] -= self.dthermal[:, j] * grad_log_T

    def update_production_rates(self, x: np.ndarray, j: int) -> None:
        """Net production rates at point j; leaves the gas at that state"""
        self.set_gas(x, j)
        self.wdot[:, j] = self.gas.net_production_rates

    def update_radiation(self, x: np.ndarray, j0: int, j1: int,
                         epsilon_left: float, epsilon_right: float) -> None:
        """Radiative heat loss from j0 to j1 (inclusive)"""
        lay = self.layout
        k_co2, k_h2o = chemistry.radiating_species_indices(lay.species_names)
        T_left = lay.T(x, 0)
        T_right = lay.T(x, self.n_points - 1)
        for j in range(j0, j1 + 1):
            T = lay.T(x, j)
            X_co2 = (lay.X(x, k_co2, j, self.wtm[j], self.wt)
                     if k_co2 is not None else None)
            X_h2o = (lay.X(x, k_h2o, j, self.wtm[j], self.wt)
                     if k_h2o is not None else None)
            k_P = chemistry.planck_mean_absorption(
                T, self.pressure, X_co2=X_co2, X_h2o=X_h2o)
            self.qdot_radiation[j] = chemistry.radiative_heat_loss(
                T, k_P, T_left, T_right, epsilon_left, epsilon_right)
