"""
Chemical source terms and radiative heat loss for flow domains.

The radiation model is the optically thin, gray-gas model of Liu and Rogg
(Modelling of thermally radiating diffusion flames with detailed chemistry
and transport, EUROTHERM Seminars 17:114-127, 1991). Only CO2 and H2O
radiate. Planck mean absorption coefficients are polynomial fits in
1000/T to RADCAL data (Grosshandler, NIST technical note 1402, 1993).
"""
from typing import Optional, Sequence, Tuple

import numpy as np
import cantera as ct

# Polynomial coefficients for the Planck mean absorption coefficients,
# in powers of (1000 / T), per atmosphere of partial pressure
C_H2O = (-0.23093, -1.12390, 9.41530, -2.99880, 0.51382, -1.86840e-5)
C_CO2 = (18.741, -121.310, 273.500, -194.050, 56.310, -5.8169)

RADIATING_SPECIES = ("CO2", "H2O")


def radiating_species_indices(species_names: Sequence[str]) -> Tuple[Optional[int], Optional[int]]:
    """Indices of CO2 and H2O, or None for species not in the mechanism."""
    names = list(species_names)
    return tuple(names.index(s) if s in names else None
                 for s in RADIATING_SPECIES)


def planck_coefficient(coeffs: Sequence[float], T: float) -> float:
    """Planck mean absorption coefficient [1/(m Pa)] of one species."""
    theta = 1000.0 / T
    k_P = sum(c * theta**n for n, c in enumerate(coeffs))
    return k_P / ct.one_atm


def planck_mean_absorption(T: float, pressure: float,
                           X_co2: Optional[float] = None,
                           X_h2o: Optional[float] = None) -> float:
    """Mixture Planck mean absorption coefficient [1/m]."""
    k_P = 0.0
    if X_h2o is not None:
        k_P += pressure * X_h2o * planck_coefficient(C_H2O, T)
    if X_co2 is not None:
        k_P += pressure * X_co2 * planck_coefficient(C_CO2, T)
    return k_P


def radiative_heat_loss(T: float, k_P: float, T_left: float, T_right: float,
                        epsilon_left: float, epsilon_right: float) -> float:
    """
    Volumetric radiative heat loss [W/m^3] at temperature T.

    The boundaries radiate back into the domain with the given emissivities.
    """
    sigma = ct.stefan_boltzmann
    boundary_left = epsilon_left * sigma * T_left**4
    boundary_right = epsilon_right * sigma * T_right**4
    return 2.0 * k_P * (2.0 * sigma * T**4 - boundary_left - boundary_right)


def heat_release_terms(gas, wdot: np.ndarray, flux_mean: np.ndarray,
                       dTdz: float, wt: np.ndarray) -> Tuple[float, float]:
    """
    Chemical heat release and enthalpy transport by species diffusion.

    The gas object must already be set to the local state.

    Args:
        gas: Property cache at the local state
        wdot: Net molar production rates [kmol/m^3/s]
        flux_mean: Diffusive mass fluxes averaged over the two adjacent
            midpoints [kg/m^2/s]
        dTdz: Upwinded temperature gradient
        wt: Species molecular weights

    Returns:
        Tuple of (sum_k wdot_k h_k, sum_k j_k cp_k / W_k dT/dz), both in W/m^3
    """
    T = gas.T
    h_RT = gas.standard_enthalpies_RT
    cp_R = gas.standard_cp_R
    heat = ct.gas_constant * T * np.dot(wdot, h_RT)
    flux_term = ct.gas_constant * dTdz * np.dot(flux_mean, cp_R / wt)
    return heat, flux_term
