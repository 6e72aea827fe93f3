"""
PyTest configuration and fixtures
"""
import pytest
import numpy as np
import cantera as ct

from pyoned.solvers.flow import FlowDomain, FlowType


@pytest.fixture
def gas():
    """Return a small hydrogen/oxygen mechanism for testing."""
    gas = ct.Solution('h2o2.yaml')
    gas.TPX = 300.0, ct.one_atm, 'H2:2.0, O2:1.0, AR:5.0'
    return gas


@pytest.fixture
def simple_grid():
    """Return a simple uniform grid for testing."""
    return np.linspace(0.0, 0.02, 8)


def flame_like_solution(domain):
    """Smooth premixed-flame-like profile with nonzero velocities."""
    gas = domain.gas
    lay = domain.layout
    gas.TPX = 300.0, domain.pressure, 'H2:2.0, O2:1.0, AR:5.0'
    Y_u = gas.Y.copy()
    gas.TPX = 1500.0, domain.pressure, 'H2O:2.0, O2:0.2, AR:5.0'
    Y_b = gas.Y.copy()

    z = domain.z
    w = 0.5 * (1.0 + np.tanh((z - z.mean()) / (0.2 * (z[-1] - z[0]))))
    x = np.zeros(domain.size())
    for j in range(domain.n_points):
        lay.set_u(x, j, 0.4 - 0.3 * w[j])
        lay.set_V(x, j, 20.0 * (1.0 - w[j]) + 1.0)
        lay.set_T(x, j, 300.0 + 1200.0 * w[j])
        lay.set_lambda(x, j, -50.0)
        lay.set_species(x, j, (1.0 - w[j]) * Y_u + w[j] * Y_b)
    return x


@pytest.fixture
def stagnation_flow(gas, simple_grid):
    """Stagnation flow domain and a solution on it."""
    domain = FlowDomain(gas, simple_grid)
    return domain, flame_like_solution(domain)


@pytest.fixture
def free_flame(gas, simple_grid):
    """Free flame domain and a solution on it."""
    domain = FlowDomain(gas, simple_grid, flow_type=FlowType.FREE_FLAME)
    return domain, flame_like_solution(domain)
