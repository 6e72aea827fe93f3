"""
Tests for the flow residual model
"""
import pytest
import numpy as np

from pyoned.core.errors import (ConfigurationError, GridSizeError,
                                SolutionRestoreError, StructuralError)
from pyoned.core.layout import OFFSET_L, OFFSET_T, OFFSET_U, OFFSET_V, OFFSET_Y
from pyoned.core.grid import interpolate_solution
from pyoned.solvers.flow import FlowConfig, FlowDomain, FlowType
from pyoned.transport.properties import TransportOption

from conftest import flame_like_solution

SENTINEL = -12345.0


def full_residual(domain, x, rdt=0.0):
    rsd = np.zeros_like(x)
    diag = np.full(len(x), -1, dtype=int)
    domain.evaluate_residual(None, x, rsd, diag, rdt=rdt)
    return rsd, diag


def test_domain_setup(stagnation_flow):
    domain, x = stagnation_flow
    assert domain.n_points == 8
    assert domain.n_components == 4 + domain.gas.n_species
    assert domain.size() == len(x)
    assert domain.id == 'flow'
    assert domain.flow_type_name == 'Axisymmetric Stagnation'
    assert domain.properties.viscous
    assert not domain.refiner.is_active(OFFSET_L)


def test_component_names(stagnation_flow):
    domain, _ = stagnation_flow
    assert domain.component_name(OFFSET_U) == 'u'
    assert domain.component_name(OFFSET_V) == 'V'
    assert domain.component_name(OFFSET_T) == 'T'
    assert domain.component_name(OFFSET_L) == 'lambda'
    assert domain.component_name(OFFSET_Y) == domain.gas.species_names[0]
    assert domain.component_name(domain.n_components) == '<unknown>'
    assert domain.component_index('H2O') == OFFSET_Y + domain.gas.species_index('H2O')


def test_full_residual_is_finite(stagnation_flow):
    domain, x = stagnation_flow
    rsd, diag = full_residual(domain, x)
    assert np.all(np.isfinite(rsd))
    assert np.all(diag >= 0)

    j = 3
    assert diag[domain.index(OFFSET_U, j)] == 0
    assert diag[domain.index(OFFSET_V, j)] == 1
    assert diag[domain.index(OFFSET_T, j)] == 1
    assert diag[domain.index(OFFSET_L, j)] == 0
    assert diag[domain.index(OFFSET_Y, j)] == 1
    assert np.all(diag[:domain.n_components] == 0)


def test_residual_locality(stagnation_flow):
    domain, x = stagnation_flow
    rsd_full, _ = full_residual(domain, x)

    nc = domain.n_components
    for j in (1, 3, domain.n_points - 2):
        rsd = np.full_like(x, SENTINEL)
        domain.evaluate_residual(j, x, rsd)
        written = np.zeros(len(x), dtype=bool)
        written[(j - 1) * nc:(j + 2) * nc] = True
        np.testing.assert_allclose(rsd[written], rsd_full[written],
                                   rtol=1e-12, atol=1e-300)
        assert np.all(rsd[~written] == SENTINEL)


def test_residual_locality_at_boundaries(stagnation_flow):
    domain, x = stagnation_flow
    rsd_full, _ = full_residual(domain, x)
    nc = domain.n_components
    n = domain.n_points

    rsd = np.full_like(x, SENTINEL)
    domain.evaluate_residual(0, x, rsd)
    np.testing.assert_allclose(rsd[:2 * nc], rsd_full[:2 * nc], rtol=1e-12)
    assert np.all(rsd[2 * nc:] == SENTINEL)

    rsd = np.full_like(x, SENTINEL)
    domain.evaluate_residual(n - 1, x, rsd)
    np.testing.assert_allclose(rsd[(n - 2) * nc:], rsd_full[(n - 2) * nc:], rtol=1e-12)
    assert np.all(rsd[:(n - 2) * nc] == SENTINEL)


def test_fixed_temperature_override(stagnation_flow):
    domain, x = stagnation_flow
    j = 4
    domain.set_fixed_temp_profile([domain.z[0], domain.z[-1]], [1500.0, 1500.0])
    assert domain.fix_temperature(j)
    assert not domain.do_energy(j)

    rsd, diag = full_residual(domain, x)
    iT = domain.index(OFFSET_T, j)
    assert rsd[iT] == pytest.approx(domain.layout.T(x, j) - 1500.0)
    assert diag[iT] == 0


def test_set_temperature(stagnation_flow):
    domain, x = stagnation_flow
    domain.set_temperature(2, 900.0)
    assert domain.T_fixed(2) == 900.0
    rsd, _ = full_residual(domain, x)
    assert rsd[domain.index(OFFSET_T, 2)] == pytest.approx(domain.layout.T(x, 2) - 900.0)


def test_missing_fixed_temperature(stagnation_flow):
    domain, x = stagnation_flow
    domain.fix_temperature(3)
    with pytest.raises(StructuralError, match="fixed temperature"):
        full_residual(domain, x)
    domain.finalize(x)
    rsd, _ = full_residual(domain, x)
    assert rsd[domain.index(OFFSET_T, 3)] == 0.0


def test_toggles_report_changes(stagnation_flow):
    domain, _ = stagnation_flow
    assert domain.fix_temperature(2)
    assert not domain.fix_temperature(2)
    assert not domain.refiner.is_active(OFFSET_T)
    assert domain.solve_energy_equation()
    assert not domain.solve_energy_equation()
    assert domain.refiner.is_active(OFFSET_T)
    assert domain.fix_species(1)
    assert not domain.do_species(1)
    assert domain.solve_species(1)
    with pytest.raises(StructuralError):
        domain.fix_temperature(domain.n_points)


def test_flow_types_differ(gas, simple_grid):
    stag = FlowDomain(gas, simple_grid)
    free = FlowDomain(gas, simple_grid, flow_type=FlowType.FREE_FLAME)
    x = flame_like_solution(stag)
    assert stag.fixed_mdot()
    assert not free.fixed_mdot()
    assert free.id == 'flame'
    assert free.flow_type_name == 'Free Flame'
    assert not free.properties.viscous
    free.set_fixed_point(2, 1000.0)

    rsd_stag, _ = full_residual(stag, x)
    rsd_free, _ = full_residual(free, x)
    iU = stag.index(OFFSET_U, 3)
    assert rsd_stag[iU] != pytest.approx(rsd_free[iU])

    # Interior temperature equations are shared, apart from viscosity
    free.set_viscosity_flag(True)
    rsd_free, _ = full_residual(free, x)
    iT = stag.index(OFFSET_T, 3)
    assert rsd_stag[iT] == pytest.approx(rsd_free[iT])

    # Right boundary: zero gradient versus zero mass flux
    n = stag.n_points
    assert rsd_stag[stag.index(OFFSET_U, n - 1)] == pytest.approx(stag.rho_u(x, n - 1))
    assert rsd_free[free.index(OFFSET_U, n - 1)] == pytest.approx(
        free.rho_u(x, n - 1) - free.rho_u(x, n - 2))


def test_stagnation_continuity(stagnation_flow):
    domain, x = stagnation_flow
    rsd, _ = full_residual(domain, x)
    lay = domain.layout
    rho = domain.properties.rho
    j = 2
    expected = (-(domain.rho_u(x, j + 1) - domain.rho_u(x, j)) / (domain.z[j + 1] - domain.z[j])
                - (rho[j + 1] * lay.V(x, j + 1) + rho[j] * lay.V(x, j)))
    assert rsd[domain.index(OFFSET_U, j)] == pytest.approx(expected)
    assert rsd[domain.index(OFFSET_L, 0)] == pytest.approx(-domain.rho_u(x, 0))


def test_free_flame_anchor(free_flame):
    domain, x = free_flame
    j = domain.set_fixed_temperature_point(0.5 * (domain.z[3] + domain.z[4]) - 1e-6, 1000.0)
    assert j == 3
    assert domain.fixed_point_location() == domain.z[3]

    rsd, _ = full_residual(domain, x)
    assert rsd[domain.index(OFFSET_U, 3)] == pytest.approx(domain.layout.T(x, 3) - 1000.0)

    # Upstream of the anchor the mass flux is integrated from the right
    rho = domain.properties.rho
    lay = domain.layout
    expected = (-(domain.rho_u(x, 2) - domain.rho_u(x, 1)) / (domain.z[2] - domain.z[1])
                - (rho[2] * lay.V(x, 2) + rho[1] * lay.V(x, 1)))
    assert rsd[domain.index(OFFSET_U, 1)] == pytest.approx(expected)


def test_free_flame_anchor_without_energy(free_flame):
    domain, x = free_flame
    domain.set_fixed_point(3, 1000.0)
    domain.finalize(x)
    domain.fix_temperature()
    rsd, _ = full_residual(domain, x)
    rho = domain.properties.rho
    assert rsd[domain.index(OFFSET_U, 3)] == pytest.approx(
        domain.rho_u(x, 3) - 0.3 * rho[0])


def test_stagnation_has_no_anchor(stagnation_flow):
    domain, _ = stagnation_flow
    domain.set_fixed_point(2, 1000.0)
    assert domain.fixed_point_location() is None


def test_boundary_species_rows(stagnation_flow):
    domain, x = stagnation_flow
    rsd, _ = full_residual(domain, x)
    lay = domain.layout
    n = domain.n_points
    k_left = int(np.argmax(lay.species(x, 0)))
    k_right = int(np.argmax(lay.species(x, n - 1)))
    assert rsd[domain.index(OFFSET_Y + k_left, 0)] == pytest.approx(
        1.0 - lay.species(x, 0).sum(), abs=1e-12)
    assert rsd[domain.index(OFFSET_Y + k_right, n - 1)] == pytest.approx(
        1.0 - lay.species(x, n - 1).sum(), abs=1e-12)


def test_transient_terms(stagnation_flow):
    domain, x = stagnation_flow
    with pytest.raises(StructuralError):
        full_residual(domain, x, rdt=10.0)

    domain.store_previous_solution(x)
    rsd_steady, _ = full_residual(domain, x)
    rsd_transient, _ = full_residual(domain, x, rdt=10.0)
    np.testing.assert_allclose(rsd_transient, rsd_steady)

    x_new = x.copy()
    iV = domain.index(OFFSET_V, 3)
    x_new[iV] += 1.0
    rsd_moved, _ = full_residual(domain, x_new)
    rsd_moved_transient, _ = full_residual(domain, x_new, rdt=10.0)
    assert rsd_moved_transient[iV] == pytest.approx(rsd_moved[iV] - 10.0)


def test_radiation_reduces_energy_residual(gas, simple_grid):
    domain = FlowDomain(gas, simple_grid)
    x = flame_like_solution(domain)
    rsd_off, _ = full_residual(domain, x)
    domain.enable_radiation(True)
    assert domain.radiation_enabled()
    rsd_on, _ = full_residual(domain, x)
    iT = domain.index(OFFSET_T, domain.n_points - 2)
    assert rsd_on[iT] < rsd_off[iT]


def test_emissivity_validation(stagnation_flow):
    domain, _ = stagnation_flow
    with pytest.raises(ConfigurationError, match="left boundary emissivity"):
        FlowConfig(emissivity_left=1.5)
    with pytest.raises(ConfigurationError, match="right boundary emissivity"):
        domain.set_boundary_emissivities(0.5, -0.1)
    domain.set_boundary_emissivities(0.2, 0.8)
    assert domain.epsilon_left == 0.2
    assert domain.epsilon_right == 0.8


def test_config_validation():
    with pytest.raises(ConfigurationError):
        FlowConfig(pressure=0.0)
    with pytest.raises(ConfigurationError):
        FlowConfig(transport='unknown')
    config = FlowConfig(transport='multicomponent')
    assert config.transport is TransportOption.MULTICOMPONENT


def test_residual_size_checks(gas, stagnation_flow):
    domain, x = stagnation_flow
    with pytest.raises(StructuralError):
        domain.evaluate_residual(None, x[:-1], np.zeros(len(x) - 1))
    with pytest.raises(StructuralError):
        domain.evaluate_residual(None, x, np.zeros(len(x) - 1))

    small = FlowDomain(gas, [0.0, 1.0])
    with pytest.raises(StructuralError):
        small.evaluate_residual(None, small.initial_solution(), np.zeros(small.size()))


def test_setup_grid_resizes(stagnation_flow):
    domain, _ = stagnation_flow
    domain.fix_temperature(domain.n_points - 1)
    domain.setup_grid(np.linspace(0.0, 0.02, 12))
    assert domain.n_points == 12
    assert domain.properties.rho.shape == (12,)
    assert domain.energy_enabled.shape == (12,)
    assert not domain.do_energy(11)
    with pytest.raises(GridSizeError):
        domain.setup_grid([0.0, 0.01, 0.005])
    with pytest.raises(StructuralError):
        domain.resize(domain.n_components + 1, 12)


def test_fixed_profile_follows_grid(stagnation_flow):
    domain, _ = stagnation_flow
    domain.set_fixed_temp_profile([0.0, 0.02], [300.0, 1300.0])
    domain.setup_grid([0.0, 0.005, 0.01, 0.02])
    np.testing.assert_allclose(domain.fixed_temp, [300.0, 550.0, 800.0, 1300.0])
    with pytest.raises(ConfigurationError):
        domain.set_fixed_temp_profile([0.0, 0.0], [300.0, 400.0])


def test_bounds(stagnation_flow):
    domain, _ = stagnation_flow
    lo, hi = domain.bounds(OFFSET_T)
    assert lo == 200.0
    assert hi > 1000.0
    assert domain.bounds(OFFSET_Y)[0] < 0.0


def test_show_solution(stagnation_flow):
    domain, x = stagnation_flow
    text = domain.show_solution(x)
    assert 'Pressure' in text
    assert 'lambda' in text
    assert domain.gas.species_names[-1] in text
    assert 'radiative heat loss' not in text


def test_save_and_restore(gas, stagnation_flow):
    domain, x = stagnation_flow
    domain.fix_temperature(2)
    domain.finalize(x)
    domain.set_boundary_emissivities(0.3, 0.4)
    domain.enable_radiation(True)
    doc = domain.save(x)
    assert doc['type'] == 'Axisymmetric Stagnation'
    assert doc['points'] == domain.n_points
    assert set(doc['components']) >= {'u', 'V', 'T', 'lambda'}

    other = FlowDomain(gas, np.linspace(0.0, 0.01, 4))
    x_restored = other.restore(doc)
    np.testing.assert_allclose(other.z, domain.z)
    np.testing.assert_allclose(x_restored, x)
    assert not other.do_energy(2)
    assert other.epsilon_left == 0.3
    assert other.radiation_enabled()
    assert other.T_fixed(2) == pytest.approx(domain.layout.T(x, 2))


def test_restore_free_flame_anchor(free_flame):
    domain, x = free_flame
    domain.set_fixed_point(4, 1100.0)
    doc = domain.save(x)
    other = FlowDomain(domain.gas, [0.0, 1.0, 2.0], flow_type=FlowType.FREE_FLAME)
    other.restore(doc)
    assert other.fixed_point_location() == domain.z[4]
    assert other.t_fixed == 1100.0


def test_restore_missing_data(stagnation_flow):
    domain, x = stagnation_flow
    doc = domain.save(x)
    del doc['components']['T']
    with pytest.raises(SolutionRestoreError, match="T"):
        domain.restore(doc)

    doc = domain.save(x)
    del doc['grid']
    with pytest.raises(SolutionRestoreError, match="grid"):
        domain.restore(doc)


def test_restore_missing_and_extra_species(stagnation_flow, caplog):
    domain, x = stagnation_flow
    doc = domain.save(x)
    del doc['components']['H2O2']
    doc['components']['CH4'] = [0.0] * domain.n_points
    x_restored = domain.restore(doc)
    k = domain.component_index('H2O2')
    np.testing.assert_array_equal(domain.layout.column(x_restored, k), 0.0)
    assert 'H2O2' in caplog.text
    assert 'CH4' in caplog.text


def test_free_flame_requires_anchor(free_flame):
    domain, x = free_flame
    with pytest.raises(StructuralError, match="anchor"):
        full_residual(domain, x)
    with pytest.raises(StructuralError, match="anchor"):
        domain.evaluate_residual(2, x, np.zeros_like(x))


def test_free_flame_anchor_must_be_interior(free_flame):
    domain, _ = free_flame
    with pytest.raises(ConfigurationError, match="interior"):
        domain.set_fixed_point(0, 300.0)
    with pytest.raises(ConfigurationError, match="interior"):
        domain.set_fixed_point(domain.n_points - 1, 1500.0)
    with pytest.raises(ConfigurationError):
        domain.set_fixed_temperature_point(1.0, 1500.0)
    assert domain.fixed_point_location() is None


def test_free_flame_anchor_follows_regrid(free_flame):
    domain, x = free_flame
    domain.set_fixed_point(3, domain.layout.T(x, 3))
    z_new = np.linspace(0.0, 0.02, 6)
    assert domain.z[3] not in z_new
    x_new = interpolate_solution(domain.layout, domain.z, x, z_new)
    domain.setup_grid(z_new)
    with pytest.raises(StructuralError, match="anchor"):
        full_residual(domain, x_new)

    domain.finalize(x_new)
    assert domain.fixed_point_location() in domain.z[1:-1]
    rsd, _ = full_residual(domain, x_new)
    assert np.all(np.isfinite(rsd))


def test_restore_unknown_transport_model(stagnation_flow):
    domain, x = stagnation_flow
    doc = domain.save(x)
    doc['transport_model'] = 'unity-Lewis-number'
    with pytest.raises(SolutionRestoreError, match="unity-Lewis-number"):
        domain.restore(doc)
