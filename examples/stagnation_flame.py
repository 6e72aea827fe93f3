import logging

import numpy as np
import cantera as ct

from pyoned.core.grid import interpolate_solution
from pyoned.solvers.flow import FlowConfig, FlowDomain, FlowType
from pyoned.utils.visualization import FlowVisualizer

logging.basicConfig(level=logging.INFO)

gas = ct.Solution('h2o2.yaml')
gas.TPX = 300.0, ct.one_atm, 'H2:2.0, O2:1.0, AR:5.0'
Y_unburned = gas.Y.copy()
gas.equilibrate('HP')
T_burned = gas.T
Y_burned = gas.Y.copy()

# Initial grid and a flame-like profile
z = np.linspace(0.0, 0.02, 11)


def initial_profile(domain):
    x = domain.initial_solution()
    lay = domain.layout
    w = 0.5 * (1.0 + np.tanh((domain.z - 0.01) / 0.001))
    for j in range(domain.n_points):
        lay.set_u(x, j, 0.5 * (1.0 - domain.z[j] / domain.z[-1]))
        lay.set_V(x, j, 10.0)
        lay.set_T(x, j, 300.0 + w[j] * (T_burned - 300.0))
        lay.set_species(x, j, (1 - w[j]) * Y_unburned + w[j] * Y_burned)
    return x


for flow_type in (FlowType.AXISYMMETRIC_STAGNATION, FlowType.FREE_FLAME):
    domain = FlowDomain(gas, z, flow_type=flow_type,
                        config=FlowConfig(radiation=True, emissivity_left=0.5))
    x = initial_profile(domain)
    if flow_type is FlowType.FREE_FLAME:
        domain.set_fixed_temperature_point(0.01, 0.5 * (300.0 + T_burned))

    # Evaluate, refine and interpolate until no new points are needed
    for it in range(5):
        rsd = np.zeros_like(x)
        domain.evaluate_residual(None, x, rsd)
        print(f"{domain.flow_type_name}: {domain.n_points} points, "
              f"max |residual| = {np.max(np.abs(rsd)):.4e}")

        n_new = domain.refiner.analyze(domain.z, x)
        if n_new == 0 and domain.refiner.n_removed_points() == 0:
            break
        domain.refiner.show()
        z_new = domain.refiner.get_new_grid(domain.z)
        x = interpolate_solution(domain.layout, domain.z, x, z_new)
        domain.setup_grid(z_new)
        domain.finalize(x)

    domain.show_solution(x)

    viz = FlowVisualizer(domain)
    fig = viz.plot_solution(x, species_names=['H2', 'O2', 'H2O'])
    fig.savefig(f'{domain.id}.png')
