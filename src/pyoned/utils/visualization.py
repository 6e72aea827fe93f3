"""
Visualization tools for PyOneD flow solutions
"""
import numpy as np
import matplotlib.pyplot as plt
from typing import Optional, List

from ..core.layout import OFFSET_T, OFFSET_U, OFFSET_V, OFFSET_Y


class FlowVisualizer:
    """
    Visualization tools for flow domain solutions
    """
    def __init__(self, domain):
        self.domain = domain
        self.fig = None

    def plot_solution(self, x: np.ndarray, species_names: Optional[List[str]] = None,
                      show_grid: bool = True):
        """
        Plot temperature, species and velocity profiles of a solution

        Args:
            x: Solution vector of the domain
            species_names: List of species to plot (if None, plots major species)
            show_grid: Mark the grid points on the temperature profile

        Returns:
            matplotlib.figure.Figure
        """
        lay = self.domain.layout
        z = self.domain.z * 1000  # Convert to mm

        if self.fig is None:
            self.fig, (ax1, ax2, ax3) = plt.subplots(3, 1, figsize=(10, 12))
            self.fig.suptitle(f'{self.domain.flow_type_name}: {self.domain.id}')
        else:
            ax1, ax2, ax3 = self.fig.axes
            for ax in (ax1, ax2, ax3):
                ax.clear()

        # Temperature profile
        T = lay.column(x, OFFSET_T)
        ax1.plot(z, T, 'r-', label='Temperature')
        if show_grid:
            ax1.plot(z, T, 'k|', markersize=6, label='Grid points')
        ax1.set_ylabel('Temperature [K]')
        ax1.legend()
        ax1.grid(True)

        # Species profiles
        if species_names is None:
            # Plot major species (Y > 0.01 anywhere)
            species_names = [name for k, name in enumerate(lay.species_names)
                             if np.max(lay.column(x, OFFSET_Y + k)) > 0.01]
        for name in species_names:
            n = lay.component_index(name)
            ax2.plot(z, lay.column(x, n), label=name)
        ax2.set_ylabel('Mass Fraction')
        if species_names:
            ax2.legend()
        ax2.grid(True)

        # Velocity profiles
        ax3.plot(z, lay.column(x, OFFSET_U), 'b-', label='u [m/s]')
        ax3.plot(z, lay.column(x, OFFSET_V), 'g--', label='V [1/s]')
        ax3.set_xlabel('Position [mm]')
        ax3.set_ylabel('Velocity')
        ax3.legend()
        ax3.grid(True)

        self.fig.tight_layout()
        return self.fig

    def plot_refinement(self, z_old, z_new):
        """
        Compare grids before and after refinement

        Returns:
            matplotlib.figure.Figure
        """
        z_old = np.asarray(z_old) * 1000
        z_new = np.asarray(z_new) * 1000
        fig, ax = plt.subplots(figsize=(10, 3))
        ax.plot(z_old, np.zeros_like(z_old), 'ko', label=f'old ({len(z_old)} points)')
        ax.plot(z_new, np.ones_like(z_new), 'r|', markersize=12,
                label=f'new ({len(z_new)} points)')
        added = np.setdiff1d(z_new, z_old)
        if len(added):
            ax.plot(added, np.ones_like(added), 'bo', label='inserted')
        ax.set_yticks([0, 1])
        ax.set_yticklabels(['old', 'new'])
        ax.set_ylim(-0.5, 1.5)
        ax.set_xlabel('Position [mm]')
        ax.legend(loc='upper right')
        fig.tight_layout()
        return fig
