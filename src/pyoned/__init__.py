"""
PyOneD: residual model and grid refinement for one-dimensional reacting flows
"""
from importlib.metadata import version

__version__ = version("pyoned")

from .core.base import (
    OneDComponent,
    GridComponent,
    TransportComponent,
    DomainComponent
)
from .core.errors import (
    OneDError,
    ConfigurationError,
    GridSizeError,
    StructuralError,
    SolutionRestoreError
)
from .core.layout import FlowStateLayout
from .core.grid import FlowGrid, interpolate_solution
from .core.refine import RefineCriteria, Refiner
from .transport.properties import TransportOption
from .solvers.flow import FlowConfig, FlowDomain, FlowType
