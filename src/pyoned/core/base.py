"""
Base classes and interfaces for PyOneD components.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional


class OneDComponent(ABC):
    """
    Base class for all PyOneD components providing common functionality
    and enforcing interface requirements.
    """
    def __init__(self, config: Optional[Any] = None):
        self._config = config if config is not None else {}
        # Derived classes allocate their arrays in initialize()
        self._initialized = False

    @abstractmethod
    def initialize(self) -> None:
        """Allocate arrays for the current configuration."""
        self._initialized = True

    def is_initialized(self) -> bool:
        """Check if component has been initialized."""
        return self._initialized

    @property
    def config(self) -> Any:
        return self._config


class GridComponent(OneDComponent):
    """Base class for grid-related components."""
    @abstractmethod
    def update_grid_metrics(self) -> None:
        """Update grid metrics such as spacing and midpoint locations."""
        pass


class TransportComponent(OneDComponent):
    """Base class for per-point property storage."""
    @abstractmethod
    def resize(self, n_points: int) -> None:
        """Reallocate per-point arrays for a new grid size."""
        pass


class DomainComponent(OneDComponent):
    """Base class for flow domains that assemble residuals."""
    @abstractmethod
    def evaluate_residual(self, j, x, rsd, diag=None, rdt: float = 0.0) -> None:
        """Evaluate the residual of the governing equations."""
        pass
