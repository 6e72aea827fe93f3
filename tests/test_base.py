"""
Tests for base components
"""
import pytest

from pyoned.core.base import OneDComponent, DomainComponent
from pyoned.core.errors import (ConfigurationError, GridSizeError, OneDError,
                                SolutionRestoreError, StructuralError)


def test_component_requires_implementation():
    """Test that OneDComponent cannot be instantiated without implementation."""
    with pytest.raises(TypeError):
        OneDComponent()


def test_domain_component_requires_residual():
    class NoResidual(DomainComponent):
        def initialize(self):
            super().initialize()

    with pytest.raises(TypeError):
        NoResidual()


def test_component_configuration():
    """Test component configuration handling."""
    class TestComponent(OneDComponent):
        def initialize(self):
            super().initialize()

    config = {'test': 'value'}
    component = TestComponent(config)
    assert component.config == config
    assert not component.is_initialized()
    component.initialize()
    assert component.is_initialized()


def test_error_hierarchy():
    assert issubclass(GridSizeError, ConfigurationError)
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(StructuralError, RuntimeError)
    for err in (ConfigurationError, GridSizeError, StructuralError,
                SolutionRestoreError):
        assert issubclass(err, OneDError)
