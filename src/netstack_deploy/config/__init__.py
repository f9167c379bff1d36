"""Topology configuration loading and validation."""

from .models import ResourceDefinition, Settings, Topology, TopologyDocument
from .parser import ConfigValidationError, TopologyConfig

__all__ = [
    "TopologyConfig",
    "ConfigValidationError",
    "Topology",
    "TopologyDocument",
    "ResourceDefinition",
    "Settings",
]
