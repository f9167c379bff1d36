"""Built-in topologies available without a topology file."""

from typing import Callable, Dict, List, Optional

from netstack_deploy.config.models import Topology
from netstack_deploy.config.parser import TopologyConfig
from netstack_deploy.utils.errors import ConfigurationError
from .webserver import webserver_topology

BUILTIN_TOPOLOGIES: Dict[str, Callable[..., Topology]] = {
    'webserver': webserver_topology,
}


def builtin_names() -> List[str]:
    return sorted(BUILTIN_TOPOLOGIES)


def get_builtin_topology(name: str, region: Optional[str] = None) -> Topology:
    """Build a built-in topology by name.

    Raises:
        ConfigurationError: If no built-in topology has that name
    """
    if name not in BUILTIN_TOPOLOGIES:
        raise ConfigurationError(
            f"Unknown built-in topology '{name}'",
            suggestions=[f"Available topologies: {', '.join(builtin_names())}"]
        )
    if region:
        return BUILTIN_TOPOLOGIES[name](region=region)
    return BUILTIN_TOPOLOGIES[name]()


def load_topology(
    config_path: Optional[str] = None,
    name: Optional[str] = None,
    region: Optional[str] = None
) -> Topology:
    """Load a topology from a file, or fall back to a built-in one.

    Args:
        config_path: Topology YAML file; takes precedence over ``name``
        name: Built-in topology name, ``webserver`` when neither is given
        region: Region override

    Raises:
        ConfigurationError: If the file is invalid or the name is unknown
    """
    if config_path:
        topology = TopologyConfig(config_path).load()
        if region:
            topology = topology.model_copy(update={'region': region})
        return topology
    return get_builtin_topology(name or 'webserver', region=region)


__all__ = [
    'BUILTIN_TOPOLOGIES',
    'builtin_names',
    'get_builtin_topology',
    'load_topology',
    'webserver_topology',
]
