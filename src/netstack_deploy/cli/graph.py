"""Graph command for visualizing resource dependencies."""

import sys
from typing import Optional, Set

import click
from rich.console import Console
from rich.tree import Tree
from rich.panel import Panel

from ..orchestrator.dependency_graph import DependencyGraph
from ..orchestrator.orchestrator import ExitStatus
from ..resources.models import ResourceKind, ResourceModel
from ..topologies import load_topology
from ..utils.errors import DeploymentError
from ..utils.logging import get_logger

logger = get_logger(__name__)
console = Console()


@click.command()
@click.option('-f', '--file', 'config_path', help='Topology file')
@click.option('--topology', 'topology_name', help='Built-in topology name (default: webserver)')
@click.option('--format', type=click.Choice(['tree', 'dot']), default='tree', help='Output format')
@click.option('--output', help='Write dot output to this file instead of stdout')
def graph(config_path: Optional[str], topology_name: Optional[str], format: str, output: Optional[str]):
    """Visualize resource dependency graph."""
    try:
        topology = load_topology(config_path, topology_name)
        dep_graph = DependencyGraph.from_model(ResourceModel(topology.specs))
    except DeploymentError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(ExitStatus.INVALID_TOPOLOGY)

    if format == 'tree':
        _output_tree(dep_graph, topology.name)
    else:
        dot_content = generate_dot(dep_graph, topology.name)
        if output:
            with open(output, 'w') as f:
                f.write(dot_content)
            console.print(f"[green]Graph saved to {output}[/green]")
        else:
            click.echo(dot_content)


def _output_tree(dep_graph: DependencyGraph, name: str):
    """Output dependency graph as a tree rooted at resources with no references."""
    console.print(Panel(f"Resource Dependency Graph - {name}", style="bold blue"))
    console.print()

    roots = dep_graph.get_roots()
    if not roots:
        console.print("[dim]No resources found[/dim]")
        return

    for root in roots:
        tree = Tree(f"[bold cyan]{root}[/bold cyan]")
        _build_tree_recursive(tree, root, dep_graph, set())
        console.print(tree)
        console.print()


def _build_tree_recursive(tree: Tree, resource_id: str, dep_graph: DependencyGraph, visited: Set[str]):
    """Recursively add dependents under their dependency."""
    visited.add(resource_id)
    for dependent in sorted(dep_graph.get_dependents(resource_id)):
        if dependent in visited:
            continue
        branch = tree.add(f"[cyan]{dependent}[/cyan]")
        _build_tree_recursive(branch, dependent, dep_graph, visited.copy())


def generate_dot(dep_graph: DependencyGraph, name: str) -> str:
    """Generate DOT format graph; edges point from dependency to dependent."""
    lines = [
        'digraph ResourceDependencies {',
        '  rankdir=TB;',
        '  node [shape=box, style=rounded, fontname="Arial"];',
        '  labelloc="t";',
        f'  label="Resource Dependencies\\n{name}";',
        ''
    ]

    resource_ids = dep_graph.topological_sort()
    for resource_id in resource_ids:
        resource = dep_graph.get_resource(resource_id)
        color = _get_resource_color(resource.kind)
        lines.append(
            f'  "{resource_id}" [label="{resource_id}\\n({resource.kind.value})", '
            f'fillcolor="{color}", style="filled,rounded"];'
        )

    lines.append('')

    for resource_id in resource_ids:
        for dep in sorted(dep_graph.get_dependencies(resource_id)):
            lines.append(f'  "{dep}" -> "{resource_id}";')

    lines.append('}')

    return '\n'.join(lines)


def _get_resource_color(kind: ResourceKind) -> str:
    """Get color for resource kind."""
    color_map = {
        ResourceKind.NETWORK: '#248814',
        ResourceKind.SUBNET: '#248814',
        ResourceKind.INTERNET_GATEWAY: '#248814',
        ResourceKind.ROUTE_TABLE: '#248814',
        ResourceKind.ROUTE_TABLE_ASSOCIATION: '#248814',
        ResourceKind.SECURITY_GROUP: '#DD344C',
        ResourceKind.SECURITY_GROUP_RULE: '#DD344C',
        ResourceKind.LOAD_BALANCER: '#8C4FFF',
        ResourceKind.TARGET_GROUP: '#8C4FFF',
        ResourceKind.LISTENER: '#8C4FFF',
        ResourceKind.LAUNCH_TEMPLATE: '#FF9900',
        ResourceKind.AUTOSCALING_GROUP: '#FF9900',
    }
    return color_map.get(kind, '#CCCCCC')
