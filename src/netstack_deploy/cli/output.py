"""Outputs command for showing values recorded by a run."""

import sys
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from ..orchestrator.outputs import OutputExtractor
from ..state.models import StateSnapshot
from ..state.store import load_snapshot
from ..topologies import load_topology
from ..utils.errors import DeploymentError
from ..utils.logging import get_logger

logger = get_logger(__name__)
console = Console()

DEFAULT_STATE_FILE = '.netstack/state.json'


@click.command()
@click.option('--state-file', default=DEFAULT_STATE_FILE, show_default=True, help='Snapshot written by apply')
@click.option('-f', '--file', 'config_path', help='Topology file declaring the outputs')
@click.option('--topology', 'topology_name', help='Built-in topology declaring the outputs')
@click.option('--format', type=click.Choice(['table', 'json', 'env']), default='table', help='Output format')
@click.option('--output-name', help='Show specific output value')
def outputs(state_file: str, config_path: Optional[str], topology_name: Optional[str], format: str,
            output_name: Optional[str]):
    """Show outputs (load balancer DNS name, IDs, etc.) from a saved run."""
    try:
        snapshot = load_snapshot(state_file)

        if config_path or topology_name:
            topology = load_topology(config_path, topology_name)
            values = OutputExtractor().extract_named(snapshot, topology.outputs)
        else:
            values = _collect_outputs(snapshot)

        if not values:
            console.print("[dim]No outputs found[/dim]")
            return

        if output_name:
            if output_name in values:
                click.echo(values[output_name])
            else:
                console.print(f"[red]Output '{output_name}' not found[/red]")
                sys.exit(1)
            return

        if format == 'table':
            _output_table(values, state_file)
        elif format == 'json':
            _output_json(values)
        elif format == 'env':
            _output_env(values)

    except DeploymentError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        for suggestion in e.suggestions:
            console.print(f"  [dim]{suggestion}[/dim]")
        sys.exit(1)


def _collect_outputs(snapshot: StateSnapshot) -> Dict[str, Any]:
    """Every recorded output of every created resource, keyed ``name.attr``."""
    values = {}
    for logical_name in sorted(snapshot):
        state = snapshot[logical_name]
        if not state.is_created():
            continue
        for attribute, value in sorted(state.outputs.items()):
            if value is not None:
                values[f'{logical_name}.{attribute}'] = value
    return values


def _output_table(values: Dict[str, Any], state_file: str):
    """Output in table format."""
    console.print(Panel(f"Outputs - {state_file}", style="bold blue"))
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Output Name", style="cyan")
    table.add_column("Value", style="white")

    for name, value in values.items():
        table.add_row(name, str(value))

    console.print(table)


def _output_json(values: Dict[str, Any]):
    """Output in JSON format."""
    console.print_json(data=values)


def _output_env(values: Dict[str, Any]):
    """Output in environment variable format."""
    for name, value in values.items():
        env_name = name.upper().replace('-', '_').replace('.', '_')
        click.echo(f'export {env_name}="{value}"')
