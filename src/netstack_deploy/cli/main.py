"""Main CLI entry point."""

import signal
import sys
import threading
from contextlib import contextmanager
from typing import Optional

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table
from rich.panel import Panel

from netstack_deploy.cli.graph import graph
from netstack_deploy.cli.output import outputs, DEFAULT_STATE_FILE
from netstack_deploy.config.models import Topology
from netstack_deploy.orchestrator.executor import ProgressCallback
from netstack_deploy.orchestrator.orchestrator import ExitStatus, Provisioner, RunResult
from netstack_deploy.orchestrator.planner import DeploymentPlan
from netstack_deploy.provisioners.aws import AWSTransport
from netstack_deploy.state.models import Lifecycle
from netstack_deploy.topologies import builtin_names, load_topology
from netstack_deploy.utils.aws_client import AWSClientManager
from netstack_deploy.utils.errors import DeploymentError, ValidationError, error_handler
from netstack_deploy.utils.logging import setup_logging, get_logger

console = Console()
logger = get_logger(__name__)

LIFECYCLE_STYLES = {
    Lifecycle.PENDING: "dim",
    Lifecycle.CREATING: "yellow",
    Lifecycle.CREATED: "green",
    Lifecycle.FAILED: "red",
    Lifecycle.ROLLED_BACK: "cyan",
}


@click.group()
@click.option('--profile', help='AWS profile to use')
@click.option('--region', help='AWS region')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--log-dir', default='.netstack/logs', show_default=True, help='Directory for JSON log files')
@click.pass_context
def cli(ctx, profile, region, log_level, log_dir):
    """Dependency-ordered AWS network and web stack provisioning."""
    ctx.ensure_object(dict)
    ctx.obj['profile'] = profile
    ctx.obj['region'] = region
    ctx.obj['log_level'] = log_level

    # Setup logging
    setup_logging(log_level, log_dir or None)


cli.add_command(outputs)
cli.add_command(graph)


def topology_options(func):
    """Shared options selecting a topology file or a built-in topology."""
    func = click.option(
        '--topology', 'topology_name',
        type=click.Choice(builtin_names()),
        help='Built-in topology (default: webserver)'
    )(func)
    func = click.option('-f', '--file', 'config_path', help='Path to a topology YAML file')(func)
    return func


def load_or_exit(ctx, config_path: Optional[str], topology_name: Optional[str]) -> Topology:
    """Load the selected topology, exiting with the invalid-topology status on error."""
    try:
        return load_topology(config_path, topology_name, region=ctx.obj.get('region'))
    except DeploymentError as e:
        console.print("[red]Topology could not be loaded:[/red]\n")
        console.print(str(e))
        for suggestion in e.suggestions:
            console.print(f"  [dim]{suggestion}[/dim]")
        sys.exit(ExitStatus.INVALID_TOPOLOGY)


def create_transport(ctx, topology: Topology) -> AWSTransport:
    """Create the AWS transport, validating credentials first."""
    client_manager = AWSClientManager(
        profile=ctx.obj.get('profile'),
        region=ctx.obj.get('region') or topology.region
    )
    try:
        client_manager.validate_credentials()
    except Exception as e:
        error = error_handler.handle_exception(e)
        console.print(f"[red]Error creating AWS session:[/red]\n{error.to_user_message()}")
        sys.exit(1)
    return AWSTransport(client_manager)


@contextmanager
def cancel_on_interrupt(cancel_event: threading.Event):
    """Turn the first Ctrl-C into a cancel request; a second one aborts."""
    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()
        console.print(
            "\n[yellow]Cancelling: waiting for in-flight resources, then rolling back "
            "(press Ctrl-C again to abort immediately)[/yellow]"
        )

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGINT, previous)


class RichProgressCallback(ProgressCallback):
    """Progress callback that displays updates using Rich."""

    def __init__(self, progress: Progress, task_id):
        self.progress = progress
        self.task_id = task_id
        self.completed = 0
        self.rollback_task_id = None

    def on_start(self, total_resources: int):
        """Called when execution starts."""
        self.progress.update(self.task_id, total=total_resources)

    def on_resource_start(self, resource_id: str, resource_kind: str):
        """Called when a resource starts provisioning."""
        self.progress.update(
            self.task_id,
            description=f"[cyan]Creating:[/cyan] {resource_id} ({resource_kind})"
        )

    def on_resource_complete(self, resource_id: str, resource_kind: str, success: bool):
        """Called when a resource completes."""
        self.completed += 1
        status = "[green]✓[/green]" if success else "[red]✗[/red]"
        self.progress.update(
            self.task_id,
            completed=self.completed,
            description=f"{status} {resource_id}"
        )

    def on_rollback_start(self, total_resources: int):
        self.rollback_task_id = self.progress.add_task("[yellow]Rolling back...", total=total_resources)

    def on_rollback_resource(self, resource_id: str, success: bool):
        status = "[cyan]↺[/cyan]" if success else "[red]✗[/red]"
        self.progress.update(self.rollback_task_id, advance=1, description=f"{status} {resource_id}")

    def on_complete(self, success: bool):
        """Called when execution completes."""
        status = "[green]Complete[/green]" if success else "[red]Failed[/red]"
        self.progress.update(self.task_id, description=status)


def print_plan(plan: DeploymentPlan, title: str):
    """Print the batches of a deployment plan."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Batch", justify="right", style="bold")
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Depends on", style="dim")

    for wave in plan.waves:
        for index, resource_id in enumerate(wave.resource_ids):
            planned = wave.resources[resource_id]
            table.add_row(
                str(wave.wave_number) if index == 0 else "",
                resource_id,
                planned.kind.value,
                ", ".join(planned.dependencies) or "-"
            )
        if wave.wave_number < len(plan.waves):
            table.add_section()

    console.print(table)
    console.print(
        f"\n{plan.get_total_resources()} resources in {len(plan.waves)} batches. "
        f"Rollback order: {' -> '.join(plan.destruction_order)}"
    )


def print_run_result(result: RunResult):
    """Print the final state and outputs of a run."""
    apply_result = result.apply_result

    table = Table(title="Final state", show_header=True, header_style="bold")
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Lifecycle")
    table.add_column("Provider ID", style="dim")
    for logical_name in sorted(result.snapshot):
        state = result.snapshot[logical_name]
        style = LIFECYCLE_STYLES[state.lifecycle]
        table.add_row(
            logical_name,
            state.kind.value,
            f"[{style}]{state.lifecycle.value}[/{style}]",
            state.provider_id or "-"
        )
    console.print(table)
    console.print()

    if result.is_success():
        lines = [
            "[green]✓ Deployment completed successfully[/green]\n",
            f"Total resources: {apply_result.total_resources}",
            f"Duration: {apply_result.duration:.2f}s",
        ]
        for name, value in result.outputs.items():
            lines.append(f"{name}: [bold]{value}[/bold]")
            if name.endswith('dns_name'):
                lines.append(f"Access your web application at: [bold]http://{value}[/bold]")
        console.print(Panel.fit("\n".join(lines), title="Deployment Complete", border_style="green"))
        return

    if result.status == ExitStatus.OUTPUTS_UNAVAILABLE:
        lines = [
            "[yellow]⚠ All resources were created but an output is unavailable[/yellow]\n",
            f"Error: {result.error.message}",
            f"Total resources: {apply_result.total_resources}",
            f"Duration: {apply_result.duration:.2f}s",
            "Resources were left in place; inspect them with 'netstack outputs'",
        ]
        console.print(Panel.fit("\n".join(lines), title="Outputs Unavailable", border_style="yellow"))
        return

    failed = apply_result.get_failed_resource_ids()
    error_message = result.error.message if result.error else "unknown error"
    lines = [
        "[red]✗ Deployment failed[/red]\n",
        f"Error: {error_message}",
        f"Failed resources: {', '.join(failed) or '-'}",
        f"Duration: {apply_result.duration:.2f}s",
    ]
    rollback = result.rollback_result
    if rollback is not None:
        lines.append(f"Rolled back: {len(rollback.rolled_back)}/{rollback.get_total_operations()}")

    if result.status == ExitStatus.ROLLBACK_INCOMPLETE:
        console.print(Panel.fit("\n".join(lines), title="Rollback Incomplete", border_style="red"))
        console.print("\n[bold]Resources that need manual cleanup:[/bold]")
        for resource_id, error in result.rollback_failures.items():
            state = result.snapshot[resource_id]
            console.print(f"  [red]✗[/red] {resource_id} ({state.provider_id}): {error}")
    else:
        console.print(Panel.fit("\n".join(lines), title="Deployment Rolled Back", border_style="yellow"))


@cli.command()
@topology_options
@click.option('--format', type=click.Choice(['table', 'json']), default='table', help='Output format')
@click.pass_context
def plan(ctx, config_path, topology_name, format):
    """Show the batches an apply would execute, without touching AWS."""
    topology = load_or_exit(ctx, config_path, topology_name)
    try:
        deployment_plan = Provisioner(topology, transport=None).plan()
    except ValidationError as e:
        console.print(f"[red]Invalid topology:[/red] {e.message}")
        sys.exit(ExitStatus.INVALID_TOPOLOGY)

    if format == 'json':
        console.print_json(data=deployment_plan.to_dict())
    else:
        print_plan(deployment_plan, f"Deployment plan: {topology.name}")


@cli.command()
@topology_options
@click.option('--parallel/--sequential', default=None, help='Create independent resources concurrently')
@click.option('--max-workers', type=click.IntRange(1, 64), help='Maximum concurrent create calls')
@click.option('--state-file', default=DEFAULT_STATE_FILE, show_default=True, help='Where to write the final state')
@click.option('--dry-run', is_flag=True, help='Show the plan and exit')
@click.pass_context
def apply(ctx, config_path, topology_name, parallel, max_workers, state_file, dry_run):
    """Create every resource of a topology, rolling back on failure."""
    topology = load_or_exit(ctx, config_path, topology_name)

    if dry_run:
        try:
            deployment_plan = Provisioner(topology, transport=None).plan()
        except ValidationError as e:
            console.print(f"[red]Invalid topology:[/red] {e.message}")
            sys.exit(ExitStatus.INVALID_TOPOLOGY)
        print_plan(deployment_plan, f"Dry run: {topology.name}")
        return

    transport = create_transport(ctx, topology)
    provisioner = Provisioner(
        topology,
        transport,
        max_workers=max_workers,
        parallel=parallel,
        state_file=state_file
    )

    console.print(Panel.fit(
        f"[bold]Deploying {topology.name}[/bold]\n"
        f"Region: {ctx.obj.get('region') or topology.region or 'default'}\n"
        f"Resources: {len(topology.specs)}\n"
        f"Mode: {'parallel' if provisioner.parallel else 'sequential'} "
        f"(max workers: {provisioner.max_workers})",
        title="Deployment Configuration",
        border_style="cyan"
    ))

    try:
        with cancel_on_interrupt(threading.Event()) as cancel_event, Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console
        ) as progress:
            task_id = progress.add_task("[cyan]Starting deployment...", total=None)
            result = provisioner.run(
                cancel_event=cancel_event,
                progress_callback=RichProgressCallback(progress, task_id)
            )
    except KeyboardInterrupt:
        console.print(f"[red]Aborted.[/red] Partial state may remain; see {state_file}")
        sys.exit(ExitStatus.ROLLBACK_INCOMPLETE)

    console.print()
    if result.status == ExitStatus.INVALID_TOPOLOGY:
        console.print(f"[red]Invalid topology:[/red] {result.error.message}")
    else:
        print_run_result(result)
        console.print(f"\n[dim]State written to {state_file}[/dim]")

    sys.exit(int(result.status))


@cli.command()
@topology_options
@click.pass_context
def validate(ctx, config_path, topology_name):
    """Validate a topology: schema, references, and cycles."""
    topology = load_or_exit(ctx, config_path, topology_name)
    try:
        model, dep_graph = Provisioner(topology, transport=None).load()
    except ValidationError as e:
        console.print(f"[red]✗ Invalid topology:[/red] {e.message}")
        sys.exit(ExitStatus.INVALID_TOPOLOGY)

    console.print(
        f"[green]✓ Topology '{topology.name}' is valid:[/green] "
        f"{len(model)} resources, {len(dep_graph.get_deployment_waves())} batches"
    )


if __name__ == '__main__':
    cli()
