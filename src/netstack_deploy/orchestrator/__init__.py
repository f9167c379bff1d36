"""Orchestrator module for dependency resolution, apply, and rollback."""

from netstack_deploy.orchestrator.dependency_graph import DependencyGraph, DependencyNode
from netstack_deploy.orchestrator.planner import (
    DeploymentPlanner,
    DeploymentPlan,
    DeploymentWave,
    PlannedResource
)
from netstack_deploy.orchestrator.executor import (
    ApplyEngine,
    ApplyResult,
    ExecutionStatus,
    ResourceExecutionResult,
    WaveExecutionResult,
    ProgressCallback
)
from netstack_deploy.orchestrator.rollback import RollbackController, RollbackResult
from netstack_deploy.orchestrator.outputs import OutputExtractor
from netstack_deploy.orchestrator.orchestrator import ExitStatus, Provisioner, RunResult

__all__ = [
    # Dependency graph
    'DependencyGraph',
    'DependencyNode',

    # Planning
    'DeploymentPlanner',
    'DeploymentPlan',
    'DeploymentWave',
    'PlannedResource',

    # Execution
    'ApplyEngine',
    'ApplyResult',
    'ExecutionStatus',
    'ResourceExecutionResult',
    'WaveExecutionResult',
    'ProgressCallback',

    # Rollback
    'RollbackController',
    'RollbackResult',

    # Outputs
    'OutputExtractor',

    # Run coordinator
    'ExitStatus',
    'Provisioner',
    'RunResult',
]
