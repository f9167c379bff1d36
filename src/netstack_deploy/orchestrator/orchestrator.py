"""Run coordinator: validate, apply, roll back, and extract outputs."""

import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional

from netstack_deploy.config.models import Topology
from netstack_deploy.orchestrator.dependency_graph import DependencyGraph
from netstack_deploy.orchestrator.executor import ApplyEngine, ApplyResult, ProgressCallback
from netstack_deploy.orchestrator.outputs import OutputExtractor
from netstack_deploy.orchestrator.planner import DeploymentPlanner, DeploymentPlan
from netstack_deploy.orchestrator.rollback import RollbackController, RollbackResult
from netstack_deploy.provisioners.base import Transport
from netstack_deploy.resources.models import ResourceModel
from netstack_deploy.state.models import StateSnapshot
from netstack_deploy.state.store import StateStore
from netstack_deploy.utils.errors import (
    DeploymentError,
    OutputNotAvailableError,
    ValidationError,
    error_handler,
)
from netstack_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ExitStatus(IntEnum):
    """Process exit status of a run."""
    SUCCESS = 0
    ROLLED_BACK = 1  # apply failed, rollback succeeded
    ROLLBACK_INCOMPLETE = 2  # apply failed, some resources could not be destroyed
    INVALID_TOPOLOGY = 3  # nothing was attempted
    OUTPUTS_UNAVAILABLE = 4  # every resource was created, a declared output is missing


@dataclass
class RunResult:
    """Structured result of a run."""

    status: ExitStatus
    snapshot: Optional[StateSnapshot] = None
    apply_result: Optional[ApplyResult] = None
    outputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[DeploymentError] = None

    @property
    def rollback_result(self) -> Optional[RollbackResult]:
        return self.apply_result.rollback if self.apply_result else None

    @property
    def rollback_failures(self) -> Dict[str, str]:
        """Resources that could not be rolled back and need manual cleanup."""
        rollback = self.rollback_result
        return dict(rollback.failed_resources) if rollback else {}

    def is_success(self) -> bool:
        return self.status == ExitStatus.SUCCESS


class Provisioner:
    """Coordinates one provisioning run of a topology."""

    def __init__(
        self,
        topology: Topology,
        transport: Transport,
        max_workers: Optional[int] = None,
        parallel: Optional[bool] = None,
        state_file: Optional[str] = None
    ):
        """Initialize the run coordinator.

        Args:
            topology: Topology to provision
            transport: Collaborator performing remote create/destroy calls
            max_workers: Overrides the topology's max_workers setting
            parallel: Overrides the topology's parallel setting
            state_file: Where to write the final snapshot, if anywhere
        """
        self.topology = topology
        self.transport = transport
        self.max_workers = max_workers if max_workers is not None else topology.settings.max_workers
        self.parallel = parallel if parallel is not None else topology.settings.parallel
        self.state_file = state_file
        self.planner = DeploymentPlanner()
        self.extractor = OutputExtractor()
        self.logger = get_logger(__name__)

    def load(self):
        """Build and validate the resource model and dependency graph.

        Returns:
            Tuple of (ResourceModel, DependencyGraph)

        Raises:
            ValidationError: If names are duplicated, a reference dangles,
                or the references form a cycle
        """
        model = ResourceModel(self.topology.specs)
        graph = DependencyGraph.from_model(model)
        return model, graph

    def plan(self) -> DeploymentPlan:
        """Create a dry-run plan; the transport is never called."""
        model, graph = self.load()
        return self.planner.create_deployment_plan(model, graph)

    def run(
        self,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> RunResult:
        """Validate, apply, and extract outputs.

        Args:
            cancel_event: Set to stop issuing new create calls
            progress_callback: Optional progress hooks

        Returns:
            RunResult with final snapshot, rollback failures, outputs and exit status
        """
        self.logger.info(f"Starting run of topology '{self.topology.name}'")

        try:
            model, graph = self.load()
        except ValidationError as e:
            error_handler.log_error(e)
            return RunResult(status=ExitStatus.INVALID_TOPOLOGY, error=e)

        store = StateStore.from_model(model)
        engine = ApplyEngine(
            model=model,
            graph=graph,
            store=store,
            transport=self.transport,
            rollback_controller=RollbackController(store, self.transport),
            max_workers=self.max_workers,
            parallel=self.parallel
        )

        apply_result = engine.apply(cancel_event=cancel_event, progress_callback=progress_callback)
        self._save(store)

        if not apply_result.is_success():
            rollback = apply_result.rollback
            status = ExitStatus.ROLLED_BACK if rollback is None or rollback.is_success() \
                else ExitStatus.ROLLBACK_INCOMPLETE
            if apply_result.error is not None:
                error_handler.log_error(apply_result.error)
            return RunResult(
                status=status,
                snapshot=apply_result.snapshot,
                apply_result=apply_result,
                error=apply_result.error
            )

        try:
            outputs = self.extractor.extract_named(apply_result.snapshot, self.topology.outputs)
        except OutputNotAvailableError as e:
            error_handler.log_error(e)
            return RunResult(
                status=ExitStatus.OUTPUTS_UNAVAILABLE,
                snapshot=apply_result.snapshot,
                apply_result=apply_result,
                error=e
            )

        for name, value in outputs.items():
            self.logger.info(f"Output {name} = {value}")

        return RunResult(
            status=ExitStatus.SUCCESS,
            snapshot=apply_result.snapshot,
            apply_result=apply_result,
            outputs=outputs
        )

    def _save(self, store: StateStore) -> None:
        if not self.state_file:
            return
        try:
            store.save(self.state_file)
        except DeploymentError as e:
            # The run outcome stands even if the snapshot cannot be written
            error_handler.log_error(e)
