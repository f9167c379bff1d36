"""Apply engine: batched, dependency-ordered resource creation."""

import threading
from typing import Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum

from netstack_deploy.orchestrator.dependency_graph import DependencyGraph
from netstack_deploy.orchestrator.rollback import RollbackController, RollbackResult
from netstack_deploy.provisioners.base import Transport
from netstack_deploy.resources.models import ResourceModel
from netstack_deploy.state.models import Lifecycle, StateSnapshot
from netstack_deploy.state.store import StateStore
from netstack_deploy.utils.logging import get_logger, LogContext
from netstack_deploy.utils.errors import (
    ApplyCancelledError,
    CreateFailedError,
    DependencyNotReadyError,
    DeploymentError,
    ErrorContext,
    UnresolvedReferenceError,
)

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionStatus(Enum):
    """Status of execution."""
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


@dataclass
class ResourceExecutionResult:
    """Result of creating a single resource."""

    resource_id: str
    status: ExecutionStatus
    provider_id: Optional[str] = None
    error: Optional[DeploymentError] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def is_failed(self) -> bool:
        return self.status == ExecutionStatus.FAILED


@dataclass
class WaveExecutionResult:
    """Result of executing one batch of independent resources."""

    wave_number: int
    resource_results: Dict[str, ResourceExecutionResult] = field(default_factory=dict)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def get_success_count(self) -> int:
        return sum(1 for r in self.resource_results.values() if r.is_success())

    def get_failed_count(self) -> int:
        return sum(1 for r in self.resource_results.values() if r.is_failed())

    def has_failures(self) -> bool:
        return self.get_failed_count() > 0


@dataclass
class ApplyResult:
    """Outcome of an apply run, always carrying the final state snapshot."""

    status: ExecutionStatus
    snapshot: StateSnapshot
    wave_results: List[WaveExecutionResult] = field(default_factory=list)
    rollback: Optional[RollbackResult] = None
    error: Optional[DeploymentError] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def is_failed(self) -> bool:
        return self.status in (ExecutionStatus.FAILED, ExecutionStatus.CANCELLED)

    def get_failed_resource_ids(self) -> List[str]:
        """Resources whose creation call failed."""
        failed = []
        for wave_result in self.wave_results:
            for resource_id, result in wave_result.resource_results.items():
                if result.is_failed():
                    failed.append(resource_id)
        return sorted(failed)

    @property
    def total_resources(self) -> int:
        return len(self.snapshot)

    @property
    def successful_resources(self) -> int:
        return sum(w.get_success_count() for w in self.wave_results)

    @property
    def failed_resources(self) -> int:
        return sum(w.get_failed_count() for w in self.wave_results)


class ProgressCallback:
    """Receives progress notifications; all hooks default to no-ops.

    Hooks may be called from worker threads.
    """

    def on_start(self, total_resources: int) -> None:
        pass

    def on_resource_start(self, resource_id: str, resource_kind: str) -> None:
        pass

    def on_resource_complete(self, resource_id: str, resource_kind: str, success: bool) -> None:
        pass

    def on_rollback_start(self, total_resources: int) -> None:
        pass

    def on_rollback_resource(self, resource_id: str, success: bool) -> None:
        pass

    def on_complete(self, success: bool) -> None:
        pass


class _FatalApplyError(Exception):
    """Carries an invariant violation out of a worker."""

    def __init__(self, error: DeploymentError):
        super().__init__(str(error))
        self.error = error


class ApplyEngine:
    """Creates resources batch by batch in dependency order.

    Resources within a batch have no references to each other and are
    created concurrently; every batch settles before the next one starts.
    The first failure stops further batches and triggers rollback. The engine
    never retries a failed create call.
    """

    def __init__(
        self,
        model: ResourceModel,
        graph: DependencyGraph,
        store: StateStore,
        transport: Transport,
        rollback_controller: Optional[RollbackController] = None,
        max_workers: int = 10,
        parallel: bool = True
    ):
        """Initialize apply engine.

        Args:
            model: Validated resource model used for reference substitution
            graph: Validated dependency graph
            store: State store shared with the rollback controller
            transport: Collaborator performing remote create/destroy calls
            rollback_controller: Controller invoked on failure
            max_workers: Maximum number of concurrent create calls
            parallel: Run each batch concurrently; otherwise one resource at a time
        """
        self.model = model
        self.graph = graph
        self.store = store
        self.transport = transport
        self.rollback_controller = rollback_controller or RollbackController(store, transport)
        self.max_workers = max(1, max_workers)
        self.parallel = parallel
        self.logger = get_logger(__name__)

    def batches(self) -> List[List[str]]:
        """Batches in execution order; serial mode uses one resource per batch."""
        waves = self.graph.get_deployment_waves()
        if self.parallel:
            return waves
        return [[resource_id] for wave in waves for resource_id in wave]

    def apply(
        self,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> ApplyResult:
        """Create every resource, rolling back on the first failure.

        Args:
            cancel_event: When set, no further create calls are issued
            progress_callback: Optional progress hooks

        Returns:
            ApplyResult with the final state snapshot
        """
        cancel_event = cancel_event or threading.Event()
        progress = progress_callback or ProgressCallback()
        batches = self.batches()

        self.logger.info(
            f"Starting apply of {self.graph.size()} resources in {len(batches)} batches "
            f"(parallel={self.parallel})"
        )
        progress.on_start(self.graph.size())

        start_time = _utcnow()
        wave_results: List[WaveExecutionResult] = []
        error: Optional[DeploymentError] = None

        for wave_number, batch in enumerate(batches, 1):
            if cancel_event.is_set():
                error = ApplyCancelledError()
                self.logger.warning(f"Apply cancelled before batch {wave_number}")
                break

            self.logger.info(f"Executing batch {wave_number} ({len(batch)} resources): {', '.join(batch)}")
            wave_result, fatal = self._execute_wave(wave_number, batch, cancel_event, progress)
            wave_results.append(wave_result)

            if fatal is not None:
                error = fatal
                self.logger.error(f"Invariant violation in batch {wave_number}: {fatal.message}")
                break

            if wave_result.has_failures():
                failed = sorted(r for r, res in wave_result.resource_results.items() if res.is_failed())
                error = next(
                    wave_result.resource_results[r].error for r in failed
                )
                self.logger.error(f"Batch {wave_number} failed: {', '.join(failed)}")
                break

            if cancel_event.is_set():
                error = ApplyCancelledError()
                self.logger.warning(f"Apply cancelled after batch {wave_number}")
                break

            self.logger.info(f"Batch {wave_number} completed in {wave_result.duration:.1f}s")

        rollback_result = None
        if error is not None:
            self.logger.warning("Apply failed, rolling back created resources...")
            rollback_result = self.rollback_controller.rollback(progress_callback=progress)

        end_time = _utcnow()
        duration = (end_time - start_time).total_seconds()

        if error is None:
            status = ExecutionStatus.SUCCESS
            self.logger.info(f"Apply completed successfully: {self.graph.size()} resources in {duration:.1f}s")
        elif isinstance(error, ApplyCancelledError):
            status = ExecutionStatus.CANCELLED
        else:
            status = ExecutionStatus.FAILED

        progress.on_complete(error is None)

        return ApplyResult(
            status=status,
            snapshot=self.store.snapshot(),
            wave_results=wave_results,
            rollback=rollback_result,
            error=error,
            start_time=start_time,
            end_time=end_time,
            duration=duration
        )

    def _execute_wave(
        self,
        wave_number: int,
        batch: List[str],
        cancel_event: threading.Event,
        progress: ProgressCallback
    ):
        """Create every resource in a batch and wait for all of them to settle.

        Returns:
            Tuple of (WaveExecutionResult, fatal DeploymentError or None)
        """
        start_time = _utcnow()
        snapshot = self.store.snapshot()
        resource_results: Dict[str, ResourceExecutionResult] = {}
        fatal: Optional[DeploymentError] = None

        if len(batch) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(batch))) as executor:
                future_to_resource = {
                    executor.submit(self._create_resource, resource_id, snapshot, cancel_event, progress): resource_id
                    for resource_id in batch
                }
                for future in as_completed(future_to_resource):
                    resource_id = future_to_resource[future]
                    try:
                        resource_results[resource_id] = future.result()
                    except _FatalApplyError as e:
                        fatal = fatal or e.error
                    except Exception as e:
                        resource_results[resource_id] = self._fail_resource(resource_id, e)
        else:
            for resource_id in batch:
                try:
                    resource_results[resource_id] = self._create_resource(
                        resource_id, snapshot, cancel_event, progress
                    )
                except _FatalApplyError as e:
                    fatal = e.error
                except Exception as e:
                    resource_results[resource_id] = self._fail_resource(resource_id, e)

        end_time = _utcnow()
        return WaveExecutionResult(
            wave_number=wave_number,
            resource_results=resource_results,
            start_time=start_time,
            end_time=end_time,
            duration=(end_time - start_time).total_seconds()
        ), fatal

    def _create_resource(
        self,
        resource_id: str,
        snapshot: StateSnapshot,
        cancel_event: threading.Event,
        progress: ProgressCallback
    ) -> ResourceExecutionResult:
        """Substitute, mark Creating, call the transport, and record the outcome."""
        spec = self.model.get(resource_id)
        kind = spec.kind

        if cancel_event.is_set():
            return ResourceExecutionResult(resource_id=resource_id, status=ExecutionStatus.SKIPPED)

        try:
            attributes = self.model.substitute(resource_id, snapshot)
        except UnresolvedReferenceError as e:
            raise _FatalApplyError(DependencyNotReadyError(
                f"Dependency of '{resource_id}' not ready: {e.message}",
                context=ErrorContext(resource_id=resource_id, resource_type=kind.value),
                cause=e
            ))

        try:
            self.store.transition(resource_id, Lifecycle.CREATING)
        except DeploymentError as e:
            raise _FatalApplyError(e)

        progress.on_resource_start(resource_id, kind.value)
        start_time = _utcnow()

        with LogContext(self.logger, resource_id=resource_id, resource_kind=kind.value) as log:
            log.info(f"Creating {kind.value}...")
            provider_id = None
            try:
                result = self.transport.create(kind, attributes)
                if isinstance(result.provider_id, str):
                    provider_id = result.provider_id
                self.store.transition(
                    resource_id,
                    Lifecycle.CREATED,
                    provider_id=result.provider_id,
                    outputs=result.outputs
                )
            except Exception as e:
                failure = self._fail_resource(resource_id, e, start_time=start_time, provider_id=provider_id)
                progress.on_resource_complete(resource_id, kind.value, False)
                return failure

            end_time = _utcnow()
            duration = (end_time - start_time).total_seconds()
            log.info(f"Created {result.provider_id} in {duration:.1f}s")

        progress.on_resource_complete(resource_id, kind.value, True)
        return ResourceExecutionResult(
            resource_id=resource_id,
            status=ExecutionStatus.SUCCESS,
            provider_id=result.provider_id,
            start_time=start_time,
            end_time=end_time,
            duration=duration
        )

    def _fail_resource(
        self,
        resource_id: str,
        cause: Exception,
        start_time: Optional[datetime] = None,
        provider_id: Optional[str] = None
    ) -> ResourceExecutionResult:
        """Record a failed create as a FAILED result, marking the resource Failed if it is Creating.

        A provider id returned by the transport is kept so rollback can destroy it.
        """
        kind = self.model.get(resource_id).kind
        error = cause if isinstance(cause, CreateFailedError) else CreateFailedError(
            f"Failed to create {resource_id}: {cause}",
            context=ErrorContext(resource_id=resource_id, resource_type=kind.value, operation='create'),
            cause=cause
        )
        if error.context.resource_id is None:
            error.context.resource_id = resource_id

        if self.store.get(resource_id).lifecycle == Lifecycle.CREATING:
            self.store.transition(resource_id, Lifecycle.FAILED, provider_id=provider_id, error=error.message)

        self.logger.error(
            f"Create of {resource_id} failed: {error.message}",
            extra={'resource_id': resource_id, 'resource_kind': kind.value}
        )
        end_time = _utcnow()
        start_time = start_time or end_time
        return ResourceExecutionResult(
            resource_id=resource_id,
            status=ExecutionStatus.FAILED,
            error=error,
            start_time=start_time,
            end_time=end_time,
            duration=(end_time - start_time).total_seconds()
        )
