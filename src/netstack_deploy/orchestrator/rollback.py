"""Rollback of resources created during a failed apply."""

from typing import Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

from netstack_deploy.provisioners.base import Transport
from netstack_deploy.state.models import Lifecycle, ResourceState
from netstack_deploy.state.store import StateStore
from netstack_deploy.utils.errors import DeploymentError, ErrorContext, DestroyFailedError, error_handler
from netstack_deploy.utils.logging import get_logger, LogContext

logger = get_logger(__name__)


@dataclass
class RollbackResult:
    """Result of rollback execution."""

    rolled_back: List[str] = field(default_factory=list)
    failed_resources: Dict[str, str] = field(default_factory=dict)  # resource_id -> error
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        """Check if every candidate was torn down."""
        return not self.failed_resources

    def get_total_operations(self) -> int:
        return len(self.rolled_back) + len(self.failed_resources)


class RollbackController:
    """Tears down created resources in reverse creation order.

    Rollback is best-effort: a failed destroy is recorded and the remaining
    resources are still attempted. A resource is marked Failed before its
    destroy call and RolledBack only once the call succeeds, so a resource
    whose destroy failed can be retried by a later rollback.
    """

    def __init__(self, store: StateStore, transport: Transport):
        """Initialize rollback controller.

        Args:
            store: State store shared with the apply engine
            transport: Collaborator performing remote destroy calls
        """
        self.store = store
        self.transport = transport
        self.logger = get_logger(__name__)

    def candidates(self) -> List[ResourceState]:
        """Resources to tear down, most recently created first.

        Includes resources left Failed by an earlier rollback whose destroy
        call did not succeed.
        """
        candidates = []
        for logical_name in reversed(self.store.creation_order()):
            state = self.store.get(logical_name)
            if state.lifecycle == Lifecycle.CREATED:
                candidates.append(state)
            elif state.lifecycle == Lifecycle.FAILED and state.provider_id:
                candidates.append(state)
        return candidates

    def rollback(self, progress_callback=None) -> RollbackResult:
        """Destroy every candidate resource.

        Args:
            progress_callback: Optional object with ``on_rollback_start`` and
                ``on_rollback_resource`` hooks

        Returns:
            RollbackResult listing rolled back and failed resources
        """
        start_time = datetime.now(timezone.utc)
        result = RollbackResult(start_time=start_time)
        candidates = self.candidates()

        self.logger.info(f"Rolling back {len(candidates)} resources")
        if progress_callback is not None:
            progress_callback.on_rollback_start(len(candidates))

        for state in candidates:
            error = self._rollback_resource(state)
            if error is None:
                result.rolled_back.append(state.logical_name)
            else:
                result.failed_resources[state.logical_name] = error
            if progress_callback is not None:
                progress_callback.on_rollback_resource(state.logical_name, error is None)

        result.end_time = datetime.now(timezone.utc)
        result.duration = (result.end_time - start_time).total_seconds()

        if result.failed_resources:
            self.logger.error(
                f"Rollback incomplete: {len(result.failed_resources)} resources could not be destroyed: "
                f"{', '.join(result.failed_resources)}"
            )
        else:
            self.logger.info(f"Rollback completed: {len(result.rolled_back)} resources destroyed")

        return result

    def _rollback_resource(self, state: ResourceState) -> Optional[str]:
        """Destroy one resource, returning an error message on failure."""
        with LogContext(
            self.logger,
            resource_id=state.logical_name,
            resource_kind=state.kind.value,
            provider_id=state.provider_id
        ) as log:
            if state.lifecycle == Lifecycle.CREATED:
                self.store.transition(state.logical_name, Lifecycle.FAILED, error="Rolled back after apply failure")

            log.info(f"Destroying {state.kind.value} {state.provider_id}")
            try:
                self.transport.destroy(state.kind, state.provider_id)
            except Exception as e:
                if isinstance(e, DeploymentError):
                    error = e
                else:
                    error = DestroyFailedError(
                        f"Failed to destroy {state.logical_name}: {e}",
                        context=ErrorContext(
                            resource_id=state.logical_name,
                            resource_type=state.kind.value,
                            operation='destroy'
                        ),
                        cause=e
                    )
                error_handler.log_error(error)
                return error.message

            self.store.transition(state.logical_name, Lifecycle.ROLLED_BACK)
            log.info("Rolled back")
            return None
