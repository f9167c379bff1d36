"""State store: the single owner of every resource's lifecycle state."""

import itertools
import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from netstack_deploy.resources.models import ResourceModel
from netstack_deploy.state.models import (
    ALLOWED_TRANSITIONS,
    Lifecycle,
    ResourceState,
    StateSnapshot,
)
from netstack_deploy.utils.errors import InvalidTransitionError, StateError
from netstack_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class StateStore:
    """Tracks lifecycle, provider identifiers, and outputs per logical resource.

    Every mutation goes through ``transition``. Each logical resource has its
    own lock, so resources in the same batch update without blocking each
    other. Stored ResourceState objects are immutable and replaced wholesale,
    which keeps ``snapshot`` free of half-applied updates.
    """

    def __init__(self, states: Dict[str, ResourceState]):
        """Initialize the store.

        Args:
            states: Initial state per logical name
        """
        self._states: Dict[str, ResourceState] = dict(states)
        self._locks: Dict[str, threading.Lock] = {name: threading.Lock() for name in self._states}
        self._sequence = itertools.count(1)

    @classmethod
    def from_model(cls, model: ResourceModel) -> "StateStore":
        """Create a store with every resource of the model Pending."""
        return cls({
            spec.logical_name: ResourceState(logical_name=spec.logical_name, kind=spec.kind)
            for spec in model
        })

    def get(self, logical_name: str) -> ResourceState:
        """Get the current state of a resource.

        Raises:
            KeyError: If the logical name is not tracked
        """
        return self._states[logical_name]

    def transition(
        self,
        logical_name: str,
        lifecycle: Lifecycle,
        provider_id: Optional[str] = None,
        outputs: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None
    ) -> ResourceState:
        """Atomically move a resource to a new lifecycle.

        Args:
            logical_name: Resource to update
            lifecycle: Requested lifecycle
            provider_id: Provider identifier (recorded on Created)
            outputs: Output attributes (recorded on Created)
            error: Error message to record

        Returns:
            The new ResourceState

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        with self._locks[logical_name]:
            current = self._states[logical_name]
            if lifecycle not in ALLOWED_TRANSITIONS[current.lifecycle]:
                raise InvalidTransitionError(
                    logical_name, current.lifecycle.value, lifecycle.value
                )

            update: Dict[str, Any] = {"lifecycle": lifecycle}
            if lifecycle == Lifecycle.CREATED:
                update["provider_id"] = provider_id
                update["outputs"] = dict(outputs or {})
                update["created_seq"] = next(self._sequence)
                update["error"] = None
            elif provider_id is not None:
                update["provider_id"] = provider_id
            if error is not None:
                update["error"] = error

            new_state = ResourceState(**{**current.model_dump(exclude={"updated_at"}), **update})
            self._states[logical_name] = new_state

        logger.debug(
            f"{logical_name}: {current.lifecycle.value} -> {lifecycle.value}",
            extra={'resource_id': logical_name, 'lifecycle': lifecycle.value}
        )
        return new_state

    def snapshot(self) -> StateSnapshot:
        """Immutable view of every resource's current state."""
        return StateSnapshot(self._states)

    def creation_order(self) -> List[str]:
        """Logical names in the order they reached Created."""
        created = [state for state in self._states.values() if state.created_seq is not None]
        return [state.logical_name for state in sorted(created, key=lambda s: s.created_seq)]

    def save(self, path: str) -> None:
        """Write the current snapshot to a JSON file.

        Args:
            path: Destination file path

        Raises:
            StateError: If the file cannot be written
        """
        state_path = Path(path)

        try:
            state_path.parent.mkdir(parents=True, exist_ok=True)

            # Write to temporary file first
            temp_path = state_path.with_suffix(".tmp")
            with open(temp_path, "w") as f:
                json.dump(self.snapshot().to_dict(), f, indent=2)

            # Atomic rename
            temp_path.replace(state_path)
        except OSError as e:
            raise StateError(f"Failed to save state file: {e}", cause=e)

        logger.debug(f"Saved state snapshot to {state_path}")


def load_snapshot(path: str) -> StateSnapshot:
    """Read a snapshot previously written by ``StateStore.save``.

    Raises:
        StateError: If the file is missing or cannot be parsed
    """
    state_path = Path(path)
    if not state_path.exists():
        raise StateError(f"State file not found: {state_path}")

    try:
        with open(state_path, "r") as f:
            return StateSnapshot.from_dict(json.load(f))
    except json.JSONDecodeError as e:
        raise StateError(f"Failed to parse state file: {e}", cause=e)
    except (KeyError, ValueError) as e:
        raise StateError(f"Invalid state file: {e}", cause=e)
