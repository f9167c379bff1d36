"""State data models for logical resources during a run."""

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from netstack_deploy.resources.models import ResourceKind


class Lifecycle(str, Enum):
    """Lifecycle of a logical resource within one run."""
    PENDING = "Pending"
    CREATING = "Creating"
    CREATED = "Created"
    FAILED = "Failed"
    ROLLED_BACK = "RolledBack"


# Legal lifecycle transitions, keyed by current lifecycle
ALLOWED_TRANSITIONS = {
    Lifecycle.PENDING: {Lifecycle.CREATING},
    Lifecycle.CREATING: {Lifecycle.CREATED, Lifecycle.FAILED},
    Lifecycle.CREATED: {Lifecycle.FAILED},
    Lifecycle.FAILED: {Lifecycle.ROLLED_BACK},
    Lifecycle.ROLLED_BACK: set(),
}


class ResourceState(BaseModel):
    """Runtime record of one logical resource. Instances are immutable."""

    model_config = ConfigDict(frozen=True)

    logical_name: str = Field(..., description="Logical resource name")
    kind: ResourceKind = Field(..., description="Resource kind")
    lifecycle: Lifecycle = Field(Lifecycle.PENDING, description="Current lifecycle")
    provider_id: Optional[str] = Field(None, description="Identifier assigned by the provider")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Resolved output attributes")
    created_seq: Optional[int] = Field(None, description="Order in which the resource reached Created")
    error: Optional[str] = Field(None, description="Last error recorded for this resource")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_created(self) -> bool:
        return self.lifecycle == Lifecycle.CREATED

    def output(self, attribute: str) -> Any:
        """Look up an output attribute; ``id`` falls back to the provider id."""
        if attribute in self.outputs:
            return self.outputs[attribute]
        if attribute == "id":
            return self.provider_id
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "logical_name": self.logical_name,
            "kind": self.kind.value,
            "lifecycle": self.lifecycle.value,
            "provider_id": self.provider_id,
            "outputs": dict(self.outputs),
            "created_seq": self.created_seq,
            "error": self.error,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceState":
        """Create ResourceState from dictionary."""
        return cls(
            logical_name=data["logical_name"],
            kind=data["kind"],
            lifecycle=data.get("lifecycle", Lifecycle.PENDING.value),
            provider_id=data.get("provider_id"),
            outputs=data.get("outputs", {}),
            created_seq=data.get("created_seq"),
            error=data.get("error"),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else datetime.now(timezone.utc),
        )


class StateSnapshot(Mapping[str, ResourceState]):
    """Immutable point-in-time view of every resource state."""

    def __init__(self, states: Mapping[str, ResourceState]):
        self._states = MappingProxyType(dict(states))

    def __getitem__(self, logical_name: str) -> ResourceState:
        return self._states[logical_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def counts(self) -> Dict[str, int]:
        """Number of resources per lifecycle."""
        counts = {lifecycle.value: 0 for lifecycle in Lifecycle}
        for state in self._states.values():
            counts[state.lifecycle.value] += 1
        return counts

    def all_created(self) -> bool:
        return all(state.is_created() for state in self._states.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "resources": {name: self._states[name].to_dict() for name in sorted(self._states)},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateSnapshot":
        """Create StateSnapshot from dictionary."""
        return cls({
            name: ResourceState.from_dict(state)
            for name, state in data.get("resources", {}).items()
        })
