"""State management for provisioning runs."""

from .models import ALLOWED_TRANSITIONS, Lifecycle, ResourceState, StateSnapshot
from .store import StateStore, load_snapshot

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Lifecycle",
    "ResourceState",
    "StateSnapshot",
    "StateStore",
    "load_snapshot",
]
