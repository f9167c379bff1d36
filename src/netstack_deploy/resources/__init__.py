"""Resource model: specs, references, and reference substitution."""

from .models import (
    Ref,
    Reference,
    ResourceKind,
    ResourceModel,
    ResourceSpec,
    iter_references,
)

__all__ = [
    "Ref",
    "Reference",
    "ResourceKind",
    "ResourceModel",
    "ResourceSpec",
    "iter_references",
]
