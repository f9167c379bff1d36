"""Pydantic models for the topology file schema."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from netstack_deploy.resources.models import Reference, ResourceKind, ResourceModel, ResourceSpec


def _convert_references(value: Any) -> Any:
    """Turn ``{ref: "name.attr"}`` mappings into Reference objects."""
    if isinstance(value, Reference):
        return value
    if isinstance(value, dict):
        if set(value) == {"ref"}:
            if not isinstance(value["ref"], str) or not value["ref"]:
                raise ValueError("ref must be a non-empty 'name.attribute' string")
            return Reference.parse(value["ref"])
        return {key: _convert_references(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_convert_references(item) for item in value]
    return value


class Settings(BaseModel):
    """Apply engine settings."""

    max_workers: int = Field(10, ge=1, le=64, description="Maximum concurrent create calls")
    parallel: bool = Field(True, description="Create independent resources concurrently")


class ResourceDefinition(BaseModel):
    """A resource entry in the topology file."""

    kind: ResourceKind
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("attributes", mode="before")
    @classmethod
    def parse_references(cls, v: Any) -> Any:
        if v is None:
            return {}
        return _convert_references(v)


class TopologyDocument(BaseModel):
    """Top-level topology file."""

    name: str = Field(..., min_length=1, pattern=r"^[a-zA-Z0-9_-]+$")
    region: Optional[str] = Field(None, pattern=r"^[a-z]{2}-[a-z]+-\d+$")
    settings: Settings = Field(default_factory=Settings)
    resources: Dict[str, ResourceDefinition] = Field(..., min_length=1)
    outputs: Dict[str, str] = Field(default_factory=dict)

    @field_validator("resources")
    @classmethod
    def validate_resource_names(cls, v: Dict[str, ResourceDefinition]) -> Dict[str, ResourceDefinition]:
        for name in v:
            if not name or "." in name:
                raise ValueError(f"Invalid resource name '{name}': must be non-empty and contain no '.'")
        return v

    @field_validator("outputs")
    @classmethod
    def validate_outputs(cls, v: Dict[str, str]) -> Dict[str, str]:
        for name, path in v.items():
            target, _, attribute = path.partition(".")
            if not target or not attribute:
                raise ValueError(f"Output '{name}' must have the form 'resource.attribute', got '{path}'")
        return v


class Topology(BaseModel):
    """A loaded topology: resource specs plus the outputs to report."""

    name: str
    region: Optional[str] = None
    settings: Settings = Field(default_factory=Settings)
    specs: List[ResourceSpec] = Field(default_factory=list)
    outputs: Dict[str, Reference] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, document: TopologyDocument) -> "Topology":
        return cls(
            name=document.name,
            region=document.region,
            settings=document.settings,
            specs=[
                ResourceSpec(logical_name=name, kind=definition.kind, attributes=definition.attributes)
                for name, definition in document.resources.items()
            ],
            outputs={name: Reference.parse(path) for name, path in document.outputs.items()},
        )

    def model(self) -> ResourceModel:
        """Build the resource model.

        Raises:
            DuplicateResourceError: If two specs share a logical name
        """
        return ResourceModel(self.specs)
