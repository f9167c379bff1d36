"""Resource specifications, references, and the validated resource model."""

from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from netstack_deploy.utils.errors import (
    DuplicateResourceError,
    UnknownReferenceError,
    UnresolvedReferenceError,
)


class ResourceKind(str, Enum):
    """Kinds of resource the provisioner knows how to create."""
    NETWORK = "Network"
    SUBNET = "Subnet"
    INTERNET_GATEWAY = "InternetGateway"
    ROUTE_TABLE = "RouteTable"
    ROUTE_TABLE_ASSOCIATION = "RouteTableAssociation"
    SECURITY_GROUP = "SecurityGroup"
    SECURITY_GROUP_RULE = "SecurityGroupRule"
    LOAD_BALANCER = "LoadBalancer"
    TARGET_GROUP = "TargetGroup"
    LISTENER = "Listener"
    LAUNCH_TEMPLATE = "LaunchTemplate"
    AUTOSCALING_GROUP = "AutoscalingGroup"


class Reference(BaseModel):
    """Reference to an output attribute of another logical resource."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., min_length=1, description="Logical name of the referenced resource")
    attribute: str = Field("id", min_length=1, description="Output attribute of the target")

    @classmethod
    def parse(cls, path: str) -> "Reference":
        """Parse ``"<logical_name>.<attribute>"``; a bare name references ``id``."""
        target, _, attribute = path.partition(".")
        return cls(target=target, attribute=attribute or "id")

    def __str__(self) -> str:
        return f"{self.target}.{self.attribute}"


def Ref(target: str, attribute: str = "id") -> Reference:
    """Shorthand for building a Reference in Python topologies."""
    return Reference(target=target, attribute=attribute)


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference nested anywhere inside an attribute value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


class ResourceSpec(BaseModel):
    """A caller-declared unit of infrastructure to provision."""

    logical_name: str = Field(..., min_length=1, description="Unique name within the topology")
    kind: ResourceKind = Field(..., description="Resource kind discriminator")
    attributes: Dict[str, Any] = Field(
        default_factory=dict, description="Literal values and references to other resources"
    )

    @field_validator("logical_name")
    @classmethod
    def validate_logical_name(cls, v: str) -> str:
        if "." in v:
            raise ValueError("logical_name must not contain '.'")
        return v

    def references(self) -> List[Reference]:
        """All references declared in this spec's attributes."""
        return list(iter_references(self.attributes))

    def referenced_names(self) -> Set[str]:
        """Logical names this spec depends on."""
        return {ref.target for ref in self.references()}


class ResourceModel:
    """Validated set of resource specs, keyed by logical name."""

    def __init__(self, specs: Iterable[ResourceSpec]):
        """Build and validate the model.

        Args:
            specs: Resource specifications making up the topology

        Raises:
            DuplicateResourceError: If two specs share a logical name
            UnknownReferenceError: If a reference targets an undeclared name
        """
        self._specs: Dict[str, ResourceSpec] = {}
        for spec in specs:
            if spec.logical_name in self._specs:
                raise DuplicateResourceError(spec.logical_name)
            self._specs[spec.logical_name] = spec
        self.validate()

    def validate(self) -> None:
        """Check that every reference resolves to a declared resource."""
        for name in sorted(self._specs):
            for target in sorted(self._specs[name].referenced_names()):
                if target not in self._specs:
                    raise UnknownReferenceError(name, target)

    def get(self, logical_name: str) -> ResourceSpec:
        return self._specs[logical_name]

    def names(self) -> List[str]:
        return sorted(self._specs)

    def references(self, logical_name: str) -> Set[str]:
        """Logical names referenced by the given resource."""
        return self._specs[logical_name].referenced_names()

    def substitute(self, logical_name: str, snapshot: Mapping[str, Any]) -> Dict[str, Any]:
        """Return the resource's attributes with every reference resolved.

        Args:
            logical_name: Resource whose attributes to resolve
            snapshot: Mapping of logical name to ResourceState

        Returns:
            New attribute dictionary containing only literal values

        Raises:
            UnresolvedReferenceError: If a target is not Created or lacks the output
        """
        spec = self._specs[logical_name]
        return {
            key: self._resolve(logical_name, value, snapshot)
            for key, value in spec.attributes.items()
        }

    def _resolve(self, logical_name: str, value: Any, snapshot: Mapping[str, Any]) -> Any:
        if isinstance(value, Reference):
            state = snapshot.get(value.target)
            if state is None or not state.is_created():
                lifecycle = state.lifecycle.value if state is not None else "unknown"
                raise UnresolvedReferenceError(
                    logical_name, value.target, value.attribute,
                    f"target is {lifecycle}, not Created"
                )
            resolved = state.output(value.attribute)
            if resolved is None:
                raise UnresolvedReferenceError(
                    logical_name, value.target, value.attribute,
                    "output attribute was never populated"
                )
            return resolved
        if isinstance(value, Mapping):
            return {k: self._resolve(logical_name, v, snapshot) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._resolve(logical_name, v, snapshot) for v in value]
        return value

    def __contains__(self, logical_name: object) -> bool:
        return logical_name in self._specs

    def __iter__(self) -> Iterator[ResourceSpec]:
        for name in self.names():
            yield self._specs[name]

    def __len__(self) -> int:
        return len(self._specs)
