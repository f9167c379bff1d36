"""Deployment planner: dry-run view of the batches an apply would execute."""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

from netstack_deploy.orchestrator.dependency_graph import DependencyGraph
from netstack_deploy.resources.models import ResourceKind, ResourceModel, Reference
from netstack_deploy.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PlannedResource:
    """A resource as it would be created, with references left symbolic."""

    resource_id: str
    kind: ResourceKind
    dependencies: List[str] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeploymentWave:
    """Represents a wave of resources that can be deployed in parallel."""

    wave_number: int
    resource_ids: List[str]
    resources: Dict[str, PlannedResource] = field(default_factory=dict)

    def size(self) -> int:
        """Get the number of resources in this wave."""
        return len(self.resource_ids)


@dataclass
class DeploymentPlan:
    """Complete deployment plan with waves and the rollback order."""

    waves: List[DeploymentWave]
    order: List[str]
    destruction_order: List[str]
    dependency_graph: Optional[DependencyGraph] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get_total_resources(self) -> int:
        """Get total number of resources in the plan."""
        return len(self.order)

    def get_summary(self) -> Dict[str, int]:
        """Count planned resources by kind."""
        summary: Dict[str, int] = {}
        for wave in self.waves:
            for planned in wave.resources.values():
                summary[planned.kind.value] = summary.get(planned.kind.value, 0) + 1
        return dict(sorted(summary.items()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": list(self.order),
            "summary": self.get_summary(),
            "waves": [
                {
                    "wave": wave.wave_number,
                    "resources": [
                        {
                            "name": planned.resource_id,
                            "kind": planned.kind.value,
                            "depends_on": planned.dependencies,
                            "attributes": planned.attributes,
                        }
                        for planned in wave.resources.values()
                    ],
                }
                for wave in self.waves
            ],
            "destruction_order": list(self.destruction_order),
        }


def _render(value: Any) -> Any:
    """Replace references with their ``${name.attr}`` display form."""
    if isinstance(value, Reference):
        return "${%s}" % value
    if isinstance(value, dict):
        return {key: _render(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_render(item) for item in value]
    return value


class DeploymentPlanner:
    """Creates deployment plans without touching the transport."""

    def __init__(self):
        """Initialize deployment planner."""
        self.logger = get_logger(__name__)

    def create_deployment_plan(self, model: ResourceModel, graph: Optional[DependencyGraph] = None) -> DeploymentPlan:
        """Create a deployment plan for every resource in the model.

        Args:
            model: Resource model to plan
            graph: Pre-built dependency graph; built and validated when omitted

        Returns:
            DeploymentPlan with waves in execution order

        Raises:
            UnknownReferenceError: If a reference target does not exist
            CycleDetectedError: If the references form a cycle
        """
        self.logger.info("Creating deployment plan...")
        graph = graph or DependencyGraph.from_model(model)

        waves = []
        for wave_number, resource_ids in enumerate(graph.get_deployment_waves(), 1):
            wave = DeploymentWave(wave_number=wave_number, resource_ids=resource_ids)
            for resource_id in resource_ids:
                spec = model.get(resource_id)
                wave.resources[resource_id] = PlannedResource(
                    resource_id=resource_id,
                    kind=spec.kind,
                    dependencies=sorted(graph.get_dependencies(resource_id)),
                    attributes=_render(spec.attributes)
                )
            waves.append(wave)

        plan = DeploymentPlan(
            waves=waves,
            order=graph.topological_sort(),
            destruction_order=graph.get_destruction_order(),
            dependency_graph=graph
        )

        self.logger.info(
            f"Deployment plan created: {plan.get_total_resources()} resources in {len(waves)} waves"
        )
        return plan
