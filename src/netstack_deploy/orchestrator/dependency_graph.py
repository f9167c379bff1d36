"""Dependency graph builder for resource creation ordering."""

from typing import Dict, List, Set, Optional
from dataclasses import dataclass
from collections import deque

from netstack_deploy.resources.models import ResourceModel, ResourceSpec
from netstack_deploy.utils.errors import CycleDetectedError, UnknownReferenceError


@dataclass
class DependencyNode:
    """Node in the dependency graph."""

    resource_id: str
    resource: ResourceSpec
    dependencies: Set[str]  # Resource IDs this node references
    dependents: Set[str]  # Resource IDs that reference this node


class DependencyGraph:
    """Directed graph of references between logical resources.

    An edge A -> B exists whenever an attribute of A references B. Edges are
    derived once when the graph is built and never change afterwards.
    """

    def __init__(self, resources: List[ResourceSpec]):
        """Build the graph from resource specs.

        Args:
            resources: Specs whose references define the edges
        """
        self.nodes: Dict[str, DependencyNode] = {}

        for resource in resources:
            self.nodes[resource.logical_name] = DependencyNode(
                resource_id=resource.logical_name,
                resource=resource,
                dependencies=resource.referenced_names(),
                dependents=set()
            )

        for node_id, node in self.nodes.items():
            for dep_id in node.dependencies:
                if dep_id in self.nodes:
                    self.nodes[dep_id].dependents.add(node_id)

    @classmethod
    def from_model(cls, model: ResourceModel) -> "DependencyGraph":
        """Build and validate the graph for a resource model.

        Raises:
            UnknownReferenceError: If a reference is dangling
            CycleDetectedError: If the references form a cycle
        """
        graph = cls(list(model))
        graph.validate()
        return graph

    def get_dependencies(self, resource_id: str) -> Set[str]:
        """Get direct dependencies of a resource.

        Args:
            resource_id: ID of resource

        Returns:
            Set of resource IDs that this resource depends on
        """
        if resource_id not in self.nodes:
            return set()
        return self.nodes[resource_id].dependencies.copy()

    def get_dependents(self, resource_id: str) -> Set[str]:
        """Get direct dependents of a resource.

        Args:
            resource_id: ID of resource

        Returns:
            Set of resource IDs that depend on this resource
        """
        if resource_id not in self.nodes:
            return set()
        return self.nodes[resource_id].dependents.copy()

    def get_all_dependencies(self, resource_id: str) -> Set[str]:
        """Get all transitive dependencies of a resource."""
        return self._walk(resource_id, lambda node: node.dependencies)

    def get_all_dependents(self, resource_id: str) -> Set[str]:
        """Get all transitive dependents of a resource."""
        return self._walk(resource_id, lambda node: node.dependents)

    def _walk(self, resource_id: str, neighbours) -> Set[str]:
        visited = set()
        queue = deque([resource_id])

        while queue:
            current_id = queue.popleft()
            if current_id in visited:
                continue

            visited.add(current_id)

            if current_id in self.nodes:
                for next_id in neighbours(self.nodes[current_id]):
                    if next_id not in visited:
                        queue.append(next_id)

        # Remove the resource itself from the result
        visited.discard(resource_id)
        return visited

    def get_roots(self) -> List[str]:
        """Resources that reference nothing, in lexical order."""
        return sorted(node_id for node_id, node in self.nodes.items() if not node.dependencies)

    def detect_circular_dependencies(self) -> Optional[List[str]]:
        """Detect circular dependencies in the graph.

        Returns:
            Resource IDs forming a cycle, each referencing the next and the
            last referencing the first, or None if no cycle exists
        """
        # White (0): unvisited, Gray (1): on the current path, Black (2): done
        color = {node_id: 0 for node_id in self.nodes}
        path: List[str] = []

        def dfs(node_id: str) -> Optional[List[str]]:
            color[node_id] = 1
            path.append(node_id)

            for dep_id in sorted(self.nodes[node_id].dependencies):
                if dep_id not in self.nodes:
                    continue
                if color[dep_id] == 1:
                    # Back edge: the cycle is the path from dep_id onwards
                    return path[path.index(dep_id):]
                if color[dep_id] == 0:
                    cycle = dfs(dep_id)
                    if cycle:
                        return cycle

            path.pop()
            color[node_id] = 2
            return None

        for node_id in sorted(self.nodes):
            if color[node_id] == 0:
                cycle = dfs(node_id)
                if cycle:
                    return cycle

        return None

    def validate(self) -> None:
        """Validate the dependency graph.

        Raises:
            UnknownReferenceError: If a resource references a missing resource
            CycleDetectedError: If the graph contains a cycle
        """
        for node_id in sorted(self.nodes):
            for dep_id in sorted(self.nodes[node_id].dependencies):
                if dep_id not in self.nodes:
                    raise UnknownReferenceError(node_id, dep_id)

        cycle = self.detect_circular_dependencies()
        if cycle:
            raise CycleDetectedError(cycle)

    def get_deployment_waves(self) -> List[List[str]]:
        """Group resources into batches that can be created concurrently.

        Resources in the same wave have no dependencies on each other; every
        dependency of a resource sits in an earlier wave. Each wave is sorted
        lexically so the result is deterministic.

        Returns:
            List of waves, each a list of resource IDs

        Raises:
            UnknownReferenceError: If a reference is dangling
            CycleDetectedError: If the graph contains a cycle
        """
        self.validate()

        # Kahn's algorithm, one level at a time
        in_degree = {node_id: len(node.dependencies) for node_id, node in self.nodes.items()}
        current_wave = sorted(node_id for node_id, degree in in_degree.items() if degree == 0)
        waves = []

        while current_wave:
            waves.append(current_wave)
            next_wave = []

            for node_id in current_wave:
                for dependent_id in self.nodes[node_id].dependents:
                    in_degree[dependent_id] -= 1
                    if in_degree[dependent_id] == 0:
                        next_wave.append(dependent_id)

            current_wave = sorted(next_wave)

        total_processed = sum(len(wave) for wave in waves)
        if total_processed != len(self.nodes):
            # validate() rules this out; report whatever cycle is left
            raise CycleDetectedError(self.detect_circular_dependencies() or [])

        return waves

    def topological_sort(self) -> List[str]:
        """Total creation order: dependencies before the resources that reference them.

        Returns:
            Flattened deployment waves

        Raises:
            UnknownReferenceError: If a reference is dangling
            CycleDetectedError: If the graph contains a cycle
        """
        return [node_id for wave in self.get_deployment_waves() for node_id in wave]

    def get_destruction_order(self) -> List[str]:
        """Get destruction order (reverse of creation order)."""
        return list(reversed(self.topological_sort()))

    def get_resource(self, resource_id: str) -> Optional[ResourceSpec]:
        node = self.nodes.get(resource_id)
        return node.resource if node else None

    def size(self) -> int:
        return len(self.nodes)

    def is_empty(self) -> bool:
        return len(self.nodes) == 0
