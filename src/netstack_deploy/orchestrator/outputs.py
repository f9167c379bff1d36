"""Read back designated output attributes after a successful apply."""

from typing import Any, Dict, Iterable, Mapping, Tuple

from netstack_deploy.resources.models import Reference
from netstack_deploy.state.models import Lifecycle, StateSnapshot
from netstack_deploy.utils.errors import ErrorContext, OutputNotAvailableError
from netstack_deploy.utils.logging import get_logger

logger = get_logger(__name__)

OutputKey = Tuple[str, str]


class OutputExtractor:
    """Extracts output values from a terminal state snapshot.

    Values are returned exactly as the transport recorded them.
    """

    def extract(self, snapshot: StateSnapshot, pairs: Iterable[OutputKey]) -> Dict[OutputKey, Any]:
        """Resolve (logical_name, attribute) pairs.

        Args:
            snapshot: Final state snapshot of a run
            pairs: Requested (logical_name, attribute) pairs

        Returns:
            Mapping from each pair to its recorded value

        Raises:
            OutputNotAvailableError: If the run did not complete successfully
                or a requested attribute was never populated
        """
        incomplete = sorted(
            state.logical_name for state in snapshot.values()
            if state.lifecycle != Lifecycle.CREATED
        )
        if incomplete:
            raise OutputNotAvailableError(
                f"Run did not complete successfully; resources not created: {', '.join(incomplete)}",
                suggestions=["Re-run apply and check the log for the failed resource"]
            )

        values: Dict[OutputKey, Any] = {}
        for logical_name, attribute in pairs:
            state = snapshot.get(logical_name)
            value = state.output(attribute) if state is not None else None
            if value is None:
                raise OutputNotAvailableError(
                    f"Output '{logical_name}.{attribute}' was never populated",
                    context=ErrorContext(resource_id=logical_name, resource_type=state.kind.value if state else None)
                )
            values[(logical_name, attribute)] = value
        return values

    def extract_named(self, snapshot: StateSnapshot, outputs: Mapping[str, Reference]) -> Dict[str, Any]:
        """Resolve declared outputs keyed by their display name.

        Args:
            snapshot: Final state snapshot of a run
            outputs: Display name -> reference to a resource attribute

        Returns:
            Display name -> recorded value
        """
        values = self.extract(snapshot, [(ref.target, ref.attribute) for ref in outputs.values()])
        return {name: values[(ref.target, ref.attribute)] for name, ref in outputs.items()}
