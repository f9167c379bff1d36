"""YAML topology parser."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from netstack_deploy.utils.errors import ConfigurationError
from .models import Topology, TopologyDocument


class ConfigValidationError(ConfigurationError):
    """Exception raised when a topology file fails validation."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.errors = errors or []
        super().__init__(message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  • {location}: {msg}")

        return "\n".join(error_lines)


class TopologyConfig:
    """Loads a topology from a YAML file."""

    def __init__(self, config_path: str):
        """Initialize topology loader.

        Args:
            config_path: Path to the topology YAML file
        """
        self.config_path = Path(config_path)
        self.data: Dict[str, Any] = {}
        self.document: Optional[TopologyDocument] = None

    def load(self) -> Topology:
        """Load and validate the topology file.

        Returns:
            Parsed Topology

        Raises:
            ConfigValidationError: If the file is missing, unparsable or invalid
        """
        if not self.config_path.exists():
            raise ConfigValidationError(f"Topology file not found: {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError("Topology file must contain a mapping at the top level")

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Topology validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        return Topology.from_document(self.document)

    def validate(self) -> List[Dict]:
        """Validate the loaded data against the schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        try:
            self.document = TopologyDocument(**self.data)
        except ValidationError as e:
            for error in e.errors():
                errors.append({"loc": list(error["loc"]), "msg": error["msg"]})
            return errors

        for name, path in self.document.outputs.items():
            target = path.partition(".")[0]
            if target not in self.document.resources:
                errors.append({
                    "loc": ["outputs", name],
                    "msg": f"Output references unknown resource '{target}'",
                })

        return errors
