"""State manager for loading, saving, and deleting deployment state."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from site_deploy.utils.errors import StateError, StateLoadError
from site_deploy.utils.logging import get_logger

from .migration import migrate_state
from .models import STATE_VERSION, DeploymentState

logger = get_logger(__name__)

DEFAULT_STATE_DIR = ".deploy"
DEFAULT_ENVIRONMENT = "default"

# Top-level keys a state file must carry to be loadable
REQUIRED_FIELDS = ("app", "environment", "resources")


def get_state_file_name(environment: str = DEFAULT_ENVIRONMENT) -> str:
    """Get the state file name for an environment.

    Args:
        environment: Environment name

    Returns:
        ``state.json`` for the default environment, ``state.<env>.json`` otherwise
    """
    if environment == DEFAULT_ENVIRONMENT:
        return "state.json"
    return f"state.{environment}.json"


class StateManager:
    """Persists one environment's deployment state as a JSON file.

    The file lives at ``<base_dir>/<state_dir>/state[.<env>].json``. There is
    no locking; a single writer per environment is assumed.
    """

    def __init__(
        self,
        base_dir: Union[str, Path],
        state_dir: str = DEFAULT_STATE_DIR,
        environment: str = DEFAULT_ENVIRONMENT,
    ):
        """
        Initialize StateManager.

        Args:
            base_dir: Project directory the state directory is resolved against
            state_dir: State directory name relative to base_dir
            environment: Environment whose state this manager handles
        """
        self.base_dir = Path(base_dir)
        self.state_dir = self.base_dir / state_dir
        self.environment = environment

    @property
    def state_path(self) -> Path:
        """Path of this environment's state file."""
        return self.get_state_file_path(self.environment)

    def get_state_file_path(self, environment: str) -> Path:
        """Resolve the state file path for any environment."""
        return self.state_dir / get_state_file_name(environment)

    def exists(self) -> bool:
        """Check if state file exists."""
        return self.state_path.exists()

    def load(self) -> Optional[DeploymentState]:
        """
        Load state from file.

        Returns:
            DeploymentState, or None if no state file exists

        Raises:
            StateLoadError: If the file is not valid JSON or lacks required fields
        """
        if not self.state_path.exists():
            return None

        try:
            with open(self.state_path, "r", encoding="utf-8") as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("state file must contain a JSON object")
            missing = [key for key in REQUIRED_FIELDS if data.get(key) in (None, "")]
            if missing:
                raise ValueError(f"missing required fields: {', '.join(missing)}")

            state = DeploymentState.from_dict(migrate_state(data))
        except (OSError, ValueError, ValidationError) as e:
            raise StateLoadError(f"Failed to load state file: {e}", cause=e) from e

        logger.debug(f"Loaded state from {self.state_path}")
        return state

    def save(self, state: DeploymentState) -> DeploymentState:
        """
        Save state to file.

        The schema version is stamped when unset and ``last_deployed`` is
        always rewritten. The write replaces any existing file unconditionally.

        Args:
            state: State to save

        Returns:
            The state exactly as written

        Raises:
            StateError: If state cannot be saved
        """
        stamped = state.model_copy(
            update={
                "version": state.version or STATE_VERSION,
                "last_deployed": datetime.now(timezone.utc),
            },
            deep=True,
        )

        self.state_dir.mkdir(parents=True, exist_ok=True)

        try:
            # Write to temporary file first
            temp_path = self.state_path.with_suffix(".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(stamped.to_dict(), f, indent=2)
                f.write("\n")

            # Atomic rename
            temp_path.replace(self.state_path)
        except OSError as e:
            raise StateError(f"Failed to save state file: {e}", cause=e) from e

        logger.debug(f"Saved state to {self.state_path}")
        return stamped

    def delete(self) -> bool:
        """
        Delete the state file and, if it is left empty, the state directory.

        Returns:
            True if a state file was deleted
        """
        if not self.state_path.exists():
            return False

        self.state_path.unlink()
        logger.info(f"Deleted state file {self.state_path}")

        if self.state_dir.exists() and not any(self.state_dir.iterdir()):
            self.state_dir.rmdir()

        return True

    def list_state_files(self) -> List[str]:
        """
        List state files in the state directory.

        Returns:
            Sorted file names matching ``state*.json``
        """
        if not self.state_dir.exists():
            return []

        return sorted(
            path.name
            for path in self.state_dir.iterdir()
            if path.is_file() and path.name.startswith("state") and path.name.endswith(".json")
        )

    def list_environments(self) -> List[str]:
        """List environments that have a state file."""
        environments = []
        for name in self.list_state_files():
            if name == "state.json":
                environments.append(DEFAULT_ENVIRONMENT)
            elif name.startswith("state.") and len(name) > len("state..json"):
                environments.append(name[len("state."):-len(".json")])
        return environments

    def initialize(self, app: str) -> DeploymentState:
        """
        Create an empty state for this environment without saving it.

        Args:
            app: Application identifier

        Returns:
            New DeploymentState with no resources and no files
        """
        return DeploymentState(app=app, environment=self.environment, version=STATE_VERSION)

    def get_or_create(self, app: str) -> DeploymentState:
        """Load the existing state or initialize a fresh one."""
        return self.load() or self.initialize(app)
