"""State file manager.

The state manager is responsible for loading and saving the run state to a JSON file.
The file is read once when a run starts and written once when it ends.

Writes go to a temporary file in the same directory which is then renamed over the
state file, so a crash mid-write never leaves a truncated state behind.
"""

import os
import tempfile
from pathlib import Path

from base_connector.errors import StateError
from base_connector.logger import ConnectorLogger
from pim_activator.models import RunState
from pydantic import ValidationError


class StateManager:
    def __init__(self, path: Path, logger: ConnectorLogger) -> None:
        self.path = path.expanduser()
        self.logger = logger

    def _read(self) -> RunState:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StateError(
                "[STATE] Unable to read state file",
                {"path": str(self.path), "error": str(e)},
            ) from e
        try:
            return RunState.model_validate_json(raw)
        except ValidationError as e:
            raise StateError(
                "[STATE] Invalid state file",
                {"path": str(self.path), "error": str(e)},
            ) from e

    def _write(self, state: RunState) -> None:
        payload = state.model_dump_json(by_alias=True, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as temp_file:
                    temp_file.write(payload)
                    temp_file.flush()
                    os.fsync(temp_file.fileno())
                os.replace(temp_path, self.path)
            except BaseException:
                Path(temp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StateError(
                "[STATE] Unable to write state file",
                {"path": str(self.path), "error": str(e)},
            ) from e

    def load(self) -> RunState:
        """Load the state, or a fresh one if the file is missing or unreadable."""
        if not self.path.exists():
            self.logger.info(
                "[STATE] No state file found, starting with a fresh state",
                {"path": str(self.path)},
            )
            return RunState()

        try:
            state = self._read()
        except StateError as e:
            self.logger.warning(f"{e.message}, starting with a fresh state", e.metadata)
            return RunState()

        self.logger.debug(
            "[STATE] State loaded",
            {"path": str(self.path), "last_run": str(state.last_run)},
        )
        return state

    def save(self, state: RunState) -> bool:
        """Save the state. A failure is logged and reported as False, never raised."""
        try:
            self._write(state)
        except StateError as e:
            self.logger.error(e.message, e.metadata)
            return False

        self.logger.debug("[STATE] State saved", {"path": str(self.path)})
        return True
