"""JSON state file persistence.

The snapshot is written as pretty-printed JSON after every mutation. Writes
are best effort: a failed write is logged by the caller and the in-memory
store stays authoritative. A file that no longer parses is moved aside to a
``.backup`` sibling so startup always succeeds.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from tallr.core.errors import CorruptStateError, PersistenceError
from tallr.core.models import AppState

if TYPE_CHECKING:
    from tallr.core.state_store import StateStore

logger = logging.getLogger(__name__)


class StateFile:
    """Reads and writes the snapshot at a fixed path.

    Args:
        path: Location of the state file (``sessions.json``)
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._write_lock = threading.Lock()

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".backup")

    def save(self, state: AppState) -> None:
        """Write the snapshot to disk atomically.

        Raises:
            PersistenceError: If the directory or file cannot be written
        """
        with self._write_lock:
            self._write_unlocked(state)

    def save_from(self, store: "StateStore") -> None:
        """Snapshot ``store`` and write it, serialized with other writers.

        Taking the snapshot inside the write lock means a slower writer can
        never overwrite the file with an older state.

        Raises:
            PersistenceError: If the write fails
        """
        with self._write_lock:
            state = store.snapshot()
            self._write_unlocked(state)

    def _write_unlocked(self, state: AppState) -> None:
        payload = json.dumps(state.to_wire(), indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(
                f"Failed to write state file {self.path}: {e}", path=str(self.path)
            ) from e
        logger.debug(f"Saved state to {self.path}")

    def load(self) -> AppState:
        """Read the snapshot from disk.

        A missing or blank file yields an empty snapshot.

        Raises:
            CorruptStateError: If the file does not parse; it has been moved
                to ``backup_path`` when the rename succeeded
            PersistenceError: If the file exists but cannot be read
        """
        if not self.path.exists():
            return AppState()

        try:
            raw = self.path.read_bytes()
        except OSError as e:
            raise PersistenceError(
                f"Failed to read state file {self.path}: {e}", path=str(self.path)
            ) from e

        if not raw.strip():
            return AppState()

        try:
            return AppState.model_validate(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError, RecursionError) as e:
            backup = self._quarantine()
            raise CorruptStateError(
                f"Failed to parse state file {self.path}: {e}",
                path=str(self.path),
                backup_path=str(backup) if backup else None,
            ) from e

    def load_or_empty(self) -> AppState:
        """Load the snapshot, starting empty if the file is corrupt or unreadable."""
        try:
            return self.load()
        except CorruptStateError as e:
            logger.warning(f"{e} (backed up as {e.backup_path}); starting with empty state")
        except PersistenceError as e:
            logger.warning(f"{e}; starting with empty state")
        return AppState()

    def _quarantine(self) -> Path | None:
        backup = self.backup_path
        try:
            os.replace(self.path, backup)
        except OSError as e:
            logger.error(f"Failed to back up corrupt state file {self.path}: {e}")
            return None
        return backup
