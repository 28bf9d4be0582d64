"""
Persistence of the event state as a single JSON record.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from .errors import StorageError
from .models import EventState

logger = logging.getLogger(__name__)


class StateStore:
    """Loads and saves the whole EventState record at one path.

    A missing file means this is the first run. Saves go through a temporary
    file in the same directory followed by ``os.replace``, so a crash never
    leaves a half-written record behind.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> EventState:
        if not self.path.exists():
            logger.info(f"📄 No state at {self.path}, starting fresh")
            return EventState()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = f.read()
        except OSError as e:
            raise StorageError(f"Could not read state from {self.path}: {e}") from e

        try:
            return EventState.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"State file {self.path} is corrupt: {e}") from e

    def save(self, state: EventState) -> None:
        payload = state.model_dump_json(indent=2)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise StorageError(f"Could not write state to {self.path}: {e}") from e
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning(f"⚠️ Could not remove temporary state file {tmp_path}")

        logger.debug(f"💾 Saved state to {self.path}")
