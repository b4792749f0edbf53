"""Progress checkpoints for resumable recompute jobs."""

from __future__ import annotations

import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from directory_rankings.utils.logging import get_logger
from directory_rankings.utils.types import Checkpoint

logger = get_logger("ranking.progress")


class ProgressStore(ABC):
    """Persists which scopes a job run has already completed."""

    @abstractmethod
    def load(self, job_key: str) -> Optional[Checkpoint]: ...

    @abstractmethod
    def save(self, job_key: str, checkpoint: Checkpoint) -> None: ...

    @abstractmethod
    def clear(self, job_key: str) -> None: ...


class InMemoryProgressStore(ProgressStore):
    """Checkpoints held in a dict; lost when the process exits."""

    def __init__(self) -> None:
        self._checkpoints: Dict[str, dict] = {}

    def load(self, job_key: str) -> Optional[Checkpoint]:
        data = self._checkpoints.get(job_key)
        return Checkpoint.from_dict(data) if data is not None else None

    def save(self, job_key: str, checkpoint: Checkpoint) -> None:
        self._checkpoints[job_key] = checkpoint.to_dict()

    def clear(self, job_key: str) -> None:
        self._checkpoints.pop(job_key, None)

    def __contains__(self, job_key: str) -> bool:
        return job_key in self._checkpoints


class JsonFileProgressStore(ProgressStore):
    """One JSON file per job key inside a directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, job_key: str) -> Path:
        safe_key = re.sub(r"[^A-Za-z0-9_.-]+", "-", job_key)
        return self.directory / f"rankings-progress-{safe_key}.json"

    def load(self, job_key: str) -> Optional[Checkpoint]:
        path = self.path_for(job_key)
        if not path.exists():
            return None
        try:
            with open(path, "r") as f:
                return Checkpoint.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable progress file %s: %s", path, e)
            return None

    def save(self, job_key: str, checkpoint: Checkpoint) -> None:
        """Write the checkpoint atomically (temp file, then rename)."""
        path = self.path_for(job_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(checkpoint.to_dict(), f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def clear(self, job_key: str) -> None:
        path = self.path_for(job_key)
        if path.exists():
            path.unlink()
