"""Job checkpoints stored as one JSON file per job."""

from __future__ import annotations

import json
import os
import re
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

log = getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_.-]+")


class JsonFileCheckpointStore:
    """Persist the finished item ids of each job under ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def load(self, job_id: str) -> set[str]:
        path = self._path(job_id)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return set()
        except json.JSONDecodeError:
            log.warning("Ignoring corrupt checkpoint file %s", path)
            return set()
        items = payload.get("done", []) if isinstance(payload, dict) else []
        return {str(item) for item in items}

    def mark_done(self, job_id: str, item_id: str) -> None:
        done = self.load(job_id)
        done.add(item_id)
        self._write(job_id, done)

    def clear(self, job_id: str) -> None:
        self._path(job_id).unlink(missing_ok=True)

    def _write(self, job_id: str, done: Iterable[str]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(job_id)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps({"job_id": job_id, "done": sorted(done)}, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp_path, path)

    def _path(self, job_id: str) -> Path:
        return self.directory / f"{_UNSAFE_RE.sub('_', job_id)}.json"


if TYPE_CHECKING:
    from marketsync.domain.ports import JobCheckpointStore

    _checkpoint_check: JobCheckpointStore = JsonFileCheckpointStore(Path())
