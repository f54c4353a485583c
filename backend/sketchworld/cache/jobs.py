"""Per-request output store keyed by generation hash.

Holds what a polling client needs for one animated request: the static
placeholder, the extracted frames, the looping animation built from them, and
a durable JSON error marker when the background pipeline fails::

    <root>/output_<hash>.png
    <root>/output_<hash>_frame<i>.png
    <root>/output_<hash>_loop.gif
    <root>/error_<hash>.json        {"error": ..., "timestamp": ...}
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from sketchworld.models.media import FrameStatus

logger = logging.getLogger(__name__)


def new_hash(object_type: str, style: str) -> str:
    """Unique id for one generation request."""
    seed = f"{object_type}{style}{time.time_ns()}"
    return hashlib.sha256(seed.encode()).hexdigest()[:16]


class JobStore:
    def __init__(self, root: Path, frame_count: int = 4) -> None:
        self.root = Path(root)
        self.frame_count = frame_count

    def _ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    # -- Paths ---------------------------------------------------------------

    def static_path(self, job: str) -> Path:
        return self.root / f"output_{job}.png"

    def frame_path(self, job: str, index: int) -> Path:
        return self.root / f"output_{job}_frame{index}.png"

    def loop_path(self, job: str) -> Path:
        return self.root / f"output_{job}_loop.gif"

    def error_path(self, job: str) -> Path:
        return self.root / f"error_{job}.json"

    # -- Writes --------------------------------------------------------------

    def write_static(self, job: str, data: bytes) -> Path:
        self._ensure_root()
        path = self.static_path(job)
        path.write_bytes(data)
        return path

    def write_frames(self, job: str, frames: list[bytes]) -> None:
        self._ensure_root()
        for i, frame in enumerate(frames):
            self.frame_path(job, i).write_bytes(frame)

    def write_loop(self, job: str, data: bytes) -> Path:
        self._ensure_root()
        path = self.loop_path(job)
        path.write_bytes(data)
        return path

    def write_error(self, job: str, message: str) -> Path:
        self._ensure_root()
        path = self.error_path(job)
        payload = {
            "error": message or "Failed to generate video",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        path.write_text(json.dumps(payload), encoding="utf-8")
        logger.info("Wrote error marker for %s", job)
        return path

    # -- Reads ---------------------------------------------------------------

    def read_static(self, job: str) -> bytes | None:
        path = self.static_path(job)
        return path.read_bytes() if path.exists() else None

    def read_error(self, job: str) -> dict | None:
        path = self.error_path(job)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Corrupt error marker %s", path.name)
            return {"error": "unknown", "timestamp": ""}

    def frame_status(self, job: str) -> FrameStatus:
        ready = sum(
            1
            for i in range(self.frame_count)
            if self.frame_path(job, i).exists() and self.frame_path(job, i).stat().st_size > 0
        )
        return FrameStatus(ready=ready == self.frame_count, progress=ready, total=self.frame_count)
