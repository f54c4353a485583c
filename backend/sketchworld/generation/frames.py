"""Frame extraction from generated videos via the ffmpeg binary."""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from sketchworld.errors import ExtractionError

logger = logging.getLogger(__name__)

_SQUARE_CROP = r"crop=min(iw\,ih):min(iw\,ih)"


def frame_timestamps(count: int = 4, duration: float = 5.0, epsilon: float = 0.05) -> list[float]:
    """Evenly spaced seek points; the last one sits just before the end.

    >>> frame_timestamps()
    [0.0, 1.67, 3.33, 4.95]
    """
    if count < 2:
        return [0.0]
    stamps = [round(duration * i / (count - 1), 2) for i in range(count - 1)]
    stamps.append(round(duration - epsilon, 2))
    return stamps


class FfmpegFrameExtractor:
    """Grabs one square-cropped PNG per timestamp."""

    def __init__(self, ffmpeg_bin: str | None = None, timeout_s: float = 30.0) -> None:
        self.ffmpeg_bin = ffmpeg_bin or shutil.which("ffmpeg")
        self.timeout_s = timeout_s

    async def extract(self, video: bytes, timestamps: list[float]) -> list[bytes]:
        if not self.ffmpeg_bin:
            raise ExtractionError("ffmpeg not found on PATH")
        if not video:
            raise ExtractionError("Empty video")
        return await asyncio.to_thread(self._extract_sync, video, timestamps)

    def _extract_sync(self, video: bytes, timestamps: list[float]) -> list[bytes]:
        with tempfile.TemporaryDirectory(prefix="sketchworld-") as tmp:
            tmp_dir = Path(tmp)
            video_path = tmp_dir / "input.mp4"
            video_path.write_bytes(video)

            frames: list[bytes] = []
            for i, ts in enumerate(timestamps):
                out = tmp_dir / f"frame{i}.png"
                cmd = [
                    self.ffmpeg_bin,
                    "-y",
                    "-loglevel",
                    "error",
                    "-ss",
                    f"{ts:.2f}",
                    "-i",
                    str(video_path),
                    "-frames:v",
                    "1",
                    "-vf",
                    _SQUARE_CROP,
                    str(out),
                ]
                try:
                    subprocess.run(cmd, check=True, timeout=self.timeout_s, capture_output=True)
                except (OSError, subprocess.SubprocessError) as e:
                    raise ExtractionError(f"ffmpeg failed at {ts:.2f}s: {e}") from e

                data = out.read_bytes() if out.exists() else b""
                if not data:
                    raise ExtractionError(f"Frame {i} at {ts:.2f}s is empty")
                logger.debug("Extracted frame %d at %.2fs (%d bytes)", i, ts, len(data))
                frames.append(data)

        return frames
