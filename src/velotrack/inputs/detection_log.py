from __future__ import annotations

import json
from pathlib import Path
from typing import Generator, List, Tuple

from velotrack.inputs.base_input import DetectionSource
from velotrack.utils.logger import get_logger
from velotrack.utils.types import Detection


class DetectionLog(DetectionSource):
    """
    Replays detector output stored as JSON lines, one frame per line:
      {"frame": 12, "detections": [{"bbox": [x, y, w, h], "class": "car", "score": 0.9}]}
    "frame" is optional; lines without it are numbered from 1 in file order.
    Blank lines are skipped.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.logger = get_logger(__name__)
        if not self.path.exists():
            raise FileNotFoundError(f"Detection log not found: {self.path}")

    def frames(self) -> Generator[Tuple[int, List[Detection]], None, None]:
        idx = 0
        with self.path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                idx += 1
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise ValueError(f"{self.path}:{line_no}: invalid JSON ({exc.msg})") from exc
                if isinstance(payload, list):
                    payload = {"detections": payload}
                if not isinstance(payload, dict):
                    raise ValueError(f"{self.path}:{line_no}: expected an object or a list of detections")
                records = payload.get("detections") or []
                try:
                    detections = [Detection.from_record(r) for r in records]
                except ValueError as exc:
                    raise ValueError(f"{self.path}:{line_no}: {exc}") from exc
                try:
                    frame_id = int(payload.get("frame", idx))
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"{self.path}:{line_no}: invalid frame number {payload.get('frame')!r}") from exc
                yield frame_id, detections

    def __len__(self) -> int:
        with self.path.open("r", encoding="utf-8") as f:
            return sum(1 for line in f if line.strip())
