from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Tuple


@dataclass(frozen=True)
class BBox:
    """Axis-aligned box in pixels: (x, y) is the top-left corner."""

    x: float
    y: float
    w: float
    h: float

    @classmethod
    def from_xywh(cls, values) -> "BBox":
        x, y, w, h = (float(v) for v in values)
        return cls(x, y, w, h)

    @property
    def area(self) -> float:
        return self.w * self.h

    @property
    def top_left(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)

    def translated(self, dx: float, dy: float) -> "BBox":
        return BBox(self.x + dx, self.y + dy, self.w, self.h)

    def to_xyxy(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.w, self.y + self.h)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.w, self.h)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self.as_tuple())


@dataclass(frozen=True)
class Detection:
    box: BBox
    label: str
    score: float

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Detection":
        """Build from a detector record: {"bbox": [x, y, w, h], "class": str, "score": float}."""
        try:
            box = BBox.from_xywh(record["bbox"])
            label = str(record.get("class", record.get("label", "object")))
            score = float(record.get("score", 0.0))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed detection record: {record!r}") from exc
        return cls(box=box, label=label, score=score)


class TrackState(str, Enum):
    ACTIVE = "ACTIVE"
    STALE = "STALE"


@dataclass(frozen=True)
class Track:
    track_id: int
    box: BBox
    label: str
    score: float
    velocity: Tuple[float, float] = (0.0, 0.0)
    missing_streak: int = 0
    display_color: str = field(default="#00f0ff", compare=False)

    @property
    def state(self) -> TrackState:
        return TrackState.ACTIVE if self.missing_streak == 0 else TrackState.STALE

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.track_id,
            "bbox": list(self.box.as_tuple()),
            "class": self.label,
            "score": self.score,
            "velocity": list(self.velocity),
            "missing_frames": self.missing_streak,
            "color": self.display_color,
        }
