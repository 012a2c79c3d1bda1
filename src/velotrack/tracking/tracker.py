from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from velotrack.tracking.association import ASSIGNERS
from velotrack.tracking.geometry import iou_matrix
from velotrack.tracking.palette import DEFAULT_PALETTE, ColorPalette
from velotrack.utils.logger import get_logger
from velotrack.utils.types import Detection, Track


class InvalidDetectionError(ValueError):
    """A detection whose box or score cannot be tracked. The frame is rejected whole."""

    def __init__(self, index: int, detection: Detection, reason: str):
        super().__init__(f"Invalid detection #{index} ({reason}): {detection!r}")
        self.index = index
        self.detection = detection
        self.reason = reason


@dataclass(frozen=True)
class TrackerConfig:
    match_threshold: float = 0.25
    max_missing_streak: int = 30
    velocity_alpha: float = 0.5  # weight of the measured velocity
    assignment: str = "greedy"  # "greedy" | "hungarian"
    palette: Tuple[str, ...] = DEFAULT_PALETTE

    def __post_init__(self) -> None:
        if not 0.0 < self.match_threshold <= 1.0:
            raise ValueError(f"match_threshold must be in (0, 1], got {self.match_threshold}")
        if isinstance(self.max_missing_streak, bool) or not isinstance(self.max_missing_streak, int) or self.max_missing_streak < 1:
            raise ValueError(f"max_missing_streak must be a positive integer, got {self.max_missing_streak!r}")
        if not 0.0 < self.velocity_alpha <= 1.0:
            raise ValueError(f"velocity_alpha must be in (0, 1], got {self.velocity_alpha}")
        if self.assignment not in ASSIGNERS:
            raise ValueError(f"assignment must be one of {sorted(ASSIGNERS)}, got {self.assignment!r}")
        if not self.palette:
            raise ValueError("palette must not be empty")

    @classmethod
    def from_dict(cls, section: Optional[Dict[str, Any]]) -> "TrackerConfig":
        """Build from the `tracker:` section of the YAML config; missing keys keep defaults."""
        section = section or {}
        kwargs: Dict[str, Any] = {}
        if "match_threshold" in section:
            kwargs["match_threshold"] = float(section["match_threshold"])
        if "max_missing_streak" in section:
            kwargs["max_missing_streak"] = section["max_missing_streak"]
        if "velocity_alpha" in section:
            kwargs["velocity_alpha"] = float(section["velocity_alpha"])
        if "assignment" in section:
            kwargs["assignment"] = str(section["assignment"])
        if section.get("palette") is not None:
            kwargs["palette"] = tuple(str(c) for c in section["palette"])
        return cls(**kwargs)


class IoUVelocityTracker:
    """
    Online IoU tracker with a constant-velocity predictor (simplified SORT).

    Per frame: predict every track by its velocity, score (track, detection)
    pairs by IoU, assign one-to-one, smooth velocities of matched tracks,
    age unmatched tracks and spawn tracks for unmatched detections.
    Not thread-safe: calls to update() on one instance must be serialised.
    """

    def __init__(self, cfg: TrackerConfig | None = None, rng: random.Random | None = None):
        self.cfg = cfg or TrackerConfig()
        self.palette = ColorPalette(self.cfg.palette, rng=rng)
        self.logger = get_logger(__name__)
        self._assign = ASSIGNERS[self.cfg.assignment]
        self._tracks: List[Track] = []
        self._next_id = 1
        self._frame_index = 0

    @property
    def tracks(self) -> List[Track]:
        return list(self._tracks)

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def frame_index(self) -> int:
        return self._frame_index

    def update(self, detections: Sequence[Detection]) -> List[Track]:
        detections = list(detections)
        self._validate(detections)
        self._frame_index += 1

        # Predict
        predicted = [replace(t, box=t.box.translated(*t.velocity)) for t in self._tracks]

        # Associate
        ious = iou_matrix([t.box for t in predicted], [d.box for d in detections])
        result = self._assign(ious, self.cfg.match_threshold)

        # Apply matches, keeping original track order
        alpha = self.cfg.velocity_alpha
        matched: Dict[int, Track] = {}
        for m in result.matches:
            track = predicted[m.track_idx]
            det = detections[m.det_idx]
            vx, vy = track.velocity
            prev_x = track.box.x - vx
            prev_y = track.box.y - vy
            det_x, det_y = det.box.top_left
            measured_vx = det_x - prev_x
            measured_vy = det_y - prev_y
            matched[m.track_idx] = replace(
                track,
                box=det.box,
                label=det.label,
                score=det.score,
                velocity=(vx * (1 - alpha) + measured_vx * alpha, vy * (1 - alpha) + measured_vy * alpha),
                missing_streak=0,
            )
        matched_tracks = [matched[idx] for idx in sorted(matched)]

        # Age
        survivors: List[Track] = []
        dropped: List[int] = []
        for idx in result.unmatched_tracks:
            aged = replace(predicted[idx], missing_streak=predicted[idx].missing_streak + 1)
            if aged.missing_streak < self.cfg.max_missing_streak:
                survivors.append(aged)
            else:
                dropped.append(aged.track_id)

        # Spawn
        spawned: List[Track] = []
        for idx in result.unmatched_detections:
            det = detections[idx]
            spawned.append(
                Track(
                    track_id=self._next_id,
                    box=det.box,
                    label=det.label,
                    score=det.score,
                    velocity=(0.0, 0.0),
                    missing_streak=0,
                    display_color=self.palette.pick(),
                )
            )
            self._next_id += 1

        self._tracks = matched_tracks + survivors + spawned

        self.logger.debug(
            "frame=%d matched=%d stale=%d spawned=%s dropped=%s",
            self._frame_index,
            len(matched_tracks),
            len(survivors),
            [t.track_id for t in spawned],
            dropped,
        )
        return list(self._tracks)

    def reset(self) -> None:
        if self._tracks:
            self.logger.info("Tracker reset: dropping %d live tracks", len(self._tracks))
        self._tracks = []
        self._next_id = 1
        self._frame_index = 0

    @staticmethod
    def _validate(detections: List[Detection]) -> None:
        for i, det in enumerate(detections):
            box = det.box
            if not box.is_finite():
                raise InvalidDetectionError(i, det, "non-finite box")
            if box.w < 0 or box.h < 0:
                raise InvalidDetectionError(i, det, "negative width or height")
            if not math.isfinite(det.score) or not 0.0 <= det.score <= 1.0:
                raise InvalidDetectionError(i, det, "score outside [0, 1]")
