from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Tuple

import cv2

from velotrack.utils.types import Track

TARGET_COLOR = "#ff2a6d"
VELOCITY_ARROW_SCALE = 5.0
MIN_ARROW_SPEED = 0.5  # px/frame on either axis


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected #rrggbb colour, got {color!r}")
    r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    return (b, g, r)


def percent(score: float) -> int:
    """Whole percent with halves rounded up."""
    return int(score * 100 + 0.5)


def filter_tracks(tracks: Iterable[Track], classes: Optional[Sequence[str]] = None) -> List[Track]:
    tracks = list(tracks)
    if not classes:
        return tracks
    wanted = set(classes)
    return [t for t in tracks if t.label in wanted]


def draw_tracks(frame: Any, tracks: Sequence[Track], class_filter: Optional[Sequence[str]] = None) -> Any:
    """
    Draw each visible track with its display colour, an "ID:n | label NN%" tag
    and a velocity arrow from the box centre. With a class filter active the
    matching tracks are highlighted as targets.
    """
    render = frame.copy()
    is_target = bool(class_filter)

    for tr in filter_tracks(tracks, class_filter):
        color = hex_to_bgr(TARGET_COLOR if is_target else tr.display_color)
        x1, y1, x2, y2 = (int(round(v)) for v in tr.box.to_xyxy())
        cv2.rectangle(render, (x1, y1), (x2, y2), color, 2)

        tag = f"TARGET: {tr.label.upper()}" if is_target else f"{tr.label} {percent(tr.score)}%"
        text = f"ID:{tr.track_id} | {tag}"
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, 0.45, 1)
        cv2.rectangle(render, (x1, y1 - th - 10), (x1 + tw + 12, y1), color, -1)
        text_color = (255, 255, 255) if is_target else (0, 0, 0)
        cv2.putText(render, text, (x1 + 6, y1 - 6), cv2.FONT_HERSHEY_SIMPLEX, 0.45, text_color, 1)

        vx, vy = tr.velocity
        if abs(vx) > MIN_ARROW_SPEED or abs(vy) > MIN_ARROW_SPEED:
            cx, cy = tr.box.center
            start = (int(round(cx)), int(round(cy)))
            end = (int(round(cx + vx * VELOCITY_ARROW_SCALE)), int(round(cy + vy * VELOCITY_ARROW_SCALE)))
            cv2.arrowedLine(render, start, end, (255, 255, 255) if is_target else color, 1)

    return render


def draw_hud(frame: Any, fps: float, track_count: int) -> Any:
    render = frame.copy()
    cv2.putText(render, f"FPS: {fps:5.1f} | tracks: {track_count}", (15, 25), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)
    return render
