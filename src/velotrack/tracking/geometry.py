from __future__ import annotations

from typing import Sequence

import numpy as np

from velotrack.utils.types import BBox


def iou(a: BBox, b: BBox) -> float:
    """
    Intersection-over-Union of two (x, y, w, h) boxes.
    Zero-area boxes score 0 against anything, themselves included.
    """
    x1 = max(a.x, b.x)
    y1 = max(a.y, b.y)
    x2 = min(a.x + a.w, b.x + b.w)
    y2 = min(a.y + a.h, b.y + b.h)
    if x2 <= x1 or y2 <= y1:
        return 0.0

    intersection = (x2 - x1) * (y2 - y1)
    union = a.area + b.area - intersection
    return float(intersection / union)


def iou_matrix(a_boxes: Sequence[BBox], b_boxes: Sequence[BBox]) -> np.ndarray:
    """Pairwise IoU, shape (len(a_boxes), len(b_boxes)); rows follow a_boxes."""
    if not a_boxes or not b_boxes:
        return np.zeros((len(a_boxes), len(b_boxes)), dtype=np.float64)

    a = np.array([bb.as_tuple() for bb in a_boxes], dtype=np.float64)
    b = np.array([bb.as_tuple() for bb in b_boxes], dtype=np.float64)

    ax1, ay1 = a[:, 0:1], a[:, 1:2]
    ax2, ay2 = ax1 + a[:, 2:3], ay1 + a[:, 3:4]
    bx1, by1 = b[:, 0], b[:, 1]
    bx2, by2 = bx1 + b[:, 2], by1 + b[:, 3]

    iw = np.minimum(ax2, bx2) - np.maximum(ax1, bx1)
    ih = np.minimum(ay2, by2) - np.maximum(ay1, by1)
    overlap = (iw > 0) & (ih > 0)

    inter = np.where(overlap, iw * ih, 0.0)
    union = (a[:, 2:3] * a[:, 3:4]) + (b[:, 2] * b[:, 3]) - inter
    safe_union = np.where(overlap, union, 1.0)
    return np.where(overlap, inter / safe_union, 0.0)
