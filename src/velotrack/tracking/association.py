from __future__ import annotations

from dataclasses import dataclass
from typing import List, Set

import numpy as np
from scipy.optimize import linear_sum_assignment


@dataclass(frozen=True)
class Match:
    track_idx: int
    det_idx: int
    iou: float


@dataclass
class Assignment:
    matches: List[Match]
    unmatched_tracks: List[int]
    unmatched_detections: List[int]


def candidate_pairs(ious: np.ndarray, threshold: float) -> List[Match]:
    """All pairs with IoU >= threshold, generated track-major then detection-minor."""
    pairs: List[Match] = []
    n_tracks, n_dets = ious.shape
    for t in range(n_tracks):
        for d in range(n_dets):
            score = float(ious[t, d])
            if score >= threshold:
                pairs.append(Match(t, d, score))
    return pairs


def greedy_assign(ious: np.ndarray, threshold: float) -> Assignment:
    """
    Highest-IoU-first one-to-one assignment.
    Python's sort is stable, so equal scores keep generation order.
    """
    candidates = sorted(candidate_pairs(ious, threshold), key=lambda m: m.iou, reverse=True)

    used_tracks: Set[int] = set()
    used_dets: Set[int] = set()
    matches: List[Match] = []
    for m in candidates:
        if m.track_idx in used_tracks or m.det_idx in used_dets:
            continue
        used_tracks.add(m.track_idx)
        used_dets.add(m.det_idx)
        matches.append(m)

    return _finish(ious.shape, matches, used_tracks, used_dets)


def hungarian_assign(ious: np.ndarray, threshold: float) -> Assignment:
    """Assignment maximising total IoU; pairs under threshold are discarded afterwards."""
    matches: List[Match] = []
    used_tracks: Set[int] = set()
    used_dets: Set[int] = set()
    if ious.size:
        row_ind, col_ind = linear_sum_assignment(-ious)
        for r, c in zip(row_ind, col_ind):
            score = float(ious[r, c])
            if score < threshold:
                continue
            matches.append(Match(int(r), int(c), score))
            used_tracks.add(int(r))
            used_dets.add(int(c))
        matches.sort(key=lambda m: m.iou, reverse=True)

    return _finish(ious.shape, matches, used_tracks, used_dets)


def _finish(shape, matches: List[Match], used_tracks: Set[int], used_dets: Set[int]) -> Assignment:
    n_tracks, n_dets = shape
    return Assignment(
        matches=matches,
        unmatched_tracks=[t for t in range(n_tracks) if t not in used_tracks],
        unmatched_detections=[d for d in range(n_dets) if d not in used_dets],
    )


ASSIGNERS = {
    "greedy": greedy_assign,
    "hungarian": hungarian_assign,
}
