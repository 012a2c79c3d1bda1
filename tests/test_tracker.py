import dataclasses
import math
import random

import pytest

from velotrack.tracking.palette import DEFAULT_PALETTE
from velotrack.tracking.tracker import InvalidDetectionError, IoUVelocityTracker, TrackerConfig
from velotrack.utils.types import BBox, Detection, TrackState


def det(x, y, w=20, h=20, label="car", score=0.9):
    return Detection(BBox(x, y, w, h), label, score)


def test_end_to_end_scenario():
    tracker = IoUVelocityTracker(TrackerConfig(match_threshold=0.25, max_missing_streak=2))

    out = tracker.update([det(10, 10)])
    assert [t.track_id for t in out] == [1]
    assert out[0].velocity == (0.0, 0.0)

    out = tracker.update([det(15, 10)])
    assert len(out) == 1
    assert out[0].track_id == 1
    assert out[0].box == BBox(15, 10, 20, 20)
    assert out[0].velocity == pytest.approx((2.5, 0.0))

    out = tracker.update([])
    assert len(out) == 1
    assert out[0].track_id == 1
    assert out[0].missing_streak == 1
    assert out[0].state is TrackState.STALE
    assert out[0].box.as_tuple() == pytest.approx((17.5, 10, 20, 20))

    assert tracker.update([]) == []


def test_birth_assigns_incrementing_ids_with_zero_velocity():
    tracker = IoUVelocityTracker()
    out = tracker.update([det(0, 0), det(200, 200)])
    assert [t.track_id for t in out] == [1, 2]
    out = tracker.update([det(0, 0), det(200, 200), det(500, 500)])
    new = [t for t in out if t.track_id == 3]
    assert len(new) == 1
    assert new[0].velocity == (0.0, 0.0)
    assert new[0].missing_streak == 0
    assert new[0].state is TrackState.ACTIVE
    assert tracker.next_id == 4


def test_ids_are_never_reused_after_drop():
    tracker = IoUVelocityTracker(TrackerConfig(max_missing_streak=1))
    tracker.update([det(0, 0)])
    assert tracker.update([]) == []
    out = tracker.update([det(0, 0)])
    assert [t.track_id for t in out] == [2]


def test_identity_stable_and_velocity_converges():
    tracker = IoUVelocityTracker()
    true_vx, true_vy = 4.0, -2.0
    ids = set()
    for f in range(12):
        out = tracker.update([det(100 + true_vx * f, 100 + true_vy * f, 40, 40)])
        assert len(out) == 1
        ids.add(out[0].track_id)
    assert ids == {1}
    vx, vy = out[0].velocity
    # after n matched updates the error decays by 0.5 per step
    assert vx == pytest.approx(true_vx * (1 - 0.5 ** 11))
    assert vy == pytest.approx(true_vy * (1 - 0.5 ** 11))


def test_prediction_follows_velocity_before_association():
    tracker = IoUVelocityTracker()
    tracker.update([det(0, 0, 40, 40)])
    tracker.update([det(4, 0, 40, 40)])  # velocity (2, 0)
    out = tracker.update([])
    assert out[0].box.x == pytest.approx(6.0)
    out = tracker.update([])
    assert out[0].box.x == pytest.approx(8.0)


def test_occlusion_tolerance_and_drop_timing():
    limit = 5
    tracker = IoUVelocityTracker(TrackerConfig(max_missing_streak=limit))
    tracker.update([det(50, 50)])
    for k in range(1, limit):
        out = tracker.update([])
        assert len(out) == 1
        assert out[0].missing_streak == k
    assert tracker.update([]) == []


def test_rematch_resets_missing_streak():
    tracker = IoUVelocityTracker()
    tracker.update([det(50, 50)])
    tracker.update([])
    tracker.update([])
    out = tracker.update([det(50, 50)])
    assert [(t.track_id, t.missing_streak) for t in out] == [(1, 0)]


def test_one_to_one_matching():
    tracker = IoUVelocityTracker()
    tracker.update([det(0, 0), det(5, 0)])
    out = tracker.update([det(2, 0)])
    assert [t.track_id for t in out] == [1, 2]
    assert [t.missing_streak for t in out] == [0, 1]
    assert len({t.track_id for t in out}) == len(out)


def test_output_order_matched_then_stale_then_spawned():
    tracker = IoUVelocityTracker()
    tracker.update([det(0, 0), det(100, 0), det(200, 0)])
    out = tracker.update([det(900, 900), det(200, 0), det(0, 0)])
    assert [(t.track_id, t.missing_streak) for t in out] == [(1, 0), (3, 0), (2, 1), (4, 0)]


def test_label_and_score_follow_latest_match():
    tracker = IoUVelocityTracker()
    tracker.update([det(0, 0, label="car", score=0.6)])
    out = tracker.update([det(1, 0, label="truck", score=0.95)])
    assert out[0].track_id == 1
    assert out[0].label == "truck"
    assert out[0].score == 0.95


def test_deterministic_ids_regardless_of_colour_rng():
    frames = [
        [det(0, 0), det(100, 100)],
        [det(3, 1), det(104, 98), det(300, 300)],
        [],
        [det(9, 3), det(301, 302)],
    ]
    a = IoUVelocityTracker(rng=random.Random(1))
    b = IoUVelocityTracker(rng=random.Random(99))
    for dets in frames:
        assert a.update(dets) == b.update(dets)


def test_display_colour_comes_from_palette_and_seeded_rng():
    a = IoUVelocityTracker(rng=random.Random(7))
    b = IoUVelocityTracker(rng=random.Random(7))
    dets = [det(i * 100, 0) for i in range(6)]
    colours_a = [t.display_color for t in a.update(dets)]
    colours_b = [t.display_color for t in b.update(dets)]
    assert colours_a == colours_b
    assert set(colours_a) <= set(DEFAULT_PALETTE)


def test_colour_is_kept_for_track_lifetime():
    tracker = IoUVelocityTracker()
    colour = tracker.update([det(0, 0)])[0].display_color
    for x in range(1, 5):
        assert tracker.update([det(x, 0)])[0].display_color == colour


def test_reset_restarts_ids():
    tracker = IoUVelocityTracker()
    tracker.update([det(0, 0), det(100, 100)])
    tracker.update([det(300, 300)])
    tracker.reset()
    assert tracker.tracks == []
    assert tracker.frame_index == 0
    fresh = IoUVelocityTracker()
    dets = [det(10, 10), det(60, 60)]
    assert tracker.update(dets) == fresh.update(dets)
    assert [t.track_id for t in tracker.tracks] == [1, 2]


def test_returned_tracks_do_not_alias_state():
    tracker = IoUVelocityTracker()
    out = tracker.update([det(0, 0)])
    out.clear()
    assert len(tracker.tracks) == 1
    with pytest.raises(dataclasses.FrozenInstanceError):
        tracker.tracks[0].missing_streak = 3


@pytest.mark.parametrize(
    "bad",
    [
        det(0, 0, w=-1),
        det(0, 0, h=-5),
        det(math.nan, 0),
        det(0, math.inf),
        det(0, 0, score=1.5),
    ],
)
def test_invalid_detection_rejects_whole_frame(bad):
    tracker = IoUVelocityTracker()
    tracker.update([det(0, 0)])
    before = tracker.tracks
    with pytest.raises(InvalidDetectionError) as exc_info:
        tracker.update([det(1, 0), bad])
    assert exc_info.value.index == 1
    assert tracker.tracks == before
    assert tracker.next_id == 2
    assert tracker.frame_index == 1


def test_zero_area_detection_spawns_but_never_matches():
    tracker = IoUVelocityTracker()
    tracker.update([det(0, 0, w=0)])
    out = tracker.update([det(0, 0, w=0)])
    assert [(t.track_id, t.missing_streak) for t in out] == [(1, 1), (2, 0)]


def test_duplicate_detections_are_not_merged():
    tracker = IoUVelocityTracker()
    out = tracker.update([det(0, 0), det(0, 0)])
    assert [t.track_id for t in out] == [1, 2]
    out = tracker.update([det(0, 0), det(0, 0)])
    assert [(t.track_id, t.missing_streak) for t in out] == [(1, 0), (2, 0)]


def test_hungarian_mode_keeps_contract():
    tracker = IoUVelocityTracker(TrackerConfig(assignment="hungarian", max_missing_streak=2))
    tracker.update([det(10, 10)])
    out = tracker.update([det(15, 10)])
    assert out[0].track_id == 1
    assert out[0].velocity == pytest.approx((2.5, 0.0))
    tracker.update([])
    assert tracker.update([]) == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"match_threshold": 0.0},
        {"match_threshold": 1.5},
        {"max_missing_streak": 0},
        {"max_missing_streak": 2.5},
        {"velocity_alpha": 0.0},
        {"assignment": "optimal"},
        {"palette": ()},
    ],
)
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        TrackerConfig(**kwargs)
