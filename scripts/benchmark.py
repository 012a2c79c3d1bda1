import argparse
import random
import time

from rich.console import Console

from velotrack.tracking.tracker import IoUVelocityTracker, TrackerConfig
from velotrack.utils.timing import percentile
from velotrack.utils.types import BBox, Detection


def synthetic_scene(n_objects: int, n_frames: int, seed: int = 0):
    """Boxes drifting at constant velocity with small jitter, one list per frame."""
    rng = random.Random(seed)
    objects = [
        (rng.uniform(0, 1200), rng.uniform(0, 650), rng.uniform(-4, 4), rng.uniform(-3, 3), rng.uniform(30, 90))
        for _ in range(n_objects)
    ]
    for f in range(n_frames):
        dets = []
        for x, y, vx, vy, size in objects:
            bx = x + vx * f + rng.gauss(0, 0.5)
            by = y + vy * f + rng.gauss(0, 0.5)
            dets.append(Detection(BBox(bx, by, size, size), "object", 0.9))
        rng.shuffle(dets)
        yield dets


def main():
    parser = argparse.ArgumentParser(description="Per-update latency of the tracker on a synthetic scene")
    parser.add_argument("--objects", type=int, default=40)
    parser.add_argument("--frames", type=int, default=500)
    parser.add_argument("--assignment", default="greedy", choices=["greedy", "hungarian"])
    args = parser.parse_args()

    tracker = IoUVelocityTracker(TrackerConfig(assignment=args.assignment), rng=random.Random(0))
    latencies = []
    start = time.time()
    for dets in synthetic_scene(args.objects, args.frames):
        t0 = time.perf_counter()
        tracker.update(dets)
        latencies.append((time.perf_counter() - t0) * 1000.0)

    results = {
        "objects": args.objects,
        "frames": args.frames,
        "ids_assigned": tracker.next_id - 1,
        "latency_ms_p50": round(percentile(latencies, 50), 3),
        "latency_ms_p95": round(percentile(latencies, 95), 3),
        "latency_ms_max": round(max(latencies), 3),
    }
    console = Console()
    console.print("Benchmark results", results)
    console.print(f"Elapsed {time.time() - start:.2f}s")


if __name__ == "__main__":
    main()
