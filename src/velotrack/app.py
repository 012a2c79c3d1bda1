from __future__ import annotations

import argparse
import json
import random
import time
from datetime import datetime
from pathlib import Path
from statistics import mean
from typing import Any, Dict, List, Optional, Sequence

import cv2
import numpy as np
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from velotrack.inputs.detection_log import DetectionLog
from velotrack.tracking.tracker import IoUVelocityTracker, TrackerConfig
from velotrack.utils.config import get, load_yaml
from velotrack.utils.logger import setup_logger
from velotrack.utils.timing import FPSMeter, StageTimer, percentile
from velotrack.visualization.overlay import draw_hud, draw_tracks


def make_run_dir(base_dir: str | Path) -> Path:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(base_dir) / f"run_{ts}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def build_tracker(cfg: Dict[str, Any]) -> IoUVelocityTracker:
    seed = get(cfg, "tracker.seed", None)
    rng = random.Random(seed) if seed is not None else None
    return IoUVelocityTracker(TrackerConfig.from_dict(cfg.get("tracker")), rng=rng)


def run(cfg: Dict[str, Any], input_path: str | Path, classes: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Replay a detection log through the tracker; returns the run summary."""
    run_dir = make_run_dir(get(cfg, "runtime.output_dir", "results"))
    logger = setup_logger(log_dir=run_dir, level=get(cfg, "runtime.log_level", "INFO"))
    save_tracks = bool(get(cfg, "runtime.save_tracks", True))
    save_video = bool(get(cfg, "runtime.overlay.enabled", False))

    log = DetectionLog(input_path)
    tracker = build_tracker(cfg)
    logger.info("Input log: %s", input_path)
    logger.info("Tracker config: %s", tracker.cfg)

    writer = None
    canvas = None
    if save_video:
        width = int(get(cfg, "runtime.overlay.width", 1280))
        height = int(get(cfg, "runtime.overlay.height", 720))
        fps = float(get(cfg, "runtime.overlay.fps", 30))
        writer = cv2.VideoWriter(str(run_dir / "overlay.mp4"), cv2.VideoWriter_fourcc(*"mp4v"), fps, (width, height))
        if not writer.isOpened():
            raise RuntimeError("Could not open VideoWriter (mp4v). Try a different codec/container.")
        canvas = np.zeros((height, width, 3), dtype=np.uint8)

    fps_meter = FPSMeter()
    frames: List[Dict[str, Any]] = []
    seen_ids = set()
    tracks_file = (run_dir / "tracks.jsonl").open("w", encoding="utf-8") if save_tracks else None
    try:
        for frame_id, detections in tqdm(log.frames(), total=len(log), desc="Tracking"):
            timer = StageTimer()
            t0 = time.perf_counter()
            tracks = tracker.update(detections)
            update_ms = timer.mark("tracking", t0)
            fps = fps_meter.tick()

            spawned = [t.track_id for t in tracks if t.track_id not in seen_ids]
            seen_ids.update(spawned)
            frames.append(
                {
                    "frame": frame_id,
                    "detections": len(detections),
                    "tracks": len(tracks),
                    "stale": sum(1 for t in tracks if t.missing_streak > 0),
                    "spawned": spawned,
                    "stages_ms": timer.stages_ms,
                }
            )

            if tracks_file is not None:
                tracks_file.write(json.dumps({"frame": frame_id, "tracks": [t.to_record() for t in tracks]}) + "\n")

            if writer is not None:
                render = draw_tracks(canvas, tracks, class_filter=classes)
                writer.write(draw_hud(render, fps, len(tracks)))
    finally:
        if tracks_file is not None:
            tracks_file.close()
        if writer is not None:
            writer.release()

    latencies = [f["stages_ms"]["tracking"] for f in frames]
    summary = {
        "run_dir": str(run_dir),
        "frames": len(frames),
        "unique_ids": len(seen_ids),
        "max_concurrent_tracks": max((f["tracks"] for f in frames), default=0),
        "latency_ms_mean": mean(latencies) if latencies else 0.0,
        "latency_ms_p95": percentile(latencies, 95),
    }
    if bool(get(cfg, "runtime.save_metrics", True)):
        metrics = {"input": str(input_path), "tracker": tracker.cfg.__dict__, "summary": summary, "frames": frames}
        (run_dir / "metrics.json").write_text(json.dumps(metrics, indent=2, default=list))
    logger.info("Processed %d frames, %d unique ids", summary["frames"], summary["unique_ids"])
    return summary


def print_summary(console: Console, summary: Dict[str, Any]) -> None:
    table = Table(title="velotrack run summary")
    table.add_column("metric")
    table.add_column("value", justify="right")
    table.add_row("frames", str(summary["frames"]))
    table.add_row("unique ids", str(summary["unique_ids"]))
    table.add_row("max concurrent tracks", str(summary["max_concurrent_tracks"]))
    table.add_row("update latency mean (ms)", f"{summary['latency_ms_mean']:.3f}")
    table.add_row("update latency p95 (ms)", f"{summary['latency_ms_p95']:.3f}")
    console.print(table)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="velotrack - replay detections through the IoU/velocity tracker")
    parser.add_argument("--config", default="configs/tracker.yaml", help="Path to YAML config")
    parser.add_argument("--input", required=True, help="Path to detections log (JSON lines)")
    parser.add_argument("--classes", nargs="*", default=None, help="Only draw tracks with these labels")
    args = parser.parse_args(argv)

    cfg = load_yaml(args.config)
    console = Console()
    summary = run(cfg, args.input, classes=args.classes)
    console.print(f"[bold]velotrack[/bold] run dir: {summary['run_dir']}")
    print_summary(console, summary)


if __name__ == "__main__":
    main()
