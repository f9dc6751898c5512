#!/usr/bin/env python3
"""
Plot per-plant time-series from the JSONL log written by flowforward-sim.

Each line is expected as:
{"topic": "<base>/<plant_id>/telemetry", "payload": {...}}

Usage:
  flowforward-plot --in out/plant_telemetry.jsonl --outdir out/plots
"""

import argparse
import json
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402


PLOTTED_METRICS = (
    "metrics.flow_rate",
    "metrics.turbidity",
    "metrics.ph",
    "metrics.tds_ec",
    "metrics.uptime_h",
    "metrics.treated_volume_l",
    "compliance.open_violations",
)

# normalized to the first sample so they share one axis
COMBO_METRICS = ("metrics.flow_rate", "metrics.turbidity", "metrics.ph", "metrics.tds_ec")

Series = Dict[str, Dict[str, List[Tuple[datetime, float]]]]


# ----------------------------
# Helpers
# ----------------------------
def parse_ts(ts: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(ts)
    except ValueError:
        return None


def safe_get(d: Dict[str, Any], path: str) -> Any:
    cur: Any = d
    for p in path.split("."):
        if not isinstance(cur, dict) or p not in cur:
            return None
        cur = cur[p]
    return cur


def is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def load_jsonl(path: str) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    if not path or not os.path.exists(path):
        return rows

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(obj, dict):
                continue
            topic = obj.get("topic")
            payload = obj.get("payload")
            if not isinstance(topic, str) or not isinstance(payload, dict):
                continue

            ts_raw = payload.get("ts")
            ts = parse_ts(ts_raw) if isinstance(ts_raw, str) else None
            if ts is None:
                continue

            plant_id = payload.get("device_id")
            if not isinstance(plant_id, str):
                # flowforward/plant-a/telemetry
                parts = topic.split("/")
                plant_id = parts[-2] if len(parts) >= 2 else "unknown"

            rows.append({
                "ts": ts,
                "topic": topic,
                "plant_id": plant_id,
                "seq": payload.get("seq"),
                "payload": payload,
            })
    rows.sort(key=lambda r: r["ts"])
    return rows


def extract_metrics(row: Dict[str, Any]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for path in PLOTTED_METRICS:
        v = safe_get(row["payload"], path)
        if is_number(v):
            out[path] = float(v)
    return out


def build_series(rows: List[Dict[str, Any]]) -> Series:
    series: Series = {}
    for r in rows:
        per_plant = series.setdefault(r["plant_id"], {})
        for k, v in extract_metrics(r).items():
            per_plant.setdefault(k, []).append((r["ts"], v))
    return series


def downsample(points: List[Tuple[datetime, float]], max_points: int) -> List[Tuple[datetime, float]]:
    if len(points) <= max_points:
        return points
    step = max(1, len(points) // max_points)
    return points[::step]


def plot_series(ts: List[datetime], ys: List[float], title: str, outpath: str) -> None:
    plt.figure()
    plt.plot(ts, ys)
    plt.title(title)
    plt.xlabel("time")
    plt.ylabel(title)
    plt.tight_layout()
    plt.savefig(outpath, dpi=150)
    plt.close()


def plot_combo(plant_id: str, metrics: Dict[str, List[Tuple[datetime, float]]], outpath: str, max_points: int) -> bool:
    data = []
    for m in COMBO_METRICS:
        pts = metrics.get(m)
        if not pts:
            continue
        pts = downsample(pts, max_points)
        base = pts[0][1] or 1.0
        data.append((m.split(".")[-1], [p[0] for p in pts], [p[1] / base for p in pts]))
    if not data:
        return False

    plt.figure()
    for label, tss, vss in data:
        plt.plot(tss, vss, label=label)
    plt.title(f"{plant_id}: water quality (relative to first sample)")
    plt.xlabel("time")
    plt.legend()
    plt.tight_layout()
    plt.savefig(outpath, dpi=150)
    plt.close()
    return True


def render_plots(rows: List[Dict[str, Any]], outdir: str, max_points: int = 5000) -> List[str]:
    os.makedirs(outdir, exist_ok=True)
    written: List[str] = []

    for plant_id, metrics in sorted(build_series(rows).items()):
        for metric, pts in metrics.items():
            pts = downsample(pts, max_points)
            name = f"{plant_id}_{metric.split('.')[-1]}.png"
            outpath = os.path.join(outdir, name)
            plot_series([p[0] for p in pts], [p[1] for p in pts], f"{plant_id} {metric}", outpath)
            written.append(outpath)

        combo = os.path.join(outdir, f"{plant_id}_combo.png")
        if plot_combo(plant_id, metrics, combo, max_points):
            written.append(combo)

    return written


# ----------------------------
# Main
# ----------------------------
def main(argv: Optional[list] = None) -> None:
    ap = argparse.ArgumentParser(description="Plot FlowForward telemetry JSONL")
    ap.add_argument("--in", dest="inp", default="out/plant_telemetry.jsonl", help="JSONL path")
    ap.add_argument("--outdir", default="out/plots", help="Where to save PNG plots")
    ap.add_argument("--max-points", type=int, default=5000, help="Cap points per metric (simple downsample)")
    args = ap.parse_args(argv)

    rows = load_jsonl(args.inp)
    if not rows:
        print("No data found. Check JSONL path.")
        return

    written = render_plots(rows, args.outdir, args.max_points)
    print(f"Plots saved to: {os.path.abspath(args.outdir)} ({len(written)} files)")


if __name__ == "__main__":
    main()
