"""Population analysis: history summaries, repeated-run benchmarks, parameter sweeps.

CLI usage:
    python -m pasture.analysis.analyze data/run_xxx/
"""

from __future__ import annotations

import copy
import csv
import json
import logging
import random
import sys
import time
from collections import Counter
from pathlib import Path

from pasture.src.engine import Engine

logger = logging.getLogger(__name__)

POPULATIONS = ("grass", "sheep", "wolves")


# ── Data loading ─────────────────────────────────────────────────


def load_history(data_dir: Path) -> list[dict]:
    """Load ``analysis/population.csv`` as a list of int-valued dicts."""
    csv_path = data_dir / "analysis" / "population.csv"
    if not csv_path.exists():
        return []

    rows: list[dict] = []
    with open(csv_path, newline="") as f:
        for row in csv.DictReader(f):
            rows.append({key: int(value) for key, value in row.items()})
    return rows


# ── Summary statistics ───────────────────────────────────────────


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _median(values: list[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def summary_stats(history: list[dict]) -> dict:
    """Per-population min/max/mean and final value over a history.

    Returns::

        {
            "ticks": int,          # last tick recorded
            "points": int,
            "grass": {"min": .., "max": .., "mean": .., "final": ..},
            "sheep": {...},
            "wolves": {...},
        }
    """
    result: dict = {
        "ticks": history[-1]["tick"] if history else 0,
        "points": len(history),
    }
    for name in POPULATIONS:
        values = [point[name] for point in history]
        result[name] = {
            "min": min(values) if values else 0,
            "max": max(values) if values else 0,
            "mean": _mean(values),
            "final": values[-1] if values else 0,
        }
    return result


def first_extinction(history: list[dict]) -> tuple[int, str] | None:
    """First ``(tick, population)`` at which a population hit zero."""
    for point in history:
        for name in POPULATIONS:
            if point[name] == 0:
                return point["tick"], name
    return None


# ── Benchmarks and sweeps ────────────────────────────────────────


def run_once(config: dict, max_ticks: int, seed: int | None = None) -> dict:
    """Run one headless simulation and report how it ended."""
    engine = Engine(config, rng=random.Random(seed))
    engine.initialize()
    t0 = time.monotonic()
    engine.run(max_ticks=max_ticks)
    elapsed_ms = (time.monotonic() - t0) * 1000
    return {
        "ticks": engine.current_tick,
        "extinct": engine.extinct_population,
        "population": engine.population_counts,
        "ms_per_tick": elapsed_ms / max(engine.current_tick, 1),
    }


def bench(config: dict, runs: int, max_ticks: int, seed: int | None = None) -> dict:
    """Repeat ``run_once`` and summarize run length and extinction causes.

    With a seed, run *i* uses ``seed + i`` so the whole bench is reproducible.
    """
    ticks: list[int] = []
    causes: Counter = Counter()
    speeds: list[float] = []
    for i in range(runs):
        run_seed = None if seed is None else seed + i
        outcome = run_once(config, max_ticks, run_seed)
        ticks.append(outcome["ticks"])
        causes[outcome["extinct"] or "survived"] += 1
        speeds.append(outcome["ms_per_tick"])
        logger.debug("Bench run %d/%d: %s", i + 1, runs, outcome)

    return {
        "runs": runs,
        "avg": _mean(ticks),
        "median": _median(ticks),
        "min": min(ticks) if ticks else 0,
        "max": max(ticks) if ticks else 0,
        "extinct": dict(causes),
        "ms_per_tick": _mean(speeds),
    }


def set_path(config: dict, path: str, value) -> dict:
    """Return a copy of ``config`` with dotted ``path`` (e.g. ``wolf.hunting_radius``) set."""
    result = copy.deepcopy(config)
    keys = path.split(".")
    node = result
    for key in keys[:-1]:
        node = node[key]
    if keys[-1] not in node:
        raise KeyError(f"Unknown config key: {path}")
    node[keys[-1]] = value
    return result


def sweep(
    config: dict,
    path: str,
    values: list,
    runs: int = 3,
    max_ticks: int = 3000,
    seed: int | None = None,
) -> dict:
    """Bench each value of one parameter; report results and the longest-lived value."""
    results = []
    for value in values:
        stats = bench(set_path(config, path, value), runs, max_ticks, seed)
        logger.info(
            "%s=%s: avg=%.0f med=%d min=%d max=%d ext=%s",
            path, value, stats["avg"], stats["median"], stats["min"], stats["max"],
            stats["extinct"],
        )
        results.append({"value": value, **stats})

    best = max(results, key=lambda r: r["avg"]) if results else None
    return {
        "path": path,
        "results": results,
        "best": best["value"] if best else None,
    }


def format_bench(stats: dict) -> str:
    return (
        f"avg={stats['avg']:.0f} med={stats['median']} min={stats['min']} "
        f"max={stats['max']} ext={json.dumps(stats['extinct'])} "
        f"({stats['ms_per_tick']:.2f} ms/tick)"
    )


# ── CLI ──────────────────────────────────────────────────────────


def main() -> None:
    if len(sys.argv) < 2:
        print(f"Usage: {sys.argv[0]} <data_dir>", file=sys.stderr)
        sys.exit(1)

    data_dir = Path(sys.argv[1])
    history = load_history(data_dir)
    if not history:
        print(f"No population history found in {data_dir}")
        sys.exit(1)

    stats = summary_stats(history)
    print(f"Ticks: {stats['ticks']}  ({stats['points']} points)")
    for name in POPULATIONS:
        s = stats[name]
        print(
            f"  {name:<7} min={s['min']:>6} max={s['max']:>6} "
            f"mean={s['mean']:>9.1f} final={s['final']:>6}"
        )
    extinction = first_extinction(history)
    if extinction:
        print(f"  {extinction[1]} went extinct at tick {extinction[0]}")


if __name__ == "__main__":
    main()
