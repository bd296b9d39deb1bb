"""Population history export: one CSV row per recorded tick."""

from __future__ import annotations

import csv
from pathlib import Path

HISTORY_FIELDS = ["tick", "grass", "sheep", "wolves"]


def history_path(data_dir: Path) -> Path:
    return data_dir / "analysis" / "population.csv"


def append_history(point: dict, data_dir: Path) -> None:
    """Append a single ``{tick, grass, sheep, wolves}`` point to the run's CSV."""
    csv_path = history_path(data_dir)
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    write_header = not csv_path.exists()

    with open(csv_path, "a", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=HISTORY_FIELDS, extrasaction="ignore")
        if write_header:
            writer.writeheader()
        writer.writerow(point)

