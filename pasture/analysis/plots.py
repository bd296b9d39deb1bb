"""Matplotlib charts for population history."""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd

# Line colors match the live viewer's palette
COLORS = {
    "grass": "#4ade80",
    "sheep": "#d6c98a",
    "wolves": "#4b5563",
}


def plot_population(data_dir: Path, output_path: Path | None = None) -> Path:
    """Plot grass, sheep and wolf counts over time for one run.

    Sheep and wolves share the left axis; grass usually outnumbers both by an
    order of magnitude, so it gets its own axis on the right.
    """
    df = pd.read_csv(data_dir / "analysis" / "population.csv")

    fig, ax = plt.subplots(figsize=(12, 6))
    ax.plot(df["tick"], df["sheep"], color=COLORS["sheep"], label="Sheep")
    ax.plot(df["tick"], df["wolves"], color=COLORS["wolves"], label="Wolves")
    ax.set_xlabel("Tick")
    ax.set_ylabel("Animals")
    ax.grid(True, alpha=0.3)

    grass_ax = ax.twinx()
    grass_ax.plot(df["tick"], df["grass"], color=COLORS["grass"], alpha=0.7, label="Grass")
    grass_ax.set_ylabel("Grass")

    lines = ax.get_lines() + grass_ax.get_lines()
    ax.legend(lines, [line.get_label() for line in lines], loc="upper right")
    ax.set_title("Population History")

    output_path = output_path or data_dir / "analysis" / "population.png"
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return output_path


def plot_sweep(sweep_result: dict, output_path: Path) -> Path:
    """Mean ticks survived per swept value, with min/max whiskers."""
    df = pd.DataFrame(sweep_result["results"])

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.errorbar(
        df["value"].astype(str),
        df["avg"],
        yerr=[df["avg"] - df["min"], df["max"] - df["avg"]],
        fmt="o-",
        capsize=4,
    )
    ax.set_xlabel(sweep_result["path"])
    ax.set_ylabel("Ticks until extinction")
    ax.set_title(f"Sweep: {sweep_result['path']}")
    ax.grid(True, alpha=0.3)

    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return output_path
