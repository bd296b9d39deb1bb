"""Tests for analysis helpers: summaries, benchmarks, sweeps and plots."""

from __future__ import annotations

import pytest

from pasture.analysis.analyze import (
    bench,
    first_extinction,
    format_bench,
    load_history,
    run_once,
    set_path,
    summary_stats,
    sweep,
)
from pasture.analysis.plots import plot_population, plot_sweep
from pasture.src.metrics import append_history

# ── Fixtures ──────────────────────────────────────────────────────


HISTORY = [
    {"tick": 0, "grass": 100, "sheep": 10, "wolves": 4},
    {"tick": 1, "grass": 90, "sheep": 12, "wolves": 4},
    {"tick": 2, "grass": 95, "sheep": 8, "wolves": 5},
    {"tick": 3, "grass": 80, "sheep": 0, "wolves": 5},
]


@pytest.fixture
def data_dir(tmp_path):
    for point in HISTORY:
        append_history(point, tmp_path)
    return tmp_path


@pytest.fixture
def no_wolves_config(test_config):
    test_config["wolf"]["initial_count"] = 0
    return test_config


# ── load_history / summary_stats ──────────────────────────────────


class TestLoadHistory:
    def test_reads_ints(self, data_dir):
        assert load_history(data_dir) == HISTORY

    def test_missing_file(self, tmp_path):
        assert load_history(tmp_path) == []


class TestSummaryStats:
    def test_per_population(self):
        stats = summary_stats(HISTORY)
        assert stats["ticks"] == 3
        assert stats["points"] == 4
        assert stats["grass"] == {"min": 80, "max": 100, "mean": 91.25, "final": 80}
        assert stats["sheep"]["final"] == 0
        assert stats["wolves"]["max"] == 5

    def test_empty_history(self):
        stats = summary_stats([])
        assert stats["ticks"] == 0
        assert stats["sheep"] == {"min": 0, "max": 0, "mean": 0.0, "final": 0}


class TestFirstExtinction:
    def test_found(self):
        assert first_extinction(HISTORY) == (3, "sheep")

    def test_priority_within_a_point(self):
        history = [{"tick": 7, "grass": 0, "sheep": 0, "wolves": 1}]
        assert first_extinction(history) == (7, "grass")

    def test_none(self):
        assert first_extinction(HISTORY[:3]) is None


# ── Bench / sweep ─────────────────────────────────────────────────


class TestBench:
    def test_run_once(self, no_wolves_config):
        outcome = run_once(no_wolves_config, max_ticks=10, seed=1)
        assert outcome["ticks"] == 1
        assert outcome["extinct"] == "wolves"
        assert outcome["population"]["wolves"] == 0
        assert outcome["ms_per_tick"] >= 0

    def test_run_once_hits_cap(self, test_config):
        outcome = run_once(test_config, max_ticks=1, seed=1)
        assert outcome["ticks"] == 1

    def test_bench_aggregates(self, no_wolves_config):
        stats = bench(no_wolves_config, runs=3, max_ticks=10, seed=5)
        assert stats["runs"] == 3
        assert stats["avg"] == 1
        assert stats["median"] == 1
        assert (stats["min"], stats["max"]) == (1, 1)
        assert stats["extinct"] == {"wolves": 3}

    def test_bench_reproducible(self, test_config):
        a = bench(test_config, runs=2, max_ticks=8, seed=11)
        b = bench(test_config, runs=2, max_ticks=8, seed=11)
        assert (a["avg"], a["extinct"]) == (b["avg"], b["extinct"])

    def test_format_bench(self, no_wolves_config):
        text = format_bench(bench(no_wolves_config, runs=1, max_ticks=5, seed=0))
        assert text.startswith("avg=1 med=1 min=1 max=1")
        assert '"wolves": 1' in text


class TestSetPath:
    def test_sets_nested_value(self, test_config):
        result = set_path(test_config, "wolf.hunting_radius", 9)
        assert result["wolf"]["hunting_radius"] == 9

    def test_returns_copy(self, test_config):
        set_path(test_config, "wolf.hunting_radius", 9)
        assert test_config["wolf"]["hunting_radius"] != 9

    def test_unknown_key(self, test_config):
        with pytest.raises(KeyError):
            set_path(test_config, "wolf.bite_force", 3)


class TestSweep:
    def test_sweep_picks_longest_lived(self, test_config):
        result = sweep(test_config, "wolf.initial_count", [0, 2], runs=1, max_ticks=5, seed=3)
        assert result["path"] == "wolf.initial_count"
        assert [r["value"] for r in result["results"]] == [0, 2]
        assert result["results"][0]["extinct"] == {"wolves": 1}
        assert result["best"] == 2


# ── Plots ─────────────────────────────────────────────────────────


class TestPlots:
    def test_plot_population_writes_png(self, data_dir):
        path = plot_population(data_dir)
        assert path == data_dir / "analysis" / "population.png"
        assert path.stat().st_size > 0

    def test_plot_population_custom_path(self, data_dir, tmp_path):
        out = tmp_path / "chart.png"
        assert plot_population(data_dir, out) == out
        assert out.exists()

    def test_plot_sweep(self, tmp_path):
        result = {
            "path": "wolf.hunting_radius",
            "results": [
                {"value": 3, "avg": 100.0, "min": 80, "max": 120},
                {"value": 4, "avg": 140.0, "min": 90, "max": 200},
            ],
            "best": 4,
        }
        out = plot_sweep(result, tmp_path / "sweep.png")
        assert out.exists()
