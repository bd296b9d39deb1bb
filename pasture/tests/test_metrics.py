"""Tests for pasture.src.metrics: population history CSV export."""

from __future__ import annotations

import csv
from pathlib import Path

from pasture.src.metrics import HISTORY_FIELDS, append_history, history_path


def read_rows(data_dir: Path) -> list[dict]:
    with open(history_path(data_dir), newline="") as f:
        return list(csv.DictReader(f))


class TestAppendHistory:
    def test_creates_file_with_header(self, tmp_path):
        append_history({"tick": 0, "grass": 10, "sheep": 2, "wolves": 1}, tmp_path)
        with open(history_path(tmp_path)) as f:
            header = f.readline().strip()
        assert header == ",".join(HISTORY_FIELDS)

    def test_header_written_once(self, tmp_path):
        for tick in range(3):
            append_history({"tick": tick, "grass": 5, "sheep": 1, "wolves": 1}, tmp_path)
        text = history_path(tmp_path).read_text()
        assert text.count("tick,grass") == 1
        assert [row["tick"] for row in read_rows(tmp_path)] == ["0", "1", "2"]

    def test_extra_keys_ignored(self, tmp_path):
        append_history({"tick": 1, "grass": 1, "sheep": 1, "wolves": 1, "phase": "x"}, tmp_path)
        assert list(read_rows(tmp_path)[0].keys()) == HISTORY_FIELDS

    def test_path_under_analysis(self, tmp_path):
        assert history_path(tmp_path) == tmp_path / "analysis" / "population.csv"


class TestEngineExport:
    def test_engine_history_round_trip(self, tmp_path, test_config):
        from pasture.analysis.analyze import load_history
        from pasture.src.engine import Engine

        engine = Engine(test_config)
        engine.run(max_ticks=5)
        for point in engine.history:
            append_history(point, tmp_path)
        assert load_history(tmp_path) == engine.history
