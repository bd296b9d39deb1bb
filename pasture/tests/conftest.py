"""Shared test fixtures for Pasture simulation tests."""

from __future__ import annotations

import copy
import random
from pathlib import Path

import pytest
import yaml

from pasture.src.engine import Engine
from pasture.src.grid import Grid


# ── Config fixtures ─────────────────────────────────────────────


@pytest.fixture
def default_config():
    """Load the real default.yaml config."""
    config_path = Path(__file__).parent.parent / "config" / "default.yaml"
    with open(config_path) as f:
        return yaml.safe_load(f)


@pytest.fixture
def test_config(default_config):
    """Small config for fast tests: 10x10 grid, a handful of each kind."""
    cfg = copy.deepcopy(default_config)
    cfg["world"] = {"width": 10, "height": 10}
    cfg["grass"].update(initial_count=30)
    cfg["sheep"].update(initial_count=6)
    cfg["wolf"].update(initial_count=2)
    cfg["simulation"].update(seed=42, max_ticks=50, debug_checks=True)
    return cfg


@pytest.fixture
def quiet_config(test_config):
    """Nothing ages out, nothing spreads, nothing starves, nothing is seeded.

    Tests place entities by hand and tweak one knob at a time.
    """
    cfg = copy.deepcopy(test_config)
    for section in ("grass", "sheep", "wolf"):
        cfg[section]["initial_count"] = 0
        cfg[section]["life_expectancy"] = 500
    cfg["grass"]["spread_rate"] = 0
    for section in ("sheep", "wolf"):
        cfg[section]["starvation_time"] = 100
        cfg[section]["breed_threshold"] = 20
    return cfg


# ── Random sources ──────────────────────────────────────────────


class FixedRandom(random.Random):
    """random.Random whose ``random()`` always returns ``value``.

    Everything else (choice, sample, randint) behaves as a seeded generator.
    """

    def __init__(self, value: float, seed: int = 0):
        super().__init__(seed)
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture
def rng():
    return random.Random(42)


# ── Grid / engine fixtures ──────────────────────────────────────


@pytest.fixture
def small_grid(rng):
    """An empty 10x10 grid."""
    return Grid(10, 10, rng=rng)


def hand_placed_engine(config: dict, placements, rng: random.Random | None = None) -> Engine:
    """Initialize an engine (seeding whatever ``config`` asks for), then add
    ``placements``: an iterable of ``(entity, x, y)``.

    Population counts and the tick-0 history point are refreshed so they
    include the hand-placed entities.
    """
    engine = Engine(config, rng=rng or random.Random(0))
    engine.initialize()
    for entity, x, y in placements:
        engine.grid.set(x, y, entity)
    engine._update_population()
    engine._history = []
    engine._record_history()
    return engine
