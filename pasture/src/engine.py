"""Simulation engine: tick orchestration, population tracking, run control."""

from __future__ import annotations

import copy
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .entities import Entity, seed_population, update_entity
from .grid import Grid, Kind

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAP = 500

# Extinction is reported for the first empty population in this order
EXTINCTION_ORDER = ("grass", "sheep", "wolves")


class Phase(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


@dataclass(frozen=True)
class SimulationState:
    """Read-only snapshot of the engine for UI and chart consumers."""
    tick: int
    phase: Phase
    is_running: bool
    population: dict[str, int]
    history: list[dict] = field(default_factory=list)
    extinct_population: str | None = None

    @property
    def has_ended(self) -> bool:
        return self.phase is Phase.ENDED

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "phase": self.phase.value,
            "is_running": self.is_running,
            "population": dict(self.population),
            "extinct_population": self.extinct_population,
        }


class Engine:
    """Runs the ecosystem: one grid, one config, one random source.

    Each ``tick()`` updates grass, then sheep, then wolves, so predators act
    on the post-movement positions of their prey from the same tick. The
    engine owns no clock; callers decide how often to tick, using
    ``config["simulation"]["game_speed"]`` as a hint.
    """

    def __init__(self, config: dict, rng: random.Random | None = None):
        self.config = copy.deepcopy(config)
        self.rng = rng or random.Random(self.config["simulation"].get("seed"))
        world = self.config["world"]
        self.grid = Grid(world["width"], world["height"], rng=self.rng)
        self._tick = 0
        self._phase = Phase.UNINITIALIZED
        self._population = {"grass": 0, "sheep": 0, "wolves": 0}
        self._history: list[dict] = []
        self._extinct: str | None = None

    # ── Lifecycle ───────────────────────────────────────────────

    def initialize(self) -> None:
        """Seed the grid from the config and rewind to tick 0."""
        placed = seed_population(self.grid, self.config)
        self._tick = 0
        self._extinct = None
        self._history = []
        self._phase = Phase.READY
        self._update_population()
        self._record_history()
        logger.info(
            "Initialized %dx%d grid: %d grass, %d sheep, %d wolves",
            self.grid.width, self.grid.height,
            placed["grass"], placed["sheep"], placed["wolf"],
        )

    def reset(self, config: dict | None = None) -> None:
        """Stop, optionally swap in a new config, and reseed."""
        if config is not None:
            self.config = copy.deepcopy(config)
            world = self.config["world"]
            if (world["width"], world["height"]) != (self.grid.width, self.grid.height):
                self.grid = Grid(world["width"], world["height"], rng=self.rng)
        self.initialize()

    def start(self) -> None:
        if self._phase is Phase.ENDED:
            logger.debug("start() ignored: simulation ended (%s extinct)", self._extinct)
            return
        if self._phase is Phase.UNINITIALIZED:
            self.initialize()
        self._phase = Phase.RUNNING

    def pause(self) -> None:
        if self._phase is Phase.RUNNING:
            self._phase = Phase.PAUSED

    def toggle_pause(self) -> None:
        if self._phase is Phase.RUNNING:
            self.pause()
        else:
            self.start()

    def set_game_speed(self, speed: float) -> None:
        self.config["simulation"]["game_speed"] = speed

    def get_config(self) -> dict:
        return copy.deepcopy(self.config)

    # ── Queries ─────────────────────────────────────────────────

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._phase is Phase.RUNNING

    @property
    def has_ended(self) -> bool:
        return self._phase is Phase.ENDED

    @property
    def extinct_population(self) -> str | None:
        return self._extinct

    @property
    def current_tick(self) -> int:
        return self._tick

    @property
    def population_counts(self) -> dict[str, int]:
        return dict(self._population)

    @property
    def history(self) -> list[dict]:
        return [dict(point) for point in self._history]

    @property
    def history_cap(self) -> int:
        return self.config["simulation"].get("history_cap", DEFAULT_HISTORY_CAP)

    @property
    def state(self) -> SimulationState:
        return SimulationState(
            tick=self._tick,
            phase=self._phase,
            is_running=self.is_running,
            population=self.population_counts,
            history=self.history,
            extinct_population=self._extinct,
        )

    # ── Simulation step ─────────────────────────────────────────

    def tick(self) -> None:
        """Advance the simulation by exactly one step."""
        if self._phase is Phase.UNINITIALIZED:
            raise RuntimeError("Engine.tick() called before initialize()")
        if self._phase is Phase.ENDED:
            return

        self._tick += 1
        grid = self.grid

        # Snapshots so births and deaths don't disturb iteration
        all_grass = grid.entities_of_kind(Kind.GRASS)
        all_sheep = grid.entities_of_kind(Kind.SHEEP)
        all_wolves = grid.entities_of_kind(Kind.WOLF)

        # 1. Grass ages, dies, spreads
        new_grass = []
        for grass in all_grass:
            if grid.get(grass.x, grass.y) is not grass:
                continue
            result = update_entity(grass, grid, self.config)
            if not result.alive:
                grid.clear(grass.x, grass.y)
            elif result.spawn:
                new_grass.append(result.spawn)
        self._commit_spawns(new_grass)

        # 2. Sheep graze, wander, breed
        new_sheep = []
        for sheep in all_sheep:
            # Eaten or replaced since the snapshot
            if grid.get(sheep.x, sheep.y) is not sheep:
                continue
            old_x, old_y = sheep.x, sheep.y
            result = update_entity(sheep, grid, self.config)
            if not result.alive or (sheep.x, sheep.y) != (old_x, old_y):
                grid.clear(old_x, old_y)
            if not result.alive:
                continue
            if grid.get_type(sheep.x, sheep.y) != Kind.WOLF:
                grid.set(sheep.x, sheep.y, sheep)
            if result.spawn:
                new_sheep.append(result.spawn)
        self._commit_spawns(new_sheep)

        # 3. Wolves hunt, wander, breed
        new_wolves = []
        for wolf in all_wolves:
            if grid.get(wolf.x, wolf.y) is not wolf:
                continue
            old_x, old_y = wolf.x, wolf.y
            result = update_entity(wolf, grid, self.config)
            if not result.alive or (wolf.x, wolf.y) != (old_x, old_y):
                grid.clear(old_x, old_y)
            if not result.alive:
                continue
            grid.set(wolf.x, wolf.y, wolf)
            if result.spawn:
                new_wolves.append(result.spawn)
        self._commit_spawns(new_wolves)

        if self.config["simulation"].get("debug_checks", False):
            grid.check_invariants()

        self._update_population()
        self._check_extinction()
        self._record_history()
        logger.debug(
            "Tick %d: %d grass, %d sheep, %d wolves", self._tick,
            self._population["grass"], self._population["sheep"], self._population["wolves"],
        )

    def run(
        self,
        max_ticks: int | None = None,
        on_tick: Callable[[Engine], None] | None = None,
    ) -> int:
        """Tick until extinction or ``max_ticks``; return the number of ticks run.

        ``max_ticks`` defaults to ``config["simulation"]["max_ticks"]``; when
        both are None the loop only stops on extinction.
        """
        if self._phase is Phase.UNINITIALIZED:
            self.initialize()
        if max_ticks is None:
            max_ticks = self.config["simulation"].get("max_ticks")

        self.start()
        ran = 0
        while not self.has_ended and (max_ticks is None or ran < max_ticks):
            self.tick()
            ran += 1
            if on_tick:
                on_tick(self)
        self.pause()

        logger.info(
            "Run finished after %d ticks (tick %d): %s",
            ran, self._tick,
            f"{self._extinct} extinct" if self._extinct else "all populations alive",
        )
        return ran

    # ── Private helpers ─────────────────────────────────────────

    def _commit_spawns(self, spawns: list[Entity]) -> None:
        """Place newborns on cells that are still empty; drop the rest."""
        for entity in spawns:
            if self.grid.get_type(entity.x, entity.y) == Kind.EMPTY:
                self.grid.set(entity.x, entity.y, entity)

    def _update_population(self) -> None:
        self._population = self.grid.counts()

    def _check_extinction(self) -> None:
        for name in EXTINCTION_ORDER:
            if self._population[name] == 0:
                self._extinct = name
                self._phase = Phase.ENDED
                logger.info("Extinction at tick %d: %s died out", self._tick, name)
                return

    def _record_history(self) -> None:
        self._history.append({"tick": self._tick, **self._population})
        overflow = len(self._history) - self.history_cap
        if overflow > 0:
            del self._history[:overflow]
