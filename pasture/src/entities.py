"""Entity records, factories, per-kind update rules and population seeding."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import ClassVar, Union

from .grid import Grid, Kind, Position

logger = logging.getLogger(__name__)

# Old-age death window, as fractions of life expectancy
OLD_AGE_ONSET = 0.8
OLD_AGE_CERTAIN = 1.2


@dataclass(eq=False)
class Grass:
    """A stationary grass tuft. Food for sheep."""
    x: int
    y: int
    age: int = 0

    kind: ClassVar[Kind] = Kind.GRASS


@dataclass(eq=False)
class Animal:
    """Shared state for sheep and wolves."""
    x: int
    y: int
    age: int = 0
    food_eaten: int = 0             # meals since last breeding
    ticks_since_last_meal: int = 0

    kind: ClassVar[Kind]


@dataclass(eq=False)
class Sheep(Animal):
    kind: ClassVar[Kind] = Kind.SHEEP


@dataclass(eq=False)
class Wolf(Animal):
    kind: ClassVar[Kind] = Kind.WOLF


Entity = Union[Grass, Sheep, Wolf]


@dataclass
class GrassUpdate:
    alive: bool
    spawn: Grass | None = None


@dataclass
class SheepUpdate:
    alive: bool
    spawn: Sheep | None = None
    ate_grass_at: Position | None = None


@dataclass
class WolfUpdate:
    alive: bool
    spawn: Wolf | None = None
    ate_sheep_at: Position | None = None


# ── Factories ───────────────────────────────────────────────────


def create_grass(x: int, y: int) -> Grass:
    return Grass(x=x, y=y)


def create_sheep(x: int, y: int) -> Sheep:
    return Sheep(x=x, y=y)


def create_wolf(x: int, y: int) -> Wolf:
    return Wolf(x=x, y=y)


FACTORIES = {
    Kind.GRASS: create_grass,
    Kind.SHEEP: create_sheep,
    Kind.WOLF: create_wolf,
}


# ── Aging ───────────────────────────────────────────────────────


def death_chance(age: int, life_expectancy: float) -> float:
    """Probability of dying of old age at ``age``.

    Zero below 80% of life expectancy, certain from 120%, linear in between.
    """
    onset = life_expectancy * OLD_AGE_ONSET
    if age < onset:
        return 0.0
    certain = life_expectancy * OLD_AGE_CERTAIN
    if age >= certain:
        return 1.0
    return (age - onset) / (certain - onset)


def dies_of_old_age(age: int, life_expectancy: float, rng: random.Random) -> bool:
    chance = death_chance(age, life_expectancy)
    if chance <= 0.0:
        return False
    if chance >= 1.0:
        return True
    return rng.random() < chance


# ── Grass ───────────────────────────────────────────────────────


def update_grass(grass: Grass, grid: Grid, config: dict) -> GrassUpdate:
    """Age one grass tuft and maybe spread it to an empty cell nearby."""
    cfg = config["grass"]
    rng = grid.rng

    grass.age += 1
    if dies_of_old_age(grass.age, cfg["life_expectancy"], rng):
        return GrassUpdate(alive=False)

    spawn = None
    if rng.random() * 100 < cfg["spread_rate"]:
        cell = grid.random_empty_in_radius(grass.x, grass.y, cfg.get("spread_radius", 1))
        if cell:
            spawn = create_grass(*cell)

    return GrassUpdate(alive=True, spawn=spawn)


# ── Sheep ───────────────────────────────────────────────────────


def update_sheep(sheep: Sheep, grid: Grid, config: dict) -> SheepUpdate:
    """Advance one sheep by a tick.

    Priority: eat adjacent grass, else step toward the closest grass within
    ``grazing_radius``, else wander to a random empty neighbor. Eating may
    trigger breeding.
    """
    cfg = config["sheep"]
    rng = grid.rng

    if not _age_and_survive(sheep, cfg, rng):
        return SheepUpdate(alive=False)

    old = (sheep.x, sheep.y)
    neighbors = grid.neighbor_positions(sheep.x, sheep.y)
    grass_cells = [p for p in neighbors if grid.get_type(*p) == Kind.GRASS]

    if grass_cells:
        target = rng.choice(grass_cells)
        _move(sheep, target)
        return SheepUpdate(
            alive=True,
            spawn=_eat(sheep, old, grid, cfg, create_sheep),
            ate_grass_at=target,
        )

    closest = grid.find_closest_in_radius(
        sheep.x, sheep.y, cfg.get("grazing_radius", 1), Kind.GRASS
    )
    if closest:
        grass, _ = closest
        step = _step_toward(sheep, grass)
        step_kind = grid.get_type(*step) if grid.is_valid_position(*step) else None
        if step_kind == Kind.GRASS:
            _move(sheep, step)
            return SheepUpdate(
                alive=True,
                spawn=_eat(sheep, old, grid, cfg, create_sheep),
                ate_grass_at=step,
            )
        if step_kind == Kind.EMPTY:
            _move(sheep, step)
        return SheepUpdate(alive=True)

    empty = [p for p in neighbors if grid.get_type(*p) == Kind.EMPTY]
    if empty:
        _move(sheep, rng.choice(empty))
    return SheepUpdate(alive=True)


# ── Wolf ────────────────────────────────────────────────────────


def update_wolf(wolf: Wolf, grid: Grid, config: dict) -> WolfUpdate:
    """Advance one wolf by a tick.

    Hunts the closest sheep within ``hunting_radius``, one step at a time.
    Wolves walk over grass (trampling it) and are blocked only by other
    wolves and the grid edge. With no sheep in range a wolf wanders onto any
    non-wolf neighbor, eating a sheep if it happens to land on one.
    """
    cfg = config["wolf"]
    rng = grid.rng

    if not _age_and_survive(wolf, cfg, rng):
        return WolfUpdate(alive=False)

    old = (wolf.x, wolf.y)
    closest = grid.find_closest_in_radius(
        wolf.x, wolf.y, cfg.get("hunting_radius", 1), Kind.SHEEP
    )

    if closest:
        prey, _ = closest
        target = _step_toward(wolf, prey)
        if not grid.is_valid_position(*target):
            return WolfUpdate(alive=True)
        target_kind = grid.get_type(*target)
    else:
        choices = [
            p for p in grid.neighbor_positions(wolf.x, wolf.y)
            if grid.get_type(*p) != Kind.WOLF
        ]
        if not choices:
            return WolfUpdate(alive=True)
        target = rng.choice(choices)
        target_kind = grid.get_type(*target)

    if target_kind == Kind.SHEEP:
        _move(wolf, target)
        return WolfUpdate(
            alive=True,
            spawn=_eat(wolf, old, grid, cfg, create_wolf),
            ate_sheep_at=target,
        )
    if target_kind in (Kind.EMPTY, Kind.GRASS):
        _move(wolf, target)
    return WolfUpdate(alive=True)


UPDATERS = {
    Kind.GRASS: update_grass,
    Kind.SHEEP: update_sheep,
    Kind.WOLF: update_wolf,
}


def update_entity(entity: Entity, grid: Grid, config: dict):
    """Dispatch to the update rule for the entity's kind."""
    try:
        updater = UPDATERS[entity.kind]
    except KeyError:
        raise TypeError(f"No update rule for {entity!r}") from None
    return updater(entity, grid, config)


# ── Seeding ─────────────────────────────────────────────────────


def seed_population(grid: Grid, config: dict) -> dict[str, int]:
    """Clear the grid and scatter the initial populations.

    Grass first, then sheep, then wolves, each on distinct uniformly random
    empty cells. When the grid fills up the remaining placements are
    skipped. Returns how many of each kind were placed.
    """
    grid.reset()
    placed = {}
    for section, kind in (("grass", Kind.GRASS), ("sheep", Kind.SHEEP), ("wolf", Kind.WOLF)):
        wanted = int(config[section].get("initial_count", 0))
        empty = grid.empty_positions()
        count = min(wanted, len(empty))
        if count < wanted:
            logger.debug(
                "Grid saturated: placed %d of %d %s", count, wanted, section
            )
        factory = FACTORIES[kind]
        for x, y in grid.rng.sample(empty, count):
            grid.set(x, y, factory(x, y))
        placed[section] = count
    return placed


# ── Private helpers ─────────────────────────────────────────────


def _sign(value: int) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _step_toward(mover: Animal, target: Entity) -> Position:
    return (
        mover.x + _sign(target.x - mover.x),
        mover.y + _sign(target.y - mover.y),
    )


def _move(animal: Animal, position: Position) -> None:
    animal.x, animal.y = position


def _age_and_survive(animal: Animal, cfg: dict, rng: random.Random) -> bool:
    """Age and hunger tick; False when the animal dies this tick.

    Starvation is judged on the hunger carried into the tick, so an animal
    that has gone ``starvation_time - 1`` ticks without food still survives.
    """
    # Checked before the increment below, not after: one tick later than a
    # check on the incremented counter would fire.
    starving = animal.ticks_since_last_meal >= cfg["starvation_time"]
    animal.age += 1
    animal.ticks_since_last_meal += 1
    if dies_of_old_age(animal.age, cfg["life_expectancy"], rng):
        return False
    return not starving


def _eat(animal: Animal, old: Position, grid: Grid, cfg: dict, factory) -> Animal | None:
    """Register a meal; return a newborn when the breed threshold is reached.

    The newborn goes to the cell the parent just left if nothing else is
    there, otherwise to a random empty neighbor of the parent's new cell.
    """
    animal.food_eaten += 1
    animal.ticks_since_last_meal = 0

    if animal.food_eaten < cfg["breed_threshold"]:
        return None
    animal.food_eaten = 0

    occupant = grid.get(*old)
    if occupant is None or occupant is animal:
        spot = old
    else:
        spot = grid.random_empty_neighbor(animal.x, animal.y)
    if spot is None:
        return None
    return factory(*spot)
