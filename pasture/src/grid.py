"""Spatial grid: dense kind array plus sparse entity records, bounded edges."""

from __future__ import annotations

import random
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .entities import Entity

Position = tuple[int, int]


class Kind(IntEnum):
    """What occupies a cell. Values are the bytes stored in the type grid."""
    EMPTY = 0
    GRASS = 1
    SHEEP = 2
    WOLF = 3


# Fixed neighbor order: NW, N, NE, W, E, SW, S, SE
DIRECTIONS: list[Position] = [
    (-1, -1), (0, -1), (1, -1),
    (-1, 0),           (1, 0),
    (-1, 1),  (0, 1),  (1, 1),
]

# N, W, E, S
CARDINAL_DIRECTIONS: list[Position] = [(0, -1), (-1, 0), (1, 0), (0, 1)]

POPULATION_KEYS = {
    Kind.GRASS: "grass",
    Kind.SHEEP: "sheep",
    Kind.WOLF: "wolves",
}


class Grid:
    """Fixed-size 2D grid holding at most one entity per cell.

    Two stores are kept in lockstep:

    - ``_types``: a ``bytearray`` of ``Kind`` values, row-major
      (``y * width + x``), for O(1) occupancy tests and full-grid scans.
    - ``_entities``: a dict from ``(x, y)`` to the entity record, holding
      entries for occupied cells only.

    Out-of-bounds reads answer EMPTY / None and out-of-bounds writes are
    ignored, so behavior code never has to guard neighbor arithmetic.
    """

    def __init__(self, width: int = 255, height: int = 255, rng: random.Random | None = None):
        self.width = width
        self.height = height
        self.rng = rng or random.Random()
        self._types = bytearray(width * height)
        self._entities: dict[Position, Entity] = {}

    # ── Core operations ─────────────────────────────────────────

    def is_valid_position(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_type(self, x: int, y: int) -> Kind:
        if not self.is_valid_position(x, y):
            return Kind.EMPTY
        return Kind(self._types[y * self.width + x])

    def get(self, x: int, y: int) -> Entity | None:
        if not self.is_valid_position(x, y):
            return None
        return self._entities.get((x, y))

    def set(self, x: int, y: int, entity: Entity | None) -> None:
        """Place ``entity`` at (x, y), or clear the cell when ``entity`` is None.

        The entity's own coordinates are updated to match the cell.
        """
        if not self.is_valid_position(x, y):
            return
        index = y * self.width + x
        if entity is None:
            self._types[index] = Kind.EMPTY
            self._entities.pop((x, y), None)
            return
        entity.x = x
        entity.y = y
        self._types[index] = entity.kind
        self._entities[(x, y)] = entity

    def clear(self, x: int, y: int) -> None:
        self.set(x, y, None)

    def reset(self) -> None:
        """Empty every cell."""
        self._types = bytearray(self.width * self.height)
        self._entities.clear()

    # ── Neighbor & radius queries ───────────────────────────────

    def neighbor_positions(self, x: int, y: int, diagonals: bool = True) -> list[Position]:
        """In-bounds neighbors of (x, y) in fixed direction order."""
        directions = DIRECTIONS if diagonals else CARDINAL_DIRECTIONS
        return [
            (x + dx, y + dy)
            for dx, dy in directions
            if self.is_valid_position(x + dx, y + dy)
        ]

    def empty_neighbors(self, x: int, y: int, diagonals: bool = True) -> list[Position]:
        return [
            (nx, ny)
            for nx, ny in self.neighbor_positions(x, y, diagonals)
            if self._types[ny * self.width + nx] == Kind.EMPTY
        ]

    def find_in_radius(self, x: int, y: int, radius: int, kind: Kind) -> list[Entity]:
        """All entities of ``kind`` within Manhattan distance ``radius`` of (x, y).

        The center cell is excluded. Results come back in scan order:
        rows from ``y - radius`` downwards, columns left to right.
        """
        found = []
        for _, _, entity in self._scan(x, y, radius, kind):
            found.append(entity)
        return found

    def find_closest_in_radius(
        self, x: int, y: int, radius: int, kind: Kind
    ) -> tuple[Entity, int] | None:
        """Closest entity of ``kind`` within ``radius``, as ``(entity, distance)``.

        Uses the same scan order as ``find_in_radius``; on equal distance the
        cell reached first wins.
        """
        closest: tuple[Entity, int] | None = None
        for _, distance, entity in self._scan(x, y, radius, kind):
            if closest is None or distance < closest[1]:
                closest = (entity, distance)
                if distance == 1:
                    break
        return closest

    # ── Random placement helpers ────────────────────────────────

    def random_empty_position(self, max_attempts: int = 100) -> Position | None:
        """Rejection-sample an empty cell anywhere on the grid."""
        for _ in range(max_attempts):
            x = self.rng.randrange(self.width)
            y = self.rng.randrange(self.height)
            if self._types[y * self.width + x] == Kind.EMPTY:
                return x, y
        return None

    def random_empty_neighbor(self, x: int, y: int) -> Position | None:
        empty = self.empty_neighbors(x, y)
        if not empty:
            return None
        return self.rng.choice(empty)

    def random_empty_in_radius(self, cx: int, cy: int, radius: int) -> Position | None:
        """Sample an empty cell within Manhattan distance ``radius`` of (cx, cy).

        Radius 0 or 1 falls back to the 8-neighborhood. Larger radii draw
        ``2 * radius**2`` points from the diamond and return the first empty
        one, or None when every draw misses.
        """
        if radius <= 1:
            return self.random_empty_neighbor(cx, cy)

        for _ in range(radius * radius * 2):
            dx = self.rng.randint(-radius, radius)
            max_dy = radius - abs(dx)
            dy = self.rng.randint(-max_dy, max_dy)
            if dx == 0 and dy == 0:
                continue
            nx, ny = cx + dx, cy + dy
            if self.is_valid_position(nx, ny) and self._types[ny * self.width + nx] == Kind.EMPTY:
                return nx, ny
        return None

    def empty_positions(self) -> list[Position]:
        """Every empty cell, row-major."""
        width = self.width
        return [
            (i % width, i // width)
            for i, value in enumerate(self._types)
            if value == Kind.EMPTY
        ]

    # ── Iteration & statistics ──────────────────────────────────

    def entities_of_kind(self, kind: Kind) -> list[Entity]:
        return [e for e in self._entities.values() if e.kind == kind]

    def all_entities(self) -> list[Entity]:
        return list(self._entities.values())

    def counts(self) -> dict[str, int]:
        """Population per kind from a full scan of the type grid."""
        return {
            name: self._types.count(int(kind))
            for kind, name in POPULATION_KEYS.items()
        }

    @property
    def type_grid(self) -> bytes:
        """Immutable copy of the dense kind array, for renderers."""
        return bytes(self._types)

    def check_invariants(self) -> None:
        """Assert that the type array and the record map agree cell for cell."""
        occupied = 0
        for index, value in enumerate(self._types):
            x, y = index % self.width, index // self.width
            entity = self._entities.get((x, y))
            if value == Kind.EMPTY:
                assert entity is None, f"record without type at ({x},{y})"
                continue
            occupied += 1
            assert entity is not None, f"type {Kind(value).name} without record at ({x},{y})"
            assert entity.kind == value, (
                f"type {Kind(value).name} disagrees with record {entity.kind.name} at ({x},{y})"
            )
            assert (entity.x, entity.y) == (x, y), (
                f"record at ({x},{y}) thinks it is at ({entity.x},{entity.y})"
            )
            assert entity.age >= 0, f"negative age at ({x},{y})"
        assert occupied == len(self._entities), "stray records outside the grid"

    # ── Private ─────────────────────────────────────────────────

    def _scan(self, x: int, y: int, radius: int, kind: Kind):
        """Yield ``(position, distance, entity)`` for matching cells in scan order."""
        width = self.width
        types = self._types
        for dy in range(-radius, radius + 1):
            ny = y + dy
            if ny < 0 or ny >= self.height:
                continue
            span = radius - abs(dy)
            for dx in range(-span, span + 1):
                nx = x + dx
                if nx < 0 or nx >= width or (dx == 0 and dy == 0):
                    continue
                if types[ny * width + nx] == kind:
                    yield (nx, ny), abs(dx) + abs(dy), self._entities[(nx, ny)]
