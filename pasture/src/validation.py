"""Config range checks and clamping, applied before a config reaches the engine."""

from __future__ import annotations

import copy
import logging

logger = logging.getLogger(__name__)

# (min, max) per section and key
CONFIG_RANGES: dict[str, dict[str, tuple[float, float]]] = {
    "world": {
        "width": (1, 1024),
        "height": (1, 1024),
    },
    "grass": {
        "life_expectancy": (1, 500),
        "initial_count": (0, 50000),
        "spread_rate": (1, 100),
        "spread_radius": (1, 20),
    },
    "sheep": {
        "life_expectancy": (1, 500),
        "initial_count": (0, 5000),
        "starvation_time": (1, 100),
        "breed_threshold": (1, 20),
        "grazing_radius": (1, 20),
    },
    "wolf": {
        "life_expectancy": (1, 500),
        "initial_count": (0, 1000),
        "starvation_time": (1, 100),
        "breed_threshold": (1, 10),
        "hunting_radius": (1, 20),
    },
    "simulation": {
        "game_speed": (1, 60),
        "history_cap": (1, 100000),
    },
}

# Keys that must be whole numbers
INTEGER_KEYS = {
    "width", "height", "initial_count", "starvation_time", "breed_threshold",
    "spread_radius", "grazing_radius", "hunting_radius", "history_cap",
}


class ConfigError(ValueError):
    """Raised when a config fails validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid config: " + "; ".join(self.errors))


def _label(section: str, key: str) -> str:
    return f"{section}.{key}"


def validate_range(value, low: float, high: float, name: str) -> str | None:
    """Return an error message for ``value``, or None when it is in range."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return f"{name} must be a number"
    if value != value:  # NaN
        return f"{name} must be a number"
    if value < low:
        return f"{name} must be at least {low}"
    if value > high:
        return f"{name} must be at most {high}"
    return None


def validate_config(config: dict) -> list[str]:
    """Check every ranged key; return a list of human-readable errors."""
    errors: list[str] = []
    for section, ranges in CONFIG_RANGES.items():
        values = config.get(section)
        if not isinstance(values, dict):
            errors.append(f"missing section '{section}'")
            continue
        for key, (low, high) in ranges.items():
            name = _label(section, key)
            if key not in values:
                errors.append(f"{name} is required")
                continue
            error = validate_range(values[key], low, high, name)
            if error is None and key in INTEGER_KEYS and values[key] != int(values[key]):
                error = f"{name} must be a whole number"
            if error:
                errors.append(error)

    world = config.get("world", {})
    if isinstance(world, dict) and not errors:
        cells = world["width"] * world["height"]
        requested = sum(
            config[s]["initial_count"] for s in ("grass", "sheep", "wolf")
        )
        if requested > cells:
            logger.warning(
                "Initial populations (%d) exceed grid capacity (%d); seeding will stop when full",
                requested, cells,
            )
    return errors


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def sanitize_config(config: dict) -> dict:
    """Return a copy of ``config`` with every ranged value clamped into range.

    Missing or non-numeric values are left alone; ``validate_config`` reports
    those.
    """
    result = copy.deepcopy(config)
    for section, ranges in CONFIG_RANGES.items():
        values = result.get(section)
        if not isinstance(values, dict):
            continue
        for key, (low, high) in ranges.items():
            value = values.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            clamped = clamp(value, low, high)
            if key in INTEGER_KEYS:
                clamped = int(round(clamped))
            values[key] = clamped
    return result


def ensure_valid(config: dict) -> dict:
    """Raise ``ConfigError`` if ``config`` has any errors, else return it."""
    errors = validate_config(config)
    if errors:
        raise ConfigError(errors)
    return config
