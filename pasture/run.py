"""CLI entrypoint for the Pasture ecosystem simulation."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

import yaml

from pasture.src.engine import Engine
from pasture.src.metrics import append_history
from pasture.src.validation import ConfigError, ensure_valid, sanitize_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent / "config"
DEFAULT_CONFIG = CONFIG_DIR / "default.yaml"
PRESETS_DIR = CONFIG_DIR / "presets"


def load_config(config_path: Path, strict: bool = False) -> dict:
    """Load YAML config with inheritance support.

    With ``strict`` the resolved config is range-checked and ``ConfigError``
    is raised on any problem.
    """
    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    # Handle inherits
    if "inherits" in config:
        base_name = config.pop("inherits")
        base_path = config_path.parent.parent / f"{base_name}.yaml"
        base = load_config(base_path)
        config = _deep_merge(base, config)

    if strict:
        ensure_valid(config)
    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def list_presets() -> list[str]:
    return sorted(p.stem for p in PRESETS_DIR.glob("*.yaml"))


def preset_path(name: str) -> Path:
    path = PRESETS_DIR / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(
            f"Unknown preset '{name}' (available: {', '.join(list_presets())})"
        )
    return path


def apply_overrides(config: dict, args: argparse.Namespace) -> dict:
    """Apply CLI overrides in place and return the config."""
    if args.seed is not None:
        config["simulation"]["seed"] = args.seed
    if args.ticks:
        config["simulation"]["max_ticks"] = args.ticks
    if args.width:
        config["world"]["width"] = args.width
    if args.height:
        config["world"]["height"] = args.height
    if args.debug_checks:
        config["simulation"]["debug_checks"] = True
    return config


def resolve_config(args: argparse.Namespace) -> dict:
    if args.preset:
        path = preset_path(args.preset)
    else:
        path = args.config or DEFAULT_CONFIG
    config = apply_overrides(load_config(path), args)
    return ensure_valid(config)


def preset_config_for_viewer(preset: str | None, args: argparse.Namespace) -> dict | None:
    """Config for a preset picked in the live viewer, or None to keep the current one.

    Out-of-range values are clamped rather than rejected. Unknown presets and
    configs with missing keys are logged and ignored.
    """
    if not preset:
        return None
    try:
        config = sanitize_config(apply_overrides(load_config(preset_path(preset)), args))
        return ensure_valid(config)
    except (FileNotFoundError, ConfigError) as e:
        logger.warning("Reset with preset %r rejected: %s", preset, e)
        return None


def parse_sweep(arg: str) -> tuple[str, list]:
    """Parse ``section.key=v1,v2,...`` into a dotted path and numeric values."""
    if "=" not in arg:
        raise ValueError(f"Sweep must look like section.key=v1,v2,...: {arg!r}")
    path, raw = arg.split("=", 1)
    values = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        number = float(item)
        values.append(int(number) if number.is_integer() else number)
    if not values:
        raise ValueError(f"No values given for sweep of {path}")
    return path.strip(), values


# ── Modes ───────────────────────────────────────────────────────


def _run_headless(config: dict, data_dir: Path, plot: bool) -> Engine:
    """Run until extinction or max_ticks, logging every history point to CSV."""
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "config.yaml").write_text(yaml.dump(config, default_flow_style=False))

    engine = Engine(config)
    engine.initialize()
    append_history(engine.history[-1], data_dir)

    def _record(e: Engine) -> None:
        append_history(e.history[-1], data_dir)
        if e.current_tick % 100 == 0:
            counts = e.population_counts
            logger.info(
                "Tick %d: %d grass, %d sheep, %d wolves",
                e.current_tick, counts["grass"], counts["sheep"], counts["wolves"],
            )

    engine.run(on_tick=_record)

    if plot:
        from pasture.analysis.plots import plot_population

        path = plot_population(data_dir)
        logger.info("Population chart written to %s", path)
    return engine


def _run_bench(config: dict, runs: int) -> None:
    from pasture.analysis.analyze import bench, format_bench

    stats = bench(
        config, runs,
        max_ticks=config["simulation"]["max_ticks"],
        seed=config["simulation"]["seed"],
    )
    print(f"{runs} runs: {format_bench(stats)}")


def _run_sweep(config: dict, arg: str, runs: int, output: Path | None) -> None:
    from pasture.analysis.analyze import sweep

    path, values = parse_sweep(arg)
    result = sweep(
        config, path, values, runs=runs,
        max_ticks=config["simulation"]["max_ticks"],
        seed=config["simulation"]["seed"],
    )
    print(f">>> best {path}={result['best']}")
    if output:
        from pasture.analysis.plots import plot_sweep

        plot_sweep(result, output)
        logger.info("Sweep chart written to %s", output)


async def _run_live(config: dict, args: argparse.Namespace) -> None:
    """Serve the viewer and tick at the configured game speed while running."""
    from pasture.src.live_server import LiveServer, StopRequested, build_tick_message

    port = args.port or 8765
    server = LiveServer(host="localhost", port=port)
    await server.start()
    print(f"\n  Open http://localhost:{port} to view\n")

    def _config_for(cmd: dict) -> dict | None:
        return preset_config_for_viewer(cmd.get("preset"), args)

    engine = Engine(config)
    engine.initialize()
    await server.broadcast(build_tick_message(engine))

    try:
        while True:
            changed = await server.process_commands(engine, resolve_config=_config_for)
            ticked = False
            if engine.is_running or server.step_requested:
                server.step_requested = False
                engine.tick()
                ticked = True
            if ticked or changed:
                await server.broadcast(build_tick_message(engine))

            speed = engine.config["simulation"]["game_speed"]
            await asyncio.sleep(1.0 / speed if engine.is_running else 0.05)
    except StopRequested:
        logger.info("Stop requested by viewer")
    finally:
        await server.stop()


# ── CLI ─────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pasture: grass, sheep and wolves on a grid")
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Path to config YAML (default: config/default.yaml)",
    )
    parser.add_argument("--preset", type=str, help="Named preset from config/presets/")
    parser.add_argument("--list-presets", action="store_true", help="List presets and exit")
    parser.add_argument("--ticks", type=int, help="Override max_ticks")
    parser.add_argument("--seed", type=int, help="Override random seed")
    parser.add_argument("--width", type=int, help="Override grid width")
    parser.add_argument("--height", type=int, help="Override grid height")
    parser.add_argument("--debug-checks", action="store_true", help="Assert grid invariants every tick")
    parser.add_argument("--plot", action="store_true", help="Write a population chart after the run")
    parser.add_argument("--bench", type=int, metavar="RUNS", help="Repeat headless runs and summarize")
    parser.add_argument(
        "--sweep", type=str, metavar="KEY=V1,V2",
        help="Sweep one parameter, e.g. wolf.hunting_radius=3,4,5",
    )
    parser.add_argument("--runs", type=int, default=3, help="Runs per value for --sweep")
    parser.add_argument("--sweep-plot", type=Path, help="Where to write the --sweep chart")
    parser.add_argument("--live", action="store_true", help="Real-time browser visualization")
    parser.add_argument("--port", type=int, help="Port for --live server (default 8765)")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.list_presets:
        for name in list_presets():
            print(name)
        sys.exit(0)

    try:
        config = resolve_config(args)
    except (ConfigError, FileNotFoundError) as e:
        logger.error("%s", e)
        sys.exit(1)

    if args.live:
        asyncio.run(_run_live(config, args))
        sys.exit(0)

    if args.bench:
        _run_bench(config, args.bench)
        sys.exit(0)

    if args.sweep:
        try:
            _run_sweep(config, args.sweep, args.runs, args.sweep_plot)
        except (ValueError, KeyError) as e:
            logger.error("%s", e)
            sys.exit(1)
        sys.exit(0)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    data_dir = Path("data") / f"run_{timestamp}"
    logger.info("Starting run: %s", data_dir)
    engine = _run_headless(config, data_dir, args.plot)
    logger.info(
        "Run complete: tick %d, extinct=%s, data in %s",
        engine.current_tick, engine.extinct_population, data_dir,
    )


if __name__ == "__main__":
    main()
