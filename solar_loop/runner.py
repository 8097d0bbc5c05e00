"""
Command-line runner for solar loop simulations.

Usage:
    python -m solar_loop.runner config.yaml --periods 16
"""

import argparse
import logging
import sys
from typing import List, Optional, TextIO

from solar_loop.config import build_engine, load_config
from solar_loop.engine import PeriodSnapshot
from solar_loop.exceptions import ConfigurationError, WeatherDataError

logger = logging.getLogger(__name__)

HEADER = (f"{'Period':>6}  {'Irr W/m²':>9}  {'Absorbed J':>12}  "
          f"{'Transfer J':>12}  {'Stored J':>12}  {'Tank °C':>9}")


def format_snapshot(snapshot: PeriodSnapshot) -> str:
    return (f"{snapshot.period_index + 1:>6}  {snapshot.irradiance_in:>9.1f}  "
            f"{snapshot.energy_absorbed:>12.1f}  {snapshot.energy_transferred:>12.1f}  "
            f"{snapshot.stored_energy:>12.1f}  {snapshot.tank_temperature:>9.2f}")


def write_results(snapshots: List[PeriodSnapshot], out: Optional[TextIO] = None):
    """Plain-text period table"""
    out = out or sys.stdout
    out.write(HEADER + "\n")
    out.write("-" * len(HEADER) + "\n")
    for snapshot in snapshots:
        out.write(format_snapshot(snapshot) + "\n")


def run_simulation_from_config(config_path: str, periods: Optional[int] = None) -> List[PeriodSnapshot]:
    """Load a config file, run it and return the snapshots"""
    config = load_config(config_path)
    if periods is not None:
        config.period_count = periods
        config.validate()

    engine = build_engine(config)
    return engine.run(config.period_count)


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Process exit code (0 on success, 2 for configuration errors,
        3 for weather data errors)
    """
    parser = argparse.ArgumentParser(description="Run a solar thermal loop simulation.")
    parser.add_argument("config_file", type=str, help="Path to the simulation configuration YAML/JSON file.")
    parser.add_argument("--periods", type=int, default=None, help="Override the configured period count.")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging verbosity.")

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        snapshots = run_simulation_from_config(args.config_file, args.periods)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except WeatherDataError as e:
        logger.error(f"Weather data unavailable: {e}")
        return 3

    write_results(snapshots)
    return 0


if __name__ == "__main__":
    sys.exit(main())
