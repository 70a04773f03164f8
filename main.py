#!/usr/bin/env python3
"""
Craps Engine - Main Entry Point

Runs a simulated session against the table engine and reports dice
fairness, the treasury and each scripted player's result.
"""
import argparse
import logging
import sys

from craps_engine.config import TableConfig
from craps_engine.logging_utils import setup_logging
from craps_engine.report import format_summary, plot_session
from craps_engine.session import SessionConfig, SessionRunner

logger = logging.getLogger("craps_engine.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a simulated craps table session.")
    parser.add_argument("--epochs", type=int, default=200, help="Rolls to play (default: 200)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible entropy")
    parser.add_argument("--config", default=None, help="JSON file with table settings")
    parser.add_argument("--chart", default=None, metavar="PATH", help="Write charts to an image file")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG")
    return parser


def main(argv=None) -> int:
    """Run a session and print its summary."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        table = TableConfig.from_json_file(args.config) if args.config else TableConfig()
        config = SessionConfig(epochs=args.epochs, seed=args.seed, table=table)
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logger.info("Running %d epochs with %d scripted players", config.epochs, len(config.plans))
    result = SessionRunner(config).run()
    print(format_summary(result))

    if args.chart:
        path = plot_session(result, args.chart)
        print(f"\nCharts written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
