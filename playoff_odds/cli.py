"""
Command line entry point.

    playoff-odds snapshot.json --trials 32768 --workers -1 --output chances.json
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError
from tqdm import tqdm

from .core.config import SimulationConfig
from .simulator.engine import simulate_season
from .simulator.models import LeagueStructureError
from .simulator.probability import estimate_chances
from .sources import SnapshotError, get_source


logger = logging.getLogger("playoff_odds")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playoff-odds",
        description="Simulate the rest of an NFL season and report playoff probabilities."
    )
    parser.add_argument("snapshot", help="Season snapshot file (.json)")
    parser.add_argument(
        "--season", type=int, default=None,
        help="Season to simulate (default: the snapshot's season); overrides CURRENT_SEASON"
    )
    parser.add_argument(
        "--trials", type=int, default=None,
        help="Number of simulated seasons (default: TOTAL_SIMS or 32768)"
    )
    parser.add_argument("--workers", type=int, default=None, help="Parallel workers, -1 for all cores")
    parser.add_argument("--batch-size", type=int, default=None, help="Trials per batch")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")
    parser.add_argument(
        "--confidence", type=float, default=None,
        help="z value for the conditional-probability margin of error (default: 2.576)"
    )
    parser.add_argument("--super-bowl-host", type=int, default=None, help="Team id hosting the Super Bowl")
    parser.add_argument("--output", "-o", default=None, help="Write the report here instead of stdout")
    parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        source = get_source(args.snapshot)
        snapshot = source.load_snapshot(args.season)
        config = SimulationConfig.from_env(
            total_trials=args.trials,
            current_season=args.season,
            confidence_interval_z=args.confidence,
            super_bowl_host_team_id=args.super_bowl_host,
            workers=args.workers,
            batch_size=args.batch_size,
            seed=args.seed
        )
    except (SnapshotError, ValidationError, ValueError) as e:
        logger.error("%s", e)
        return 2

    try:
        with tqdm(total=100.0, unit="%", disable=args.no_progress, file=sys.stderr) as bar:
            def report(percent: float) -> None:
                bar.update(percent - bar.n)

            run = simulate_season(snapshot, config, progress_callback=report)
    except LeagueStructureError as e:
        logger.error("Cannot simulate season %d: %s", snapshot.season, e)
        return 1

    report_model = estimate_chances(run, config)
    payload = json.dumps(report_model.model_dump(mode="json", by_alias=True), indent=2)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(payload)
        logger.info("Wrote %d team records to %s", len(report_model.teams), args.output)
    else:
        print(payload)

    return 0


if __name__ == "__main__":
    sys.exit(main())
