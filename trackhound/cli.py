"""CLI entry point: track one shipment and print the result as JSON."""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime
from typing import List, Optional

from dateutil import parser as date_parser

from .config import TrackerConfig
from .errors import TrackingError
from .tracker import Tracker

logger = logging.getLogger(__name__)


def _parse_min_date(value: str) -> datetime:
    try:
        return date_parser.isoparse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 date: {value}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trackhound", description="Track a shipment across carriers")
    parser.add_argument("tracking_number", help="Tracking number (spaces are ignored)")
    parser.add_argument("--carrier", help="Carrier tag or name; guessed when omitted")
    parser.add_argument("--min-date", type=_parse_min_date, help="Ignore events before this ISO-8601 instant")
    parser.add_argument("--config", default=os.getenv("TRACKHOUND_CONFIG_DIR", "config"),
                        help="Directory containing trackhound.yaml")
    parser.add_argument("--raw", action="store_true", help="Include the raw carrier payload")
    parser.add_argument("--guess", action="store_true", help="Only print the guessed carrier")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


async def run(args: argparse.Namespace) -> int:
    if args.guess:
        carrier = Tracker.guess_carrier(args.tracking_number)
        print(json.dumps({"carrier": carrier}))
        return 0 if carrier else 1

    tracker = Tracker(TrackerConfig.load(args.config))
    result = await tracker.track(args.tracking_number, carrier=args.carrier, min_date=args.min_date)
    print(json.dumps(result.to_dict(include_raw=args.raw), indent=2, default=str))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(name)s - %(message)s",
    )

    try:
        return asyncio.run(run(args))
    except TrackingError as e:
        logger.debug("Tracking failed", exc_info=True)
        print(json.dumps({"error": str(e), "error_type": type(e).__name__}), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
