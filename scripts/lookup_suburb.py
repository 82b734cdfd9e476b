"""
Look up a suburb from the command line and print its technology summary.

Usage:
    python scripts/lookup_suburb.py Chermside QLD
    python scripts/lookup_suburb.py "Acacia Ridge" QLD --street "12 Beaudesert Rd" --refresh
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from nbn_lookup.config import settings
from nbn_lookup.exceptions import InvalidLocationError, LookupExhaustedError
from nbn_lookup.logging_config import get_logger, setup_logging
from nbn_lookup.pipeline.lookup_service import NbnLookupService

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("suburb")
    parser.add_argument("state")
    parser.add_argument("--street", help="Street address to match exactly")
    parser.add_argument("--refresh", action="store_true", help="Refetch even if cached")
    parser.add_argument("--sweep", action="store_true", help="Sweep the cache before looking up")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    async with NbnLookupService.from_settings(settings) as service:
        if args.sweep:
            service.sweep_cache()
        try:
            report = await service.report(
                args.suburb, args.state, street=args.street, force_refresh=args.refresh
            )
        except (InvalidLocationError, LookupExhaustedError) as e:
            logger.error("%s", e.message)
            return 1

    print(f"{report.key.suburb_slug} ({report.key.state}) — {report.summary.total} addresses")
    for label, count in report.summary.ranked():
        print(f"  {label:<16} {count:>6}   e.g. {report.summary.examples.get(label, '')}")
    if args.street:
        verdict = "confirmed" if report.confirmed else "no exact match, suburb majority"
        print(f"{args.street}: {report.technology} ({verdict})")
    if report.source_url:
        print(f"source: {report.source_url}")
    return 0


def main() -> None:
    settings.setup()
    setup_logging(settings.logging.level, settings.logging.file)
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
