# src/main.py — v2
"""CLI entry point — analyze, purge, stats commands.

Usage:
    bitecache analyze <image> [--json]
    bitecache purge (--all | --older-than DAYS | --category NAME | --calories-above N)
    bitecache stats
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from bitecache.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOOD = 2
EXIT_UNAVAILABLE = 3
EXIT_MALFORMED = 4

_STATUS_EXIT_CODES = {
    "ok": EXIT_OK,
    "not_food": EXIT_NOT_FOOD,
    "unavailable": EXIT_UNAVAILABLE,
    "malformed": EXIT_MALFORMED,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_ERROR

    from bitecache.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_ERROR

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_ERROR


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bitecache",
        description=f"bitecache v{__version__} — cache-first dish photo analyzer",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Analyze a dish photo (PNG or JPEG)",
    )
    p_analyze.add_argument("image", type=Path, help="Path to image")
    p_analyze.add_argument(
        "--json", action="store_true", dest="as_json",
        help="Print the full outcome as JSON",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- purge ---
    p_purge = subparsers.add_parser(
        "purge", help="Remove cached analyses from both tiers",
    )
    criteria = p_purge.add_mutually_exclusive_group(required=True)
    criteria.add_argument(
        "--all", action="store_true", dest="everything",
        help="Remove every entry",
    )
    criteria.add_argument(
        "--older-than", type=float, metavar="DAYS", dest="older_than",
        help="Remove entries older than DAYS",
    )
    criteria.add_argument(
        "--category", metavar="NAME",
        help="Remove entries of a cuisine category",
    )
    criteria.add_argument(
        "--calories-above", type=float, metavar="N", dest="calories_above",
        help="Remove entries with more than N calories per serving",
    )
    p_purge.set_defaults(func=_cmd_purge)

    # --- stats ---
    p_stats = subparsers.add_parser(
        "stats", help="Show cache statistics for both tiers",
    )
    p_stats.set_defaults(func=_cmd_stats)

    return parser


async def _cmd_analyze(args: argparse.Namespace, settings: object) -> int:
    """Execute single-image analysis."""
    from bitecache.api.facade import analyze_image
    from bitecache.core.errors import UnsupportedMediaError

    image_path: Path = args.image
    if not image_path.is_file():
        logger.error("File not found: %s", image_path)
        return EXIT_ERROR

    try:
        outcome = await analyze_image(image_path.read_bytes(), settings=settings)
    except UnsupportedMediaError as exc:
        logger.error("%s: %s", image_path.name, exc)
        return EXIT_ERROR

    if args.as_json:
        print(outcome.model_dump_json(indent=2))
    else:
        _print_outcome(outcome)
    return _STATUS_EXIT_CODES[outcome.status]


async def _cmd_purge(args: argparse.Namespace, settings: object) -> int:
    """Apply one purge criterion to both tiers."""
    from bitecache.api.facade import build_coordinator, purge

    removed = await purge(
        build_coordinator(settings),
        everything=args.everything,
        older_than_days=args.older_than,
        category=args.category,
        calories_above=args.calories_above,
    )
    print(f"Removed {removed} entries")
    return EXIT_OK


async def _cmd_stats(args: argparse.Namespace, settings: object) -> int:
    """Display cache statistics."""
    from bitecache.api.facade import build_coordinator, cache_stats

    stats = await cache_stats(build_coordinator(settings))
    for tier, tier_stats in stats.items():
        print(f"\n{tier} tier:")
        print(f"  Entries:       {tier_stats.total_entries}")
        print(f"  Size:          {tier_stats.size_bytes} bytes")
        print(f"  Oldest:        {tier_stats.oldest_entry or '-'}")
        print(f"  Newest:        {tier_stats.newest_entry or '-'}")
        print(f"  Avg calories:  {tier_stats.average_calories}")
        if tier_stats.popular_subjects:
            popular = ", ".join(
                f"{s.name} ({s.count})" for s in tier_stats.popular_subjects
            )
            print(f"  Popular:       {popular}")
    return EXIT_OK


def _print_outcome(outcome: object) -> None:
    """Print a human-readable summary of AnalysisOutcome."""
    if not outcome.ok:
        print(f"\n{outcome.status}: {outcome.message}")
        return

    record = outcome.record
    print(f"\nAnalysis complete ({outcome.origin.value}):")
    print(f"  Dish:        {record.subject_name}")
    print(f"  Cuisine:     {record.category}")
    print(f"  Calories:    {record.nutrition.calories:.0f}")
    print(
        f"  Macros:      {record.nutrition.protein_g:.0f}g protein, "
        f"{record.nutrition.carbs_g:.0f}g carbs, {record.nutrition.fat_g:.0f}g fat"
    )
    print(f"  Ingredients: {', '.join(record.ingredients)}")
    print(f"  Health:      {record.health_score.overall:.0f}/100")
    if record.compliance.allergens:
        print(f"  Allergens:   {', '.join(sorted(record.compliance.allergens))}")


def _setup_logging(settings: object, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from bitecache.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
