#!/usr/bin/env python3
"""
Command-line client for the comp sync engine.

Loads an evaluation from the remote API, applies filter edits and
inclusion toggles through a CompSection, waits for the engine to settle
and prints the resulting comps.
"""

import argparse
import asyncio
import sys
from typing import Any, Dict, List, Optional

from client.http import HttpCompService
from core.comp_sync import CompSection, CompServiceError, CompType, summarize_criteria
from utils.config import Config
from utils.formatting import format_currency, format_number, format_percent
from utils.logging_config import configure_logging
from utils.preferences import DevicePreferences

# CLI option -> FilterCriteria field
FILTER_OPTIONS = {
    "term": "search_term",
    "sqft": "sqft_plus_minus",
    "beds_min": "beds_min",
    "beds_max": "beds_max",
    "baths_min": "baths_min",
    "baths_max": "baths_max",
    "garage_min": "garage_min",
    "garage_max": "garage_max",
    "year_built": "year_built_plus_minus",
    "months_closed": "months_closed",
    "county": "confine_to_county",
    "zip": "confine_to_zip",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search and curate evaluation comps")
    parser.add_argument("--property", required=True, help="Property id")
    parser.add_argument("--evaluation", required=True, help="Evaluation id")
    parser.add_argument("--type", choices=["sale", "rent"], default="sale", help="Comp group")
    parser.add_argument("--search-type", help="Search-locality mode (subdivision, radius, ...)")
    parser.add_argument("--term", help="Search term")
    parser.add_argument("--sqft", type=int, help="Square footage +/-")
    parser.add_argument("--beds-min", type=int)
    parser.add_argument("--beds-max", type=int)
    parser.add_argument("--baths-min", type=float)
    parser.add_argument("--baths-max", type=float)
    parser.add_argument("--garage-min", type=int)
    parser.add_argument("--garage-max", type=int)
    parser.add_argument("--year-built", type=int, help="Year built +/-")
    parser.add_argument("--months-closed", type=int, help="Recency window in months")
    parser.add_argument("--county", help="Confine to county")
    parser.add_argument("--zip", help="Confine to ZIP code")
    broad = parser.add_mutually_exclusive_group()
    broad.add_argument("--broad", dest="broad", action="store_true", default=None,
                       help="Ignore everything except the recency window")
    broad.add_argument("--no-broad", dest="broad", action="store_false")
    parser.add_argument("--reset", action="store_true", help="Restore the initial filters")
    parser.add_argument("--toggle", action="append", default=[], metavar="COMP_ID",
                        help="Flip a comp's inclusion (repeatable)")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    return parser


def filter_changes(args: argparse.Namespace) -> Dict[str, Any]:
    changes = {}
    for option, field_name in FILTER_OPTIONS.items():
        value = getattr(args, option)
        if value is not None:
            changes[field_name] = value
    return changes


def print_section(section: CompSection) -> None:
    """Print the applied criteria and the comps table."""
    snapshot = section.snapshot
    label = "Sale" if snapshot.comp_type is CompType.SALE else "Rent"

    print()
    print(f"{label} comps")
    print("=" * 78)
    print("  ".join(f"{name}: {value}" for name, value in summarize_criteria(section.criteria)))
    print("-" * 78)
    for comp in snapshot.records:
        mark = "x" if comp.include else " "
        print(
            f"[{mark}] {comp.id:<10} {comp.full_address[:34]:<34} "
            f"{format_number(comp.beds)}bd/{format_number(comp.baths)}ba "
            f"{format_number(comp.sqft):>6} sqft {format_currency(comp.price_sold):>11}"
        )
    print("-" * 78)

    total = len(snapshot.records)
    included = len(snapshot.included_records)
    share = format_percent(100 * included / total) if total else format_percent(0)
    print(f"Included: {included}/{total} ({share})")
    value_label = "Estimated value" if snapshot.comp_type is CompType.SALE else "Estimated rent"
    print(f"{value_label}: {format_currency(snapshot.aggregate_value)}")
    print(f"Average price/sqft: {format_currency(snapshot.average_price_per_sqft)}")

    if section.error is not None:
        print()
        print(f"Error: {section.error.message}", file=sys.stderr)


async def run(args: argparse.Namespace, config: Config) -> int:
    comp_type = CompType.from_string(args.type)
    async with HttpCompService.from_config(config) as service:
        evaluation = await service.get_evaluation(args.property, args.evaluation)
        search_types = await service.get_search_types(args.property, args.evaluation)

        section = CompSection(
            service,
            evaluation,
            comp_type,
            config=config,
            preferences=DevicePreferences(config.preferences_path),
            search_types=search_types,
        )
        try:
            section.mount()
            if args.reset:
                section.reset_filters()
            if args.search_type:
                section.change_search_type(args.search_type)
            changes = filter_changes(args)
            if changes:
                section.set_filter(**changes)
            if args.broad is not None:
                section.set_broad_search(args.broad)
            await section.wait_idle()

            for comp_id in args.toggle:
                section.toggle_comp(comp_id)
            await section.wait_idle()
        finally:
            section.close()

        print_section(section)
        return 1 if section.error is not None else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = Config.load()
    configure_logging(args.log_level or config.log_level)
    try:
        return asyncio.run(run(args, config))
    except (KeyError, ValueError) as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except CompServiceError as e:
        print(f"Request failed: {e.message or type(e).__name__}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
