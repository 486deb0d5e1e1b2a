#!/usr/bin/env python3
"""
visualize.py -- CLI entry point for ultraviz.

Usage:
    python visualize.py --race-id 101920
    python visualize.py --race-id 101920 --distance "100 Mile" --bin-minutes 15
    python visualize.py --race-id 101920 --html saved_results_page.html
    python visualize.py --debug toggle
"""

import argparse
import logging
import os
import shutil
import sys

from bs4 import BeautifulSoup

from config import DEFAULT_BIN_MINUTES, DEBUG_FLAG_PATH, RESULTS_PAGE_TEMPLATE
from debug import DebugFlag, JsonFileFlagStore, DebugInfo, export_debug_data, log_debug_info
from extractor import (
    find_results_table, find_header_row, read_headers, map_columns,
    get_active_distance, scrape_table_data,
)
from fetcher import SourceUnavailableError, fetch_html
from histogram import build_web_payload, save_web
from pipeline import PipelineConfig, run_pipeline

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("ultraviz.visualize")


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ultraviz: fetch race results and build a finish-time histogram",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python visualize.py --race-id 101920\n"
            '  python visualize.py --race-id 101920 --distance "50K"\n'
            "  python visualize.py --race-id 101920 --html page.html --scrape-only\n"
            "  python visualize.py --debug status\n"
        ),
    )
    parser.add_argument("--race-id", type=str, help="Event id (the 'did' query parameter)")
    parser.add_argument(
        "--distance",
        type=str,
        default=None,
        help="Distance label to chart, e.g. '100 Mile' (default: active tab on the results page)",
    )
    parser.add_argument(
        "--bin-minutes",
        type=_positive_int,
        default=DEFAULT_BIN_MINUTES,
        help=f"Histogram bin width in minutes (default: {DEFAULT_BIN_MINUTES})",
    )
    parser.add_argument("--html", type=str, help="Use a saved copy of the results page instead of fetching it")
    parser.add_argument(
        "--endpoint",
        action="append",
        default=None,
        metavar="TEMPLATE",
        help="JSON endpoint template with {race_id}; repeat to try several (default: built-in list)",
    )
    parser.add_argument(
        "--cookie",
        default=None,
        help="Raw Cookie header value sent with every request (copy from your browser if needed)",
    )
    parser.add_argument(
        "--scrape-only",
        action="store_true",
        help="Only run the table scraper against the results page and print what it finds",
    )
    parser.add_argument(
        "--debug",
        choices=["on", "off", "toggle", "status"],
        help="Change or show the persisted debug flag, then exit",
    )
    parser.add_argument("--output-dir", type=str, default="data", help="Base output directory (default: data)")
    parser.add_argument("--site-dir", type=str, default="site", help="Static site directory (default: site)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def handle_debug_command(flag: DebugFlag, command: str) -> str:
    if command == "on":
        flag.enable()
    elif command == "off":
        flag.disable()
    elif command == "toggle":
        flag.toggle()
    return flag.status()


def _read_html(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def scrape_only(race_id: str, html: str, distance: str = None) -> int:
    """Diagnostic run of the table scraper; prints the column mapping and rows."""
    if html is None:
        html = fetch_html(RESULTS_PAGE_TEMPLATE.format(race_id=race_id))
    if not html:
        print("\n  Could not load the results page.\n")
        return 1

    soup = BeautifulSoup(html, "lxml")
    table = find_results_table(soup)
    header_row = find_header_row(table) if table is not None else None
    headers = read_headers(header_row) if header_row is not None else []
    columns = map_columns(headers) if headers else {}

    print()
    print(f"  Headers:  {headers}")
    print(f"  Columns:  {columns}")
    print(f"  Distance: {distance or get_active_distance(soup) or '-'}")
    records = scrape_table_data(soup, distance)
    print(f"  Records:  {len(records)}")
    for r in records[:10]:
        print(f"    {r.place:>4}  {r.name:<28} {r.time:>10}  {r.race}")
    print()
    return 0


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    flag = DebugFlag.from_store(JsonFileFlagStore(DEBUG_FLAG_PATH))

    if args.debug:
        state = handle_debug_command(flag, args.debug)
        print(f"Debug mode {state}")
        return 0

    if not args.race_id:
        parser.print_help()
        print("\nError: Provide --race-id <did>")
        return 1

    html = _read_html(args.html) if args.html else None

    if args.scrape_only:
        return scrape_only(args.race_id, html, args.distance)

    debug_enabled = flag.is_enabled()
    config = PipelineConfig(
        bin_minutes=args.bin_minutes,
        distance=args.distance,
        debug=debug_enabled,
        endpoint_templates=args.endpoint,
        cookie=args.cookie,
        html=html,
    )

    logger.info(f"{'='*60}")
    logger.info("ULTRAVIZ BUILD")
    logger.info(f"Race ID: {args.race_id}")
    logger.info(f"{'='*60}")

    # ------------------------------------------------------------------
    # Step 1: Fetch, filter, bucket
    # ------------------------------------------------------------------
    logger.info("Step 1/2: Fetching results...")
    try:
        result = run_pipeline(args.race_id, config)
    except SourceUnavailableError as exc:
        logger.error(str(exc))
        if debug_enabled:
            info = DebugInfo(errors=exc.errors)
            log_debug_info(info)
            export_debug_data(info, os.path.join(args.output_dir, "debug"), args.race_id)
        print()
        print("  Unable to load race results: no API endpoint or results table was available.")
        print()
        return 1

    hist = result.histogram
    print()
    print(f"{'='*60}")
    print(f"  FINISH TIMES: race {result.race_id}  [{result.active_distance or 'All distances'}]")
    print(f"  Source: {result.source_result.source.upper()}  "
          f"Results: {len(result.source_result.records)}  Charted: {hist.total}")
    print(f"{'='*60}")
    if result.has_data:
        peak = max(hist.counts)
        for label, count in zip(hist.labels, hist.counts):
            bar = "#" * (round(40 * count / peak) if peak else 0)
            print(f"  {label:>13} {count:>5}  {bar}")
    else:
        print("  No valid finish times to display.")
    print()

    # ------------------------------------------------------------------
    # Step 2: Chart payload + copy to site
    # ------------------------------------------------------------------
    logger.info("Step 2/2: Building chart payload...")
    web_data = build_web_payload(result)
    web_path = save_web(web_data, os.path.join(args.output_dir, "web"))
    logger.info(f"  -> {web_path}")

    site_data_dir = os.path.join(args.site_dir, "data")
    os.makedirs(site_data_dir, exist_ok=True)
    latest_path = os.path.join(site_data_dir, "latest.json")
    shutil.copy2(web_path, latest_path)
    logger.info(f"  -> {latest_path}")

    if result.debug_info is not None:
        log_debug_info(result.debug_info)
        export_debug_data(result.debug_info, os.path.join(args.output_dir, "debug"), args.race_id)

    logger.info(f"{'='*60}")
    logger.info("BUILD COMPLETE")
    logger.info(f"{'='*60}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
