"""CLI interface: search, lane management, connection checks and HTML extraction."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path

from src.core.bootstrap import AppContext, build_context
from src.loadboards.extraction.sylectus_html import extract_sylectus_table
from src.loadboards.models import Lane, Place, Provider, SearchRequest
from src.loadboards.service import AggregateSearchResult


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


def colorize(text: str, *colors: str) -> str:
    if not sys.stdout.isatty():
        return text
    color_codes = "".join(colors)
    return f"{color_codes}{text}{Colors.RESET}"


def _place(value: str | None) -> Place | None:
    return Place.parse(value) if value else None


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _states(value: str | None) -> list[str]:
    return [s.strip().upper() for s in (value or "").split(",") if s.strip()]


def format_lane(lane: Lane) -> str:
    origin = lane.origin.label() if not lane.origin.is_empty() else "anywhere"
    destination = lane.destination.label() if not lane.destination.is_empty() else "anywhere"
    start, end = lane.date_range
    source = lane.source.value if lane.source else "-"
    drivers = ", ".join(lane.driver_ids) or "-"
    return (
        f"{colorize(lane.id, Colors.BOLD)}  {origin} → {destination}  {start}..{end}  "
        f"[{source}] results={lane.results_count or 0} drivers={drivers}"
    )


def print_aggregate(aggregate: AggregateSearchResult) -> None:
    print(colorize(f"Search {aggregate.search_module_id}", Colors.CYAN))
    for provider, result in aggregate.results.items():
        mode = result.data.mode.value if result.data else "-"
        loads = len(result.data.loads) if result.data else 0
        status = (
            colorize("ok", Colors.GREEN) if result.success else colorize("failed", Colors.RED)
        )
        print(f"  {provider.value:<9} {status}  mode={mode}  loads={loads}  {result.message}")
    for provider, error in aggregate.errors.items():
        if provider not in aggregate.results:
            print(f"  {provider.value:<9} {colorize('error', Colors.RED)}  {error}")
    for lane in aggregate.lanes:
        print("  lane " + format_lane(lane))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lanedesk", description="Load-board aggregation core")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search the load boards")
    search.add_argument("--origin", help='"City, ST"')
    search.add_argument("--destination", help='"City, ST"')
    search.add_argument("--start-date", help="YYYY-MM-DD")
    search.add_argument("--end-date", help="YYYY-MM-DD")
    search.add_argument("--origin-states", help="Comma separated, e.g. IL,IN")
    search.add_argument("--destination-states", help="Comma separated")
    search.add_argument("--weight", type=int, help="Max weight in pounds")
    search.add_argument(
        "--provider",
        action="append",
        choices=[p.value for p in Provider],
        help="Repeat to select several; default is every enabled board",
    )

    sub.add_parser("lanes", help="List lanes")

    for name, text in (("assign", "Assign a driver to a lane"), ("unassign", "Remove a driver")):
        p = sub.add_parser(name, help=text)
        p.add_argument("lane_id")
        p.add_argument("driver_id")

    p = sub.add_parser("delete-lane", help="Delete a lane and its stored results")
    p.add_argument("lane_id")

    p = sub.add_parser("refresh", help="Re-run a lane's search")
    p.add_argument("lane_id")

    sub.add_parser("status", help="Probe the extension connection once")
    sub.add_parser("ping", help="Ask the extension to ping the DAT tab")
    sub.add_parser("cleanup", help="Drop expired search results")

    p = sub.add_parser("extract", help="Run the Sylectus extractor on an HTML file")
    p.add_argument("path", type=Path)
    return parser


async def _run(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.command == "search":
        request = SearchRequest(
            origin=_place(args.origin),
            destination=_place(args.destination),
            start_date=_date(args.start_date),
            end_date=_date(args.end_date),
            origin_states=_states(args.origin_states),
            destination_states=_states(args.destination_states),
            weight_pounds=args.weight,
        )
        aggregate = await ctx.service.search_all(request, args.provider)
        print_aggregate(aggregate)
        return 0 if aggregate.success else 1

    if args.command == "lanes":
        lanes = ctx.lanes.lanes()
        if not lanes:
            print(colorize("No lanes yet.", Colors.DIM))
        for lane in lanes:
            print(format_lane(lane))
        return 0

    if args.command in ("assign", "unassign"):
        op = ctx.lanes.assign_driver if args.command == "assign" else ctx.lanes.unassign_driver
        lane = op(args.lane_id, args.driver_id)
        if lane is None:
            print(colorize(f"Unknown lane: {args.lane_id}", Colors.RED))
            return 1
        print(format_lane(lane))
        return 0

    if args.command == "delete-lane":
        if not ctx.lanes.delete_lane(args.lane_id):
            print(colorize(f"Unknown lane: {args.lane_id}", Colors.RED))
            return 1
        print(f"Deleted lane {args.lane_id}")
        return 0

    if args.command == "refresh":
        aggregate = await ctx.service.refresh_lane(args.lane_id)
        if aggregate is None:
            print(colorize(f"Unknown lane: {args.lane_id}", Colors.RED))
            return 1
        print_aggregate(aggregate)
        return 0 if aggregate.success else 1

    if args.command == "status":
        state = await ctx.monitor.check()
        snap = ctx.monitor.snapshot()
        color = Colors.GREEN if ctx.monitor.extension_connected else Colors.YELLOW
        print(colorize(f"Extension: {state.value}", color))
        tab = "connected" if snap.tab_connected else "not connected"
        if snap.tab_id is not None:
            tab += f" (tab {snap.tab_id})"
        print(f"DAT tab: {tab}")
        return 0 if ctx.monitor.extension_connected else 1

    if args.command == "ping":
        print(await ctx.monitor.ping())
        return 0

    if args.command == "cleanup":
        removed = ctx.results.cleanup()
        print(f"Removed {removed} expired result(s)")
        return 0

    if args.command == "extract":
        extraction = extract_sylectus_table(args.path.read_text(encoding="utf-8"))
        print(
            json.dumps(
                {
                    "loads": [load.to_wire() for load in extraction.loads],
                    "skipped": extraction.skipped,
                    "errors": extraction.errors,
                    "totalRecords": extraction.total_records,
                },
                indent=2,
            )
        )
        return 0

    return 2


async def run_cli(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    ctx = build_context()
    try:
        return await _run(ctx, args)
    finally:
        await ctx.close()


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(run_cli(argv))
