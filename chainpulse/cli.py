"""Command-line interface for chainpulse."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .analytics import LeaderboardKind
from .config import load_config
from .logging_setup import configure_logging
from .navigation import SizingMetric, ViewMode
from .services import MarketService


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="chainpulse",
        description="Live crypto market snapshot and treemap layout",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    snapshot_parser = sub.add_parser("snapshot", help="Fetch one snapshot and print market stats")
    snapshot_parser.add_argument(
        "--top", type=int, default=10, help="Leaderboard length (default: 10)"
    )

    layout_parser = sub.add_parser("layout", help="Fetch one snapshot and print treemap cells")
    layout_parser.add_argument("width", type=int, help="Viewport width in pixels")
    layout_parser.add_argument("height", type=int, help="Viewport height in pixels")
    layout_parser.add_argument(
        "--view", choices=[v.value for v in ViewMode], default=None, help="View mode"
    )
    layout_parser.add_argument("--sector", default=None, help="Drill into this sector")
    layout_parser.add_argument("--ecosystem", default=None, help="Ecosystem filter")
    layout_parser.add_argument(
        "--metric", choices=[m.value for m in SizingMetric], default=None, help="Sizing metric"
    )

    macro_parser = sub.add_parser("macro", help="Asset detail plus auxiliary indicators")
    macro_parser.add_argument("symbol", help="Asset symbol, e.g. BTC")

    watch_parser = sub.add_parser("watch", help="Continuous refresh with live price stream")
    watch_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Refresh interval in seconds (overrides config)",
    )

    return parser


def _fmt_usd(value: float | None) -> str:
    if value is None:
        return "n/a"
    for limit, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M")):
        if value >= limit:
            return f"${value / limit:,.2f}{suffix}"
    return f"${value:,.2f}"


async def _snapshot(service: MarketService, top: int) -> int:
    if not await service.refresh():
        print(f"Refresh failed: {service.snapshot_view().last_error}", file=sys.stderr)
        return 1
    status = service.status()
    stats = service.global_stats()
    breadth = service.market_breadth()
    print(f"Source: {status['source']} · {status['asset_count']} assets")
    print(
        f"Market cap: {_fmt_usd(stats.total_market_cap)} ({stats.market_cap_change_24h:+.2f}%)"
        f" · Volume 24h: {_fmt_usd(stats.total_volume_24h)}"
    )
    print(f"BTC dominance: {stats.btc_dominance:.1f}% · ETH dominance: {stats.eth_dominance:.1f}%")
    print(
        f"Breadth: {breadth.gainers} up / {breadth.losers} down / {breadth.unchanged} flat"
    )
    for kind in LeaderboardKind:
        print(f"\nTop {kind.value}:")
        for asset in service.leaderboard(kind, top):
            print(
                f"  {asset.symbol.upper():<8} {_fmt_usd(asset.price):>14}"
                f"  {asset.change_24h:+7.2f}%  vol {_fmt_usd(asset.volume_24h)}"
            )
    return 0


async def _layout(service: MarketService, args: argparse.Namespace) -> int:
    nav = service.navigation
    if args.ecosystem:
        nav.set_ecosystem_filter(args.ecosystem)
    if args.view == ViewMode.SECTOR.value:
        nav.go_back_to_sectors()
    elif args.view == ViewMode.TOKEN.value:
        nav.enter_ecosystem_view()
    if args.sector:
        nav.enter_sector(args.sector)
    if args.metric:
        nav.set_sizing_metric(args.metric)

    if not await service.refresh():
        print(f"Refresh failed: {service.snapshot_view().last_error}", file=sys.stderr)
        return 1
    cells = service.layout(args.width, args.height)
    if not cells:
        print("Nothing to lay out")
        return 0
    for cell in cells:
        r = cell.rect
        print(f"{cell.node.name:<16} {r.x0:>5} {r.y0:>5} {r.x1:>5} {r.y1:>5}  value={cell.node.value:,.0f}")
    return 0


async def _macro(service: MarketService, symbol: str) -> int:
    detail, report = await asyncio.gather(
        service.asset_detail(symbol), service.auxiliary_report(symbol)
    )
    if detail is not None:
        print(f"{detail.name} ({detail.symbol.upper()}): {_fmt_usd(detail.price)} ({detail.change_24h:+.2f}%)")
        print(f"  Market cap {_fmt_usd(detail.market_cap)} · FDV {_fmt_usd(detail.fdv)} · TVL {_fmt_usd(detail.tvl)}")
    else:
        print(f"No detail available for {symbol.upper()}")
    if report.sentiment is not None:
        print(f"  Fear & greed: {report.sentiment.value} ({report.sentiment.classification})")
    if report.long_short is not None:
        ls = report.long_short
        print(f"  Long/short: {ls.ratio:.2f} ({ls.long_pct:.1f}% / {ls.short_pct:.1f}%)")
    if report.gas_price_gwei is not None:
        print(f"  Gas: {report.gas_price_gwei:.1f} gwei")
    if report.chain_stats is not None:
        print(f"  Chain {report.chain_stats.name} TVL {_fmt_usd(report.chain_stats.tvl)}")
    if report.fees_24h is not None:
        print(f"  Fees 24h: {_fmt_usd(report.fees_24h)}")
    if report.failures:
        print(f"  Unavailable: {', '.join(report.failures)}")
    return 0


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    service = MarketService(config)

    if args.command == "snapshot":
        return await _snapshot(service, args.top)
    if args.command == "layout":
        return await _layout(service, args)
    if args.command == "macro":
        return await _macro(service, args.symbol)
    if args.command == "watch":
        await service.run_continuous(args.interval)
        return 0
    build_parser().print_help()
    return 1


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
