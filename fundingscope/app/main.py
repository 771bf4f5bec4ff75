from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from fundingscope.analysis.recommendations import recommend
from fundingscope.analysis.spot_compare import compare
from fundingscope.core.config import AppConfig, FeedConfig, load_config
from fundingscope.core.errors import FundingScopeError
from fundingscope.core.types import MarketSnapshot, ProjectionPoint, Recommendation
from fundingscope.feed.binance_feed import BinanceFeed
from fundingscope.fees.funding_accrual import FundingAccrualEngine
from fundingscope.fees.funding_model import FundingModel
from fundingscope.monitoring.logger import get_logger, setup_logging
from fundingscope.projection.pipeline import ProjectionPipeline, downsample
from fundingscope.projection.sensitivity import sensitivity_table
from fundingscope.reports.writers import build_summary, write_projection_csv, write_summary_json
from fundingscope.scenarios.catalog import parse_scenario
from fundingscope.scenarios.registry import ScenarioRegistry

log = get_logger("cli")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fundingscope")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("scenarios", help="List the built-in market scenarios")

    proj = sub.add_parser("project", help="Project a leveraged position over its time horizon")
    proj.add_argument("--config", help="Path to YAML config (e.g., configs/default.yaml)")
    proj.add_argument("--scenario", help="Scenario name, overrides position.scenario")
    proj.add_argument("--symbol", help="Instrument symbol, e.g. BTCUSDT")
    proj.add_argument("--live", action="store_true", help="Refresh price and funding rate from Binance")
    proj.add_argument("--out", help="Directory for projection.csv and summary.json")
    proj.add_argument("--full", action="store_true", help="Print every day instead of a sampled table")
    return p


async def _fetch_snapshot(cfg: FeedConfig, symbol: str) -> MarketSnapshot:
    async with BinanceFeed(cfg) as feed:
        return await feed.snapshot(symbol)


def _print_points(points: list[ProjectionPoint]) -> None:
    print(f"{'day':>4} {'price':>12} {'raw pnl':>12} {'funding':>10} {'total pnl':>12} {'pnl %':>8} {'risk':>6}  tier")
    for pt in points:
        print(
            f"{pt.day:>4} {pt.price:>12.4f} {pt.raw_pnl:>12.2f} {pt.funding_fees:>10.2f} "
            f"{pt.total_pnl:>12.2f} {pt.pnl_percent:>8.2f} {pt.liquidation_risk:>6.1f}  {pt.margin_tier.value}"
            + ("  LIQUIDATED" if pt.is_liquidated else "")
        )


def _print_recommendations(recs: list[Recommendation]) -> None:
    if not recs:
        print("\nPosition parameters look optimal. Monitor market conditions for any changes.")
        return
    print(f"\n{len(recs)} recommendation(s):")
    for r in recs:
        print(f"- [{r.severity.value}] {r.title}: {r.description}")
        if r.action:
            print(f"    -> {r.action}")


def _run_project(args: argparse.Namespace) -> int:
    cfg = load_config(args.config) if args.config else AppConfig()
    setup_logging(cfg.logging)

    overrides: dict[str, Any] = {}
    if args.scenario:
        overrides["scenario"] = parse_scenario(args.scenario).value
    symbol = args.symbol or cfg.position.symbol
    if args.live:
        if not symbol:
            raise FundingScopeError("--live needs --symbol or position.symbol in the config")
        snap = asyncio.run(_fetch_snapshot(cfg.feed, symbol))
        log.info(
            "live %s price=%.6f funding=%.4f%%%s",
            snap.symbol,
            snap.price,
            snap.funding_rate,
            " (default)" if snap.funding_rate_is_default else "",
        )
        overrides["current_price"] = snap.price
        overrides["funding_rate"] = snap.funding_rate
    if overrides:
        # re-validated, so live values are held to the same bounds as the file
        cfg = (
            load_config(args.config, overrides={"position": overrides})
            if args.config
            else AppConfig.model_validate({"position": overrides})
        )
    params = cfg.position.to_params()
    funding = FundingModel(funding_rate=params.funding_rate)

    engine = FundingAccrualEngine()
    points = ProjectionPipeline(engine, periods_per_day=cfg.projection.periods_per_day).project(params)
    comparison = compare(params, engine=engine)
    recs = recommend(params, points, comparison, engine=engine)
    sensitivity = sensitivity_table(params, engine=engine)

    print(
        f"{symbol or 'position'}: {params.direction.value} {params.leverage:g}x "
        f"${params.initial_investment:,.2f} @ {params.current_price} -> {params.target_price} "
        f"over {params.time_horizon}d, funding {params.funding_rate}%/8h "
        f"({funding.annualized_rate_pct():.2f}%/yr), scenario {params.scenario.value}\n"
    )
    _print_points(points if args.full else downsample(points, cfg.projection.display_points))
    print(
        f"\nspot {comparison.spot_return:.2f}% vs leveraged {comparison.leveraged_return:.2f}% "
        f"(funding drag {comparison.funding_drag_percent:.2f}%, "
        f"leverage {'worth it' if comparison.is_leverage_worth_it else 'not worth it'})"
    )
    _print_recommendations(recs)
    print("\nsensitivity:")
    for row in sensitivity:
        print(f"  {row.label:<20} {row.leverage:>5g}x {row.funding_rate:>8.4f}%  {row.total_pnl:>12.2f}")

    if args.out:
        out = Path(args.out)
        write_projection_csv(points, str(out / "projection.csv"))
        write_summary_json(build_summary(params, points, comparison, recs, sensitivity), str(out / "summary.json"))
        log.info("wrote %s and %s", out / "projection.csv", out / "summary.json")
    return 0


def _run_scenarios() -> int:
    for spec in ScenarioRegistry().list_available():
        print(f"{spec.label:<18} risk x{spec.risk_multiplier:<4} funding risk {spec.funding_risk:<7} {spec.description}")
    return 0


def run(argv: list[str]) -> int:
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "scenarios":
            return _run_scenarios()
        return _run_project(args)
    except (FundingScopeError, ValidationError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


def main() -> None:
    try:
        rc = run(sys.argv[1:])
    except KeyboardInterrupt:
        rc = 130
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
