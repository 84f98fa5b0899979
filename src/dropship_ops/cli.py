"""Command-line interface for testing the pricing pipeline."""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from dropship_ops.config import Settings, get_settings
from dropship_ops.db.base import async_session_maker
from dropship_ops.integrations.rainforest import RainforestClient, RainforestConfig
from dropship_ops.scoring.calculator import price_for_target_margin
from dropship_ops.scoring.models import (
    DemandPoint,
    DemandSample,
    InvalidInput,
    ListingCandidate,
    PricingConfig,
)
from dropship_ops.services.discovery import evaluate_candidate, price_listing
from dropship_ops.services.price_sync import PriceSyncResult, PriceSyncService


def create_example_candidate() -> ListingCandidate:
    """Create an example listing that passes the default criteria."""
    return ListingCandidate(
        identifier="B0EXAMPLE1",
        title="Silicone Baking Mat Set of 3",
        price=Decimal("15.00"),
        rating=4.6,
        review_count=2840,
        is_prime_eligible=True,
        availability_text="In Stock",
    )


def create_example_ranks() -> list[int]:
    """Weekly sales ranks for the example listing."""
    return [4200, 3900, 4100, 3800, 4000, 4300, 3950]


def ranks_to_sample(identifier: str, ranks: list[int], end: datetime) -> DemandSample:
    """Spread ranks one day apart, ending at `end`."""
    start = end - timedelta(days=len(ranks) - 1)
    return DemandSample(
        identifier=identifier,
        points=[
            DemandPoint(timestamp=start + timedelta(days=i), sales_rank=rank)
            for i, rank in enumerate(ranks)
        ],
    )


def print_pricing(cost_price: Decimal, listing, config: PricingConfig) -> None:
    """Print prices for a listing."""
    print(f"\nPricing:")
    print(f"  Cost:         ${cost_price:.2f}")
    print(f"  List Price:   ${listing.list_price:.2f}")
    print(f"  Margin:       ${listing.margin.margin_amount:.2f} ({listing.margin.margin_percent:.1f}%)")
    print(f"  Compare At:   ${listing.compare_at_price:.2f}" if listing.compare_at_price else "  Compare At:   -")
    for name, price in listing.competitor_prices.items():
        print(f"    {name:10}: ${price:.2f}")
    min_price = price_for_target_margin(cost_price, config.margin.min_margin_percent)
    print(f"  Min margin price ({config.margin.min_margin_percent:.0f}%): ${min_price:.2f}")


def evaluate_command(args: argparse.Namespace) -> int:
    """Evaluate a listing from JSON or use example."""
    if args.json:
        candidate = ListingCandidate.model_validate(json.loads(args.json))
        ranks = [int(r) for r in args.ranks.split(",")] if args.ranks else []
    else:
        candidate = create_example_candidate()
        ranks = create_example_ranks()
        print("Using example listing (use --json to provide your own)\n")

    config = PricingConfig()
    if args.markup is not None:
        config = config.model_copy(update={"markup_percent": Decimal(str(args.markup))})

    sample = ranks_to_sample(candidate.identifier, ranks, datetime.now(timezone.utc))
    outcome = evaluate_candidate(candidate, sample, config, rng=args.seed)

    # Output
    print(f"Listing: {candidate.title or candidate.identifier}")
    print(f"{'=' * 50}")

    print(f"\nCriteria: {'PASSED' if outcome.criteria.passed else 'FAILED'}")
    if outcome.criteria.detail:
        print(f"  - {outcome.criteria.detail}")

    if outcome.demand is not None:
        demand = outcome.demand
        print(f"\nDemand: {'PASSED' if demand.passes_demand_gate else 'FAILED'}")
        if demand.insufficient_data:
            print(f"  Insufficient rank history ({len(sample)} points)")
        else:
            print(f"  Avg Rank:    {demand.avg_rank:,.0f}")
            print(f"  Volatility:  {demand.volatility:.2f}")
            print(f"  Score:       {demand.score:.2f}")
            print(f"  Trend:       {demand.trend.value}")

    if outcome.pricing is not None:
        print_pricing(candidate.price, outcome.pricing, config)

    print(f"\n{'=' * 50}")
    print(f"Decision: {'IMPORT' if outcome.passed else 'REJECT (' + outcome.rejection + ')'}")
    return 0


def quote_command(args: argparse.Namespace) -> int:
    """Price a cost."""
    config = PricingConfig()
    if args.markup is not None:
        config = config.model_copy(update={"markup_percent": Decimal(str(args.markup))})

    cost = Decimal(args.cost)
    listing = price_listing(cost, config, rng=args.seed)
    print_pricing(cost, listing, config)
    return 0


async def run_sync(settings: Settings, limit: int, force: bool) -> PriceSyncResult:
    """Run one price sync cycle against the configured database."""
    client = RainforestClient(
        RainforestConfig(
            api_key=settings.rainforest_api_key,
            amazon_domain=settings.amazon_domain,
        )
    )
    try:
        async with async_session_maker() as session:
            service = PriceSyncService(client, session, settings.pricing_config())
            return await service.run_price_sync(limit=limit, force=force)
    finally:
        client.close()


def sync_command(args: argparse.Namespace) -> int:
    """Re-check prices of tracked products that are due."""
    settings = get_settings()
    if not settings.rainforest_api_key:
        print("Error: RAINFOREST_API_KEY is not set", file=sys.stderr)
        return 2

    limit = args.limit or settings.sync_batch_size
    result = asyncio.run(run_sync(settings, limit, args.force))

    print(f"Processed: {result.processed}")
    print(f"  updated: {result.updated}, missing: {result.missing}, "
          f"paused: {result.paused}, errors: {result.errors}")
    for alert in result.alerts:
        print(f"  [{alert.severity.value}] {alert.product_identifier}: {alert.message}")
    for detail in result.error_details:
        print(f"  error: {detail}", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dropship-ops",
        description="Dropshipping discovery and pricing pipeline",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Evaluate command
    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate a listing")
    evaluate_parser.add_argument(
        "--json",
        type=str,
        help="Listing data as JSON string",
    )
    evaluate_parser.add_argument(
        "--ranks",
        type=str,
        help="Comma-separated daily sales ranks, oldest first",
    )
    evaluate_parser.add_argument(
        "--markup",
        type=float,
        help="Markup percent on cost (default: 70)",
    )
    evaluate_parser.add_argument(
        "--seed",
        type=int,
        help="Seed for competitor display prices",
    )

    # Quote command
    quote_parser = subparsers.add_parser("quote", help="Price a source cost")
    quote_parser.add_argument("cost", type=str, help="Source cost (USD)")
    quote_parser.add_argument(
        "--markup",
        type=float,
        help="Markup percent on cost (default: 70)",
    )
    quote_parser.add_argument(
        "--seed",
        type=int,
        help="Seed for competitor display prices",
    )

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Re-check prices of tracked products")
    sync_parser.add_argument(
        "--limit",
        type=int,
        help="Maximum products to check (default: SYNC_BATCH_SIZE)",
    )
    sync_parser.add_argument(
        "--force",
        action="store_true",
        help="Check every non-paused product, not only the stale ones",
    )

    # Example command
    example_parser = subparsers.add_parser(
        "example",
        help="Show example listing JSON",
    )
    example_parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty print JSON",
    )

    args = parser.parse_args(argv)

    try:
        if args.command == "evaluate":
            return evaluate_command(args)
        if args.command == "quote":
            return quote_command(args)
        if args.command == "sync":
            return sync_command(args)
    except (InvalidInput, InvalidOperation, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.command == "example":
        data = create_example_candidate().model_dump(mode="json")
        data_ranks = ",".join(str(r) for r in create_example_ranks())
        if args.pretty:
            print(json.dumps(data, indent=2))
        else:
            print(json.dumps(data))
        print(f"\n# ranks: {data_ranks}", file=sys.stderr)
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
