# pulse_feed/cli/runner.py

"""Headless CLI runner for retailer lookups and batch enrichment."""

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from pulse_feed.ai.payload_schema import parse_products
from pulse_feed.errors import PulseFeedError
from pulse_feed.metrics.collector import MetricsCollector
from pulse_feed.models.product import ProductContent
from pulse_feed.models.retailer_listing import RetailerListing
from pulse_feed.services.enrichment_service import EnrichmentService

logger = logging.getLogger("pulse_feed.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _listings_to_dicts(
    listings: list[RetailerListing],
) -> list[dict[str, object]]:
    """Serialise listings to plain dicts for JSON output."""
    return [
        {
            "label": listing.label,
            "url": listing.url,
            "priceHint": listing.price_hint,
            "trusted": listing.trusted,
        }
        for listing in listings
    ]


def _products_to_dicts(
    products: list[ProductContent],
) -> list[dict[str, Any]]:
    """Serialise products to camelCase dicts for JSON output."""
    rows: list[dict[str, Any]] = []
    for p in products:
        rows.append(
            {
                "id": p.id,
                "title": p.title,
                "summary": p.summary,
                "whatItIs": p.what_it_is,
                "whyUseful": p.why_useful,
                "priceRange": asdict(p.price_range),
                "pros": p.pros,
                "cons": p.cons,
                "tags": [asdict(t) for t in p.tags],
                "buyLinks": [
                    {
                        "label": b.label,
                        "url": b.url,
                        "priceHint": b.price_hint,
                        "trusted": b.trusted,
                    }
                    for b in p.buy_links
                ],
                "mediaUrl": p.media_url,
                "noveltyScore": p.novelty_score,
                "generatedAt": p.generated_at,
                "source": p.source,
                "retailLookupConfidence": p.retail_lookup_confidence,
            }
        )
    return rows


def _print_listings_table(
    query: str, listings: list[RetailerListing],
) -> None:
    """Render a Rich table of retailer listings to stdout."""
    table = Table(
        title=f"Retailer listings: {query}",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Retailer", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Free shipping", justify="center")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, listing in enumerate(listings, 1):
        table.add_row(
            str(idx),
            listing.label,
            listing.price_hint or "—",
            "yes" if listing.trusted else "no",
            listing.url,
        )

    Console().print(table)


def _print_products_table(products: list[ProductContent]) -> None:
    """Render a Rich table of enriched products to stdout."""
    table = Table(
        title="Enriched products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=50)
    table.add_column("Source", style="magenta")
    table.add_column("Buy links", overflow="fold")

    for idx, p in enumerate(products, 1):
        links = "\n".join(
            f"{b.label}: {b.url}" for b in p.buy_links
        )
        table.add_row(str(idx), p.title[:50], p.source, links or "—")

    Console().print(table)


def print_metrics(metrics: MetricsCollector) -> None:
    """Render the metrics snapshot as a Rich table on stderr."""
    table = Table(
        title="Metrics",
        show_lines=False,
        title_style="bold cyan",
    )
    table.add_column("Event", style="bold")
    table.add_column("Count", justify="right")
    table.add_column("Last sample", style="dim")

    for event in metrics.snapshot()["events"]:
        table.add_row(
            event["event"],
            str(event["count"]),
            json.dumps(event["sample"]) if event["sample"] else "—",
        )

    _err.print(table)


def _write_json(data: object) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


async def cli_lookup(
    query: str,
    limit: int,
    output_format: str,
    service: EnrichmentService,
) -> int:
    """Run one retailer lookup and return an exit code (0=ok, 1=fail)."""
    _err.print(f"[bold]Looking up:[/bold] {query}")
    try:
        listings = await service.client.fetch_listings(query, limit)
    except PulseFeedError as exc:
        logger.error("Lookup failed: %s", exc)
        _err.print(f"[red]Lookup failed ({exc.code}): {exc}[/red]")
        return 1

    _err.print(f"[green]✓ {len(listings)} listings[/green]")
    if output_format == "table":
        _print_listings_table(query, listings)
    else:
        _write_json(_listings_to_dicts(listings))
    return 0


async def cli_enrich(
    path: str,
    output_format: str,
    service: EnrichmentService,
) -> int:
    """Enrich a JSON file of products and return an exit code."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _err.print(f"[red]Cannot read {path}: {exc}[/red]")
        return 1

    try:
        products = parse_products(raw)
        enriched = await service.enrich(products)
    except PulseFeedError as exc:
        logger.error("Enrichment failed: %s", exc)
        _err.print(f"[red]Enrichment failed ({exc.code}): {exc}[/red]")
        return 1

    report = service.last_report
    _err.print(
        f"[green]✓ {report.enriched}/{len(enriched)} products enriched"
        f" via {report.lookups} lookups[/green]"
    )
    for error_msg in report.errors:
        _err.print(f"[yellow]Lookup failed: {error_msg}[/yellow]")

    if output_format == "table":
        _print_products_table(enriched)
    else:
        _write_json(_products_to_dicts(enriched))
    return 0
