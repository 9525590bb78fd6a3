# price_compare/cli/runner.py

"""Headless CLI runner, reuses the async orchestrator."""

import json
import logging
import sys
from typing import Any

from rich.console import Console

from price_compare.models.errors import (
    NoAllowedSources,
    SourceUnavailable,
    UnknownSource,
)
from price_compare.models.search_result import AggregatedResult
from price_compare.services.search_orchestrator import SearchOrchestrator

logger = logging.getLogger("price_compare.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _emit_json(payload: Any) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _print_summary(result: AggregatedResult) -> None:
    """Per-source status lines on stderr."""
    for source_id, outcome in result.per_source.items():
        if outcome.succeeded:
            _err.print(
                f"[green]✓ {source_id}[/green]: {outcome.count} products "
                f"[dim]({outcome.rejected_count} rejected, "
                f"{outcome.elapsed_ms}ms)[/dim]"
            )
        else:
            _err.print(
                f"[red]✗ {source_id}[/red]: {outcome.error_message} "
                f"[dim]({outcome.elapsed_ms}ms)[/dim]"
            )
    lowest = result.global_lowest_price
    if lowest is not None:
        _err.print(
            f"[bold]Lowest:[/bold] {lowest.currency} {lowest.price:,.2f} "
            f"on {lowest.source_id} [dim]{lowest.title[:60]}[/dim]"
        )


def _report_config_error(exc: Exception) -> int:
    _err.print(f"[red]{exc}[/red]")
    if isinstance(exc, UnknownSource):
        _err.print(f"[dim]Available: {', '.join(exc.available)}[/dim]")
    return 1


async def cli_search(
    query: str,
    limit: int,
    source: str | None,
    best_only: bool,
) -> int:
    """Run a headless search and return an exit code (0=ok, 1=fail)."""
    orchestrator = SearchOrchestrator()
    try:
        if source is not None:
            _err.print(
                f"[bold]Searching:[/bold] {query}  [dim]source={source}[/dim]"
            )
            products = await orchestrator.search_source_ranked(
                source, query, limit
            )
            _emit_json([p.to_dict() for p in products])
            if not products:
                _err.print("[yellow]No products found.[/yellow]")
                return 1
            return 0

        _err.print(
            f"[bold]Searching:[/bold] {query}  "
            f"[dim]sources={', '.join(orchestrator.list_sources())}[/dim]"
        )
        result = await orchestrator.search(query, limit, best_only)
        _print_summary(result)
        _emit_json(result.to_dict())
        if not result.total_result_count:
            _err.print("[yellow]No products found.[/yellow]")
            return 1
        return 0
    except (UnknownSource, NoAllowedSources) as exc:
        return _report_config_error(exc)
    except SourceUnavailable as exc:
        logger.error("Source search failed: %s", exc, exc_info=True)
        _err.print(f"[red]Error: {exc}[/red]")
        return 1
    finally:
        await orchestrator.close()


async def cli_details(source: str, url: str) -> int:
    """Fetch one product page and print it as JSON."""
    orchestrator = SearchOrchestrator()
    try:
        product = await orchestrator.get_product_details(source, url)
    except (UnknownSource, NoAllowedSources) as exc:
        return _report_config_error(exc)
    except SourceUnavailable as exc:
        logger.error("Product details failed: %s", exc, exc_info=True)
        _err.print(f"[red]Error: {exc}[/red]")
        return 1
    finally:
        await orchestrator.close()

    _emit_json(product.to_dict())
    return 0


def cli_list_sources() -> int:
    """Print the allowed source ids as a JSON list."""
    try:
        sources = SearchOrchestrator().list_sources()
    except NoAllowedSources as exc:
        return _report_config_error(exc)
    _emit_json(sources)
    return 0
