# shelfsync/cli/runner.py

"""Headless CLI front-end: drives the catalog store through its intents."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from shelfsync.models.product import Product
from shelfsync.services.catalog_store import CatalogStore, StoreState

logger = logging.getLogger("shelfsync.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _products_to_dicts(products: tuple[Product, ...] | list[Product]) -> list[dict[str, object]]:
    """Serialise a product list to plain dicts for JSON output."""
    return [p.to_dict() for p in products]


def _print_table(
    products: tuple[Product, ...] | list[Product],
    title: str = "Catalog",
    favorites: frozenset[int] = frozenset(),
) -> None:
    """Render a Rich table of products to stdout."""
    table = Table(
        title=title,
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=5)
    table.add_column("Title", max_width=60)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Rating", justify="center")
    table.add_column("Category", style="magenta")
    table.add_column("Fav", justify="center")

    for p in products:
        table.add_row(
            str(p.id),
            p.title[:60],
            f"${p.price:,.2f}",
            f"{p.rating.rate:.1f} ({p.rating.count})",
            p.category or "—",
            "♥" if p.id in favorites else "",
        )

    Console().print(table)


def _emit(
    products: tuple[Product, ...] | list[Product],
    output_format: str,
    title: str,
    favorites: frozenset[int] = frozenset(),
) -> None:
    if output_format == "table":
        _print_table(products, title, favorites)
    else:
        json.dump(
            _products_to_dicts(products),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")


def _report_status(state: StoreState) -> None:
    """Print offline/error banners for the current catalog state."""
    catalog = state.catalog
    if catalog.offline:
        synced = (
            catalog.last_synced_at.strftime("%Y-%m-%d %H:%M")
            if catalog.last_synced_at
            else "unknown"
        )
        _err.print(
            f"[yellow]Offline: showing cached catalog (synced {synced})[/yellow]"
        )
    if catalog.error:
        _err.print(f"[red]Error: {catalog.error}[/red]")


def _favorite_ids(state: StoreState) -> frozenset[int]:
    return frozenset(p.id for p in state.favorites)


async def cli_browse(
    store: CatalogStore,
    query: str,
    category: str | None,
    pages: int,
    output_format: str,
) -> int:
    """List the catalog window after applying filters and paging."""
    await store.start()
    store.set_search_query(query)
    store.set_selected_category(category)
    for _ in range(max(pages, 1) - 1):
        if not store.load_more_products():
            break

    state = store.state
    _report_status(state)
    catalog = state.catalog
    if catalog.error and not catalog.items:
        return 1

    _err.print(
        f"[green]✓ {catalog.visible_count} of "
        f"{len(catalog.filtered_items)} matching products"
        f" ({len(catalog.items)} in catalog)[/green]"
    )
    if catalog.has_more:
        _err.print("[dim]More available, raise --pages to see them[/dim]")
    _emit(catalog.visible_items, output_format, "Catalog", _favorite_ids(state))
    return 0


async def cli_categories(store: CatalogStore) -> int:
    """Print the known category labels."""
    await store.start()
    state = store.state
    _report_status(state)
    if not state.catalog.categories:
        _err.print("[yellow]No categories available.[/yellow]")
        return 1
    for category in state.catalog.categories:
        print(category)
    return 0


async def cli_show(store: CatalogStore, product_id: int, output_format: str) -> int:
    """Print a single product's details."""
    await store.start()
    product = await store.get_product(product_id)
    if product is None:
        _err.print(f"[red]Product {product_id} not found.[/red]")
        return 1
    if output_format == "table":
        _print_table([product], product.title[:40], _favorite_ids(store.state))
        _err.print(product.description)
    else:
        json.dump(product.to_dict(), sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
    return 0


async def cli_favorites(
    store: CatalogStore,
    action: str,
    product_id: int | None,
    output_format: str,
) -> int:
    """List, add or remove favorites."""
    if action == "list":
        favorites = await store.load_favorites()
        if not favorites:
            _err.print("[yellow]No favorites yet.[/yellow]")
        _emit(favorites, output_format, "Favorites", _favorite_ids(store.state))
        return 0

    if product_id is None:
        _err.print(f"[red]'{action}' needs a product id.[/red]")
        return 1

    if action == "remove":
        before = len(await store.load_favorites())
        after = await store.remove_favorite(product_id)
        if len(after) == before:
            _err.print(f"[dim]Product {product_id} was not a favorite.[/dim]")
        else:
            _err.print(f"[green]✓ Removed {product_id} from favorites[/green]")
        return 0

    await store.start()
    product = await store.get_product(product_id)
    if product is None:
        _err.print(f"[red]Product {product_id} not found.[/red]")
        return 1
    await store.add_favorite(product)
    _err.print(f"[green]♥ {product.title}[/green]")
    return 0


async def cli_refresh(store: CatalogStore) -> int:
    """Pull-to-refresh: re-fetch products and categories."""
    await store.start()
    await store.refresh()
    state = store.state
    _report_status(state)
    if state.catalog.error:
        return 1
    _err.print(
        f"[green]✓ {len(state.catalog.items)} products, "
        f"{len(state.catalog.categories)} categories[/green]"
    )
    return 0


async def run_health_check(store: CatalogStore) -> int:
    """Probe the catalog API and report reachability."""
    _err.print("[bold]Checking catalog connectivity...[/bold]")
    connected = await store.monitor.check()
    result = store.monitor.last_result

    table = Table(
        title="Catalog Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Endpoint", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    if result is not None:
        if result.status == "ok":
            status = "[green]✅ OK[/green]"
        elif result.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        else:
            status = "[red]❌ DOWN[/red]"
        latency = (
            f"{result.latency_ms:.0f}ms"
            if result.latency_ms > 0
            else "—"
        )
        table.add_row(result.url, status, latency, result.message)

    Console().print(table)
    return 0 if connected else 1
