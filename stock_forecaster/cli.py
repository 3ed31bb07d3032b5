"""
Stock Forecaster — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Open the SQLite store (schema applied idempotently).
  4. Call ``InventoryService`` / ``TrendAnalyzer`` / ``RecommendationEngine``.
  5. Report result to stdout.

Exit codes:
  0  success
  1  invalid input, unknown product, or a rejected stock movement
  2  store failure (details are in the log, not on the console)

Install and run::

    pip install -e .
    stock-forecaster --help
    stock-forecaster init-db
    stock-forecaster add-product --name "Widget" --price 10 --min 5 --max 100 --initial-stock 20
    stock-forecaster stock-out <product-id> 3 --reason "Order #42"
    stock-forecaster analyze <product-id>
    stock-forecaster recommend --output-dir data/outputs/recommendations
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

import typer

from stock_forecaster.exceptions import InvalidArgumentError, NotFoundError, StoreError

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="stock-forecaster",
    help="Stock Forecaster — inventory ledger, stockout forecasting and reorder recommendations.",
    add_completion=False,
)

_CONFIG_OPTION_HELP = "Path to TOML config file."


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from stock_forecaster.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from stock_forecaster.utils.logging import configure_logging
    configure_logging(config.logging)


@contextmanager
def _open_store(config, db_path: Optional[str] = None) -> Generator:
    """Yield an ``InventoryStore`` over the configured database.

    Repositories already wrap statement errors; a raw ``sqlite3.Error`` here
    comes from opening, migrating or committing and is reported the same way.
    """
    from stock_forecaster.db.connection import get_connection
    from stock_forecaster.db.schema import apply_schema
    from stock_forecaster.db.store import InventoryStore

    target = db_path or config.database.db_path
    try:
        with get_connection(
            target,
            wal_mode=config.database.wal_mode,
            busy_timeout_ms=config.database.busy_timeout_ms,
        ) as conn:
            apply_schema(conn)
            yield InventoryStore(conn)
    except sqlite3.Error as exc:
        logger.error("Cannot use database %s: %s", target, exc, extra={"operation": "open_store"})
        raise StoreError("open_store") from exc


@contextmanager
def _cli_errors() -> Generator[None, None, None]:
    """Map the error taxonomy onto console messages and exit codes."""
    try:
        yield
    except (InvalidArgumentError, NotFoundError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc} See the log for details.", err=True)
        raise typer.Exit(code=2)


def _setup(config_path: Optional[str]):
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    return config


def _echo_product(product) -> None:
    flag = " [LOW]" if product.is_low_stock() else ""
    typer.echo(
        f"  {product.product_id} | {product.name} | {product.category} | "
        f"stock={product.current_stock} (min {product.minimum_stock}, "
        f"max {product.maximum_stock}) | price={product.price:.2f}{flag}"
    )


# ── Setup commands ────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    """
    from stock_forecaster.db.schema import ALL_TABLE_NAMES

    config = _setup(config_path)
    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with _cli_errors(), _open_store(config, target_path) as store:
        n_products = store.products.count()

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Products: {n_products}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Lookback days:    {config.forecast.lookback_days}")
    typer.echo(f"  Max workers:      {config.recommendations.max_workers}")
    typer.echo(f"  Write retries:    {config.inventory.max_write_retries}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


# ── Product commands ──────────────────────────────────────────────────────────

@app.command("add-product")
def add_product(
    name: str = typer.Option(..., "--name", help="Product name."),
    price: float = typer.Option(..., "--price", help="Unit retail price."),
    minimum_stock: int = typer.Option(..., "--min", help="Low-stock threshold."),
    maximum_stock: int = typer.Option(..., "--max", help="Stock capacity."),
    description: str = typer.Option("", "--description", help="Free-text description."),
    category: Optional[str] = typer.Option(None, "--category", help="Category label."),
    initial_stock: int = typer.Option(0, "--initial-stock", help="Units on hand at creation."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Create a product. A positive initial stock is recorded in the ledger."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        product = InventoryService(store, config).create_product(
            name=name,
            description=description,
            category=category,
            price=price,
            minimum_stock=minimum_stock,
            maximum_stock=maximum_stock,
            initial_stock=initial_stock,
        )

    typer.echo(f"Created product {product.product_id}")
    _echo_product(product)
    typer.echo("[OK] Product created.")


@app.command("list-products")
def list_products(
    category: Optional[str] = typer.Option(None, "--category", help="Only this category."),
    low_stock: bool = typer.Option(False, "--low-stock", help="Only products at or below minimum."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """List products, optionally filtered by category or low stock."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        service = InventoryService(store, config)
        if low_stock:
            products = service.get_low_stock_products()
        elif category:
            products = service.get_products_by_category(category)
        else:
            products = service.get_all_products()

    if category and low_stock:
        products = [p for p in products if p.category.lower() == category.lower()]

    typer.echo(f"{len(products)} product(s):")
    for product in products:
        _echo_product(product)


@app.command("update-product")
def update_product(
    product_id: str = typer.Argument(..., help="Product id."),
    name: str = typer.Option(..., "--name", help="New name."),
    price: float = typer.Option(..., "--price", help="New unit price."),
    description: str = typer.Option("", "--description", help="New description."),
    category: Optional[str] = typer.Option(
        None, "--category", help="New category (unchanged if omitted)."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Replace a product's name, description and price (and optionally its category)."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        service = InventoryService(store, config)
        product = service.update_product(product_id, name, description, price)
        if category is not None:
            product = service.update_category(product_id, category)

    _echo_product(product)
    typer.echo("[OK] Product updated.")


@app.command("set-limits")
def set_limits(
    product_id: str = typer.Argument(..., help="Product id."),
    minimum_stock: int = typer.Option(..., "--min", help="New low-stock threshold."),
    maximum_stock: int = typer.Option(..., "--max", help="New stock capacity."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Replace a product's minimum and maximum stock."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        product = InventoryService(store, config).update_stock_limits(
            product_id, minimum_stock, maximum_stock
        )

    _echo_product(product)
    typer.echo("[OK] Stock limits updated.")


@app.command("delete-product")
def delete_product(
    product_id: str = typer.Argument(..., help="Product id."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Delete a product together with its ledger."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        InventoryService(store, config).delete_product(product_id)

    typer.echo(f"[OK] Product {product_id} deleted.")


@app.command("categories")
def categories(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """List the distinct category labels."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        labels = InventoryService(store, config).get_all_categories()

    for label in labels:
        typer.echo(f"  {label}")


# ── Stock movement commands ───────────────────────────────────────────────────

@app.command("stock-in")
def stock_in(
    product_id: str = typer.Argument(..., help="Product id."),
    quantity: int = typer.Argument(..., help="Units received."),
    reason: Optional[str] = typer.Option(None, "--reason", help="Ledger reason."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Receive stock. Rejected (exit 1) if it would exceed the product's capacity."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        service = InventoryService(store, config)
        ok = service.add_stock(product_id, quantity, reason)
        product = service.get_product(product_id)

    if not ok:
        typer.echo(
            f"[REJECTED] Adding {quantity} units would exceed maximum stock "
            f"{product.maximum_stock} (current {product.current_stock}).",
            err=True,
        )
        raise typer.Exit(code=1)

    _echo_product(product)
    typer.echo("[OK] Stock added.")


@app.command("stock-out")
def stock_out(
    product_id: str = typer.Argument(..., help="Product id."),
    quantity: int = typer.Argument(..., help="Units issued."),
    reason: Optional[str] = typer.Option(None, "--reason", help="Ledger reason."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Issue stock. Rejected (exit 1) if fewer units are on hand."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        service = InventoryService(store, config)
        ok = service.remove_stock(product_id, quantity, reason)
        product = service.get_product(product_id)

    if not ok:
        typer.echo(
            f"[REJECTED] Insufficient stock: {product.current_stock} on hand, "
            f"{quantity} requested.",
            err=True,
        )
        raise typer.Exit(code=1)

    _echo_product(product)
    typer.echo("[OK] Stock removed.")


@app.command("transactions")
def transactions(
    product_id: Optional[str] = typer.Argument(
        None, help="Product id. Omit to show recent entries across all products."
    ),
    limit: int = typer.Option(50, "--limit", help="Maximum entries to show."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Show ledger entries, newest first."""
    from stock_forecaster.services.inventory import InventoryService

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        service = InventoryService(store, config)
        if product_id:
            entries = service.get_product_transactions(product_id)[:limit]
        else:
            entries = service.get_recent_transactions(limit)

    typer.echo(f"{len(entries)} ledger entr{'y' if len(entries) == 1 else 'ies'}:")
    for txn in entries:
        typer.echo(
            f"  {txn.transaction_date.isoformat()} | {txn.product_id} | "
            f"{txn.transaction_type.value:<8} | {txn.signed_quantity:+d} | {txn.reason}"
        )


# ── Forecasting commands ──────────────────────────────────────────────────────

@app.command("analyze")
def analyze(
    product_id: str = typer.Argument(..., help="Product id."),
    days_back: Optional[int] = typer.Option(
        None, "--days-back", help="Lookback window in days. Uses config default if omitted."
    ),
    show_trends: bool = typer.Option(False, "--trends", help="Print daily trend points."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Analyze consumption and forecast stockout for one product."""
    from stock_forecaster.forecasting.analyzer import TrendAnalyzer

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        analysis = TrendAnalyzer(store, config).analyze_stock_trends(product_id, days_back)

    typer.echo(f"Analysis for {analysis.product_name} ({analysis.product_id}) [{analysis.basis}]")
    typer.echo(f"  Average daily usage:  {analysis.average_daily_usage:.2f}")
    typer.echo(f"  Turnover rate:        {analysis.stock_turnover_rate:.4f}")
    typer.echo(f"  Days until stockout:  {analysis.days_until_stockout}")
    typer.echo(f"  Suggested order:      {analysis.suggested_order_quantity}")
    typer.echo(f"  Recommendation:       {analysis.recommendation}")
    if show_trends:
        for point in analysis.trends:
            typer.echo(
                f"    {point.date.isoformat()} | level={point.stock_level} | "
                f"change={point.daily_change:+d} | {point.reason}"
            )


@app.command("predict")
def predict(
    product_id: str = typer.Argument(..., help="Product id."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Print optimal stock level, reorder quantity and next restock date."""
    from stock_forecaster.forecasting.analyzer import TrendAnalyzer

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        analyzer = TrendAnalyzer(store, config)
        optimal = analyzer.predict_optimal_stock_level(product_id)
        quantity = analyzer.predict_reorder_quantity(product_id)
        restock = analyzer.predict_next_restock_date(product_id)

    typer.echo(f"Predictions for {product_id}")
    typer.echo(f"  Optimal stock level:  {optimal}")
    typer.echo(f"  Reorder quantity:     {quantity}")
    typer.echo(f"  Next restock date:    {restock.date().isoformat()}")


@app.command("recommend")
def recommend(
    output_dir: Optional[str] = typer.Option(
        None,
        "--output-dir",
        help="Directory for CSV/JSON reports. Uses config output.recommendation_dir if omitted.",
    ),
    no_report: bool = typer.Option(
        False, "--no-report", help="Print recommendations without writing report files."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Build reorder recommendations for every low-stock product."""
    from stock_forecaster.recommendations.engine import RecommendationEngine
    from stock_forecaster.recommendations.reporter import (
        write_recommendation_csv,
        write_recommendation_json,
    )

    config = _setup(config_path)
    with _cli_errors(), _open_store(config) as store:
        recommendations = RecommendationEngine(store, config=config).get_stock_recommendations()

    typer.echo(f"{len(recommendations)} recommendation(s):")
    for rec in recommendations:
        marker = " (fallback)" if rec.is_fallback else ""
        typer.echo(
            f"  [{rec.priority.label:<8}] {rec.product_name} | order {rec.recommended_order_quantity} "
            f"| ~{rec.estimated_cost:.2f} | {rec.reason}{marker}"
        )

    if no_report:
        return

    target = Path(output_dir or config.output.recommendation_dir)
    csv_path = write_recommendation_csv(recommendations, target)
    json_path = write_recommendation_json(recommendations, target)
    typer.echo(f"  CSV:  {csv_path}")
    typer.echo(f"  JSON: {json_path}")
    typer.echo("[OK] Recommendations written.")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
