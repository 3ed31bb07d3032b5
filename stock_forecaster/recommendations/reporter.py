"""
Recommendation report writer: CSV and JSON output for a recommendation batch.

Pure I/O. No store access: both writers consume the list returned by
``RecommendationEngine.get_stock_recommendations()`` in its existing order
(most urgent first).

Output files
------------
  data/outputs/recommendations/
    recommendations_{date}.csv   -- one row per product
    recommendations_{date}.json  -- same data plus a per-priority summary
"""

from __future__ import annotations

import csv
import json
import logging
from collections import Counter
from datetime import date
from pathlib import Path

from stock_forecaster.models.recommendation import RecommendationPriority, StockRecommendation

logger = logging.getLogger(__name__)

REPORT_SCHEMA_VERSION = "v1"

_CSV_FIELDS = [
    "rank", "priority", "product_id", "product_name", "category",
    "current_stock", "minimum_stock", "recommended_order_quantity",
    "estimated_cost", "days_until_stockout", "predicted_restock_date",
    "is_fallback", "reason",
]


def write_recommendation_csv(
    recommendations: list[StockRecommendation],
    output_dir: Path,
    run_date: date | None = None,
) -> Path:
    """Write a recommendation batch to ``recommendations_{date}.csv``.

    Args:
        recommendations: Batch in the order it should be ranked.
        output_dir:      Target directory (created if missing).
        run_date:        Date label for the filename. Defaults to today.

    Returns:
        Path to the written CSV file.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / f"recommendations_{run_date}.csv"

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=_CSV_FIELDS)
        writer.writeheader()
        for rank, rec in enumerate(recommendations, start=1):
            writer.writerow({"rank": rank, **_row(rec)})

    logger.info("Recommendation CSV written: %s (%d rows)", csv_path, len(recommendations))
    return csv_path


def write_recommendation_json(
    recommendations: list[StockRecommendation],
    output_dir: Path,
    run_date: date | None = None,
) -> Path:
    """Write a recommendation batch to ``recommendations_{date}.json``.

    The payload carries a ``summary`` with the count per priority label and
    the total estimated cost, followed by the ranked items.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / f"recommendations_{run_date}.json"

    counts = Counter(rec.priority.label for rec in recommendations)
    payload: dict = {
        "schema_version": REPORT_SCHEMA_VERSION,
        "generated_at":   run_date.isoformat(),
        "summary": {
            "total":          len(recommendations),
            "fallback":       sum(1 for r in recommendations if r.is_fallback),
            "by_priority":    {p.label: counts.get(p.label, 0) for p in RecommendationPriority},
            "estimated_cost": round(sum(r.estimated_cost for r in recommendations), 2),
        },
        "recommendations": [
            {"rank": rank, **_row(rec)}
            for rank, rec in enumerate(recommendations, start=1)
        ],
    }

    json_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    logger.info("Recommendation JSON written: %s", json_path)
    return json_path


def _row(rec: StockRecommendation) -> dict:
    return {
        "priority":                   rec.priority.label,
        "product_id":                 rec.product_id,
        "product_name":               rec.product_name,
        "category":                   rec.category,
        "current_stock":              rec.current_stock,
        "minimum_stock":              rec.minimum_stock,
        "recommended_order_quantity": rec.recommended_order_quantity,
        "estimated_cost":             rec.estimated_cost,
        "days_until_stockout":        rec.days_until_stockout,
        "predicted_restock_date":     rec.predicted_restock_date.isoformat(),
        "is_fallback":                rec.is_fallback,
        "reason":                     rec.reason,
    }
