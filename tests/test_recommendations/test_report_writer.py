"""
Tests for stock_forecaster/recommendations/reporter.py.

What we test
------------
  - CSV: header, one row per recommendation, rank follows input order,
    file name carries the run date, output directory is created.
  - JSON: schema version, per-priority summary with zero-filled tiers,
    total cost, ranked items.
  - Empty batches still produce valid files.
"""

from __future__ import annotations

import csv
import json
from datetime import date, datetime, timezone

from stock_forecaster.models.recommendation import RecommendationPriority as P
from stock_forecaster.models.recommendation import StockRecommendation
from stock_forecaster.recommendations.reporter import (
    REPORT_SCHEMA_VERSION,
    write_recommendation_csv,
    write_recommendation_json,
)

_RUN_DATE = date(2026, 3, 15)
_RESTOCK = datetime(2026, 3, 16, 12, 0, tzinfo=timezone.utc)


def _rec(name: str, priority: P, cost: float, is_fallback: bool = False) -> StockRecommendation:
    return StockRecommendation(
        product_id=f"id-{name}",
        product_name=name,
        category="Hardware",
        current_stock=1,
        minimum_stock=5,
        recommended_order_quantity=10,
        predicted_restock_date=_RESTOCK,
        priority=priority,
        reason=f"{name} reason, with a comma",
        estimated_cost=cost,
        days_until_stockout=1,
        is_fallback=is_fallback,
    )


def _batch() -> list[StockRecommendation]:
    return [
        _rec("Empty", P.CRITICAL, 70.0),
        _rec("Fast", P.HIGH, 336.0),
        _rec("Slow", P.HIGH, 12.25, is_fallback=True),
    ]


class TestRecommendationCsv:
    def test_rows_and_ranks(self, tmp_path):
        out_dir = tmp_path / "reports" / "nested"
        path = write_recommendation_csv(_batch(), out_dir, run_date=_RUN_DATE)

        assert path == out_dir / "recommendations_2026-03-15.csv"
        with path.open(encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["rank"] for r in rows] == ["1", "2", "3"]
        assert [r["product_name"] for r in rows] == ["Empty", "Fast", "Slow"]
        assert rows[0]["priority"] == "Critical"
        assert rows[0]["reason"] == "Empty reason, with a comma"
        assert rows[2]["is_fallback"] == "True"
        assert rows[1]["predicted_restock_date"] == _RESTOCK.isoformat()

    def test_empty_batch_writes_header_only(self, tmp_path):
        path = write_recommendation_csv([], tmp_path, run_date=_RUN_DATE)
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("rank,priority,product_id")


class TestRecommendationJson:
    def test_payload(self, tmp_path):
        path = write_recommendation_json(_batch(), tmp_path, run_date=_RUN_DATE)
        assert path.name == "recommendations_2026-03-15.json"

        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["schema_version"] == REPORT_SCHEMA_VERSION
        assert payload["generated_at"] == "2026-03-15"
        summary = payload["summary"]
        assert summary["total"] == 3
        assert summary["fallback"] == 1
        assert summary["by_priority"] == {"Critical": 1, "High": 2, "Medium": 0, "Low": 0}
        assert summary["estimated_cost"] == 418.25
        items = payload["recommendations"]
        assert [i["rank"] for i in items] == [1, 2, 3]
        assert items[1]["product_id"] == "id-Fast"
        assert items[1]["recommended_order_quantity"] == 10

    def test_empty_batch(self, tmp_path):
        path = write_recommendation_json([], tmp_path, run_date=_RUN_DATE)
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["summary"]["total"] == 0
        assert payload["summary"]["estimated_cost"] == 0
        assert payload["recommendations"] == []
