"""
Tests for stock_forecaster/cli.py.

Every command runs against a throwaway SQLite file configured through a
TOML file in tmp_path. Logging setup is stubbed out so the runner's
captured stdout is not left attached to the root logger.

What we test
------------
  - init-db and validate-config succeed on a fresh config.
  - Product lifecycle: add, list, update, set-limits, categories, delete.
  - stock-in / stock-out: accepted moves print [OK]; rejected moves exit 1.
  - Invalid quantities and unknown ids exit 1 with an [ERROR] line.
  - analyze / predict print the forecast.
  - recommend prints the batch and writes CSV + JSON reports.
  - An unusable database exits 2 without leaking driver details.
"""

from __future__ import annotations

import json
import re

import pytest
from typer.testing import CliRunner

from stock_forecaster import cli
from stock_forecaster.config import ENV_PREFIX

runner = CliRunner()

_CREATED = re.compile(r"Created product (\S+)")


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch):
    monkeypatch.setattr(cli, "_configure_logging", lambda config: None)
    monkeypatch.delenv(f"{ENV_PREFIX}DB_PATH", raising=False)


def _write_config(path, db_path, report_dir) -> str:
    path.write_text(
        "[database]\n"
        f'db_path = "{db_path.as_posix()}"\n'
        "wal_mode = false\n"
        "\n"
        "[logging]\n"
        'level = "WARNING"\n'
        'log_file = ""\n'
        "\n"
        "[recommendations]\n"
        "max_workers = 2\n"
        "\n"
        "[output]\n"
        f'recommendation_dir = "{report_dir.as_posix()}"\n',
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def cfg(tmp_path) -> str:
    return _write_config(tmp_path / "cli.toml", tmp_path / "db" / "cli.db", tmp_path / "reports")


def _run(cfg: str, *args: str):
    return runner.invoke(cli.app, [*args, "--config", cfg])


def _add_widget(cfg: str, **overrides) -> str:
    values = {"name": "Widget", "price": "10", "min": "5", "max": "50", "initial-stock": "25"}
    values.update(overrides)
    args = ["add-product"]
    for key, val in values.items():
        args += [f"--{key}", val]
    result = _run(cfg, *args)
    assert result.exit_code == 0, result.output
    return _CREATED.search(result.output).group(1)


class TestSetupCommands:
    def test_init_db(self, cfg, tmp_path):
        result = _run(cfg, "init-db")
        assert result.exit_code == 0, result.output
        assert "[OK] Database ready." in result.output
        assert (tmp_path / "db" / "cli.db").exists()

    def test_init_db_path_override(self, cfg, tmp_path):
        other = tmp_path / "elsewhere" / "other.db"
        result = _run(cfg, "init-db", "--db-path", str(other))
        assert result.exit_code == 0, result.output
        assert other.exists()

    def test_validate_config_full(self, cfg):
        result = _run(cfg, "validate-config", "--full")
        assert result.exit_code == 0, result.output
        assert "Max workers:      2" in result.output
        assert '"max_workers": 2' in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(cli.app, ["validate-config", "--config", str(tmp_path / "no.toml")])
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


class TestProductCommands:
    def test_add_and_list(self, cfg):
        product_id = _add_widget(cfg, category="Hardware")
        result = _run(cfg, "list-products")
        assert result.exit_code == 0, result.output
        assert "1 product(s):" in result.output
        assert product_id in result.output
        assert "stock=25" in result.output

    def test_add_invalid_limits(self, cfg):
        result = _run(cfg, "add-product", "--name", "Bad", "--price", "1", "--min", "9", "--max", "3")
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_update_limits_and_categories(self, cfg):
        product_id = _add_widget(cfg)
        result = _run(
            cfg, "update-product", product_id, "--name", "Widget XL", "--price", "12.5",
            "--category", "Tools",
        )
        assert result.exit_code == 0, result.output
        assert "Widget XL | Tools" in result.output

        result = _run(cfg, "set-limits", product_id, "--min", "30", "--max", "60")
        assert result.exit_code == 0, result.output
        assert "[LOW]" in result.output

        result = _run(cfg, "categories")
        assert result.output.split() == ["Tools"]

        result = _run(cfg, "list-products", "--low-stock", "--category", "tools")
        assert "1 product(s):" in result.output

    def test_delete(self, cfg):
        product_id = _add_widget(cfg)
        assert _run(cfg, "delete-product", product_id).exit_code == 0
        assert "0 product(s):" in _run(cfg, "list-products").output
        result = _run(cfg, "delete-product", product_id)
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


class TestStockCommands:
    def test_stock_out_and_ledger(self, cfg):
        product_id = _add_widget(cfg)
        result = _run(cfg, "stock-out", product_id, "22", "--reason", "Order 42")
        assert result.exit_code == 0, result.output
        assert "stock=3" in result.output

        result = _run(cfg, "transactions", product_id)
        assert "2 ledger entries:" in result.output
        assert "-22 | Order 42" in result.output
        assert "+25 | Initial stock" in result.output

    def test_stock_in_over_capacity_rejected(self, cfg):
        product_id = _add_widget(cfg)
        result = _run(cfg, "stock-in", product_id, "100")
        assert result.exit_code == 1
        assert "[REJECTED]" in result.output
        assert "1 ledger entry:" in _run(cfg, "transactions").output

    def test_stock_out_insufficient_rejected(self, cfg):
        product_id = _add_widget(cfg)
        result = _run(cfg, "stock-out", product_id, "26")
        assert result.exit_code == 1
        assert "Insufficient stock" in result.output

    def test_invalid_quantity(self, cfg):
        product_id = _add_widget(cfg)
        result = _run(cfg, "stock-in", product_id, "0")
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_unknown_product(self, cfg):
        result = _run(cfg, "stock-out", "missing", "1")
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


class TestForecastCommands:
    def test_analyze_and_predict(self, cfg):
        product_id = _add_widget(cfg)
        _run(cfg, "stock-out", product_id, "10")

        result = _run(cfg, "analyze", product_id, "--trends")
        assert result.exit_code == 0, result.output
        assert "Analysis for Widget" in result.output
        assert "level=" in result.output

        result = _run(cfg, "predict", product_id)
        assert result.exit_code == 0, result.output
        assert "Optimal stock level:" in result.output
        assert "Next restock date:" in result.output

    def test_analyze_invalid_window(self, cfg):
        product_id = _add_widget(cfg)
        result = _run(cfg, "analyze", product_id, "--days-back", "0")
        assert result.exit_code == 1

    def test_analyze_unknown(self, cfg):
        assert _run(cfg, "analyze", "missing").exit_code == 1

    def test_recommend_writes_reports(self, cfg, tmp_path):
        low_id = _add_widget(cfg, name="Low", **{"initial-stock": "3"})
        _add_widget(cfg, name="Healthy")

        result = _run(cfg, "recommend")
        assert result.exit_code == 0, result.output
        assert "1 recommendation(s):" in result.output
        assert "Low" in result.output

        (json_path,) = (tmp_path / "reports").glob("recommendations_*.json")
        payload = json.loads(json_path.read_text(encoding="utf-8"))
        assert [r["product_id"] for r in payload["recommendations"]] == [low_id]
        assert list((tmp_path / "reports").glob("recommendations_*.csv"))

    def test_recommend_no_report(self, cfg, tmp_path):
        _add_widget(cfg, **{"initial-stock": "0"})
        result = _run(cfg, "recommend", "--no-report")
        assert result.exit_code == 0, result.output
        assert "[Critical" in result.output
        assert not (tmp_path / "reports").exists()


class TestStoreFailure:
    def test_unusable_database_exits_2(self, tmp_path):
        # A directory cannot be opened as a database file.
        cfg = _write_config(tmp_path / "broken.toml", tmp_path, tmp_path / "reports")
        result = runner.invoke(cli.app, ["list-products", "--config", cfg])
        assert result.exit_code == 2
        assert "See the log for details." in result.output
        assert "sqlite" not in result.output.lower()
