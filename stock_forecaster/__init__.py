"""Stock Forecaster — inventory ledger, stock trend analysis and reorder recommendations."""

__version__ = "0.1.0"
