"""Heuristic spending insights."""

from finledger.insights.engine import InsightEngine, linear_trend, monthly_totals

__all__ = ["InsightEngine", "linear_trend", "monthly_totals"]
