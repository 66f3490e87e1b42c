"""Pure chart computation package for eventReports.

This package resolves formula variables, evaluates chart element formulas,
computes chart results and formats them for display. It operates on in-memory
inputs and returns DTOs; it must not import Django or perform any database I/O.
"""

from .chart_engine import compute_chart, compute_charts

__all__ = ["compute_chart", "compute_charts"]
