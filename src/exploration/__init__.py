"""
Exploration Module
==================
Descriptive analysis of the prepared panel ahead of the online-adoption
difference-in-differences study.

Components:
- descriptive_statistics: overview counts, segment/retailer shares, basket means
- charts: retailer sales bar chart, segment share ring chart
- report: Markdown report bundling tables and charts

Usage:
    python -m src.exploration.run_report
"""

from .descriptive_statistics import (
    basket_summary,
    dataset_overview,
    purchase_method_split,
    retailer_expenditure,
    segment_shares,
)
from .charts import plot_retailer_sales, plot_segment_shares
from .report import ExplorationReport, markdown_table

__all__ = [
    # Statistics
    'dataset_overview',
    'segment_shares',
    'retailer_expenditure',
    'basket_summary',
    'purchase_method_split',
    # Charts
    'plot_retailer_sales',
    'plot_segment_shares',
    # Report
    'ExplorationReport',
    'markdown_table',
]
