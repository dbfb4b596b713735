"""
Tests for the Exploration Report
================================
"""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.data_preparation.stage3_basket_aggregation import BasketAggregationPipeline
from src.exploration.charts import plot_retailer_sales, plot_segment_shares
from src.exploration.descriptive_statistics import retailer_expenditure, segment_shares
from src.exploration.report import ExplorationReport, markdown_table


@pytest.fixture(scope="module")
def mini_baskets(mini_clean_panel):
    return BasketAggregationPipeline().run(mini_clean_panel)


class TestMarkdownTable:

    def test_layout(self):
        df = pd.DataFrame({'segment': ['Bakery', 'Other'], 'share_pct': [61.234, 38.766]})
        lines = markdown_table(df).split('\n')

        assert lines[0] == '| segment | share_pct |'
        assert lines[1] == '| --- | --- |'
        assert lines[2] == '| Bakery | 61.23 |'

    def test_missing_and_integers(self):
        df = pd.DataFrame({'n': pd.array([1200, None], dtype='Int64'), 'x': [np.nan, 1.0]})
        lines = markdown_table(df).split('\n')

        assert lines[2] == '| 1,200 |  |'
        assert lines[3] == '|  | 1.00 |'


class TestCharts:

    def test_retailer_chart_written(self, mini_clean_panel, temp_dir):
        path = temp_dir / 'retailer_sales.png'
        fig = plot_retailer_sales(retailer_expenditure(mini_clean_panel), output_path=path)

        assert path.exists()
        assert len(fig.axes[0].patches) == mini_clean_panel['retailer'].nunique()

    def test_segment_chart_written(self, mini_clean_panel, temp_dir):
        path = temp_dir / 'segment_shares.png'
        plot_segment_shares(segment_shares(mini_clean_panel, top_n=3), output_path=path)
        assert path.exists()


class TestExplorationReport:

    def test_build(self, mini_clean_panel, mini_baskets, temp_dir):
        report = ExplorationReport(temp_dir / 'output', top_n_segments=3)
        path = report.build(mini_clean_panel, mini_baskets)

        text = path.read_text(encoding='utf-8')
        assert path.name == 'report.md'
        assert '## Expenditure by retailer' in text
        assert '(top 3 + Other)' in text
        assert '![Total value sales per retailer](retailer_sales.png)' in text
        assert (temp_dir / 'output' / 'retailer_sales.png').exists()
        assert (temp_dir / 'output' / 'segment_shares.png').exists()
        assert (temp_dir / 'output' / 'tables' / 'segment_shares.csv').exists()
        assert len(report.tables['segment_shares']) == 4

    def test_build_without_spend_skips_charts(self, make_clean_panel, temp_dir):
        clean = make_clean_panel([
            {'household_id': 'A', 'purchase_date': '2019-01-07', 'retailer': '1', 'value_sales': np.nan},
        ])
        baskets = BasketAggregationPipeline().run(clean)

        path = ExplorationReport(temp_dir).build(clean, baskets)

        assert path.exists()
        assert not (temp_dir / 'retailer_sales.png').exists()
        assert '![' not in path.read_text(encoding='utf-8')
