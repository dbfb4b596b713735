"""
Tests for Descriptive Statistics
================================
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.data_preparation.stage3_basket_aggregation import BasketAggregationPipeline
from src.exploration.descriptive_statistics import (
    OTHER_SEGMENT,
    basket_summary,
    dataset_overview,
    purchase_method_split,
    retailer_expenditure,
    segment_shares,
)


def _segment_rows(spend_by_segment):
    return [
        {'household_id': 'A', 'purchase_date': '2019-01-07', 'retailer': '1',
         'segment': segment, 'value_sales': value}
        for segment, value in spend_by_segment
    ]


class TestSegmentShares:

    def test_shares_sum_to_100(self, mini_clean_panel):
        shares = segment_shares(mini_clean_panel, top_n=5)
        assert shares['share_pct'].sum() == pytest.approx(100.0)

    def test_top_n_plus_other(self, make_clean_panel):
        clean = make_clean_panel(_segment_rows([
            ('Bakery', 500.0), ('Frozen', 100.0), ('Pantry', 300.0),
            ('Beverages', 50.0), ('Frozen', 100.0),
        ]))
        shares = segment_shares(clean, top_n=2)

        assert shares['segment'].tolist() == ['Bakery', 'Pantry', OTHER_SEGMENT]
        assert shares['expenditure'].tolist() == [500.0, 300.0, 250.0]
        assert shares['expenditure_eur'].tolist() == [5.0, 3.0, 2.5]

    def test_no_other_when_few_segments(self, make_clean_panel):
        clean = make_clean_panel(_segment_rows([('Bakery', 500.0), ('Frozen', 100.0)]))
        shares = segment_shares(clean, top_n=5)
        assert OTHER_SEGMENT not in shares['segment'].tolist()

    def test_zero_expenditure_gives_zero_shares(self, make_clean_panel):
        clean = make_clean_panel(_segment_rows([('Bakery', 0.0), ('Frozen', float('nan'))]))
        shares = segment_shares(clean, top_n=5)

        assert shares['segment'].tolist() == ['Bakery', 'Frozen']
        assert shares['share_pct'].tolist() == [0.0, 0.0]

    def test_ties_keep_first_appearance(self, make_clean_panel):
        clean = make_clean_panel(_segment_rows([
            ('Pantry', 200.0), ('Bakery', 200.0), ('Frozen', 200.0), ('Beverages', 900.0),
        ]))
        shares = segment_shares(clean, top_n=3)
        assert shares['segment'].tolist() == ['Beverages', 'Pantry', 'Bakery', OTHER_SEGMENT]


class TestRetailerExpenditure:

    def test_ordered_largest_first(self, make_clean_panel):
        clean = make_clean_panel([
            {'household_id': 'A', 'purchase_date': '2019-01-07', 'retailer': '1', 'value_sales': 100.0},
            {'household_id': 'B', 'purchase_date': '2019-01-07', 'retailer': '2', 'value_sales': 300.0},
            {'household_id': 'C', 'purchase_date': '2019-01-08', 'retailer': '2', 'value_sales': 100.0},
        ])
        retailers = retailer_expenditure(clean)

        assert retailers['retailer'].tolist() == ['2', '1']
        assert retailers['expenditure_eur'].tolist() == [4.0, 1.0]
        assert retailers['households'].tolist() == [2, 1]
        assert retailers['share_pct'].tolist() == [80.0, 20.0]


class TestOverviewAndSummaries:

    def test_dataset_overview(self, mini_clean_panel):
        baskets = BasketAggregationPipeline().run(mini_clean_panel)
        overview = dataset_overview(mini_clean_panel, baskets)

        assert overview['purchase_rows'] == len(mini_clean_panel)
        assert overview['households'] == mini_clean_panel['household_id'].nunique()
        assert overview['baskets'] == len(baskets)
        assert overview['first_purchase'] == '2019-01-01'
        assert overview['total_expenditure_eur'] == pytest.approx(mini_clean_panel['value_sales'].sum() / 100)

    def test_basket_summary(self, mini_clean_panel):
        baskets = BasketAggregationPipeline().run(mini_clean_panel)

        overall = basket_summary(baskets)
        assert len(overall) == 1
        assert overall['baskets'].iloc[0] == len(baskets)

        by_retailer = basket_summary(baskets, by='retailer')
        assert by_retailer['baskets'].sum() == len(baskets)
        assert 'retailer' in by_retailer.columns

    def test_purchase_method_split(self, mini_clean_panel):
        split = purchase_method_split(mini_clean_panel)
        assert set(split['purchase_method']) == {'offline', 'online'}
        assert split['share_pct'].sum() == pytest.approx(100.0)
