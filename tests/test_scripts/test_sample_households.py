"""
Tests for the household sampling script
=======================================
"""

from collections import Counter
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'scripts'))

from sample_households import count_household_activity, extract_household_rows, get_top_households
from src.data_preparation.schema import RAW_SCHEMA


class TestSampleHouseholds:

    def test_counts_match_panel(self, mini_raw_panel, temp_dir):
        path = temp_dir / 'panel.csv'
        mini_raw_panel.to_csv(path, index=False)

        counts = count_household_activity(path, chunk_size=50)

        assert sum(counts.values()) == len(mini_raw_panel)
        assert counts == Counter(mini_raw_panel['household_id'])

    def test_top_households(self):
        counts = Counter({'A': 5, 'B': 9, 'C': 1})
        assert get_top_households(counts, 2) == {'A', 'B'}

    def test_extract_keeps_all_rows_of_selected(self, mini_raw_panel, temp_dir):
        source = temp_dir / 'panel.csv'
        output = temp_dir / 'sample.csv'
        mini_raw_panel.to_csv(source, index=False)
        targets = set(mini_raw_panel['household_id'].unique()[:3])

        n = extract_household_rows(source, output, targets, chunk_size=40)

        sample = RAW_SCHEMA.read_csv(output)
        expected = mini_raw_panel['household_id'].isin(targets).sum()
        assert n == expected
        assert len(sample) == expected
        assert set(sample['household_id']) == targets

    def test_extract_empty_selection_writes_header(self, mini_raw_panel, temp_dir):
        source = temp_dir / 'panel.csv'
        output = temp_dir / 'sample.csv'
        mini_raw_panel.to_csv(source, index=False)

        assert extract_household_rows(source, output, set(), chunk_size=100) == 0
        assert len(RAW_SCHEMA.read_csv(output)) == 0
