"""
Pytest Configuration and Fixtures
==================================
Shared fixtures for the household panel tests.
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import tempfile
import shutil
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.data_preparation.schema import CLEAN_SCHEMA, RAW_SCHEMA
from src.data_preparation.stage2_data_cleaning import CATEGORY_SEGMENTS, PanelCleaningPipeline


@pytest.fixture(scope="session")
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def mini_raw_panel():
    """Generate a small synthetic raw panel (all columns as text)."""
    return generate_synthetic_panel(300)


@pytest.fixture(scope="session")
def mini_clean_panel(mini_raw_panel):
    """Clean version of mini_raw_panel."""
    return PanelCleaningPipeline().run(mini_raw_panel)


def generate_synthetic_panel(n_rows: int, seed: int = 42) -> pd.DataFrame:
    """Generate synthetic raw panel rows in the downloaded file's layout."""
    rng = np.random.RandomState(seed)

    n_households = max(5, n_rows // 20)
    households = [f'HH{i:05d}' for i in range(n_households)]
    retailers = ['R1', 'R2', 'R3', 'R4']
    categories = [c for cats in CATEGORY_SEGMENTS.values() for c in cats] + ['greeting cards']
    dates = pd.date_range('2019-01-01', '2019-03-31', freq='D').strftime('%Y%m%d')

    data = {
        'panel_row_id': [str(i) for i in range(n_rows)],
        'household_id': rng.choice(households, n_rows),
        # Few dates per household so baskets hold several line items
        'purchase_date': rng.choice(list(dates[:30]), n_rows),
        'barcode': [f'87{rng.randint(0, 10**9):011d}' for _ in range(n_rows)],
        'retailer': rng.choice(retailers, n_rows),
        'brand': rng.choice(['BrandA', 'BrandB', 'Private label'], n_rows),
        'unit_sales': rng.randint(1, 5, n_rows).astype(str),
        'value_sales': rng.randint(50, 2500, n_rows).astype(str),
        'volume_sales': np.round(rng.uniform(0.1, 3.0, n_rows), 3).astype(str),
        'purchase_method': rng.choice(['1', '2'], n_rows, p=[0.85, 0.15]),
        'category': rng.choice(categories, n_rows),
        'unit_of_measure': rng.choice(['kg', 'l', 'pc'], n_rows),
        'volume_per_unit': np.round(rng.uniform(0.1, 1.5, n_rows), 2).astype(str),
        'product_description': ['synthetic product'] * n_rows,
        'projection_weight': np.round(rng.uniform(0.5, 2.0, n_rows), 3).astype(str),
    }
    return pd.DataFrame(data)[RAW_SCHEMA.names]


@pytest.fixture
def make_clean_panel():
    """Factory building a typed clean panel from a list of row dicts."""
    defaults = {
        'barcode': '8700000000001',
        'brand': 'BrandA',
        'unit_sales': 1,
        'value_sales': 100.0,
        'volume_sales': 1.0,
        'purchase_method': 'offline',
        'category': 'milk',
        'unit_of_measure': 'l',
        'volume_per_unit': 1.0,
        'segment': 'Dairy & Eggs',
    }

    def _make(rows):
        if not rows:
            return CLEAN_SCHEMA.empty()
        df = pd.DataFrame([{**defaults, **row} for row in rows])
        return CLEAN_SCHEMA.coerce(df)

    return _make


@pytest.fixture(scope="function")
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp)
