"""
Stage 2: Panel Cleaning and Recoding
====================================
Turns the raw 15-column panel into the 13-column analysis schema.

Steps:
1. Column projection - drop provider bookkeeping fields
2. Type coercion - numeric text to numbers, dates to datetimes
3. Categorical recoding - purchase method codes to offline/online
4. Segment derivation - coarse segment from fine-grained category

Unparseable values are kept as missing (NA) rather than dropping the row;
failure counts are logged and written to cleaning_report.json.

Output: gen/data_preparation/input/data_clean.csv
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .schema import CLEAN_SCHEMA, RAW_SCHEMA

logger = logging.getLogger(__name__)


UNCLASSIFIED_SEGMENT = 'Unclassified'

# Segment -> categories (matched case-insensitively)
CATEGORY_SEGMENTS = {
    'Dairy & Eggs': [
        'milk', 'yoghurt', 'yogurt', 'cheese', 'butter', 'cream', 'eggs',
        'dairy desserts', 'plant-based drinks',
    ],
    'Fresh Produce': ['fruit', 'vegetables', 'potatoes', 'salads', 'herbs'],
    'Meat & Fish': ['meat', 'poultry', 'fish', 'meat products', 'meat substitutes'],
    'Bakery': ['bread', 'pastry', 'cake', 'biscuits', 'breakfast cereals'],
    'Beverages': [
        'soft drinks', 'water', 'juice', 'coffee', 'tea', 'beer', 'wine', 'spirits',
    ],
    'Snacks & Confectionery': ['chips', 'nuts', 'chocolate', 'candy', 'savoury snacks'],
    'Pantry': [
        'pasta', 'rice', 'sauces', 'soups', 'canned food', 'spreads', 'oil',
        'spices', 'baking products', 'sugar',
    ],
    'Frozen': ['frozen vegetables', 'frozen meals', 'ice cream', 'frozen snacks', 'pizza'],
    'Household & Personal Care': [
        'detergent', 'cleaning products', 'toilet paper', 'shampoo',
        'oral care', 'diapers', 'pet food',
    ],
}

PURCHASE_METHOD_CODES = {
    '1': 'offline',
    'off': 'offline',
    'offline': 'offline',
    'store': 'offline',
    '2': 'online',
    'on': 'online',
    'online': 'online',
    'web': 'online',
}

NUMERIC_COLUMNS = ['unit_sales', 'value_sales', 'volume_sales', 'volume_per_unit']
TEXT_COLUMNS = ['household_id', 'barcode', 'retailer', 'brand', 'category', 'unit_of_measure']
# Counts and cents: a comma can only be a thousands separator
INTEGER_COLUMNS = ['unit_sales', 'value_sales']
THOUSANDS_PATTERN = r'[+-]?\d{1,3}(?:,\d{3})+'
# Measures: a single comma and no dot is a decimal comma
DECIMAL_COMMA_PATTERN = r'[+-]?\d*,\d+'


def _to_object(series: pd.Series) -> pd.Series:
    # pd.NA -> None so the numpy-backed parsers treat it as missing
    return series.astype(object).where(series.notna(), None)


def build_segment_map(segment_map_path: Optional[Path] = None) -> Dict[str, str]:
    """
    Category -> segment lookup (lowercase keys).

    A CSV with category,segment columns extends and overrides the built-in table.
    """
    mapping = {
        category.lower(): segment
        for segment, categories in CATEGORY_SEGMENTS.items()
        for category in categories
    }
    if segment_map_path is not None:
        overrides = pd.read_csv(segment_map_path, dtype=str)
        missing = {'category', 'segment'} - set(overrides.columns)
        if missing:
            raise ValueError(
                f"Segment map {segment_map_path} missing column(s): {sorted(missing)}"
            )
        overrides = overrides.dropna(subset=['category', 'segment'])
        mapping.update(zip(
            overrides['category'].str.strip().str.lower(),
            overrides['segment'].str.strip()
        ))
    return mapping


class PanelCleaningPipeline:
    """
    Projects, types and recodes raw purchase events.

    After run(), `report_` holds row counts and per-column coercion failures.
    """

    def __init__(
        self,
        segment_map: Optional[Dict[str, str]] = None,
        date_format: Optional[str] = None
    ):
        """
        Parameters
        ----------
        segment_map : dict, optional
            Lowercase category -> segment (default: built-in CATEGORY_SEGMENTS)
        date_format : str, optional
            strftime format of purchase_date; inferred when omitted
        """
        self.segment_map = segment_map if segment_map is not None else build_segment_map()
        self.date_format = date_format
        self.report_: Dict = {}

    def run(self, raw_df: pd.DataFrame) -> pd.DataFrame:
        """
        Execute cleaning.

        Parameters
        ----------
        raw_df : pd.DataFrame
            Raw panel with the 15 RAW_SCHEMA columns (extra columns ignored)

        Returns
        -------
        pd.DataFrame
            Clean panel in CLEAN_SCHEMA column order
        """
        logger.info("Stage 2: Panel Cleaning and Recoding")
        logger.info("=" * 50)

        df = RAW_SCHEMA.validate(raw_df).astype('string')
        self.report_ = {'rows_in': len(df), 'coercion_failures': {}}

        logger.info("Step 1: Projecting columns...")
        dropped = [c for c in RAW_SCHEMA.names if c not in CLEAN_SCHEMA.names]
        df = df.drop(columns=dropped)
        logger.info(f"  - Dropped: {dropped}")

        logger.info("Step 2: Coercing types...")
        df = self._trim_text(df)
        df = self._coerce_numeric(df)
        df = self._parse_dates(df)

        logger.info("Step 3: Recoding purchase method...")
        df = self._recode_purchase_method(df)

        logger.info("Step 4: Deriving segments...")
        df = self._derive_segment(df)

        clean_df = CLEAN_SCHEMA.coerce(df)
        self.report_['rows_out'] = len(clean_df)

        failures = self.report_['coercion_failures']
        for column, count in failures.items():
            if count:
                logger.warning(f"  - {column}: {count:,} values could not be parsed (kept as missing)")

        logger.info("Cleaning Complete!")
        logger.info(f"  - Rows: {len(clean_df):,}")
        logger.info(f"  - Households: {clean_df['household_id'].nunique():,}")
        logger.info(f"  - Retailers: {clean_df['retailer'].nunique():,}")

        return clean_df

    def _trim_text(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        for col in TEXT_COLUMNS:
            df[col] = df[col].str.strip().replace('', pd.NA)
        return df

    def _coerce_numeric(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Parse numeric text. Failures become NA.

        Integer-valued columns accept thousands separators ("1,234" -> 1234);
        measures accept a decimal comma ("0,75" -> 0.75). Any other comma
        leaves the value unparseable, so it is counted as a failure.
        """
        df = df.copy()
        for col in NUMERIC_COLUMNS:
            text = df[col].str.strip().replace('', pd.NA)
            if col in INTEGER_COLUMNS:
                grouped = text.str.fullmatch(THOUSANDS_PATTERN).fillna(False).astype(bool)
                text = text.mask(grouped, text.str.replace(',', '', regex=False))
            else:
                decimal = text.str.fullmatch(DECIMAL_COMMA_PATTERN).fillna(False).astype(bool)
                text = text.mask(decimal, text.str.replace(',', '.', regex=False))

            values = pd.to_numeric(_to_object(text), errors='coerce').astype('float64')
            self.report_['coercion_failures'][col] = int((text.notna() & values.isna()).sum())
            df[col] = values

        # unit_sales is a count; fractional values are treated as unparseable
        fractional = df['unit_sales'].notna() & (df['unit_sales'] % 1 != 0)
        if fractional.any():
            self.report_['coercion_failures']['unit_sales'] += int(fractional.sum())
            df.loc[fractional, 'unit_sales'] = np.nan
        return df

    def _parse_dates(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        text = df['purchase_date'].str.strip().replace('', pd.NA)

        date_format = self.date_format
        if date_format is None:
            present = text.dropna()
            if len(present) and present.str.fullmatch(r'\d{8}').all():
                date_format = '%Y%m%d'
            else:
                date_format = 'ISO8601'

        parsed = pd.to_datetime(_to_object(text), format=date_format, errors='coerce')
        self.report_['coercion_failures']['purchase_date'] = int((text.notna() & parsed.isna()).sum())
        df['purchase_date'] = parsed
        return df

    def _recode_purchase_method(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        codes = df['purchase_method'].str.strip().str.lower()
        recoded = codes.map(PURCHASE_METHOD_CODES)
        self.report_['coercion_failures']['purchase_method'] = int((codes.notna() & recoded.isna()).sum())
        df['purchase_method'] = recoded
        return df

    def _derive_segment(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        segment = df['category'].str.lower().map(self.segment_map)
        df['segment'] = segment.fillna(UNCLASSIFIED_SEGMENT)

        unmapped = df.loc[df['segment'] == UNCLASSIFIED_SEGMENT, 'category'].dropna().unique()
        self.report_['unmapped_categories'] = sorted(str(c) for c in unmapped)
        if len(unmapped):
            logger.info(f"  - {len(unmapped):,} categories without a segment -> '{UNCLASSIFIED_SEGMENT}'")
        return df

    def save(self, df: pd.DataFrame, output_path: Path, report_path: Optional[Path] = None) -> None:
        """Save the clean panel (and the cleaning report) to disk."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        df.to_csv(output_path, index=False, date_format='%Y-%m-%d')
        logger.info(f"Saved to: {output_path}")

        if report_path is not None:
            with open(report_path, 'w') as f:
                json.dump(self.report_, f, indent=2)


def classify_online_households(clean_df: pd.DataFrame) -> pd.DataFrame:
    """
    Flag households with at least one online line item.

    Returns
    -------
    pd.DataFrame
        household_id, n_rows, n_online_rows, online_share, online_household
    """
    is_online = (clean_df['purchase_method'] == 'online').fillna(False).astype(int)
    households = (
        clean_df.assign(is_online=is_online)
        .groupby('household_id', sort=True)
        .agg(n_rows=('is_online', 'size'), n_online_rows=('is_online', 'sum'))
        .reset_index()
    )
    households['online_share'] = households['n_online_rows'] / households['n_rows']
    households['online_household'] = households['n_online_rows'] > 0
    return households
