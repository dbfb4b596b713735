"""
Panel Table Schemas
===================
Typed record schemas for every table the pipeline reads or writes.

Each CSV is checked against its schema when it is loaded, so a renamed or
missing column fails at load time with a SchemaError instead of surfacing
later as a KeyError inside an aggregation.

Tables:
- RAW_SCHEMA: downloaded panel (15 text columns)
- CLEAN_SCHEMA: cleaned purchase events (13 typed columns)
- BASKET_SCHEMA: one row per household x date x retailer
- WEEKLY_SCHEMA: one row per household x ISO week
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .errors import SchemaError

# dtype name -> pandas dtype used when reading
PANDAS_DTYPES = {
    'string': 'string',
    'int': 'Int64',
    'float': 'float64',
}


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    dtype: str = 'string'
    description: str = ''


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: Tuple[ColumnSpec, ...]

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def date_columns(self) -> List[str]:
        return [c.name for c in self.columns if c.dtype == 'datetime']

    def missing_columns(self, columns) -> List[str]:
        present = set(columns)
        return [name for name in self.names if name not in present]

    def validate(self, df: pd.DataFrame) -> pd.DataFrame:
        """Raise SchemaError if df lacks any column; return df in schema order."""
        missing = self.missing_columns(df.columns)
        if missing:
            raise SchemaError(self.name, missing)
        return df[self.names]

    def coerce(self, df: pd.DataFrame) -> pd.DataFrame:
        """Cast validated columns to their declared dtypes."""
        df = self.validate(df).copy()
        for col in self.columns:
            if col.dtype == 'datetime':
                df[col.name] = pd.to_datetime(df[col.name], errors='coerce')
            else:
                df[col.name] = df[col.name].astype(PANDAS_DTYPES[col.dtype])
        return df

    def read_csv(self, path: Path, nrows: Optional[int] = None) -> pd.DataFrame:
        """Read a CSV, checking its header before loading the body."""
        path = Path(path)
        header = pd.read_csv(path, nrows=0).columns
        missing = self.missing_columns(header)
        if missing:
            raise SchemaError(f"{self.name} ({path.name})", missing)

        dtypes: Dict[str, str] = {
            c.name: PANDAS_DTYPES[c.dtype]
            for c in self.columns if c.dtype != 'datetime'
        }
        df = pd.read_csv(
            path,
            usecols=self.names,
            dtype=dtypes,
            parse_dates=self.date_columns or False,
            nrows=nrows,
        )
        for name in self.date_columns:
            # Header-only files come back as object columns
            df[name] = pd.to_datetime(df[name], errors='coerce')
        return df[self.names]

    def empty(self) -> pd.DataFrame:
        return self.coerce(pd.DataFrame({name: [] for name in self.names}))


RAW_SCHEMA = TableSchema('raw_panel', (
    ColumnSpec('panel_row_id', description='Row number assigned by the data provider'),
    ColumnSpec('household_id', description='Panel member identifier'),
    ColumnSpec('purchase_date', description='YYYYMMDD or ISO-8601 date'),
    ColumnSpec('barcode'),
    ColumnSpec('retailer'),
    ColumnSpec('brand'),
    ColumnSpec('unit_sales', description='Number of units, stored as text'),
    ColumnSpec('value_sales', description='Value in cents, stored as text'),
    ColumnSpec('volume_sales'),
    ColumnSpec('purchase_method', description='Coded channel (1/2, off/on, ...)'),
    ColumnSpec('category'),
    ColumnSpec('unit_of_measure'),
    ColumnSpec('volume_per_unit'),
    ColumnSpec('product_description'),
    ColumnSpec('projection_weight'),
))

CLEAN_SCHEMA = TableSchema('clean_panel', (
    ColumnSpec('household_id', 'string'),
    ColumnSpec('purchase_date', 'datetime'),
    ColumnSpec('barcode', 'string'),
    ColumnSpec('retailer', 'string'),
    ColumnSpec('brand', 'string'),
    ColumnSpec('unit_sales', 'int'),
    ColumnSpec('value_sales', 'float', 'cents'),
    ColumnSpec('volume_sales', 'float'),
    ColumnSpec('purchase_method', 'string', 'offline | online'),
    ColumnSpec('category', 'string'),
    ColumnSpec('unit_of_measure', 'string'),
    ColumnSpec('volume_per_unit', 'float'),
    ColumnSpec('segment', 'string'),
))

BASKET_KEYS = ['household_id', 'purchase_date', 'retailer']

BASKET_SCHEMA = TableSchema('baskets', (
    ColumnSpec('household_id', 'string'),
    ColumnSpec('purchase_date', 'datetime'),
    ColumnSpec('retailer', 'string'),
    ColumnSpec('basket_size', 'int', 'number of line items'),
    ColumnSpec('units', 'int'),
    ColumnSpec('expenditure', 'float', 'cents'),
    ColumnSpec('volume', 'float'),
    ColumnSpec('n_online_items', 'int'),
    ColumnSpec('purchase_method', 'string'),
    ColumnSpec('missing_value_items', 'int'),
))

WEEKLY_SCHEMA = TableSchema('weekly_baskets', (
    ColumnSpec('household_id', 'string'),
    ColumnSpec('iso_year', 'int'),
    ColumnSpec('iso_week', 'int'),
    ColumnSpec('week_start', 'datetime'),
    ColumnSpec('n_baskets', 'int'),
    ColumnSpec('n_items', 'int'),
    ColumnSpec('expenditure', 'float', 'cents'),
    ColumnSpec('volume', 'float'),
    ColumnSpec('n_online_baskets', 'int'),
    ColumnSpec('online_household', 'int'),
))
