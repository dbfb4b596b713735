"""
Stage 3: Basket Aggregation
===========================
Groups purchase events into baskets: all line items one household bought at
one retailer on one date.

Per basket:
- basket_size: number of line items
- units: sum of unit sales
- expenditure: sum of value sales (cents)
- volume: sum of volume sales
- n_online_items / purchase_method: online if any line item was bought online
- missing_value_items: line items whose value sales could not be parsed

Sums skip missing values, so total basket expenditure equals total line-item
value sales. Rows missing a key part cannot be assigned to a basket and are
excluded (with a warning).

Output: gen/data_preparation/input/baskets.csv
"""

import logging
from pathlib import Path
from typing import Sequence

import pandas as pd

from .schema import BASKET_KEYS, BASKET_SCHEMA, CLEAN_SCHEMA

logger = logging.getLogger(__name__)


class BasketAggregationPipeline:
    """
    Aggregates clean purchase events to basket level.

    Extra keys (e.g. 'segment') split each basket further, which the weekly
    stage uses for per-segment summaries.
    """

    def __init__(self, extra_keys: Sequence[str] = ()):
        """
        Parameters
        ----------
        extra_keys : sequence of str
            Clean-panel columns appended to (household_id, purchase_date, retailer)
        """
        self.extra_keys = list(extra_keys)

    @property
    def keys(self):
        return BASKET_KEYS + self.extra_keys

    @property
    def output_columns(self):
        return self.keys + [c for c in BASKET_SCHEMA.names if c not in BASKET_KEYS]

    def run(self, clean_df: pd.DataFrame) -> pd.DataFrame:
        """
        Execute basket aggregation.

        Parameters
        ----------
        clean_df : pd.DataFrame
            Clean panel (CLEAN_SCHEMA columns)

        Returns
        -------
        pd.DataFrame
            One row per basket, sorted by key
        """
        logger.info("Stage 3: Basket Aggregation")
        logger.info("=" * 50)

        CLEAN_SCHEMA.validate(clean_df)

        keyed = clean_df.dropna(subset=self.keys)
        n_dropped = len(clean_df) - len(keyed)
        if n_dropped:
            logger.warning(f"  - {n_dropped:,} rows missing a basket key part were excluded")

        if keyed.empty:
            logger.info("  - No purchase events; writing empty basket table")
            return self._empty()

        baskets = self._aggregate(keyed)

        logger.info("Basket Aggregation Complete!")
        logger.info(f"  - Baskets: {len(baskets):,}")
        logger.info(f"  - Mean basket size: {baskets['basket_size'].mean():.2f}")
        logger.info(f"  - Online baskets: {(baskets['purchase_method'] == 'online').sum():,}")

        return baskets

    def _aggregate(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.assign(
            is_online=(df['purchase_method'] == 'online').fillna(False).astype(int),
            value_missing=df['value_sales'].isna().astype(int),
        )

        baskets = df.groupby(self.keys, sort=True, observed=True).agg(
            basket_size=('barcode', 'size'),
            units=('unit_sales', 'sum'),
            expenditure=('value_sales', 'sum'),
            volume=('volume_sales', 'sum'),
            n_online_items=('is_online', 'sum'),
            missing_value_items=('value_missing', 'sum'),
        ).reset_index()

        baskets['purchase_method'] = (
            baskets['n_online_items'].gt(0).map({True: 'online', False: 'offline'})
        )
        baskets = baskets[self.output_columns]
        return self._cast(baskets)

    def _empty(self) -> pd.DataFrame:
        return self._cast(pd.DataFrame({c: [] for c in self.output_columns}))

    def _cast(self, baskets: pd.DataFrame) -> pd.DataFrame:
        baskets = BASKET_SCHEMA.coerce(baskets).join(
            baskets[self.extra_keys].astype('string')
        )
        return baskets[self.output_columns]

    def save(self, df: pd.DataFrame, output_path: Path) -> None:
        """Save baskets to CSV."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        df.to_csv(output_path, index=False, date_format='%Y-%m-%d')
        logger.info(f"Saved to: {output_path}")
