"""
Stage 4: Weekly Aggregation
===========================
Rolls baskets up to one row per household and ISO week, optionally split by
retailer or segment.

Input: baskets.csv (or clean line items; required when splitting by segment)
Output: gen/data_preparation/input/weekly_baskets.csv

Weeks follow ISO-8601 (Monday start), so late-December purchases can belong
to week 1 of the following ISO year. Each row carries the household's
online_household flag (1 if any basket in the aggregated period was bought
online).
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from .schema import WEEKLY_SCHEMA
from .stage3_basket_aggregation import BasketAggregationPipeline

logger = logging.getLogger(__name__)


VALID_SPLITS = ('retailer', 'segment')


class WeeklyAggregationPipeline:
    """
    Aggregates baskets to (household, ISO week[, retailer|segment]).
    """

    def __init__(self, by: Sequence[str] = (), year: Optional[int] = None):
        """
        Parameters
        ----------
        by : sequence of str
            Extra grouping columns, subset of ('retailer', 'segment')
        year : int, optional
            Keep only this ISO year
        """
        unknown = [c for c in by if c not in VALID_SPLITS]
        if unknown:
            raise ValueError(f"Unsupported weekly split(s): {unknown}; choose from {VALID_SPLITS}")
        self.by = list(by)
        self.year = year

    @property
    def keys(self):
        return ['household_id', 'iso_year', 'iso_week', 'week_start'] + self.by

    def run(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Execute weekly aggregation.

        Parameters
        ----------
        df : pd.DataFrame
            Basket table, or clean line items (detected by the absence of basket_size)

        Returns
        -------
        pd.DataFrame
            Weekly summaries sorted by household and week
        """
        logger.info("Stage 4: Weekly Aggregation")
        logger.info("=" * 50)

        baskets = self._to_baskets(df)

        logger.info("Step 1: Deriving ISO weeks...")
        baskets = self._add_weeks(baskets)
        if self.year is not None:
            baskets = baskets[baskets['iso_year'] == self.year]
            logger.info(f"  - Restricted to ISO year {self.year}: {len(baskets):,} baskets")

        logger.info("Step 2: Aggregating per household-week...")
        weekly = self._aggregate(baskets)

        logger.info("Weekly Aggregation Complete!")
        logger.info(f"  - Household-weeks: {len(weekly):,}")
        logger.info(f"  - Households: {weekly['household_id'].nunique():,}")

        return weekly

    def _to_baskets(self, df: pd.DataFrame) -> pd.DataFrame:
        if 'basket_size' in df.columns:
            if 'segment' in self.by:
                raise ValueError("Splitting weekly summaries by segment requires clean line items")
            return df

        extra = [c for c in self.by if c == 'segment']
        return BasketAggregationPipeline(extra_keys=extra).run(df)

    def _add_weeks(self, baskets: pd.DataFrame) -> pd.DataFrame:
        baskets = baskets.dropna(subset=['purchase_date']).copy()
        dates = pd.to_datetime(baskets['purchase_date'])

        iso = dates.dt.isocalendar()
        baskets['iso_year'] = iso['year'].astype('Int64')
        baskets['iso_week'] = iso['week'].astype('Int64')
        baskets['week_start'] = (dates - pd.to_timedelta(dates.dt.weekday, unit='D')).dt.normalize()
        return baskets

    def _aggregate(self, baskets: pd.DataFrame) -> pd.DataFrame:
        output_columns = self.keys + [c for c in WEEKLY_SCHEMA.names if c not in self.keys]

        if baskets.empty:
            empty = WEEKLY_SCHEMA.empty()
            for col in self.by:
                empty[col] = pd.Series(dtype='string')
            return empty[output_columns]

        baskets = baskets.assign(
            is_online=(baskets['purchase_method'] == 'online').fillna(False).astype(int)
        )

        weekly = baskets.groupby(self.keys, sort=True, observed=True).agg(
            n_baskets=('basket_size', 'size'),
            n_items=('basket_size', 'sum'),
            expenditure=('expenditure', 'sum'),
            volume=('volume', 'sum'),
            n_online_baskets=('is_online', 'sum'),
        ).reset_index()

        online = baskets.groupby('household_id', observed=True)['is_online'].max()
        weekly['online_household'] = weekly['household_id'].map(online).astype(int)

        extra = weekly[self.by].astype('string')
        weekly = WEEKLY_SCHEMA.coerce(weekly).join(extra)
        return weekly[output_columns]

    def save(self, df: pd.DataFrame, output_path: Path) -> None:
        """Save weekly summaries to CSV."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        df.to_csv(output_path, index=False, date_format='%Y-%m-%d')
        logger.info(f"Saved to: {output_path}")
