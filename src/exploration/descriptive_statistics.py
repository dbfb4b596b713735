"""
Descriptive Statistics
======================
Summary tables characterising purchasing behaviour across retailers and
product segments.

All monetary inputs are in cents; columns suffixed `_eur` are in major
currency units (cents / 100).
"""

from typing import Any, Dict, Optional

import pandas as pd

OTHER_SEGMENT = 'Other'


def dataset_overview(
    clean_df: pd.DataFrame,
    baskets_df: Optional[pd.DataFrame] = None
) -> Dict[str, Any]:
    """Distinct counts and coverage of the clean panel."""
    is_online = (clean_df['purchase_method'] == 'online').fillna(False).astype(bool)
    online = clean_df.loc[is_online, 'household_id']
    dates = pd.to_datetime(clean_df['purchase_date'])

    overview = {
        'households': int(clean_df['household_id'].nunique()),
        'retailers': int(clean_df['retailer'].nunique()),
        'purchase_rows': int(len(clean_df)),
        'online_households': int(online.nunique()),
        'first_purchase': dates.min().date().isoformat() if dates.notna().any() else None,
        'last_purchase': dates.max().date().isoformat() if dates.notna().any() else None,
        'total_expenditure_eur': float(clean_df['value_sales'].sum()) / 100,
    }
    if baskets_df is not None:
        overview['baskets'] = int(len(baskets_df))
    return overview


def segment_shares(clean_df: pd.DataFrame, top_n: int = 5) -> pd.DataFrame:
    """
    Expenditure share per segment: the top_n segments plus an "Other" bucket.

    Ranking is a stable descending sort on expenditure, so segments with equal
    expenditure keep the order in which they first appear in clean_df.

    Returns
    -------
    pd.DataFrame
        segment, expenditure, expenditure_eur, share_pct. share_pct sums to
        100 whenever there is any expenditure; with zero total expenditure
        there is nothing to share out and every share_pct is 0.
    """
    totals = (
        clean_df.groupby('segment', sort=False, observed=True)['value_sales']
        .sum()
        .rename('expenditure')
        .reset_index()
    )
    totals = totals.sort_values('expenditure', ascending=False, kind='mergesort')

    top = totals.head(top_n)
    rest = totals.iloc[top_n:]
    if len(rest):
        other = pd.DataFrame({'segment': [OTHER_SEGMENT], 'expenditure': [rest['expenditure'].sum()]})
        top = pd.concat([top, other], ignore_index=True)

    top = top.reset_index(drop=True)
    grand_total = top['expenditure'].sum()
    top['expenditure_eur'] = top['expenditure'] / 100
    top['share_pct'] = top['expenditure'] / grand_total * 100 if grand_total else 0.0
    return top[['segment', 'expenditure', 'expenditure_eur', 'share_pct']]


def retailer_expenditure(clean_df: pd.DataFrame) -> pd.DataFrame:
    """Total value sales and share per retailer, largest first."""
    totals = clean_df.groupby('retailer', sort=False, observed=True).agg(
        expenditure=('value_sales', 'sum'),
        purchase_rows=('value_sales', 'size'),
        households=('household_id', 'nunique'),
    ).reset_index()
    totals = totals.sort_values('expenditure', ascending=False, kind='mergesort').reset_index(drop=True)

    grand_total = totals['expenditure'].sum()
    totals['expenditure_eur'] = totals['expenditure'] / 100
    totals['share_pct'] = totals['expenditure'] / grand_total * 100 if grand_total else 0.0
    return totals[['retailer', 'expenditure', 'expenditure_eur', 'share_pct', 'purchase_rows', 'households']]


def basket_summary(baskets_df: pd.DataFrame, by: Optional[str] = None) -> pd.DataFrame:
    """
    Mean basket size, expenditure (major units) and volume.

    Parameters
    ----------
    baskets_df : pd.DataFrame
        Output of BasketAggregationPipeline
    by : str, optional
        Column to break the summary down by (e.g. 'retailer', 'purchase_method')
    """
    def _summarise(group: pd.DataFrame) -> pd.Series:
        return pd.Series({
            'baskets': len(group),
            'mean_basket_size': group['basket_size'].astype(float).mean(),
            'mean_expenditure_eur': group['expenditure'].mean() / 100,
            'mean_volume': group['volume'].mean(),
        })

    if by is None:
        return _summarise(baskets_df).to_frame().T.reset_index(drop=True)

    rows = [
        _summarise(group).rename(key)
        for key, group in baskets_df.groupby(by, sort=True, observed=True)
    ]
    if not rows:
        return pd.DataFrame(columns=[by, 'baskets', 'mean_basket_size', 'mean_expenditure_eur', 'mean_volume'])
    summary = pd.DataFrame(rows)
    summary.index.name = by
    return summary.reset_index()


def purchase_method_split(clean_df: pd.DataFrame) -> pd.DataFrame:
    """Rows, households and expenditure share per purchase method."""
    split = clean_df.groupby('purchase_method', sort=True, observed=True).agg(
        purchase_rows=('value_sales', 'size'),
        households=('household_id', 'nunique'),
        expenditure=('value_sales', 'sum'),
    ).reset_index()

    grand_total = split['expenditure'].sum()
    split['expenditure_eur'] = split['expenditure'] / 100
    split['share_pct'] = split['expenditure'] / grand_total * 100 if grand_total else 0.0
    return split
