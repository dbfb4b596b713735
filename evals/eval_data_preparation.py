"""
Evaluation Script: Data Preparation
===================================
Evaluates quality and consistency of the prepared panel artifacts.

Metrics:
- Clean panel coverage and missing values
- Basket key uniqueness and expenditure preservation vs. the clean panel
- Weekly expenditure preservation vs. baskets, per household
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from src.data_preparation.config import PipelineConfig
from src.data_preparation.schema import BASKET_KEYS, BASKET_SCHEMA, CLEAN_SCHEMA

TOLERANCE = 1e-6


def evaluate_clean_panel(clean_df: pd.DataFrame) -> Dict[str, Any]:
    """
    Evaluate the clean panel.

    Returns metrics on coverage and missing values.
    """
    metrics = {}

    metrics['total_rows'] = len(clean_df)
    metrics['households'] = int(clean_df['household_id'].nunique())
    metrics['retailers'] = int(clean_df['retailer'].nunique())
    metrics['segments'] = int(clean_df['segment'].nunique())

    metrics['missing_value_sales'] = int(clean_df['value_sales'].isna().sum())
    metrics['missing_dates'] = int(clean_df['purchase_date'].isna().sum())
    metrics['missing_purchase_method'] = int(clean_df['purchase_method'].isna().sum())
    metrics['negative_value_sales'] = int((clean_df['value_sales'] < 0).sum())

    quality_score = 100
    if metrics['total_rows'] and metrics['missing_value_sales'] > metrics['total_rows'] * 0.01:
        quality_score -= 20
    if metrics['missing_dates'] > 0:
        quality_score -= 20
    if metrics['negative_value_sales'] > 0:
        quality_score -= 10

    metrics['quality_score'] = quality_score

    return metrics


def evaluate_baskets(baskets_df: pd.DataFrame, clean_df: Optional[pd.DataFrame] = None) -> Dict[str, Any]:
    """
    Evaluate basket aggregation.

    Checks key uniqueness and, given the clean panel, that total expenditure
    and line-item counts are preserved.
    """
    metrics = {}

    metrics['total_baskets'] = len(baskets_df)
    metrics['duplicate_keys'] = int(baskets_df.duplicated(subset=BASKET_KEYS).sum())
    metrics['mean_basket_size'] = float(baskets_df['basket_size'].mean()) if len(baskets_df) else 0.0
    metrics['online_baskets'] = int((baskets_df['purchase_method'] == 'online').sum())

    quality_score = 100
    if metrics['duplicate_keys'] > 0:
        quality_score -= 40

    if clean_df is not None:
        keyed = clean_df.dropna(subset=BASKET_KEYS)
        metrics['expenditure_gap'] = float(keyed['value_sales'].sum() - baskets_df['expenditure'].sum())
        metrics['line_item_gap'] = int(len(keyed) - baskets_df['basket_size'].sum())
        metrics['mass_preserved'] = bool(
            abs(metrics['expenditure_gap']) <= TOLERANCE * max(1.0, abs(keyed['value_sales'].sum()))
            and metrics['line_item_gap'] == 0
        )
        if not metrics['mass_preserved']:
            quality_score -= 40

    metrics['quality_score'] = quality_score

    return metrics


def evaluate_weekly(weekly_df: pd.DataFrame, baskets_df: Optional[pd.DataFrame] = None) -> Dict[str, Any]:
    """
    Evaluate weekly aggregation against the basket table.
    """
    metrics = {}

    metrics['household_weeks'] = len(weekly_df)
    metrics['households'] = int(weekly_df['household_id'].nunique())
    metrics['online_households'] = int(
        weekly_df.loc[weekly_df['online_household'] == 1, 'household_id'].nunique()
    )

    quality_score = 100
    if baskets_df is not None:
        basket_totals = baskets_df.groupby('household_id')['expenditure'].sum()
        weekly_totals = weekly_df.groupby('household_id')['expenditure'].sum()
        gaps = (basket_totals - weekly_totals.reindex(basket_totals.index, fill_value=0)).abs()
        metrics['households_with_gap'] = int((gaps > TOLERANCE * np.maximum(1.0, basket_totals.abs())).sum())
        if metrics['households_with_gap'] > 0:
            quality_score -= 50

    metrics['quality_score'] = quality_score

    return metrics


def run_evaluation(config: PipelineConfig) -> Dict[str, Dict[str, Any]]:
    """
    Run complete data preparation evaluation.

    Parameters
    ----------
    config : PipelineConfig
        Locates the prepared artifacts

    Returns
    -------
    Dict containing evaluation results for each stage
    """
    results = {}

    print("=" * 60)
    print("Data Preparation Evaluation")
    print("=" * 60)

    clean_df = baskets_df = None

    print("\n--- Clean Panel ---")
    if config.clean_path.exists():
        clean_df = CLEAN_SCHEMA.read_csv(config.clean_path)
        results['clean_panel'] = evaluate_clean_panel(clean_df)
        print(f"  Rows: {results['clean_panel']['total_rows']:,}")
        print(f"  Households: {results['clean_panel']['households']:,}")
        print(f"  Quality Score: {results['clean_panel']['quality_score']}/100")
    else:
        print(f"  [MISSING] {config.clean_path.name}")
        results['clean_panel'] = {'quality_score': 0, 'error': 'file not found'}

    print("\n--- Baskets ---")
    if config.baskets_path.exists():
        baskets_df = BASKET_SCHEMA.read_csv(config.baskets_path)
        results['baskets'] = evaluate_baskets(baskets_df, clean_df)
        print(f"  Baskets: {results['baskets']['total_baskets']:,}")
        if 'mass_preserved' in results['baskets']:
            print(f"  Expenditure preserved: {results['baskets']['mass_preserved']}")
        print(f"  Quality Score: {results['baskets']['quality_score']}/100")
    else:
        print(f"  [MISSING] {config.baskets_path.name}")
        results['baskets'] = {'quality_score': 0, 'error': 'file not found'}

    print("\n--- Weekly Baskets ---")
    if config.weekly_path.exists():
        weekly_df = pd.read_csv(config.weekly_path, dtype={'household_id': 'string'})
        # Per-household totals only match when every week was kept
        reference = baskets_df if config.weekly_year is None and not config.weekly_by else None
        results['weekly'] = evaluate_weekly(weekly_df, reference)
        print(f"  Household-weeks: {results['weekly']['household_weeks']:,}")
        print(f"  Quality Score: {results['weekly']['quality_score']}/100")
    else:
        print(f"  [MISSING] {config.weekly_path.name}")
        results['weekly'] = {'quality_score': 0, 'error': 'file not found'}

    scores = [r['quality_score'] for r in results.values() if 'quality_score' in r]
    overall_score = float(np.mean(scores)) if scores else 0.0

    print("\n" + "=" * 60)
    print(f"Overall Quality Score: {overall_score:.1f}/100")
    print("=" * 60)

    results['overall'] = {
        'quality_score': overall_score,
        'stages_evaluated': len(scores),
        'all_files_present': all('error' not in r for r in results.values())
    }

    return results


def main():
    """Run evaluation and save results."""
    config = PipelineConfig.from_env()
    results = run_evaluation(config)

    output_path = config.project_root / 'evals' / 'results' / 'data_preparation_eval.json'
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(results, f, indent=2, default=str)

    print(f"\nResults saved to: {output_path}")

    return results


if __name__ == '__main__':
    main()
