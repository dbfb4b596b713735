"""
Exploration Report
==================
Renders the descriptive tables and charts into a Markdown document.

Output directory (gen/exploration/output/):
    report.md
    retailer_sales.png
    segment_shares.png
    tables/*.csv
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from src.data_preparation.stage2_data_cleaning import classify_online_households

from .charts import plot_retailer_sales, plot_segment_shares
from .descriptive_statistics import (
    basket_summary,
    dataset_overview,
    purchase_method_split,
    retailer_expenditure,
    segment_shares,
)

logger = logging.getLogger(__name__)


def markdown_table(df: pd.DataFrame, float_format: str = '{:,.2f}') -> str:
    """Render a DataFrame as a GitHub-flavoured Markdown table."""
    def _cell(value) -> str:
        if value is None or value is pd.NA or (isinstance(value, float) and np.isnan(value)):
            return ''
        if isinstance(value, (float, np.floating)):
            return float_format.format(value)
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            return f"{value:,}"
        return str(value)

    header = '| ' + ' | '.join(str(c) for c in df.columns) + ' |'
    divider = '| ' + ' | '.join('---' for _ in df.columns) + ' |'
    rows = [
        '| ' + ' | '.join(_cell(v) for v in row) + ' |'
        for row in df.astype(object).itertuples(index=False, name=None)
    ]
    return '\n'.join([header, divider] + rows)


class ExplorationReport:
    """
    Builds the descriptive report from the clean panel and its baskets.
    """

    def __init__(self, output_dir: Path, top_n_segments: int = 5):
        self.output_dir = Path(output_dir)
        self.top_n_segments = top_n_segments
        self.tables: Dict[str, pd.DataFrame] = {}

    def build(
        self,
        clean_df: pd.DataFrame,
        baskets_df: pd.DataFrame,
        report_name: str = 'report.md'
    ) -> Path:
        logger.info("Exploration Report")
        logger.info("=" * 50)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        tables_dir = self.output_dir / 'tables'
        tables_dir.mkdir(exist_ok=True)

        overview = dataset_overview(clean_df, baskets_df)
        households = classify_online_households(clean_df)

        self.tables = {
            'segment_shares': segment_shares(clean_df, top_n=self.top_n_segments),
            'retailer_expenditure': retailer_expenditure(clean_df),
            'purchase_method_split': purchase_method_split(clean_df),
            'basket_summary': basket_summary(baskets_df),
            'basket_summary_by_retailer': basket_summary(baskets_df, by='retailer'),
            'basket_summary_by_method': basket_summary(baskets_df, by='purchase_method'),
            'online_households': households[households['online_household']].reset_index(drop=True),
        }
        for name, table in self.tables.items():
            table.to_csv(tables_dir / f'{name}.csv', index=False)

        retailer_chart = self._render_chart(
            plot_retailer_sales, self.tables['retailer_expenditure'], 'retailer_sales.png'
        )
        segment_chart = self._render_chart(
            plot_segment_shares, self.tables['segment_shares'], 'segment_shares.png'
        )

        report_path = self.output_dir / report_name
        report_path.write_text(
            self._render_markdown(overview, retailer_chart, segment_chart),
            encoding='utf-8'
        )
        logger.info(f"Saved report to: {report_path}")
        return report_path

    def _render_chart(self, plot_fn, table: pd.DataFrame, filename: str) -> Optional[str]:
        if table.empty or not table['expenditure'].sum() > 0:
            logger.warning(f"  - Skipping {filename}: no expenditure to plot")
            return None
        plot_fn(table, output_path=self.output_dir / filename)
        plt.close()
        return filename

    def _render_markdown(
        self,
        overview: Dict,
        retailer_chart: Optional[str],
        segment_chart: Optional[str]
    ) -> str:
        overview_df = pd.DataFrame(
            [(k.replace('_', ' ').capitalize(), v) for k, v in overview.items()],
            columns=['Measure', 'Value']
        )
        segments = self.tables['segment_shares'].rename(columns={'share_pct': 'share (%)'})
        retailers = self.tables['retailer_expenditure'].rename(columns={'share_pct': 'share (%)'})

        lines = [
            '# Household Grocery Panel: Descriptive Report',
            '',
            f"_Generated {datetime.now():%Y-%m-%d %H:%M}_",
            '',
            '## Dataset overview',
            '',
            markdown_table(overview_df),
            '',
            '## Expenditure by retailer',
            '',
            markdown_table(retailers),
            '',
        ]
        if retailer_chart:
            lines += [f'![Total value sales per retailer]({retailer_chart})', '']

        lines += [
            f'## Expenditure share by segment (top {self.top_n_segments} + Other)',
            '',
            markdown_table(segments),
            '',
        ]
        if segment_chart:
            lines += [f'![Expenditure share by segment]({segment_chart})', '']

        lines += [
            '## Purchase method',
            '',
            markdown_table(self.tables['purchase_method_split']),
            '',
            '## Baskets',
            '',
            markdown_table(self.tables['basket_summary']),
            '',
            '### By retailer',
            '',
            markdown_table(self.tables['basket_summary_by_retailer']),
            '',
            '### By purchase method',
            '',
            markdown_table(self.tables['basket_summary_by_method']),
            '',
            '## Online households',
            '',
            f"{len(self.tables['online_households']):,} households made at least one online purchase.",
            '',
        ]
        return '\n'.join(lines)
