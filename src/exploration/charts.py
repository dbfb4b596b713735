"""
Report Charts
=============
- Bar chart of total value sales per retailer
- Ring chart of expenditure share by segment (top N + "Other")
"""

from pathlib import Path
from typing import Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

sns.set_theme(style='whitegrid')


def plot_retailer_sales(
    retailer_df: pd.DataFrame,
    output_path: Optional[Path] = None,
    figsize=(10, 5)
):
    """
    Bar chart of total value sales (major currency units) per retailer.

    Parameters
    ----------
    retailer_df : pd.DataFrame
        Output of retailer_expenditure()
    output_path : Path, optional
        PNG destination; the figure is returned either way
    """
    fig, ax = plt.subplots(1, 1, figsize=figsize)

    sns.barplot(
        data=retailer_df,
        x='retailer',
        y='expenditure_eur',
        order=list(retailer_df['retailer']),
        color='steelblue',
        ax=ax
    )
    ax.set_title('Total Value Sales per Retailer', fontsize=14, fontweight='bold')
    ax.set_xlabel('Retailer')
    ax.set_ylabel('Value sales (EUR)')
    ax.tick_params(axis='x', rotation=45)

    for patch, value in zip(ax.patches, retailer_df['expenditure_eur']):
        ax.annotate(
            f"{value:,.0f}",
            (patch.get_x() + patch.get_width() / 2, patch.get_height()),
            ha='center', va='bottom', fontsize=8
        )

    plt.tight_layout()
    if output_path:
        plt.savefig(output_path, dpi=150, bbox_inches='tight')
    return fig


def plot_segment_shares(
    shares_df: pd.DataFrame,
    output_path: Optional[Path] = None,
    figsize=(8, 8)
):
    """
    Ring chart of expenditure share by segment with percentage labels.

    Parameters
    ----------
    shares_df : pd.DataFrame
        Output of segment_shares()
    output_path : Path, optional
        PNG destination; the figure is returned either way
    """
    fig, ax = plt.subplots(1, 1, figsize=figsize)

    colors = sns.color_palette('Set2', n_colors=max(len(shares_df), 1))
    ax.pie(
        shares_df['share_pct'],
        labels=shares_df['segment'],
        colors=colors,
        autopct='%1.1f%%',
        pctdistance=0.8,
        startangle=90,
        counterclock=False,
        wedgeprops={'width': 0.4, 'edgecolor': 'white'}
    )
    ax.set_title('Expenditure Share by Segment', fontsize=14, fontweight='bold')
    ax.axis('equal')

    plt.tight_layout()
    if output_path:
        plt.savefig(output_path, dpi=150, bbox_inches='tight')
    return fig
