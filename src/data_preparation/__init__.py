"""
Data Preparation for the Household Grocery Panel
================================================
Turns the raw purchase panel into analysis-ready tables for the
online-shopping adoption study.

Pipeline Stages:
1. stage1_download_data.py - Fetch the raw panel
2. stage2_data_cleaning.py - Project, type and recode purchase events
3. stage3_basket_aggregation.py - Household x date x retailer baskets
4. stage4_weekly_aggregation.py - Household x ISO week summaries

Usage:
    python -m src.data_preparation.run_data_preparation

Output Directory Structure:
    data/
    └── dataset_dprep.csv              # Raw panel (15 columns)
    gen/
    ├── .pipeline_manifest.json        # Stage fingerprints
    ├── data_preparation/input/
    │   ├── data_clean.csv             # Clean panel (13 columns)
    │   ├── cleaning_report.json       # Coercion failure counts
    │   ├── baskets.csv
    │   └── weekly_baskets.csv
    └── exploration/output/
        └── report.md
"""

from .config import PipelineConfig
from .errors import AcquisitionError, PipelineError, SchemaError, StageDependencyError
from .schema import BASKET_SCHEMA, CLEAN_SCHEMA, RAW_SCHEMA, WEEKLY_SCHEMA
from .stage1_download_data import PanelDownloader
from .stage2_data_cleaning import PanelCleaningPipeline, classify_online_households
from .stage3_basket_aggregation import BasketAggregationPipeline
from .stage4_weekly_aggregation import WeeklyAggregationPipeline

__all__ = [
    # Configuration and schemas
    'PipelineConfig',
    'RAW_SCHEMA',
    'CLEAN_SCHEMA',
    'BASKET_SCHEMA',
    'WEEKLY_SCHEMA',
    # Errors
    'PipelineError',
    'AcquisitionError',
    'SchemaError',
    'StageDependencyError',
    # Pipeline stages
    'PanelDownloader',
    'PanelCleaningPipeline',
    'classify_online_households',
    'BasketAggregationPipeline',
    'WeeklyAggregationPipeline',
]
