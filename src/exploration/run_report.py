"""
Run Exploration Report
======================
Builds the descriptive report from already prepared artifacts.

Usage:
    python -m src.exploration.run_report [--top-segments 5] [--gen-dir DIR]
"""

import argparse
import logging

from src.data_preparation.config import PipelineConfig
from src.data_preparation.schema import BASKET_SCHEMA, CLEAN_SCHEMA

from .report import ExplorationReport

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def build_report(config: PipelineConfig):
    """Load the clean panel and baskets named by config and render the report."""
    logger.info(f"Loading clean panel from {config.clean_path}")
    clean_df = CLEAN_SCHEMA.read_csv(config.clean_path)
    logger.info(f"Loading baskets from {config.baskets_path}")
    baskets_df = BASKET_SCHEMA.read_csv(config.baskets_path)

    report = ExplorationReport(config.report_dir, top_n_segments=config.top_n_segments)
    return report.build(clean_df, baskets_df, report_name=config.report_file)


def main():
    parser = argparse.ArgumentParser(description='Build the descriptive panel report')
    parser.add_argument(
        '--top-segments',
        type=int,
        default=None,
        help='Segments shown before collapsing the rest into "Other" (default: 5)'
    )
    parser.add_argument(
        '--gen-dir',
        type=str,
        default=None,
        help='Directory holding generated artifacts (default: gen/)'
    )
    args = parser.parse_args()

    config = PipelineConfig.from_env(
        top_n_segments=args.top_segments,
        gen_dir=args.gen_dir
    )
    build_report(config)


if __name__ == '__main__':
    main()
