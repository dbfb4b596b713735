"""
Pipeline Configuration
======================
Paths and parameters shared by the data preparation stages and the
exploration report.

Values come from constructor defaults, then environment variables
(a local .env file is loaded first), then CLI flags in the runners.

Environment:
    PANEL_DATA_URL      Source of the raw panel (http(s) URL or local path)
    PANEL_DATA_DIR      Directory holding the raw panel (default: data/)
    PANEL_GEN_DIR       Directory for generated artifacts (default: gen/)
    PANEL_WEEKLY_YEAR   Restrict weekly aggregation to one ISO year
    PANEL_TOP_SEGMENTS  Number of segments shown before "Other" (default: 5)
    PANEL_SEGMENT_MAP   CSV with category,segment columns overriding the built-in map
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent.parent


@dataclass
class PipelineConfig:
    project_root: Path = PROJECT_ROOT
    data_dir: Optional[Path] = None
    gen_dir: Optional[Path] = None

    source_url: Optional[str] = None
    download_chunk_size: int = 1 << 20
    http_timeout: float = 60.0

    segment_map_path: Optional[Path] = None
    weekly_by: Tuple[str, ...] = ()
    weekly_year: Optional[int] = None
    top_n_segments: int = 5

    raw_file: str = 'dataset_dprep.csv'
    clean_file: str = 'data_clean.csv'
    cleaning_report_file: str = 'cleaning_report.json'
    baskets_file: str = 'baskets.csv'
    weekly_file: str = 'weekly_baskets.csv'
    report_file: str = 'report.md'

    def __post_init__(self):
        self.project_root = Path(self.project_root)
        if self.data_dir is None:
            self.data_dir = self.project_root / 'data'
        if self.gen_dir is None:
            self.gen_dir = self.project_root / 'gen'
        self.data_dir = Path(self.data_dir)
        self.gen_dir = Path(self.gen_dir)
        if self.segment_map_path is not None:
            self.segment_map_path = Path(self.segment_map_path)
        self.weekly_by = tuple(self.weekly_by)

    @classmethod
    def from_env(cls, **overrides) -> 'PipelineConfig':
        """Build a config from environment variables; keyword overrides win."""
        load_dotenv()

        values = {}
        if os.getenv('PANEL_DATA_URL'):
            values['source_url'] = os.getenv('PANEL_DATA_URL')
        if os.getenv('PANEL_DATA_DIR'):
            values['data_dir'] = Path(os.getenv('PANEL_DATA_DIR'))
        if os.getenv('PANEL_GEN_DIR'):
            values['gen_dir'] = Path(os.getenv('PANEL_GEN_DIR'))
        if os.getenv('PANEL_WEEKLY_YEAR'):
            values['weekly_year'] = int(os.getenv('PANEL_WEEKLY_YEAR'))
        if os.getenv('PANEL_TOP_SEGMENTS'):
            values['top_n_segments'] = int(os.getenv('PANEL_TOP_SEGMENTS'))
        if os.getenv('PANEL_SEGMENT_MAP'):
            values['segment_map_path'] = Path(os.getenv('PANEL_SEGMENT_MAP'))

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    # Artifact locations
    @property
    def input_dir(self) -> Path:
        return self.gen_dir / 'data_preparation' / 'input'

    @property
    def report_dir(self) -> Path:
        return self.gen_dir / 'exploration' / 'output'

    @property
    def raw_path(self) -> Path:
        return self.data_dir / self.raw_file

    @property
    def clean_path(self) -> Path:
        return self.input_dir / self.clean_file

    @property
    def cleaning_report_path(self) -> Path:
        return self.input_dir / self.cleaning_report_file

    @property
    def baskets_path(self) -> Path:
        return self.input_dir / self.baskets_file

    @property
    def weekly_path(self) -> Path:
        return self.input_dir / self.weekly_file

    @property
    def report_path(self) -> Path:
        return self.report_dir / self.report_file

    @property
    def manifest_path(self) -> Path:
        return self.gen_dir / '.pipeline_manifest.json'
