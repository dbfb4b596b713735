"""
Run Data Preparation Pipeline
=============================
Brings every panel artifact up to date by running the stages whose inputs
changed since they last ran.

Stages and artifacts:
    download_data        -> raw_panel        (data/dataset_dprep.csv)
    data_cleaning        -> clean_panel      (gen/data_preparation/input/data_clean.csv)
                            cleaning_report  (gen/data_preparation/input/cleaning_report.json)
    basket_aggregation   -> baskets          (gen/data_preparation/input/baskets.csv)
    weekly_aggregation   -> weekly_baskets   (gen/data_preparation/input/weekly_baskets.csv)
    exploration_report   -> report           (gen/exploration/output/report.md)

download_data is only defined when a source is configured (PANEL_DATA_URL or
--url); otherwise the raw panel is treated as an external input.

The stage graph is resolved with networkx when the run starts. A stage is
stale when one of its outputs is missing, when the fingerprint of its inputs,
its parameters and the source files implementing it (content hashes) differs
from the one recorded in gen/.pipeline_manifest.json, or when any upstream
stage is stale.
Stages run one after another; the first failure aborts the rest of the chain.

Usage:
    python -m src.data_preparation.run_data_preparation
    python -m src.data_preparation.run_data_preparation --dry-run
    python -m src.data_preparation.run_data_preparation --force
    python -m src.data_preparation.run_data_preparation --only-stage basket_aggregation
"""

import argparse
import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import networkx as nx

from .config import PipelineConfig
from .errors import StageDependencyError
from .schema import BASKET_SCHEMA, CLEAN_SCHEMA, RAW_SCHEMA
from .stage1_download_data import PanelDownloader
from .stage2_data_cleaning import PanelCleaningPipeline, build_segment_map
from .stage3_basket_aggregation import BasketAggregationPipeline
from .stage4_weekly_aggregation import WeeklyAggregationPipeline

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
EXPLORATION_DIR = PACKAGE_DIR.parent / 'exploration'


@dataclass
class Stage:
    """A named step reading and writing artifact identifiers."""
    name: str
    inputs: List[str]
    outputs: List[str]
    action: Callable[[], object]
    params: Dict = field(default_factory=dict)
    # Code that produces the outputs; edits make the stage stale
    sources: List[Path] = field(default_factory=list)


def file_digest(path: Path, chunk_size: int = 1 << 20) -> str:
    """SHA-256 of a file's contents."""
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            digest.update(chunk)
    return digest.hexdigest()


class StageGraph:
    """
    Directed acyclic graph of stages, linked producer -> consumer.

    Inputs without a producing stage are external artifacts; they must exist
    on disk by the time the consuming stage runs.
    """

    def __init__(self, stages: List[Stage], artifacts: Dict[str, Path]):
        self.stages = {s.name: s for s in stages}
        self.artifacts = artifacts
        if len(self.stages) != len(stages):
            raise StageDependencyError("Duplicate stage names in pipeline definition")

        self.producers: Dict[str, str] = {}
        for stage in stages:
            for artifact in stage.inputs + stage.outputs:
                if artifact not in artifacts:
                    raise StageDependencyError(f"{stage.name}: unknown artifact '{artifact}'")
            for artifact in stage.outputs:
                if artifact in self.producers:
                    raise StageDependencyError(
                        f"Artifact '{artifact}' produced by both "
                        f"{self.producers[artifact]} and {stage.name}"
                    )
                self.producers[artifact] = stage.name

        self.graph = nx.DiGraph()
        for index, stage in enumerate(stages):
            self.graph.add_node(stage.name, index=index)
        for stage in stages:
            for artifact in stage.inputs:
                producer = self.producers.get(artifact)
                if producer is not None:
                    self.graph.add_edge(producer, stage.name, artifact=artifact)

        if not nx.is_directed_acyclic_graph(self.graph):
            cycle = nx.find_cycle(self.graph)
            raise StageDependencyError(f"Stage graph has a cycle: {cycle}")

    def order(self) -> List[str]:
        """Topological order; ties keep definition order."""
        index = nx.get_node_attributes(self.graph, 'index')
        return list(nx.lexicographical_topological_sort(self.graph, key=lambda n: index[n]))

    def upstream(self, name: str) -> List[str]:
        return list(self.graph.predecessors(name))

    def fingerprint(self, name: str) -> Optional[str]:
        """Hash of stage parameters, source code and input contents; None if an input is missing."""
        stage = self.stages[name]
        digest = hashlib.sha256()
        digest.update(json.dumps(stage.params, sort_keys=True, default=str).encode())
        for source in sorted(Path(s) for s in stage.sources):
            digest.update(source.name.encode())
            digest.update(file_digest(source).encode())
        for artifact in sorted(stage.inputs):
            path = self.artifacts[artifact]
            if not path.exists():
                return None
            digest.update(artifact.encode())
            digest.update(file_digest(path).encode())
        return digest.hexdigest()

    def missing_outputs(self, name: str) -> List[str]:
        return [a for a in self.stages[name].outputs if not self.artifacts[a].exists()]

    def missing_inputs(self, name: str) -> List[str]:
        return [a for a in self.stages[name].inputs if not self.artifacts[a].exists()]


class DataPreparationPipeline:
    """
    Orchestrates the panel preparation stages.

    Stages are run sequentially in dependency order, with outputs from
    earlier stages feeding into later stages.
    """

    def __init__(self, config: PipelineConfig, include_report: bool = True):
        self.config = config
        self.include_report = include_report
        self.artifacts = self._artifacts()
        self.graph = StageGraph(self._build_stages(), self.artifacts)

    def _artifacts(self) -> Dict[str, Path]:
        c = self.config
        artifacts = {
            'raw_panel': c.raw_path,
            'clean_panel': c.clean_path,
            'cleaning_report': c.cleaning_report_path,
            'baskets': c.baskets_path,
            'weekly_baskets': c.weekly_path,
            'report': c.report_path,
        }
        if c.segment_map_path is not None:
            artifacts['segment_map'] = c.segment_map_path
        return artifacts

    def _build_stages(self) -> List[Stage]:
        c = self.config
        weekly_input = 'clean_panel' if 'segment' in c.weekly_by else 'baskets'

        stages = []
        if c.source_url:
            # Without a source the raw panel is an external artifact
            stages.append(Stage(
                name='download_data',
                inputs=[],
                outputs=['raw_panel'],
                action=self._download,
                params={'source': c.source_url},
                sources=self._sources('stage1_download_data.py'),
            ))

        stages += [
            Stage(
                name='data_cleaning',
                inputs=['raw_panel'] + (['segment_map'] if c.segment_map_path else []),
                outputs=['clean_panel', 'cleaning_report'],
                action=self._clean,
                sources=self._sources('stage2_data_cleaning.py'),
            ),
            Stage(
                name='basket_aggregation',
                inputs=['clean_panel'],
                outputs=['baskets'],
                action=self._aggregate_baskets,
                sources=self._sources('stage3_basket_aggregation.py'),
            ),
            Stage(
                name='weekly_aggregation',
                inputs=[weekly_input],
                outputs=['weekly_baskets'],
                action=self._aggregate_weeks,
                params={'by': list(c.weekly_by), 'year': c.weekly_year},
                sources=self._sources('stage3_basket_aggregation.py', 'stage4_weekly_aggregation.py'),
            ),
        ]
        if self.include_report:
            stages.append(Stage(
                name='exploration_report',
                inputs=['clean_panel', 'baskets'],
                outputs=['report'],
                action=self._report,
                params={'top_n_segments': c.top_n_segments},
                sources=self._sources('stage2_data_cleaning.py') + [
                    EXPLORATION_DIR / name
                    for name in ('descriptive_statistics.py', 'charts.py', 'report.py')
                ],
            ))
        return stages

    @staticmethod
    def _sources(*modules: str) -> List[Path]:
        """Package modules a stage runs, plus the schemas every stage reads and writes."""
        return [PACKAGE_DIR / 'schema.py'] + [PACKAGE_DIR / m for m in modules]

    # Stage actions

    def _download(self):
        c = self.config
        return PanelDownloader(
            c.source_url, c.raw_path,
            chunk_size=c.download_chunk_size,
            timeout=c.http_timeout
        ).run()

    def _clean(self):
        c = self.config
        raw_df = RAW_SCHEMA.read_csv(c.raw_path)
        logger.info(f"Loaded {len(raw_df):,} raw purchase rows")

        pipeline = PanelCleaningPipeline(segment_map=build_segment_map(c.segment_map_path))
        clean_df = pipeline.run(raw_df)
        pipeline.save(clean_df, c.clean_path, c.cleaning_report_path)

    def _aggregate_baskets(self):
        c = self.config
        clean_df = CLEAN_SCHEMA.read_csv(c.clean_path)
        pipeline = BasketAggregationPipeline()
        pipeline.save(pipeline.run(clean_df), c.baskets_path)

    def _aggregate_weeks(self):
        c = self.config
        if 'segment' in c.weekly_by:
            df = CLEAN_SCHEMA.read_csv(c.clean_path)
        else:
            df = BASKET_SCHEMA.read_csv(c.baskets_path)
        pipeline = WeeklyAggregationPipeline(by=c.weekly_by, year=c.weekly_year)
        pipeline.save(pipeline.run(df), c.weekly_path)

    def _report(self):
        from src.exploration.report import ExplorationReport

        c = self.config
        report = ExplorationReport(c.report_dir, top_n_segments=c.top_n_segments)
        report.build(
            CLEAN_SCHEMA.read_csv(c.clean_path),
            BASKET_SCHEMA.read_csv(c.baskets_path),
            report_name=c.report_file
        )

    # Planning and execution

    def _load_manifest(self) -> Dict[str, str]:
        path = self.config.manifest_path
        if not path.exists():
            return {}
        with open(path) as f:
            return json.load(f)

    def _save_manifest(self, manifest: Dict[str, str]) -> None:
        path = self.config.manifest_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(manifest, f, indent=2, sort_keys=True)

    def plan(self, force: bool = False, only_stage: Optional[str] = None) -> List[str]:
        """
        Stages that need to run, in execution order.

        Parameters
        ----------
        force : bool
            Treat every stage as stale
        only_stage : str, optional
            Run just this stage, regardless of staleness
        """
        if only_stage is not None:
            if only_stage not in self.graph.stages:
                raise StageDependencyError(
                    f"Unknown stage '{only_stage}'; choose from {self.graph.order()}"
                )
            return [only_stage]

        manifest = self._load_manifest()
        stale = set()
        for name in self.graph.order():
            if (
                force
                or self.graph.missing_outputs(name)
                or any(up in stale for up in self.graph.upstream(name))
                or manifest.get(name) != self.graph.fingerprint(name)
            ):
                stale.add(name)
        return [name for name in self.graph.order() if name in stale]

    def run(
        self,
        force: bool = False,
        only_stage: Optional[str] = None,
        dry_run: bool = False
    ) -> List[str]:
        """
        Run all stale stages.

        Returns
        -------
        list of str
            Names of the stages that ran (or would run, for a dry run)
        """
        logger.info("=" * 70)
        logger.info("HOUSEHOLD PANEL DATA PREPARATION PIPELINE")
        logger.info("=" * 70)
        logger.info(f"Raw data: {self.config.raw_path}")
        logger.info(f"Generated artifacts: {self.config.gen_dir}")

        planned = self.plan(force=force, only_stage=only_stage)
        if not planned:
            logger.info("All artifacts are up to date.")
            return []
        logger.info(f"Stages to run: {', '.join(planned)}")
        if dry_run:
            return planned

        manifest = self._load_manifest()
        total_start = time.time()

        for name in planned:
            missing = self.graph.missing_inputs(name)
            if missing:
                raise StageDependencyError(
                    f"{name}: input artifact(s) not found: "
                    + ', '.join(f"{a} ({self.artifacts[a]})" for a in missing)
                )

            logger.info("-" * 70)
            start = time.time()
            self.graph.stages[name].action()
            logger.info(f"{name} completed in {time.time() - start:.1f}s")

            manifest[name] = self.graph.fingerprint(name)
            self._save_manifest(manifest)

        logger.info("=" * 70)
        logger.info(f"PIPELINE COMPLETE - Total time: {time.time() - total_start:.1f}s")
        logger.info("=" * 70)
        self._log_summary()
        return planned

    def _log_summary(self):
        logger.info("Output Files:")
        for artifact, path in self.artifacts.items():
            if artifact not in self.graph.producers:
                continue
            if path.exists():
                logger.info(f"  ✓ {artifact}: {path} ({path.stat().st_size / 1e6:.1f} MB)")
            else:
                logger.info(f"  ✗ {artifact}: {path} (not created)")


def main():
    parser = argparse.ArgumentParser(
        description='Run the household panel data preparation pipeline'
    )
    parser.add_argument('--url', type=str, default=None, help='Raw panel source (URL or path)')
    parser.add_argument('--data-dir', type=str, default=None, help='Directory for the raw panel')
    parser.add_argument('--gen-dir', type=str, default=None, help='Directory for generated artifacts')
    parser.add_argument('--segment-map', type=str, default=None, help='CSV with category,segment columns')
    parser.add_argument(
        '--weekly-by',
        type=str,
        nargs='+',
        default=None,
        choices=['retailer', 'segment'],
        help='Extra weekly grouping column(s)'
    )
    parser.add_argument('--weekly-year', type=int, default=None, help='Restrict weekly output to one ISO year')
    parser.add_argument('--top-segments', type=int, default=None, help='Segments shown before "Other"')
    parser.add_argument('--force', action='store_true', help='Re-run every stage')
    parser.add_argument('--only-stage', type=str, default=None, help='Only run this stage')
    parser.add_argument('--dry-run', action='store_true', help='Show the plan without running it')
    parser.add_argument('--no-report', action='store_true', help='Skip the exploration report stage')

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    config = PipelineConfig.from_env(
        source_url=args.url,
        data_dir=args.data_dir,
        gen_dir=args.gen_dir,
        segment_map_path=args.segment_map,
        weekly_by=args.weekly_by,
        weekly_year=args.weekly_year,
        top_n_segments=args.top_segments,
    )

    pipeline = DataPreparationPipeline(config, include_report=not args.no_report)
    pipeline.run(force=args.force, only_stage=args.only_stage, dry_run=args.dry_run)


if __name__ == '__main__':
    main()
