"""
Stage 1: Panel Acquisition
==========================
Fetches the raw household purchase panel and materialises it as a flat CSV.

Input: PANEL_DATA_URL (http(s) URL or local path; .zip archives are unpacked)
Output: data/dataset_dprep.csv

The target is written to a temporary sibling first and moved into place once
complete, so an aborted download never leaves a truncated panel behind.
There is no retry policy: any failure aborts the run.
"""

import logging
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm

from .errors import AcquisitionError
from .schema import RAW_SCHEMA

logger = logging.getLogger(__name__)


class PanelDownloader:
    """
    Downloads the raw panel to a fixed location.

    Steps:
    1. Fetch: stream the source (HTTP) or copy it (local path)
    2. Unpack: extract the CSV member if the payload is a zip archive
    3. Validate: check the header against the raw panel schema
    4. Publish: atomically replace the output file
    """

    def __init__(
        self,
        source: Optional[str],
        output_path: Path,
        chunk_size: int = 1 << 20,
        timeout: float = 60.0
    ):
        """
        Parameters
        ----------
        source : str
            URL or local path of the raw panel
        output_path : Path
            Where the raw panel CSV is written
        chunk_size : int
            Bytes per streamed chunk
        timeout : float
            HTTP connect/read timeout in seconds
        """
        self.source = source
        self.output_path = Path(output_path)
        self.chunk_size = chunk_size
        self.timeout = timeout

    def run(self) -> Path:
        if not self.source:
            raise AcquisitionError(
                "No panel source configured. Set PANEL_DATA_URL or pass --url."
            )

        logger.info("Stage 1: Panel Acquisition")
        logger.info(f"  - Source: {self.source}")

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=self.output_path.parent) as tmp:
            payload = Path(tmp) / 'payload'

            if self._is_remote(self.source):
                self._fetch_remote(self.source, payload)
            else:
                self._fetch_local(Path(self.source), payload)

            csv_path = payload
            if zipfile.is_zipfile(payload):
                csv_path = self._unpack(payload, Path(tmp))

            self._validate_header(csv_path)
            shutil.move(str(csv_path), str(self.output_path))

        size_mb = self.output_path.stat().st_size / 1e6
        logger.info(f"  - Saved to {self.output_path} ({size_mb:.1f} MB)")
        return self.output_path

    @staticmethod
    def _is_remote(source: str) -> bool:
        return urlparse(source).scheme in ('http', 'https')

    def _fetch_remote(self, url: str, target: Path) -> None:
        try:
            with requests.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                total = int(response.headers.get('content-length', 0)) or None

                with open(target, 'wb') as fh, tqdm(
                    total=total, unit='B', unit_scale=True, desc='Downloading panel'
                ) as progress:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            fh.write(chunk)
                            progress.update(len(chunk))
        except requests.RequestException as e:
            raise AcquisitionError(f"Failed to download panel from {url}: {e}") from e

    def _fetch_local(self, path: Path, target: Path) -> None:
        if not path.exists():
            raise AcquisitionError(f"Panel source not found: {path}")
        shutil.copyfile(path, target)

    def _unpack(self, archive: Path, workdir: Path) -> Path:
        with zipfile.ZipFile(archive) as zf:
            members = [m for m in zf.namelist() if m.lower().endswith('.csv')]
            if len(members) != 1:
                raise AcquisitionError(
                    f"Expected exactly one CSV in archive, found {len(members)}"
                )
            logger.info(f"  - Extracting {members[0]}")
            return Path(zf.extract(members[0], workdir / 'unpacked'))

    def _validate_header(self, csv_path: Path) -> None:
        try:
            RAW_SCHEMA.read_csv(csv_path, nrows=5)
        except (UnicodeDecodeError, ValueError) as e:
            raise AcquisitionError(f"Downloaded panel is not a readable CSV: {e}") from e
