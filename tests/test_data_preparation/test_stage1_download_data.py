"""
Tests for Stage 1: Panel Acquisition
====================================
"""

import zipfile
import pytest
import requests
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.data_preparation import stage1_download_data
from src.data_preparation.errors import AcquisitionError, SchemaError
from src.data_preparation.schema import RAW_SCHEMA
from src.data_preparation.stage1_download_data import PanelDownloader


class FakeResponse:
    """Minimal stand-in for a streamed requests.Response."""

    def __init__(self, content: bytes, status_code: int = 200):
        self.content = content
        self.status_code = status_code
        self.headers = {'content-length': str(len(content))}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def raw_csv_bytes(mini_raw_panel):
    return mini_raw_panel.head(20).to_csv(index=False).encode('utf-8')


@pytest.fixture
def fake_get(monkeypatch):
    """Patch requests.get; returns a dict recording the last call."""
    calls = {}

    def install(response):
        def _get(url, **kwargs):
            calls['url'] = url
            calls['kwargs'] = kwargs
            return response

        monkeypatch.setattr(stage1_download_data.requests, 'get', _get)
        return calls

    return install


class TestPanelDownloader:
    """Test suite for PanelDownloader."""

    def test_no_source_raises(self, temp_dir):
        with pytest.raises(AcquisitionError):
            PanelDownloader(None, temp_dir / 'dataset_dprep.csv').run()

    def test_remote_download(self, temp_dir, raw_csv_bytes, fake_get):
        calls = fake_get(FakeResponse(raw_csv_bytes))
        output = temp_dir / 'data' / 'dataset_dprep.csv'

        result = PanelDownloader('https://example.org/panel.csv', output, chunk_size=64).run()

        assert result == output
        assert output.read_bytes() == raw_csv_bytes
        assert calls['kwargs']['stream'] is True
        assert calls['kwargs']['timeout'] == 60.0

    def test_remote_zip_is_unpacked(self, temp_dir, raw_csv_bytes, fake_get):
        archive = temp_dir / 'panel.zip'
        with zipfile.ZipFile(archive, 'w') as zf:
            zf.writestr('export/panel.csv', raw_csv_bytes)
            zf.writestr('export/README.txt', 'codebook')
        fake_get(FakeResponse(archive.read_bytes()))

        output = temp_dir / 'dataset_dprep.csv'
        PanelDownloader('http://example.org/panel.zip', output).run()

        df = RAW_SCHEMA.read_csv(output)
        assert len(df) == 20

    def test_zip_with_two_csvs_rejected(self, temp_dir, raw_csv_bytes):
        archive = temp_dir / 'panel.zip'
        with zipfile.ZipFile(archive, 'w') as zf:
            zf.writestr('a.csv', raw_csv_bytes)
            zf.writestr('b.csv', raw_csv_bytes)

        with pytest.raises(AcquisitionError):
            PanelDownloader(str(archive), temp_dir / 'out.csv').run()

    def test_http_error(self, temp_dir, fake_get):
        fake_get(FakeResponse(b'not found', status_code=404))
        output = temp_dir / 'dataset_dprep.csv'

        with pytest.raises(AcquisitionError):
            PanelDownloader('https://example.org/missing.csv', output).run()
        assert not output.exists()

    def test_local_copy(self, temp_dir, raw_csv_bytes):
        source = temp_dir / 'export.csv'
        source.write_bytes(raw_csv_bytes)
        output = temp_dir / 'data' / 'dataset_dprep.csv'

        PanelDownloader(str(source), output).run()
        assert output.read_bytes() == raw_csv_bytes

    def test_local_missing(self, temp_dir):
        with pytest.raises(AcquisitionError):
            PanelDownloader(str(temp_dir / 'nope.csv'), temp_dir / 'out.csv').run()

    def test_wrong_header_keeps_previous_file(self, temp_dir):
        source = temp_dir / 'export.csv'
        source.write_text('a,b,c\n1,2,3\n')
        output = temp_dir / 'dataset_dprep.csv'
        output.write_text('previous')

        with pytest.raises(SchemaError):
            PanelDownloader(str(source), output).run()
        assert output.read_text() == 'previous'
