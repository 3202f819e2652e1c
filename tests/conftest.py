"""Shared test fixtures for the catalog encoder."""

import json
from pathlib import Path

import pytest

from catalog_encoder.transcode.core import VideoInfo
from catalog_encoder.utils.errors import EncodeError, StoreError, ThumbnailError
from catalog_encoder.utils.url_io import UrlStore


class SimulatedCrash(BaseException):
    """Kills a run the way an interrupt would, past every per-item error handler."""


class FakeTranscoder:
    """Stands in for HandBrake: writes a small file and reports the requested size limits."""

    def __init__(self, fail_codecs=(), crash_on=None, errors=None, tag_source=False):
        self.fail_codecs = set(fail_codecs)
        self.errors = errors or {}
        self.tag_source = tag_source
        self.crash_on = crash_on
        self.calls = []
        self.sources = []

    def transcode(self, options):
        self.calls.append(options)
        self.sources.append(options.input.read_bytes())
        if self.crash_on and self.crash_on.encode() in self.sources[-1]:
            raise SimulatedCrash()
        if options.codec in self.errors:
            raise self.errors[options.codec]
        if options.codec in self.fail_codecs:
            raise EncodeError(f"{options.codec} encoder failed")
        data = f"{options.container}:{options.codec}".encode()
        if self.tag_source:
            data += b":" + self.sources[-1]
        options.output.write_bytes(data)
        return VideoInfo(width=options.max_width, height=options.max_height, codec=options.codec,
                         duration=1.5, byte_size=len(data))


class FakeThumbnailer:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def generate(self, source, dest, seek=None):
        self.calls.append((source, seek))
        if self.fail:
            raise ThumbnailError("no frame")
        dest.write_bytes(b"webp")
        return dest


class CountingStore(UrlStore):
    """UrlStore that records which URLs were downloaded and uploaded."""

    def __init__(self):
        super().__init__()
        self.downloads = []
        self.uploads = []

    def download(self, url, dest):
        self.downloads.append(url)
        return super().download(url, dest)

    def upload(self, url, source):
        self.uploads.append(url)
        return super().upload(url, source)


class FlakyStore(CountingStore):
    """Rejects the first ``failures`` catalog writes like an overloaded server."""

    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures
        self.writes = []

    def write(self, url, data):
        self.writes.append(url)
        if self.failures:
            self.failures -= 1
            raise StoreError("file write failed: 503")
        return super().write(url, data)


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def transcoder():
    return FakeTranscoder()


@pytest.fixture
def thumbnailer():
    return FakeThumbnailer()


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Scratch directory for downloads and intermediate encodes."""
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Directory holding an input catalog with one entry and its source video."""
    (tmp_path / "v.mp4").write_bytes(b"source-video-a")
    write_json(tmp_path / "search-data.json", {
        "a": {"title": "T", "media": [{"method": "fetch", "url": "v.mp4"}]},
    })
    return tmp_path
