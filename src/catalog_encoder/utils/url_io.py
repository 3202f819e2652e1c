"""
Read and write bytes by URL.

Supports ``file:`` URLs (direct filesystem access, parent directories created on write)
and ``http(s):`` URLs (GET to read, PUT with an octet-stream body to write). Plain paths
are turned into ``file:`` URLs relative to the working directory.
"""
import contextlib
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname

import requests

from catalog_encoder.utils import constants
from catalog_encoder.utils.errors import FetchError, StoreError

_URL_SCHEMES = {"file", "http", "https"}


def resolve_location(location: str, base: Optional[str] = None) -> str:
    """Turn a path or URL into an absolute URL, resolving relative references against ``base``."""
    scheme = urlsplit(location).scheme.lower()
    if scheme in _URL_SCHEMES:
        return location
    if base is not None:
        return urljoin(base, location)
    return Path(location).expanduser().resolve().as_uri()


def is_file_url(url: str) -> bool:
    return urlsplit(url).scheme.lower() == "file"


def file_url_to_path(url: str) -> Path:
    return Path(url2pathname(urlsplit(url).path))


class UrlStore:
    """Byte-level access to file and HTTP(S) locations."""

    def __init__(self, timeout: float = constants.HTTP_TIMEOUT, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def read(self, url: str) -> bytes:
        """Return the full contents at ``url``."""
        if is_file_url(url):
            try:
                return file_url_to_path(url).read_bytes()
            except OSError as e:
                raise FetchError(f"Could not read {url}: {e}")

        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Request failed for {url}: {e}")
        return response.content

    def download(self, url: str, dest: Path) -> Path:
        """Copy the resource at ``url`` into the local file ``dest``."""
        if is_file_url(url):
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(file_url_to_path(url), dest)
            except OSError as e:
                raise FetchError(f"Could not copy {url}: {e}")
            return dest

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with open(dest, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=constants.DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Download failed for {url}: {e}")
        except OSError as e:
            raise FetchError(f"Could not write download of {url} to {dest}: {e}")
        return dest

    def write(self, url: str, data: bytes) -> bool:
        """Write ``data`` to ``url``, replacing anything already there."""
        if is_file_url(url):
            path = file_url_to_path(url)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)
            except OSError as e:
                raise StoreError(f"Could not write {url}: {e}")
            return True

        return self._put(url, data)

    def upload(self, url: str, source: Path) -> bool:
        """Write the contents of the local file ``source`` to ``url``."""
        if is_file_url(url):
            path = file_url_to_path(url)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, path)
            except OSError as e:
                # No partial copies at the destination
                with contextlib.suppress(OSError):
                    path.unlink(missing_ok=True)
                raise StoreError(f"Could not write {url}: {e}")
            return True

        with open(source, "rb") as fh:
            return self._put(url, fh)

    def _put(self, url: str, body) -> bool:
        try:
            response = self.session.put(
                url,
                data=body,
                headers={"content-type": "application/octet-stream"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise StoreError(f"Write request failed for {url}: {e}")
        if not response.ok:
            raise StoreError(f"file write failed: {response.status_code}")
        return True
