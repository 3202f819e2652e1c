"""
Download cache for source media.

Each distinct source URL is downloaded at most once while the cache is open; every file
it created is removed when the cache is closed, whether or not processing succeeded.
"""
import tempfile
import uuid
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlsplit

from catalog_encoder.utils import LogLevel, constants, logger
from catalog_encoder.utils.url_io import UrlStore


def temp_path(extension: str, prefix: str = constants.TEMP_PREFIX, temp_dir: Optional[str] = None) -> Path:
    """A fresh, unused path in the temp directory ending in ``.extension``."""
    base = Path(temp_dir or constants.TEMP_DIR or tempfile.gettempdir())
    return base / f"{prefix}-{uuid.uuid4().hex}.{extension}"


def _extension(url: str) -> str:
    name = urlsplit(url).path.rsplit("/", 1)[-1]
    if "." in name:
        return name.rsplit(".", 1)[-1] or "bin"
    return "bin"


class ResourceCache:
    """Maps source URLs to local copies for the lifetime of one scope."""

    def __init__(self, store: UrlStore, temp_dir: Optional[str] = None):
        self.store = store
        self.temp_dir = temp_dir
        self._paths: Dict[str, Path] = {}

    def __enter__(self) -> "ResourceCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def __contains__(self, url: str) -> bool:
        return url in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def get(self, url: str) -> Optional[Path]:
        return self._paths.get(url)

    def fetch(self, url: str) -> Path:
        """
        Return a local path holding the contents of ``url``, downloading on first use.

        Raises:
            FetchError: if the download fails. Nothing is cached in that case.
        """
        cached = self._paths.get(url)
        if cached is not None:
            return cached

        dest = temp_path(_extension(url), temp_dir=self.temp_dir)
        logger.log("fetch.start", LogLevel.INFO, url=url)
        try:
            self.store.download(url, dest)
        except Exception:
            remove_quietly(dest)
            raise
        self._paths[url] = dest
        logger.log("fetch.complete", LogLevel.DEBUG, url=url, path=str(dest))
        return dest

    def cleanup(self) -> None:
        """Remove every cached file. Errors are logged, never raised."""
        if self._paths:
            logger.log("cache.cleanup", LogLevel.DEBUG, files=len(self._paths))
        for path in list(self._paths.values()):
            remove_quietly(path)
        self._paths.clear()


def remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.log("cache.remove_failed", LogLevel.WARN, path=str(path), error=str(e))
