"""
Loading and persisting catalogs.

The input catalog is validated completely before any work starts: it must be a JSON object
of entries whose media records all use the ``fetch`` method. The previous output catalog
is best effort; if it is missing or unreadable the run simply starts from scratch.
"""
import json
from typing import Any, Dict, Optional

from catalog_encoder.catalog.models import Catalog, catalog_from_dict, catalog_to_dict
from catalog_encoder.utils import MEDIA_METHOD_FETCH, LogLevel, logger
from catalog_encoder.utils.errors import CatalogError, FetchError, MediaMethodError, PreviousCatalogError
from catalog_encoder.utils.url_io import UrlStore


def _parse_json(raw: bytes, url: str) -> Any:
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise CatalogError(f"Invalid JSON in {url}: {e}")


def validate_catalog(data: Any) -> Dict[str, Dict[str, Any]]:
    """Check the input catalog layout and media methods, returning it unchanged."""
    if not isinstance(data, dict):
        raise CatalogError("Catalog must be a JSON object mapping entry ids to entries")

    for entry_id, entry in data.items():
        if not isinstance(entry, dict):
            raise CatalogError(f"Entry {entry_id} is not an object")
        media = entry.get("media", [])
        if not isinstance(media, list):
            raise CatalogError(f"Entry {entry_id} has a non-list media field")
        for index, record in enumerate(media):
            if not isinstance(record, dict):
                raise CatalogError(f"Media {index} of {entry_id} is not an object")
            if record.get("method") != MEDIA_METHOD_FETCH:
                raise MediaMethodError(f"Media entry for {entry_id} doesn't use fetch method")
            if not isinstance(record.get("url"), str) or not record["url"]:
                raise CatalogError(f"Media {index} of {entry_id} has no url")
    return data


def load_catalog(store: UrlStore, url: str) -> Dict[str, Dict[str, Any]]:
    """Read and validate the input catalog. Entries stay raw dicts; their media are source records."""
    try:
        raw = store.read(url)
    except FetchError as e:
        raise CatalogError(f"Could not read input catalog: {e}")
    data = validate_catalog(_parse_json(raw, url))
    logger.log("catalog.loaded", LogLevel.INFO, url=url, entries=len(data))
    return data


def _parse_previous(raw: bytes, url: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError) as e:
        raise PreviousCatalogError(f"Invalid JSON in {url}: {e}")
    if not isinstance(data, dict):
        raise PreviousCatalogError(f"Previous catalog at {url} is not a JSON object")
    return data


def load_previous_catalog(store: UrlStore, url: str) -> tuple[Catalog, Dict[str, Any]]:
    """
    Read the output of the previous run from ``url``.

    Returns the parsed catalog together with the raw JSON object (used for merged
    checkpoints). Anything that goes wrong yields an empty catalog and a warning.
    """
    try:
        raw = store.read(url)
        data = _parse_previous(raw, url)
        catalog = catalog_from_dict(data)
    except FetchError as e:
        logger.log("previous.missing", LogLevel.WARN, url=url, error=str(e))
        return {}, {}
    except PreviousCatalogError as e:
        logger.log("previous.invalid", LogLevel.WARN, url=url, error=str(e))
        return {}, {}
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.log("previous.invalid", LogLevel.WARN, url=url, error=f"Unexpected layout: {e}")
        return {}, {}

    logger.log("previous.loaded", LogLevel.INFO, url=url, entries=len(catalog))
    return catalog, data


class CheckpointWriter:
    """Persists the output catalog, either as a merged checkpoint or as the final result."""

    def __init__(self, store: UrlStore, url: str, previous_raw: Optional[Dict[str, Any]] = None):
        self.store = store
        self.url = url
        self.previous_raw = previous_raw or {}

    def _write(self, data: Dict[str, Any]) -> None:
        logger.log("catalog.write", LogLevel.DEBUG, url=self.url, entries=len(data))
        self.store.write(self.url, json.dumps(data).encode("utf-8"))

    def checkpoint(self, output: Catalog) -> None:
        """Write the output so far layered over entries from the previous run not yet reached."""
        merged = dict(self.previous_raw)
        merged.update(catalog_to_dict(output))
        logger.log("checkpoint.write", LogLevel.INFO, url=self.url, processed=len(output))
        self._write(merged)

    def finalize(self, output: Catalog) -> None:
        """Replace the destination with the finished output catalog."""
        logger.log("catalog.final_write", LogLevel.INFO, url=self.url, entries=len(output))
        self._write(catalog_to_dict(output))
