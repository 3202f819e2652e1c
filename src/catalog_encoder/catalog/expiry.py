"""Time-based invalidation of renditions from previous runs."""
import re
from dataclasses import replace
from datetime import timedelta

from catalog_encoder.catalog.models import Catalog, Entry
from catalog_encoder.utils import LogLevel, logger
from catalog_encoder.utils.errors import ConfigError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*([smhdw])", re.IGNORECASE)
_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}


def parse_duration(text: str) -> timedelta:
    """
    Parse a compact duration such as ``1w``, ``36h`` or ``1d12h``.

    Raises:
        ConfigError: if the string is empty or contains anything but number/unit pairs.
    """
    cleaned = (text or "").strip().lower()
    if not cleaned:
        raise ConfigError("Expiry duration is empty")

    pos = 0
    seconds = 0.0
    for m in _DURATION_PART.finditer(cleaned):
        if cleaned[pos:m.start()].strip():
            break
        seconds += float(m.group(1)) * _UNIT_SECONDS[m.group(2)]
        pos = m.end()
    if pos == 0 or cleaned[pos:].strip():
        raise ConfigError(f"Invalid expiry duration '{text}' (expected e.g. 1w, 12h, 1d12h)")
    return timedelta(seconds=seconds)


class ExpiryPolicy:
    """Clears prior media items older than ``max_age`` so they get fully regenerated."""

    def __init__(self, max_age: timedelta):
        self.max_age = max_age

    def apply(self, previous: Catalog, now_ms: int) -> Catalog:
        """Return a copy of ``previous`` with stale media items emptied; ``previous`` is untouched."""
        cutoff = now_ms - int(self.max_age.total_seconds() * 1000)
        expired = 0
        result: Catalog = {}
        for entry_id, entry in previous.items():
            media = []
            for item in entry.media:
                if item.timestamp < cutoff:
                    item = replace(item, thumbnail=None, encodes=[], timestamp=now_ms)
                    expired += 1
                media.append(item)
            result[entry_id] = Entry(fields=entry.fields, media=media, published=entry.published)

        logger.log("expiry.applied", LogLevel.INFO,
                   max_age=str(self.max_age),
                   expired=expired)
        return result
