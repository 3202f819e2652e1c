"""
Output naming helpers.

Entry ids are turned into filesystem-safe names, and rendition/thumbnail files are laid out
as siblings of the output catalog under ``<catalog-basename>-media/``.
"""
import re
from typing import Set
from urllib.parse import urlsplit, urlunsplit

from catalog_encoder.utils.constants import THUMBNAIL_EXTENSION

_UNSAFE_CHARS = re.compile(r"[^-a-zA-Z0-9.]")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def _escape_char(match: re.Match) -> str:
    char = match.group(0)
    if char == " ":
        return "_"
    return f"_-{_base36(ord(char))}-_"


def id_to_filename(entry_id: str) -> str:
    """
    Make an entry id safe to use in a filename.

    Spaces become ``_``; any other character outside ``[-a-zA-Z0-9.]`` becomes
    ``_-<base36 code point>-_`` so distinct ids keep distinct filenames.
    """
    return _UNSAFE_CHARS.sub(_escape_char, entry_id)


def rendition_filename(entry_id: str, media_index: int, codec: str, width: int, height: int, container: str) -> str:
    return f"{id_to_filename(entry_id)}-{media_index}-{codec}-{width}x{height}.{container}"


def thumbnail_filename(entry_id: str, media_index: int) -> str:
    return f"{id_to_filename(entry_id)}-{media_index}.{THUMBNAIL_EXTENSION}"


def _strip_json(path: str) -> str:
    return re.sub(r"\.json$", "", path)


def media_output_url(output_url: str, filename: str) -> str:
    """Absolute URL for a media file stored next to the output catalog."""
    parts = urlsplit(output_url)
    path = f"{_strip_json(parts.path)}-media/{filename}"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def media_relative_url(output_url: str, filename: str) -> str:
    """URL of a media file relative to the output catalog, as recorded in the catalog."""
    basename = urlsplit(output_url).path.split("/")[-1]
    return f"{_strip_json(basename)}-media/{filename}"


def claim_media_name(output_url: str, filename: str, reserved: Set[str]) -> str:
    """
    Pick a filename whose relative URL is not in ``reserved`` and reserve it.

    Names are index based, so after media items are removed or reordered a fresh output
    can land on a name a carried-over rendition or thumbnail still points to. Such names
    get a ``-2``, ``-3``, ... suffix before the extension instead.
    """
    stem, dot, ext = filename.rpartition(".")
    if not dot:
        stem, ext = filename, ""
    candidate = filename
    counter = 2
    while media_relative_url(output_url, candidate) in reserved:
        candidate = f"{stem}-{counter}{dot}{ext}"
        counter += 1
    reserved.add(media_relative_url(output_url, candidate))
    return candidate
