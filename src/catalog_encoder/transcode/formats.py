"""
Parse the target format descriptor.

A format spec is a comma separated list of ``container:codec:quality@WIDTHxHEIGHT``
tokens, e.g. ``mp4:x264:22.0@512x288,webm:vp9:32.0@1024x576``. Each token becomes one
FormatRequest, in order. Duplicate tokens are kept and simply produce duplicate work.
"""
import math
from typing import List

from catalog_encoder.catalog.models import FormatRequest
from catalog_encoder.utils.errors import ConfigError


def _parse_number(value: str, kind, token: str, name: str):
    try:
        return kind(value.strip())
    except ValueError:
        raise ConfigError(f"Format '{token}' has a non-numeric {name}: '{value}'")


def parse_format(token: str) -> FormatRequest:
    """Parse a single ``container:codec:quality@WxH`` token."""
    token = token.strip()
    if "@" not in token:
        raise ConfigError(f"Format '{token}' is missing '@' before the resolution")
    fmt, res = token.split("@", 1)

    parts = fmt.split(":")
    if len(parts) != 3:
        raise ConfigError(f"Format '{token}' must look like container:codec:quality@WxH")
    container, codec, quality = (p.strip() for p in parts)
    if not container or not codec:
        raise ConfigError(f"Format '{token}' is missing a container or codec")

    if "x" not in res:
        raise ConfigError(f"Format '{token}' resolution must look like WIDTHxHEIGHT")
    width, height = res.split("x", 1)

    request = FormatRequest(
        container=container,
        codec=codec,
        quality=_parse_number(quality, float, token, "quality"),
        width=_parse_number(width, int, token, "width"),
        height=_parse_number(height, int, token, "height"),
    )
    if not math.isfinite(request.quality):
        raise ConfigError(f"Format '{token}' has a non-numeric quality: '{quality}'")
    if request.width <= 0 or request.height <= 0:
        raise ConfigError(f"Format '{token}' resolution must be positive")
    return request


def parse_formats(spec: str) -> List[FormatRequest]:
    """Parse a comma separated format spec into FormatRequests, preserving order."""
    tokens = [t for t in (spec or "").split(",") if t.strip()]
    if not tokens:
        raise ConfigError("No target formats given")
    return [parse_format(t) for t in tokens]
