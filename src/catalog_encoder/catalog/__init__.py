"""
Catalog data model and cache decisions.

Package organization:
- models: Entry, MediaItem, Rendition and FormatRequest with JSON (de)serialization.
- store: input/previous catalog loading and the checkpoint writer.
- matcher: source matching and the reuse/redo decision per requested format.
- expiry: duration parsing and the policy that invalidates stale prior media.
"""
from .expiry import ExpiryPolicy, parse_duration
from .matcher import MatchAction, MatchResult, find_prior_media, match, source_match
from .models import (
    Catalog,
    Entry,
    FormatRequest,
    MediaItem,
    Rendition,
    catalog_from_dict,
    catalog_to_dict,
)
from .store import CheckpointWriter, load_catalog, load_previous_catalog, validate_catalog

__all__ = [
    # Models
    "Catalog",
    "Entry",
    "FormatRequest",
    "MediaItem",
    "Rendition",
    "catalog_from_dict",
    "catalog_to_dict",
    # Store
    "CheckpointWriter",
    "load_catalog",
    "load_previous_catalog",
    "validate_catalog",
    # Matching
    "MatchAction",
    "MatchResult",
    "find_prior_media",
    "match",
    "source_match",
    # Expiry
    "ExpiryPolicy",
    "parse_duration",
]
