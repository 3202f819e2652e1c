"""
Decide whether a previously produced rendition can be reused.

A prior media item matches the current one when their sources agree on ``version`` and
``url``; nothing else in the source is considered. A rendition of the matched item is reused
when its version key equals the requested format's version key exactly, so any change to
encode parameters has to show up in the version key to invalidate old renditions.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from catalog_encoder.catalog.models import FormatRequest, MediaItem, Rendition, source_identity


class MatchAction(Enum):
    REUSE = "reuse"
    REDO = "redo"


@dataclass(frozen=True)
class MatchResult:
    action: MatchAction
    rendition: Optional[Rendition] = None
    timestamp: Optional[int] = None

    @property
    def reuse(self) -> bool:
        return self.action is MatchAction.REUSE


REDO = MatchResult(MatchAction.REDO)


def source_match(left: Dict[str, Any], right: Dict[str, Any]) -> bool:
    return source_identity(left) == source_identity(right)


def find_prior_media(source: Dict[str, Any], prior_media: Sequence[MediaItem]) -> Optional[MediaItem]:
    """First prior media item whose source matches ``source``."""
    for prior in prior_media:
        if source_match(prior.source, source):
            return prior
    return None


def match(source: Dict[str, Any], prior_media: Sequence[MediaItem], request: FormatRequest) -> MatchResult:
    """Return REUSE with the prior rendition for ``request``, or REDO."""
    prior = find_prior_media(source, prior_media)
    if prior is None:
        return REDO

    version = request.version
    for rendition in prior.encodes:
        if rendition.version == version:
            return MatchResult(MatchAction.REUSE, rendition, prior.timestamp)
    return REDO
