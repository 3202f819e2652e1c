"""
Catalog data model.

A catalog maps stable entry ids to entries. Each entry carries its descriptive fields
through unchanged, plus an ordered list of media items; each media item records its
source, thumbnail, timestamp and the renditions produced for it. Objects are built fresh
for every run and serialized back to the JSON layout consumers read.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from catalog_encoder.utils.constants import MEDIA_TYPE_VIDEO


def format_number(value: float) -> str:
    """Render a number the way a JSON serializer prints it (22.0 -> '22', 22.5 -> '22.5')."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True)
class FormatRequest:
    """Target constraints for one rendition."""
    container: str
    codec: str
    quality: float
    width: int
    height: int

    @property
    def version(self) -> str:
        """Canonical cache key for renditions produced from this request."""
        return f"{self.container}:{self.codec}:{format_number(self.quality)}@{self.width}x{self.height}"


_RENDITION_FIELDS = ("type", "width", "height", "container", "codec", "version", "url", "duration", "byteSize")


@dataclass(frozen=True)
class Rendition:
    """One transcoded output of a media item. Never modified after creation."""
    version: str
    container: str
    codec: str
    width: int
    height: int
    url: str
    duration: Optional[float] = None
    byte_size: Optional[int] = None
    type: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rendition":
        return cls(
            version=data["version"],
            container=data.get("container"),
            codec=data.get("codec"),
            width=data.get("width"),
            height=data.get("height"),
            url=data.get("url"),
            duration=data.get("duration"),
            byte_size=data.get("byteSize"),
            type=data.get("type"),
            extra={k: v for k, v in data.items() if k not in _RENDITION_FIELDS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        if self.type is not None:
            data["type"] = self.type
        data.update({
            "width": self.width,
            "height": self.height,
            "container": self.container,
            "codec": self.codec,
            "version": self.version,
            "url": self.url,
        })
        if self.duration is not None:
            data["duration"] = self.duration
        if self.byte_size is not None:
            data["byteSize"] = self.byte_size
        data.update(self.extra)
        return data


def source_identity(source: Dict[str, Any]) -> tuple:
    return source.get("version"), source.get("url")


@dataclass
class MediaItem:
    """A source video and everything produced for it."""
    source: Dict[str, Any]
    timestamp: int
    thumbnail: Optional[str] = None
    encodes: List[Rendition] = field(default_factory=list)
    type: str = MEDIA_TYPE_VIDEO

    @property
    def clipping(self) -> Optional[Dict[str, Any]]:
        clipping = self.source.get("clipping")
        return clipping if isinstance(clipping, dict) else None

    def adopt_timestamp(self, timestamp: Optional[int]) -> None:
        """Keep the oldest timestamp of anything inherited from a previous run."""
        if isinstance(timestamp, (int, float)):
            self.timestamp = min(self.timestamp, int(timestamp))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaItem":
        return cls(
            type=data.get("type", MEDIA_TYPE_VIDEO),
            source=dict(data.get("source") or {}),
            thumbnail=data.get("thumbnail"),
            timestamp=int(data.get("timestamp") or 0),
            encodes=[Rendition.from_dict(e) for e in data.get("encodes") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "source": self.source,
            "thumbnail": self.thumbnail,
            "timestamp": self.timestamp,
            "encodes": [e.to_dict() for e in self.encodes],
        }


@dataclass
class Entry:
    """A catalog entry: descriptive fields, media and a published flag."""
    fields: Dict[str, Any] = field(default_factory=dict)
    media: List[MediaItem] = field(default_factory=list)
    published: bool = True

    @property
    def title(self) -> Optional[str]:
        return self.fields.get("title")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        published = data.get("published", True)
        return cls(
            fields={k: v for k, v in data.items() if k not in ("media", "published")},
            media=[MediaItem.from_dict(m) for m in data.get("media") or []],
            published=published if isinstance(published, bool) else True,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.fields)
        data["media"] = [m.to_dict() for m in self.media]
        data["published"] = self.published
        return data


Catalog = Dict[str, Entry]


def catalog_to_dict(catalog: Catalog) -> Dict[str, Any]:
    return {entry_id: entry.to_dict() for entry_id, entry in catalog.items()}


def catalog_from_dict(data: Dict[str, Any]) -> Catalog:
    return {entry_id: Entry.from_dict(entry) for entry_id, entry in data.items()}
