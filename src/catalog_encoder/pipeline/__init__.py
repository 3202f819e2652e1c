"""
High-level encode pipeline: download cache, orchestrator and thumbnail stage.

Example:
    from catalog_encoder.pipeline import encode_catalog
    from catalog_encoder.transcode import FfmpegThumbnailer, HandBrakeTranscoder, parse_formats
    output, stats = encode_catalog("search-data.json", "out/encoded-search-data.json",
                                   parse_formats("mp4:x264:22@512x288"),
                                   HandBrakeTranscoder(), FfmpegThumbnailer())
"""
from .cache import ResourceCache
from .orchestrator import RunStats, TranscodeOrchestrator, encode_catalog
from .thumbnails import ThumbnailStage

__all__ = [
    "ResourceCache",
    "RunStats",
    "ThumbnailStage",
    "TranscodeOrchestrator",
    "encode_catalog",
]
