"""
Incremental catalog transcoder.

This package turns a JSON catalog of entries, each carrying one or more source videos, into
a set of transcoded renditions plus a thumbnail per video. Work from previous runs is reused
whenever the source and the requested format are unchanged, so repeated runs only encode
what is new, failed, or expired.

The package is organized into several subpackages:
- catalog: data model, catalog loading/checkpointing, rendition matching and expiry.
- transcode: format spec parsing and the HandBrake/ffmpeg adapters.
- pipeline: the download cache, the orchestrator and the thumbnail stage.
- utils: constants, logging, errors, URL I/O and filename helpers.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
