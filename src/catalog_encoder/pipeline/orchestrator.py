"""
Incremental encode orchestration.

For every entry, every media item and every requested format the orchestrator either
carries a prior rendition forward unchanged or fetches the source, transcodes it and stores
the result. A failure in one format or thumbnail only marks the entry unpublished; sibling
formats, media items and entries keep going. Output order always mirrors input order.
"""
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from tqdm import tqdm

from catalog_encoder.catalog.expiry import ExpiryPolicy
from catalog_encoder.catalog.matcher import find_prior_media, match
from catalog_encoder.catalog.models import Catalog, Entry, FormatRequest, MediaItem, Rendition
from catalog_encoder.catalog.store import CheckpointWriter, load_catalog, load_previous_catalog
from catalog_encoder.pipeline.cache import ResourceCache, remove_quietly, temp_path
from catalog_encoder.pipeline.thumbnails import ThumbnailStage
from catalog_encoder.transcode.core import TranscodeOptions
from catalog_encoder.utils import (
    MEDIA_TYPE_VIDEO,
    STATUS_ENCODED,
    STATUS_FAIL,
    STATUS_REUSED,
    LogLevel,
    logger,
    time_util,
)
from catalog_encoder.utils.errors import EncodeError, FetchError, ProbeError, StoreError
from catalog_encoder.utils.file_util import claim_media_name, media_output_url, media_relative_url, rendition_filename
from catalog_encoder.utils.url_io import UrlStore, resolve_location


@dataclass
class RunStats:
    """Counters reported at the end of a run."""
    entries: int = 0
    media: int = 0
    encoded: int = 0
    reused: int = 0
    failed: int = 0
    thumbnails_generated: int = 0
    thumbnails_reused: int = 0
    thumbnails_failed: int = 0
    unpublished: int = 0

    def record_thumbnail(self, status: str) -> None:
        if status == STATUS_ENCODED:
            self.thumbnails_generated += 1
        elif status == STATUS_REUSED:
            self.thumbnails_reused += 1
        else:
            self.thumbnails_failed += 1


class TranscodeOrchestrator:
    """Owns the accumulating output catalog and drives the per-entry encode loop."""

    def __init__(
            self,
            input_url: str,
            output_url: str,
            formats: Sequence[FormatRequest],
            store: UrlStore,
            transcoder,
            thumbnailer,
            writer: CheckpointWriter,
            write_continuously: bool = False,
            temp_dir: Optional[str] = None,
            clock: Callable[[], int] = time_util.now_ms,
    ):
        self.input_url = input_url
        self.output_url = output_url
        self.formats = list(formats)
        self.store = store
        self.transcoder = transcoder
        self.writer = writer
        self.write_continuously = write_continuously
        self.temp_dir = temp_dir
        self.clock = clock
        self.thumbnails = ThumbnailStage(thumbnailer, store, output_url, temp_dir=temp_dir)
        self.output: Catalog = {}
        self.stats = RunStats()

    def run(self, catalog: Dict[str, Dict[str, Any]], previous: Catalog) -> Catalog:
        """Process every entry of ``catalog`` in order, then write the final output catalog."""
        start_time = time.time()
        total = len(catalog)

        for done, (entry_id, raw_entry) in enumerate(
                tqdm(catalog.items(), total=total, desc="Encoding entries", unit="entry"), start=1):
            self.process_entry(entry_id, raw_entry, previous.get(entry_id))
            logger.log("run.progress", LogLevel.INFO,
                       completed=done,
                       total=total,
                       pct=round(done / total * 100, 1),
                       eta=time_util.get_eta_total(done, total, time.time() - start_time))

        self.writer.finalize(self.output)
        return self.output

    def process_entry(self, entry_id: str, raw_entry: Dict[str, Any], prior_entry: Optional[Entry]) -> Entry:
        entry = Entry(fields={k: v for k, v in raw_entry.items() if k not in ("media", "published")})
        self.output[entry_id] = entry
        self.stats.entries += 1
        logger.log("entry.start", LogLevel.INFO, id=entry_id, title=entry.title)

        prior_media = prior_entry.media if prior_entry is not None else []
        media = raw_entry.get("media") or []
        reserved = self.reserved_urls(media, prior_media)
        with ResourceCache(self.store, temp_dir=self.temp_dir) as cache:
            for media_index, source in enumerate(media):
                item = self.process_media(entry_id, entry, media_index, source, prior_media, cache, reserved)
                entry.media.append(item)
                if self.write_continuously:
                    self.checkpoint()

        if not entry.published:
            self.stats.unpublished += 1
        logger.log("entry.complete", LogLevel.INFO,
                   id=entry_id,
                   media=len(entry.media),
                   published=entry.published)
        return entry

    def checkpoint(self) -> None:
        """Write a merged checkpoint. A failed write is logged and retried after the next media item."""
        try:
            self.writer.checkpoint(self.output)
        except StoreError as e:
            logger.log("checkpoint.failed", LogLevel.WARN, url=self.output_url, error=str(e))

    def reserved_urls(self, media: Sequence[Dict[str, Any]], prior_media: Sequence[MediaItem]) -> Set[str]:
        """Relative URLs this entry's output will carry over from the previous run."""
        versions = {request.version for request in self.formats}
        reserved = set()
        for source in media:
            prior = find_prior_media(source, prior_media)
            if prior is None:
                continue
            if prior.thumbnail:
                reserved.add(prior.thumbnail)
            reserved.update(r.url for r in prior.encodes if r.version in versions)
        return reserved

    def process_media(self, entry_id: str, entry: Entry, media_index: int, source: Dict[str, Any],
                      prior_media: List[MediaItem], cache: ResourceCache,
                      reserved: Optional[Set[str]] = None) -> MediaItem:
        """Build the output media item for one source record."""
        if reserved is None:
            reserved = set()
        self.stats.media += 1
        media_url = resolve_location(source["url"], self.input_url)
        item = MediaItem(type=MEDIA_TYPE_VIDEO, source=source, timestamp=self.clock())

        prior = find_prior_media(source, prior_media)
        if prior is not None and prior.thumbnail:
            item.thumbnail = prior.thumbnail
            item.adopt_timestamp(prior.timestamp)

        fetch_error = None
        for request in self.formats:
            result = match(source, prior_media, request)
            if result.reuse:
                item.adopt_timestamp(result.timestamp)
                item.encodes.append(result.rendition)
                self.stats.reused += 1
                logger.log("encode.reuse", LogLevel.DEBUG, id=entry_id, media=media_index, version=request.version)
                continue

            if fetch_error is not None:
                self._record_failure(entry, entry_id, media_index, request, "encode.skipped", fetch_error)
                continue

            try:
                item.encodes.append(self.encode(entry_id, media_index, media_url, item, request, cache, reserved))
                self.stats.encoded += 1
            except FetchError as e:
                fetch_error = e
                self._record_failure(entry, entry_id, media_index, request, "fetch.failed", e)
            except (EncodeError, ProbeError, StoreError) as e:
                self._record_failure(entry, entry_id, media_index, request, "encode.failed", e)
            except Exception as e:
                self._record_failure(entry, entry_id, media_index, request, "encode.error",
                                     f"{type(e).__name__}: {e}")

        status = self.thumbnails.run(entry_id, media_index, item, media_url, cache, reserved)
        self.stats.record_thumbnail(status)
        if status == STATUS_FAIL:
            entry.published = False
        return item

    def _record_failure(self, entry: Entry, entry_id: str, media_index: int, request: FormatRequest,
                        event: str, error) -> None:
        entry.published = False
        self.stats.failed += 1
        logger.log(event, LogLevel.ERROR,
                   id=entry_id,
                   media=media_index,
                   version=request.version,
                   error=str(error))

    def encode(self, entry_id: str, media_index: int, media_url: str, item: MediaItem,
               request: FormatRequest, cache: ResourceCache, reserved: Optional[Set[str]] = None) -> Rendition:
        """
        Produce and store a fresh rendition of ``item`` for ``request``.

        The intermediate encode is always removed, whether or not storing succeeds.
        """
        input_path = cache.fetch(media_url)
        tmp_output = temp_path(request.container, prefix="encode", temp_dir=self.temp_dir)
        logger.log("encode.queued", LogLevel.INFO, id=entry_id, media=media_index, version=request.version)
        try:
            options = TranscodeOptions.for_request(input_path, tmp_output, request, item.clipping)
            info = self.transcoder.transcode(options)
            filename = claim_media_name(
                self.output_url,
                rendition_filename(entry_id, media_index, request.codec, info.width, info.height, request.container),
                reserved if reserved is not None else set(),
            )
            self.store.upload(media_output_url(self.output_url, filename), tmp_output)
        finally:
            remove_quietly(tmp_output)

        return Rendition(
            type=f"{MEDIA_TYPE_VIDEO}/{request.container}",
            version=request.version,
            container=request.container,
            codec=request.codec,
            width=info.width,
            height=info.height,
            url=media_relative_url(self.output_url, filename),
            duration=info.duration,
            byte_size=info.byte_size,
        )


def encode_catalog(
        input_location: str,
        output_location: str,
        formats: Sequence[FormatRequest],
        transcoder,
        thumbnailer,
        store: Optional[UrlStore] = None,
        write_continuously: bool = False,
        expire_after: Optional[timedelta] = None,
        temp_dir: Optional[str] = None,
        clock: Callable[[], int] = time_util.now_ms,
) -> tuple[Catalog, RunStats]:
    """
    Run one full incremental encode.

    Loads the input and previous catalogs, applies expiry, processes every entry and
    writes the final catalog to ``output_location``.

    Raises:
        CatalogError: if the input catalog is unreadable or invalid (nothing is written).
    """
    store = store or UrlStore()
    input_url = resolve_location(input_location)
    output_url = resolve_location(output_location)

    catalog = load_catalog(store, input_url)
    previous, previous_raw = load_previous_catalog(store, output_url)
    if expire_after is not None:
        previous = ExpiryPolicy(expire_after).apply(previous, clock())

    writer = CheckpointWriter(store, output_url, previous_raw)
    orchestrator = TranscodeOrchestrator(
        input_url,
        output_url,
        formats,
        store,
        transcoder,
        thumbnailer,
        writer,
        write_continuously=write_continuously,
        temp_dir=temp_dir,
        clock=clock,
    )
    output = orchestrator.run(catalog, previous)
    return output, orchestrator.stats
