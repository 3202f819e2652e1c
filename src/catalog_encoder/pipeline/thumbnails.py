"""Thumbnail generation for media items that did not inherit one."""
from typing import Optional, Set

from catalog_encoder.catalog.models import MediaItem
from catalog_encoder.pipeline.cache import ResourceCache, remove_quietly, temp_path
from catalog_encoder.utils import STATUS_ENCODED, STATUS_FAIL, STATUS_REUSED, LogLevel, constants, logger
from catalog_encoder.utils.errors import StoreError, ThumbnailError
from catalog_encoder.utils.file_util import claim_media_name, media_output_url, media_relative_url, thumbnail_filename
from catalog_encoder.utils.url_io import UrlStore, file_url_to_path, is_file_url


class ThumbnailStage:
    """Ensures every media item ends up with exactly one thumbnail."""

    def __init__(self, thumbnailer, store: UrlStore, output_url: str, temp_dir=None):
        self.thumbnailer = thumbnailer
        self.store = store
        self.output_url = output_url
        self.temp_dir = temp_dir

    def run(self, entry_id: str, media_index: int, item: MediaItem, media_url: str,
            cache: ResourceCache, reserved: Optional[Set[str]] = None) -> str:
        """
        Generate and store a thumbnail for ``item`` unless it already has one.

        Returns STATUS_REUSED, STATUS_ENCODED or STATUS_FAIL. On failure the item's
        thumbnail stays None.
        """
        if item.thumbnail:
            logger.log("thumbnail.reuse", LogLevel.DEBUG, id=entry_id, media=media_index)
            return STATUS_REUSED

        local = cache.get(media_url)
        if local is not None:
            source = str(local)
        elif is_file_url(media_url):
            source = str(file_url_to_path(media_url))
        else:
            source = media_url

        clipping = item.clipping or {}
        seek = clipping.get("start")
        if not isinstance(seek, (int, float)) or isinstance(seek, bool):
            seek = None

        logger.log("thumbnail.start", LogLevel.INFO, id=entry_id, media=media_index, source=source)
        filename = claim_media_name(self.output_url, thumbnail_filename(entry_id, media_index),
                                    reserved if reserved is not None else set())
        tmp = temp_path(constants.THUMBNAIL_EXTENSION, prefix="thumbnail", temp_dir=self.temp_dir)
        try:
            self.thumbnailer.generate(source, tmp, seek)
            self.store.upload(media_output_url(self.output_url, filename), tmp)
        except (ThumbnailError, StoreError) as e:
            logger.log("thumbnail.failed", LogLevel.ERROR, id=entry_id, media=media_index, error=str(e))
            return STATUS_FAIL
        except Exception as e:
            logger.log("thumbnail.error", LogLevel.ERROR, id=entry_id, media=media_index,
                       error=f"{type(e).__name__}: {e}")
            return STATUS_FAIL
        finally:
            remove_quietly(tmp)

        item.thumbnail = media_relative_url(self.output_url, filename)
        logger.log("thumbnail.complete", LogLevel.INFO, id=entry_id, media=media_index, thumbnail=item.thumbnail)
        return STATUS_ENCODED
