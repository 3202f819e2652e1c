"""Single-frame thumbnail extraction with ffmpeg."""
from pathlib import Path
from typing import Optional

from catalog_encoder.catalog.models import format_number
from catalog_encoder.utils import LogLevel, constants, logger, system_util
from catalog_encoder.utils.errors import ThumbnailError


def build_thumbnail_cmd(source: str, dest: Path, seek: Optional[float], height: int) -> list[str]:
    return [
        constants.FFMPEG_BIN,
        "-hide_banner",
        "-loglevel", "error",
        "-y",
        "-ss", format_number(seek) if seek is not None else "00:00:00",
        "-i", source,
        "-frames:v", "1",
        "-vf", f"scale=-1:{height}",
        str(dest),
    ]


class FfmpegThumbnailer:
    """Grabs one frame from a video as a fixed-height image."""

    def __init__(self, height: int = constants.THUMBNAIL_HEIGHT):
        self.height = height

    def generate(self, source: str, dest: Path, seek: Optional[float] = None) -> Path:
        """
        Write a thumbnail of ``source`` (a local path or URL) to ``dest``.

        Raises:
            ThumbnailError: if ffmpeg fails or writes nothing.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        cmd = build_thumbnail_cmd(source, dest, seek, self.height)
        code, _, err = system_util.run_cmd(cmd)
        if code != 0:
            raise ThumbnailError(f"ffmpeg exited with code {code}: {err.strip()[:200]}")
        if not dest.exists() or dest.stat().st_size == 0:
            raise ThumbnailError(f"ffmpeg produced no thumbnail at {dest}")

        logger.log("thumbnail.extracted", LogLevel.DEBUG, dest=dest.name, seek=seek)
        return dest
