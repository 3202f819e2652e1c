"""
Command line entry point: encode a catalog incrementally.

Reads the input catalog, reuses whatever the previous output at the same location already
contains, encodes the rest and writes the new output catalog plus its ``-media`` folder.
"""

import argparse
import os
import sys
import time

import catalog_encoder as package
from catalog_encoder.catalog.expiry import parse_duration
from catalog_encoder.pipeline import encode_catalog
from catalog_encoder.transcode import FfmpegThumbnailer, HandBrakeTranscoder, parse_formats
from catalog_encoder.utils import LogLevel, constants, logger, system_util, time_util
from catalog_encoder.utils.errors import CatalogError, ConfigError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Transcode the media of a catalog into multiple formats, reusing renditions "
                    "from the previous run whenever source and format are unchanged.",
        epilog="Example: catalog-encoder -i search-data.json -o public/encoded-search-data.json "
               "--write-continuously --expire 4w",
    )
    parser.add_argument(
        "-i", "--input", required=True,
        help="URL or relative path for where to read the input catalog",
    )
    parser.add_argument(
        "-o", "--output", required=True,
        help="URL or relative path for where to write the encoded catalog",
    )
    parser.add_argument(
        "-f", "--formats", default=constants.DEFAULT_FORMATS,
        help="Formats to transcode into, comma separated list of "
             "[container]:[codec]:[quality]@[width]x[height] (default: %(default)s)",
    )
    parser.add_argument(
        "--write-continuously", action="store_true",
        help="Write the output catalog after every media item so an interrupted run can resume",
    )
    parser.add_argument(
        "--expire",
        help="Re-encode media whose renditions are older than this, e.g. 1w, 12h, 1d12h",
    )
    parser.add_argument("--log-file", default=constants.LOG_FILE,
                        help="Also write log output to this file (default: $CATALOG_ENCODER_LOG_FILE)")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {package.__version__}")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logger.set_log_level(LogLevel.DEBUG if args.debug else LogLevel.INFO)
    if args.log_file:
        log_path = logger.set_log_file(args.log_file)
        logger.safe_print(f"Logging to: {log_path}")

    try:
        formats = parse_formats(args.formats)
        expire_after = parse_duration(args.expire) if args.expire else None
    except ConfigError as e:
        logger.log("startup.error", LogLevel.ERROR, msg=str(e))
        sys.exit(2)

    system_util.which_or_die(constants.HANDBRAKE_BIN)
    system_util.which_or_die(constants.FFMPEG_BIN)
    system_util.which_or_die(constants.FFPROBE_BIN)

    start_time = time.time()
    logger.log(
        "encoder.start",
        LogLevel.INFO,
        pid=os.getpid(),
        input=args.input,
        output=args.output,
        formats=",".join(f.version for f in formats),
        write_continuously=args.write_continuously,
        expire=str(expire_after) if expire_after else None,
    )

    try:
        _, stats = encode_catalog(
            args.input,
            args.output,
            formats,
            HandBrakeTranscoder(),
            FfmpegThumbnailer(),
            write_continuously=args.write_continuously,
            expire_after=expire_after,
        )
    except (CatalogError, ConfigError) as e:
        logger.log("startup.error", LogLevel.ERROR, msg=str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        logger.safe_print("\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.log("encoder.error", LogLevel.ERROR, error=str(e))
        sys.exit(1)

    logger.log(
        "encoder.end",
        LogLevel.INFO,
        pid=os.getpid(),
        runtime=time_util.format_runtime(time.time() - start_time),
        entries=stats.entries,
        media=stats.media,
        encoded=stats.encoded,
        reused=stats.reused,
        failed=stats.failed,
        thumbnails=stats.thumbnails_generated,
        thumbnails_reused=stats.thumbnails_reused,
        thumbnails_failed=stats.thumbnails_failed,
        unpublished=stats.unpublished,
    )
    logger.set_log_file(None)


if __name__ == "__main__":
    main()
