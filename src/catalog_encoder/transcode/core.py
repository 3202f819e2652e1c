"""
Functions to build HandBrake encodes and read back the metadata of what they produced.

This module turns a requested format into a typed set of HandBrakeCLI options, runs the
encode with throttled progress logging, and determines the actual output dimensions.
Dimensions come from ffprobe on the produced file; scraping HandBrake's log for the
"display dimensions" line is only a fallback when probing fails.
"""
import json
import math
import re
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from catalog_encoder.catalog.models import FormatRequest, format_number
from catalog_encoder.utils import LogLevel, constants, logger, system_util, time_util
from catalog_encoder.utils.errors import EncodeError, ProbeError

_DISPLAY_DIMENSIONS = re.compile(r" \+ display dimensions: ([0-9]+) x ([0-9]+)")
_PROGRESS = re.compile(r"Encoding: task (\d+) of (\d+), ([0-9.]+) %(?:.*ETA ([0-9hms]+)\))?")


@dataclass
class VideoInfo:
    width: Optional[int]
    height: Optional[int]
    codec: Optional[str] = None
    duration: Optional[float] = None
    byte_size: Optional[int] = None


@dataclass
class TranscodeOptions:
    """Everything HandBrake needs for one encode."""
    input: Path
    output: Path
    container: str
    codec: str
    quality: float
    max_width: int
    max_height: int
    preset: str = constants.DEFAULT_PRESET
    start: Optional[float] = None
    duration: Optional[float] = None
    denoise: str = constants.DENOISE_PRESET
    keep_display_aspect: bool = True
    two_pass: bool = True

    def __post_init__(self):
        if not math.isfinite(self.quality):
            raise EncodeError(f"Invalid quality {self.quality}")
        if self.max_width <= 0 or self.max_height <= 0:
            raise EncodeError(f"Invalid size limit {self.max_width}x{self.max_height}")
        if self.start is not None and self.start < 0:
            raise EncodeError(f"Clip start {self.start} is negative")
        if self.duration is not None and self.duration <= 0:
            raise EncodeError(f"Clip duration {self.duration} is not positive")

    @classmethod
    def for_request(cls, input_path: Path, output_path: Path, request: FormatRequest,
                    clipping: Optional[Dict[str, Any]] = None) -> "TranscodeOptions":
        """Build options for ``request``, translating a clip window into start/duration."""
        start = duration = None
        if clipping:
            clip_start = clipping.get("start")
            clip_end = clipping.get("end")
            if _is_number(clip_start):
                start = float(clip_start)
            if _is_number(clip_end):
                duration = float(clip_end) - (start or 0.0)

        return cls(
            input=input_path,
            output=output_path,
            container=request.container,
            codec=request.codec,
            quality=request.quality,
            max_width=request.width,
            max_height=request.height,
            preset=constants.CODEC_PRESETS.get(request.codec, constants.DEFAULT_PRESET),
            start=start,
            duration=duration,
        )


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def build_handbrake_cmd(options: TranscodeOptions) -> List[str]:
    """Build the HandBrakeCLI command line for ``options``."""
    options.output.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        constants.HANDBRAKE_BIN,
        "--input", str(options.input),
        "--output", str(options.output),
        "--format", constants.CONTAINER_FORMATS.get(options.container, f"av_{options.container}"),
        "--encoder", options.codec,
        "--encoder-preset", options.preset,
        "--quality", format_number(options.quality),
        "--maxWidth", str(options.max_width),
        "--maxHeight", str(options.max_height),
        f"--hqdn3d={options.denoise}",
        "--audio", "none",
        "--optimize",
        "--align-av",
    ]
    if options.keep_display_aspect:
        cmd.append("--keep-display-aspect")
    if options.two_pass:
        cmd.append("--two-pass")

    if options.start is not None:
        cmd += ["--start-at", f"duration:{format_number(options.start)}"]
    if options.duration is not None:
        cmd += ["--stop-at", f"duration:{format_number(options.duration)}"]

    return cmd


def ffprobe_video_info(path: Path) -> Optional[VideoInfo]:
    """Probe video file for codec, dimensions and duration."""
    cmd = [
        constants.FFPROBE_BIN, "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=codec_name,width,height:format=duration,size",
        "-of", "json",
        str(path)
    ]
    code, out, err = system_util.run_cmd(cmd)
    if code != 0:
        logger.log("probe.failed", LogLevel.DEBUG, file=Path(path).name, exit_code=code, error=err[:200])
        return None
    try:
        data = json.loads(out)
    except ValueError:
        return None
    streams = data.get("streams") or []
    if not streams:
        return None
    s = streams[0]

    duration = None
    byte_size = None
    fmt = data.get("format") or {}
    try:
        if "duration" in fmt:
            duration = float(fmt["duration"])
        if "size" in fmt:
            byte_size = int(fmt["size"])
    except (ValueError, TypeError):
        pass

    return VideoInfo(
        codec=s.get("codec_name"),
        width=s.get("width"),
        height=s.get("height"),
        duration=duration,
        byte_size=byte_size,
    )


def parse_display_dimensions(log_text: str) -> Optional[VideoInfo]:
    """Pull the output dimensions out of HandBrake's textual log."""
    m = _DISPLAY_DIMENSIONS.search(log_text or "")
    if not m:
        return None
    return VideoInfo(width=int(m.group(1)), height=int(m.group(2)))


def probe_output(path: Path, log_text: str = "") -> VideoInfo:
    """
    Determine dimensions, duration and size of an encoded file.

    Raises:
        ProbeError: if neither ffprobe nor the encoder log yields dimensions.
    """
    info = ffprobe_video_info(path)
    if not info or not info.width or not info.height:
        info = parse_display_dimensions(log_text)
        if info is None:
            raise ProbeError(f"Could not determine dimensions of {path}")
        logger.log("probe.fallback", LogLevel.DEBUG, file=path.name, width=info.width, height=info.height)

    if info.byte_size is None:
        try:
            info.byte_size = path.stat().st_size
        except OSError:
            pass
    return info


class HandBrakeTranscoder:
    """Runs encodes through HandBrakeCLI."""

    def __init__(self, progress_interval: float = constants.PROGRESS_INTERVAL):
        self.progress_interval = progress_interval

    def transcode(self, options: TranscodeOptions) -> VideoInfo:
        """
        Encode ``options.input`` into ``options.output``.

        Returns:
            VideoInfo of the produced file

        Raises:
            EncodeError: if HandBrake fails or produces nothing
            ProbeError: if the output dimensions cannot be determined
        """
        cmd = build_handbrake_cmd(options)
        logger.log("encode.start", LogLevel.INFO,
                   file=options.input.name,
                   container=options.container,
                   codec=options.codec,
                   preset=options.preset)
        logger.log("encode.cmd", LogLevel.DEBUG, cmd=" ".join(cmd))

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise EncodeError(f"Could not start {constants.HANDBRAKE_BIN}: {e}")

        output_lines = []
        last_progress_log = 0.0
        last_percent = None

        # HandBrake rewrites its progress line with \r, which text mode splits into lines
        for line in process.stdout:
            m = _PROGRESS.search(line)
            if not m:
                output_lines.append(line)
                continue

            now = time.time()
            percent = m.group(3)
            if now - last_progress_log >= self.progress_interval and percent != last_percent:
                eta_seconds = time_util.parse_hms(m.group(4))
                logger.log("encode.progress", LogLevel.INFO,
                           file=options.input.name,
                           task=f"{m.group(1)}/{m.group(2)}",
                           pct=percent,
                           eta=time_util.get_eta_string(eta_seconds) if eta_seconds is not None else "N/A")
                last_progress_log = now
                last_percent = percent

        code = process.wait()
        log_text = "".join(output_lines)

        if code != 0:
            logger.log("encode.failed", LogLevel.ERROR,
                       file=options.input.name,
                       exit_code=code,
                       error=log_text[-200:])
            raise EncodeError(f"HandBrake exited with code {code}")
        if not options.output.exists() or options.output.stat().st_size == 0:
            raise EncodeError(f"HandBrake produced no output at {options.output}")

        info = probe_output(options.output, log_text)
        logger.log("encode.complete", LogLevel.INFO,
                   file=options.input.name,
                   size=f"{info.width}x{info.height}",
                   duration=info.duration)
        return info
