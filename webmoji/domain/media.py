"""
Inspects source files with ffprobe and turns the result into `SourceMedia`.

Probing runs exactly once per input file. Any failure here is permanent for that
file; the caller records it and moves on to the other inputs.
"""
import math
import re
from fractions import Fraction
from pathlib import Path
from pprint import pformat
from typing import Optional

import ffmpeg
from loguru import logger

from .exceptions import MissingVideoStreamException, UnreadableMediaException
from .models import SourceMedia
from ..utils.tool_locator import Tools

_TIMECODE_PATTERN = re.compile(r"(?:(\d{1,2}):)?(\d{1,2}):(\d{1,2}(?:\.\d+)?)")


def parse_duration(duration_str: str) -> float:
    """
    Parses a duration string reported by ffprobe into total seconds.

    Two formats are handled:
    1. A floating-point number of seconds (e.g., "3600.5").
    2. A timecode 'HH:MM:SS.sss' (e.g., "01:00:00.500"); hours are optional.

    Args:
        duration_str: The string containing the duration to parse.

    Returns:
        The total duration in seconds. Returns 0.0 if parsing fails.
    """
    try:
        return float(duration_str)
    except ValueError:
        match = _TIMECODE_PATTERN.fullmatch(duration_str)
        if match:
            hours_str, minutes_str, seconds_str = match.groups()
            hours = int(hours_str) if hours_str else 0
            return float(hours * 3600 + int(minutes_str) * 60 + float(seconds_str))
        logger.warning(f"Could not parse duration string: {duration_str}")
    return 0.0


def parse_timestamp(text: str) -> float:
    """
    Parses a user-supplied trim bound.

    Accepts ``SS``, ``MM:SS`` or ``HH:MM:SS`` where the seconds part may have a
    fraction (``1.5``, ``12:45.4``, ``00:01:30.5``).

    Raises:
        ValueError: If the text is not in one of those formats or is negative.
    """
    segments = text.strip().split(":")
    if len(segments) > 3 or not all(segments):
        raise ValueError(f"Unknown duration format: '{text}'")

    *whole_units, seconds_str = segments
    seconds = float(seconds_str)
    if not math.isfinite(seconds):
        raise ValueError(f"Unknown duration format: '{text}'")
    if seconds < 0:
        raise ValueError(f"Negative duration is not allowed: '{text}'")

    total = 0.0
    for unit in whole_units:
        if not unit.isdigit():
            raise ValueError(f"Unknown duration format: '{text}'")
        total = total * 60 + int(unit)
    return total * 60 + seconds if whole_units else seconds


def _first_video_stream(probe: dict) -> Optional[dict]:
    return next(
        (s for s in probe.get("streams", []) if s.get("codec_type") == "video"), None
    )


def _rotation(video_stream: dict) -> int:
    """
    Returns the display rotation of a video stream in degrees.

    Phone footage stores its frames unrotated and records the rotation either in
    the display matrix side data (newer ffprobe) or in a ``rotate`` tag (older
    ffprobe). FFmpeg applies it automatically while decoding.
    """
    for side_data in video_stream.get("side_data_list") or []:
        if "rotation" in side_data:
            try:
                return int(float(side_data["rotation"]))
            except (TypeError, ValueError):
                logger.warning(f"Could not parse rotation: {side_data['rotation']}")
                return 0
    rotate_tag = (video_stream.get("tags") or {}).get("rotate")
    if rotate_tag is not None:
        try:
            return int(float(rotate_tag))
        except (TypeError, ValueError):
            logger.warning(f"Could not parse rotate tag: {rotate_tag}")
    return 0


def _duration_from_frames(video_stream: dict) -> float:
    """
    Calculates duration as a fallback using the frame count and frame rate.

    Less reliable than a duration tag, but usable when ffprobe reports none.
    """
    nb_frames_str = video_stream.get("nb_frames")
    avg_frame_rate_str = video_stream.get("avg_frame_rate")
    if not nb_frames_str or not avg_frame_rate_str or avg_frame_rate_str == "0/0":
        return 0.0
    try:
        frame_rate = Fraction(avg_frame_rate_str)
        nb_frames = int(nb_frames_str)
    except (ValueError, ZeroDivisionError) as e:
        logger.warning(f"Could not parse nb_frames/avg_frame_rate: {e}")
        return 0.0
    if frame_rate <= 0 or nb_frames <= 0:
        return 0.0
    return float(nb_frames / frame_rate)


def _probe_duration(probe: dict, video_stream: dict) -> float:
    """
    Reads the duration from the 'format' section, then from the video stream,
    and finally estimates it from the frame count.
    """
    duration_val = probe.get("format", {}).get("duration") or video_stream.get("duration")
    if duration_val is not None:
        return parse_duration(str(duration_val))
    logger.debug("No 'duration' key reported. Trying to calculate from frame count.")
    return _duration_from_frames(video_stream)


def probe_media(path: Path, ffprobe_cmd: Optional[str] = None) -> SourceMedia:
    """
    Probes a source file and extracts its duration and frame size.

    Args:
        path: The media file to inspect.
        ffprobe_cmd: The ffprobe command or path. Defaults to the configured one.

    Returns:
        The `SourceMedia` facts of the file.

    Raises:
        UnreadableMediaException: If ffprobe cannot be run, exits non-zero, or its
                                  output lacks a positive duration or frame size.
        MissingVideoStreamException: If no video stream is reported.
    """
    if ffprobe_cmd is None:
        ffprobe_cmd = Tools.ffprobe()

    path = Path(path)
    if not path.is_file():
        raise UnreadableMediaException(f"Media file not found: {path}")

    try:
        probe = ffmpeg.probe(str(path), cmd=ffprobe_cmd)
    except ffmpeg.Error as e:
        stderr = e.stderr.decode("utf-8", errors="replace").strip() if e.stderr else ""
        raise UnreadableMediaException(f"ffprobe failed for {path}: {stderr}") from e
    except (OSError, ValueError) as e:
        # OSError: ffprobe is not installed. ValueError: output was not valid JSON.
        raise UnreadableMediaException(f"Could not probe {path}: {e}") from e

    logger.trace(f"Probe data for {path.name}:\n{pformat(probe)}")

    if not isinstance(probe, dict):
        raise UnreadableMediaException(f"Unexpected ffprobe output for {path}")

    video_stream = _first_video_stream(probe)
    if video_stream is None:
        raise MissingVideoStreamException(f"No video stream found in {path}")

    try:
        width = int(video_stream.get("width", 0))
        height = int(video_stream.get("height", 0))
    except (TypeError, ValueError) as e:
        raise UnreadableMediaException(f"Invalid frame size reported for {path}: {e}") from e
    if width <= 0 or height <= 0:
        raise UnreadableMediaException(f"No frame size reported for {path}")

    # The frame size is reported as stored; quarter turns swap it for display.
    rotation = _rotation(video_stream)
    if rotation % 180 == 90:
        logger.debug(f"{path.name} is rotated by {rotation} degrees")
        width, height = height, width

    duration = _probe_duration(probe, video_stream)
    if duration <= 0:
        raise UnreadableMediaException(f"No valid (positive) duration found for {path}")

    media = SourceMedia(path=path, duration=duration, width=width, height=height)
    logger.debug(f"Probed {path.name}: {width}x{height}, {duration:.3f}s")
    return media
