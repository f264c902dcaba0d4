"""
Configuration settings related to video processing.

This module defines constants for video file extensions, the messaging platform's
limits for each output kind, VP9 encoding parameters and the quality search
policy defaults.
"""
from .common import USER_CONFIG, config_int, config_section

# --- General Video Settings ---
VIDEO_EXTENSIONS = (
    ".wmv", ".ts", ".mp4", ".mov", ".mpg", ".mkv", ".avi", ".gif",
    ".m2ts", ".3gp", ".flv", ".webm", ".m4v", ".mts",
)

# --- Platform Limits ---
KIB = 1024
MAX_EMOJI_BYTES = 64 * KIB
MAX_STICKER_BYTES = 256 * KIB
EMOJI_BOUNDING_BOX = 100
STICKER_BOUNDING_BOX = 512
MAX_CLIP_SECONDS = 3.0

# --- Encoder Settings ---
VIDEO_ENCODER = "libvpx-vp9"
OUTPUT_EXTENSION = "webm"
# Fully transparent black, used to pad emoji to a square.
PAD_COLOR = "0x00000000"

# --- Quality Search Settings ---
# CRF range of libvpx-vp9. Lower values mean higher quality and bigger files.
MIN_CRF = 0
MAX_CRF = 63

_search_config = config_section(USER_CONFIG, "search")
DEFAULT_START_CRF = config_int(_search_config, "start_crf", 18)
DEFAULT_CRF_STEP = config_int(_search_config, "crf_step", 4)
DEFAULT_MAX_ATTEMPTS = config_int(_search_config, "max_attempts", 12)
