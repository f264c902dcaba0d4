"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants that are
used across webmoji. It centralizes parameters for logging, external tool
locations and the batch scheduler. It also handles the loading of user-specific
configuration from an external YAML file, allowing for easy customization without
modifying the source code.
"""
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

# --- User-Defined Configuration ---
# This block loads user-specific settings from a 'config.user.yaml' file located
# at the project root (or from the file named by WEBMOJI_CONFIG). This allows
# users to specify the location of FFmpeg and the quality search policy without
# hardcoding them.

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
CONFIG_ENV_VAR = "WEBMOJI_CONFIG"
USER_CONFIG_PATH = Path(os.environ.get(CONFIG_ENV_VAR, PROJECT_ROOT / "config.user.yaml"))


def load_user_config(path: Path) -> Dict[str, Any]:
    """
    Reads the user YAML configuration file.

    A missing file is not an error: the application then relies on the system
    PATH and the built-in defaults. A file that cannot be parsed, or whose top
    level is not a mapping, is reported and ignored.

    Args:
        path: The location of the YAML file.

    Returns:
        The parsed mapping, or an empty dict.
    """
    if not path.is_file():
        logger.debug(f"User config '{path}' not found. Using built-in defaults.")
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load or parse '{path}': {e}")
        return {}
    if user_config is None:
        return {}
    if not isinstance(user_config, dict):
        logger.warning(f"Ignoring '{path}': expected a mapping at the top level.")
        return {}
    return user_config


def config_section(user_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Returns a named sub-mapping of the user config, or an empty dict."""
    section = user_config.get(name) or {}
    if not isinstance(section, dict):
        logger.warning(f"Ignoring config section '{name}': expected a mapping.")
        return {}
    return section


def config_int(section: Dict[str, Any], key: str, default: Optional[int]) -> Optional[int]:
    """
    Reads an integer setting from a config section.

    A missing or null value gives `default`. A value that is not an integer is
    reported and ignored. Range checks are left to the consumers, which raise
    `ConfigurationException` for out-of-range values.
    """
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        logger.warning(f"Ignoring config value '{key}': expected an integer, got {value!r}.")
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring config value '{key}': expected an integer, got {value!r}.")
        return default


USER_CONFIG = load_user_config(USER_CONFIG_PATH)

# The directory containing the FFmpeg and ffprobe executables. If not provided,
# the executables are expected to be available in the system's PATH.
MODULE_PATH: Optional[Path] = None
_ffmpeg_dir = config_section(USER_CONFIG, "paths").get("ffmpeg_dir")
if _ffmpeg_dir:
    MODULE_PATH = Path(_ffmpeg_dir)


# --- Logging Configuration ---

# The format string for the Loguru logger. The thread name is included because
# batch items are encoded concurrently by a pool of worker threads.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{thread.name} - <level>{message}</level>"
)

DEFAULT_LOG_LEVEL = "INFO"


# --- External Tool Invocation ---

# Options passed to every ffmpeg invocation to keep stderr readable.
DEFAULT_FF_OPTIONS = ("-hide_banner", "-loglevel", "warning")

# Metadata tag embedded into every generated clip.
ENCODED_BY_TAG = "webmoji"


# --- Batch Scheduling ---

# The configured worker count, or None to derive it from the host's parallelism.
CONFIGURED_CONCURRENCY: Optional[int] = config_int(config_section(USER_CONFIG, "batch"), "concurrency", None)


# --- Process Exit Codes ---
EXIT_SUCCESS = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_TOTAL_FAILURE = 2
