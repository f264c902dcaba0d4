"""
This module provides the Tools class to locate and verify the external FFmpeg
executables the application drives.
"""
import subprocess
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Import paths from the user configuration file.
from ..config.common import MODULE_PATH


class Tools:
    """
    A utility class to handle operations related to the FFmpeg executables.

    It reads the `ffmpeg_dir` from the user's `config.user.yaml` file to locate the
    executables and falls back to the system's PATH if no directory is configured.
    """

    @staticmethod
    def _resolve(name: str, module_path: Optional[Path] = MODULE_PATH) -> str:
        """
        Determines the command or absolute path of an FFmpeg executable.

        Args:
            name: The executable name without extension ('ffmpeg' or 'ffprobe').
            module_path: The configured directory containing the executables.

        Returns:
            The absolute path inside `module_path` when the executable exists
            there, otherwise the bare name to be looked up in PATH.
        """
        exe_name = f"{name}.exe" if sys.platform == "win32" else name

        if module_path and module_path.is_dir():
            configured_path = module_path / exe_name
            if configured_path.is_file():
                return str(configured_path)
            logger.warning(
                f"`ffmpeg_dir` is configured, but '{exe_name}' was not found there. Falling back to system PATH."
            )
        return name

    @staticmethod
    def ffmpeg() -> str:
        return Tools._resolve("ffmpeg")

    @staticmethod
    def ffprobe() -> str:
        return Tools._resolve("ffprobe")

    @staticmethod
    def verify() -> bool:
        """
        Verifies that FFmpeg can be executed.

        This method runs `ffmpeg -version` and logs the first line of the output on
        success, or a detailed error message if the command fails or cannot be
        found.

        Returns:
            True if FFmpeg answered the version query.
        """
        ffmpeg_cmd = Tools.ffmpeg()
        try:
            result = subprocess.run(
                [ffmpeg_cmd, "-version"],
                check=True,
                capture_output=True,
                text=True,
                encoding="utf-8",
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"FFmpeg version command failed (return code {e.returncode}):\n{e.stderr}")
            return False
        except FileNotFoundError:
            logger.error(
                "FFmpeg command not found. Please ensure FFmpeg is installed and accessible.\n"
                "You can either add it to your system's PATH or specify its location in the 'config.user.yaml' file."
            )
            return False

        version_output_lines = result.stdout.splitlines()
        first_line = version_output_lines[0] if version_output_lines else "<empty>"
        logger.debug(f"FFmpeg version check successful: {first_line}")
        return True
