"""
This module provides the function used to run FFmpeg and other command-line
tools, with consistent logging and error handling.
"""

import os
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger


def display_cmd(cmd_list: Sequence[str]) -> str:
    """Quotes and joins a command list for logging, using the platform's rules."""
    if os.name == "nt":
        return subprocess.list2cmdline(list(cmd_list))
    return shlex.join(cmd_list)


def run_cmd(
    cmd_list: List[str],
    src_file_for_log: Path = Path(),
    show_cmd: bool = False,
    detach_from_terminal: bool = True,
) -> Optional[subprocess.CompletedProcess]:
    """
    Executes an external command and captures its output.

    This is a wrapper around `subprocess.run` that adds logging and error
    handling. The command is never run through a shell.

    Args:
        cmd_list: The command to execute as a list of arguments.
        src_file_for_log: The source file being processed, used for logging context.
        show_cmd: If True, the command is logged at the DEBUG level before execution.
        detach_from_terminal: On POSIX, start the child in its own session so that
                              a Ctrl+C aimed at this program does not kill it
                              while it is writing its output.

    Returns:
        A `subprocess.CompletedProcess` with the return code, stdout and stderr.
        Returns `None` if the command could not be started at all (e.g., the
        executable is not installed).
    """
    if not cmd_list:
        logger.error("run_cmd received an empty command list.")
        return None

    display_cmd_str = display_cmd(cmd_list)
    if show_cmd:
        logger.debug(f"Executing: {display_cmd_str}")

    try:
        result = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            shell=False,
            start_new_session=detach_from_terminal and os.name != "nt",
        )
    except FileNotFoundError:
        logger.error(
            f"Error: Command not found ('{cmd_list[0]}'). Ensure it's in your system's PATH or configured correctly."
        )
        return None
    except OSError as e:
        logger.error(
            f"Could not start command for {src_file_for_log.name or 'N/A'}: {e}. Command: {display_cmd_str}"
        )
        return None

    if result.stdout:
        logger.trace(f"Command stdout: {result.stdout[:500]}")

    # Distinguish between error output and informational warnings on stderr.
    if result.stderr and result.returncode != 0:
        logger.debug(f"Command stderr (error, rc={result.returncode}): {result.stderr}")
    elif result.stderr:
        logger.trace(f"Command stderr (rc={result.returncode}): {result.stderr}")

    return result


def last_stderr_line(result: Optional[subprocess.CompletedProcess]) -> str:
    """Returns the last non-empty stderr line of a finished command, if any."""
    if result is None or not result.stderr:
        return ""
    lines = [line.strip() for line in result.stderr.splitlines() if line.strip()]
    return lines[-1] if lines else ""
