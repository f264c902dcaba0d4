"""
This module contains helper functions for formatting data into human-readable strings.
These functions are used throughout the application, particularly in logging and in
the final report, to present elapsed times and file sizes in a consistent way.
"""

from pathlib import Path
from typing import Iterable


def format_seconds(seconds: float) -> str:
    """Formats a short elapsed time, e.g. ``4.21s``."""
    return f"{seconds:.2f}s"


def formatted_size(size_bytes: int) -> str:
    """
    Converts a size in bytes to a human-readable string (B, KB, MB, GB, TB).

    Args:
        size_bytes: The size of the file in bytes.

    Returns:
        A formatted string with the appropriate unit.
        For example, 1536 becomes "1.50 KB", and 2097152 becomes "2 MB".
    """
    if size_bytes < 0:
        size_bytes = 0

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    factor = 1024.0

    if size_bytes == 0:
        return "0 B"

    for unit in units:
        if size_bytes < factor:
            if unit == "B":
                return f"{size_bytes} {unit}"
            # Clean up ".00" for whole numbers (e.g., "2.00 MB" -> "2 MB").
            return f"{size_bytes:.2f} {unit}".replace(".00", "")
        size_bytes /= factor

    return f"{size_bytes:.2f} {units[-1]}".replace(".00", "")


def contains_any_extensions(file_path_obj: Path, extensions_to_check: Iterable[str]) -> bool:
    """
    Checks if a file's extension is present in a given collection (case-insensitive).

    Args:
        file_path_obj: The file to check.
        extensions_to_check: File extensions, with or without the leading dot.

    Returns:
        True if the file's extension is in the collection.
    """
    normalized_extensions = {
        ext.lower() if ext.startswith(".") else f".{ext.lower()}"
        for ext in extensions_to_check
    }
    return file_path_obj.suffix.lower() in normalized_extensions
