"""
Utilities Package for webmoji.

Modules:
    - ffmpeg_utils.py: Runs external commands such as FFmpeg with logging.
    - format_utils.py: Formats durations and file sizes for logs and reports.
    - tool_locator.py: Locates and verifies the FFmpeg executables.
"""
