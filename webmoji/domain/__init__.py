"""
This package contains the core domain models of webmoji.

Modules:
    exceptions.py: The exception hierarchy. Every exception names the pipeline
                   stage it came from.
    media.py: Probes a source file with ffprobe and parses time values.
    models.py: The value objects flowing through the pipeline, from
               `SourceMedia` to `BatchResult`.
"""
