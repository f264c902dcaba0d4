"""
This package contains the batch pipeline of webmoji.

The pipeline discovers input files, resolves output collisions, runs the
per-file services concurrently and collects one outcome per input.
"""
