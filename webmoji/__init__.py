"""
webmoji turns video files into size-constrained WebM emoji and stickers.

The root package holds the layers of the application: `config` for static and
user settings, `domain` for the value objects, exceptions and probing, `services`
for planning, encoding, quality search and reporting, `pipeline` for the batch
scheduler, and `utils` for subprocess and formatting helpers.
"""
