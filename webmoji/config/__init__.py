"""
Configuration Package for webmoji.

This package centralizes the static configuration settings for the application.
By separating configuration from the application logic, parameters such as the
platform's size ceilings or the quality search policy can be adjusted without
changing the core code.

This package includes settings for:
- Common application settings like the logging format and exit codes.
- User-overridable paths for external tools like FFmpeg, read from YAML.
- Video limits per output kind and the defaults of the CRF search.
"""
