"""
Services Package for webmoji.

This package contains the "service layer" of the application. Each service
performs one step of turning a probed source into a finished clip:

- **Planner (`plan`):** derives the trim window, output frame size, filter chain
  and output path for a source and an output kind.
- **Two-pass encoder (`TwoPassEncoder`):** runs the analysis and output passes
  of a VP9 encode at a given CRF and measures the result.
- **Quality search (`QualitySearch`):** walks the CRF until the output fits the
  size ceiling of its kind.
- **Reporting (`summarize`, `BatchReport`):** turns a batch result into summary
  lines, an exit code and an optional YAML report.
"""
