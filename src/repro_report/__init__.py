"""repro_report

Reproducible statistics report helpers: policy-driven artifact export and
memoized computations.

Public API surface:
- repro_report.policies.export.export_controls / resolve_policy : export policy
- repro_report.export : save_plot / save_table / save_object and the Exporter
- repro_report.cache : memoize / cache_computation / parallel_map
- repro_report.report.setup_report : one-call setup for a report's setup chunk
- repro_report.cli.main : CLI entrypoint

Everything here assumes a single writer per output path and per cache key.
"""
__all__ = ["__version__"]
__version__ = "0.3.0"
