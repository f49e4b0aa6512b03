"""Error taxonomy.

- ConfigError: unknown preset, malformed override. Always names the valid options.
- ExportIOError: cannot create the target directory / open the output device.
- UnsupportedInputError / UnsupportedPlotError: the export layer cannot handle the given object.
- ExportError: one or more output variants failed in a multi-format call.

A fingerprint mismatch in the cache is not an error; it triggers recomputation.
"""

from __future__ import annotations
from typing import Dict, Iterable


class ReproReportError(Exception):
    """Base class for all errors raised by repro_report."""


class ConfigError(ReproReportError, ValueError):
    def __init__(self, message: str, valid: Iterable[str] = ()):
        valid = list(valid)
        if valid:
            message = f"{message}\nValid options: {', '.join(valid)}"
        super().__init__(message)
        self.valid = valid


class ExportIOError(ReproReportError, OSError):
    pass


class UnsupportedInputError(ReproReportError, TypeError):
    pass


class UnsupportedPlotError(UnsupportedInputError):
    pass


class ExportError(ReproReportError):
    """Raised by ExportResult.raise_for_errors() with every failed variant attached."""

    def __init__(self, errors: Dict[str, BaseException]):
        self.errors = dict(errors)
        detail = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(f"{len(self.errors)} output(s) failed: {detail}")
