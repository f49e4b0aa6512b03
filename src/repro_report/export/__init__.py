"""Artifact export: figures, tables and objects under an export policy."""

from .conflict import Action, ExportResult, WriteOutcome, export_variants, write_artifact
from .exporter import Exporter
from .objects import save_object, save_table
from .plots import as_plot_source, save_plot

__all__ = [
    "Action",
    "ExportResult",
    "WriteOutcome",
    "export_variants",
    "write_artifact",
    "Exporter",
    "save_object",
    "save_table",
    "as_plot_source",
    "save_plot",
]
