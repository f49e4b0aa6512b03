"""Export policies: named presets plus sparse overrides from report params."""

from .export import PRESETS, POLICY_FIELDS, ExportPolicy, export_controls, resolve_policy
from .loader import load_params, load_yaml

__all__ = [
    "PRESETS",
    "POLICY_FIELDS",
    "ExportPolicy",
    "export_controls",
    "resolve_policy",
    "load_params",
    "load_yaml",
]
