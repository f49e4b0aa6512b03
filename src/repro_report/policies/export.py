"""Export policy presets.

A mode is a named bundle of five flags. When an output file already exists and
prompting is off (typical during full renders), the flags are evaluated in a
fixed order, and exactly one outcome is chosen:

1. compare=True and the new output is byte-identical: keep the existing file.
2. overwrite=True: replace the existing file in place.
3. backup=True: rename the existing file to `name_YYYYMMDDHHMM.ext`, write the new one.
4. otherwise: discard the new output ("skip if exists").

Modes:
- analysis: no exporting (outputs=False). Plots still render in the document.
- export_overwrite: regenerate everything in place, no backups, no compare.
- export_backup: keep a timestamped trail of changed files.
- export_new_only: only write missing files; never touch existing ones.
- interactive: ask on every conflict (overwrite / rename / skip).

Report params (Quarto YAML) can override a preset field by field:

    params:
      export_mode: export_backup
      save_outputs: true
      save_prompt: false
      save_overwrite: false
      save_backup: true
      save_compare: true

Custom modes are plain dict entries; pass your own table to resolve_policy().
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Dict, Mapping, Optional
import logging
import os

from ..errors import ConfigError
from ..session import is_interactive

log = logging.getLogger("repro_report.policies")

POLICY_FIELDS = ("outputs", "prompt", "overwrite", "backup", "compare")

# Report param name -> policy field
PARAM_KEYS = {
    "save_outputs": "outputs",
    "save_prompt": "prompt",
    "save_overwrite": "overwrite",
    "save_backup": "backup",
    "save_compare": "compare",
}

DEFAULT_MODE = "analysis"

PRESETS: Dict[str, Dict[str, Optional[bool]]] = {
    "analysis": {
        "outputs": False,
        "prompt": None,  # None -> ask the session
        "overwrite": False,
        "backup": True,
        "compare": True,
    },
    "export_overwrite": {
        "outputs": True,
        "prompt": False,
        "overwrite": True,
        "backup": False,
        "compare": False,
    },
    "export_backup": {
        "outputs": True,
        "prompt": False,
        "overwrite": False,
        "backup": True,
        "compare": True,
    },
    "export_new_only": {
        "outputs": True,
        "prompt": False,
        "overwrite": False,
        "backup": False,
        "compare": True,
    },
    "interactive": {
        "outputs": True,
        "prompt": True,
        "overwrite": False,
        "backup": True,
        "compare": True,
    },
}


@dataclass(frozen=True)
class ExportPolicy:
    mode: str
    outputs: bool
    prompt: bool
    overwrite: bool
    backup: bool
    compare: bool

    def with_overrides(self, **overrides: Optional[bool]) -> "ExportPolicy":
        """Copy with any non-None fields replaced (per-call overrides)."""
        clean = _validate_overrides(overrides)
        if not clean:
            return self
        return replace(self, **clean)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _validate_overrides(overrides: Optional[Mapping[str, Any]]) -> Dict[str, bool]:
    out: Dict[str, bool] = {}
    for key, value in (overrides or {}).items():
        if key not in POLICY_FIELDS:
            raise ConfigError(f"Unknown export policy field: {key!r}", POLICY_FIELDS)
        if value is None:
            continue
        if not isinstance(value, bool):
            raise ConfigError(
                f"Export policy field {key!r} must be true/false, got {value!r}",
                ("true", "false"),
            )
        out[key] = value
    return out


def resolve_policy(
    mode: str,
    presets: Optional[Mapping[str, Mapping[str, Optional[bool]]]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    interactive: Optional[Callable[[], bool] | bool] = None,
) -> ExportPolicy:
    """Resolve a preset plus sparse overrides into a concrete ExportPolicy.

    Only `prompt` may be left unset by the preset; it is then resolved from the
    session (`interactive` if given, else session.is_interactive()).
    """
    presets = PRESETS if presets is None else presets
    if mode not in presets:
        raise ConfigError(f"Unknown export mode: {mode!r}", presets.keys())

    fields: Dict[str, Optional[bool]] = {k: presets[mode].get(k) for k in POLICY_FIELDS}
    fields.update(_validate_overrides(overrides))

    if fields["prompt"] is None:
        if interactive is None:
            fields["prompt"] = is_interactive()
        elif callable(interactive):
            fields["prompt"] = bool(interactive())
        else:
            fields["prompt"] = bool(interactive)

    return ExportPolicy(mode=mode, **{k: bool(v) for k, v in fields.items()})


def export_controls(
    mode: Optional[str] = None,
    params: Optional[Mapping[str, Any]] = None,
    prefer: str = "params",
    presets: Optional[Mapping[str, Mapping[str, Optional[bool]]]] = None,
    interactive: Optional[Callable[[], bool] | bool] = None,
) -> ExportPolicy:
    """Build the export policy for a report from its mode and params.

    Args:
        mode: Preset name. If None, uses params["export_mode"], then the
            REPRO_EXPORT_MODE environment variable, then "analysis".
        params: Report params (the document's YAML `params:` block).
        prefer: "params" (any non-null save_* param overrides the preset) or
            "mode" (the preset wins; params ignored except export_mode).
    """
    if prefer not in ("params", "mode"):
        raise ConfigError(f"Unknown prefer value: {prefer!r}", ("params", "mode"))
    params = params or {}

    if mode is None:
        mode = params.get("export_mode") or os.environ.get("REPRO_EXPORT_MODE") or DEFAULT_MODE

    overrides: Dict[str, Any] = {}
    if prefer == "params":
        overrides = {field: params.get(key) for key, field in PARAM_KEYS.items()}

    policy = resolve_policy(mode, presets=presets, overrides=overrides, interactive=interactive)
    log.info(
        "Export mode '%s': outputs=%s prompt=%s overwrite=%s backup=%s compare=%s",
        policy.mode, policy.outputs, policy.prompt, policy.overwrite, policy.backup, policy.compare,
    )
    return policy
