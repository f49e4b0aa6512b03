"""Conditionally save objects and tables to disk.

- save_object: any picklable object (fitted models, intermediate results)
- save_table: pandas DataFrames as csv / parquet / json

Both go through the same conflict resolution as plots. `policy.outputs` is the
single switch for whether anything is written.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, Optional, Union
import logging
import os
import pickle

import pandas as pd

from ..errors import ConfigError, UnsupportedInputError
from ..policies.export import ExportPolicy
from .conflict import Chooser, ExportResult, WriteOutcome, export_variants, temp_sibling, write_artifact
from .layout import check_name, ensure_target_dir, normalize_formats

log = logging.getLogger("repro_report.export")


def _write_csv(df: pd.DataFrame, path: str, index: bool) -> None:
    df.to_csv(path, index=index, lineterminator="\n")


def _write_parquet(df: pd.DataFrame, path: str, index: bool) -> None:
    df.to_parquet(path, engine="pyarrow", index=index)


def _write_json(df: pd.DataFrame, path: str, index: bool) -> None:
    orient = "table" if index else "records"
    df.to_json(path, orient=orient, indent=2, date_format="iso")


TABLE_WRITERS: Dict[str, Callable[[pd.DataFrame, str, bool], None]] = {
    "csv": _write_csv,
    "parquet": _write_parquet,
    "json": _write_json,
}


def save_object(
    obj: Any,
    path: str,
    *,
    policy: ExportPolicy,
    chooser: Optional[Chooser] = None,
    create_dir: bool = True,
) -> Optional[WriteOutcome]:
    """Pickle `obj` to `path` under the export policy. Returns None when outputs are off."""
    if not policy.outputs:
        log.debug("Outputs disabled (mode=%s); not saving %s", policy.mode, path)
        return None
    out_dir = ensure_target_dir(os.path.dirname(os.path.abspath(path)), create_dir)
    final_path = os.path.join(out_dir, os.path.basename(path))
    tmp = temp_sibling(final_path)
    try:
        with open(tmp, "wb") as f:
            pickle.dump(obj, f, protocol=pickle.HIGHEST_PROTOCOL)
    except BaseException:
        os.remove(tmp)
        raise
    return write_artifact(tmp, final_path, policy, chooser)


def save_table(
    df: pd.DataFrame,
    name: str,
    formats: Union[str, Iterable[str]] = ("csv",),
    target: Optional[str] = ".",
    *,
    policy: ExportPolicy,
    index: bool = False,
    create_dir: bool = True,
    chooser: Optional[Chooser] = None,
) -> ExportResult:
    """Save a DataFrame to `<target>/<name>.<format>` for each requested format."""
    if not policy.outputs:
        log.debug("Outputs disabled (mode=%s); not saving table '%s'", policy.mode, name)
        return ExportResult()
    if not isinstance(df, pd.DataFrame):
        if isinstance(df, pd.Series):
            df = df.to_frame()
        else:
            raise UnsupportedInputError(
                f"save_table expects a pandas DataFrame or Series, got {type(df).__name__}"
            )

    name = check_name(name)
    fmts = normalize_formats(formats)
    out_dir = ensure_target_dir(target, create_dir)

    def render(tmp: str, fmt: str) -> None:
        writer = TABLE_WRITERS.get(fmt)
        if writer is None:
            raise ConfigError(f"Unsupported table format: {fmt!r}", TABLE_WRITERS)
        writer(df, tmp, index)

    return export_variants(out_dir, name, fmts, render, policy, chooser)
