"""Output layout: `<target>/<name>.<format>`, backups as `<target>/<name>_<YYYYMMDDHHMM>.<format>`.

Target structure used by report setup:
  output/
   ├── figures/
   │    ├── scatter.png
   │    └── scatter_202409301415.png   (backup)
   ├── tables/
   │    └── summary.csv
   └── <cache files>.pkl
"""

from __future__ import annotations
import os
from typing import Iterable, List, Union

from ..errors import ConfigError, ExportIOError

FIGURES_DIR = os.path.join("output", "figures")
TABLES_DIR = os.path.join("output", "tables")
CACHE_DIR = "output"


def normalize_formats(formats: Union[str, Iterable[str]]) -> List[str]:
    """Lower-case, strip leading dots, drop duplicates (order kept)."""
    if isinstance(formats, str):
        formats = [formats]
    out: List[str] = []
    for fmt in formats:
        fmt = str(fmt).strip().lower().lstrip(".")
        if not fmt:
            raise ConfigError("Empty output format")
        if fmt not in out:
            out.append(fmt)
    if not out:
        raise ConfigError("At least one output format is required")
    return out


def check_name(name: str) -> str:
    """File name stem: non-empty, no directory separators."""
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Output name must be a non-empty string, got {name!r}")
    if os.sep in name or (os.altsep and os.altsep in name):
        raise ConfigError(f"Output name must not contain path separators: {name!r}")
    return name.strip()


def ensure_target_dir(target: str | None, create_dir: bool = True) -> str:
    """Absolute output folder (relative targets are taken from the working directory)."""
    out_dir = os.path.abspath(target or ".")
    if os.path.isdir(out_dir):
        return out_dir
    if not create_dir:
        raise ExportIOError(f"Target directory does not exist: {out_dir}")
    try:
        os.makedirs(out_dir, exist_ok=True)
    except OSError as exc:
        raise ExportIOError(f"Cannot create target directory {out_dir}: {exc}") from exc
    return out_dir


def artifact_path(out_dir: str, name: str, fmt: str) -> str:
    return os.path.join(out_dir, f"{name}.{fmt}")
