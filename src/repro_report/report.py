"""Report setup.

One call for a report's setup chunk:

    from repro_report.report import setup_report
    report = setup_report(params_path="homework.qmd")

    report.exporter.save_plot(fig, "scatter")
    fit = report.memoize(lambda: slow_fit(df), "fit", deps=[df])

Params read from the document (all optional):

    params:
      export_mode: export_backup      # plus save_outputs / save_prompt / ... overrides
      output_dir: output
      figures_dir: output/figures
      tables_dir: output/tables
      cache_dir: output
      figure_formats: [png, svg]
      table_formats: [csv]
      seed: 5027
      fig_width: 8
      fig_asp: 0.618
      fig_dpi: 300
      log_dir: null
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging
import os
import random

import numpy as np

from .cache.memoize import CacheStore, memoize
from .errors import ConfigError
from .export.exporter import Exporter
from .logging_ import setup_logging
from .policies.export import ExportPolicy, export_controls
from .policies.loader import load_params
from .session import ChunkOptions

log = logging.getLogger("repro_report.report")

DEFAULT_SEED = 5027
# Golden-ratio figures unless the document says otherwise
DEFAULT_FIG_WIDTH = 8.0
DEFAULT_FIG_ASPECT = 0.618


def _as_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"{key} must be a string or a list of strings, got {value!r}")


@dataclass
class ReportConfig:
    policy: ExportPolicy
    output_dir: str = "output"
    figures_dir: Optional[str] = None
    tables_dir: Optional[str] = None
    cache_dir: Optional[str] = None
    figure_formats: List[str] = field(default_factory=lambda: ["png"])
    table_formats: List[str] = field(default_factory=lambda: ["csv"])
    seed: Optional[int] = DEFAULT_SEED
    chunk: ChunkOptions = field(default_factory=ChunkOptions)
    log_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if self.figures_dir is None:
            self.figures_dir = os.path.join(self.output_dir, "figures")
        if self.tables_dir is None:
            self.tables_dir = os.path.join(self.output_dir, "tables")
        if self.cache_dir is None:
            self.cache_dir = self.output_dir

    @classmethod
    def from_params(
        cls,
        params: Optional[Mapping[str, Any]] = None,
        mode: Optional[str] = None,
        prefer: str = "params",
        interactive: Optional[Callable[[], bool] | bool] = None,
    ) -> "ReportConfig":
        params = dict(params or {})
        policy = export_controls(mode=mode, params=params, prefer=prefer, interactive=interactive)

        chunk_params = {"fig_width": DEFAULT_FIG_WIDTH, "fig_asp": DEFAULT_FIG_ASPECT}
        chunk_params.update({k: v for k, v in params.items() if k.startswith("fig_") and v is not None})

        seed = params.get("seed", DEFAULT_SEED)
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise ConfigError(f"seed must be an integer or null, got {seed!r}")

        return cls(
            policy=policy,
            output_dir=params.get("output_dir") or "output",
            figures_dir=params.get("figures_dir"),
            tables_dir=params.get("tables_dir"),
            cache_dir=params.get("cache_dir"),
            figure_formats=_as_list(params.get("figure_formats", ["png"]), "figure_formats"),
            table_formats=_as_list(params.get("table_formats", ["csv"]), "table_formats"),
            seed=seed,
            chunk=ChunkOptions.from_params(chunk_params),
            log_dir=params.get("log_dir"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy.to_dict(),
            "output_dir": self.output_dir,
            "figures_dir": self.figures_dir,
            "tables_dir": self.tables_dir,
            "cache_dir": self.cache_dir,
            "figure_formats": list(self.figure_formats),
            "table_formats": list(self.table_formats),
            "seed": self.seed,
            "chunk": self.chunk.to_dict(),
            "log_dir": self.log_dir,
        }


class Report:
    """What a report's code needs after setup: the policy, an exporter and a cache."""

    def __init__(self, config: ReportConfig):
        self.config = config
        self.policy = config.policy
        self.cache = CacheStore(config.cache_dir)
        self.exporter = Exporter(
            config.policy,
            figures_dir=config.figures_dir,
            tables_dir=config.tables_dir,
            default_formats=config.figure_formats,
            table_formats=config.table_formats,
            chunk=config.chunk,
        )

    def memoize(self, computation: Callable[[], Any], cache_key: str, deps: Any = None,
                parallel: bool = True, **kwargs: Any) -> Any:
        return memoize(computation, cache_key, deps=deps, parallel=parallel, store=self.cache, **kwargs)


def seed_everything(seed: int) -> None:
    random.seed(seed)
    np.random.seed(seed)


def setup_report(
    params: Optional[Mapping[str, Any]] = None,
    params_path: Optional[str] = None,
    mode: Optional[str] = None,
    prefer: str = "params",
    configure_logging: bool = True,
) -> Report:
    """Resolve config from params (inline or from a YAML / .qmd file) and build a Report."""
    merged: Dict[str, Any] = {}
    if params_path is not None:
        merged.update(load_params(params_path))
    if params:
        merged.update(params)

    config = ReportConfig.from_params(merged, mode=mode, prefer=prefer)
    if configure_logging:
        setup_logging(log_dir=config.log_dir)
    if config.seed is not None:
        seed_everything(config.seed)
    log.info("Report setup: mode=%s output_dir=%s seed=%s", config.policy.mode, config.output_dir, config.seed)
    return Report(config)
