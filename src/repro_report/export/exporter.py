"""Policy-bound export defaults.

Bind the report's export policy and output folders once in the setup chunk:

    ctrl = export_controls(mode="export_backup")
    exporter = Exporter(ctrl, default_formats=("png", "svg"))
    exporter.save_plot(fig, "scatter")

Any of prompt/overwrite/backup/compare/outputs passed to a call overrides the
bound policy for that call only, e.g. forcing a one-off overwrite under
"export_new_only".
"""

from __future__ import annotations
from typing import Any, Iterable, Optional, Union
import os

from ..policies.export import ExportPolicy
from ..session import ChunkOptions
from .conflict import Chooser, ExportResult, WriteOutcome
from .layout import FIGURES_DIR, TABLES_DIR
from .objects import save_object, save_table
from .plots import save_plot

Formats = Union[str, Iterable[str]]


class Exporter:
    def __init__(
        self,
        policy: ExportPolicy,
        figures_dir: str = FIGURES_DIR,
        tables_dir: str = TABLES_DIR,
        objects_dir: Optional[str] = None,
        default_formats: Formats = ("png",),
        table_formats: Formats = ("csv",),
        chunk: Optional[ChunkOptions] = None,
        chooser: Optional[Chooser] = None,
    ):
        self.policy = policy
        self.figures_dir = figures_dir
        self.tables_dir = tables_dir
        self.objects_dir = objects_dir or tables_dir
        self.default_formats = default_formats
        self.table_formats = table_formats
        self.chunk = chunk or ChunkOptions()
        self.chooser = chooser

    def _policy_for(self, overrides: dict) -> ExportPolicy:
        return self.policy.with_overrides(**overrides)

    def save_plot(
        self,
        plot: Any,
        name: str,
        formats: Optional[Formats] = None,
        target: Optional[str] = None,
        *,
        width: Optional[float] = None,
        height: Optional[float] = None,
        dpi: Optional[float] = None,
        create_dir: bool = True,
        **overrides: Optional[bool],
    ) -> ExportResult:
        return save_plot(
            plot,
            name,
            formats=self.default_formats if formats is None else formats,
            target=self.figures_dir if target is None else target,
            policy=self._policy_for(overrides),
            width=width,
            height=height,
            dpi=dpi,
            chunk=self.chunk,
            create_dir=create_dir,
            chooser=self.chooser,
        )

    def save_table(
        self,
        df: Any,
        name: str,
        formats: Optional[Formats] = None,
        target: Optional[str] = None,
        *,
        index: bool = False,
        **overrides: Optional[bool],
    ) -> ExportResult:
        return save_table(
            df,
            name,
            formats=self.table_formats if formats is None else formats,
            target=self.tables_dir if target is None else target,
            policy=self._policy_for(overrides),
            index=index,
            chooser=self.chooser,
        )

    def save_object(self, obj: Any, path: str, **overrides: Optional[bool]) -> Optional[WriteOutcome]:
        """Relative paths are placed under objects_dir."""
        if not os.path.isabs(path):
            path = os.path.join(self.objects_dir, path)
        return save_object(obj, path, policy=self._policy_for(overrides), chooser=self.chooser)
