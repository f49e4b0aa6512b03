"""Save a plot to one or more file formats with overwrite safety.

Supported inputs, resolved once by as_plot_source():
- a matplotlib Figure, or anything exposing one as `.figure` / `.fig`
  (Axes, pandas `.plot()` results, seaborn grids) -> FigureSource
- None: capture the currently active pyplot figure -> CapturedSource
- a zero-argument function that draws with pyplot -> DrawerSource

Every format is rendered into a temp file beside the target and then handed to
write_artifact(), so the export policy decides what happens on conflict.

Example:
    fig, ax = plt.subplots()
    ax.scatter(df.wt, df.mpg)
    save_plot(fig, "scatter", formats=("png", "svg"), target="output/figures", policy=ctrl)

    save_plot(lambda: plt.hist(df.mpg), "mpg_hist", policy=ctrl)
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional, Tuple, Union
import logging

import matplotlib
from matplotlib.figure import Figure
import matplotlib.pyplot as plt

from ..errors import UnsupportedPlotError
from ..policies.export import ExportPolicy
from ..session import ChunkOptions
from .conflict import Chooser, ExportResult, export_variants
from .layout import check_name, ensure_target_dir, normalize_formats

log = logging.getLogger("repro_report.export")

# file extension -> matplotlib backend format
PLOT_FORMATS = {
    "png": "png",
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "svg": "svg",
    "pdf": "pdf",
}

# Creation dates and random ids would make every render differ byte-wise
_REPRODUCIBLE_METADATA = {
    "svg": {"Date": None},
    "pdf": {"CreationDate": None},
}
_SVG_HASHSALT = "repro-report"

Size = Tuple[float, float]


def _savefig(figure: Figure, path: str, fmt: str, dpi: float) -> None:
    kwargs: dict = {"format": fmt, "dpi": dpi}
    if fmt in _REPRODUCIBLE_METADATA:
        kwargs["metadata"] = dict(_REPRODUCIBLE_METADATA[fmt])
    with matplotlib.rc_context({"svg.hashsalt": _SVG_HASHSALT}):
        figure.savefig(path, **kwargs)


@contextmanager
def _sized(figure: Figure, size: Size) -> Iterator[Figure]:
    """Temporarily resize a figure the caller owns; the original size is restored."""
    original = tuple(figure.get_size_inches())
    figure.set_size_inches(*size)
    try:
        yield figure
    finally:
        figure.set_size_inches(*original)


def _figure_of(obj: Any) -> Optional[Figure]:
    if isinstance(obj, Figure):
        return obj
    for attr in ("figure", "fig"):
        fig = getattr(obj, attr, None)
        if isinstance(fig, Figure):
            return fig
    return None


@dataclass(frozen=True)
class FigureSource:
    figure: Figure

    def render(self, path: str, fmt: str, size: Size, dpi: float) -> None:
        with _sized(self.figure, size) as fig:
            _savefig(fig, path, fmt, dpi)


@dataclass(frozen=True)
class CapturedSource(FigureSource):
    """The pyplot figure that was current when save_plot() was called."""


@dataclass(frozen=True)
class DrawerSource:
    draw: Callable[[], Any]

    def render(self, path: str, fmt: str, size: Size, dpi: float) -> None:
        before = set(plt.get_fignums())
        fig = plt.figure(figsize=size)
        try:
            returned = _figure_of(self.draw())
            target = returned if returned is not None else plt.gcf()
            if target is not fig:
                target.set_size_inches(*size)
            _savefig(target, path, fmt, dpi)
        finally:
            # Close everything the drawer opened, including our own figure
            for num in set(plt.get_fignums()) - before:
                plt.close(num)


PlotSource = Union[FigureSource, CapturedSource, DrawerSource]

SUPPORTED_SHAPES = (
    "a matplotlib Figure (or an object with a .figure/.fig Figure, e.g. Axes), "
    "None to capture the current pyplot figure, "
    "or a zero-argument function that draws the plot"
)


def as_plot_source(plot: Any) -> PlotSource:
    if plot is None:
        if not plt.get_fignums():
            raise UnsupportedPlotError("No open figure to capture. Pass a Figure or a drawing function.")
        return CapturedSource(plt.gcf())
    fig = _figure_of(plot)
    if fig is not None:
        return FigureSource(fig)
    if callable(plot):
        return DrawerSource(plot)
    raise UnsupportedPlotError(
        f"Unsupported plot type: {type(plot).__name__}. Supply {SUPPORTED_SHAPES}."
    )


def save_plot(
    plot: Any,
    name: str,
    formats: Union[str, Iterable[str]] = ("png",),
    target: Optional[str] = ".",
    *,
    policy: ExportPolicy,
    width: Optional[float] = None,
    height: Optional[float] = None,
    dpi: Optional[float] = None,
    chunk: Optional[ChunkOptions] = None,
    create_dir: bool = True,
    chooser: Optional[Chooser] = None,
) -> ExportResult:
    """
    Save a plot to `<target>/<name>.<format>` for each requested format.

    Args:
        plot: Figure-like object, None (current figure) or a drawing function
        name: File name stem (no extension)
        formats: "png" or e.g. ("png", "svg"); leading dots allowed
        target: Output folder, relative to the working directory
        width, height, dpi: Inches / resolution; fall back to `chunk`, then defaults
        policy: Resolved export policy (see policies.export)
        create_dir: Create the target folder if missing
        chooser: Conflict prompt used when policy.prompt is set

    Returns:
        ExportResult with one WriteOutcome per format that got through,
        and the errors of those that didn't.
    """
    if not policy.outputs:
        log.debug("Outputs disabled (mode=%s); not saving plot '%s'", policy.mode, name)
        return ExportResult()

    name = check_name(name)
    fmts = normalize_formats(formats)
    source = as_plot_source(plot)
    out_dir = ensure_target_dir(target, create_dir)
    w, h, d = (chunk or ChunkOptions()).resolve(width, height, dpi)

    def render(tmp: str, fmt: str) -> None:
        if fmt not in PLOT_FORMATS:
            raise UnsupportedPlotError(
                f"Unsupported format: {fmt!r}. Supported: {', '.join(PLOT_FORMATS)}"
            )
        source.render(tmp, PLOT_FORMATS[fmt], (w, h), d)

    return export_variants(out_dir, name, fmts, render, policy, chooser)
