"""Rendering-environment collaborator.

Two things come from the environment a report is rendered in:
- whether the session is interactive (console / notebook) or a batch render
- chunk-level figure hints (width, height, dpi)

Both are passed around explicitly. Nothing here reads the caller's scope.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple
import os
import sys

from .errors import ConfigError

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}

# Set by `quarto render` for every engine it drives
_RENDER_MARKERS = ("QUARTO_DOCUMENT_PATH", "QUARTO_PROJECT_DIR")

# Used when neither the caller nor the chunk says anything
DEFAULT_WIDTH = 7.0
DEFAULT_HEIGHT = 5.0
DEFAULT_DPI = 300


def is_interactive() -> bool:
    """Return True when running in a console/notebook session, False in a batch render."""
    forced = os.environ.get("REPRO_INTERACTIVE", "").strip().lower()
    if forced in _TRUTHY:
        return True
    if forced in _FALSY:
        return False
    if any(os.environ.get(k) for k in _RENDER_MARKERS):
        return False
    if hasattr(sys, "ps1") or sys.flags.interactive:
        return True
    ipython = sys.modules.get("IPython")
    if ipython is not None:
        get_ipython = getattr(ipython, "get_ipython", None)
        return bool(get_ipython and get_ipython() is not None)
    return False


def _as_float(value: Any, key: str) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Chunk option {key} must be numeric, got {value!r}")


@dataclass(frozen=True)
class ChunkOptions:
    """Figure hints supplied by the rendering engine for the current chunk.

    Fallback order per field: explicit argument -> chunk option -> package default.
    When no height is given anywhere, a chunk aspect ratio (height / width) is
    applied to the resolved width.
    """
    width: Optional[float] = None   # inches
    height: Optional[float] = None  # inches
    dpi: Optional[float] = None
    aspect: Optional[float] = None

    def resolve(
        self,
        width: Optional[float] = None,
        height: Optional[float] = None,
        dpi: Optional[float] = None,
    ) -> Tuple[float, float, float]:
        w = width if width is not None else self.width
        w = float(w) if w is not None else DEFAULT_WIDTH
        h = height if height is not None else self.height
        if h is None and self.aspect is not None:
            h = w * self.aspect
        if h is None:
            h = DEFAULT_HEIGHT
        d = dpi if dpi is not None else self.dpi
        d = float(d) if d is not None else float(DEFAULT_DPI)
        return (w, float(h), d)

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> "ChunkOptions":
        params = params or {}
        return cls(
            width=_as_float(params.get("fig_width"), "fig_width"),
            height=_as_float(params.get("fig_height"), "fig_height"),
            dpi=_as_float(params.get("fig_dpi"), "fig_dpi"),
            aspect=_as_float(params.get("fig_asp"), "fig_asp"),
        )

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"width": self.width, "height": self.height, "dpi": self.dpi, "aspect": self.aspect}
