"""Policy loader.

Report params are YAML, either a plain mapping, a `_quarto.yml`-style file
with a top-level `params:` key, or the front matter of a `.qmd` document.
Keeping the export mode in the document's YAML allows:
- switching between analysis and export renders without touching code
- versioned configuration alongside the report
"""

from __future__ import annotations
from typing import Any, Dict
import yaml

from ..errors import ConfigError


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _front_matter(text: str) -> str:
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return ""
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() in ("---", "..."):
            return "\n".join(lines[1:i])
    raise ConfigError("Unterminated YAML front matter (missing closing '---')")


def load_params(path: str) -> Dict[str, Any]:
    """Return the `params` mapping from a YAML file or a Quarto document."""
    if path.endswith((".qmd", ".Rmd", ".md")):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(_front_matter(f.read())) or {}
    else:
        data = load_yaml(path)
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}")
    params = data.get("params", data)
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise ConfigError(f"'params' in {path} must be a mapping, got {type(params).__name__}")
    return params
