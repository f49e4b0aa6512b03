import logging
import os

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pytest  # noqa: E402

from repro_report.export.conflict import temp_sibling  # noqa: E402

_ENV_KEYS = ("REPRO_INTERACTIVE", "REPRO_EXPORT_MODE", "QUARTO_DOCUMENT_PATH", "QUARTO_PROJECT_DIR")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Tests must not depend on the shell or renderer they run under."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield
    plt.close("all")


@pytest.fixture
def make_temp():
    """Write content into a temp file next to final_path, as the renderers do."""
    def _make(final_path, content):
        os.makedirs(os.path.dirname(str(final_path)), exist_ok=True)
        tmp = temp_sibling(str(final_path))
        with open(tmp, "wb") as f:
            f.write(content if isinstance(content, bytes) else content.encode("utf-8"))
        return tmp
    return _make



@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by setup_logging (CLI, setup_report) after each test."""
    logger = logging.getLogger("repro_report")
    level = logger.level
    yield
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(level)
