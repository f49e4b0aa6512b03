"""YAML params from plain files and Quarto front matter."""

import pytest

from repro_report.errors import ConfigError
from repro_report.policies.loader import load_params, load_yaml


def test_load_yaml_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_yaml(str(path)) == {}


def test_load_yaml_requires_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_yaml(str(path))


def test_params_key(tmp_path):
    path = tmp_path / "_quarto.yml"
    path.write_text("project:\n  type: default\nparams:\n  export_mode: export_backup\n  save_compare: false\n")
    assert load_params(str(path)) == {"export_mode": "export_backup", "save_compare": False}


def test_plain_mapping(tmp_path):
    path = tmp_path / "params.yaml"
    path.write_text("export_mode: export_new_only\n")
    assert load_params(str(path)) == {"export_mode": "export_new_only"}


def test_qmd_front_matter(tmp_path):
    path = tmp_path / "homework.qmd"
    path.write_text(
        "---\n"
        "title: \"STAT 5027 Homework 3\"\n"
        "params:\n"
        "  export_mode: interactive\n"
        "  seed: 42\n"
        "---\n"
        "\n"
        "```{python}\n"
        "x = 1\n"
        "```\n"
    )
    assert load_params(str(path)) == {"export_mode": "interactive", "seed": 42}


def test_qmd_without_front_matter(tmp_path):
    path = tmp_path / "notes.qmd"
    path.write_text("# Notes\n")
    assert load_params(str(path)) == {}


def test_qmd_unterminated_front_matter(tmp_path):
    path = tmp_path / "broken.qmd"
    path.write_text("---\ntitle: x\n")
    with pytest.raises(ConfigError, match="Unterminated"):
        load_params(str(path))


def test_params_must_be_mapping(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("params: [1, 2]\n")
    with pytest.raises(ConfigError, match="'params'"):
        load_params(str(path))
