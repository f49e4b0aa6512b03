"""Object and table export, and the policy-bound Exporter."""

import os
import pickle

import matplotlib.pyplot as plt
import pandas as pd
import pytest

from repro_report.errors import ConfigError, UnsupportedInputError
from repro_report.export import Exporter, save_object, save_table
from repro_report.policies.export import resolve_policy


def policy(mode, **overrides):
    return resolve_policy(mode, overrides=overrides, interactive=False)


@pytest.fixture
def df():
    return pd.DataFrame({"term": ["(Intercept)", "wt"], "estimate": [37.285, -5.344], "p": [0.0, 1.29e-10]})


class TestSaveObject:
    def test_outputs_off(self, tmp_path):
        path = tmp_path / "tables" / "model.pkl"
        assert save_object({"a": 1}, str(path), policy=policy("analysis")) is None
        assert not path.parent.exists()

    def test_writes_pickle(self, tmp_path):
        path = tmp_path / "tables" / "model.pkl"
        outcome = save_object({"coef": [1.5, 2.5]}, str(path), policy=policy("export_backup"))
        assert outcome.written
        with open(path, "rb") as f:
            assert pickle.load(f) == {"coef": [1.5, 2.5]}

    def test_unchanged_object_is_skipped_changed_is_backed_up(self, tmp_path):
        path = tmp_path / "model.pkl"
        save_object({"coef": 1}, str(path), policy=policy("export_backup"))
        assert save_object({"coef": 1}, str(path), policy=policy("export_backup")).skipped
        outcome = save_object({"coef": 2}, str(path), policy=policy("export_backup"))
        assert outcome.backed_up
        assert len(os.listdir(tmp_path)) == 2

    def test_unpicklable_object_leaves_nothing_behind(self, tmp_path):
        path = tmp_path / "bad.pkl"
        with pytest.raises(Exception):
            save_object(lambda: None, str(path), policy=policy("export_backup"))
        assert os.listdir(tmp_path) == []


class TestSaveTable:
    def test_outputs_off(self, tmp_path, df):
        result = save_table(df, "coefs", target=str(tmp_path / "tables"), policy=policy("analysis"))
        assert result.outcomes == []
        assert not (tmp_path / "tables").exists()

    def test_csv_parquet_json(self, tmp_path, df):
        result = save_table(df, "coefs", formats=["csv", "parquet", "json"], target=str(tmp_path),
                            policy=policy("export_backup"))
        assert result.ok
        assert sorted(p.name for p in tmp_path.iterdir()) == ["coefs.csv", "coefs.json", "coefs.parquet"]
        pd.testing.assert_frame_equal(pd.read_parquet(tmp_path / "coefs.parquet"), df)
        assert (tmp_path / "coefs.csv").read_text().splitlines()[0] == "term,estimate,p"

    def test_series_is_accepted(self, tmp_path):
        s = pd.Series([1, 2, 3], name="x")
        result = save_table(s, "x", target=str(tmp_path), policy=policy("export_backup"))
        assert result.ok

    def test_rejects_non_frames(self, tmp_path):
        with pytest.raises(UnsupportedInputError, match="DataFrame"):
            save_table([[1, 2]], "x", target=str(tmp_path), policy=policy("export_backup"))

    def test_unknown_format_is_collected(self, tmp_path, df):
        result = save_table(df, "coefs", formats=["xlsx", "csv"], target=str(tmp_path),
                            policy=policy("export_backup"))
        assert isinstance(result.errors[str(tmp_path / "coefs.xlsx")], ConfigError)
        assert (tmp_path / "coefs.csv").exists()

    def test_same_table_twice_is_skipped(self, tmp_path, df):
        save_table(df, "coefs", formats=["csv", "json"], target=str(tmp_path), policy=policy("export_backup"))
        result = save_table(df, "coefs", formats=["csv", "json"], target=str(tmp_path),
                            policy=policy("export_backup"))
        assert all(o.skipped for o in result.outcomes)
        assert len(os.listdir(tmp_path)) == 2


class TestExporter:
    def test_defaults_are_applied(self, tmp_path, df):
        exporter = Exporter(
            policy("export_backup"),
            figures_dir=str(tmp_path / "figures"),
            tables_dir=str(tmp_path / "tables"),
            default_formats=("png", "svg"),
        )
        fig, ax = plt.subplots()
        ax.plot([1, 2, 3])
        exporter.save_plot(fig, "line")
        exporter.save_table(df, "coefs")
        exporter.save_object({"k": 3}, "params.pkl")
        assert sorted(os.listdir(tmp_path / "figures")) == ["line.png", "line.svg"]
        assert sorted(os.listdir(tmp_path / "tables")) == ["coefs.csv", "params.pkl"]

    def test_call_overrides_bound_policy(self, tmp_path, df):
        exporter = Exporter(policy("export_new_only"), tables_dir=str(tmp_path))
        exporter.save_table(df, "coefs")
        changed = df.assign(estimate=df["estimate"] * 2)

        kept = exporter.save_table(changed, "coefs")
        assert kept.outcomes[0].skipped

        forced = exporter.save_table(changed, "coefs", overwrite=True)
        assert forced.outcomes[0].action.value == "overwritten"
        assert exporter.policy.overwrite is False
        assert pd.read_csv(tmp_path / "coefs.csv")["estimate"].tolist() == changed["estimate"].tolist()

    def test_outputs_override_enables_export_in_analysis_mode(self, tmp_path, df):
        exporter = Exporter(policy("analysis"), tables_dir=str(tmp_path / "tables"))
        assert exporter.save_table(df, "coefs").outcomes == []
        assert exporter.save_table(df, "coefs", outputs=True).outcomes[0].written

    def test_bad_override(self, tmp_path, df):
        exporter = Exporter(policy("export_backup"), tables_dir=str(tmp_path))
        with pytest.raises(ConfigError):
            exporter.save_table(df, "coefs", clobber=True)
