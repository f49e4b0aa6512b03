"""Export policy presets, overrides and params resolution."""

import pytest

from repro_report.errors import ConfigError
from repro_report.policies.export import PRESETS, ExportPolicy, export_controls, resolve_policy


EXPECTED = {
    "analysis": (False, None, False, True, True),
    "export_overwrite": (True, False, True, False, False),
    "export_backup": (True, False, False, True, True),
    "export_new_only": (True, False, False, False, True),
    "interactive": (True, True, False, True, True),
}


class TestPresets:
    def test_preset_table(self):
        assert set(PRESETS) == set(EXPECTED)
        for mode, (outputs, prompt, overwrite, backup, compare) in EXPECTED.items():
            assert PRESETS[mode] == {
                "outputs": outputs,
                "prompt": prompt,
                "overwrite": overwrite,
                "backup": backup,
                "compare": compare,
            }

    def test_overwrite_and_backup_never_both_set(self):
        for preset in PRESETS.values():
            assert not (preset["overwrite"] and preset["backup"])


class TestResolvePolicy:
    def test_resolves_preset(self):
        policy = resolve_policy("export_backup")
        assert policy == ExportPolicy(
            mode="export_backup", outputs=True, prompt=False, overwrite=False, backup=True, compare=True
        )

    def test_unknown_mode_lists_valid_modes(self):
        with pytest.raises(ConfigError) as exc:
            resolve_policy("export_everything")
        msg = str(exc.value)
        assert "export_everything" in msg
        for mode in PRESETS:
            assert mode in msg

    def test_unset_prompt_follows_session(self):
        assert resolve_policy("analysis", interactive=True).prompt is True
        assert resolve_policy("analysis", interactive=False).prompt is False
        assert resolve_policy("analysis", interactive=lambda: True).prompt is True

    def test_unset_prompt_uses_environment(self, monkeypatch):
        monkeypatch.setenv("REPRO_INTERACTIVE", "1")
        assert resolve_policy("analysis").prompt is True
        monkeypatch.setenv("REPRO_INTERACTIVE", "0")
        assert resolve_policy("analysis").prompt is False

    def test_set_prompt_ignores_session(self):
        assert resolve_policy("export_backup", interactive=True).prompt is False
        assert resolve_policy("interactive", interactive=False).prompt is True

    def test_overrides_replace_only_present_fields(self):
        policy = resolve_policy("export_backup", overrides={"compare": False, "backup": None})
        assert policy.compare is False
        assert policy.backup is True
        assert policy.outputs is True

    def test_override_can_set_prompt(self):
        policy = resolve_policy("analysis", overrides={"prompt": False}, interactive=True)
        assert policy.prompt is False

    def test_unknown_override_key(self):
        with pytest.raises(ConfigError, match="Unknown export policy field"):
            resolve_policy("export_backup", overrides={"overwrite_all": True})

    def test_non_boolean_override(self):
        with pytest.raises(ConfigError, match="true/false"):
            resolve_policy("export_backup", overrides={"backup": "yes"})

    def test_custom_preset_table(self):
        presets = dict(PRESETS)
        presets["export_backup_no_md5"] = dict(PRESETS["export_backup"], compare=False)
        policy = resolve_policy("export_backup_no_md5", presets=presets)
        assert policy.mode == "export_backup_no_md5"
        assert policy.compare is False


class TestWithOverrides:
    def test_copy_with_changes(self):
        base = resolve_policy("export_new_only")
        forced = base.with_overrides(overwrite=True, backup=None)
        assert forced.overwrite is True
        assert forced.backup is False
        assert base.overwrite is False

    def test_no_overrides_returns_same_policy(self):
        base = resolve_policy("export_new_only")
        assert base.with_overrides() is base


class TestExportControls:
    def test_default_mode_is_analysis(self):
        policy = export_controls(interactive=False)
        assert policy.mode == "analysis"
        assert policy.outputs is False

    def test_mode_from_params(self):
        policy = export_controls(params={"export_mode": "export_overwrite"})
        assert policy.mode == "export_overwrite"
        assert policy.overwrite is True

    def test_mode_from_environment(self, monkeypatch):
        monkeypatch.setenv("REPRO_EXPORT_MODE", "export_new_only")
        assert export_controls().mode == "export_new_only"

    def test_explicit_mode_beats_params(self):
        policy = export_controls(mode="export_backup", params={"export_mode": "export_overwrite"})
        assert policy.mode == "export_backup"

    def test_params_override_preset(self):
        params = {"export_mode": "export_backup", "save_compare": False, "save_backup": None}
        policy = export_controls(params=params)
        assert policy.compare is False
        assert policy.backup is True

    def test_prefer_mode_ignores_overrides(self):
        params = {"export_mode": "export_backup", "save_compare": False}
        policy = export_controls(params=params, prefer="mode")
        assert policy.mode == "export_backup"
        assert policy.compare is True

    def test_bad_prefer(self):
        with pytest.raises(ConfigError, match="params, mode"):
            export_controls(mode="export_backup", prefer="yaml")

    def test_to_dict(self):
        d = export_controls(mode="interactive").to_dict()
        assert d == {
            "mode": "interactive",
            "outputs": True,
            "prompt": True,
            "overwrite": False,
            "backup": True,
            "compare": True,
        }
